"""
federation/urls/auth_urls.py
namespace = "auth"
"""
from django.urls import path

from ..views.auth_views import (
    ChangePasswordView,
    LoginView,
    LogoutView,
    PasswordResetRequestView,
    PasswordResetView,
    ProfileView,
    RefreshView,
    RegisterView,
    VerifyEmailView,
)

app_name = "auth"

urlpatterns = [
    path("register/",               RegisterView.as_view(),             name="register"),
    path("login/",                  LoginView.as_view(),                name="login"),
    path("refresh/",                RefreshView.as_view(),              name="refresh"),
    path("logout/",                 LogoutView.as_view(),               name="logout"),
    path("verify-email/",           VerifyEmailView.as_view(),          name="verify-email"),
    path("password-reset/",         PasswordResetRequestView.as_view(), name="password-reset-request"),
    path("password-reset/confirm/", PasswordResetView.as_view(),        name="password-reset"),
    path("profile/",                ProfileView.as_view(),              name="profile"),
    path("change-password/",        ChangePasswordView.as_view(),       name="change-password"),
]
