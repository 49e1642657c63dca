"""
federation/urls/credential_urls.py
namespace = "credentials"
"""
from django.urls import path

from ..views.credential_views import (
    CredentialAdminDetailView,
    CredentialAdminView,
    CredentialCreateView,
    CredentialRegenerateQRView,
    CredentialVerifyView,
    MyCredentialView,
)

app_name = "credentials"

urlpatterns = [
    path("",                           CredentialCreateView.as_view(),       name="create"),
    path("mine/",                      MyCredentialView.as_view(),           name="mine"),
    path("verify/<str:code>/",         CredentialVerifyView.as_view(),       name="verify"),
    path("<uuid:pk>/regenerate-qr/",   CredentialRegenerateQRView.as_view(), name="regenerate-qr"),
    path("admin/",                     CredentialAdminView.as_view(),        name="admin-list"),
    path("admin/<uuid:pk>/",           CredentialAdminDetailView.as_view(),  name="admin-detail"),
]
