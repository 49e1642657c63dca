"""
federation/views/auth_views.py
─────────────────────────────────────────────────────────────────────
Registration, login/logout, email verification, password recovery,
own profile.
"""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from ..exceptions import BusinessRuleViolation, api_response
from ..serializers import (
    ChangePasswordSerializer, LoginSerializer, PasswordResetRequestSerializer,
    PasswordResetSerializer, RegisterSerializer, TokenSerializer, UserSerializer,
)
from ..services.auth_service import AuthService

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
#  Register / Login / Logout
# ──────────────────────────────────────────────────────────────────
class RegisterView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user, tokens = AuthService.register(serializer.validated_data)
        return api_response(
            {"user": UserSerializer(user).data, "tokens": tokens},
            "Registration successful. Check your email to verify your account.",
            status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user, tokens = AuthService.login(**serializer.validated_data)
        return api_response({"user": UserSerializer(user).data, "tokens": tokens}, "Login successful")


class RefreshView(TokenRefreshView):
    """simplejwt refresh, answered inside the success envelope."""

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        return api_response(response.data, "Token refreshed")


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = TokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            RefreshToken(serializer.validated_data["refresh"]).blacklist()
        except TokenError as exc:
            raise BusinessRuleViolation(f"Invalid refresh token: {exc}")
        logger.info("Logout: %s", request.user.username)
        return api_response(message="Logged out")


# ──────────────────────────────────────────────────────────────────
#  Email verification & password recovery
# ──────────────────────────────────────────────────────────────────
class VerifyEmailView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        AuthService.verify_email(request.data.get("token", ""))
        return api_response(message="Email verified")


class PasswordResetRequestView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = PasswordResetRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        AuthService.request_password_reset(serializer.validated_data["email"])
        return api_response(message="If the email exists, a reset link has been sent.")


class PasswordResetView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = PasswordResetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        AuthService.reset_password(**serializer.validated_data)
        return api_response(message="Password updated")


# ──────────────────────────────────────────────────────────────────
#  Own profile
# ──────────────────────────────────────────────────────────────────
class ProfileView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return api_response(UserSerializer(request.user).data)

    def patch(self, request):
        serializer = UserSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(serializer.data, "Profile updated")

    put = patch


class ChangePasswordView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        request.user.set_password(serializer.validated_data["new_password"])
        request.user.save(update_fields=["password"])
        return api_response(message="Password changed")
