"""
services/auth_service.py
─────────────────────────────────────────────────────────────────────
Registration, login with lockout, email verification, password reset.
"""
from __future__ import annotations

import logging
import secrets
from typing import Dict, Tuple

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import AuthenticationFailed, PermissionDenied, ValidationError
from rest_framework_simplejwt.tokens import RefreshToken

from ..constants import (
    EMAIL_VERIFICATION_TTL, LOCKOUT_DURATION, MAX_LOGIN_ATTEMPTS, PASSWORD_RESET_TTL,
)
from ..exceptions import AccountLocked, ConflictError
from ..models import UserType
from . import email_service

logger = logging.getLogger(__name__)

INDIVIDUAL_TYPES = (UserType.PLAYER, UserType.COACH)
BUSINESS_TYPES   = (UserType.CLUB, UserType.PARTNER, UserType.STATE)


def token_pair(user) -> Dict[str, str]:
    refresh = RefreshToken.for_user(user)
    return {"access": str(refresh.access_token), "refresh": str(refresh)}


def _new_token() -> str:
    return secrets.token_urlsafe(32)


class AuthService:

    @classmethod
    def check_required_fields(cls, data: dict) -> None:
        user_type = data.get("user_type")
        missing = []
        if user_type in INDIVIDUAL_TYPES:
            if not data.get("full_name"):
                missing.append("full_name")
            if not data.get("privacy_policy_accepted"):
                missing.append("privacy_policy_accepted")
        elif user_type in BUSINESS_TYPES:
            if not data.get("business_name"):
                missing.append("business_name")
        if missing:
            raise ValidationError({f: ["This field is required."] for f in missing})

    @classmethod
    @transaction.atomic
    def register(cls, data: dict) -> Tuple[object, Dict[str, str]]:
        User = get_user_model()
        if data.get("user_type") == UserType.ADMIN:
            raise PermissionDenied("Administrator accounts cannot be self-registered.")
        cls.check_required_fields(data)

        email    = data["email"].strip().lower()
        username = data["username"].strip().lower()
        if User.objects.filter(email=email).exists():
            raise ConflictError("A user with this email already exists.")
        if User.objects.filter(username=username).exists():
            raise ConflictError("A user with this username already exists.")

        extra = {k: v for k, v in data.items() if k not in ("email", "username", "password")}
        if extra.get("privacy_policy_accepted"):
            extra["privacy_policy_accepted_at"] = timezone.now()

        user = User.objects.create_user(
            email=email,
            username=username,
            password=data["password"],
            email_verification_token=_new_token(),
            email_verification_expires_at=timezone.now() + EMAIL_VERIFICATION_TTL,
            **extra,
        )
        logger.info("Registered %s user %s", user.user_type, user.username)

        token = user.email_verification_token
        transaction.on_commit(lambda: cls._send_verification(user, token))
        return user, token_pair(user)

    @staticmethod
    def _send_verification(user, token: str) -> None:
        try:
            email_service.send_verification_email(user, token)
        except Exception as exc:
            logger.error("Verification email to %s failed: %s", user.email, exc)

    @classmethod
    def login(cls, email: str, password: str):
        User = get_user_model()
        now  = timezone.now()
        try:
            user = User.objects.get(email=(email or "").strip().lower())
        except User.DoesNotExist:
            raise AuthenticationFailed("Invalid email or password.")

        if user.is_locked(now):
            raise AccountLocked("Account is temporarily locked after too many failed attempts.")
        if not user.is_active:
            raise PermissionDenied("Account is deactivated.")

        if not user.check_password(password):
            cls.register_failed_attempt(user, now)
            raise AuthenticationFailed("Invalid email or password.")

        user.login_attempts = 0
        user.locked_until   = None
        user.last_login     = now
        user.save(update_fields=["login_attempts", "locked_until", "last_login"])
        logger.info("Login: %s", user.username)
        return user, token_pair(user)

    @staticmethod
    def register_failed_attempt(user, now) -> None:
        user.login_attempts += 1
        fields = ["login_attempts"]
        if user.login_attempts >= MAX_LOGIN_ATTEMPTS:
            user.locked_until   = now + LOCKOUT_DURATION
            user.login_attempts = 0
            fields.append("locked_until")
            logger.warning("Account %s locked until %s", user.username, user.locked_until)
        user.save(update_fields=fields)

    @classmethod
    def verify_email(cls, token: str):
        User = get_user_model()
        user = User.objects.filter(
            email_verification_token=token,
            email_verification_expires_at__gt=timezone.now(),
        ).first() if token else None
        if user is None:
            raise ValidationError("Invalid or expired verification token.")
        user.email_verified = True
        user.is_verified    = True
        user.email_verification_token      = ""
        user.email_verification_expires_at = None
        user.save(update_fields=[
            "email_verified", "is_verified",
            "email_verification_token", "email_verification_expires_at",
        ])
        return user

    @classmethod
    def request_password_reset(cls, email: str) -> None:
        User = get_user_model()
        user = User.objects.filter(email=(email or "").strip().lower(), is_active=True).first()
        if user is None:
            logger.info("Password reset requested for unknown email")
            return
        user.password_reset_token      = _new_token()
        user.password_reset_expires_at = timezone.now() + PASSWORD_RESET_TTL
        user.save(update_fields=["password_reset_token", "password_reset_expires_at"])
        try:
            email_service.send_password_reset_email(user, user.password_reset_token)
        except Exception as exc:
            logger.error("Password reset email to %s failed: %s", user.email, exc)

    @classmethod
    def reset_password(cls, token: str, password: str):
        User = get_user_model()
        user = User.objects.filter(
            password_reset_token=token,
            password_reset_expires_at__gt=timezone.now(),
        ).first() if token else None
        if user is None:
            raise ValidationError("Invalid or expired reset token.")
        user.set_password(password)
        user.password_reset_token      = ""
        user.password_reset_expires_at = None
        user.login_attempts = 0
        user.locked_until   = None
        user.save()
        return user
