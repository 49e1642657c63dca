"""
federation/services/email_service.py
────────────────────────────────────────────────────────────────
Transactional email: verification, password reset, broadcasts.
Backend comes from settings.EMAIL_BACKEND (console in development).
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, send_mail
from django.utils.html import escape, linebreaks

logger = logging.getLogger(__name__)


def _frontend(path: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/{path.lstrip('/')}"


def send_verification_email(user, token: str) -> None:
    link = _frontend(f"verify-email/{token}")
    send_mail(
        subject="Verify your federation account",
        message=(
            f"Hello {user.display_name},\n\n"
            f"Confirm your email address to activate your account:\n{link}\n\n"
            "The link is valid for 24 hours."
        ),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
    )
    logger.info("Verification email sent to %s", user.email)


def send_password_reset_email(user, token: str) -> None:
    link = _frontend(f"reset-password/{token}")
    send_mail(
        subject="Password reset",
        message=(
            f"Hello {user.display_name},\n\n"
            f"Use this link to choose a new password:\n{link}\n\n"
            "The link is valid for 1 hour. If you did not ask for it, ignore this email."
        ),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
    )
    logger.info("Password reset email sent to %s", user.email)


def send_broadcast_email(message, recipient_email: str, recipient_name: str) -> None:
    """One admin broadcast to one recipient, plain text + HTML."""
    text = f"Hello {recipient_name},\n\n{message.content}"
    html = f"<p>Hello {escape(recipient_name)},</p>{linebreaks(escape(message.content))}"
    if message.action_button_text and message.action_button_url:
        text += f"\n\n{message.action_button_text}: {message.action_button_url}"
        html += (
            f'<p><a href="{escape(message.action_button_url)}">'
            f"{escape(message.action_button_text)}</a></p>"
        )

    email = EmailMultiAlternatives(
        subject=f"[{message.get_priority_display()}] {message.title}"
        if message.priority in ("high", "urgent") else message.title,
        body=text,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[recipient_email],
    )
    email.attach_alternative(html, "text/html")
    email.send(fail_silently=False)
