"""
services/credential_service.py
─────────────────────────────────────────────────────────────────────
Digital player credentials: numbering, HMAC signature, signed QR
token (JWT), QR image and public verification.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import string
from datetime import datetime, timedelta
from io import BytesIO
from typing import Dict, Optional

import jwt
import qrcode
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from ..constants import CREDENTIAL_TOKEN_TTL
from ..exceptions import BusinessRuleViolation, ConflictError
from ..models import DigitalCredential, Ranking, UserType

logger = logging.getLogger(__name__)

TOKEN_ISSUER   = "pickleball-federation.mx"
TOKEN_AUDIENCE = "credential-verifier"
CODE_ALPHABET  = string.ascii_uppercase + string.digits
CODE_LENGTH    = 8
LOG_LIMIT      = 10
MAX_NUMBER_ATTEMPTS = 20


# ────────────────────────────────────────────────────────────────────
#  Pure helpers
# ────────────────────────────────────────────────────────────────────

def generate_credential_number(year: int) -> str:
    return f"PB-{year}-{secrets.randbelow(10000):04d}"


def generate_verification_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def sign(credential_number: str, verification_code: str, issued: datetime, secret: str) -> str:
    payload = f"{credential_number}|{verification_code}|{issued.isoformat()}"
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def issue_qr_token(credential, secret: str, now: Optional[datetime] = None) -> str:
    now = now or timezone.now()
    claims = {
        "credential_id":     str(credential.pk),
        "user_id":           str(credential.user_id),
        "credential_number": credential.credential_number,
        "verification_code": credential.verification_code,
        "iss": TOKEN_ISSUER,
        "aud": TOKEN_AUDIENCE,
        "iat": now,
        "exp": now + CREDENTIAL_TOKEN_TTL,
    }
    return jwt.encode(claims, secret, algorithm="HS256")


def decode_qr_token(token: str, secret: str) -> Dict:
    """Raises jwt.InvalidTokenError on any signature / claim problem."""
    return jwt.decode(
        token, secret, algorithms=["HS256"],
        audience=TOKEN_AUDIENCE, issuer=TOKEN_ISSUER,
    )


def qr_payload(verification_code: str, token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/verify-credential/{verification_code}?token={token}"


def qr_data_url(data: str) -> str:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


# ────────────────────────────────────────────────────────────────────
#  Credential Service
# ────────────────────────────────────────────────────────────────────

class CredentialService:

    @staticmethod
    def _secret() -> str:
        return settings.CREDENTIAL_JWT_SECRET

    @classmethod
    def _attach_qr(cls, credential: DigitalCredential) -> None:
        credential.qr_jwt_token = issue_qr_token(credential, cls._secret())
        credential.qr_code_data = qr_payload(credential.verification_code, credential.qr_jwt_token)
        credential.qr_code_url  = qr_data_url(credential.qr_code_data)

    @staticmethod
    def _ranking_position(user) -> Optional[int]:
        best = (
            Ranking.objects.filter(user=user, is_current=True, state="")
            .order_by("position").values_list("position", flat=True).first()
        )
        return best

    @classmethod
    def create(cls, user) -> DigitalCredential:
        if user.user_type != UserType.PLAYER:
            raise PermissionDenied("Only players can hold a digital credential.")
        if DigitalCredential.objects.filter(user=user).exists():
            raise ConflictError("This player already has a digital credential.")

        now = timezone.now()
        for _ in range(MAX_NUMBER_ATTEMPTS):
            credential = DigitalCredential(
                user=user,
                credential_number=generate_credential_number(now.year),
                verification_code=generate_verification_code(),
                player_name=user.display_name,
                nrtp_level=user.skill_level,
                state_affiliation=user.state,
                ranking_position=cls._ranking_position(user),
                club_status=(DigitalCredential.ClubStatus.CLUB_MEMBER if user.club_id
                             else DigitalCredential.ClubStatus.INDEPENDENT),
                club_name=user.club.name if user.club_id else "",
                issued_date=now,
                expiry_date=now + timedelta(days=365),
            )
            credential.digital_signature = sign(
                credential.credential_number, credential.verification_code,
                credential.issued_date, cls._secret(),
            )
            cls._attach_qr(credential)
            try:
                with transaction.atomic():
                    credential.save(force_insert=True)
            except IntegrityError:
                if DigitalCredential.objects.filter(user=user).exists():
                    raise ConflictError("This player already has a digital credential.")
                continue   # number / code collision → draw again
            logger.info("Credential %s issued to %s", credential.credential_number, user.username)
            return credential
        raise BusinessRuleViolation("Could not allocate a unique credential number, try again.")

    @classmethod
    def regenerate_qr(cls, credential: DigitalCredential) -> DigitalCredential:
        cls._attach_qr(credential)
        credential.save(update_fields=["qr_jwt_token", "qr_code_data", "qr_code_url", "updated_at"])
        logger.info("QR regenerated for credential %s", credential.credential_number)
        return credential

    @classmethod
    def verify(cls, code: str, token: Optional[str] = None, method: str = "qr_scan",
               ip_address: str = "") -> Dict:
        credential = (
            DigitalCredential.objects.select_related("user")
            .filter(verification_code=(code or "").upper()).first()
        )
        if credential is None:
            raise NotFound("Credential not found.")

        now = timezone.now()
        if not credential.is_valid(now) or not credential.user.is_active:
            raise PermissionDenied("Credential is not active.")

        security_level = "standard"
        if token:
            try:
                claims = decode_qr_token(token, cls._secret())
                if claims.get("verification_code") == credential.verification_code:
                    security_level = "high"
                else:
                    logger.warning("QR token does not belong to credential %s", credential.credential_number)
            except jwt.InvalidTokenError as exc:
                logger.warning("Invalid QR token for credential %s: %s", credential.credential_number, exc)

        entry = {"method": method, "at": now.isoformat(), "security_level": security_level}
        if ip_address:
            entry["ip"] = ip_address
        credential.verification_log   = (list(credential.verification_log or []) + [entry])[-LOG_LIMIT:]
        credential.verification_count = F("verification_count") + 1
        credential.last_verified      = now
        credential.save(update_fields=["verification_log", "verification_count", "last_verified"])
        credential.refresh_from_db(fields=["verification_count"])

        return {
            "credential_number":  credential.credential_number,
            "player_name":        credential.player_name,
            "nrtp_level":         credential.nrtp_level,
            "state_affiliation":  credential.state_affiliation,
            "nationality":        credential.nationality,
            "federation_name":    credential.federation_name,
            "affiliation_status": credential.affiliation_status,
            "club_status":        credential.club_status,
            "club_name":          credential.club_name,
            "ranking_position":   credential.ranking_position,
            "expiry_date":        credential.expiry_date,
            "verification_count": credential.verification_count,
            "security_level":     security_level,
            "verified_at":        now,
        }

    @classmethod
    def signature_is_valid(cls, credential: DigitalCredential) -> bool:
        expected = sign(credential.credential_number, credential.verification_code,
                        credential.issued_date, cls._secret())
        return hmac.compare_digest(expected, credential.digital_signature)
