"""
services/payment_service.py
─────────────────────────────────────────────────────────────────────
Payment gateway client (Stripe-style REST API over requests) and the
payment lifecycle: charge, refund, and what a completed payment unlocks.

Flow:
  1. create   → Payment(status=pending)
  2. process  → gateway charge → completed | failed
  3. complete → registration / reservation / membership updated
  4. refund   → gateway refund → refunded
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Optional

import requests
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from ..constants import MEMBERSHIP_FEES
from ..exceptions import BusinessRuleViolation, PaymentFailed
from ..models import Club, CourtReservation, Payment, PaymentLog, PaymentState, User

logger = logging.getLogger(__name__)

MONTHLY_PERIODS = ("monthly",)

# fee plan → (membership level granted, billing period)
MEMBERSHIP_GRANTS = {
    "monthly": (User.Membership.BASIC,   "monthly"),
    "annual":  (User.Membership.PREMIUM, "annual"),
    "basic":   (User.Membership.BASIC,   "annual"),
    "premium": (User.Membership.PREMIUM, "annual"),
}

# payment types whose amount the server prices
PRICED_TYPES = (
    Payment.PaymentType.TOURNAMENT_ENTRY,
    Payment.PaymentType.COURT_RENTAL,
    Payment.PaymentType.MEMBERSHIP,
)


class GatewayError(Exception):
    def __init__(self, message: str, raw: Optional[Dict] = None):
        super().__init__(message)
        self.raw = raw or {}


@dataclass
class GatewayResult:
    reference: str
    charge_id: str = ""
    status:    str = "succeeded"
    raw:       Dict = field(default_factory=dict)


# ────────────────────────────────────────────────────────────────────
#  Gateway client
# ────────────────────────────────────────────────────────────────────
class PaymentGateway:
    """
    Minimal Stripe-compatible client.

    In sandbox mode no HTTP call is made and a synthetic successful
    result is returned (development, tests, demo environments).
    """

    def __init__(self, base_url: str, secret_key: str, sandbox: bool = True, timeout: int = 15):
        self.base_url   = base_url.rstrip("/")
        self.secret_key = secret_key
        self.sandbox    = sandbox or not secret_key
        self.timeout    = timeout

    @classmethod
    def from_settings(cls) -> "PaymentGateway":
        return cls(
            settings.PAYMENT_GATEWAY_URL,
            settings.PAYMENT_GATEWAY_SECRET_KEY,
            settings.PAYMENT_GATEWAY_SANDBOX,
        )

    @staticmethod
    def to_minor_units(amount: Decimal) -> int:
        return int((Decimal(amount) * 100).quantize(Decimal("1")))

    def _post(self, path: str, data: Dict) -> Dict:
        try:
            response = requests.post(
                f"{self.base_url}/{path}",
                data=data,
                auth=(self.secret_key, ""),
                timeout=self.timeout,
            )
            body = response.json()
        except requests.RequestException as exc:
            raise GatewayError(f"Gateway unreachable: {exc}") from exc
        except ValueError as exc:
            raise GatewayError("Gateway returned an invalid response") from exc

        if response.status_code >= 400 or "error" in body:
            message = body.get("error", {}).get("message", f"HTTP {response.status_code}")
            raise GatewayError(message, raw=body)
        return body

    def charge(self, amount: Decimal, currency: str, payment_method: str,
               description: str = "", metadata: Optional[Dict] = None) -> GatewayResult:
        if self.sandbox:
            token = uuid.uuid4().hex[:24]
            return GatewayResult(f"pi_sandbox_{token}", f"ch_sandbox_{token}",
                                 raw={"sandbox": True, "amount": str(amount)})
        data = {
            "amount":         self.to_minor_units(amount),
            "currency":       currency.lower(),
            "payment_method": payment_method,
            "confirm":        "true",
            "description":    description,
        }
        for key, value in (metadata or {}).items():
            data[f"metadata[{key}]"] = str(value)
        body = self._post("payment_intents", data)
        if body.get("status") != "succeeded":
            raise GatewayError(f"Payment status is {body.get('status')}", raw=body)
        return GatewayResult(body["id"], body.get("latest_charge") or "", body["status"], body)

    def refund(self, reference: str, amount: Decimal, reason: str = "") -> GatewayResult:
        if self.sandbox:
            return GatewayResult(f"re_sandbox_{uuid.uuid4().hex[:24]}", raw={"sandbox": True})
        data = {"payment_intent": reference, "amount": self.to_minor_units(amount)}
        if reason:
            data["metadata[reason]"] = reason
        body = self._post("refunds", data)
        return GatewayResult(body["id"], status=body.get("status", ""), raw=body)


# ────────────────────────────────────────────────────────────────────
#  Pure helpers
# ────────────────────────────────────────────────────────────────────
def membership_fee(user_type: str, plan: str) -> Optional[Decimal]:
    return MEMBERSHIP_FEES.get(user_type, {}).get(plan)


def extended_expiry(current, period: str, now):
    start = current if current and current > now else now
    return start + (timedelta(days=30) if period in MONTHLY_PERIODS else timedelta(days=365))


# ────────────────────────────────────────────────────────────────────
#  Payment Service
# ────────────────────────────────────────────────────────────────────
class PaymentService:

    gateway_factory = PaymentGateway.from_settings

    @classmethod
    def _log(cls, payment: Payment, action: str, ok: bool, amount, reference: str, raw: Dict) -> None:
        PaymentLog.objects.create(
            payment=payment,
            action=action,
            result=PaymentLog.Result.SUCCESS if ok else PaymentLog.Result.FAILED,
            amount=amount,
            reference=reference,
            raw_response=raw,
        )

    @classmethod
    def amount_due(cls, user, payment_type: str, registration=None, reservation=None,
                   metadata: Optional[Dict] = None) -> Decimal:
        """
        What the server charges for a tournament entry, a court rental or a
        membership. The client never sets these amounts.
        """
        if payment_type == Payment.PaymentType.TOURNAMENT_ENTRY:
            if registration is None:
                raise BusinessRuleViolation("A tournament entry payment needs a registration.")
            if registration.payment_status == PaymentState.PAID or registration.entry_fee <= 0:
                raise BusinessRuleViolation("Nothing is owed for this registration.")
            return registration.entry_fee

        if payment_type == Payment.PaymentType.COURT_RENTAL:
            if reservation is None:
                raise BusinessRuleViolation("A court rental payment needs a reservation.")
            if reservation.status == CourtReservation.Status.CANCELLED:
                raise BusinessRuleViolation("The reservation is cancelled.")
            if reservation.payment_status == PaymentState.PAID or reservation.final_amount <= 0:
                raise BusinessRuleViolation("Nothing is owed for this reservation.")
            return reservation.final_amount

        if payment_type == Payment.PaymentType.MEMBERSHIP:
            meta = metadata or {}
            fee  = membership_fee(user.user_type, meta.get("plan") or "")
            if fee is None:
                plans = ", ".join(MEMBERSHIP_FEES.get(user.user_type, {})) or "none"
                raise BusinessRuleViolation(f"Unknown membership plan. Available plans: {plans}.")
            if meta.get("club_id") is not None:
                cls._owned_club(user, meta["club_id"])
            return fee

        raise BusinessRuleViolation(f"{payment_type} payments are not priced by the federation.")

    @staticmethod
    def _owned_club(user, club_id) -> Club:
        try:
            club_id = int(club_id)
        except (TypeError, ValueError):
            raise BusinessRuleViolation("club_id must be a club number.")
        club = Club.objects.filter(pk=club_id, owner=user).first()
        if club is None:
            raise BusinessRuleViolation("You can only pay the membership of a club you own.")
        return club

    @classmethod
    def _mark_failed(cls, payment: Payment, payment_method: str, raw: Dict) -> None:
        payment.status         = Payment.Status.FAILED
        payment.payment_method = payment_method
        payment.save(update_fields=["status", "payment_method", "updated_at"])
        cls._log(payment, PaymentLog.Action.CHARGE, False, payment.amount, "", raw)

    @classmethod
    def process(cls, payment: Payment, actor, payment_method: str = "card") -> Payment:
        if payment.user_id != actor.pk:
            raise PermissionDenied("You can only pay for your own payments.")

        with transaction.atomic():
            locked = Payment.objects.select_for_update().select_related(
                "user", "registration", "reservation").get(pk=payment.pk)
            if locked.status != Payment.Status.PENDING:
                raise BusinessRuleViolation("Payment is already processed.")
            if locked.payment_type in PRICED_TYPES:
                due = cls.amount_due(locked.user, locked.payment_type, locked.registration,
                                     locked.reservation, locked.metadata)
                if locked.amount < due:
                    raise BusinessRuleViolation(f"Payment amount {locked.amount} is below the {due} owed.")
            locked.status = Payment.Status.PROCESSING
            locked.save(update_fields=["status", "updated_at"])

        gateway = cls.gateway_factory()
        try:
            result = gateway.charge(
                payment.amount, payment.currency, payment_method,
                description=payment.description or payment.get_payment_type_display(),
                metadata={"payment_id": payment.pk, "user_id": payment.user_id,
                          "payment_type": payment.payment_type},
            )
        except GatewayError as exc:
            logger.error("Payment %s failed: %s", payment.pk, exc)
            cls._mark_failed(payment, payment_method, exc.raw)
            raise PaymentFailed(str(exc))
        except Exception as exc:
            logger.exception("Payment %s: unexpected error while charging", payment.pk)
            cls._mark_failed(payment, payment_method, {"error": repr(exc)})
            raise PaymentFailed("The payment could not be processed.") from exc

        with transaction.atomic():
            payment.status             = Payment.Status.COMPLETED
            payment.payment_method     = payment_method
            payment.gateway_payment_id = result.reference
            payment.gateway_charge_id  = result.charge_id
            payment.processed_at       = timezone.now()
            payment.save()
            cls._log(payment, PaymentLog.Action.CHARGE, True, payment.amount, result.reference, result.raw)
            cls.apply_completion(payment)
        logger.info("Payment %s completed (%s %s)", payment.pk, payment.amount, payment.currency)
        return payment

    @classmethod
    def apply_completion(cls, payment: Payment) -> None:
        from .tournament_service import TournamentService

        if payment.registration_id:
            TournamentService.confirm_paid(payment.registration)

        if payment.reservation_id:
            reservation = payment.reservation
            reservation.payment_status = "paid"
            if reservation.status == CourtReservation.Status.PENDING:
                reservation.status = CourtReservation.Status.CONFIRMED
            reservation.save(update_fields=["payment_status", "status", "updated_at"])

        if payment.payment_type == Payment.PaymentType.MEMBERSHIP:
            cls._apply_membership(payment)

    @classmethod
    def _apply_membership(cls, payment: Payment) -> None:
        meta          = payment.metadata or {}
        plan          = meta.get("plan", "")
        level, period = MEMBERSHIP_GRANTS.get(plan, (User.Membership.BASIC, "annual"))
        now           = timezone.now()

        if meta.get("club_id") is not None:
            club = cls._owned_club(payment.user, meta["club_id"])
            club.membership_status     = Club.MembershipStatus.ACTIVE
            if plan in Club.Plan.values:
                club.subscription_plan = plan
            club.membership_expires_at = extended_expiry(club.membership_expires_at, period, now)
            club.save()
            return

        user = payment.user
        # elite is only granted by an administrator
        if user.membership_status != User.Membership.ELITE:
            user.membership_status = level
        user.membership_expires_at = extended_expiry(user.membership_expires_at, period, now)
        user.save(update_fields=["membership_status", "membership_expires_at"])

    @classmethod
    def refund(cls, payment: Payment, amount: Optional[Decimal] = None, reason: str = "") -> Payment:
        if not payment.can_refund():
            raise BusinessRuleViolation("Payment cannot be refunded.")
        amount = Decimal(amount) if amount is not None else payment.amount
        if amount <= 0 or amount > payment.amount:
            raise BusinessRuleViolation("Refund amount must be positive and not exceed the payment.")

        try:
            result = cls.gateway_factory().refund(payment.gateway_payment_id, amount, reason)
        except GatewayError as exc:
            cls._log(payment, PaymentLog.Action.REFUND, False, amount, "", exc.raw)
            raise PaymentFailed(f"Refund failed: {exc}")

        with transaction.atomic():
            payment.status        = Payment.Status.REFUNDED
            payment.refund_amount = amount
            payment.refund_reason = reason
            payment.refunded_at   = timezone.now()
            payment.save()
            cls._log(payment, PaymentLog.Action.REFUND, True, amount, result.reference, result.raw)

            if payment.registration_id:
                payment.registration.payment_status = "refunded"
                payment.registration.save(update_fields=["payment_status"])
            if payment.reservation_id:
                payment.reservation.payment_status = "refunded"
                payment.reservation.save(update_fields=["payment_status", "updated_at"])
        logger.info("Payment %s refunded: %s", payment.pk, amount)
        return payment
