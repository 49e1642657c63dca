"""
services/reservation_service.py
─────────────────────────────────────────────────────────────────────
Court booking: availability, conflict checks, pricing, cancellation
with refunds, recurring series and court utilization stats.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from ..exceptions import BusinessRuleViolation, ConflictError
from ..models import Court, CourtReservation, Payment
from ..permissions import is_federation_admin
from . import scheduling

logger = logging.getLogger(__name__)

ACTIVE = CourtReservation.ACTIVE_STATUSES


# ────────────────────────────────────────────────────────────────────
#  Data Transfer Objects
# ────────────────────────────────────────────────────────────────────

@dataclass
class Quote:
    hours:           Decimal
    hourly_rate:     Decimal
    total_amount:    Decimal
    member_discount: Decimal
    final_amount:    Decimal


@dataclass
class RecurringResult:
    """Outcome of booking a recurring series."""
    recurrence_group: uuid.UUID
    created:          List[CourtReservation] = field(default_factory=list)
    skipped:          List[Dict]             = field(default_factory=list)   # {"start_time", "reason"}

    @property
    def created_count(self) -> int:
        return len(self.created)


def quote(court: Court, start: datetime, end: datetime, user) -> Quote:
    hours = scheduling.hours_between(start, end)
    total = (court.hourly_rate * hours).quantize(Decimal("0.01"))
    discount = Decimal("0")
    if user.club_id and user.club_id == court.club_id and court.member_discount:
        discount = (total * court.member_discount / 100).quantize(Decimal("0.01"))
    return Quote(hours, court.hourly_rate, total, discount, total - discount)


class ReservationService:

    # ── Queries ──────────────────────────────────────────────────────
    @staticmethod
    def conflicts(court: Court, start: datetime, end: datetime, exclude_id=None):
        qs = CourtReservation.objects.filter(
            court=court, status__in=ACTIVE,
            start_time__lt=end, end_time__gt=start,
        )
        if exclude_id:
            qs = qs.exclude(pk=exclude_id)
        return qs

    @classmethod
    def availability(cls, court: Court, day: date, duration_hours: int = 1) -> Dict:
        tz = timezone.get_current_timezone()
        day_start = datetime.combine(day, datetime.min.time(), tzinfo=tz)
        booked = CourtReservation.objects.filter(
            court=court, status__in=ACTIVE,
            start_time__lt=day_start + timedelta(days=1), end_time__gt=day_start,
        ).values_list("start_time", "end_time")

        slots = []
        if court.is_available:
            for slot in scheduling.available_slots(day, duration_hours, booked, tz, now=timezone.now()):
                if court.is_available_for_booking(slot.start, slot.end):
                    slots.append(slot.as_dict())
        return {
            "court_id":       court.pk,
            "date":           day.isoformat(),
            "duration_hours": duration_hours,
            "hourly_rate":    court.hourly_rate,
            "member_price":   court.member_price,
            "available_slots": slots,
        }

    @classmethod
    def check_conflicts(cls, court: Court, dates: Sequence[date], start_hhmm: str, duration_hours) -> List[Dict]:
        tz = timezone.get_current_timezone()
        try:
            hour, minute = (int(p) for p in start_hhmm.split(":"))
        except (AttributeError, ValueError):
            raise ValidationError({"start_time": ["Expected HH:MM."]})
        length = timedelta(hours=float(duration_hours))

        results = []
        for day in dates:
            start = datetime.combine(day, datetime.min.time(), tzinfo=tz).replace(hour=hour, minute=minute)
            end   = start + length
            clashes = list(cls.conflicts(court, start, end).values("id", "start_time", "end_time", "status"))
            results.append({
                "date":      day.isoformat(),
                "start_time": start.isoformat(),
                "end_time":   end.isoformat(),
                "available":  not clashes and court.is_available_for_booking(start, end),
                "conflicts":  clashes,
            })
        return results

    # ── Booking ──────────────────────────────────────────────────────
    @classmethod
    def _validate_slot(cls, court: Court, start: datetime, end: datetime) -> None:
        if end <= start:
            raise ValidationError({"end_time": ["End time must be after start time."]})
        if start <= timezone.now():
            raise ValidationError({"start_time": ["Reservations must start in the future."]})
        if not court.is_available_for_booking(start, end):
            raise BusinessRuleViolation("Court is not available for booking in that period.")

    @classmethod
    def _build(cls, court: Court, user, start: datetime, end: datetime, **details) -> CourtReservation:
        q = quote(court, start, end, user)
        return CourtReservation(
            court=court,
            club=court.club,
            user=user,
            start_time=start,
            end_time=end,
            reservation_date=timezone.localtime(start).date(),
            duration_hours=q.hours,
            hourly_rate=q.hourly_rate,
            total_amount=q.total_amount,
            member_discount=q.member_discount,
            final_amount=q.final_amount,
            **details,
        )

    @classmethod
    @transaction.atomic
    def book(cls, court: Court, user, start: datetime, end: datetime, **details) -> CourtReservation:
        # lock the court row so concurrent bookings serialize
        court = Court.objects.select_for_update().select_related("club").get(pk=court.pk)
        cls._validate_slot(court, start, end)
        if cls.conflicts(court, start, end).exists():
            raise ConflictError("The court is already booked for part of that period.")

        reservation = cls._build(court, user, start, end, **details)
        if reservation.final_amount == 0:
            reservation.status         = CourtReservation.Status.CONFIRMED
            reservation.payment_status = "paid"
        reservation.save()
        logger.info("Court %s booked by %s: %s → %s", court.pk, user.username, start, end)
        return reservation

    @classmethod
    @transaction.atomic
    def book_recurring(cls, court: Court, user, start: datetime, end: datetime,
                       recurrence: Dict, **details) -> RecurringResult:
        court = Court.objects.select_for_update().select_related("club").get(pk=court.pk)
        cls._validate_slot(court, start, end)

        end_date = recurrence.get("end_date")
        if isinstance(end_date, str):
            end_date = date.fromisoformat(end_date)
        starts = scheduling.recurrence_starts(
            start,
            recurrence.get("pattern", "weekly"),
            interval=recurrence.get("interval", 1),
            days_of_week=recurrence.get("days_of_week") or (),
            end_date=end_date,
            max_occurrences=recurrence.get("max_occurrences", scheduling.DEFAULT_MAX_OCCURRENCES),
        )
        length = end - start
        result = RecurringResult(recurrence_group=uuid.uuid4())

        for occ_start in starts:
            occ_end = occ_start + length
            if not court.is_available_for_booking(occ_start, occ_end):
                result.skipped.append({"start_time": occ_start.isoformat(), "reason": "maintenance"})
                continue
            if cls.conflicts(court, occ_start, occ_end).exists():
                result.skipped.append({"start_time": occ_start.isoformat(), "reason": "conflict"})
                continue
            reservation = cls._build(court, user, occ_start, occ_end,
                                     recurrence_group=result.recurrence_group, **details)
            reservation.save()
            result.created.append(reservation)

        logger.info("Recurring booking on court %s: %d created, %d skipped",
                    court.pk, result.created_count, len(result.skipped))
        return result

    # ── Lifecycle ────────────────────────────────────────────────────
    @staticmethod
    def can_manage(user, reservation: CourtReservation) -> bool:
        return (
            reservation.user_id == user.pk
            or reservation.club.owner_id == user.pk
            or is_federation_admin(user)
        )

    @classmethod
    @transaction.atomic
    def cancel(cls, reservation: CourtReservation, actor, reason: str = "") -> CourtReservation:
        if not cls.can_manage(actor, reservation):
            raise PermissionDenied("You cannot cancel this reservation.")
        if reservation.status in (CourtReservation.Status.CANCELLED, CourtReservation.Status.COMPLETED):
            raise BusinessRuleViolation(f"Reservation is already {reservation.status}.")

        now = timezone.now()
        privileged = is_federation_admin(actor) or reservation.club.owner_id == actor.pk
        if reservation.status == CourtReservation.Status.CONFIRMED and not privileged:
            if not reservation.can_be_cancelled(now):
                raise BusinessRuleViolation("Reservations can only be cancelled at least 24 hours in advance.")

        if reservation.payment_status == "paid":
            reservation.refund_amount = reservation.refund_for_cancellation(now)
        reservation.status              = CourtReservation.Status.CANCELLED
        reservation.cancellation_reason = reason
        reservation.cancelled_at        = now
        reservation.cancelled_by        = actor
        reservation.save()
        logger.info("Reservation %s cancelled by %s (refund %s)",
                    reservation.pk, actor.username, reservation.refund_amount)
        return reservation

    @staticmethod
    def check_in(reservation: CourtReservation, actor) -> CourtReservation:
        if not ReservationService.can_manage(actor, reservation):
            raise PermissionDenied("You cannot check in this reservation.")
        if reservation.status != CourtReservation.Status.CONFIRMED:
            raise BusinessRuleViolation("Only confirmed reservations can be checked in.")
        reservation.checked_in_at = timezone.now()
        reservation.save(update_fields=["checked_in_at", "updated_at"])
        return reservation

    @staticmethod
    def rate(reservation: CourtReservation, actor, rating: int, review: str = "") -> CourtReservation:
        if reservation.user_id != actor.pk:
            raise PermissionDenied("Only the person who booked can rate the reservation.")
        if reservation.status != CourtReservation.Status.COMPLETED:
            raise BusinessRuleViolation("Only completed reservations can be rated.")
        reservation.rating = rating
        reservation.review = review
        reservation.save(update_fields=["rating", "review", "updated_at"])
        return reservation

    # ── Stats ────────────────────────────────────────────────────────
    @staticmethod
    def court_stats(court: Court, days: int = 30) -> Dict:
        since = timezone.now() - timedelta(days=days)
        qs = CourtReservation.objects.filter(court=court, start_time__gte=since)
        booked = qs.filter(status__in=(*ACTIVE, CourtReservation.Status.COMPLETED))
        agg = booked.aggregate(count=Count("id"), hours=Sum("duration_hours"))
        hours = agg["hours"] or Decimal("0")
        revenue = Payment.objects.filter(
            reservation__court=court, reservation__start_time__gte=since,
            status=Payment.Status.COMPLETED,
        ).aggregate(total=Sum("amount"))["total"] or Decimal("0")
        capacity = Decimal(court.daily_open_hours * days)
        by_status = dict(qs.order_by().values_list("status").annotate(n=Count("id")))
        return {
            "period_days":    days,
            "total_bookings": agg["count"],
            "hours_booked":   hours,
            "revenue":        revenue,
            "utilization":    round(float(hours / capacity * 100), 1) if capacity else 0.0,
            "by_status":      by_status,
        }
