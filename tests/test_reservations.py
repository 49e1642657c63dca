"""
tests/test_reservations.py
─────────────────────────────────────────────────────────────────────
Court booking through the API: pricing, conflicts, maintenance,
cancellation window and recurring series.
"""
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from federation.models import CourtReservation
from federation.services.reservation_service import ReservationService

pytestmark = pytest.mark.django_db


def book_url(court):
    return f"/api/v1/clubs/courts/{court.pk}/book/"


def cancel_url(reservation):
    return f"/api/v1/clubs/reservations/{reservation.pk}/cancel/"


# ════════════════════════════════════════════════════════════════════
#  Booking
# ════════════════════════════════════════════════════════════════════

class TestBooking:

    def test_book_a_court(self, auth, player, court, at_hour):
        response = auth(player).post(book_url(court), {
            "start_time": at_hour(3, 10).isoformat(),
            "end_time":   at_hour(3, 12).isoformat(),
            "match_type": "doubles",
        }, format="json")

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert Decimal(data["duration_hours"]) == Decimal("2.00")
        assert Decimal(data["final_amount"]) == Decimal("400.00")

    def test_club_members_get_the_discount(self, make_user, court, at_hour):
        court.member_discount = Decimal("25")
        court.save()
        member = make_user(club=court.club)
        reservation = ReservationService.book(court, member, at_hour(3, 10), at_hour(3, 11))
        assert reservation.total_amount == Decimal("200.00")
        assert reservation.member_discount == Decimal("50.00")
        assert reservation.final_amount == Decimal("150.00")

    def test_free_court_is_confirmed_at_once(self, player, court, at_hour):
        court.hourly_rate = Decimal("0")
        court.save()
        reservation = ReservationService.book(court, player, at_hour(3, 10), at_hour(3, 11))
        assert reservation.status == CourtReservation.Status.CONFIRMED
        assert reservation.payment_status == "paid"

    def test_overlapping_booking_is_a_conflict(self, auth, player, other_player, court, at_hour):
        ReservationService.book(court, player, at_hour(3, 10), at_hour(3, 12))
        response = auth(other_player).post(book_url(court), {
            "start_time": at_hour(3, 11).isoformat(),
            "end_time":   at_hour(3, 13).isoformat(),
        }, format="json")
        assert response.status_code == 409

    def test_back_to_back_bookings_are_fine(self, player, other_player, court, at_hour):
        ReservationService.book(court, player, at_hour(3, 10), at_hour(3, 12))
        second = ReservationService.book(court, other_player, at_hour(3, 12), at_hour(3, 13))
        assert second.pk is not None

    def test_cancelled_bookings_free_the_slot(self, player, other_player, court, at_hour):
        first = ReservationService.book(court, player, at_hour(3, 10), at_hour(3, 12))
        ReservationService.cancel(first, player)
        again = ReservationService.book(court, other_player, at_hour(3, 10), at_hour(3, 12))
        assert again.status == CourtReservation.Status.PENDING

    def test_past_start_is_rejected(self, auth, player, court):
        start = timezone.now() - timedelta(hours=2)
        response = auth(player).post(book_url(court), {
            "start_time": start.isoformat(),
            "end_time":   (start + timedelta(hours=1)).isoformat(),
        }, format="json")
        assert response.status_code == 400

    def test_end_before_start_is_rejected(self, auth, player, court, at_hour):
        response = auth(player).post(book_url(court), {
            "start_time": at_hour(3, 12).isoformat(),
            "end_time":   at_hour(3, 10).isoformat(),
        }, format="json")
        assert response.status_code == 400

    def test_court_under_maintenance(self, auth, player, court, at_hour):
        court.maintenance_start = at_hour(3, 0)
        court.maintenance_end   = at_hour(4, 0)
        court.save()
        response = auth(player).post(book_url(court), {
            "start_time": at_hour(3, 10).isoformat(),
            "end_time":   at_hour(3, 11).isoformat(),
        }, format="json")
        assert response.status_code == 400

    def test_login_required(self, api_client, court, at_hour):
        response = api_client.post(book_url(court), {
            "start_time": at_hour(3, 10).isoformat(),
            "end_time":   at_hour(3, 11).isoformat(),
        }, format="json")
        assert response.status_code == 401


class TestAvailability:

    def test_booked_hours_are_not_offered(self, api_client, player, court, at_hour):
        ReservationService.book(court, player, at_hour(3, 10), at_hour(3, 12))
        day = at_hour(3, 0).date().isoformat()
        response = api_client.get(f"/api/v1/clubs/courts/{court.pk}/availability/", {"date": day})
        assert response.status_code == 200
        slots = response.json()["data"]["available_slots"]
        assert len(slots) == 14
        assert "10:00" not in [s["time"] for s in slots]

    def test_bad_date(self, api_client, court):
        response = api_client.get(f"/api/v1/clubs/courts/{court.pk}/availability/", {"date": "tomorrow"})
        assert response.status_code == 400

    def test_conflict_check(self, auth, player, court, at_hour):
        ReservationService.book(court, player, at_hour(3, 10), at_hour(3, 12))
        days = [at_hour(3, 0).date().isoformat(), at_hour(4, 0).date().isoformat()]
        response = auth(player).post(f"/api/v1/clubs/courts/{court.pk}/check-conflicts/", {
            "dates": days, "start_time": "11:00", "duration_hours": "1.0",
        }, format="json")
        assert response.status_code == 200
        data = response.json()["data"]
        assert [r["available"] for r in data["results"]] == [False, True]
        assert data["available_count"] == 1


# ════════════════════════════════════════════════════════════════════
#  Cancellation
# ════════════════════════════════════════════════════════════════════

class TestCancellation:

    def confirmed(self, court, user, start, end, paid=True):
        reservation = ReservationService.book(court, user, start, end)
        reservation.status = CourtReservation.Status.CONFIRMED
        reservation.payment_status = "paid" if paid else "pending"
        reservation.save()
        return reservation

    def test_full_refund_with_two_days_notice(self, auth, player, court, at_hour):
        reservation = self.confirmed(court, player, at_hour(3, 10), at_hour(3, 11))
        response = auth(player).post(cancel_url(reservation), {"reason": "injury"}, format="json")
        assert response.status_code == 200
        reservation.refresh_from_db()
        assert reservation.status == CourtReservation.Status.CANCELLED
        assert reservation.refund_amount == Decimal("200.00")
        assert reservation.cancelled_by == player

    def test_half_refund_inside_two_days(self, player, court):
        start = timezone.now() + timedelta(hours=30)
        reservation = self.confirmed(court, player, start, start + timedelta(hours=1))
        ReservationService.cancel(reservation, player)
        assert reservation.refund_amount == Decimal("100.00")

    def test_confirmed_booking_inside_24h_cannot_be_cancelled(self, auth, player, court):
        start = timezone.now() + timedelta(hours=5)
        reservation = self.confirmed(court, player, start, start + timedelta(hours=1))
        response = auth(player).post(cancel_url(reservation), format="json")
        assert response.status_code == 400

    def test_club_owner_can_cancel_late(self, auth, player, club_owner, court):
        start = timezone.now() + timedelta(hours=5)
        reservation = self.confirmed(court, player, start, start + timedelta(hours=1))
        response = auth(club_owner).post(cancel_url(reservation), format="json")
        assert response.status_code == 200
        reservation.refresh_from_db()
        assert reservation.refund_amount == Decimal("0.00")

    def test_unpaid_pending_booking_cancels_without_refund(self, player, court):
        start = timezone.now() + timedelta(hours=5)
        reservation = ReservationService.book(court, player, start, start + timedelta(hours=1))
        ReservationService.cancel(reservation, player)
        assert reservation.status == CourtReservation.Status.CANCELLED
        assert reservation.refund_amount == Decimal("0")

    def test_strangers_cannot_cancel(self, auth, player, other_player, court, at_hour):
        reservation = ReservationService.book(court, player, at_hour(3, 10), at_hour(3, 11))
        assert auth(other_player).post(cancel_url(reservation), format="json").status_code == 403

    def test_cannot_cancel_twice(self, auth, player, court, at_hour):
        reservation = ReservationService.book(court, player, at_hour(3, 10), at_hour(3, 11))
        client = auth(player)
        assert client.post(cancel_url(reservation), format="json").status_code == 200
        assert client.post(cancel_url(reservation), format="json").status_code == 400


# ════════════════════════════════════════════════════════════════════
#  Recurring series
# ════════════════════════════════════════════════════════════════════

class TestRecurring:

    def test_weekly_series_skips_conflicts(self, auth, player, other_player, court, at_hour):
        ReservationService.book(court, other_player, at_hour(10, 18), at_hour(10, 19))

        response = auth(player).post(f"/api/v1/clubs/courts/{court.pk}/book-recurring/", {
            "start_time": at_hour(3, 18).isoformat(),
            "end_time":   at_hour(3, 19).isoformat(),
            "recurrence": {"pattern": "weekly", "max_occurrences": 3},
        }, format="json")

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["created_count"] == 2
        assert [s["reason"] for s in data["skipped"]] == ["conflict"]

        group = CourtReservation.objects.filter(user=player).values_list("recurrence_group", flat=True)
        assert len(set(group)) == 1


# ════════════════════════════════════════════════════════════════════
#  Check-in & rating
# ════════════════════════════════════════════════════════════════════

def action_url(reservation, action):
    return f"/api/v1/clubs/reservations/{reservation.pk}/{action}/"


class TestCheckInAndRating:

    def booked(self, court, player, at_hour, status):
        reservation = ReservationService.book(court, player, at_hour(3, 10), at_hour(3, 11))
        CourtReservation.objects.filter(pk=reservation.pk).update(status=status)
        reservation.refresh_from_db()
        return reservation

    def test_club_owner_checks_in_a_confirmed_booking(self, auth, player, club_owner, court, at_hour):
        reservation = self.booked(court, player, at_hour, CourtReservation.Status.CONFIRMED)
        response = auth(club_owner).post(action_url(reservation, "check-in"))
        assert response.status_code == 200
        reservation.refresh_from_db()
        assert reservation.checked_in_at is not None

    def test_pending_booking_cannot_check_in(self, auth, player, court, at_hour):
        reservation = self.booked(court, player, at_hour, CourtReservation.Status.PENDING)
        assert auth(player).post(action_url(reservation, "check-in")).status_code == 400

    def test_strangers_cannot_check_in(self, auth, player, other_player, court, at_hour):
        reservation = self.booked(court, player, at_hour, CourtReservation.Status.CONFIRMED)
        assert auth(other_player).post(action_url(reservation, "check-in")).status_code == 403

    def test_rate_a_completed_booking(self, auth, player, court, at_hour):
        reservation = self.booked(court, player, at_hour, CourtReservation.Status.COMPLETED)
        response = auth(player).post(action_url(reservation, "rate"),
                                     {"rating": 5, "review": "Great lights"}, format="json")
        assert response.status_code == 200
        reservation.refresh_from_db()
        assert (reservation.rating, reservation.review) == (5, "Great lights")

    def test_only_completed_bookings_are_rated(self, auth, player, court, at_hour):
        reservation = self.booked(court, player, at_hour, CourtReservation.Status.CONFIRMED)
        assert auth(player).post(action_url(reservation, "rate"), {"rating": 4}, format="json").status_code == 400

    def test_rating_is_one_to_five(self, auth, player, court, at_hour):
        reservation = self.booked(court, player, at_hour, CourtReservation.Status.COMPLETED)
        assert auth(player).post(action_url(reservation, "rate"), {"rating": 6}, format="json").status_code == 400

    def test_club_owner_cannot_rate_for_the_player(self, auth, player, club_owner, court, at_hour):
        reservation = self.booked(court, player, at_hour, CourtReservation.Status.COMPLETED)
        assert auth(club_owner).post(action_url(reservation, "rate"), {"rating": 1}, format="json").status_code == 403
