"""
federation/views/club_views.py
─────────────────────────────────────────────────────────────────────
Clubs, their courts, and court reservations.
"""
from __future__ import annotations

import logging
from datetime import date

from django.db.models import Case, Count, IntegerField, Q, Sum, Value, When
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import Club, Court, CourtReservation, Payment, UserType
from ..pagination import paginated
from ..permissions import UserTypePermission, is_federation_admin
from ..serializers import (
    BookingSerializer, CancelSerializer, ClubSerializer, ConflictCheckSerializer,
    CourtSerializer, PublicProfileSerializer, RatingSerializer, RecurringBookingSerializer,
    ReservationSerializer, TournamentSerializer,
)
from ..services.reservation_service import ReservationService

logger = logging.getLogger(__name__)


def _can_manage_club(user, club: Club) -> bool:
    return club.owner_id == user.pk or is_federation_admin(user)


def _club_queryset():
    return Club.objects.select_related("owner").annotate(
        n_courts=Count("courts", distinct=True),
        n_members=Count("members", distinct=True),
    )


# ════════════════════════════════════════════════════════════════════
#  Clubs
# ════════════════════════════════════════════════════════════════════

class ClubListView(APIView):
    allowed_user_types = [UserType.CLUB]

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [UserTypePermission()]

    def get(self, request):
        qs = _club_queryset().filter(is_active=True)
        params = request.query_params
        for field in ("state", "city", "club_type"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        if params.get("has_courts") in ("true", "1"):
            qs = qs.filter(has_courts=True)
        q = params.get("search", "").strip()
        if q:
            qs = qs.filter(Q(name__icontains=q) | Q(city__icontains=q))
        return paginated(request, qs.order_by("-is_featured", "name"), ClubSerializer, self)

    def post(self, request):
        serializer = ClubSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        club = serializer.save(owner=request.user)
        if request.user.club_id is None:
            request.user.club = club
            request.user.save(update_fields=["club"])
        logger.info("Club %s created by %s", club.pk, request.user.username)
        return api_response(ClubSerializer(club).data, "Club created", status.HTTP_201_CREATED)


class ClubNearbyView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        state = request.query_params.get("state", "")
        if not state:
            raise ValidationError({"state": ["This parameter is required."]})
        qs = _club_queryset().filter(is_active=True, state=state)
        city = request.query_params.get("city", "")
        if city:
            # same-city clubs first, then the rest of the state
            qs = qs.annotate(
                city_rank=Case(When(city__iexact=city, then=Value(0)), default=Value(1), output_field=IntegerField()),
            ).order_by("city_rank", "name")
        return paginated(request, qs, ClubSerializer, self)


class ClubDetailView(APIView):

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get_object(self, pk, manage=False):
        club = get_object_or_404(_club_queryset(), pk=pk)
        if manage and not _can_manage_club(self.request.user, club):
            raise PermissionDenied("Only the club owner can change this club.")
        return club

    def get(self, request, pk):
        return api_response(ClubSerializer(self.get_object(pk)).data)

    def patch(self, request, pk):
        club = self.get_object(pk, manage=True)
        serializer = ClubSerializer(club, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(serializer.data, "Club updated")

    put = patch

    def delete(self, request, pk):
        club = self.get_object(pk, manage=True)
        club.is_active = False
        club.save(update_fields=["is_active", "updated_at"])
        return api_response(message="Club deactivated")


class ClubMembersView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        club = get_object_or_404(Club, pk=pk)
        qs = club.members.filter(is_active=True)
        return paginated(request, qs, PublicProfileSerializer, self)


class ClubTournamentsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, pk):
        club = get_object_or_404(Club, pk=pk)
        qs = club.tournaments.select_related("organizer")
        if request.query_params.get("status"):
            qs = qs.filter(status=request.query_params["status"])
        return paginated(request, qs, TournamentSerializer, self)


class ClubStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        club = get_object_or_404(Club, pk=pk)
        if not _can_manage_club(request.user, club):
            raise PermissionDenied("Only the club owner can see club statistics.")
        reservations = club.reservations.order_by()
        revenue = Payment.objects.filter(
            reservation__club=club, status=Payment.Status.COMPLETED,
        ).aggregate(total=Sum("amount"))["total"] or 0
        return api_response({
            "members":      club.members.filter(is_active=True).count(),
            "courts":       club.courts.count(),
            "tournaments":  club.tournaments.count(),
            "reservations": dict(reservations.values_list("status").annotate(n=Count("id"))),
            "court_revenue": revenue,
        })


# ════════════════════════════════════════════════════════════════════
#  Courts
# ════════════════════════════════════════════════════════════════════

class ClubCourtsView(APIView):

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, pk):
        club = get_object_or_404(Club, pk=pk)
        serializer = CourtSerializer(club.courts.select_related("club"), many=True)
        return api_response(serializer.data)

    def post(self, request, pk):
        club = get_object_or_404(Club, pk=pk)
        if not _can_manage_club(request.user, club):
            raise PermissionDenied("Only the club owner can add courts.")
        serializer = CourtSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        court = serializer.save(club=club)
        if not club.has_courts:
            club.has_courts = True
            club.save(update_fields=["has_courts", "updated_at"])
        return api_response(CourtSerializer(court).data, "Court created", status.HTTP_201_CREATED)


class CourtDetailView(APIView):

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get_object(self, pk, manage=False):
        court = get_object_or_404(Court.objects.select_related("club"), pk=pk)
        if manage and not _can_manage_club(self.request.user, court.club):
            raise PermissionDenied("Only the club owner can change this court.")
        return court

    def get(self, request, pk):
        return api_response(CourtSerializer(self.get_object(pk)).data)

    def patch(self, request, pk):
        court = self.get_object(pk, manage=True)
        serializer = CourtSerializer(court, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(serializer.data, "Court updated")

    put = patch

    def delete(self, request, pk):
        court = self.get_object(pk, manage=True)
        if court.reservations.filter(status__in=CourtReservation.ACTIVE_STATUSES).exists():
            court.is_available = False
            court.save(update_fields=["is_available"])
            return api_response(message="Court has active reservations; it was disabled instead")
        court.delete()
        return api_response(message="Court deleted")


class CourtAvailabilityView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, pk):
        court = get_object_or_404(Court.objects.select_related("club"), pk=pk)
        try:
            day = date.fromisoformat(request.query_params.get("date", ""))
        except ValueError:
            raise ValidationError({"date": ["Expected YYYY-MM-DD."]})
        try:
            duration = int(request.query_params.get("duration_hours", 1))
        except ValueError:
            raise ValidationError({"duration_hours": ["Must be a whole number of hours."]})
        if not 1 <= duration <= 16:
            raise ValidationError({"duration_hours": ["Must be between 1 and 16."]})
        return api_response(ReservationService.availability(court, day, duration))


class CourtConflictCheckView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        court = get_object_or_404(Court, pk=pk)
        serializer = ConflictCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        results = ReservationService.check_conflicts(court, data["dates"], data["start_time"], data["duration_hours"])
        return api_response({
            "results":         results,
            "available_count": sum(1 for r in results if r["available"]),
        })


class CourtStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        court = get_object_or_404(Court.objects.select_related("club"), pk=pk)
        if not _can_manage_club(request.user, court.club):
            raise PermissionDenied("Only the club owner can see court statistics.")
        try:
            days = max(1, min(int(request.query_params.get("days", 30)), 365))
        except ValueError:
            raise ValidationError({"days": ["Must be a number."]})
        return api_response(ReservationService.court_stats(court, days))


# ════════════════════════════════════════════════════════════════════
#  Reservations
# ════════════════════════════════════════════════════════════════════

class CourtBookView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        court = get_object_or_404(Court, pk=pk)
        serializer = BookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        details = dict(serializer.validated_data)
        start, end = details.pop("start_time"), details.pop("end_time")
        reservation = ReservationService.book(court, request.user, start, end, **details)
        return api_response(ReservationSerializer(reservation).data, "Court booked", status.HTTP_201_CREATED)


class CourtRecurringBookView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        court = get_object_or_404(Court, pk=pk)
        serializer = RecurringBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        details = dict(serializer.validated_data)
        start, end = details.pop("start_time"), details.pop("end_time")
        recurrence = details.pop("recurrence")
        result = ReservationService.book_recurring(court, request.user, start, end, recurrence, **details)
        return api_response(
            {
                "recurrence_group": result.recurrence_group,
                "created_count":    result.created_count,
                "reservations":     ReservationSerializer(result.created, many=True).data,
                "skipped":          result.skipped,
            },
            f"{result.created_count} reservations created",
            status.HTTP_201_CREATED,
        )


class MyReservationsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = CourtReservation.objects.select_related("court", "club", "user").filter(user=request.user)
        if request.query_params.get("status"):
            qs = qs.filter(status=request.query_params["status"])
        if request.query_params.get("upcoming") in ("true", "1"):
            qs = qs.filter(start_time__gte=timezone.now(), status__in=CourtReservation.ACTIVE_STATUSES)
        return paginated(request, qs.order_by("-start_time"), ReservationSerializer, self)


class ClubReservationsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        club = get_object_or_404(Club, pk=pk)
        if not _can_manage_club(request.user, club):
            raise PermissionDenied("Only the club owner can list club reservations.")
        qs = club.reservations.select_related("court", "club", "user")
        params = request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        if params.get("court"):
            qs = qs.filter(court_id=params["court"])
        if params.get("date"):
            qs = qs.filter(reservation_date=params["date"])
        return paginated(request, qs, ReservationSerializer, self)


class ReservationDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        reservation = get_object_or_404(CourtReservation.objects.select_related("court", "club", "user"), pk=pk)
        if not ReservationService.can_manage(request.user, reservation):
            raise PermissionDenied("You cannot view this reservation.")
        return api_response(ReservationSerializer(reservation).data)


class ReservationCancelView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        reservation = get_object_or_404(CourtReservation.objects.select_related("club"), pk=pk)
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reservation = ReservationService.cancel(reservation, request.user, serializer.validated_data.get("reason", ""))
        return api_response(ReservationSerializer(reservation).data, "Reservation cancelled")


class ReservationCheckInView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        reservation = get_object_or_404(CourtReservation.objects.select_related("club"), pk=pk)
        reservation = ReservationService.check_in(reservation, request.user)
        return api_response(ReservationSerializer(reservation).data, "Checked in")


class ReservationRateView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        reservation = get_object_or_404(CourtReservation, pk=pk)
        serializer = RatingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reservation = ReservationService.rate(reservation, request.user, **serializer.validated_data)
        return api_response(ReservationSerializer(reservation).data, "Thanks for your rating")
