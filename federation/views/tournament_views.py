"""
federation/views/tournament_views.py
─────────────────────────────────────────────────────────────────────
Tournaments: CRUD, lifecycle, registrations, matches, final standings.
"""
from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Max, Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from ..exceptions import BusinessRuleViolation, ConflictError, api_response
from ..models import Club, Match, Tournament, TournamentRegistration, User
from ..pagination import paginated
from ..serializers import (
    FinalPositionsSerializer, MatchResultSerializer, MatchSerializer, RegisterForTournamentSerializer,
    RegistrationSerializer, TournamentSerializer,
)
from ..services.ranking_service import RankingService
from ..services.tournament_service import TRANSITIONS, TournamentService

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (Tournament.Status.DRAFT, Tournament.Status.PUBLISHED, Tournament.Status.REGISTRATION_OPEN)


def _get_tournament(pk) -> Tournament:
    return get_object_or_404(Tournament.objects.select_related("organizer", "club"), pk=pk)


def _require_manager(user, tournament: Tournament) -> None:
    if not TournamentService.can_manage(user, tournament):
        raise PermissionDenied("Only the organizer can manage this tournament.")


# ════════════════════════════════════════════════════════════════════
#  Tournaments
# ════════════════════════════════════════════════════════════════════

class TournamentListView(APIView):

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request):
        qs = Tournament.objects.select_related("organizer", "club")
        params = request.query_params
        if not (request.user.is_authenticated and params.get("mine") in ("true", "1")):
            qs = qs.exclude(status=Tournament.Status.DRAFT)
        else:
            qs = qs.filter(organizer=request.user)
        for param, field in (("state", "state"), ("type", "tournament_type"),
                             ("status", "status"), ("category", "category")):
            if params.get(param):
                qs = qs.filter(**{field: params[param]})
        if params.get("skill_level"):
            qs = qs.filter(skill_levels__icontains=params["skill_level"])
        q = params.get("search", "").strip()
        if q:
            qs = qs.filter(Q(name__icontains=q) | Q(city__icontains=q) | Q(venue_name__icontains=q))
        return paginated(request, qs, TournamentSerializer, self)

    def post(self, request):
        club = None
        if request.data.get("club"):
            club = get_object_or_404(Club, pk=request.data["club"])
        organizer_type = TournamentService.check_organizer(request.user, club)

        serializer = TournamentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tournament = serializer.save(organizer=request.user, organizer_type=organizer_type)
        logger.info("Tournament %s created by %s (%s)", tournament.pk, request.user.username, organizer_type)
        return api_response(TournamentSerializer(tournament).data, "Tournament created", status.HTTP_201_CREATED)


class TournamentDetailView(APIView):

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, pk):
        tournament = _get_tournament(pk)
        if tournament.status == Tournament.Status.DRAFT and not (
            request.user.is_authenticated and TournamentService.can_manage(request.user, tournament)
        ):
            raise PermissionDenied("This tournament is not published yet.")
        return api_response(TournamentSerializer(tournament).data)

    def patch(self, request, pk):
        tournament = _get_tournament(pk)
        _require_manager(request.user, tournament)
        if tournament.status not in EDITABLE_STATUSES:
            raise ConflictError(f"A tournament that is {tournament.status} can no longer be edited.")
        serializer = TournamentSerializer(tournament, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(serializer.data, "Tournament updated")

    put = patch

    def delete(self, request, pk):
        tournament = _get_tournament(pk)
        _require_manager(request.user, tournament)
        if tournament.registrations.exclude(status=TournamentRegistration.Status.CANCELLED).exists():
            raise ConflictError("Tournaments with registrations must be cancelled, not deleted.")
        tournament.delete()
        return api_response(message="Tournament deleted")


class TournamentTransitionView(APIView):
    """POST /tournaments/<pk>/<action>/ for every key of TRANSITIONS."""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, action):
        if action not in TRANSITIONS:
            raise ValidationError({"action": [f"Unknown action {action}."]})
        tournament = TournamentService.transition(_get_tournament(pk), action, request.user)
        return api_response(TournamentSerializer(tournament).data, f"Tournament is now {tournament.status}")


# ════════════════════════════════════════════════════════════════════
#  Registrations
# ════════════════════════════════════════════════════════════════════

class TournamentRegisterView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        tournament = _get_tournament(pk)
        serializer = RegisterForTournamentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        partner = None
        if data.get("partner_id"):
            partner = get_object_or_404(User, pk=data["partner_id"], is_active=True)
            if partner.pk == request.user.pk:
                raise ValidationError({"partner_id": ["You cannot partner with yourself."]})

        registration = TournamentService.register(
            tournament, request.user, data["category"], data["skill_level"], partner,
        )
        message = ("Added to the waitlist" if registration.status == TournamentRegistration.Status.WAITLIST
                   else "Registration received")
        return api_response(RegistrationSerializer(registration).data, message, status.HTTP_201_CREATED)


class TournamentRegistrationsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        tournament = _get_tournament(pk)
        _require_manager(request.user, tournament)
        qs = tournament.registrations.select_related("player", "partner", "tournament")
        if request.query_params.get("status"):
            qs = qs.filter(status=request.query_params["status"])
        return paginated(request, qs, RegistrationSerializer, self)


class MyRegistrationsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = TournamentRegistration.objects.select_related("tournament", "player", "partner").filter(
            player=request.user,
        ).order_by("-registered_at")
        return paginated(request, qs, RegistrationSerializer, self)


class RegistrationWithdrawView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        registration = get_object_or_404(TournamentRegistration.objects.select_related("tournament"), pk=pk)
        registration, promoted = TournamentService.withdraw(registration, request.user)
        return api_response(
            {
                "registration": RegistrationSerializer(registration).data,
                "promoted":     RegistrationSerializer(promoted).data if promoted else None,
            },
            "Registration cancelled",
        )


class FinalPositionsView(APIView):
    permission_classes = [IsAuthenticated]

    @transaction.atomic
    def post(self, request, pk):
        tournament = _get_tournament(pk)
        _require_manager(request.user, tournament)
        if tournament.status not in (Tournament.Status.IN_PROGRESS, Tournament.Status.COMPLETED):
            raise BusinessRuleViolation("Final positions can only be set once the tournament has started.")
        serializer = FinalPositionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        positions = serializer.validated_data["positions"]
        regs = {
            str(r.pk): r for r in tournament.registrations.filter(
                pk__in=[k for k in positions if k.isdigit()],
                status=TournamentRegistration.Status.CONFIRMED,
            )
        }
        unknown = sorted(set(positions) - set(regs))
        if unknown:
            raise ValidationError({"positions": [f"Unknown or unconfirmed registrations: {', '.join(unknown)}"]})
        for key, position in positions.items():
            regs[key].final_position = position
            regs[key].save(update_fields=["final_position"])
        return api_response({"updated": len(regs)}, "Final positions saved")


class UpdateRankingsView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        tournament = _get_tournament(pk)
        _require_manager(request.user, tournament)
        result = RankingService.update_tournament(tournament)
        return api_response(result, "Rankings updated")


# ════════════════════════════════════════════════════════════════════
#  Matches
# ════════════════════════════════════════════════════════════════════

class TournamentMatchesView(APIView):

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, pk):
        tournament = _get_tournament(pk)
        qs = tournament.matches.select_related("player1", "player2", "winner", "court")
        if request.query_params.get("round"):
            qs = qs.filter(round_number=request.query_params["round"])
        return api_response(MatchSerializer(qs, many=True).data)

    @transaction.atomic
    def post(self, request, pk):
        tournament = _get_tournament(pk)
        _require_manager(request.user, tournament)
        if tournament.status in (Tournament.Status.COMPLETED, Tournament.Status.CANCELLED):
            raise ConflictError(f"Tournament is {tournament.status}.")

        data = request.data.copy()
        if not data.get("match_number"):
            last = tournament.matches.aggregate(n=Max("match_number"))["n"] or 0
            data["match_number"] = last + 1
        serializer = MatchSerializer(data=data)
        serializer.is_valid(raise_exception=True)
        match = serializer.save(tournament=tournament)
        return api_response(MatchSerializer(match).data, "Match scheduled", status.HTTP_201_CREATED)


class MatchResultView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        match = get_object_or_404(Match.objects.select_related("tournament"), pk=pk)
        serializer = MatchResultSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        match = TournamentService.record_result(match, serializer.validated_data["games"], request.user)
        return api_response(MatchSerializer(match).data, "Result recorded")
