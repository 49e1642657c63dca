"""
federation/views/team_views.py
─────────────────────────────────────────────────────────────────────
Team entries for team tournaments, and referee assignment.
"""
from __future__ import annotations

import logging
from datetime import date

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import Match, Tournament, TournamentTeam, User
from ..serializers import (
    CreateTeamSerializer, MatchRefereeSerializer, MatchSerializer, PublicProfileSerializer,
    TeamMemberAddSerializer, TeamMemberSerializer, TeamStandingSerializer, TournamentRefereesSerializer,
    TournamentSerializer, TournamentTeamSerializer, UserSummarySerializer,
)
from ..services.referee_service import RefereeService
from ..services.team_service import TeamService

logger = logging.getLogger(__name__)


def _get_team(pk) -> TournamentTeam:
    return get_object_or_404(TournamentTeam.objects.select_related("tournament", "captain"), pk=pk)


def _team_queryset():
    return TournamentTeam.objects.select_related("captain").prefetch_related("members__user")


# ════════════════════════════════════════════════════════════════════
#  Teams
# ════════════════════════════════════════════════════════════════════

class TournamentTeamsView(APIView):

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, pk):
        tournament = get_object_or_404(Tournament, pk=pk)
        qs = _team_queryset().filter(tournament=tournament)
        if request.query_params.get("status"):
            qs = qs.filter(status=request.query_params["status"])
        return api_response(TournamentTeamSerializer(qs, many=True).data)

    @transaction.atomic
    def post(self, request, pk):
        tournament = get_object_or_404(Tournament, pk=pk)
        serializer = CreateTeamSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        member_ids = data.pop("member_ids")

        team = TeamService.create(tournament, request.user, **data)
        for member_id in member_ids:
            member = get_object_or_404(User, pk=member_id)
            TeamService.add_member(team, request.user, member)
        return api_response(TournamentTeamSerializer(_team_queryset().get(pk=team.pk)).data,
                            "Team registered", status.HTTP_201_CREATED)


class TeamDetailView(APIView):

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, pk):
        return api_response(TournamentTeamSerializer(get_object_or_404(_team_queryset(), pk=pk)).data)

    def patch(self, request, pk):
        serializer = TeamStandingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        team = TeamService.update_standing(_get_team(pk), request.user, **serializer.validated_data)
        return api_response(TournamentTeamSerializer(team).data, "Standing updated")


class TeamMembersView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        serializer = TeamMemberAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = get_object_or_404(User, pk=serializer.validated_data["user_id"])
        member = TeamService.add_member(_get_team(pk), request.user, user, serializer.validated_data["role"])
        return api_response(TeamMemberSerializer(member).data, "Player added", status.HTTP_201_CREATED)


class TeamMemberRemoveView(APIView):
    permission_classes = [IsAuthenticated]

    def delete(self, request, pk, user_id):
        user = get_object_or_404(User, pk=user_id)
        TeamService.remove_member(_get_team(pk), request.user, user)
        return api_response(message="Player removed")


class TeamConfirmPaymentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        team = TeamService.confirm_payment(_get_team(pk), request.user)
        return api_response(TournamentTeamSerializer(team).data, f"Team is {team.status}")


class TeamWithdrawView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        team, promoted = TeamService.withdraw(_get_team(pk), request.user)
        return api_response(
            {
                "team":     TournamentTeamSerializer(team).data,
                "promoted": TournamentTeamSerializer(promoted).data if promoted else None,
            },
            "Team withdrawn",
        )


# ════════════════════════════════════════════════════════════════════
#  Referees
# ════════════════════════════════════════════════════════════════════

class TournamentRefereesView(APIView):

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, pk):
        tournament = get_object_or_404(Tournament.objects.select_related("head_referee"), pk=pk)
        return api_response({
            "head_referee": UserSummarySerializer(tournament.head_referee).data if tournament.head_referee else None,
            "assistant_referees": UserSummarySerializer(tournament.assistant_referees.all(), many=True).data,
            "referee_compensation": tournament.referee_compensation,
        })

    def post(self, request, pk):
        tournament = get_object_or_404(Tournament, pk=pk)
        serializer = TournamentRefereesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        head = None
        if data.get("head_referee_id"):
            head = get_object_or_404(User, pk=data["head_referee_id"])
        assistants = list(User.objects.filter(pk__in=data["assistant_referee_ids"]))
        if len(assistants) != len(data["assistant_referee_ids"]):
            raise ValidationError({"assistant_referee_ids": ["Unknown user."]})

        tournament = RefereeService.assign_tournament(
            tournament, request.user, head, assistants, data.get("referee_compensation"),
        )
        return api_response(TournamentSerializer(tournament).data, "Referees assigned")


class MatchRefereeView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        match = get_object_or_404(Match.objects.select_related("tournament"), pk=pk)
        serializer = MatchRefereeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        referee_id = serializer.validated_data["referee_id"]
        referee = get_object_or_404(User, pk=referee_id) if referee_id else None
        match = RefereeService.assign_match(match, request.user, referee)
        return api_response(MatchSerializer(match).data, "Referee assigned" if referee else "Referee removed")


class RefereeStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id):
        referee = get_object_or_404(User, pk=user_id)
        return api_response(RefereeService.stats(referee, request.user))


class AvailableRefereesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        raw = request.query_params.get("date", "")
        try:
            day = date.fromisoformat(raw)
        except ValueError:
            raise ValidationError({"date": ["Use YYYY-MM-DD."]})
        referees = RefereeService.available(day, request.query_params.get("state", ""))
        return api_response(PublicProfileSerializer(referees, many=True).data)
