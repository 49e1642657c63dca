"""
services/team_service.py
─────────────────────────────────────────────────────────────────────
Team entries for team tournaments: registration with waitlist, roster
changes, offline fee confirmation and withdrawal.
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from django.db import IntegrityError, transaction
from django.db.models import Max
from rest_framework.exceptions import PermissionDenied, ValidationError

from ..exceptions import BusinessRuleViolation, ConflictError
from ..models import PaymentState, Tournament, TournamentTeam, TournamentTeamMember, UserType
from .tournament_service import TournamentService

logger = logging.getLogger(__name__)

TeamStatus = TournamentTeam.Status
Role = TournamentTeamMember.Role
ACTIVE_TEAM_STATUSES = (TeamStatus.PENDING, TeamStatus.CONFIRMED, TeamStatus.WAITLIST)


def _confirmed_teams(tournament: Tournament) -> int:
    return tournament.teams.filter(status=TeamStatus.CONFIRMED).count()


class TeamService:

    @staticmethod
    def can_manage(user, team: TournamentTeam) -> bool:
        return team.captain_id == user.pk or TournamentService.can_manage(user, team.tournament)

    @staticmethod
    def _ensure_free_agent(tournament: Tournament, user) -> None:
        if user.user_type != UserType.PLAYER or not user.is_active:
            raise BusinessRuleViolation(f"{user.display_name} cannot play in tournaments.")
        if TournamentTeamMember.objects.filter(
            team__tournament=tournament, team__status__in=ACTIVE_TEAM_STATUSES, user=user,
        ).exists():
            raise ConflictError(f"{user.display_name} is already on a team in this tournament.")

    @classmethod
    @transaction.atomic
    def create(cls, tournament: Tournament, captain, team_name: str, skill_level: str,
               category: str = "doubles", max_players: int = 4) -> TournamentTeam:
        tournament = Tournament.objects.select_for_update().get(pk=tournament.pk)
        if tournament.category != Tournament.Category.TEAM:
            raise BusinessRuleViolation("This tournament does not take team entries.")
        if not tournament.is_registration_open():
            raise BusinessRuleViolation("Registration for this tournament is closed.")
        if tournament.skill_levels and skill_level not in tournament.skill_levels:
            raise ValidationError({"skill_level": [f"Allowed levels: {', '.join(tournament.skill_levels)}"]})
        cls._ensure_free_agent(tournament, captain)
        if tournament.teams.filter(team_name__iexact=team_name).exists():
            raise ConflictError("A team with this name is already registered.")

        free = tournament.entry_fee == 0
        if _confirmed_teams(tournament) >= tournament.max_participants:
            status = TeamStatus.WAITLIST
        elif free:
            status = TeamStatus.CONFIRMED
        else:
            status = TeamStatus.PENDING

        number = (tournament.teams.aggregate(n=Max("team_number"))["n"] or 0) + 1
        try:
            with transaction.atomic():
                team = TournamentTeam.objects.create(
                    tournament=tournament, captain=captain, team_name=team_name, team_number=number,
                    category=category, skill_level=skill_level, status=status, max_players=max_players,
                    entry_fee=tournament.entry_fee,
                    payment_status=PaymentState.PAID if free else PaymentState.PENDING,
                )
        except IntegrityError:
            raise ConflictError("A team with this name is already registered.")
        TournamentTeamMember.objects.create(team=team, user=captain, role=Role.CAPTAIN)
        logger.info("Team %s (%s) entered %s as %s", team.pk, team_name, tournament.pk, status)
        return team

    @classmethod
    @transaction.atomic
    def add_member(cls, team: TournamentTeam, actor, user, role: str = Role.PLAYER) -> TournamentTeamMember:
        team = TournamentTeam.objects.select_for_update().select_related("tournament").get(pk=team.pk)
        if not cls.can_manage(actor, team):
            raise PermissionDenied("Only the captain or the organizer can change the roster.")
        if not team.is_active():
            raise ConflictError("This team has withdrawn.")
        if role == Role.CAPTAIN:
            raise ValidationError({"role": ["A team has exactly one captain."]})
        if team.is_full():
            raise BusinessRuleViolation(f"The roster is full ({team.max_players} players).")
        cls._ensure_free_agent(team.tournament, user)
        return TournamentTeamMember.objects.create(team=team, user=user, role=role)

    @classmethod
    def remove_member(cls, team: TournamentTeam, actor, user) -> None:
        if user.pk != actor.pk and not cls.can_manage(actor, team):
            raise PermissionDenied("Only the captain or the organizer can change the roster.")
        if user.pk == team.captain_id:
            raise BusinessRuleViolation("The captain cannot leave; withdraw the team instead.")
        deleted, _ = TournamentTeamMember.objects.filter(team=team, user=user).delete()
        if not deleted:
            raise ValidationError({"user_id": ["Not on this team."]})

    @classmethod
    @transaction.atomic
    def confirm_payment(cls, team: TournamentTeam, actor) -> TournamentTeam:
        """Organizer records an entry fee collected outside the platform."""
        if not TournamentService.can_manage(actor, team.tournament):
            raise PermissionDenied("Only the organizer can confirm team payments.")
        if team.status != TeamStatus.PENDING:
            raise ConflictError(f"Team is {team.status}.")
        team.payment_status = PaymentState.PAID
        team.status = (TeamStatus.WAITLIST if _confirmed_teams(team.tournament) >= team.tournament.max_participants
                       else TeamStatus.CONFIRMED)
        team.save(update_fields=["payment_status", "status"])
        return team

    @classmethod
    @transaction.atomic
    def withdraw(cls, team: TournamentTeam, actor) -> Tuple[TournamentTeam, Optional[TournamentTeam]]:
        if not cls.can_manage(actor, team):
            raise PermissionDenied("Only the captain or the organizer can withdraw the team.")
        if not team.is_active():
            raise ConflictError("This team has already withdrawn.")
        was_confirmed = team.status == TeamStatus.CONFIRMED
        team.status = TeamStatus.CANCELLED
        team.save(update_fields=["status"])

        promoted = None
        if was_confirmed:
            promoted = (team.tournament.teams.select_for_update()
                        .filter(status=TeamStatus.WAITLIST).order_by("registered_at").first())
            if promoted is not None:
                paid = promoted.payment_status == PaymentState.PAID
                promoted.status = TeamStatus.CONFIRMED if paid else TeamStatus.PENDING
                promoted.save(update_fields=["status"])
                logger.info("Team waitlist promotion: %s → %s", promoted.pk, promoted.status)
        return team, promoted

    @staticmethod
    def update_standing(team: TournamentTeam, actor, **fields) -> TournamentTeam:
        if not TournamentService.can_manage(actor, team.tournament):
            raise PermissionDenied("Only the organizer can record team standings.")
        played = fields.get("matches_played", team.matches_played)
        won = fields.get("matches_won", team.matches_won)
        if won > played:
            raise ValidationError({"matches_won": ["Cannot exceed matches_played."]})
        for field, value in fields.items():
            setattr(team, field, value)
        team.save(update_fields=list(fields))
        return team
