"""
services/referee_service.py
─────────────────────────────────────────────────────────────────────
Referee assignment for tournaments and matches, referee workload
stats and day availability. Referees are coach accounts.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Optional

from django.db import transaction
from django.db.models import Q, Sum
from rest_framework.exceptions import PermissionDenied, ValidationError

from ..exceptions import BusinessRuleViolation, ConflictError
from ..models import Match, Notification, Tournament, User, UserType
from ..permissions import is_federation_admin
from .notification_service import notify, notify_many
from .tournament_service import TournamentService

logger = logging.getLogger(__name__)

CLOSED_TOURNAMENT = (Tournament.Status.COMPLETED, Tournament.Status.CANCELLED)
CLOSED_MATCH      = (Match.Status.COMPLETED, Match.Status.CANCELLED)
RECENT_MATCHES    = 10


def _ensure_referee(user: User, field: str) -> None:
    if user.user_type != UserType.COACH or not user.is_active:
        raise ValidationError({field: [f"{user.display_name} is not an active coach."]})


class RefereeService:

    @staticmethod
    @transaction.atomic
    def assign_tournament(tournament: Tournament, actor, head_referee: Optional[User],
                          assistants: Iterable[User] = (), compensation: Optional[Decimal] = None) -> Tournament:
        if not TournamentService.can_manage(actor, tournament):
            raise PermissionDenied("Only the organizer can assign referees.")
        if tournament.status in CLOSED_TOURNAMENT:
            raise ConflictError(f"Tournament is {tournament.status}.")

        assistants = list(assistants)
        if head_referee is not None:
            _ensure_referee(head_referee, "head_referee_id")
        for assistant in assistants:
            _ensure_referee(assistant, "assistant_referee_ids")
        if head_referee is not None and head_referee in assistants:
            raise ValidationError({"assistant_referee_ids": ["The head referee cannot also be an assistant."]})

        tournament.head_referee = head_referee
        if compensation is not None:
            tournament.referee_compensation = compensation
        tournament.save(update_fields=["head_referee", "referee_compensation", "updated_at"])
        tournament.assistant_referees.set(assistants)

        officials = ([head_referee] if head_referee else []) + assistants
        notify_many(
            officials, Notification.NotificationType.TOURNAMENT_UPDATE,
            f"Referee assignment: {tournament.name}",
            f"You have been assigned as a referee for {tournament.name} ({tournament.start_date}).",
            related=tournament,
        )
        logger.info("Tournament %s referees set by %s: head=%s assistants=%d",
                    tournament.pk, actor.username, getattr(head_referee, "pk", None), len(assistants))
        return tournament

    @staticmethod
    @transaction.atomic
    def assign_match(match: Match, actor, referee: Optional[User]) -> Match:
        if not TournamentService.can_manage(actor, match.tournament):
            raise PermissionDenied("Only the organizer can assign referees.")
        if match.status in CLOSED_MATCH:
            raise ConflictError(f"Match is already {match.status}.")
        if referee is not None:
            _ensure_referee(referee, "referee_id")
            players = {match.player1_id, match.player2_id, match.player1_partner_id, match.player2_partner_id}
            if referee.pk in players:
                raise ValidationError({"referee_id": ["A player cannot referee their own match."]})
            if match.scheduled_time and Match.objects.filter(
                referee=referee, scheduled_time=match.scheduled_time,
            ).exclude(pk=match.pk).exclude(status=Match.Status.CANCELLED).exists():
                raise ConflictError(f"{referee.display_name} already referees a match at that time.")

        match.referee = referee
        match.save(update_fields=["referee"])
        if referee is not None:
            notify(
                referee, Notification.NotificationType.MATCH_SCHEDULE,
                f"Match #{match.match_number} assigned",
                f"You will referee match #{match.match_number} of {match.tournament.name}.",
                related=match,
            )
        return match

    @staticmethod
    def stats(referee: User, actor) -> Dict:
        if referee.pk != actor.pk and not is_federation_admin(actor):
            raise PermissionDenied("You can only see your own referee stats.")
        if referee.user_type != UserType.COACH:
            raise BusinessRuleViolation("Only coaches referee.")

        officiated = Tournament.objects.filter(
            Q(head_referee=referee) | Q(assistant_referees=referee),
        ).distinct()
        matches = Match.objects.filter(referee=referee)
        refereed = matches.count()
        completed = matches.filter(status=Match.Status.COMPLETED).count()
        compensation = Tournament.objects.filter(
            pk__in=officiated.values("pk"),
        ).aggregate(total=Sum("referee_compensation"))["total"] or Decimal("0")

        recent = matches.select_related("tournament").order_by("-scheduled_time", "-pk")[:RECENT_MATCHES]
        return {
            "referee_id":            str(referee.pk),
            "tournaments_as_head":   Tournament.objects.filter(head_referee=referee).count(),
            "tournaments_as_assistant": referee.assisted_tournaments.count(),
            "matches_refereed":      refereed,
            "matches_completed":     completed,
            "completion_rate":       round(completed * 100 / refereed, 1) if refereed else 0.0,
            "total_compensation":    compensation,
            "recent_matches": [
                {"id": m.pk, "tournament": m.tournament.name, "match_number": m.match_number,
                 "status": m.status, "scheduled_time": m.scheduled_time}
                for m in recent
            ],
        }

    @staticmethod
    def available(day: date, state: str = ""):
        """Active coaches with no live match to referee on that day."""
        busy = Match.objects.filter(
            scheduled_time__date=day, referee__isnull=False,
        ).exclude(status=Match.Status.CANCELLED).values("referee_id")
        qs = User.objects.filter(user_type=UserType.COACH, is_active=True).exclude(pk__in=busy)
        if state:
            qs = qs.filter(state=state)
        return qs.order_by("full_name")
