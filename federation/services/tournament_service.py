"""
services/tournament_service.py
─────────────────────────────────────────────────────────────────────
Tournament lifecycle, player registration with waitlist, match results.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from ..exceptions import BusinessRuleViolation, ConflictError
from ..models import Match, Tournament, TournamentRegistration, UserType
from ..permissions import is_federation_admin
from .notification_service import notify_participants

logger = logging.getLogger(__name__)

Status = Tournament.Status
RegStatus = TournamentRegistration.Status

# action → (allowed current statuses, new status)
TRANSITIONS = {
    "publish":            ((Status.DRAFT,), Status.PUBLISHED),
    "open_registration":  ((Status.DRAFT, Status.PUBLISHED, Status.REGISTRATION_CLOSED), Status.REGISTRATION_OPEN),
    "close_registration": ((Status.REGISTRATION_OPEN,), Status.REGISTRATION_CLOSED),
    "start":              ((Status.REGISTRATION_OPEN, Status.REGISTRATION_CLOSED), Status.IN_PROGRESS),
    "complete":           ((Status.IN_PROGRESS,), Status.COMPLETED),
    "cancel":             ((Status.DRAFT, Status.PUBLISHED, Status.REGISTRATION_OPEN,
                            Status.REGISTRATION_CLOSED, Status.IN_PROGRESS), Status.CANCELLED),
}

MATCH_GAMES = {"best_of_1": 1, "best_of_3": 3, "best_of_5": 5}


# ────────────────────────────────────────────────────────────────────
#  Scoring (pure)
# ────────────────────────────────────────────────────────────────────

def game_winner(p1: int, p2: int, points_to_win: int = 11, win_by: int = 2) -> int:
    """
    Returns 1 or 2 for a finished game; raises ValueError otherwise.
    A game ends at points_to_win with a win_by lead, or, once past
    points_to_win, as soon as the lead is exactly win_by.
    """
    if p1 < 0 or p2 < 0 or p1 == p2:
        raise ValueError(f"Invalid game score {p1}-{p2}")
    high, low = max(p1, p2), min(p1, p2)
    if high < points_to_win or high - low < win_by:
        raise ValueError(f"Game {p1}-{p2} is not finished")
    if high > points_to_win and high - low != win_by:
        raise ValueError(f"Game {p1}-{p2} should have ended earlier")
    return 1 if p1 > p2 else 2


def match_winner(games: Sequence[Sequence[int]], match_format: str = "best_of_3",
                 points_to_win: int = 11, win_by: int = 2) -> int:
    total = MATCH_GAMES[match_format]
    needed = total // 2 + 1
    wins = {1: 0, 2: 0}
    for index, (p1, p2) in enumerate(games):
        if max(wins.values()) >= needed:
            raise ValueError(f"Game {index + 1} was played after the match was decided")
        wins[game_winner(int(p1), int(p2), points_to_win, win_by)] += 1
    if max(wins.values()) < needed:
        raise ValueError("Match is not finished")
    return 1 if wins[1] > wins[2] else 2


class TournamentService:

    @staticmethod
    def can_manage(user, tournament: Tournament) -> bool:
        return tournament.organizer_id == user.pk or is_federation_admin(user)

    @staticmethod
    def check_organizer(user, club=None) -> str:
        """Validate the organizer and return the matching organizer_type."""
        if is_federation_admin(user):
            return Tournament.OrganizerType.FEDERATION
        if user.user_type == UserType.CLUB:
            if club is None or club.owner_id != user.pk:
                raise PermissionDenied("Club organizers must select a club they own.")
            if not club.can_organize_tournaments():
                raise BusinessRuleViolation("A premium, active club membership is required to organize tournaments.")
            return Tournament.OrganizerType.CLUB
        if user.user_type in (UserType.PARTNER, UserType.STATE):
            return user.user_type
        raise PermissionDenied("Your account type cannot organize tournaments.")

    @classmethod
    @transaction.atomic
    def transition(cls, tournament: Tournament, action: str, actor) -> Tournament:
        if not cls.can_manage(actor, tournament):
            raise PermissionDenied("Only the organizer can change this tournament.")
        allowed, target = TRANSITIONS[action]
        if tournament.status not in allowed:
            raise ConflictError(f"Cannot {action.replace('_', ' ')} a tournament that is {tournament.status}.")
        if action == "start" and not tournament.can_start():
            raise BusinessRuleViolation("Not enough confirmed participants to start.")

        tournament.status = target
        tournament.save(update_fields=["status", "updated_at"])
        logger.info("Tournament %s → %s by %s", tournament.pk, target, actor.username)

        notify_participants(
            tournament,
            f"{tournament.name}: {tournament.get_status_display()}",
            f"The tournament {tournament.name} is now {tournament.get_status_display().lower()}.",
            exclude_user_id=actor.pk,
        )
        return tournament

    # ── Registration ─────────────────────────────────────────────────
    @classmethod
    @transaction.atomic
    def register(cls, tournament: Tournament, player, category: str, skill_level: str,
                 partner=None) -> TournamentRegistration:
        tournament = Tournament.objects.select_for_update().get(pk=tournament.pk)
        if player.user_type != UserType.PLAYER:
            raise PermissionDenied("Only players can register for tournaments.")
        if not tournament.is_registration_open():
            raise BusinessRuleViolation("Registration for this tournament is closed.")
        if tournament.skill_levels and skill_level not in tournament.skill_levels:
            raise ValidationError({"skill_level": [f"Allowed levels: {', '.join(tournament.skill_levels)}"]})
        if category != "singles" and partner is None:
            raise ValidationError({"partner": ["Doubles categories need a partner."]})

        existing = TournamentRegistration.objects.filter(tournament=tournament, player=player).first()
        if existing and existing.status != RegStatus.CANCELLED:
            raise ConflictError("You are already registered for this tournament.")

        free = tournament.entry_fee == 0
        if tournament.is_full():
            status = RegStatus.WAITLIST
        elif free:
            status = RegStatus.CONFIRMED
        else:
            status = RegStatus.PENDING

        registration = existing or TournamentRegistration(tournament=tournament, player=player)
        registration.partner        = partner
        registration.category       = category
        registration.skill_level    = skill_level
        registration.entry_fee      = tournament.entry_fee
        registration.payment_status = "paid" if free else "pending"
        registration.status         = status
        registration.final_position = None
        registration.points_earned  = 0
        registration.save()
        logger.info("Registration %s: %s → %s (%s)", registration.pk, player.username, tournament.pk, status)
        return registration

    @classmethod
    @transaction.atomic
    def withdraw(cls, registration: TournamentRegistration, actor) -> Tuple[TournamentRegistration, Optional[TournamentRegistration]]:
        if registration.player_id != actor.pk and not cls.can_manage(actor, registration.tournament):
            raise PermissionDenied("You cannot withdraw this registration.")
        if not registration.can_cancel():
            raise BusinessRuleViolation("This registration cannot be cancelled.")

        was_confirmed = registration.status == RegStatus.CONFIRMED
        registration.status = RegStatus.CANCELLED
        registration.save(update_fields=["status"])

        promoted = None
        if was_confirmed:
            promoted = cls.promote_waitlist(registration.tournament)
        return registration, promoted

    @staticmethod
    def promote_waitlist(tournament: Tournament) -> Optional[TournamentRegistration]:
        if tournament.is_full():
            return None
        nxt = (
            tournament.registrations.select_for_update()
            .filter(status=RegStatus.WAITLIST).order_by("registered_at").first()
        )
        if nxt is None:
            return None
        nxt.status = RegStatus.CONFIRMED if nxt.payment_status == "paid" or nxt.entry_fee == 0 else RegStatus.PENDING
        if nxt.entry_fee == 0:
            nxt.payment_status = "paid"
        nxt.save(update_fields=["status", "payment_status"])
        logger.info("Waitlist promotion: registration %s → %s", nxt.pk, nxt.status)
        return nxt

    @staticmethod
    def confirm_paid(registration: TournamentRegistration) -> TournamentRegistration:
        registration.payment_status = "paid"
        if registration.status == RegStatus.PENDING:
            registration.status = (RegStatus.WAITLIST if registration.tournament.is_full()
                                   else RegStatus.CONFIRMED)
        registration.save(update_fields=["payment_status", "status"])
        return registration

    # ── Matches ──────────────────────────────────────────────────────
    @classmethod
    @transaction.atomic
    def record_result(cls, match: Match, games: List[List[int]], actor) -> Match:
        if not (cls.can_manage(actor, match.tournament) or match.referee_id == actor.pk):
            raise PermissionDenied("Only the organizer or referee can record results.")
        if match.status in (Match.Status.COMPLETED, Match.Status.CANCELLED):
            raise ConflictError(f"Match is already {match.status}.")
        try:
            side = match_winner(games, match.match_format, match.points_to_win, match.win_by)
        except ValueError as exc:
            raise ValidationError({"games": [str(exc)]})

        match.games        = [[int(a), int(b)] for a, b in games]
        match.winner       = match.player1 if side == 1 else match.player2
        match.status       = Match.Status.COMPLETED
        match.completed_at = timezone.now()
        match.save()
        logger.info("Match %s result: winner %s", match.pk, match.winner_id)
        return match
