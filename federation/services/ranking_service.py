"""
services/ranking_service.py
─────────────────────────────────────────────────────────────────────
Ranking points from tournament finishes, position recomputation
per (category, skill level, state, period) bucket, XLSX export.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from io import BytesIO
from typing import Dict, Iterable, List, Optional, Set, Tuple

from django.db import transaction
from django.db.models import Avg, Count
from django.utils import timezone

from ..constants import (
    FINISH_FACTORS, PARTICIPATION_FACTOR, RANKING_POINTS, RANKING_TABLE_FOR_TYPE,
)
from ..exceptions import BusinessRuleViolation
from ..models import Match, Ranking, Tournament, TournamentRegistration

logger = logging.getLogger(__name__)

NATIONAL = ""
HISTORY_LIMIT = 52


def base_points(tournament_type: str, skill_level: str) -> int:
    table = RANKING_POINTS[RANKING_TABLE_FOR_TYPE.get(tournament_type, "local")]
    return table.get(skill_level, 0)


def finish_factor(final_position: Optional[int]) -> Decimal:
    if not final_position:
        return PARTICIPATION_FACTOR
    for last_position, factor in FINISH_FACTORS:
        if final_position <= last_position:
            return factor
    return PARTICIPATION_FACTOR


def points_for_finish(tournament_type: str, skill_level: str, final_position: Optional[int]) -> int:
    raw = Decimal(base_points(tournament_type, skill_level)) * finish_factor(final_position)
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def current_period(now=None) -> str:
    return str((now or timezone.now()).year)


# ────────────────────────────────────────────────────────────────────
#  Aggregation (pure)
# ────────────────────────────────────────────────────────────────────

@dataclass
class PlayerTally:
    user_id:            object
    points:             int = 0
    tournaments_played: int = 0
    tournaments_won:    int = 0
    matches_played:     int = 0
    matches_won:        int = 0
    best_finish:        Optional[int] = None

    @property
    def win_percentage(self) -> Decimal:
        if not self.matches_played:
            return Decimal("0")
        return (Decimal(self.matches_won) / self.matches_played * 100).quantize(Decimal("0.01"))

    def add_finish(self, points: int, final_position: Optional[int]) -> None:
        self.points += points
        self.tournaments_played += 1
        if final_position == 1:
            self.tournaments_won += 1
        if final_position and (self.best_finish is None or final_position < self.best_finish):
            self.best_finish = final_position


def assign_positions(tallies: Iterable[PlayerTally]) -> List[Tuple[int, PlayerTally]]:
    """
    Dense positions by points desc; ties broken by tournaments won, then
    matches won. Players equal on all three share a position.
    """
    ordered = sorted(
        tallies,
        key=lambda t: (-t.points, -t.tournaments_won, -t.matches_won, str(t.user_id)),
    )
    ranked: List[Tuple[int, PlayerTally]] = []
    position = 0
    previous_key = None
    for tally in ordered:
        key = (tally.points, tally.tournaments_won, tally.matches_won)
        if key != previous_key:
            position += 1
            previous_key = key
        ranked.append((position, tally))
    return ranked


# ────────────────────────────────────────────────────────────────────
#  Ranking Service
# ────────────────────────────────────────────────────────────────────

class RankingService:

    @classmethod
    def _tallies(cls, category: str, skill_level: str, state: str, period: str) -> Dict[object, PlayerTally]:
        regs = (
            TournamentRegistration.objects
            .filter(
                tournament__status=Tournament.Status.COMPLETED,
                tournament__end_date__year=int(period),
                category=category,
                skill_level=skill_level,
                status=TournamentRegistration.Status.CONFIRMED,
            )
            .select_related("tournament")
        )
        if state:
            regs = regs.filter(player__state=state)

        tallies: Dict[object, PlayerTally] = {}
        tournament_ids: Set[int] = set()
        for reg in regs:
            tally = tallies.setdefault(reg.player_id, PlayerTally(reg.player_id))
            tally.add_finish(
                points_for_finish(reg.tournament.tournament_type, skill_level, reg.final_position),
                reg.final_position,
            )
            tournament_ids.add(reg.tournament_id)

        matches = Match.objects.filter(
            tournament_id__in=tournament_ids, status=Match.Status.COMPLETED,
        ).values_list("player1_id", "player2_id", "winner_id")
        for p1, p2, winner in matches:
            for player_id in (p1, p2):
                if player_id in tallies:
                    tallies[player_id].matches_played += 1
                    if winner == player_id:
                        tallies[player_id].matches_won += 1
        return tallies

    @classmethod
    @transaction.atomic
    def recalculate(cls, category: str, skill_level: str, state: str = NATIONAL,
                    period: Optional[str] = None) -> int:
        """Rebuild one bucket. Returns the number of ranked players."""
        period = period or current_period()
        now    = timezone.now()
        ranked = assign_positions(cls._tallies(category, skill_level, state, period).values())

        existing = {
            r.user_id: r for r in Ranking.objects.select_for_update().filter(
                category=category, skill_level=skill_level, state=state, ranking_period=period,
            )
        }
        seen = set()
        for position, tally in ranked:
            seen.add(tally.user_id)
            row = existing.get(tally.user_id)
            if row is None:
                row = Ranking(
                    user_id=tally.user_id, category=category, skill_level=skill_level,
                    state=state, ranking_period=period, position=position,
                )
            elif (row.position, row.points) != (position, tally.points):
                row.previous_position = row.position
                row.previous_points   = row.points

            row.position           = position
            row.points             = tally.points
            row.tournaments_played = tally.tournaments_played
            row.tournaments_won    = tally.tournaments_won
            row.matches_played     = tally.matches_played
            row.matches_won        = tally.matches_won
            row.win_percentage     = tally.win_percentage
            row.best_finish        = tally.best_finish
            row.is_current         = True
            row.history = (list(row.history or []) + [{
                "position":    position,
                "points":      tally.points,
                "recorded_at": now.isoformat(),
            }])[-HISTORY_LIMIT:]
            row.save()

        stale = [r.pk for user_id, r in existing.items() if user_id not in seen]
        if stale:
            Ranking.objects.filter(pk__in=stale).update(is_current=False)

        Ranking.objects.filter(
            category=category, skill_level=skill_level, state=state,
        ).exclude(ranking_period=period).update(is_current=False)

        logger.info("Ranking %s/%s/%s/%s: %d players", category, skill_level, state or "national",
                    period, len(ranked))
        return len(ranked)

    @classmethod
    @transaction.atomic
    def update_tournament(cls, tournament: Tournament) -> Dict:
        """Store points on each registration, then rebuild every affected bucket."""
        if tournament.status != Tournament.Status.COMPLETED:
            raise BusinessRuleViolation("Rankings can only be updated from a completed tournament.")

        buckets = set()
        regs = tournament.registrations.filter(
            status=TournamentRegistration.Status.CONFIRMED).select_related("player")
        for reg in regs:
            reg.points_earned = points_for_finish(tournament.tournament_type, reg.skill_level, reg.final_position)
            reg.save(update_fields=["points_earned"])
            # players rank in their home state, wherever they played
            buckets.add((reg.category, reg.skill_level, reg.player.state or NATIONAL))
            buckets.add((reg.category, reg.skill_level, NATIONAL))

        period = str(tournament.end_date.year)
        for category, skill_level, state in sorted(buckets):
            cls.recalculate(category, skill_level, state, period)
        return {"registrations": len(regs), "buckets": len(buckets)}

    @classmethod
    def recalculate_all(cls, period: Optional[str] = None) -> int:
        period = period or current_period()
        combos = (
            TournamentRegistration.objects
            .filter(tournament__status=Tournament.Status.COMPLETED,
                    tournament__end_date__year=int(period))
            .order_by()
            .values_list("category", "skill_level", "player__state")
            .distinct()
        )
        buckets = set()
        for category, skill_level, state in combos:
            buckets.add((category, skill_level, state or NATIONAL))
            buckets.add((category, skill_level, NATIONAL))
        for category, skill_level, state in sorted(buckets):
            cls.recalculate(category, skill_level, state, period)
        return len(buckets)

    # ── Read side ────────────────────────────────────────────────────
    @staticmethod
    def stats(period: Optional[str] = None) -> Dict:
        qs = Ranking.objects.filter(is_current=True)
        if period:
            qs = qs.filter(ranking_period=period)
        by_category = list(
            qs.order_by().values("category")
            .annotate(players=Count("id"), average_points=Avg("points"))
            .order_by("category")
        )
        return {
            "total_ranked":   qs.values("user").distinct().count(),
            "total_entries":  qs.count(),
            "by_category":    by_category,
            "states":         qs.exclude(state=NATIONAL).values("state").distinct().count(),
        }

    @staticmethod
    def export_workbook(rankings) -> bytes:
        from openpyxl import Workbook
        from openpyxl.styles import Font

        wb = Workbook()
        ws = wb.active
        ws.title = "Rankings"
        headers = [
            "Position", "Player", "Username", "Category", "NRTP", "State",
            "Points", "Tournaments", "Wins", "Matches", "Win %", "Period",
        ]
        ws.append(headers)
        for cell in ws[1]:
            cell.font = Font(bold=True)

        for r in rankings:
            ws.append([
                r.position, r.user.display_name, r.user.username, r.category, r.skill_level,
                r.state or "National", r.points, r.tournaments_played, r.tournaments_won,
                r.matches_played, float(r.win_percentage), r.ranking_period,
            ])

        for column, width in zip("ABCDEFGHIJKL", (10, 30, 20, 15, 8, 22, 10, 12, 8, 10, 8, 8)):
            ws.column_dimensions[column].width = width

        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

