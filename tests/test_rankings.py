"""
tests/test_rankings.py
─────────────────────────────────────────────────────────────────────
Ranking buckets (national + the player's home state), position
movement between recalculations, and the XLSX export.
"""
from __future__ import annotations

from io import BytesIO

import pytest
from openpyxl import load_workbook

from federation.models import Ranking, Tournament, TournamentRegistration
from federation.services.ranking_service import RankingService
from federation.services.tournament_service import TournamentService

pytestmark = pytest.mark.django_db


@pytest.fixture
def finished(make_tournament):
    """finished({player: position}, **tournament_fields) → a completed state tournament."""
    def _finish(placings, **extra):
        extra.setdefault("tournament_type", Tournament.TournamentType.STATE)
        tournament = make_tournament(**extra)
        for user, position in placings.items():
            reg = TournamentService.register(tournament, user, "singles", "4.0")
            TournamentRegistration.objects.filter(pk=reg.pk).update(final_position=position)
        Tournament.objects.filter(pk=tournament.pk).update(status=Tournament.Status.COMPLETED)
        tournament.refresh_from_db()
        return tournament
    return _finish


def buckets_of(user):
    return sorted(Ranking.objects.filter(user=user, is_current=True).values_list("state", flat=True))


# ════════════════════════════════════════════════════════════════════
#  State buckets
# ════════════════════════════════════════════════════════════════════

class TestStateBuckets:

    def test_away_win_counts_for_the_home_state(self, player, finished):
        tournament = finished({player: 1}, name="Abierto Monterrey", state="Nuevo León", city="Monterrey")

        result = RankingService.update_tournament(tournament)

        assert result == {"registrations": 1, "buckets": 2}
        assert buckets_of(player) == ["", "Jalisco"]
        assert not Ranking.objects.filter(state="Nuevo León").exists()

    def test_players_from_two_states_share_the_national_bucket(self, player, make_user, finished):
        visitor = make_user(state="Nuevo León", skill_level="4.0")
        tournament = finished({player: 2, visitor: 1})

        RankingService.update_tournament(tournament)

        assert buckets_of(player) == ["", "Jalisco"]
        assert buckets_of(visitor) == ["", "Nuevo León"]
        national = Ranking.objects.filter(state="", is_current=True).order_by("position")
        assert [r.user_id for r in national] == [visitor.pk, player.pk]
        # each state bucket ranks only its own players
        assert Ranking.objects.get(user=player, state="Jalisco").position == 1

    def test_recalculate_all_uses_home_states(self, player, finished):
        tournament = finished({player: 1}, state="Nuevo León", city="Monterrey")

        assert RankingService.recalculate_all(str(tournament.end_date.year)) == 2
        assert buckets_of(player) == ["", "Jalisco"]


# ════════════════════════════════════════════════════════════════════
#  Recalculation bookkeeping
# ════════════════════════════════════════════════════════════════════

class TestRecalculation:

    def test_position_change_shifts_previous_and_appends_history(self, player, other_player, finished):
        first = finished({player: 1, other_player: 2})
        period = str(first.end_date.year)
        RankingService.recalculate("singles", "4.0", "", period)

        leader = Ranking.objects.get(user=player, state="")
        assert (leader.position, leader.points, leader.previous_position) == (1, 125, None)
        assert len(leader.history) == 1

        finished({other_player: 1}, name="Copa Guadalajara")
        RankingService.recalculate("singles", "4.0", "", period)

        leader.refresh_from_db()
        chaser = Ranking.objects.get(user=other_player, state="")
        assert (chaser.position, chaser.points) == (1, 213)
        assert (chaser.previous_position, chaser.previous_points) == (2, 88)
        assert (leader.position, leader.previous_position, leader.previous_points) == (2, 1, 125)
        assert [h["position"] for h in leader.history] == [1, 2]

    def test_unchanged_standing_keeps_previous(self, player, finished):
        tournament = finished({player: 1})
        period = str(tournament.end_date.year)
        RankingService.recalculate("singles", "4.0", "", period)
        RankingService.recalculate("singles", "4.0", "", period)

        row = Ranking.objects.get(user=player, state="")
        assert row.previous_position is None
        assert len(row.history) == 2

    def test_dropped_players_are_no_longer_current(self, player, finished):
        tournament = finished({player: 1})
        period = str(tournament.end_date.year)
        RankingService.recalculate("singles", "4.0", "", period)

        TournamentRegistration.objects.filter(player=player).update(
            status=TournamentRegistration.Status.CANCELLED)
        assert RankingService.recalculate("singles", "4.0", "", period) == 0
        assert Ranking.objects.get(user=player, state="").is_current is False


# ════════════════════════════════════════════════════════════════════
#  Export
# ════════════════════════════════════════════════════════════════════

class TestExport:

    def test_workbook(self, auth, admin_user, player, other_player, finished):
        tournament = finished({player: 1, other_player: 2})
        RankingService.update_tournament(tournament)

        response = auth(admin_user).get("/api/v1/rankings/export/", {"period": tournament.end_date.year})
        assert response.status_code == 200
        assert response["Content-Type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        assert response["Content-Disposition"].startswith('attachment; filename="rankings_')

        sheet = load_workbook(BytesIO(response.content)).active
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0][:3] == ("Position", "Player", "Username")
        assert [(r[0], r[2], r[5], r[6]) for r in rows[1:]] == [
            (1, player.username, "National", 125),
            (2, other_player.username, "National", 88),
        ]

    def test_state_export(self, auth, admin_user, player, finished):
        tournament = finished({player: 1})
        RankingService.update_tournament(tournament)

        response = auth(admin_user).get(
            "/api/v1/rankings/export/", {"period": tournament.end_date.year, "state": "Jalisco"})
        rows = list(load_workbook(BytesIO(response.content)).active.iter_rows(values_only=True))
        assert [r[5] for r in rows[1:]] == ["Jalisco"]

    def test_players_cannot_export(self, auth, player):
        assert auth(player).get("/api/v1/rankings/export/").status_code == 403
