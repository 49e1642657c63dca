"""
tests/test_tournaments.py
─────────────────────────────────────────────────────────────────────
Tournament lifecycle: transitions, registration with waitlist,
match results and the ranking update at the end.
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from federation.models import Match, Notification, Ranking, Tournament, TournamentRegistration
from federation.services.tournament_service import TournamentService

pytestmark = pytest.mark.django_db

Status = TournamentRegistration.Status


def register(client, tournament, **extra):
    payload = {"category": "singles", "skill_level": "4.0"}
    payload.update(extra)
    return client.post(f"/api/v1/tournaments/{tournament.pk}/register/", payload, format="json")


# ════════════════════════════════════════════════════════════════════
#  Transitions
# ════════════════════════════════════════════════════════════════════

class TestTransitions:

    def test_organizer_closes_registration(self, auth, club_owner, make_tournament):
        tournament = make_tournament()
        response = auth(club_owner).post(f"/api/v1/tournaments/{tournament.pk}/close_registration/")
        assert response.status_code == 200
        tournament.refresh_from_db()
        assert tournament.status == Tournament.Status.REGISTRATION_CLOSED

    def test_illegal_transition_is_a_conflict(self, auth, club_owner, make_tournament):
        tournament = make_tournament()
        response = auth(club_owner).post(f"/api/v1/tournaments/{tournament.pk}/complete/")
        assert response.status_code == 409

    def test_unknown_action(self, auth, club_owner, make_tournament):
        tournament = make_tournament()
        assert auth(club_owner).post(f"/api/v1/tournaments/{tournament.pk}/explode/").status_code == 400

    def test_only_the_organizer(self, auth, player, make_tournament):
        tournament = make_tournament()
        assert auth(player).post(f"/api/v1/tournaments/{tournament.pk}/cancel/").status_code == 403

    def test_cannot_start_without_enough_players(self, auth, club_owner, make_tournament):
        tournament = make_tournament(min_participants=4)
        assert auth(club_owner).post(f"/api/v1/tournaments/{tournament.pk}/start/").status_code == 400

    def test_participants_hear_about_it(self, auth, club_owner, player, make_tournament):
        tournament = make_tournament()
        TournamentService.register(tournament, player, "singles", "4.0")
        auth(club_owner).post(f"/api/v1/tournaments/{tournament.pk}/cancel/")
        assert Notification.objects.filter(user=player, title__contains="Cancelled").exists()


# ════════════════════════════════════════════════════════════════════
#  Registration
# ════════════════════════════════════════════════════════════════════

class TestRegistration:

    def test_free_tournament_confirms_at_once(self, auth, player, make_tournament):
        response = register(auth(player), make_tournament())
        assert response.status_code == 201
        assert response.json()["data"]["status"] == "confirmed"

    def test_paid_tournament_waits_for_payment(self, auth, player, make_tournament):
        response = register(auth(player), make_tournament(entry_fee=Decimal("250")))
        assert response.json()["data"]["status"] == "pending"

    def test_twice_is_a_conflict(self, auth, player, make_tournament):
        tournament = make_tournament()
        client = auth(player)
        register(client, tournament)
        assert register(client, tournament).status_code == 409

    def test_closed_registration(self, auth, player, make_tournament):
        tournament = make_tournament(status=Tournament.Status.PUBLISHED)
        assert register(auth(player), tournament).status_code == 400

    def test_skill_level_must_be_offered(self, auth, player, make_tournament):
        tournament = make_tournament(skill_levels=["3.0", "3.5"])
        assert register(auth(player), tournament).status_code == 400

    def test_doubles_need_a_partner(self, auth, player, make_tournament):
        assert register(auth(player), make_tournament(), category="doubles").status_code == 400

    def test_only_players(self, auth, club_owner, make_tournament):
        assert register(auth(club_owner), make_tournament()).status_code == 403

    def test_full_tournament_waitlists_and_promotes(self, auth, player, other_player, make_tournament):
        tournament = make_tournament(max_participants=1)
        first  = TournamentService.register(tournament, player, "singles", "4.0")
        second = TournamentService.register(tournament, other_player, "singles", "4.0")
        assert first.status == Status.CONFIRMED
        assert second.status == Status.WAITLIST

        response = auth(player).post(f"/api/v1/tournaments/registrations/{first.pk}/withdraw/")
        assert response.status_code == 200
        assert response.json()["data"]["promoted"]["id"] == second.pk

        second.refresh_from_db()
        assert second.status == Status.CONFIRMED
        assert Notification.objects.filter(user=other_player, type="tournament_registration").exists()

    def test_withdrawn_player_can_register_again(self, player, make_tournament):
        tournament = make_tournament()
        registration = TournamentService.register(tournament, player, "singles", "4.0")
        TournamentService.withdraw(registration, player)
        again = TournamentService.register(tournament, player, "singles", "4.0")
        assert again.pk == registration.pk
        assert again.status == Status.CONFIRMED


# ════════════════════════════════════════════════════════════════════
#  Results and rankings
# ════════════════════════════════════════════════════════════════════

class TestResultsAndRankings:

    @pytest.fixture
    def running(self, player, other_player, make_tournament):
        tournament = make_tournament(tournament_type=Tournament.TournamentType.STATE)
        reg1 = TournamentService.register(tournament, player, "singles", "4.0")
        reg2 = TournamentService.register(tournament, other_player, "singles", "4.0")
        tournament.status = Tournament.Status.IN_PROGRESS
        tournament.save()
        match = Match.objects.create(tournament=tournament, match_number=1, player1=player, player2=other_player)
        return tournament, reg1, reg2, match

    def test_match_creation_notifies_both_players(self, running, player, other_player):
        assert Notification.objects.filter(user=player, type="match_schedule").count() == 1
        assert Notification.objects.filter(user=other_player, type="match_schedule").count() == 1

    def test_record_result(self, auth, club_owner, running, other_player):
        _, _, _, match = running
        response = auth(club_owner).post(f"/api/v1/tournaments/matches/{match.pk}/result/",
                                         {"games": [[7, 11], [11, 9], [5, 11]]}, format="json")
        assert response.status_code == 200
        match.refresh_from_db()
        assert match.winner == other_player
        assert match.status == Match.Status.COMPLETED

    def test_invalid_score(self, auth, club_owner, running):
        _, _, _, match = running
        response = auth(club_owner).post(f"/api/v1/tournaments/matches/{match.pk}/result/",
                                         {"games": [[11, 10], [11, 9]]}, format="json")
        assert response.status_code == 400

    def test_players_cannot_record_results(self, auth, player, running):
        _, _, _, match = running
        response = auth(player).post(f"/api/v1/tournaments/matches/{match.pk}/result/",
                                     {"games": [[11, 3], [11, 4]]}, format="json")
        assert response.status_code == 403

    def test_rankings_after_completion(self, auth, club_owner, running, player, other_player):
        tournament, reg1, reg2, match = running
        client = auth(club_owner)
        client.post(f"/api/v1/tournaments/matches/{match.pk}/result/", {"games": [[11, 3], [11, 4]]}, format="json")
        response = client.post(f"/api/v1/tournaments/{tournament.pk}/final-positions/",
                               {"positions": {str(reg1.pk): 1, str(reg2.pk): 2}}, format="json")
        assert response.status_code == 200

        # rankings wait for the tournament to finish
        assert client.post(f"/api/v1/tournaments/{tournament.pk}/update-rankings/").status_code == 400

        client.post(f"/api/v1/tournaments/{tournament.pk}/complete/")
        response = client.post(f"/api/v1/tournaments/{tournament.pk}/update-rankings/")
        assert response.status_code == 200

        reg1.refresh_from_db()
        reg2.refresh_from_db()
        assert (reg1.points_earned, reg2.points_earned) == (125, 88)   # state table, 4.0

        national = Ranking.objects.get(user=player, state="", is_current=True)
        assert (national.position, national.points, national.matches_won) == (1, 125, 1)
        state = Ranking.objects.get(user=other_player, state="Jalisco", is_current=True)
        assert (state.position, state.points) == (2, 88)
        assert state.ranking_period == str(tournament.end_date.year)

    def test_unknown_registration_in_positions(self, auth, club_owner, running):
        tournament, *_ = running
        response = auth(club_owner).post(f"/api/v1/tournaments/{tournament.pk}/final-positions/",
                                          {"positions": {"99999": 1}}, format="json")
        assert response.status_code == 400
