"""
tests/test_teams_and_referees.py
─────────────────────────────────────────────────────────────────────
Team entries (registration, waitlist, roster, fees, standings) and
referee assignment, workload stats and availability.
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from federation.models import (
    Match, Notification, PaymentState, Tournament, TournamentTeam, TournamentTeamMember, UserType,
)

pytestmark = pytest.mark.django_db

TOURNAMENTS = "/api/v1/tournaments/"
TEAMS = f"{TOURNAMENTS}teams/"


@pytest.fixture
def team_cup(make_tournament):
    return make_tournament(name="Copa por Equipos", category=Tournament.Category.TEAM)


@pytest.fixture
def make_coach(make_user):
    def _make(**extra):
        return make_user(UserType.COACH, **extra)
    return _make


def enter(client, tournament, name="Los Dinkers", **extra):
    payload = {"team_name": name, "skill_level": "4.0", **extra}
    return client.post(f"{TOURNAMENTS}{tournament.pk}/teams/", payload, format="json")


# ════════════════════════════════════════════════════════════════════
#  Team registration
# ════════════════════════════════════════════════════════════════════

class TestTeamRegistration:

    def test_free_entry_is_confirmed_with_captain(self, auth, player, team_cup):
        response = enter(auth(player), team_cup)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "confirmed"
        assert data["team_number"] == 1
        assert data["payment_status"] == PaymentState.PAID
        assert [(m["user"]["id"], m["role"]) for m in data["members"]] == [(str(player.pk), "captain")]

    def test_members_join_on_entry(self, auth, player, other_player, team_cup):
        data = enter(auth(player), team_cup, member_ids=[str(other_player.pk)]).json()["data"]
        assert data["current_players"] == 2

    def test_singles_tournament_refuses_teams(self, auth, player, make_tournament):
        assert enter(auth(player), make_tournament()).status_code == 400
        assert not TournamentTeam.objects.exists()

    def test_closed_registration(self, auth, player, make_tournament):
        cup = make_tournament(category=Tournament.Category.TEAM, status=Tournament.Status.IN_PROGRESS)
        assert enter(auth(player), cup).status_code == 400

    def test_name_is_unique_per_tournament(self, auth, player, other_player, team_cup):
        enter(auth(player), team_cup)
        assert enter(auth(other_player), team_cup, name="los dinkers").status_code == 409

    def test_player_joins_one_team_per_tournament(self, auth, player, other_player, team_cup):
        enter(auth(player), team_cup)
        assert enter(auth(other_player), team_cup, "Kitchen Kings",
                     member_ids=[str(player.pk)]).status_code == 409
        assert not TournamentTeam.objects.filter(team_name="Kitchen Kings").exists()

    def test_coaches_cannot_enter(self, auth, make_coach, team_cup):
        assert enter(auth(make_coach()), team_cup).status_code == 400

    def test_paid_entry_waits_for_organizer(self, auth, player, club_owner, make_tournament):
        cup = make_tournament(category=Tournament.Category.TEAM, entry_fee=Decimal("600.00"))
        team_id = enter(auth(player), cup).json()["data"]["id"]
        assert TournamentTeam.objects.get(pk=team_id).status == TournamentTeam.Status.PENDING

        assert auth(player).post(f"{TEAMS}{team_id}/confirm-payment/").status_code == 403
        data = auth(club_owner).post(f"{TEAMS}{team_id}/confirm-payment/").json()["data"]
        assert (data["status"], data["payment_status"]) == ("confirmed", "paid")
        assert auth(club_owner).post(f"{TEAMS}{team_id}/confirm-payment/").status_code == 409

    def test_waitlist_and_promotion(self, auth, player, other_player, make_tournament):
        cup = make_tournament(category=Tournament.Category.TEAM, max_participants=1)
        first = enter(auth(player), cup).json()["data"]
        second = enter(auth(other_player), cup, "Kitchen Kings").json()["data"]
        assert second["status"] == "waitlist"

        response = auth(player).post(f"{TEAMS}{first['id']}/withdraw/")
        data = response.json()["data"]
        assert data["team"]["status"] == "cancelled"
        assert data["promoted"]["id"] == second["id"]
        assert TournamentTeam.objects.get(pk=second["id"]).status == TournamentTeam.Status.CONFIRMED

    def test_teams_listing_is_public(self, api_client, auth, player, team_cup):
        enter(auth(player), team_cup)
        api_client.force_authenticate(user=None)
        data = api_client.get(f"{TOURNAMENTS}{team_cup.pk}/teams/").json()["data"]
        assert [t["team_name"] for t in data] == ["Los Dinkers"]


# ════════════════════════════════════════════════════════════════════
#  Roster & standings
# ════════════════════════════════════════════════════════════════════

class TestRoster:

    @pytest.fixture
    def team(self, auth, player, team_cup):
        return TournamentTeam.objects.get(pk=enter(auth(player), team_cup, max_players=2).json()["data"]["id"])

    def test_captain_adds_a_player(self, auth, player, other_player, team):
        response = auth(player).post(f"{TEAMS}{team.pk}/members/", {"user_id": str(other_player.pk)},
                                     format="json")
        assert response.status_code == 201
        assert response.json()["data"]["role"] == "player"

    def test_full_roster(self, auth, player, other_player, make_user, team):
        client = auth(player)
        client.post(f"{TEAMS}{team.pk}/members/", {"user_id": str(other_player.pk)}, format="json")
        late = make_user(UserType.PLAYER)
        assert client.post(f"{TEAMS}{team.pk}/members/", {"user_id": str(late.pk)},
                           format="json").status_code == 400

    def test_only_captain_or_organizer_edits_roster(self, auth, other_player, make_user, team):
        outsider = make_user(UserType.PLAYER)
        assert auth(outsider).post(f"{TEAMS}{team.pk}/members/", {"user_id": str(other_player.pk)},
                                   format="json").status_code == 403

    def test_member_leaves_but_captain_cannot(self, auth, player, other_player, team):
        TournamentTeamMember.objects.create(team=team, user=other_player)
        assert auth(other_player).delete(f"{TEAMS}{team.pk}/members/{other_player.pk}/").status_code == 200
        assert auth(player).delete(f"{TEAMS}{team.pk}/members/{player.pk}/").status_code == 400
        assert team.members.count() == 1

    def test_withdrawn_team_is_frozen(self, auth, player, other_player, team):
        auth(player).post(f"{TEAMS}{team.pk}/withdraw/")
        assert auth(player).post(f"{TEAMS}{team.pk}/members/", {"user_id": str(other_player.pk)},
                                 format="json").status_code == 409
        assert auth(player).post(f"{TEAMS}{team.pk}/withdraw/").status_code == 409

    def test_standing(self, auth, player, club_owner, team):
        url = f"{TEAMS}{team.pk}/"
        assert auth(player).patch(url, {"points": 3}, format="json").status_code == 403
        assert auth(club_owner).patch(url, {"matches_played": 2, "matches_won": 3},
                                      format="json").status_code == 400
        data = auth(club_owner).patch(url, {"matches_played": 4, "matches_won": 3, "points": 9,
                                            "final_position": 2}, format="json").json()["data"]
        assert (data["matches_won"], data["points"], data["final_position"]) == (3, 9, 2)


# ════════════════════════════════════════════════════════════════════
#  Referees
# ════════════════════════════════════════════════════════════════════

class TestRefereeAssignment:

    def test_organizer_assigns_officials(self, auth, club_owner, make_coach, make_tournament):
        tournament = make_tournament()
        head, aide = make_coach(), make_coach()
        response = auth(club_owner).post(f"{TOURNAMENTS}{tournament.pk}/referees/", {
            "head_referee_id": str(head.pk), "assistant_referee_ids": [str(aide.pk)],
            "referee_compensation": "1500.00",
        }, format="json")
        assert response.status_code == 200

        tournament.refresh_from_db()
        assert tournament.head_referee == head
        assert list(tournament.assistant_referees.all()) == [aide]
        assert tournament.referee_compensation == Decimal("1500.00")
        assert Notification.objects.filter(type=Notification.NotificationType.TOURNAMENT_UPDATE).count() == 2

        listing = auth(club_owner).get(f"{TOURNAMENTS}{tournament.pk}/referees/").json()["data"]
        assert listing["head_referee"]["id"] == str(head.pk)

    def test_referees_must_be_coaches(self, auth, club_owner, player, make_tournament):
        tournament = make_tournament()
        response = auth(club_owner).post(f"{TOURNAMENTS}{tournament.pk}/referees/",
                                         {"head_referee_id": str(player.pk)}, format="json")
        assert response.status_code == 400
        assert "head_referee_id" in response.json()["errors"]

    def test_head_is_not_also_assistant(self, auth, club_owner, make_coach, make_tournament):
        tournament = make_tournament()
        coach = make_coach()
        response = auth(club_owner).post(f"{TOURNAMENTS}{tournament.pk}/referees/", {
            "head_referee_id": str(coach.pk), "assistant_referee_ids": [str(coach.pk)],
        }, format="json")
        assert response.status_code == 400

    def test_only_organizer_assigns(self, auth, player, make_coach, make_tournament):
        tournament = make_tournament()
        response = auth(player).post(f"{TOURNAMENTS}{tournament.pk}/referees/",
                                     {"head_referee_id": str(make_coach().pk)}, format="json")
        assert response.status_code == 403

    def test_closed_tournament(self, auth, club_owner, make_coach, make_tournament):
        tournament = make_tournament(status=Tournament.Status.COMPLETED)
        response = auth(club_owner).post(f"{TOURNAMENTS}{tournament.pk}/referees/",
                                         {"head_referee_id": str(make_coach().pk)}, format="json")
        assert response.status_code == 409


class TestMatchReferee:

    @pytest.fixture
    def match(self, make_tournament, player, other_player, at_hour):
        return Match.objects.create(tournament=make_tournament(), match_number=1, player1=player,
                                    player2=other_player, scheduled_time=at_hour(14, 10))

    def test_assign_and_unassign(self, auth, club_owner, make_coach, match):
        coach = make_coach()
        client = auth(club_owner)
        assert client.post(f"{TOURNAMENTS}matches/{match.pk}/referee/", {"referee_id": str(coach.pk)},
                           format="json").status_code == 200
        match.refresh_from_db()
        assert match.referee == coach
        assert Notification.objects.filter(user=coach, type=Notification.NotificationType.MATCH_SCHEDULE).exists()

        client.post(f"{TOURNAMENTS}matches/{match.pk}/referee/", {"referee_id": None}, format="json")
        match.refresh_from_db()
        assert match.referee is None

    def test_same_time_twice(self, auth, club_owner, make_coach, match, player, other_player):
        coach = make_coach()
        Match.objects.create(tournament=match.tournament, match_number=2, player1=other_player, player2=player,
                             scheduled_time=match.scheduled_time, referee=coach)
        response = auth(club_owner).post(f"{TOURNAMENTS}matches/{match.pk}/referee/",
                                         {"referee_id": str(coach.pk)}, format="json")
        assert response.status_code == 409

    def test_completed_match(self, auth, club_owner, make_coach, match):
        Match.objects.filter(pk=match.pk).update(status=Match.Status.COMPLETED)
        response = auth(club_owner).post(f"{TOURNAMENTS}matches/{match.pk}/referee/",
                                         {"referee_id": str(make_coach().pk)}, format="json")
        assert response.status_code == 409


class TestRefereeStats:

    def test_workload(self, auth, make_coach, make_tournament, player, other_player, at_hour):
        coach = make_coach()
        first = make_tournament(head_referee=coach, referee_compensation=Decimal("500.00"))
        second = make_tournament(name="Copa Guadalajara", referee_compensation=Decimal("300.00"))
        second.assistant_referees.add(coach)
        Match.objects.create(tournament=first, match_number=1, player1=player, player2=other_player,
                             referee=coach, status=Match.Status.COMPLETED, scheduled_time=at_hour(-3, 9))
        Match.objects.create(tournament=first, match_number=2, player1=player, player2=other_player,
                             referee=coach, scheduled_time=at_hour(3, 9))

        data = auth(coach).get(f"{TOURNAMENTS}referees/{coach.pk}/stats/").json()["data"]
        assert data["tournaments_as_head"] == 1
        assert data["tournaments_as_assistant"] == 1
        assert (data["matches_refereed"], data["matches_completed"]) == (2, 1)
        assert data["completion_rate"] == 50.0
        assert Decimal(str(data["total_compensation"])) == Decimal("800.00")
        assert [m["match_number"] for m in data["recent_matches"]] == [2, 1]

    def test_private_to_referee_and_admins(self, auth, make_coach, admin_user):
        coach, rival = make_coach(), make_coach()
        assert auth(rival).get(f"{TOURNAMENTS}referees/{coach.pk}/stats/").status_code == 403
        assert auth(admin_user).get(f"{TOURNAMENTS}referees/{coach.pk}/stats/").status_code == 200

    def test_available_on_a_day(self, auth, player, other_player, make_coach, make_tournament, at_hour):
        busy = make_coach(full_name="Ana Busy")
        free = make_coach(full_name="Beto Free")
        make_coach(full_name="Carla Elsewhere", state="Nuevo León")
        Match.objects.create(tournament=make_tournament(), match_number=1, player1=player,
                             player2=other_player, referee=busy, scheduled_time=at_hour(5, 10))
        day = at_hour(5, 10).date().isoformat()

        data = auth(player).get(f"{TOURNAMENTS}referees/available/",
                                {"date": day, "state": "Jalisco"}).json()["data"]
        assert [u["id"] for u in data] == [str(free.pk)]
        assert auth(player).get(f"{TOURNAMENTS}referees/available/", {"date": "soon"}).status_code == 400
