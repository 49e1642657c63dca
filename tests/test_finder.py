"""
tests/test_finder.py
─────────────────────────────────────────────────────────────────────
Player and coach finder: directory visibility, nearby search,
match requests and saved coach searches.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from federation.exceptions import BusinessRuleViolation
from federation.models import CoachSearch, FinderPreference, MatchRequest, Notification, User, UserType
from federation.services.finder_service import PlayerFinderService, age_on, haversine_km

pytestmark = pytest.mark.django_db

FINDER = "/api/v1/finder/"

GUADALAJARA = (Decimal("20.659700"), Decimal("-103.349600"))
ZAPOPAN     = (Decimal("20.721400"), Decimal("-103.391800"))
CDMX        = (Decimal("19.432600"), Decimal("-99.133200"))


@pytest.fixture
def located(make_user):
    """located(point, **fields) → a findable player at that point."""
    def _make(point, **extra):
        extra.setdefault("skill_level", "4.0")
        return make_user(UserType.PLAYER, latitude=point[0], longitude=point[1], **extra)
    return _make


@pytest.fixture
def searcher(located):
    return located(GUADALAJARA)


@pytest.fixture
def make_coach(make_user):
    def _make(**extra):
        extra.setdefault("is_findable", True)
        return make_user(UserType.COACH, **extra)
    return _make


# ════════════════════════════════════════════════════════════════════
#  Directory listings
# ════════════════════════════════════════════════════════════════════

class TestDirectory:

    def test_hidden_players_are_not_listed(self, auth, player, make_user):
        visible = make_user(skill_level="3.5")
        make_user(can_be_found=False)
        make_user(is_active=False)

        results = auth(player).get("/api/v1/users/players/").json()["data"]["results"]
        assert [r["username"] for r in results] == [visible.username]

    def test_player_filters(self, auth, player, make_user):
        make_user(skill_level="3.5", city="Zapopan")
        wanted = make_user(skill_level="4.5", city="Zapopan")
        results = auth(player).get("/api/v1/users/players/",
                                   {"city": "Zapopan", "skill_level": "4.5"}).json()["data"]["results"]
        assert [r["username"] for r in results] == [wanted.username]

    def test_coaches_must_opt_in_and_never_see_themselves(self, auth, make_coach):
        me = make_coach(rating=Decimal("3.00"))
        best = make_coach(rating=Decimal("4.80"), available_for_lessons=True)
        make_coach(is_findable=False)

        results = auth(me).get("/api/v1/users/coaches/").json()["data"]["results"]
        assert [r["username"] for r in results] == [best.username]

    def test_coach_lesson_filter(self, auth, player, make_coach):
        teaching = make_coach(available_for_lessons=True)
        make_coach(available_for_lessons=False)
        results = auth(player).get("/api/v1/users/coaches/",
                                   {"available_for_lessons": "true"}).json()["data"]["results"]
        assert [r["username"] for r in results] == [teaching.username]


# ════════════════════════════════════════════════════════════════════
#  Geometry
# ════════════════════════════════════════════════════════════════════

class TestDistance:

    def test_same_point(self):
        assert haversine_km(*GUADALAJARA, *GUADALAJARA) == 0

    def test_guadalajara_to_mexico_city(self):
        assert 455 < haversine_km(*GUADALAJARA, *CDMX) < 465

    def test_age_turns_on_the_birthday(self):
        assert age_on(date(2000, 6, 15), date(2026, 6, 14)) == 25
        assert age_on(date(2000, 6, 15), date(2026, 6, 15)) == 26
        assert age_on(None, date(2026, 1, 1)) is None


# ════════════════════════════════════════════════════════════════════
#  Preferences & nearby search
# ════════════════════════════════════════════════════════════════════

class TestPreferences:

    def test_defaults_are_created_on_first_read(self, auth, searcher):
        data = auth(searcher).get(f"{FINDER}preferences/").json()["data"]
        assert data["search_radius_km"] == 50
        assert data["is_active"] is True
        assert FinderPreference.objects.filter(user=searcher).exists()

    def test_update(self, auth, searcher):
        response = auth(searcher).put(f"{FINDER}preferences/", {
            "skill_level_min": "3.5", "skill_level_max": "4.5", "availability_days": ["saturday"],
        }, format="json")
        assert response.status_code == 200
        assert FinderPreference.objects.get(user=searcher).availability_days == ["saturday"]

    def test_inverted_skill_range(self, auth, searcher):
        response = auth(searcher).put(f"{FINDER}preferences/",
                                      {"skill_level_min": "5.0", "skill_level_max": "3.0"}, format="json")
        assert response.status_code == 400
        assert "skill_level_min" in response.json()["errors"]

    def test_toggle(self, auth, searcher):
        client = auth(searcher)
        assert client.post(f"{FINDER}toggle/").json()["data"]["is_active"] is False
        assert client.post(f"{FINDER}toggle/").json()["data"]["is_active"] is True

    def test_coaches_have_no_player_finder(self, auth, make_coach):
        assert auth(make_coach()).get(f"{FINDER}preferences/").status_code == 403

    def test_visibility(self, auth, searcher):
        response = auth(searcher).put(f"{FINDER}visibility/", {"visible": False}, format="json")
        assert response.json()["data"]["visible"] is False
        searcher.refresh_from_db()
        assert searcher.can_be_found is False


class TestNearby:

    def test_nearest_first_within_radius(self, auth, searcher, located):
        near = located(ZAPOPAN)
        same_spot = located(GUADALAJARA)
        located(CDMX)

        data = auth(searcher).get(f"{FINDER}nearby/").json()["data"]
        assert [r["player"]["username"] for r in data["results"]] == [same_spot.username, near.username]
        assert data["results"][0]["distance_km"] == 0
        assert 5 < data["results"][1]["distance_km"] < 12

    def test_wider_radius(self, auth, searcher, located):
        far = located(CDMX)
        data = auth(searcher).get(f"{FINDER}nearby/", {"radius_km": 500}).json()["data"]
        assert [r["player"]["username"] for r in data["results"]] == [far.username]

    def test_preferences_narrow_the_search(self, searcher, located):
        located(ZAPOPAN, skill_level="2.5")
        located(ZAPOPAN, gender=User.Gender.MALE)
        match = located(ZAPOPAN, gender=User.Gender.FEMALE, date_of_birth=date(1995, 1, 1))
        located(ZAPOPAN, gender=User.Gender.FEMALE, date_of_birth=date(1960, 1, 1))
        PlayerFinderService.update_preferences(
            searcher, skill_level_min="3.5", preferred_gender=User.Gender.FEMALE, age_max=45,
        )

        assert [hit.user for hit in PlayerFinderService.nearby(searcher)] == [match]

    def test_hidden_players_are_skipped(self, searcher, located):
        located(ZAPOPAN, can_be_found=False)
        assert PlayerFinderService.nearby(searcher) == []

    def test_search_is_counted(self, searcher):
        PlayerFinderService.nearby(searcher)
        prefs = FinderPreference.objects.get(user=searcher)
        assert prefs.searches_count == 1
        assert prefs.last_search_at is not None

    def test_location_required(self, auth, player):
        assert auth(player).get(f"{FINDER}nearby/").status_code == 400

    def test_bad_radius(self, auth, searcher):
        assert auth(searcher).get(f"{FINDER}nearby/", {"radius_km": "far"}).status_code == 400
        assert auth(searcher).get(f"{FINDER}nearby/", {"radius_km": 900}).status_code == 400


# ════════════════════════════════════════════════════════════════════
#  Match requests
# ════════════════════════════════════════════════════════════════════

class TestMatchRequests:

    def test_send_notifies_the_receiver(self, auth, searcher, located):
        rival = located(ZAPOPAN)
        response = auth(searcher).post(f"{FINDER}requests/", {
            "receiver_id": str(rival.pk), "message": "Sábado 9am?", "match_type": "singles",
        }, format="json")

        assert response.status_code == 201
        assert response.json()["data"]["status"] == "pending"
        note = Notification.objects.get(user=rival)
        assert note.type == Notification.NotificationType.PLAYER_MATCH_REQUEST
        assert FinderPreference.objects.get(user=searcher).requests_sent == 1
        assert FinderPreference.objects.get(user=rival).requests_received == 1

    def test_no_notification_when_receiver_opted_out(self, searcher, located):
        rival = located(ZAPOPAN)
        FinderPreference.objects.create(user=rival, auto_notify=False)
        PlayerFinderService.send_request(searcher, rival)
        assert not Notification.objects.filter(user=rival).exists()

    def test_duplicate_pending_request(self, auth, searcher, located):
        rival = located(ZAPOPAN)
        PlayerFinderService.send_request(searcher, rival)
        response = auth(searcher).post(f"{FINDER}requests/", {"receiver_id": str(rival.pk)}, format="json")
        assert response.status_code == 409

    def test_cannot_ask_yourself(self, auth, searcher):
        response = auth(searcher).post(f"{FINDER}requests/", {"receiver_id": str(searcher.pk)}, format="json")
        assert response.status_code == 400

    def test_hidden_player_refuses(self, searcher, located):
        hidden = located(ZAPOPAN, can_be_found=False)
        with pytest.raises(BusinessRuleViolation):
            PlayerFinderService.send_request(searcher, hidden)

    def test_accept(self, auth, searcher, located):
        rival = located(ZAPOPAN)
        request = PlayerFinderService.send_request(searcher, rival)

        response = auth(rival).post(f"{FINDER}requests/{request.pk}/respond/",
                                    {"accept": True, "message": "¡Va!"}, format="json")
        assert response.status_code == 200
        request.refresh_from_db()
        assert request.status == MatchRequest.Status.ACCEPTED
        assert request.responded_at is not None
        assert FinderPreference.objects.get(user=searcher).matches_made == 1
        assert FinderPreference.objects.get(user=rival).matches_made == 1
        assert Notification.objects.filter(user=searcher, title="Match request accepted").exists()

    def test_only_the_receiver_answers(self, auth, searcher, located):
        rival = located(ZAPOPAN)
        request = PlayerFinderService.send_request(searcher, rival)
        response = auth(searcher).post(f"{FINDER}requests/{request.pk}/respond/", {"accept": True}, format="json")
        assert response.status_code == 403

    def test_answered_request_is_final(self, searcher, located, auth):
        rival = located(ZAPOPAN)
        request = PlayerFinderService.send_request(searcher, rival)
        PlayerFinderService.respond(request, rival, accept=False)
        response = auth(rival).post(f"{FINDER}requests/{request.pk}/respond/", {"accept": True}, format="json")
        assert response.status_code == 409

    def test_sender_cancels(self, auth, searcher, located):
        rival = located(ZAPOPAN)
        request = PlayerFinderService.send_request(searcher, rival)
        assert auth(searcher).post(f"{FINDER}requests/{request.pk}/cancel/").status_code == 200
        request.refresh_from_db()
        assert request.status == MatchRequest.Status.CANCELLED

    def test_inbox_boxes(self, auth, searcher, located):
        rival = located(ZAPOPAN)
        PlayerFinderService.send_request(searcher, rival)
        PlayerFinderService.send_request(rival, searcher)
        client = auth(searcher)
        assert client.get(f"{FINDER}requests/", {"box": "incoming"}).json()["data"]["pagination"]["total"] == 1
        assert client.get(f"{FINDER}requests/").json()["data"]["pagination"]["total"] == 2

    def test_top_matches_asks_the_three_nearest(self, auth, searcher, located):
        nearest = [located(GUADALAJARA) for _ in range(3)]
        already = located(GUADALAJARA)
        located(ZAPOPAN)
        PlayerFinderService.send_request(searcher, already)

        response = auth(searcher).post(f"{FINDER}requests/top-matches/", {"message": "Dobles?"}, format="json")
        assert response.status_code == 201
        receivers = {r["receiver"]["id"] for r in response.json()["data"]}
        assert receivers == {str(u.pk) for u in nearest}

    def test_stats(self, auth, searcher, located):
        rival = located(ZAPOPAN)
        PlayerFinderService.send_request(searcher, rival)
        data = auth(searcher).get(f"{FINDER}stats/").json()["data"]
        assert (data["requests_sent"], data["pending_outgoing"], data["pending_incoming"]) == (1, 1, 0)


# ════════════════════════════════════════════════════════════════════
#  Saved coach searches
# ════════════════════════════════════════════════════════════════════

class TestCoachSearch:

    def test_saving_again_updates_the_active_search(self, auth, player):
        client = auth(player)
        first = client.post(f"{FINDER}coach-searches/", {"city": "Zapopan"}, format="json").json()["data"]
        second = client.post(f"{FINDER}coach-searches/", {"state": "Jalisco"}, format="json").json()["data"]

        assert first["id"] == second["id"]
        search = CoachSearch.objects.get()
        assert (search.state, search.city) == ("Jalisco", "")

    def test_unknown_state(self, auth, player):
        assert auth(player).post(f"{FINDER}coach-searches/", {"state": "Gotham"}, format="json").status_code == 400

    def test_results_are_scored(self, auth, player, make_coach):
        local = make_coach(city="Zapopan", rating=Decimal("4.00"), specializations=["dinking"],
                           coaching_experience=3, hourly_rate=Decimal("400"))
        star = make_coach(city="Monterrey", state="Nuevo León", rating=Decimal("5.00"), coaching_experience=20,
                          hourly_rate=Decimal("450"))
        make_coach(rating=Decimal("5.00"), hourly_rate=Decimal("2000"))     # too expensive
        make_coach(rating=Decimal("1.00"), hourly_rate=Decimal("100"))      # below min_rating

        search = CoachSearch.objects.create(
            user=player, state="Jalisco", city="Zapopan", specializations=["Dinking"],
            max_hourly_rate=Decimal("500"), min_rating=Decimal("3.5"),
        )
        data = auth(player).get(f"{FINDER}coach-searches/{search.pk}/run/").json()["data"]

        # local: 40 rating + 10 specialization + 20 city + 3 years; star: 50 rating + 10 years
        assert [(r["coach"]["username"], r["score"]) for r in data["results"]] == [
            (local.username, 73), (star.username, 60),
        ]
        search.refresh_from_db()
        assert search.results_count == 2
        assert search.last_run_at is not None

    def test_other_peoples_searches_are_private(self, auth, player, other_player):
        search = CoachSearch.objects.create(user=player)
        assert auth(other_player).get(f"{FINDER}coach-searches/{search.pk}/run/").status_code == 404

    def test_stats(self, auth, player, make_coach):
        make_coach()
        search = CoachSearch.objects.create(user=player)
        auth(player).get(f"{FINDER}coach-searches/{search.pk}/run/")
        data = auth(player).get(f"{FINDER}coach-searches/stats/").json()["data"]
        assert (data["saved_searches"], data["last_results"], data["findable_coaches"]) == (1, 1, 1)
