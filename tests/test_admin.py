"""
tests/test_admin.py
─────────────────────────────────────────────────────────────────────
Admin panel: cached dashboard numbers, user administration and the
XLSX user export.
"""
from __future__ import annotations

from io import BytesIO
from unittest import mock

import pytest
from django.core.cache import cache
from openpyxl import load_workbook

from federation.models import User, UserType

pytestmark = pytest.mark.django_db

DASHBOARD = "/api/v1/admin/dashboard/"


@pytest.fixture(autouse=True)
def empty_cache():
    cache.clear()
    yield
    cache.clear()


# ════════════════════════════════════════════════════════════════════
#  Dashboard
# ════════════════════════════════════════════════════════════════════

class TestDashboard:

    def test_numbers_are_cached(self, auth, admin_user, make_user):
        client = auth(admin_user)
        first = client.get(DASHBOARD).json()["data"]
        assert first["users"]["total"] == 1

        make_user()
        assert client.get(DASHBOARD).json()["data"]["users"]["total"] == 1

        # refresh bypasses the cache and stores the new numbers
        assert client.get(DASHBOARD, {"refresh": "true"}).json()["data"]["users"]["total"] == 2
        assert client.get(DASHBOARD).json()["data"]["users"]["total"] == 2

    def test_cache_lifetime_is_five_minutes(self, auth, admin_user):
        with mock.patch("federation.services.stats_service.cache") as fake:
            fake.get.return_value = None
            auth(admin_user).get(DASHBOARD)
        fake.set.assert_called_once_with("federation:dashboard-stats", mock.ANY, 300)

    def test_players_are_refused(self, auth, player):
        assert auth(player).get(DASHBOARD).status_code == 403


# ════════════════════════════════════════════════════════════════════
#  User administration
# ════════════════════════════════════════════════════════════════════

class TestUserAdmin:

    def test_promote_to_admin(self, auth, admin_user, player):
        response = auth(admin_user).post(f"/api/v1/admin/users/{player.pk}/role/",
                                         {"user_type": "admin"}, format="json")
        assert response.status_code == 200
        player.refresh_from_db()
        assert player.user_type == UserType.ADMIN

    def test_admin_cannot_demote_themselves(self, auth, admin_user):
        response = auth(admin_user).post(f"/api/v1/admin/users/{admin_user.pk}/role/",
                                         {"user_type": "player"}, format="json")
        assert response.status_code == 400

    def test_deactivate(self, auth, admin_user, player):
        response = auth(admin_user).post(f"/api/v1/admin/users/{player.pk}/deactivate/")
        assert response.status_code == 200
        player.refresh_from_db()
        assert player.is_active is False


class TestUserExport:

    def test_workbook_honours_filters(self, auth, admin_user, player, make_user):
        make_user(UserType.COACH)
        response = auth(admin_user).get("/api/v1/admin/users/export/", {"user_type": "player"})
        assert response.status_code == 200
        assert response["Content-Disposition"].startswith('attachment; filename="users_')

        rows = list(load_workbook(BytesIO(response.content)).active.iter_rows(values_only=True))
        assert rows[0][:4] == ("Username", "Email", "Name", "Type")
        assert [(r[0], r[3], r[5]) for r in rows[1:]] == [(player.username, "player", "Jalisco")]

    def test_everyone_without_filters(self, auth, admin_user, player):
        response = auth(admin_user).get("/api/v1/admin/users/export/")
        rows = list(load_workbook(BytesIO(response.content)).active.iter_rows(values_only=True))
        assert {r[0] for r in rows[1:]} == set(User.objects.values_list("username", flat=True))

    def test_players_cannot_export(self, auth, player):
        assert auth(player).get("/api/v1/admin/users/export/").status_code == 403
