"""
tests/test_microsites.py
─────────────────────────────────────────────────────────────────────
Microsite moderation: status changes, flags and their automatic
action, resolution, bulk actions and analytics.
"""
from __future__ import annotations

import uuid

import pytest

from federation.models import MicrositeFlag, MicrositeStatus, Notification, UserType

pytestmark = pytest.mark.django_db

MICROSITES = "/api/v1/admin/microsites/"


@pytest.fixture
def partner(make_user):
    return make_user(UserType.PARTNER, full_name="", business_name="Paletas Pro")


def flag(client, owner, severity="medium", **extra):
    payload = {"flag_type": "spam", "severity": severity, "reason": "Repeated fake giveaways", **extra}
    return client.post(f"{MICROSITES}{owner.pk}/flags/", payload, format="json")


# ════════════════════════════════════════════════════════════════════
#  Listing & status
# ════════════════════════════════════════════════════════════════════

class TestStatus:

    def test_listing_counts_open_flags(self, auth, admin_user, club_owner, partner, player):
        MicrositeFlag.objects.create(microsite=partner, flagged_by=admin_user, flag_type="spam", reason="x")
        MicrositeFlag.objects.create(microsite=partner, flagged_by=admin_user, flag_type="spam", reason="y",
                                     status=MicrositeFlag.Status.DISMISSED)

        results = auth(admin_user).get(MICROSITES).json()["data"]["results"]
        assert [(r["business_name"], r["open_flags"]) for r in results] == [
            ("Paletas Pro", 1), ("Club Las Palmas", 0),
        ]

    def test_status_change_keeps_account_active(self, auth, admin_user, club_owner):
        response = auth(admin_user).post(f"{MICROSITES}{club_owner.pk}/status/",
                                         {"status": "maintenance", "reason": "New photos"}, format="json")
        assert response.status_code == 200
        club_owner.refresh_from_db()
        assert club_owner.microsite_status == MicrositeStatus.MAINTENANCE
        assert club_owner.is_active
        note = Notification.objects.get(user=club_owner)
        assert "Reason: New photos" in note.message

    def test_same_status_is_quiet(self, auth, admin_user, club_owner):
        auth(admin_user).post(f"{MICROSITES}{club_owner.pk}/status/", {"status": "active"}, format="json")
        assert not Notification.objects.filter(user=club_owner).exists()

    def test_players_have_no_microsite(self, auth, admin_user, player):
        response = auth(admin_user).post(f"{MICROSITES}{player.pk}/status/", {"status": "suspended"},
                                         format="json")
        assert response.status_code == 404

    def test_admins_only(self, auth, player, club_owner):
        assert auth(player).get(MICROSITES).status_code == 403
        assert auth(player).post(f"{MICROSITES}{club_owner.pk}/status/", {"status": "suspended"},
                                 format="json").status_code == 403

    def test_hidden_microsite_profile(self, auth, admin_user, club_owner, player):
        club_owner.microsite_status = MicrositeStatus.SUSPENDED
        club_owner.save(update_fields=["microsite_status"])

        assert auth(player).get(f"/api/v1/users/{club_owner.pk}/").status_code == 403
        assert auth(club_owner).get(f"/api/v1/users/{club_owner.pk}/").status_code == 200
        assert auth(admin_user).get(f"/api/v1/users/{club_owner.pk}/").status_code == 200


# ════════════════════════════════════════════════════════════════════
#  Flags
# ════════════════════════════════════════════════════════════════════

class TestFlags:

    @pytest.mark.parametrize("severity, status", [
        ("critical", MicrositeStatus.SUSPENDED),
        ("high",     MicrositeStatus.MAINTENANCE),
        ("medium",   MicrositeStatus.ACTIVE),
    ])
    def test_severity_drives_action(self, auth, admin_user, partner, severity, status):
        response = flag(auth(admin_user), partner, severity)
        assert response.status_code == 201
        partner.refresh_from_db()
        assert partner.microsite_status == status
        assert response.json()["data"]["action_taken"] == ("" if status == MicrositeStatus.ACTIVE else status)

    def test_manual_flag_takes_no_action(self, auth, admin_user, partner):
        flag(auth(admin_user), partner, "critical", auto_action=False)
        partner.refresh_from_db()
        assert partner.microsite_status == MicrositeStatus.ACTIVE

    def test_high_flag_does_not_lift_suspension(self, auth, admin_user, partner):
        client = auth(admin_user)
        flag(client, partner, "critical")
        flag(client, partner, "high")
        partner.refresh_from_db()
        assert partner.microsite_status == MicrositeStatus.SUSPENDED

    def test_resolve_and_restore(self, auth, admin_user, partner):
        client = auth(admin_user)
        first = flag(client, partner, "critical").json()["data"]["id"]
        second = flag(client, partner, "high").json()["data"]["id"]

        client.post(f"{MICROSITES}flags/{first}/resolve/", {"restore": True}, format="json")
        partner.refresh_from_db()
        assert partner.microsite_status == MicrositeStatus.SUSPENDED

        response = client.post(f"{MICROSITES}flags/{second}/resolve/",
                               {"dismiss": True, "restore": True, "notes": "Duplicate"}, format="json")
        assert response.json()["data"]["status"] == "dismissed"
        partner.refresh_from_db()
        assert partner.microsite_status == MicrositeStatus.ACTIVE

    def test_resolve_once(self, auth, admin_user, partner):
        client = auth(admin_user)
        entry = flag(client, partner).json()["data"]["id"]
        assert client.post(f"{MICROSITES}flags/{entry}/resolve/", {}, format="json").status_code == 200
        assert client.post(f"{MICROSITES}flags/{entry}/resolve/", {}, format="json").status_code == 409

    def test_flags_by_status(self, auth, admin_user, partner):
        client = auth(admin_user)
        entry = flag(client, partner).json()["data"]["id"]
        flag(client, partner, flag_type="other")
        client.post(f"{MICROSITES}flags/{entry}/resolve/", {}, format="json")

        data = client.get(f"{MICROSITES}{partner.pk}/flags/", {"status": "open"}).json()["data"]
        assert [f["flag_type"] for f in data] == ["other"]


# ════════════════════════════════════════════════════════════════════
#  Bulk & analytics
# ════════════════════════════════════════════════════════════════════

class TestBulkAndAnalytics:

    def test_bulk_skips_unknown_and_non_business(self, auth, admin_user, club_owner, partner, player):
        ghost = uuid.uuid4()
        response = auth(admin_user).post(f"{MICROSITES}bulk/", {
            "user_ids": [str(club_owner.pk), str(partner.pk), str(player.pk), str(ghost)],
            "action": "suspend", "reason": "Unpaid membership",
        }, format="json")
        data = response.json()["data"]
        assert data["updated"] == [str(club_owner.pk), str(partner.pk)]
        assert data["skipped"] == [str(player.pk), str(ghost)]
        club_owner.refresh_from_db()
        assert club_owner.microsite_status == MicrositeStatus.SUSPENDED

    def test_unknown_action(self, auth, admin_user, partner):
        response = auth(admin_user).post(f"{MICROSITES}bulk/", {"user_ids": [str(partner.pk)], "action": "purge"},
                                         format="json")
        assert response.status_code == 400

    def test_analytics(self, auth, admin_user, club_owner, partner):
        client = auth(admin_user)
        flag(client, partner, "critical")
        entry = flag(client, club_owner).json()["data"]["id"]
        client.post(f"{MICROSITES}flags/{entry}/resolve/", {}, format="json")

        data = client.get(f"{MICROSITES}analytics/").json()["data"]
        assert data["total"] == 2
        assert data["by_status"] == {"active": 1, "suspended": 1}
        assert data["flags"]["open"] == 1
        assert data["flags"]["open_by_severity"] == {"critical": 1}
        assert data["flags"]["resolved"] == 1
        assert data["flags"]["recent"] == 2
