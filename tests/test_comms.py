"""
tests/test_comms.py
─────────────────────────────────────────────────────────────────────
Admin broadcasts (send, retry safety, scheduling, background send),
direct messages and notification preferences.
"""
from __future__ import annotations

from datetime import timedelta
from unittest import mock

import pytest
from django.core import mail
from django.utils import timezone

from federation.models import AdminMessage, AdminMessageRecipient, Message, Notification, UserType
from federation.services.broadcast_service import BroadcastService
from federation.services.notification_service import notify

pytestmark = pytest.mark.django_db

ADMIN_MESSAGES = "/api/v1/comms/admin-messages/"


@pytest.fixture
def audience(make_user):
    """Two verified players, one unverified player, one coach."""
    return {
        "players":    [make_user(UserType.PLAYER), make_user(UserType.PLAYER)],
        "unverified": make_user(UserType.PLAYER, email_verified=False),
        "coach":      make_user(UserType.COACH),
    }


@pytest.fixture
def make_message(admin_user):
    def _make(**extra):
        fields = {
            "title":           "Court resurfacing",
            "content":         "Courts 1-4 close next Monday.",
            "target_audience": AdminMessage.Audience.PLAYERS,
            "sender":          admin_user,
        }
        fields.update(extra)
        return AdminMessage.objects.create(**fields)
    return _make


# ════════════════════════════════════════════════════════════════════
#  Admin broadcasts
# ════════════════════════════════════════════════════════════════════

class TestBroadcastSend:

    def test_create_and_send(self, auth, admin_user, audience):
        client = auth(admin_user)
        created = client.post(ADMIN_MESSAGES, {
            "title": "Welcome", "content": "Season starts soon.", "target_audience": "players",
        }, format="json")
        assert created.status_code == 201
        pk = created.json()["data"]["id"]

        sent = client.post(f"{ADMIN_MESSAGES}{pk}/send/", format="json")
        assert sent.status_code == 200
        data = sent.json()["data"]
        assert data["status"] == "sent"
        assert data["total_recipients"] == 2

        recipients = set(AdminMessageRecipient.objects.filter(message_id=pk).values_list("recipient", flat=True))
        assert recipients == {p.pk for p in audience["players"]}
        assert len(mail.outbox) == 2
        assert Notification.objects.filter(type="system_announcement").count() == 2

    def test_preview_counts_without_sending(self, auth, admin_user, audience, make_message):
        message = make_message(target_audience=AdminMessage.Audience.ALL_USERS)
        response = auth(admin_user).get(f"{ADMIN_MESSAGES}{message.pk}/preview/")
        data = response.json()["data"]
        assert data["total_recipients"] == 4   # admin + 2 players + coach; unverified left out
        assert data["breakdown"]["player"] == 2
        assert not AdminMessageRecipient.objects.exists()

    def test_sent_message_cannot_be_sent_again(self, auth, admin_user, audience, make_message):
        message = make_message()
        BroadcastService.send(message)
        response = auth(admin_user).post(f"{ADMIN_MESSAGES}{message.pk}/send/", format="json")
        assert response.status_code == 409
        assert AdminMessageRecipient.objects.filter(message=message).count() == 2

    def test_failure_reverts_to_draft(self, audience, make_message):
        message = make_message()
        with mock.patch.object(BroadcastService, "_deliver", side_effect=RuntimeError("smtp down")):
            with pytest.raises(RuntimeError):
                BroadcastService.send(message)
        message.refresh_from_db()
        assert message.status == AdminMessage.Status.DRAFT

        # a retry after the failure delivers once
        BroadcastService.send(message)
        message.refresh_from_db()
        assert message.status == AdminMessage.Status.SENT
        assert message.total_recipients == 2

    def test_failed_email_is_recorded_per_recipient(self, audience, make_message):
        message = make_message()
        with mock.patch("federation.services.email_service.send_broadcast_email",
                        side_effect=OSError("mailbox full")):
            BroadcastService.send(message)
        message.refresh_from_db()
        assert message.status == AdminMessage.Status.SENT
        assert message.sent_count == 0
        assert message.recipients.filter(delivery_status="failed").count() == 2

    def test_background_send(self, auth, admin_user, audience, make_message):
        message = make_message()
        response = auth(admin_user).post(f"{ADMIN_MESSAGES}{message.pk}/send/", {"background": True}, format="json")
        assert response.status_code == 202
        message.refresh_from_db()   # eager Celery in tests
        assert message.status == AdminMessage.Status.SENT

    def test_players_cannot_broadcast(self, auth, audience):
        response = auth(audience["players"][0]).post(ADMIN_MESSAGES, {"title": "x", "content": "y"}, format="json")
        assert response.status_code == 403


class TestTargeting:

    def test_malformed_user_id_is_rejected_at_create(self, auth, admin_user):
        response = auth(admin_user).post(ADMIN_MESSAGES, {
            "title": "Hi", "content": "...", "target_audience": "specific_users",
            "target_filters": {"user_ids": ["not-a-uuid"]},
        }, format="json")
        assert response.status_code == 400
        assert "target_filters" in response.json()["errors"]
        assert not AdminMessage.objects.exists()

    def test_unknown_membership_level_is_rejected(self, auth, admin_user):
        response = auth(admin_user).post(ADMIN_MESSAGES, {
            "title": "Hi", "content": "...", "target_audience": "by_membership",
            "target_filters": {"membership_levels": ["platinum"]},
        }, format="json")
        assert response.status_code == 400

    def test_unknown_filter_key_is_rejected(self, auth, admin_user):
        response = auth(admin_user).post(ADMIN_MESSAGES, {
            "title": "Hi", "content": "...", "target_filters": {"ages": [30]},
        }, format="json")
        assert response.status_code == 400

    def test_specific_users_preview(self, auth, admin_user, audience):
        chosen = audience["players"][0]
        client = auth(admin_user)
        created = client.post(ADMIN_MESSAGES, {
            "title": "Hi", "content": "...", "target_audience": "specific_users",
            "target_filters": {"user_ids": [str(chosen.pk)]},
        }, format="json")
        assert created.status_code == 201
        assert created.json()["data"]["target_filters"] == {"user_ids": [str(chosen.pk)]}

        preview = client.get(f"{ADMIN_MESSAGES}{created.json()['data']['id']}/preview/")
        assert preview.status_code == 200
        assert preview.json()["data"]["total_recipients"] == 1


class TestOverview:

    def test_daily_counts_and_top_ten_by_read_rate(self, auth, admin_user, make_message):
        for n in range(12):
            make_message(title=f"Sent {n}", status=AdminMessage.Status.SENT, sent_count=20, read_count=n)
        make_message(title="Draft")
        AdminMessage.objects.filter(title="Sent 0").update(created_at=timezone.now() - timedelta(days=3))

        response = auth(admin_user).get(f"{ADMIN_MESSAGES}overview/", {"days": 7})
        data = response.json()["data"]

        assert data["total"] == 13
        assert data["by_status"] == {"sent": 12, "draft": 1}
        assert sum(row["count"] for row in data["daily"]) == 13
        assert len(data["daily"]) == 2

        top = data["top_by_read_rate"]
        assert len(top) == 10
        assert [row["title"] for row in top[:2]] == ["Sent 11", "Sent 10"]
        assert "Sent 0" not in {row["title"] for row in top}

    def test_old_messages_fall_outside_the_window(self, auth, admin_user, make_message):
        make_message()
        AdminMessage.objects.update(created_at=timezone.now() - timedelta(days=40))
        data = auth(admin_user).get(f"{ADMIN_MESSAGES}overview/").json()["data"]
        assert data["total"] == 1
        assert data["daily"] == []


class TestScheduling:

    def test_schedule_then_process(self, auth, admin_user, audience, make_message):
        message = make_message()
        client = auth(admin_user)
        response = client.post(f"{ADMIN_MESSAGES}{message.pk}/send/", {
            "send_immediately": False,
            "scheduled_send_at": (timezone.now() + timedelta(hours=2)).isoformat(),
        }, format="json")
        assert response.json()["data"]["status"] == "scheduled"

        # not due yet
        assert BroadcastService.process_scheduled().processed == 0

        report = BroadcastService.process_scheduled(now=timezone.now() + timedelta(hours=3))
        assert (report.processed, report.failed) == (1, 0)
        message.refresh_from_db()
        assert message.status == AdminMessage.Status.SENT

    def test_cancel_scheduled(self, auth, admin_user, make_message):
        message = make_message(status=AdminMessage.Status.SCHEDULED,
                               scheduled_send_at=timezone.now() + timedelta(days=1))
        response = auth(admin_user).post(f"{ADMIN_MESSAGES}{message.pk}/cancel/", format="json")
        assert response.status_code == 200
        message.refresh_from_db()
        assert message.status == AdminMessage.Status.CANCELLED

    def test_process_endpoint_reports_failures(self, auth, admin_user, audience, make_message):
        make_message(status=AdminMessage.Status.SCHEDULED, scheduled_send_at=timezone.now() - timedelta(minutes=1))
        with mock.patch.object(BroadcastService, "_deliver", side_effect=RuntimeError("boom")):
            response = auth(admin_user).post(f"{ADMIN_MESSAGES}process-scheduled/", format="json")
        data = response.json()["data"]
        assert (data["processed"], data["failed"]) == (0, 1)
        assert data["errors"][0]["error"] == "boom"


class TestInbox:

    def test_inbox_only_shows_matching_messages(self, auth, audience, make_message):
        BroadcastService.send(make_message(title="For players"))
        BroadcastService.send(make_message(title="For coaches", target_audience=AdminMessage.Audience.COACHES))

        response = auth(audience["players"][0]).get(f"{ADMIN_MESSAGES}inbox/")
        titles = [m["title"] for m in response.json()["data"]["results"]]
        assert titles == ["For players"]

    def test_read_and_click_are_counted_once(self, auth, audience, make_message):
        message = BroadcastService.send(make_message())
        client = auth(audience["players"][0])
        client.post(f"{ADMIN_MESSAGES}{message.pk}/read/")
        client.post(f"{ADMIN_MESSAGES}{message.pk}/read/")
        client.post(f"{ADMIN_MESSAGES}{message.pk}/click/")
        message.refresh_from_db()
        assert (message.read_count, message.click_count) == (1, 1)

    def test_dismissed_messages_leave_the_inbox(self, auth, audience, make_message):
        message = BroadcastService.send(make_message())
        client = auth(audience["players"][0])
        client.post(f"{ADMIN_MESSAGES}{message.pk}/dismiss/")
        assert client.get(f"{ADMIN_MESSAGES}inbox/").json()["data"]["results"] == []

    def test_outsiders_cannot_touch_a_message(self, auth, audience, make_message):
        message = BroadcastService.send(make_message())
        response = auth(audience["coach"]).post(f"{ADMIN_MESSAGES}{message.pk}/read/")
        assert response.status_code == 404


# ════════════════════════════════════════════════════════════════════
#  Direct messages
# ════════════════════════════════════════════════════════════════════

class TestDirectMessages:

    def test_send_and_read(self, auth, player, other_player):
        response = auth(player).post("/api/v1/comms/messages/", {
            "recipient_id": str(other_player.pk), "subject": "Doubles?", "content": "Saturday 9am?",
        }, format="json")
        assert response.status_code == 201

        client = auth(other_player)
        assert client.get("/api/v1/comms/messages/unread-count/").json()["data"]["unread"] == 1
        message_id = client.get("/api/v1/comms/messages/").json()["data"]["results"][0]["id"]
        client.post(f"/api/v1/comms/messages/{message_id}/read/")
        assert client.get("/api/v1/comms/messages/unread-count/").json()["data"]["unread"] == 0

    def test_cannot_message_yourself(self, auth, player):
        response = auth(player).post("/api/v1/comms/messages/", {
            "recipient_id": str(player.pk), "subject": "Hi", "content": "me",
        }, format="json")
        assert response.status_code == 400

    def test_delete_is_soft(self, auth, player, other_player):
        message = Message.objects.create(sender=player, recipient=other_player, subject="s", content="c")
        response = auth(other_player).delete(f"/api/v1/comms/messages/{message.pk}/")
        assert response.status_code == 200
        message.refresh_from_db()
        assert message.status == Message.Status.DELETED

    def test_strangers_cannot_read(self, auth, player, other_player, make_user):
        message = Message.objects.create(sender=player, recipient=other_player, subject="s", content="c")
        stranger = make_user()
        assert auth(stranger).get(f"/api/v1/comms/messages/{message.pk}/").status_code == 403


# ════════════════════════════════════════════════════════════════════
#  Notifications
# ════════════════════════════════════════════════════════════════════

class TestNotifications:

    def test_opted_out_types_are_skipped(self, auth, player):
        response = auth(player).patch("/api/v1/comms/notifications/preferences/",
                                      {"match_schedule": False}, format="json")
        assert response.status_code == 200
        player.refresh_from_db()

        assert notify(player, "match_schedule", "t", "m") is None
        assert notify(player, "payment_confirmation", "t", "m") is not None
        assert notify(player, "match_schedule", "t", "m", respect_preferences=False) is not None

    def test_unknown_preference(self, auth, player):
        response = auth(player).patch("/api/v1/comms/notifications/preferences/", {"spam": True}, format="json")
        assert response.status_code == 400

    def test_read_all(self, auth, player):
        for _ in range(3):
            notify(player, "system_announcement", "t", "m")
        client = auth(player)
        client.post("/api/v1/comms/notifications/read-all/")
        assert not Notification.objects.filter(user=player, is_read=False).exists()
