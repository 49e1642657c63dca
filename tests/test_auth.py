"""
tests/test_auth.py
─────────────────────────────────────────────────────────────────────
Registration, login lockout, email verification and password reset.
"""
from __future__ import annotations

from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from federation.models import User
from federation.services.auth_service import AuthService

REGISTER = "/api/v1/auth/register/"
LOGIN    = "/api/v1/auth/login/"


def player_payload(**extra):
    payload = {
        "user_type":               "player",
        "username":                "ana_lopez",
        "email":                   "Ana.Lopez@Example.com",
        "password":                "Pickle-ball-2024",
        "full_name":               "Ana López",
        "privacy_policy_accepted": True,
        "state":                   "Jalisco",
        "skill_level":             "3.5",
    }
    payload.update(extra)
    return payload


# ════════════════════════════════════════════════════════════════════
#  Registration
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestRegister:

    def test_player_registration(self, api_client, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            response = api_client.post(REGISTER, player_payload(), format="json")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert set(body["data"]["tokens"]) == {"access", "refresh"}

        user = User.objects.get(username="ana_lopez")
        assert user.email == "ana.lopez@example.com"
        assert user.email_verified is False
        assert user.privacy_policy_accepted_at is not None
        assert len(mail.outbox) == 1
        assert user.email_verification_token in mail.outbox[0].body

    def test_business_registration_needs_business_name(self, api_client):
        payload = player_payload(user_type="club", full_name="", privacy_policy_accepted=False)
        response = api_client.post(REGISTER, payload, format="json")
        assert response.status_code == 400
        assert "business_name" in response.json()["errors"]

    def test_individual_must_accept_privacy_policy(self, api_client):
        response = api_client.post(REGISTER, player_payload(privacy_policy_accepted=False), format="json")
        assert response.status_code == 400
        assert "privacy_policy_accepted" in response.json()["errors"]

    def test_duplicate_email(self, api_client, player):
        response = api_client.post(REGISTER, player_payload(email=player.email.upper()), format="json")
        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_duplicate_username(self, api_client, player):
        response = api_client.post(REGISTER, player_payload(username=player.username), format="json")
        assert response.status_code == 409

    @pytest.mark.parametrize("weak", ["short1", "password123", "12345678901"])
    def test_weak_passwords(self, api_client, weak):
        response = api_client.post(REGISTER, player_payload(password=weak), format="json")
        assert response.status_code == 400
        assert "password" in response.json()["errors"]

    def test_unknown_state(self, api_client):
        response = api_client.post(REGISTER, player_payload(state="Atlantis"), format="json")
        assert response.status_code == 400

    def test_admin_cannot_self_register(self, api_client):
        response = api_client.post(REGISTER, player_payload(user_type="admin"), format="json")
        assert response.status_code == 400
        assert "user_type" in response.json()["errors"]
        assert not User.objects.filter(username="ana_lopez").exists()

    def test_registered_player_has_no_dashboard(self, api_client):
        response = api_client.post(REGISTER, player_payload(), format="json")
        access = response.json()["data"]["tokens"]["access"]

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        assert api_client.get("/api/v1/admin/dashboard/").status_code == 403

    def test_service_refuses_admin_type(self):
        with pytest.raises(PermissionDenied):
            AuthService.register({**player_payload(), "user_type": "admin"})


# ════════════════════════════════════════════════════════════════════
#  Login & lockout
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestLogin:

    def test_login(self, api_client, player, password):
        response = api_client.post(LOGIN, {"email": player.email, "password": password}, format="json")
        assert response.status_code == 200
        assert response.json()["data"]["user"]["username"] == player.username
        player.refresh_from_db()
        assert player.last_login is not None

    def test_wrong_password(self, api_client, player):
        response = api_client.post(LOGIN, {"email": player.email, "password": "nope"}, format="json")
        assert response.status_code == 401
        player.refresh_from_db()
        assert player.login_attempts == 1

    def test_unknown_email(self, api_client, db):
        response = api_client.post(LOGIN, {"email": "ghost@example.com", "password": "x"}, format="json")
        assert response.status_code == 401

    def test_lockout_after_five_failures(self, api_client, player, password):
        for _ in range(5):
            api_client.post(LOGIN, {"email": player.email, "password": "nope"}, format="json")

        player.refresh_from_db()
        assert player.is_locked()
        assert player.login_attempts == 0

        # even the right password is refused while locked
        response = api_client.post(LOGIN, {"email": player.email, "password": password}, format="json")
        assert response.status_code == 403

    def test_lock_expires(self, api_client, player, password):
        player.locked_until = timezone.now() - timedelta(minutes=1)
        player.save()
        response = api_client.post(LOGIN, {"email": player.email, "password": password}, format="json")
        assert response.status_code == 200

    def test_success_resets_the_counter(self, api_client, player, password):
        api_client.post(LOGIN, {"email": player.email, "password": "nope"}, format="json")
        api_client.post(LOGIN, {"email": player.email, "password": password}, format="json")
        player.refresh_from_db()
        assert player.login_attempts == 0

    def test_deactivated_account(self, api_client, player, password):
        player.is_active = False
        player.save()
        response = api_client.post(LOGIN, {"email": player.email, "password": password}, format="json")
        assert response.status_code == 403


# ════════════════════════════════════════════════════════════════════
#  Email verification & password reset
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestTokens:

    def test_verify_email(self, api_client, make_user):
        user = make_user(
            email_verified=False,
            email_verification_token="tok-123",
            email_verification_expires_at=timezone.now() + timedelta(hours=1),
        )
        response = api_client.post("/api/v1/auth/verify-email/", {"token": "tok-123"}, format="json")
        assert response.status_code == 200
        user.refresh_from_db()
        assert user.email_verified is True
        assert user.email_verification_token == ""

    def test_expired_verification_token(self, api_client, make_user):
        make_user(
            email_verified=False,
            email_verification_token="tok-old",
            email_verification_expires_at=timezone.now() - timedelta(minutes=1),
        )
        response = api_client.post("/api/v1/auth/verify-email/", {"token": "tok-old"}, format="json")
        assert response.status_code == 400

    def test_password_reset_round_trip(self, api_client, player):
        response = api_client.post("/api/v1/auth/password-reset/", {"email": player.email}, format="json")
        assert response.status_code == 200
        assert len(mail.outbox) == 1

        player.refresh_from_db()
        response = api_client.post("/api/v1/auth/password-reset/confirm/", {
            "token": player.password_reset_token, "password": "Brand-new-pass-99",
        }, format="json")
        assert response.status_code == 200

        player.refresh_from_db()
        assert player.check_password("Brand-new-pass-99")
        assert player.password_reset_token == ""

    def test_reset_for_unknown_email_looks_the_same(self, api_client, db):
        response = api_client.post("/api/v1/auth/password-reset/", {"email": "ghost@example.com"}, format="json")
        assert response.status_code == 200
        assert mail.outbox == []

    def test_profile_requires_login(self, api_client, db):
        assert api_client.get("/api/v1/auth/profile/").status_code == 401
