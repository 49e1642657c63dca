"""
tests/conftest.py
─────────────────────────────────────────────────────────────────────
Shared fixtures: API client, account factories, a bookable club
court and an open tournament.
"""
from __future__ import annotations

import itertools
from datetime import datetime, time, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from federation.models import Club, Court, Tournament, User, UserType

PASSWORD = "Pickle-ball-2024"

_seq = itertools.count(1)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def password():
    return PASSWORD


@pytest.fixture
def make_user(db):
    def _make(user_type=UserType.PLAYER, **extra):
        n = next(_seq)
        extra.setdefault("full_name", f"Test User {n}")
        extra.setdefault("email_verified", True)
        extra.setdefault("state", "Jalisco")
        return User.objects.create_user(
            email=f"user{n}@example.com",
            username=f"user{n}",
            password=PASSWORD,
            user_type=user_type,
            **extra,
        )
    return _make


@pytest.fixture
def player(make_user):
    return make_user(UserType.PLAYER, skill_level="4.0")


@pytest.fixture
def other_player(make_user):
    return make_user(UserType.PLAYER, skill_level="4.0")


@pytest.fixture
def club_owner(make_user):
    return make_user(UserType.CLUB, full_name="", business_name="Club Las Palmas")


@pytest.fixture
def admin_user(make_user):
    return make_user(UserType.ADMIN, is_staff=True)


@pytest.fixture
def auth(api_client):
    """auth(user) → the shared client, authenticated as user."""
    def _auth(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _auth


@pytest.fixture
def club(club_owner):
    return Club.objects.create(
        name="Club Las Palmas",
        owner=club_owner,
        state="Jalisco",
        city="Guadalajara",
        has_courts=True,
        membership_status=Club.MembershipStatus.ACTIVE,
        membership_expires_at=timezone.now() + timedelta(days=200),
        subscription_plan=Club.Plan.PREMIUM,
    )


@pytest.fixture
def court(club):
    return Court.objects.create(club=club, name="Court 1", hourly_rate=Decimal("200.00"))


@pytest.fixture
def make_tournament(club_owner, club):
    def _make(**extra):
        today = timezone.localdate()
        fields = {
            "name":                  "Copa Jalisco",
            "organizer":             club_owner,
            "club":                  club,
            "state":                 "Jalisco",
            "city":                  "Guadalajara",
            "start_date":            today + timedelta(days=14),
            "end_date":              today + timedelta(days=15),
            "registration_deadline": timezone.now() + timedelta(days=7),
            "status":                Tournament.Status.REGISTRATION_OPEN,
        }
        fields.update(extra)
        return Tournament.objects.create(**fields)
    return _make


@pytest.fixture
def at_hour():
    """at_hour(days_ahead, hour) → aware datetime in the current timezone."""
    def _at(days_ahead: int, hour: int):
        day = timezone.localdate() + timedelta(days=days_ahead)
        return timezone.make_aware(datetime.combine(day, time(hour=hour)))
    return _at
