"""
tests/test_audience.py
─────────────────────────────────────────────────────────────────────
Broadcast and announcement targeting, in-memory side.
"""
from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from federation.services.audience import (
    announcement_matches,
    audience_q,
    breakdown_by_type,
    inbox_sort_key,
    percentage,
    user_matches_audience,
)


def matches(audience, filters=None, **user):
    user.setdefault("user_id", "u-1")
    user.setdefault("user_type", "player")
    return user_matches_audience(audience, filters, **user)


# ════════════════════════════════════════════════════════════════════
#  Broadcast audiences
# ════════════════════════════════════════════════════════════════════

class TestUserMatchesAudience:

    @pytest.mark.parametrize("audience,user_type,expected", [
        ("all_users",       "state",   True),
        ("players",         "player",  True),
        ("players",         "coach",   False),
        ("players_coaches", "coach",   True),
        ("business_users",  "partner", True),
        ("business_users",  "player",  False),
        ("clubs",           "club",    True),
    ])
    def test_type_audiences(self, audience, user_type, expected):
        assert matches(audience, user_type=user_type) is expected

    def test_specific_users_compares_ids_as_text(self):
        assert matches("specific_users", {"user_ids": ["u-1", "u-2"]}, user_id="u-2")
        assert not matches("specific_users", {"user_ids": ["u-1"]}, user_id="u-3")
        assert not matches("specific_users", {}, user_id="u-1")

    def test_by_location_state_or_city(self):
        filters = {"states": ["Jalisco"], "cities": ["Monterrey"]}
        assert matches("by_location", filters, state="Jalisco", city="Zapopan")
        assert matches("by_location", filters, state="Nuevo León", city="Monterrey")
        assert not matches("by_location", filters, state="Sonora", city="Hermosillo")

    def test_by_location_without_filters_matches_everyone(self):
        assert matches("by_location", {}, state="Sonora")

    def test_by_membership(self):
        assert matches("by_membership", {"membership_levels": ["premium"]}, membership_status="premium")
        assert not matches("by_membership", {"membership_levels": ["premium"]}, membership_status="free")
        assert matches("by_membership", {"membership_levels": "free"}, membership_status="free")

    def test_unknown_audience_matches_nobody(self):
        assert not matches("martians")

    def test_unknown_audience_filter_is_an_error(self):
        with pytest.raises(ValueError):
            audience_q("martians")


# ════════════════════════════════════════════════════════════════════
#  Announcements
# ════════════════════════════════════════════════════════════════════

class TestAnnouncementMatches:

    def test_all_members(self):
        assert announcement_matches("all_members", [], [], "partner", "Jalisco")

    def test_officials(self):
        assert announcement_matches("officials", [], [], "admin", "")
        assert not announcement_matches("officials", [], [], "player", "")

    def test_specific_groups(self):
        assert announcement_matches("specific_groups", ["coach"], [], "coach", "")
        assert not announcement_matches("specific_groups", ["coach"], [], "player", "")

    def test_state_restriction_applies_on_top(self):
        assert announcement_matches("players", [], ["Jalisco"], "player", "Jalisco")
        assert not announcement_matches("players", [], ["Jalisco"], "player", "Colima")


# ════════════════════════════════════════════════════════════════════
#  Helpers
# ════════════════════════════════════════════════════════════════════

class TestHelpers:

    def test_percentage(self):
        assert percentage(1, 3) == 33.3
        assert percentage(5, 0) == 0.0
        assert percentage(2, 2) == 100.0

    def test_breakdown(self):
        assert breakdown_by_type(["player", "coach", "player"]) == {"player": 2, "coach": 1}

    def test_inbox_order(self):
        def msg(name, pinned=False, priority="medium", day=1):
            return SimpleNamespace(name=name, is_pinned=pinned, priority=priority,
                                   sent_at=datetime(2026, 10, day, tzinfo=timezone.utc))

        inbox = [
            msg("old-low", priority="low", day=1),
            msg("new-medium", day=5),
            msg("pinned", pinned=True, priority="low", day=2),
            msg("urgent", priority="urgent", day=3),
            msg("old-medium", day=4),
        ]
        ordered = [m.name for m in sorted(inbox, key=inbox_sort_key)]
        assert ordered == ["pinned", "urgent", "new-medium", "old-medium", "old-low"]
