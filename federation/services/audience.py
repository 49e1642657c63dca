"""
services/audience.py
─────────────────────────────────────────────────────────────────────
Audience targeting for admin broadcasts and announcements.

The same rules exist in two forms:
  • audience_q()          → ORM filter used to resolve recipients
  • user_matches_audience → in-memory predicate used to list the
                            messages a given user may see
"""
from __future__ import annotations

from collections import Counter
from typing import Iterable, Mapping, Optional, Sequence

from django.db.models import Q

# audience → user types it covers (None = no user_type restriction)
AUDIENCE_USER_TYPES = {
    "all_users":       None,
    "players":         ("player",),
    "coaches":         ("coach",),
    "clubs":           ("club",),
    "partners":        ("partner",),
    "states":          ("state",),
    "players_coaches": ("player", "coach"),
    "business_users":  ("club", "partner", "state"),
}

# announcement audience → user types
ANNOUNCEMENT_USER_TYPES = {
    "all_members":          None,
    "players":              ("player",),
    "coaches":              ("coach",),
    "club_managers":        ("club",),
    "tournament_directors": ("club", "partner", "state"),
    "officials":            ("state", "admin"),
}

PRIORITY_RANK = {"urgent": 4, "high": 3, "medium": 2, "low": 1}


def percentage(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, 1)


def _filter_list(filters: Optional[Mapping], key: str) -> list:
    value = (filters or {}).get(key) or []
    if isinstance(value, str):
        value = [value]
    return [v for v in value if v not in (None, "")]


# ────────────────────────────────────────────────────────────────────
#  ORM side
# ────────────────────────────────────────────────────────────────────

def base_recipient_q() -> Q:
    return Q(is_active=True, email_verified=True)


def audience_q(audience: str, filters: Optional[Mapping] = None) -> Q:
    """Filter selecting the users targeted by an audience (base filter excluded)."""
    if audience in AUDIENCE_USER_TYPES:
        types = AUDIENCE_USER_TYPES[audience]
        return Q() if types is None else Q(user_type__in=types)

    if audience == "specific_users":
        return Q(id__in=_filter_list(filters, "user_ids"))

    if audience == "by_location":
        states = _filter_list(filters, "states")
        cities = _filter_list(filters, "cities")
        q = Q()
        if states:
            q |= Q(state__in=states)
        if cities:
            q |= Q(city__in=cities)
        return q

    if audience == "by_membership":
        levels = _filter_list(filters, "membership_levels")
        return Q(membership_status__in=levels) if levels else Q()

    raise ValueError(f"Unknown audience: {audience}")


def resolve_recipients(audience: str, filters: Optional[Mapping] = None):
    from ..models import User
    return (
        User.objects
        .filter(base_recipient_q())
        .filter(audience_q(audience, filters))
        .order_by("full_name")
    )


def announcement_q(audience: str, target_groups: Sequence[str], target_states: Sequence[str]) -> Q:
    if audience == "specific_groups":
        q = Q(user_type__in=list(target_groups or []))
    else:
        types = ANNOUNCEMENT_USER_TYPES.get(audience)
        q = Q(user_type__in=types) if types is not None else Q()
    if target_states:
        q &= Q(state__in=list(target_states))
    return q


# ────────────────────────────────────────────────────────────────────
#  In-memory side
# ────────────────────────────────────────────────────────────────────

def user_matches_audience(
    audience: str,
    filters: Optional[Mapping],
    *,
    user_id,
    user_type: str,
    state: str = "",
    city: str = "",
    membership_status: str = "",
) -> bool:
    if audience in AUDIENCE_USER_TYPES:
        types = AUDIENCE_USER_TYPES[audience]
        return types is None or user_type in types

    if audience == "specific_users":
        return str(user_id) in {str(u) for u in _filter_list(filters, "user_ids")}

    if audience == "by_location":
        states = _filter_list(filters, "states")
        cities = _filter_list(filters, "cities")
        if not states and not cities:
            return True
        return (bool(states) and state in states) or (bool(cities) and city in cities)

    if audience == "by_membership":
        levels = _filter_list(filters, "membership_levels")
        return not levels or membership_status in levels

    return False


def announcement_matches(
    audience: str,
    target_groups: Sequence[str],
    target_states: Sequence[str],
    user_type: str,
    user_state: str,
) -> bool:
    if audience == "specific_groups":
        if user_type not in (target_groups or []):
            return False
    else:
        types = ANNOUNCEMENT_USER_TYPES.get(audience)
        if types is not None and user_type not in types:
            return False
    if target_states and user_state not in target_states:
        return False
    return True


def breakdown_by_type(user_types: Iterable[str]) -> dict:
    return dict(Counter(user_types))


def inbox_sort_key(message) -> tuple:
    """pinned first, then priority, then newest."""
    sent = message.sent_at.timestamp() if message.sent_at else 0
    return (not message.is_pinned, -PRIORITY_RANK.get(message.priority, 0), -sent)
