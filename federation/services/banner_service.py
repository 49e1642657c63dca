"""
services/banner_service.py
─────────────────────────────────────────────────────────────────────
Promotional banners: audience-aware selection of live banners,
view / click counting and the admin analytics overview.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from django.db.models import Count, F, Q, Sum
from django.utils import timezone

from ..models import Banner, UserType

logger = logging.getLogger(__name__)

CAROUSEL_LIMIT = 5
TOP_BANNERS    = 10

AUDIENCE_FOR_USER_TYPE = {
    UserType.PLAYER:  Banner.Audience.PLAYERS,
    UserType.COACH:   Banner.Audience.COACHES,
    UserType.CLUB:    Banner.Audience.CLUBS,
    UserType.PARTNER: Banner.Audience.PARTNERS,
    UserType.ADMIN:   Banner.Audience.ADMINS,
}


def audiences_for(user) -> list:
    audiences = [Banner.Audience.ALL]
    if user is not None and user.is_authenticated:
        own = AUDIENCE_FOR_USER_TYPE.get(user.user_type)
        if own:
            audiences.append(own)
    return audiences


def live(now=None):
    now = now or timezone.now()
    return Banner.objects.filter(
        Q(start_date__isnull=True) | Q(start_date__lte=now),
        Q(end_date__isnull=True) | Q(end_date__gte=now),
        is_active=True,
    )


def active_for(user, display_type: Optional[str] = None, now=None):
    qs = live(now).filter(target_audience__in=audiences_for(user))
    if display_type:
        qs = qs.filter(display_type=display_type)
    return qs.order_by("-is_featured", "position", "-created_at")


def carousel(user, limit: int = CAROUSEL_LIMIT):
    return active_for(user, Banner.DisplayType.CAROUSEL)[:limit]


def record(banner: Banner, counter: str) -> Banner:
    """Atomically bump view_count or click_count."""
    Banner.objects.filter(pk=banner.pk).update(**{counter: F(counter) + 1})
    banner.refresh_from_db(fields=[counter])
    return banner


def toggle(banner: Banner) -> Banner:
    banner.is_active = not banner.is_active
    banner.save(update_fields=["is_active", "updated_at"])
    logger.info("Banner %s is now %s", banner.pk, "active" if banner.is_active else "inactive")
    return banner


def move(banner: Banner, position: int) -> Banner:
    banner.position = position
    banner.save(update_fields=["position", "updated_at"])
    return banner


def _ctr(clicks, views) -> float:
    return round((clicks or 0) * 100 / views, 2) if views else 0.0


def analytics() -> Dict:
    totals = Banner.objects.aggregate(
        banners=Count("id"),
        active=Count("id", filter=Q(is_active=True)),
        views=Sum("view_count"),
        clicks=Sum("click_count"),
    )
    views, clicks = totals["views"] or 0, totals["clicks"] or 0

    def grouped(field):
        rows = (Banner.objects.order_by().values(field)
                .annotate(count=Count("id"), views=Sum("view_count"), clicks=Sum("click_count")))
        return {
            row[field]: {"count": row["count"], "views": row["views"] or 0, "clicks": row["clicks"] or 0,
                         "ctr": _ctr(row["clicks"], row["views"])}
            for row in rows
        }

    top = Banner.objects.order_by("-click_count", "-view_count", "pk")[:TOP_BANNERS]
    return {
        "totals": {
            "banners": totals["banners"],
            "active":  totals["active"],
            "live":    live().count(),
            "views":   views,
            "clicks":  clicks,
            "ctr":     _ctr(clicks, views),
        },
        "top_banners": [
            {"id": b.pk, "title": b.title, "views": b.view_count, "clicks": b.click_count,
             "ctr": b.click_through_rate}
            for b in top
        ],
        "by_display_type": grouped("display_type"),
        "by_audience":     grouped("target_audience"),
    }
