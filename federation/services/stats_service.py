"""
services/stats_service.py
─────────────────────────────────────────────────────────────────────
Admin dashboard numbers (cached), system health, user export.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from io import BytesIO
from typing import Dict

from django.core.cache import cache
from django.db import connection
from django.db.models import Count, Sum
from django.utils import timezone

from ..models import Club, Payment, Tournament, User

logger = logging.getLogger(__name__)

DASHBOARD_CACHE_KEY = "federation:dashboard-stats"
DASHBOARD_TTL       = 300


def dashboard_stats(use_cache: bool = True) -> Dict:
    if use_cache:
        cached = cache.get(DASHBOARD_CACHE_KEY)
        if cached is not None:
            return cached

    completed = Payment.objects.filter(status=Payment.Status.COMPLETED)
    stats = {
        "users": {
            "total":    User.objects.count(),
            "active":   User.objects.filter(is_active=True).count(),
            "verified": User.objects.filter(is_verified=True).count(),
            "by_type":  dict(User.objects.order_by().values_list("user_type").annotate(n=Count("id"))),
        },
        "clubs": {
            "total":  Club.objects.count(),
            "active": Club.objects.filter(membership_status=Club.MembershipStatus.ACTIVE).count(),
        },
        "tournaments": {
            "total":    Tournament.objects.count(),
            "upcoming": Tournament.objects.filter(start_date__gte=timezone.localdate())
                        .exclude(status=Tournament.Status.CANCELLED).count(),
        },
        "payments": {
            "total":      Payment.objects.count(),
            "successful": completed.count(),
            "revenue":    completed.aggregate(total=Sum("amount"))["total"] or Decimal("0"),
        },
    }
    cache.set(DASHBOARD_CACHE_KEY, stats, DASHBOARD_TTL)
    return stats


def user_stats() -> Dict:
    qs = User.objects.order_by()
    return {
        "total":         qs.count(),
        "by_type":       dict(qs.values_list("user_type").annotate(n=Count("id"))),
        "by_membership": dict(qs.values_list("membership_status").annotate(n=Count("id"))),
        "by_state":      dict(qs.exclude(state="").values_list("state").annotate(n=Count("id"))),
    }


def public_stats() -> Dict:
    players = User.objects.order_by().filter(user_type="player", is_active=True)
    return {
        "players":          players.count(),
        "players_by_state": dict(players.exclude(state="").values_list("state").annotate(n=Count("id"))),
        "clubs":            Club.objects.filter(is_active=True).count(),
        "upcoming_tournaments": Tournament.objects.filter(
            start_date__gte=timezone.localdate(),
            status__in=(Tournament.Status.PUBLISHED, Tournament.Status.REGISTRATION_OPEN,
                        Tournament.Status.REGISTRATION_CLOSED),
        ).count(),
    }


def system_health() -> Dict:
    checks = {}
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        checks["database"] = "ok"
    except Exception as exc:
        logger.error("Health check: database unavailable: %s", exc)
        checks["database"] = "error"

    try:
        cache.set("federation:health", "ok", 10)
        checks["cache"] = "ok" if cache.get("federation:health") == "ok" else "error"
    except Exception as exc:
        logger.error("Health check: cache unavailable: %s", exc)
        checks["cache"] = "error"

    checks["status"] = "ok" if all(v == "ok" for v in checks.values()) else "degraded"
    checks["timestamp"] = timezone.now().isoformat()
    return checks


def export_users_workbook(users) -> bytes:
    from openpyxl import Workbook
    from openpyxl.styles import Font

    wb = Workbook()
    ws = wb.active
    ws.title = "Users"
    ws.append(["Username", "Email", "Name", "Type", "NRTP", "State", "City",
               "Membership", "Expires", "Active", "Verified", "Joined"])
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for u in users:
        ws.append([
            u.username, u.email, u.display_name, u.user_type, u.skill_level, u.state, u.city,
            u.membership_status,
            timezone.localtime(u.membership_expires_at).strftime("%Y-%m-%d") if u.membership_expires_at else "",
            "yes" if u.is_active else "no",
            "yes" if u.is_verified else "no",
            timezone.localtime(u.date_joined).strftime("%Y-%m-%d"),
        ])

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
