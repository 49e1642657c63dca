"""
services/microsite_service.py
─────────────────────────────────────────────────────────────────────
Moderation of the public microsites that club, partner and state
accounts publish: status changes, flags with automatic action on
severe reports, bulk actions and analytics.

Only microsite_status changes here; the account itself stays active.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from ..exceptions import ConflictError
from ..models import BUSINESS_USER_TYPES, MicrositeFlag, MicrositeStatus, Notification, User
from .notification_service import notify

logger = logging.getLogger(__name__)

Severity = MicrositeFlag.Severity

# flag severity → status applied when auto_action is on
AUTO_ACTIONS = {
    Severity.CRITICAL: MicrositeStatus.SUSPENDED,
    Severity.HIGH:     MicrositeStatus.MAINTENANCE,
}

BULK_ACTIONS = {
    "activate":    MicrositeStatus.ACTIVE,
    "deactivate":  MicrositeStatus.INACTIVE,
    "suspend":     MicrositeStatus.SUSPENDED,
    "maintenance": MicrositeStatus.MAINTENANCE,
}

ANALYTICS_WINDOW_DAYS = 30


def microsites():
    return User.objects.filter(user_type__in=BUSINESS_USER_TYPES)


def is_public(user: User) -> bool:
    return not user.is_business or user.microsite_status == MicrositeStatus.ACTIVE


def listing(status: str = "", user_type: str = "", search: str = ""):
    qs = microsites().annotate(
        open_flags=Count("microsite_flags", filter=Q(microsite_flags__status=MicrositeFlag.Status.OPEN)),
    )
    if status:
        qs = qs.filter(microsite_status=status)
    if user_type:
        qs = qs.filter(user_type=user_type)
    if search:
        qs = qs.filter(Q(username__icontains=search) | Q(business_name__icontains=search)
                       | Q(email__icontains=search))
    return qs.order_by("-open_flags", "business_name", "username")


def _ensure_microsite(user: User) -> None:
    if not user.is_business:
        raise ValidationError({"user": ["Only club, partner and state accounts have a microsite."]})


def set_status(owner: User, status: str, actor, reason: str = "") -> User:
    _ensure_microsite(owner)
    previous = owner.microsite_status
    owner.microsite_status = status
    owner.save(update_fields=["microsite_status"])
    logger.info("Microsite %s: %s → %s by %s (%s)", owner.username, previous, status, actor.username, reason)
    if previous != status:
        notify(
            owner, Notification.NotificationType.SYSTEM_ANNOUNCEMENT,
            "Microsite status changed",
            f"Your microsite is now {owner.get_microsite_status_display().lower()}."
            + (f" Reason: {reason}" if reason else ""),
            priority="high", respect_preferences=False,
        )
    return owner


@transaction.atomic
def flag(owner: User, actor, flag_type: str, severity: str, reason: str,
         auto_action: bool = True) -> MicrositeFlag:
    _ensure_microsite(owner)
    entry = MicrositeFlag.objects.create(
        microsite=owner, flagged_by=actor, flag_type=flag_type, severity=severity, reason=reason,
    )
    action = AUTO_ACTIONS.get(severity) if auto_action else None
    # never lift a suspension through a lesser flag
    if action and owner.microsite_status != MicrositeStatus.SUSPENDED:
        set_status(owner, action, actor, f"{entry.get_flag_type_display()} ({severity})")
        entry.action_taken = action
        entry.save(update_fields=["action_taken"])
    logger.warning("Microsite %s flagged %s/%s by %s", owner.username, flag_type, severity, actor.username)
    return entry


@transaction.atomic
def resolve(entry: MicrositeFlag, actor, dismiss: bool = False, notes: str = "",
            restore: bool = False) -> MicrositeFlag:
    if entry.status != MicrositeFlag.Status.OPEN:
        raise ConflictError(f"Flag is already {entry.status}.")
    entry.status           = MicrositeFlag.Status.DISMISSED if dismiss else MicrositeFlag.Status.RESOLVED
    entry.resolution_notes = notes
    entry.resolved_by      = actor
    entry.resolved_at      = timezone.now()
    entry.save(update_fields=["status", "resolution_notes", "resolved_by", "resolved_at"])

    owner = entry.microsite
    still_severe = owner.microsite_flags.filter(
        status=MicrositeFlag.Status.OPEN, severity__in=list(AUTO_ACTIONS),
    ).exists()
    if restore and not still_severe and owner.microsite_status != MicrositeStatus.ACTIVE:
        set_status(owner, MicrositeStatus.ACTIVE, actor, "Moderation flag resolved")
    return entry


def bulk_action(ids: Iterable, action: str, actor, reason: str = "") -> Dict:
    status = BULK_ACTIONS[action]
    ids = [str(pk) for pk in ids]
    found = {str(u.pk): u for u in microsites().filter(pk__in=ids)}
    updated: List[str] = []
    for pk in ids:
        owner = found.get(pk)
        if owner is None:
            continue
        set_status(owner, status, actor, reason)
        updated.append(pk)
    return {"action": action, "updated": updated, "skipped": [pk for pk in ids if pk not in found]}


def analytics(now=None) -> Dict:
    now = now or timezone.now()
    since = now - timedelta(days=ANALYTICS_WINDOW_DAYS)
    sites = microsites()
    flags = MicrositeFlag.objects.all()
    open_flags = flags.filter(status=MicrositeFlag.Status.OPEN)

    def counts(qs, field):
        return dict(qs.order_by().values_list(field).annotate(n=Count("id")))

    return {
        "total":            sites.count(),
        "by_status":        counts(sites, "microsite_status"),
        "by_user_type":     counts(sites, "user_type"),
        "flags": {
            "open":         open_flags.count(),
            "open_by_severity": counts(open_flags, "severity"),
            "by_type":      counts(flags, "flag_type"),
            "recent":       flags.filter(created_at__gte=since).count(),
            "resolved":     flags.filter(status=MicrositeFlag.Status.RESOLVED).count(),
            "dismissed":    flags.filter(status=MicrositeFlag.Status.DISMISSED).count(),
        },
        "window_days":      ANALYTICS_WINDOW_DAYS,
    }


def flags_for(owner: User, status: Optional[str] = None):
    qs = owner.microsite_flags.select_related("flagged_by", "resolved_by")
    if status:
        qs = qs.filter(status=status)
    return qs
