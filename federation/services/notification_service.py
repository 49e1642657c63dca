"""
federation/services/notification_service.py
────────────────────────────────────────────────────────────────
In-app notifications: single, fan-out and preference-aware.
"""
from __future__ import annotations
import logging
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


def wants(user, notification_type: str) -> bool:
    """Users opt out per type via notification_preferences[type] = False."""
    prefs = user.notification_preferences or {}
    return prefs.get(notification_type, True) is not False


def notify(
    user,
    type: str,
    title: str,
    message: str,
    *,
    priority: str = "normal",
    related=None,
    action_url: str = "",
    respect_preferences: bool = True,
):
    """
    Create one notification for one user.

    Parameters
    ----------
    user      : recipient
    type      : Notification.NotificationType value
    related   : optional model instance the notification points at
    respect_preferences : skip silently when the user opted out of this type
    """
    from ..models import Notification

    if respect_preferences and not wants(user, type):
        return None

    return Notification.objects.create(
        user=user,
        type=type,
        title=title,
        message=message,
        priority=priority,
        related_type=related._meta.model_name if related is not None else "",
        related_id=str(related.pk) if related is not None else "",
        action_url=action_url,
    )


def notify_many(
    users: Iterable,
    type: str,
    title: str,
    message: str,
    *,
    priority: str = "normal",
    related=None,
    action_url: str = "",
) -> int:
    """Bulk fan-out; returns how many notifications were created."""
    from ..models import Notification

    rows = [
        Notification(
            user=user,
            type=type,
            title=title,
            message=message,
            priority=priority,
            related_type=related._meta.model_name if related is not None else "",
            related_id=str(related.pk) if related is not None else "",
            action_url=action_url,
        )
        for user in users
        if wants(user, type)
    ]
    if not rows:
        return 0
    Notification.objects.bulk_create(rows, batch_size=500)
    logger.info("Notification fan-out: %d × %s", len(rows), type)
    return len(rows)


def notify_participants(tournament, title: str, message: str, exclude_user_id: Optional[object] = None) -> int:
    """Tournament update to every active (pending/confirmed/waitlist) registrant."""
    from ..models import Notification, TournamentRegistration

    players = [
        reg.player
        for reg in tournament.registrations.select_related("player").exclude(
            status=TournamentRegistration.Status.CANCELLED
        )
        if reg.player_id != exclude_user_id
    ]
    return notify_many(
        players,
        Notification.NotificationType.TOURNAMENT_UPDATE,
        title,
        message,
        related=tournament,
        action_url=f"/tournaments/{tournament.pk}",
    )


def notify_announcement_audience(announcement) -> int:
    """System announcement to every active user the announcement targets."""
    from ..models import Notification, User
    from .audience import announcement_q

    users = User.objects.filter(is_active=True).filter(
        announcement_q(announcement.target_audience, announcement.target_groups, announcement.target_states)
    )
    return notify_many(
        users,
        Notification.NotificationType.SYSTEM_ANNOUNCEMENT,
        announcement.title,
        announcement.summary or announcement.content[:200],
        priority="urgent" if announcement.priority == "urgent" else "normal",
        related=announcement,
        action_url=f"/announcements/{announcement.pk}",
    )
