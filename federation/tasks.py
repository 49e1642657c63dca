"""
federation/tasks.py
─────────────────────────────────────────────────────────────────────
Celery background tasks.

The beat schedule lives in federation_config/celery.py:
    process-scheduled-messages        every 5 minutes
    expire-memberships-daily          01:00
    expire-credentials-daily          01:30
    complete-past-reservations-hourly :10 past every hour
    publish-scheduled-announcements   every 5 minutes
"""

from __future__ import annotations
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# 1. Scheduled admin broadcasts, every 5 minutes
# ─────────────────────────────────────────────────────────────────────
@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def process_scheduled_messages_task(self):
    """Send every scheduled broadcast whose send time has passed."""
    from .services.broadcast_service import BroadcastService
    try:
        report = BroadcastService.process_scheduled()
        logger.info("[scheduled broadcasts] sent:%d failed:%d", report.processed, report.failed)
        return {"processed": report.processed, "failed": report.failed, "errors": report.errors}
    except Exception as exc:
        logger.exception("Scheduled broadcast run failed: %s", exc)
        raise self.retry(exc=exc)


# ─────────────────────────────────────────────────────────────────────
# 2. One broadcast off the request path
# ─────────────────────────────────────────────────────────────────────
@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def send_broadcast_task(self, message_id: int):
    """Deliver one admin broadcast. Safe to retry: recipient rows are unique."""
    from .exceptions import ConflictError
    from .models import AdminMessage
    from .services.broadcast_service import BroadcastService
    try:
        message = AdminMessage.objects.get(pk=message_id)
    except AdminMessage.DoesNotExist:
        logger.warning("[broadcast] message %s no longer exists", message_id)
        return {"message_id": message_id, "status": "missing"}

    if message.status == AdminMessage.Status.SENT:
        return {"message_id": message_id, "status": "already_sent"}

    try:
        message = BroadcastService.send(message)
    except ConflictError as exc:
        # cancelled or already sending: a retry would hit the same wall
        logger.warning("[broadcast] message %s not sent: %s", message_id, exc)
        return {"message_id": message_id, "status": "conflict", "detail": str(exc)}
    except Exception as exc:
        logger.exception("[broadcast] message %s failed: %s", message_id, exc)
        raise self.retry(exc=exc)
    return {"message_id": message_id, "status": message.status, "recipients": message.total_recipients}


# ─────────────────────────────────────────────────────────────────────
# 3. Expired memberships, daily
# ─────────────────────────────────────────────────────────────────────
@shared_task(bind=True, max_retries=2)
def expire_memberships_task(self):
    """
    Paid user memberships past their expiry drop back to free; clubs
    past expiry become expired. Every affected account is notified.
    """
    from django.db import transaction
    from django.utils import timezone
    from .models import Club, Notification, User
    from .services.notification_service import notify_many

    try:
        now = timezone.now()
        with transaction.atomic():
            users = list(
                User.objects.select_for_update()
                .filter(membership_expires_at__lt=now)
                .exclude(membership_status=User.Membership.FREE)
            )
            User.objects.filter(pk__in=[u.pk for u in users]).update(membership_status=User.Membership.FREE)

            clubs = list(
                Club.objects.select_for_update().select_related("owner")
                .filter(membership_expires_at__lt=now, membership_status=Club.MembershipStatus.ACTIVE)
            )
            Club.objects.filter(pk__in=[c.pk for c in clubs]).update(
                membership_status=Club.MembershipStatus.EXPIRED,
            )

        notify_many(
            users,
            Notification.NotificationType.MEMBERSHIP_RENEWAL,
            "Your membership has expired",
            "Your federation membership has expired. Renew it to keep your member benefits.",
            priority="high",
            action_url="/payments/membership-fees",
        )
        for club in clubs:
            notify_many(
                [club.owner],
                Notification.NotificationType.MEMBERSHIP_RENEWAL,
                f"{club.name}: membership expired",
                f"The federation membership of {club.name} has expired. Renew it to keep organizing.",
                priority="high",
                related=club,
                action_url=f"/clubs/{club.pk}",
            )
        logger.info("[memberships] users expired:%d clubs expired:%d", len(users), len(clubs))
        return {"users": len(users), "clubs": len(clubs)}
    except Exception as exc:
        raise self.retry(exc=exc)


# ─────────────────────────────────────────────────────────────────────
# 4. Expired digital credentials, daily
# ─────────────────────────────────────────────────────────────────────
@shared_task(bind=True, max_retries=2)
def expire_credentials_task(self):
    from django.utils import timezone
    from .models import DigitalCredential
    try:
        updated = DigitalCredential.objects.filter(
            expiry_date__lt=timezone.now(),
        ).exclude(
            affiliation_status=DigitalCredential.AffiliationStatus.EXPIRED,
        ).update(affiliation_status=DigitalCredential.AffiliationStatus.EXPIRED)
        logger.info("[credentials] %d expired", updated)
        return {"expired": updated}
    except Exception as exc:
        raise self.retry(exc=exc)


# ─────────────────────────────────────────────────────────────────────
# 5. Finished reservations, hourly
# ─────────────────────────────────────────────────────────────────────
@shared_task(bind=True, max_retries=2)
def complete_past_reservations_task(self):
    from django.utils import timezone
    from .models import CourtReservation
    try:
        updated = CourtReservation.objects.filter(
            status=CourtReservation.Status.CONFIRMED,
            end_time__lt=timezone.now(),
        ).update(status=CourtReservation.Status.COMPLETED, updated_at=timezone.now())
        logger.info("[reservations] %d marked completed", updated)
        return {"completed": updated}
    except Exception as exc:
        raise self.retry(exc=exc)


# ─────────────────────────────────────────────────────────────────────
# 6. Scheduled announcements, every 5 minutes
# ─────────────────────────────────────────────────────────────────────
@shared_task(bind=True, max_retries=2)
def publish_scheduled_announcements_task(self):
    """Publish announcements whose publish_date has arrived and notify their audience."""
    from django.utils import timezone
    from .models import Announcement
    from .services.notification_service import notify_announcement_audience
    try:
        due = list(Announcement.objects.filter(
            status=Announcement.Status.SCHEDULED, publish_date__lte=timezone.now(),
        ))
        notified = 0
        for announcement in due:
            announcement.status = Announcement.Status.PUBLISHED
            announcement.save(update_fields=["status", "updated_at"])
            if announcement.send_notification:
                notified += notify_announcement_audience(announcement)
        logger.info("[announcements] published:%d notified:%d", len(due), notified)
        return {"published": len(due), "notified": notified}
    except Exception as exc:
        raise self.retry(exc=exc)
