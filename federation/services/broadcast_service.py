"""
services/broadcast_service.py
─────────────────────────────────────────────────────────────────────
Admin broadcast messaging: recipient resolution and preview, fan-out
send with per-recipient delivery tracking, scheduled dispatch,
analytics and the per-user inbox view.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import Count, F, Q
from django.db.models.functions import TruncDate
from django.utils import timezone

from ..exceptions import ConflictError
from ..models import AdminMessage, AdminMessageRecipient, Notification
from . import audience, email_service
from .notification_service import notify_many

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 100
Delivery = AdminMessageRecipient.DeliveryStatus


# ────────────────────────────────────────────────────────────────────
#  Fixed message templates
# ────────────────────────────────────────────────────────────────────
TEMPLATES = {
    "tournament_announcement": {
        "title":           "New tournament: {tournament_name}",
        "content":         ("Registration is open for {tournament_name}, held on {date} at {venue}. "
                            "Sign up before {deadline} to secure your spot."),
        "message_type":    AdminMessage.MessageType.ANNOUNCEMENT,
        "priority":        "medium",
        "target_audience": AdminMessage.Audience.PLAYERS,
    },
    "maintenance_notice": {
        "title":           "Scheduled platform maintenance",
        "content":         ("The platform will be unavailable on {date} from {start_time} to {end_time} "
                            "for scheduled maintenance. Thank you for your patience."),
        "message_type":    AdminMessage.MessageType.ALERT,
        "priority":        "high",
        "target_audience": AdminMessage.Audience.ALL_USERS,
    },
    "membership_renewal": {
        "title":           "Your membership is about to expire",
        "content":         ("Your federation membership expires on {expiry_date}. Renew now to keep "
                            "access to tournaments, rankings and your digital credential."),
        "message_type":    AdminMessage.MessageType.REMINDER,
        "priority":        "medium",
        "target_audience": AdminMessage.Audience.BY_MEMBERSHIP,
    },
    "new_feature": {
        "title":           "New on the platform: {feature_name}",
        "content":         "We just released {feature_name}. {feature_description}",
        "message_type":    AdminMessage.MessageType.NEWSLETTER,
        "priority":        "low",
        "target_audience": AdminMessage.Audience.ALL_USERS,
    },
    "safety_update": {
        "title":           "Safety update",
        "content":         "Please review the following safety guidelines: {guidelines}",
        "message_type":    AdminMessage.MessageType.ALERT,
        "priority":        "urgent",
        "target_audience": AdminMessage.Audience.ALL_USERS,
    },
}


class _KeepMissing(dict):
    """Leave unknown {placeholders} in place."""
    def __missing__(self, name):
        return "{" + name + "}"


@dataclass
class DispatchReport:
    """Outcome of processing the scheduled queue."""
    processed: int = 0
    failed:    int = 0
    errors:    List[Dict] = field(default_factory=list)   # {"message_id": ..., "error": ...}


class BroadcastService:

    # ── Targeting ────────────────────────────────────────────────────
    @staticmethod
    def recipients_for(message: AdminMessage):
        return audience.resolve_recipients(message.target_audience, message.target_filters)

    @classmethod
    def preview(cls, message: AdminMessage) -> Dict:
        qs = cls.recipients_for(message)
        sample = list(qs.values("id", "username", "email", "full_name", "user_type", "state", "city")[:PREVIEW_LIMIT])
        breakdown = dict(qs.order_by().values_list("user_type").annotate(n=Count("id")))
        return {
            "total_recipients": qs.count(),
            "recipients":       sample,
            "breakdown":        breakdown,
        }

    # ── Editing guards ───────────────────────────────────────────────
    @staticmethod
    def ensure_editable(message: AdminMessage) -> None:
        if not message.is_editable:
            raise ConflictError(f"Message is {message.status}; only draft or scheduled messages can be changed.")

    # ── Sending ──────────────────────────────────────────────────────
    @classmethod
    def schedule(cls, message: AdminMessage, send_at=None) -> AdminMessage:
        cls.ensure_editable(message)
        message.status            = AdminMessage.Status.SCHEDULED
        message.scheduled_send_at = send_at or message.scheduled_send_at or timezone.now()
        message.save(update_fields=["status", "scheduled_send_at", "updated_at"])
        logger.info("Broadcast %s scheduled for %s", message.pk, message.scheduled_send_at)
        return message

    @classmethod
    def cancel(cls, message: AdminMessage) -> AdminMessage:
        if message.status != AdminMessage.Status.SCHEDULED:
            raise ConflictError("Only scheduled messages can be cancelled.")
        message.status = AdminMessage.Status.CANCELLED
        message.save(update_fields=["status", "updated_at"])
        return message

    @classmethod
    def send(cls, message: AdminMessage) -> AdminMessage:
        """
        Fan out to every resolved recipient.

        Recipient rows are unique per (message, user), so a retried send
        never duplicates them. Any unexpected error puts the message back
        to draft before re-raising.
        """
        with transaction.atomic():
            locked = AdminMessage.objects.select_for_update().get(pk=message.pk)
            cls.ensure_editable(locked)
            locked.status = AdminMessage.Status.SENDING
            locked.save(update_fields=["status", "updated_at"])
        message.status = AdminMessage.Status.SENDING

        try:
            cls._deliver(message)
        except Exception:
            logger.exception("Broadcast %s failed, reverting to draft", message.pk)
            AdminMessage.objects.filter(pk=message.pk).update(status=AdminMessage.Status.DRAFT)
            message.status = AdminMessage.Status.DRAFT
            raise

        message.refresh_from_db()
        return message

    @classmethod
    def _deliver(cls, message: AdminMessage) -> None:
        users = list(cls.recipients_for(message))
        AdminMessageRecipient.objects.bulk_create(
            [
                AdminMessageRecipient(
                    message=message,
                    recipient=user,
                    recipient_email=user.email,
                    recipient_name=user.display_name,
                    recipient_type=user.user_type,
                )
                for user in users
            ],
            ignore_conflicts=True,
            batch_size=500,
        )

        now = timezone.now()
        pending = message.recipients.filter(delivery_status=Delivery.PENDING)
        failed_ids = []
        if message.send_via_email:
            for row in pending.only("id", "recipient_email", "recipient_name"):
                try:
                    email_service.send_broadcast_email(message, row.recipient_email, row.recipient_name)
                except Exception as exc:
                    logger.warning("Broadcast %s: email to %s failed: %s", message.pk, row.recipient_email, exc)
                    AdminMessageRecipient.objects.filter(pk=row.pk).update(
                        delivery_status=Delivery.FAILED, error_message=str(exc)[:1000],
                    )
                    failed_ids.append(row.pk)

        message.recipients.filter(delivery_status=Delivery.PENDING).update(
            delivery_status=Delivery.SENT, sent_at=now,
        )

        if message.send_via_notification:
            notify_many(
                users,
                Notification.NotificationType.SYSTEM_ANNOUNCEMENT,
                message.title,
                message.excerpt or message.content[:200],
                priority="urgent" if message.priority == "urgent" else "normal",
                related=message,
                action_url=message.action_button_url,
            )

        total = message.recipients.count()
        sent  = message.recipients.filter(delivery_status__in=(Delivery.SENT, Delivery.DELIVERED)).count()
        AdminMessage.objects.filter(pk=message.pk).update(
            status=AdminMessage.Status.SENT,
            sent_at=now,
            total_recipients=total,
            sent_count=sent,
        )
        logger.info("Broadcast %s sent: %d recipients, %d failed", message.pk, total, len(failed_ids))

    @classmethod
    def process_scheduled(cls, now=None) -> DispatchReport:
        now = now or timezone.now()
        report = DispatchReport()
        due = AdminMessage.objects.filter(
            status=AdminMessage.Status.SCHEDULED, scheduled_send_at__lte=now,
        ).order_by("scheduled_send_at")
        for message in due:
            try:
                cls.send(message)
                report.processed += 1
            except Exception as exc:
                report.failed += 1
                report.errors.append({"message_id": message.pk, "error": str(exc)})
        logger.info("Scheduled broadcasts: %d sent, %d failed", report.processed, report.failed)
        return report

    # ── Analytics ────────────────────────────────────────────────────
    @staticmethod
    def message_stats(message: AdminMessage) -> Dict:
        return {
            "total_recipients": message.total_recipients,
            "sent_count":       message.sent_count,
            "read_count":       message.read_count,
            "click_count":      message.click_count,
            "read_rate":        message.read_rate,
            "click_rate":       message.click_rate,
        }

    @classmethod
    def analytics(cls, message: AdminMessage) -> Dict:
        rows = message.recipients.order_by()
        delivery = dict(rows.values_list("delivery_status").annotate(n=Count("id")))
        by_type: Dict[str, Dict[str, int]] = {}
        for user_type, status, n in rows.values_list("recipient_type", "delivery_status").annotate(n=Count("id")):
            by_type.setdefault(user_type, {})[status] = n
        return {
            "stats":             cls.message_stats(message),
            "delivery_breakdown": delivery,
            "by_recipient_type": by_type,
            "dismissed":         rows.filter(is_dismissed=True).count(),
        }

    @staticmethod
    def overview(days: int = 30) -> Dict:
        qs = AdminMessage.objects.order_by()
        since = timezone.now() - timedelta(days=days)
        daily = [
            {"date": row["day"].isoformat(), "count": row["count"]}
            for row in qs.filter(created_at__gte=since)
            .annotate(day=TruncDate("created_at"))
            .values("day").annotate(count=Count("id")).order_by("day")
        ]
        top = sorted(
            qs.filter(status=AdminMessage.Status.SENT, sent_count__gt=0),
            key=lambda m: m.read_rate, reverse=True,
        )[:10]
        return {
            "total":     qs.count(),
            "by_status": dict(qs.values_list("status").annotate(n=Count("id"))),
            "daily":     daily,
            "top_by_read_rate": [
                {"id": m.pk, "title": m.title, "read_rate": m.read_rate, "sent_count": m.sent_count}
                for m in top
            ],
        }

    @staticmethod
    def render_template(key: str, variables: Optional[Dict] = None) -> Dict:
        template = dict(TEMPLATES[key])
        variables = variables or {}

        template["title"]   = template["title"].format_map(_KeepMissing(variables))
        template["content"] = template["content"].format_map(_KeepMissing(variables))
        return template

    # ── Recipient side ───────────────────────────────────────────────
    @staticmethod
    def is_visible_to(message: AdminMessage, user) -> bool:
        return audience.user_matches_audience(
            message.target_audience, message.target_filters,
            user_id=user.pk, user_type=user.user_type, state=user.state,
            city=user.city, membership_status=user.membership_status,
        )

    @classmethod
    def messages_for_user(cls, user, now=None) -> List[AdminMessage]:
        now = now or timezone.now()
        candidates = AdminMessage.objects.filter(
            Q(expires_at__isnull=True) | Q(expires_at__gt=now),
            status=AdminMessage.Status.SENT,
        )
        visible = [m for m in candidates if cls.is_visible_to(m, user)]
        return sorted(visible, key=audience.inbox_sort_key)

    @staticmethod
    def _recipient_row(message: AdminMessage, user) -> AdminMessageRecipient:
        row, _ = AdminMessageRecipient.objects.get_or_create(
            message=message, recipient=user,
            defaults={
                "recipient_email": user.email,
                "recipient_name":  user.display_name,
                "recipient_type":  user.user_type,
                "delivery_status": Delivery.DELIVERED,
                "delivered_at":    timezone.now(),
            },
        )
        return row

    @classmethod
    @transaction.atomic
    def mark_read(cls, message: AdminMessage, user) -> AdminMessageRecipient:
        row = cls._recipient_row(message, user)
        if row.read_at is None:
            row.read_at = timezone.now()
            if row.delivery_status in (Delivery.PENDING, Delivery.SENT):
                row.delivery_status = Delivery.DELIVERED
                row.delivered_at = row.delivered_at or row.read_at
            row.save(update_fields=["read_at", "delivery_status", "delivered_at"])
            AdminMessage.objects.filter(pk=message.pk).update(read_count=F("read_count") + 1)
        return row

    @classmethod
    @transaction.atomic
    def mark_clicked(cls, message: AdminMessage, user) -> AdminMessageRecipient:
        row = cls.mark_read(message, user)
        if row.clicked_at is None:
            row.clicked_at = timezone.now()
            row.save(update_fields=["clicked_at"])
            AdminMessage.objects.filter(pk=message.pk).update(click_count=F("click_count") + 1)
        return row

    @classmethod
    def dismiss(cls, message: AdminMessage, user) -> AdminMessageRecipient:
        row = cls._recipient_row(message, user)
        if not row.is_dismissed:
            row.is_dismissed = True
            row.dismissed_at = timezone.now()
            row.save(update_fields=["is_dismissed", "dismissed_at"])
        return row
