"""
federation/management/commands/process_scheduled_messages.py
────────────────────────────────────────────────────────────────────
Send every scheduled admin broadcast whose send time has passed.

Usage:
  python manage.py process_scheduled_messages
  python manage.py process_scheduled_messages --dry-run   # list only

Celery beat runs the same job every 5 minutes; this command is for
hosts without a worker, e.g. a plain cron entry:
  */5 * * * * cd /path/project && python manage.py process_scheduled_messages
"""

import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from federation.models import AdminMessage
from federation.services.broadcast_service import BroadcastService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Send scheduled admin broadcasts that are due"

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="List due messages without sending")

    def handle(self, *args, **options):
        now = timezone.now()
        due = AdminMessage.objects.filter(
            status=AdminMessage.Status.SCHEDULED, scheduled_send_at__lte=now,
        ).order_by("scheduled_send_at")

        if not due.exists():
            self.stdout.write(self.style.NOTICE("No scheduled messages are due."))
            return

        if options["dry_run"]:
            for message in due:
                self.stdout.write(f"  [DRY-RUN] #{message.pk} {message.title}  ({message.scheduled_send_at:%Y-%m-%d %H:%M})")
            self.stdout.write(self.style.WARNING(f"  [DRY-RUN] {due.count()} message(s) would be sent."))
            return

        report = BroadcastService.process_scheduled(now)
        for err in report.errors:
            self.stdout.write(self.style.ERROR(f"  #{err['message_id']}: {err['error']}"))

        self.stdout.write("─" * 50)
        self.stdout.write(self.style.SUCCESS(f"Sent {report.processed}, failed {report.failed}"))
