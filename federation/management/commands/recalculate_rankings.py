"""
federation/management/commands/recalculate_rankings.py
────────────────────────────────────────────────────────────────────
Rebuild every ranking bucket (category × NRTP level × state, plus the
national bucket) for one ranking period.

Usage:
  python manage.py recalculate_rankings                 # current year
  python manage.py recalculate_rankings --period 2025
"""

import logging
import re

from django.core.management.base import BaseCommand, CommandError

from federation.services.ranking_service import RankingService, current_period

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Recalculate all rankings for a period"

    def add_arguments(self, parser):
        parser.add_argument("--period", help="Ranking period, YYYY (default: current year)")

    def handle(self, *args, **options):
        period = options["period"] or current_period()
        if not re.fullmatch(r"\d{4}", period):
            raise CommandError(f"Invalid period {period!r}; use YYYY.")

        self.stdout.write(self.style.WARNING(f"Recalculating rankings for {period}\n{'─' * 50}"))
        buckets = RankingService.recalculate_all(period)
        logger.info("Rankings recalculated for %s: %d buckets", period, buckets)
        self.stdout.write(self.style.SUCCESS(f"{buckets} ranking bucket(s) rebuilt for {period}"))
