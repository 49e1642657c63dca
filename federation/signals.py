"""
signals.py
─────────────────────────────────────────────────────────────────────
Auto-notification signals: registration confirmed, payment completed,
match scheduled. Also drops the cached admin dashboard numbers when
the figures behind them change.

Registered in apps.py:
    class FederationConfig(AppConfig):
        def ready(self):
            import federation.signals  # noqa: F401
"""
from __future__ import annotations

import logging

from django.core.cache import cache
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from .models import Club, Match, Notification, Payment, Tournament, TournamentRegistration, User
from .services.notification_service import notify
from .services.stats_service import DASHBOARD_CACHE_KEY

logger = logging.getLogger(__name__)


def _cache_old_status(model, instance) -> None:
    if instance.pk and not instance._state.adding:
        instance._old_status = model.objects.filter(pk=instance.pk).values_list("status", flat=True).first()
    else:
        instance._old_status = None


# ────────────────────────────────────────────────────────────────────
#  Signal 1: registration confirmed → notify player
# ────────────────────────────────────────────────────────────────────

@receiver(pre_save, sender=TournamentRegistration)
def _registration_old_status(sender, instance, **kwargs):
    _cache_old_status(TournamentRegistration, instance)


@receiver(post_save, sender=TournamentRegistration)
def on_registration_confirmed(sender, instance: TournamentRegistration, created: bool, **kwargs):
    old = getattr(instance, "_old_status", None)
    if instance.status != TournamentRegistration.Status.CONFIRMED or old == instance.status:
        return

    tournament = instance.tournament
    notify(
        instance.player,
        Notification.NotificationType.TOURNAMENT_REGISTRATION,
        f"Registration confirmed: {tournament.name}",
        f"You are confirmed for {tournament.name} starting {tournament.start_date:%Y-%m-%d} "
        f"in {tournament.city}, {tournament.state}.",
        priority="high",
        related=tournament,
        action_url=f"/tournaments/{tournament.pk}",
    )


# ────────────────────────────────────────────────────────────────────
#  Signal 2: payment completed → notify payer
# ────────────────────────────────────────────────────────────────────

@receiver(pre_save, sender=Payment)
def _payment_old_status(sender, instance, **kwargs):
    _cache_old_status(Payment, instance)


@receiver(post_save, sender=Payment)
def on_payment_completed(sender, instance: Payment, created: bool, **kwargs):
    old = getattr(instance, "_old_status", None)
    if instance.status == old:
        return
    if instance.status in (Payment.Status.COMPLETED, Payment.Status.REFUNDED):
        cache.delete(DASHBOARD_CACHE_KEY)
    if instance.status != Payment.Status.COMPLETED:
        return

    notify(
        instance.user,
        Notification.NotificationType.PAYMENT_CONFIRMATION,
        "Payment received",
        f"We received your payment of {instance.amount:,.2f} {instance.currency} "
        f"({instance.get_payment_type_display()}).",
        related=instance,
        action_url=f"/payments/{instance.pk}",
    )


# ────────────────────────────────────────────────────────────────────
#  Signal 3: match scheduled → notify both sides
# ────────────────────────────────────────────────────────────────────

@receiver(post_save, sender=Match)
def on_match_created(sender, instance: Match, created: bool, **kwargs):
    if not created:
        return

    when = f" at {instance.scheduled_time:%Y-%m-%d %H:%M}" if instance.scheduled_time else ""
    court = f" on {instance.court.name}" if instance.court_id else ""
    players = {
        p.pk: p
        for p in (instance.player1, instance.player2, instance.player1_partner, instance.player2_partner)
        if p is not None
    }
    for player in players.values():
        opponent = instance.player2 if player.pk in (instance.player1_id, instance.player1_partner_id) \
            else instance.player1
        notify(
            player,
            Notification.NotificationType.MATCH_SCHEDULE,
            f"Match #{instance.match_number} scheduled",
            f"{instance.tournament.name}: you play {opponent.display_name}{when}{court}.",
            related=instance,
            action_url=f"/tournaments/{instance.tournament_id}/matches",
        )


# ────────────────────────────────────────────────────────────────────
#  Signal 4: dashboard cache invalidation
# ────────────────────────────────────────────────────────────────────

@receiver(post_save, sender=User)
@receiver(post_delete, sender=User)
@receiver(post_save, sender=Club)
@receiver(post_delete, sender=Club)
@receiver(post_save, sender=Tournament)
@receiver(post_delete, sender=Tournament)
def invalidate_dashboard(sender, **kwargs):
    # users are saved on every login; only new or removed ones move the numbers
    if kwargs.get("created", True) or sender is not User:
        cache.delete(DASHBOARD_CACHE_KEY)
