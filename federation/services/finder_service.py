"""
services/finder_service.py
─────────────────────────────────────────────────────────────────────
Player finder (preferences, nearby search by great-circle distance,
match requests) and saved coach searches with scored results.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from ..constants import SKILL_LEVELS
from ..exceptions import BusinessRuleViolation, ConflictError
from ..models import CoachSearch, FinderPreference, MatchRequest, Notification, User, UserType
from .notification_service import notify

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE   = 111.32
TOP_MATCHES     = 3
SAVED_SEARCHES  = 10


def haversine_km(lat1, lon1, lat2, lon2) -> float:
    """Great-circle distance in kilometres between two (lat, lon) points."""
    lat1, lon1, lat2, lon2 = (math.radians(float(v)) for v in (lat1, lon1, lat2, lon2))
    a = (math.sin((lat2 - lat1) / 2) ** 2
         + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2)
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def age_on(born: Optional[date], today: date) -> Optional[int]:
    if born is None:
        return None
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


@dataclass
class Nearby:
    user:        User
    distance_km: float


# ════════════════════════════════════════════════════════════════════
#  Player finder
# ════════════════════════════════════════════════════════════════════

class PlayerFinderService:

    @staticmethod
    def preferences(user) -> FinderPreference:
        if user.user_type != UserType.PLAYER:
            raise PermissionDenied("The player finder is only available to players.")
        prefs, _ = FinderPreference.objects.get_or_create(user=user)
        return prefs

    @classmethod
    def update_preferences(cls, user, **changes) -> FinderPreference:
        prefs = cls.preferences(user)
        for field, value in changes.items():
            setattr(prefs, field, value)

        low, high = prefs.skill_level_min, prefs.skill_level_max
        if low and high and SKILL_LEVELS.index(low) > SKILL_LEVELS.index(high):
            raise ValidationError({"skill_level_min": ["Cannot be above skill_level_max."]})
        if prefs.age_min and prefs.age_max and prefs.age_min > prefs.age_max:
            raise ValidationError({"age_min": ["Cannot be above age_max."]})
        prefs.save()
        return prefs

    @classmethod
    def toggle(cls, user) -> FinderPreference:
        prefs = cls.preferences(user)
        prefs.is_active = not prefs.is_active
        prefs.save(update_fields=["is_active", "updated_at"])
        return prefs

    @staticmethod
    def set_visibility(user, visible: bool) -> User:
        user.can_be_found = visible
        user.save(update_fields=["can_be_found"])
        return user

    # ── Search ───────────────────────────────────────────────────────
    @classmethod
    def nearby(cls, user, radius_km: Optional[int] = None, limit: int = 50) -> List[Nearby]:
        """
        Findable players within radius_km of the searcher, nearest first,
        narrowed by the searcher's skill, gender and age preferences.
        """
        prefs = cls.preferences(user)
        if user.latitude is None or user.longitude is None:
            raise BusinessRuleViolation("Set your location on your profile to search nearby players.")
        radius = radius_km or prefs.search_radius_km

        # bounding box first, exact distance in Python
        lat, lon = float(user.latitude), float(user.longitude)
        dlat = radius / KM_PER_DEGREE
        dlon = radius / (KM_PER_DEGREE * max(math.cos(math.radians(lat)), 0.01))
        qs = User.objects.filter(
            user_type=UserType.PLAYER, is_active=True, can_be_found=True,
            latitude__range=(lat - dlat, lat + dlat), longitude__range=(lon - dlon, lon + dlon),
        ).exclude(pk=user.pk)

        if prefs.skill_level_min or prefs.skill_level_max:
            low  = SKILL_LEVELS.index(prefs.skill_level_min) if prefs.skill_level_min else 0
            high = SKILL_LEVELS.index(prefs.skill_level_max) if prefs.skill_level_max else len(SKILL_LEVELS) - 1
            qs = qs.filter(skill_level__in=SKILL_LEVELS[low:high + 1])
        if prefs.preferred_gender:
            qs = qs.filter(gender=prefs.preferred_gender)

        today = timezone.localdate()
        found = []
        for candidate in qs:
            age = age_on(candidate.date_of_birth, today)
            if prefs.age_min and (age is None or age < prefs.age_min):
                continue
            if prefs.age_max and (age is None or age > prefs.age_max):
                continue
            distance = haversine_km(lat, lon, candidate.latitude, candidate.longitude)
            if distance <= radius:
                found.append(Nearby(candidate, round(distance, 2)))
        found.sort(key=lambda n: (n.distance_km, n.user.username))

        FinderPreference.objects.filter(pk=prefs.pk).update(
            searches_count=F("searches_count") + 1, last_search_at=timezone.now(),
        )
        return found[:limit]

    # ── Match requests ───────────────────────────────────────────────
    @classmethod
    @transaction.atomic
    def send_request(cls, sender, receiver, message: str = "", match_type: str = "any",
                     proposed_time=None, club=None) -> MatchRequest:
        cls.preferences(sender)
        if receiver.pk == sender.pk:
            raise ValidationError({"receiver_id": ["You cannot send a request to yourself."]})
        if receiver.user_type != UserType.PLAYER or not receiver.is_active or not receiver.can_be_found:
            raise BusinessRuleViolation("This player is not accepting match requests.")
        if MatchRequest.objects.filter(sender=sender, receiver=receiver, status=MatchRequest.Status.PENDING).exists():
            raise ConflictError("You already have a pending request with this player.")

        request = MatchRequest.objects.create(
            sender=sender, receiver=receiver, message=message, match_type=match_type,
            proposed_time=proposed_time, club=club,
        )
        FinderPreference.objects.filter(user=sender).update(requests_sent=F("requests_sent") + 1)
        receiver_prefs, _ = FinderPreference.objects.get_or_create(user=receiver)
        FinderPreference.objects.filter(pk=receiver_prefs.pk).update(requests_received=F("requests_received") + 1)

        if receiver_prefs.auto_notify:
            notify(
                receiver, Notification.NotificationType.PLAYER_MATCH_REQUEST,
                "New match request",
                f"{sender.display_name} wants to play with you.",
                related=request, action_url=f"/finder/requests/{request.pk}",
            )
        logger.info("Match request %s: %s → %s", request.pk, sender.username, receiver.username)
        return request

    @classmethod
    def request_top_matches(cls, sender, message: str = "") -> List[MatchRequest]:
        """Send the same request to the nearest players not already asked."""
        asked = set(MatchRequest.objects.filter(
            sender=sender, status=MatchRequest.Status.PENDING,
        ).values_list("receiver_id", flat=True))
        sent = []
        for hit in cls.nearby(sender):
            if hit.user.pk in asked:
                continue
            sent.append(cls.send_request(sender, hit.user, message))
            if len(sent) == TOP_MATCHES:
                break
        return sent

    @staticmethod
    @transaction.atomic
    def respond(request: MatchRequest, actor, accept: bool, message: str = "") -> MatchRequest:
        if request.receiver_id != actor.pk:
            raise PermissionDenied("Only the invited player can answer this request.")
        if request.status != MatchRequest.Status.PENDING:
            raise ConflictError(f"This request is already {request.status}.")

        request.status           = MatchRequest.Status.ACCEPTED if accept else MatchRequest.Status.DECLINED
        request.response_message = message
        request.responded_at     = timezone.now()
        request.save(update_fields=["status", "response_message", "responded_at"])

        if accept:
            FinderPreference.objects.filter(user_id__in=(request.sender_id, request.receiver_id)).update(
                matches_made=F("matches_made") + 1,
            )
        notify(
            request.sender, Notification.NotificationType.PLAYER_MATCH_REQUEST,
            "Match request accepted" if accept else "Match request declined",
            f"{actor.display_name} {'accepted' if accept else 'declined'} your match request.",
            related=request,
        )
        return request

    @staticmethod
    def cancel(request: MatchRequest, actor) -> MatchRequest:
        if request.sender_id != actor.pk:
            raise PermissionDenied("Only the sender can cancel this request.")
        if request.status != MatchRequest.Status.PENDING:
            raise ConflictError(f"This request is already {request.status}.")
        request.status = MatchRequest.Status.CANCELLED
        request.save(update_fields=["status"])
        return request

    @classmethod
    def stats(cls, user) -> Dict:
        prefs = cls.preferences(user)
        pending = MatchRequest.Status.PENDING
        return {
            "searches_count":    prefs.searches_count,
            "requests_sent":     prefs.requests_sent,
            "requests_received": prefs.requests_received,
            "matches_made":      prefs.matches_made,
            "last_search_at":    prefs.last_search_at,
            "pending_incoming":  MatchRequest.objects.filter(receiver=user, status=pending).count(),
            "pending_outgoing":  MatchRequest.objects.filter(sender=user, status=pending).count(),
            "is_active":         prefs.is_active,
            "visible":           user.can_be_found,
        }


# ════════════════════════════════════════════════════════════════════
#  Coach finder
# ════════════════════════════════════════════════════════════════════

CRITERIA = ("state", "city", "specializations", "max_hourly_rate", "min_rating",
            "min_experience", "available_for_lessons")


def coach_score(coach: User, search: CoachSearch) -> int:
    """
    Rating is worth up to 50, each wanted specialization 10, the same
    city 20 (or the same state 10) and each year of experience 1, up to 10.
    """
    score = int(Decimal(coach.rating or 0) * 10)
    wanted = {s.lower() for s in search.specializations or []}
    score += 10 * len(wanted & {s.lower() for s in coach.specializations or []})
    if search.city and coach.city.lower() == search.city.lower():
        score += 20
    elif search.state and coach.state == search.state:
        score += 10
    score += min(coach.coaching_experience or 0, 10)
    return score


class CoachFinderService:

    @staticmethod
    @transaction.atomic
    def save_search(user, **criteria) -> CoachSearch:
        """Create the user's active search, or update it in place."""
        search = CoachSearch.objects.select_for_update().filter(user=user, is_active=True).first()
        if search is None:
            search = CoachSearch(user=user)
        for field in CRITERIA:
            setattr(search, field, criteria.get(field, CoachSearch._meta.get_field(field).get_default()))
        search.save()
        return search

    @staticmethod
    def mine(user):
        return CoachSearch.objects.filter(user=user)[:SAVED_SEARCHES]

    @staticmethod
    def run(search: CoachSearch, limit: int = 20) -> List[Dict]:
        qs = User.objects.filter(user_type=UserType.COACH, is_active=True, is_findable=True).exclude(pk=search.user_id)
        if search.max_hourly_rate is not None:
            qs = qs.filter(hourly_rate__lte=search.max_hourly_rate)
        if search.min_rating is not None:
            qs = qs.filter(rating__gte=search.min_rating)
        if search.min_experience:
            qs = qs.filter(coaching_experience__gte=search.min_experience)
        if search.available_for_lessons is not None:
            qs = qs.filter(available_for_lessons=search.available_for_lessons)

        scored = sorted(
            ((coach_score(coach, search), coach) for coach in qs),
            key=lambda pair: (-pair[0], -pair[1].rating, pair[1].username),
        )
        search.results_count = len(scored)
        search.last_run_at   = timezone.now()
        search.save(update_fields=["results_count", "last_run_at", "updated_at"])
        return [{"coach": coach, "score": score} for score, coach in scored[:limit]]

    @staticmethod
    def stats(user) -> Dict:
        searches = CoachSearch.objects.filter(user=user)
        last = searches.exclude(last_run_at=None).order_by("-last_run_at").first()
        return {
            "saved_searches": searches.count(),
            "active_search":  searches.filter(is_active=True).values_list("pk", flat=True).first(),
            "last_run_at":    last.last_run_at if last else None,
            "last_results":   last.results_count if last else 0,
            "findable_coaches": User.objects.filter(
                user_type=UserType.COACH, is_active=True, is_findable=True,
            ).count(),
        }
