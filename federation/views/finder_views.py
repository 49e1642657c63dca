"""
federation/views/finder_views.py
─────────────────────────────────────────────────────────────────────
Player finder (preferences, nearby players, match requests) and saved
coach searches.
"""
from __future__ import annotations

import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import CoachSearch, MatchRequest, User
from ..pagination import paginated
from ..serializers import (
    CoachSearchSerializer, FinderPreferenceSerializer, MatchRequestSerializer, MatchResponseSerializer,
    NearbyPlayerSerializer, ScoredCoachSerializer, SendMatchRequestSerializer,
)
from ..services.finder_service import CoachFinderService, PlayerFinderService

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
#  Preferences & visibility
# ──────────────────────────────────────────────────────────────────
class FinderPreferencesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        prefs = PlayerFinderService.preferences(request.user)
        return api_response(FinderPreferenceSerializer(prefs).data)

    def put(self, request):
        prefs = PlayerFinderService.preferences(request.user)
        serializer = FinderPreferenceSerializer(prefs, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        prefs = PlayerFinderService.update_preferences(request.user, **serializer.validated_data)
        return api_response(FinderPreferenceSerializer(prefs).data, "Preferences saved")

    patch = put


class FinderToggleView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        prefs = PlayerFinderService.toggle(request.user)
        message = "Finder enabled" if prefs.is_active else "Finder paused"
        return api_response({"is_active": prefs.is_active}, message)


class FinderVisibilityView(APIView):
    """Whether other players can find me."""
    permission_classes = [IsAuthenticated]

    def put(self, request):
        if "visible" not in request.data:
            raise ValidationError({"visible": ["This field is required."]})
        visible = str(request.data["visible"]).lower() in ("1", "true", "yes")
        user = PlayerFinderService.set_visibility(request.user, visible)
        return api_response({"visible": user.can_be_found}, "Visibility updated")


class FinderStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return api_response(PlayerFinderService.stats(request.user))


# ──────────────────────────────────────────────────────────────────
#  Nearby search
# ──────────────────────────────────────────────────────────────────
class NearbyPlayersView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        radius = request.query_params.get("radius_km")
        if radius is not None:
            try:
                radius = int(radius)
            except ValueError:
                raise ValidationError({"radius_km": ["Must be a whole number of kilometres."]})
            if not 1 <= radius <= 500:
                raise ValidationError({"radius_km": ["Must be between 1 and 500."]})
        hits = PlayerFinderService.nearby(request.user, radius)
        return api_response({"count": len(hits), "results": NearbyPlayerSerializer(hits, many=True).data})


# ──────────────────────────────────────────────────────────────────
#  Match requests
# ──────────────────────────────────────────────────────────────────
class MatchRequestListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        box = request.query_params.get("box", "all")
        qs = MatchRequest.objects.select_related("sender", "receiver")
        if box == "incoming":
            qs = qs.filter(receiver=request.user)
        elif box == "outgoing":
            qs = qs.filter(sender=request.user)
        else:
            qs = qs.filter(Q(sender=request.user) | Q(receiver=request.user))
        if request.query_params.get("status"):
            qs = qs.filter(status=request.query_params["status"])
        return paginated(request, qs, MatchRequestSerializer, self)

    def post(self, request):
        serializer = SendMatchRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        receiver = get_object_or_404(User, pk=data.pop("receiver_id"))
        match_request = PlayerFinderService.send_request(request.user, receiver, **data)
        return api_response(MatchRequestSerializer(match_request).data, "Match request sent",
                            status.HTTP_201_CREATED)


class TopMatchesRequestView(APIView):
    """Send one request to the nearest few players at once."""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        sent = PlayerFinderService.request_top_matches(request.user, request.data.get("message", ""))
        return api_response(MatchRequestSerializer(sent, many=True).data,
                            f"{len(sent)} match request(s) sent", status.HTTP_201_CREATED)


class MatchRequestRespondView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        match_request = get_object_or_404(MatchRequest.objects.select_related("sender"), pk=pk)
        serializer = MatchResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        match_request = PlayerFinderService.respond(
            match_request, request.user, serializer.validated_data["accept"],
            serializer.validated_data.get("message", ""),
        )
        return api_response(MatchRequestSerializer(match_request).data, f"Request {match_request.status}")


class MatchRequestCancelView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        match_request = get_object_or_404(MatchRequest, pk=pk)
        match_request = PlayerFinderService.cancel(match_request, request.user)
        return api_response(MatchRequestSerializer(match_request).data, "Request cancelled")


# ──────────────────────────────────────────────────────────────────
#  Saved coach searches
# ──────────────────────────────────────────────────────────────────
class CoachSearchListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return api_response(CoachSearchSerializer(CoachFinderService.mine(request.user), many=True).data)

    def post(self, request):
        serializer = CoachSearchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        search = CoachFinderService.save_search(request.user, **serializer.validated_data)
        return api_response(CoachSearchSerializer(search).data, "Search saved", status.HTTP_201_CREATED)


class CoachSearchRunView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        search = get_object_or_404(CoachSearch, pk=pk, user=request.user)
        results = CoachFinderService.run(search)
        return api_response({
            "search":  CoachSearchSerializer(search).data,
            "results": ScoredCoachSerializer(results, many=True).data,
        })


class CoachSearchStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return api_response(CoachFinderService.stats(request.user))
