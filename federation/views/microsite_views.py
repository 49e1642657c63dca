"""
federation/views/microsite_views.py
─────────────────────────────────────────────────────────────────────
Admin moderation of club, partner and state microsites.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import MicrositeFlag
from ..pagination import paginated
from ..permissions import IsFederationAdmin
from ..serializers import (
    MicrositeBulkSerializer, MicrositeFlagSerializer, MicrositeSerializer, MicrositeStatusSerializer,
    ResolveFlagSerializer,
)
from ..services import microsite_service


def _get_microsite(pk):
    return get_object_or_404(microsite_service.microsites(), pk=pk)


class MicrositeListView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        params = request.query_params
        qs = microsite_service.listing(
            status=params.get("status", ""),
            user_type=params.get("user_type", ""),
            search=params.get("search", "").strip(),
        )
        return paginated(request, qs, MicrositeSerializer, self)


class MicrositeStatusView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        serializer = MicrositeStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        owner = microsite_service.set_status(
            _get_microsite(pk), serializer.validated_data["status"], request.user,
            serializer.validated_data.get("reason", ""),
        )
        return api_response(MicrositeSerializer(owner).data, f"Microsite is now {owner.microsite_status}")


class MicrositeFlagsView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request, pk):
        flags = microsite_service.flags_for(_get_microsite(pk), request.query_params.get("status"))
        return api_response(MicrositeFlagSerializer(flags, many=True).data)

    def post(self, request, pk):
        owner = _get_microsite(pk)
        serializer = MicrositeFlagSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        entry = microsite_service.flag(
            owner, request.user, data["flag_type"], data.get("severity", MicrositeFlag.Severity.MEDIUM),
            data["reason"], auto_action=data["auto_action"],
        )
        return api_response(MicrositeFlagSerializer(entry).data, "Flag recorded", status.HTTP_201_CREATED)


class MicrositeFlagResolveView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        entry = get_object_or_404(MicrositeFlag.objects.select_related("microsite"), pk=pk)
        serializer = ResolveFlagSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = microsite_service.resolve(entry, request.user, **serializer.validated_data)
        return api_response(MicrositeFlagSerializer(entry).data, f"Flag {entry.status}")


class MicrositeBulkActionView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request):
        serializer = MicrositeBulkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = microsite_service.bulk_action(data["user_ids"], data["action"], request.user,
                                               data.get("reason", ""))
        return api_response(result, f"{len(result['updated'])} microsite(s) updated")


class MicrositeAnalyticsView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        return api_response(microsite_service.analytics())
