"""
federation/views/banner_views.py
─────────────────────────────────────────────────────────────────────
Banners: public carousel / active lists with view and click tracking,
admin CRUD, ordering and analytics.
"""
from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import Banner
from ..pagination import paginated
from ..permissions import IsFederationAdmin
from ..serializers import BannerPositionSerializer, BannerSerializer, PublicBannerSerializer
from ..services import banner_service

logger = logging.getLogger(__name__)


def _live_banner(pk) -> Banner:
    banner = get_object_or_404(Banner, pk=pk)
    if not banner.is_live():
        raise NotFound("Banner not found.")
    return banner


# ──────────────────────────────────────────────────────────────────
#  Public
# ──────────────────────────────────────────────────────────────────
class CarouselView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        banners = banner_service.carousel(request.user)
        return api_response(PublicBannerSerializer(banners, many=True).data)


class ActiveBannersView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        display_type = request.query_params.get("display_type", "")
        if display_type and display_type not in Banner.DisplayType.values:
            display_type = ""
        banners = banner_service.active_for(request.user, display_type)
        return api_response(PublicBannerSerializer(banners, many=True).data)


class PublicBannerDetailView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, pk):
        return api_response(PublicBannerSerializer(_live_banner(pk)).data)


class BannerViewTrackView(APIView):
    permission_classes = [AllowAny]

    def post(self, request, pk):
        banner = banner_service.record(_live_banner(pk), "view_count")
        return api_response({"view_count": banner.view_count})


class BannerClickTrackView(APIView):
    permission_classes = [AllowAny]

    def post(self, request, pk):
        banner = banner_service.record(_live_banner(pk), "click_count")
        return api_response({"click_count": banner.click_count, "action_url": banner.action_url})


# ──────────────────────────────────────────────────────────────────
#  Admin
# ──────────────────────────────────────────────────────────────────
class BannerAdminListView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        qs = Banner.objects.select_related("tournament", "club")
        params = request.query_params
        for field in ("display_type", "target_audience"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        if params.get("is_active") in ("true", "false"):
            qs = qs.filter(is_active=params["is_active"] == "true")
        return paginated(request, qs, BannerSerializer, self)

    def post(self, request):
        serializer = BannerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        banner = serializer.save(created_by=request.user)
        logger.info("Banner %s created by %s", banner.pk, request.user.username)
        return api_response(BannerSerializer(banner).data, "Banner created", status.HTTP_201_CREATED)


class BannerAdminDetailView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request, pk):
        return api_response(BannerSerializer(get_object_or_404(Banner, pk=pk)).data)

    def patch(self, request, pk):
        banner = get_object_or_404(Banner, pk=pk)
        serializer = BannerSerializer(banner, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(serializer.data, "Banner updated")

    put = patch

    def delete(self, request, pk):
        get_object_or_404(Banner, pk=pk).delete()
        return api_response(message="Banner deleted")


class BannerToggleView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        banner = banner_service.toggle(get_object_or_404(Banner, pk=pk))
        return api_response(BannerSerializer(banner).data, "Banner activated" if banner.is_active else "Banner paused")


class BannerPositionView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        serializer = BannerPositionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        banner = banner_service.move(get_object_or_404(Banner, pk=pk), serializer.validated_data["position"])
        return api_response(BannerSerializer(banner).data, "Position updated")


class BannerAnalyticsView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        return api_response(banner_service.analytics())
