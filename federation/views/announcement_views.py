"""
federation/views/announcement_views.py
─────────────────────────────────────────────────────────────────────
Public news board with admin authoring and audience notifications.
"""
from __future__ import annotations

import logging

from django.db.models import F, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from ..exceptions import ConflictError, api_response
from ..models import Announcement
from ..pagination import paginated
from ..permissions import IsFederationAdmin
from ..serializers import AnnouncementSerializer
from ..services.audience import percentage
from ..services.notification_service import notify_announcement_audience

logger = logging.getLogger(__name__)


def _active_q(now) -> Q:
    return (
        Q(status=Announcement.Status.PUBLISHED)
        & (Q(publish_date__isnull=True) | Q(publish_date__lte=now))
        & (Q(expiry_date__isnull=True) | Q(expiry_date__gt=now))
    )


# ──────────────────────────────────────────────────────────────────
#  Public board
# ──────────────────────────────────────────────────────────────────
class PublicAnnouncementListView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        qs = Announcement.objects.select_related("author").filter(_active_q(timezone.now()))
        if request.query_params.get("category"):
            qs = qs.filter(category=request.query_params["category"])
        user = request.user
        if user.is_authenticated:
            # the audience rules are per row, so filter in memory
            qs = [a for a in qs if a.can_be_viewed_by(user)]
        else:
            qs = [a for a in qs if a.target_audience == Announcement.Audience.ALL_MEMBERS and not a.target_states]
        return paginated(request, qs, AnnouncementSerializer, self)


class AnnouncementViewView(APIView):
    """Fetch one active announcement and count the view."""
    permission_classes = [AllowAny]

    def get(self, request, pk):
        announcement = get_object_or_404(Announcement.objects.select_related("author"), pk=pk)
        user = request.user
        visible = (announcement.can_be_viewed_by(user) if user.is_authenticated
                   else (announcement.is_active() and not announcement.target_states
                         and announcement.target_audience == Announcement.Audience.ALL_MEMBERS))
        if not visible:
            raise NotFound("Announcement not found.")
        Announcement.objects.filter(pk=pk).update(view_count=F("view_count") + 1)
        announcement.refresh_from_db(fields=["view_count"])
        return api_response(AnnouncementSerializer(announcement).data)


class AnnouncementClickView(APIView):
    permission_classes = [AllowAny]

    def post(self, request, pk):
        updated = Announcement.objects.filter(pk=pk).update(click_count=F("click_count") + 1)
        if not updated:
            raise NotFound("Announcement not found.")
        return api_response(message="Click recorded")


# ──────────────────────────────────────────────────────────────────
#  Admin authoring
# ──────────────────────────────────────────────────────────────────
class AnnouncementListView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        qs = Announcement.objects.select_related("author")
        params = request.query_params
        for field in ("status", "category", "priority"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        if params.get("search"):
            qs = qs.filter(Q(title__icontains=params["search"]) | Q(content__icontains=params["search"]))
        return paginated(request, qs, AnnouncementSerializer, self)

    def post(self, request):
        serializer = AnnouncementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        announcement = serializer.save(author=request.user)
        return api_response(AnnouncementSerializer(announcement).data, "Announcement created", status.HTTP_201_CREATED)


class AnnouncementDetailView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request, pk):
        return api_response(AnnouncementSerializer(get_object_or_404(Announcement, pk=pk)).data)

    def patch(self, request, pk):
        announcement = get_object_or_404(Announcement, pk=pk)
        serializer = AnnouncementSerializer(announcement, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(serializer.data, "Announcement updated")

    put = patch

    def delete(self, request, pk):
        get_object_or_404(Announcement, pk=pk).delete()
        return api_response(message="Announcement deleted")


class AnnouncementPublishView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        announcement = get_object_or_404(Announcement, pk=pk)
        if announcement.status == Announcement.Status.PUBLISHED:
            raise ConflictError("Announcement is already published.")

        now = timezone.now()
        if announcement.publish_date and announcement.publish_date > now:
            announcement.status = Announcement.Status.SCHEDULED
        else:
            announcement.status = Announcement.Status.PUBLISHED
            announcement.publish_date = now
        announcement.save(update_fields=["status", "publish_date", "updated_at"])

        notified = 0
        if announcement.send_notification and announcement.status == Announcement.Status.PUBLISHED:
            notified = notify_announcement_audience(announcement)
        logger.info("Announcement %s → %s (%d notified)", announcement.pk, announcement.status, notified)
        return api_response(
            {"announcement": AnnouncementSerializer(announcement).data, "notified": notified},
            f"Announcement {announcement.status}",
        )


class AnnouncementArchiveView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        announcement = get_object_or_404(Announcement, pk=pk)
        announcement.status = Announcement.Status.ARCHIVED
        announcement.save(update_fields=["status", "updated_at"])
        return api_response(AnnouncementSerializer(announcement).data, "Announcement archived")


class AnnouncementPinView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        announcement = get_object_or_404(Announcement, pk=pk)
        announcement.is_pinned = not announcement.is_pinned
        announcement.save(update_fields=["is_pinned", "updated_at"])
        return api_response(AnnouncementSerializer(announcement).data,
                            "Pinned" if announcement.is_pinned else "Unpinned")


class AnnouncementAnalyticsView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request, pk):
        a = get_object_or_404(Announcement, pk=pk)
        return api_response({
            "views":      a.view_count,
            "clicks":     a.click_count,
            "likes":      a.like_count,
            "click_rate": percentage(a.click_count, a.view_count),
            "active":     a.is_active(),
        })
