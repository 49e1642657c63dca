"""
federation/views/notification_views.py
─────────────────────────────────────────────────────────────────────
In-app notifications and per-type preferences.
"""
from __future__ import annotations

from django.db.models import Count
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import Notification, User
from ..pagination import paginated
from ..permissions import IsFederationAdmin
from ..serializers import NotificationSerializer, SendNotificationSerializer
from ..services.notification_service import notify, notify_many


class NotificationListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Notification.objects.filter(user=request.user)
        if request.query_params.get("unread") in ("true", "1"):
            qs = qs.filter(is_read=False)
        if request.query_params.get("type"):
            qs = qs.filter(type=request.query_params["type"])
        return paginated(request, qs, NotificationSerializer, self)


class NotificationStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Notification.objects.filter(user=request.user).order_by()
        return api_response({
            "total":   qs.count(),
            "unread":  qs.filter(is_read=False).count(),
            "by_type": dict(qs.values_list("type").annotate(n=Count("id"))),
        })


class NotificationPreferencesView(APIView):
    """Preferences map notification type → enabled flag."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        prefs = request.user.notification_preferences or {}
        return api_response({t: prefs.get(t, True) is not False for t in Notification.NotificationType.values})

    def patch(self, request):
        unknown = set(request.data) - set(Notification.NotificationType.values)
        if unknown:
            raise ValidationError({"preferences": [f"Unknown notification types: {', '.join(sorted(unknown))}"]})
        prefs = dict(request.user.notification_preferences or {})
        prefs.update({key: bool(value) for key, value in request.data.items()})
        request.user.notification_preferences = prefs
        request.user.save(update_fields=["notification_preferences"])
        return api_response(prefs, "Preferences updated")

    put = patch


class NotificationReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        notification = get_object_or_404(Notification, pk=pk, user=request.user)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at"])
        return api_response(NotificationSerializer(notification).data, "Marked as read")


class NotificationReadAllView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        updated = Notification.objects.filter(user=request.user, is_read=False).update(
            is_read=True, read_at=timezone.now(),
        )
        return api_response({"updated": updated}, "All notifications marked as read")


class NotificationDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def delete(self, request, pk):
        get_object_or_404(Notification, pk=pk, user=request.user).delete()
        return api_response(message="Notification deleted")


# ── Admin ─────────────────────────────────────────────────────────

class SendNotificationView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request):
        serializer = SendNotificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if not data.get("user_id"):
            raise ValidationError({"user_id": ["This field is required."]})
        user = get_object_or_404(User, pk=data["user_id"], is_active=True)
        notification = notify(
            user, data["type"], data["title"], data["message"],
            priority=data.get("priority", "normal"),
            action_url=data.get("action_url", ""),
            respect_preferences=False,
        )
        return api_response(NotificationSerializer(notification).data, "Notification sent", status.HTTP_201_CREATED)


class SystemBroadcastNotificationView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request):
        serializer = SendNotificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        sent = notify_many(
            User.objects.filter(is_active=True),
            data["type"], data["title"], data["message"],
            priority=data["priority"],
            action_url=data.get("action_url", ""),
        )
        return api_response({"sent": sent}, f"Notification sent to {sent} users", status.HTTP_201_CREATED)
