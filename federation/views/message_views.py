"""
federation/views/message_views.py
─────────────────────────────────────────────────────────────────────
User-to-user messages plus admin system messages.
"""
from __future__ import annotations

import logging

from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import Message, User
from ..pagination import paginated
from ..permissions import IsFederationAdmin, is_federation_admin
from ..serializers import BroadcastDirectMessageSerializer, MessageSerializer

logger = logging.getLogger(__name__)


def _truthy(value) -> bool:
    return str(value).lower() in ("1", "true", "yes")


def _own_message(request, pk) -> Message:
    message = get_object_or_404(Message.objects.select_related("sender", "recipient"), pk=pk)
    if request.user.pk not in (message.recipient_id, message.sender_id):
        raise PermissionDenied("This message is not yours.")
    return message


# ──────────────────────────────────────────────────────────────────
#  Inbox / sent
# ──────────────────────────────────────────────────────────────────
class MessageListView(APIView):
    """GET → inbox, POST → send."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = (
            Message.objects.select_related("sender", "recipient")
            .filter(recipient=request.user)
            .exclude(status=Message.Status.DELETED)
        )
        params = request.query_params
        if _truthy(params.get("unread")):
            qs = qs.filter(is_read=False)
        if _truthy(params.get("starred")):
            qs = qs.filter(is_starred=True)
        qs = qs.filter(is_archived=_truthy(params.get("archived")))
        if params.get("category"):
            qs = qs.filter(category=params["category"])
        return paginated(request, qs, MessageSerializer, self)

    def post(self, request):
        serializer = MessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if serializer.validated_data["recipient"].pk == request.user.pk:
            raise ValidationError({"recipient_id": ["You cannot message yourself."]})
        message = serializer.save(
            sender=request.user,
            sender_type=Message.SenderType.ADMIN if is_federation_admin(request.user) else Message.SenderType.USER,
        )
        return api_response(MessageSerializer(message).data, "Message sent", status.HTTP_201_CREATED)


class SentMessagesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Message.objects.select_related("sender", "recipient").filter(sender=request.user)
        if request.query_params.get("category"):
            qs = qs.filter(category=request.query_params["category"])
        return paginated(request, qs, MessageSerializer, self)


class UnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        count = Message.objects.filter(
            recipient=request.user, is_read=False, is_archived=False,
        ).exclude(status=Message.Status.DELETED).count()
        return api_response({"unread": count})


class MessageDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        return api_response(MessageSerializer(_own_message(request, pk)).data)

    def delete(self, request, pk):
        message = get_object_or_404(Message, pk=pk, recipient=request.user)
        message.status = Message.Status.DELETED
        message.save(update_fields=["status"])
        return api_response(message="Message deleted")


# ──────────────────────────────────────────────────────────────────
#  Flags
# ──────────────────────────────────────────────────────────────────
class MessageReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        message = get_object_or_404(Message, pk=pk, recipient=request.user)
        if not message.is_read:
            message.is_read = True
            message.read_at = timezone.now()
            message.status  = Message.Status.READ
            message.save(update_fields=["is_read", "read_at", "status"])
        return api_response(MessageSerializer(message).data, "Marked as read")


class MessageReadAllView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        updated = Message.objects.filter(recipient=request.user, is_read=False).exclude(
            status=Message.Status.DELETED,
        ).update(is_read=True, read_at=timezone.now(), status=Message.Status.READ)
        return api_response({"updated": updated}, "All messages marked as read")


class MessageStarView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        message = get_object_or_404(Message, pk=pk, recipient=request.user)
        message.is_starred = not message.is_starred
        message.save(update_fields=["is_starred"])
        return api_response(MessageSerializer(message).data, "Starred" if message.is_starred else "Unstarred")


class MessageArchiveView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        message = get_object_or_404(Message, pk=pk, recipient=request.user)
        message.is_archived = not message.is_archived
        message.status = Message.Status.ARCHIVED if message.is_archived else (
            Message.Status.READ if message.is_read else Message.Status.DELIVERED
        )
        message.save(update_fields=["is_archived", "status"])
        return api_response(MessageSerializer(message).data, "Archived" if message.is_archived else "Restored")


# ──────────────────────────────────────────────────────────────────
#  Admin
# ──────────────────────────────────────────────────────────────────
class SystemMessageView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request):
        serializer = MessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = serializer.save(
            sender=request.user,
            sender_type=Message.SenderType.SYSTEM,
            message_type=Message.MessageType.SYSTEM_NOTIFICATION,
            is_automated=True,
        )
        return api_response(MessageSerializer(message).data, "System message sent", status.HTTP_201_CREATED)


class BroadcastDirectMessageView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request):
        serializer = BroadcastDirectMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        recipients = User.objects.filter(is_active=True, user_type__in=data["user_types"]).exclude(pk=request.user.pk)
        rows = [
            Message(
                subject=data["subject"],
                content=data["content"],
                priority=data["priority"],
                message_type=Message.MessageType.ANNOUNCEMENT_NOTIFICATION,
                category=Message.Category.SYSTEM,
                sender=request.user,
                sender_type=Message.SenderType.ADMIN,
                recipient=user,
                is_automated=True,
            )
            for user in recipients
        ]
        Message.objects.bulk_create(rows, batch_size=500)
        logger.info("Direct broadcast by %s to %s: %d messages", request.user.username,
                    ",".join(data["user_types"]), len(rows))
        return api_response({"sent": len(rows)}, f"Message sent to {len(rows)} users", status.HTTP_201_CREATED)


class MessageStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        received = Message.objects.filter(recipient=request.user).exclude(status=Message.Status.DELETED).order_by()
        return api_response({
            "received":    received.count(),
            "unread":      received.filter(is_read=False).count(),
            "starred":     received.filter(is_starred=True).count(),
            "archived":    received.filter(is_archived=True).count(),
            "sent":        Message.objects.filter(sender=request.user).count(),
            "by_category": dict(received.values_list("category").annotate(n=Count("id"))),
            "from_system": received.filter(Q(sender_type=Message.SenderType.SYSTEM) | Q(is_automated=True)).count(),
        })
