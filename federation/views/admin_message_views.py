"""
federation/views/admin_message_views.py
─────────────────────────────────────────────────────────────────────
Admin broadcasts: authoring, targeting preview, dispatch, analytics,
and the recipient side (inbox, read / click / dismiss).
"""
from __future__ import annotations

import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import AdminMessage
from ..pagination import paginated
from ..permissions import IsFederationAdmin
from ..serializers import (
    AdminMessageInboxSerializer, AdminMessageRecipientSerializer, AdminMessageSerializer,
    SendMessageSerializer,
)
from ..services.broadcast_service import TEMPLATES, BroadcastService
from ..tasks import send_broadcast_task

logger = logging.getLogger(__name__)


def _get_message(pk) -> AdminMessage:
    return get_object_or_404(AdminMessage, pk=pk)


# ════════════════════════════════════════════════════════════════════
#  Admin side
# ════════════════════════════════════════════════════════════════════

class AdminMessageListView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        qs = AdminMessage.objects.all()
        params = request.query_params
        for param, field in (("status", "status"), ("type", "message_type"), ("priority", "priority")):
            if params.get(param):
                qs = qs.filter(**{field: params[param]})
        q = params.get("search", "").strip()
        if q:
            qs = qs.filter(Q(title__icontains=q) | Q(content__icontains=q))
        return paginated(request, qs, AdminMessageSerializer, self)

    def post(self, request):
        serializer = AdminMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = serializer.save(sender=request.user, sender_name=request.user.display_name)
        logger.info("Broadcast %s drafted by %s", message.pk, request.user.username)
        return api_response(AdminMessageSerializer(message).data, "Message created", status.HTTP_201_CREATED)


class AdminMessageDetailView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request, pk):
        return api_response(AdminMessageSerializer(_get_message(pk)).data)

    def patch(self, request, pk):
        message = _get_message(pk)
        BroadcastService.ensure_editable(message)
        serializer = AdminMessageSerializer(message, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(serializer.data, "Message updated")

    put = patch

    def delete(self, request, pk):
        message = _get_message(pk)
        BroadcastService.ensure_editable(message)
        message.delete()
        return api_response(message="Message deleted")


class AdminMessagePreviewView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request, pk):
        return api_response(BroadcastService.preview(_get_message(pk)))


class AdminMessageSendView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        message = _get_message(pk)
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if not data["send_immediately"]:
            message = BroadcastService.schedule(message, data.get("scheduled_send_at"))
            return api_response(AdminMessageSerializer(message).data, "Message scheduled")

        if data["background"]:
            BroadcastService.ensure_editable(message)
            send_broadcast_task.delay(message.pk)
            return api_response({"message_id": message.pk}, "Message queued for sending", status.HTTP_202_ACCEPTED)

        message = BroadcastService.send(message)
        return api_response(
            AdminMessageSerializer(message).data,
            f"Message sent to {message.total_recipients} recipients",
        )


class AdminMessageCancelView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        message = BroadcastService.cancel(_get_message(pk))
        return api_response(AdminMessageSerializer(message).data, "Scheduled message cancelled")


class ProcessScheduledView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request):
        report = BroadcastService.process_scheduled()
        return api_response(
            {"processed": report.processed, "failed": report.failed, "errors": report.errors},
            "Scheduled messages processed",
        )


class AdminMessageAnalyticsView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request, pk):
        return api_response(BroadcastService.analytics(_get_message(pk)))


class AdminMessageRecipientsView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request, pk):
        qs = _get_message(pk).recipients.all()
        if request.query_params.get("delivery_status"):
            qs = qs.filter(delivery_status=request.query_params["delivery_status"])
        return paginated(request, qs, AdminMessageRecipientSerializer, self)


class AdminMessageOverviewView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        try:
            days = max(1, min(int(request.query_params.get("days", 30)), 365))
        except ValueError:
            raise ValidationError({"days": ["Must be a number."]})
        return api_response(BroadcastService.overview(days))


class MessageTemplatesView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        return api_response([{"key": key, **template} for key, template in TEMPLATES.items()])

    def post(self, request):
        key = request.data.get("template", "")
        if key not in TEMPLATES:
            raise ValidationError({"template": [f"Unknown template {key!r}."]})
        return api_response(BroadcastService.render_template(key, request.data.get("variables") or {}))


# ════════════════════════════════════════════════════════════════════
#  Recipient side
# ════════════════════════════════════════════════════════════════════

class MyAdminMessagesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        messages = BroadcastService.messages_for_user(request.user)
        dismissed = set(
            request.user.admin_messages.filter(is_dismissed=True).values_list("message_id", flat=True)
        )
        if request.query_params.get("include_dismissed") not in ("true", "1"):
            messages = [m for m in messages if m.pk not in dismissed]
        return paginated(request, messages, AdminMessageInboxSerializer, self)


class _RecipientActionView(APIView):
    permission_classes = [IsAuthenticated]
    action_name = None
    done_message = ""

    def post(self, request, pk):
        message = get_object_or_404(AdminMessage, pk=pk, status=AdminMessage.Status.SENT)
        if not (BroadcastService.is_visible_to(message, request.user)
                or message.recipients.filter(recipient=request.user).exists()):
            raise NotFound("Message not found.")
        row = getattr(BroadcastService, self.action_name)(message, request.user)
        return api_response(AdminMessageRecipientSerializer(row).data, self.done_message)


class AdminMessageReadView(_RecipientActionView):
    action_name  = "mark_read"
    done_message = "Marked as read"


class AdminMessageClickView(_RecipientActionView):
    action_name  = "mark_clicked"
    done_message = "Click recorded"


class AdminMessageDismissView(_RecipientActionView):
    action_name  = "dismiss"
    done_message = "Message dismissed"
