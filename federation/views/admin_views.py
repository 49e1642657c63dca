"""
federation/views/admin_views.py
─────────────────────────────────────────────────────────────────────
Federation admin panel: dashboard, user administration, health, export.
"""
from __future__ import annotations

import logging

from django.db.models import Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from ..exceptions import BusinessRuleViolation, api_response
from ..models import User, UserType
from ..pagination import paginated
from ..permissions import IsFederationAdmin
from ..serializers import AdminUserSerializer, MembershipUpdateSerializer
from ..services import stats_service

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _admin_user_queryset(params):
    qs = User.objects.all().order_by("-date_joined")
    for field in ("user_type", "state", "membership_status"):
        if params.get(field):
            qs = qs.filter(**{field: params[field]})
    if params.get("is_active") in ("true", "false"):
        qs = qs.filter(is_active=params["is_active"] == "true")
    q = params.get("search", "").strip()
    if q:
        qs = qs.filter(Q(username__icontains=q) | Q(email__icontains=q) | Q(full_name__icontains=q))
    return qs


class DashboardView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        fresh = request.query_params.get("refresh") in ("true", "1")
        return api_response(stats_service.dashboard_stats(use_cache=not fresh))


class AdminUserListView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        return paginated(request, _admin_user_queryset(request.query_params), AdminUserSerializer, self)


class AdminUserRoleView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        user = get_object_or_404(User, pk=pk)
        user_type = request.data.get("user_type")
        if user_type not in UserType.values:
            raise ValidationError({"user_type": [f"Must be one of: {', '.join(UserType.values)}."]})
        if user.pk == request.user.pk and user_type != UserType.ADMIN:
            raise BusinessRuleViolation("You cannot remove your own admin role.")
        old, user.user_type = user.user_type, user_type
        user.save(update_fields=["user_type"])
        logger.info("User %s: role %s → %s by %s", user.username, old, user_type, request.user.username)
        return api_response(AdminUserSerializer(user).data, "Role updated")


class AdminMembershipView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        user = get_object_or_404(User, pk=pk)
        serializer = MembershipUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        user.membership_status = data["membership_status"]
        if "membership_expires_at" in data:
            user.membership_expires_at = data["membership_expires_at"]
        user.save(update_fields=["membership_status", "membership_expires_at"])
        return api_response(AdminUserSerializer(user).data, "Membership updated")


class _ActivationView(APIView):
    permission_classes = [IsFederationAdmin]
    activate = True

    def post(self, request, pk):
        user = get_object_or_404(User, pk=pk)
        if user.pk == request.user.pk and not self.activate:
            raise BusinessRuleViolation("You cannot deactivate your own account.")
        user.is_active = self.activate
        fields = ["is_active"]
        if self.activate:
            user.login_attempts = 0
            user.locked_until   = None
            fields += ["login_attempts", "locked_until"]
        user.save(update_fields=fields)
        logger.info("User %s %s by %s", user.username,
                    "activated" if self.activate else "deactivated", request.user.username)
        return api_response(AdminUserSerializer(user).data,
                            "User activated" if self.activate else "User deactivated")


class AdminUserActivateView(_ActivationView):
    activate = True


class AdminUserDeactivateView(_ActivationView):
    activate = False


class SystemHealthView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        health = stats_service.system_health()
        return api_response(health, "System healthy" if health["status"] == "ok" else "System degraded")


class UserExportView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        content  = stats_service.export_users_workbook(_admin_user_queryset(request.query_params))
        filename = f"users_{timezone.localdate():%Y%m%d}.xlsx"
        response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response


class PublicStatsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return api_response(stats_service.public_stats())
