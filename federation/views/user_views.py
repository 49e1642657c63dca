"""
federation/views/user_views.py
─────────────────────────────────────────────────────────────────────
User administration, public profiles and the player / coach finder.
"""
from __future__ import annotations

import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import User, UserType
from ..pagination import paginated
from ..permissions import IsFederationAdmin, is_federation_admin
from ..serializers import AdminUserSerializer, PublicProfileSerializer, UserSerializer
from ..services import microsite_service, stats_service

logger = logging.getLogger(__name__)


def _truthy(value) -> bool:
    return str(value).lower() in ("1", "true", "yes")


# ──────────────────────────────────────────────────────────────────
#  Admin list / detail
# ──────────────────────────────────────────────────────────────────
class UserListView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        qs = User.objects.select_related("club")
        params = request.query_params

        if params.get("user_type"):
            qs = qs.filter(user_type=params["user_type"])
        if params.get("state"):
            qs = qs.filter(state=params["state"])
        if params.get("is_active") not in (None, ""):
            qs = qs.filter(is_active=_truthy(params["is_active"]))
        q = params.get("search", "").strip()
        if q:
            qs = qs.filter(Q(username__icontains=q) | Q(email__icontains=q) | Q(full_name__icontains=q))
        return paginated(request, qs, AdminUserSerializer, self)


class UserDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        user = get_object_or_404(User, pk=pk)
        if user.pk == request.user.pk or is_federation_admin(request.user):
            return api_response(UserSerializer(user).data)
        if not user.is_active:
            raise PermissionDenied("This profile is not available.")
        if not microsite_service.is_public(user):
            raise PermissionDenied(f"This microsite is {user.microsite_status}.")
        return api_response(PublicProfileSerializer(user).data)

    def patch(self, request, pk):
        user = get_object_or_404(User, pk=pk)
        admin = is_federation_admin(request.user)
        if user.pk != request.user.pk and not admin:
            raise PermissionDenied("You can only edit your own profile.")
        serializer_class = AdminUserSerializer if admin else UserSerializer
        serializer = serializer_class(user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(serializer.data, "User updated")

    put = patch

    def delete(self, request, pk):
        if not is_federation_admin(request.user):
            raise PermissionDenied("Administrator access required.")
        user = get_object_or_404(User, pk=pk)
        user.is_active = False
        user.save(update_fields=["is_active"])
        logger.info("User %s deactivated by %s", user.username, request.user.username)
        return api_response(message="User deactivated")


class UserStatsView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        return api_response(stats_service.user_stats())


# ──────────────────────────────────────────────────────────────────
#  Finder
# ──────────────────────────────────────────────────────────────────
class _FinderView(APIView):
    permission_classes = [IsAuthenticated]
    user_type  = None
    visibility = None

    def base_queryset(self):
        return User.objects.select_related("club").filter(
            user_type=self.user_type, is_active=True, **{self.visibility: True},
        )

    def get(self, request):
        qs = self.base_queryset().exclude(pk=request.user.pk)
        params = request.query_params
        for field in ("state", "city", "skill_level"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        q = params.get("search", "").strip()
        if q:
            qs = qs.filter(Q(username__icontains=q) | Q(full_name__icontains=q))
        qs = self.extra_filters(qs, params)
        return paginated(request, qs, PublicProfileSerializer, self)

    def extra_filters(self, qs, params):
        return qs


class PlayerFinderView(_FinderView):
    user_type  = UserType.PLAYER
    visibility = "can_be_found"


class CoachFinderView(_FinderView):
    user_type  = UserType.COACH
    visibility = "is_findable"

    def extra_filters(self, qs, params):
        if params.get("available_for_lessons") not in (None, ""):
            qs = qs.filter(available_for_lessons=_truthy(params["available_for_lessons"]))
        if params.get("specialization"):
            qs = qs.filter(specializations__icontains=params["specialization"])
        return qs.order_by("-rating", "full_name")
