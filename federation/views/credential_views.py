"""
federation/views/credential_views.py
─────────────────────────────────────────────────────────────────────
Digital player credentials: issue, show, public QR verification.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import DigitalCredential
from ..pagination import paginated
from ..permissions import IsFederationAdmin, is_federation_admin
from ..serializers import CredentialAdminUpdateSerializer, CredentialSerializer
from ..services.credential_service import CredentialService


def _client_ip(request) -> str:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")


class CredentialCreateView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        credential = CredentialService.create(request.user)
        return api_response(CredentialSerializer(credential).data, "Credential issued", status.HTTP_201_CREATED)


class MyCredentialView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        credential = DigitalCredential.objects.select_related("user").filter(user=request.user).first()
        if credential is None:
            raise NotFound("You do not have a digital credential yet.")
        return api_response(CredentialSerializer(credential).data)


class CredentialVerifyView(APIView):
    """Public endpoint behind the QR code."""
    permission_classes     = [AllowAny]
    authentication_classes = []

    def get(self, request, code):
        result = CredentialService.verify(
            code,
            token=request.query_params.get("token"),
            method=request.query_params.get("method", "qr_scan"),
            ip_address=_client_ip(request),
        )
        return api_response(result, "Credential is valid")

    def post(self, request, code):
        result = CredentialService.verify(
            code,
            token=request.data.get("token"),
            method=request.data.get("method", "manual"),
            ip_address=_client_ip(request),
        )
        return api_response(result, "Credential is valid")


class CredentialRegenerateQRView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        credential = get_object_or_404(DigitalCredential.objects.select_related("user"), pk=pk)
        if credential.user_id != request.user.pk and not is_federation_admin(request.user):
            raise PermissionDenied("You cannot regenerate this credential.")
        credential = CredentialService.regenerate_qr(credential)
        return api_response(CredentialSerializer(credential).data, "QR code regenerated")


class CredentialAdminView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        qs = DigitalCredential.objects.select_related("user")
        params = request.query_params
        if params.get("affiliation_status"):
            qs = qs.filter(affiliation_status=params["affiliation_status"])
        if params.get("state"):
            qs = qs.filter(state_affiliation=params["state"])
        if params.get("search"):
            qs = qs.filter(player_name__icontains=params["search"])
        return paginated(request, qs, CredentialSerializer, self)


class CredentialAdminDetailView(APIView):
    permission_classes = [IsFederationAdmin]

    def patch(self, request, pk):
        credential = get_object_or_404(DigitalCredential.objects.select_related("user"), pk=pk)
        serializer = CredentialAdminUpdateSerializer(credential, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return api_response(CredentialSerializer(credential).data, "Credential updated")

    put = patch
