"""
federation/views/ranking_views.py
─────────────────────────────────────────────────────────────────────
Ranking tables, history, stats, XLSX export and recalculation.
"""
from __future__ import annotations

from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from ..exceptions import api_response
from ..models import Ranking, User
from ..pagination import paginated
from ..permissions import IsFederationAdmin
from ..serializers import RankingSerializer, RecalculateSerializer
from ..services.ranking_service import NATIONAL, RankingService, current_period

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _filtered(params, qs=None):
    qs = qs if qs is not None else Ranking.objects.select_related("user")
    qs = qs.filter(ranking_period=params.get("period") or current_period())
    if params.get("category"):
        qs = qs.filter(category=params["category"])
    if params.get("skill_level"):
        qs = qs.filter(skill_level=params["skill_level"])
    if "state" in params:
        qs = qs.filter(state=params["state"])
    else:
        qs = qs.filter(state=NATIONAL)
    if params.get("include_history") not in ("true", "1"):
        qs = qs.filter(is_current=True)
    return qs.order_by("category", "skill_level", "position")


class RankingListView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return paginated(request, _filtered(request.query_params), RankingSerializer, self)


class TopRankingsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        params = request.query_params
        if not params.get("category") or not params.get("skill_level"):
            raise ValidationError({"category": ["category and skill_level are required."]})
        try:
            limit = max(1, min(int(params.get("limit", 10)), 100))
        except ValueError:
            raise ValidationError({"limit": ["Must be a number."]})
        rows = _filtered(params)[:limit]
        return api_response(RankingSerializer(rows, many=True).data)


class StateRankingsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, state):
        qs = Ranking.objects.select_related("user").filter(state=state)
        params = request.query_params.copy()
        params["state"] = state
        return paginated(request, _filtered(params, qs), RankingSerializer, self)


class UserRankingsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, pk):
        user = get_object_or_404(User, pk=pk)
        qs = user.rankings.select_related("user").filter(is_current=True).order_by("state", "category", "skill_level")
        return api_response(RankingSerializer(qs, many=True).data)


class RankingHistoryView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, pk):
        ranking = get_object_or_404(Ranking.objects.select_related("user"), pk=pk)
        periods = (
            Ranking.objects.filter(
                user=ranking.user, category=ranking.category,
                skill_level=ranking.skill_level, state=ranking.state,
            )
            .order_by("-ranking_period")
            .values("ranking_period", "position", "points", "tournaments_played", "tournaments_won")
        )
        return api_response({
            "ranking":  RankingSerializer(ranking).data,
            "history":  ranking.history,
            "periods":  list(periods),
        })


class RankingStatsView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return api_response(RankingService.stats(request.query_params.get("period")))


class RankingExportView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        rows = _filtered(request.query_params)
        content = RankingService.export_workbook(rows)
        filename = f"rankings_{timezone.localdate():%Y%m%d}.xlsx"
        response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response


class RecalculateRankingsView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request):
        if request.data.get("all"):
            buckets = RankingService.recalculate_all(request.data.get("period"))
            return api_response({"buckets": buckets}, "Rankings recalculated")

        serializer = RecalculateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ranked = RankingService.recalculate(**serializer.validated_data)
        return api_response({"ranked_players": ranked}, "Ranking recalculated")
