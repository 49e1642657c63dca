"""
federation/urls/ranking_urls.py
namespace = "rankings"
"""
from django.urls import path

from ..views.ranking_views import (
    RankingExportView,
    RankingHistoryView,
    RankingListView,
    RankingStatsView,
    RecalculateRankingsView,
    StateRankingsView,
    TopRankingsView,
)

app_name = "rankings"

urlpatterns = [
    path("",                   RankingListView.as_view(),         name="list"),
    path("top/",               TopRankingsView.as_view(),         name="top"),
    path("stats/",             RankingStatsView.as_view(),        name="stats"),
    path("export/",            RankingExportView.as_view(),       name="export"),
    path("recalculate/",       RecalculateRankingsView.as_view(), name="recalculate"),
    path("state/<str:state>/", StateRankingsView.as_view(),       name="state"),
    path("<int:pk>/history/",  RankingHistoryView.as_view(),      name="history"),
]
