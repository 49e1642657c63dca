"""
federation/urls/user_urls.py
namespace = "users"
"""
from django.urls import path

from ..views.payment_views import UserPaymentHistoryView
from ..views.ranking_views import UserRankingsView
from ..views.user_views import (
    CoachFinderView,
    PlayerFinderView,
    UserDetailView,
    UserListView,
    UserStatsView,
)

app_name = "users"

urlpatterns = [
    path("",                          UserListView.as_view(),           name="list"),
    path("stats/",                    UserStatsView.as_view(),          name="stats"),
    path("players/",                  PlayerFinderView.as_view(),       name="player-finder"),
    path("coaches/",                  CoachFinderView.as_view(),        name="coach-finder"),
    path("<uuid:pk>/",                UserDetailView.as_view(),         name="detail"),
    path("<uuid:pk>/rankings/",       UserRankingsView.as_view(),       name="rankings"),
    path("<uuid:pk>/payments/",       UserPaymentHistoryView.as_view(), name="payments"),
]
