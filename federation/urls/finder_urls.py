"""
federation/urls/finder_urls.py
namespace = "finder"
"""
from django.urls import path

from ..views.finder_views import (
    CoachSearchListView,
    CoachSearchRunView,
    CoachSearchStatsView,
    FinderPreferencesView,
    FinderStatsView,
    FinderToggleView,
    FinderVisibilityView,
    MatchRequestCancelView,
    MatchRequestListView,
    MatchRequestRespondView,
    NearbyPlayersView,
    TopMatchesRequestView,
)

app_name = "finder"

urlpatterns = [
    path("preferences/",                   FinderPreferencesView.as_view(),   name="preferences"),
    path("toggle/",                        FinderToggleView.as_view(),        name="toggle"),
    path("visibility/",                    FinderVisibilityView.as_view(),    name="visibility"),
    path("stats/",                         FinderStatsView.as_view(),         name="stats"),
    path("nearby/",                        NearbyPlayersView.as_view(),       name="nearby"),
    path("requests/",                      MatchRequestListView.as_view(),    name="requests"),
    path("requests/top-matches/",          TopMatchesRequestView.as_view(),   name="top-matches"),
    path("requests/<int:pk>/respond/",     MatchRequestRespondView.as_view(), name="request-respond"),
    path("requests/<int:pk>/cancel/",      MatchRequestCancelView.as_view(),  name="request-cancel"),
    path("coach-searches/",                CoachSearchListView.as_view(),     name="coach-searches"),
    path("coach-searches/stats/",          CoachSearchStatsView.as_view(),    name="coach-search-stats"),
    path("coach-searches/<int:pk>/run/",   CoachSearchRunView.as_view(),      name="coach-search-run"),
]
