"""
federation/urls/admin_panel_urls.py
namespace = "admin_panel"
"""
from django.urls import path

from ..views.admin_views import (
    AdminMembershipView,
    AdminUserActivateView,
    AdminUserDeactivateView,
    AdminUserListView,
    AdminUserRoleView,
    DashboardView,
    PublicStatsView,
    SystemHealthView,
    UserExportView,
)
from ..views.microsite_views import (
    MicrositeAnalyticsView,
    MicrositeBulkActionView,
    MicrositeFlagResolveView,
    MicrositeFlagsView,
    MicrositeListView,
    MicrositeStatusView,
)

app_name = "admin_panel"

urlpatterns = [
    path("dashboard/",                  DashboardView.as_view(),           name="dashboard"),
    path("users/",                      AdminUserListView.as_view(),       name="user-list"),
    path("users/export/",               UserExportView.as_view(),          name="user-export"),
    path("users/<uuid:pk>/role/",       AdminUserRoleView.as_view(),       name="user-role"),
    path("users/<uuid:pk>/membership/", AdminMembershipView.as_view(),     name="user-membership"),
    path("users/<uuid:pk>/activate/",   AdminUserActivateView.as_view(),   name="user-activate"),
    path("users/<uuid:pk>/deactivate/", AdminUserDeactivateView.as_view(), name="user-deactivate"),
    path("health/",                     SystemHealthView.as_view(),        name="health"),
    path("public-stats/",               PublicStatsView.as_view(),         name="public-stats"),

    # ── Microsite moderation ──────────────────────────────────────────
    path("microsites/",                        MicrositeListView.as_view(),        name="microsites"),
    path("microsites/analytics/",              MicrositeAnalyticsView.as_view(),   name="microsite-analytics"),
    path("microsites/bulk/",                   MicrositeBulkActionView.as_view(),  name="microsite-bulk"),
    path("microsites/flags/<int:pk>/resolve/", MicrositeFlagResolveView.as_view(), name="microsite-flag-resolve"),
    path("microsites/<uuid:pk>/status/",       MicrositeStatusView.as_view(),      name="microsite-status"),
    path("microsites/<uuid:pk>/flags/",        MicrositeFlagsView.as_view(),       name="microsite-flags"),
]
