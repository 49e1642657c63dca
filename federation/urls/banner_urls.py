"""
federation/urls/banner_urls.py
namespace = "banners"
"""
from django.urls import path

from ..views.banner_views import (
    ActiveBannersView,
    BannerAdminDetailView,
    BannerAdminListView,
    BannerAnalyticsView,
    BannerClickTrackView,
    BannerPositionView,
    BannerToggleView,
    BannerViewTrackView,
    CarouselView,
    PublicBannerDetailView,
)

app_name = "banners"

urlpatterns = [
    path("carousel/",                  CarouselView.as_view(),           name="carousel"),
    path("active/",                    ActiveBannersView.as_view(),      name="active"),
    path("<int:pk>/",                  PublicBannerDetailView.as_view(), name="detail"),
    path("<int:pk>/view/",             BannerViewTrackView.as_view(),    name="view"),
    path("<int:pk>/click/",            BannerClickTrackView.as_view(),   name="click"),

    # ── Admin ─────────────────────────────────────────────────────────
    path("admin/",                     BannerAdminListView.as_view(),    name="admin-list"),
    path("admin/analytics/",           BannerAnalyticsView.as_view(),    name="admin-analytics"),
    path("admin/<int:pk>/",            BannerAdminDetailView.as_view(),  name="admin-detail"),
    path("admin/<int:pk>/toggle/",     BannerToggleView.as_view(),       name="admin-toggle"),
    path("admin/<int:pk>/position/",   BannerPositionView.as_view(),     name="admin-position"),
]
