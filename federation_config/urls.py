"""
federation_config/urls.py
─────────────────────────────────────────────────────────────────────
Master URL router: every API namespace is mounted under /api/v1/.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path


def health_check(request):
    """Container / load-balancer health-check endpoint."""
    return JsonResponse({"status": "ok", "service": "federation-api"})


API = "api/v1/"

urlpatterns = [
    # ── Django admin ──────────────────────────────────────────────────
    path("admin/", admin.site.urls),

    # ── Health check ──────────────────────────────────────────────────
    path("health/", health_check, name="health"),

    # ── API ───────────────────────────────────────────────────────────
    path(API + "auth/",        include("federation.urls.auth_urls",        namespace="auth")),
    path(API + "users/",       include("federation.urls.user_urls",        namespace="users")),
    path(API + "clubs/",       include("federation.urls.club_urls",        namespace="clubs")),
    path(API + "tournaments/", include("federation.urls.tournament_urls",  namespace="tournaments")),
    path(API + "rankings/",    include("federation.urls.ranking_urls",     namespace="rankings")),
    path(API + "credentials/", include("federation.urls.credential_urls",  namespace="credentials")),
    path(API + "comms/",       include("federation.urls.comms_urls",       namespace="comms")),
    path(API + "payments/",    include("federation.urls.payment_urls",     namespace="payments")),
    path(API + "finder/",      include("federation.urls.finder_urls",      namespace="finder")),
    path(API + "banners/",     include("federation.urls.banner_urls",      namespace="banners")),
    path(API + "admin/",       include("federation.urls.admin_panel_urls", namespace="admin_panel")),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
