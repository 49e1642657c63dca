"""
federation/urls/club_urls.py
namespace = "clubs"

Clubs, their courts and court reservations.
"""
from django.urls import path

from ..views.club_views import (
    ClubCourtsView,
    ClubDetailView,
    ClubListView,
    ClubMembersView,
    ClubNearbyView,
    ClubReservationsView,
    ClubStatsView,
    ClubTournamentsView,
    CourtAvailabilityView,
    CourtBookView,
    CourtConflictCheckView,
    CourtDetailView,
    CourtRecurringBookView,
    CourtStatsView,
    MyReservationsView,
    ReservationCancelView,
    ReservationCheckInView,
    ReservationDetailView,
    ReservationRateView,
)
from ..views.payment_views import ClubExpensesView

app_name = "clubs"

urlpatterns = [
    # ── Clubs ──────────────────────────────────────────────────────
    path("",                            ClubListView.as_view(),          name="list"),
    path("nearby/",                     ClubNearbyView.as_view(),        name="nearby"),
    path("<int:pk>/",                   ClubDetailView.as_view(),        name="detail"),
    path("<int:pk>/members/",           ClubMembersView.as_view(),       name="members"),
    path("<int:pk>/tournaments/",       ClubTournamentsView.as_view(),   name="tournaments"),
    path("<int:pk>/stats/",             ClubStatsView.as_view(),         name="stats"),
    path("<int:pk>/courts/",            ClubCourtsView.as_view(),        name="courts"),
    path("<int:pk>/reservations/",      ClubReservationsView.as_view(),  name="reservations"),
    path("<int:pk>/expenses/",          ClubExpensesView.as_view(),      name="expenses"),

    # ── Courts ─────────────────────────────────────────────────────
    path("courts/<int:pk>/",                 CourtDetailView.as_view(),        name="court-detail"),
    path("courts/<int:pk>/availability/",    CourtAvailabilityView.as_view(),  name="court-availability"),
    path("courts/<int:pk>/check-conflicts/", CourtConflictCheckView.as_view(), name="court-conflicts"),
    path("courts/<int:pk>/stats/",           CourtStatsView.as_view(),         name="court-stats"),
    path("courts/<int:pk>/book/",            CourtBookView.as_view(),          name="court-book"),
    path("courts/<int:pk>/book-recurring/",  CourtRecurringBookView.as_view(), name="court-book-recurring"),

    # ── Reservations ───────────────────────────────────────────────
    path("reservations/mine/",                   MyReservationsView.as_view(),     name="my-reservations"),
    path("reservations/<uuid:pk>/",              ReservationDetailView.as_view(),  name="reservation-detail"),
    path("reservations/<uuid:pk>/cancel/",       ReservationCancelView.as_view(),  name="reservation-cancel"),
    path("reservations/<uuid:pk>/check-in/",     ReservationCheckInView.as_view(), name="reservation-check-in"),
    path("reservations/<uuid:pk>/rate/",         ReservationRateView.as_view(),    name="reservation-rate"),
]
