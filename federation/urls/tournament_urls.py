"""
federation/urls/tournament_urls.py
namespace = "tournaments"
"""
from django.urls import path

from ..views.payment_views import TournamentExpensesView
from ..views.team_views import (
    AvailableRefereesView,
    MatchRefereeView,
    RefereeStatsView,
    TeamConfirmPaymentView,
    TeamDetailView,
    TeamMemberRemoveView,
    TeamMembersView,
    TeamWithdrawView,
    TournamentRefereesView,
    TournamentTeamsView,
)
from ..views.tournament_views import (
    FinalPositionsView,
    MatchResultView,
    MyRegistrationsView,
    RegistrationWithdrawView,
    TournamentDetailView,
    TournamentListView,
    TournamentMatchesView,
    TournamentRegisterView,
    TournamentRegistrationsView,
    TournamentTransitionView,
    UpdateRankingsView,
)

app_name = "tournaments"

urlpatterns = [
    path("",                                 TournamentListView.as_view(),          name="list"),
    path("registrations/mine/",              MyRegistrationsView.as_view(),         name="my-registrations"),
    path("registrations/<int:pk>/withdraw/", RegistrationWithdrawView.as_view(),    name="withdraw"),
    path("matches/<int:pk>/result/",         MatchResultView.as_view(),             name="match-result"),
    path("matches/<int:pk>/referee/",        MatchRefereeView.as_view(),            name="match-referee"),

    # ── Teams ─────────────────────────────────────────────────────────
    path("teams/<int:pk>/",                        TeamDetailView.as_view(),         name="team-detail"),
    path("teams/<int:pk>/members/",                TeamMembersView.as_view(),        name="team-members"),
    path("teams/<int:pk>/members/<uuid:user_id>/", TeamMemberRemoveView.as_view(),   name="team-member-remove"),
    path("teams/<int:pk>/confirm-payment/",        TeamConfirmPaymentView.as_view(), name="team-confirm-payment"),
    path("teams/<int:pk>/withdraw/",               TeamWithdrawView.as_view(),       name="team-withdraw"),

    # ── Referees ──────────────────────────────────────────────────────
    path("referees/available/",               AvailableRefereesView.as_view(), name="referees-available"),
    path("referees/<uuid:user_id>/stats/",    RefereeStatsView.as_view(),      name="referee-stats"),

    path("<int:pk>/",                        TournamentDetailView.as_view(),        name="detail"),
    path("<int:pk>/register/",               TournamentRegisterView.as_view(),      name="register"),
    path("<int:pk>/registrations/",          TournamentRegistrationsView.as_view(), name="registrations"),
    path("<int:pk>/teams/",                  TournamentTeamsView.as_view(),         name="teams"),
    path("<int:pk>/referees/",               TournamentRefereesView.as_view(),      name="referees"),
    path("<int:pk>/matches/",                TournamentMatchesView.as_view(),       name="matches"),
    path("<int:pk>/final-positions/",        FinalPositionsView.as_view(),          name="final-positions"),
    path("<int:pk>/update-rankings/",        UpdateRankingsView.as_view(),          name="update-rankings"),
    path("<int:pk>/expenses/",               TournamentExpensesView.as_view(),      name="expenses"),
    path(
        "<int:pk>/<str:action>/",
        TournamentTransitionView.as_view(),
        name="transition",
    ),
]
