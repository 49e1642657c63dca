"""
federation/urls/payment_urls.py
namespace = "payments"
"""
from django.urls import path

from ..views.payment_views import (
    ExpenseApproveView,
    ExpenseDetailView,
    ExpenseListView,
    ExpenseRejectView,
    MembershipFeesView,
    PaymentDetailView,
    PaymentListView,
    PaymentProcessView,
    PaymentRefundView,
    PaymentStatsView,
)

app_name = "payments"

urlpatterns = [
    path("",                          PaymentListView.as_view(),    name="list"),
    path("stats/",                    PaymentStatsView.as_view(),   name="stats"),
    path("membership-fees/",          MembershipFeesView.as_view(), name="membership-fees"),
    path("<uuid:pk>/",                PaymentDetailView.as_view(),  name="detail"),
    path("<uuid:pk>/process/",        PaymentProcessView.as_view(), name="process"),
    path("<uuid:pk>/refund/",         PaymentRefundView.as_view(),  name="refund"),

    # ── Expenses ───────────────────────────────────────────────────
    path("expenses/",                 ExpenseListView.as_view(),    name="expense-list"),
    path("expenses/<int:pk>/",        ExpenseDetailView.as_view(),  name="expense-detail"),
    path("expenses/<int:pk>/approve/", ExpenseApproveView.as_view(), name="expense-approve"),
    path("expenses/<int:pk>/reject/", ExpenseRejectView.as_view(),  name="expense-reject"),
]
