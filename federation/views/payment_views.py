"""
federation/views/payment_views.py
─────────────────────────────────────────────────────────────────────
Payments (create / process / refund) and club & tournament expenses.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from ..constants import MEMBERSHIP_FEES
from ..exceptions import ConflictError, api_response
from ..models import Club, Expense, Payment, Tournament, User
from ..pagination import paginated
from ..permissions import IsFederationAdmin, is_federation_admin
from ..serializers import ExpenseSerializer, PaymentSerializer, ProcessPaymentSerializer, RefundSerializer
from ..services.payment_service import PaymentService
from ..services.tournament_service import TournamentService

logger = logging.getLogger(__name__)


def _get_payment(request, pk) -> Payment:
    payment = get_object_or_404(Payment.objects.select_related("user", "registration", "reservation"), pk=pk)
    if payment.user_id != request.user.pk and not is_federation_admin(request.user):
        raise PermissionDenied("This payment is not yours.")
    return payment


# ════════════════════════════════════════════════════════════════════
#  Payments
# ════════════════════════════════════════════════════════════════════

class PaymentListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Payment.objects.select_related("user")
        if not is_federation_admin(request.user):
            qs = qs.filter(user=request.user)
        params = request.query_params
        for field in ("status", "payment_type"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        return paginated(request, qs, PaymentSerializer, self)

    def post(self, request):
        serializer = PaymentSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        payment = serializer.save(user=request.user)
        logger.info("Payment %s created by %s: %s %s", payment.pk, request.user.username,
                    payment.amount, payment.payment_type)
        return api_response(PaymentSerializer(payment).data, "Payment created", status.HTTP_201_CREATED)


class PaymentDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        return api_response(PaymentSerializer(_get_payment(request, pk)).data)


class PaymentProcessView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        payment = _get_payment(request, pk)
        serializer = ProcessPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = PaymentService.process(payment, request.user, serializer.validated_data["payment_method"])
        return api_response(PaymentSerializer(payment).data, "Payment completed")


class PaymentRefundView(APIView):
    permission_classes = [IsFederationAdmin]

    def post(self, request, pk):
        payment = get_object_or_404(Payment.objects.select_related("registration", "reservation"), pk=pk)
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment = PaymentService.refund(payment, data.get("refund_amount"), data.get("refund_reason", ""))
        return api_response(PaymentSerializer(payment).data, "Payment refunded")


class PaymentStatsView(APIView):
    permission_classes = [IsFederationAdmin]

    def get(self, request):
        qs = Payment.objects.order_by()
        completed = qs.filter(status=Payment.Status.COMPLETED)
        return api_response({
            "total":     qs.count(),
            "by_status": dict(qs.values_list("status").annotate(n=Count("id"))),
            "by_type":   dict(qs.values_list("payment_type").annotate(n=Count("id"))),
            "revenue":   completed.aggregate(t=Sum("amount"))["t"] or Decimal("0"),
            "refunded":  qs.filter(status=Payment.Status.REFUNDED).aggregate(t=Sum("refund_amount"))["t"]
                         or Decimal("0"),
        })


class UserPaymentHistoryView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        if str(request.user.pk) != str(pk) and not is_federation_admin(request.user):
            raise PermissionDenied("You can only see your own payment history.")
        user = get_object_or_404(User, pk=pk)
        qs = Payment.objects.select_related("user").filter(user=user)
        return paginated(request, qs, PaymentSerializer, self)


class MembershipFeesView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return api_response({
            user_type: {plan: str(amount) for plan, amount in plans.items()}
            for user_type, plans in MEMBERSHIP_FEES.items()
        })


# ════════════════════════════════════════════════════════════════════
#  Expenses
# ════════════════════════════════════════════════════════════════════

def _can_manage_expense(user, expense: Expense) -> bool:
    if expense.created_by_id == user.pk or is_federation_admin(user):
        return True
    return bool(expense.club_id and expense.club.owner_id == user.pk)


def _check_scope(user, data) -> None:
    """The creator must run the club or tournament the expense is booked against."""
    if is_federation_admin(user):
        return
    club       = data.get("club")
    tournament = data.get("tournament")
    if club and club.owner_id != user.pk:
        raise PermissionDenied("You do not manage this club.")
    if tournament and not TournamentService.can_manage(user, tournament):
        raise PermissionDenied("You do not manage this tournament.")


class ExpenseListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = Expense.objects.select_related("created_by", "approved_by", "club")
        if not is_federation_admin(request.user):
            qs = qs.filter(Q(created_by=request.user) | Q(club__owner=request.user))
        params = request.query_params
        for field in ("status", "category"):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        return paginated(request, qs, ExpenseSerializer, self)

    def post(self, request):
        serializer = ExpenseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        _check_scope(request.user, serializer.validated_data)
        expense = serializer.save(created_by=request.user)
        return api_response(ExpenseSerializer(expense).data, "Expense recorded", status.HTTP_201_CREATED)


class ExpenseDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def _get(self, request, pk) -> Expense:
        expense = get_object_or_404(Expense.objects.select_related("created_by", "club"), pk=pk)
        if not _can_manage_expense(request.user, expense):
            raise PermissionDenied("You cannot access this expense.")
        return expense

    def get(self, request, pk):
        return api_response(ExpenseSerializer(self._get(request, pk)).data)

    def patch(self, request, pk):
        expense = self._get(request, pk)
        if expense.status != Expense.Status.PENDING and not is_federation_admin(request.user):
            raise ConflictError("Only pending expenses can be edited.")
        serializer = ExpenseSerializer(expense, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        _check_scope(request.user, serializer.validated_data)
        serializer.save()
        return api_response(serializer.data, "Expense updated")

    put = patch

    def delete(self, request, pk):
        expense = self._get(request, pk)
        if expense.status == Expense.Status.PAID:
            raise ConflictError("Paid expenses cannot be deleted.")
        expense.delete()
        return api_response(message="Expense deleted")


class _ExpenseDecisionView(APIView):
    permission_classes = [IsFederationAdmin]
    new_status = None

    def post(self, request, pk):
        expense = get_object_or_404(Expense, pk=pk)
        if expense.status != Expense.Status.PENDING:
            raise ConflictError(f"Expense is already {expense.status}.")
        expense.status      = self.new_status
        expense.approved_by = request.user
        expense.approved_at = timezone.now()
        if request.data.get("notes"):
            expense.notes = request.data["notes"]
        expense.save()
        return api_response(ExpenseSerializer(expense).data, f"Expense {self.new_status}")


class ExpenseApproveView(_ExpenseDecisionView):
    new_status = Expense.Status.APPROVED


class ExpenseRejectView(_ExpenseDecisionView):
    new_status = Expense.Status.REJECTED


def _expense_summary(qs) -> dict:
    qs = qs.order_by()
    return {
        "total":       qs.exclude(status=Expense.Status.REJECTED).aggregate(t=Sum("amount"))["t"] or Decimal("0"),
        "count":       qs.count(),
        "by_category": {k: v for k, v in qs.values_list("category").annotate(t=Sum("amount"))},
    }


class TournamentExpensesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        tournament = get_object_or_404(Tournament, pk=pk)
        if not TournamentService.can_manage(request.user, tournament):
            raise PermissionDenied("Only the organizer can see tournament expenses.")
        qs = Expense.objects.select_related("created_by", "approved_by").filter(tournament=tournament)
        return api_response({
            "expenses": ExpenseSerializer(qs, many=True).data,
            **_expense_summary(qs),
        })


class ClubExpensesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        club = get_object_or_404(Club, pk=pk)
        if club.owner_id != request.user.pk and not is_federation_admin(request.user):
            raise PermissionDenied("Only the club owner can see club expenses.")
        qs = Expense.objects.select_related("created_by", "approved_by").filter(club=club)
        for param, lookup in (("start_date", "expense_date__gte"), ("end_date", "expense_date__lte")):
            raw = request.query_params.get(param)
            if not raw:
                continue
            try:
                day = parse_date(raw)
            except ValueError:
                day = None
            if day is None:
                raise ValidationError({param: ["Use YYYY-MM-DD."]})
            qs = qs.filter(**{lookup: day})
        return api_response({
            "expenses": ExpenseSerializer(qs, many=True).data,
            **_expense_summary(qs),
        })
