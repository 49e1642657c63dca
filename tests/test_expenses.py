"""
tests/test_expenses.py
─────────────────────────────────────────────────────────────────────
Club and tournament expenses: who may book them, admin decisions and
the per-club / per-tournament totals.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from federation.models import Expense

pytestmark = pytest.mark.django_db

EXPENSES = "/api/v1/payments/expenses/"


@pytest.fixture
def make_expense(club_owner):
    def _make(**extra):
        fields = {
            "description": "Net replacement",
            "amount":      Decimal("450.00"),
            "category":    Expense.Category.EQUIPMENT,
            "created_by":  club_owner,
        }
        fields.update(extra)
        return Expense.objects.create(**fields)
    return _make


# ════════════════════════════════════════════════════════════════════
#  CRUD
# ════════════════════════════════════════════════════════════════════

class TestExpenseCrud:

    def test_owner_books_a_club_expense(self, auth, club_owner, club):
        response = auth(club_owner).post(EXPENSES, {
            "description": "Court resurfacing", "amount": "12000.00",
            "category": "court_maintenance", "club": club.pk,
        }, format="json")
        assert response.status_code == 201
        expense = Expense.objects.get()
        assert expense.created_by == club_owner
        assert expense.status == Expense.Status.PENDING

    def test_cannot_book_against_someone_elses_club(self, auth, player, club):
        response = auth(player).post(EXPENSES, {
            "description": "Balls", "amount": "100.00", "club": club.pk,
        }, format="json")
        assert response.status_code == 403

    def test_cannot_book_against_someone_elses_tournament(self, auth, player, make_tournament):
        response = auth(player).post(EXPENSES, {
            "description": "Trophies", "amount": "900.00", "tournament": make_tournament().pk,
        }, format="json")
        assert response.status_code == 403

    def test_list_shows_only_own_and_club_expenses(self, auth, player, club, make_expense):
        make_expense(club=club)
        make_expense(created_by=player, description="Grips")
        results = auth(player).get(EXPENSES).json()["data"]["results"]
        assert [e["description"] for e in results] == ["Grips"]

    def test_pending_expense_can_be_edited(self, auth, club_owner, make_expense):
        expense = make_expense()
        response = auth(club_owner).patch(f"{EXPENSES}{expense.pk}/", {"amount": "500.00"}, format="json")
        assert response.status_code == 200
        expense.refresh_from_db()
        assert expense.amount == Decimal("500.00")

    def test_approved_expense_is_locked_for_the_creator(self, auth, club_owner, make_expense):
        expense = make_expense(status=Expense.Status.APPROVED)
        response = auth(club_owner).patch(f"{EXPENSES}{expense.pk}/", {"amount": "1.00"}, format="json")
        assert response.status_code == 409

    def test_paid_expense_cannot_be_deleted(self, auth, club_owner, make_expense):
        expense = make_expense(status=Expense.Status.PAID)
        assert auth(club_owner).delete(f"{EXPENSES}{expense.pk}/").status_code == 409
        assert Expense.objects.filter(pk=expense.pk).exists()

    def test_delete(self, auth, club_owner, make_expense):
        expense = make_expense()
        assert auth(club_owner).delete(f"{EXPENSES}{expense.pk}/").status_code == 200
        assert not Expense.objects.exists()

    def test_strangers_cannot_read(self, auth, other_player, make_expense):
        expense = make_expense()
        assert auth(other_player).get(f"{EXPENSES}{expense.pk}/").status_code == 403


# ════════════════════════════════════════════════════════════════════
#  Decisions
# ════════════════════════════════════════════════════════════════════

class TestExpenseDecisions:

    def test_admin_approves(self, auth, admin_user, make_expense):
        expense = make_expense()
        response = auth(admin_user).post(f"{EXPENSES}{expense.pk}/approve/", {"notes": "ok"}, format="json")
        assert response.status_code == 200
        expense.refresh_from_db()
        assert expense.status == Expense.Status.APPROVED
        assert expense.approved_by == admin_user
        assert expense.approved_at is not None
        assert expense.notes == "ok"

    def test_admin_rejects(self, auth, admin_user, make_expense):
        expense = make_expense()
        assert auth(admin_user).post(f"{EXPENSES}{expense.pk}/reject/").status_code == 200
        expense.refresh_from_db()
        assert expense.status == Expense.Status.REJECTED

    def test_decision_is_final(self, auth, admin_user, make_expense):
        expense = make_expense(status=Expense.Status.REJECTED)
        assert auth(admin_user).post(f"{EXPENSES}{expense.pk}/approve/").status_code == 409

    def test_owners_cannot_approve_their_own(self, auth, club_owner, make_expense):
        expense = make_expense()
        assert auth(club_owner).post(f"{EXPENSES}{expense.pk}/approve/").status_code == 403


# ════════════════════════════════════════════════════════════════════
#  Totals
# ════════════════════════════════════════════════════════════════════

class TestExpenseTotals:

    def test_club_total_leaves_out_rejected(self, auth, club_owner, club, make_expense):
        make_expense(club=club, amount=Decimal("100.00"))
        make_expense(club=club, amount=Decimal("250.00"), category=Expense.Category.FACILITY)
        make_expense(club=club, amount=Decimal("999.00"), status=Expense.Status.REJECTED)
        make_expense(amount=Decimal("5.00"))   # not booked against the club

        data = auth(club_owner).get(f"/api/v1/clubs/{club.pk}/expenses/").json()["data"]
        assert data["count"] == 3
        assert Decimal(str(data["total"])) == Decimal("350.00")
        assert set(data["by_category"]) == {"equipment", "facility"}

    def test_club_date_window(self, auth, club_owner, club, make_expense):
        make_expense(club=club, expense_date=date(2026, 1, 10))
        make_expense(club=club, expense_date=date(2026, 3, 10))
        data = auth(club_owner).get(f"/api/v1/clubs/{club.pk}/expenses/",
                                    {"start_date": "2026-02-01", "end_date": "2026-12-31"}).json()["data"]
        assert data["count"] == 1

    def test_bad_date_is_rejected(self, auth, club_owner, club):
        response = auth(club_owner).get(f"/api/v1/clubs/{club.pk}/expenses/", {"start_date": "yesterday"})
        assert response.status_code == 400

    def test_tournament_total(self, auth, club_owner, make_tournament, make_expense):
        tournament = make_tournament()
        make_expense(tournament=tournament, amount=Decimal("800.00"),
                     category=Expense.Category.TOURNAMENT_EXPENSE)
        make_expense(tournament=tournament, amount=Decimal("200.00"),
                     category=Expense.Category.TOURNAMENT_EXPENSE)

        data = auth(club_owner).get(f"/api/v1/tournaments/{tournament.pk}/expenses/").json()["data"]
        assert data["count"] == 2
        assert Decimal(str(data["total"])) == Decimal("1000.00")
        assert len(data["expenses"]) == 2

    def test_only_organizers_see_tournament_expenses(self, auth, player, make_tournament):
        tournament = make_tournament()
        assert auth(player).get(f"/api/v1/tournaments/{tournament.pk}/expenses/").status_code == 403
