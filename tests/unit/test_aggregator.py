"""
test_aggregator.py - Unit tests for derived ledger views

Tests:
- Per-category totals count approved payments only
- Grand total, pool total and net liquidity formulas
- Outstanding balance over active loans
- Status counters and per-client rows
"""

from decimal import Decimal

from contribution_ledger import (
    PaymentCategory, PaymentStatus, UserRole, UserStatus,
    aggregate, category_totals, grand_total, pool_total, total_disbursed,
    outstanding_balance, net_liquidity, status_counts, client_summaries,
)
from tests.builders import make_loan, make_payment, make_user


def sample_payments():
    return [
        make_payment("p-1", "u-1", "1000", PaymentCategory.CONTRIBUTION),
        make_payment("p-2", "u-1", "500", PaymentCategory.SAVING),
        make_payment("p-3", "u-2", "2000", PaymentCategory.DIAMOND_SAVING),
        make_payment("p-4", "u-2", "300", PaymentCategory.LOAN_REPAYMENT, loan_id="l-2"),
        make_payment("p-5", "u-1", "9999", PaymentCategory.CONTRIBUTION, status=PaymentStatus.PENDING),
        make_payment("p-6", "u-2", "8888", PaymentCategory.SAVING, status=PaymentStatus.REJECTED),
    ]


def sample_loans():
    return [
        make_loan("l-1", "u-1", amount="1000"),
        make_loan("l-2", "u-2", amount="2000", balance="1700"),
        make_loan("l-3", "u-2", amount="400", balance="0"),
    ]


class TestCategoryTotals:

    def test_zero_filled(self):
        totals = category_totals([])
        assert set(totals) == set(PaymentCategory)
        assert all(value == 0 for value in totals.values())

    def test_approved_only(self):
        totals = category_totals(sample_payments())
        assert totals[PaymentCategory.CONTRIBUTION] == Decimal("1000")
        assert totals[PaymentCategory.SAVING] == Decimal("500")
        assert totals[PaymentCategory.DIAMOND_SAVING] == Decimal("2000")
        assert totals[PaymentCategory.LOAN_REPAYMENT] == Decimal("300")

    def test_single_client(self):
        totals = category_totals(sample_payments(), client_id="u-2")
        assert totals[PaymentCategory.CONTRIBUTION] == Decimal("0")
        assert totals[PaymentCategory.DIAMOND_SAVING] == Decimal("2000")

    def test_grand_and_pool_totals(self):
        totals = category_totals(sample_payments())
        assert grand_total(totals) == Decimal("3800")
        assert pool_total(totals) == Decimal("3500")


class TestLoanFigures:

    def test_total_disbursed_counts_paid_loans(self):
        assert total_disbursed(sample_loans()) == Decimal("3230")

    def test_outstanding_balance_active_only(self):
        assert outstanding_balance(sample_loans()) == Decimal("2700")
        assert outstanding_balance(sample_loans(), client_id="u-2") == Decimal("1700")

    def test_net_liquidity(self):
        assert net_liquidity(sample_payments(), sample_loans()) == Decimal("570")

    def test_net_liquidity_can_be_negative(self):
        assert net_liquidity([], sample_loans()) == Decimal("-3230")


class TestStatusCounts:

    def test_counts(self):
        users = [
            make_user("u-1"),
            make_user("u-3", status=UserStatus.PENDING),
            make_user("u-4", role=UserRole.MANAGER_1, status=UserStatus.PENDING),
        ]
        counts = status_counts(sample_payments(), sample_loans(), users)
        assert counts.pending_payments == 1
        assert counts.approved_payments == 4
        assert counts.rejected_payments == 1
        assert counts.pending_registrations == 1
        assert counts.active_loans == 2
        assert counts.paid_loans == 1


class TestClientSummaries:

    def test_rows_sorted_by_name(self):
        users = [
            make_user("u-1", name="Zainab"),
            make_user("u-2", name="Bola"),
            make_user("u-3", name="Chidi", status=UserStatus.PENDING),
        ]
        rows = client_summaries(sample_payments(), sample_loans(), users)
        assert [row.client_name for row in rows] == ["Bola", "Zainab"]
        bola = rows[0]
        assert bola.total == Decimal("2300")
        assert bola.outstanding_balance == Decimal("1700")

    def test_managers_excluded(self):
        users = [make_user("u-9", role=UserRole.MANAGER_2)]
        assert client_summaries([], [], users) == ()


class TestAggregate:

    def test_full_view(self):
        views = aggregate(sample_payments(), sample_loans(), [make_user("u-1"), make_user("u-2")])
        assert views.total_inflow == Decimal("3800")
        assert views.pool_total == Decimal("3500")
        assert views.total_disbursed == Decimal("3230")
        assert views.net_liquidity == Decimal("570")
        assert views.outstanding_balance == Decimal("2700")
        assert len(views.clients) == 2

    def test_empty_ledger(self):
        views = aggregate([], [])
        assert views.total_inflow == 0
        assert views.net_liquidity == 0
        assert views.counts.active_loans == 0
        assert views.clients == ()

    def test_recomputed_each_call(self):
        payments, loans = sample_payments(), sample_loans()
        assert aggregate(payments, loans) == aggregate(payments, loans)
