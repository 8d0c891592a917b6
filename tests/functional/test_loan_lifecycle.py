"""
test_loan_lifecycle.py - End-to-end loan and contribution scenarios

Tests complete flows through LedgerService:
- Issue, partial repayment, payoff, and no accrual once paid
- Overdue loan catching up several cycles before a dashboard view
- Registration through first login and password change
- Full ledger persisted to JSON files and reloaded by a second service
"""

import pytest
from datetime import datetime
from decimal import Decimal

from contribution_ledger import (
    LedgerService, JsonFileStore, InMemoryStore,
    LoanStatus, PaymentCategory, PaymentStatus, UserRole,
    COLLECTION_LOANS,
)
from tests.builders import T0
from tests.fake_store import FakeClock, SequentialIds


class TestTenThousandLoan:
    """Issue 10,000; repay 3,000 then 7,000; accrual is a no-op once paid."""

    def test_full_lifecycle(self, service, client, clock):
        loan = service.issue_loan(client.id, client.name, Decimal("10000"))
        assert loan.balance == Decimal("10000")
        assert loan.disbursement_amount == Decimal("9500")
        assert loan.interest_amount == Decimal("500")
        assert loan.closing_date == datetime(2025, 4, 15, 10, 0)

        clock.advance(days=10)
        first = service.submit_payment(
            client.id, Decimal("3000"), PaymentCategory.LOAN_REPAYMENT, "receipt-1", loan_id=loan.id,
        )
        result = service.set_payment_status(first.id, PaymentStatus.APPROVED)
        assert result.loan.balance == Decimal("7000")
        assert result.loan.status is LoanStatus.ACTIVE

        clock.advance(days=10)
        second = service.submit_payment(
            client.id, Decimal("7000"), PaymentCategory.LOAN_REPAYMENT, "receipt-2", loan_id=loan.id,
        )
        result = service.set_payment_status(second.id, PaymentStatus.APPROVED)
        assert result.loan.balance == Decimal("0")
        assert result.loan.status is LoanStatus.PAID
        assert result.loan_paid_off

        clock.set(datetime(2026, 1, 1))
        loans = service.process_interest()
        assert loans[0].balance == Decimal("0")
        assert loans[0].status is LoanStatus.PAID
        assert loans[0].interest_amount == Decimal("500")

        views = service.manager_dashboard().views
        assert views.category_totals[PaymentCategory.LOAN_REPAYMENT] == Decimal("10000")
        assert views.total_disbursed == Decimal("9500")
        assert views.net_liquidity == Decimal("500")
        assert views.outstanding_balance == Decimal("0")
        assert views.counts.paid_loans == 1

    def test_overdue_loan_catches_up_before_view(self, service, client, clock):
        service.issue_loan(client.id, None, Decimal("10000"))
        clock.set(datetime(2025, 10, 16))

        dashboard = service.client_dashboard(client.id)

        loan = dashboard.loans[0]
        assert loan.balance == Decimal("11576.25")
        assert loan.interest_amount == Decimal("2076.25")
        assert loan.closing_date == datetime(2026, 1, 15, 10, 0)
        assert dashboard.outstanding_balance == Decimal("11576.25")

    def test_repayment_after_accrual(self, service, client, clock):
        loan = service.issue_loan(client.id, None, Decimal("10000"))
        clock.set(datetime(2025, 4, 20))
        payment = service.submit_payment(
            client.id, Decimal("10500"), PaymentCategory.LOAN_REPAYMENT, "r", loan_id=loan.id,
        )
        service.process_interest()
        result = service.set_payment_status(payment.id, PaymentStatus.APPROVED)
        assert result.loan.balance == Decimal("0")
        assert result.loan.status is LoanStatus.PAID


class TestMemberJourney:

    def test_register_to_first_login(self, service, manager):
        pending = service.register_client("Chidi Eze", "chidi@example.com")
        service.approve_client(pending.id, "JSY-021", "welcome-21")

        user = service.login("jsy-021", "welcome-21")
        assert user.is_first_login
        updated = service.update_password(user.id, "chidi-own")
        assert not updated.is_first_login

        assert not service.login("JSY-021", "chidi-own").is_first_login
        admin = service.login("ADMIN-01", "admin1")
        assert admin.role is UserRole.MANAGER_1


class TestPersistedLedger:

    def test_reload_from_json(self, tmp_path):
        clock = FakeClock(T0)
        writer = LedgerService(JsonFileStore(tmp_path), clock=clock, id_factory=SequentialIds(), verbose=False)
        client = writer.register_client("Ada Obi", "ada@example.com")
        loan = writer.issue_loan(client.id, None, Decimal("10000"))
        saving = writer.submit_payment(client.id, Decimal("2500.50"), PaymentCategory.DIAMOND_SAVING, "r")
        writer.set_payment_status(saving.id, PaymentStatus.APPROVED)
        writer.update_settings(False)

        clock.set(datetime(2025, 4, 16))
        reader = LedgerService(JsonFileStore(tmp_path), clock=clock, verbose=False)
        dashboard = reader.manager_dashboard()

        assert dashboard.loans[0].id == loan.id
        assert dashboard.loans[0].balance == Decimal("10500")
        assert dashboard.views.category_totals[PaymentCategory.DIAMOND_SAVING] == Decimal("2500.50")
        assert dashboard.settings.automated_reminders_enabled is False
        assert JsonFileStore(tmp_path).get_all(COLLECTION_LOANS)[0].balance == Decimal("10500")

    @pytest.mark.parametrize("store_factory", [InMemoryStore, None])
    def test_same_results_on_every_store(self, tmp_path, store_factory):
        store = store_factory() if store_factory else JsonFileStore(tmp_path)
        clock = FakeClock(T0)
        service = LedgerService(store, clock=clock, id_factory=SequentialIds(), verbose=False)
        client = service.register_client("Ada Obi", "ada@example.com")
        loan = service.issue_loan(client.id, None, Decimal("8000"))
        payment = service.submit_payment(
            client.id, Decimal("2000"), PaymentCategory.LOAN_REPAYMENT, "r", loan_id=loan.id,
        )
        service.set_payment_status(payment.id, PaymentStatus.APPROVED)
        clock.set(datetime(2025, 4, 16))

        views = service.manager_dashboard().views
        assert views.outstanding_balance == Decimal("6300")
        assert views.net_liquidity == Decimal("2000") - Decimal("7600")
