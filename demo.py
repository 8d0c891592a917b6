#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Contribution Ledger Step by Step

A walk through one cooperative's books: members join, pay in, borrow, repay,
and the managers watch the pool. Each step builds on the previous one.

WHAT YOU'LL LEARN:
  1-3:  Members      - Bootstrapping managers, registration, approval, login
  4-5:  Payments     - Submitting receipts, approving and rejecting them
  6-9:  Loans        - Issuance, repayment, interest catch-up, payoff
  10-11: Operations  - Reminders, broadcasts, dashboards
  12:   Persistence  - The same ledger on JSON files

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys
import tempfile

from contribution_ledger import (
    LedgerService, InMemoryStore, JsonFileStore,
    PaymentCategory, PaymentStatus, UserRole,
    AuthenticationError, ValidationError,
    format_money,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 15, 10, 0, 0)
    loan_principal: Decimal = Decimal("10000")
    first_repayment: Decimal = Decimal("3000")
    contribution: Decimal = Decimal("2500")
    diamond_saving: Decimal = Decimal("1200")


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


class DemoClock:
    """Clock the tutorial moves by hand."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, days: int) -> datetime:
        self.current += timedelta(days=days)
        return self.current


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def money(amount: Decimal) -> str:
    return format_money(amount)


# ============================================================================
# PHASE 1: MEMBERS (Steps 1-3)
# ============================================================================

def step_01_bootstrap(clock: DemoClock):
    step_header(1, "Bootstrapping the Ledger",
        "Create a store, a service and the two manager accounts.")

    print("""
    The ledger keeps five collections: users, payments, loans,
    notifications and settings. LedgerService is the only thing that
    writes them. verbose=True prints one line per state change.
    """)

    print(">>> service = LedgerService(InMemoryStore(), clock=clock, verbose=True)")
    service = LedgerService(InMemoryStore(), clock=clock, verbose=True)
    service.create_manager("System Admin One", "admin1@example.com", "ADMIN-01", "admin1",
                           role=UserRole.MANAGER_1)
    service.create_manager("System Admin Two", "admin2@example.com", "ADMIN-02", "admin2",
                           role=UserRole.MANAGER_2)
    return service


def step_02_register_and_approve(service: LedgerService):
    step_header(2, "Registration and Approval",
        "A client registers, a manager approves and assigns a member id.")

    ada = service.register_client("Ada Obi", "ada@example.com")
    bola = service.register_client("Bola Ade", "bola@example.com")
    print(f"\nAda status after registering: {ada.status.value}")

    section_header("Manager approves Ada, rejects Bola")
    ada = service.approve_client(ada.id, "JSY-007", "welcome-7")
    service.reject_client(bola.id)

    for notice in service.notifications_for(ada.id):
        print(f"Ada's inbox: {notice.message}")
    return ada


def step_03_login(service: LedgerService, ada):
    step_header(3, "Logging In",
        "Member ids are case-insensitive; the first login forces a password change.")

    try:
        service.login("JSY-007", "wrong")
    except AuthenticationError as exc:
        print(f"Wrong password refused: {exc}")

    user = service.login("jsy-007", "welcome-7")
    print(f"Logged in as {user.name}, first login: {user.is_first_login}")
    user = service.update_password(user.id, "ada-secret")
    print(f"After password change, first login: {user.is_first_login}")


# ============================================================================
# PHASE 2: PAYMENTS (Steps 4-5)
# ============================================================================

def step_04_submit_payments(service: LedgerService, ada, clock: DemoClock):
    step_header(4, "Submitting Payments",
        "Clients submit claimed transfers with a receipt; they start PENDING.")

    clock.advance(days=2)
    contribution = service.submit_payment(
        ada.id, CONFIG.contribution, PaymentCategory.CONTRIBUTION, "receipts/ada-001.png")
    diamond = service.submit_payment(
        ada.id, CONFIG.diamond_saving, PaymentCategory.DIAMOND_SAVING, "receipts/ada-002.png")
    blurry = service.submit_payment(
        ada.id, Decimal("400"), PaymentCategory.SAVING, "receipts/ada-003.png")

    section_header("Validation happens before anything is written")
    try:
        service.submit_payment(ada.id, Decimal("-50"), PaymentCategory.SAVING, "receipts/x.png")
    except ValidationError as exc:
        print(f"Rejected: {exc}")

    return contribution, diamond, blurry


def step_05_review_payments(service: LedgerService, contribution, diamond, blurry):
    step_header(5, "Reviewing Payments",
        "Only APPROVED payments count toward any total.")

    service.set_payment_status(contribution.id, PaymentStatus.APPROVED)
    service.set_payment_status(diamond.id, PaymentStatus.APPROVED)
    service.set_payment_status(blurry.id, PaymentStatus.REJECTED)

    views = service.manager_dashboard().views
    for category, total in views.category_totals.items():
        print(f"  {category.value:<16} {money(total)}")
    print(f"  {'Pool total':<16} {money(views.pool_total)}")


# ============================================================================
# PHASE 3: LOANS (Steps 6-9)
# ============================================================================

def step_06_issue_loan(service: LedgerService, ada):
    step_header(6, "Issuing a Loan",
        "Interest is deducted up front; the client owes the full principal.")

    print("""
    upfront_interest    = principal * 5%
    disbursement_amount = principal - upfront_interest
    balance             = principal
    closing_date        = opening_date + 3 months
    """)

    loan = service.issue_loan(ada.id, ada.name, CONFIG.loan_principal)
    print(f"Balance:   {money(loan.balance)}")
    print(f"Disbursed: {money(loan.disbursement_amount)}")
    print(f"Interest:  {money(loan.interest_amount)}")
    print(f"Due:       {loan.closing_date.date()}")
    return loan


def step_07_partial_repayment(service: LedgerService, ada, loan, clock: DemoClock):
    step_header(7, "Repaying Part of a Loan",
        "Approving a Loan Repayment reduces the linked loan in the same operation.")

    clock.advance(days=20)
    payment = service.submit_payment(
        ada.id, CONFIG.first_repayment, PaymentCategory.LOAN_REPAYMENT,
        "receipts/ada-004.png", loan_id=loan.id)
    result = service.set_payment_status(payment.id, PaymentStatus.APPROVED)
    print(f"\nLoan balance now {money(result.loan.balance)} [{result.loan.status.value}]")

    section_header("Re-approving never charges twice")
    service.set_payment_status(payment.id, PaymentStatus.PENDING)
    result = service.set_payment_status(payment.id, PaymentStatus.APPROVED)
    print(f"Loan touched on re-approval: {result.loan_touched}")


def step_08_interest_catch_up(service: LedgerService, ada, clock: DemoClock):
    step_header(8, "Interest Catch-Up",
        "Every elapsed cycle is charged before any loan is shown.")

    print("""
    Nobody opened the app for seven months. Two closing dates passed.
    The next dashboard view charges both cycles, compounding, and moves
    the closing date forward from the old boundary, not from today.
    """)

    clock.advance(days=210)
    dashboard = service.client_dashboard(ada.id)
    loan = dashboard.loans[0]
    print(f"Today:       {clock().date()}")
    print(f"Balance:     {money(loan.balance)}")
    print(f"Interest:    {money(loan.interest_amount)}")
    print(f"Next due:    {loan.closing_date.date()}")
    return loan


def step_09_payoff(service: LedgerService, ada, loan, clock: DemoClock):
    step_header(9, "Paying Off",
        "A loan whose balance reaches zero is PAID and never accrues again.")

    clock.advance(days=1)
    payoff = service.submit_payment(
        ada.id, loan.balance + Decimal("100"), PaymentCategory.LOAN_REPAYMENT,
        "receipts/ada-005.png", loan_id=loan.id)
    result = service.set_payment_status(payoff.id, PaymentStatus.APPROVED)
    print(f"\nOverpaid by {money(Decimal('100'))}; balance floors at {money(result.loan.balance)}")

    clock.advance(days=365)
    after = service.process_interest()[0]
    print(f"A year later: {money(after.balance)} [{after.status.value}]")


# ============================================================================
# PHASE 4: OPERATIONS (Steps 10-11)
# ============================================================================

def step_10_reminders(service: LedgerService, ada, clock: DemoClock):
    step_header(10, "Reminders and Broadcasts",
        "Clients hear about loans falling due within the reminder window.")

    loan = service.issue_loan(ada.id, ada.name, Decimal("5000"))
    clock.current = loan.closing_date - timedelta(days=3)
    service.send_due_reminders()
    service.send_due_reminders()
    service.broadcast("Annual general meeting on the last Saturday of the month.")

    for notice in service.notifications_for(ada.id)[:3]:
        print(f"  [{notice.date.date()}] {notice.message}")


def step_11_dashboard(service: LedgerService):
    step_header(11, "The Manager's View",
        "Every figure is recomputed from the collections on each view.")

    views = service.manager_dashboard().views
    print(f"Total inflow:        {money(views.total_inflow)}")
    print(f"Total disbursed:     {money(views.total_disbursed)}")
    print(f"Net liquidity:       {money(views.net_liquidity)}")
    print(f"Outstanding balance: {money(views.outstanding_balance)}")
    print(f"Pending payments:    {views.counts.pending_payments}")
    print(f"Active / paid loans: {views.counts.active_loans} / {views.counts.paid_loans}")
    for row in views.clients:
        print(f"  {row.client_name:<12} paid in {money(row.total)}, owes {money(row.outstanding_balance)}")


# ============================================================================
# PHASE 5: PERSISTENCE (Step 12)
# ============================================================================

def step_12_json_store():
    step_header(12, "Persisting to Disk",
        "JsonFileStore keeps one JSON document per collection.")

    with tempfile.TemporaryDirectory() as directory:
        clock = DemoClock(CONFIG.start_time)
        writer = LedgerService(JsonFileStore(directory), clock=clock, verbose=False)
        member = writer.register_client("Chidi Eze", "chidi@example.com")
        writer.issue_loan(member.id, member.name, Decimal("2000"))

        clock.advance(days=100)
        reader = LedgerService(JsonFileStore(directory), clock=clock, verbose=False)
        loan = reader.manager_dashboard().loans[0]
        print(f"Reloaded from {directory}")
        print(f"Chidi's loan after one elapsed cycle: {money(loan.balance)}")


# ============================================================================
# MAIN
# ============================================================================

def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       CONTRIBUTION LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    clock = DemoClock(CONFIG.start_time)

    service = step_01_bootstrap(clock)
    wait_for_enter()

    ada = step_02_register_and_approve(service)
    wait_for_enter()

    step_03_login(service, ada)
    wait_for_enter()

    contribution, diamond, blurry = step_04_submit_payments(service, ada, clock)
    wait_for_enter()

    step_05_review_payments(service, contribution, diamond, blurry)
    wait_for_enter()

    loan = step_06_issue_loan(service, ada)
    wait_for_enter()

    step_07_partial_repayment(service, ada, loan, clock)
    wait_for_enter()

    loan = step_08_interest_catch_up(service, ada, clock)
    wait_for_enter()

    step_09_payoff(service, ada, loan, clock)
    wait_for_enter()

    step_10_reminders(service, ada, clock)
    wait_for_enter()

    step_11_dashboard(service)
    wait_for_enter()

    step_12_json_store()

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See contribution_ledger/accrual.py for the interest formulas
      - See tests/conformance/ for the invariants every change must keep
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
