"""
accrual.py - Loan Accrual Engine

Pure functions over Loan records. Nothing here reads a store, prints, or
mutates its inputs; every function returns new Loan instances.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. CALCULATION FUNCTIONS (calculate_*):
   - Take amounts and rates explicitly, return Decimals
   - Example: calculate_issuance(principal, upfront_rate) -> IssuanceTerms

2. LOAN TRANSITIONS:
   - accrue_cycle(loan, rate, months): exactly one cycle, unconditionally
   - accrue_loan(loan, now, ...): every elapsed cycle (or one, if catch_up=False)
   - apply_repayment(loan, amount): balance reduction floored at zero
   - issue_loan(...): build a fresh ACTIVE loan

3. COLLECTION PASS:
   - accrue_due_interest(loans, now): run accrue_loan over a whole collection

Key Formulas:
    upfront_interest     = principal * upfront_rate
    disbursement_amount  = principal - upfront_interest
    recurring_interest   = balance * interest_rate          (per elapsed cycle)
    closing_date'        = closing_date + cycle_months       (from the old boundary)
    balance' (repayment) = max(0, balance - amount)

A loan is terminal once PAID (balance <= 0): accrual never touches it again.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import List, Sequence, Tuple

from .core import (
    Loan, LoanStatus, ValidationError,
    DEFAULT_INTEREST_RATE, DEFAULT_UPFRONT_RATE, DEFAULT_CYCLE_MONTHS, ZERO,
    add_months, to_decimal,
)


# Upper bound on cycles applied to one loan in a single pass. At three months
# per cycle this is 250 years; hitting it means a corrupt closing_date.
MAX_CATCH_UP_CYCLES = 1000


@dataclass(frozen=True, slots=True)
class IssuanceTerms:
    """Cash figures fixed when a loan is issued."""
    principal: Decimal
    upfront_interest: Decimal
    disbursement_amount: Decimal


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_issuance(principal: Decimal, upfront_rate: Decimal = DEFAULT_UPFRONT_RATE) -> IssuanceTerms:
    """
    Split a principal into upfront interest and disbursed cash.

    The client owes the full principal even though only
    `principal - upfront_interest` is paid out.

    Raises:
        ValidationError: if principal is not positive.
    """
    principal = to_decimal(principal, "principal")
    if principal <= ZERO:
        raise ValidationError(f"principal must be positive, got {principal}")
    upfront = principal * to_decimal(upfront_rate, "upfront_rate")
    return IssuanceTerms(
        principal=principal,
        upfront_interest=upfront,
        disbursement_amount=principal - upfront,
    )


def calculate_recurring_interest(balance: Decimal, interest_rate: Decimal = DEFAULT_INTEREST_RATE) -> Decimal:
    """
    Interest charged for one elapsed cycle.

    Kept at full Decimal precision so any positive balance accrues a positive
    amount; rounding to cents happens only for display.
    """
    if balance <= ZERO:
        return ZERO
    return balance * interest_rate


def is_cycle_elapsed(loan: Loan, now: datetime) -> bool:
    """True when the loan is accruing and its closing date is strictly before now."""
    return loan.is_active and loan.closing_date < now


# ============================================================================
# LOAN TRANSITIONS
# ============================================================================

def issue_loan(
    loan_id: str,
    client_id: str,
    client_name: str,
    principal: Decimal,
    opening_date: datetime,
    upfront_rate: Decimal = DEFAULT_UPFRONT_RATE,
    cycle_months: int = DEFAULT_CYCLE_MONTHS,
) -> Loan:
    """
    Build a new ACTIVE loan.

    Example:
        loan = issue_loan("l-1", "u-1", "Ada", Decimal("1000"), datetime(2025, 1, 15))
        # loan.interest_amount == 50, loan.disbursement_amount == 950,
        # loan.balance == 1000, loan.closing_date == datetime(2025, 4, 15)
    """
    terms = calculate_issuance(principal, upfront_rate)
    return Loan(
        id=loan_id,
        client_id=client_id,
        client_name=client_name,
        amount=terms.principal,
        disbursement_amount=terms.disbursement_amount,
        interest_amount=terms.upfront_interest,
        balance=terms.principal,
        opening_date=opening_date,
        closing_date=add_months(opening_date, cycle_months),
        status=LoanStatus.ACTIVE,
    )


def accrue_cycle(
    loan: Loan,
    interest_rate: Decimal = DEFAULT_INTEREST_RATE,
    cycle_months: int = DEFAULT_CYCLE_MONTHS,
) -> Loan:
    """
    Apply exactly one cycle of interest and advance the closing date.

    Does not look at the clock. Paid or zero-balance loans are returned as-is.
    """
    if not loan.is_active:
        return loan
    recurring = calculate_recurring_interest(loan.balance, interest_rate)
    return replace(
        loan,
        balance=loan.balance + recurring,
        interest_amount=loan.interest_amount + recurring,
        closing_date=add_months(loan.closing_date, cycle_months),
    )


def accrue_loan(
    loan: Loan,
    now: datetime,
    interest_rate: Decimal = DEFAULT_INTEREST_RATE,
    cycle_months: int = DEFAULT_CYCLE_MONTHS,
    catch_up: bool = True,
) -> Loan:
    """
    Accrue every cycle of `loan` that ended before `now`.

    With catch_up=False only the first elapsed cycle is applied, so a loan
    several cycles overdue needs several passes to catch up.

    Each step compounds on the previous step's balance and advances the
    closing date from the previous boundary, never from `now`.
    """
    cycles = 0
    while is_cycle_elapsed(loan, now):
        if cycles >= MAX_CATCH_UP_CYCLES:
            raise ValidationError(
                f"Loan {loan.id}: more than {MAX_CATCH_UP_CYCLES} elapsed cycles "
                f"(closing_date={loan.closing_date.isoformat()})"
            )
        loan = accrue_cycle(loan, interest_rate, cycle_months)
        cycles += 1
        if not catch_up:
            break
    return loan


def apply_repayment(loan: Loan, amount: Decimal) -> Loan:
    """
    Reduce a loan's balance by an approved repayment.

    The balance floors at zero; the loan becomes PAID in the same step, so no
    record with balance 0 and status ACTIVE is ever produced.

    Raises:
        ValidationError: if amount is not positive.
    """
    amount = to_decimal(amount)
    if amount <= ZERO:
        raise ValidationError(f"repayment amount must be positive, got {amount}")
    new_balance = max(ZERO, loan.balance - amount)
    return replace(
        loan,
        balance=new_balance,
        status=LoanStatus.PAID if new_balance <= ZERO else LoanStatus.ACTIVE,
    )


# ============================================================================
# COLLECTION PASS
# ============================================================================

def accrue_due_interest(
    loans: Sequence[Loan],
    now: datetime,
    interest_rate: Decimal = DEFAULT_INTEREST_RATE,
    cycle_months: int = DEFAULT_CYCLE_MONTHS,
    catch_up: bool = True,
) -> Tuple[List[Loan], bool]:
    """
    Run accrual over an entire loan collection.

    Must be called before presenting any loan-derived view so that no view
    shows a balance from an expired cycle.

    Returns:
        (loans', changed): a new list in the same order, and whether any loan
        was modified. Callers persist only when changed is True.
    """
    updated: List[Loan] = []
    changed = False
    for loan in loans:
        new_loan = accrue_loan(loan, now, interest_rate, cycle_months, catch_up)
        if new_loan is not loan:
            changed = True
        updated.append(new_loan)
    return updated, changed
