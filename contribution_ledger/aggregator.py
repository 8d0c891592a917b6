"""
aggregator.py - Ledger Aggregator

Read-side derivation of totals and counters from the raw collections.

Every function is pure and recomputes from scratch on each call; nothing is
cached, so two calls over unchanged collections always agree.

Key Formulas:
    category_totals[c]  = sum(p.amount for approved payments p with category c)
    total_inflow        = sum(category_totals.values())
    pool_total          = total_inflow - category_totals[LOAN_REPAYMENT]
    total_disbursed     = sum(loan.disbursement_amount for every loan)
    net_liquidity       = total_inflow - total_disbursed

Disbursement, not principal, is deducted: it is the cash that actually left
the organization.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .core import (
    Loan, LoanStatus, Payment, PaymentCategory, PaymentStatus,
    User, UserRole, UserStatus,
    POOL_CATEGORIES, ZERO,
)


# Mapping from category to approved amount.
CategoryTotals = Dict[PaymentCategory, Decimal]


@dataclass(frozen=True, slots=True)
class StatusCounts:
    """Badge counters for the dashboards."""
    pending_payments: int
    approved_payments: int
    rejected_payments: int
    pending_registrations: int
    active_loans: int
    paid_loans: int


@dataclass(frozen=True, slots=True)
class ClientSummary:
    """One row of the manager's per-client ledger table."""
    client_id: str
    client_name: str
    category_totals: Mapping[PaymentCategory, Decimal]
    total: Decimal
    outstanding_balance: Decimal


@dataclass(frozen=True, slots=True)
class LedgerViews:
    """
    Everything the manager dashboard shows, derived in one pass.

    Attributes:
        category_totals: Organization-wide approved totals per category
        total_inflow: Sum of all approved payments
        pool_total: Approved contributions and savings (repayments excluded)
        total_disbursed: Cash paid out across all loans
        net_liquidity: total_inflow - total_disbursed
        outstanding_balance: Sum of balances of active loans
        counts: Status counters
        clients: Per-client rows, ordered by client name then id
    """
    category_totals: Mapping[PaymentCategory, Decimal]
    total_inflow: Decimal
    pool_total: Decimal
    total_disbursed: Decimal
    net_liquidity: Decimal
    outstanding_balance: Decimal
    counts: StatusCounts
    clients: Tuple[ClientSummary, ...] = ()


def _empty_totals() -> CategoryTotals:
    return {category: ZERO for category in PaymentCategory}


def category_totals(payments: Iterable[Payment], client_id: Optional[str] = None) -> CategoryTotals:
    """
    Approved totals per category, zero-filled for every category.

    Args:
        payments: Payment collection
        client_id: Restrict to one client's payments (None = everyone)
    """
    totals = _empty_totals()
    for payment in payments:
        if payment.status is not PaymentStatus.APPROVED:
            continue
        if client_id is not None and payment.client_id != client_id:
            continue
        totals[payment.category] += payment.amount
    return totals


def grand_total(totals: Mapping[PaymentCategory, Decimal]) -> Decimal:
    """Sum of per-category totals, in enum order."""
    return sum((totals.get(category, ZERO) for category in PaymentCategory), ZERO)


def pool_total(totals: Mapping[PaymentCategory, Decimal]) -> Decimal:
    """Sum of the contribution and savings categories only."""
    return sum((totals.get(category, ZERO) for category in POOL_CATEGORIES), ZERO)


def total_disbursed(loans: Iterable[Loan]) -> Decimal:
    """Cash handed out across every loan, paid or not."""
    return sum((loan.disbursement_amount for loan in loans), ZERO)


def outstanding_balance(loans: Iterable[Loan], client_id: Optional[str] = None) -> Decimal:
    """Sum of balances of active loans, optionally for one client."""
    return sum(
        (
            loan.balance for loan in loans
            if loan.status is LoanStatus.ACTIVE
            and (client_id is None or loan.client_id == client_id)
        ),
        ZERO,
    )


def net_liquidity(payments: Iterable[Payment], loans: Iterable[Loan]) -> Decimal:
    """Approved inflow minus cash disbursed on loans."""
    return grand_total(category_totals(payments)) - total_disbursed(loans)


def status_counts(
    payments: Sequence[Payment],
    loans: Sequence[Loan],
    users: Sequence[User] = (),
) -> StatusCounts:
    return StatusCounts(
        pending_payments=sum(1 for p in payments if p.status is PaymentStatus.PENDING),
        approved_payments=sum(1 for p in payments if p.status is PaymentStatus.APPROVED),
        rejected_payments=sum(1 for p in payments if p.status is PaymentStatus.REJECTED),
        pending_registrations=sum(
            1 for u in users
            if u.role is UserRole.CLIENT and u.status is UserStatus.PENDING
        ),
        active_loans=sum(1 for loan in loans if loan.status is LoanStatus.ACTIVE),
        paid_loans=sum(1 for loan in loans if loan.status is LoanStatus.PAID),
    )


def client_summaries(
    payments: Sequence[Payment],
    loans: Sequence[Loan],
    users: Sequence[User],
) -> Tuple[ClientSummary, ...]:
    """Per-client rows for approved clients, sorted by name then id."""
    rows: List[ClientSummary] = []
    clients = [u for u in users if u.role is UserRole.CLIENT and u.status is UserStatus.APPROVED]
    for client in sorted(clients, key=lambda u: (u.name, u.id)):
        totals = category_totals(payments, client_id=client.id)
        rows.append(ClientSummary(
            client_id=client.id,
            client_name=client.name,
            category_totals=totals,
            total=grand_total(totals),
            outstanding_balance=outstanding_balance(loans, client_id=client.id),
        ))
    return tuple(rows)


def aggregate(
    payments: Sequence[Payment],
    loans: Sequence[Loan],
    users: Sequence[User] = (),
) -> LedgerViews:
    """
    Derive the full set of organization-wide views.

    Example:
        views = aggregate(store.get_all("payments"), store.get_all("loans"))
        print(views.net_liquidity)
    """
    totals = category_totals(payments)
    inflow = grand_total(totals)
    disbursed = total_disbursed(loans)
    return LedgerViews(
        category_totals=totals,
        total_inflow=inflow,
        pool_total=pool_total(totals),
        total_disbursed=disbursed,
        net_liquidity=inflow - disbursed,
        outstanding_balance=outstanding_balance(loans),
        counts=status_counts(payments, loans, users),
        clients=client_summaries(payments, loans, users),
    )
