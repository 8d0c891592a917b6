"""
reconciliation.py - Payment Reconciliation

Applies a manager's status decision to a payment and, for an approved loan
repayment, reduces the linked loan's balance.

reconcile_payment() is pure: it takes whole collections and returns whole new
collections, leaving persistence (and rollback) to the caller.

Rules:
    - Unknown payment id                    -> NotFound
    - APPROVED + LOAN_REPAYMENT + loan_id   -> loan.balance = max(0, balance - amount)
    - linked loan missing                   -> payment still approved, no loan change
    - any other transition                  -> status overwrite only

Approval is not reversible at the ledger level: moving an approved repayment
back to PENDING or REJECTED leaves the loan balance where it is. The payment
remembers that it was applied (loan_applied), so approving it again is a
plain status overwrite and never charges the loan twice.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .core import Loan, LoanStatus, NotFound, Payment, PaymentStatus, ValidationError
from .accrual import apply_repayment


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """
    Outcome of a status change.

    Attributes:
        payments: Full payment collection after the change
        loans: Full loan collection after the change
        payment: The updated payment
        previous_status: Status the payment had before the change
        loan: The updated loan, or None if no loan was touched
    """
    payments: Tuple[Payment, ...]
    loans: Tuple[Loan, ...]
    payment: Payment
    previous_status: PaymentStatus
    loan: Optional[Loan] = None

    @property
    def loan_touched(self) -> bool:
        return self.loan is not None

    @property
    def loan_paid_off(self) -> bool:
        return self.loan is not None and self.loan.status is LoanStatus.PAID


def find_payment(payments: Sequence[Payment], payment_id: str) -> Payment:
    """Return the payment with `payment_id`, or raise NotFound."""
    for payment in payments:
        if payment.id == payment_id:
            return payment
    raise NotFound(f"Payment {payment_id} not found")


def find_loan(loans: Sequence[Loan], loan_id: str) -> Optional[Loan]:
    """Return the loan with `loan_id`, or None."""
    for loan in loans:
        if loan.id == loan_id:
            return loan
    return None


def reconcile_payment(
    payments: Sequence[Payment],
    loans: Sequence[Loan],
    payment_id: str,
    new_status: PaymentStatus,
) -> ReconciliationResult:
    """
    Set a payment's status and propagate an approved repayment to its loan.

    Only the loan whose id equals payment.loan_id can change; every other
    loan is carried over as the same object.

    Raises:
        NotFound: if no payment has `payment_id`.
        ValidationError: if `new_status` is not a PaymentStatus value.
    """
    try:
        new_status = PaymentStatus(new_status)
    except ValueError:
        raise ValidationError(f"invalid payment status: {new_status!r}") from None
    payment = find_payment(payments, payment_id)

    updated_loan: Optional[Loan] = None
    new_loans: List[Loan] = list(loans)
    updated_payment = replace(payment, status=new_status)

    if (
        new_status is PaymentStatus.APPROVED
        and payment.is_loan_repayment
        and payment.loan_id
        and not payment.loan_applied
    ):
        linked = find_loan(loans, payment.loan_id)
        if linked is not None:
            updated_loan = apply_repayment(linked, payment.amount)
            new_loans = [updated_loan if loan.id == linked.id else loan for loan in loans]
            updated_payment = replace(updated_payment, loan_applied=True)

    new_payments = [updated_payment if p.id == payment_id else p for p in payments]

    return ReconciliationResult(
        payments=tuple(new_payments),
        loans=tuple(new_loans),
        payment=updated_payment,
        previous_status=payment.status,
        loan=updated_loan,
    )
