"""
builders.py - Record builders with sensible defaults for tests.
"""

from datetime import datetime
from decimal import Decimal

from contribution_ledger import (
    Loan, LoanStatus, Payment, PaymentCategory, PaymentStatus,
    User, UserRole, UserStatus,
)


T0 = datetime(2025, 1, 15, 10, 0)


def make_user(user_id="u-1", name="Ada Obi", role=UserRole.CLIENT,
              status=UserStatus.APPROVED, **kwargs) -> User:
    defaults = dict(
        email=f"{user_id}@example.com",
        is_first_login=False,
        registration_date=T0,
    )
    defaults.update(kwargs)
    return User(id=user_id, name=name, role=role, status=status, **defaults)


def make_payment(payment_id="p-1", client_id="u-1", amount="100",
                 category=PaymentCategory.CONTRIBUTION,
                 status=PaymentStatus.APPROVED, **kwargs) -> Payment:
    defaults = dict(
        client_name="Ada Obi",
        date=T0,
        receipt_ref=f"receipt-{payment_id}",
    )
    defaults.update(kwargs)
    return Payment(
        id=payment_id,
        client_id=client_id,
        amount=Decimal(str(amount)),
        category=category,
        status=status,
        **defaults,
    )


def make_loan(loan_id="l-1", client_id="u-1", amount="10000", balance=None,
              closing_date=datetime(2025, 4, 15, 10, 0), **kwargs) -> Loan:
    amount = Decimal(str(amount))
    balance = amount if balance is None else Decimal(str(balance))
    defaults = dict(
        client_name="Ada Obi",
        disbursement_amount=amount * Decimal("0.95"),
        interest_amount=amount * Decimal("0.05"),
        opening_date=T0,
        status=LoanStatus.PAID if balance <= 0 else LoanStatus.ACTIVE,
    )
    defaults.update(kwargs)
    return Loan(
        id=loan_id,
        client_id=client_id,
        amount=amount,
        balance=balance,
        closing_date=closing_date,
        **defaults,
    )
