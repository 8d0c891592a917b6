"""
Core types and pure helpers for the contribution ledger.

This module provides the foundational data structures for the ledger:
1. Decimal context and money helpers (to_decimal, round_cash, add_months)
2. Enums: roles, statuses, payment categories
3. Exceptions: LedgerError and domain-specific error types
4. Immutable records: User, Payment, Loan, Notification, Settings
5. LedgerConfig: interest and schedule parameters

Records are frozen dataclasses. Every change produces a new instance via
dataclasses.replace(); nothing in this module mutates state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Any, Optional


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Money arithmetic must be deterministic. The global context is configured once
# at import time; callers needing a different context should use
# decimal.localcontext().
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Sentinel recipient for broadcast notifications.
ALL_RECIPIENTS = "ALL"

# Interest charged per cycle on the outstanding balance.
DEFAULT_INTEREST_RATE = Decimal("0.05")

# Interest deducted from the principal at disbursement.
DEFAULT_UPFRONT_RATE = Decimal("0.05")

# Length of one accrual cycle in calendar months.
DEFAULT_CYCLE_MONTHS = 3

# Days before a loan's closing date at which reminders start.
DEFAULT_REMINDER_WINDOW_DAYS = 7

DEFAULT_CURRENCY_SYMBOL = "₦"

# Cash amounts are kept to the cent with banker's rounding.
CASH_DECIMAL_PLACES = 2
_CASH_QUANTIZER = Decimal(10) ** -CASH_DECIMAL_PLACES

ZERO = Decimal("0")

# Store collection names.
COLLECTION_USERS = "users"
COLLECTION_PAYMENTS = "payments"
COLLECTION_LOANS = "loans"
COLLECTION_NOTIFICATIONS = "notifications"
COLLECTION_SETTINGS = "settings"

ALL_COLLECTIONS = (
    COLLECTION_USERS,
    COLLECTION_PAYMENTS,
    COLLECTION_LOANS,
    COLLECTION_NOTIFICATIONS,
    COLLECTION_SETTINGS,
)


# ============================================================================
# ENUMS
# ============================================================================

class UserRole(Enum):
    """Authorization role. Both manager tiers have the same ledger powers."""
    MANAGER_1 = "MANAGER_1"
    MANAGER_2 = "MANAGER_2"
    CLIENT = "CLIENT"

    @property
    def is_manager(self) -> bool:
        return self is not UserRole.CLIENT


class UserStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PaymentCategory(Enum):
    """
    Fixed set of payment categories.

    LOAN_REPAYMENT is the only category that touches a Loan when approved.
    """
    CONTRIBUTION = "Contribution"
    SAVING = "Saving"
    DIAMOND_SAVING = "Diamond Saving"
    LOAN_REPAYMENT = "Loan Repayment"


# Categories that feed the contribution pool (everything except repayments).
POOL_CATEGORIES = (
    PaymentCategory.CONTRIBUTION,
    PaymentCategory.SAVING,
    PaymentCategory.DIAMOND_SAVING,
)


class PaymentStatus(Enum):
    """
    Approval status of a payment.

    Transitions are not monotonic: a manager may reset any payment back to
    PENDING to correct a mistake.
    """
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LoanStatus(Enum):
    ACTIVE = "ACTIVE"
    PAID = "PAID"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class NotFound(LedgerError):
    """Raised when a referenced user, payment or loan id does not exist."""
    pass


class ValidationError(LedgerError, ValueError):
    """Raised when input is rejected before any state is touched."""
    pass


class PersistenceError(LedgerError):
    """Raised when the store cannot read or write a collection."""
    pass


class AuthenticationError(LedgerError):
    """Raised when a login attempt is refused."""
    pass


# ============================================================================
# MONEY AND DATE HELPERS
# ============================================================================

def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    """
    Convert a number or numeric string to a finite Decimal.

    Floats go through str() so that 0.1 becomes Decimal("0.1"), not the
    binary expansion.

    Raises:
        ValidationError: if the value is not numeric, NaN or infinite.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field_name} must be numeric, got {value!r}") from None
    if result.is_nan() or result.is_infinite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    return result


def round_cash(value: Decimal) -> Decimal:
    """Round a Decimal to cash precision (cents, ROUND_HALF_EVEN)."""
    return value.quantize(_CASH_QUANTIZER, rounding=ROUND_HALF_EVEN)


def add_months(when: datetime, months: int) -> datetime:
    """
    Advance a datetime by a number of calendar months.

    Days past the end of the target month clamp to its last day
    (Jan 31 + 1 month -> Feb 28/29). Time of day is preserved.
    """
    month_index = when.month - 1 + months
    year = when.year + month_index // 12
    month = month_index % 12 + 1
    try:
        return when.replace(year=year, month=month)
    except ValueError:
        # Day overflow: step to the first of the following month, back one day
        if month == 12:
            first_of_next = when.replace(year=year + 1, month=1, day=1)
        else:
            first_of_next = when.replace(year=year, month=month + 1, day=1)
        return first_of_next - timedelta(days=1)


def format_money(amount: Decimal, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """Format an amount for notification text, e.g. ₦10,000 or ₦9,512.50."""
    if amount == amount.to_integral_value():
        return f"{symbol}{int(amount):,}"
    return f"{symbol}{round_cash(amount):,}"


def _coerce_decimal(obj: Any, name: str) -> None:
    value = getattr(obj, name)
    if not isinstance(value, Decimal):
        object.__setattr__(obj, name, to_decimal(value, name))


def _coerce_enum(obj: Any, name: str, enum_cls: type) -> None:
    value = getattr(obj, name)
    if isinstance(value, enum_cls):
        return
    try:
        object.__setattr__(obj, name, enum_cls(value))
    except ValueError:
        raise ValidationError(f"invalid {name}: {value!r}") from None


def _require_text(value: Optional[str], what: str) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{what} cannot be empty")


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class User:
    """
    A registered person: a client or one of the managers.

    Attributes:
        id: Unique user id
        name: Display name (copied onto the user's payments and loans)
        email: Contact address given at registration
        role: Authorization role
        status: Registration status; only APPROVED users may log in
        is_first_login: When True the user must change their password
        registration_date: When the registration was created
        member_id: Identifier assigned at approval; used to log in
        password_hash: Salted hash of the current credential
        last_login: Time of the last successful login
    """
    id: str
    name: str
    email: str
    role: UserRole
    status: UserStatus
    is_first_login: bool
    registration_date: datetime
    member_id: Optional[str] = None
    password_hash: Optional[str] = None
    last_login: Optional[datetime] = None

    def __post_init__(self):
        _require_text(self.id, "User id")
        _require_text(self.name, "User name")
        _coerce_enum(self, 'role', UserRole)
        _coerce_enum(self, 'status', UserStatus)


@dataclass(frozen=True, slots=True)
class Payment:
    """
    A client's claimed transfer, awaiting or carrying a manager decision.

    Attributes:
        id: Unique payment id
        client_id: Owning client
        client_name: Denormalized client name, fixed at submission
        amount: Claimed amount (positive)
        category: What the payment is for
        date: Submission time
        receipt_ref: Opaque receipt reference (URL, data URI, file key)
        status: Approval status
        loan_id: Linked loan for LOAN_REPAYMENT payments
        loan_applied: True once the amount has been taken off the linked
                      loan's balance; stays True through later status changes
    """
    id: str
    client_id: str
    client_name: str
    amount: Decimal
    category: PaymentCategory
    date: datetime
    receipt_ref: str
    status: PaymentStatus = PaymentStatus.PENDING
    loan_id: Optional[str] = None
    loan_applied: bool = False

    def __post_init__(self):
        _require_text(self.id, "Payment id")
        _require_text(self.client_id, "Payment client_id")
        _coerce_decimal(self, 'amount')
        if self.amount <= ZERO:
            raise ValidationError(f"Payment amount must be positive, got {self.amount}")
        if not isinstance(self.receipt_ref, str):
            raise ValidationError(
                f"receipt_ref must be a string, got {type(self.receipt_ref).__name__}"
            )
        _coerce_enum(self, 'category', PaymentCategory)
        _coerce_enum(self, 'status', PaymentStatus)

    @property
    def is_loan_repayment(self) -> bool:
        return self.category is PaymentCategory.LOAN_REPAYMENT


@dataclass(frozen=True, slots=True)
class Loan:
    """
    A loan issued to a client.

    `amount` and `disbursement_amount` are fixed at issuance. `balance` grows
    by periodic accrual and shrinks by approved repayments. `status` is PAID
    exactly when `balance <= 0`; construction enforces this so that an
    inconsistent loan can never be built, let alone persisted.

    Attributes:
        id: Unique loan id
        client_id: Borrowing client
        client_name: Denormalized client name, fixed at issuance
        amount: Original principal (includes upfront interest)
        disbursement_amount: Cash actually handed out
        interest_amount: Cumulative interest charged, upfront included
        balance: Outstanding amount owed
        opening_date: Issuance time
        closing_date: Next accrual / due boundary
        status: ACTIVE or PAID
    """
    id: str
    client_id: str
    client_name: str
    amount: Decimal
    disbursement_amount: Decimal
    interest_amount: Decimal
    balance: Decimal
    opening_date: datetime
    closing_date: datetime
    status: LoanStatus = LoanStatus.ACTIVE

    def __post_init__(self):
        _require_text(self.id, "Loan id")
        _require_text(self.client_id, "Loan client_id")
        for name in ('amount', 'disbursement_amount', 'interest_amount', 'balance'):
            _coerce_decimal(self, name)
        _coerce_enum(self, 'status', LoanStatus)
        if (self.status is LoanStatus.PAID) != (self.balance <= ZERO):
            raise ValidationError(
                f"Loan {self.id}: status {self.status.value} inconsistent with balance {self.balance}"
            )

    @property
    def is_active(self) -> bool:
        return self.status is LoanStatus.ACTIVE and self.balance > ZERO


@dataclass(frozen=True, slots=True)
class Notification:
    """An append-only message to one user or to everyone (recipient_id == ALL)."""
    id: str
    recipient_id: str
    message: str
    date: datetime

    def __post_init__(self):
        _require_text(self.recipient_id, "Notification recipient_id")
        _require_text(self.message, "Notification message")

    @property
    def is_broadcast(self) -> bool:
        return self.recipient_id == ALL_RECIPIENTS


@dataclass(frozen=True, slots=True)
class Settings:
    """Global settings singleton. Last write wins."""
    automated_reminders_enabled: bool = True


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """
    Loan and reminder parameters, fixed for the lifetime of a service.

    Attributes:
        interest_rate: Interest per elapsed cycle on the outstanding balance
        upfront_rate: Interest deducted from the principal at disbursement
        cycle_months: Calendar months per accrual cycle
        catch_up: When True, accrual applies every elapsed cycle in one pass;
                  when False, one cycle per pass
        currency_symbol: Prefix used in notification text
        reminder_window_days: Days before closing_date that reminders start
    """
    interest_rate: Decimal = DEFAULT_INTEREST_RATE
    upfront_rate: Decimal = DEFAULT_UPFRONT_RATE
    cycle_months: int = DEFAULT_CYCLE_MONTHS
    catch_up: bool = True
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL
    reminder_window_days: int = DEFAULT_REMINDER_WINDOW_DAYS

    def __post_init__(self):
        _coerce_decimal(self, 'interest_rate')
        _coerce_decimal(self, 'upfront_rate')
        if self.interest_rate < ZERO:
            raise ValidationError(f"interest_rate cannot be negative, got {self.interest_rate}")
        if not ZERO <= self.upfront_rate < Decimal("1"):
            raise ValidationError(f"upfront_rate must be in [0, 1), got {self.upfront_rate}")
        if self.cycle_months <= 0:
            raise ValidationError(f"cycle_months must be positive, got {self.cycle_months}")
        if self.reminder_window_days < 0:
            raise ValidationError(
                f"reminder_window_days cannot be negative, got {self.reminder_window_days}"
            )
