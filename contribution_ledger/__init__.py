"""
contribution_ledger - Contribution and Loan Ledger

Tracks member contributions and savings, approves payment receipts, and runs
a small loan book with periodic compounding interest.

Usage:
    from decimal import Decimal
    from contribution_ledger import (
        LedgerService, InMemoryStore, PaymentCategory, PaymentStatus,
    )

    service = LedgerService(InMemoryStore())
    client = service.register_client("Ada Obi", "ada@example.com")
    service.approve_client(client.id, "JSY-007", "temp-pass")

    loan = service.issue_loan(client.id, client.name, Decimal("10000"))
    # loan.balance == 10000, loan.disbursement_amount == 9500

    repayment = service.submit_payment(
        client.id, Decimal("3000"), PaymentCategory.LOAN_REPAYMENT,
        "receipt-001", loan_id=loan.id,
    )
    service.set_payment_status(repayment.id, PaymentStatus.APPROVED)

    views = service.manager_dashboard().views
"""

# Core types
from .core import (
    User,
    Payment,
    Loan,
    Notification,
    Settings,
    LedgerConfig,
    UserRole,
    UserStatus,
    PaymentCategory,
    PaymentStatus,
    LoanStatus,
    LedgerError,
    NotFound,
    ValidationError,
    PersistenceError,
    AuthenticationError,
    ALL_RECIPIENTS,
    POOL_CATEGORIES,
    DEFAULT_INTEREST_RATE,
    DEFAULT_UPFRONT_RATE,
    DEFAULT_CYCLE_MONTHS,
    COLLECTION_USERS,
    COLLECTION_PAYMENTS,
    COLLECTION_LOANS,
    COLLECTION_NOTIFICATIONS,
    COLLECTION_SETTINGS,
    add_months,
    to_decimal,
    round_cash,
    format_money,
)

# Loan accrual engine
from .accrual import (
    IssuanceTerms,
    calculate_issuance,
    calculate_recurring_interest,
    is_cycle_elapsed,
    issue_loan,
    accrue_cycle,
    accrue_loan,
    apply_repayment,
    accrue_due_interest,
)

# Payment reconciliation
from .reconciliation import (
    ReconciliationResult,
    reconcile_payment,
    find_payment,
    find_loan,
)

# Aggregator
from .aggregator import (
    LedgerViews,
    StatusCounts,
    ClientSummary,
    aggregate,
    category_totals,
    grand_total,
    pool_total,
    total_disbursed,
    outstanding_balance,
    net_liquidity,
    status_counts,
    client_summaries,
)

# Store
from .store import (
    LedgerStore,
    ChangeFeed,
    InMemoryStore,
    JsonFileStore,
    to_record_dict,
    from_record_dict,
)

# Service
from .service import (
    LedgerService,
    ClientDashboard,
    ManagerDashboard,
)

__all__ = [
    # Core
    'User', 'Payment', 'Loan', 'Notification', 'Settings', 'LedgerConfig',
    'UserRole', 'UserStatus', 'PaymentCategory', 'PaymentStatus', 'LoanStatus',
    'LedgerError', 'NotFound', 'ValidationError', 'PersistenceError', 'AuthenticationError',
    'ALL_RECIPIENTS', 'POOL_CATEGORIES',
    'DEFAULT_INTEREST_RATE', 'DEFAULT_UPFRONT_RATE', 'DEFAULT_CYCLE_MONTHS',
    'COLLECTION_USERS', 'COLLECTION_PAYMENTS', 'COLLECTION_LOANS',
    'COLLECTION_NOTIFICATIONS', 'COLLECTION_SETTINGS',
    'add_months', 'to_decimal', 'round_cash', 'format_money',
    # Accrual
    'IssuanceTerms', 'calculate_issuance', 'calculate_recurring_interest',
    'is_cycle_elapsed', 'issue_loan', 'accrue_cycle', 'accrue_loan',
    'apply_repayment', 'accrue_due_interest',
    # Reconciliation
    'ReconciliationResult', 'reconcile_payment', 'find_payment', 'find_loan',
    # Aggregator
    'LedgerViews', 'StatusCounts', 'ClientSummary', 'aggregate',
    'category_totals', 'grand_total', 'pool_total', 'total_disbursed',
    'outstanding_balance', 'net_liquidity', 'status_counts', 'client_summaries',
    # Store
    'LedgerStore', 'ChangeFeed', 'InMemoryStore', 'JsonFileStore',
    'to_record_dict', 'from_record_dict',
    # Service
    'LedgerService', 'ClientDashboard', 'ManagerDashboard',
]

__version__ = '1.0.0'
