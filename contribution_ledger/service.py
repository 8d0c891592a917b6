"""
service.py - Ledger service (dashboard controllers)

LedgerService is the only module that writes to the store. It loads whole
collections, hands them to the pure engine modules (accrual, reconciliation,
aggregator), and writes whole collections back.

Key responsibilities:
    - Registration, approval, login and password flows for members
    - Payment submission and reconciliation
    - Loan issuance and interest accrual before any loan-derived view
    - Notifications, broadcast messages, reminders and settings
    - All-or-nothing writes: when an operation rewrites several collections
      and one write fails, the collections already written are restored

Thread Safety:
    Not thread-safe. One writer per store; concurrent writers race and the
    last write wins.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import uuid

from .core import (
    User, UserRole, UserStatus,
    Payment, PaymentCategory, PaymentStatus,
    Loan, Notification, Settings, LedgerConfig,
    NotFound, ValidationError, PersistenceError, AuthenticationError,
    ALL_RECIPIENTS, ZERO,
    COLLECTION_USERS, COLLECTION_PAYMENTS, COLLECTION_LOANS,
    COLLECTION_NOTIFICATIONS, COLLECTION_SETTINGS,
    format_money, to_decimal,
)
from .accrual import accrue_due_interest, issue_loan as build_loan
from .reconciliation import ReconciliationResult, reconcile_payment
from .aggregator import LedgerViews, aggregate, category_totals, grand_total, outstanding_balance
from .credentials import hash_password, verify_password
from .store import LedgerStore


Clock = Callable[[], datetime]
IdFactory = Callable[[str], str]


def default_id_factory(prefix: str) -> str:
    """Generate ids like 'p-3f9c2a7b1e04'."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True, slots=True)
class ClientDashboard:
    """What a client sees: their own records and totals."""
    user: User
    payments: Tuple[Payment, ...]
    loans: Tuple[Loan, ...]
    notifications: Tuple[Notification, ...]
    category_totals: Dict[PaymentCategory, Decimal]
    total: Decimal
    outstanding_balance: Decimal
    settings: Settings


@dataclass(frozen=True, slots=True)
class ManagerDashboard:
    """What a manager sees: every collection plus the derived views."""
    users: Tuple[User, ...]
    payments: Tuple[Payment, ...]
    loans: Tuple[Loan, ...]
    notifications: Tuple[Notification, ...]
    settings: Settings
    views: LedgerViews


class LedgerService:
    """
    Orchestrates the ledger engine against a LedgerStore.

    Example:
        service = LedgerService(InMemoryStore())
        client = service.register_client("Ada Obi", "ada@example.com")
        service.approve_client(client.id, "JSY-007", "temp-pass")
        loan = service.issue_loan(client.id, client.name, Decimal("10000"))
        pay = service.submit_payment(client.id, Decimal("3000"),
                                     PaymentCategory.LOAN_REPAYMENT, "receipt-1",
                                     loan_id=loan.id)
        service.set_payment_status(pay.id, PaymentStatus.APPROVED)
    """

    def __init__(
        self,
        store: LedgerStore,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None,
        id_factory: Optional[IdFactory] = None,
        verbose: bool = True,
    ):
        """
        Create a service.

        Args:
            store: Persistence port holding the collections
            config: Loan and reminder parameters (defaults to LedgerConfig())
            clock: Returns the current time (default: datetime.now)
            id_factory: Builds a new id from a prefix ('u', 'p', 'l', 'n')
            verbose: Print one line per state change (default: True)
        """
        self.store = store
        self.config = config or LedgerConfig()
        self._clock = clock or datetime.now
        self._new_id = id_factory or default_id_factory
        self.verbose = verbose

    # ========================================================================
    # STORE ACCESS
    # ========================================================================

    def now(self) -> datetime:
        return self._clock()

    def _load(self, collection: str) -> List[Any]:
        return self.store.get_all(collection)

    def _write(self, writes: Sequence[Tuple[str, Sequence[Any]]]) -> None:
        """
        Write several collections as one unit.

        On PersistenceError, collections already written are restored to the
        snapshot taken before the first write and the error is re-raised.
        Observers are notified only after every write succeeded.
        """
        snapshots = [(collection, self._load(collection)) for collection, _ in writes]
        written: List[int] = []
        try:
            for index, (collection, items) in enumerate(writes):
                self.store.save_all(collection, list(items))
                written.append(index)
        except PersistenceError:
            for index in reversed(written):
                collection, previous = snapshots[index]
                try:
                    self.store.save_all(collection, previous)
                except PersistenceError:
                    if self.verbose:
                        print(f"✗ ROLLBACK FAILED: {collection}")
            raise
        for collection, _ in writes:
            self.store.notify_changed(collection)

    def _get_user(self, users: Sequence[User], user_id: str) -> User:
        for user in users:
            if user.id == user_id:
                return user
        raise NotFound(f"User {user_id} not found")

    @staticmethod
    def _find_by_member_id(users: Sequence[User], member_id: str) -> Optional[User]:
        wanted = member_id.strip().upper()
        for user in users:
            if user.member_id and user.member_id.upper() == wanted:
                return user
        return None

    @staticmethod
    def _replace_user(users: Sequence[User], updated: User) -> List[User]:
        return [updated if u.id == updated.id else u for u in users]

    def _new_notification(self, recipient_id: str, message: str) -> Notification:
        return Notification(
            id=self._new_id("n"),
            recipient_id=recipient_id,
            message=message,
            date=self.now(),
        )

    # ========================================================================
    # MEMBERS
    # ========================================================================

    def create_manager(
        self,
        name: str,
        email: str,
        member_id: str,
        password: str,
        role: UserRole = UserRole.MANAGER_1,
    ) -> User:
        """
        Add an approved manager account (used to bootstrap a fresh store).

        Raises:
            ValidationError: if role is CLIENT, credentials are empty, or the
                             member id is already taken.
        """
        role = UserRole(role)
        if not role.is_manager:
            raise ValidationError("create_manager requires a manager role")
        users = self._load(COLLECTION_USERS)
        self._check_credentials(users, member_id, password)
        manager = User(
            id=self._new_id("u"),
            name=name,
            email=email,
            role=role,
            status=UserStatus.APPROVED,
            is_first_login=False,
            registration_date=self.now(),
            member_id=member_id.strip(),
            password_hash=hash_password(password),
        )
        self._write([(COLLECTION_USERS, users + [manager])])
        if self.verbose:
            print(f"✓ MANAGER: {manager.name} [{manager.member_id}]")
        return manager

    def register_client(self, name: str, email: str) -> User:
        """Create a PENDING client registration."""
        if not email or not email.strip():
            raise ValidationError("email cannot be empty")
        users = self._load(COLLECTION_USERS)
        client = User(
            id=self._new_id("u"),
            name=name.strip() if name else name,
            email=email.strip(),
            role=UserRole.CLIENT,
            status=UserStatus.PENDING,
            is_first_login=True,
            registration_date=self.now(),
        )
        self._write([(COLLECTION_USERS, users + [client])])
        if self.verbose:
            print(f"✓ REGISTERED: {client.name} ({client.id})")
        return client

    def _check_credentials(
        self,
        users: Sequence[User],
        member_id: str,
        password: str,
        exclude_user_id: Optional[str] = None,
    ) -> None:
        if not member_id or not member_id.strip():
            raise ValidationError("member_id cannot be empty")
        if not password:
            raise ValidationError("password cannot be empty")
        holder = self._find_by_member_id(users, member_id)
        if holder is not None and holder.id != exclude_user_id:
            raise ValidationError(f"member_id {member_id} is already assigned")

    def approve_client(self, user_id: str, member_id: str, temp_password: str) -> User:
        """
        Approve a registration, assign its member id and temporary password,
        and notify the client.
        """
        users = self._load(COLLECTION_USERS)
        user = self._get_user(users, user_id)
        self._check_credentials(users, member_id, temp_password, exclude_user_id=user_id)
        approved = replace(
            user,
            status=UserStatus.APPROVED,
            member_id=member_id.strip(),
            password_hash=hash_password(temp_password),
            is_first_login=True,
        )
        notice = self._new_notification(
            user_id, f"Approved! ID: {approved.member_id}. Login and update password."
        )
        notifications = self._load(COLLECTION_NOTIFICATIONS)
        self._write([
            (COLLECTION_USERS, self._replace_user(users, approved)),
            (COLLECTION_NOTIFICATIONS, notifications + [notice]),
        ])
        if self.verbose:
            print(f"✓ APPROVED: {approved.name} [{approved.member_id}]")
        return approved

    def reject_client(self, user_id: str) -> User:
        users = self._load(COLLECTION_USERS)
        rejected = replace(self._get_user(users, user_id), status=UserStatus.REJECTED)
        self._write([(COLLECTION_USERS, self._replace_user(users, rejected))])
        if self.verbose:
            print(f"✗ REJECTED: {rejected.name} ({rejected.id})")
        return rejected

    def delete_user(self, user_id: str) -> Tuple[int, int]:
        """
        Delete a user together with every payment and loan they own.

        Notifications are independent and are kept.

        Returns:
            (payments_removed, loans_removed)
        """
        users = self._load(COLLECTION_USERS)
        user = self._get_user(users, user_id)
        payments = self._load(COLLECTION_PAYMENTS)
        loans = self._load(COLLECTION_LOANS)
        kept_payments = [p for p in payments if p.client_id != user_id]
        kept_loans = [loan for loan in loans if loan.client_id != user_id]
        self._write([
            (COLLECTION_USERS, [u for u in users if u.id != user_id]),
            (COLLECTION_PAYMENTS, kept_payments),
            (COLLECTION_LOANS, kept_loans),
        ])
        removed = (len(payments) - len(kept_payments), len(loans) - len(kept_loans))
        if self.verbose:
            print(f"✓ DELETED: {user.name} ({removed[0]} payments, {removed[1]} loans)")
        return removed

    def login(self, member_id: str, password: str) -> User:
        """
        Authenticate by member id (case-insensitive) and password.

        Raises:
            AuthenticationError: unknown id, wrong password, or an account
                                 that is pending or rejected.
        """
        users = self._load(COLLECTION_USERS)
        user = self._find_by_member_id(users, member_id or "")
        if user is None:
            raise AuthenticationError("User not found.")
        if not user.password_hash or not verify_password(password, user.password_hash):
            raise AuthenticationError("Incorrect password.")
        if user.status is UserStatus.PENDING:
            raise AuthenticationError("Account pending manager approval.")
        if user.status is UserStatus.REJECTED:
            raise AuthenticationError("This account has been deactivated by a manager.")
        logged_in = replace(user, last_login=self.now())
        self._write([(COLLECTION_USERS, self._replace_user(users, logged_in))])
        return logged_in

    def update_password(self, user_id: str, new_password: str) -> User:
        """Set a member's own password and clear the first-login flag."""
        if not new_password:
            raise ValidationError("password cannot be empty")
        users = self._load(COLLECTION_USERS)
        updated = replace(
            self._get_user(users, user_id),
            password_hash=hash_password(new_password),
            is_first_login=False,
        )
        self._write([(COLLECTION_USERS, self._replace_user(users, updated))])
        return updated

    def reset_user_password(self, user_id: str, temp_password: str) -> User:
        """Give a member a temporary password; they must change it at next login."""
        if not temp_password:
            raise ValidationError("password cannot be empty")
        users = self._load(COLLECTION_USERS)
        updated = replace(
            self._get_user(users, user_id),
            password_hash=hash_password(temp_password),
            is_first_login=True,
        )
        self._write([(COLLECTION_USERS, self._replace_user(users, updated))])
        if self.verbose:
            print(f"✓ PASSWORD RESET: {updated.name}")
        return updated

    # ========================================================================
    # PAYMENTS
    # ========================================================================

    def submit_payment(
        self,
        client_id: str,
        amount: Decimal,
        category: PaymentCategory,
        receipt_ref: str,
        loan_id: Optional[str] = None,
    ) -> Payment:
        """
        Record a client's claimed payment as PENDING.

        Raises:
            NotFound: if the client does not exist
            ValidationError: non-positive or malformed amount, missing receipt,
                             or a loan_id mismatch with the category
        """
        amount = to_decimal(amount)
        if amount <= ZERO:
            raise ValidationError(f"amount must be positive, got {amount}")
        try:
            category = PaymentCategory(category)
        except ValueError:
            raise ValidationError(f"invalid category: {category!r}") from None
        if not isinstance(receipt_ref, str):
            raise ValidationError(f"receipt_ref must be a string, got {type(receipt_ref).__name__}")
        if not receipt_ref:
            raise ValidationError("receipt_ref cannot be empty")
        if category is PaymentCategory.LOAN_REPAYMENT and not loan_id:
            raise ValidationError("Loan Repayment payments require a loan_id")
        if category is not PaymentCategory.LOAN_REPAYMENT and loan_id:
            raise ValidationError(f"loan_id does not apply to {category.value} payments")

        client = self._get_user(self._load(COLLECTION_USERS), client_id)
        payments = self._load(COLLECTION_PAYMENTS)
        payment = Payment(
            id=self._new_id("p"),
            client_id=client.id,
            client_name=client.name,
            amount=amount,
            category=category,
            date=self.now(),
            receipt_ref=receipt_ref,
            status=PaymentStatus.PENDING,
            loan_id=loan_id,
        )
        self._write([(COLLECTION_PAYMENTS, payments + [payment])])
        if self.verbose:
            print(f"✓ SUBMITTED: {payment.id} {format_money(amount, self.config.currency_symbol)} "
                  f"[{category.value}] by {client.name}")
        return payment

    def set_payment_status(self, payment_id: str, status: PaymentStatus) -> ReconciliationResult:
        """
        Apply a manager decision to a payment.

        Approving a loan repayment reduces the linked loan in the same
        operation; loans are written before payments and restored if the
        payment write fails.

        Raises:
            NotFound: if the payment does not exist
        """
        try:
            status = PaymentStatus(status)
        except ValueError:
            raise ValidationError(f"invalid payment status: {status!r}") from None
        payments = self._load(COLLECTION_PAYMENTS)
        loans = self._load(COLLECTION_LOANS)
        result = reconcile_payment(payments, loans, payment_id, status)

        writes: List[Tuple[str, Sequence[Any]]] = []
        if result.loan_touched:
            writes.append((COLLECTION_LOANS, result.loans))
        writes.append((COLLECTION_PAYMENTS, result.payments))
        self._write(writes)

        if self.verbose:
            icon = "✓" if status is PaymentStatus.APPROVED else "✗" if status is PaymentStatus.REJECTED else "↺"
            line = f"{icon} {status.value}: payment {payment_id}"
            if result.loan is not None:
                line += f" -> loan {result.loan.id} balance {result.loan.balance} [{result.loan.status.value}]"
            print(line)
        return result

    # ========================================================================
    # LOANS
    # ========================================================================

    def issue_loan(self, client_id: str, client_name: Optional[str], principal: Decimal) -> Loan:
        """
        Issue a loan and notify the client.

        client_name is stored as given; when omitted the client's current
        name is copied.

        Raises:
            ValidationError: if principal is not positive (nothing is written)
            NotFound: if the client does not exist
        """
        principal = to_decimal(principal, "principal")
        if principal <= ZERO:
            raise ValidationError(f"principal must be positive, got {principal}")
        client = self._get_user(self._load(COLLECTION_USERS), client_id)
        loan = build_loan(
            loan_id=self._new_id("l"),
            client_id=client.id,
            client_name=client_name or client.name,
            principal=principal,
            opening_date=self.now(),
            upfront_rate=self.config.upfront_rate,
            cycle_months=self.config.cycle_months,
        )
        symbol = self.config.currency_symbol
        notice = self._new_notification(
            client.id,
            f"Loan issued. Principal: {format_money(loan.amount, symbol)}, "
            f"Disbursed: {format_money(loan.disbursement_amount, symbol)}. "
            f"Next due: {loan.closing_date.date().isoformat()}",
        )
        loans = self._load(COLLECTION_LOANS)
        notifications = self._load(COLLECTION_NOTIFICATIONS)
        self._write([
            (COLLECTION_LOANS, loans + [loan]),
            (COLLECTION_NOTIFICATIONS, notifications + [notice]),
        ])
        if self.verbose:
            print(f"✓ LOAN: {loan.id} {format_money(loan.amount, symbol)} to {loan.client_name}, "
                  f"due {loan.closing_date.date().isoformat()}")
        return loan

    def process_interest(self) -> List[Loan]:
        """
        Accrue interest on every loan whose cycle has elapsed.

        The loan collection is written only if at least one loan changed.

        Returns:
            The current loan collection.
        """
        loans = self._load(COLLECTION_LOANS)
        updated, changed = accrue_due_interest(
            loans,
            self.now(),
            interest_rate=self.config.interest_rate,
            cycle_months=self.config.cycle_months,
            catch_up=self.config.catch_up,
        )
        if changed:
            self._write([(COLLECTION_LOANS, updated)])
            if self.verbose:
                accrued = sum(1 for old, new in zip(loans, updated) if old is not new)
                print(f"✓ ACCRUED: {accrued} loan(s)")
        return updated

    # ========================================================================
    # NOTIFICATIONS AND SETTINGS
    # ========================================================================

    def send_notification(self, recipient_id: str, message: str) -> Notification:
        notice = self._new_notification(recipient_id, message)
        notifications = self._load(COLLECTION_NOTIFICATIONS)
        self._write([(COLLECTION_NOTIFICATIONS, notifications + [notice])])
        return notice

    def broadcast(self, message: str, target: str = ALL_RECIPIENTS) -> Notification:
        """
        Send a manager message to everyone (target == ALL) or one client.

        Raises:
            NotFound: if target is a user id that does not exist
        """
        if target != ALL_RECIPIENTS:
            self._get_user(self._load(COLLECTION_USERS), target)
        notice = self.send_notification(target, message)
        if self.verbose:
            print(f"✓ BROADCAST to {target}: {message}")
        return notice

    def notifications_for(self, user_id: str) -> List[Notification]:
        """A user's own notifications plus broadcasts, newest first."""
        notifications = self._load(COLLECTION_NOTIFICATIONS)
        mine = [n for n in notifications if n.recipient_id in (user_id, ALL_RECIPIENTS)]
        return sorted(mine, key=lambda n: n.date, reverse=True)

    def get_settings(self) -> Settings:
        stored = self._load(COLLECTION_SETTINGS)
        return stored[0] if stored else Settings()

    def update_settings(self, automated_reminders_enabled: bool) -> Settings:
        settings = replace(self.get_settings(), automated_reminders_enabled=bool(automated_reminders_enabled))
        self._write([(COLLECTION_SETTINGS, [settings])])
        if self.verbose:
            state = "on" if settings.automated_reminders_enabled else "off"
            print(f"✓ SETTINGS: automated reminders {state}")
        return settings

    def send_due_reminders(self) -> List[Notification]:
        """
        Remind clients whose active loan falls due within the reminder window.

        Does nothing when automated reminders are disabled. A reminder with
        the same text already sent to the same client is not repeated, so
        calling this several times a day is harmless.
        """
        if not self.get_settings().automated_reminders_enabled:
            return []
        loans = self.process_interest()
        now = self.now()
        horizon = now + timedelta(days=self.config.reminder_window_days)
        notifications = self._load(COLLECTION_NOTIFICATIONS)
        already_sent = {(n.recipient_id, n.message) for n in notifications}
        symbol = self.config.currency_symbol

        reminders: List[Notification] = []
        for loan in loans:
            if not loan.is_active or not now <= loan.closing_date <= horizon:
                continue
            message = (
                f"Reminder: loan {loan.id} balance {format_money(loan.balance, symbol)} "
                f"accrues interest after {loan.closing_date.date().isoformat()}."
            )
            if (loan.client_id, message) in already_sent:
                continue
            reminders.append(self._new_notification(loan.client_id, message))
            already_sent.add((loan.client_id, message))

        if reminders:
            self._write([(COLLECTION_NOTIFICATIONS, notifications + reminders)])
            if self.verbose:
                print(f"✓ REMINDERS: {len(reminders)} sent")
        return reminders

    # ========================================================================
    # DASHBOARDS
    # ========================================================================

    def client_dashboard(self, user_id: str) -> ClientDashboard:
        """Accrue due interest, then return one client's view."""
        loans = self.process_interest()
        user = self._get_user(self._load(COLLECTION_USERS), user_id)
        payments = [p for p in self._load(COLLECTION_PAYMENTS) if p.client_id == user_id]
        totals = category_totals(payments, client_id=user_id)
        return ClientDashboard(
            user=user,
            payments=tuple(sorted(payments, key=lambda p: p.date, reverse=True)),
            loans=tuple(loan for loan in loans if loan.client_id == user_id),
            notifications=tuple(self.notifications_for(user_id)),
            category_totals=totals,
            total=grand_total(totals),
            outstanding_balance=outstanding_balance(loans, client_id=user_id),
            settings=self.get_settings(),
        )

    def manager_dashboard(self) -> ManagerDashboard:
        """Accrue due interest, then return every collection and the derived views."""
        loans = self.process_interest()
        users = self._load(COLLECTION_USERS)
        payments = self._load(COLLECTION_PAYMENTS)
        notifications = self._load(COLLECTION_NOTIFICATIONS)
        return ManagerDashboard(
            users=tuple(users),
            payments=tuple(sorted(payments, key=lambda p: p.date, reverse=True)),
            loans=tuple(loans),
            notifications=tuple(sorted(notifications, key=lambda n: n.date, reverse=True)),
            settings=self.get_settings(),
            views=aggregate(payments, loans, users),
        )
