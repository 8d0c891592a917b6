"""
store.py - Ledger persistence port

The engine never touches storage directly. It talks to a LedgerStore:

- LedgerStore: Protocol defining the per-collection interface
- InMemoryStore: dict-backed store for tests and demos
- JsonFileStore: one JSON document per collection in a directory
- ChangeFeed: subscribe/publish fan-out for change signals

Semantics shared by every implementation:
- get_all(collection) returns the whole collection as a new list
- save_all(collection, items) replaces the whole collection (no diffs)
- notify_changed(collection) is fire-and-forget; a failing subscriber never
  fails the write that triggered it

There are no transactions. Two writers saving the same collection race and
the last write wins.
"""

from __future__ import annotations
from collections import deque
from dataclasses import fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable
import json
import os
import tempfile

from .core import (
    Loan, Notification, Payment, Settings, User,
    LedgerError, PersistenceError,
    ALL_COLLECTIONS,
    COLLECTION_USERS, COLLECTION_PAYMENTS, COLLECTION_LOANS,
    COLLECTION_NOTIFICATIONS, COLLECTION_SETTINGS,
)


# Record type held by each collection.
RECORD_TYPES: Dict[str, type] = {
    COLLECTION_USERS: User,
    COLLECTION_PAYMENTS: Payment,
    COLLECTION_LOANS: Loan,
    COLLECTION_NOTIFICATIONS: Notification,
    COLLECTION_SETTINGS: Settings,
}

ChangeListener = Callable[[str], None]


def _check_collection(collection: str) -> None:
    if collection not in RECORD_TYPES:
        raise PersistenceError(f"Unknown collection: {collection!r}")


# ============================================================================
# PROTOCOL
# ============================================================================

@runtime_checkable
class LedgerStore(Protocol):
    """
    Key-value persistence for the ledger collections.

    Implementations must raise PersistenceError when a collection cannot be
    read or written. They must not retry on their own behalf.
    """

    def get_all(self, collection: str) -> List[Any]:
        """Return every record in a collection (empty list if never saved)."""
        ...

    def save_all(self, collection: str, items: Sequence[Any]) -> None:
        """Replace a collection with `items`."""
        ...

    def notify_changed(self, collection: str) -> None:
        """Signal observers that a collection was rewritten."""
        ...


# ============================================================================
# CHANGE FEED
# ============================================================================

class ChangeFeed:
    """
    Minimal observer registry for collection change signals.

    Subscribers receive only the collection name and are expected to re-read
    the whole collection. Delivery is synchronous and best-effort:
    exceptions raised by a subscriber are collected in `errors` rather than
    propagated to the writer. Only the most recent `max_errors` are kept.
    """

    def __init__(self, max_errors: int = 100):
        self._listeners: List[ChangeListener] = []
        self.errors: Deque[Exception] = deque(maxlen=max_errors)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, collection: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(collection)
            except Exception as exc:
                self.errors.append(exc)

    def __len__(self) -> int:
        return len(self._listeners)


# ============================================================================
# RECORD CODEC
# ============================================================================

_DATETIME_FIELDS = frozenset({
    'registration_date', 'last_login', 'date', 'opening_date', 'closing_date',
})


def _encode_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def to_record_dict(record: Any) -> Dict[str, Any]:
    """
    Convert a record to a JSON-safe dict.

    Decimals become strings (no float round trip), datetimes ISO-8601
    strings, enums their values.
    """
    return {f.name: _encode_value(getattr(record, f.name)) for f in fields(record)}


def from_record_dict(record_type: type, data: Dict[str, Any]) -> Any:
    """
    Build a record from a dict produced by to_record_dict().

    Unknown keys are ignored so that older readers tolerate newer documents.
    Enum and Decimal fields are coerced by the record constructors;
    datetimes are parsed here.
    """
    kwargs: Dict[str, Any] = {}
    for f in fields(record_type):
        if f.name not in data:
            continue
        value = data[f.name]
        if isinstance(value, str) and f.name in _DATETIME_FIELDS:
            value = datetime.fromisoformat(value)
        kwargs[f.name] = value
    return record_type(**kwargs)


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class InMemoryStore:
    """
    Store holding collections in a dict.

    Records are immutable, so lists are copied on the way in and out but the
    records themselves are shared.
    """

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self.feed = feed if feed is not None else ChangeFeed()
        self._collections: Dict[str, List[Any]] = {name: [] for name in ALL_COLLECTIONS}

    def get_all(self, collection: str) -> List[Any]:
        _check_collection(collection)
        return list(self._collections[collection])

    def save_all(self, collection: str, items: Sequence[Any]) -> None:
        _check_collection(collection)
        self._collections[collection] = list(items)

    def notify_changed(self, collection: str) -> None:
        self.feed.publish(collection)

    def __repr__(self):
        sizes = ", ".join(f"{k}={len(v)}" for k, v in self._collections.items())
        return f"InMemoryStore({sizes})"


# ============================================================================
# JSON FILE STORE
# ============================================================================

class JsonFileStore:
    """
    Store keeping each collection as `<directory>/<collection>.json`.

    Writes go to a temporary file in the same directory followed by an
    atomic rename, so a crash mid-write leaves the previous document intact.
    """

    def __init__(self, directory: Union[str, Path], feed: Optional[ChangeFeed] = None):
        self.directory = Path(directory)
        self.feed = feed if feed is not None else ChangeFeed()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create store directory {self.directory}: {exc}") from exc

    def _path(self, collection: str) -> Path:
        return self.directory / f"{collection}.json"

    def get_all(self, collection: str) -> List[Any]:
        _check_collection(collection)
        path = self._path(collection)
        if not path.exists():
            return []
        record_type = RECORD_TYPES[collection]
        try:
            with path.open("r", encoding="utf-8") as fh:
                documents = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Cannot read {collection} from {path}: {exc}") from exc
        if not isinstance(documents, list):
            raise PersistenceError(f"{path} does not contain a JSON list")
        try:
            return [from_record_dict(record_type, doc) for doc in documents]
        except (LedgerError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Corrupt record in {path}: {exc}") from exc

    def save_all(self, collection: str, items: Sequence[Any]) -> None:
        _check_collection(collection)
        path = self._path(collection)
        payload = [to_record_dict(item) for item in items]
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{collection}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
            tmp_name = None
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Cannot encode {collection} for {path}: {exc}") from exc
        except OSError as exc:
            raise PersistenceError(f"Cannot write {collection} to {path}: {exc}") from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def notify_changed(self, collection: str) -> None:
        self.feed.publish(collection)

    def __repr__(self):
        return f"JsonFileStore({str(self.directory)!r})"
