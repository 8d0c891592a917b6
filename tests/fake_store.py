"""
fake_store.py - Test helpers for LedgerStore

Provides a LedgerStore implementation with failure injection and call
recording, plus a controllable clock and deterministic id factory, for
testing the service without touching the filesystem.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from contribution_ledger import PersistenceError
from contribution_ledger.core import ALL_COLLECTIONS


class FakeStore:
    """
    Minimal LedgerStore for tests.

    Example:
        store = FakeStore()
        store.fail_on_save.add("payments")   # next payments write raises
        store.saves                          # [("loans", 2), ...] (collection, size)
        store.notified                       # ["loans", "payments"]
    """

    def __init__(self, collections: Optional[Dict[str, List[Any]]] = None):
        self._collections: Dict[str, List[Any]] = {name: [] for name in ALL_COLLECTIONS}
        if collections:
            for name, items in collections.items():
                self._collections[name] = list(items)
        self.fail_on_save: Set[str] = set()
        self.fail_on_read: Set[str] = set()
        self.saves: List[Tuple[str, int]] = []
        self.notified: List[str] = []

    def get_all(self, collection: str) -> List[Any]:
        if collection in self.fail_on_read:
            raise PersistenceError(f"read failure injected for {collection}")
        return list(self._collections[collection])

    def save_all(self, collection: str, items: Sequence[Any]) -> None:
        if collection in self.fail_on_save:
            raise PersistenceError(f"write failure injected for {collection}")
        self._collections[collection] = list(items)
        self.saves.append((collection, len(items)))

    def notify_changed(self, collection: str) -> None:
        self.notified.append(collection)

    def saved_collections(self) -> List[str]:
        return [name for name, _ in self.saves]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, when: datetime) -> datetime:
        self.current = when
        return self.current


class SequentialIds:
    """Id factory producing u-1, p-1, p-2, ... per prefix."""

    def __init__(self):
        self._counters: Dict[str, int] = {}

    def __call__(self, prefix: str) -> str:
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}-{self._counters[prefix]}"
