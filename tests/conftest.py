"""
conftest.py - Shared pytest fixtures for ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- A controllable clock and deterministic ids
- A failure-injecting fake store
- A quiet LedgerService wired to both
- A bootstrapped service with one manager and one approved client
"""

import pytest

from contribution_ledger import LedgerService, UserRole

from tests.fake_store import FakeClock, FakeStore, SequentialIds
from tests.builders import T0


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def service(store, clock):
    """Quiet service over a fake store with a fixed clock."""
    return LedgerService(store, clock=clock, id_factory=SequentialIds(), verbose=False)


@pytest.fixture
def manager(service):
    return service.create_manager(
        "System Admin One", "admin1@example.com", "ADMIN-01", "admin1",
        role=UserRole.MANAGER_1,
    )


@pytest.fixture
def client(service, manager):
    """An approved client who still has to change their password."""
    registered = service.register_client("Ada Obi", "ada@example.com")
    return service.approve_client(registered.id, "JSY-007", "temp-pass")


@pytest.fixture
def other_client(service, manager):
    registered = service.register_client("Bola Ade", "bola@example.com")
    return service.approve_client(registered.id, "JSY-008", "temp-pass-2")
