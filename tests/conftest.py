"""
pytest configuration and fixtures for unit, integration and BDD tests

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: tests/conftest.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Test Configuration

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  In-memory store implementing the store
                                contract, syncer fixtures and BDD context.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import pytest

from confsyncer.exceptions import EnumerationError, StoreWriteError
from confsyncer.stores.base import BaseConfStore, ConfEvent, ConfEventType, ConfItem, StoreConfig
from confsyncer.sync_engine import Syncer


# =============================================================================
# Mock Store
# =============================================================================

class MockConfStore(BaseConfStore):
    """
    In-memory store for testing.

    Implements the same contract as the disk and etcd stores. With
    ``echo_writes`` enabled every successful write is reported back through
    the watch path, the way a real backend notices its own changes.
    """

    def __init__(self, name: str = "mock", items: Optional[Dict[str, bytes]] = None,
                 echo_writes: bool = True, **config_kwargs):
        super().__init__(StoreConfig(name=name, store_type="mock", **config_kwargs))
        self.items: Dict[str, bytes] = dict(items or {})
        self.echo_writes = echo_writes
        self.calls: List[Tuple[str, str, Optional[bytes]]] = []
        self.fail_keys: Set[str] = set()
        self.fail_list = False
        self.list_count = 0
        self.disconnect_count = 0
        self._lock = threading.Lock()

    def _list(self) -> List[ConfItem]:
        self.list_count += 1
        if self.fail_list:
            raise EnumerationError(f"Store {self.name} unavailable")
        with self._lock:
            return [ConfItem(key=k, content=v) for k, v in sorted(self.items.items())]

    def _put(self, key: str, content: bytes) -> None:
        self.calls.append(("put", key, content))
        if key in self.fail_keys:
            raise StoreWriteError(key, f"Forced put failure for {key}")
        with self._lock:
            self.items[key] = content
        if self.echo_writes:
            self._notify(ConfEvent.put(key, content))

    def _delete(self, key: str) -> None:
        self.calls.append(("delete", key, None))
        if key in self.fail_keys:
            raise StoreWriteError(key, f"Forced delete failure for {key}")
        with self._lock:
            existed = self.items.pop(key, None) is not None
        if not existed:
            self.cancel_suppression(key)
        elif self.echo_writes:
            self._notify(ConfEvent.delete(key))

    def _disconnect(self) -> None:
        self.disconnect_count += 1

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def inject(self, event: ConfEvent) -> bool:
        """Simulate a change made by someone else directly on the backend"""
        with self._lock:
            if event.type is ConfEventType.PUT:
                self.items[event.key] = event.content
            elif event.type is ConfEventType.DELETE:
                self.items.pop(event.key, None)
        return self._notify(event)

    def drain(self) -> List[ConfEvent]:
        """Everything currently queued on the outward stream"""
        events = []
        while not self._events.empty():
            events.append(self._events.get_nowait())
        return events

    def write_calls(self) -> List[Tuple[str, str, Optional[bytes]]]:
        return list(self.calls)


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0,
             interval: float = 0.02) -> bool:
    """Poll predicate until it holds or timeout expires"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def local_store():
    """Empty in-memory local store"""
    store = MockConfStore("local")
    yield store
    store.close()


@pytest.fixture
def remote_store():
    """Empty in-memory remote store"""
    store = MockConfStore("remote")
    yield store
    store.close()


@pytest.fixture
def syncer(local_store, remote_store) -> Syncer:
    return Syncer(local_store, remote_store)


@pytest.fixture
def running_syncer(syncer):
    """Syncer with both propagation loops running"""
    syncer.start()
    yield syncer
    syncer.stop(timeout=5.0)


@pytest.fixture
def make_store():
    """Factory for extra in-memory stores, closed at teardown"""
    created = []

    def _make(name: str = "mock", items: Optional[Dict[str, bytes]] = None, **kwargs):
        store = MockConfStore(name, items=items, **kwargs)
        created.append(store)
        return store

    yield _make
    for store in created:
        store.close()


@pytest.fixture
def waiter():
    """Expose the polling helper to tests"""
    return wait_for


# =============================================================================
# BDD Context Fixtures
# =============================================================================

@dataclass
class BDDContext:
    """Shared context for BDD step definitions"""
    local_store: Optional[MockConfStore] = None
    remote_store: Optional[MockConfStore] = None
    syncer: Optional[Syncer] = None

    # Results
    results: List[Any] = field(default_factory=list)
    last_error: Optional[Exception] = None


@pytest.fixture
def bdd_context() -> BDDContext:
    """Fresh BDD context for each scenario"""
    return BDDContext()


# =============================================================================
# pytest-bdd Hooks
# =============================================================================

def pytest_bdd_step_error(request, feature, scenario, step, step_func, step_func_args, exception):
    """Log step errors for debugging"""
    print(f"\nStep failed: {step}")
    print(f"Exception: {exception}")


def pytest_bdd_after_scenario(request, feature, scenario):
    """Stop propagation and close stores left open by a scenario"""
    context = request.getfixturevalue("bdd_context")
    if context.syncer is not None:
        context.syncer.stop(timeout=5.0)
    for store in (context.local_store, context.remote_store):
        if store is not None:
            store.close()
