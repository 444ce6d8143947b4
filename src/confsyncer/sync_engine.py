"""
Core Sync Engine - Reconciles and propagates changes between two stores

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/sync_engine.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Syncer with startup reconciliation (pull
                                from remote, push local-only items) and two
                                concurrent propagation loops.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set
import logging
import threading
import time

from .exceptions import ReconciliationError, StoreError
from .stores.base import BaseConfStore, ConfEvent, ConfEventType, ConfItem

logger = logging.getLogger(__name__)


# =============================================================================
# Enums and Data Classes
# =============================================================================

class SyncDirection(Enum):
    """Propagation directions"""
    LOCAL_TO_REMOTE = "local_to_remote"
    REMOTE_TO_LOCAL = "remote_to_local"

    @property
    def target(self) -> str:
        return "remote" if self is SyncDirection.LOCAL_TO_REMOTE else "local"


@dataclass
class ReconcileResult:
    """Result of a reconciliation step"""
    operation: str
    success: bool = False
    items_read: int = 0
    items_written: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    errors: List[str] = field(default_factory=list)


@dataclass
class PropagationStats:
    """Counters for one propagation direction"""
    direction: SyncDirection
    events_received: int = 0
    events_propagated: int = 0
    events_failed: int = 0
    events_dropped: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "direction": self.direction.value,
            "events_received": self.events_received,
            "events_propagated": self.events_propagated,
            "events_failed": self.events_failed,
            "events_dropped": self.events_dropped,
            "last_error": self.last_error,
        }


# =============================================================================
# Core Utility Functions
# =============================================================================

def find_local_only(local_items: List[ConfItem], remote_items: List[ConfItem]) -> List[ConfItem]:
    """
    Find local items whose key is absent from the remote snapshot.

    Comparison is by key only; a key present on both sides with different
    content is not reported.

    Args:
        local_items: Local store snapshot
        remote_items: Remote store snapshot

    Returns:
        Local-only items, in local enumeration order
    """
    remote_keys: Set[str] = {item.key for item in remote_items}
    return [item for item in local_items if item.key not in remote_keys]


# =============================================================================
# Syncer
# =============================================================================

class Syncer:
    """
    Keeps a local config store in sync with a remote config store.

    Startup reconciliation pulls the remote snapshot into the local store,
    then pushes items that only exist locally. Afterwards two forwarding
    loops run concurrently, one per direction, until the stores are closed
    or stop() is called. A failed write is logged and skipped; nothing
    re-reconciles the stores until the next restart.
    """

    def __init__(self, local_store: BaseConfStore, remote_store: BaseConfStore,
                 strict: bool = False):
        """
        Initialize syncer.

        Args:
            local_store: Store for the local side (usually a DiskStore)
            remote_store: Store for the remote side (usually an EtcdStore)
            strict: Raise ReconciliationError when any item fails to write
        """
        self.local_store = local_store
        self.remote_store = remote_store
        self.strict = strict
        self.stats: Dict[SyncDirection, PropagationStats] = {
            direction: PropagationStats(direction) for direction in SyncDirection
        }
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def pull_from_remote(self) -> ReconcileResult:
        """
        Copy every remote item into the local store.

        Writes are not suppressed: propagation has not started, so there is
        no loop to break yet.

        Returns:
            ReconcileResult for the pull

        Raises:
            EnumerationError: If the remote store cannot be enumerated
            ReconciliationError: In strict mode, if any item failed to write
        """
        result = ReconcileResult(operation="pull_from_remote", started_at=datetime.now())

        data = self.remote_store.list_items()
        result.items_read = len(data)

        for item in data:
            logger.debug(f"Pulling file {item.key} from remote store")
            self._write_item(self.local_store, item, result)

        return self._finish(result)

    def add_local_conf_to_remote_store(self) -> ReconcileResult:
        """
        Put on the remote every local item whose key the remote lacks.

        Must run after pull_from_remote(), otherwise freshly pulled keys
        would not be told apart from local-only ones.

        Returns:
            ReconcileResult for the push

        Raises:
            EnumerationError: If either store cannot be enumerated
            ReconciliationError: In strict mode, if any item failed to write
        """
        result = ReconcileResult(operation="add_local_conf_to_remote_store",
                                 started_at=datetime.now())

        remote_data = self.remote_store.list_items()
        local_data = self.local_store.list_items()
        result.items_read = len(local_data)

        missing = find_local_only(local_data, remote_data)
        result.items_skipped = len(local_data) - len(missing)

        for item in missing:
            logger.debug(f"Pushing missing file {item.key} to remote store")
            self._write_item(self.remote_store, item, result)

        return self._finish(result)

    def reconcile(self) -> List[ReconcileResult]:
        """Run pull_from_remote() then add_local_conf_to_remote_store()"""
        pulled = self.pull_from_remote()
        logger.info("Remote config successfully pulled and applied")
        pushed = self.add_local_conf_to_remote_store()
        logger.info("Missing local files successfully added into remote store")
        return [pulled, pushed]

    def _write_item(self, store: BaseConfStore, item: ConfItem, result: ReconcileResult) -> None:
        try:
            store.put(item.key, item.content)
            result.items_written += 1
        except StoreError as e:
            logger.error(f"{result.operation}: error writing {item.key} to {store.name}: {e}")
            result.items_failed += 1
            result.errors.append(f"{item.key}: {e}")

    def _finish(self, result: ReconcileResult) -> ReconcileResult:
        result.completed_at = datetime.now()
        result.success = result.items_failed == 0
        if not result.success and self.strict:
            raise ReconciliationError(result)
        return result

    # -------------------------------------------------------------------------
    # Propagation
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start both forwarding loops in background threads"""
        if self._threads:
            raise RuntimeError("Syncer already started")

        self._stop.clear()
        routes = [
            (SyncDirection.LOCAL_TO_REMOTE, self.local_store, self.remote_store),
            (SyncDirection.REMOTE_TO_LOCAL, self.remote_store, self.local_store),
        ]
        for direction, source, sink in routes:
            thread = threading.Thread(
                target=self._forward,
                args=(direction, source, sink),
                name=f"confsyncer-{direction.value.replace('_', '-')}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until both forwarding loops have ended.

        Args:
            timeout: Seconds to wait in total (None = forever)

        Returns:
            True if both loops have ended
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self._threads:
            if deadline is None:
                thread.join()
            else:
                thread.join(max(0.0, deadline - time.monotonic()))
        return not self.is_running

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Ask both loops to exit at their next poll and wait for them.

        Returns:
            True if both loops have ended
        """
        self._stop.set()
        return self.wait(timeout)

    @property
    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def keep_in_sync(self) -> None:
        """
        Propagate changes in both directions until the loops end.

        Under normal operation this never returns: the loops only end when
        a source store is closed or stop() is called.
        """
        self.start()
        logger.info("Keeping local and remote config stores in sync...")
        self.wait()

    def _forward(self, direction: SyncDirection, source: BaseConfStore,
                 sink: BaseConfStore) -> None:
        """Forward every event from source to sink"""
        stats = self.stats[direction]
        for event in source.updates(stop=self._stop):
            stats.events_received += 1
            self._apply(event, sink, stats)
        logger.info(f"Propagation to {direction.target} store stopped")

    def _apply(self, event: ConfEvent, sink: BaseConfStore, stats: PropagationStats) -> bool:
        """
        Apply one event to the sink store.

        The sink is told to expect the echo before the write is issued.

        Returns:
            True if the event was applied
        """
        target = stats.direction.target

        if event.type is ConfEventType.PUT:
            logger.info(f"Propagating Put event for key {event.key} to {target} store")
            operation = "Put"
        elif event.type is ConfEventType.DELETE:
            logger.info(f"Propagating Delete event for key {event.key} to {target} store")
            operation = "Delete"
        else:
            logger.error(f"Unknown event type {event.type!r} for key {event.key}")
            stats.events_dropped += 1
            return False

        suppressed = False
        try:
            sink.suppress_next(event.key)
            suppressed = True
            if event.type is ConfEventType.PUT:
                sink.put(event.key, event.content or b"")
            else:
                sink.delete(event.key)
        except StoreError as e:
            if suppressed:
                sink.cancel_suppression(event.key)
            logger.error(f"Error calling {operation} for key {event.key} to {target} store: {e}")
            stats.events_failed += 1
            stats.last_error = str(e)
            return False
        except Exception as e:
            if suppressed:
                sink.cancel_suppression(event.key)
            logger.exception(f"Unexpected error calling {operation} for key {event.key}: {e}")
            stats.events_failed += 1
            stats.last_error = str(e)
            return False

        stats.events_propagated += 1
        return True
