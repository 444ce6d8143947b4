"""
Echo Suppressor - Per-store bookkeeping for self-inflicted change events

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/echo.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Skip counters with expiry and content
                                fingerprints, guarded by a per-instance lock.
-------------------------------------------------------------------------------

License: MIT

When the sync engine writes into a store because the other store changed,
the store's own watcher reports that write back shortly afterwards. The
engine registers the expected echo with suppress_next() before writing; the
watcher consumes it when the notification arrives and drops the event.

Known limitation: if the backend notification for a write is delivered
before suppress_next() is registered, the echo is not recognised and one
redundant propagation happens.
===============================================================================
"""

from collections import deque
from typing import Callable, Deque, Dict, Optional
import hashlib
import threading
import time


def content_digest(content: bytes) -> str:
    """SHA-256 hex digest of an item's content"""
    return hashlib.sha256(content).hexdigest()


class EchoSuppressor:
    """
    Pending-skip counters keyed by store-relative key.

    Every suppress_next() registers one expected echo. Each registration
    expires after ``ttl`` seconds so an echo that never arrives (failed
    write, coalesced notification) cannot swallow a later genuine change.
    Counters never go negative; consuming an absent key is a no-op.

    The suppressor also remembers a fingerprint of the last content the
    store holds for each key, which lets the store ignore notifications
    that do not change anything.
    """

    def __init__(self, ttl: Optional[float] = 30.0,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl: Seconds a suppression stays valid (None = never expires)
            clock: Monotonic time source, injectable for tests
        """
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Dict[str, Deque[float]] = {}
        self._digests: Dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Skip counters
    # -------------------------------------------------------------------------

    def _purge(self, key: str) -> Deque[float]:
        # Caller holds the lock
        expiries = self._pending.get(key)
        if expiries is None:
            return deque()
        now = self._clock()
        while expiries and expiries[0] <= now:
            expiries.popleft()
        if not expiries:
            del self._pending[key]
        return expiries

    def suppress_next(self, key: str) -> None:
        """Expect one more self-inflicted event for key"""
        expiry = float("inf") if self.ttl is None else self._clock() + self.ttl
        with self._lock:
            self._purge(key)
            self._pending.setdefault(key, deque()).append(expiry)

    def consume(self, key: str) -> bool:
        """
        Consume one pending suppression for key.

        Returns:
            True if an unexpired suppression was pending (event must be
            dropped), False otherwise
        """
        with self._lock:
            expiries = self._purge(key)
            if not expiries:
                return False
            expiries.popleft()
            if not expiries:
                del self._pending[key]
            return True

    def pending(self, key: str) -> int:
        """Number of unexpired suppressions for key"""
        with self._lock:
            return len(self._purge(key))

    def clear(self) -> None:
        """Forget all counters and fingerprints"""
        with self._lock:
            self._pending.clear()
            self._digests.clear()

    # -------------------------------------------------------------------------
    # Content fingerprints
    # -------------------------------------------------------------------------

    def remember(self, key: str, content: bytes) -> None:
        """Record the content the store now holds for key"""
        digest = content_digest(content)
        with self._lock:
            self._digests[key] = digest

    def forget(self, key: str) -> None:
        with self._lock:
            self._digests.pop(key, None)

    def is_unchanged(self, key: str, content: bytes) -> bool:
        """True if content matches the last fingerprint for key"""
        digest = content_digest(content)
        with self._lock:
            return self._digests.get(key) == digest
