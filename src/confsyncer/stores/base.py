"""
Base Config Store - Abstract store contract and event model

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/stores/base.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Abstract base class defining the store
                                interface shared by disk and etcd backends.
-------------------------------------------------------------------------------

License: MIT

STORE CONTRACT:
- list_items() returns a point-in-time snapshot (EnumerationError on failure)
- updates() yields change events in the order the backend observed them
- put()/delete() apply writes; deleting an absent key is not an error
- suppress_next() registers one expected self-inflicted event for a key
- close() releases backend resources exactly once and ends updates()
===============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from queue import Empty, Full, Queue
from typing import Iterator, List, Optional
import logging
import posixpath
import threading

from ..echo import EchoSuppressor
from ..exceptions import InvalidKeyError, StoreClosedError

logger = logging.getLogger(__name__)

# Seconds between checks of the closed/stop flags while blocked on the queue
POLL_INTERVAL = 0.5

_END_OF_STREAM = object()


# =============================================================================
# Event / Item Model
# =============================================================================

class ConfEventType(Enum):
    """Kinds of change a store can report"""
    PUT = "put"
    DELETE = "delete"


@dataclass(frozen=True)
class ConfItem:
    """One configuration entry as returned by enumeration"""
    key: str
    content: bytes


@dataclass(frozen=True)
class ConfEvent:
    """A single observed change. Content is only set for PUT events."""
    key: str
    type: ConfEventType
    content: Optional[bytes] = None

    @classmethod
    def put(cls, key: str, content: bytes) -> "ConfEvent":
        return cls(key=key, type=ConfEventType.PUT, content=content)

    @classmethod
    def delete(cls, key: str) -> "ConfEvent":
        return cls(key=key, type=ConfEventType.DELETE)


@dataclass
class StoreConfig:
    """
    Base configuration for config stores.

    All store types inherit from this base configuration.
    """
    name: str
    store_type: str = ""
    event_queue_size: int = 1024  # 0 = unbounded; a full queue blocks the watcher
    suppression_ttl: Optional[float] = 30.0  # None = suppressions never expire
    dedupe_unchanged: bool = True


def normalize_key(key: str) -> str:
    """
    Normalize a store-relative key.

    Backslashes are treated as separators and redundant slashes are
    collapsed. The result never starts with "/" and contains no "." or
    ".." segments.

    Raises:
        InvalidKeyError: If the key is empty or escapes the store root
    """
    if not isinstance(key, str):
        raise InvalidKeyError(key, "keys must be strings")

    parts = [p for p in key.replace("\\", "/").split("/") if p]
    if not parts:
        raise InvalidKeyError(key, "empty key")
    if any(p in (".", "..") for p in parts):
        raise InvalidKeyError(key, "relative segments are not allowed")
    return posixpath.join(*parts)


# =============================================================================
# Store Contract
# =============================================================================

class BaseConfStore(ABC):
    """
    Abstract base class for config stores.

    Subclasses implement the backend mechanics (_list, _put, _delete,
    _disconnect and optionally connect). Watch threads hand every backend
    notification to _notify(), which applies echo suppression before the
    event reaches the outward queue, so the guarantee holds for every
    backend alike.

    The outward queue is bounded. When it is full the producing watch
    thread blocks until the consumer catches up or the store is closed.

    Usage:
        store = DiskStore(DiskStoreConfig(name="local", location="/etc/app"))
        store.connect()
        for event in store.updates():
            ...
        store.close()
    """

    def __init__(self, config: StoreConfig):
        """
        Initialize store bookkeeping.

        Args:
            config: Store configuration
        """
        self.config = config
        self._echo = EchoSuppressor(ttl=config.suppression_ttl)
        self._events: Queue = Queue(maxsize=config.event_queue_size)
        self._closed = threading.Event()
        self._close_lock = threading.Lock()
        self._connected = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"

    @property
    def name(self) -> str:
        """Get store name"""
        return self.config.name

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def connect(self, watch: bool = True) -> None:
        """
        Establish backend access and optionally start watching for changes.

        Raises:
            StoreSetupError: If the backend is unreachable or cannot be watched
        """
        self._ensure_open()
        self._connected = True

    def close(self) -> None:
        """
        Release backend resources and end the event stream.

        Only the first call has an effect.
        """
        with self._close_lock:
            if self._closed.is_set():
                return
            self._closed.set()

        try:
            self._disconnect()
        finally:
            self._connected = False
            try:
                self._events.put_nowait(_END_OF_STREAM)
            except Full:
                # Consumers notice the closed flag once the queue drains
                pass
            logger.info(f"Store {self.name} closed")

    @abstractmethod
    def _disconnect(self) -> None:
        """Release backend resources (watchers, sessions)"""

    # -------------------------------------------------------------------------
    # Enumeration and writes
    # -------------------------------------------------------------------------

    def list_items(self) -> List[ConfItem]:
        """
        Snapshot of every item currently in the store.

        Raises:
            EnumerationError: On backend I/O failure
        """
        return self._list()

    def put(self, key: str, content: bytes) -> None:
        """
        Write content under key.

        Raises:
            InvalidKeyError: If key is not a valid relative key
            StoreClosedError: If the store was closed
            StoreWriteError: If the backend rejected the write
        """
        self._ensure_open()
        key = normalize_key(key)
        content = bytes(content)
        # Fingerprint first: the backend may report the write before _put returns
        self._echo.remember(key, content)
        try:
            self._put(key, content)
        except Exception:
            self._echo.forget(key)
            raise

    def delete(self, key: str) -> None:
        """
        Delete key. Deleting an absent key is not an error.

        Raises:
            InvalidKeyError: If key is not a valid relative key
            StoreClosedError: If the store was closed
            StoreWriteError: If the backend rejected the delete
        """
        self._ensure_open()
        key = normalize_key(key)
        self._echo.forget(key)
        self._delete(key)

    @abstractmethod
    def _list(self) -> List[ConfItem]:
        """Backend enumeration"""

    @abstractmethod
    def _put(self, key: str, content: bytes) -> None:
        """Backend write"""

    @abstractmethod
    def _delete(self, key: str) -> None:
        """
        Backend delete.

        Implementations call cancel_suppression(key) when the key was
        already absent, since no notification will follow.
        """

    def _ensure_open(self) -> None:
        if self._closed.is_set():
            raise StoreClosedError(f"Store {self.name} is closed")

    # -------------------------------------------------------------------------
    # Echo suppression
    # -------------------------------------------------------------------------

    def suppress_next(self, key: str) -> None:
        """Register one upcoming self-inflicted event for key"""
        self._echo.suppress_next(normalize_key(key))

    def cancel_suppression(self, key: str) -> None:
        """Undo one suppress_next(key) whose write never reached the backend"""
        self._echo.consume(normalize_key(key))

    def pending_suppressions(self, key: str) -> int:
        return self._echo.pending(normalize_key(key))

    # -------------------------------------------------------------------------
    # Event stream
    # -------------------------------------------------------------------------

    def _notify(self, event: ConfEvent) -> bool:
        """
        Entry point for backend watch notifications.

        Returns:
            True if the event was forwarded to the outward stream
        """
        if self._echo.consume(event.key):
            logger.debug(
                f"Store {self.name}: skipping echo {event.type.value} for {event.key} "
                f"({self._echo.pending(event.key)} skips left)"
            )
            if event.type is ConfEventType.PUT and event.content is not None:
                self._echo.remember(event.key, event.content)
            return False

        if event.type is ConfEventType.PUT and event.content is not None:
            if self.config.dedupe_unchanged and self._echo.is_unchanged(event.key, event.content):
                logger.debug(f"Store {self.name}: content of {event.key} unchanged, ignoring")
                return False
            self._echo.remember(event.key, event.content)
        elif event.type is ConfEventType.DELETE:
            self._echo.forget(event.key)

        return self._emit(event)

    def _emit(self, event: ConfEvent) -> bool:
        # Block while the queue is full; give up once the store is closed
        while not self._closed.is_set():
            try:
                self._events.put(event, timeout=POLL_INTERVAL)
                return True
            except Full:
                continue
        logger.debug(f"Store {self.name} closed, discarding event for {event.key}")
        return False

    def updates(self, stop: Optional[threading.Event] = None) -> Iterator[ConfEvent]:
        """
        Stream of change events.

        Ends when the store is closed, or when ``stop`` is set.

        Args:
            stop: Optional event that ends the iteration early
        """
        while True:
            if stop is not None and stop.is_set():
                return
            try:
                event = self._events.get(timeout=POLL_INTERVAL)
            except Empty:
                if self._closed.is_set():
                    return
                continue
            if event is _END_OF_STREAM:
                return
            yield event
