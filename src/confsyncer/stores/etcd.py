"""
Etcd Config Store - etcd v3 key prefix accessed through the JSON gateway

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/stores/etcd.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  etcd store using the v3 gRPC JSON gateway
                                with a retrying requests session and a
                                resumable streaming watch.
-------------------------------------------------------------------------------

License: MIT

GATEWAY ENDPOINTS (all POST, keys and values base64 encoded):
- /v3/kv/range        prefix enumeration and current revision
- /v3/kv/put          single key write
- /v3/kv/deleterange  single key delete
- /v3/watch           newline-delimited stream of watch responses
===============================================================================
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import base64
import json
import logging
import threading

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions import (
    ConfigValidationError,
    EnumerationError,
    InvalidKeyError,
    StoreSetupError,
    StoreWriteError,
)
from .base import BaseConfStore, ConfEvent, ConfItem, StoreConfig, normalize_key

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class EtcdStoreConfig(StoreConfig):
    """Configuration specific to etcd stores"""
    store_type: str = "etcd"
    endpoint: str = ""  # e.g. http://127.0.0.1:2379
    prefix: str = ""  # Key prefix holding the synchronized files
    api_path: str = "/v3"
    connect_timeout: float = 5.0
    request_timeout: float = 5.0
    max_retries: int = 3
    retry_backoff: float = 0.5
    verify_ssl: bool = True
    reconnect_delay: float = 1.0


# =============================================================================
# Encoding Helpers
# =============================================================================

def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(data: Optional[str]) -> bytes:
    if not data:
        return b""
    return base64.b64decode(data)


def prefix_range_end(prefix: bytes) -> bytes:
    """
    Smallest key greater than every key starting with prefix.

    Mirrors clientv3.GetPrefixRangeEnd: increment the last byte that is
    not 0xff and drop everything after it.
    """
    end = bytearray(prefix)
    for i in range(len(end) - 1, -1, -1):
        if end[i] < 0xFF:
            end[i] += 1
            return bytes(end[:i + 1])
    # All 0xff: range to the end of the keyspace
    return b"\x00"


def normalize_endpoint(endpoint: str) -> str:
    endpoint = endpoint.strip().rstrip("/")
    if "://" not in endpoint:
        endpoint = f"http://{endpoint}"
    return endpoint


# =============================================================================
# Etcd Store
# =============================================================================

class EtcdStore(BaseConfStore):
    """
    Config store backed by every key under an etcd prefix.

    Item keys are the etcd keys with ``<prefix>/`` stripped. The watch runs
    in a daemon thread that reconnects after stream failures and resumes
    from the last revision it delivered.
    """

    def __init__(self, config: EtcdStoreConfig,
                 session: Optional[requests.Session] = None):
        """
        Initialize etcd store.

        Args:
            config: etcd store configuration
            session: Optional pre-built requests session
        """
        missing = [name for name in ("endpoint", "prefix") if not getattr(config, name)]
        if missing:
            raise ConfigValidationError(missing)

        super().__init__(config)
        self.base_url = normalize_endpoint(config.endpoint) + config.api_path.rstrip("/")
        self.prefix = config.prefix.rstrip("/")
        self._key_space = f"{self.prefix}/".encode("utf-8")
        self._session = session or self._create_session()

        self._revision = 0
        self._watch_thread: Optional[threading.Thread] = None
        self._watch_response: Optional[requests.Response] = None
        self._watch_lock = threading.Lock()

    def _create_session(self) -> requests.Session:
        """Create requests session with retry logic"""
        session = requests.Session()

        # The gateway only speaks POST, so POST must be retried too
        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=self.config.retry_backoff,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=frozenset(["POST"]),
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"Content-Type": "application/json"})

        return session

    # -------------------------------------------------------------------------
    # Key helpers
    # -------------------------------------------------------------------------

    def _full_key(self, key: str) -> bytes:
        return self._key_space + key.encode("utf-8")

    def _relative_key(self, raw_key: bytes) -> Optional[str]:
        """Strip the prefix from an etcd key; None for keys outside it"""
        if not raw_key.startswith(self._key_space):
            return None
        try:
            return normalize_key(raw_key[len(self._key_space):].decode("utf-8"))
        except (UnicodeDecodeError, InvalidKeyError) as e:
            logger.warning(f"Ignoring etcd key {raw_key!r}: {e}")
            return None

    def _range_request(self) -> Dict[str, Any]:
        return {
            "key": b64encode(self._key_space),
            "range_end": b64encode(prefix_range_end(self._key_space)),
        }

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self._session.post(
            f"{self.base_url}/{path}",
            json=payload,
            timeout=(self.config.connect_timeout, self.config.request_timeout),
            verify=self.config.verify_ssl,
        )
        response.raise_for_status()
        return response.json() if response.content else {}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def connect(self, watch: bool = True) -> None:
        """Fetch the current revision and start watching the prefix"""
        self._ensure_open()

        logger.info(f"Connecting to etcd endpoint: {self.base_url} (prefix: {self.prefix})")
        try:
            payload = self._range_request()
            payload["count_only"] = True
            result = self._post("kv/range", payload)
            self._revision = int(result.get("header", {}).get("revision", 0))
        except (requests.exceptions.RequestException, ValueError) as e:
            raise StoreSetupError(
                "connect", f"Impossible to reach etcd at {self.base_url}", details=e
            )

        if watch and self._watch_thread is None:
            try:
                self._watch_thread = threading.Thread(
                    target=self._watch_loop,
                    name=f"confsyncer-watch-{self.name}",
                    daemon=True,
                )
                self._watch_thread.start()
            except RuntimeError as e:
                raise StoreSetupError(
                    "watch-setup", f"Impossible to watch prefix {self.prefix}", details=e
                )

        super().connect(watch)

    def _disconnect(self) -> None:
        with self._watch_lock:
            if self._watch_response is not None:
                self._watch_response.close()
        self._session.close()
        if self._watch_thread is not None and self._watch_thread is not threading.current_thread():
            self._watch_thread.join(timeout=5)
        self._watch_thread = None

    # -------------------------------------------------------------------------
    # Watch
    # -------------------------------------------------------------------------

    def _watch_loop(self) -> None:
        """Keep a watch stream open until the store is closed"""
        while not self._closed.is_set():
            request = self._range_request()
            request["start_revision"] = str(self._revision + 1)
            try:
                response = self._session.post(
                    f"{self.base_url}/watch",
                    json={"create_request": request},
                    stream=True,
                    timeout=(self.config.connect_timeout, None),
                    verify=self.config.verify_ssl,
                )
                response.raise_for_status()
                with self._watch_lock:
                    self._watch_response = response
                logger.debug(f"Watching {self.prefix} from revision {self._revision + 1}")

                for line in response.iter_lines():
                    if self._closed.is_set():
                        break
                    if line:
                        self._handle_watch_message(json.loads(line))
            except (requests.exceptions.RequestException, ValueError, AttributeError) as e:
                # AttributeError: urllib3 raises it when the stream is closed under it
                if self._closed.is_set():
                    break
                logger.warning(f"etcd watch on {self.prefix} interrupted: {e}")
            finally:
                with self._watch_lock:
                    self._watch_response = None

            if self._closed.wait(self.config.reconnect_delay):
                break
            logger.info(f"Re-establishing etcd watch on {self.prefix}")

    def _handle_watch_message(self, message: Dict[str, Any]) -> None:
        """Translate one watch response into store notifications"""
        if "error" in message:
            logger.error(f"etcd watch error: {message['error']}")
            return

        result = message.get("result", {})
        if result.get("canceled"):
            compact_revision = int(result.get("compact_revision", 0))
            if compact_revision:
                logger.error(
                    f"etcd watch on {self.prefix} compacted, events before "
                    f"revision {compact_revision} were lost"
                )
                self._revision = compact_revision - 1
            else:
                logger.error(f"etcd watch canceled: {result.get('cancel_reason', 'unknown reason')}")
            return

        for ev in result.get("events", []):
            kv = ev.get("kv", {})
            mod_revision = int(kv.get("mod_revision", 0))
            if mod_revision:
                self._revision = max(self._revision, mod_revision)

            raw_key = b64decode(kv.get("key"))
            key = self._relative_key(raw_key)
            if key is None:
                continue

            # PUT is the zero value and is omitted from the JSON encoding
            if ev.get("type", "PUT") == "DELETE":
                logger.debug(f"Got delete event for {raw_key!r}")
                self._notify(ConfEvent.delete(key))
            else:
                logger.debug(f"Got update event for {raw_key!r}")
                self._notify(ConfEvent.put(key, b64decode(kv.get("value"))))

    # -------------------------------------------------------------------------
    # Store operations
    # -------------------------------------------------------------------------

    def _list(self) -> List[ConfItem]:
        """Prefix range read"""
        try:
            result = self._post("kv/range", self._range_request())
        except (requests.exceptions.RequestException, ValueError) as e:
            raise EnumerationError(f"Error performing prefix get on {self.prefix}", details=e)

        items = []
        for kv in result.get("kvs", []):
            key = self._relative_key(b64decode(kv.get("key")))
            if key is not None:
                items.append(ConfItem(key=key, content=b64decode(kv.get("value"))))
        return items

    def _put(self, key: str, content: bytes) -> None:
        full_key = self._full_key(key)
        logger.debug(f"Performing put on {full_key!r}")
        try:
            self._post("kv/put", {"key": b64encode(full_key), "value": b64encode(content)})
        except (requests.exceptions.RequestException, ValueError) as e:
            raise StoreWriteError(key, f"Error performing put on {full_key!r}", details=e)

    def _delete(self, key: str) -> None:
        full_key = self._full_key(key)
        logger.debug(f"Performing delete on {full_key!r}")
        try:
            result = self._post("kv/deleterange", {"key": b64encode(full_key)})
        except (requests.exceptions.RequestException, ValueError) as e:
            raise StoreWriteError(key, f"Error performing delete on {full_key!r}", details=e)

        if int(result.get("deleted", 0)) == 0:
            logger.debug(f"Key {full_key!r} already absent")
            self.cancel_suppression(key)
