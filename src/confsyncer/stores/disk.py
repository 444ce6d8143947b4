"""
Disk Config Store - Local directory tree backed by watchdog

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/stores/disk.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Disk store with recursive watching, atomic
                                writes and ignore patterns.
2026-10-19  Confsyncer  MODIFY  Skip file names that do not map to a
                                normalized store key.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import fnmatch
import logging
import os
import tempfile

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..exceptions import (
    ConfigValidationError,
    EnumerationError,
    InvalidKeyError,
    StoreSetupError,
    StoreWriteError,
)
from .base import BaseConfStore, ConfEvent, ConfItem, StoreConfig, normalize_key

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".confsyncer-"
TEMP_SUFFIX = ".tmp"


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class DiskStoreConfig(StoreConfig):
    """Configuration specific to directory-backed stores"""
    store_type: str = "disk"
    location: str = ""  # Root directory to synchronize
    create_root: bool = True
    file_mode: int = 0o644
    ignore_patterns: List[str] = field(
        default_factory=lambda: ["*.swp", "*.swx", "*~", ".#*"]
    )
    observer_timeout: float = 1.0


# =============================================================================
# Watchdog Bridge
# =============================================================================

class _DiskEventHandler(FileSystemEventHandler):
    """Translates watchdog callbacks into store notifications"""

    def __init__(self, store: "DiskStore"):
        super().__init__()
        self.store = store

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.store._on_file_changed(os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.store._on_file_changed(os.fsdecode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.store._on_file_removed(os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.store._on_file_removed(os.fsdecode(event.src_path))
        self.store._on_file_changed(os.fsdecode(event.dest_path))


# =============================================================================
# Disk Store
# =============================================================================

class DiskStore(BaseConfStore):
    """
    Config store backed by a local directory tree.

    Each regular file under the root is one item; its key is the path
    relative to the root with POSIX separators. Writes go through a hidden
    temp file that is renamed into place, so watchers never observe a
    partially written file.
    """

    def __init__(self, config: DiskStoreConfig):
        """
        Initialize disk store.

        Args:
            config: Disk store configuration
        """
        if not config.location:
            raise ConfigValidationError(["location"])
        super().__init__(config)
        self.root = Path(config.location).expanduser().resolve()
        self._observer: Optional[Observer] = None

    # -------------------------------------------------------------------------
    # Path helpers
    # -------------------------------------------------------------------------

    def _path_for(self, key: str) -> Path:
        return self.root.joinpath(*key.split("/"))

    def _is_ignored(self, name: str) -> bool:
        if name.startswith(TEMP_PREFIX) and name.endswith(TEMP_SUFFIX):
            return True
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.config.ignore_patterns)

    def _relative_key(self, path: str) -> Optional[str]:
        """Key for an absolute path, or None if it is outside the root or ignored"""
        try:
            rel = Path(os.path.abspath(path)).relative_to(self.root)
        except ValueError:
            return None
        if not rel.parts or self._is_ignored(rel.name):
            return None
        raw = rel.as_posix()
        try:
            key = normalize_key(raw)
        except InvalidKeyError as e:
            logger.warning(f"Ignoring file {path}: {e}")
            return None
        if key != raw:
            # A backslash is a key separator but a legal POSIX file name character
            logger.warning(f"Ignoring file {path}: name does not map to a store key")
            return None
        return key

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def connect(self, watch: bool = True) -> None:
        """Ensure the root exists and start the recursive watcher"""
        self._ensure_open()

        if not self.root.is_dir():
            if not self.config.create_root:
                raise StoreSetupError(
                    "watch-setup", f"Local directory {self.root} does not exist"
                )
            try:
                self.root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreSetupError(
                    "watch-setup", f"Impossible to create directory {self.root}", details=e
                )

        if watch and self._observer is None:
            logger.info(f"Creating local directory watcher over directory: {self.root}")
            observer = Observer(timeout=self.config.observer_timeout)
            try:
                observer.schedule(_DiskEventHandler(self), str(self.root), recursive=True)
                observer.start()
            except OSError as e:
                raise StoreSetupError(
                    "watch-setup", f"Error watching directory {self.root}", details=e
                )
            self._observer = observer

        super().connect(watch)

    def _disconnect(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    # -------------------------------------------------------------------------
    # Watch callbacks
    # -------------------------------------------------------------------------

    def _on_file_changed(self, path: str) -> None:
        key = self._relative_key(path)
        if key is None:
            return
        try:
            content = Path(path).read_bytes()
        except FileNotFoundError:
            # Removed before we could read it; the delete notification follows
            logger.debug(f"File {path} vanished before it could be read")
            return
        except IsADirectoryError:
            return
        except OSError as e:
            logger.error(f"Error reading changed file {path}: {e}")
            return

        logger.debug(f"Got write notification for file {path}")
        self._notify(ConfEvent.put(key, content))

    def _on_file_removed(self, path: str) -> None:
        key = self._relative_key(path)
        if key is None:
            return
        logger.debug(f"Got delete notification for file {path}")
        self._notify(ConfEvent.delete(key))

    # -------------------------------------------------------------------------
    # Store operations
    # -------------------------------------------------------------------------

    def _list(self) -> List[ConfItem]:
        """Walk the root and read every regular file"""
        if not self.root.is_dir():
            raise EnumerationError(f"Error walking {self.root} directory", details="not a directory")

        def on_error(err: OSError):
            raise err

        items: List[ConfItem] = []
        try:
            for dirpath, dirnames, filenames in os.walk(self.root, onerror=on_error):
                dirnames.sort()
                for filename in sorted(filenames):
                    path = os.path.join(dirpath, filename)
                    key = self._relative_key(path)
                    if key is None or not os.path.isfile(path):
                        continue
                    with open(path, "rb") as f:
                        items.append(ConfItem(key=key, content=f.read()))
        except OSError as e:
            raise EnumerationError(f"Error walking {self.root} directory", details=e)

        return items

    def _put(self, key: str, content: bytes) -> None:
        path = self._path_for(key)
        logger.debug(f"Performing put on {path}")

        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, dir=str(path.parent)
            )
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.chmod(tmp_name, self.config.file_mode)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreWriteError(key, f"Impossible to write file {path}", details=e)

        logger.debug(f"Written file {path}")

    def _delete(self, key: str) -> None:
        path = self._path_for(key)
        logger.debug(f"Performing delete on {path}")
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.debug(f"File {path} already absent")
            self.cancel_suppression(key)
        except OSError as e:
            raise StoreWriteError(key, f"Impossible to remove file {path}", details=e)
