"""
Confsyncer Exceptions - Error taxonomy for stores and the sync engine

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/exceptions.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Exception hierarchy separating fatal setup
                                errors from recoverable write errors.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from typing import Any, Optional


class ConfSyncError(Exception):
    """
    Base exception for all confsyncer errors.

    Carries a short message plus optional details so the CLI can print
    a one-line description of what failed.
    """

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


# =============================================================================
# Configuration Exceptions
# =============================================================================

class ConfigValidationError(ConfSyncError):
    """Raised when mandatory settings are missing or invalid."""

    def __init__(self, fields: list, reason: str = "missing mandatory parameters"):
        super().__init__(reason, details=", ".join(fields))
        self.fields = list(fields)


# =============================================================================
# Store Exceptions
# =============================================================================

class StoreError(ConfSyncError):
    """Base class for errors raised by a config store."""


class StoreSetupError(StoreError):
    """
    Fatal error while bringing a store up.

    The stage identifies which step failed (``connect``, ``enumerate`` or
    ``watch-setup``) so the process can report it before exiting.
    """

    def __init__(self, stage: str, message: str, details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.stage = stage


class EnumerationError(StoreError):
    """Raised when a store cannot produce a snapshot of its items."""


class StoreWriteError(StoreError):
    """Raised when a put or delete could not be applied to the backend."""

    def __init__(self, key: str, message: str, details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.key = key


class StoreClosedError(StoreError):
    """Raised on writes issued after the store was closed."""


class InvalidKeyError(StoreError, ValueError):
    """Raised for keys that are not store-relative POSIX paths."""

    def __init__(self, key: Any, reason: str):
        super().__init__(f"Invalid key {key!r}", details=reason)
        self.key = key


# =============================================================================
# Engine Exceptions
# =============================================================================

class ReconciliationError(ConfSyncError):
    """Raised in strict mode when reconciliation could not write every item."""

    def __init__(self, result: Any):
        super().__init__(
            f"{result.operation} failed for {result.items_failed} item(s)",
            details="; ".join(result.errors),
        )
        self.result = result
