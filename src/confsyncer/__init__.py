"""
Confsyncer - Bidirectional sync between a config directory and etcd

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/__init__.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Package Initialization

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Main package initialization with version
                                and public API exports.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

__version__ = "1.0.0"
__author__ = "Confsyncer Contributors"
__license__ = "MIT"

from .sync_engine import Syncer, ReconcileResult, SyncDirection
from .stores.base import BaseConfStore, ConfEvent, ConfEventType, ConfItem

__all__ = [
    "Syncer",
    "ReconcileResult",
    "SyncDirection",
    "BaseConfStore",
    "ConfEvent",
    "ConfEventType",
    "ConfItem",
    "__version__",
]
