"""
Config Stores Package

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/stores/__init__.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Package Initialization

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Initial package structure with disk and
                                etcd stores.
-------------------------------------------------------------------------------
===============================================================================
"""

# Contract and event model
from .base import (
    BaseConfStore,
    ConfEvent,
    ConfEventType,
    ConfItem,
    StoreConfig,
    normalize_key,
)

# Backends
from .disk import DiskStore, DiskStoreConfig
from .etcd import EtcdStore, EtcdStoreConfig
from .factory import StoreFactory

__all__ = [
    # Contract
    "BaseConfStore",
    "ConfEvent",
    "ConfEventType",
    "ConfItem",
    "StoreConfig",
    "normalize_key",
    # Disk
    "DiskStore",
    "DiskStoreConfig",
    # etcd
    "EtcdStore",
    "EtcdStoreConfig",
    # Factory
    "StoreFactory",
]
