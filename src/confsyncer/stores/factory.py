"""
Store Factory - Creates config stores based on store type

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/stores/factory.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Store factory for creating disk and etcd
                                stores from configuration dictionaries.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from dataclasses import fields
from typing import Any, Dict, Type

from .base import BaseConfStore, StoreConfig
from .disk import DiskStore, DiskStoreConfig
from .etcd import EtcdStore, EtcdStoreConfig


class StoreFactory:
    """
    Factory for creating config stores.

    Maps store types to store implementations and creates configured
    store instances.
    """

    STORE_TYPES: Dict[str, Type[BaseConfStore]] = {
        "disk": DiskStore,
        "etcd": EtcdStore,
    }

    CONFIG_TYPES: Dict[str, Type[StoreConfig]] = {
        "disk": DiskStoreConfig,
        "etcd": EtcdStoreConfig,
    }

    @classmethod
    def build_config(cls, store_type: str, config: Dict[str, Any]) -> StoreConfig:
        """
        Build the typed configuration for a store type.

        Unknown keys are ignored so a shared settings dict can be passed.

        Raises:
            ValueError: If store type is unknown
        """
        if store_type not in cls.CONFIG_TYPES:
            raise ValueError(f"Unknown store type: {store_type}")

        config_class = cls.CONFIG_TYPES[store_type]
        known = {f.name for f in fields(config_class)}
        kwargs = {k: v for k, v in config.items() if k in known and k != "store_type"}
        kwargs.setdefault("name", store_type)
        return config_class(store_type=store_type, **kwargs)

    @classmethod
    def create(cls, store_type: str, config: Dict[str, Any]) -> BaseConfStore:
        """
        Create a store for the given store type.

        Args:
            store_type: Type of store (e.g., "disk")
            config: Configuration dictionary

        Returns:
            Configured, not yet connected store instance

        Raises:
            ValueError: If store type is unknown
        """
        store_config = cls.build_config(store_type, config)
        return cls.STORE_TYPES[store_type](store_config)

    @classmethod
    def get_supported_types(cls) -> list:
        """Get list of supported store types"""
        return list(cls.STORE_TYPES.keys())

    @classmethod
    def register_store(cls, store_type: str,
                       store_class: Type[BaseConfStore],
                       config_class: Type[StoreConfig]):
        """
        Register a new store type.

        Args:
            store_type: Type identifier
            store_class: Store implementation class
            config_class: Configuration class
        """
        cls.STORE_TYPES[store_type] = store_class
        cls.CONFIG_TYPES[store_type] = config_class
