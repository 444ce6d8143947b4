"""
Syncer Configuration - Process-level settings

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/confsyncer/config.py
Created: 2026-10-19
Author: Confsyncer Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  Confsyncer  CREATE  Settings dataclass with dict and environment
                                loading plus mandatory field validation.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional
import logging
import os

from .exceptions import ConfigValidationError

ENV_PREFIX = "CONFSYNCER_"

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

MANDATORY_FIELDS = ("etcd_endpoint", "kv_prefix", "location")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SyncerConfig:
    """Settings for one confsyncer process"""
    etcd_endpoint: str = ""
    kv_prefix: str = ""
    location: str = ""
    just_pull: bool = False
    log_level: str = "info"
    request_timeout: float = 5.0
    max_retries: int = 3
    event_queue_size: int = 1024
    suppression_ttl: Optional[float] = 30.0
    strict_reconcile: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SyncerConfig":
        """Create config from dictionary, ignoring unknown or None values"""
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            value = data.get(f.name)
            if value is None:
                continue
            if f.name in ("just_pull", "strict_reconcile"):
                value = _parse_bool(value)
            elif f.name in ("request_timeout", "suppression_ttl"):
                value = float(value)
            elif f.name in ("max_retries", "event_queue_size"):
                value = int(value)
            kwargs[f.name] = value
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncerConfig":
        """Create config from CONFSYNCER_* environment variables"""
        environ = os.environ if environ is None else environ
        data = {}
        for f in fields(cls):
            env_name = f"{ENV_PREFIX}{f.name.upper()}"
            if env_name in environ and environ[env_name] != "":
                data[f.name] = environ[env_name]
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def validate(self) -> None:
        """
        Check mandatory parameters and value ranges.

        Raises:
            ConfigValidationError: Naming every offending field
        """
        missing = [name for name in MANDATORY_FIELDS if not getattr(self, name)]
        if missing:
            raise ConfigValidationError(missing)

        invalid = []
        if self.log_level.lower() not in LOG_LEVELS:
            invalid.append("log_level")
        if self.request_timeout <= 0:
            invalid.append("request_timeout")
        if self.max_retries < 0:
            invalid.append("max_retries")
        if self.event_queue_size < 0:
            invalid.append("event_queue_size")
        if self.suppression_ttl is not None and self.suppression_ttl <= 0:
            invalid.append("suppression_ttl")
        if invalid:
            raise ConfigValidationError(invalid, reason="invalid parameter values")

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper())

    def local_store_settings(self) -> Dict[str, Any]:
        """Settings for the disk store, as accepted by StoreFactory"""
        return {
            "name": "local",
            "location": self.location,
            "event_queue_size": self.event_queue_size,
            "suppression_ttl": self.suppression_ttl,
        }

    def remote_store_settings(self) -> Dict[str, Any]:
        """Settings for the etcd store, as accepted by StoreFactory"""
        return {
            "name": "remote",
            "endpoint": self.etcd_endpoint,
            "prefix": self.kv_prefix,
            "request_timeout": self.request_timeout,
            "max_retries": self.max_retries,
            "event_queue_size": self.event_queue_size,
            "suppression_ttl": self.suppression_ttl,
        }
