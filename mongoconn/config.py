"""Configuration for the MongoDB connection manager.

Centralizes the connection tuning parameters and the fallback/retry
policy. All config is loaded from environment variables at runtime
(no hardcoded secrets). A missing or malformed MONGODB_URI is not a
configuration error here: it is routed through the connection failure
path like any other unreachable database.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

DEFAULT_DATABASE = "app"
DEFAULT_RETRY_DELAY = 5.0


@dataclass(frozen=True)
class ConnectionOptions:
    """Fixed pool, timeout and write settings applied to every client."""

    max_pool_size: int = 10
    min_pool_size: int = 1
    max_idle_time_ms: int = 30000
    server_selection_timeout_ms: int = 5000
    socket_timeout_ms: int = 45000
    connect_timeout_ms: int = 10000
    heartbeat_frequency_ms: int = 10000
    retry_writes: bool = True
    write_concern: str = "majority"

    def to_client_kwargs(self) -> dict[str, Any]:
        """Convert to the keyword arguments MongoClient expects."""
        return {
            "maxPoolSize": self.max_pool_size,
            "minPoolSize": self.min_pool_size,
            "maxIdleTimeMS": self.max_idle_time_ms,
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
            "socketTimeoutMS": self.socket_timeout_ms,
            "connectTimeoutMS": self.connect_timeout_ms,
            "heartbeatFrequencyMS": self.heartbeat_frequency_ms,
            "retryWrites": self.retry_writes,
            "w": self.write_concern,
        }


@dataclass(frozen=True)
class MongoConfig:
    uri: str = ""
    database: str = DEFAULT_DATABASE
    allow_in_memory: bool = True
    retry_delay: float = DEFAULT_RETRY_DELAY
    options: ConnectionOptions = field(default_factory=ConnectionOptions)


def load_config() -> MongoConfig:
    """Load configuration from environment variables.

    Reads:
        MONGODB_URI: primary connection string (may be empty).
        ALLOW_IN_MEMORY_DB: anything but the literal "false" enables
            the in-memory fallback. Unset means enabled.
        MONGODB_DATABASE: database name used when the URI names none.
        MONGODB_RETRY_DELAY: seconds between primary retries.

    Returns:
        A frozen MongoConfig.

    Raises:
        ValueError: If MONGODB_RETRY_DELAY is not a positive number.
    """
    retry_raw = os.environ.get("MONGODB_RETRY_DELAY", "")
    retry_delay = DEFAULT_RETRY_DELAY
    if retry_raw:
        retry_delay = float(retry_raw)
        if retry_delay <= 0:
            raise ValueError(
                f"MONGODB_RETRY_DELAY must be positive, got {retry_raw!r}"
            )

    return MongoConfig(
        uri=os.environ.get("MONGODB_URI", ""),
        database=os.environ.get("MONGODB_DATABASE") or DEFAULT_DATABASE,
        allow_in_memory=os.environ.get("ALLOW_IN_MEMORY_DB") != "false",
        retry_delay=retry_delay,
    )
