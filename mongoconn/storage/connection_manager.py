"""Connection supervision: primary MongoDB first, in-memory fallback second.

The strategy mirrors a primary/fallback chain:

    1. Connect to MONGODB_URI with the fixed option set
    2. If that fails and the fallback is allowed, start a disposable
       mongod (pymongo_inmemory) once and connect to it
    3. If the fallback is disabled, retry the primary on a timer,
       at a fixed interval, until it succeeds

A process-wide manager is kept at module level (connect_db /
get_database / close_connection) so the surrounding service can share
one client, the same way a warm singleton client is reused.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Union

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import InvalidURI, PyMongoError
from pymongo.monitoring import ServerHeartbeatListener, ServerListener
from pymongo_inmemory import Mongod
from pymongo_inmemory.context import Context

from mongoconn import lifecycle
from mongoconn.config import ConnectionOptions, MongoConfig, load_config
from mongoconn.storage.events import build_event_observers
from mongoconn.storage.mongo_client import connect_to_uri, describe_host

logger = logging.getLogger(__name__)


def create_in_memory_server() -> Mongod:
    """Build a disposable mongod from pymongo_inmemory defaults.

    Context reads PYMONGOIM__* environment variables and setup.cfg, so
    the mongod version and port can be tuned without code changes.
    """
    return Mongod(Context())


ClientFactory = Callable[
    [str, ConnectionOptions, Iterable[Union[ServerHeartbeatListener, ServerListener]]],
    MongoClient,
]


class ConnectionManager:
    """Owns the active MongoClient and, when used, the fallback mongod.

    Collaborators are injectable so the policy can be exercised without
    a live server:

    - client_factory: opens and verifies a client (connect_to_uri)
    - server_factory: builds the in-memory server (create_in_memory_server)
    - timer_factory: schedules retries (threading.Timer)
    """

    def __init__(
        self,
        config: MongoConfig,
        client_factory: ClientFactory = connect_to_uri,
        server_factory: Callable[[], Mongod] | None = None,
        timer_factory: Callable[..., threading.Timer] | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory
        self._server_factory = server_factory or create_in_memory_server
        self._timer_factory = timer_factory or threading.Timer

        self._client: MongoClient | None = None
        self._connect_lock = threading.Lock()
        self._fallback_server: Mongod | None = None
        self._fallback_lock = threading.Lock()
        self._fallback_attempted = False
        self._retry_timer: threading.Timer | None = None

    @property
    def client(self) -> MongoClient | None:
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def using_fallback(self) -> bool:
        return self._client is not None and self._fallback_server is not None

    @property
    def database(self) -> Database:
        """Database named in the URI path, else the configured default.

        Raises:
            RuntimeError: If no connection has been established.
        """
        if self._client is None:
            raise RuntimeError("MongoDB is not connected")
        return self._client.get_default_database(default=self._config.database)

    def connect(self) -> None:
        """Connect to the primary URI, falling back or retrying on failure.

        Failures of the primary are never raised. Only a failed
        fallback start propagates, since nothing is left to try.
        Concurrent calls are serialized: the first one connects (or
        falls back) and the others find the client already in place.

        The shutdown hook is registered on entry, while still on the
        caller's thread; retries run on timer threads, where signal
        handlers cannot be installed.
        """
        self.register_shutdown_handler()

        with self._connect_lock:
            if self._client is not None:
                logger.info("MongoDB already connected, skipping connect")
                return

            try:
                client = self._client_factory(
                    self._config.uri, self._config.options, build_event_observers()
                )
            except PyMongoError as exc:
                self._handle_connect_failure(exc)
                return

            self._client = client
            self._retry_timer = None
            logger.info("MongoDB Connected: %s", describe_host(client))

    def start_fallback(self) -> None:
        """Start the in-memory mongod and connect to it, at most once.

        The guard is set before the attempt, so a failed start is not
        retried either. Concurrent callers block until the first
        attempt finishes and then return without doing anything. A
        server that started but could not be connected to is stopped
        again before the error propagates.

        Raises:
            Exception: Whatever starting the server or connecting to
                it raised, after logging it.
        """
        self.register_shutdown_handler()

        with self._fallback_lock:
            if self._fallback_attempted:
                return
            self._fallback_attempted = True

            try:
                server = self._server_factory()
                server.start()
                self._fallback_server = server
                uri = server.connection_string
                client = self._client_factory(
                    uri, self._config.options, build_event_observers()
                )
            except Exception as exc:
                logger.error("Failed to start in-memory MongoDB: %s", exc)
                self._discard_fallback_server()
                raise

            self._client = client
            logger.info("MongoDB (in-memory) Connected: %s", uri)

    def register_shutdown_handler(self) -> bool:
        """Install the process SIGINT hook for this manager (idempotent)."""
        return lifecycle.install_shutdown_handler(self)

    def close(self) -> None:
        """Close the client, then stop the fallback server if one exists.

        If closing the client raises, the error propagates and the
        fallback server is left running.
        """
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

        if self._client is not None:
            self._client.close()
            self._client = None

        if self._fallback_server is not None:
            self._fallback_server.stop()
            self._fallback_server = None

    def _discard_fallback_server(self) -> None:
        server, self._fallback_server = self._fallback_server, None
        if server is None:
            return
        try:
            server.stop()
        except Exception as exc:
            logger.error("Failed to stop in-memory MongoDB: %s", exc)

    def _handle_connect_failure(self, exc: PyMongoError) -> None:
        logger.error("Database connection error: %s", exc)
        logger.error("Full error details: %r", exc)

        if isinstance(exc, InvalidURI):
            logger.error("Please check your MONGODB_URI environment variable")

        if self._config.allow_in_memory:
            logger.info("Attempting to start in-memory MongoDB as fallback...")
            self.start_fallback()
            return

        self._schedule_retry()

    def _schedule_retry(self) -> None:
        # Fixed interval, no attempt cap: a permanently broken URI retries forever.
        timer = self._timer_factory(self._config.retry_delay, self._retry)
        timer.daemon = True
        self._retry_timer = timer
        timer.start()
        logger.info(
            "Retrying database connection in %.1f seconds",
            self._config.retry_delay,
        )

    def _retry(self) -> None:
        logger.info("Retrying database connection...")
        self.connect()


_manager: ConnectionManager | None = None
_manager_lock = threading.Lock()


def connect_db(config: MongoConfig | None = None) -> ConnectionManager:
    """Create the process-wide manager if needed and connect it.

    The shutdown hook is installed before the first connection attempt
    so that SIGINT is handled even while the primary is being retried.

    Args:
        config: Explicit configuration; loaded from the environment
            when omitted.

    Returns:
        The process-wide ConnectionManager.
    """
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = ConnectionManager(config or load_config())
            _manager.register_shutdown_handler()
        manager = _manager
    manager.connect()
    return manager


def get_database() -> Database:
    """Get the database handle of the process-wide connection.

    Raises:
        RuntimeError: If connect_db() has not produced a connection.
    """
    if _manager is None:
        raise RuntimeError("connect_db() has not been called")
    return _manager.database


def close_connection() -> None:
    """Close the process-wide connection and reset the singleton.

    Safe to call even if no connection exists.
    """
    global _manager
    with _manager_lock:
        if _manager is not None:
            _manager.close()
            _manager = None
            logger.info("MongoDB connection closed")
        lifecycle.reset_shutdown_handler()
