"""Connection lifecycle observers built on pymongo.monitoring.

pymongo reports server health through monitor threads rather than
connection-level events, so the three lifecycle notifications are
derived from them:

    error        - a heartbeat against a server failed
    disconnected - a server went from a known type to Unknown
    reconnected  - a server previously lost is known again

The listeners only log; recovery is left to the driver.
"""

from __future__ import annotations

import logging
import threading

from pymongo.monitoring import (
    ServerClosedEvent,
    ServerDescriptionChangedEvent,
    ServerHeartbeatFailedEvent,
    ServerHeartbeatListener,
    ServerHeartbeatStartedEvent,
    ServerHeartbeatSucceededEvent,
    ServerListener,
    ServerOpeningEvent,
)

logger = logging.getLogger(__name__)


class HeartbeatErrorLogger(ServerHeartbeatListener):
    """Log every failed server heartbeat as a connection error."""

    def started(self, event: ServerHeartbeatStartedEvent) -> None:
        pass

    def succeeded(self, event: ServerHeartbeatSucceededEvent) -> None:
        pass

    def failed(self, event: ServerHeartbeatFailedEvent) -> None:
        logger.error(
            "MongoDB connection error: %s (server %s)",
            event.reply,
            _format_address(event.connection_id),
        )


class ServerStateLogger(ServerListener):
    """Log servers dropping out of and returning to the topology.

    The first transition from Unknown to a known type happens during
    initial discovery and is not a reconnect, so only addresses that
    were seen going down are reported when they come back.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._lost: set[tuple[str, int]] = set()

    def opened(self, event: ServerOpeningEvent) -> None:
        pass

    def description_changed(self, event: ServerDescriptionChangedEvent) -> None:
        was_known = event.previous_description.is_server_type_known
        is_known = event.new_description.is_server_type_known
        address = event.server_address

        with self._lock:
            if was_known and not is_known:
                self._lost.add(address)
                lost = True
            elif is_known and address in self._lost:
                self._lost.discard(address)
                lost = False
            else:
                return

        if lost:
            logger.warning("MongoDB disconnected (server %s)", _format_address(address))
        else:
            logger.info("MongoDB reconnected (server %s)", _format_address(address))

    def closed(self, event: ServerClosedEvent) -> None:
        with self._lock:
            self._lost.discard(event.server_address)


def build_event_observers() -> list[ServerHeartbeatListener | ServerListener]:
    """Create a fresh observer set for one MongoClient."""
    return [HeartbeatErrorLogger(), ServerStateLogger()]


def _format_address(address: tuple[str, int] | None) -> str:
    if not address:
        return "unknown"
    host, port = address
    return f"{host}:{port}"
