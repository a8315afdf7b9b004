"""Process shutdown hook for the database connection.

The SIGINT handler is process-wide state, so it is installed once no
matter how many times connection setup runs (primary attempts,
retries, fallback). The handler closes whatever the manager currently
holds and exits the process:

    exit 0 - client closed and fallback server (if any) stopped
    exit 1 - cleanup raised; the error is logged
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from types import FrameType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mongoconn.storage.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

_install_lock = threading.Lock()
_installed = False


def install_shutdown_handler(manager: ConnectionManager) -> bool:
    """Install the SIGINT handler for ``manager`` if none is installed yet.

    Only the main thread may set signal handlers. Calls from other
    threads (a retry timer that just connected) are skipped and leave
    the hook free for a later main-thread call.

    Returns:
        True if this call installed the handler, False if one was
        already in place or the caller is not the main thread.
    """
    global _installed
    with _install_lock:
        if _installed:
            return False

        if threading.current_thread() is not threading.main_thread():
            logger.warning(
                "Not on the main thread, skipping SIGINT handler install"
            )
            return False

        def _on_signal(signum: int, frame: FrameType | None) -> None:
            logger.info("Received signal %d, shutting down", signum)
            shutdown(manager)

        signal.signal(signal.SIGINT, _on_signal)
        _installed = True
        logger.debug("Installed SIGINT shutdown handler")
        return True


def shutdown(manager: ConnectionManager) -> None:
    """Close the connection, stop the fallback server and exit."""
    try:
        manager.close()
    except Exception as exc:
        logger.error("Error closing MongoDB connection: %s", exc)
        sys.exit(1)
    logger.info("MongoDB connection closed through app termination")
    sys.exit(0)


def reset_shutdown_handler() -> None:
    """Restore the default SIGINT handler and allow reinstalling."""
    global _installed
    with _install_lock:
        if _installed:
            signal.signal(signal.SIGINT, signal.default_int_handler)
        _installed = False
