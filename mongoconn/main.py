"""Entry point: connect to MongoDB and hold the connection until SIGINT.

    1. Configure JSON logging
    2. Load config from environment variables
    3. Connect (primary, then in-memory fallback or timed retries)
    4. Sleep until a signal arrives; SIGINT runs the shutdown hook
"""

from __future__ import annotations

import logging
import signal
import time

from mongoconn.config import load_config
from mongoconn.logging_config import configure_logging
from mongoconn.storage.connection_manager import connect_db

logger = logging.getLogger(__name__)


def main() -> int:
    configure_logging()

    try:
        config = load_config()
    except ValueError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    try:
        connect_db(config)
    except Exception as exc:
        logger.error("Startup failed: %s", exc)
        return 1

    logger.info("Connection manager running, press Ctrl+C to stop")
    _wait_forever()
    return 0


def _wait_forever() -> None:
    try:
        while True:
            signal.pause()
    except AttributeError:
        # signal.pause() is not available on Windows
        while True:
            time.sleep(1)


if __name__ == "__main__":
    raise SystemExit(main())
