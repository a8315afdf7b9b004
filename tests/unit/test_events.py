import logging
from unittest.mock import MagicMock

from mongoconn.storage.events import (
    HeartbeatErrorLogger,
    ServerStateLogger,
    build_event_observers,
)

ADDRESS = ("db.internal", 27017)


def _change(was_known, is_known, address=ADDRESS):
    event = MagicMock()
    event.server_address = address
    event.previous_description.is_server_type_known = was_known
    event.new_description.is_server_type_known = is_known
    return event


class TestHeartbeatErrorLogger:
    def test_failed_heartbeat_logs_error(self, caplog):
        event = MagicMock()
        event.reply = ConnectionRefusedError("refused")
        event.connection_id = ADDRESS

        with caplog.at_level(logging.ERROR):
            HeartbeatErrorLogger().failed(event)

        assert "MongoDB connection error: refused" in caplog.text
        assert "db.internal:27017" in caplog.text

    def test_successful_heartbeat_is_silent(self, caplog):
        with caplog.at_level(logging.DEBUG):
            HeartbeatErrorLogger().succeeded(MagicMock())
        assert caplog.records == []


class TestServerStateLogger:
    def test_initial_discovery_is_not_a_reconnect(self, caplog):
        with caplog.at_level(logging.INFO):
            ServerStateLogger().description_changed(_change(False, True))
        assert "reconnected" not in caplog.text

    def test_disconnect_then_reconnect(self, caplog):
        observer = ServerStateLogger()
        with caplog.at_level(logging.INFO):
            observer.description_changed(_change(True, False))
            observer.description_changed(_change(False, False))
            observer.description_changed(_change(False, True))

        messages = [r.getMessage() for r in caplog.records]
        assert messages == [
            "MongoDB disconnected (server db.internal:27017)",
            "MongoDB reconnected (server db.internal:27017)",
        ]

    def test_closed_server_forgets_lost_state(self, caplog):
        observer = ServerStateLogger()
        observer.description_changed(_change(True, False))
        closed = MagicMock()
        closed.server_address = ADDRESS
        observer.closed(closed)

        with caplog.at_level(logging.INFO):
            observer.description_changed(_change(False, True))
        assert "reconnected" not in caplog.text


def test_build_event_observers_returns_fresh_set():
    first = build_event_observers()
    second = build_event_observers()
    assert len(first) == 2
    assert isinstance(first[0], HeartbeatErrorLogger)
    assert isinstance(first[1], ServerStateLogger)
    assert first[1] is not second[1]
