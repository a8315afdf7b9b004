from unittest.mock import MagicMock, patch

import pytest
from pymongo.errors import InvalidURI, ServerSelectionTimeoutError

from mongoconn.config import ConnectionOptions
from mongoconn.storage.mongo_client import (
    connect_to_uri,
    describe_host,
    validate_uri,
)


class TestValidateUri:
    def test_accepts_mongodb_uri(self):
        validate_uri("mongodb://localhost:27017/orders")

    @patch("mongoconn.storage.mongo_client.parse_uri")
    def test_accepts_srv_scheme(self, mock_parse):
        validate_uri("mongodb+srv://cluster0.example.net/app")
        mock_parse.assert_called_once_with("mongodb+srv://cluster0.example.net/app")

    def test_empty_uri(self):
        with pytest.raises(InvalidURI, match="not set"):
            validate_uri("")

    def test_wrong_scheme(self):
        with pytest.raises(InvalidURI, match="scheme"):
            validate_uri("postgres://localhost:5432")

    @pytest.mark.parametrize(
        "uri", ["mongodb://localhost:99999", "mongodb://localhost:abc"]
    )
    def test_bad_port_is_invalid_uri(self, uri):
        with pytest.raises(InvalidURI):
            validate_uri(uri)


class TestConnectToUri:
    @patch("mongoconn.storage.mongo_client.MongoClient")
    def test_passes_options_and_listeners(self, mock_client_cls):
        listener = MagicMock()
        client = connect_to_uri(
            "mongodb://localhost:27017", ConnectionOptions(), [listener]
        )

        assert client is mock_client_cls.return_value
        args, kwargs = mock_client_cls.call_args
        assert args == ("mongodb://localhost:27017",)
        assert kwargs["event_listeners"] == [listener]
        assert kwargs["maxPoolSize"] == 10
        assert kwargs["w"] == "majority"
        client.admin.command.assert_called_once_with("ping")

    @patch("mongoconn.storage.mongo_client.MongoClient")
    def test_failed_ping_closes_client(self, mock_client_cls):
        client = mock_client_cls.return_value
        client.admin.command.side_effect = ServerSelectionTimeoutError("timed out")

        with pytest.raises(ServerSelectionTimeoutError):
            connect_to_uri("mongodb://localhost:1", ConnectionOptions())

        client.close.assert_called_once()

    @patch("mongoconn.storage.mongo_client.MongoClient")
    def test_invalid_uri_never_builds_client(self, mock_client_cls):
        with pytest.raises(InvalidURI):
            connect_to_uri("", ConnectionOptions())
        mock_client_cls.assert_not_called()


class TestDescribeHost:
    def test_single_node(self):
        client = MagicMock()
        client.nodes = frozenset({("db.internal", 27017)})
        assert describe_host(client) == "db.internal:27017"

    def test_replica_set(self):
        client = MagicMock()
        client.nodes = frozenset({("b", 27017), ("a", 27017)})
        assert describe_host(client) == "a:27017,b:27017"

    def test_no_nodes(self):
        client = MagicMock()
        client.nodes = frozenset()
        assert describe_host(client) == "unknown"
