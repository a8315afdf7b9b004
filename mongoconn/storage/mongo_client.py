"""MongoClient construction for the connection manager.

pymongo connects lazily: constructing a MongoClient only starts the
background monitors. To know whether a target is actually usable we
issue a ``ping`` right away, which blocks for at most
serverSelectionTimeoutMS before raising.

Malformed connection strings are classified by type. The scheme is
checked up front (the same way an invalid scheme would be rejected at
config time) and anything else pymongo's URI parser dislikes surfaces
as ``InvalidURI``.
"""

from __future__ import annotations

import logging
from typing import Iterable
from urllib.parse import urlparse

from pymongo import MongoClient
from pymongo.errors import InvalidURI, PyMongoError
from pymongo.monitoring import ServerHeartbeatListener, ServerListener
from pymongo.uri_parser import parse_uri

from mongoconn.config import ConnectionOptions

logger = logging.getLogger(__name__)

VALID_SCHEMES = ("mongodb", "mongodb+srv")


def validate_uri(uri: str) -> None:
    """Reject connection strings that can never work.

    The URI parser raises plain ValueError for some malformed values
    (out-of-range or non-numeric ports); those are reported as
    InvalidURI so every malformed string is classified the same way.

    Raises:
        InvalidURI: If the URI is empty, has a non-MongoDB scheme or
            cannot be parsed.
    """
    if not uri:
        raise InvalidURI("MONGODB_URI is not set")

    scheme = urlparse(uri).scheme
    if scheme not in VALID_SCHEMES:
        raise InvalidURI(
            f"Invalid MongoDB URI scheme: '{scheme}'. "
            "Expected 'mongodb' or 'mongodb+srv'."
        )

    try:
        parse_uri(uri)
    except ValueError as exc:
        raise InvalidURI(f"Invalid MongoDB URI: {exc}") from exc


def connect_to_uri(
    uri: str,
    options: ConnectionOptions,
    event_listeners: Iterable[ServerHeartbeatListener | ServerListener] = (),
) -> MongoClient:
    """Open a client for ``uri`` and verify the server answers.

    Args:
        uri: MongoDB connection string.
        options: Pool, timeout and write settings.
        event_listeners: pymongo monitoring listeners for this client.

    Returns:
        A connected MongoClient.

    Raises:
        InvalidURI: If the connection string is malformed.
        PyMongoError: If the server cannot be reached.
    """
    validate_uri(uri)
    client: MongoClient = MongoClient(
        uri,
        event_listeners=list(event_listeners),
        **options.to_client_kwargs(),
    )
    try:
        client.admin.command("ping")
    except PyMongoError:
        client.close()
        raise
    return client


def describe_host(client: MongoClient) -> str:
    """Return ``host:port`` of each server the client discovered."""
    nodes = sorted(client.nodes)
    if not nodes:
        return "unknown"
    return ",".join(f"{host}:{port}" for host, port in nodes)
