"""
Unit tests for the handle registry
"""

import pytest

from mongoapi_sdk.exceptions import ValidationError
from mongoapi_sdk.models import CollectionInfo, ConnectionInfo
from mongoapi_sdk.registry import INVALID_HANDLE, HandleRegistry


def connection(cid="conn-1"):
    return ConnectionInfo(connection_id=cid, uri="mongodb://localhost:27017")


def collection(handle, name="players"):
    return CollectionInfo(connection_handle=handle, connection_id="conn-1", database="gamedb", collection=name)


def test_handles_unique_and_start_at_one():
    registry = HandleRegistry()

    conn = registry.add_connection(connection())
    coll = registry.add_collection(collection(conn))

    assert conn == 1
    assert coll == 2
    assert INVALID_HANDLE not in (conn, coll)
    assert registry.get_connection(conn).connection_id == "conn-1"
    assert registry.get_collection(coll).collection == "players"
    assert len(registry) == 2


def test_handles_not_reused():
    registry = HandleRegistry()
    first = registry.add_connection(connection())
    registry.remove_connection(first)

    assert registry.add_connection(connection("conn-2")) != first


def test_invalid_handles():
    registry = HandleRegistry()

    assert registry.get_connection(INVALID_HANDLE) is None
    with pytest.raises(ValidationError, match="Invalid connection handle"):
        registry.require_connection(INVALID_HANDLE)
    with pytest.raises(ValidationError, match="Invalid collection handle"):
        registry.require_collection(42)
    with pytest.raises(ValidationError):
        registry.add_collection(collection(99))


def test_remove_connection_drops_collections():
    registry = HandleRegistry()
    conn = registry.add_connection(connection())
    other = registry.add_connection(connection("conn-2"))
    coll = registry.add_collection(collection(conn))
    kept = registry.add_collection(collection(other, "scores"))

    assert registry.remove_connection(conn).connection_id == "conn-1"

    assert registry.get_collection(coll) is None
    assert registry.get_collection(kept) is not None
    assert registry.connection_handles() == [other]
    assert registry.remove_connection(conn) is None


def test_separate_registries_are_independent():
    a = HandleRegistry()
    b = HandleRegistry()
    handle = a.add_connection(connection())

    assert b.get_connection(handle) is None


def test_clear():
    registry = HandleRegistry()
    conn = registry.add_connection(connection())
    registry.add_collection(collection(conn))

    registry.clear()

    assert len(registry) == 0
    assert registry.remove_collection(2) is False
