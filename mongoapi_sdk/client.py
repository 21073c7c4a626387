"""
MongoAPI SDK Main Client
"""

import logging
import time
from concurrent.futures import Future
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pybreaker import CircuitBreaker

from mongoapi_sdk import codec
from mongoapi_sdk.exceptions import MongoAPIError, ValidationError
from mongoapi_sdk.http_client import Callback, HTTPClient
from mongoapi_sdk.metrics import metrics_request
from mongoapi_sdk.models import (
    ClientConfig,
    CollectionInfo,
    ConnectionInfo,
    ErrorInfo,
    OperationResult,
    Outcome,
    StatsSnapshot,
)
from mongoapi_sdk.registry import Handle, HandleRegistry
from mongoapi_sdk.stats import StatsTracker
from mongoapi_sdk.transport import Transport
from mongoapi_sdk.utils import path_segment, sanitize_for_logging

logger = logging.getLogger("mongoapi_sdk.client")

API_VERSION = "v1"

# Operations that may be dispatched by name through submit() and execute_batch()
OPERATIONS = frozenset(
    [
        "create_connection",
        "close_connection",
        "ping_connection",
        "connection_status",
        "get_collection",
        "insert_one",
        "insert_many",
        "find_one",
        "find",
        "update_one",
        "update_many",
        "delete_one",
        "delete_many",
        "count_documents",
        "distinct",
        "aggregate",
        "bulk_write",
        "create_index",
        "drop_index",
        "health",
    ]
)


def _require_mapping(value: Any, name: str) -> Mapping[str, Any]:
    if value is None:
        raise ValidationError(f"{name} is required")
    if not isinstance(value, Mapping):
        raise ValidationError(f"{name} must be a mapping, got {type(value).__name__}")
    return value


def _optional_mapping(value: Any, name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    return _require_mapping(value, name)


def _require_name(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
    return value


class MongoAPIClient:
    """
    Document database client backed by the MongoDB API service

    Every operation returns an OperationResult and never raises; the last
    failure is also available from ``get_last_error()``.

    Features:
    - Connection and collection handles kept in an owned registry
    - Automatic retries with exponential backoff
    - Optional circuit breaker
    - Operation statistics and Prometheus metrics
    - Fire-and-forget async dispatch with exactly-once callbacks

    Updates are sent as PUT and deletes as DELETE. Services that route every
    document verb as POST need ``ClientConfig(post_for_writes=True)``.

    Example:
        >>> from mongoapi_sdk import MongoAPIClient, ClientConfig
        >>> client = MongoAPIClient(ClientConfig(base_url="http://127.0.0.1:3300", api_key=key))
        >>> conn = client.create_connection("mongodb://localhost:27017").unwrap()
        >>> players = client.get_collection(conn, "gamedb", "players").unwrap()
        >>> result = client.find_one(players, {"steamid": "STEAM_0:1:123"})
        >>> if result.found:
        ...     print(result.value["name"])
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http_client: Optional[HTTPClient] = None,
        registry: Optional[HandleRegistry] = None,
        transport: Optional[Transport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize MongoAPI client

        Args:
            config: Client configuration (ignored when http_client is given)
            http_client: Optional preconfigured HTTP client
            registry: Optional handle registry (a fresh one by default)
            transport: Optional custom transport
            circuit_breaker: Optional circuit breaker
            sleep: Sleep function used for backoff

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if http_client is None:
            http_client = HTTPClient(
                config or ClientConfig(),
                transport=transport,
                circuit_breaker=circuit_breaker,
                sleep=sleep,
            )
        self.http = http_client
        self.config = http_client.config
        self.registry = registry if registry is not None else HandleRegistry()
        self.stats = StatsTracker()

    # ===================================================================
    # Plumbing
    # ===================================================================

    def _run(self, operation: str, fn: Callable[[], Tuple[Outcome, Any]]) -> OperationResult:
        start = time.monotonic()
        try:
            outcome, value = fn()
            result = OperationResult.ok(value, outcome)
        except MongoAPIError as e:
            result = OperationResult.failed(e)
            logger.error(
                "%s failed: [%s] %s",
                operation,
                e.code,
                e.message,
                extra={"operation": operation, "request_id": getattr(e, "request_id", None)},
            )
        except Exception as e:
            result = OperationResult.failed(e)
            logger.exception("%s failed unexpectedly", operation, extra={"operation": operation})

        latency = time.monotonic() - start
        logger.debug(
            "%s finished (%s)",
            operation,
            result.outcome.value,
            extra={"operation": operation, "latency_ms": round(latency * 1000, 3)},
        )
        self.stats.record(result.success, latency * 1000, result.error)
        metrics_request(
            operation,
            result.outcome.value if result.success else result.error.code,
            latency,
        )
        return result

    def _call(
        self,
        operation: str,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[Outcome, Any]:
        body = codec.encode(operation, params) if operation in codec.OPERATION_KEYS else None

        if logger.isEnabledFor(logging.DEBUG) and params:
            logger.debug("%s %s: %s", operation, path, sanitize_for_logging(dict(params)))

        request = self.http.build_request(method, path, body=body, operation=operation)
        response = self.http.execute(request)
        decoded = codec.decode(response.text, operation)

        if not decoded.success:
            raise MongoAPIError(decoded.error or "Operation failed", code="operation_failed")
        return decoded.outcome, decoded.payload

    def _write_method(self, method: str) -> str:
        # the Node.js service routes update/delete verbs as POST
        return "POST" if self.config.post_for_writes else method

    @staticmethod
    def _connection_path(connection_id: str) -> str:
        return f"/api/{API_VERSION}/connections/{path_segment(connection_id)}"

    def _collection_path(self, info: CollectionInfo, suffix: str) -> str:
        return (
            f"{self._connection_path(info.connection_id)}"
            f"/databases/{path_segment(info.database)}"
            f"/collections/{path_segment(info.collection)}/{suffix}"
        )

    def _collection(self, handle: Handle) -> CollectionInfo:
        info = self.registry.require_collection(handle)
        conn = self.registry.get_connection(info.connection_handle)
        if conn is None or not conn.is_active:
            raise ValidationError("Connection for collection handle is closed", detail=str(handle))
        conn.touch()
        return info

    # ===================================================================
    # Connections
    # ===================================================================

    def create_connection(self, uri: str, options: Optional[Dict[str, Any]] = None) -> OperationResult:
        """
        Open a connection on the API service

        Args:
            uri: MongoDB connection string
            options: Optional driver options (maxPoolSize, timeouts, ...)

        Returns:
            OperationResult with the connection Handle as value
        """

        def op():
            _require_name(uri, "uri")
            _, connection_id = self._call(
                "create_connection",
                "POST",
                f"/api/{API_VERSION}/connections",
                {"uri": uri, "options": options},
            )
            handle = self.registry.add_connection(ConnectionInfo(connection_id=connection_id, uri=uri))
            self.stats.connection_opened()
            logger.info("Connection %s opened (handle %d)", connection_id, handle)
            return Outcome.OK, handle

        return self._run("create_connection", op)

    def close_connection(self, handle: Handle) -> OperationResult:
        """Close a connection and invalidate its collection handles"""

        def op():
            info = self.registry.require_connection(handle)
            self._call("close_connection", "DELETE", self._connection_path(info.connection_id))
            info.is_active = False
            self.registry.remove_connection(handle)
            self.stats.connection_closed()
            logger.info("Connection %s closed", info.connection_id)
            return Outcome.OK, True

        return self._run("close_connection", op)

    def is_connection_active(self, handle: Handle) -> bool:
        info = self.registry.get_connection(handle)
        return info is not None and info.is_active

    def ping_connection(self, handle: Handle) -> OperationResult:
        """Check that the remote connection is healthy"""

        def op():
            info = self.registry.require_connection(handle)
            self._call("ping_connection", "POST", self._connection_path(info.connection_id) + "/ping")
            info.touch()
            return Outcome.OK, True

        return self._run("ping_connection", op)

    def connection_status(self, handle: Handle) -> OperationResult:
        """Fetch the service-side status of a connection"""

        def op():
            info = self.registry.require_connection(handle)
            return self._call("connection_status", "GET", self._connection_path(info.connection_id))

        return self._run("connection_status", op)

    def get_collection(self, handle: Handle, database: Optional[str], collection: str) -> OperationResult:
        """
        Bind a database/collection pair to a connection

        No request is sent; the returned handle is used by document operations.

        Args:
            handle: Connection handle
            database: Database name (config.default_database when None)
            collection: Collection name

        Returns:
            OperationResult with the collection Handle as value
        """

        def op():
            info = self.registry.require_connection(handle)
            db = _require_name(database or self.config.default_database, "database")
            coll = _require_name(collection, "collection")
            coll_handle = self.registry.add_collection(
                CollectionInfo(
                    connection_handle=handle,
                    connection_id=info.connection_id,
                    database=db,
                    collection=coll,
                )
            )
            return Outcome.OK, coll_handle

        return self._run("get_collection", op)

    # ===================================================================
    # Documents
    # ===================================================================

    def insert_one(self, collection: Handle, document: Mapping[str, Any]) -> OperationResult:
        """Insert a document; value is InsertOneResult"""

        def op():
            info = self._collection(collection)
            doc = _require_mapping(document, "document")
            return self._call("insert_one", "POST", self._collection_path(info, "documents"), {"document": doc})

        return self._run("insert_one", op)

    def insert_many(self, collection: Handle, documents: Sequence[Mapping[str, Any]]) -> OperationResult:
        """Insert several documents; value is InsertManyResult"""

        def op():
            info = self._collection(collection)
            if not isinstance(documents, (list, tuple)) or not documents:
                raise ValidationError("documents must be a non-empty list")
            docs = [_require_mapping(d, f"documents[{i}]") for i, d in enumerate(documents)]
            return self._call(
                "insert_many", "POST", self._collection_path(info, "documents/insertMany"), {"documents": docs}
            )

        return self._run("insert_many", op)

    def find_one(self, collection: Handle, filter: Optional[Mapping[str, Any]] = None) -> OperationResult:
        """
        Find a single document

        Returns:
            OperationResult whose value is the document, or outcome NO_RESULT
            (value None) when nothing matched
        """

        def op():
            info = self._collection(collection)
            flt = _optional_mapping(filter, "filter")
            return self._call("find_one", "POST", self._collection_path(info, "documents/findOne"), {"filter": flt})

        return self._run("find_one", op)

    def find(
        self,
        collection: Handle,
        filter: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
        sort: Optional[Mapping[str, Any]] = None,
        projection: Optional[Mapping[str, Any]] = None,
    ) -> OperationResult:
        """Find documents; value is a list (outcome NO_RESULT when empty)"""

        def op():
            info = self._collection(collection)
            flt = _optional_mapping(filter, "filter")
            if limit is not None and (not isinstance(limit, int) or not 1 <= limit <= 1000):
                raise ValidationError("limit must be between 1 and 1000")
            if skip is not None and (not isinstance(skip, int) or skip < 0):
                raise ValidationError("skip must be >= 0")
            options = {
                k: v
                for k, v in (("limit", limit), ("skip", skip), ("sort", sort), ("projection", projection))
                if v is not None
            }
            return self._call(
                "find",
                "POST",
                self._collection_path(info, "documents/find"),
                {"filter": flt, "options": options or None},
            )

        return self._run("find", op)

    def _update(self, operation: str, suffix: str, collection, filter, update, upsert) -> OperationResult:
        def op():
            info = self._collection(collection)
            flt = _require_mapping(filter, "filter")
            upd = _require_mapping(update, "update")
            if not upd:
                raise ValidationError("update must not be empty")
            return self._call(
                operation,
                self._write_method("PUT"),
                self._collection_path(info, suffix),
                {"filter": flt, "update": upd, "options": {"upsert": True} if upsert else None},
            )

        return self._run(operation, op)

    def update_one(
        self, collection: Handle, filter: Mapping[str, Any], update: Mapping[str, Any], upsert: bool = False
    ) -> OperationResult:
        """Update the first matching document; value is UpdateResult"""
        return self._update("update_one", "documents/updateOne", collection, filter, update, upsert)

    def update_many(
        self, collection: Handle, filter: Mapping[str, Any], update: Mapping[str, Any], upsert: bool = False
    ) -> OperationResult:
        """Update every matching document; value is UpdateResult"""
        return self._update("update_many", "documents/updateMany", collection, filter, update, upsert)

    def _delete(self, operation: str, suffix: str, collection, filter) -> OperationResult:
        def op():
            info = self._collection(collection)
            flt = _require_mapping(filter, "filter")
            return self._call(
                operation, self._write_method("DELETE"), self._collection_path(info, suffix), {"filter": flt}
            )

        return self._run(operation, op)

    def delete_one(self, collection: Handle, filter: Mapping[str, Any]) -> OperationResult:
        """Delete the first matching document; value is DeleteResult"""
        return self._delete("delete_one", "documents/deleteOne", collection, filter)

    def delete_many(self, collection: Handle, filter: Mapping[str, Any]) -> OperationResult:
        """Delete every matching document; value is DeleteResult"""
        return self._delete("delete_many", "documents/deleteMany", collection, filter)

    def count_documents(self, collection: Handle, filter: Optional[Mapping[str, Any]] = None) -> OperationResult:
        """Count matching documents; value is an int"""

        def op():
            info = self._collection(collection)
            flt = _optional_mapping(filter, "filter")
            return self._call(
                "count_documents", "POST", self._collection_path(info, "documents/count"), {"filter": flt}
            )

        return self._run("count_documents", op)

    def distinct(
        self, collection: Handle, field: str, filter: Optional[Mapping[str, Any]] = None
    ) -> OperationResult:
        """Distinct values of a field; value is a list"""

        def op():
            info = self._collection(collection)
            name = _require_name(field, "field")
            flt = _optional_mapping(filter, "filter")
            return self._call(
                "distinct",
                "POST",
                self._collection_path(info, "documents/distinct"),
                {"field": name, "filter": flt},
            )

        return self._run("distinct", op)

    def aggregate(
        self,
        collection: Handle,
        pipeline: Sequence[Mapping[str, Any]],
        options: Optional[Mapping[str, Any]] = None,
    ) -> OperationResult:
        """Run an aggregation pipeline; value is a list of documents"""

        def op():
            info = self._collection(collection)
            if not isinstance(pipeline, (list, tuple)):
                raise ValidationError("pipeline must be a list of stages")
            stages = [_require_mapping(s, f"pipeline[{i}]") for i, s in enumerate(pipeline)]
            return self._call(
                "aggregate",
                "POST",
                self._collection_path(info, "aggregate"),
                {"pipeline": stages, "options": _optional_mapping(options, "options") or None},
            )

        return self._run("aggregate", op)

    def bulk_write(
        self, collection: Handle, operations: Sequence[Mapping[str, Any]], ordered: bool = True
    ) -> OperationResult:
        """Send several write models in one request; value is BulkWriteResult"""

        def op():
            info = self._collection(collection)
            if not isinstance(operations, (list, tuple)) or not operations:
                raise ValidationError("operations must be a non-empty list")
            ops = [_require_mapping(o, f"operations[{i}]") for i, o in enumerate(operations)]
            return self._call(
                "bulk_write",
                "POST",
                self._collection_path(info, "documents/bulkWrite"),
                {"operations": ops, "ordered": bool(ordered)},
            )

        return self._run("bulk_write", op)

    # ===================================================================
    # Indexes
    # ===================================================================

    def create_index(
        self, collection: Handle, keys: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None
    ) -> OperationResult:
        """Create an index; value is the index name"""

        def op():
            info = self._collection(collection)
            index_keys = _require_mapping(keys, "keys")
            if not index_keys:
                raise ValidationError("keys must not be empty")
            return self._call(
                "create_index",
                "POST",
                self._collection_path(info, "indexes"),
                {"keys": index_keys, "options": _optional_mapping(options, "options") or None},
            )

        return self._run("create_index", op)

    def drop_index(self, collection: Handle, index_name: str) -> OperationResult:
        """Drop an index by name"""

        def op():
            info = self._collection(collection)
            name = _require_name(index_name, "index_name")
            self._call("drop_index", "DELETE", self._collection_path(info, f"indexes/{path_segment(name)}"))
            return Outcome.OK, True

        return self._run("drop_index", op)

    # ===================================================================
    # Service
    # ===================================================================

    def health(self) -> OperationResult:
        """Basic health check of the API service"""
        return self._run("health", lambda: self._call("health", "GET", "/health"))

    # ===================================================================
    # Async & batch
    # ===================================================================

    def _dispatch(self, operation: str, args: Sequence[Any], kwargs: Mapping[str, Any]) -> OperationResult:
        if operation not in OPERATIONS:
            return self._run(operation, lambda: self._unknown(operation))
        try:
            return getattr(self, operation)(*args, **kwargs)
        except TypeError as e:
            # bad arguments for the operation signature
            return self._run(operation, lambda: self._bad_arguments(operation, e))

    @staticmethod
    def _unknown(operation: str):
        raise ValidationError(f"Unknown operation: {operation}")

    @staticmethod
    def _bad_arguments(operation: str, exc: TypeError):
        raise ValidationError(f"Invalid arguments for {operation}", detail=str(exc))

    def submit(
        self, operation: str, *args: Any, callback: Optional[Callback] = None, **kwargs: Any
    ) -> "Future[OperationResult]":
        """
        Run an operation on a worker thread

        Args:
            operation: Operation name (e.g., 'insert_one')
            callback: Invoked exactly once with the OperationResult

        Returns:
            Future resolving to the OperationResult

        Example:
            >>> client.submit("find_one", players, {"name": "alice"}, callback=on_player)
        """
        return self.http.submit(lambda: self._dispatch(operation, args, kwargs), callback)

    def insert_one_async(
        self, collection: Handle, document: Mapping[str, Any], callback: Optional[Callback] = None
    ) -> "Future[OperationResult]":
        return self.submit("insert_one", collection, document, callback=callback)

    def find_one_async(
        self, collection: Handle, filter: Optional[Mapping[str, Any]] = None, callback: Optional[Callback] = None
    ) -> "Future[OperationResult]":
        return self.submit("find_one", collection, filter, callback=callback)

    def execute_batch(self, operations: Iterable[Tuple[str, Mapping[str, Any]]]) -> List[OperationResult]:
        """
        Run ``(operation, kwargs)`` steps in order

        Each step is applied on its own; a failed step does not stop the
        batch or undo earlier steps.

        Returns:
            One OperationResult per step
        """
        return [self._dispatch(name, (), dict(kwargs or {})) for name, kwargs in operations]

    # ===================================================================
    # Statistics & lifecycle
    # ===================================================================

    def get_stats(self) -> StatsSnapshot:
        snapshot = self.stats.snapshot()
        snapshot.retry_count = self.http.stats.snapshot().retry_count
        return snapshot

    def get_last_error(self) -> Optional[ErrorInfo]:
        return self.stats.last_error

    def clear_last_error(self) -> None:
        self.stats.clear_last_error()

    def get_success_rate(self) -> float:
        return self.stats.success_rate()

    def reset_stats(self) -> None:
        self.stats.reset()
        self.http.reset_stats()

    def close(self) -> None:
        """Close every open connection and release the HTTP client"""
        for handle in self.registry.connection_handles():
            result = self.close_connection(handle)
            if not result.success:
                logger.warning("Failed to close connection handle %d: %s", handle, result.error.message)
                self.registry.remove_connection(handle)
        self.registry.clear()
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
