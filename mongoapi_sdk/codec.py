"""
Wire codec for the MongoDB API service

Renders logical operations into JSON request bodies and turns response
bodies into structured outcomes. Every document goes through ``dumps``;
string content is escaped by ``escape_string`` and nowhere else.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from mongoapi_sdk.exceptions import ProtocolError, ValidationError
from mongoapi_sdk.models import (
    BulkWriteResult,
    Decoded,
    DeleteResult,
    InsertManyResult,
    InsertOneResult,
    Outcome,
    UpdateResult,
)

logger = logging.getLogger("mongoapi_sdk.codec")

# Body keys accepted per operation; the first tuple is required.
OPERATION_KEYS: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "create_connection": (("uri",), ("options",)),
    "insert_one": (("document",), ()),
    "insert_many": (("documents",), ("options",)),
    "find_one": ((), ("filter",)),
    "find": ((), ("filter", "options")),
    "update_one": (("filter", "update"), ("options",)),
    "update_many": (("filter", "update"), ("options",)),
    "delete_one": (("filter",), ()),
    "delete_many": (("filter",), ()),
    "count_documents": ((), ("filter",)),
    "distinct": (("field",), ("filter",)),
    "aggregate": (("pipeline",), ("options",)),
    "bulk_write": (("operations",), ("ordered",)),
    "create_index": (("keys",), ("options",)),
}

_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}


def escape_string(value: str) -> str:
    """
    Render a string as a quoted JSON literal.

    Quotes, backslashes and every control character below 0x20 are escaped,
    so the result can be embedded in a document without changing its
    structure.

    Raises:
        ValidationError: If the string cannot be sent as UTF-8 (lone surrogates)
    """
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError("String is not valid UTF-8", detail=str(e)) from e
    out = ['"']
    for ch in value:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ord(ch) < 0x20:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


class _DocumentEncoder(json.JSONEncoder):
    def default(self, o):
        if hasattr(o, "model_dump"):
            return o.model_dump(exclude_none=True)
        if isinstance(o, (set, frozenset)):
            return list(o)
        return super().default(o)


def dumps(value: Any) -> str:
    """Serialize a document; string keys and values go through ``escape_string``."""
    if isinstance(value, str):
        return escape_string(value)
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, (int, float)):
        try:
            return json.dumps(value, allow_nan=False)
        except ValueError as e:
            raise ValidationError(f"Cannot encode number {value!r}: {e}")
    if isinstance(value, Mapping):
        items = []
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValidationError(f"Document keys must be strings, got {type(key).__name__}")
            items.append(f"{escape_string(key)}:{dumps(item)}")
        return "{" + ",".join(items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(dumps(item) for item in value) + "]"
    try:
        return dumps(_DocumentEncoder().default(value))
    except TypeError as e:
        raise ValidationError(f"Cannot encode value of type {type(value).__name__}") from e


def encode(operation: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Build the request body for an operation

    Args:
        operation: Operation name (e.g., 'find_one')
        params: Body fields; ``None`` values are dropped

    Returns:
        JSON body text

    Raises:
        ValidationError: If the operation is unknown or a required field is missing
    """
    if operation not in OPERATION_KEYS:
        raise ValidationError(f"Unknown operation: {operation}")

    required, optional = OPERATION_KEYS[operation]
    params = dict(params or {})

    body: Dict[str, Any] = {}
    for key in required:
        if params.get(key) is None:
            raise ValidationError(f"'{key}' is required for {operation}")
        body[key] = params[key]
    for key in optional:
        if params.get(key) is not None:
            body[key] = params[key]

    unknown = set(params) - set(required) - set(optional)
    if unknown:
        raise ValidationError(f"Unexpected fields for {operation}: {', '.join(sorted(unknown))}")

    # filters default to match-all
    if "filter" in optional and "filter" not in body:
        body["filter"] = {}

    return dumps(body)


def parse_body(text: str) -> Dict[str, Any]:
    """Parse a response body that must be a JSON object."""
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ProtocolError("Malformed response body", detail=str(e))
    if not isinstance(parsed, dict):
        raise ProtocolError("Response body is not a JSON object", detail=type(parsed).__name__)
    return parsed


def error_message(body: Mapping[str, Any], default: str = "Unknown error") -> str:
    """Extract an error message from a response body."""
    error = body.get("error")
    if isinstance(error, dict):
        error = error.get("message")
    if not error:
        error = body.get("message")
    return str(error) if error else default


def _field(body: Mapping[str, Any], name: str, kind: type = object) -> Any:
    data = body.get("data")
    if isinstance(data, dict) and name in data:
        value = data[name]
    elif name in body:
        value = body[name]
    else:
        raise ProtocolError(f"Response is missing required field '{name}'")
    if kind is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise ProtocolError(f"Field '{name}' must be an integer", detail=repr(value))
    if kind is not object and kind is not int and not isinstance(value, kind):
        raise ProtocolError(f"Field '{name}' has unexpected type", detail=type(value).__name__)
    return value


def _optional_int(body: Mapping[str, Any], name: str) -> int:
    try:
        return _field(body, name, int)
    except ProtocolError:
        return 0


def _payload(operation: Optional[str], body: Mapping[str, Any]) -> Tuple[Outcome, Any]:
    data = body.get("data")

    if operation == "find_one":
        if data is None:
            return Outcome.NO_RESULT, None
        if not isinstance(data, dict):
            raise ProtocolError("findOne data must be a document", detail=type(data).__name__)
        return Outcome.OK, data

    if operation in ("find", "aggregate"):
        if data is None:
            return Outcome.NO_RESULT, []
        if not isinstance(data, list):
            raise ProtocolError(f"{operation} data must be a list", detail=type(data).__name__)
        return (Outcome.OK if data else Outcome.NO_RESULT), data

    if operation == "create_connection":
        return Outcome.OK, str(_field(body, "connectionId"))

    if operation == "insert_one":
        return Outcome.OK, InsertOneResult(inserted_id=str(_field(body, "insertedId")))

    if operation == "insert_many":
        ids = [str(i) for i in _field(body, "insertedIds", list)]
        try:
            count = _field(body, "insertedCount", int)
        except ProtocolError:
            count = len(ids)
        return Outcome.OK, InsertManyResult(inserted_ids=ids, inserted_count=count)

    if operation in ("update_one", "update_many"):
        upserted = None
        if isinstance(data, dict) and data.get("upsertedId") is not None:
            upserted = str(data["upsertedId"])
        return Outcome.OK, UpdateResult(
            matched_count=_field(body, "matchedCount", int),
            modified_count=_field(body, "modifiedCount", int),
            upserted_id=upserted,
            upserted_count=_optional_int(body, "upsertedCount"),
        )

    if operation in ("delete_one", "delete_many"):
        return Outcome.OK, DeleteResult(deleted_count=_field(body, "deletedCount", int))

    if operation == "count_documents":
        return Outcome.OK, _field(body, "count", int)

    if operation == "distinct":
        return Outcome.OK, _field(body, "values", list)

    if operation == "create_index":
        return Outcome.OK, str(_field(body, "name"))

    if operation == "bulk_write":
        if not isinstance(data, dict):
            raise ProtocolError("bulkWrite data must be an object")
        return Outcome.OK, BulkWriteResult(
            inserted_count=_optional_int(body, "insertedCount"),
            matched_count=_optional_int(body, "matchedCount"),
            modified_count=_optional_int(body, "modifiedCount"),
            deleted_count=_optional_int(body, "deletedCount"),
            upserted_count=_optional_int(body, "upsertedCount"),
            inserted_ids={str(k): str(v) for k, v in (data.get("insertedIds") or {}).items()},
            upserted_ids={str(k): str(v) for k, v in (data.get("upsertedIds") or {}).items()},
        )

    # close/ping/drop_index/health and untyped calls return the raw data
    return Outcome.OK, data


def decode(text: str, operation: Optional[str] = None) -> Decoded:
    """
    Decode a response body

    Args:
        text: Raw response body
        operation: Operation name used to select the typed payload

    Returns:
        Decoded outcome: OK with payload, NO_RESULT, or FAILED with error

    Raises:
        ProtocolError: If the body is malformed or lacks required fields
    """
    body = parse_body(text)

    success = body.get("success")
    if not isinstance(success, bool):
        raise ProtocolError("Response is missing boolean 'success' field")

    if not success:
        return Decoded(outcome=Outcome.FAILED, error=error_message(body, "Operation failed"))

    outcome, payload = _payload(operation, body)
    logger.debug("Decoded %s response: %s", operation or "raw", outcome.value)
    return Decoded(outcome=outcome, payload=payload)
