"""
MongoAPI Python SDK
Resilient client for the MongoDB API service
"""

from mongoapi_sdk.client import MongoAPIClient
from mongoapi_sdk.http_client import HTTPClient
from mongoapi_sdk.config import load_config
from mongoapi_sdk.registry import Handle, HandleRegistry, INVALID_HANDLE
from mongoapi_sdk.models import (
    ClientConfig,
    OperationResult,
    Outcome,
    ErrorInfo,
    StatsSnapshot,
    InsertOneResult,
    InsertManyResult,
    UpdateResult,
    DeleteResult,
    BulkWriteResult,
)
from mongoapi_sdk.exceptions import (
    MongoAPIError,
    TransportError,
    HTTPStatusError,
    ProtocolError,
    ValidationError,
    ConfigurationError,
)
from mongoapi_sdk.__version__ import __version__

__all__ = [
    "MongoAPIClient",
    "HTTPClient",
    "load_config",
    "Handle",
    "HandleRegistry",
    "INVALID_HANDLE",
    "ClientConfig",
    "OperationResult",
    "Outcome",
    "ErrorInfo",
    "StatsSnapshot",
    "InsertOneResult",
    "InsertManyResult",
    "UpdateResult",
    "DeleteResult",
    "BulkWriteResult",
    "MongoAPIError",
    "TransportError",
    "HTTPStatusError",
    "ProtocolError",
    "ValidationError",
    "ConfigurationError",
    "__version__",
]
