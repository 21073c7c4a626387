"""
MongoAPI SDK Data Models
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from mongoapi_sdk.exceptions import MongoAPIError

HTTP_METHODS = frozenset(["GET", "POST", "PUT", "DELETE"])


class ClientConfig(BaseModel):
    """SDK client configuration"""

    base_url: str = Field("http://127.0.0.1:3300", description="API service base URL")
    api_key: Optional[str] = Field(None, description="API key sent as X-API-Key")
    timeout: float = Field(30.0, description="Request timeout in seconds")
    max_retries: int = Field(3, ge=0, description="Retries after the first attempt")
    retry_backoff_base: float = Field(0.1, ge=0, description="Backoff base delay in seconds")
    retry_backoff_cap: float = Field(10.0, ge=0, description="Maximum backoff delay in seconds")
    user_agent: Optional[str] = Field(None, description="User-Agent override")
    headers: Dict[str, str] = Field(default_factory=dict, description="Fixed extra headers")
    verify_ssl: bool = Field(True, description="Verify SSL certificates")
    default_database: str = Field("gamedb", description="Database used when none is given")
    max_connections: int = Field(5, ge=1, description="Connection pool size hint")
    idle_timeout: int = Field(300, ge=0, description="Keep-alive for idle connections in seconds")
    post_for_writes: bool = Field(False, description="Send update/delete operations as POST instead of PUT/DELETE")
    debug: bool = Field(False, description="Enable debug logging")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.strip().rstrip("/")

    def is_absolute_url(self) -> bool:
        parsed = urlparse(self.base_url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def __repr__(self) -> str:
        return (
            f"ClientConfig(base_url={self.base_url!r}, "
            f"api_key={'***REDACTED***' if self.api_key else None}, "
            f"timeout={self.timeout!r}, max_retries={self.max_retries!r})"
        )


class Request(BaseModel):
    """A fully-formed HTTP request, immutable once built"""

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    body: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    operation: Optional[str] = None

    @field_validator("method")
    @classmethod
    def validate_method(cls, v):
        v = v.upper()
        if v not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {v}")
        return v

    @field_validator("path")
    @classmethod
    def validate_path(cls, v):
        if not v.startswith("/"):
            v = "/" + v
        return v


class RawResponse(BaseModel):
    """Status, body and headers as returned by a transport"""

    status_code: int
    text: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("headers")
    @classmethod
    def lowercase_header_names(cls, v):
        # header names are case-insensitive
        return {str(k).lower(): val for k, val in v.items()}

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Outcome(str, Enum):
    OK = "ok"
    NO_RESULT = "no_result"
    FAILED = "failed"


class Decoded(BaseModel):
    """Structured outcome of a decoded response body"""

    outcome: Outcome
    payload: Any = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome is not Outcome.FAILED


class ErrorInfo(BaseModel):
    """Last error recorded by a client"""

    code: str
    message: str
    detail: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorInfo":
        if isinstance(exc, MongoAPIError):
            return cls(code=exc.code, message=exc.message, detail=exc.detail)
        return cls(code="internal_error", message=str(exc), detail=type(exc).__name__)


class OperationResult(BaseModel):
    """
    Result of one document operation.

    Operations never raise; callers inspect ``success`` or call ``unwrap()``
    to get the value or re-raise the original error.
    """

    success: bool
    outcome: Outcome
    value: Any = None
    error: Optional[ErrorInfo] = None
    _exc: Optional[BaseException] = PrivateAttr(default=None)

    @classmethod
    def ok(cls, value: Any = None, outcome: Outcome = Outcome.OK) -> "OperationResult":
        return cls(success=True, outcome=outcome, value=value)

    @classmethod
    def failed(cls, exc: BaseException) -> "OperationResult":
        result = cls(success=False, outcome=Outcome.FAILED, error=ErrorInfo.from_exception(exc))
        result._exc = exc
        return result

    @property
    def found(self) -> bool:
        return self.success and self.outcome is Outcome.OK

    def unwrap(self) -> Any:
        if self.success:
            return self.value
        if self._exc is not None:
            raise self._exc
        raise MongoAPIError(self.error.message if self.error else "Unknown error")


class StatsSnapshot(BaseModel):
    """Read-only copy of client counters"""

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    retry_count: int = 0
    average_latency_ms: float = 0.0
    total_connections: int = 0
    active_connections: int = 0


class InsertOneResult(BaseModel):
    inserted_id: str


class InsertManyResult(BaseModel):
    inserted_ids: List[str]
    inserted_count: int


class UpdateResult(BaseModel):
    matched_count: int
    modified_count: int
    upserted_id: Optional[str] = None
    upserted_count: int = 0


class DeleteResult(BaseModel):
    deleted_count: int


class BulkWriteResult(BaseModel):
    inserted_count: int = 0
    matched_count: int = 0
    modified_count: int = 0
    deleted_count: int = 0
    upserted_count: int = 0
    inserted_ids: Dict[str, str] = Field(default_factory=dict)
    upserted_ids: Dict[str, str] = Field(default_factory=dict)


class ConnectionInfo(BaseModel):
    """Remote connection known to the registry"""

    connection_id: str
    uri: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_used: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def touch(self) -> None:
        self.last_used = datetime.now(timezone.utc)


class CollectionInfo(BaseModel):
    """Database/collection pair bound to a connection handle"""

    connection_handle: int
    connection_id: str
    database: str
    collection: str
