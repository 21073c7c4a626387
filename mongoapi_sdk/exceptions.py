"""
MongoAPI SDK Exceptions
"""

from typing import Optional, Dict, Any


class MongoAPIError(Exception):
    """Base exception for MongoAPI SDK"""

    code = "error"

    def __init__(self, message: str, code: Optional[str] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.detail = detail or ""


class TransportError(MongoAPIError):
    """No response reached the client (DNS, connect, timeout, TLS)"""

    code = "transport_error"


class HTTPStatusError(MongoAPIError):
    """Response received with a status outside 2xx"""

    code = "http_error"

    def __init__(
        self,
        status_code: int,
        message: str,
        body: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body or {}
        self.request_id = request_id
        super().__init__(message, code=code, detail=f"HTTP {status_code}")

    @property
    def retryable(self) -> bool:
        return 500 <= self.status_code < 600

    def __str__(self) -> str:
        parts = [f"[{self.status_code}] {self.message}"]
        if self.request_id:
            parts.append(f"(request_id: {self.request_id})")
        return " ".join(parts)


class ProtocolError(MongoAPIError):
    """Response body does not match the expected shape"""

    code = "protocol_error"


class ValidationError(MongoAPIError):
    """Invalid caller input, detected before any network call"""

    code = "validation_error"


class ConfigurationError(MongoAPIError):
    """SDK configuration error"""

    code = "configuration_error"
