"""
Reliable HTTP client for the MongoDB API service
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Optional

from pybreaker import CircuitBreaker, CircuitBreakerError
from pydantic import ValidationError as PydanticValidationError

from mongoapi_sdk.__version__ import __version__
from mongoapi_sdk.codec import error_message, parse_body
from mongoapi_sdk.exceptions import (
    ConfigurationError,
    HTTPStatusError,
    MongoAPIError,
    ProtocolError,
    TransportError,
    ValidationError,
)
from mongoapi_sdk.metrics import metrics_retry
from mongoapi_sdk.models import ClientConfig, ErrorInfo, OperationResult, RawResponse, Request
from mongoapi_sdk.retry import RetryPolicy
from mongoapi_sdk.stats import StatsTracker
from mongoapi_sdk.transport import RequestsTransport, Transport
from mongoapi_sdk.utils import setup_logging

logger = logging.getLogger("mongoapi_sdk.http")

Callback = Callable[[OperationResult], None]


class HTTPClient:
    """
    Synchronous HTTP client with retries, timeouts and request statistics.

    Features:
    - Bounded retries with exponential backoff (transport failures and 5xx only)
    - Pluggable transport
    - Optional circuit breaker
    - Thread-safe statistics and last-error tracking
    - Fire-and-forget mode with an exactly-once completion callback

    Example:
        >>> client = HTTPClient(ClientConfig(base_url="http://127.0.0.1:3300"))
        >>> response = client.execute(client.build_request("GET", "/health"))
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[Transport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 4,
    ):
        """
        Initialize HTTP client

        Args:
            config: Client configuration
            transport: Optional custom transport (defaults to requests)
            circuit_breaker: Optional breaker wrapping each retried request
            sleep: Sleep function used for backoff (injectable for tests)
            max_workers: Worker threads for async requests

        Raises:
            ConfigurationError: If configuration is invalid
        """
        self.config = config

        if config.debug:
            setup_logging(debug=True)

        self._validate_config()

        self.transport = transport or RequestsTransport(verify_ssl=config.verify_ssl)
        self.circuit_breaker = circuit_breaker
        self.stats = StatsTracker()
        self._sleep = sleep
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

        self.headers: Dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": config.user_agent or f"mongoapi-python-sdk/{__version__}",
        }
        self.headers.update(config.headers)
        if config.api_key:
            self._apply_api_key(config.api_key)
        else:
            logger.warning("No API key provided - requests will not be authenticated")

        logger.info("MongoAPI HTTP client initialized (version %s)", __version__)
        logger.debug("Base URL: %s", config.base_url)

    def _validate_config(self) -> None:
        """Validate client configuration"""
        if not self.config.base_url:
            raise ConfigurationError("base_url is required")

        if not self.config.is_absolute_url():
            raise ConfigurationError(f"base_url must be an absolute http(s) URL: {self.config.base_url}")

        if self.config.timeout <= 0:
            raise ConfigurationError("timeout must be positive")

    def _apply_api_key(self, key: str) -> None:
        self.headers["X-API-Key"] = key
        self.headers["Authorization"] = f"Bearer {key}"

    # ===================================================================
    # Requests
    # ===================================================================

    def url(self, path: str) -> str:
        """Build full URL from path"""
        return self.config.base_url + "/" + path.lstrip("/")

    def build_request(
        self,
        method: str,
        path: str,
        body: Optional[str] = None,
        operation: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Request:
        merged = dict(self.headers)
        if headers:
            merged.update(headers)
        try:
            return Request(method=method, path=path, body=body, headers=merged, operation=operation)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid request: {e.errors()[0]['msg']}", detail=str(e)) from e

    def _attempt(self, request: Request) -> RawResponse:
        url = self.url(request.path)
        logger.debug("%s %s", request.method, url)

        response = self.transport.send(request, url, self.config.timeout)

        logger.debug("Response %d %s", response.status_code, response.text[:1000])

        if not response.ok:
            try:
                body = parse_body(response.text) if response.text else {}
            except ProtocolError:
                body = {"raw": response.text}
            raise HTTPStatusError(
                status_code=response.status_code,
                message=error_message(body, f"HTTP request failed with status code: {response.status_code}"),
                body=body,
                request_id=response.header("X-Request-Id"),
                code=body.get("code") if isinstance(body.get("code"), str) else None,
            )

        return response

    def _on_retry(self, request: Request) -> Callable[[int, BaseException, float], None]:
        def hook(attempt: int, exc: BaseException, wait: float) -> None:
            self.stats.record_retry()
            metrics_retry(request.operation or request.path)

        return hook

    def _send_with_retry(self, request: Request) -> RawResponse:
        policy = RetryPolicy(
            max_retries=self.config.max_retries,
            backoff_base=self.config.retry_backoff_base,
            backoff_cap=self.config.retry_backoff_cap,
            sleep=self._sleep,
            on_retry=self._on_retry(request),
        )
        if self.circuit_breaker is None:
            return policy.call(lambda: self._attempt(request))

        try:
            return self.circuit_breaker.call(policy.call, lambda: self._attempt(request))
        except CircuitBreakerError as e:
            raise TransportError(
                f"Circuit breaker '{self.circuit_breaker.name}' is open",
                code="circuit_open",
                detail=str(e),
            ) from e

    def execute(self, request: Request) -> RawResponse:
        """
        Execute a request with the retry policy

        Args:
            request: Request to send

        Returns:
            2xx response

        Raises:
            TransportError: If no response was received after all retries
            HTTPStatusError: If the final response is outside 2xx
        """
        start = time.monotonic()
        try:
            response = self._send_with_retry(request)
        except MongoAPIError as e:
            latency_ms = (time.monotonic() - start) * 1000
            self.stats.record(False, latency_ms, ErrorInfo.from_exception(e))
            logger.error("%s %s failed: %s", request.method, request.path, e)
            raise
        except Exception as e:
            latency_ms = (time.monotonic() - start) * 1000
            self.stats.record(False, latency_ms, ErrorInfo.from_exception(e))
            logger.exception("%s %s failed unexpectedly", request.method, request.path)
            raise

        self.stats.record(True, (time.monotonic() - start) * 1000)
        return response

    # ===================================================================
    # Async
    # ===================================================================

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="mongoapi"
                )
            return self._executor

    def submit(self, fn: Callable[[], OperationResult], callback: Optional[Callback] = None) -> "Future[OperationResult]":
        """
        Run ``fn`` on a worker thread.

        The returned future always resolves to an OperationResult and
        ``callback`` (if given) is invoked exactly once with that result.
        """

        def run() -> OperationResult:
            try:
                result = fn()
            except Exception as e:
                logger.exception("Async operation raised")
                result = OperationResult.failed(e)

            if callback is not None:
                try:
                    callback(result)
                except Exception:
                    logger.exception("Async completion callback raised")
            return result

        return self._get_executor().submit(run)

    def send_async(self, request: Request, callback: Optional[Callback] = None) -> "Future[OperationResult]":
        """
        Fire-and-forget variant of ``execute``.

        Args:
            request: Request to send
            callback: Called once with OperationResult(value=RawResponse) or the failure

        Returns:
            Future resolving to the same OperationResult
        """

        def run() -> OperationResult:
            try:
                return OperationResult.ok(self.execute(request))
            except MongoAPIError as e:
                return OperationResult.failed(e)

        return self.submit(run, callback)

    # ===================================================================
    # Configuration Management
    # ===================================================================

    def set_timeout(self, timeout: float) -> None:
        if timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        self.config.timeout = timeout

    def set_retry_count(self, retries: int) -> None:
        if retries < 0:
            raise ConfigurationError("retry count must be >= 0")
        self.config.max_retries = retries

    def add_header(self, key: str, value: str) -> None:
        self.headers[key] = value

    def set_user_agent(self, user_agent: str) -> None:
        self.config.user_agent = user_agent
        self.headers["User-Agent"] = user_agent

    def set_api_key(self, key: str) -> None:
        """
        Update API key at runtime

        Args:
            key: New API key
        """
        self.config.api_key = key
        self._apply_api_key(key)
        logger.info("API key updated")

    # ===================================================================
    # Statistics
    # ===================================================================

    def get_stats(self):
        return self.stats.snapshot()

    def get_last_error(self) -> Optional[ErrorInfo]:
        return self.stats.last_error

    def clear_last_error(self) -> None:
        self.stats.clear_last_error()

    def get_success_rate(self) -> float:
        return self.stats.success_rate()

    def reset_stats(self) -> None:
        self.stats.reset()

    def close(self) -> None:
        """Wait for pending async requests and release the transport"""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
