"""
Circuit Breaker for MongoAPI SDK

Stops sending requests to the API service while it keeps failing.
Uses pybreaker library with logging integration.
"""

import logging
from pybreaker import CircuitBreaker, CircuitBreakerListener

from mongoapi_sdk.exceptions import HTTPStatusError, ProtocolError, ValidationError

logger = logging.getLogger("mongoapi_sdk.cb")


class LoggingListener(CircuitBreakerListener):
    """Listener that logs circuit breaker state changes"""

    def state_change(self, cb, old_state, new_state):
        logger.warning(
            "CircuitBreaker %s state change %s -> %s",
            cb.name,
            getattr(old_state, "name", old_state),
            getattr(new_state, "name", new_state),
        )

    def failure(self, cb, exc):
        logger.warning("CircuitBreaker %s failure: %s", cb.name, exc)


def _is_client_error(exc: BaseException) -> bool:
    return isinstance(exc, HTTPStatusError) and not exc.retryable


def create_circuit_breaker(
    name: str, fail_max: int = 5, reset_timeout: int = 60
) -> CircuitBreaker:
    """
    Create a pybreaker.CircuitBreaker with logging listener.

    Caller mistakes (validation errors, 4xx responses, malformed bodies)
    do not count as failures of the API service.

    Args:
        name: Circuit breaker name for logging
        fail_max: Number of consecutive failures to open circuit (default: 5)
        reset_timeout: Seconds before trying half-open state (default: 60)

    Returns:
        CircuitBreaker: Configured circuit breaker instance

    Example:
        >>> cb = create_circuit_breaker("mongoapi", fail_max=3)
        >>> client = HTTPClient(config, circuit_breaker=cb)
    """
    return CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        name=name,
        listeners=[LoggingListener()],
        exclude=[ValidationError, ProtocolError, _is_client_error],
    )
