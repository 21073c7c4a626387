"""
Prometheus Metrics for MongoAPI SDK

Provides counters and histograms for operation monitoring.
Host application should expose the prometheus_client registry.
"""

import logging
from prometheus_client import Counter, Histogram

logger = logging.getLogger("mongoapi_sdk.metrics")

# Operations counter with operation name and outcome code labels
OPERATION_COUNT = Counter(
    "mongoapi_sdk_operations_total",
    "Total number of document operations",
    ["operation", "code"],
)

# Operation latency histogram with operation label
OPERATION_LATENCY = Histogram(
    "mongoapi_sdk_operation_latency_seconds",
    "Document operation latency in seconds",
    ["operation"],
)

RETRY_COUNT = Counter(
    "mongoapi_sdk_retries_total",
    "Total number of retried HTTP attempts",
    ["operation"],
)


def metrics_request(operation: str, code: str, latency: float) -> None:
    """
    Record metrics for one operation.

    Args:
        operation: Operation name (e.g., 'insert_one')
        code: Outcome code ('ok', 'no_result' or an error code)
        latency: Operation duration in seconds

    Example:
        >>> import time
        >>> start = time.time()
        >>> # ... run operation ...
        >>> metrics_request("find_one", "ok", time.time() - start)
    """
    try:
        OPERATION_COUNT.labels(operation=operation, code=code).inc()
        OPERATION_LATENCY.labels(operation=operation).observe(latency)
    except Exception as e:
        # Metrics failures should not crash the SDK
        logger.debug("Failed to record metrics: %s", e)


def metrics_retry(operation: str) -> None:
    try:
        RETRY_COUNT.labels(operation=operation).inc()
    except Exception as e:
        logger.debug("Failed to record retry metric: %s", e)
