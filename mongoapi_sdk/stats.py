"""
Thread-safe operation counters and last-error state
"""

import threading
from typing import Optional

from mongoapi_sdk.models import ErrorInfo, StatsSnapshot


class StatsTracker:
    """
    Counters shared by every call through a client.

    Latency is a running mean updated incrementally, so memory stays
    constant regardless of how many operations ran.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._reset_locked()
        self._last_error: Optional[ErrorInfo] = None

    def _reset_locked(self) -> None:
        self._total = 0
        self._successful = 0
        self._failed = 0
        self._retries = 0
        self._mean_latency_ms = 0.0
        self._total_connections = 0
        self._active_connections = 0

    def record(self, success: bool, latency_ms: float, error: Optional[ErrorInfo] = None) -> None:
        """Record the final outcome of one operation."""
        with self._lock:
            self._total += 1
            if success:
                self._successful += 1
                self._last_error = None
            else:
                self._failed += 1
                if error is not None:
                    self._last_error = error
            self._mean_latency_ms += (latency_ms - self._mean_latency_ms) / self._total

    def record_retry(self) -> None:
        with self._lock:
            self._retries += 1

    def set_last_error(self, error: ErrorInfo) -> None:
        with self._lock:
            self._last_error = error

    def clear_last_error(self) -> None:
        with self._lock:
            self._last_error = None

    def connection_opened(self) -> None:
        with self._lock:
            self._total_connections += 1
            self._active_connections += 1

    def connection_closed(self) -> None:
        with self._lock:
            self._active_connections = max(0, self._active_connections - 1)

    @property
    def last_error(self) -> Optional[ErrorInfo]:
        with self._lock:
            return self._last_error

    def success_rate(self) -> float:
        """Percentage of successful operations; 100.0 before any operation ran."""
        with self._lock:
            if self._total == 0:
                return 100.0
            return self._successful * 100.0 / self._total

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                total_operations=self._total,
                successful_operations=self._successful,
                failed_operations=self._failed,
                retry_count=self._retries,
                average_latency_ms=self._mean_latency_ms,
                total_connections=self._total_connections,
                active_connections=self._active_connections,
            )

    def reset(self) -> None:
        """Zero every counter except the active connection gauge; last error is kept."""
        with self._lock:
            active = self._active_connections
            self._reset_locked()
            self._active_connections = active
