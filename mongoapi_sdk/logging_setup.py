"""
Structured JSON Logging for MongoAPI SDK

Provides a JSON formatter for structured logging output, for hosts that
ship logs to an aggregator instead of a console.
"""

import logging
import sys
import json
from typing import Any, Dict


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": int(record.created * 1000),  # milliseconds
            "name": record.name,
            "level": record.levelname,
            "msg": record.getMessage(),
        }

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        for attr in ("operation", "request_id", "latency_ms", "attempt"):
            if hasattr(record, attr):
                payload[attr] = getattr(record, attr)

        return json.dumps(payload, default=str)


def setup_structured_logger(level: int = logging.INFO) -> None:
    """
    Configure structured JSON logging for the SDK.

    Args:
        level: Logging level (default: logging.INFO)

    Example:
        >>> from mongoapi_sdk.logging_setup import setup_structured_logger
        >>> setup_structured_logger(logging.DEBUG)
        >>> logging.getLogger("mongoapi_sdk").info("ready", extra={"operation": "ping"})
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    sdk_logger = logging.getLogger("mongoapi_sdk")
    sdk_logger.setLevel(level)
    sdk_logger.handlers = [handler]
    sdk_logger.propagate = False
