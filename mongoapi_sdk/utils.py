"""
MongoAPI SDK Utilities
"""

import logging
from typing import Any
from urllib.parse import quote

logger = logging.getLogger("mongoapi_sdk")

SENSITIVE_KEYS = {"api_key", "token", "secret", "password", "authorization", "uri"}


def setup_logging(debug: bool = False) -> None:
    """
    Setup console logging for SDK

    Args:
        debug: Enable debug level logging
    """
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.setLevel(level)


def sanitize_for_logging(data: Any) -> Any:
    """
    Sanitize sensitive data for logging

    Connection URIs carry credentials, so they are redacted along with keys
    and secrets.

    Args:
        data: Dictionary (or list) to sanitize

    Returns:
        Sanitized copy
    """
    if isinstance(data, list):
        return [sanitize_for_logging(item) for item in data]
    if not isinstance(data, dict):
        return data

    sanitized = {}
    for key, value in data.items():
        if any(sensitive in str(key).lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "***REDACTED***"
        else:
            sanitized[key] = sanitize_for_logging(value)

    return sanitized


def path_segment(value: str) -> str:
    """URL-quote one path segment (no '/' allowed through)."""
    return quote(str(value), safe="")
