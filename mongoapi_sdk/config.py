"""
Configuration loading for MongoAPI SDK.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError as PydanticValidationError

from mongoapi_sdk.exceptions import ConfigurationError
from mongoapi_sdk.models import ClientConfig

logger = logging.getLogger("mongoapi_sdk.config")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Config section '{name}' must be an object")
    return section


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"Invalid boolean for {key}: {value!r}")


def read_config_file(path: str) -> Dict[str, Any]:
    """
    Map a JSON config file onto ClientConfig field names.

    Recognised sections: ``api`` (url, api_key, timeout, max_retries, post_for_writes,
    debug_mode), ``database`` (default_db), ``connections`` (pool_size,
    keep_alive) and ``development`` (debug_mode).
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Failed to load config file: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config file {path} is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    values: Dict[str, Any] = {}

    api = _section(data, "api")
    if "url" in api:
        values["base_url"] = api["url"]
    if "api_key" in api:
        values["api_key"] = api["api_key"] or None
    if "timeout" in api:
        values["timeout"] = api["timeout"]
    if "max_retries" in api:
        values["max_retries"] = api["max_retries"]
    if "debug_mode" in api:
        values["debug"] = _as_bool(api["debug_mode"], "api.debug_mode")
    if "user_agent" in api:
        values["user_agent"] = api["user_agent"]
    if "headers" in api:
        values["headers"] = api["headers"]
    if "post_for_writes" in api:
        values["post_for_writes"] = _as_bool(api["post_for_writes"], "api.post_for_writes")

    database = _section(data, "database")
    if "default_db" in database:
        values["default_database"] = database["default_db"]

    connections = _section(data, "connections")
    if "pool_size" in connections:
        values["max_connections"] = connections["pool_size"]
    if "keep_alive" in connections:
        values["idle_timeout"] = connections["keep_alive"]

    development = _section(data, "development")
    if "debug_mode" in development:
        values["debug"] = _as_bool(development["debug_mode"], "development.debug_mode")

    return values


def read_env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Environment variables that override file values:
    - MONGOAPI_URL: API service base URL
    - MONGOAPI_KEY: API key
    - MONGOAPI_TIMEOUT: Request timeout in seconds
    - MONGOAPI_MAX_RETRIES: Retry count
    - MONGOAPI_DEBUG: Enable debug logging
    """
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    if env.get("MONGOAPI_URL"):
        values["base_url"] = env["MONGOAPI_URL"]
    if env.get("MONGOAPI_KEY"):
        values["api_key"] = env["MONGOAPI_KEY"]
    try:
        if env.get("MONGOAPI_TIMEOUT"):
            values["timeout"] = float(env["MONGOAPI_TIMEOUT"])
        if env.get("MONGOAPI_MAX_RETRIES"):
            values["max_retries"] = int(env["MONGOAPI_MAX_RETRIES"])
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric environment value: {e}")
    if "MONGOAPI_DEBUG" in env:
        values["debug"] = _as_bool(env["MONGOAPI_DEBUG"], "MONGOAPI_DEBUG")

    return values


def load_config(
    path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> ClientConfig:
    """
    Load client configuration from a JSON file and the environment.

    Args:
        path: Config file path (default: $MONGOAPI_CONFIG, or no file)
        environ: Environment mapping (default: os.environ after loading .env)
        dotenv_path: .env file to load into os.environ (default: search upwards)

    Returns:
        Validated ClientConfig

    Raises:
        ConfigurationError: If the file is missing/invalid or a value is out of range
    """
    if environ is None:
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))
        env = os.environ
    else:
        env = environ
    path = path or env.get("MONGOAPI_CONFIG")

    values: Dict[str, Any] = {}
    if path:
        values.update(read_config_file(path))
        logger.info("Loaded configuration from %s", path)
    values.update(read_env_overrides(env))

    try:
        config = ClientConfig(**values)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")

    if not config.api_key:
        logger.warning("No API key configured; set api.api_key or MONGOAPI_KEY")

    return config
