"""
Unit tests for configuration loading
"""

import json

import pytest

from mongoapi_sdk.config import load_config, read_config_file, read_env_overrides
from mongoapi_sdk.exceptions import ConfigurationError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "mongoapi.json"
    path.write_text(
        json.dumps(
            {
                "api": {
                    "url": "http://db-api.internal:3300/",
                    "api_key": "file-key",
                    "timeout": 10,
                    "max_retries": 5,
                    "debug_mode": "false",
                },
                "database": {"default_db": "league"},
                "connections": {"pool_size": 8, "keep_alive": 120},
            }
        )
    )
    return path


def test_load_from_file(config_file):
    config = load_config(str(config_file), environ={})

    assert config.base_url == "http://db-api.internal:3300"
    assert config.api_key == "file-key"
    assert config.timeout == 10
    assert config.max_retries == 5
    assert config.default_database == "league"
    assert config.max_connections == 8
    assert config.idle_timeout == 120
    assert config.debug is False


def test_environment_overrides_file(config_file):
    config = load_config(
        str(config_file),
        environ={"MONGOAPI_KEY": "env-key", "MONGOAPI_TIMEOUT": "2.5", "MONGOAPI_DEBUG": "1"},
    )

    assert config.api_key == "env-key"
    assert config.timeout == 2.5
    assert config.debug is True
    assert config.max_retries == 5


def test_config_path_from_environment(config_file):
    config = load_config(environ={"MONGOAPI_CONFIG": str(config_file)})

    assert config.default_database == "league"


def test_defaults_without_file():
    config = load_config(environ={})

    assert config.base_url == "http://127.0.0.1:3300"
    assert config.api_key is None
    assert config.max_retries == 3


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "absent.json"), environ={})


def test_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    with pytest.raises(ConfigurationError):
        read_config_file(str(path))


def test_invalid_values(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"api": {"max_retries": -1}}))

    with pytest.raises(ConfigurationError):
        load_config(str(path), environ={})

    with pytest.raises(ConfigurationError):
        read_env_overrides({"MONGOAPI_MAX_RETRIES": "many"})

    with pytest.raises(ConfigurationError):
        read_env_overrides({"MONGOAPI_DEBUG": "maybe"})


def test_section_must_be_object(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"api": "http://localhost"}))

    with pytest.raises(ConfigurationError):
        read_config_file(str(path))


def test_dotenv_file(tmp_path, monkeypatch):
    for name in ("MONGOAPI_URL", "MONGOAPI_TIMEOUT", "MONGOAPI_MAX_RETRIES", "MONGOAPI_DEBUG", "MONGOAPI_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    # registered so the value loaded from .env is removed after the test
    monkeypatch.setenv("MONGOAPI_KEY", "placeholder")
    monkeypatch.delenv("MONGOAPI_KEY")
    env_file = tmp_path / ".env"
    env_file.write_text("MONGOAPI_KEY=dotenv-key\n")

    config = load_config(dotenv_path=str(env_file))

    assert config.api_key == "dotenv-key"


def test_post_for_writes_from_file(tmp_path):
    path = tmp_path / "service.json"
    path.write_text(json.dumps({"api": {"post_for_writes": "yes"}}))

    assert load_config(str(path), environ={}).post_for_writes is True
    assert load_config(environ={}).post_for_writes is False
