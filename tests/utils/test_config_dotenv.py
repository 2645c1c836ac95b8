"""`.env` handling: values loaded at import reach the container settings."""
import builtins
import importlib
import logging
import sys
import types

import pytest

import pageinsight
import pageinsight.config
import pageinsight.container
from pageinsight.exceptions import ConfigError

SETTING_NAMES = (
    "PORT",
    "LINK_CHECK_CONCURRENCY",
    "FETCH_TIMEOUT_SECONDS",
    "CORS_ALLOWED_ORIGINS",
    "LOG_LEVEL",
)


@pytest.fixture
def fresh_modules(monkeypatch, tmp_path):
    """Let config and container re-run their import-time setup in a clean cwd.

    The original modules are put back when the test ends.
    """
    monkeypatch.chdir(tmp_path)
    for name in SETTING_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(pageinsight, "config", pageinsight.config)
    monkeypatch.setattr(pageinsight, "container", pageinsight.container)
    monkeypatch.delitem(sys.modules, "pageinsight.config", raising=False)
    monkeypatch.delitem(sys.modules, "pageinsight.container", raising=False)

    def load():
        config = importlib.import_module("pageinsight.config")
        container = importlib.import_module("pageinsight.container")
        return config, container

    return load


def _dotenv_reading(monkeypatch, path):
    """Stand-in for python-dotenv that applies `path` through monkeypatch."""

    def load_dotenv():
        if not path.exists():
            return False
        for line in path.read_text().splitlines():
            key, sep, value = line.partition("=")
            if sep:
                monkeypatch.setenv(key.strip(), value.strip())
        return True

    return types.SimpleNamespace(load_dotenv=load_dotenv)


def test_dotenv_values_are_typed_into_container_settings(monkeypatch, tmp_path, fresh_modules):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "PORT=9000\n"
        "LINK_CHECK_CONCURRENCY=7\n"
        "FETCH_TIMEOUT_SECONDS=2.5\n"
        "CORS_ALLOWED_ORIGINS=https://a.example, https://b.example\n"
        "LOG_LEVEL=debug\n"
    )
    monkeypatch.setitem(sys.modules, "dotenv", _dotenv_reading(monkeypatch, env_file))

    config, container = fresh_modules()

    env = container.ENV
    assert env["PORT"] == 9000
    assert env["LINK_CHECK_CONCURRENCY"] == 7
    assert env["FETCH_TIMEOUT_SECONDS"] == 2.5
    assert env["CORS_ALLOWED_ORIGINS"] == ["https://a.example", "https://b.example"]
    assert env["LOG_LEVEL"] == "DEBUG"
    config.validate_settings(env)


def test_out_of_range_dotenv_value_fails_validation(monkeypatch, tmp_path, fresh_modules):
    env_file = tmp_path / ".env"
    env_file.write_text("LINK_CHECK_CONCURRENCY=500\n")
    monkeypatch.setitem(sys.modules, "dotenv", _dotenv_reading(monkeypatch, env_file))

    config, container = fresh_modules()

    with pytest.raises(ConfigError) as exc:
        config.validate_settings(container.ENV)
    assert exc.value.name == "LINK_CHECK_CONCURRENCY"
    assert exc.value.value == 500


def test_garbage_dotenv_number_keeps_default(monkeypatch, tmp_path, fresh_modules, caplog):
    env_file = tmp_path / ".env"
    env_file.write_text("FETCH_TIMEOUT_SECONDS=soon\n")
    monkeypatch.setitem(sys.modules, "dotenv", _dotenv_reading(monkeypatch, env_file))

    with caplog.at_level(logging.ERROR):
        _, container = fresh_modules()

    assert container.ENV["FETCH_TIMEOUT_SECONDS"] == 10.0
    assert "Invalid FETCH_TIMEOUT_SECONDS" in caplog.text


def test_without_dotenv_library_environment_still_applies(monkeypatch, fresh_modules, caplog):
    real_import = builtins.__import__

    def no_dotenv(name, *args, **kwargs):
        if name == "dotenv" or name.startswith("dotenv."):
            raise ImportError(name)
        return real_import(name, *args, **kwargs)

    monkeypatch.delitem(sys.modules, "dotenv", raising=False)
    monkeypatch.setattr(builtins, "__import__", no_dotenv)
    monkeypatch.setenv("PORT", "8181")

    with caplog.at_level(logging.WARNING):
        _, container = fresh_modules()

    assert "python-dotenv not available" in caplog.text
    assert container.ENV["PORT"] == 8181


def test_unloadable_dotenv_file_stops_import(monkeypatch, tmp_path, fresh_modules):
    (tmp_path / ".env").write_text("PORT=9000\n")
    monkeypatch.setitem(sys.modules, "dotenv", types.SimpleNamespace(load_dotenv=lambda: False))

    with pytest.raises(RuntimeError, match=".env file present but failed to load"):
        fresh_modules()
