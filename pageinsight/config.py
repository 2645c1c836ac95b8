import os
import logging
from pathlib import Path

from pageinsight.exceptions import ConfigError

try:
	from dotenv import load_dotenv
except ImportError:
	logging.warning("python-dotenv not available; using environment variables only")
else:
	loaded = load_dotenv()
	if not loaded and Path(".env").exists():
		raise RuntimeError(".env file present but failed to load")


def get_str_env(name: str, default: str) -> str:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return default
	return raw


def get_int_env(name: str, default: int) -> int:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return default
	try:
		return int(raw)
	except Exception:
		logging.exception("Invalid %s: %r", name, raw)
		return default


def get_float_env(name: str, default: float) -> float:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return default
	try:
		return float(raw)
	except Exception:
		logging.exception("Invalid %s: %r", name, raw)
		return default


def get_list_env(name: str, default: list) -> list:
	raw = os.getenv(name)
	if raw is None or raw.strip() == "":
		return list(default)
	return [item.strip() for item in raw.split(",") if item.strip()]


def validate_settings(env: dict) -> None:
	"""Raise ConfigError for values the service cannot start with."""
	port = env.get("PORT")
	if not isinstance(port, int) or not 1 <= port <= 65535:
		raise ConfigError("PORT", port, "must be a port number 1-65535")

	concurrency = env.get("LINK_CHECK_CONCURRENCY")
	if not isinstance(concurrency, int) or not 1 <= concurrency <= 100:
		raise ConfigError("LINK_CHECK_CONCURRENCY", concurrency, "must be 1-100")

	for name in ("FETCH_TIMEOUT_SECONDS", "PROBE_TIMEOUT_SECONDS", "ANALYZE_TIMEOUT_SECONDS", "SHUTDOWN_TIMEOUT_SECONDS"):
		value = env.get(name)
		if not isinstance(value, (int, float)) or value <= 0:
			raise ConfigError(name, value, "must be greater than 0")
