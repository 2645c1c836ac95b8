import logging

LOG_FORMAT = "time=%(asctime)s level=%(levelname)s logger=%(name)s %(message)s"
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def resolve_level(name) -> int:
    """Map a level name to a logging level; anything unrecognised is ERROR."""
    return LOG_LEVELS.get(str(name or "").strip().upper(), logging.ERROR)


def configure_logging(level_name) -> int:
    level = resolve_level(level_name)
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
    return level
