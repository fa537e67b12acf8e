"""
Process-wide logging configuration.

Library modules only ever do `logger = logging.getLogger(__name__)`; the
handler, level and format are installed once, by the entry point, through
configure_logging(). Calling it again just updates the level.
"""

import logging


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chatty third-party loggers that drown out request-level logs at DEBUG
_NOISY_LOGGERS = ("urllib3", "yfinance", "peewee")


def configure_logging(level: str = "INFO") -> None:
    """
    Install the root handler and set the log level.

    Args:
        level: Level name ("DEBUG", "INFO", "WARNING", ...). Case-insensitive.

    Raises:
        ValueError: If `level` is not a known logging level name.
    """
    numeric_level = logging.getLevelName(level.strip().upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
