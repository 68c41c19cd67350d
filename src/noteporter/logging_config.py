"""Logging setup for the ``noteporter`` logger tree.

Modules log through ``logging.getLogger(__name__)``; only the CLI calls
``setup_logging``. Library users configure logging themselves.
"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty below WARNING and rarely useful outside a debug run
NOISY_LOGGERS = ("aiohttp", "markdown")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    force: bool = False,
) -> logging.Logger:
    """
    Attach handlers to the ``noteporter`` logger.

    Records go to stderr, leaving stdout to the progress display and the
    summary. Unknown level names fall back to INFO.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also write records to this file (UTF-8)
        format_string: Format for both handlers, ``DEFAULT_FORMAT`` if None
        force: Replace existing handlers instead of keeping them

    Returns:
        The configured ``noteporter`` logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("noteporter")
    logger.setLevel(numeric_level)

    if force or not logger.handlers:
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

        handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
        if log_file:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

        formatter = logging.Formatter(format_string or DEFAULT_FORMAT)
        for handler in handlers:
            handler.setLevel(numeric_level)
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    logger.propagate = False
    return logger
