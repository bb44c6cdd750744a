"""Logging setup for the bridge process.

Bridge modules log through ``logging.getLogger(__name__)``, so everything
lands under the ``cloudterm`` logger configured here.
"""

from __future__ import annotations

import logging
import sys

from cloudterm.config.settings import LoggingConfig

LOGGER_NAME = "cloudterm"
_HANDLER_PREFIX = "cloudterm."


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Attach console (and optional file) handlers to the ``cloudterm`` logger.

    Safe to call again: handlers from an earlier call are replaced, not
    stacked.

    Args:
        config: Logging configuration. Defaults to INFO on stderr.

    Returns:
        The configured ``cloudterm`` logger.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if (handler.get_name() or "").startswith(_HANDLER_PREFIX):
            logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    handlers[0].set_name(_HANDLER_PREFIX + "console")
    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.set_name(_HANDLER_PREFIX + "file")
        handlers.append(file_handler)

    formatter = logging.Formatter(config.format)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("Logging configured at %s", config.level)
    return logger
