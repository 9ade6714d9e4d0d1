"""
Logging setup for the nixpkgs-using CLI.

Library modules log through the standard `logging` module; the CLI routes
those records into a single loguru sink on stderr.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger


class InterceptHandler(logging.Handler):
    """Intercept standard logging messages toward Loguru sinks."""
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.patch(lambda r: r.update(name=record.name)).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def setup_logging(verbose: bool = False) -> None:
    """Send log output to stderr; DEBUG when verbose, WARNING otherwise."""
    level = "DEBUG" if verbose else "WARNING"

    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>")

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO if verbose else logging.WARNING)
