"""
Watermark storage for nixpkgs-using.

The watermark is the creation time (Unix seconds) of the newest pull request
seen by a previous run. It lives in a one-line text file in the cache
directory and is treated as a cache: anything unreadable counts as 0.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path

from .config import get_cache_dir


logger = logging.getLogger(__name__)

WATERMARK_FILENAME = "most_recent_pr"

# Signed 64-bit range
MIN_WATERMARK = -(2 ** 63)
MAX_WATERMARK = 2 ** 63 - 1

_INTEGER_RE = re.compile(r"-?[0-9]+")


def parse_watermark(text: str) -> int:
    """
    Parse a persisted watermark.

    Only ASCII digits with an optional leading minus sign are accepted, and
    the value must fit in a signed 64-bit integer.

    Raises:
        ValueError: on anything else
    """
    text = text.strip()
    if not _INTEGER_RE.fullmatch(text):
        raise ValueError(f"not an integer: {text!r}")
    value = int(text)
    if not MIN_WATERMARK <= value <= MAX_WATERMARK:
        raise ValueError(f"out of range: {text}")
    return value


class WatermarkStore:
    """Persisted "newest pull request seen" timestamp."""

    def __init__(self, path: Path | None = None):
        self.path = path or get_cache_dir() / WATERMARK_FILENAME

    def read(self) -> int:
        """
        Read the watermark.

        A missing or corrupt file resets the store to 0 and returns 0.
        """
        try:
            return parse_watermark(self.path.read_text())
        except FileNotFoundError:
            logger.debug("No watermark at %s, starting from 0", self.path)
        except (OSError, ValueError) as e:
            logger.debug("Unreadable watermark at %s (%s), resetting to 0", self.path, e)

        try:
            self.write(0)
        except OSError as e:
            logger.warning("Could not initialize watermark at %s: %s", self.path, e)
        return 0

    def write(self, latest: int) -> None:
        """Overwrite the watermark. Errors propagate."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(str(latest))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def advance(self, latest: int) -> int:
        """Move the watermark forward to `latest`; it never moves back."""
        current = self.read()
        value = max(current, latest)
        if value != current:
            logger.debug("Advancing watermark %d -> %d", current, value)
        self.write(value)
        return value
