# SPDX-License-Identifier: MIT
"""Filesystem probing helpers."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


def expand_home(path: str) -> str:
    """Expand a leading '~' to the user's home directory.

    Only the first character is considered, so '~user' forms are
    treated as '~' followed by 'user'.
    """
    if path.startswith("~"):
        return str(Path.home()) + path[1:]
    return path


def find_accessible(
    directory: Path | str, candidates: Sequence[str], *, label: str = "find"
) -> Path | None:
    """Return the first candidate under directory that can be opened for reading.

    Args:
        directory: Directory the candidates are relative to.
        candidates: Relative paths, in priority order.
        label: Prefix used in debug log messages.

    Returns:
        Absolute path of the first readable candidate, or None.
    """
    for candidate in candidates:
        path = Path(os.path.abspath(Path(directory) / candidate))
        try:
            with open(path, "rb"):
                pass
        except OSError as e:
            logger.debug("%s: could not open %s: %s", label, path, e)
            continue
        logger.debug("%s: found readable %s", label, path)
        return path
    return None
