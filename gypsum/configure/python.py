# SPDX-License-Identifier: MIT
"""Interpreter discovery for the generator."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from collections.abc import Mapping
from pathlib import Path

from gypsum.core.errors import ToolNotFoundError
from gypsum.util.paths import expand_home

logger = logging.getLogger(__name__)


def find_python(
    requested: str | None = None, environ: Mapping[str, str] | None = None
) -> str:
    """Find the interpreter that will run the generator.

    Precedence: the requested name or path, then the PYTHON environment
    variable, then the interpreter running gypsum itself.

    Raises:
        ToolNotFoundError: If a requested interpreter cannot be resolved.
    """
    if environ is None:
        environ = os.environ
    name = requested or environ.get("PYTHON")
    if not name:
        logger.info("using running interpreter: %s", sys.executable)
        return sys.executable

    name = expand_home(name)
    if Path(name).is_file() and os.access(name, os.X_OK):
        found: str | None = str(Path(name).absolute())
    else:
        found = shutil.which(name)
    if found is None:
        raise ToolNotFoundError(
            name,
            f"Could not find Python {name!r}. Set --python or the PYTHON "
            "environment variable to a valid interpreter.",
        )
    logger.info("using python: %s", found)
    return found
