# SPDX-License-Identifier: MIT
"""Spawn external tools and map their termination to success or failure."""

from __future__ import annotations

import logging
import signal
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from gypsum.core.errors import ProcessError

logger = logging.getLogger(__name__)


def signal_name(signum: int) -> str:
    """Return the symbolic name of a signal number (e.g. 'SIGTERM')."""
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


def run_process(
    command: str,
    args: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    cwd: Path | str | None = None,
) -> None:
    """Run a command to completion with inherited stdio.

    Args:
        command: Executable to run.
        args: Arguments passed after the executable.
        env: Complete environment for the child. Inherits ours if None.
        cwd: Working directory for the child.

    Raises:
        ProcessError: If the child exits non-zero or is killed by a signal.
        OSError: If the executable cannot be started.
    """
    cmd = [command, *(str(a) for a in args)]
    logger.info("spawn %s", command)
    logger.info("args %s", cmd[1:])

    result = subprocess.run(
        cmd,
        env=dict(env) if env is not None else None,
        cwd=cwd,
    )

    # POSIX reports death-by-signal as a negative return code
    if result.returncode < 0:
        raise ProcessError(command, signal=signal_name(-result.returncode))
    if result.returncode != 0:
        raise ProcessError(command, returncode=result.returncode)
