# SPDX-License-Identifier: MIT
"""Caller options shared by all gypsum commands."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path

from gypsum.util.paths import expand_home

# Options that fall back to an environment variable when not given
_ENV_FALLBACKS: dict[str, str] = {
    "nodedir": "GYPSUM_NODEDIR",
    "target": "GYPSUM_TARGET",
    "dist_url": "GYPSUM_DIST_URL",
    "devdir": "GYPSUM_DEVDIR",
    "gyp_dir": "GYP_DIR",
}


@dataclass
class GypOptions:
    """Plain option values consumed by the configure and build phases.

    Attributes:
        nodedir: Explicit headers directory; skips any install step.
        target: Runtime version to compile against.
        tarball: Local or remote headers tarball; forces a reinstall.
        dist_url: Download mirror for headers.
        devdir: Root of the headers cache.
        python: Interpreter the generator runs under.
        msvs_version: Requested Visual Studio year or install path.
        node_engine: JavaScript engine name passed to the generator.
        make: Make variant to use for the build phase.
        jobs: Parallel job count, or 'max'.
        debug: Build type override; None keeps the configured default.
        solution: Explicit Windows solution file.
        arch: Target architecture.
        gyp_dir: Location of the generator (gyp_main.py and pylib/).
        runtime: Runtime executable used to detect the host version.
        verbose: Ask the build tool for verbose output.
    """

    nodedir: str | None = None
    target: str | None = None
    tarball: str | None = None
    dist_url: str | None = None
    devdir: str | None = None
    python: str | None = None
    msvs_version: str | None = None
    node_engine: str | None = None
    make: str | None = None
    jobs: str | None = None
    debug: bool | None = None
    solution: str | None = None
    arch: str | None = None
    gyp_dir: str | None = None
    runtime: str | None = None
    verbose: bool = False

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **values: object
    ) -> GypOptions:
        """Build options, filling unset values from environment variables.

        Args:
            environ: Environment to read (default: os.environ).
            **values: Explicit option values; None means "not given".
        """
        if environ is None:
            environ = os.environ
        names = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in values.items() if k in names and v is not None}
        for name, var in _ENV_FALLBACKS.items():
            if name not in kwargs and environ.get(var):
                kwargs[name] = environ[var]
        return cls(**kwargs)  # type: ignore[arg-type]

    def devdir_path(self, environ: Mapping[str, str] | None = None) -> Path:
        """Root directory of the headers cache."""
        if self.devdir:
            return Path(expand_home(self.devdir))
        return default_devdir(environ)


def default_devdir(environ: Mapping[str, str] | None = None) -> Path:
    """Per-user headers cache: XDG cache on Unix, LOCALAPPDATA on Windows."""
    if environ is None:
        environ = os.environ
    if os.name == "nt" and environ.get("LOCALAPPDATA"):
        return Path(environ["LOCALAPPDATA"]) / "gypsum" / "Cache"
    cache_home = environ.get("XDG_CACHE_HOME")
    if cache_home:
        return Path(cache_home) / "gypsum"
    return Path.home() / ".cache" / "gypsum"
