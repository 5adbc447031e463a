# SPDX-License-Identifier: MIT
"""Visual Studio discovery (Windows only).

Uses vswhere.exe, which ships with every Visual Studio 2017+ installer,
to list installations that carry the C++ build tools.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gypsum.core.errors import ToolNotFoundError

if TYPE_CHECKING:
    from gypsum.configure.release import SemVer

logger = logging.getLogger(__name__)

# Visual Studio major version -> product year
_VERSION_YEARS: dict[int, int] = {15: 2017, 16: 2019, 17: 2022, 18: 2026}

# The generator does not know toolchains newer than this year
LEGACY_MSVS_YEAR = 2015


@dataclass(frozen=True)
class VSInfo:
    """A usable Visual Studio installation.

    Attributes:
        path: Installation root.
        version_year: Product year (2017, 2019, 2022, ...).
        version: Full installation version string.
        msbuild_path: Path to MSBuild.exe.
    """

    path: Path
    version_year: int
    version: str
    msbuild_path: Path

    @property
    def gyp_version(self) -> int:
        """Toolchain year announced to the generator, clamped to its ceiling."""
        return min(self.version_year, LEGACY_MSVS_YEAR)


def _find_vswhere() -> Path | None:
    program_files = os.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)")
    vswhere = (
        Path(program_files) / "Microsoft Visual Studio" / "Installer" / "vswhere.exe"
    )
    return vswhere if vswhere.exists() else None


def _query_installations(vswhere: Path) -> list[dict[str, Any]]:
    try:
        result = subprocess.run(
            [
                str(vswhere),
                "-all",
                "-prerelease",
                "-products",
                "*",
                "-requires",
                "Microsoft.VisualStudio.Component.VC.Tools.x86.x64",
                "-format",
                "json",
                "-utf8",
            ],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.warning("vswhere failed: %s", e)
        return []
    if result.returncode != 0:
        logger.warning("vswhere exited with %d", result.returncode)
        return []
    try:
        data = json.loads(result.stdout or "[]")
    except json.JSONDecodeError as e:
        logger.warning("could not parse vswhere output: %s", e)
        return []
    return data if isinstance(data, list) else []


def _msbuild_for(install_path: Path, year: int) -> Path:
    if year >= 2019:
        return install_path / "MSBuild" / "Current" / "Bin" / "MSBuild.exe"
    return install_path / "MSBuild" / "15.0" / "Bin" / "MSBuild.exe"


def parse_installation(entry: dict[str, Any]) -> VSInfo | None:
    """Convert one vswhere JSON record to VSInfo, or None if unusable."""
    version = str(entry.get("installationVersion", ""))
    path = entry.get("installationPath")
    if not version or not path:
        return None
    try:
        major = int(version.split(".", 1)[0])
    except ValueError:
        return None
    year = _VERSION_YEARS.get(major)
    if year is None:
        logger.debug("ignoring unknown Visual Studio version %s", version)
        return None
    install_path = Path(path)
    return VSInfo(
        path=install_path,
        version_year=year,
        version=version,
        msbuild_path=_msbuild_for(install_path, year),
    )


def select_installation(
    candidates: list[VSInfo], requested: str | None = None
) -> VSInfo | None:
    """Pick the newest installation matching an optional year or path."""
    if requested:
        wanted = requested.strip()
        candidates = [
            c
            for c in candidates
            if str(c.version_year) == wanted
            or os.path.normcase(str(c.path)) == os.path.normcase(wanted)
        ]
    if not candidates:
        return None
    return max(candidates, key=lambda c: (c.version_year, c.version))


def find_visual_studio(
    semver: SemVer | None = None, requested: str | None = None
) -> VSInfo:
    """Find a Visual Studio installation able to build native modules.

    Args:
        semver: Target runtime version. Runtimes 18 and newer need
            Visual Studio 2017 or later, which is all vswhere reports.
        requested: Optional year (e.g. '2022') or installation path.

    Raises:
        ToolNotFoundError: If no suitable installation exists.
    """
    vswhere = _find_vswhere()
    if vswhere is None:
        raise ToolNotFoundError(
            "vswhere.exe",
            "Could not find Visual Studio installation to use: vswhere.exe "
            "is missing. Install Visual Studio 2017 or newer with the "
            '"Desktop development with C++" workload.',
        )

    found = [
        info
        for info in (parse_installation(e) for e in _query_installations(vswhere))
        if info is not None
    ]
    for info in found:
        logger.debug("found Visual Studio %s at %s", info.version, info.path)

    selected = select_installation(found, requested)
    if selected is None:
        what = f"version {requested!r}" if requested else "installation"
        raise ToolNotFoundError(
            "msbuild", f"Could not find a usable Visual Studio {what}"
        )
    if semver is not None:
        logger.info(
            "using Visual Studio %d for runtime %s", selected.version_year, semver
        )
    return selected
