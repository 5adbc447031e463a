# SPDX-License-Identifier: MIT
"""Target release resolution.

Works out which runtime version a module is compiled against, where its
headers live in the local cache, and where they are downloaded from.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

from gypsum.core.errors import ToolNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_NAME = "node"
DEFAULT_ENGINE = "v8"
DEFAULT_DIST_URL = "https://nodejs.org/dist"

_SEMVER_RE = re.compile(
    r"^\s*v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?\s*$"
)


class SemVer(NamedTuple):
    """A parsed semantic version."""

    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text


def parse_semver(version: str) -> SemVer | None:
    """Parse a semantic version, tolerating a leading 'v'.

    Returns:
        The parsed version, or None if the string is not a valid semver.
    """
    match = _SEMVER_RE.match(version)
    if match is None:
        return None
    return SemVer(
        int(match["major"]),
        int(match["minor"]),
        int(match["patch"]),
        match["prerelease"],
        match["build"],
    )


@dataclass(frozen=True)
class HostRuntime:
    """The runtime installation whose tooling is running this build.

    Attributes:
        version: Version string with a leading 'v' (e.g. 'v20.11.1').
        exec_path: Path to the runtime executable.
        name: Release name ('node' for official releases).
        engine: JavaScript engine the runtime embeds.
    """

    version: str
    exec_path: Path
    name: str = DEFAULT_NAME
    engine: str = DEFAULT_ENGINE

    @property
    def root_dir(self) -> Path:
        """Installation root: parent of bin/ on Unix, the exe dir on Windows."""
        exe_dir = self.exec_path.resolve().parent
        if exe_dir.name == "bin":
            return exe_dir.parent
        return exe_dir


def detect_host_runtime(executable: str | None = None) -> HostRuntime:
    """Locate the runtime executable and ask it for its version.

    Args:
        executable: Runtime executable name or path. Defaults to the
            GYPSUM_NODE environment variable, then 'node'.

    Raises:
        ToolNotFoundError: If the runtime is not installed or does not
            report a version.
    """
    name = executable or os.environ.get("GYPSUM_NODE") or "node"
    found = shutil.which(name)
    if found is None:
        raise ToolNotFoundError(name, f"Could not find runtime executable: {name}")

    try:
        result = subprocess.run(
            [found, "--version"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        raise ToolNotFoundError(name, f"Could not run `{found} --version`: {e}") from e

    version = result.stdout.strip()
    if result.returncode != 0 or not version:
        raise ToolNotFoundError(name, f"`{found} --version` did not report a version")

    if not version.startswith("v"):
        version = "v" + version
    logger.debug("host runtime %s at %s", version, found)
    return HostRuntime(version=version, exec_path=Path(found))


@dataclass(frozen=True)
class ReleaseInfo:
    """The release a module is compiled against.

    Attributes:
        version: Version without the leading 'v'.
        semver: Parsed version, or None if version is not valid semver.
        version_dir: Directory name under the headers cache.
        name: Release name.
        base_url: Download directory for this release.
        tarball_url: URL of the headers tarball.
        lib_url: URL of the Windows import library for the target arch.
    """

    version: str
    semver: SemVer | None
    version_dir: str
    name: str
    base_url: str
    tarball_url: str
    lib_url: str


def process_release(
    runtime: HostRuntime,
    *,
    target: str | None = None,
    dist_url: str | None = None,
    arch: str | None = None,
) -> ReleaseInfo:
    """Compute the target release from caller options and the host runtime.

    Args:
        runtime: The host runtime.
        target: Explicit target version; defaults to the host version.
        dist_url: Download mirror; defaults to the official one.
        arch: Target architecture used for the Windows import library URL.
    """
    version = (target or runtime.version).strip()
    if version.startswith("v"):
        version = version[1:]
    semver = parse_semver(version)

    # Only the host runtime knows its own release name
    name = runtime.name if not target else DEFAULT_NAME
    version_dir = version if name == DEFAULT_NAME else f"{name}-{version}"

    base_url = f"{(dist_url or DEFAULT_DIST_URL).rstrip('/')}/v{version}"
    lib_arch = {"ia32": "x86"}.get(arch or "x64", arch or "x64")

    return ReleaseInfo(
        version=version,
        semver=semver,
        version_dir=version_dir,
        name=name,
        base_url=base_url,
        tarball_url=f"{base_url}/{name}-v{version}-headers.tar.gz",
        lib_url=f"{base_url}/win-{lib_arch}/{name}.lib",
    )
