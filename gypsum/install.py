# SPDX-License-Identifier: MIT
"""Headers package installation into the local cache.

Each installed release lives in <devdir>/<version_dir>/ and holds the
contents of the release's headers tarball plus an 'installVersion'
marker written last, so a half-extracted tree is never mistaken for a
complete one.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import tempfile
import urllib.request
import zlib
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from gypsum.core.errors import InvalidArtifactError
from gypsum.util.paths import expand_home

if TYPE_CHECKING:
    from gypsum.configure.release import ReleaseInfo

logger = logging.getLogger(__name__)

INSTALL_VERSION = "11"
MARKER = "installVersion"


class Installer(Protocol):
    """Installs the headers for a release and returns their directory."""

    def __call__(
        self,
        release: ReleaseInfo,
        devdir: Path,
        *,
        ensure: bool = True,
        tarball: str | None = None,
    ) -> Path: ...


def is_installed(devdir: Path, version_dir: str) -> bool:
    return (devdir / version_dir / MARKER).is_file()


def _fetch(source: str, dest: Path) -> None:
    """Copy a tarball from a URL or a local path to dest."""
    if "://" not in source:
        shutil.copyfile(expand_home(source), dest)
        return
    logger.info("downloading %s", source)
    urllib.request.urlretrieve(source, dest)  # noqa: S310


def _extract(archive: Path, dest: Path, source: str) -> None:
    """Extract a headers tarball, dropping its top-level directory."""
    try:
        with tarfile.open(archive, "r:*") as tar:
            members = []
            for member in tar.getmembers():
                _, _, rest = member.name.partition("/")
                if not rest:
                    continue
                member.name = rest
                members.append(member)
            tar.extractall(dest, members=members, filter="data")
    except (tarfile.TarError, EOFError, zlib.error) as e:
        raise InvalidArtifactError(source, f"not a usable headers tarball: {e}") from e


def install(
    release: ReleaseInfo,
    devdir: Path,
    *,
    ensure: bool = True,
    tarball: str | None = None,
) -> Path:
    """Make sure the headers for release are in the cache.

    Args:
        release: The release to install.
        devdir: Root of the headers cache.
        ensure: If True, an existing install is kept as is. If False,
            the release is removed and installed again.
        tarball: Local path or URL to use instead of the release tarball.

    Returns:
        The directory holding the installed headers.

    Raises:
        InvalidArtifactError: If the tarball cannot be extracted.
    """
    dest = devdir / release.version_dir
    if ensure and is_installed(devdir, release.version_dir):
        logger.info("headers for %s already installed in %s", release.version, dest)
        return dest

    if dest.exists():
        logger.info("removing existing install %s", dest)
        shutil.rmtree(dest)
    dest.mkdir(parents=True)

    source = tarball or release.tarball_url
    with tempfile.TemporaryDirectory() as tmp:
        archive = Path(tmp) / "headers.tar.gz"
        _fetch(source, archive)
        _extract(archive, dest, source)

    (dest / MARKER).write_text(INSTALL_VERSION + "\n")
    logger.info("installed headers for %s into %s", release.version, dest)
    return dest


def list_installed(devdir: Path) -> list[str]:
    """Names of the releases installed in the cache, sorted."""
    if not devdir.is_dir():
        return []
    return sorted(
        p.name for p in devdir.iterdir() if p.is_dir() and is_installed(devdir, p.name)
    )
