# SPDX-License-Identifier: MIT
"""Platform detection and per-platform build conventions.

Platform identifiers follow the runtime's naming ('win32', 'linux',
'darwin', 'aix', 'os390', 'os400', 'freebsd', ...) rather than
Python's sys.platform, because the generator and the headers tree use
those names.
"""

from __future__ import annotations

import platform as _platform
import sys
from dataclasses import dataclass, field


@dataclass(frozen=True)
class PlatformTraits:
    """Build conventions that differ between platforms.

    Attributes:
        make: Default make variant for Unix-family platforms.
        gyp_format: Generator output format forced when none is given.
        exports_ext: Extension of the runtime exports file, if the
            platform links against one.
        exports_candidates: Ordered exports-file locations relative to
            the runtime root (without extension).
        zoslib_candidates: Ordered locations of zos-base.h relative to
            the runtime root.
        zoslib_min_major: First runtime major version that ships zoslib;
            below it a missing zoslib is tolerated.
    """

    make: str = "make"
    gyp_format: str = "make"
    exports_ext: str | None = None
    exports_candidates: tuple[str, ...] = ()
    zoslib_candidates: tuple[str, ...] = ()
    zoslib_min_major: int | None = None

    @property
    def needs_exports_file(self) -> bool:
        return self.exports_ext is not None

    @property
    def needs_zoslib(self) -> bool:
        return self.zoslib_min_major is not None

    def exports_files(self) -> list[str]:
        """Exports-file candidates with the platform extension applied."""
        if self.exports_ext is None:
            return []
        return [f"{c}.{self.exports_ext}" for c in self.exports_candidates]


_AIX_EXPORTS = (
    "include/node/node",
    "out/Release/node",
    "out/Debug/node",
    "node",
)

_OS390_EXPORTS = (
    "out/Release/lib.target/libnode",
    "out/Debug/lib.target/libnode",
    "out/Release/obj.target/libnode",
    "out/Debug/obj.target/libnode",
    "lib/libnode",
)

_ZOSLIB_HEADERS = (
    "include/node/zoslib/zos-base.h",
    "include/zoslib/zos-base.h",
    "zoslib/include/zos-base.h",
    "install/include/node/zoslib/zos-base.h",
)

_DEFAULT_TRAITS = PlatformTraits()
_BSD_TRAITS = PlatformTraits(make="gmake")

PLATFORM_TRAITS: dict[str, PlatformTraits] = {
    "win32": PlatformTraits(make="msbuild", gyp_format="msvs"),
    "aix": PlatformTraits(
        make="gmake", exports_ext="exp", exports_candidates=_AIX_EXPORTS
    ),
    "os400": PlatformTraits(
        make="gmake", exports_ext="exp", exports_candidates=_AIX_EXPORTS
    ),
    "os390": PlatformTraits(
        exports_ext="x",
        exports_candidates=_OS390_EXPORTS,
        zoslib_candidates=_ZOSLIB_HEADERS,
        zoslib_min_major=16,
    ),
}


def traits_for(os_name: str) -> PlatformTraits:
    """Look up the build conventions for a platform identifier."""
    if os_name in PLATFORM_TRAITS:
        return PLATFORM_TRAITS[os_name]
    if "bsd" in os_name:
        return _BSD_TRAITS
    return _DEFAULT_TRAITS


# Map Python machine names to the runtime's architecture names
_ARCH_ALIASES: dict[str, str] = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "i386": "ia32",
    "i486": "ia32",
    "i586": "ia32",
    "i686": "ia32",
    "x86": "ia32",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv6l": "arm",
    "armv7l": "arm",
    "arm": "arm",
    "ppc64le": "ppc64",
    "ppc64": "ppc64",
    "s390x": "s390x",
    "riscv64": "riscv64",
    "loongarch64": "loong64",
}

# Windows project-builder platform tokens; anything else is 32-bit intel
_MSBUILD_PLATFORMS: dict[str, str] = {
    "x64": "x64",
    "arm": "ARM",
    "arm64": "ARM64",
}


def msbuild_platform(arch: str) -> str:
    """Map a target_arch value to an MSBuild /p:Platform token.

    MSBuild compares Platform case-insensitively, and there are many
    ways to spell 32-bit intel, so anything unrecognized is 'Win32'.
    """
    return _MSBUILD_PLATFORMS.get(arch.lower(), "Win32")


def normalize_arch(machine: str) -> str:
    """Convert a machine name (platform.machine()) to runtime naming."""
    return _ARCH_ALIASES.get(machine.lower(), machine.lower())


def normalize_os(sys_platform: str, system: str = "") -> str:
    """Convert sys.platform (and platform.system()) to runtime naming."""
    if system.upper() == "OS400":
        return "os400"
    if sys_platform.startswith("win") or sys_platform == "cygwin":
        return "win32"
    if sys_platform == "zos":
        return "os390"
    if sys_platform.startswith("aix"):
        return "aix"
    if sys_platform.startswith("linux"):
        return "linux"
    if sys_platform.startswith("freebsd"):
        return "freebsd"
    if sys_platform.startswith("openbsd"):
        return "openbsd"
    if sys_platform.startswith("netbsd"):
        return "netbsd"
    if sys_platform.startswith("sunos"):
        return "sunos"
    return sys_platform


@dataclass(frozen=True)
class Platform:
    """The host platform, in runtime naming.

    Attributes:
        os: Platform identifier ('linux', 'win32', 'aix', ...).
        arch: Architecture ('x64', 'arm64', 'ia32', ...).
    """

    os: str
    arch: str
    traits: PlatformTraits = field(init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "traits", traits_for(self.os))

    @property
    def is_windows(self) -> bool:
        return self.os == "win32"

    @property
    def path_sep(self) -> str:
        """Separator for PATH-style environment variables."""
        return ";" if self.is_windows else ":"


def get_platform() -> Platform:
    """Detect the host platform."""
    return Platform(
        os=normalize_os(sys.platform, _platform.system()),
        arch=normalize_arch(_platform.machine()),
    )
