# SPDX-License-Identifier: MIT
"""
Gypsum: configure and build native runtime addons with gyp.

Gypsum resolves a toolchain, writes build/config.gypi, runs the gyp
generator over a module's binding.gyp and then drives make or MSBuild
over the generated files.
"""

from __future__ import annotations

__version__ = "0.3.0"

from gypsum.build.build import build  # noqa: E402
from gypsum.configure.configure import configure  # noqa: E402
from gypsum.core.errors import GypsumError  # noqa: E402
from gypsum.core.options import GypOptions  # noqa: E402

__all__ = [
    "__version__",
    "GypOptions",
    "GypsumError",
    "build",
    "configure",
]
