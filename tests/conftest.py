# SPDX-License-Identifier: MIT
"""Shared fixtures for gypsum tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from gypsum.configure.platform import Platform
from gypsum.configure.release import HostRuntime

IS_WINDOWS = sys.platform == "win32"


@pytest.fixture
def module_dir(tmp_path: Path) -> Path:
    """A module directory holding a binding.gyp."""
    module = tmp_path / "module"
    module.mkdir()
    (module / "binding.gyp").write_text(
        "{'targets': [{'target_name': 'addon', 'sources': ['addon.cc']}]}\n"
    )
    return module


@pytest.fixture
def gyp_dir(tmp_path: Path) -> Path:
    """A stand-in generator that records its arguments and environment."""
    gyp = tmp_path / "gyp"
    (gyp / "pylib").mkdir(parents=True)
    (gyp / "gyp_main.py").write_text(
        "import json, os, sys\n"
        "with open('gyp_call.json', 'w') as f:\n"
        "    json.dump({'argv': sys.argv[1:], 'env': {\n"
        "        k: os.environ.get(k) for k in ('PYTHON', 'PYTHONPATH')}}, f)\n"
    )
    return gyp


@pytest.fixture
def runtime(tmp_path: Path) -> HostRuntime:
    """A host runtime installed under tmp_path/runtime."""
    bin_dir = tmp_path / "runtime" / "bin"
    bin_dir.mkdir(parents=True)
    exe = bin_dir / "node"
    exe.write_text("")
    return HostRuntime(version="v20.11.1", exec_path=exe)


@pytest.fixture
def linux() -> Platform:
    return Platform(os="linux", arch="x64")


@pytest.fixture
def win32() -> Platform:
    return Platform(os="win32", arch="x64")
