# SPDX-License-Identifier: MIT
"""Tests for gypsum.core.options."""

from __future__ import annotations

from pathlib import Path

import pytest

from gypsum.core.options import GypOptions, default_devdir


class TestFromEnv:
    def test_explicit_values(self):
        opts = GypOptions.from_env({}, target="18.0.0", jobs="4")
        assert opts.target == "18.0.0"
        assert opts.jobs == "4"
        assert opts.debug is None

    def test_none_means_not_given(self):
        opts = GypOptions.from_env({"GYPSUM_TARGET": "16.0.0"}, target=None)
        assert opts.target == "16.0.0"

    def test_explicit_beats_environment(self):
        opts = GypOptions.from_env({"GYPSUM_NODEDIR": "/env"}, nodedir="/flag")
        assert opts.nodedir == "/flag"

    def test_gyp_dir_from_environment(self):
        opts = GypOptions.from_env({"GYP_DIR": "/opt/gyp"})
        assert opts.gyp_dir == "/opt/gyp"

    def test_unknown_keys_ignored(self):
        opts = GypOptions.from_env({}, no_such_option="x")
        assert not hasattr(opts, "no_such_option")

    def test_make_and_jobs_not_read_here(self):
        # make and jobs fall back to MAKE/JOBS at build time
        opts = GypOptions.from_env({"MAKE": "gmake", "JOBS": "2"})
        assert opts.make is None
        assert opts.jobs is None


class TestDevdir:
    def test_explicit_devdir_expands_home(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ):
        monkeypatch.setenv("HOME", str(tmp_path))
        opts = GypOptions(devdir="~/cache")
        assert opts.devdir_path() == tmp_path / "cache"

    def test_xdg_cache_home(self, tmp_path: Path):
        path = default_devdir({"XDG_CACHE_HOME": str(tmp_path)})
        assert path == tmp_path / "gypsum"

    def test_default_under_home(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("USERPROFILE", str(tmp_path))
        monkeypatch.delenv("LOCALAPPDATA", raising=False)
        assert default_devdir({}) == tmp_path / ".cache" / "gypsum"
