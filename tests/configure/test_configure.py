# SPDX-License-Identifier: MIT
"""Tests for gypsum.configure.configure."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from gypsum.configure.configure import (
    ADDON_GYPI,
    PACKAGE_DIR,
    configure,
    find_config_fragments,
)
from gypsum.configure.msvs import VSInfo
from gypsum.configure.platform import Platform
from gypsum.configure.release import HostRuntime
from gypsum.core.errors import (
    InvalidVersionError,
    MissingPlatformArtifactError,
    ProcessError,
    ToolNotFoundError,
)
from gypsum.core.options import GypOptions

PYTHON = "/usr/bin/python3"


def _python_finder(requested, environ):
    return PYTHON


def run_configure(
    module_dir: Path,
    platform: Platform,
    runtime: HostRuntime,
    options: GypOptions,
    argv=(),
    environ=None,
    **kwargs,
):
    """Run configure with the generator spawn mocked out.

    Returns the context and the generator command line.
    """
    kwargs.setdefault("installer", MagicMock())
    kwargs.setdefault("python_finder", _python_finder)
    with patch("gypsum.configure.configure.run_process") as run:
        ctx = configure(
            options,
            argv,
            cwd=module_dir,
            platform=platform,
            runtime=runtime,
            environ={} if environ is None else environ,
            **kwargs,
        )
    run.assert_called_once()
    return ctx, run.call_args


def includes(args: list[str]) -> list[str]:
    return [args[i + 1] for i, a in enumerate(args) if a == "-I"]


def defines(args: list[str]) -> dict[str, str]:
    return dict(a[2:].split("=", 1) for a in args if a.startswith("-D"))


@pytest.fixture
def options(gyp_dir: Path, tmp_path: Path) -> GypOptions:
    return GypOptions(gyp_dir=str(gyp_dir), devdir=str(tmp_path / "cache"))


class TestIncludes:
    """Generator include files and their order."""

    def test_no_fragments(self, module_dir, linux, runtime, options):
        ctx, call = run_configure(module_dir, linux, runtime, options)
        assert includes(call.args[1]) == [
            str(module_dir / "build" / "config.gypi"),
            str(ADDON_GYPI),
            str(runtime.root_dir / "common.gypi"),
        ]

    def test_both_fragments_in_order(self, module_dir, linux, runtime, options):
        (module_dir / "common.gypi").write_text("{}\n")
        (module_dir / "config.gypi").write_text("{}\n")
        ctx, call = run_configure(module_dir, linux, runtime, options)
        assert includes(call.args[1]) == [
            str(module_dir / "build" / "config.gypi"),
            str(module_dir / "config.gypi"),
            str(module_dir / "common.gypi"),
            str(ADDON_GYPI),
            str(runtime.root_dir / "common.gypi"),
        ]

    def test_headers_common_gypi_preferred(self, module_dir, linux, runtime, options):
        include = runtime.root_dir / "include" / "node"
        include.mkdir(parents=True)
        (include / "common.gypi").write_text("{}\n")
        _, call = run_configure(module_dir, linux, runtime, options)
        assert includes(call.args[1])[-1] == str(include / "common.gypi")

    def test_config_written_before_generator(self, module_dir, linux, runtime, options):
        ctx, _ = run_configure(module_dir, linux, runtime, options)
        config = module_dir / "build" / "config.gypi"
        assert config.is_file()
        assert ctx.configs[0] == config

    def test_existing_build_dir(self, module_dir, linux, runtime, options):
        (module_dir / "build" / "Release").mkdir(parents=True)
        run_configure(module_dir, linux, runtime, options)
        run_configure(module_dir, linux, runtime, options)
        assert (module_dir / "build" / "Release").is_dir()


class TestFindConfigFragments:
    def test_none(self, tmp_path):
        assert find_config_fragments(tmp_path) == []

    def test_only_common(self, tmp_path):
        (tmp_path / "common.gypi").write_text("{}")
        assert find_config_fragments(tmp_path) == [tmp_path / "common.gypi"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX ENOTDIR")
    def test_other_stat_errors_propagate(self, tmp_path):
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("")
        with pytest.raises(NotADirectoryError):
            find_config_fragments(not_a_dir)


class TestNodeDir:
    """Choosing the headers directory."""

    def test_explicit_nodedir_with_home(
        self, module_dir, linux, runtime, options, tmp_path, monkeypatch
    ):
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        options.nodedir = "~/headers"
        installer = MagicMock()
        ctx, call = run_configure(
            module_dir, linux, runtime, options, installer=installer
        )
        installer.assert_not_called()
        assert ctx.node_dir == tmp_path / "headers"
        assert defines(call.args[1])["node_root_dir"] == str(tmp_path / "headers")

    def test_host_version_needs_no_install(self, module_dir, linux, runtime, options):
        installer = MagicMock()
        ctx, _ = run_configure(
            module_dir, linux, runtime, options, installer=installer
        )
        installer.assert_not_called()
        assert ctx.node_dir == runtime.root_dir

    def test_target_equal_to_host(self, module_dir, linux, runtime, options):
        options.target = "v20.11.1"
        installer = MagicMock()
        run_configure(module_dir, linux, runtime, options, installer=installer)
        installer.assert_not_called()

    def test_other_target_installs_once(
        self, module_dir, linux, runtime, options, tmp_path
    ):
        options.target = "18.0.0"
        headers = tmp_path / "cache" / "18.0.0"
        installer = MagicMock(return_value=headers)
        ctx, call = run_configure(
            module_dir, linux, runtime, options, installer=installer
        )
        installer.assert_called_once()
        release, devdir = installer.call_args.args
        assert release.version == "18.0.0"
        assert devdir == tmp_path / "cache"
        assert installer.call_args.kwargs == {"ensure": True, "tarball": None}
        assert ctx.node_dir == headers
        assert defines(call.args[1])["node_root_dir"] == str(headers)

    def test_tarball_forces_install(
        self, module_dir, linux, runtime, options, tmp_path
    ):
        options.tarball = str(tmp_path / "headers.tar.gz")
        installer = MagicMock(return_value=tmp_path / "cache" / "20.11.1")
        run_configure(module_dir, linux, runtime, options, installer=installer)
        installer.assert_called_once()
        assert installer.call_args.kwargs == {
            "ensure": False,
            "tarball": options.tarball,
        }

    def test_invalid_version(self, module_dir, linux, runtime, options):
        options.target = "banana"
        installer = MagicMock()
        with patch("gypsum.configure.configure.run_process") as run:
            with pytest.raises(InvalidVersionError, match="Invalid version number: banana"):
                configure(
                    options,
                    cwd=module_dir,
                    platform=linux,
                    runtime=runtime,
                    environ={},
                    installer=installer,
                    python_finder=_python_finder,
                )
        installer.assert_not_called()
        run.assert_not_called()
        assert not (module_dir / "build").exists()


class TestGeneratorArguments:
    def test_command_line_shape(self, module_dir, linux, runtime, options, gyp_dir):
        _, call = run_configure(module_dir, linux, runtime, options, argv=["-Dfoo=1"])
        command, args = call.args
        assert command == PYTHON
        assert args[0] == str(gyp_dir / "gyp_main.py")
        assert args[1] == "binding.gyp"
        assert args[2] == "-Dfoo=1"
        assert args[3:5] == ["-f", "make"]
        assert args[-5:] == [
            "--depth=.",
            "--no-parallel",
            "--generator-output",
            "build",
            "-Goutput_dir=.",
        ]
        assert call.kwargs["cwd"] == module_dir

    def test_defines(self, module_dir, linux, runtime, options):
        _, call = run_configure(module_dir, linux, runtime, options)
        values = defines(call.args[1])
        assert values["library"] == "shared_library"
        assert values["visibility"] == "default"
        assert values["node_gyp_dir"] == str(PACKAGE_DIR)
        assert values["module_root_dir"] == str(module_dir)
        assert values["node_engine"] == "v8"
        assert values["node_lib_file"] == str(
            runtime.root_dir / "<(target_arch)" / "node.lib"
        )
        assert "node_exp_file" not in values
        assert "zoslib_include_dir" not in values

    def test_nodedir_lib_file_uses_configuration(
        self, module_dir, linux, runtime, options, tmp_path
    ):
        options.nodedir = str(tmp_path / "headers")
        _, call = run_configure(module_dir, linux, runtime, options)
        assert defines(call.args[1])["node_lib_file"] == str(
            tmp_path / "headers" / "$(Configuration)" / "node.lib"
        )

    def test_node_engine_override(self, module_dir, linux, runtime, options):
        options.node_engine = "chakracore"
        _, call = run_configure(module_dir, linux, runtime, options)
        assert defines(call.args[1])["node_engine"] == "chakracore"

    @pytest.mark.parametrize(
        "argv", [["-f", "ninja"], ["--format", "ninja"], ["--format=ninja"]]
    )
    def test_format_passthrough(self, module_dir, linux, runtime, options, argv):
        _, call = run_configure(module_dir, linux, runtime, options, argv=argv)
        args = call.args[1]
        assert "make" not in args
        assert args[2 : 2 + len(argv)] == argv

    def test_environment(self, module_dir, linux, runtime, options, gyp_dir):
        environ = {"PYTHONPATH": "/existing", "KEEP": "1"}
        _, call = run_configure(
            module_dir, linux, runtime, options, environ=environ
        )
        env = call.kwargs["env"]
        assert env["PYTHON"] == PYTHON
        assert env["PYTHONPATH"] == f"{gyp_dir / 'pylib'}:/existing"
        assert env["KEEP"] == "1"
        # The caller's mapping is left alone
        assert environ == {"PYTHONPATH": "/existing", "KEEP": "1"}


class TestWindows:
    @pytest.fixture
    def vs_finder(self):
        info = VSInfo(
            path=Path("VS2022"),
            version_year=2022,
            version="17.8.34330.188",
            msbuild_path=Path("VS2022") / "MSBuild.exe",
        )
        return MagicMock(return_value=info)

    def test_msvs_environment(self, module_dir, win32, runtime, options, vs_finder):
        options.msvs_version = "2022"
        ctx, call = run_configure(
            module_dir, win32, runtime, options, vs_finder=vs_finder
        )
        vs_finder.assert_called_once()
        assert vs_finder.call_args.args[1] == "2022"
        env = call.kwargs["env"]
        assert env["GYP_MSVS_VERSION"] == "2015"
        assert env["GYP_MSVS_OVERRIDE_PATH"] == "VS2022"
        assert env["PYTHONPATH"].endswith("pylib")

    def test_msvs_format_and_output(
        self, module_dir, win32, runtime, options, vs_finder
    ):
        ctx, call = run_configure(
            module_dir, win32, runtime, options, vs_finder=vs_finder
        )
        args = call.args[1]
        assert args[2:4] == ["-f", "msvs"]
        assert args[args.index("--generator-output") + 1] == str(ctx.build_dir)

    def test_msbuild_recorded(self, module_dir, win32, runtime, options, vs_finder):
        run_configure(module_dir, win32, runtime, options, vs_finder=vs_finder)
        text = (module_dir / "build" / "config.gypi").read_text()
        config = json.loads(text.split("\n", 1)[1])
        assert config["variables"]["msbuild_path"] == str(Path("VS2022") / "MSBuild.exe")

    def test_backslashes_doubled(self, module_dir, win32, runtime, options, vs_finder):
        options.nodedir = "C:\\node"
        _, call = run_configure(
            module_dir, win32, runtime, options, vs_finder=vs_finder
        )
        values = defines(call.args[1])
        lib_file = str(Path("C:\\node") / "$(Configuration)" / "node.lib")
        assert values["node_lib_file"] == lib_file.replace("\\", "\\\\")
        assert values["module_root_dir"] == str(module_dir).replace("\\", "\\\\")

    def test_missing_visual_studio(self, module_dir, win32, runtime, options):
        finder = MagicMock(side_effect=ToolNotFoundError("msbuild"))
        with patch("gypsum.configure.configure.run_process") as run:
            with pytest.raises(ToolNotFoundError):
                configure(
                    options,
                    cwd=module_dir,
                    platform=win32,
                    runtime=runtime,
                    environ={},
                    installer=MagicMock(),
                    python_finder=_python_finder,
                    vs_finder=finder,
                )
        run.assert_not_called()


class TestAix:
    @pytest.fixture
    def aix(self) -> Platform:
        return Platform(os="aix", arch="ppc64")

    def test_exports_file_found(self, module_dir, aix, runtime, options):
        exp = runtime.root_dir / "include" / "node" / "node.exp"
        exp.parent.mkdir(parents=True)
        exp.write_text("")
        ctx, call = run_configure(module_dir, aix, runtime, options)
        assert ctx.exports_file == exp
        assert defines(call.args[1])["node_exp_file"] == str(exp)

    def test_later_candidate(self, module_dir, aix, runtime, options):
        exp = runtime.root_dir / "out" / "Debug" / "node.exp"
        exp.parent.mkdir(parents=True)
        exp.write_text("")
        ctx, _ = run_configure(module_dir, aix, runtime, options)
        assert ctx.exports_file == exp

    def test_exports_file_missing(self, module_dir, aix, runtime, options):
        with patch("gypsum.configure.configure.run_process") as run:
            with pytest.raises(MissingPlatformArtifactError, match="node.exp"):
                configure(
                    options,
                    cwd=module_dir,
                    platform=aix,
                    runtime=runtime,
                    environ={},
                    installer=MagicMock(),
                    python_finder=_python_finder,
                )
        run.assert_not_called()


class TestZos:
    @pytest.fixture
    def os390(self) -> Platform:
        return Platform(os="os390", arch="s390x")

    @staticmethod
    def _runtime(tmp_path: Path, version: str) -> HostRuntime:
        exe = tmp_path / "zruntime" / "bin" / "node"
        exe.parent.mkdir(parents=True)
        exe.write_text("")
        lib = tmp_path / "zruntime" / "lib" / "libnode.x"
        lib.parent.mkdir(parents=True)
        lib.write_text("")
        return HostRuntime(version=version, exec_path=exe)

    def _configure(self, module_dir, os390, runtime, options, environ):
        with patch("gypsum.configure.configure.run_process") as run:
            configure(
                options,
                cwd=module_dir,
                platform=os390,
                runtime=runtime,
                environ=environ,
                installer=MagicMock(),
                python_finder=_python_finder,
            )
        return run

    def test_zoslib_found(self, module_dir, os390, options, tmp_path):
        runtime = self._runtime(tmp_path, "v20.0.0")
        header = runtime.root_dir / "include" / "zoslib" / "zos-base.h"
        header.parent.mkdir(parents=True)
        header.write_text("")
        ctx, call = run_configure(module_dir, os390, runtime, options)
        values = defines(call.args[1])
        assert values["zoslib_include_dir"] == str(header.parent)
        assert values["node_exp_file"] == str(runtime.root_dir / "lib" / "libnode.x")

    def test_missing_zoslib_fails_on_new_runtimes(
        self, module_dir, os390, options, tmp_path
    ):
        runtime = self._runtime(tmp_path, "v16.0.0")
        with pytest.raises(MissingPlatformArtifactError, match="zos-base.h"):
            self._configure(module_dir, os390, runtime, options, {})

    def test_missing_zoslib_tolerated_on_old_runtimes(
        self, module_dir, os390, options, tmp_path
    ):
        runtime = self._runtime(tmp_path, "v14.21.3")
        run = self._configure(module_dir, os390, runtime, options, {})
        run.assert_called_once()
        assert "-Dzoslib_include_dir" not in " ".join(run.call_args.args[1])

    def test_environment_override(self, module_dir, os390, options, tmp_path):
        runtime = self._runtime(tmp_path, "v20.0.0")
        zoslib = tmp_path / "zoslib"
        zoslib.mkdir()
        (zoslib / "zos-base.h").write_text("")
        ctx, call = run_configure(
            module_dir,
            os390,
            runtime,
            options,
            environ={"ZOSLIB_INCLUDES": str(zoslib)},
        )
        assert ctx.zoslib_dir == zoslib

    def test_environment_override_missing(
        self, module_dir, os390, options, tmp_path
    ):
        runtime = self._runtime(tmp_path, "v20.0.0")
        empty = tmp_path / "empty"
        empty.mkdir()
        with pytest.raises(MissingPlatformArtifactError, match="ZOSLIB_INCLUDES"):
            self._configure(
                module_dir, os390, runtime, options, {"ZOSLIB_INCLUDES": str(empty)}
            )


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX path separator")
class TestGeneratorRun:
    """Configure against a stand-in generator, without mocking the spawn."""

    def _configure(self, module_dir, linux, runtime, options):
        return configure(
            options,
            ["-Dextra=1"],
            cwd=module_dir,
            platform=linux,
            runtime=runtime,
            environ={"PATH": "/usr/bin:/bin"},
            installer=MagicMock(),
            python_finder=lambda requested, environ: sys.executable,
        )

    def test_generator_receives_arguments(
        self, module_dir, linux, runtime, options, gyp_dir
    ):
        self._configure(module_dir, linux, runtime, options)
        call = json.loads((module_dir / "gyp_call.json").read_text())
        assert call["argv"][0] == "binding.gyp"
        assert call["argv"][1] == "-Dextra=1"
        assert call["env"]["PYTHON"] == sys.executable
        assert call["env"]["PYTHONPATH"] == str(gyp_dir / "pylib")

    def test_generator_failure(self, module_dir, linux, runtime, options, gyp_dir):
        (gyp_dir / "gyp_main.py").write_text("import sys\nsys.exit(3)\n")
        with pytest.raises(ProcessError) as exc_info:
            self._configure(module_dir, linux, runtime, options)
        assert exc_info.value.returncode == 3
        assert "failed with exit code: 3" in str(exc_info.value)

    def test_generator_missing(self, module_dir, linux, runtime, options, tmp_path):
        options.gyp_dir = str(tmp_path / "nowhere")
        with pytest.raises(ToolNotFoundError, match="gyp_main.py"):
            self._configure(module_dir, linux, runtime, options)
