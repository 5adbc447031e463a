# SPDX-License-Identifier: MIT
"""The build phase.

Build reads back build/config.gypi, locates make (or MSBuild on
Windows) and runs it once over the files the generator wrote.
"""

from __future__ import annotations

import glob
import logging
import os
import re
import shutil
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from gypsum.configure.config_gypi import CONFIG_NAME, read_config_gypi
from gypsum.configure.configure import BUILD_DIR
from gypsum.configure.platform import Platform, get_platform, msbuild_platform
from gypsum.core.errors import MissingPrerequisiteError, ToolNotFoundError
from gypsum.core.options import GypOptions
from gypsum.util.process import run_process

logger = logging.getLogger(__name__)

BINS_DIR = "node_gyp_bins"
PYTHON_LINK = "python3"


@dataclass(frozen=True)
class BuildConfig:
    """Values read back from build/config.gypi.

    Attributes:
        build_type: 'Release' or 'Debug'.
        arch: Target architecture.
        node_dir: Headers directory.
        python: Interpreter recorded at configure time.
        msbuild_path: MSBuild.exe recorded at configure time (Windows).
        solution: First solution file in build/ (Windows).
    """

    build_type: str
    arch: str
    node_dir: str | None
    python: str | None
    msbuild_path: str | None = None
    solution: Path | None = None


def load_build_config(
    build_dir: Path,
    *,
    platform: Platform,
    debug: bool | None = None,
) -> BuildConfig:
    """Read the configuration written by the configure phase.

    Args:
        build_dir: Build output directory.
        platform: Host platform.
        debug: Explicit debug flag; overrides the configured build type.

    Raises:
        MissingPrerequisiteError: If configure has not been run, or on
            Windows if it produced no solution file.
        InvalidArtifactError: If config.gypi is malformed.
    """
    path = build_dir / CONFIG_NAME
    try:
        config = read_config_gypi(path)
    except FileNotFoundError:
        raise MissingPrerequisiteError(
            "You must run `gypsum configure` first!"
        ) from None

    defaults = config.get("target_defaults", {})
    variables = config.get("variables", {})

    build_type = defaults.get("default_configuration")
    if debug is not None:
        build_type = "Debug" if debug else "Release"
    if not build_type:
        build_type = "Release"

    loaded = BuildConfig(
        build_type=build_type,
        arch=str(variables.get("target_arch", "")),
        node_dir=variables.get("nodedir"),
        python=variables.get("python"),
        msbuild_path=variables.get("msbuild_path"),
        solution=find_solution_file(build_dir) if platform.is_windows else None,
    )
    logger.info("build type %s", loaded.build_type)
    logger.info("architecture %s", loaded.arch)
    logger.info("node dev dir %s", loaded.node_dir)
    logger.info("python %s", loaded.python)
    return loaded


def find_solution_file(build_dir: Path) -> Path:
    """Return the first *.sln in build_dir, in filesystem order."""
    files = glob.glob(os.path.join(glob.escape(str(build_dir)), "*.sln"))
    if not files:
        raise MissingPrerequisiteError(
            'Could not find *.sln file. Did you run "configure"?'
        )
    logger.info("found first Solution file %s", files[0])
    return Path(files[0])


def find_build_tool(
    config: BuildConfig,
    *,
    platform: Platform,
    make: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Resolve the build executable.

    On Windows this is the MSBuild recorded by configure. Elsewhere it is
    the make variant given explicitly, else $MAKE, else the platform's
    default, and it must be on PATH.

    Raises:
        MissingPrerequisiteError: If configure recorded no MSBuild.
        ToolNotFoundError: If make is not on PATH.
    """
    if platform.is_windows:
        if not config.msbuild_path:
            raise MissingPrerequisiteError(
                "MSBuild is not set, please run `gypsum configure`."
            )
        logger.info("using MSBuild: %s", config.msbuild_path)
        return config.msbuild_path

    if environ is None:
        environ = os.environ
    command = make or environ.get("MAKE") or platform.traits.make
    found = shutil.which(command, path=environ.get("PATH"))
    if found is None:
        raise ToolNotFoundError(
            command, f"Can't find `{command}` in PATH. Install it or set --make."
        )
    logger.info("`which` succeeded for `%s` %s", command, found)
    return command


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_jobs(jobs: str | None) -> int | None:
    """Convert a job count option to a number of parallel jobs.

    A positive leading integer is used as is, 'max' (any case) means
    one job per logical core, and anything else means no parallelism.
    """
    if not jobs:
        return None
    match = _LEADING_INT.match(jobs)
    if match is not None and int(match.group(1)) > 0:
        return int(match.group(1))
    if jobs.strip().upper() == "MAX":
        return os.cpu_count() or 1
    return None


def build_args(
    config: BuildConfig,
    targets: Sequence[str],
    *,
    platform: Platform,
    verbose: bool = False,
    jobs: str | None = None,
    solution: str | None = None,
) -> list[str]:
    """Assemble the arguments for one make or MSBuild invocation."""
    if platform.is_windows:
        args = [f"/t:{t}" for t in targets]
    else:
        args = list(targets)

    if not platform.is_windows and verbose:
        args.append("V=1")
    if platform.is_windows and not verbose:
        args.append("/clp:Verbosity=minimal")
    if platform.is_windows:
        args.append("/nologo")

    count = parse_jobs(jobs)
    if platform.is_windows:
        selector = msbuild_platform(config.arch)
        args.append(f"/p:Configuration={config.build_type};Platform={selector}")
        if count is not None:
            args.append(f"/m:{count}")
    else:
        args.append(f"BUILDTYPE={config.build_type}")
        args.extend(["-C", BUILD_DIR])
        if count is not None:
            args.extend(["--jobs", str(count)])

    if platform.is_windows and not any(
        os.path.splitext(a)[1] == ".sln" for a in args
    ):
        chosen = solution or (str(config.solution) if config.solution else None)
        if chosen:
            args.insert(0, chosen)
    return args


@contextmanager
def python_bins(
    build_dir: Path, python: str, environ: Mapping[str, str]
) -> Iterator[dict[str, str]]:
    """Expose the configured interpreter as 'python3' on PATH.

    Yields a copy of environ whose PATH starts with a directory holding
    a python3 symlink. The directory is removed on exit, however the
    body exits. A failure to remove it propagates.
    """
    bins_dir = (build_dir / BINS_DIR).absolute()
    env = dict(environ)
    env["PATH"] = os.pathsep.join(p for p in (str(bins_dir), environ.get("PATH")) if p)
    try:
        bins_dir.mkdir(parents=True, exist_ok=True)
        link = bins_dir / PYTHON_LINK
        link.unlink(missing_ok=True)
        link.symlink_to(python)
        logger.info(
            'created symlink to "%s" in "%s" and added to PATH', python, bins_dir
        )
        yield env
    finally:
        if bins_dir.exists():
            shutil.rmtree(bins_dir)


def build(
    options: GypOptions,
    targets: Sequence[str] = (),
    *,
    cwd: Path | None = None,
    platform: Platform | None = None,
    environ: Mapping[str, str] | None = None,
) -> None:
    """Compile the module using the files written by configure.

    Args:
        options: Caller options (debug, make, jobs, solution, verbose).
        targets: Build targets; all targets if empty.
        cwd: Module directory (default: current directory).
        platform: Host platform (default: detected).
        environ: Base environment for the build tool (default: os.environ).

    Raises:
        GypsumError: If configure has not run, the tool is missing or
            the build fails.
    """
    platform = platform or get_platform()
    cwd = (cwd or Path.cwd()).absolute()
    environ = dict(os.environ if environ is None else environ)
    build_dir = cwd / BUILD_DIR

    config = load_build_config(build_dir, platform=platform, debug=options.debug)
    command = find_build_tool(
        config, platform=platform, make=options.make, environ=environ
    )
    args = build_args(
        config,
        targets,
        platform=platform,
        verbose=options.verbose,
        jobs=options.jobs or environ.get("JOBS"),
        solution=options.solution,
    )

    if platform.is_windows or not config.python:
        run_process(command, args, env=environ, cwd=cwd)
        return

    with python_bins(build_dir, config.python, environ) as env:
        run_process(command, args, env=env, cwd=cwd)
