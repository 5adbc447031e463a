# SPDX-License-Identifier: MIT
"""The configure phase.

Configure resolves the toolchain, writes build/config.gypi and runs the
gyp generator to produce Makefiles or MSVS solution files in build/.
Each step is a function over a ConfigureContext; configure() runs them
in order and the first exception aborts the phase.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from gypsum.configure.config_gypi import create_config_gypi
from gypsum.configure.msvs import VSInfo, find_visual_studio
from gypsum.configure.platform import Platform, get_platform
from gypsum.configure.python import find_python
from gypsum.configure.release import (
    HostRuntime,
    ReleaseInfo,
    detect_host_runtime,
    process_release,
)
from gypsum.core.errors import (
    InvalidVersionError,
    MissingPlatformArtifactError,
    ToolNotFoundError,
)
from gypsum.core.options import GypOptions
from gypsum.install import Installer, install
from gypsum.util.paths import expand_home, find_accessible
from gypsum.util.process import run_process

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent.parent
ADDON_GYPI = PACKAGE_DIR / "addon.gypi"
MANIFEST = "binding.gyp"
BUILD_DIR = "build"

# Optional override files looked up in the module directory, in order
CONFIG_FRAGMENTS = ("config.gypi", "common.gypi")


@dataclass
class ConfigureContext:
    """State threaded through the configure steps.

    Attributes:
        options: Caller options.
        argv: Extra generator arguments from the caller.
        platform: Host platform.
        runtime: Host runtime.
        release: Target release.
        cwd: Module directory (holds binding.gyp).
        environ: Environment the generator is spawned with.
        python: Resolved interpreter.
        node_dir: Resolved headers directory.
        vs_info: Visual Studio installation (Windows only).
        configs: Include files for the generator, in order.
        exports_file: Runtime exports file (AIX, os390, os400).
        zoslib_dir: Directory holding zos-base.h (os390).
    """

    options: GypOptions
    argv: list[str]
    platform: Platform
    runtime: HostRuntime
    release: ReleaseInfo
    cwd: Path
    environ: dict[str, str]
    python: str = ""
    node_dir: Path | None = None
    vs_info: VSInfo | None = None
    configs: list[Path] = field(default_factory=list)
    exports_file: Path | None = None
    zoslib_dir: Path | None = None

    @property
    def build_dir(self) -> Path:
        return self.cwd / BUILD_DIR

    @property
    def gyp_dir(self) -> Path:
        if self.options.gyp_dir:
            return Path(expand_home(self.options.gyp_dir))
        return PACKAGE_DIR / "gyp"

    def require_node_dir(self) -> Path:
        if self.node_dir is None:
            raise RuntimeError("headers directory has not been resolved")
        return self.node_dir


def resolve_python(
    ctx: ConfigureContext, finder: Callable[..., str] = find_python
) -> None:
    """Find the interpreter and export it as PYTHON for child processes."""
    ctx.python = finder(ctx.options.python, ctx.environ)
    ctx.environ["PYTHON"] = ctx.python


def resolve_node_dir(ctx: ConfigureContext, installer: Installer = install) -> None:
    """Decide which headers tree to compile against, installing it if needed."""
    options = ctx.options
    if options.nodedir:
        ctx.node_dir = Path(expand_home(options.nodedir))
        logger.info("compiling against specified --nodedir dev files: %s", ctx.node_dir)
        return

    release = ctx.release
    host_version = ctx.runtime.version.removeprefix("v")
    if options.target and release.version != host_version:
        logger.info("compiling against --target version: %s", release.version)
    else:
        logger.info("falling back to host runtime version: %s", release.version)

    if release.semver is None:
        raise InvalidVersionError(release.version)

    if release.version == host_version and not options.tarball:
        # The running runtime ships its own headers
        ctx.node_dir = ctx.runtime.root_dir
        logger.info("using host runtime headers: %s", ctx.node_dir)
        return

    # A tarball always replaces the cached copy; otherwise install only if missing
    ctx.node_dir = installer(
        release,
        options.devdir_path(ctx.environ),
        ensure=not options.tarball,
        tarball=options.tarball,
    )
    logger.info("target version installed: %s", release.version_dir)


def create_build_dir(ctx: ConfigureContext) -> None:
    existed = ctx.build_dir.is_dir()
    logger.info('attempting to create "build" dir: %s', ctx.build_dir)
    ctx.build_dir.mkdir(parents=True, exist_ok=True)
    logger.info('"build" dir needed to be created? %s', "No" if existed else "Yes")


def resolve_toolchain(
    ctx: ConfigureContext, finder: Callable[..., VSInfo] = find_visual_studio
) -> None:
    """On Windows, find Visual Studio and announce it to the generator."""
    if not ctx.platform.is_windows:
        return
    vs_info = finder(ctx.release.semver, ctx.options.msvs_version)
    ctx.vs_info = vs_info
    ctx.environ["GYP_MSVS_VERSION"] = str(vs_info.gyp_version)
    ctx.environ["GYP_MSVS_OVERRIDE_PATH"] = str(vs_info.path)


def write_config(ctx: ConfigureContext) -> None:
    path = create_config_gypi(
        build_dir=ctx.build_dir,
        node_dir=ctx.require_node_dir(),
        python=ctx.python,
        host_arch=ctx.platform.arch,
        options=ctx.options,
        vs_info=ctx.vs_info,
    )
    ctx.configs.append(path)


def find_config_fragments(directory: Path) -> list[Path]:
    """Return the override .gypi files present in directory, in priority order.

    A missing file is skipped; any other stat failure propagates.
    """
    found = []
    for name in CONFIG_FRAGMENTS:
        path = Path(os.path.abspath(directory / name))
        logger.debug("checking for gypi file: %s", path)
        try:
            path.stat()
        except FileNotFoundError:
            continue
        logger.info("found gypi file %s", path)
        found.append(path)
    return found


def find_exports_file(ctx: ConfigureContext) -> None:
    """Locate the runtime exports file that addons link against on AIX and z/OS."""
    traits = ctx.platform.traits
    if not traits.needs_exports_file:
        return
    root = ctx.runtime.root_dir
    found = find_accessible(root, traits.exports_files(), label="find exports file")
    if found is None:
        logger.error("Could not find exports file")
        raise MissingPlatformArtifactError(
            f"Could not find node.{traits.exports_ext} file in {root}"
        )
    logger.info("Found exports file: %s", found)
    ctx.exports_file = found


def find_zoslib_dir(ctx: ConfigureContext) -> None:
    """Locate zoslib's zos-base.h on z/OS.

    ZOSLIB_INCLUDES overrides the search. Runtimes before the first one
    that ships zoslib may build without it.
    """
    traits = ctx.platform.traits
    if not traits.needs_zoslib:
        return
    label = "find zoslib's zos-base.h"
    root = ctx.runtime.root_dir
    override = ctx.environ.get("ZOSLIB_INCLUDES")
    if override:
        found = find_accessible(override, ["zos-base.h"], label=label)
        msg = (
            "Could not find zos-base.h file in the directory set in "
            f"ZOSLIB_INCLUDES environment variable: {override}; set it to the "
            f"correct path, or unset it to search {root}"
        )
    else:
        found = find_accessible(root, traits.zoslib_candidates, label=label)
        msg = (
            f"Could not find any of {','.join(traits.zoslib_candidates)} in "
            f"directory {root}; set environment variable ZOSLIB_INCLUDES to the "
            "path that contains zos-base.h"
        )

    if found is not None:
        ctx.zoslib_dir = found.parent
        logger.info("Found zoslib's zos-base.h in: %s", ctx.zoslib_dir)
        return

    semver = ctx.release.semver
    if semver is not None and semver.major >= (traits.zoslib_min_major or 0):
        logger.error(msg)
        raise MissingPlatformArtifactError(msg)
    logger.warning(msg)


def _has_format(argv: Sequence[str]) -> bool:
    return any(a in ("-f", "--format") or a.startswith("--format=") for a in argv)


def _escape(path: str, platform: Platform) -> str:
    # Cygwin shells eat single backslashes in generator defines
    return path.replace("\\", "\\\\") if platform.is_windows else path


def gyp_args(ctx: ConfigureContext) -> list[str]:
    """Assemble the generator command line (excluding the interpreter)."""
    platform = ctx.platform
    node_dir = ctx.require_node_dir()
    args = list(ctx.argv)

    if not _has_format(args):
        logger.info(
            'gyp format was not specified; forcing "%s"', platform.traits.gyp_format
        )
        args.extend(["-f", platform.traits.gyp_format])

    common_gypi = node_dir / "include" / "node" / "common.gypi"
    if not common_gypi.exists():
        common_gypi = node_dir / "common.gypi"

    for config in [*ctx.configs, ADDON_GYPI, common_gypi]:
        args.extend(["-I", str(config)])

    lib_subdir = "$(Configuration)" if ctx.options.nodedir else "<(target_arch)"
    node_lib_file = str(node_dir / lib_subdir / f"{ctx.release.name}.lib")

    args.append("-Dlibrary=shared_library")
    args.append("-Dvisibility=default")
    args.append(f"-Dnode_root_dir={node_dir}")
    if ctx.exports_file is not None:
        args.append(f"-Dnode_exp_file={ctx.exports_file}")
    if ctx.zoslib_dir is not None:
        args.append(f"-Dzoslib_include_dir={ctx.zoslib_dir}")
    args.append(f"-Dnode_gyp_dir={PACKAGE_DIR}")
    args.append(f"-Dnode_lib_file={_escape(node_lib_file, platform)}")
    args.append(f"-Dmodule_root_dir={_escape(str(ctx.cwd), platform)}")
    args.append(f"-Dnode_engine={ctx.options.node_engine or ctx.runtime.engine}")
    args.append("--depth=.")
    args.append("--no-parallel")

    # Windows project files need an absolute output directory
    output_dir = str(ctx.build_dir) if platform.is_windows else BUILD_DIR
    args.extend(["--generator-output", output_dir])
    args.append("-Goutput_dir=.")

    # gyp takes the script and manifest positionally, ahead of all flags
    return [str(ctx.gyp_dir / "gyp_main.py"), MANIFEST, *args]


def extend_pythonpath(ctx: ConfigureContext) -> None:
    """Make the generator import the gyp library shipped alongside it."""
    paths = [str(ctx.gyp_dir / "pylib")]
    if ctx.environ.get("PYTHONPATH"):
        paths.append(ctx.environ["PYTHONPATH"])
    ctx.environ["PYTHONPATH"] = ctx.platform.path_sep.join(paths)


def run_gyp(ctx: ConfigureContext, args: Sequence[str]) -> None:
    script = ctx.gyp_dir / "gyp_main.py"
    if not script.is_file():
        raise ToolNotFoundError(
            "gyp",
            f"Could not find the gyp generator at {script}. "
            "Set --gyp-dir or the GYP_DIR environment variable.",
        )
    run_process(ctx.python, args, env=ctx.environ, cwd=ctx.cwd)


def configure(
    options: GypOptions,
    argv: Sequence[str] = (),
    *,
    cwd: Path | None = None,
    platform: Platform | None = None,
    runtime: HostRuntime | None = None,
    environ: Mapping[str, str] | None = None,
    installer: Installer = install,
    python_finder: Callable[..., str] = find_python,
    vs_finder: Callable[..., VSInfo] = find_visual_studio,
) -> ConfigureContext:
    """Generate native build files for the module in cwd.

    Args:
        options: Caller options.
        argv: Extra arguments passed through to the generator.
        cwd: Module directory (default: current directory).
        platform: Host platform (default: detected).
        runtime: Host runtime (default: detected).
        environ: Base environment for the generator (default: os.environ).
        installer: Headers install collaborator.
        python_finder: Interpreter discovery collaborator.
        vs_finder: Visual Studio discovery collaborator.

    Returns:
        The final context, for callers that want the resolved values.

    Raises:
        GypsumError: If any step fails.
        OSError: On filesystem errors.
    """
    platform = platform or get_platform()
    runtime = runtime or detect_host_runtime(options.runtime)
    ctx = ConfigureContext(
        options=options,
        argv=list(argv),
        platform=platform,
        runtime=runtime,
        release=process_release(
            runtime,
            target=options.target,
            dist_url=options.dist_url,
            arch=options.arch or platform.arch,
        ),
        cwd=(cwd or Path.cwd()).absolute(),
        environ=dict(os.environ if environ is None else environ),
    )

    resolve_python(ctx, python_finder)
    resolve_node_dir(ctx, installer)
    create_build_dir(ctx)
    resolve_toolchain(ctx, vs_finder)
    write_config(ctx)
    ctx.configs.extend(find_config_fragments(ctx.cwd))
    find_exports_file(ctx)
    find_zoslib_dir(ctx)
    args = gyp_args(ctx)
    extend_pythonpath(ctx)
    run_gyp(ctx, args)
    return ctx
