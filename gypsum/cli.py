# SPDX-License-Identifier: MIT
"""Command-line interface for gypsum."""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
from pathlib import Path

from gypsum.build.build import build
from gypsum.configure.configure import BUILD_DIR, configure
from gypsum.configure.platform import get_platform
from gypsum.configure.release import detect_host_runtime, process_release
from gypsum.core.errors import GypsumError, InvalidVersionError
from gypsum.core.options import GypOptions
from gypsum.install import install, list_installed

# Set up logging
logger = logging.getLogger("gypsum")


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
        fmt = "%(levelname)s: %(name)s: %(message)s"
    elif verbose:
        level = logging.INFO
        fmt = "%(levelname)s: %(message)s"
    else:
        level = logging.WARNING
        fmt = "%(levelname)s: %(message)s"

    logging.basicConfig(level=level, format=fmt)


def options_from_args(args: argparse.Namespace) -> GypOptions:
    """Collect option values from parsed arguments, with env fallbacks."""
    return GypOptions.from_env(
        nodedir=getattr(args, "nodedir", None),
        target=getattr(args, "target", None),
        tarball=getattr(args, "tarball", None),
        dist_url=getattr(args, "dist_url", None),
        devdir=getattr(args, "devdir", None),
        python=getattr(args, "python", None),
        msvs_version=getattr(args, "msvs_version", None),
        node_engine=getattr(args, "node_engine", None),
        make=getattr(args, "make", None),
        jobs=getattr(args, "jobs", None),
        debug=getattr(args, "build_debug", None),
        solution=getattr(args, "solution", None),
        arch=getattr(args, "arch", None),
        gyp_dir=getattr(args, "gyp_dir", None),
        runtime=getattr(args, "runtime", None),
        verbose=args.verbose,
    )


def _run(step: str, func, *func_args, **func_kwargs) -> int:  # type: ignore[no-untyped-def]
    """Run one command step, turning failures into an exit code."""
    try:
        func(*func_args, **func_kwargs)
    except (GypsumError, OSError) as e:
        logger.error("%s failed: %s", step, e)
        return 1
    return 0


def cmd_configure(args: argparse.Namespace) -> int:
    """Generate Makefiles or MSVS project files for the current module."""
    setup_logging(args.verbose, args.log_debug)
    options = options_from_args(args)
    return _run("configure", configure, options, getattr(args, "extra", []))


def cmd_build(args: argparse.Namespace) -> int:
    """Build the module with make or MSBuild."""
    setup_logging(args.verbose, args.log_debug)
    options = options_from_args(args)
    return _run("build", build, options, getattr(args, "targets", []))


def cmd_clean(args: argparse.Namespace) -> int:
    """Remove the build directory."""
    setup_logging(args.verbose, args.log_debug)

    build_dir = Path(BUILD_DIR)
    if build_dir.exists():
        logger.info("Removing build directory: %s", build_dir)
        try:
            shutil.rmtree(build_dir)
        except OSError as e:
            logger.error("clean failed: %s", e)
            return 1
    else:
        logger.info("Build directory does not exist: %s", build_dir)
    return 0


def cmd_rebuild(args: argparse.Namespace) -> int:
    """Clean, configure and build in one go.

    Equivalent to: gypsum clean && gypsum configure && gypsum build
    """
    result = cmd_clean(args)
    if result != 0:
        return result

    options = options_from_args(args)
    result = _run("configure", configure, options, getattr(args, "extra", []))
    if result != 0:
        return result
    return _run("build", build, options)


def cmd_install(args: argparse.Namespace) -> int:
    """Install the headers for a runtime version into the cache."""
    setup_logging(args.verbose, args.log_debug)
    options = options_from_args(args)
    if args.version:
        options.target = args.version

    try:
        runtime = detect_host_runtime(options.runtime)
        release = process_release(
            runtime,
            target=options.target,
            dist_url=options.dist_url,
            arch=options.arch or get_platform().arch,
        )
        if release.semver is None:
            raise InvalidVersionError(release.version)
        path = install(
            release,
            options.devdir_path(),
            ensure=args.ensure and not options.tarball,
            tarball=options.tarball,
        )
    except (GypsumError, OSError) as e:
        logger.error("install failed: %s", e)
        return 1

    print(path)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """Print the runtime versions installed in the headers cache."""
    setup_logging(args.verbose, args.log_debug)
    options = options_from_args(args)
    versions = list_installed(options.devdir_path())
    if not versions:
        print("No runtime development files installed.")
    for version in versions:
        print(f"- {version}")
    return 0


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add common arguments to a parser."""
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument(
        "--log-debug", action="store_true", help="Debug output from gypsum itself"
    )
    parser.add_argument(
        "--devdir", metavar="DIR", help="Headers cache directory (env: GYPSUM_DEVDIR)"
    )
    parser.add_argument(
        "--dist-url", metavar="URL", help="Download mirror for headers tarballs"
    )
    parser.add_argument(
        "--runtime", metavar="EXE", help="Runtime executable (default: node)"
    )
    parser.add_argument("--arch", help="Target architecture (default: host)")


def add_configure_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments for configure-related commands."""
    parser.add_argument(
        "--nodedir", metavar="DIR", help="Compile against headers in DIR"
    )
    parser.add_argument("--target", metavar="VERSION", help="Runtime version to target")
    parser.add_argument("--tarball", metavar="PATH", help="Headers tarball to install")
    parser.add_argument("--python", metavar="EXE", help="Python for the generator")
    parser.add_argument(
        "--msvs-version", metavar="YEAR", help="Visual Studio year or path (Windows)"
    )
    parser.add_argument(
        "--node-engine", metavar="NAME", help="JavaScript engine (default: v8)"
    )
    parser.add_argument(
        "--gyp-dir", metavar="DIR", help="Directory holding gyp_main.py (env: GYP_DIR)"
    )


def add_build_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments for build-related commands."""
    build_type = parser.add_mutually_exclusive_group()
    build_type.add_argument(
        "--debug",
        dest="build_debug",
        action="store_const",
        const=True,
        help="Build the Debug configuration",
    )
    build_type.add_argument(
        "--release",
        dest="build_debug",
        action="store_const",
        const=False,
        help="Build the Release configuration",
    )
    parser.add_argument(
        "-j", "--jobs", help="Parallel jobs, or 'max' for one per core (env: JOBS)"
    )
    parser.add_argument("--make", help="Make program to use (env: MAKE)")
    parser.add_argument("--solution", metavar="SLN", help="Solution file (Windows)")


def _passthrough(unknown: list[str]) -> list[str]:
    """Arguments argparse left unparsed, without the first '--' separator."""
    args = list(unknown)
    if "--" in args:
        args.remove("--")
    return args


def main() -> int:
    """Main entry point for the gypsum CLI."""
    parser = argparse.ArgumentParser(
        prog="gypsum",
        description="Configure and build native runtime addons with gyp.",
        epilog="Run 'gypsum <command> --help' for command-specific help.",
    )
    from gypsum import __version__

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # gypsum configure
    win = get_platform().is_windows
    configure_parser = subparsers.add_parser(
        "configure",
        help="Generate " + ("MSVC project files" if win else "a Makefile"),
        epilog="Arguments not recognized here are passed to gyp.",
        allow_abbrev=False,
    )
    add_common_args(configure_parser)
    add_configure_args(configure_parser)
    configure_parser.add_argument(
        "--debug",
        dest="build_debug",
        action="store_const",
        const=True,
        help="Make Debug the default build type",
    )
    configure_parser.set_defaults(func=cmd_configure, extra=[])

    # gypsum build
    build_parser = subparsers.add_parser(
        "build",
        help="Invoke `" + ("msbuild" if win else "make") + "` to build",
        allow_abbrev=False,
    )
    add_common_args(build_parser)
    add_build_args(build_parser)
    build_parser.add_argument("targets", nargs="*", help="Targets to build")
    build_parser.set_defaults(func=cmd_build)

    # gypsum rebuild
    rebuild_parser = subparsers.add_parser(
        "rebuild",
        help="Run clean, configure and build in succession",
        epilog="Arguments not recognized here are passed to gyp.",
        allow_abbrev=False,
    )
    add_common_args(rebuild_parser)
    add_configure_args(rebuild_parser)
    add_build_args(rebuild_parser)
    rebuild_parser.set_defaults(func=cmd_rebuild, extra=[])

    # gypsum clean
    clean_parser = subparsers.add_parser("clean", help="Remove the build directory")
    add_common_args(clean_parser)
    clean_parser.set_defaults(func=cmd_clean)

    # gypsum install
    install_parser = subparsers.add_parser(
        "install", help="Install runtime headers into the cache"
    )
    add_common_args(install_parser)
    install_parser.add_argument("version", nargs="?", help="Version (default: host)")
    install_parser.add_argument("--tarball", metavar="PATH", help="Headers tarball")
    install_parser.add_argument(
        "--ensure",
        action="store_true",
        help="Skip the install if the version is already present",
    )
    install_parser.set_defaults(func=cmd_install)

    # gypsum list
    list_parser = subparsers.add_parser("list", help="List installed headers")
    add_common_args(list_parser)
    list_parser.set_defaults(func=cmd_list)

    args, unknown = parser.parse_known_args()

    if args.command is None:
        parser.print_help()
        return 1

    # Leftovers go to gyp on configure and become targets on build
    if unknown:
        passthrough = _passthrough(unknown)
        if args.command in ("configure", "rebuild"):
            args.extra = passthrough
        elif args.command == "build":
            args.targets.extend(passthrough)
        else:
            parser.error(f"unrecognized arguments: {' '.join(unknown)}")

    # Run the specified command
    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
