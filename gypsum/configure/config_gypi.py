# SPDX-License-Identifier: MIT
"""The persisted build configuration, build/config.gypi.

Written once by "configure", read back by "build". The file is a single
comment line followed by JSON, which the generator also accepts as a
Python literal.
"""

from __future__ import annotations

import ast
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gypsum.core.errors import InvalidArtifactError

if TYPE_CHECKING:
    from gypsum.configure.msvs import VSInfo
    from gypsum.core.options import GypOptions

logger = logging.getLogger(__name__)

CONFIG_NAME = "config.gypi"
HEADER = "# Do not edit. File was generated by gypsum's \"configure\" step\n"


def strip_comments(text: str) -> str:
    """Remove '#' comment lines, as found at the top of .gypi files."""
    return "\n".join(
        line for line in text.splitlines() if not line.lstrip().startswith("#")
    )


def load_gypi(path: Path) -> dict[str, Any]:
    """Read a .gypi file written by the runtime's own build (a Python literal)."""
    data = ast.literal_eval(strip_comments(path.read_text(encoding="utf-8")))
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a dictionary")
    return data


def read_config_gypi(path: Path) -> dict[str, Any]:
    """Read a config.gypi written by create_config_gypi.

    The leading comment line is dropped and the rest parsed as JSON.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidArtifactError: If the contents are not a config mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise InvalidArtifactError(path, f"not UTF-8 text: {e}") from e
    if text.startswith("#"):
        _, _, text = text.partition("\n")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidArtifactError(path, f"not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidArtifactError(path, "expected a JSON object")
    for section in ("target_defaults", "variables"):
        if not isinstance(data.get(section, {}), dict):
            raise InvalidArtifactError(path, f"'{section}' must be an object")
    return data


def _base_config(node_dir: Path) -> dict[str, Any]:
    """The headers tree's own config.gypi, or an empty config."""
    path = node_dir / "include" / "node" / CONFIG_NAME
    if not path.is_file():
        logger.debug("no %s in headers tree, starting empty", path)
        return {}
    try:
        config = load_gypi(path)
    except (ValueError, SyntaxError) as e:
        logger.warning("ignoring unreadable %s: %s", path, e)
        return {}
    logger.info("merging %s", path)
    return config


def create_config_gypi(
    *,
    build_dir: Path,
    node_dir: Path,
    python: str,
    host_arch: str,
    options: GypOptions,
    vs_info: VSInfo | None = None,
) -> Path:
    """Write build/config.gypi and return its path.

    Args:
        build_dir: Build output directory (must exist).
        node_dir: Resolved headers directory.
        python: Interpreter the generator runs under.
        host_arch: Architecture used when options.arch is not set.
        options: Caller options (arch and debug are recorded).
        vs_info: Visual Studio installation on Windows.
    """
    config = _base_config(node_dir)
    defaults: dict[str, Any] = config.setdefault("target_defaults", {})
    variables: dict[str, Any] = config.setdefault("variables", {})

    # Compiler flags of the runtime's own build do not apply to addons
    defaults["cflags"] = []
    defaults.pop("include_dirs", None)
    defaults["default_configuration"] = "Debug" if options.debug else "Release"

    variables["nodedir"] = str(node_dir)
    variables["python"] = python
    variables["standalone_static_library"] = 1
    variables["target_arch"] = options.arch or host_arch
    if vs_info is not None:
        variables["msbuild_path"] = str(vs_info.msbuild_path)
        variables["msvs_version"] = str(vs_info.version_year)

    path = build_dir / CONFIG_NAME
    logger.info("writing %s", path)
    with open(path, "w", encoding="utf-8") as f:
        f.write(HEADER)
        json.dump(config, f, indent=2, sort_keys=True)
        f.write("\n")
    return path
