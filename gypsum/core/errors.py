# SPDX-License-Identifier: MIT
"""Custom exceptions for gypsum.

All gypsum exceptions inherit from GypsumError. Every failure in the
configure and build phases is terminal: the first error aborts the
remaining steps of that phase.
"""

from __future__ import annotations


class GypsumError(Exception):
    """Base class for all gypsum exceptions.

    Attributes:
        message: The error message.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MissingPrerequisiteError(GypsumError):
    """A phase was run without the artifacts of an earlier phase.

    Raised when "build" is invoked against a build directory that
    has no config.gypi from a prior "configure".
    """


class ToolNotFoundError(GypsumError):
    """Required tool was not found.

    Attributes:
        tool: The name of the tool that was not found.
    """

    def __init__(self, tool: str, message: str | None = None) -> None:
        self.tool = tool
        super().__init__(message or f"tool not found: {tool}")


class InvalidVersionError(GypsumError):
    """A version string could not be parsed as a semantic version.

    Attributes:
        version: The offending version string.
    """

    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"Invalid version number: {version}")


class MissingPlatformArtifactError(GypsumError):
    """A file the platform requires for linking was not found.

    Raised on AIX, os400 and z/OS when the runtime exports file or the
    zoslib header directory cannot be located.
    """


class ProcessError(GypsumError):
    """A spawned generator or build tool did not exit cleanly.

    Attributes:
        command: The command that was run.
        returncode: Exit code, or None when the process was killed.
        signal: Name of the terminating signal, if any.
    """

    def __init__(
        self,
        command: str,
        returncode: int | None = None,
        signal: str | None = None,
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.signal = signal
        if signal is not None:
            message = f"`{command}` got signal: {signal}"
        else:
            message = f"`{command}` failed with exit code: {returncode}"
        super().__init__(message)


class InvalidArtifactError(GypsumError):
    """A file gypsum reads back is malformed.

    Raised for a corrupt build/config.gypi or an unreadable headers
    tarball.

    Attributes:
        path: The offending file.
    """

    def __init__(self, path: object, detail: str) -> None:
        self.path = path
        super().__init__(f"{path}: {detail}")
