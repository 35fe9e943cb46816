"""
Errors — pipeline exception taxonomy.

Fatal errors carry the process exit code the CLI terminates with.
``PatchSkip`` is file-local: the patch engine absorbs and logs it.
``VerificationWarning`` is issued through :mod:`warnings` when an archive
holds no annotated sections; the CLI routes it into logging.
"""
from __future__ import annotations

from typing import List, Tuple


class RodataGuardError(Exception):
    """Base class for every pipeline error."""

    exit_code: int = 1


class ToolchainError(RodataGuardError):
    """A required toolchain program (compiler, archiver, readelf) is missing."""

    exit_code = 2

    def __init__(self, tool: str, hint: str = ""):
        self.tool = tool
        self.hint = hint
        msg = f"{tool} not found"
        if hint:
            msg = f"{msg}. {hint}"
        super().__init__(msg)


class MissingSourceError(RodataGuardError):
    """The upstream library source tree is absent."""

    exit_code = 3

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Upstream source tree not found: {path}")


class BuildFailure(RodataGuardError):
    """The build step failed or did not produce the expected archive."""

    exit_code = 4

    def __init__(self, message: str, log_tail: str = ""):
        self.log_tail = log_tail
        super().__init__(message)


class VerificationViolation(RodataGuardError):
    """At least one annotated section was emitted writable."""

    exit_code = 5

    def __init__(self, offenders: List[Tuple[str, str]]):
        self.offenders = list(offenders)
        super().__init__(
            f"Found writable sections for const-annotated arrays "
            f"({len(self.offenders)} issue(s))"
        )


class ToolError(RodataGuardError):
    """An archiver or section-inspection subprocess failed."""

    exit_code = 6

    def __init__(self, cmd: List[str], returncode: int, stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"{' '.join(self.cmd)} exited with {returncode}: {stderr.strip()}"
        )


class PatchSkip(Exception):
    """An individual candidate file could not be patched (non-fatal)."""

    def __init__(self, path: str, reason: str = "file not found"):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class VerificationWarning(UserWarning):
    """No annotated sections were found in the archive (non-fatal)."""
