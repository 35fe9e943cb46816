"""
Build invocation — drive the upstream makefile with the target toolchain.

Handles:
- Toolchain discovery (compiler, archiver, section inspection tool)
- Build tree preparation (copy of the pristine upstream tree)
- ``make clean`` + ``make lib`` with target flags injected via CC
- Artifact discovery and copy to the deterministic output name

The upstream build is opaque: success is observed only through the
existence of the archive it is supposed to produce.
"""
from __future__ import annotations

import hashlib
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from rodata_guard.config import Settings
from rodata_guard.errors import BuildFailure, MissingSourceError, ToolchainError
from rodata_guard.policy.profile import Profile

logger = logging.getLogger(__name__)

_LOG_TAIL_LINES = 40


@dataclass(frozen=True)
class Toolchain:
    """Resolved program names for one pipeline run."""

    cc: str
    ar: str
    objdump: str
    readelf: Optional[str] = None


@dataclass(frozen=True)
class BuildArtifact:
    """The static archive produced by the build."""

    path: str
    size_bytes: int
    sha256: str


def _run(cmd: List[str], cwd: Optional[Path] = None, timeout: int = 60) -> Tuple[str, str, int]:
    """Execute *cmd* and return (stdout, stderr, exit_code)."""
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            timeout=timeout,
            text=True,
        )
        return result.stdout, result.stderr, result.returncode
    except subprocess.TimeoutExpired:
        return "", f"Command timed out after {timeout}s", -1
    except OSError as e:
        return "", str(e), -1


def _first_line(text: str) -> str:
    lines = text.strip().splitlines()
    return lines[0] if lines else "unknown"


def _tail(text: str, n: int = _LOG_TAIL_LINES) -> str:
    return "\n".join(text.splitlines()[-n:])


def find_readelf(settings: Settings) -> str:
    """Prefer the cross readelf, fall back to the host one."""
    for candidate in (settings.tool("readelf"), "readelf"):
        if shutil.which(candidate):
            return candidate
    raise ToolchainError(
        "readelf", "Install binutils or arm-none-eabi-binutils."
    )


def discover_toolchain(settings: Settings) -> Toolchain:
    """
    Resolve the programs the pipeline needs.

    Raises
    ------
    ToolchainError
        If the cross compiler is missing, or verification with the
        readelf backend is requested and no readelf exists.
    """
    cc = settings.tool("gcc")
    if shutil.which(cc) is None:
        raise ToolchainError(
            cc, "On Ubuntu/Debian: sudo apt install gcc-arm-none-eabi"
        )

    readelf = None
    if settings.VERIFY_CONST and settings.SECTION_BACKEND == "readelf":
        readelf = find_readelf(settings)

    return Toolchain(
        cc=cc,
        ar=settings.tool("ar"),
        objdump=settings.tool("objdump"),
        readelf=readelf,
    )


def compiler_version(toolchain: Toolchain) -> str:
    stdout, _, _ = _run([toolchain.cc, "--version"], timeout=10)
    return _first_line(stdout)


def prepare_tree(settings: Settings) -> Path:
    """
    Copy the upstream tree into the build directory (once) and return the
    LIBRARY directory the makefile runs in.

    Raises
    ------
    MissingSourceError
        If the pristine upstream tree is not present.
    BuildFailure
        If the tree cannot be copied into the build directory.
    """
    source = settings.source_root
    if not source.is_dir():
        raise MissingSourceError(str(source))

    copy = settings.build_root / settings.INTEL_LIB_VERSION
    if not copy.exists():
        logger.info("Copying upstream sources into %s", settings.build_root)
        try:
            settings.build_root.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, copy)
        except OSError as e:
            raise BuildFailure(f"Could not copy {source} into {settings.build_root}: {e}")
    else:
        logger.info("Reusing existing build copy %s", copy)

    library_dir = settings.library_dir
    if not library_dir.is_dir():
        raise MissingSourceError(str(library_dir))
    return library_dir


def make_command(toolchain: Toolchain, profile: Profile, verify: bool) -> List[str]:
    """The ``make`` invocation for the upstream library."""
    cc = " ".join((toolchain.cc,) + profile.cflags(verify))
    cmd = [
        "make",
        f"CC={cc}",
        f"AR={toolchain.ar}",
        f"AR_CMD={toolchain.ar} rv",
    ]
    cmd.extend(f"{k}={v}" for k, v in profile.make_vars)
    cmd.append(profile.make_target)
    return cmd


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def invoke_build(
    library_dir: Path,
    toolchain: Toolchain,
    profile: Profile,
    settings: Settings,
) -> BuildArtifact:
    """
    Clean, build, and copy the archive to ``settings.output_lib_path``.

    Raises
    ------
    BuildFailure
        If ``make`` fails, the expected archive does not exist afterwards,
        or it cannot be copied to the output name.
    """
    verify = settings.VERIFY_CONST

    # Previous objects would mask a broken rebuild; failure here is fine.
    _run(["make", "clean"], cwd=library_dir, timeout=settings.BUILD_TIMEOUT)

    cmd = make_command(toolchain, profile, verify)
    logger.info("Building with: %s", " ".join(cmd))
    stdout, stderr, code = _run(cmd, cwd=library_dir, timeout=settings.BUILD_TIMEOUT)
    if code != 0:
        raise BuildFailure(
            f"Build failed - make {profile.make_target} exited with code {code}",
            log_tail=_tail(stderr or stdout),
        )

    built = library_dir / profile.built_archive
    if not built.is_file():
        raise BuildFailure(
            f"Build failed - {profile.built_archive} not found (make exit code {code})",
            log_tail=_tail(stderr or stdout),
        )

    output = settings.output_lib_path
    try:
        shutil.copyfile(built, output)
    except OSError as e:
        raise BuildFailure(f"Could not copy {built} to {output}: {e}")
    return BuildArtifact(
        path=str(output),
        size_bytes=output.stat().st_size,
        sha256=sha256_file(output),
    )


def describe_architecture(archive: Path, toolchain: Toolchain, timeout: int = 60) -> str:
    """First ``architecture:`` line from ``objdump -f``, best-effort."""
    stdout, _, code = _run([toolchain.objdump, "-f", str(archive)], timeout=timeout)
    if code != 0:
        return "unknown"
    for line in stdout.splitlines():
        if "architecture" in line:
            return line.strip()
    return "unknown"


def human_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "K", "M"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}G"
