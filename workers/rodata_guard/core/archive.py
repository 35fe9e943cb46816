"""
Archive extraction — unpack a static archive into a disposable directory.

The archive is copied into a fresh temporary directory and extracted
there with the archiver, so the original file is never touched.  The
directory is removed when the context exits, whatever happens inside.
"""
from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List

from rodata_guard.errors import BuildFailure, ToolError

logger = logging.getLogger(__name__)


def _ar_extract(ar: str, archive: Path, cwd: Path, timeout: int) -> None:
    cmd = [ar, "x", archive.name]
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise ToolError(cmd, -1, f"timed out after {timeout}s")
    except OSError as e:
        raise ToolError(cmd, -1, str(e))
    if result.returncode != 0:
        raise ToolError(cmd, result.returncode, result.stderr)


@contextmanager
def extracted_members(
    archive: Path,
    ar: str = "ar",
    timeout: int = 60,
) -> Iterator[List[Path]]:
    """
    Yield the object members of *archive*, sorted by name, extracted into
    a scratch directory that is deleted on exit.

    Raises
    ------
    BuildFailure
        If *archive* does not exist.
    ToolError
        If the archive cannot be copied or the archiver fails.
    """
    if not archive.is_file():
        raise BuildFailure(f"Archive not found: {archive}")

    with tempfile.TemporaryDirectory(prefix="rodata_guard_") as tmp:
        scratch = Path(tmp)
        local = scratch / archive.name
        try:
            shutil.copyfile(archive, local)
        except OSError as e:
            raise ToolError(["cp", str(archive), str(local)], -1, str(e))
        _ar_extract(ar, local, scratch, timeout)
        local.unlink()

        members = sorted(scratch.glob("*.o"))
        logger.debug("Extracted %d member(s) from %s into %s", len(members), archive, scratch)
        yield members
