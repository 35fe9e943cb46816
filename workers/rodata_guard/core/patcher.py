"""
Patch engine — const-promote static arrays in place, with backups.

For every candidate file:
  1. Read the current content.
  2. Rewrite each promotable ``static T name[N]`` to ``static const``.
  3. In annotation mode, append the section attribute after the bracket
     unless the line already carries the marker.
  4. If anything changed, back up the pre-modification content
     (first write wins) and write the patched text back.

Running the engine twice over the same tree is a no-op the second time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from rodata_guard.core.matcher import match_declaration, promoted_declaration_end
from rodata_guard.errors import PatchSkip
from rodata_guard.policy.profile import Profile

logger = logging.getLogger(__name__)

# Upstream sources are not guaranteed to be UTF-8; latin-1 round-trips bytes.
_ENCODING = "latin-1"


class PatchStatus(str, Enum):
    PATCHED = "PATCHED"
    UNCHANGED = "UNCHANGED"
    SKIPPED_MISSING = "SKIPPED_MISSING"


@dataclass
class PatchOutcome:
    """Result of patching a single file."""

    path: str
    status: PatchStatus
    promoted: int = 0
    annotated: int = 0
    backup_written: bool = False


class BackupStore:
    """
    Keyed store of original-content backups (path -> exists?).

    A backup is written at most once per file: an existing backup is the
    pre-patch original from an earlier run and must not be replaced by
    already-patched content.  If the patch rules change between runs the
    existing backup may be stale; delete it by hand to refresh it.
    """

    def __init__(self, suffix: str = ".backup"):
        self.suffix = suffix
        self._known: Dict[Path, bool] = {}

    def backup_path(self, path: Path) -> Path:
        return path.with_name(path.name + self.suffix)

    def exists(self, path: Path) -> bool:
        if path not in self._known:
            self._known[path] = self.backup_path(path).exists()
        return self._known[path]

    def preserve(self, path: Path, original: str) -> bool:
        """Write *original* as the backup of *path* if none exists yet."""
        if self.exists(path):
            logger.debug("Backup already present for %s, keeping it", path)
            return False
        write_source(self.backup_path(path), original)
        self._known[path] = True
        return True


def read_source(path: Path) -> str:
    with open(path, "r", encoding=_ENCODING, newline="") as f:
        return f.read()


def write_source(path: Path, text: str) -> None:
    with open(path, "w", encoding=_ENCODING, newline="") as f:
        f.write(text)


def _split_ending(line: str) -> Tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def patch_line(line: str, profile: Profile, annotate: bool = False) -> Tuple[str, bool, bool]:
    """
    Patch a single line (without its line ending).

    Returns (new_line, promoted, annotated).
    """
    decl = match_declaration(line)
    if decl is not None:
        line = line[:decl.type_start] + "const " + line[decl.type_start:]
        end: Optional[int] = decl.end + len("const ")
        promoted = True
    elif annotate and profile.annotate_preexisting_const:
        end = promoted_declaration_end(line)
        promoted = False
    else:
        return line, False, False

    if not annotate or end is None or profile.marker in line:
        return line, promoted, False

    line = f"{line[:end]} {profile.annotation}{line[end:]}"
    return line, promoted, True


def patch_text(text: str, profile: Profile, annotate: bool = False) -> Tuple[str, int, int]:
    """Patch every line of *text*.  Returns (new_text, promoted, annotated)."""
    out: List[str] = []
    promoted = annotated = 0
    for raw in text.splitlines(keepends=True):
        body, ending = _split_ending(raw)
        new_body, p, a = patch_line(body, profile, annotate)
        promoted += p
        annotated += a
        out.append(new_body + ending)
    return "".join(out), promoted, annotated


def patch_file(
    path: Path,
    profile: Profile,
    annotate: bool = False,
    backups: Optional[BackupStore] = None,
) -> PatchOutcome:
    """
    Patch *path* in place.

    Raises
    ------
    PatchSkip
        If *path* does not exist.
    """
    if not path.is_file():
        raise PatchSkip(str(path))

    if backups is None:
        backups = BackupStore(profile.backup_suffix)

    original = read_source(path)
    patched, promoted, annotated = patch_text(original, profile, annotate)

    if patched == original:
        return PatchOutcome(path=str(path), status=PatchStatus.UNCHANGED)

    backup_written = backups.preserve(path, original)
    write_source(path, patched)

    return PatchOutcome(
        path=str(path),
        status=PatchStatus.PATCHED,
        promoted=promoted,
        annotated=annotated,
        backup_written=backup_written,
    )


def patch_files(
    paths: Iterable[Path],
    profile: Profile,
    annotate: bool = False,
    backups: Optional[BackupStore] = None,
) -> List[PatchOutcome]:
    """Patch every path in order; missing files are logged and skipped."""
    if backups is None:
        backups = BackupStore(profile.backup_suffix)

    outcomes: List[PatchOutcome] = []
    for path in paths:
        try:
            outcome = patch_file(path, profile, annotate, backups)
        except PatchSkip as skip:
            logger.warning("Skipping %s (%s)", skip.path, skip.reason)
            outcomes.append(
                PatchOutcome(path=str(path), status=PatchStatus.SKIPPED_MISSING)
            )
            continue

        if outcome.status == PatchStatus.PATCHED:
            logger.info(
                "  Patched: %s (const=%d, annotated=%d)",
                path, outcome.promoted, outcome.annotated,
            )
        else:
            logger.debug("  Unchanged: %s", path)
        outcomes.append(outcome)
    return outcomes
