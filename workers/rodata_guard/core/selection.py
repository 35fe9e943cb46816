"""
File selection — which sources the patch engine touches.

Order: the profile's allow-list first (reviewed, deterministic coverage of
the known table files), then any other ``*.c`` under the scan directory
holding at least one unqualified static array.  The fallback scan can
promote an array that upstream meant to be mutable; such files belong in
the profile's deny-list.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Set

from rodata_guard.core.matcher import contains_promotable
from rodata_guard.core.patcher import read_source
from rodata_guard.policy.profile import Profile

logger = logging.getLogger(__name__)


def _key(path: Path) -> str:
    return os.path.normpath(str(path))


def scan_candidates(library_dir: Path, profile: Profile) -> List[Path]:
    """Sorted list of scan-dir sources containing a promotable declaration."""
    scan_root = library_dir / profile.scan_dir
    if not scan_root.is_dir():
        logger.warning("Scan directory missing: %s", scan_root)
        return []

    found: List[Path] = []
    for path in sorted(scan_root.rglob(profile.scan_glob)):
        if not path.is_file():
            continue
        if contains_promotable(read_source(path).splitlines()):
            found.append(path)
    return found


def select_files(library_dir: Path, profile: Profile) -> List[Path]:
    """
    Ordered, duplicate-free candidate list rooted at *library_dir*.

    Allow-listed paths are kept even if missing on disk; the patch engine
    reports them as skipped.
    """
    selected: List[Path] = []
    seen: Set[str] = set()

    for rel in profile.allow_list:
        path = library_dir / rel
        key = _key(path)
        if key in seen:
            continue
        seen.add(key)
        selected.append(path)

    denied = {_key(library_dir / rel) for rel in profile.deny_list}

    extra = 0
    for path in scan_candidates(library_dir, profile):
        key = _key(path)
        if key in seen:
            continue
        if key in denied:
            logger.info("  Not patching %s (deny-listed)", path)
            continue
        seen.add(key)
        selected.append(path)
        extra += 1

    logger.info(
        "Selected %d file(s): %d allow-listed, %d from scan",
        len(selected), len(selected) - extra, extra,
    )
    return selected
