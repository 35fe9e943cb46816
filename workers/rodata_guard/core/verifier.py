"""
Archive section verifier — did the const tables land read-only?

Extracts every member of the archive into a scratch directory, reads
each member's section headers, and hands the records to the verdict
policy.  Every member is inspected before a verdict is formed, so a
failing report lists all offenders, not just the first.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from rodata_guard.core.archive import extracted_members
from rodata_guard.core.sections import ElfToolsInspector, SectionInspector, SectionRecord
from rodata_guard.io.schema import VerificationResult
from rodata_guard.policy.profile import Profile
from rodata_guard.policy.verdict import aggregate

logger = logging.getLogger(__name__)


def verify_archive(
    archive: Path,
    profile: Profile,
    ar: str = "ar",
    inspector: Optional[SectionInspector] = None,
    timeout: int = 60,
) -> VerificationResult:
    """
    Inspect *archive* for writable ``profile.check_section`` sections.

    Raises
    ------
    BuildFailure
        If *archive* does not exist.
    ToolError
        If extraction or inspection fails.  The scratch directory is
        removed in that case too.
    """
    if inspector is None:
        inspector = ElfToolsInspector()

    records: List[SectionRecord] = []
    with extracted_members(archive, ar=ar, timeout=timeout) as members:
        for member in members:
            for rec in inspector.inspect(member):
                if rec.name == profile.check_section:
                    logger.debug("  %s: %s flags=%s", rec.obj, rec.name, rec.flags)
                    records.append(rec)
        n_members = len(members)

    return aggregate(records, profile, objects_scanned=n_members)
