"""
Schema — Pydantic models for pipeline JSON outputs.

Two outputs per run:
  1. patch_report.json  — per-file patch outcomes.
  2. verify_report.json — section verification verdict (verify mode only).

Runtime contract fields (present in every output):
  package_name, tool_version, profile_id, schema_version.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from rodata_guard import PACKAGE_NAME, SCHEMA_VERSION, TOOL_VERSION


# ── Patch phase ──────────────────────────────────────────────────────────────

class PatchEntry(BaseModel):
    path: str
    status: str               # PATCHED | UNCHANGED | SKIPPED_MISSING
    promoted: int = 0
    annotated: int = 0
    backup_written: bool = False


class PatchCounts(BaseModel):
    total: int = 0
    patched: int = 0
    unchanged: int = 0
    skipped: int = 0
    promoted: int = 0
    annotated: int = 0


class PatchReport(BaseModel):
    """patch_report.json"""

    package_name: str = PACKAGE_NAME
    tool_version: str = TOOL_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    library_dir: str
    annotate: bool = False
    profile_notes: Dict[str, str] = Field(default_factory=dict)

    counts: PatchCounts = Field(default_factory=PatchCounts)
    files: List[PatchEntry] = Field(default_factory=list)

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


# ── Verification phase ───────────────────────────────────────────────────────

class SectionViolation(BaseModel):
    """One annotated section that ended up writable."""
    obj: str
    flags: str


class VerificationResult(BaseModel):
    """Aggregated section findings for one archive."""

    section: str
    objects_scanned: int = 0
    found: int = 0             # 1 if any annotated section exists, else 0
    sections_checked: int = 0
    violations: int = 0
    offenders: List[SectionViolation] = Field(default_factory=list)

    verdict: str = "WARN"      # PASS | FAIL | WARN
    messages: List[str] = Field(default_factory=list)


class VerifyReport(BaseModel):
    """verify_report.json"""

    package_name: str = PACKAGE_NAME
    tool_version: str = TOOL_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    archive_path: str
    archive_sha256: str = ""
    archive_size: int = 0
    profile_notes: Dict[str, str] = Field(default_factory=dict)

    result: VerificationResult

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


# ── Whole run ────────────────────────────────────────────────────────────────

class PipelineReport(BaseModel):
    """In-memory summary returned by the runner."""

    state: str                 # NotStarted | Patched | Built | Verified
    patch: Optional[PatchReport] = None
    archive_path: Optional[str] = None
    archive_size: Optional[int] = None
    verify: Optional[VerifyReport] = None
