"""
Verdict — PASS / FAIL / WARN decision over collected section records.

Pure aggregation: no IO, no subprocesses.  Ordering of offenders follows
the order of the input records (member enumeration order).
"""
from enum import Enum, unique
from typing import Iterable, List

from rodata_guard.core.sections import SectionRecord
from rodata_guard.io.schema import SectionViolation, VerificationResult
from rodata_guard.policy.profile import Profile


@unique
class Verdict(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARN = "WARN"


def describe_violation(violation: SectionViolation, section: str) -> str:
    return f"Writable {section} in {violation.obj} (flags={violation.flags})"


def aggregate(
    records: Iterable[SectionRecord],
    profile: Profile,
    objects_scanned: int = 0,
) -> VerificationResult:
    """
    Fold section records into a VerificationResult.

    Only records named ``profile.check_section`` count.  Any writable one
    → FAIL.  None at all → WARN (some builds contain no tracked tables).
    """
    section = profile.check_section
    checked = 0
    offenders: List[SectionViolation] = []

    for rec in records:
        if rec.name != section:
            continue
        checked += 1
        if rec.has_flag(profile.writable_flag):
            offenders.append(SectionViolation(obj=rec.obj, flags=rec.flags))

    messages = [describe_violation(v, section) for v in offenders]

    if offenders:
        verdict = Verdict.FAIL
    elif checked == 0:
        verdict = Verdict.WARN
        messages.append(
            f"No {section} sections found. Patch may not have annotated arrays."
        )
    else:
        verdict = Verdict.PASS

    return VerificationResult(
        section=section,
        objects_scanned=objects_scanned,
        found=1 if checked else 0,
        sections_checked=checked,
        violations=len(offenders),
        offenders=offenders,
        verdict=verdict.value,
        messages=messages,
    )
