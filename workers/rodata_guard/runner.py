"""
Pipeline runner — top-level orchestration: upstream tree → patched tree →
archive → verification verdict.

States: NotStarted → Patched → Built → Verified{PASS|FAIL|WARN}.
With verification disabled, Built is terminal.

Every step runs to completion before the next starts; the first fatal
error aborts the run.  Patched files and their backups are left on disk
as they are, for an operator to diff or restore.
"""
from __future__ import annotations

import argparse
import logging
import sys
import warnings
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

from rodata_guard.config import Settings
from rodata_guard.core.build import (
    BuildArtifact,
    Toolchain,
    compiler_version,
    describe_architecture,
    discover_toolchain,
    find_readelf,
    human_size,
    invoke_build,
    prepare_tree,
)
from rodata_guard.core.patcher import BackupStore, PatchOutcome, PatchStatus, patch_files
from rodata_guard.core.sections import ElfToolsInspector, ReadelfInspector, SectionInspector
from rodata_guard.core.selection import select_files
from rodata_guard.core.verifier import verify_archive
from rodata_guard.errors import RodataGuardError, VerificationViolation, VerificationWarning
from rodata_guard.io.schema import (
    PatchCounts,
    PatchEntry,
    PatchReport,
    PipelineReport,
    VerifyReport,
)
from rodata_guard.io.writer import write_outputs
from rodata_guard.policy.profile import Profile
from rodata_guard.policy.verdict import Verdict

logger = logging.getLogger(__name__)

BuildFn = Callable[[Path, Toolchain, Profile, Settings], BuildArtifact]


# ── Conversion helpers ───────────────────────────────────────────────────────

def _patch_report(
    outcomes: List[PatchOutcome],
    library_dir: Path,
    profile: Profile,
    annotate: bool,
) -> PatchReport:
    counts = PatchCounts(total=len(outcomes))
    entries: List[PatchEntry] = []
    for o in outcomes:
        entries.append(PatchEntry(
            path=o.path,
            status=o.status.value,
            promoted=o.promoted,
            annotated=o.annotated,
            backup_written=o.backup_written,
        ))
        if o.status == PatchStatus.PATCHED:
            counts.patched += 1
        elif o.status == PatchStatus.UNCHANGED:
            counts.unchanged += 1
        else:
            counts.skipped += 1
        counts.promoted += o.promoted
        counts.annotated += o.annotated

    return PatchReport(
        profile_id=profile.profile_id,
        library_dir=str(library_dir),
        annotate=annotate,
        profile_notes=dict(profile.notes),
        counts=counts,
        files=entries,
    )


def _make_inspector(settings: Settings, toolchain: Toolchain) -> SectionInspector:
    if settings.SECTION_BACKEND == "readelf":
        readelf = toolchain.readelf or find_readelf(settings)
        return ReadelfInspector(readelf, timeout=settings.TOOL_TIMEOUT)
    return ElfToolsInspector()


# ── Pipeline ─────────────────────────────────────────────────────────────────

def run_pipeline(
    settings: Settings,
    profile: Optional[Profile] = None,
    toolchain: Optional[Toolchain] = None,
    build_fn: Optional[BuildFn] = None,
    inspector: Optional[SectionInspector] = None,
) -> PipelineReport:
    """
    Patch, build and (optionally) verify.

    Parameters
    ----------
    settings : Settings
        Layout, toggles and timeouts.
    profile : Profile, optional
        Patch/build policy.  Defaults to Profile.pico2().
    toolchain : Toolchain, optional
        Pre-resolved toolchain.  Discovered from PATH if None.
    build_fn : callable, optional
        Build collaborator.  Defaults to ``invoke_build``.
    inspector : SectionInspector, optional
        Section inspection backend.  Chosen from settings if None.

    Raises
    ------
    ToolchainError, MissingSourceError, BuildFailure
        Before or during the corresponding step.
    VerificationViolation
        After the full scan, if any annotated section is writable.
    """
    if profile is None:
        profile = Profile.pico2()
    if settings.ANNOTATE_EXISTING_CONST:
        profile = replace(profile, annotate_preexisting_const=True)
    if build_fn is None:
        build_fn = invoke_build
    annotate = settings.VERIFY_CONST

    # ── Step 0: environment ──────────────────────────────────────────
    if toolchain is None:
        toolchain = discover_toolchain(settings)
    library_dir = prepare_tree(settings)

    # ── Step 1: select + patch ───────────────────────────────────────
    logger.info("Applying memory optimization patches...")
    logger.info("- Adding 'const' keyword to static arrays for ROM placement")
    files = select_files(library_dir, profile)
    outcomes = patch_files(
        files, profile, annotate=annotate,
        backups=BackupStore(profile.backup_suffix),
    )
    patch = _patch_report(outcomes, library_dir, profile, annotate)
    report = PipelineReport(state="Patched", patch=patch)
    if settings.REPORT_DIR:
        write_outputs(patch, None, settings.REPORT_DIR)

    # ── Step 2: build (external) ─────────────────────────────────────
    logger.info("Building Intel Decimal Floating-Point Math Library...")
    artifact = build_fn(library_dir, toolchain, profile, settings)
    report.state = "Built"
    report.archive_path = artifact.path
    report.archive_size = artifact.size_bytes

    if not settings.VERIFY_CONST:
        return report

    # ── Step 3: verify ───────────────────────────────────────────────
    logger.info("Verifying that const arrays are in read-only memory...")
    if inspector is None:
        inspector = _make_inspector(settings, toolchain)
    result = verify_archive(
        Path(artifact.path),
        profile,
        ar=toolchain.ar,
        inspector=inspector,
        timeout=settings.TOOL_TIMEOUT,
    )
    verify = VerifyReport(
        profile_id=profile.profile_id,
        archive_path=artifact.path,
        archive_sha256=artifact.sha256,
        archive_size=artifact.size_bytes,
        profile_notes=dict(profile.notes),
        result=result,
    )
    report.state = "Verified"
    report.verify = verify

    if settings.REPORT_DIR:
        write_outputs(patch, verify, settings.REPORT_DIR)

    if result.verdict == Verdict.FAIL.value:
        for msg in result.messages:
            logger.error("  %s", msg)
        raise VerificationViolation([(v.obj, v.flags) for v in result.offenders])

    if result.verdict == Verdict.WARN.value:
        for msg in result.messages:
            warnings.warn(msg, VerificationWarning, stacklevel=2)
    else:
        logger.info(
            "Const write check: OK (%d read-only section(s) verified)",
            result.sections_checked,
        )
    return report


# ── CLI ──────────────────────────────────────────────────────────────────────

def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.verify_const:
        overrides["VERIFY_CONST"] = True
    if args.project_root is not None:
        overrides["PROJECT_ROOT"] = args.project_root
    if args.report_dir is not None:
        overrides["REPORT_DIR"] = args.report_dir
    if args.backend is not None:
        overrides["SECTION_BACKEND"] = args.backend
    if args.annotate_existing:
        overrides["ANNOTATE_EXISTING_CONST"] = True
    return Settings(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for rodata_guard."""
    parser = argparse.ArgumentParser(
        description=(
            "rodata_guard — const-promote Intel RDFP tables for the Pi Pico 2 "
            "and verify they land in read-only sections"
        ),
    )
    parser.add_argument(
        "--verify-const",
        action="store_true",
        help="Annotate promoted arrays and verify their sections (also VERIFY_CONST=1)",
    )
    parser.add_argument(
        "--annotate-existing",
        action="store_true",
        help="In verify mode, also tag arrays that were already static const",
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Directory holding the upstream tree and receiving the library",
    )
    parser.add_argument(
        "--report-dir",
        type=Path,
        default=None,
        help="Directory to write JSON reports",
    )
    parser.add_argument(
        "--backend",
        choices=["elftools", "readelf"],
        default=None,
        help="Section inspection backend",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logging.captureWarnings(True)

    settings = _settings_from_args(args)
    profile = Profile.pico2()

    print("=== Intel Decimal Floating-Point Math Library Builder for Pi Pico 2 ===")
    print("Target: Raspberry Pi Pico 2 (RP2350 Cortex-M33)")

    try:
        toolchain = discover_toolchain(settings)
        print(f"Compiler: {compiler_version(toolchain)}")
        print(f"Flags: {' '.join(profile.cflags(settings.VERIFY_CONST))}")
        if settings.VERIFY_CONST:
            print(
                f"Verification: enabled ({profile.check_section}; "
                "const-cast warnings are not fatal)"
            )
        report = run_pipeline(settings, profile=profile, toolchain=toolchain)
    except RodataGuardError as e:
        logger.error("Error: %s", e)
        log_tail = getattr(e, "log_tail", "")
        if log_tail:
            logger.error("Build log (tail):\n%s", log_tail)
        return e.exit_code

    archive = Path(report.archive_path or settings.output_lib_path)
    print()
    print("=== Build Successful ===")
    print(f"Output library: {archive.name}")
    print(f"Size: {human_size(report.archive_size or 0)}")
    print(f"Architecture: {describe_architecture(archive, toolchain, settings.TOOL_TIMEOUT)}")
    print()
    print("Library ready for use with Pi Pico 2 projects!")
    print(f"Link with: -L. -ldecimal or add {archive.name} to your project")
    return 0


if __name__ == "__main__":
    sys.exit(main())
