"""
Writer — serialize pipeline outputs to JSON files.

Filesystem layout:
    <report_dir>/patch_report.json
    <report_dir>/verify_report.json   (verify mode only)
"""
import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from rodata_guard.io.schema import PatchReport, VerifyReport


def _dump(model: BaseModel, path: Path) -> None:
    path.write_text(
        json.dumps(
            model.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
        )
        + "\n"
    )


def write_outputs(
    patch: PatchReport,
    verify: Optional[VerifyReport],
    output_dir: Path,
) -> Path:
    """
    Write patch_report.json (and verify_report.json if given) into
    *output_dir*.

    Creates *output_dir* if it does not exist.
    Returns the output directory path.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    _dump(patch, output_dir / "patch_report.json")
    if verify is not None:
        _dump(verify, output_dir / "verify_report.json")

    return output_dir
