"""
Profile — patch policy and target descriptor.

The profile holds every opinion the pipeline has about *what* to patch
and *how* to build, so that the core matcher, patcher and verifier stay
policy-free.  Retargeting another board or another upstream release is a
profile change, not a code change.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple


# Files known to hold the large lookup tables (relative to LIBRARY/).
_PICO2_ALLOW_LIST: Tuple[str, ...] = (
    "src/bid32_sin.c",
    "src/bid32_cos.c",
    "src/bid32_tan.c",
    "src/bid64_sin.c",
    "src/bid64_cos.c",
    "src/bid64_tan.c",
    "src/bid128_sin.c",
    "src/bid128_cos.c",
    "src/bid128_tan.c",
    "src/bid_decimal_data.c",
    "src/bid128_2_str_tables.c",
    "src/bid_convert_data.c",
)

_PICO2_TARGET_FLAGS: Tuple[str, ...] = (
    "-mthumb",
    "-march=armv8-m.main+fp+dsp",
    "-mfloat-abi=softfp",
    "-mfpu=fpv5-sp-d16",
    "-mcmse",
    "-DARM",
    "-DPICO2",
    "-DBID_THREAD=",
    "-fdata-sections",
    "-ffunction-sections",
)

# Upstream casts away const in a few helpers; keep these as warnings.
_VERIFY_WARNING_FLAGS: Tuple[str, ...] = ("-Wall", "-Wextra", "-Wcast-qual")

_PICO2_MAKE_VARS: Tuple[Tuple[str, str], ...] = (
    ("CC_NAME", "gcc"),
    ("CALL_BY_REF", "1"),
    ("GLOBAL_RND", "1"),
    ("GLOBAL_FLAGS", "1"),
    ("UNCHANGED_BINARY_FLAGS", "0"),
    ("THREAD", "0"),
    ("_HOST_OS", "Linux"),
)


@dataclass(frozen=True)
class Profile:
    """Immutable patch/build/verify policy for one target."""

    profile_id: str

    # ── Patch policy ─────────────────────────────────────────────────
    allow_list: Tuple[str, ...] = ()
    scan_dir: str = "src"
    scan_glob: str = "*.c"
    # Paths excluded from the fallback scan (arrays that must stay mutable).
    deny_list: Tuple[str, ...] = ()
    backup_suffix: str = ".backup"
    annotate_preexisting_const: bool = False

    # ── Verification ─────────────────────────────────────────────────
    check_section: str = ".rodata.constcheck"
    writable_flag: str = "W"

    # ── Build ────────────────────────────────────────────────────────
    target_flags: Tuple[str, ...] = ()
    verify_warning_flags: Tuple[str, ...] = ()
    make_vars: Tuple[Tuple[str, str], ...] = ()
    make_target: str = "lib"
    built_archive: str = "libbid.a"

    # Free-form notes surfaced in reports
    notes: Dict[str, str] = field(default_factory=dict)

    @property
    def annotation(self) -> str:
        """The attribute tag appended to promoted declarations."""
        return f'__attribute__((section("{self.check_section}")))'

    @property
    def marker(self) -> str:
        """Substring whose presence means a line is already annotated."""
        return self.check_section.lstrip(".")

    def cflags(self, verify: bool) -> Tuple[str, ...]:
        if verify:
            return self.target_flags + self.verify_warning_flags
        return self.target_flags

    @classmethod
    def pico2(cls) -> "Profile":
        """RP2350 / Cortex-M33 profile for IntelRDFPMathLib20U2."""
        return cls(
            profile_id="rp2350-cortex-m33-bid",
            allow_list=_PICO2_ALLOW_LIST,
            target_flags=_PICO2_TARGET_FLAGS,
            verify_warning_flags=_VERIFY_WARNING_FLAGS,
            make_vars=_PICO2_MAKE_VARS,
            notes={
                "fallback_scan": (
                    "Any src/*.c with an unqualified static array is patched; "
                    "deliberately mutable arrays must be listed in deny_list."
                ),
            },
        )
