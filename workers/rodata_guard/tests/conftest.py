"""
Shared pytest fixtures for rodata_guard tests.

Provides:
  - a fake upstream tree laid out like IntelRDFPMathLib20U2/LIBRARY;
  - on-the-fly compilation of tiny C objects with the host gcc and
    archiving with ar, for the section verifier.

Host gcc emits ELF objects whose section flags follow the same rules as
the cross compiler: a const object in a named section gets ``A``, a
mutable one ``WA``.  Tests needing gcc/ar are skipped when they are
missing.
"""
import hashlib
import shutil
import subprocess
import textwrap
from pathlib import Path
from typing import List

import pytest

from rodata_guard.config import Settings
from rodata_guard.core.build import BuildArtifact, Toolchain
from rodata_guard.policy.profile import Profile

SECTION_ATTR = '__attribute__((section(".rodata.constcheck")))'

READONLY_C = textwrap.dedent(f"""\
    const int ro_table[4] {SECTION_ATTR} = {{1, 2, 3, 4}};

    int ro_get(int i) {{
        return ro_table[i];
    }}
""")

# A mutable object forced into the check section: what a cast-away-const
# defeat looks like from the section table's point of view.
WRITABLE_C = textwrap.dedent(f"""\
    int rw_table[4] {SECTION_ATTR} = {{1, 2, 3, 4}};

    void rw_set(int i, int v) {{
        rw_table[i] = v;
    }}
""")

PLAIN_C = textwrap.dedent("""\
    static const int plain_table[4] = {1, 2, 3, 4};

    int plain_get(int i) {
        return plain_table[i];
    }
""")

# Upstream-shaped sources for the fake tree.  Tables are initialised: gcc
# emits an uninitialised object in a named section as writable NOBITS.
SIN_C = textwrap.dedent("""\
    static int freq_table[256] = {1, 2, 3};
    static BID_UINT64 sin_coeffs[] = {
        0x1, 0x2, 0x3
    };
    static const int already_const[4] = {1, 2, 3, 4};

    int bid32_sin_lookup(int i) {
        return freq_table[i] + (int)sin_coeffs[0] + already_const[0];
    }
""")

SCAN_C = textwrap.dedent("""\
    static unsigned_t extra_table[16] = {7};

    int extra_get(int i) {
        return (int)extra_table[i];
    }
""")

NO_ARRAYS_C = textwrap.dedent("""\
    static int counter;

    int next(void) {
        return ++counter;
    }
""")


def _have(*tools: str) -> bool:
    return all(shutil.which(t) is not None for t in tools)


def compile_object(source: str, output: Path) -> Path:
    """Compile C *source* to an object file at *output* with host gcc."""
    src = output.with_suffix(".c")
    src.write_text(source)
    subprocess.run(
        ["gcc", "-O0", "-c", str(src), "-o", str(output)],
        check=True, capture_output=True, timeout=30,
    )
    return output


def make_archive(archive: Path, members: List[Path]) -> Path:
    subprocess.run(
        ["ar", "rcs", str(archive)] + [str(m) for m in members],
        check=True, capture_output=True, timeout=30,
    )
    return archive


def sha256_of(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


@pytest.fixture(scope="session")
def ar_ok():
    """Skip tests if ar is not available."""
    if not _have("ar"):
        pytest.skip("ar not available - install binutils to run these tests")


@pytest.fixture(scope="session")
def gcc_ok(ar_ok):
    """Skip tests if gcc is not available or does not produce ELF objects."""
    if not _have("gcc"):
        pytest.skip("gcc not available - install gcc to run these tests")


@pytest.fixture(scope="session")
def objects_dir(tmp_path_factory, gcc_ok) -> Path:
    """Session-scoped directory with compiled test objects."""
    d = tmp_path_factory.mktemp("rodata_objects")
    obj = compile_object(PLAIN_C, d / "plain.o")
    with open(obj, "rb") as f:
        if f.read(4) != b"\x7fELF":
            pytest.skip("gcc does not produce ELF objects on this host")
    compile_object(READONLY_C, d / "readonly.o")
    compile_object(WRITABLE_C, d / "writable.o")
    return d


@pytest.fixture(scope="session")
def readonly_archive(objects_dir) -> Path:
    return make_archive(
        objects_dir / "libreadonly.a",
        [objects_dir / "plain.o", objects_dir / "readonly.o"],
    )


@pytest.fixture(scope="session")
def writable_archive(objects_dir) -> Path:
    return make_archive(
        objects_dir / "libwritable.a",
        [objects_dir / "readonly.o", objects_dir / "writable.o"],
    )


@pytest.fixture(scope="session")
def plain_archive(objects_dir) -> Path:
    return make_archive(objects_dir / "libplain.a", [objects_dir / "plain.o"])


@pytest.fixture
def profile() -> Profile:
    return Profile.pico2()


@pytest.fixture
def project_root(tmp_path) -> Path:
    """A project root holding a minimal fake upstream tree."""
    src = tmp_path / "IntelRDFPMathLib20U2" / "LIBRARY" / "src"
    src.mkdir(parents=True)
    (src / "bid32_sin.c").write_text(SIN_C)
    (src / "bid_extra.c").write_text(SCAN_C)
    (src / "bid_counter.c").write_text(NO_ARRAYS_C)
    return tmp_path


@pytest.fixture
def settings(project_root, monkeypatch) -> Settings:
    monkeypatch.delenv("VERIFY_CONST", raising=False)
    return Settings(PROJECT_ROOT=project_root)


@pytest.fixture
def host_toolchain() -> Toolchain:
    return Toolchain(cc="gcc", ar="ar", objdump="objdump", readelf="readelf")


def host_build(library_dir: Path, toolchain: Toolchain, profile: Profile, settings: Settings) -> BuildArtifact:
    """Build collaborator stand-in: compile src/*.c with host gcc and archive."""
    obj_dir = library_dir / "obj"
    obj_dir.mkdir(exist_ok=True)
    objs = []
    for c_file in sorted((library_dir / "src").glob("*.c")):
        obj = obj_dir / (c_file.stem + ".o")
        subprocess.run(
            [toolchain.cc, "-O0", "-c", "-Dunsigned_t=unsigned",
             "-DBID_UINT64=unsigned long long",
             "-I", str(library_dir / "src"), str(c_file), "-o", str(obj)],
            check=True, capture_output=True, timeout=30,
        )
        objs.append(obj)
    output = settings.output_lib_path
    make_archive(output, objs)
    return BuildArtifact(
        path=str(output),
        size_bytes=output.stat().st_size,
        sha256=sha256_of(output),
    )


def stub_build(library_dir: Path, toolchain: Toolchain, profile: Profile, settings: Settings) -> BuildArtifact:
    """Build collaborator stand-in that only drops a placeholder archive."""
    output = settings.output_lib_path
    output.write_bytes(b"!<arch>\n")
    return BuildArtifact(
        path=str(output),
        size_bytes=output.stat().st_size,
        sha256=sha256_of(output),
    )


@pytest.fixture
def host_build_fn(gcc_ok):
    return host_build


@pytest.fixture
def stub_build_fn():
    return stub_build
