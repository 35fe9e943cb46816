"""
test_selection — allow-list first, fallback scan second, no duplicates.
"""
from dataclasses import replace
from pathlib import Path

from rodata_guard.core.selection import scan_candidates, select_files


def _library(project_root: Path) -> Path:
    return project_root / "IntelRDFPMathLib20U2" / "LIBRARY"


class TestSelectFiles:

    def test_allow_list_first_in_order(self, project_root, profile):
        lib = _library(project_root)
        selected = select_files(lib, profile)
        allow = [lib / rel for rel in profile.allow_list]
        assert selected[:len(allow)] == allow

    def test_scan_appends_unlisted_files(self, project_root, profile):
        lib = _library(project_root)
        selected = select_files(lib, profile)
        assert selected[-1] == lib / "src" / "bid_extra.c"
        assert len(selected) == len(profile.allow_list) + 1

    def test_no_duplicates_when_allow_listed_file_also_scanned(self, project_root, profile):
        lib = _library(project_root)
        selected = select_files(lib, profile)
        keys = [str(p) for p in selected]
        assert len(keys) == len(set(keys))
        assert keys.count(str(lib / "src" / "bid32_sin.c")) == 1

    def test_files_without_arrays_not_selected(self, project_root, profile):
        lib = _library(project_root)
        assert lib / "src" / "bid_counter.c" not in select_files(lib, profile)

    def test_deny_list_excludes_scan_hits(self, project_root, profile):
        lib = _library(project_root)
        denying = replace(profile, deny_list=("src/bid_extra.c",))
        assert lib / "src" / "bid_extra.c" not in select_files(lib, denying)

    def test_duplicate_allow_list_entries_collapse(self, project_root, profile):
        lib = _library(project_root)
        doubled = replace(profile, allow_list=("src/bid32_sin.c", "src/./bid32_sin.c"))
        selected = select_files(lib, doubled)
        assert selected == [lib / "src" / "bid32_sin.c", lib / "src" / "bid_extra.c"]

    def test_missing_scan_dir(self, tmp_path, profile):
        assert select_files(tmp_path, replace(profile, allow_list=())) == []


def test_scan_is_recursive_and_sorted(tmp_path, profile):
    src = tmp_path / "src"
    (src / "sub").mkdir(parents=True)
    (src / "sub" / "b.c").write_text("static int b[2];\n")
    (src / "a.c").write_text("static short a[];\n")
    (src / "c.c").write_text("static const short c[];\n")
    (src / "d.h").write_text("static int d[2];\n")
    assert scan_candidates(tmp_path, profile) == [src / "a.c", src / "sub" / "b.c"]


def test_already_patched_files_drop_out_of_scan(tmp_path, profile):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.c").write_text("static const int a[2];\n")
    assert scan_candidates(tmp_path, profile) == []
