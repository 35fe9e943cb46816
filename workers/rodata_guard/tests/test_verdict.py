"""
test_verdict — aggregation of section records into a verdict.
"""
from rodata_guard.core.sections import SectionRecord
from rodata_guard.policy.verdict import Verdict, aggregate

CHECK = ".rodata.constcheck"


def _rec(obj, flags, name=CHECK):
    return SectionRecord(obj=obj, name=name, flags=flags)


class TestAggregate:

    def test_writable_section_is_violation(self, profile):
        result = aggregate([_rec("a.o", "WA")], profile, objects_scanned=1)
        assert result.violations == 1
        assert result.found == 1
        assert result.verdict == Verdict.FAIL.value
        assert result.offenders[0].obj == "a.o"
        assert result.offenders[0].flags == "WA"
        assert result.messages == [f"Writable {CHECK} in a.o (flags=WA)"]

    def test_readonly_section_passes(self, profile):
        result = aggregate([_rec("a.o", "A")], profile, objects_scanned=1)
        assert (result.found, result.violations) == (1, 0)
        assert result.sections_checked == 1
        assert result.verdict == Verdict.PASS.value
        assert result.messages == []

    def test_no_section_is_warning(self, profile):
        result = aggregate([_rec("a.o", "WA", name=".data")], profile)
        assert (result.found, result.violations) == (0, 0)
        assert result.verdict == Verdict.WARN.value
        assert "No .rodata.constcheck sections found" in result.messages[0]

    def test_all_offenders_reported_in_input_order(self, profile):
        records = [
            _rec("c.o", "WA"),
            _rec("a.o", "A"),
            _rec("b.o", "WAX"),
        ]
        result = aggregate(records, profile, objects_scanned=3)
        assert result.violations == 2
        assert result.sections_checked == 3
        assert [(v.obj, v.flags) for v in result.offenders] == [("c.o", "WA"), ("b.o", "WAX")]

    def test_deterministic(self, profile):
        records = [_rec("x.o", "WA"), _rec("y.o", "A")]
        assert aggregate(records, profile) == aggregate(list(records), profile)

    def test_empty_input(self, profile):
        result = aggregate([], profile)
        assert result.found == 0
        assert result.objects_scanned == 0
