"""Tests for procmem data models."""

import pytest

from procmem.models import LostPid, LostReason, MemUsage, PerProc


def test_per_proc_creation():
    """Test PerProc dataclass creation."""
    pp = PerProc(private=100, resident=400, proportional=250, swap=8, proportional_swap=4)

    assert pp.private == 100
    assert pp.resident == 400
    assert pp.proportional == 250
    assert pp.swap == 8
    assert pp.proportional_swap == 4


def test_per_proc_is_frozen():
    """Test that PerProc is immutable (frozen)."""
    pp = PerProc(private=1, resident=1, proportional=1, swap=0, proportional_swap=0)

    with pytest.raises(AttributeError):
        pp.private = 999


def test_mem_usage_uses_slots():
    """Test that MemUsage uses __slots__."""
    usage = MemUsage(private=10, shared=2, swap=0, resident=12, count=1)

    assert not hasattr(usage, "__dict__")


class TestCapabilities:
    """Tests for the Capabilities descriptor."""

    def test_has_smaps(self, make_caps):
        from procmem.models import AccountingSource

        assert make_caps().has_smaps
        assert not make_caps(source=AccountingSource.STATM).has_smaps

    def test_without_removes_stopped(self, make_caps):
        caps = make_caps(pids=(100, 200, 300))

        updated = caps.without([200])

        assert updated.pids == (100, 300)
        assert caps.pids == (100, 200, 300)
        assert updated.has_pss == caps.has_pss

    def test_without_nothing_stopped_is_same(self, make_caps):
        caps = make_caps(pids=(100, 200))

        assert caps.without([]) is caps

    def test_without_everything_is_none(self, make_caps):
        caps = make_caps(pids=(100, 200))

        assert caps.without([200, 100]) is None

    def test_is_frozen(self, make_caps):
        caps = make_caps()

        with pytest.raises(AttributeError):
            caps.pids = (1,)


class TestLostPid:
    """Tests for LostPid descriptions."""

    @pytest.mark.parametrize(
        "reason, expected",
        [
            (LostReason.NO_EXE_FILE, "missing:/proc/42/exe"),
            (LostReason.NO_CMD_LINE, "missing:/proc/42/cmdline"),
            (LostReason.NO_STATUS_CMD, "missing:no name in /proc/42/status"),
            (LostReason.NO_STATUS_PARENT, "missing:no ppid in /proc/42/status"),
            (LostReason.BAD_STATM, "missing:invalid memory record in /proc/42/statm"),
            (LostReason.NO_PROC, "missing:memory records for pid:42"),
        ],
    )
    def test_describe(self, reason, expected):
        assert LostPid(reason, 42).describe() == expected

    def test_describe_other_root(self):
        lost = LostPid(LostReason.NO_EXE_FILE, 7)

        assert lost.describe("/compat/linux/proc") == "missing:/compat/linux/proc/7/exe"

    def test_equality(self):
        assert LostPid(LostReason.NO_PROC, 1) == LostPid(LostReason.NO_PROC, 1)
        assert LostPid(LostReason.NO_PROC, 1) != LostPid(LostReason.BAD_STATM, 1)
