"""Shared fixtures: a fake procfs tree for procmem to read."""

import os
import shutil
from pathlib import Path

import psutil
import pytest

from procmem.models import (
    AccountingSource,
    Capabilities,
    KernelVersion,
    StatmFormula,
)


MEMINFO = """\
MemTotal:       16318452 kB
MemFree:         8123456 kB
MemAvailable:   12345678 kB
Buffers:          234567 kB
Cached:          3456789 kB
SwapCached:            0 kB
Active:          4567890 kB
Inactive:        2345678 kB
Active(file):    1234567 kB
Inactive(file):  1234567 kB
SwapTotal:       2097148 kB
SwapFree:        2097148 kB
Shmem:            123456 kB
Slab:             345678 kB
SReclaimable:     234567 kB
"""

VMSTAT = "pswpin 0\npswpout 0\n"


def rollup_text(pss: int, swap: int = 0, private: int = 0, rss: int | None = None,
                swap_pss: int | None = None) -> str:
    """A smaps_rollup file as a 6.x kernel writes it."""
    rss = pss if rss is None else rss
    swap_pss = swap if swap_pss is None else swap_pss
    return (
        "55d1c7a6f000-7ffc2a9b2000 ---p 00000000 00:00 0                          [rollup]\n"
        f"Rss:            {rss:>8} kB\n"
        f"Pss:            {pss:>8} kB\n"
        f"Pss_Anon:       {pss:>8} kB\n"
        "Pss_File:              0 kB\n"
        "Pss_Shmem:             0 kB\n"
        "Shared_Clean:          0 kB\n"
        "Shared_Dirty:          0 kB\n"
        "Private_Clean:         0 kB\n"
        f"Private_Dirty:  {private:>8} kB\n"
        f"Referenced:     {rss:>8} kB\n"
        f"Anonymous:      {rss:>8} kB\n"
        "LazyFree:              0 kB\n"
        f"Swap:           {swap:>8} kB\n"
        f"SwapPss:        {swap_pss:>8} kB\n"
        "Locked:                0 kB\n"
    )


class FakeProc:
    """Builds per-process directories under a temporary procfs root."""

    rollup = staticmethod(rollup_text)

    def __init__(self, root: Path) -> None:
        self.root = root
        self.set_kernel("6.5.0-14-generic")
        # read by psutil.virtual_memory() and psutil.swap_memory()
        (root / "meminfo").write_text(MEMINFO)
        (root / "vmstat").write_text(VMSTAT)

    def set_kernel(self, release: str) -> None:
        kernel_dir = self.root / "sys" / "kernel"
        kernel_dir.mkdir(parents=True, exist_ok=True)
        (kernel_dir / "osrelease").write_text(release + "\n")

    def add_process(
        self,
        pid: int,
        exe: str | None = "/usr/bin/worker",
        cmdline: list[str] | None = None,
        name: str | None = None,
        ppid: int = 1,
        status: str | None = None,
        rollup: str | None = None,
        smaps: str | None = None,
        statm: str | None = None,
    ) -> Path:
        pid_dir = self.root / str(pid)
        pid_dir.mkdir()
        if exe is not None:
            os.symlink(exe, pid_dir / "exe")
        if cmdline is None:
            cmdline = [exe.removesuffix(" (deleted)")] if exe else []
        (pid_dir / "cmdline").write_text("".join(arg + "\0" for arg in cmdline))
        if status is None:
            if name is None:
                name = os.path.basename((exe or "").removesuffix(" (deleted)"))[:15]
            status = f"Name:\t{name}\nUmask:\t0022\nState:\tS (sleeping)\nTgid:\t{pid}\nPid:\t{pid}\nPPid:\t{ppid}\n"
        (pid_dir / "status").write_text(status)
        if rollup is not None:
            (pid_dir / "smaps_rollup").write_text(rollup)
        if smaps is not None:
            (pid_dir / "smaps").write_text(smaps)
        if statm is not None:
            (pid_dir / "statm").write_text(statm)
        return pid_dir

    def remove_process(self, pid: int) -> None:
        shutil.rmtree(self.root / str(pid))


@pytest.fixture
def fake_proc(tmp_path, monkeypatch) -> FakeProc:
    """A fake procfs root, installed as psutil's PROCFS_PATH."""
    root = tmp_path / "proc"
    root.mkdir()
    monkeypatch.setattr(psutil, "PROCFS_PATH", str(root))
    return FakeProc(root)


@pytest.fixture
def make_caps():
    """Factory for Capabilities with sensible smaps defaults."""

    def factory(pids=(100,), **overrides) -> Capabilities:
        values = dict(
            pids=tuple(pids),
            source=AccountingSource.SMAPS,
            has_pss=True,
            has_swap_pss=True,
            kernel=KernelVersion(6, 5, 0),
            statm_formula=StatmFormula.RSS_MINUS_SHARED,
            page_size_kib=4,
        )
        values.update(overrides)
        return Capabilities(**values)

    return factory
