"""Data models for procmem."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import NamedTuple


class AccountingSource(Enum):
    """Which per-process memory file the running kernel provides."""

    SMAPS = "smaps"
    STATM = "statm"


class StatmFormula(Enum):
    """How private memory is approximated from statm."""

    # 2.6.1 to 2.6.9: the shared column is the file-backed extent, unusable
    RSS_ONLY = "rss_only"
    RSS_MINUS_SHARED = "rss_minus_shared"


class RamFlaw(Enum):
    """Known inaccuracies of the RAM figures on this system."""

    NO_SHARED_MEM = "no_shared_mem"
    SOME_SHARED_MEM = "some_shared_mem"
    EXACT_FOR_ISOLATED_MEM = "exact_for_isolated_mem"


class SwapFlaw(Enum):
    """Known inaccuracies of the swap figures on this system."""

    NO_SWAP = "no_swap"
    EXACT_FOR_ISOLATED_SWAP = "exact_for_isolated_swap"


class LostReason(Enum):
    """Why a process could not be measured."""

    NO_EXE_FILE = "no_exe_file"
    NO_STATUS_CMD = "no_status_cmd"
    NO_STATUS_PARENT = "no_status_parent"
    NO_CMD_LINE = "no_cmd_line"
    BAD_STATM = "bad_statm"
    NO_PROC = "no_proc"


class KernelVersion(NamedTuple):
    """Kernel release as (major, minor, patch)."""

    major: int
    minor: int
    patch: int


@dataclass(slots=True, frozen=True)
class LostPid:
    """A process that could not be measured, and why."""

    reason: LostReason
    pid: int

    def describe(self, proc_root: str = "/proc") -> str:
        """Human readable description, e.g. ``missing:/proc/42/exe``."""
        base = f"{proc_root}/{self.pid}"
        return {
            LostReason.NO_STATUS_CMD: f"missing:no name in {base}/status",
            LostReason.NO_STATUS_PARENT: f"missing:no ppid in {base}/status",
            LostReason.NO_EXE_FILE: f"missing:{base}/exe",
            LostReason.NO_CMD_LINE: f"missing:{base}/cmdline",
            LostReason.NO_PROC: f"missing:memory records for pid:{self.pid}",
            LostReason.BAD_STATM: f"missing:invalid memory record in {base}/statm",
        }[self.reason]


@dataclass(slots=True, frozen=True)
class PerProc:
    """Memory measured for one process at one instant, in KiB."""

    private: int
    resident: int
    proportional: int  # Pss, or the statm approximation
    swap: int
    proportional_swap: int  # SwapPss, or swap when the kernel omits it


@dataclass(slots=True, frozen=True)
class MemUsage:
    """
    Memory attributed to one report key (a pid or a program name), in KiB.

    ``private`` is the total RAM attributed to the key. When PSS is available
    it is the exact sum of the proportional set sizes. ``shared`` is the part
    of ``private`` that is shared with other processes.
    """

    private: int
    shared: int
    swap: int
    resident: int
    count: int


@dataclass(slots=True, frozen=True)
class Capabilities:
    """
    What the running kernel exposes, computed once per invocation.

    Only ``pids`` changes between measurement passes, and only by building a
    new value with ``without()``.
    """

    pids: tuple[int, ...]
    source: AccountingSource
    has_pss: bool
    has_swap_pss: bool
    kernel: KernelVersion
    statm_formula: StatmFormula
    page_size_kib: int
    ram_flaw: RamFlaw | None = None
    swap_flaw: SwapFlaw | None = None

    @property
    def has_smaps(self) -> bool:
        """True when per-mapping accounting is available."""
        return self.source is AccountingSource.SMAPS

    def without(self, stopped: list[int]) -> "Capabilities | None":
        """
        Return a copy tracking only the pids not in ``stopped``.

        Returns None when no pids would be left.
        """
        if not stopped:
            return self
        gone = set(stopped)
        remaining = tuple(pid for pid in self.pids if pid not in gone)
        if not remaining:
            return None
        return replace(self, pids=remaining)
