"""Detection of the memory accounting the running kernel provides."""

import logging
import os

import psutil

from procmem.errors import NoAccountingSourceError, NoCandidatesError
from procmem.models import (
    AccountingSource,
    Capabilities,
    KernelVersion,
    RamFlaw,
    StatmFormula,
    SwapFlaw,
)
from procmem.proc import page_size_kib, parse_kernel_version, pid_path, proc_root, read_text

logger = logging.getLogger(__name__)


def read_kernel_version() -> KernelVersion:
    """Read the kernel release from ``sys/kernel/osrelease``."""
    return parse_kernel_version(read_text(proc_root() / "sys" / "kernel" / "osrelease"))


def statm_formula_for(kernel: KernelVersion) -> StatmFormula:
    """Choose how statm approximates private memory on this kernel."""
    if (2, 6, 1) <= kernel <= (2, 6, 9):
        return StatmFormula.RSS_ONLY
    return StatmFormula.RSS_MINUS_SHARED


def ram_flaw_for(kernel: KernelVersion, has_smaps: bool, has_pss: bool) -> RamFlaw | None:
    """
    Describe how far the RAM figures can be trusted.

    See http://wiki.apache.org/spamassassin/TopSharedMemoryBug
    """
    if kernel[:2] == (2, 4):
        try:
            meminfo = read_text(proc_root() / "meminfo")
        except OSError:
            meminfo = ""
        if "Inact_" in meminfo:
            return RamFlaw.SOME_SHARED_MEM
        return RamFlaw.EXACT_FOR_ISOLATED_MEM
    if has_smaps:
        return None if has_pss else RamFlaw.EXACT_FOR_ISOLATED_MEM
    if kernel[:2] == (2, 6):
        if (2, 6, 1) <= kernel <= (2, 6, 9):
            return RamFlaw.NO_SHARED_MEM
        return RamFlaw.SOME_SHARED_MEM
    return RamFlaw.EXACT_FOR_ISOLATED_MEM


def swap_flaw_for(kernel: KernelVersion, has_smaps: bool, has_swap_pss: bool) -> SwapFlaw | None:
    """Describe how far the swap figures can be trusted."""
    if kernel[:2] == (2, 4) or not has_smaps:
        return SwapFlaw.NO_SWAP
    if has_swap_pss:
        return None
    return SwapFlaw.EXACT_FOR_ISOLATED_SWAP


def _smaps_text(pid: int) -> str | None:
    """The rollup (preferred) or full smaps text of ``pid``, if readable."""
    for base in ("smaps_rollup", "smaps"):
        path = pid_path(pid, base)
        if not path.is_file():
            continue
        try:
            return read_text(path)
        except OSError as exc:
            logger.debug("cannot read %s: %s", path, exc)
    return None


def _has_field(text: str, field: str) -> bool:
    prefix = f"{field}:"
    return any(line.startswith(prefix) for line in text.splitlines())


def probe(pids) -> Capabilities:
    """
    Build the Capabilities for a set of candidate pids.

    smaps (or smaps_rollup) is preferred; the first candidate providing it
    decides whether Pss and SwapPss are reported. Otherwise statm is used.

    Raises:
        NoCandidatesError: if ``pids`` is empty.
        NoAccountingSourceError: if no candidate exposes any memory file.
    """
    tracked = tuple(dict.fromkeys(pids))
    if not tracked:
        raise NoCandidatesError()

    kernel = read_kernel_version()
    source: AccountingSource | None = None
    has_pss = has_swap_pss = False
    for pid in tracked:
        text = _smaps_text(pid)
        if text is not None:
            source = AccountingSource.SMAPS
            has_pss = _has_field(text, "Pss")
            has_swap_pss = _has_field(text, "SwapPss")
            logger.debug("pid %d decides: smaps pss=%s swap_pss=%s", pid, has_pss, has_swap_pss)
            break
    else:
        if any(pid_path(pid, "statm").is_file() for pid in tracked):
            source = AccountingSource.STATM
            logger.debug("no smaps for any candidate, using statm")

    if source is None:
        raise NoAccountingSourceError(tracked)

    has_smaps = source is AccountingSource.SMAPS
    return Capabilities(
        pids=tracked,
        source=source,
        has_pss=has_pss,
        has_swap_pss=has_swap_pss,
        kernel=kernel,
        statm_formula=statm_formula_for(kernel),
        page_size_kib=page_size_kib(),
        ram_flaw=ram_flaw_for(kernel, has_smaps, has_pss),
        swap_flaw=swap_flaw_for(kernel, has_smaps, has_swap_pss),
    )


def pid_exe_exists(pid: int) -> bool:
    """True when the exe link of ``pid`` can be resolved (the liveness test)."""
    try:
        os.readlink(pid_path(pid, "exe"))
    except OSError:
        return False
    return True


def missing_pids(pids) -> list[int]:
    """The pids whose exe link cannot be resolved."""
    return [pid for pid in pids if not pid_exe_exists(pid)]


def all_known_pids() -> list[int]:
    """Every pid under the procfs root whose exe link resolves."""
    return [pid for pid in psutil.pids() if pid_exe_exists(pid)]
