"""Reading the memory record of a single process."""

import logging

from procmem.models import Capabilities, LostPid, LostReason, PerProc
from procmem.proc import parse_smaps, parse_statm, pid_path, read_text

logger = logging.getLogger(__name__)


def read_smaps_text(pid: int) -> str | None:
    """
    Read smaps_rollup if present, else smaps.

    Returns None if neither exists or the chosen one cannot be read, which
    is what a process that exits mid-pass looks like.
    """
    rollup_path = pid_path(pid, "smaps_rollup")
    smaps_path = pid_path(pid, "smaps")
    if rollup_path.is_file():
        path = rollup_path
    elif smaps_path.is_file():
        path = smaps_path
    else:
        return None
    try:
        return read_text(path)
    except (FileNotFoundError, PermissionError, ProcessLookupError) as exc:
        logger.debug("pid %d: cannot read %s: %s", pid, path.name, exc)
        return None


def read_mem_stats(caps: Capabilities, pid: int) -> PerProc | LostPid:
    """
    Read the memory record of ``pid`` from the source ``caps`` selects.

    Never retries; any failure is final for this pass.
    """
    if caps.has_smaps:
        text = read_smaps_text(pid)
        if text is None:
            return LostPid(LostReason.NO_PROC, pid)
        return parse_smaps(text)

    statm_path = pid_path(pid, "statm")
    if not statm_path.is_file():
        return LostPid(LostReason.NO_PROC, pid)
    try:
        text = read_text(statm_path)
    except (FileNotFoundError, PermissionError, ProcessLookupError) as exc:
        logger.debug("pid %d: cannot read statm: %s", pid, exc)
        return LostPid(LostReason.NO_PROC, pid)
    per_proc = parse_statm(caps.statm_formula, caps.page_size_kib, text)
    if per_proc is None:
        return LostPid(LostReason.BAD_STATM, pid)
    return per_proc
