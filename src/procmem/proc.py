"""
Access to, and parsing of, the per-process files under the procfs root.

The procfs root is psutil's ``PROCFS_PATH`` so that procmem and psutil always
look at the same tree.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import psutil

from procmem.models import KernelVersion, PerProc, StatmFormula

DELETED_MARKER = " (deleted)"

# "Pss:                  87 kB"
_ITEM_PAT = re.compile(r"^(\w+):\s+(\d+)\s+kB\s*$", re.IGNORECASE)


def proc_root() -> Path:
    """The procfs mount point in use."""
    return Path(psutil.PROCFS_PATH)


def pid_path(pid: int, base: str) -> Path:
    """Path of ``base`` in the directory of ``pid``."""
    return proc_root() / str(pid) / base


def read_text(path: Path) -> str:
    """Read a procfs file; not-found and permission errors propagate."""
    with open(path, encoding="utf-8", errors="replace") as fh:
        return fh.read()


@dataclass(slots=True, frozen=True)
class ExeInfo:
    """The target of a ``/proc/<pid>/exe`` link."""

    target: str
    original: str  # target without the deleted marker
    deleted: bool


@dataclass(slots=True, frozen=True)
class StatusInfo:
    """The fields of ``/proc/<pid>/status`` that naming needs."""

    name: str
    parent: int


class BadStatus(Enum):
    """A required status field that is missing or unusable."""

    NO_CMD = "Name"
    NO_PARENT = "PPid"


def parse_exe_info(target: str) -> ExeInfo:
    """Parse an exe link target, noting whether the binary was deleted."""
    # some link targets were seen to contain NULs; keep the text up to the first
    path = target.split("\0")[0]
    deleted = path.endswith(DELETED_MARKER)
    original = path[: -len(DELETED_MARKER)] if deleted else path
    return ExeInfo(target=target, original=original, deleted=deleted)


def parse_cmdline(text: str) -> list[str]:
    """Split NUL separated arguments, dropping empty ones."""
    stripped = text.rstrip("\0").strip()
    return [arg for arg in stripped.split("\0") if arg]


def parse_status(text: str) -> StatusInfo | BadStatus:
    """Parse a status file, reporting the first required field it lacks."""
    name: str | None = None
    parent: int | None = None
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        if key == "Name":
            name = value.strip()
        elif key == "PPid":
            try:
                parent = int(value.strip())
            except ValueError:
                parent = None
    if not name:
        return BadStatus.NO_CMD
    if parent is None:
        return BadStatus.NO_PARENT
    return StatusInfo(name=name, parent=parent)


def parse_smaps(text: str) -> PerProc:
    """
    Sum the memory fields of a smaps or smaps_rollup file.

    Mapping header lines and fields other than Rss, Pss, Private_*, Swap and
    SwapPss are ignored. Without Pss lines the private size stands in for the
    proportional size; without SwapPss lines swap stands in for swap pss.
    """
    private = resident = pss = swap = swap_pss = 0
    has_pss = has_swap_pss = False
    for line in text.splitlines():
        match = _ITEM_PAT.match(line)
        if not match:
            continue
        tag, value = match.group(1), int(match.group(2))
        if tag == "Rss":
            resident += value
        elif tag == "Pss":
            has_pss = True
            pss += value
        elif tag.startswith("Private"):
            private += value
        elif tag == "Swap":
            swap += value
        elif tag == "SwapPss":
            has_swap_pss = True
            swap_pss += value
    return PerProc(
        private=private,
        resident=resident,
        proportional=pss if has_pss else private,
        swap=swap,
        proportional_swap=swap_pss if has_swap_pss else swap,
    )


def parse_statm(formula: StatmFormula, page_size_kib: int, text: str) -> PerProc | None:
    """
    Approximate memory use from a statm file.

    statm holds page counts: size resident shared text lib data dt.
    Returns None when the text does not hold at least three integers.
    """
    try:
        fields = [int(field) for field in text.split()[:3]]
    except ValueError:
        return None
    if len(fields) < 3:
        return None
    resident = fields[1] * page_size_kib
    if formula is StatmFormula.RSS_ONLY:
        private = resident
    else:
        private = resident - fields[2] * page_size_kib
    return PerProc(
        private=private,
        resident=resident,
        proportional=private,
        swap=0,
        proportional_swap=0,
    )


def parse_kernel_version(release: str) -> KernelVersion:
    """Parse an osrelease string such as ``5.15.0-91-generic``."""
    parts = release.strip().split(".")[:3]
    while len(parts) < 3:
        parts.append("0")
    numbers = []
    for part in parts:
        for char in "-_+":
            part = part.split(char)[0]
        numbers.append(int(part) if part.isdigit() else 0)
    return KernelVersion(*numbers)


def page_size_kib() -> int:
    """Size of a memory page in KiB."""
    return os.sysconf("SC_PAGE_SIZE") // 1024
