"""
Deriving the program name of a process.

Three namers are provided, all with the signature ``(pid) -> str | LostPid``:

- ``name_as_full_cmd``: the whole command line.
- ``name_from_exe_only``: the base name of the ``exe`` link target (without
  its extension, so ``python3.11`` is named ``python3``), with
  ``[updated]`` or ``[deleted]`` appended when the binary has been replaced
  or removed since the process started.
- ``name_for`` (the default): ``name_from_exe_only`` checked against the
  kernel's short command name and the parent's name, so that programs run by
  a shared interpreter are named after themselves.
"""

import logging
import os
from collections.abc import Callable
from enum import Enum

from procmem.models import LostPid, LostReason
from procmem.proc import (
    BadStatus,
    StatusInfo,
    parse_cmdline,
    parse_exe_info,
    parse_status,
    pid_path,
    read_text,
)

logger = logging.getLogger(__name__)

Namer = Callable[[int], str | LostPid]

_NOT_THERE = (FileNotFoundError, PermissionError, ProcessLookupError)


def _read_cmdline(pid: int) -> list[str]:
    try:
        return parse_cmdline(read_text(pid_path(pid, "cmdline")))
    except _NOT_THERE:
        return []


def _exists(path: str) -> bool:
    return os.path.isfile(path)


def _base_name(path: str) -> str:
    """The file name without its directory or its last extension."""
    return os.path.splitext(os.path.basename(path))[0]


def name_as_full_cmd(pid: int) -> str | LostPid:
    """Name a process by its arguments joined with single spaces."""
    args = _read_cmdline(pid)
    if not args:
        return LostPid(LostReason.NO_CMD_LINE, pid)
    return " ".join(args)


def name_from_exe_only(pid: int) -> str | LostPid:
    """Name a process by the binary its ``exe`` link points to."""
    try:
        target = os.readlink(pid_path(pid, "exe"))
    except _NOT_THERE:
        return LostPid(LostReason.NO_EXE_FILE, pid)

    info = parse_exe_info(target)
    if not info.deleted:
        return _base_name(info.original)

    logger.debug("pid %d: exe %s was deleted", pid, info.original)

    # the binary used to start the process is gone; it may have been updated
    if _exists(info.original):
        return _base_name(f"{info.original} [updated]")

    # the original path may carry prelink noise, the argument vector may not
    args = _read_cmdline(pid)
    if not args:
        # an exe link that resolves with no arguments is unexpected
        return LostPid(LostReason.NO_CMD_LINE, pid)
    first = args[0]
    suffix = " [updated]" if _exists(first) else " [deleted]"
    return _base_name(first + suffix)


def _status_info(pid: int) -> StatusInfo | LostPid:
    try:
        text = read_text(pid_path(pid, "status"))
    except _NOT_THERE:
        return LostPid(LostReason.NO_STATUS_CMD, pid)
    status = parse_status(text)
    if status is BadStatus.NO_CMD:
        return LostPid(LostReason.NO_STATUS_CMD, pid)
    if status is BadStatus.NO_PARENT:
        return LostPid(LostReason.NO_STATUS_PARENT, pid)
    return status


def parent_name_if_matched(pid: int, candidate: str) -> str | LostPid:
    """
    Settle between the exe name and the kernel's short command name.

    The candidate is kept when the status name is a prefix of it (status
    names are truncated) or when the parent has the same exe name. Otherwise
    the status name wins.
    """
    status = _status_info(pid)
    if isinstance(status, LostPid):
        return status
    if candidate.startswith(status.name):
        return candidate
    parent_name = name_from_exe_only(status.parent)
    if parent_name == candidate:
        return candidate
    return status.name


def name_for(pid: int) -> str | LostPid:
    """Name a process by its exe, or its status name when that fits better."""
    candidate = name_from_exe_only(pid)
    if isinstance(candidate, LostPid):
        return candidate
    return parent_name_if_matched(pid, candidate)


class NameStrategy(Enum):
    """How processes are named in a report."""

    EXE = "exe"
    FULL_CMD = "full_cmd"

    def namer(self) -> Namer:
        """The naming function for this strategy."""
        if self is NameStrategy.FULL_CMD:
            return name_as_full_cmd
        return name_for
