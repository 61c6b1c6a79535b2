"""Exceptions raised by procmem."""

from procmem.models import LostPid


class ProcMemError(Exception):
    """Base class for procmem errors."""


class NoCandidatesError(ProcMemError):
    """No process ids were supplied."""

    def __init__(self) -> None:
        super().__init__("no process ids to examine")


class NoAccountingSourceError(ProcMemError):
    """None of the candidate processes expose smaps, smaps_rollup or statm."""

    def __init__(self, pids: tuple[int, ...]) -> None:
        super().__init__(f"no memory records available for any of: {list(pids)}")
        self.pids = pids


class ProcessLostError(ProcMemError):
    """A process that had to be measured could not be."""

    def __init__(self, lost: LostPid) -> None:
        super().__init__(lost.describe())
        self.lost = lost


class AllStoppedError(ProcMemError):
    """Every tracked process has stopped."""

    def __init__(self, stopped: list[int]) -> None:
        super().__init__(f"all monitored processes have stopped: {stopped}")
        self.stopped = stopped
