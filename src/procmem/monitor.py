"""Measurement passes over the tracked processes."""

import logging
import threading
import time
from collections.abc import Hashable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from queue import Queue

from procmem.aggregate import Keyer, amass, drop_id
from procmem.errors import AllStoppedError, NoAccountingSourceError, ProcessLostError
from procmem.models import Capabilities, LostPid, LostReason, MemUsage, PerProc
from procmem.naming import Namer, name_for
from procmem.probe import probe
from procmem.reader import read_mem_stats

logger = logging.getLogger(__name__)

Found = tuple[int, str, PerProc]


@dataclass(slots=True)
class MemSnapshot:
    """Result of one measurement pass."""

    usage: dict[Hashable, MemUsage]
    stopped: list[int]  # pids that failed this pass
    lost: list[LostPid]
    caps: Capabilities  # what to track on the next pass


@dataclass(slots=True, frozen=True)
class AllStopped:
    """Final message of a watch: every tracked process has stopped."""

    stopped: list[int]


@dataclass(slots=True, frozen=True)
class PassFailed:
    """Final message of a watch: a pass raised an unexpected error."""

    error: str


WatchItem = MemSnapshot | AllStopped | PassFailed


def read_name_and_stats(namer: Namer, caps: Capabilities, pid: int) -> Found | LostPid:
    """Name ``pid`` and then read its memory record."""
    name = namer(pid)
    if isinstance(name, LostPid):
        return name
    stats = read_mem_stats(caps, pid)
    if isinstance(stats, LostPid):
        return stats
    return pid, name, stats


def _read_all(namer: Namer, caps: Capabilities, workers: int) -> list[Found | LostPid]:
    """Read every tracked pid; one result per pid, in tracking order."""
    if workers > 1 and len(caps.pids) > 1:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="procmem") as pool:
            return list(pool.map(lambda pid: read_name_and_stats(namer, caps, pid), caps.pids))
    return [read_name_and_stats(namer, caps, pid) for pid in caps.pids]


def read_mem_usage(
    caps: Capabilities,
    namer: Namer = name_for,
    keyer: Keyer = drop_id,
) -> dict[Hashable, MemUsage]:
    """
    Measure every tracked process once.

    Raises:
        ProcessLostError: for the first process that cannot be measured.
    """
    found: list[Found] = []
    for pid in caps.pids:
        result = read_name_and_stats(namer, caps, pid)
        if isinstance(result, LostPid):
            raise ProcessLostError(result)
        found.append(result)
    return amass(caps.has_pss, (keyer(*item) for item in found))


def unfold_mem_usage(
    caps: Capabilities,
    namer: Namer = name_for,
    keyer: Keyer = drop_id,
    workers: int = 1,
) -> MemSnapshot:
    """
    Measure every tracked process once, tolerating processes that have gone.

    Processes that cannot be measured are reported in the snapshot and left
    out of the descriptor returned for the next pass.

    Raises:
        AllStoppedError: if no tracked process could be measured.
    """
    found: list[Found] = []
    lost: list[LostPid] = []
    for result in _read_all(namer, caps, workers):
        if isinstance(result, LostPid):
            logger.debug("pid %d lost: %s", result.pid, result.reason.value)
            lost.append(result)
        else:
            found.append(result)

    stopped = [item.pid for item in lost]
    updated = caps.without(stopped)
    if not found or updated is None:
        raise AllStoppedError(stopped)
    if stopped:
        logger.info("no longer tracking stopped pids %s", stopped)

    return MemSnapshot(
        usage=amass(caps.has_pss, (keyer(*item) for item in found)),
        stopped=stopped,
        lost=lost,
        caps=updated,
    )


def unfold_mem_usage_after(
    interval: float,
    caps: Capabilities,
    namer: Namer = name_for,
    keyer: Keyer = drop_id,
    workers: int = 1,
) -> MemSnapshot:
    """Like ``unfold_mem_usage``, after waiting ``interval`` seconds."""
    time.sleep(interval)
    return unfold_mem_usage(caps, namer, keyer, workers)


def watch(
    caps: Capabilities,
    interval: float,
    namer: Namer = name_for,
    keyer: Keyer = drop_id,
    workers: int = 1,
) -> Iterator[MemSnapshot]:
    """
    Yield a snapshot every ``interval`` seconds, tracking ever fewer pids.

    Ends by raising AllStoppedError once every tracked process has stopped.
    """
    while True:
        snapshot = unfold_mem_usage_after(interval, caps, namer, keyer, workers)
        yield snapshot
        caps = snapshot.caps


def read_for_one_pid(pid: int, namer: Namer = name_for) -> tuple[str, MemUsage]:
    """
    Measure a single process.

    Raises:
        ProcessLostError: if the process cannot be measured.
    """
    try:
        caps = probe([pid])
    except NoAccountingSourceError:
        raise ProcessLostError(LostPid(LostReason.NO_PROC, pid)) from None
    usage = read_mem_usage(caps, namer, drop_id)
    if not usage:
        raise ProcessLostError(LostPid(LostReason.NO_PROC, pid))
    name = min(usage)
    return name, usage[name]


class WatchMonitor:
    """
    Repeats measurement passes in a background thread.

    Each pass runs after waiting the interval and pushes a MemSnapshot onto
    the queue. The thread ends after pushing AllStopped, when every tracked
    process has stopped, or PassFailed, when a pass raises.
    """

    def __init__(
        self,
        update_queue: Queue[WatchItem],
        caps: Capabilities,
        interval: float = 2.0,
        namer: Namer = name_for,
        keyer: Keyer = drop_id,
        workers: int = 1,
    ) -> None:
        """
        Initialize the WatchMonitor.

        Args:
            update_queue: Thread-safe queue to push results to.
            caps: Descriptor of the processes to track.
            interval: Seconds between passes. Default 2.0s.
            namer: How processes are named.
            keyer: How records are keyed (by pid or by name).
            workers: Threads used to read processes within a pass.
        """
        self._queue = update_queue
        self._caps = caps
        self._interval = max(0.1, interval)
        self._namer = namer
        self._keyer = keyer
        self._workers = workers
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        """Get the current interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the interval."""
        self._interval = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def caps(self) -> Capabilities:
        """The descriptor used for the next pass."""
        return self._caps

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="WatchMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        # Wait for interval seconds before each pass, or until stop is requested
        while not self._stop_event.wait(timeout=self._interval):
            try:
                snapshot = unfold_mem_usage(self._caps, self._namer, self._keyer, self._workers)
            except AllStoppedError as exc:
                self._queue.put(AllStopped(exc.stopped))
                return
            except Exception as exc:
                logger.exception("watch pass over %d pids failed", len(self._caps.pids))
                self._queue.put(PassFailed(f"{type(exc).__name__}: {exc}"))
                return
            self._caps = snapshot.caps
            self._queue.put(snapshot)
