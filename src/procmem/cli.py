"""procmem - command line entry point."""

import argparse
import logging
import os
import sys
from collections.abc import Hashable

import psutil

from procmem.aggregate import Keyer, drop_id, overall_totals, with_pid_and_name
from procmem.app import MemInfoApp
from procmem.errors import AllStoppedError, ProcessLostError, ProcMemError
from procmem.models import Capabilities, MemUsage
from procmem.monitor import AllStopped, PassFailed, read_mem_usage, watch
from procmem.naming import Namer, NameStrategy
from procmem.probe import all_known_pids, missing_pids, probe
from procmem.report import (
    fmt_header,
    fmt_mem_usage,
    fmt_overall,
    fmt_ram_flaw,
    fmt_swap_flaw,
    label_for,
    overall_is_accurate,
)

logger = logging.getLogger(__name__)


class HaltError(ProcMemError):
    """The requested processes cannot be reported on."""


def _pid_list(text: str) -> list[int]:
    try:
        pids = [int(part) for part in text.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a comma separated list of pids: {text!r}") from None
    if not pids or any(pid <= 0 for pid in pids):
        raise argparse.ArgumentTypeError(f"not a comma separated list of pids: {text!r}")
    return pids


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a positive integer: {text!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"not a positive integer: {text!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """The command line options."""
    parser = argparse.ArgumentParser(
        prog="procmem",
        description="Show the core memory used by programs or processes",
    )
    parser.add_argument("-p", "--pids", type=_pid_list, default=None,
            help="only show memory usage of the comma separated PIDs")
    parser.add_argument("-s", "--split-args", action="store_true",
            help="show and separate by all command line arguments")
    parser.add_argument("-t", "--total", action="store_true", dest="only_total",
            help="show only the total value, in bytes")
    parser.add_argument("-S", "--swap", action="store_true", dest="show_swap",
            help="show swap information")
    parser.add_argument("-d", "--discriminate-by-pid", action="store_true", dest="by_pid",
            help="show by process rather than by program")
    parser.add_argument("-w", "--watch", type=_positive_int, default=None, metavar="N",
            help="measure and show memory usage every N seconds")
    parser.add_argument("-j", "--workers", type=_positive_int, default=1,
            help="threads used to read processes [dflt=1]")
    parser.add_argument("--proc-root", default=None,
            help="where procfs is mounted [dflt=/proc]")
    parser.add_argument("-v", "--verbose", action="count", default=0,
            help="log more (repeat for debug output)")
    return parser


def namer_and_keyer(args: argparse.Namespace) -> tuple[Namer, Keyer]:
    """How processes are named and keyed for the chosen options."""
    strategy = NameStrategy.FULL_CMD if args.split_args else NameStrategy.EXE
    return strategy.namer(), with_pid_and_name if args.by_pid else drop_id


def warn(message: str, is_error: bool = False) -> None:
    """Write a warning or error line to stderr."""
    prefix = "error: " if is_error else "warning: "
    print(prefix + message, file=sys.stderr)


def verify(pids: list[int] | None) -> Capabilities:
    """Build the Capabilities for the requested pids, or for every pid."""
    if pids:
        missing = missing_pids(pids)
        if missing:
            raise HaltError(f"no records available for: {missing}")
        return probe(pids)
    if os.geteuid() != 0:
        raise HaltError("run as root when no pids are specified using -p")
    known = all_known_pids()
    if not known:
        raise HaltError("could not find any process records")
    return probe(known)


def report_flaws(caps: Capabilities, show_swap: bool, only_total: bool) -> None:
    """Explain on stderr why some totals are not reported."""
    if show_swap and caps.swap_flaw is not None:
        warn(fmt_swap_flaw(caps.swap_flaw), is_error=only_total)
    if not (only_total and show_swap) and caps.ram_flaw is not None:
        warn(fmt_ram_flaw(caps.ram_flaw), is_error=only_total)


def print_mem_usages(caps: Capabilities, show_swap: bool, totals: dict[Hashable, MemUsage]) -> None:
    """Print one row per key, smallest first, then the grand total if meaningful."""
    print(fmt_header(show_swap))
    rows = sorted(totals.items(), key=lambda item: (item[1].private, str(item[0])))
    for key, usage in rows:
        print(fmt_mem_usage(show_swap, label_for(key, usage), usage))
    if overall_is_accurate(caps, show_swap):
        print(fmt_overall(show_swap, overall_totals(totals.values())))
    report_flaws(caps, show_swap, only_total=False)


def print_only_total(caps: Capabilities, show_swap: bool, totals: dict[Hashable, MemUsage]) -> int:
    """Print the raw total in bytes; returns the exit status."""
    private, swap = overall_totals(totals.values())
    if show_swap:
        if caps.has_swap_pss:
            print(swap * 1024)
        report_flaws(caps, show_swap, only_total=True)
        return 1 if caps.swap_flaw is not None else 0
    if caps.has_pss:
        print(private * 1024)
    report_flaws(caps, show_swap, only_total=True)
    return 1 if caps.ram_flaw is not None else 0


def warn_stopped(stopped: list[int]) -> None:
    """Name the processes that stopped since the previous pass."""
    if stopped:
        warn(f"some processes stopped:pids:{stopped}")


def warn_halting(stopped: list[int]) -> None:
    warn_stopped(stopped)
    warn("halting: all monitored processes have stopped")


def watch_mem_usages(caps: Capabilities, args: argparse.Namespace) -> int:
    """Run the interactive watch view until quit or every process stops."""
    namer, keyer = namer_and_keyer(args)
    app = MemInfoApp(
        caps,
        interval=args.watch,
        namer=namer,
        keyer=keyer,
        show_swap=args.show_swap,
        workers=args.workers,
    )
    result = app.run()
    if isinstance(result, PassFailed):
        warn(f"watch halted: {result.error}", is_error=True)
        return 1
    if isinstance(result, AllStopped):
        warn_halting(result.stopped)
    return 0


def watch_only_total(caps: Capabilities, args: argparse.Namespace) -> int:
    """Print the raw total after every interval until every process stops."""
    namer, keyer = namer_and_keyer(args)
    try:
        for snapshot in watch(caps, args.watch, namer, keyer, args.workers):
            warn_stopped(snapshot.stopped)
            status = print_only_total(snapshot.caps, args.show_swap, snapshot.usage)
            sys.stdout.flush()
            if status:
                return status
    except AllStoppedError as exc:
        warn_halting(exc.stopped)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the procmem command."""
    args = build_parser().parse_args(argv)
    level = logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    if args.proc_root:
        psutil.PROCFS_PATH = args.proc_root

    try:
        caps = verify(args.pids)
    except ProcMemError as exc:
        warn(str(exc), is_error=True)
        return 1
    logger.info("tracking %d pids using %s", len(caps.pids), caps.source.value)

    if args.watch is not None:
        if args.only_total:
            return watch_only_total(caps, args)
        return watch_mem_usages(caps, args)

    namer, keyer = namer_and_keyer(args)
    try:
        totals = read_mem_usage(caps, namer, keyer)
    except ProcessLostError as exc:
        print(f"halting due to {exc.lost.describe(psutil.PROCFS_PATH)}", file=sys.stderr)
        return 1

    if args.only_total:
        return print_only_total(caps, args.show_swap, totals)
    print_mem_usages(caps, args.show_swap, totals)
    return 0


def run() -> None:
    """Console script wrapper."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
