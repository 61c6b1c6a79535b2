"""Summing per-process records into per-key totals."""

from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass
from typing import Any

from procmem.models import MemUsage, PerProc

Keyer = Callable[[int, str, PerProc], tuple[Any, PerProc]]


def with_pid(pid: int, name: str, per_proc: PerProc) -> tuple[int, PerProc]:
    """Key a record by its pid; no two records are merged."""
    return pid, per_proc


def with_pid_and_name(pid: int, name: str, per_proc: PerProc) -> tuple[tuple[int, str], PerProc]:
    """Key a record by (pid, name), so that reports can label each process."""
    return (pid, name), per_proc


def drop_id(pid: int, name: str, per_proc: PerProc) -> tuple[str, PerProc]:
    """Key a record by program name; records with the same name are merged."""
    return name, per_proc


@dataclass(slots=True)
class _SubTotal:
    private: int = 0
    shared: int = 0
    swap: int = 0
    resident: int = 0
    count: int = 0


def amass(has_pss: bool, pairs: Iterable[tuple[Hashable, PerProc]]) -> dict[Hashable, MemUsage]:
    """
    Fold keyed records into a MemUsage per key.

    With PSS the shared part of each record is ``proportional - private`` and
    the parts add up, so ``MemUsage.private`` is the exact sum of the
    proportional sizes. Without PSS the shared part is ``resident - private``
    and only the largest one per key is kept, because the same shared pages
    are reported by every process mapping them.
    """
    subtotals: dict[Hashable, _SubTotal] = {}
    for key, pp in pairs:
        sub = subtotals.setdefault(key, _SubTotal())
        sub.private += pp.private
        sub.swap += pp.proportional_swap
        sub.resident += pp.resident
        sub.count += 1
        if has_pss:
            sub.shared += pp.proportional - pp.private
        else:
            sub.shared = max(sub.shared, pp.resident - pp.private)

    return {
        key: MemUsage(
            private=sub.private + sub.shared,
            shared=sub.shared,
            swap=sub.swap,
            resident=sub.resident,
            count=sub.count,
        )
        for key, sub in subtotals.items()
    }


def overall_totals(usages: Iterable[MemUsage]) -> tuple[int, int]:
    """Total (private, swap) over all keys."""
    private = swap = 0
    for usage in usages:
        private += usage.private
        swap += usage.swap
    return private, swap
