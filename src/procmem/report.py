"""Plain text rendering of memory reports."""

from procmem.models import Capabilities, MemUsage, RamFlaw, SwapFlaw


def format_kib(size: float) -> str:
    """Format a KiB amount the way ``du -h`` does, e.g. ``1.5 MiB``."""
    powers = ["Ki", "Mi", "Gi", "Ti"]
    power = 0
    while size >= 1000 and power < len(powers) - 1:
        size /= 1024.0
        power += 1
    return f"{size:.1f} {powers[power]}B"


def label_for(key, usage: MemUsage) -> str:
    """Label a row: ``name (count)`` for programs, ``name [pid]`` for processes."""
    if isinstance(key, tuple):
        pid, name = key
        return f"{name} [{pid}]"
    if usage.count > 1:
        return f"{key} ({usage.count})"
    return str(key)


def fmt_header(show_swap: bool) -> str:
    """Column headings of the report."""
    header = " Private  +   Shared  =  RAM used"
    if show_swap:
        header += "   Swap used"
    return header + "\tProgram\n"


def fmt_mem_usage(show_swap: bool, label: str, usage: MemUsage) -> str:
    """One report row."""
    row = (
        f"{format_kib(usage.private - usage.shared):>9} + "
        f"{format_kib(usage.shared):>9} = {format_kib(usage.private):>9}"
    )
    if show_swap:
        row += f"   {format_kib(usage.swap):>9}"
    return f"{row}\t{label}"


def fmt_overall(show_swap: bool, totals: tuple[int, int]) -> str:
    """The grand total block printed under the rows."""
    private, swap = totals
    width = 45 if show_swap else 33
    line = " " * 24 + f"{format_kib(private):>9}"
    if show_swap:
        line += f"   {format_kib(swap):>9}"
    return f"{'-' * width}\n{line}\n{'=' * width}"


def fmt_ram_flaw(flaw: RamFlaw) -> str:
    """Explain why RAM totals are not reported."""
    return {
        RamFlaw.NO_SHARED_MEM: (
            "shared memory is not reported by this system. "
            "Values reported will be too large, and totals are not reported"
        ),
        RamFlaw.SOME_SHARED_MEM: (
            "shared memory is not reported accurately by this system. "
            "Values reported could be too large, and totals are not reported"
        ),
        RamFlaw.EXACT_FOR_ISOLATED_MEM: (
            "shared memory is slightly over-estimated by this system "
            "for each program, so totals are not reported."
        ),
    }[flaw]


def fmt_swap_flaw(flaw: SwapFlaw) -> str:
    """Explain why swap totals are not reported."""
    return {
        SwapFlaw.NO_SWAP: "swap is not reported by this system.",
        SwapFlaw.EXACT_FOR_ISOLATED_SWAP: (
            "swap is over-estimated by this system for each program, "
            "so totals are not reported."
        ),
    }[flaw]


def overall_is_accurate(caps: Capabilities, show_swap: bool) -> bool:
    """Whether a grand total is meaningful on this system."""
    return (show_swap and caps.has_swap_pss) or caps.has_pss
