"""procmem - interactive watch view."""

from enum import Enum
from queue import Empty, Queue

import psutil
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from procmem.aggregate import Keyer, drop_id, overall_totals
from procmem.models import Capabilities
from procmem.monitor import AllStopped, MemSnapshot, PassFailed, WatchItem, WatchMonitor
from procmem.naming import Namer, name_for
from procmem.report import (
    fmt_ram_flaw,
    fmt_swap_flaw,
    format_kib,
    label_for,
    overall_is_accurate,
)


class SortKey(Enum):
    """Sort keys for the usage table."""

    RAM = "ram"
    SWAP = "swap"
    NAME = "name"


def _bar(percent: float, color: str) -> str:
    filled = min(int(percent / 5), 20)
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (20 - filled)


class HeaderStats(Static):
    """Header widget showing system memory and the report totals."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 4;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, caps: Capabilities, show_swap: bool, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._caps = caps
        self._show_swap = show_swap
        self._totals: tuple[int, int] = (0, 0)
        self._stopped: list[int] = []

    def on_mount(self) -> None:
        """Show system memory before the first pass arrives."""
        self.update(self._get_stats_text())

    def update_stats(self, snapshot: MemSnapshot) -> None:
        """Update the header from a measurement pass."""
        self._caps = snapshot.caps
        self._totals = overall_totals(snapshot.usage.values())
        self._stopped = snapshot.stopped
        self.update(self._get_stats_text())

    def _get_stats_text(self) -> str:
        """Build the header markup."""
        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()
        lines = [
            f"Mem\\[{_bar(mem.percent, 'cyan')}] "
            f"{mem.used / 1024**3:.1f}G/{mem.total / 1024**3:.1f}G   "
            f"Swp\\[{_bar(swap.percent, 'yellow')}] "
            f"{swap.used / 1024**3:.1f}G/{swap.total / 1024**3:.1f}G"
        ]

        tracked = f"Tracking {len(self._caps.pids)} pids"
        if overall_is_accurate(self._caps, self._show_swap):
            private, swap_total = self._totals
            tracked += f"   RAM used: {format_kib(private)}"
            if self._show_swap:
                tracked += f"   Swap used: {format_kib(swap_total)}"
        lines.append(tracked)

        if self._show_swap and self._caps.swap_flaw is not None:
            lines.append(f"[yellow]warning: {fmt_swap_flaw(self._caps.swap_flaw)}[/yellow]")
        if self._caps.ram_flaw is not None:
            lines.append(f"[yellow]warning: {fmt_ram_flaw(self._caps.ram_flaw)}[/yellow]")
        if self._stopped:
            lines.append(f"[red]warning: some processes stopped:pids:{self._stopped}[/red]")
        return "\n".join(lines)


class UsageTable(Container):
    """Container for the memory usage table."""

    DEFAULT_CSS = """
    UsageTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, show_swap: bool, *args, **kwargs) -> None:
        """Initialize UsageTable."""
        super().__init__(*args, **kwargs)
        self._show_swap = show_swap
        self._sort_key: SortKey = SortKey.RAM
        self._last: MemSnapshot | None = None

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        if self._last is not None:
            self.update_usage(self._last)
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the usage table."""
        yield DataTable(id="usage-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#usage-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Private", key="private", width=11)
        table.add_column("Shared", key="shared", width=11)
        table.add_column("RAM used", key="ram", width=11)
        if self._show_swap:
            table.add_column("Swap used", key="swap", width=11)
        table.add_column("Program", key="program")

    def update_usage(self, snapshot: MemSnapshot) -> None:
        """Replace the table rows with the usage of a measurement pass."""
        self._last = snapshot
        table = self.query_one("#usage-table", DataTable)
        rows = [
            (label_for(key, usage), usage) for key, usage in snapshot.usage.items()
        ]
        if self._sort_key is SortKey.NAME:
            rows.sort(key=lambda row: row[0].lower())
        elif self._sort_key is SortKey.SWAP:
            rows.sort(key=lambda row: (row[1].swap, row[0]), reverse=True)
        else:
            rows.sort(key=lambda row: (row[1].private, row[0]), reverse=True)

        table.clear()
        for label, usage in rows:
            cells = [
                format_kib(usage.private - usage.shared),
                format_kib(usage.shared),
                format_kib(usage.private),
            ]
            if self._show_swap:
                cells.append(format_kib(usage.swap))
            cells.append(label)
            table.add_row(*cells, key=label)


class MemInfoApp(App):
    """Interactive view of a repeating memory measurement."""

    TITLE = "procmem"
    SUB_TITLE = "Process Memory Usage"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        caps: Capabilities,
        interval: float = 2.0,
        namer: Namer = name_for,
        keyer: Keyer = drop_id,
        show_swap: bool = False,
        workers: int = 1,
    ) -> None:
        """Initialize the MemInfoApp."""
        super().__init__()
        self._caps = caps
        self._show_swap = show_swap
        self._update_queue: Queue[WatchItem] = Queue()
        self._monitor = WatchMonitor(
            self._update_queue,
            caps,
            interval=interval,
            namer=namer,
            keyer=keyer,
            workers=workers,
        )

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(self._caps, self._show_swap, id="header-stats")
        yield UsageTable(self._show_swap)
        yield Footer()

    def on_mount(self) -> None:
        """Start the watch monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent pass."""
        snapshot = None
        while True:
            try:
                item = self._update_queue.get_nowait()
            except Empty:
                break
            if isinstance(item, (AllStopped, PassFailed)):
                self._monitor.stop()
                self.exit(result=item)
                return
            snapshot = item

        if snapshot is not None:
            self.update_ui(snapshot)

    def update_ui(self, snapshot: MemSnapshot) -> None:
        """Update the widgets with a measurement pass."""
        self.query_one("#header-stats", HeaderStats).update_stats(snapshot)
        self.query_one(UsageTable).update_usage(snapshot)
        if snapshot.stopped:
            self.notify(f"some processes stopped: {snapshot.stopped}", severity="warning")

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(UsageTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()
