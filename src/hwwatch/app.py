"""hwwatch - Live terminal view of hardware changes."""

from queue import Empty, Queue
from typing import Iterable

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Static

from hwwatch.collector import Collector, SystemCollector
from hwwatch.models import Category, Level, LogEntry, Snapshot
from hwwatch.monitor import ALL_CATEGORIES, HardwareMonitor
from hwwatch.sinks import QueueSink
from hwwatch.store import SnapshotStore

MAX_LOG_ROWS = 500

LEVEL_STYLES = {
    Level.ERROR: "bold red",
    Level.INFO: "dim",
    Level.USB: "cyan",
    Level.NETWORK: "green",
    Level.AUDIO: "magenta",
    Level.DISPLAY: "yellow",
    Level.HARDWARE: "bold",
}


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{size:d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def summarize(category: Category, snapshot: Snapshot) -> tuple[int, str]:
    """Return (item count, one-line summary) for a snapshot."""
    if category is Category.MEMORY:
        return 1, format_bytes(snapshot)
    if category is Category.CPU:
        return 1, f"{snapshot} cores"
    if category is Category.STORAGE:
        return len(snapshot), ", ".join(snapshot)
    if category is Category.NETWORK:
        active = sum(1 for nic in snapshot if nic.is_active)
        return len(snapshot), f"{active} up: " + ", ".join(n.name for n in snapshot if n.is_active)
    if category is Category.DISPLAY:
        return len(snapshot), ", ".join(f"{d.name} ({d.resolution})" for d in snapshot)
    return len(snapshot), ", ".join(sorted({item.name for item in snapshot}))


class InventoryTable(Container):
    """Current snapshot of every watched category."""

    DEFAULT_CSS = """
    InventoryTable {
        height: auto;
        max-height: 12;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._rows: set[str] = set()

    def compose(self) -> ComposeResult:
        yield DataTable(id="inventory-table")

    def on_mount(self) -> None:
        table = self.query_one("#inventory-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Category", key="category", width=10)
        table.add_column("Items", key="items", width=6)
        table.add_column("Summary", key="summary")

    def update_inventory(self, store: SnapshotStore) -> None:
        """Add or refresh one row per category present in the store."""
        table = self.query_one("#inventory-table", DataTable)
        for category in store:
            count, summary = summarize(category, store.get(category))
            row_key = category.value
            if row_key in self._rows:
                table.update_cell(row_key, "items", str(count))
                table.update_cell(row_key, "summary", Text(summary))
            else:
                table.add_row(category.label, str(count), Text(summary), key=row_key)
                self._rows.add(row_key)


class EventLog(Container):
    """Scrolling table of emitted entries, oldest dropped past a cap."""

    DEFAULT_CSS = """
    EventLog {
        height: 1fr;
        border: solid $secondary;
    }
    """

    def __init__(self, *args, max_rows: int = MAX_LOG_ROWS, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.max_rows = max_rows
        self._row_keys: list[str] = []
        self._counter = 0

    @property
    def row_count(self) -> int:
        return len(self._row_keys)

    def compose(self) -> ComposeResult:
        yield DataTable(id="event-log")

    def on_mount(self) -> None:
        table = self.query_one("#event-log", DataTable)
        table.add_column("Time", key="time", width=19)
        table.add_column("Level", key="level", width=9)
        table.add_column("Message", key="message")

    def add_entries(self, entries: Iterable[LogEntry]) -> None:
        table = self.query_one("#event-log", DataTable)
        for entry in entries:
            self._counter += 1
            row_key = str(self._counter)
            table.add_row(
                entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                Text(entry.level.value, style=LEVEL_STYLES.get(entry.level, "")),
                Text(entry.message),
                key=row_key,
            )
            self._row_keys.append(row_key)

        while len(self._row_keys) > self.max_rows:
            table.remove_row(self._row_keys.pop(0))

        if self._row_keys:
            table.move_cursor(row=len(self._row_keys) - 1)

    def clear(self) -> None:
        table = self.query_one("#event-log", DataTable)
        table.clear()
        self._row_keys.clear()


class HardwareWatchApp(App):
    """Main hwwatch application."""

    TITLE = "hwwatch"
    SUB_TITLE = "Hardware Change Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #status {
        dock: top;
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "check", "Check now"),
        ("c", "clear", "Clear log"),
    ]

    def __init__(
        self,
        collector: Collector | None = None,
        categories: Iterable[Category] = ALL_CATEGORIES,
        poll_rate: float = 60.0,
        collector_timeout: float | None = 30.0,
    ) -> None:
        """Initialize the HardwareWatchApp."""
        super().__init__()
        self._update_queue: Queue[LogEntry] = Queue()
        self._monitor = HardwareMonitor(
            collector or SystemCollector(command_timeout=collector_timeout or 30.0),
            QueueSink(self._update_queue),
            categories=categories,
            poll_rate=poll_rate,
            collector_timeout=collector_timeout,
        )
        self._entry_count = 0

    def compose(self) -> ComposeResult:
        yield Static(self._status_text(), id="status")
        yield InventoryTable()
        yield EventLog()
        yield Footer()

    def on_mount(self) -> None:
        """Start the hardware monitor when the app is mounted."""
        self._monitor.start()
        # Set up a timer to poll the queue for updates
        self.set_interval(0.5, self._check_for_updates)

    def _status_text(self) -> str:
        return (
            f"Every {self._monitor.poll_rate:g}s | cycles: {self._monitor.cycles} "
            f"| entries: {self._entry_count}"
        )

    def _check_for_updates(self) -> None:
        """Drain queued entries and refresh the tables."""
        entries: list[LogEntry] = []
        while True:
            try:
                entries.append(self._update_queue.get_nowait())
            except Empty:
                break

        self._entry_count += len(entries)
        try:
            if entries:
                self.query_one(EventLog).add_entries(entries)
            self.query_one(InventoryTable).update_inventory(self._monitor.store)
            self.query_one("#status", Static).update(self._status_text())
        except NoMatches:
            # Screen is being torn down
            return

    def action_check(self) -> None:
        """Run a cycle now, off the UI thread."""
        self.run_worker(self._monitor.run_once, thread=True, exclusive=True, group="check")

    def action_clear(self) -> None:
        self.query_one(EventLog).clear()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()

