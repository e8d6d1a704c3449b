"""Polling cycle orchestration for hwwatch."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable

from hwwatch.classifier import classify, error_entry, no_changes_entry
from hwwatch.collector import Collector
from hwwatch.diff import diff_events
from hwwatch.errors import CollectionError
from hwwatch.models import Category, LogEntry, Snapshot
from hwwatch.sinks import EventSink
from hwwatch.store import SnapshotStore

logger = logging.getLogger(__name__)

ALL_CATEGORIES: tuple[Category, ...] = tuple(Category)
MIN_POLL_RATE = 0.1

Clock = Callable[[], datetime]

# Workers that outlived their timeout, keyed by (collector id, category).
# The collector is held so its id cannot be reused while the entry exists.
_in_flight: dict[tuple[int, Category], tuple[Collector, threading.Thread]] = {}
_in_flight_lock = threading.Lock()


@dataclass(slots=True, frozen=True)
class CycleResult:
    """Store after a cycle, plus the entries the cycle produced."""

    store: SnapshotStore
    entries: list[LogEntry] = field(default_factory=list)


def _check_in_flight(collector: Collector, category: Category) -> None:
    key = (id(collector), category)
    with _in_flight_lock:
        previous = _in_flight.get(key)
        if previous is None:
            return
        if previous[1].is_alive():
            raise CollectionError(category, "previous collection still running")
        del _in_flight[key]


def collect_with_timeout(collector: Collector, category: Category, timeout: float | None) -> Snapshot:
    """
    Run one collector call with a bounded wait.

    The call runs on a daemon worker thread. If it does not return in time
    the category fails with CollectionError and the worker is abandoned so
    the cycle can carry on. Until that worker finishes, further calls for the
    same collector and category fail straight away instead of starting
    another one.
    """
    _check_in_flight(collector, category)
    if timeout is None:
        return _guarded_collect(collector, category)

    outcome: dict[str, object] = {}

    def target() -> None:
        try:
            outcome["snapshot"] = _guarded_collect(collector, category)
        except CollectionError as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=target, daemon=True, name=f"collect-{category.value}")
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        with _in_flight_lock:
            _in_flight[(id(collector), category)] = (collector, worker)
        raise CollectionError(category, f"timed out after {timeout:g}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["snapshot"]


def _guarded_collect(collector: Collector, category: Category) -> Snapshot:
    try:
        return collector.collect(category)
    except CollectionError:
        raise
    except Exception as exc:
        raise CollectionError(category, f"{type(exc).__name__}: {exc}") from exc


def collect_all(
    collector: Collector,
    categories: Iterable[Category],
    timeout: float | None = None,
) -> tuple[dict[Category, Snapshot], dict[Category, CollectionError]]:
    """Collect every category once, splitting results from failures."""
    snapshots: dict[Category, Snapshot] = {}
    errors: dict[Category, CollectionError] = {}
    for category in categories:
        try:
            snapshots[category] = collect_with_timeout(collector, category, timeout)
        except CollectionError as exc:
            errors[category] = exc
    return snapshots, errors


def initialize(
    collector: Collector,
    categories: Iterable[Category] = ALL_CATEGORIES,
    timeout: float | None = None,
    clock: Clock = datetime.now,
) -> CycleResult:
    """
    Build the baseline store.

    No change entries are produced; a category whose collection fails gets one
    error entry and stays out of the store until it is collected later.
    """
    store = SnapshotStore()
    entries: list[LogEntry] = []
    for category in categories:
        try:
            snapshot = collect_with_timeout(collector, category, timeout)
        except CollectionError as exc:
            logger.warning("Baseline for %s failed: %s", category.value, exc.cause)
            entries.append(error_entry(category, exc, clock()))
            continue
        store = store.replace(category, snapshot)
    logger.debug("Baseline established for %s", ", ".join(c.value for c in store))
    return CycleResult(store, entries)


def check_category(
    store: SnapshotStore,
    collector: Collector,
    category: Category,
    timeout: float | None = None,
    clock: Clock = datetime.now,
) -> CycleResult:
    """Collect, diff and classify a single category."""
    try:
        current = collect_with_timeout(collector, category, timeout)
    except CollectionError as exc:
        logger.warning("Collection of %s failed: %s", category.value, exc.cause)
        # Previous snapshot is kept
        return CycleResult(store, [error_entry(category, exc, clock())])

    previous = store.get(category)
    if previous is None:
        # First successful observation of this category is its baseline
        return CycleResult(store.replace(category, current), [])

    timestamp = clock()
    entries = [classify(event, timestamp) for event in diff_events(category, previous, current)]
    return CycleResult(store.replace(category, current), entries)


def run_cycle(
    store: SnapshotStore,
    collector: Collector,
    categories: Iterable[Category] = ALL_CATEGORIES,
    timeout: float | None = None,
    clock: Clock = datetime.now,
) -> CycleResult:
    """
    Run one steady-state cycle over every category.

    Each category is isolated: a failure only affects its own entry in the
    store. The store is updated after every successful collection whether
    or not anything changed. A cycle with nothing to report yields a
    single "no changes detected" entry.
    """
    entries: list[LogEntry] = []
    for category in categories:
        result = check_category(store, collector, category, timeout, clock)
        store = result.store
        entries.extend(result.entries)

    if not entries:
        entries.append(no_changes_entry(clock()))
    return CycleResult(store, entries)


class HardwareMonitor:
    """
    Hardware monitor that polls every category on a fixed interval.

    Runs cycles in a separate daemon thread and hands each resulting entry
    to the sink. The first cycle only records the baseline.
    """

    def __init__(
        self,
        collector: Collector,
        sink: EventSink,
        categories: Iterable[Category] = ALL_CATEGORIES,
        poll_rate: float = 60.0,
        collector_timeout: float | None = 30.0,
        clock: Clock = datetime.now,
    ) -> None:
        """
        Initialize the HardwareMonitor.

        Args:
            collector: Source of snapshots.
            sink: Receives every entry. Should not block (wrap slow sinks
                in an AsyncDispatcher).
            categories: Categories to watch.
            poll_rate: Seconds between cycles. Default 60s.
            collector_timeout: Bound on each collector call (seconds).
            clock: Timestamp source.
        """
        self._collector = collector
        self._sink = sink
        self._categories = tuple(c for c in Category if c in set(categories))
        self._poll_rate = max(MIN_POLL_RATE, poll_rate)
        self._collector_timeout = collector_timeout
        self._clock = clock
        self._store: SnapshotStore | None = None
        self._cycles = 0
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(MIN_POLL_RATE, value)

    @property
    def categories(self) -> tuple[Category, ...]:
        return self._categories

    @property
    def store(self) -> SnapshotStore:
        """Snapshots accepted so far (empty before the baseline)."""
        return self._store or SnapshotStore()

    @property
    def cycles(self) -> int:
        """Number of steady-state cycles completed."""
        return self._cycles

    @property
    def max_cycle_seconds(self) -> float | None:
        """Longest a cycle can take if every collection hits its timeout."""
        if self._collector_timeout is None:
            return None
        return len(self._categories) * self._collector_timeout

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
            name="HardwareMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        The current cycle finishes first; a hung collection delays the stop until
        its timeout fires.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def initialize(self) -> list[LogEntry]:
        """Record the baseline. Safe to call once; later calls do nothing."""
        with self._cycle_lock:
            if self._store is not None:
                return []
            result = initialize(
                self._collector, self._categories, self._collector_timeout, self._clock
            )
            self._store = result.store
        self._emit(result.entries)
        return result.entries

    def run_once(self) -> list[LogEntry]:
        """
        Run a single cycle synchronously and emit its entries.

        The first call establishes the baseline and reports no changes.
        """
        if self._store is None:
            return self.initialize()

        with self._cycle_lock:
            result = run_cycle(
                self.store,
                self._collector,
                self._categories,
                self._collector_timeout,
                self._clock,
            )
            self._store = result.store
            self._cycles += 1
        self._emit(result.entries)
        return result.entries

    def _emit(self, entries: list[LogEntry]) -> None:
        for entry in entries:
            try:
                self._sink.emit(entry)
            except Exception:
                logger.exception("Sink failed for entry: %s", entry.message)

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                # Keep the loop alive; the next cycle retries every category
                logger.exception("Hardware check cycle failed")

            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)
