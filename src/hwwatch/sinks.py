"""Event sinks: where classified entries end up."""

import logging
import socket
import sys
import threading
from datetime import timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Callable, Iterable, Protocol, TextIO

import httpx

from hwwatch.errors import DeliveryError
from hwwatch.models import LogEntry
from hwwatch.usage import SystemUsage, collect_usage

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILE = Path.home() / "SystemLogs" / "system.log"
DEFAULT_WEBHOOK_URL = "http://localhost:5678/webhook-test/system-log"


class EventSink(Protocol):
    """Consumer of log entries."""

    def emit(self, entry: LogEntry) -> None:
        ...


class ConsoleSink:
    """Prints entries as log lines."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def emit(self, entry: LogEntry) -> None:
        stream = self._stream or sys.stdout
        print(entry.format_line(), file=stream, flush=True)


class LogFileSink:
    """Appends entries to a plain-text log file."""

    def __init__(self, path: str | Path = DEFAULT_LOG_FILE) -> None:
        self.path = Path(path).expanduser()

    def emit(self, entry: LogEntry) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(entry.format_line() + "\n")
        except OSError as exc:
            raise DeliveryError("log file", f"cannot write {self.path}: {exc}") from exc


class WebhookSink:
    """
    Posts each entry as JSON to an HTTP webhook.

    Payload fields: timestamp (UTC, ISO-8601), level, message, event_type,
    hostname and a system usage summary.

    Each entry is posted once by default. Extra attempts are a setting of
    this sink only; the monitor never re-sends an entry.
    """

    def __init__(
        self,
        url: str = DEFAULT_WEBHOOK_URL,
        timeout: float = 10.0,
        max_retries: int = 1,
        hostname: str | None = None,
        usage_provider: Callable[[], SystemUsage] | None = collect_usage,
        client: httpx.Client | None = None,
    ) -> None:
        """
        Initialize the WebhookSink.

        Args:
            url: Webhook endpoint.
            timeout: HTTP request timeout in seconds.
            max_retries: Attempts before giving up on an entry (at least 1).
            hostname: Reported hostname. Defaults to this machine's.
            usage_provider: Builds the system_usage section; None omits it.
            client: HTTP client to reuse, mainly for tests.
        """
        self.url = url
        self.max_retries = max(1, max_retries)
        self.hostname = hostname or socket.gethostname()
        self.usage_provider = usage_provider
        self.client = client or httpx.Client(timeout=timeout)

    def build_payload(self, entry: LogEntry) -> dict:
        stamp = entry.timestamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        payload = {
            "timestamp": stamp,
            "level": entry.level.value,
            "message": entry.message,
            "event_type": "hardware_change",
            "hostname": self.hostname,
        }
        if entry.category is not None:
            payload["category"] = entry.category.value
        if self.usage_provider is not None:
            payload["system_usage"] = self.usage_provider().to_dict()
        return payload

    def emit(self, entry: LogEntry) -> None:
        payload = self.build_payload(entry)
        last_error = "no attempt made"

        for attempt in range(self.max_retries):
            try:
                response = self.client.post(self.url, json=payload)
            except httpx.HTTPError as exc:
                last_error = str(exc) or type(exc).__name__
                logger.warning("Webhook attempt %d failed: %s", attempt + 1, last_error)
                continue

            if response.is_success:
                logger.debug("Webhook accepted %s entry", entry.level.value)
                return
            last_error = f"status {response.status_code}"
            logger.warning("Webhook attempt %d returned %s", attempt + 1, last_error)

        raise DeliveryError("webhook", f"{self.url}: {last_error}")

    def close(self) -> None:
        self.client.close()


class QueueSink:
    """Hands entries to another thread through a Queue."""

    def __init__(self, queue: Queue[LogEntry]) -> None:
        self.queue = queue

    def emit(self, entry: LogEntry) -> None:
        self.queue.put(entry)


class MultiSink:
    """Fans entries out to several sinks; one failing does not stop the rest."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self.sinks = list(sinks)

    def emit(self, entry: LogEntry) -> None:
        for sink in self.sinks:
            try:
                sink.emit(entry)
            except DeliveryError as exc:
                logger.error("Delivery failed: %s", exc)
            except Exception:
                logger.exception("Sink %s raised while emitting", type(sink).__name__)

    def close(self) -> None:
        for sink in self.sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                close()


class AsyncDispatcher:
    """
    Fire-and-forget wrapper around a sink.

    emit() only enqueues; a daemon thread performs the delivery so a slow
    log write or webhook never holds up the next collector call. Failures
    are logged and dropped.
    """

    def __init__(self, sink: EventSink, max_pending: int = 1000) -> None:
        self.sink = sink
        self._queue: Queue[LogEntry] = Queue(maxsize=max_pending)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.dropped = 0
        self.failed = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._deliver_loop,
            daemon=True,
            name="AsyncDispatcher",
        )
        self._thread.start()

    def emit(self, entry: LogEntry) -> None:
        if not self.is_running:
            self.start()
        try:
            self._queue.put_nowait(entry)
        except Full:
            self.dropped += 1
            logger.warning("Dispatch queue full, dropping entry: %s", entry.message)

    def close(self, timeout: float | None = 5.0) -> None:
        """Deliver what is queued, then stop the delivery thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        close = getattr(self.sink, "close", None)
        if close is not None:
            close()

    def _deliver_loop(self) -> None:
        while True:
            try:
                entry = self._queue.get(timeout=0.1)
            except Empty:
                if self._stop_event.is_set():
                    return
                continue
            self._deliver(entry)

    def _deliver(self, entry: LogEntry) -> None:
        try:
            self.sink.emit(entry)
        except DeliveryError as exc:
            self.failed += 1
            logger.error("Delivery failed: %s", exc)
        except Exception:
            self.failed += 1
            logger.exception("Sink %s raised while emitting", type(self.sink).__name__)
