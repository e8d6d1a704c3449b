"""hwwatch command line."""

import argparse
import json
import logging
import signal
import sys
import threading
from dataclasses import asdict, is_dataclass
from typing import Any, Callable, TextIO

from pydantic import ValidationError

from hwwatch.classifier import info_entry
from hwwatch.collector import Collector, SystemCollector
from hwwatch.config import MonitorSettings, get_settings
from hwwatch.monitor import HardwareMonitor, collect_all
from hwwatch.sinks import (
    AsyncDispatcher,
    ConsoleSink,
    EventSink,
    LogFileSink,
    MultiSink,
    WebhookSink,
)
from hwwatch.usage import SystemUsage, collect_usage

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SHUTDOWN_MARGIN = 5.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hwwatch",
        description="Watch hardware inventory and report changes",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_categories(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--categories",
            help="Comma separated categories (memory,cpu,storage,usb,network,audio,display) or 'all'",
        )

    run = sub.add_parser("run", help="Poll hardware and log changes")
    run.add_argument("--interval", type=float, help="Seconds between checks (default 60)")
    run.add_argument("--timeout", type=float, help="Per-category collection timeout in seconds (default 30)")
    add_categories(run)
    run.add_argument("--log-file", help="Log file path ('' disables)")
    run.add_argument("--webhook-url", help="POST every entry to this URL")
    run.add_argument("--no-console", action="store_true", help="Do not print entries")
    run.add_argument("--once", action="store_true", help="Baseline, run one check and exit")

    snapshot = sub.add_parser("snapshot", help="Print the current inventory as JSON")
    add_categories(snapshot)
    snapshot.add_argument("--timeout", type=float, help="Per-category collection timeout in seconds")

    tui = sub.add_parser("tui", help="Live terminal view")
    tui.add_argument("--interval", type=float, help="Seconds between checks")
    add_categories(tui)

    return parser


def settings_from_args(args: argparse.Namespace) -> MonitorSettings:
    overrides = {
        "interval": getattr(args, "interval", None),
        "collector_timeout": getattr(args, "timeout", None),
        "categories": getattr(args, "categories", None),
        "log_file": getattr(args, "log_file", None),
        "webhook_url": getattr(args, "webhook_url", None),
    }
    if getattr(args, "no_console", False):
        overrides["console"] = False
    return get_settings(**overrides)


def build_sink(
    settings: MonitorSettings,
    stream: TextIO | None = None,
    usage_provider: Callable[[], SystemUsage] = collect_usage,
) -> AsyncDispatcher:
    """Assemble the configured sinks behind a non-blocking dispatcher."""
    sinks: list[EventSink] = []
    if settings.console:
        sinks.append(ConsoleSink(stream))
    if settings.log_file is not None:
        sinks.append(LogFileSink(settings.log_file))
    if settings.webhook_url:
        sinks.append(
            WebhookSink(
                settings.webhook_url,
                timeout=settings.webhook_timeout,
                max_retries=settings.webhook_retries,
                usage_provider=usage_provider,
            )
        )
    return AsyncDispatcher(MultiSink(sinks))


def stop_monitor(monitor: HardwareMonitor, margin: float = SHUTDOWN_MARGIN) -> None:
    """Stop the monitor, waiting long enough for a cycle where every collection times out."""
    limit = monitor.max_cycle_seconds
    monitor.stop(timeout=None if limit is None else limit + margin)


def _jsonable(snapshot: Any) -> Any:
    if isinstance(snapshot, tuple):
        return [asdict(item) if is_dataclass(item) else item for item in snapshot]
    return snapshot


def cmd_snapshot(settings: MonitorSettings, collector: Collector, out: TextIO) -> int:
    snapshots, errors = collect_all(
        collector, settings.enabled_categories(), settings.collector_timeout
    )
    report: dict[str, Any] = {c.value: _jsonable(s) for c, s in snapshots.items()}
    if errors:
        report["errors"] = {c.value: exc.cause for c, exc in errors.items()}
    json.dump(report, out, indent=2)
    out.write("\n")
    return 0


def cmd_run(
    settings: MonitorSettings,
    collector: Collector,
    once: bool = False,
    stream: TextIO | None = None,
) -> int:
    monitor: HardwareMonitor | None = None

    def usage() -> SystemUsage:
        # Device sections come from the snapshots the monitor already holds
        return collect_usage(monitor.store if monitor is not None else None)

    dispatcher = build_sink(settings, stream, usage_provider=usage)
    monitor = HardwareMonitor(
        collector,
        dispatcher,
        categories=settings.enabled_categories(),
        poll_rate=settings.interval,
        collector_timeout=settings.collector_timeout,
    )
    dispatcher.emit(
        info_entry(f"Starting hardware monitoring every {settings.interval:g} seconds")
    )

    if once:
        monitor.initialize()
        monitor.run_once()
        dispatcher.close()
        return 0

    stop_requested = threading.Event()

    def handle_signal(signum, frame) -> None:
        logger.info("Received signal %s, stopping after current cycle", signum)
        stop_requested.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    monitor.start()
    stop_requested.wait()
    stop_monitor(monitor)
    dispatcher.emit(info_entry("Hardware monitoring stopped"))
    dispatcher.close()
    return 0


def cmd_tui(settings: MonitorSettings) -> int:
    from hwwatch.app import HardwareWatchApp

    app = HardwareWatchApp(
        categories=settings.enabled_categories(),
        poll_rate=settings.interval,
        collector_timeout=settings.collector_timeout,
    )
    app.run()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the hwwatch command."""
    args = build_parser().parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ValidationError as exc:
        print(f"hwwatch: invalid configuration:\n{exc}", file=sys.stderr)
        return 1

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    collector = SystemCollector(command_timeout=settings.collector_timeout)

    if args.command == "snapshot":
        return cmd_snapshot(settings, collector, sys.stdout)
    if args.command == "tui":
        return cmd_tui(settings)
    return cmd_run(settings, collector, once=args.once)


if __name__ == "__main__":
    sys.exit(main())
