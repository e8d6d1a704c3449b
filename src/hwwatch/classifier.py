"""Change classifier: turns change events into leveled log entries."""

from datetime import datetime
from typing import cast

from hwwatch.models import (
    AudioDevice,
    Category,
    ChangeEvent,
    ChangeKind,
    DisplayDevice,
    Level,
    LogEntry,
    NetworkInterface,
    USBDevice,
)

GIB = 1024**3
MIB = 1024**2

_LEVELS = {
    Category.MEMORY: Level.HARDWARE,
    Category.CPU: Level.HARDWARE,
    Category.STORAGE: Level.HARDWARE,
    Category.USB: Level.USB,
    Category.NETWORK: Level.NETWORK,
    Category.AUDIO: Level.AUDIO,
    Category.DISPLAY: Level.DISPLAY,
}

NO_CHANGES_MESSAGE = "Hardware check completed - no changes detected"


def level_for(category: Category) -> Level:
    """Return the level entries of a category are logged at."""
    return _LEVELS[category]


def format_memory_delta(delta: int) -> str:
    """Format a RAM size difference, whole GB where possible."""
    size = abs(delta)
    if size >= GIB:
        return f"{size // GIB} GB"
    return f"{size // MIB} MB"


def describe(event: ChangeEvent) -> str:
    """Build the deterministic message for a change event."""
    category = event.category
    kind = event.kind
    device = event.after if kind is not ChangeKind.REMOVED else event.before

    if category is Category.MEMORY:
        direction = "added" if event.delta > 0 else "removed"
        return f"RAM {direction}: {format_memory_delta(event.delta)}"

    if category is Category.CPU:
        return f"CPU count changed: {event.before} → {event.after}"

    if category is Category.STORAGE:
        return f"Storage {kind.value}: {device}"

    if category is Category.USB:
        usb = cast(USBDevice, device)
        return (
            f"USB device {kind.value}: {usb.name} "
            f"(VID: {usb.vendor_id}, PID: {usb.product_id})"
        )

    if category is Category.NETWORK:
        iface = cast(NetworkInterface, device)
        if kind is ChangeKind.CHANGED:
            status = "activated" if iface.is_active else "deactivated"
            return f"Network interface {status}: {iface.name}"
        return f"Network interface {kind.value}: {iface.name} ({iface.type})"

    if category is Category.AUDIO:
        audio = cast(AudioDevice, device)
        return f"Audio {audio.direction} device {kind.value}: {audio.name}"

    display = cast(DisplayDevice, device)
    return f"Display {kind.value}: {display.name} ({display.resolution})"


def classify(event: ChangeEvent, timestamp: datetime | None = None) -> LogEntry:
    """Assign a level and message to a change event."""
    return LogEntry(
        timestamp=timestamp or datetime.now(),
        level=level_for(event.category),
        message=describe(event),
        category=event.category,
    )


def error_entry(category: Category, error: Exception, timestamp: datetime | None = None) -> LogEntry:
    """Entry reported when collecting a category failed."""
    cause = getattr(error, "cause", None) or str(error) or type(error).__name__
    return LogEntry(
        timestamp=timestamp or datetime.now(),
        level=Level.ERROR,
        message=f"{category.label} collection failed: {cause}",
        category=category,
    )


def info_entry(message: str, timestamp: datetime | None = None) -> LogEntry:
    """Plain informational entry."""
    return LogEntry(timestamp=timestamp or datetime.now(), level=Level.INFO, message=message)


def no_changes_entry(timestamp: datetime | None = None) -> LogEntry:
    """Entry emitted for a cycle that produced nothing else."""
    return info_entry(NO_CHANGES_MESSAGE, timestamp)
