"""Data models for hwwatch."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Hashable, Union


class Category(Enum):
    """Hardware categories, in the order a cycle evaluates them."""

    MEMORY = "memory"
    CPU = "cpu"
    STORAGE = "storage"
    USB = "usb"
    NETWORK = "network"
    AUDIO = "audio"
    DISPLAY = "display"

    @property
    def is_scalar(self) -> bool:
        """Memory and CPU snapshots are single integers."""
        return self in (Category.MEMORY, Category.CPU)

    @property
    def label(self) -> str:
        """Human readable name used in messages."""
        return _CATEGORY_LABELS[self]


_CATEGORY_LABELS = {
    Category.MEMORY: "Memory",
    Category.CPU: "CPU",
    Category.STORAGE: "Storage",
    Category.USB: "USB",
    Category.NETWORK: "Network",
    Category.AUDIO: "Audio",
    Category.DISPLAY: "Display",
}


class ChangeKind(Enum):
    """What happened to a device between two snapshots."""

    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


class Level(Enum):
    """Closed set of levels an emitted entry can carry."""

    HARDWARE = "HARDWARE"
    USB = "USB"
    NETWORK = "NETWORK"
    AUDIO = "AUDIO"
    DISPLAY = "DISPLAY"
    INFO = "INFO"
    ERROR = "ERROR"


@dataclass(slots=True, frozen=True)
class USBDevice:
    """A USB device as seen on the bus."""

    vendor_id: str  # '0x05AC'
    product_id: str  # '0x12A8'
    name: str
    location_id: str  # '0x14100000'
    serial_number: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        # Name and serial are not part of the identity
        return (self.vendor_id, self.product_id, self.location_id)


@dataclass(slots=True, frozen=True)
class NetworkInterface:
    """A network interface and its link state."""

    name: str
    type: str
    is_active: bool
    mac_address: str | None = None

    @property
    def key(self) -> str:
        return self.name


@dataclass(slots=True, frozen=True)
class AudioDevice:
    """One direction (input or output) of an audio device."""

    name: str
    uid: str  # device id + '_input' / '_output'
    is_input: bool
    is_output: bool

    @property
    def key(self) -> str:
        return self.uid

    @property
    def direction(self) -> str:
        return "input" if self.is_input else "output"


@dataclass(slots=True, frozen=True)
class DisplayDevice:
    """A connected display."""

    name: str
    resolution: str
    is_main: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.resolution)


Device = Union[USBDevice, NetworkInterface, AudioDevice, DisplayDevice]

# int for memory/CPU, tuple[str, ...] for storage, tuple of records otherwise
Snapshot = Union[int, tuple]


def identity_key(category: Category, item: Any) -> Hashable:
    """Return the identity key of one element of a snapshot."""
    if category is Category.STORAGE:
        return item
    return item.key


_INTERFACE_PREFIXES = (
    ("bridge", "Bridge"),
    ("awdl", "AirDrop"),
    ("utun", "VPN"),
    ("eth", "Ethernet/WiFi"),
    ("en", "Ethernet/WiFi"),
    ("wl", "Ethernet/WiFi"),
    ("lo", "Loopback"),
    ("tun", "VPN"),
    ("wg", "VPN"),
    ("br", "Bridge"),
)


def interface_type(name: str) -> str:
    """Guess an interface type from its name."""
    for prefix, kind in _INTERFACE_PREFIXES:
        if name.startswith(prefix):
            return kind
    return "Unknown"


@dataclass(slots=True, frozen=True)
class ChangeEvent:
    """A single difference between two snapshots of one category."""

    category: Category
    kind: ChangeKind
    key: Hashable | None  # None for scalar categories
    before: Any = None
    after: Any = None

    @property
    def delta(self) -> int:
        """Signed difference for scalar categories."""
        if not self.category.is_scalar:
            raise TypeError(f"{self.category.value} changes carry no scalar delta")
        return self.after - self.before


@dataclass(slots=True, frozen=True)
class LogEntry:
    """A classified, timestamped entry handed to event sinks."""

    timestamp: datetime
    level: Level
    message: str
    category: Category | None = None

    def format_line(self) -> str:
        """Render as '[YYYY-mm-dd HH:MM:SS] [LEVEL] message'."""
        stamp = self.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        return f"[{stamp}] [{self.level.value}] {self.message}"
