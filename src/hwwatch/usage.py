"""System usage summary attached to webhook deliveries."""

import logging
import platform
import socket
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path

import psutil

from hwwatch.models import (
    AudioDevice,
    Category,
    DisplayDevice,
    USBDevice,
    interface_type,
)
from hwwatch.store import SnapshotStore

logger = logging.getLogger(__name__)

GB = 1024**3
CPUINFO = Path("/proc/cpuinfo")


@dataclass(slots=True)
class MemoryUsage:
    total_gb: float = 0.0
    used_gb: float = 0.0
    free_gb: float = 0.0
    usage_percentage: float = 0.0
    pressure_state: str = "unknown"


@dataclass(slots=True)
class CPUUsage:
    cores: int = 0
    current_usage: float = 0.0
    load_average: tuple[float, float, float] = (0.0, 0.0, 0.0)
    architecture: str = ""
    brand: str = ""


@dataclass(slots=True)
class StorageDevice:
    name: str
    mount_point: str
    file_system: str
    total_gb: float
    used_gb: float
    free_gb: float
    usage_percentage: float


@dataclass(slots=True)
class StorageUsage:
    devices: list[StorageDevice] = field(default_factory=list)
    total_gb: float = 0.0
    used_gb: float = 0.0
    free_gb: float = 0.0


@dataclass(slots=True)
class NetworkInterfaceDetails:
    name: str
    type: str
    is_active: bool
    mac_address: str | None = None
    ip_address: str | None = None
    speed_mbps: int | None = None


@dataclass(slots=True)
class SystemInfo:
    hostname: str = ""
    os_version: str = ""
    uptime: str = ""
    boot_time: str = ""


@dataclass(slots=True)
class SystemUsage:
    """Point-in-time usage figures and device lists for the whole machine."""

    memory: MemoryUsage = field(default_factory=MemoryUsage)
    cpu: CPUUsage = field(default_factory=CPUUsage)
    storage: StorageUsage = field(default_factory=StorageUsage)
    network_interfaces: list[NetworkInterfaceDetails] = field(default_factory=list)
    connected_usb_devices: list[USBDevice] = field(default_factory=list)
    audio_devices: list[AudioDevice] = field(default_factory=list)
    display_devices: list[DisplayDevice] = field(default_factory=list)
    system: SystemInfo = field(default_factory=SystemInfo)

    def to_dict(self) -> dict:
        return asdict(self)


def format_uptime(seconds: float) -> str:
    """Format an uptime as '3h 25m'."""
    hours = int(seconds) // 3600
    minutes = (int(seconds) % 3600) // 60
    return f"{hours}h {minutes}m"


def memory_pressure(percent: float) -> str:
    """Map memory use to 'normal', 'warning' or 'critical'."""
    if percent >= 90:
        return "critical"
    if percent >= 75:
        return "warning"
    return "normal"


def cpu_brand(cpuinfo: Path = CPUINFO) -> str:
    """CPU model name from /proc/cpuinfo, else whatever platform reports."""
    try:
        for line in cpuinfo.read_text(encoding="utf-8", errors="replace").splitlines():
            key, _, value = line.partition(":")
            if key.strip() == "model name" and value.strip():
                return value.strip()
    except OSError:
        pass  # Not Linux
    return platform.processor() or platform.machine()


def _memory_usage() -> MemoryUsage:
    mem = psutil.virtual_memory()
    return MemoryUsage(
        total_gb=round(mem.total / GB, 2),
        used_gb=round(mem.used / GB, 2),
        free_gb=round(mem.available / GB, 2),
        usage_percentage=mem.percent,
        pressure_state=memory_pressure(mem.percent),
    )


def _cpu_usage() -> CPUUsage:
    # Non-blocking, measured since the previous call
    return CPUUsage(
        cores=psutil.cpu_count(logical=True) or 0,
        current_usage=psutil.cpu_percent(interval=None),
        load_average=tuple(psutil.getloadavg()),
        architecture=platform.machine(),
        brand=cpu_brand(),
    )


def _storage_usage() -> StorageUsage:
    usage = StorageUsage()
    for part in psutil.disk_partitions(all=False):
        if not part.device.startswith("/dev/"):
            continue
        try:
            disk = psutil.disk_usage(part.mountpoint)
        except OSError:
            # Unmounted between listing and querying, or not readable
            continue
        device = StorageDevice(
            name=part.device,
            mount_point=part.mountpoint,
            file_system=part.fstype,
            total_gb=round(disk.total / GB, 2),
            used_gb=round(disk.used / GB, 2),
            free_gb=round(disk.free / GB, 2),
            usage_percentage=disk.percent,
        )
        usage.devices.append(device)
        usage.total_gb = round(usage.total_gb + device.total_gb, 2)
        usage.used_gb = round(usage.used_gb + device.used_gb, 2)
        usage.free_gb = round(usage.free_gb + device.free_gb, 2)
    return usage


def _network_details() -> list[NetworkInterfaceDetails]:
    addrs = psutil.net_if_addrs()
    stats = psutil.net_if_stats()

    interfaces = []
    for name in sorted(set(addrs) | set(stats)):
        mac = ip = None
        for addr in addrs.get(name, []):
            if addr.family == psutil.AF_LINK and mac is None:
                mac = addr.address or None
            elif addr.family == socket.AF_INET and ip is None:
                ip = addr.address
        stat = stats.get(name)
        interfaces.append(
            NetworkInterfaceDetails(
                name=name,
                type=interface_type(name),
                is_active=bool(stat and stat.isup),
                mac_address=mac,
                ip_address=ip,
                speed_mbps=stat.speed if stat and stat.speed else None,
            )
        )
    return interfaces


def _system_info() -> SystemInfo:
    boot_time = psutil.boot_time()
    return SystemInfo(
        hostname=socket.gethostname(),
        os_version=f"{platform.system()} {platform.release()}",
        uptime=format_uptime(time.time() - boot_time),
        boot_time=datetime.fromtimestamp(boot_time).strftime("%Y-%m-%d %H:%M:%S"),
    )


def _devices(store: SnapshotStore | None, category: Category) -> list:
    if store is None:
        return []
    return list(store.get(category) or ())


def collect_usage(store: SnapshotStore | None = None) -> SystemUsage:
    """
    Collect a usage summary of the machine.

    USB, audio and display lists are taken from the store, the monitor's
    latest accepted snapshots; without one they are left empty. Each psutil
    section falls back to its defaults if it cannot be read, so the summary
    never prevents an event from being delivered.
    """
    usage = SystemUsage(
        connected_usb_devices=_devices(store, Category.USB),
        audio_devices=_devices(store, Category.AUDIO),
        display_devices=_devices(store, Category.DISPLAY),
    )
    sections = (
        ("memory", _memory_usage),
        ("cpu", _cpu_usage),
        ("storage", _storage_usage),
        ("network_interfaces", _network_details),
        ("system", _system_info),
    )
    for name, collect in sections:
        try:
            setattr(usage, name, collect())
        except (psutil.Error, OSError) as exc:
            logger.warning("Could not collect %s usage: %s", name, exc)
    return usage
