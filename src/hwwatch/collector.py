"""Hardware readers producing one snapshot per category.

Memory, CPU, storage and network come from psutil on every platform. USB,
audio and display devices are read from system_profiler on macOS and from
sysfs/procfs on Linux.
"""

import json
import logging
import subprocess
import sys
from pathlib import Path
from typing import Any, Iterable, Iterator, Protocol

import psutil

from hwwatch.errors import CollectionError, StaleDataError
from hwwatch.models import (
    AudioDevice,
    Category,
    DisplayDevice,
    NetworkInterface,
    Snapshot,
    USBDevice,
    interface_type,
)

logger = logging.getLogger(__name__)

SYSTEM_PROFILER = "/usr/sbin/system_profiler"
APPLE_VENDOR_ID = 0x05AC


class Collector(Protocol):
    """Anything able to produce the current snapshot of a category."""

    def collect(self, category: Category) -> Snapshot:
        """Return the snapshot, or raise CollectionError / StaleDataError."""
        ...


def run_command(category: Category, args: list[str], timeout: float) -> str:
    """
    Run an external command and return its stdout.

    Raises:
        CollectionError: If the command is missing, times out or exits non-zero.
    """
    logger.debug("Running %s", " ".join(args))
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise CollectionError(category, f"{args[0]} timed out after {timeout:g}s") from exc
    except OSError as exc:
        raise CollectionError(category, f"{args[0]} failed: {exc}") from exc

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise CollectionError(
            category, f"{args[0]} exited with {result.returncode}: {stderr or 'no output'}"
        )
    return result.stdout


def load_profiler_items(category: Category, output: str, data_type: str) -> list[dict[str, Any]]:
    """Extract the top-level item list from system_profiler -json output."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise StaleDataError(category, f"invalid {data_type} JSON: {exc}") from exc

    items = data.get(data_type) if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise StaleDataError(category, f"{data_type} missing from system_profiler output")
    return [item for item in items if isinstance(item, dict)]


def walk_items(items: Iterable[dict[str, Any]]) -> Iterator[dict[str, Any]]:
    """Depth-first walk over nested system_profiler '_items' lists."""
    for item in items:
        yield item
        children = item.get("_items")
        if isinstance(children, list):
            yield from walk_items(c for c in children if isinstance(c, dict))


def format_hex_id(value: Any, width: int) -> str | None:
    """
    Normalise a vendor/product/location id to '0x' + upper-case hex.

    Accepts '0x05ac  (Apple Inc.)', '05ac', '0x14100000 / 2' and ints.
    Returns None when the value carries no parseable id.
    """
    if isinstance(value, int):
        number = value
    else:
        token = str(value or "").split()
        if not token:
            return None
        if token[0] == "apple_vendor_id":
            number = APPLE_VENDOR_ID
        else:
            try:
                number = int(token[0], 16)
            except ValueError:
                return None
    return f"0x{number:0{width}X}"


# -- USB ---------------------------------------------------------------------


def parse_profiler_usb(output: str) -> tuple[USBDevice, ...]:
    """Parse `system_profiler SPUSBDataType -json` output."""
    items = load_profiler_items(Category.USB, output, "SPUSBDataType")
    devices = []
    for item in walk_items(items):
        vendor_id = format_hex_id(item.get("vendor_id"), 4)
        product_id = format_hex_id(item.get("product_id"), 4)
        location_id = format_hex_id(item.get("location_id"), 8)
        # Buses and controllers carry no ids
        if vendor_id is None or product_id is None or location_id is None:
            continue
        devices.append(
            USBDevice(
                vendor_id=vendor_id,
                product_id=product_id,
                name=item.get("_name") or "Unknown USB Device",
                location_id=location_id,
                serial_number=item.get("serial_num"),
            )
        )
    return tuple(devices)


def _read_attr(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace").strip() or None
    except OSError:
        return None


def read_sysfs_usb(root: Path) -> tuple[USBDevice, ...]:
    """Read USB devices from /sys/bus/usb/devices."""
    if not root.is_dir():
        raise CollectionError(Category.USB, f"{root} not found")

    devices = []
    for entry in sorted(root.iterdir()):
        # Interfaces look like '1-1:1.0'
        if ":" in entry.name:
            continue
        vendor_id = format_hex_id(_read_attr(entry / "idVendor"), 4)
        product_id = format_hex_id(_read_attr(entry / "idProduct"), 4)
        if vendor_id is None or product_id is None:
            continue
        devices.append(
            USBDevice(
                vendor_id=vendor_id,
                product_id=product_id,
                name=_read_attr(entry / "product") or "Unknown USB Device",
                location_id=entry.name,
                serial_number=_read_attr(entry / "serial"),
            )
        )
    return tuple(devices)


# -- Audio -------------------------------------------------------------------


def _audio_pair(name: str, uid: str, has_input: bool, has_output: bool) -> list[AudioDevice]:
    devices = []
    if has_input:
        devices.append(AudioDevice(name=name, uid=f"{uid}_input", is_input=True, is_output=False))
    if has_output:
        devices.append(AudioDevice(name=name, uid=f"{uid}_output", is_input=False, is_output=True))
    return devices


def parse_profiler_audio(output: str) -> tuple[AudioDevice, ...]:
    """Parse `system_profiler SPAudioDataType -json` output."""
    items = load_profiler_items(Category.AUDIO, output, "SPAudioDataType")
    devices: list[AudioDevice] = []
    for item in walk_items(items):
        name = item.get("_name")
        if not name:
            continue
        has_input = "coreaudio_device_input" in item or "coreaudio_input_source" in item
        has_output = "coreaudio_device_output" in item or "coreaudio_output_source" in item
        uid = str(item.get("coreaudio_device_id") or name)
        devices.extend(_audio_pair(name, uid, has_input, has_output))
    return tuple(devices)


def read_asound_pcm(path: Path) -> tuple[AudioDevice, ...]:
    """
    Read ALSA PCM devices from /proc/asound/pcm.

    Lines look like '00-00: ALC3246 Analog : ALC3246 Analog : playback 1 : capture 1'.
    A machine without ALSA has no audio devices.
    """
    if not path.exists():
        return ()
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise CollectionError(Category.AUDIO, f"cannot read {path}: {exc}") from exc

    devices: list[AudioDevice] = []
    for line in text.splitlines():
        pcm_id, sep, rest = line.partition(":")
        if not sep or not rest.strip():
            continue
        parts = [p.strip() for p in rest.split(" : ")]
        directions = {p.split()[0] for p in parts[1:] if p}
        devices.extend(
            _audio_pair(
                parts[0] or pcm_id.strip(),
                f"pcm{pcm_id.strip()}",
                has_input="capture" in directions,
                has_output="playback" in directions,
            )
        )
    return tuple(devices)


# -- Displays ----------------------------------------------------------------


def parse_profiler_displays(output: str) -> tuple[DisplayDevice, ...]:
    """Parse `system_profiler SPDisplaysDataType -json` output."""
    items = load_profiler_items(Category.DISPLAY, output, "SPDisplaysDataType")
    devices = []
    for gpu in items:
        connected = gpu.get("spdisplays_ndrvs")
        if "_spdisplays_resolution" in gpu:
            connected = [gpu, *(connected or [])]
        for display in connected or []:
            if not isinstance(display, dict) or not display.get("_name"):
                continue
            devices.append(
                DisplayDevice(
                    name=display["_name"],
                    resolution=display.get("_spdisplays_resolution") or "Unknown",
                    is_main=display.get("spdisplays_main") == "spdisplays_yes",
                )
            )
    return tuple(devices)


def read_drm_displays(root: Path) -> tuple[DisplayDevice, ...]:
    """Read connected displays from /sys/class/drm connector entries."""
    if not root.is_dir():
        return ()

    devices = []
    for entry in sorted(root.glob("card*-*")):
        if _read_attr(entry / "status") != "connected":
            continue
        connector = entry.name.split("-", 1)[1]
        modes = (_read_attr(entry / "modes") or "").splitlines()
        resolution = modes[0].replace("x", " x ", 1) if modes else "Unknown"
        devices.append(
            DisplayDevice(
                name=connector,
                resolution=resolution,
                is_main=connector.startswith(("eDP", "LVDS", "DSI")),
            )
        )
    return tuple(devices)


# -- Collector ---------------------------------------------------------------


class SystemCollector:
    """
    Collects hardware snapshots from the local machine.

    psutil covers memory, CPU, storage and network everywhere; the device
    categories need macOS or Linux.
    """

    def __init__(
        self,
        platform: str | None = None,
        command_timeout: float = 30.0,
        sysfs_root: Path = Path("/sys"),
        procfs_root: Path = Path("/proc"),
    ) -> None:
        """
        Initialize the SystemCollector.

        Args:
            platform: sys.platform style name. Defaults to the running platform.
            command_timeout: Timeout for each external command (seconds).
            sysfs_root: Root of sysfs, overridable for tests.
            procfs_root: Root of procfs, overridable for tests.
        """
        self.platform = platform or sys.platform
        self.command_timeout = command_timeout
        self.sysfs_root = sysfs_root
        self.procfs_root = procfs_root
        self._readers = {
            Category.MEMORY: self.memory,
            Category.CPU: self.cpu_count,
            Category.STORAGE: self.storage,
            Category.USB: self.usb,
            Category.NETWORK: self.network,
            Category.AUDIO: self.audio,
            Category.DISPLAY: self.displays,
        }

    @property
    def is_macos(self) -> bool:
        return self.platform == "darwin"

    @property
    def is_linux(self) -> bool:
        return self.platform.startswith("linux")

    def collect(self, category: Category) -> Snapshot:
        """Collect the current snapshot for a category."""
        reader = self._readers[category]
        try:
            return reader()
        except (psutil.Error, OSError) as exc:
            raise CollectionError(category, str(exc) or type(exc).__name__) from exc

    def memory(self) -> int:
        return int(psutil.virtual_memory().total)

    def cpu_count(self) -> int:
        count = psutil.cpu_count(logical=True)
        if not count:
            raise CollectionError(Category.CPU, "CPU count unavailable")
        return count

    def storage(self) -> tuple[str, ...]:
        devices = {
            part.device
            for part in psutil.disk_partitions(all=False)
            if part.device.startswith("/dev/")
        }
        return tuple(sorted(devices))

    def network(self) -> tuple[NetworkInterface, ...]:
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()

        interfaces = []
        for name in sorted(set(addrs) | set(stats)):
            mac = None
            for addr in addrs.get(name, []):
                if addr.family == psutil.AF_LINK and addr.address:
                    mac = addr.address
                    break
            stat = stats.get(name)
            interfaces.append(
                NetworkInterface(
                    name=name,
                    type=interface_type(name),
                    is_active=bool(stat and stat.isup),
                    mac_address=mac,
                )
            )
        return tuple(interfaces)

    def usb(self) -> tuple[USBDevice, ...]:
        if self.is_macos:
            return parse_profiler_usb(self._profiler(Category.USB, "SPUSBDataType"))
        if self.is_linux:
            return read_sysfs_usb(self.sysfs_root / "bus" / "usb" / "devices")
        raise CollectionError(Category.USB, f"unsupported platform {self.platform}")

    def audio(self) -> tuple[AudioDevice, ...]:
        if self.is_macos:
            return parse_profiler_audio(self._profiler(Category.AUDIO, "SPAudioDataType"))
        if self.is_linux:
            return read_asound_pcm(self.procfs_root / "asound" / "pcm")
        raise CollectionError(Category.AUDIO, f"unsupported platform {self.platform}")

    def displays(self) -> tuple[DisplayDevice, ...]:
        if self.is_macos:
            return parse_profiler_displays(self._profiler(Category.DISPLAY, "SPDisplaysDataType"))
        if self.is_linux:
            return read_drm_displays(self.sysfs_root / "class" / "drm")
        raise CollectionError(Category.DISPLAY, f"unsupported platform {self.platform}")

    def _profiler(self, category: Category, data_type: str) -> str:
        return run_command(category, [SYSTEM_PROFILER, data_type, "-json"], self.command_timeout)
