"""Shared fixtures for hwwatch tests."""

from datetime import datetime

import pytest

from hwwatch.errors import CollectionError
from hwwatch.models import (
    AudioDevice,
    Category,
    DisplayDevice,
    NetworkInterface,
    USBDevice,
)

FIXED_TIME = datetime(2026, 1, 15, 10, 30, 0)

IPHONE = USBDevice(
    vendor_id="0x05AC",
    product_id="0x12A8",
    name="iPhone",
    location_id="0x14100000",
    serial_number="00008030-001A",
)
KEYBOARD = USBDevice(
    vendor_id="0x046D",
    product_id="0xC31C",
    name="USB Keyboard",
    location_id="0x14200000",
)
EN0 = NetworkInterface(name="en0", type="Ethernet/WiFi", is_active=True, mac_address="a4:83:e7:00:00:01")
LO0 = NetworkInterface(name="lo0", type="Loopback", is_active=True)
MIC = AudioDevice(name="MacBook Pro Microphone", uid="BuiltInMic_input", is_input=True, is_output=False)
SPEAKERS = AudioDevice(
    name="MacBook Pro Speakers", uid="BuiltInSpeaker_output", is_input=False, is_output=True
)
BUILTIN_DISPLAY = DisplayDevice(name="Color LCD", resolution="3024 x 1964 Retina", is_main=True)


def baseline_inventory() -> dict:
    """A plausible laptop inventory, one snapshot per category."""
    return {
        Category.MEMORY: 8 * 1024**3,
        Category.CPU: 8,
        Category.STORAGE: ("/dev/disk1s1", "/dev/disk1s5"),
        Category.USB: (IPHONE, KEYBOARD),
        Category.NETWORK: (EN0, LO0),
        Category.AUDIO: (MIC, SPEAKERS),
        Category.DISPLAY: (BUILTIN_DISPLAY,),
    }


class ScriptedCollector:
    """
    Collector returning whatever the test put in place.

    A value may be a snapshot, an exception instance to raise, or a
    zero-argument callable producing the snapshot.
    """

    def __init__(self, snapshots: dict | None = None) -> None:
        self.snapshots = dict(snapshots if snapshots is not None else baseline_inventory())
        self.calls: list[Category] = []

    def set(self, category: Category, value) -> None:
        self.snapshots[category] = value

    def fail(self, category: Category, cause: str = "collection failed") -> None:
        self.snapshots[category] = CollectionError(category, cause)

    def collect(self, category: Category):
        self.calls.append(category)
        value = self.snapshots[category]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value()
        return value


@pytest.fixture
def collector() -> ScriptedCollector:
    return ScriptedCollector()


@pytest.fixture
def clock():
    return lambda: FIXED_TIME
