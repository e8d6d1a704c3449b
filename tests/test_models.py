"""Tests for hwwatch data models."""

from datetime import datetime

import pytest

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
    identity_key,
    interface_type,
)


def test_usb_device_creation():
    """Test USBDevice dataclass creation."""
    device = USBDevice(
        vendor_id="0x05AC",
        product_id="0x12A8",
        name="iPhone",
        location_id="0x14100000",
        serial_number="ABC123",
    )

    assert device.vendor_id == "0x05AC"
    assert device.product_id == "0x12A8"
    assert device.name == "iPhone"
    assert device.location_id == "0x14100000"
    assert device.serial_number == "ABC123"


def test_usb_identity_ignores_name_and_serial():
    """A renamed device in the same slot keeps its identity."""
    a = USBDevice("0x05AC", "0x12A8", "iPhone", "0x14100000", "ABC")
    b = USBDevice("0x05AC", "0x12A8", "Joe's iPhone", "0x14100000", "XYZ")

    assert a.key == b.key == ("0x05AC", "0x12A8", "0x14100000")
    assert a != b


def test_usb_identity_includes_location():
    """The same model plugged into another port is a different device."""
    a = USBDevice("0x05AC", "0x12A8", "iPhone", "0x14100000")
    b = USBDevice("0x05AC", "0x12A8", "iPhone", "0x14200000")

    assert a.key != b.key


def test_network_interface_key_is_name():
    nic = NetworkInterface(name="en0", type="Ethernet/WiFi", is_active=False)
    assert nic.key == "en0"
    assert nic.mac_address is None


def test_audio_device_direction():
    mic = AudioDevice(name="Mic", uid="dev1_input", is_input=True, is_output=False)
    out = AudioDevice(name="Mic", uid="dev1_output", is_input=False, is_output=True)

    assert mic.direction == "input"
    assert out.direction == "output"
    assert mic.key != out.key


def test_display_key_is_name_and_resolution():
    display = DisplayDevice(name="DELL U2720Q", resolution="3840 x 2160")
    assert display.key == ("DELL U2720Q", "3840 x 2160")
    assert display.is_main is False


def test_identity_key_for_storage_is_the_path():
    assert identity_key(Category.STORAGE, "/dev/disk2") == "/dev/disk2"
    nic = NetworkInterface(name="en1", type="Ethernet/WiFi", is_active=True)
    assert identity_key(Category.NETWORK, nic) == "en1"


def test_records_are_frozen():
    """Test that device records are immutable (frozen)."""
    device = DisplayDevice(name="Color LCD", resolution="3024 x 1964")

    try:
        device.name = "Other"
        raise AssertionError("Should have raised FrozenInstanceError")
    except AttributeError:
        pass  # Expected behavior for frozen dataclass


def test_records_use_slots():
    """Slots-based dataclasses don't have __dict__."""
    nic = NetworkInterface(name="en0", type="Ethernet/WiFi", is_active=True)
    assert not hasattr(nic, "__dict__")


@pytest.mark.parametrize(
    "name,expected",
    [
        ("en0", "Ethernet/WiFi"),
        ("enp0s31f6", "Ethernet/WiFi"),
        ("eth0", "Ethernet/WiFi"),
        ("wlan0", "Ethernet/WiFi"),
        ("lo0", "Loopback"),
        ("utun3", "VPN"),
        ("wg0", "VPN"),
        ("bridge0", "Bridge"),
        ("awdl0", "AirDrop"),
        ("gif0", "Unknown"),
    ],
)
def test_interface_type(name, expected):
    assert interface_type(name) == expected


def test_category_scalar_flags():
    assert Category.MEMORY.is_scalar
    assert Category.CPU.is_scalar
    assert not Category.USB.is_scalar
    assert [c.value for c in Category] == [
        "memory",
        "cpu",
        "storage",
        "usb",
        "network",
        "audio",
        "display",
    ]


def test_change_event_delta():
    event = ChangeEvent(Category.MEMORY, ChangeKind.CHANGED, None, before=8, after=16)
    assert event.delta == 8

    shrink = ChangeEvent(Category.CPU, ChangeKind.CHANGED, None, before=8, after=4)
    assert shrink.delta == -4


def test_change_event_delta_rejects_device_categories():
    event = ChangeEvent(Category.STORAGE, ChangeKind.ADDED, "/dev/disk2", after="/dev/disk2")
    with pytest.raises(TypeError):
        event.delta


def test_log_entry_format_line():
    entry = LogEntry(
        timestamp=datetime(2026, 1, 15, 9, 5, 3),
        level=Level.USB,
        message="USB device added: iPhone (VID: 0x05AC, PID: 0x12A8)",
    )
    assert entry.format_line() == (
        "[2026-01-15 09:05:03] [USB] USB device added: iPhone (VID: 0x05AC, PID: 0x12A8)"
    )
