"""Tests for the snapshot diff engine."""

import pytest

from conftest import EN0, IPHONE, KEYBOARD, LO0, MIC, SPEAKERS, baseline_inventory
from hwwatch.diff import DiffResult, diff, diff_events, index_snapshot
from hwwatch.models import (
    AudioDevice,
    Category,
    ChangeKind,
    DisplayDevice,
    NetworkInterface,
    USBDevice,
)

INVENTORY = baseline_inventory()


class TestReflexivity:
    """Diffing a snapshot against itself finds nothing."""

    @pytest.mark.parametrize("category", list(Category))
    def test_same_snapshot_is_empty(self, category):
        snapshot = INVENTORY[category]
        result = diff(category, snapshot, snapshot)

        assert result == DiffResult()
        assert result.is_empty
        assert diff_events(category, snapshot, snapshot) == []

    @pytest.mark.parametrize("category", [c for c in Category if not c.is_scalar])
    def test_reordered_snapshot_is_empty(self, category):
        snapshot = INVENTORY[category]
        assert diff(category, snapshot, tuple(reversed(snapshot))).is_empty

    def test_empty_snapshots(self):
        assert diff(Category.USB, (), ()).is_empty


class TestPartition:
    """Added and removed keys partition the change in membership."""

    CASES = [
        (Category.STORAGE, ("/dev/disk0", "/dev/disk1"), ("/dev/disk1", "/dev/disk2")),
        (Category.USB, (IPHONE,), (KEYBOARD,)),
        (Category.USB, (), (IPHONE, KEYBOARD)),
        (Category.NETWORK, (EN0, LO0), (LO0,)),
        (Category.AUDIO, (MIC,), (MIC, SPEAKERS)),
    ]

    @pytest.mark.parametrize("category,previous,current", CASES)
    def test_partition(self, category, previous, current):
        result = diff(category, previous, current)
        prev_keys = set(index_snapshot(category, previous))
        cur_keys = set(index_snapshot(category, current))

        assert not (result.added & result.removed)
        assert (prev_keys - result.removed) | result.added == cur_keys


class TestNetworkActivation:
    """Activation flips are changes, never adds or removes."""

    def test_activation_is_single_change(self):
        down = NetworkInterface(name="en0", type="Ethernet/WiFi", is_active=False)
        up = NetworkInterface(name="en0", type="Ethernet/WiFi", is_active=True)

        result = diff(Category.NETWORK, (down, LO0), (up, LO0))

        assert result.added == frozenset()
        assert result.removed == frozenset()
        assert result.changed == frozenset({"en0"})

        events = diff_events(Category.NETWORK, (down, LO0), (up, LO0))
        assert len(events) == 1
        assert events[0].kind is ChangeKind.CHANGED
        assert events[0].before is down
        assert events[0].after is up

    def test_mac_change_is_invisible(self):
        a = NetworkInterface(name="en0", type="Ethernet/WiFi", is_active=True, mac_address="aa")
        b = NetworkInterface(name="en0", type="Ethernet/WiFi", is_active=True, mac_address="bb")
        assert diff(Category.NETWORK, (a,), (b,)).is_empty

    def test_add_and_activation_in_same_diff(self):
        down = NetworkInterface(name="en0", type="Ethernet/WiFi", is_active=False)
        up = NetworkInterface(name="en0", type="Ethernet/WiFi", is_active=True)
        vpn = NetworkInterface(name="utun0", type="VPN", is_active=True)

        events = diff_events(Category.NETWORK, (down,), (vpn, up))

        assert [(e.kind, e.key) for e in events] == [
            (ChangeKind.ADDED, "utun0"),
            (ChangeKind.CHANGED, "en0"),
        ]


class TestDeviceIdentity:
    def test_renamed_usb_device_is_not_reported(self):
        renamed = USBDevice(
            vendor_id=IPHONE.vendor_id,
            product_id=IPHONE.product_id,
            name="Joe's iPhone",
            location_id=IPHONE.location_id,
        )
        assert diff(Category.USB, (IPHONE,), (renamed,)).is_empty

    def test_usb_removed(self):
        events = diff_events(Category.USB, (IPHONE,), ())

        assert len(events) == 1
        assert events[0].kind is ChangeKind.REMOVED
        assert events[0].key == ("0x05AC", "0x12A8", "0x14100000")
        assert events[0].before == IPHONE
        assert events[0].after is None

    def test_display_resolution_change_is_remove_and_add(self):
        low = DisplayDevice(name="DELL U2720Q", resolution="1920 x 1080")
        high = DisplayDevice(name="DELL U2720Q", resolution="3840 x 2160")

        events = diff_events(Category.DISPLAY, (low,), (high,))

        assert [e.kind for e in events] == [ChangeKind.REMOVED, ChangeKind.ADDED]

    def test_audio_directions_are_separate_devices(self):
        headset_in = AudioDevice(name="Headset", uid="hs_input", is_input=True, is_output=False)
        headset_out = AudioDevice(name="Headset", uid="hs_output", is_input=False, is_output=True)

        events = diff_events(Category.AUDIO, (MIC,), (MIC, headset_in, headset_out))

        assert [e.key for e in events] == ["hs_input", "hs_output"]
        assert all(e.kind is ChangeKind.ADDED for e in events)

    def test_duplicate_keys_collapse(self):
        snapshot = ("/dev/disk1", "/dev/disk1", "/dev/disk2")
        assert diff(Category.STORAGE, snapshot, ("/dev/disk2", "/dev/disk1")).is_empty

        dup_usb = (IPHONE, IPHONE)
        result = diff(Category.USB, dup_usb, ())
        assert result.removed == frozenset({IPHONE.key})


class TestScalars:
    def test_memory_change_carries_delta(self):
        events = diff_events(Category.MEMORY, 8 * 1024**3, 16 * 1024**3)

        assert len(events) == 1
        assert events[0].kind is ChangeKind.CHANGED
        assert events[0].key is None
        assert events[0].delta == 8 * 1024**3

    def test_cpu_decrease(self):
        result = diff(Category.CPU, 8, 4)
        assert result.changed == frozenset({None})
        assert diff_events(Category.CPU, 8, 4)[0].delta == -4

    def test_equal_scalars(self):
        assert diff_events(Category.CPU, 8, 8) == []


class TestOrdering:
    def test_removed_then_added_then_changed(self):
        en1_down = NetworkInterface(name="en1", type="Ethernet/WiFi", is_active=False)
        en1_up = NetworkInterface(name="en1", type="Ethernet/WiFi", is_active=True)
        bridge = NetworkInterface(name="bridge0", type="Bridge", is_active=True)

        events = diff_events(Category.NETWORK, (LO0, en1_down, EN0), (bridge, en1_up))

        assert [(e.kind, e.key) for e in events] == [
            (ChangeKind.REMOVED, "en0"),
            (ChangeKind.REMOVED, "lo0"),
            (ChangeKind.ADDED, "bridge0"),
            (ChangeKind.CHANGED, "en1"),
        ]

    def test_order_independent_of_enumeration(self):
        previous = ("/dev/disk0",)
        forward = ("/dev/disk3", "/dev/disk1", "/dev/disk2")
        backward = tuple(reversed(forward))

        keys_forward = [e.key for e in diff_events(Category.STORAGE, previous, forward)]
        keys_backward = [e.key for e in diff_events(Category.STORAGE, previous, backward)]

        assert keys_forward == keys_backward
        assert keys_forward == ["/dev/disk0", "/dev/disk1", "/dev/disk2", "/dev/disk3"]
