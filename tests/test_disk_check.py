import pytest

from proxy_appliance.disk_check import select_largest, validate_target_disk
from proxy_appliance.errors import DiskValidationError
from proxy_appliance.lib.block import BlockDevice

GIB = 1024**3
RESERVED_MIB = 4096
MIN_DATA_MIB = 92160


def _validate(devices):
    return validate_target_disk(devices, reserved_system_mib=RESERVED_MIB, min_data_mib=MIN_DATA_MIB)


def test_selects_largest_device():
    devices = [BlockDevice("/dev/sda", 120 * GIB), BlockDevice("/dev/sdb", 500 * GIB), BlockDevice("/dev/sdc", 200 * GIB)]
    assert _validate(devices).path == "/dev/sdb"


def test_ties_go_to_first_path_in_sorted_order():
    devices = [BlockDevice("/dev/vdb", 200 * GIB), BlockDevice("/dev/sdz", 200 * GIB), BlockDevice("/dev/vda", 200 * GIB)]
    assert select_largest(devices).path == "/dev/sdz"


def test_no_devices_is_fatal():
    with pytest.raises(DiskValidationError, match="No disk detected"):
        _validate([])


def test_largest_below_minimum_is_fatal_even_with_many_small_disks():
    devices = [BlockDevice(f"/dev/sd{c}", 60 * GIB) for c in "abcd"]
    with pytest.raises(DiskValidationError):
        _validate(devices)


def test_exactly_minimum_disk_passes_and_sizes_data_partition():
    # 94GB reported, 94GB (4GB system + 90GB data) required
    disk = _validate([BlockDevice("/dev/sda", 94 * GIB)])

    assert disk.path == "/dev/sda"
    assert [p.mountpoint for p in disk.layout] == ["/", "/data"]
    assert disk.layout[0].min_size_mib == RESERVED_MIB
    assert disk.data_partition.min_size_mib == 94 * 1024 - RESERVED_MIB


def test_small_disk_message_cites_required_and_available(fake_run):
    with pytest.raises(DiskValidationError) as excinfo:
        _validate([BlockDevice("/dev/sda", 50 * GIB)])

    message = str(excinfo.value)
    assert "50GB" in message
    assert "94GB" in message
    # Pure check: nothing was executed.
    assert fake_run.calls == []
