from pathlib import Path

import pytest

from netwatch import platform as nwplatform
from netwatch.platform import (
    DeviceNotFoundError,
    LinuxReader,
    MacOSReader,
    NetwatchError,
    PlatformError,
    create_reader,
    list_proc_net_dev_devices,
    parse_netstat_interface,
    parse_proc_net_dev,
)

SAMPLE = """Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo: 1234567      100    0    0    0     0          0         0  1234567      100    0    0    0     0       0          0
  eth0: 9876543210   5000    0    0    0     0          0         0  1234567890   3000    0    0    0     0       0          0
"""

LO_ONLY = """Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo: 1234567      100    0    0    0     0          0         0  1234567      100    0    0    0     0       0          0
"""


def test_parse_proc_net_dev():
    stats = parse_proc_net_dev(SAMPLE, "eth0")
    assert stats.bytes_in == 9876543210
    assert stats.bytes_out == 1234567890
    assert stats.packets_in == 5000
    assert stats.packets_out == 3000


def test_device_not_found():
    with pytest.raises(DeviceNotFoundError) as info:
        parse_proc_net_dev(LO_ONLY, "nonexistent")
    assert info.value.device == "nonexistent"
    assert isinstance(info.value, NetwatchError)


def test_errors_and_drops_fields():
    content = "h1\nh2\n  wlan0: 10 2 3 4 0 0 0 0 20 5 6 7 0 0 0 0\n"
    stats = parse_proc_net_dev(content, "wlan0")
    assert (stats.errors_in, stats.drops_in) == (3, 4)
    assert (stats.errors_out, stats.drops_out) == (6, 7)


def test_short_line_defaults_to_zero():
    content = "h1\nh2\n  eth1: 42 x\n"
    stats = parse_proc_net_dev(content, "eth1")
    assert stats.bytes_in == 42
    assert stats.packets_in == 0
    assert stats.bytes_out == 0


def test_list_devices_filters_virtual():
    content = (
        "h1\nh2\n"
        "    lo: 0 0\n"
        "  eth0: 0 0\n"
        "docker0: 0 0\n"
        "  veth1: 0 0\n"
        " br-abc: 0 0\n"
        " wlan0: 0 0\n"
    )
    assert list_proc_net_dev_devices(content) == ["eth0", "wlan0"]


def test_linux_reader_uses_file(tmp_path):
    path = tmp_path / "dev"
    path.write_text(SAMPLE)
    reader = LinuxReader(path)
    assert reader.is_available()
    assert reader.list_devices() == ["eth0"]
    assert reader.read_stats("eth0").packets_out == 3000


def test_linux_reader_missing_file(tmp_path):
    reader = LinuxReader(tmp_path / "absent")
    assert not reader.is_available()
    with pytest.raises(NetwatchError):
        reader.list_devices()


def test_parse_netstat_interface():
    output = (
        "Name       Mtu   Network       Address            Ipkts Ierrs     Ibytes    Opkts Oerrs     Obytes  Coll\n"
        "en0        1500  <Link#4>    00:00:00:00:00:01   100     1       2000       50     2       1000     0\n"
    )
    stats = parse_netstat_interface(output, "en0")
    assert stats.packets_in == 100
    assert stats.errors_in == 1
    assert stats.bytes_in == 2000
    assert stats.packets_out == 50
    assert stats.errors_out == 2
    assert stats.bytes_out == 1000
    assert stats.drops_in == 0 and stats.drops_out == 0


def test_parse_netstat_interface_missing():
    with pytest.raises(DeviceNotFoundError):
        parse_netstat_interface("Name Mtu\n", "en5")


def test_macos_reader_always_available():
    assert MacOSReader().is_available() is True


def test_create_reader_linux(monkeypatch):
    monkeypatch.setattr(nwplatform.sys, "platform", "linux")
    reader = create_reader()
    assert isinstance(reader, LinuxReader)
    assert reader.is_available() == Path("/proc/net/dev").exists()


def test_create_reader_macos(monkeypatch):
    monkeypatch.setattr(nwplatform.sys, "platform", "darwin")
    reader = create_reader()
    assert isinstance(reader, MacOSReader)
    assert reader.is_available() is True


def test_create_reader_unsupported(monkeypatch):
    monkeypatch.setattr(nwplatform.sys, "platform", "win32")
    with pytest.raises(PlatformError):
        create_reader()