import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from netwatch.processes import (
    ProcessMonitor,
    ProcessNetworkInfo,
    parse_io_stats,
    parse_lsof_processes,
    parse_net_dev,
    parse_netstat,
    parse_ps_processes,
)

HEADER = "Inter-| Receive | Transmit\n face |bytes packets | bytes packets\n"

LSOF_OUTPUT = (
    "COMMAND PID USER FD TYPE DEVICE SIZE/OFF NODE NAME\n"
    "nginx 100 root 6u IPv4 0x1 0t0 TCP *:80 (LISTEN)\n"
    "nginx 100 root 7u IPv4 0x2 0t0 TCP 10.0.0.1:80->10.0.0.2:5000 (ESTABLISHED)\n"
    "curl 200 user 3u IPv4 0x3 0t0 TCP 10.0.0.1:5001->10.0.0.3:443 (ESTABLISHED)\n"
    "short 300 x\n"
)

PS_OUTPUT = "  PID COMM RSS\n    1 launchd 100\n   42 bash 200\nbad\nx y z\n"


def net_dev_line(rx_bytes, rx_packets, tx_bytes, tx_packets, name="eth0"):
    return f"  {name}: {rx_bytes} {rx_packets} 0 0 0 0 0 0 {tx_bytes} {tx_packets} 0 0 0 0 0 0\n"


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


def make_proc(root: Path, pid: int, name: str, net_dev: str | None = None, io: str | None = None):
    pdir = root / str(pid)
    pdir.mkdir(parents=True)
    (pdir / "comm").write_text(name + "\n")
    (pdir / "cmdline").write_text(f"{name}\0--flag\0")
    if net_dev is not None:
        (pdir / "net").mkdir()
        (pdir / "net" / "dev").write_text(net_dev)
    if io is not None:
        (pdir / "io").write_text(io)
    return pdir


def test_total_bytes_and_packets():
    sent_only = ProcessNetworkInfo(pid=1, name="a", command="a", bytes_sent=5, packets_received=9)
    assert sent_only.total_bytes() == 5
    assert sent_only.total_packets() == 9


def test_parse_net_dev_single_interface():
    content = HEADER + net_dev_line(1000, 10, 2000, 20)
    assert parse_net_dev(content) == (1000, 2000, 10, 20)


def test_parse_net_dev_zero_traffic_is_none():
    content = HEADER + net_dev_line(0, 0, 0, 0)
    assert parse_net_dev(content) is None


def test_parse_net_dev_ignores_headers_and_bad_lines():
    content = HEADER + "  bad: x y z 0 0 0 0 0 a b 0\n" + net_dev_line(7, 1, 9, 2)
    assert parse_net_dev(content) == (7, 9, 1, 2)


def test_parse_io_stats():
    content = "rchar: 5\nwchar: 6\nread_bytes: 4096\nwrite_bytes: 8192\n"
    assert parse_io_stats(content) == (4096, 8192)


@pytest.mark.parametrize("content", ["read_bytes: 0\nwrite_bytes: 0\n", "rchar: 12\n", ""])
def test_parse_io_stats_without_data(content):
    assert parse_io_stats(content) is None


def test_parse_netstat_takes_value_line():
    content = (
        "TcpExt: SyncookiesSent SyncookiesRecv\nTcpExt: 1 2\n"
        "IpExt: InNoRoutes InTruncatedPkts InMcastPkts OutMcastPkts InBcastPkts OutBcastPkts\n"
        "IpExt: 0 0 0 0 555 777 999\n"
    )
    assert parse_netstat(content) == (555, 777)


def test_parse_netstat_missing():
    assert parse_netstat("TcpExt: a b c\nTcpExt: 1 2 3\n") is None


def test_parse_lsof_processes():
    processes = parse_lsof_processes(LSOF_OUTPUT)
    assert set(processes) == {100, 200}
    nginx = processes[100]
    assert nginx.name == "nginx"
    assert nginx.command == "nginx"
    assert nginx.listening_ports == 1
    assert nginx.established_connections == 1
    assert nginx.connections == nginx.listening_ports + nginx.established_connections
    curl = processes[200]
    assert curl.connections == 1
    assert curl.listening_ports == 0
    assert curl.bytes_sent == 0


def test_parse_ps_processes():
    processes = parse_ps_processes(PS_OUTPUT)
    assert set(processes) == {1, 42}
    assert processes[42].name == "bash"
    assert processes[42].command == "bash"
    assert processes[1].connections == 0


def test_monitor_reads_proc_tree(tmp_path):
    make_proc(tmp_path, 123, "myproc", net_dev=HEADER + net_dev_line(1000, 10, 2000, 20))
    (tmp_path / "self").mkdir()
    monitor = ProcessMonitor(proc_root=tmp_path, clock=FakeClock())
    monitor.update()
    assert set(monitor.processes) == {123}
    info = monitor.processes[123]
    assert info.name == "myproc"
    assert info.command == "myproc --flag"
    assert (info.bytes_sent, info.bytes_received) == (2000, 1000)
    assert (info.packets_sent, info.packets_received) == (20, 10)


def test_monitor_io_fallback(tmp_path):
    make_proc(tmp_path, 7, "worker", io="read_bytes: 8000\nwrite_bytes: 4000\n")
    monitor = ProcessMonitor(proc_root=tmp_path, clock=FakeClock())
    monitor.update()
    info = monitor.processes[7]
    assert info.bytes_sent == 1000
    assert info.bytes_received == 2000
    assert info.packets_sent == 0


def test_monitor_rate_zero_when_unchanged(tmp_path):
    make_proc(tmp_path, 5, "idle", net_dev=HEADER + net_dev_line(1000, 10, 2000, 20))
    clock = FakeClock()
    monitor = ProcessMonitor(proc_root=tmp_path, clock=clock)
    monitor.update()
    clock.now += 2.0
    monitor.update()
    info = monitor.processes[5]
    assert info.bytes_sent == 0
    assert info.bytes_received == 0
    assert monitor.last_update == clock.now


def test_monitor_ordering_and_top(tmp_path):
    make_proc(tmp_path, 10, "small", net_dev=HEADER + net_dev_line(10, 1, 20, 1))
    make_proc(tmp_path, 11, "big", net_dev=HEADER + net_dev_line(5000, 1, 9000, 1))
    monitor = ProcessMonitor(proc_root=tmp_path, clock=FakeClock())
    monitor.update()
    ordered = monitor.get_processes()
    assert [p.pid for p in ordered] == [11, 10]
    totals = [p.total_bytes() for p in ordered]
    assert totals == sorted(totals, reverse=True)
    assert [p.pid for p in monitor.get_top_network_processes(1)] == [11]
    stats = monitor.get_process_stats()
    assert stats.bytes_sent == sum(p.bytes_sent for p in ordered)
    assert stats.packets_received == sum(p.packets_received for p in ordered)


def test_monitor_lsof_fallback(tmp_path):
    completed = subprocess.CompletedProcess(["lsof"], 0, stdout=LSOF_OUTPUT.encode(), stderr=b"")
    monitor = ProcessMonitor(proc_root=tmp_path / "missing", clock=FakeClock())
    with patch("netwatch.processes.subprocess.run", return_value=completed) as run:
        monitor.update()
    assert run.call_args[0][0][0] == "lsof"
    assert set(monitor.processes) == {100, 200}
    assert [p.pid for p in monitor.get_listening_processes()] == [100]


def test_monitor_ps_fallback_when_lsof_missing(tmp_path):
    def fake_run(args, **kwargs):
        if args[0] == "lsof":
            raise FileNotFoundError("lsof")
        return subprocess.CompletedProcess(args, 0, stdout=PS_OUTPUT.encode(), stderr=b"")

    monitor = ProcessMonitor(proc_root=tmp_path / "missing", clock=FakeClock())
    with patch("netwatch.processes.subprocess.run", side_effect=fake_run):
        monitor.update()
    assert set(monitor.processes) == {1, 42}
    assert monitor.get_listening_processes() == []