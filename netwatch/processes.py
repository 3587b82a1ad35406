"""Per-process network activity, read from /proc or from lsof/ps output."""

from __future__ import annotations

import os
import re
import subprocess
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

_UINT = re.compile(r"\+?[0-9]+")


def _parse_uint(text: str, bits: int = 64) -> int | None:
    if not _UINT.fullmatch(text):
        return None
    value = int(text)
    return value if value < 2**bits else None


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


@dataclass
class ProcessNetworkInfo:
    """Network activity attributed to one process."""

    pid: int
    name: str
    command: str
    connections: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    packets_sent: int = 0
    packets_received: int = 0
    established_connections: int = 0
    listening_ports: int = 0
    last_updated: float = field(default_factory=time.time)

    def total_bytes(self) -> int:
        return self.bytes_sent + self.bytes_received

    def total_packets(self) -> int:
        return self.packets_sent + self.packets_received


@dataclass
class ProcessNetworkStats:
    """Byte and packet counters at a point in time."""

    bytes_sent: int = 0
    bytes_received: int = 0
    packets_sent: int = 0
    packets_received: int = 0
    timestamp: float = field(default_factory=time.time)


def parse_net_dev(content: str) -> tuple[int, int, int, int] | None:
    """Sum a net/dev table into (bytes_rx, bytes_tx, packets_rx, packets_tx).

    Returns None when no bytes were counted in either direction.
    """
    bytes_rx = bytes_tx = packets_rx = packets_tx = 0
    for line in content.splitlines()[2:]:
        fields = line.split()
        if len(fields) < 11:
            continue
        values = [_parse_uint(fields[i]) for i in (1, 2, 9, 10)]
        if any(value is None for value in values):
            continue
        b_rx, p_rx, b_tx, p_tx = values
        bytes_rx += b_rx
        packets_rx += p_rx
        bytes_tx += b_tx
        packets_tx += p_tx
    if bytes_rx > 0 or bytes_tx > 0:
        return bytes_rx, bytes_tx, packets_rx, packets_tx
    return None


def _io_value(line: str) -> int:
    parts = line.split()
    if len(parts) < 2:
        return 0
    value = _parse_uint(parts[1])
    return 0 if value is None else value


def parse_io_stats(content: str) -> tuple[int, int] | None:
    """Extract (read_bytes, write_bytes) from a /proc/<pid>/io file."""
    read_bytes = write_bytes = 0
    for line in content.splitlines():
        if line.startswith("read_bytes:"):
            read_bytes = _io_value(line)
        elif line.startswith("write_bytes:"):
            write_bytes = _io_value(line)
    if read_bytes > 0 or write_bytes > 0:
        return read_bytes, write_bytes
    return None


def parse_netstat(content: str) -> tuple[int, int] | None:
    """Extract system-wide (sent, received) figures from /proc/net/netstat."""
    for line in content.splitlines():
        if not line.startswith("IpExt:"):
            continue
        fields = line.split()
        if len(fields) > 6:
            sent = _parse_uint(fields[5])
            received = _parse_uint(fields[6])
            if sent is not None and received is not None:
                return sent, received
    return None


def parse_lsof_processes(output: str) -> dict[int, ProcessNetworkInfo]:
    """Build per-process connection counts from ``lsof -i -n -P`` output."""
    names: dict[int, str] = {}
    connections: Counter[int] = Counter()
    listening: Counter[int] = Counter()
    established: Counter[int] = Counter()

    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 10:
            continue
        pid = _parse_uint(parts[1], 32)
        if pid is None:
            continue
        connections[pid] += 1
        state = parts[9]
        if "LISTEN" in state:
            listening[pid] += 1
        elif "ESTABLISHED" in state:
            established[pid] += 1
        names.setdefault(pid, parts[0])

    now = time.time()
    return {
        pid: ProcessNetworkInfo(
            pid=pid,
            name=names[pid],
            command=names[pid],
            connections=total,
            established_connections=established[pid],
            listening_ports=listening[pid],
            last_updated=now,
        )
        for pid, total in connections.items()
    }


def parse_ps_processes(output: str) -> dict[int, ProcessNetworkInfo]:
    """List processes from ``ps -eo pid,comm,rss`` output, without network data."""
    processes: dict[int, ProcessNetworkInfo] = {}
    now = time.time()
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 2:
            continue
        pid = _parse_uint(parts[0], 32)
        if pid is None:
            continue
        processes[pid] = ProcessNetworkInfo(
            pid=pid, name=parts[1], command=parts[1], last_updated=now
        )
    return processes


def _run(args: list[str]) -> str:
    result = subprocess.run(args, capture_output=True, check=False)
    return result.stdout.decode("utf-8", errors="replace")


class ProcessMonitor:
    """Tracks network activity per process between updates.

    After the first update, byte counters hold rates in bytes per second.
    """

    def __init__(
        self,
        proc_root: str | Path = "/proc",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.proc_root = Path(proc_root)
        self._clock = clock
        self.processes: dict[int, ProcessNetworkInfo] = {}
        self._previous: dict[int, ProcessNetworkStats] = {}
        self.last_update = clock()

    def update(self) -> None:
        """Refresh the process list and compute I/O rates."""
        self.processes.clear()
        now = self._clock()
        self._scan_processes()
        self._calculate_rates(now)
        self.last_update = now

    def _scan_processes(self) -> None:
        try:
            entries = list(os.scandir(self.proc_root))
        except OSError:
            self._scan_with_commands()
            return
        for entry in entries:
            pid = _parse_uint(entry.name, 32)
            if pid is None:
                continue
            info = self._read_process_info(pid)
            if info is not None:
                self.processes[pid] = info

    def _read_process_info(self, pid: int) -> ProcessNetworkInfo | None:
        proc_dir = self.proc_root / str(pid)
        if not proc_dir.exists():
            return None
        comm = _read_text(proc_dir / "comm")
        name = (comm if comm is not None else f"process-{pid}").strip()
        cmdline = _read_text(proc_dir / "cmdline")
        command = (cmdline if cmdline is not None else name).replace("\0", " ").strip()
        sent, received, p_sent, p_received = self._read_network_stats(proc_dir)
        return ProcessNetworkInfo(
            pid=pid,
            name=name,
            command=command,
            bytes_sent=sent,
            bytes_received=received,
            packets_sent=p_sent,
            packets_received=p_received,
            last_updated=self._clock(),
        )

    def _read_network_stats(self, proc_dir: Path) -> tuple[int, int, int, int]:
        content = _read_text(proc_dir / "net" / "dev")
        if content is not None:
            parsed = parse_net_dev(content)
            if parsed is not None:
                bytes_rx, bytes_tx, packets_rx, packets_tx = parsed
                return bytes_tx, bytes_rx, packets_tx, packets_rx

        content = _read_text(proc_dir / "io")
        if content is not None:
            io = parse_io_stats(content)
            if io is not None:
                read_bytes, write_bytes = io
                # Rough estimate: a quarter of disk-level I/O.
                return write_bytes // 4, read_bytes // 4, 0, 0

        content = _read_text(self.proc_root / "net" / "netstat")
        if content is not None:
            totals = parse_netstat(content)
            if totals is not None:
                sent, received = totals
                return sent // 100, received // 100, 0, 0

        return 0, 0, 0, 0

    def _scan_with_commands(self) -> None:
        try:
            self.processes.update(parse_lsof_processes(_run(["lsof", "-i", "-n", "-P"])))
            return
        except OSError:
            pass
        try:
            self.processes.update(parse_ps_processes(_run(["ps", "-eo", "pid,comm,rss"])))
        except OSError:
            pass

    def _calculate_rates(self, now: float) -> None:
        for pid, process in self.processes.items():
            previous = self._previous.get(pid)
            if previous is not None:
                elapsed = now - previous.timestamp
                if elapsed < 0:
                    elapsed = 1.0
                if elapsed > 0:
                    process.bytes_sent = int(
                        max(process.bytes_sent - previous.bytes_sent, 0) / elapsed
                    )
                    process.bytes_received = int(
                        max(process.bytes_received - previous.bytes_received, 0) / elapsed
                    )
            self._previous[pid] = ProcessNetworkStats(
                bytes_sent=process.bytes_sent,
                bytes_received=process.bytes_received,
                packets_sent=process.packets_sent,
                packets_received=process.packets_received,
                timestamp=now,
            )

    def get_processes(self) -> list[ProcessNetworkInfo]:
        """All processes, busiest first."""
        return sorted(self.processes.values(), key=ProcessNetworkInfo.total_bytes, reverse=True)

    def get_top_network_processes(self, limit: int) -> list[ProcessNetworkInfo]:
        return self.get_processes()[:limit]

    def get_process_stats(self) -> ProcessNetworkStats:
        """Totals over all tracked processes."""
        values = self.processes.values()
        return ProcessNetworkStats(
            bytes_sent=sum(p.bytes_sent for p in values),
            bytes_received=sum(p.bytes_received for p in values),
            packets_sent=sum(p.packets_sent for p in values),
            packets_received=sum(p.packets_received for p in values),
            timestamp=self._clock(),
        )

    def get_listening_processes(self) -> list[ProcessNetworkInfo]:
        """Processes with listening ports, most ports first."""
        listening = (p for p in self.processes.values() if p.listening_ports > 0)
        return sorted(listening, key=lambda p: p.listening_ports, reverse=True)