"""Reading per-interface traffic counters on Linux and macOS."""

from __future__ import annotations

import re
import socket
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path

PROC_NET_DEV = "/proc/net/dev"

_U64_MAX = 2**64 - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")
_HIDDEN_PREFIXES = ("lo", "docker", "veth", "br-")


class NetwatchError(Exception):
    """Base error for traffic reading."""


class DeviceNotFoundError(NetwatchError):
    """The requested interface does not exist."""

    def __init__(self, device: str) -> None:
        super().__init__(f"Device not found: {device}")
        self.device = device


class PlatformError(NetwatchError):
    """The platform cannot provide the requested information."""


@dataclass
class NetworkStats:
    """A snapshot of an interface's cumulative counters."""

    bytes_in: int = 0
    bytes_out: int = 0
    packets_in: int = 0
    packets_out: int = 0
    errors_in: int = 0
    errors_out: int = 0
    drops_in: int = 0
    drops_out: int = 0
    timestamp: float = field(default_factory=time.time)


def _parse_unsigned(text: str) -> int | None:
    if not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _U64_MAX else None


def _field(parts: list[str], index: int) -> int:
    if index >= len(parts):
        return 0
    value = _parse_unsigned(parts[index])
    return 0 if value is None else value


def parse_proc_net_dev(content: str, device: str) -> NetworkStats:
    """Extract the counters of ``device`` from /proc/net/dev text."""
    for line in content.splitlines()[2:]:
        parts = line.split()
        if not parts:
            continue
        if parts[0].rstrip(":") == device:
            return NetworkStats(
                bytes_in=_field(parts, 1),
                packets_in=_field(parts, 2),
                errors_in=_field(parts, 3),
                drops_in=_field(parts, 4),
                bytes_out=_field(parts, 9),
                packets_out=_field(parts, 10),
                errors_out=_field(parts, 11),
                drops_out=_field(parts, 12),
            )
    raise DeviceNotFoundError(device)


def list_proc_net_dev_devices(content: str) -> list[str]:
    """List interface names in /proc/net/dev text, hiding loopback and virtual ones."""
    names = (line.split(":")[0].strip() for line in content.splitlines()[2:])
    return [
        name for name in names if name and not name.startswith(_HIDDEN_PREFIXES)
    ]


def parse_netstat_interface(output: str, device: str) -> NetworkStats:
    """Extract the counters of ``device`` from ``netstat -I <device> -b`` output."""
    prefix = f"{device:<10}"
    for line in output.splitlines():
        if not line.startswith(prefix):
            continue
        parts = line[len(prefix):].split()
        if len(parts) < 10:
            continue
        values = [_parse_unsigned(part) for part in parts[3:9]]
        if any(value is None for value in values):
            continue
        packets_in, errors_in, bytes_in, packets_out, errors_out, bytes_out = values
        return NetworkStats(
            bytes_in=bytes_in,
            bytes_out=bytes_out,
            packets_in=packets_in,
            packets_out=packets_out,
            errors_in=errors_in,
            errors_out=errors_out,
        )
    raise DeviceNotFoundError(device)


class LinuxReader:
    """Reads interface counters from /proc/net/dev."""

    def __init__(self, path: str | Path = PROC_NET_DEV) -> None:
        self.path = Path(path)

    def _read(self) -> str:
        try:
            return self.path.read_text()
        except OSError as exc:
            raise NetwatchError(f"Cannot read {self.path}: {exc}") from exc

    def list_devices(self) -> list[str]:
        return list_proc_net_dev_devices(self._read())

    def read_stats(self, device: str) -> NetworkStats:
        return parse_proc_net_dev(self._read(), device)

    def is_available(self) -> bool:
        return self.path.exists()


class MacOSReader:
    """Reads interface counters through the system's netstat command."""

    def list_devices(self) -> list[str]:
        try:
            interfaces = socket.if_nameindex()
        except OSError as exc:
            raise PlatformError("Failed to get interface list") from exc
        devices: list[str] = []
        for _, name in interfaces:
            if name not in devices and not name.startswith("lo"):
                devices.append(name)
        return devices

    def read_stats(self, device: str) -> NetworkStats:
        try:
            result = subprocess.run(
                ["netstat", "-I", device, "-b"],
                capture_output=True,
                check=False,
            )
        except OSError:
            return NetworkStats()
        if result.returncode != 0:
            raise DeviceNotFoundError(device)
        output = result.stdout.decode("utf-8", errors="replace")
        return parse_netstat_interface(output, device)

    def is_available(self) -> bool:
        return True


def create_reader() -> LinuxReader | MacOSReader:
    """Return the traffic reader for the running platform."""
    if sys.platform.startswith("linux"):
        return LinuxReader()
    if sys.platform == "darwin":
        return MacOSReader()
    raise PlatformError("Unsupported platform")