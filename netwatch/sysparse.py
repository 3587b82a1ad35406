"""Parsers for the system files and command outputs used to describe a host."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from functools import cmp_to_key

_U64_MAX = 2**64 - 1
_U32_MAX = 2**32 - 1
_UINT = re.compile(r"\+?[0-9]+")
_FLOAT = re.compile(
    r"[+-]?(?:inf|infinity|nan|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)",
    re.IGNORECASE,
)
_SIZE_MULTIPLIERS = {"K": 1024.0, "M": 1024.0**2, "G": 1024.0**3, "T": 1024.0**4}
_PAGE_SIZE = 4096
_TOP_PROCESS_LIMIT = 5


def _parse_uint(text: str, limit: int = _U64_MAX) -> int | None:
    if not _UINT.fullmatch(text):
        return None
    value = int(text)
    return value if value <= limit else None


def _parse_float(text: str) -> float | None:
    if not _FLOAT.fullmatch(text):
        return None
    return float(text)


def _uint_or_zero(text: str, limit: int = _U64_MAX) -> int:
    value = _parse_uint(text, limit)
    return 0 if value is None else value


def _float_or_zero(text: str) -> float:
    value = _parse_float(text)
    return 0.0 if value is None else value


def _to_u64(value: float) -> int:
    """Convert a float to an unsigned 64-bit integer, saturating at the bounds."""
    if math.isnan(value) or value <= 0:
        return 0
    if value >= _U64_MAX:
        return _U64_MAX
    return int(value)


@dataclass
class CpuTimes:
    """Cumulative CPU time counters from the aggregate ``cpu`` line."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0

    def total(self) -> int:
        return (
            self.user
            + self.nice
            + self.system
            + self.idle
            + self.iowait
            + self.irq
            + self.softirq
            + self.steal
        )


@dataclass
class SafeDiskUsage:
    """Usage of one mounted filesystem."""

    total: int
    used: int
    available: int
    usage_percent: float
    filesystem: str


@dataclass
class SafeProcessInfo:
    """One process as reported by ``ps aux``."""

    pid: int
    name: str
    cpu_percent: float
    memory_percent: float
    memory_rss: int
    memory_vms: int
    command: str
    user: str
    state: str


def parse_size(text: str) -> int:
    """Convert a human-readable size such as ``1.5G`` into bytes (binary units)."""
    text = text.strip()
    if not text or text == "-":
        return 0

    number_end = len(text)
    for index in range(len(text) - 1, -1, -1):
        char = text[index]
        if char.isascii() and (char.isdigit() or char == "."):
            number_end = index + 1
            break

    number = _float_or_zero(text[:number_end])
    multiplier = _SIZE_MULTIPLIERS.get(text[number_end:].upper(), 1.0)
    return _to_u64(number * multiplier)


def parse_df_output(output: str) -> dict[str, SafeDiskUsage]:
    """Parse ``df -h`` output into usage figures keyed by mount point."""
    usage: dict[str, SafeDiskUsage] = {}
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 6:
            continue
        usage[parts[5]] = SafeDiskUsage(
            total=parse_size(parts[1]),
            used=parse_size(parts[2]),
            available=parse_size(parts[3]),
            usage_percent=_float_or_zero(parts[4].rstrip("%")),
            filesystem=parts[0],
        )
    return usage


def _by_cpu_descending(a: SafeProcessInfo, b: SafeProcessInfo) -> int:
    if b.cpu_percent < a.cpu_percent:
        return -1
    if b.cpu_percent > a.cpu_percent:
        return 1
    return 0


def parse_ps_aux(output: str) -> list[SafeProcessInfo]:
    """Parse ``ps aux`` output and return the five busiest processes by CPU."""
    processes: list[SafeProcessInfo] = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 11:
            continue
        processes.append(
            SafeProcessInfo(
                pid=_uint_or_zero(parts[1], _U32_MAX),
                name=parts[10].split("/")[-1],
                cpu_percent=_float_or_zero(parts[2]),
                memory_percent=_float_or_zero(parts[3]),
                memory_rss=min(_uint_or_zero(parts[5]) * 1024, _U64_MAX),
                memory_vms=min(_uint_or_zero(parts[4]) * 1024, _U64_MAX),
                command=" ".join(parts[10:]),
                user=parts[0],
                state=parts[7],
            )
        )
    processes.sort(key=cmp_to_key(_by_cpu_descending))
    return processes[:_TOP_PROCESS_LIMIT]


def parse_os_release(content: str) -> tuple[str, str]:
    """Return (name, version) from an os-release file."""
    name, version = "Linux", "Unknown"
    for line in content.splitlines():
        if line.startswith("PRETTY_NAME="):
            name = line[len("PRETTY_NAME="):].strip('"')
        elif line.startswith("VERSION="):
            version = line[len("VERSION="):].strip('"')
    return name, version


def parse_cpuinfo(content: str) -> tuple[str, int, int]:
    """Return (model, physical cores, logical threads) from /proc/cpuinfo text."""
    model = "Unknown CPU"
    threads = 0
    core_ids: set[int] = set()
    for line in content.splitlines():
        if line.startswith("model name:"):
            model = line[len("model name:"):].strip()
        elif line.startswith("processor"):
            threads += 1
        elif line.startswith("core id:"):
            core_id = _parse_uint(line[len("core id:"):].strip(), _U32_MAX)
            if core_id is not None:
                core_ids.add(core_id)
    cores = len(core_ids) or threads
    return model, cores, threads


def _meminfo_bytes(rest: str) -> int:
    fields = rest.split()
    if not fields:
        return 0
    return min(_uint_or_zero(fields[0]) * 1024, _U64_MAX)


def parse_meminfo(content: str) -> tuple[int, int]:
    """Return (total, available) memory in bytes from /proc/meminfo text."""
    total = available = 0
    for line in content.splitlines():
        if line.startswith("MemTotal:"):
            total = _meminfo_bytes(line[len("MemTotal:"):])
        elif line.startswith("MemAvailable:"):
            available = _meminfo_bytes(line[len("MemAvailable:"):])
    return total, available


def parse_loadavg(content: str) -> tuple[float, float, float] | None:
    """Return the 1, 5 and 15 minute load averages from /proc/loadavg text."""
    parts = content.split()
    if len(parts) < 3:
        return None
    return _float_or_zero(parts[0]), _float_or_zero(parts[1]), _float_or_zero(parts[2])


def parse_uptime_load(output: str) -> tuple[float, float, float] | None:
    """Return the load averages from the output of ``uptime``."""
    start = output.find("load average")
    if start < 0:
        return None
    section = output[start:]
    colon = section.find(":")
    if colon < 0:
        return None
    numbers = section[colon + 1:].split(",")
    if len(numbers) < 3:
        return None
    return tuple(_float_or_zero(number.strip()) for number in numbers[:3])


def _extract_pages(line: str) -> int:
    for token in line.split():
        if token.isascii() and token.isdigit():
            value = _parse_uint(token)
            if value is not None:
                return value
    return 0


def parse_vm_stat(output: str, total_memory: int) -> tuple[float, int, int]:
    """Return (usage percent, used bytes, available bytes) from ``vm_stat`` output."""
    free = active = inactive = wired = compressed = 0
    for line in output.splitlines():
        if "Pages free:" in line:
            free = _extract_pages(line)
        elif "Pages active:" in line:
            active = _extract_pages(line)
        elif "Pages inactive:" in line:
            inactive = _extract_pages(line)
        elif "Pages wired down:" in line:
            wired = _extract_pages(line)
        elif "Pages stored in compressor:" in line:
            compressed = _extract_pages(line)

    used = (active + inactive + wired + compressed) * _PAGE_SIZE
    available = free * _PAGE_SIZE
    percent = used / total_memory * 100.0 if total_memory > 0 else 0.0
    return percent, used, available


def parse_proc_stat_cpu(content: str) -> CpuTimes | None:
    """Read the aggregate CPU counters from the first line of /proc/stat."""
    lines = content.splitlines()
    if not lines or not lines[0].startswith("cpu "):
        return None
    parts = lines[0].split()
    if len(parts) < 8:
        return None
    values = [_uint_or_zero(part) for part in parts[1:8]]
    steal = _uint_or_zero(parts[8]) if len(parts) > 8 else 0
    return CpuTimes(*values, steal=steal)


def parse_boot_time(content: str) -> int | None:
    """Return the boot time in seconds since the epoch.

    Accepts /proc/stat text (``btime`` line) or ``sysctl -n kern.boottime``
    output (``{ sec = ..., usec = ... }``).
    """
    for line in content.splitlines():
        if line.startswith("btime "):
            value = _parse_uint(line[len("btime "):].strip())
            if value is not None:
                return value

    start = content.find("sec = ")
    if start >= 0:
        after = content[start + len("sec = "):]
        end = after.find(",")
        if end >= 0:
            return _parse_uint(after[:end])
    return None


def cpu_usage_between(previous: CpuTimes | None, current: CpuTimes) -> float:
    """Percentage of non-idle CPU time between two samples, 0 to 100."""
    if previous is None:
        return 0.0
    total_diff = max(current.total() - previous.total(), 0)
    idle_diff = max(current.idle - previous.idle, 0)
    if total_diff == 0:
        return 0.0
    usage = max(total_diff - idle_diff, 0) / total_diff * 100.0
    return min(max(usage, 0.0), 100.0)