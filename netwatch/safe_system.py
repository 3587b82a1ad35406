"""Host information and resource usage that never lets a failure escape."""

from __future__ import annotations

import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar

from netwatch.sysparse import (
    CpuTimes,
    SafeDiskUsage,
    SafeProcessInfo,
    cpu_usage_between,
    parse_cpuinfo,
    parse_df_output,
    parse_loadavg,
    parse_os_release,
    parse_proc_stat_cpu,
    parse_ps_aux,
    parse_uptime_load,
    parse_vm_stat,
)

Runner = Callable[[Sequence[str]], Optional[str]]
T = TypeVar("T")

_UNITS = ("B", "KB", "MB", "GB", "TB")
_BOOT_FALLBACK_SECONDS = 3600.0
_TOP_PROCESS_COUNT = 5


def _run_command(args: Sequence[str]) -> str | None:
    """Run a command and return its standard output, or None if it cannot start."""
    try:
        result = subprocess.run(list(args), capture_output=True, check=False)
    except OSError:
        return None
    return result.stdout.decode("utf-8", errors="replace")


def _current_platform() -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "darwin":
        return "macos"
    return sys.platform


def _parse_int(text: str | None) -> int | None:
    if text is None:
        return None
    try:
        value = int(text)
    except ValueError:
        return None
    return value if value >= 0 else None


def _meminfo_kib(content: str) -> dict[str, int]:
    """Map each /proc/meminfo key to its first numeric value."""
    values: dict[str, int] = {}
    for line in content.splitlines():
        key, sep, rest = line.partition(":")
        if not sep:
            continue
        parts = rest.split()
        if parts:
            parsed = _parse_int(parts[0])
            if parsed is not None:
                values.setdefault(key.strip(), parsed)
    return values


def _parse_kern_boottime(text: str) -> float | None:
    """Read the seconds from output like '{ sec = 1234567890, usec = 0 }'."""
    start = text.find("sec = ")
    if start < 0:
        return None
    after = text[start + 6 :]
    end = after.find(",")
    if end < 0:
        return None
    seconds = _parse_int(after[:end])
    return None if seconds is None else float(seconds)


def _parse_btime(content: str) -> float | None:
    for line in content.splitlines():
        if line.startswith("btime "):
            seconds = _parse_int(line[len("btime ") :].strip())
            if seconds is not None:
                return float(seconds)
    return None


def format_bytes(num_bytes: int) -> str:
    """Format a byte count with binary units and precision that shrinks as it grows."""
    size = float(num_bytes)
    unit_index = 0
    while size >= 1024.0 and unit_index < len(_UNITS) - 1:
        size /= 1024.0
        unit_index += 1
    unit = _UNITS[unit_index]
    if size >= 100.0:
        return f"{size:.0f} {unit}"
    if size >= 10.0:
        return f"{size:.1f} {unit}"
    return f"{size:.2f} {unit}"


def format_uptime(seconds: float) -> str:
    """Format a duration in seconds as days, hours and minutes."""
    total = int(seconds)
    days = total // 86400
    hours = (total % 86400) // 3600
    minutes = (total % 3600) // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


@dataclass
class SafeSystemInfo:
    """Static description of the host."""

    hostname: str
    os_name: str
    os_version: str
    kernel_version: str
    architecture: str
    cpu_model: str
    cpu_cores: int
    cpu_threads: int
    total_memory: int
    boot_time: float
    uptime: float


@dataclass
class SafeSystemStats:
    """A snapshot of resource usage, with any errors met while collecting it."""

    cpu_usage_percent: float = 0.0
    memory_usage_percent: float = 0.0
    memory_used: int = 0
    memory_available: int = 0
    load_average: tuple[float, float, float] = (0.0, 0.0, 0.0)
    disk_usage: dict[str, SafeDiskUsage] = field(default_factory=dict)
    top_processes: list[SafeProcessInfo] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)
    errors: list[str] = field(default_factory=list)


class SafeSystemMonitor:
    """Collects host information and usage figures, recording failures as errors."""

    def __init__(
        self,
        *,
        platform: str | None = None,
        proc_root: str | Path = "/proc",
        os_release: str | Path = "/etc/os-release",
        runner: Runner = _run_command,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.platform = platform if platform is not None else _current_platform()
        self.proc_root = Path(proc_root)
        self.os_release = Path(os_release)
        self._runner = runner
        self._clock = clock
        self._last_cpu: CpuTimes | None = None
        self.last_update = clock()
        self.system_info: SafeSystemInfo | None = None
        self.errors: list[str] = []
        try:
            self.system_info = self._collect_system_info()
        except Exception as exc:  # collection must never abort the monitor
            self.errors.append(f"System info error: {exc}")

    def get_system_info(self) -> SafeSystemInfo | None:
        return self.system_info

    def get_current_stats(self) -> SafeSystemStats:
        """Gather current usage figures; each failing part is zeroed and reported."""
        now = self._clock()
        errors: list[str] = []

        def guarded(label: str, func: Callable[[], T], default: T) -> T:
            try:
                return func()
            except Exception as exc:
                errors.append(f"{label} error: {exc}")
                return default

        cpu = guarded("CPU usage", self._cpu_usage, 0.0)
        percent, used, available = guarded(
            "Memory stats", self._memory_stats, (0.0, 0, 0)
        )
        load = guarded("Load average", self._load_average, (0.0, 0.0, 0.0))
        disks = guarded("Disk usage", self._disk_usage, {})
        top = guarded("Top processes", self._top_processes, [])

        self.last_update = now
        return SafeSystemStats(
            cpu_usage_percent=cpu,
            memory_usage_percent=percent,
            memory_used=used,
            memory_available=available,
            load_average=load,
            disk_usage=disks,
            top_processes=top,
            timestamp=now,
            errors=errors,
        )

    # -- helpers -------------------------------------------------------------

    def _command(self, *args: str) -> str | None:
        output = self._runner(list(args))
        return None if output is None else output.strip()

    def _read(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None

    # -- static information --------------------------------------------------

    def _collect_system_info(self) -> SafeSystemInfo:
        hostname = self._command("hostname")
        kernel = self._command("uname", "-r")
        arch = self._command("uname", "-m")
        os_name, os_version = self._os_info()
        cpu_model, cpu_cores, cpu_threads = self._cpu_info()
        total_memory = self._total_memory()
        boot_time = self._boot_time()
        uptime = max(0.0, self._clock() - boot_time)
        return SafeSystemInfo(
            hostname=hostname if hostname is not None else "unknown",
            os_name=os_name,
            os_version=os_version,
            kernel_version=kernel if kernel is not None else "unknown",
            architecture=arch if arch is not None else "unknown",
            cpu_model=cpu_model,
            cpu_cores=cpu_cores,
            cpu_threads=cpu_threads,
            total_memory=total_memory,
            boot_time=boot_time,
            uptime=uptime,
        )

    def _os_info(self) -> tuple[str, str]:
        if self.platform == "macos":
            name = self._command("sw_vers", "-productName")
            version = self._command("sw_vers", "-productVersion")
            return (
                name if name is not None else "macOS",
                version if version is not None else "Unknown",
            )
        if self.platform == "linux":
            content = self._read(self.os_release)
            if content is None:
                return "Linux", "Unknown"
            return parse_os_release(content)
        return "Unknown OS", "Unknown"

    def _cpu_info(self) -> tuple[str, int, int]:
        if self.platform == "macos":
            model = self._command("sysctl", "-n", "machdep.cpu.brand_string")
            cores = _parse_int(self._command("sysctl", "-n", "hw.physicalcpu"))
            threads = _parse_int(self._command("sysctl", "-n", "hw.logicalcpu"))
            return (
                model if model is not None else "Unknown CPU",
                cores if cores is not None else 1,
                threads if threads is not None else 1,
            )
        if self.platform == "linux":
            content = self._read(self.proc_root / "cpuinfo")
            if content is None:
                return "Unknown CPU", 1, 1
            return parse_cpuinfo(content)
        return "Unknown CPU", 1, 1

    def _total_memory(self) -> int:
        if self.platform == "macos":
            value = _parse_int(self._command("sysctl", "-n", "hw.memsize"))
            return value if value is not None else 0
        if self.platform == "linux":
            content = self._read(self.proc_root / "meminfo")
            if content is None:
                return 0
            return _meminfo_kib(content).get("MemTotal", 0) * 1024
        return 0

    def _boot_time(self) -> float:
        boot: float | None = None
        if self.platform == "macos":
            output = self._command("sysctl", "-n", "kern.boottime")
            if output is not None:
                boot = _parse_kern_boottime(output)
        elif self.platform == "linux":
            content = self._read(self.proc_root / "stat")
            if content is not None:
                boot = _parse_btime(content)
        if boot is None:
            return self._clock() - _BOOT_FALLBACK_SECONDS
        return boot

    # -- usage figures -------------------------------------------------------

    def _cpu_usage(self) -> float:
        current = self._read_cpu_times()
        previous, self._last_cpu = self._last_cpu, current
        if previous is None:
            return 0.0
        usage = cpu_usage_between(previous, current)
        if not usage:
            return 0.0
        return min(max(float(usage), 0.0), 100.0)

    def _read_cpu_times(self) -> CpuTimes:
        if self.platform == "linux":
            content = (self.proc_root / "stat").read_text(
                encoding="utf-8", errors="replace"
            )
            times = parse_proc_stat_cpu(content)
            if times is not None:
                return times
        return CpuTimes(idle=1000)

    def _memory_stats(self) -> tuple[float, int, int]:
        if self.platform == "linux":
            content = (self.proc_root / "meminfo").read_text(
                encoding="utf-8", errors="replace"
            )
            values = _meminfo_kib(content)
            total = values.get("MemTotal", 0) * 1024
            available = values.get("MemAvailable", 0) * 1024
            used = max(total - available, 0)
            percent = used / total * 100.0 if total > 0 else 0.0
            return percent, used, available
        if self.platform == "macos":
            output = self._runner(["vm_stat"])
            if output is None:
                return 0.0, 0, 0
            total = self.system_info.total_memory if self.system_info else 0
            return parse_vm_stat(output, total)
        return 0.0, 0, 0

    def _load_average(self) -> tuple[float, float, float]:
        if self.platform not in ("linux", "macos"):
            return 0.0, 0.0, 0.0
        content = self._read(self.proc_root / "loadavg")
        if content is not None:
            load = parse_loadavg(content)
            if load is not None:
                return load
        output = self._command("uptime")
        if output is not None:
            load = parse_uptime_load(output)
            if load is not None:
                return load
        return 0.0, 0.0, 0.0

    def _disk_usage(self) -> dict[str, SafeDiskUsage]:
        output = self._runner(["df", "-h"])
        if output is None:
            return {}
        return parse_df_output(output)

    def _top_processes(self) -> list[SafeProcessInfo]:
        output = self._runner(["ps", "aux", "--sort=-pcpu"])
        if output is None:
            output = self._runner(["ps", "aux"])
        if output is None:
            raise OSError("ps could not be run")
        processes = sorted(
            parse_ps_aux(output), key=lambda proc: proc.cpu_percent, reverse=True
        )
        return processes[:_TOP_PROCESS_COUNT]