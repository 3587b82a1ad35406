# netwatch

A Python library for Unix systems (Linux and macOS) that reads network
interface counters, attributes network activity to processes, gathers host
resource figures and analyses individual connections. It has no third-party
dependencies.

## Install

```
pip install .
```

## Interface counters (`netwatch.platform`)

```python
from netwatch.platform import create_reader

reader = create_reader()          # LinuxReader or MacOSReader
for name in reader.list_devices():
    stats = reader.read_stats(name)
    print(name, stats.bytes_in, stats.bytes_out, stats.packets_in)
```

- `LinuxReader` reads `/proc/net/dev` (another path may be passed to its
  constructor). `list_devices` leaves out names starting with `lo`, `docker`,
  `veth` and `br-`.
- `MacOSReader` lists interfaces with `socket.if_nameindex()` (leaving out
  loopback) and reads counters by running `netstat -I <device> -b`. If
  `netstat` cannot be started, it returns zeroed counters.
- `read_stats` raises `DeviceNotFoundError` for an unknown interface;
  `create_reader` raises `PlatformError` on any other system. Both derive from
  `NetwatchError`, which `LinuxReader` also raises when the file cannot be read.
- The text parsers `parse_proc_net_dev`, `list_proc_net_dev_devices` and
  `parse_netstat_interface` can be used on their own.

## Processes with network activity (`netwatch.processes`)

```python
from netwatch.processes import ProcessMonitor

monitor = ProcessMonitor()
monitor.update()
for proc in monitor.get_top_network_processes(5):
    print(proc.pid, proc.name, proc.connections, proc.total_bytes())
```

On Linux each process's byte counts come from `/proc/<pid>/net/dev`, falling
back to a quarter of `/proc/<pid>/io` figures, then to a hundredth of the
system-wide `/proc/net/netstat` figures; these are estimates. Where `/proc`
cannot be listed, processes and their connection counts are taken from
`lsof -i -n -P`, or from `ps -eo pid,comm,rss` without network data. From the
second `update` on, byte counters hold rates in bytes per second.

`get_processes` sorts by total bytes, `get_listening_processes` by listening
ports, and `get_process_stats` sums all tracked processes. The parsers
`parse_net_dev`, `parse_io_stats`, `parse_netstat`, `parse_lsof_processes` and
`parse_ps_processes` take text and can be used on their own.

## System resources (`netwatch.safe_system`, `netwatch.sysparse`)

```python
from netwatch.safe_system import SafeSystemMonitor, format_bytes, format_uptime

monitor = SafeSystemMonitor()
info = monitor.get_system_info()
if info is not None:
    print(info.hostname, info.os_name, format_bytes(info.total_memory),
          format_uptime(info.uptime))
stats = monitor.get_current_stats()
print(f"CPU {stats.cpu_usage_percent:.1f}%  load {stats.load_average}")
for mount, disk in stats.disk_usage.items():
    print(mount, disk.usage_percent)
```

Collection does not raise. A failure while gathering host information leaves
`get_system_info()` as `None` and is recorded in `monitor.errors`; a failure in
any part of `get_current_stats()` zeroes that part and adds a message to
`stats.errors`. CPU usage is measured between successive calls, so the first
call reports 0. The constructor accepts `platform`, `proc_root`, `os_release`,
`runner` and `clock` keyword arguments for reading other files or supplying
command output.

`format_bytes` uses binary units (`"1.50 KB"`, `"100 MB"`); `format_uptime`
gives `"2d 3h 4m"`, `"3h 4m"` or `"4m"`.

`netwatch.sysparse` holds the text parsers behind the monitor: `parse_size`,
`parse_df_output`, `parse_ps_aux`, `parse_os_release`, `parse_cpuinfo`,
`parse_meminfo`, `parse_loadavg`, `parse_uptime_load`, `parse_vm_stat`,
`parse_proc_stat_cpu`, `parse_boot_time` and `cpu_usage_between`, with the
`CpuTimes`, `SafeDiskUsage` and `SafeProcessInfo` records.

## Connection analysis (`netwatch.intelligence`)

```python
from netwatch.intelligence import NetworkIntelligenceEngine

engine = NetworkIntelligenceEngine(suspicious_ips=["203.0.113.9"])
result = engine.analyze_connection(
    ("192.168.1.10", 51000), ("203.0.113.5", 31337), "Tcp", 1200, 3400, "5m",
)
print(result.service_name, result.is_outbound, result.threat_indicators)
```

`analyze_connection` takes `(host, port)` endpoints and returns a
`ConnectionIntelligence`: the upper-cased protocol, a service name from a
table of well-known ports (or "System Service", "Registered Service",
"Dynamic/Ephemeral"), whether the local side is in a private, loopback or
unique-local range, and threat indicators such as `SuspiciousPort`,
`PortScanAttempt`, `HighBandwidthUsage` and `GeoAnomalyConnection`. Remote
ports seen from the same address within five minutes feed a port-scan
confidence score; `get_port_scan_alerts` returns the addresses scoring above
0.7.

Helpers: `parse_duration("1h30m")` gives seconds, `is_suspicious_port`,
`count_sequential_ports` and `port_scan_confidence`.

## Keys (`netwatch.keys`)

`event_from_key(code, modifiers)` maps a key press to an `InputEvent`, for
example `event_from_key("q")` gives `InputEvent.QUIT` and
`event_from_key("Tab", KeyModifiers.SHIFT)` gives `InputEvent.PREV_PANEL`.
Codes are single characters or names such as `"Tab"`, `"Up"`, `"Enter"`,
`"Esc"` and `"F2"`.

## What this package does not do

- There is no command-line program and no terminal dashboard: the package is a
  library, and `netwatch.keys` only maps keys to actions without reading the
  keyboard.
- It does not compute speed averages, keep traffic history or write traffic
  logs; `read_stats` returns raw cumulative counters.
- There is no geographic lookup or threat feed. Addresses outside the internal
  ranges are reported with country "Unknown", and only addresses passed as
  `suspicious_ips` are marked malicious.
- `NetworkIntelligenceEngine` does not store analysed connections or record
  anomalies, so `get_connection_stats` counts only tracked port scanners and
  `get_recent_anomalies` returns an empty list.
- Connection counts per process are filled in only from `lsof` output; on
  Linux with `/proc` they stay at zero.

## Tests

```
pip install ".[test]"
pytest
```