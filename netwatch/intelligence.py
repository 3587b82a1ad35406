"""Connection analysis: service identification, location hints and threat indicators."""

from __future__ import annotations

import ipaddress
import time
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Endpoint = Tuple[Union[str, IPAddress], int]

_U64_MAX = 2**64 - 1
_PORT_SCAN_WINDOW = 300.0
_PORT_SCAN_THRESHOLD = 0.7
_BANDWIDTH_THRESHOLD = 10_000_000

KNOWN_SERVICES: dict[int, str] = {
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    110: "POP3",
    143: "IMAP",
    443: "HTTPS",
    993: "IMAPS",
    995: "POP3S",
    3389: "RDP",
    5432: "PostgreSQL",
    3306: "MySQL",
    27017: "MongoDB",
    6379: "Redis",
    9200: "Elasticsearch",
    8080: "HTTP-Alt",
    8443: "HTTPS-Alt",
    1337: "Elite/Leet (Suspicious)",
    31337: "Back Orifice (Malware)",
    12345: "NetBus (Malware)",
    54321: "Back Orifice 2000 (Malware)",
}

INTERNAL_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("fc00::/7"),
)

SUSPICIOUS_PORTS = frozenset({1337, 31337, 12345, 54321, 6667, 6668, 6669})
COMMON_SCAN_PORTS = frozenset({22, 23, 80, 443, 21, 25, 53, 110, 143, 993, 995, 3389})


class ThreatLevel(Enum):
    CLEAN = "Clean"
    SUSPICIOUS = "Suspicious"
    MALICIOUS = "Malicious"
    CRITICAL = "Critical"


class AnomalyType(Enum):
    PORT_SCAN = "PortScan"
    TRAFFIC_SPIKE = "TrafficSpike"
    UNUSUAL_GEO_LOCATION = "UnusualGeoLocation"
    SUSPICIOUS_PROTOCOL = "SuspiciousProtocol"
    BANDWIDTH_ANOMALY = "BandwidthAnomaly"
    CONNECTION_FLOOD = "ConnectionFlood"
    DNS_ANOMALY = "DnsAnomaly"
    TUNNEL_DETECTION = "TunnelDetection"


class Severity(Enum):
    INFO = "Info"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


@dataclass
class GeoIpInfo:
    """Location and reputation of an address."""

    country: str
    country_code: str
    city: str
    region: str
    is_internal: bool
    is_suspicious: bool
    threat_level: ThreatLevel
    organization: str
    asn: int


@dataclass(frozen=True)
class PortScanAttempt:
    ports_scanned: int
    time_window: float


@dataclass(frozen=True)
class UnusualTrafficVolume:
    bytes_per_second: int
    baseline: int


@dataclass(frozen=True)
class SuspiciousPort:
    port: int
    reason: str


@dataclass(frozen=True)
class GeoAnomalyConnection:
    country: str
    reason: str


@dataclass(frozen=True)
class RapidConnections:
    count: int
    time_window: float


@dataclass(frozen=True)
class LongLivedConnection:
    duration: float


@dataclass(frozen=True)
class HighBandwidthUsage:
    bandwidth: int
    threshold: int


ThreatIndicator = Union[
    PortScanAttempt,
    UnusualTrafficVolume,
    SuspiciousPort,
    GeoAnomalyConnection,
    RapidConnections,
    LongLivedConnection,
    HighBandwidthUsage,
]


@dataclass
class ConnectionIntelligence:
    """What was learned about one connection. Times are seconds since the epoch."""

    remote_ip: IPAddress
    local_port: int
    remote_port: int
    protocol: str
    service_name: str
    geo_info: Optional[GeoIpInfo]
    connection_duration: int
    bytes_transferred: int
    packet_count: int
    first_seen: float
    last_activity: float
    is_outbound: bool
    threat_indicators: list[ThreatIndicator] = field(default_factory=list)


@dataclass
class PortScanDetection:
    """Ports probed by one remote address within the tracking window."""

    scanner_ip: IPAddress
    ports_scanned: set[int] = field(default_factory=set)
    scan_start_time: float = 0.0
    scan_duration: float = 0.0
    scan_rate: float = 0.0
    confidence: float = 0.0


@dataclass
class NetworkAnomaly:
    anomaly_type: AnomalyType
    severity: Severity
    description: str
    affected_ip: Optional[IPAddress]
    affected_port: Optional[int]
    detected_at: float
    confidence: float
    metrics: dict[str, float] = field(default_factory=dict)


@dataclass
class ConnectionStats:
    total_connections: int = 0
    external_connections: int = 0
    suspicious_connections: int = 0
    unique_countries: int = 0
    active_port_scans: int = 0


def parse_duration(text: str) -> Optional[int]:
    """Parse a duration such as ``1h30m`` or ``45s`` into whole seconds.

    Returns None when the text adds up to no time at all.
    """
    total = 0
    digits = ""
    for char in text:
        if char in "0123456789":
            digits += char
            continue
        if digits and int(digits) <= _U64_MAX:
            number = int(digits)
            if char == "h":
                total += number * 3600
            elif char == "m":
                total += number * 60
            elif char == "s":
                total += number
        digits = ""
    return total if total > 0 else None


def is_suspicious_port(port: int) -> bool:
    """Whether the port is commonly used by malware or IRC bots."""
    return port in SUSPICIOUS_PORTS


def count_sequential_ports(ports: Sequence[int]) -> int:
    """Length of the longest run of consecutive ports in a sorted sequence."""
    if len(ports) < 2:
        return 0
    longest = current = 1
    for previous, port in zip(ports, ports[1:]):
        if port == previous + 1:
            current += 1
        else:
            longest = max(longest, current)
            current = 1
    return max(longest, current)


def port_scan_confidence(detection: PortScanDetection) -> float:
    """Score from 0 to 1 of how much the probed ports look like a scan."""
    confidence = min(len(detection.ports_scanned) / 20.0, 0.4)

    if detection.scan_rate > 10.0:
        confidence += 0.3
    elif detection.scan_rate > 1.0:
        confidence += 0.2

    if count_sequential_ports(sorted(detection.ports_scanned)) > 5:
        confidence += 0.2

    if len(detection.ports_scanned & COMMON_SCAN_PORTS) > 3:
        confidence += 0.1

    return min(confidence, 1.0)


def _endpoint(address: Endpoint) -> tuple[IPAddress, int]:
    host, port = address
    ip = ipaddress.ip_address(host)
    port = int(port)
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range: {port}")
    return ip, port


class NetworkIntelligenceEngine:
    """Analyses connections and keeps track of probable port scans."""

    def __init__(
        self,
        *,
        suspicious_ips: Iterable[Union[str, IPAddress]] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.connection_history: deque[ConnectionIntelligence] = deque()
        self.anomalies: deque[NetworkAnomaly] = deque()
        self.geo_cache: dict[IPAddress, GeoIpInfo] = {}
        self.port_scan_detectors: dict[IPAddress, PortScanDetection] = {}
        self.known_services = dict(KNOWN_SERVICES)
        self.suspicious_ips = {ipaddress.ip_address(ip) for ip in suspicious_ips}
        self.internal_networks = list(INTERNAL_NETWORKS)
        self._clock = clock

    def analyze_connection(
        self,
        local_addr: Endpoint,
        remote_addr: Endpoint,
        protocol: str,
        bytes_sent: int = 0,
        bytes_received: int = 0,
        duration: Optional[str] = None,
    ) -> ConnectionIntelligence:
        """Analyse one connection given as (host, port) endpoints."""
        local_ip, local_port = _endpoint(local_addr)
        remote_ip, remote_port = _endpoint(remote_addr)

        is_outbound = self.is_internal_ip(local_ip)
        geo_info = self._geo_info(remote_ip)
        protocol_name, service_name = self.identify_service(
            local_port, remote_port, protocol
        )
        seconds = (parse_duration(duration) if duration is not None else None) or 0

        indicators: list[ThreatIndicator] = []

        scan = self._detect_port_scan(remote_ip, remote_port)
        if scan is not None:
            indicators.append(
                PortScanAttempt(
                    ports_scanned=min(len(scan.ports_scanned), 65535),
                    time_window=scan.scan_duration,
                )
            )

        if is_suspicious_port(remote_port):
            indicators.append(
                SuspiciousPort(
                    port=remote_port, reason="Known malicious or uncommon port"
                )
            )

        bytes_per_second = bytes_sent + bytes_received // seconds if seconds > 0 else 0
        if bytes_per_second > _BANDWIDTH_THRESHOLD:
            indicators.append(
                HighBandwidthUsage(
                    bandwidth=bytes_per_second, threshold=_BANDWIDTH_THRESHOLD
                )
            )

        if geo_info is not None and (
            geo_info.is_suspicious or geo_info.threat_level != ThreatLevel.CLEAN
        ):
            indicators.append(
                GeoAnomalyConnection(
                    country=geo_info.country,
                    reason="Connection from suspicious geographic location",
                )
            )

        now = self._clock()
        return ConnectionIntelligence(
            remote_ip=remote_ip,
            local_port=local_port,
            remote_port=remote_port,
            protocol=protocol_name,
            service_name=service_name,
            geo_info=geo_info,
            connection_duration=seconds,
            bytes_transferred=bytes_sent + bytes_received,
            packet_count=0,
            first_seen=now - seconds,
            last_activity=now,
            is_outbound=is_outbound,
            threat_indicators=indicators,
        )

    def is_internal_ip(self, ip: Union[str, IPAddress]) -> bool:
        """Whether the address lies in a private, loopback or unique-local range."""
        address = ipaddress.ip_address(ip)
        return any(
            address.version == network.version and address in network
            for network in self.internal_networks
        )

    def identify_service(
        self, local_port: int, remote_port: int, protocol: str
    ) -> tuple[str, str]:
        """Return the upper-cased protocol and the name of the service in use."""
        port = local_port if local_port < 1024 else remote_port
        service = self.known_services.get(port)
        if service is None:
            if port < 1024:
                service = "System Service"
            elif port < 49152:
                service = "Registered Service"
            else:
                service = "Dynamic/Ephemeral"
        return protocol.upper(), service

    def _geo_info(self, ip: IPAddress) -> GeoIpInfo:
        cached = self.geo_cache.get(ip)
        if cached is not None:
            return replace(cached)

        if self.is_internal_ip(ip):
            info = GeoIpInfo(
                country="Internal",
                country_code="INT",
                city="Local Network",
                region="Private",
                is_internal=True,
                is_suspicious=False,
                threat_level=ThreatLevel.CLEAN,
                organization="Internal Network",
                asn=0,
            )
        else:
            suspicious = ip in self.suspicious_ips
            info = GeoIpInfo(
                country="Unknown",
                country_code="UN",
                city="Unknown",
                region="Unknown",
                is_internal=False,
                is_suspicious=suspicious,
                threat_level=ThreatLevel.MALICIOUS if suspicious else ThreatLevel.CLEAN,
                organization="Unknown",
                asn=0,
            )
        self.geo_cache[ip] = info
        return replace(info)

    def _detect_port_scan(self, ip: IPAddress, port: int) -> Optional[PortScanDetection]:
        now = self._clock()
        existing = self.port_scan_detectors.get(ip)
        if existing is not None:
            detector = replace(existing, ports_scanned=set(existing.ports_scanned))
            detector.ports_scanned.add(port)
            detector.scan_duration = max(now - detector.scan_start_time, 0.0)
            if int(detector.scan_duration) > 0:
                detector.scan_rate = len(detector.ports_scanned) / detector.scan_duration
        else:
            detector = PortScanDetection(
                scanner_ip=ip, ports_scanned={port}, scan_start_time=now
            )

        detector.confidence = port_scan_confidence(detector)
        self.port_scan_detectors[ip] = detector

        cutoff = now - _PORT_SCAN_WINDOW
        self.port_scan_detectors = {
            key: value
            for key, value in self.port_scan_detectors.items()
            if value.scan_start_time > cutoff
        }

        return detector if detector.confidence > _PORT_SCAN_THRESHOLD else None

    def get_recent_anomalies(self, limit: int) -> list[NetworkAnomaly]:
        """The most recent anomalies, newest first."""
        return list(reversed(self.anomalies))[:limit]

    def get_port_scan_alerts(self) -> list[PortScanDetection]:
        """Tracked scanners whose confidence passes the alert threshold."""
        return [
            replace(d, ports_scanned=set(d.ports_scanned))
            for d in self.port_scan_detectors.values()
            if d.confidence > _PORT_SCAN_THRESHOLD
        ]

    def get_connection_stats(self) -> ConnectionStats:
        history = self.connection_history
        external = [
            conn.geo_info
            for conn in history
            if conn.geo_info is not None and not conn.geo_info.is_internal
        ]
        return ConnectionStats(
            total_connections=len(history),
            external_connections=len(external),
            suspicious_connections=sum(1 for c in history if c.threat_indicators),
            unique_countries=len({geo.country for geo in external}),
            active_port_scans=len(self.port_scan_detectors),
        )