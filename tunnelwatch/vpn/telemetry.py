"""Extraction of connection telemetry from OpenVPN log lines."""

import ipaddress
import re
from typing import Iterable, Optional, Sequence, Tuple

from .models import TelemetrySnapshot, utcnow

READ_BYTES_MARKER = "read bytes"
WRITE_BYTES_MARKER = "write bytes"

_IPV4 = r"(\d{1,3}(?:\.\d{1,3}){3})"
_IPV6 = r"([0-9A-Fa-f:]*:[0-9A-Fa-f:]*)"

IPV4_ASSIGNMENT_PATTERNS = (
    re.compile(r"\bifconfig(?:\s+[A-Za-z]+\d+)?\s+" + _IPV4 + r"\b"),
    re.compile(r"\bnet_addr_v4_add:\s+" + _IPV4 + r"\b"),
    re.compile(r"\baddr add dev \S+\s+(?:local\s+)?" + _IPV4 + r"\b"),
)

IPV6_ASSIGNMENT_PATTERNS = (
    re.compile(r"\bifconfig-ipv6\s+" + _IPV6),
    re.compile(r"\bnet_addr_v6_add:\s+" + _IPV6),
    re.compile(r"-6 addr add\s+(?:dev \S+\s+)?" + _IPV6),
)

REMOTE_PATTERN = re.compile(
    r"(?:Peer Connection Initiated with|link remote:|connection established with)"
    r"\s+(?:\[AF_INET6?\])?(?P<endpoint>\S+)",
    re.IGNORECASE,
)
PROTOCOL_PATTERN = re.compile(r"\b(udp|tcp)(?:v[46])?(?:_client|_server)?\b", re.IGNORECASE)


def _first_valid(line: str, patterns: Iterable[re.Pattern], version: int) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(line)
        if not match:
            continue
        try:
            address = ipaddress.ip_address(match.group(1))
        except ValueError:
            continue
        if address.version == version:
            return str(address)
    return None


def parse_byte_counter(line: str) -> Optional[int]:
    """Return the integer following the first comma, e.g. ``TUN/TAP read bytes,2000``."""
    _, sep, rest = line.partition(",")
    if not sep:
        return None
    match = re.match(r"\s*(\d+)", rest)
    return int(match.group(1)) if match else None


def parse_tunnel_ipv4(line: str) -> Optional[str]:
    return _first_valid(line, IPV4_ASSIGNMENT_PATTERNS, 4)


def parse_tunnel_ipv6(line: str) -> Optional[str]:
    return _first_valid(line, IPV6_ASSIGNMENT_PATTERNS, 6)


def parse_remote_endpoint(line: str) -> Optional[Tuple[str, int]]:
    """Parse ``<ip>:<port>`` announced on a remote-endpoint line."""
    match = REMOTE_PATTERN.search(line)
    if not match:
        return None
    host, sep, port = match.group("endpoint").rstrip(",;").rpartition(":")
    if not sep or not port.isdigit():
        return None
    try:
        address = ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return None
    port_number = int(port)
    if not 0 < port_number <= 65535:
        return None
    return str(address), port_number


def parse_protocol(line: str) -> Optional[str]:
    """Transport protocol named on a remote-endpoint line."""
    if not REMOTE_PATTERN.search(line):
        return None
    match = PROTOCOL_PATTERN.search(line)
    return match.group(1).lower() if match else None


class TelemetryParser:
    """
    Derives a TelemetrySnapshot from a window of log lines.

    Lines are scanned newest first and each field keeps the first value
    found, so after a reconnect the latest announcement wins. Fields
    without a usable marker stay at their empty default.
    """

    def extract(self, lines: Sequence[str]) -> TelemetrySnapshot:
        sent: Optional[int] = None
        received: Optional[int] = None
        tunnel_ipv4: Optional[str] = None
        tunnel_ipv6: Optional[str] = None
        endpoint: Optional[Tuple[str, int]] = None
        protocol: Optional[str] = None

        for line in reversed(lines):
            if received is None and READ_BYTES_MARKER in line:
                received = parse_byte_counter(line)
            if sent is None and WRITE_BYTES_MARKER in line:
                sent = parse_byte_counter(line)
            if tunnel_ipv4 is None:
                tunnel_ipv4 = parse_tunnel_ipv4(line)
            if tunnel_ipv6 is None:
                tunnel_ipv6 = parse_tunnel_ipv6(line)
            if endpoint is None:
                endpoint = parse_remote_endpoint(line)
            if protocol is None:
                protocol = parse_protocol(line)

            if None not in (sent, received, tunnel_ipv4, tunnel_ipv6, endpoint, protocol):
                break

        remote_ip, remote_port = endpoint or ("", 0)
        return TelemetrySnapshot(
            tunnel_ipv4=tunnel_ipv4 or "",
            tunnel_ipv6=tunnel_ipv6 or "",
            remote_ip=remote_ip,
            remote_port=remote_port,
            protocol=protocol or "",
            cumulative_bytes_sent=sent or 0,
            cumulative_bytes_received=received or 0,
            extracted_at=utcnow(),
        )
