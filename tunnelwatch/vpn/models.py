"""Data models for VPN tunnel supervision."""

import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import IO, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VPNStatus(Enum):
    """VPN connection status"""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ConnectionConfig:
    """A named tunnel definition"""
    name: str
    config_path: Path
    credentials_path: Optional[Path] = None


@dataclass
class ProcessHandle:
    """The running VPN client process, owned by ProcessSupervisor"""
    config: ConnectionConfig
    process: subprocess.Popen
    log_file: IO
    log_path: Path
    started_at: datetime = field(default_factory=utcnow)

    @property
    def pid(self) -> int:
        return self.process.pid


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Connection facts extracted from one pass over the tunnel log"""
    tunnel_ipv4: str = ""
    tunnel_ipv6: str = ""
    remote_ip: str = ""
    remote_port: int = 0
    protocol: str = ""
    cumulative_bytes_sent: int = 0
    cumulative_bytes_received: int = 0
    extracted_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ConnectionState:
    """Reconciled view of the live tunnel"""
    config_name: str
    connected_at: datetime
    remote_ip: str = ""
    remote_port: int = 0
    protocol: str = ""
    tunnel_ipv4: str = ""
    tunnel_ipv6: str = ""
    cumulative_bytes_sent: int = 0
    cumulative_bytes_received: int = 0
    throughput_up: float = 0.0
    throughput_down: float = 0.0
