from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .logging_utility import logger
from .settings import load_settings
from .vpn.exceptions import (
    AlreadyRunningError,
    ConfigMissingError,
    ProcessNotRunningError,
    VPNError,
)
from .vpn.manager import build_manager
from .vpn.models import ConnectionState, VPNStatus


app = FastAPI(title="TunnelWatch")
vpn_manager = build_manager(load_settings())


class ConnectionInfo(BaseModel):
    config_name: str
    remote_ip: str
    remote_port: int
    protocol: str
    tunnel_ipv4: str
    tunnel_ipv6: str
    connected_at: datetime
    cumulative_bytes_sent: int
    cumulative_bytes_received: int
    throughput_up: float
    throughput_down: float

    @classmethod
    def from_state(cls, state: ConnectionState) -> "ConnectionInfo":
        return cls(**asdict(state))


class StatusResponse(BaseModel):
    status: VPNStatus
    connection: Optional[ConnectionInfo] = None


class TunnelConfig(BaseModel):
    name: str
    server: str
    protocol: str


def _status_code_for(error: VPNError) -> int:
    if isinstance(error, ConfigMissingError):
        return 404
    if isinstance(error, AlreadyRunningError):
        return 409
    if isinstance(error, ProcessNotRunningError):
        return 502
    return 500


@app.get("/status", response_model=StatusResponse)
def get_status():
    """Current tunnel state, reconciled with the VPN process"""
    try:
        state = vpn_manager.status()
    except Exception as e:
        logger.error(f"Error getting VPN status: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to get VPN status")

    if state is None:
        return StatusResponse(status=VPNStatus.DISCONNECTED)
    return StatusResponse(status=VPNStatus.CONNECTED, connection=ConnectionInfo.from_state(state))


@app.post("/connect/{name}", response_model=StatusResponse)
def connect(name: str):
    """Start the tunnel for a config and wait for its first status"""
    try:
        state = vpn_manager.connect(name)
    except VPNError as e:
        logger.error(f"Error connecting VPN '{name}': {str(e)}")
        raise HTTPException(status_code=_status_code_for(e), detail=str(e))

    return StatusResponse(status=VPNStatus.CONNECTED, connection=ConnectionInfo.from_state(state))


@app.post("/disconnect")
def disconnect():
    """Stop the running tunnel, if any"""
    try:
        vpn_manager.disconnect()
        return {"status": "success", "message": "VPN disconnected"}
    except VPNError as e:
        logger.error(f"Error disconnecting VPN: {str(e)}")
        raise HTTPException(status_code=_status_code_for(e), detail=str(e))


@app.get("/configs", response_model=List[TunnelConfig])
def list_configs():
    """Available tunnel definitions"""
    try:
        return [TunnelConfig(**config) for config in vpn_manager.list_configs()]
    except OSError as e:
        logger.error(f"Error listing configs: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list configs")
