"""Utility functions for VPN management."""

from pathlib import Path
import time

from .log_tail import LogTailReader
from ..logging_utility import logger


def wait_for_grace_period(seconds: float) -> None:
    """Give the VPN client time to write its handshake lines."""
    if seconds > 0:
        logger.info(f"Waiting {seconds:.1f}s for VPN handshake output...")
        time.sleep(seconds)


def log_vpn_output(log_file: Path, max_lines: int = 50) -> None:
    """
    Log the last lines of OpenVPN output.

    Args:
        log_file: Path to the tunnel log file
        max_lines: How many trailing lines to include
    """
    lines = LogTailReader(log_file).tail(max_lines)
    if lines:
        vpn_output = "\n".join(lines)
        logger.error(f"OpenVPN output:\n{vpn_output}")
    else:
        logger.error(f"No OpenVPN output in {log_file}")
