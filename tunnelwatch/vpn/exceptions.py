"""Custom exceptions for VPN tunnel supervision."""


class VPNError(Exception):
    """Base exception for VPN-related errors."""
    pass


class ConfigMissingError(VPNError):
    """Raised when the requested tunnel definition does not exist"""
    pass


class AlreadyRunningError(VPNError):
    """Raised when a tunnel process is already running"""
    pass


class SpawnFailedError(VPNError):
    """Raised when the VPN binary cannot be launched"""
    pass


class ProcessNotRunningError(VPNError):
    """Raised when the VPN process exited during the connect grace period"""
    pass


class KillFailedError(VPNError):
    """Raised when the VPN process could not be terminated"""
    pass


class LogUnavailableError(VPNError):
    """Raised when the diagnostic log cannot be read"""
    pass
