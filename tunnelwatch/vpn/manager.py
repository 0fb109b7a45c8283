"""VPN tunnel connection management."""

from typing import Callable, Dict, List, Optional

from .cache import ConnectionStateCache
from .exceptions import ProcessNotRunningError, VPNError
from .models import ConnectionConfig, ConnectionState
from .poller import StatusPoller
from .stores import FileConfigStore, FileCredentialStore
from .supervisor import ProcessSupervisor
from .utils import log_vpn_output, wait_for_grace_period
from ..logging_utility import logger
from ..settings import Settings


class VPNConnectionManager:
    """
    Connect, disconnect and status entry points for the single tunnel.

    The supervisor, cache and poller are shared by every caller of one
    manager instance.
    """

    def __init__(
            self,
            supervisor: ProcessSupervisor,
            cache: ConnectionStateCache,
            poller: StatusPoller,
            config_store: FileConfigStore,
            credential_store: Optional[FileCredentialStore] = None,
            grace_period: float = 2.0,
            wait: Callable[[float], None] = wait_for_grace_period,
    ):
        self.supervisor = supervisor
        self.cache = cache
        self.poller = poller
        self.config_store = config_store
        self.credential_store = credential_store
        self.grace_period = grace_period
        self._wait = wait

    def connect(self, name: str) -> ConnectionState:
        """
        Start the tunnel and return its first reconciled state.

        Args:
            name: Tunnel config name

        Raises:
            ConfigMissingError: Unknown tunnel name
            AlreadyRunningError: Another tunnel is up
            SpawnFailedError: OpenVPN could not be launched
            ProcessNotRunningError: OpenVPN exited during the grace period
        """
        config_path = self.config_store.resolve(name)
        credentials_path = self.credential_store.load(name) if self.credential_store else None
        config = ConnectionConfig(name=name, config_path=config_path, credentials_path=credentials_path)

        # Lets a tunnel that crashed since the last status query release its handle
        self.supervisor.is_alive()
        handle = self.supervisor.start(config)
        self.poller.clear()

        self._wait(self.grace_period)

        state = self.poller.reconcile()
        if state is None:
            logger.error(f"VPN '{name}' is not running after {self.grace_period}s")
            log_vpn_output(handle.log_path)
            raise ProcessNotRunningError(f"VPN process for '{name}' exited during startup")

        logger.info(
            f"VPN '{name}' connected: tunnel {state.tunnel_ipv4 or 'pending'}, "
            f"remote {state.remote_ip or 'pending'}"
        )
        return state

    def disconnect(self) -> None:
        """
        Stop the tunnel. Safe to call when nothing is running.

        Raises:
            KillFailedError: The process could not be terminated; state is cleared anyway
        """
        try:
            self.supervisor.stop()
        except VPNError as e:
            logger.error(f"Error during disconnect: {str(e)}")
            raise
        finally:
            self.poller.clear()
        logger.info("VPN disconnected")

    def status(self) -> Optional[ConnectionState]:
        """Current connection state, or None if no tunnel is up."""
        return self.poller.reconcile()

    def list_configs(self) -> List[Dict[str, str]]:
        return self.config_store.list_configs()


def build_manager(settings: Settings) -> VPNConnectionManager:
    """Wire one manager with its shared supervisor and cache."""
    supervisor = ProcessSupervisor(
        log_dir=settings.log_dir,
        binary=settings.openvpn_binary,
        verb=settings.verb,
        use_sudo=settings.use_sudo,
        stop_timeout=settings.stop_timeout,
    )
    cache = ConnectionStateCache()
    poller = StatusPoller(supervisor, cache, tail_lines=settings.tail_lines)
    return VPNConnectionManager(
        supervisor=supervisor,
        cache=cache,
        poller=poller,
        config_store=FileConfigStore(settings.config_dir),
        credential_store=FileCredentialStore(settings.credentials_dir),
        grace_period=settings.grace_period,
    )
