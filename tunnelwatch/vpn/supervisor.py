"""Supervision of the single external VPN client process."""

import subprocess
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .command_factory import VPNCommandFactory
from .commands import CommandError
from .exceptions import AlreadyRunningError, ConfigMissingError, KillFailedError, SpawnFailedError
from .models import ConnectionConfig, ProcessHandle
from ..logging_utility import logger


class ProcessSupervisor:
    """
    Owns the handle of the one VPN client process that may run at a time.

    start, stop and is_alive are serialized by a single lock. is_alive is
    also where an unexpected exit is noticed: the probe clears the handle,
    so every caller observes the process as gone from then on.
    """

    def __init__(
            self,
            log_dir: Path,
            binary: str = "openvpn",
            verb: Optional[int] = None,
            use_sudo: bool = False,
            stop_timeout: float = 5.0,
            popen: Callable[..., subprocess.Popen] = subprocess.Popen,
    ):
        self.log_dir = Path(log_dir)
        self.binary = binary
        self.verb = verb
        self.use_sudo = use_sudo
        self.stop_timeout = stop_timeout
        self._popen = popen
        self._lock = threading.Lock()
        self._handle: Optional[ProcessHandle] = None

    def log_path_for(self, name: str) -> Path:
        """Fixed per-tunnel location of the client's combined output."""
        return self.log_dir / f"{name}.log"

    def start(self, config: ConnectionConfig, credentials_path: Optional[Path] = None) -> ProcessHandle:
        """
        Launch the VPN client for a tunnel definition.

        Args:
            config: Tunnel definition to start
            credentials_path: Optional auth-user-pass file, overrides the one on the config

        Returns:
            The new process handle

        Raises:
            ConfigMissingError: The config file does not exist
            AlreadyRunningError: A tunnel process is already supervised
            SpawnFailedError: The binary could not be launched
        """
        with self._lock:
            if self._handle is not None:
                raise AlreadyRunningError(
                    f"Tunnel '{self._handle.config.name}' is already running (pid {self._handle.pid})"
                )
            if not Path(config.config_path).is_file():
                raise ConfigMissingError(f"Config file not found: {config.config_path}")

            credentials_path = credentials_path or config.credentials_path
            try:
                cmd = VPNCommandFactory.start_vpn(
                    config_path=config.config_path,
                    credentials_path=credentials_path,
                    binary=self.binary,
                    verb=self.verb,
                    use_sudo=self.use_sudo,
                )
            except CommandError as e:
                raise SpawnFailedError(f"Invalid VPN command for '{config.name}': {str(e)}")

            log_path = self.log_path_for(config.name)
            try:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                log_file = open(log_path, "w")
            except OSError as e:
                raise SpawnFailedError(f"Cannot open tunnel log {log_path}: {str(e)}")

            logger.info(f"Starting VPN '{config.name}': {' '.join(cmd)}")
            try:
                process = self._spawn(cmd, log_file)
            except Exception:
                log_file.close()
                raise

            self._handle = ProcessHandle(
                config=config,
                process=process,
                log_file=log_file,
                log_path=log_path,
            )
            logger.info(f"VPN '{config.name}' started with pid {process.pid}")
            return self._handle

    def _spawn(self, cmd: list[str], log_file) -> subprocess.Popen:
        try:
            process = self._popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except FileNotFoundError:
            raise SpawnFailedError(f"VPN binary not found: {cmd[0]}")
        except PermissionError:
            raise SpawnFailedError(f"Permission denied launching {cmd[0]}")
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise SpawnFailedError(f"Failed to launch {cmd[0]}: {str(e)}")

        return process

    def stop(self) -> None:
        """
        Terminate the supervised process, if any.

        Idempotent. The handle is cleared even when termination fails.

        Raises:
            KillFailedError: The process could not be signalled or did not exit
        """
        with self._lock:
            handle = self._handle
            self._handle = None
            if handle is None:
                return

            try:
                self._terminate(handle)
            finally:
                handle.log_file.close()

    def _terminate(self, handle: ProcessHandle) -> None:
        process = handle.process
        if process.poll() is not None:
            logger.info(f"VPN '{handle.config.name}' already exited with code {process.returncode}")
            return

        logger.info(f"Stopping VPN '{handle.config.name}' (pid {handle.pid})")
        try:
            process.terminate()
            try:
                process.wait(timeout=self.stop_timeout)
                return
            except subprocess.TimeoutExpired:
                logger.warning(f"VPN pid {handle.pid} ignored SIGTERM, killing")
            process.kill()
            process.wait(timeout=self.stop_timeout)
        except ProcessLookupError:
            return
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"Failed to stop VPN pid {handle.pid}: {str(e)}")
            raise KillFailedError(f"Failed to kill VPN process {handle.pid}: {str(e)}")

    def is_alive(self) -> bool:
        """
        Non-blocking liveness probe.

        Side effect: if the process has exited, the handle is cleared here.
        """
        with self._lock:
            handle = self._handle
            if handle is None:
                return False
            returncode = handle.process.poll()
            if returncode is None:
                return True

            logger.warning(f"VPN '{handle.config.name}' (pid {handle.pid}) exited with code {returncode}")
            self._handle = None
            handle.log_file.close()
            return False

    def current_config(self) -> Optional[ConnectionConfig]:
        with self._lock:
            return self._handle.config if self._handle else None

    def started_at(self) -> Optional[datetime]:
        with self._lock:
            return self._handle.started_at if self._handle else None
