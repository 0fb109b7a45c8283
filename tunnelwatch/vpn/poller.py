"""Reconciliation of process liveness and log telemetry into the state cache."""

import threading
import time
from dataclasses import replace
from typing import Callable, Optional

from .cache import ConnectionStateCache
from .log_tail import LogTailReader
from .models import ConnectionState, TelemetrySnapshot, utcnow
from .supervisor import ProcessSupervisor
from .telemetry import TelemetryParser
from ..logging_utility import logger


def compute_throughput(previous: int, current: int, elapsed: Optional[float]) -> float:
    """Bytes per second between two cumulative counters, never negative."""
    if elapsed is None or elapsed <= 0:
        return 0.0
    return max(0, current - previous) / elapsed


def merge_state(
        previous: Optional[ConnectionState],
        snapshot: TelemetrySnapshot,
        config_name: str,
        connected_at,
) -> ConnectionState:
    """
    Merge fresh telemetry into the previous state.

    Non-empty fields of the snapshot win; empty ones keep what was learned
    earlier, so a remote endpoint announced once stays known until a newer
    announcement replaces it.
    """
    if previous is None:
        previous = ConnectionState(config_name=config_name, connected_at=connected_at)

    return ConnectionState(
        config_name=previous.config_name,
        connected_at=previous.connected_at,
        remote_ip=snapshot.remote_ip or previous.remote_ip,
        remote_port=snapshot.remote_port or previous.remote_port,
        protocol=snapshot.protocol or previous.protocol,
        tunnel_ipv4=snapshot.tunnel_ipv4 or previous.tunnel_ipv4,
        tunnel_ipv6=snapshot.tunnel_ipv6 or previous.tunnel_ipv6,
        cumulative_bytes_sent=snapshot.cumulative_bytes_sent or previous.cumulative_bytes_sent,
        cumulative_bytes_received=snapshot.cumulative_bytes_received or previous.cumulative_bytes_received,
        throughput_up=previous.throughput_up,
        throughput_down=previous.throughput_down,
    )


class StatusPoller:
    """
    Brings the ConnectionStateCache in line with the supervised process.

    Called on demand, typically once per status query. Throughput is
    derived from the byte counters of two successive calls and the time
    that passed between them.
    """

    def __init__(
            self,
            supervisor: ProcessSupervisor,
            cache: ConnectionStateCache,
            parser: Optional[TelemetryParser] = None,
            tail_lines: int = 200,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.supervisor = supervisor
        self.cache = cache
        self.parser = parser or TelemetryParser()
        self.tail_lines = tail_lines
        self._clock = clock
        self._lock = threading.Lock()
        self._last_sample_at: Optional[float] = None

    def clear(self) -> None:
        """Drop the cached state and the rate window together, after any in-flight reconcile."""
        with self._lock:
            self.cache.clear()
            self._last_sample_at = None

    def reconcile(self) -> Optional[ConnectionState]:
        """
        Refresh the cached connection state.

        Returns:
            The merged ConnectionState, or None if no tunnel process is alive
        """
        with self._lock:
            if not self.supervisor.is_alive():
                self.cache.clear()
                self._last_sample_at = None
                return None

            config = self.supervisor.current_config()
            if config is None:
                # Stopped between the probe and now
                self.cache.clear()
                self._last_sample_at = None
                return None

            previous = self.cache.get()
            if previous is not None and previous.config_name != config.name:
                previous = None

            reader = LogTailReader(self.supervisor.log_path_for(config.name))
            snapshot = self.parser.extract(reader.tail(self.tail_lines))

            now = self._clock()
            elapsed = None
            if previous is not None and self._last_sample_at is not None:
                elapsed = now - self._last_sample_at

            state = merge_state(
                previous,
                snapshot,
                config_name=config.name,
                connected_at=self.supervisor.started_at() or utcnow(),
            )
            if previous is None:
                throughput_up = throughput_down = 0.0
            else:
                throughput_up = compute_throughput(previous.cumulative_bytes_sent, state.cumulative_bytes_sent, elapsed)
                throughput_down = compute_throughput(previous.cumulative_bytes_received, state.cumulative_bytes_received, elapsed)

            state = replace(state, throughput_up=throughput_up, throughput_down=throughput_down)

            if self.supervisor.current_config() is not config:
                # Stopped or restarted while the log was being parsed
                self.cache.clear()
                self._last_sample_at = None
                return None

            self._last_sample_at = now
            self.cache.set(state)
            logger.debug(
                f"Reconciled '{config.name}': tun={state.tunnel_ipv4 or '-'} "
                f"remote={state.remote_ip or '-'}:{state.remote_port} "
                f"up={throughput_up:.0f}B/s down={throughput_down:.0f}B/s"
            )
            return state
