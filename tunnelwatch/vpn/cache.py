"""Shared holder for the current connection state."""

import threading
from typing import Optional

from .models import ConnectionState


class ConnectionStateCache:
    """Lock-guarded slot holding the latest ConnectionState, replaced wholesale."""

    def __init__(self):
        self._lock = threading.Lock()
        self._state: Optional[ConnectionState] = None

    def get(self) -> Optional[ConnectionState]:
        with self._lock:
            return self._state

    def set(self, state: Optional[ConnectionState]) -> None:
        with self._lock:
            self._state = state

    def clear(self) -> None:
        self.set(None)
