"""Connectivity tracking used to fail fast while offline."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

logger = logging.getLogger(__name__)

DEFAULT_PROBE_HOST = "1.1.1.1"
DEFAULT_PROBE_PORT = 443


@dataclass(frozen=True, slots=True)
class NetworkStatus:
    """Last known connectivity. ``None`` means not determined yet."""

    is_connected: bool | None = None
    connection_type: str | None = None


StatusListener = Callable[[NetworkStatus], None]


class NetworkMonitor:
    def __init__(self, status: NetworkStatus | None = None) -> None:
        self._status = status or NetworkStatus()
        self._listeners: list[StatusListener] = []
        self._lock = Lock()

    @property
    def status(self) -> NetworkStatus:
        return self._status

    @property
    def is_offline(self) -> bool:
        return self._status.is_connected is False

    def add_listener(self, listener: StatusListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def update(self, is_connected: bool | None, connection_type: str | None = None) -> NetworkStatus:
        status = NetworkStatus(is_connected=is_connected, connection_type=connection_type)
        with self._lock:
            changed = status != self._status
            self._status = status
            listeners = list(self._listeners)
        if changed:
            logger.info("Network status changed: connected=%s type=%s", is_connected, connection_type)
            for listener in listeners:
                listener(status)
        return status

    async def probe(
        self,
        host: str = DEFAULT_PROBE_HOST,
        port: int = DEFAULT_PROBE_PORT,
        *,
        timeout: float = 3.0,
    ) -> NetworkStatus:
        """Open a TCP connection to ``host:port`` and record the outcome."""
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            logger.debug("Connectivity probe to %s:%s failed: %s", host, port, exc)
            return self.update(False)
        writer.close()
        await writer.wait_closed()
        return self.update(True, "tcp")
