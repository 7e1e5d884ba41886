"""
TCP liveness probing.

A host is considered up when any of a small set of commonly-open ports
accepts a TCP connection. No data is exchanged; the connection is closed
as soon as it is established.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ._types import (
    DEFAULT_PROBE_PORTS,
    DEFAULT_PROBE_TIMEOUT,
    HostStatus,
    PortState,
)

logger = logging.getLogger(__name__)


class PortProbe:
    """
    Classify addresses as active/inactive by connecting to probe ports.

    All ports of one address are tried concurrently. The address is active
    as soon as the first connection succeeds and inactive only once every
    attempt has failed.
    """

    def __init__(
        self,
        ports: Iterable[int] = DEFAULT_PROBE_PORTS,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
    ):
        """
        Initialize the probe.

        Args:
            ports: TCP ports to try on every address
            timeout: Connect timeout per port in seconds
        """
        self.ports = tuple(ports)
        self.timeout = timeout

    async def probe(self, address: str, port: int) -> PortState:
        """Attempt one TCP connection. Never raises."""
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(address, port),
                timeout=self.timeout,
            )
            writer.close()
            await writer.wait_closed()
            logger.debug(f"Port open: {address}:{port}")
            return PortState.REACHABLE
        except asyncio.TimeoutError:
            logger.debug(f"Probe timed out: {address}:{port}")
            return PortState.UNREACHABLE
        except Exception as e:
            logger.debug(f"Probe failed for {address}:{port}: {e}")
            return PortState.UNREACHABLE

    async def check_host(self, address: str) -> HostStatus:
        """Race all probe ports; first reachable port wins."""
        if not self.ports:
            return HostStatus.INACTIVE

        attempts = [
            asyncio.create_task(self.probe(address, port))
            for port in self.ports
        ]
        try:
            for finished in asyncio.as_completed(attempts):
                if await finished == PortState.REACHABLE:
                    return HostStatus.ACTIVE
            return HostStatus.INACTIVE
        finally:
            for attempt in attempts:
                if not attempt.done():
                    attempt.cancel()
