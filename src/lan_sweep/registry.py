"""
Known-device registry interface.

The engine does not own device bookkeeping. It only asks whether an
address is known (to annotate events) and, when a known address resolves
to a new hostname, hands the new name to the registry's own update
operation. Conflict handling is the registry's concern.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class DeviceRegistry(Protocol):
    """What the engine needs from an external device registry."""

    def is_known(self, address: str) -> bool:
        ...

    def get_hostname(self, address: str) -> Optional[str]:
        ...

    def update_hostname(self, address: str, hostname: str) -> None:
        ...


class InMemoryDeviceRegistry:
    """Dict-backed registry mapping address -> last known hostname."""

    def __init__(self, devices: Optional[Mapping[str, Optional[str]]] = None):
        self._devices: dict[str, Optional[str]] = dict(devices or {})

    def is_known(self, address: str) -> bool:
        return address in self._devices

    def get_hostname(self, address: str) -> Optional[str]:
        return self._devices.get(address)

    def update_hostname(self, address: str, hostname: str) -> None:
        previous = self._devices.get(address)
        self._devices[address] = hostname
        logger.info(f"Hostname for {address} updated: {previous or '-'} -> {hostname}")

    def __len__(self) -> int:
        return len(self._devices)
