"""
LAN Sweep - live host discovery for IPv4 network segments.

Expands a range expression into addresses, probes each one for a few
commonly-open TCP ports, resolves names for the hosts that answer and
reports results incrementally as the scan progresses.

Architecture:
    ranges    range expression -> address list
    probe     TCP connect liveness check
    resolver  reverse DNS / OS name service cascade, throttled
    engine    worker pool, event stream, cancellation
    service   HTTP/WebSocket control API and CLI
"""

__version__ = "1.0.0"

from ._types import (
    HostStatus,
    PortState,
    ProbeOutcome,
    ScanEvent,
    ScanEventType,
    ScanState,
)
from .config import SweepConfig
from .engine import ScanEngine, ScanTask
from .probe import PortProbe
from .ranges import InvalidRangeError, parse_range
from .registry import DeviceRegistry, InMemoryDeviceRegistry
from .resolver import HostnameResolver

__all__ = [
    "__version__",
    "HostStatus",
    "PortState",
    "ProbeOutcome",
    "ScanEvent",
    "ScanEventType",
    "ScanState",
    "SweepConfig",
    "ScanEngine",
    "ScanTask",
    "PortProbe",
    "InvalidRangeError",
    "parse_range",
    "DeviceRegistry",
    "InMemoryDeviceRegistry",
    "HostnameResolver",
]
