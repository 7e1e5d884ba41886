"""
Type definitions for the LAN sweep engine.

These dataclasses define the domain model for host discovery:
per-address probe outcomes and the events a scan emits while it runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def now_utc() -> datetime:
    """Get current UTC timestamp (replaces deprecated datetime.utcnow())."""
    return datetime.now(timezone.utc)


class HostStatus(str, Enum):
    """Liveness classification of a scanned address."""
    ACTIVE = "active"      # At least one probe port accepted a connection
    INACTIVE = "inactive"  # Every probe port failed


class PortState(str, Enum):
    """Outcome of a single TCP connection attempt."""
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"  # Timeout, refused, unreachable, reset


class ScanState(str, Enum):
    """Engine lifecycle state."""
    IDLE = "idle"
    RUNNING = "running"
    CANCELLING = "cancelling"  # Cancelled, waiting for in-flight work to drain


class ScanEventType(str, Enum):
    """Kinds of events emitted during a scan."""
    START = "start"
    INITIATE = "initiate"
    RESULT = "result"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of scanning one address."""
    address: str
    status: HostStatus = HostStatus.INACTIVE
    hostname: Optional[str] = None  # Only set for active hosts

    @property
    def is_active(self) -> bool:
        return self.status == HostStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "status": self.status.value,
            "hostname": self.hostname,
        }


@dataclass(frozen=True)
class ScanEvent:
    """
    A notification emitted while a scan runs.

    Only the payload fields of the event's type are populated:

        start     total, addresses
        initiate  address, is_known
        result    outcome, is_known
        complete  results
        error     message
    """
    type: ScanEventType
    scan_id: str

    total: Optional[int] = None
    addresses: tuple[str, ...] = ()
    address: Optional[str] = None
    outcome: Optional[ProbeOutcome] = None
    results: tuple[ProbeOutcome, ...] = ()
    message: Optional[str] = None
    is_known: Optional[bool] = None

    timestamp: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict[str, Any]:
        """Render the event as a JSON-ready dict."""
        data: dict[str, Any] = {
            "event": self.type.value,
            "scan_id": self.scan_id,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.type == ScanEventType.START:
            data["total"] = self.total
            data["addresses"] = list(self.addresses)
        elif self.type == ScanEventType.INITIATE:
            data["address"] = self.address
            data["is_known"] = bool(self.is_known)
        elif self.type == ScanEventType.RESULT and self.outcome is not None:
            data.update(self.outcome.to_dict())
            data["is_known"] = bool(self.is_known)
        elif self.type == ScanEventType.COMPLETE:
            data["results"] = [r.to_dict() for r in self.results]
        elif self.type == ScanEventType.ERROR:
            data["message"] = self.message

        return data


# Ports that are open on most desktops, servers and appliances
# (HTTP, HTTPS, MS-RPC endpoint mapper).
DEFAULT_PROBE_PORTS = (80, 443, 135)

DEFAULT_PROBE_TIMEOUT = 1.0
DEFAULT_MAX_CONCURRENT_HOSTS = 50

DEFAULT_MAX_CONCURRENT_RESOLUTIONS = 2
DEFAULT_DNS_TIMEOUT = 2.0
DEFAULT_OS_LOOKUP_TIMEOUT = 10.0

# A /16; larger expansions are refused unless configured otherwise.
DEFAULT_MAX_ADDRESSES = 65536
