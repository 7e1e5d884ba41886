"""
LAN sweep configuration.

Settings come from a YAML file (``--config``) or from environment
variables. Everything has a working default, so an empty configuration
is a valid one.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from ._types import (
    DEFAULT_DNS_TIMEOUT,
    DEFAULT_MAX_ADDRESSES,
    DEFAULT_MAX_CONCURRENT_HOSTS,
    DEFAULT_MAX_CONCURRENT_RESOLUTIONS,
    DEFAULT_OS_LOOKUP_TIMEOUT,
    DEFAULT_PROBE_PORTS,
    DEFAULT_PROBE_TIMEOUT,
)
from .ranges import InvalidRangeError, is_ipv4, parse_range

logger = logging.getLogger(__name__)


class SweepConfig(BaseModel):
    """Scan engine and control API configuration."""

    # ========================================================================
    # Port probing
    # ========================================================================

    probe_ports: list[int] = Field(
        default_factory=lambda: list(DEFAULT_PROBE_PORTS),
        description="TCP ports tried on every address; any open port means the host is up"
    )
    probe_timeout: float = Field(
        default=DEFAULT_PROBE_TIMEOUT,
        gt=0,
        description="Connect timeout per port in seconds"
    )
    max_concurrent_hosts: int = Field(
        default=DEFAULT_MAX_CONCURRENT_HOSTS,
        ge=1,
        description="Worker pool size (addresses probed at once)"
    )
    max_addresses: Optional[int] = Field(
        default=DEFAULT_MAX_ADDRESSES,
        ge=1,
        description="Largest range a single scan may expand to (None = unlimited)"
    )

    # ========================================================================
    # Hostname resolution
    # ========================================================================

    max_concurrent_resolutions: int = Field(
        default=DEFAULT_MAX_CONCURRENT_RESOLUTIONS,
        ge=1,
        description="Hostname lookups allowed in flight at once"
    )
    dns_timeout: float = Field(
        default=DEFAULT_DNS_TIMEOUT,
        gt=0,
        description="Reverse DNS timeout in seconds"
    )
    os_lookup_timeout: float = Field(
        default=DEFAULT_OS_LOOKUP_TIMEOUT,
        gt=0,
        description="OS name service lookup timeout in seconds"
    )
    enable_os_lookup: bool = Field(
        default=True,
        description="Fall back to the OS name service when reverse DNS fails"
    )

    # ========================================================================
    # Targets
    # ========================================================================

    default_range: Optional[str] = Field(
        default=None,
        description="Range scanned when a request does not name one"
    )
    known_devices: dict[str, Optional[str]] = Field(
        default_factory=dict,
        description="Known addresses mapped to their last known hostname"
    )

    # ========================================================================
    # Control API
    # ========================================================================

    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8083, ge=1, le=65535)

    # ========================================================================
    # Logging
    # ========================================================================

    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(
        default=None,
        description="Also append log lines to this file"
    )

    @field_validator("probe_ports")
    @classmethod
    def validate_probe_ports(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("At least one probe port is required")
        for port in v:
            if port < 1 or port > 65535:
                raise ValueError(f"Invalid port: {port}")
        # Dedupe, keep order
        return list(dict.fromkeys(v))

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("known_devices")
    @classmethod
    def validate_known_devices(cls, v: dict[str, Optional[str]]) -> dict[str, Optional[str]]:
        bad = [address for address in v if not is_ipv4(address)]
        if bad:
            raise ValueError(f"Known devices must be IPv4 addresses: {bad}")
        return v

    @classmethod
    def from_env(cls) -> "SweepConfig":
        """Load configuration from environment variables."""
        data: dict[str, Any] = {}

        if ports := os.getenv("PROBE_PORTS"):
            data["probe_ports"] = [int(p) for p in ports.split(",") if p.strip()]
        if timeout := os.getenv("PROBE_TIMEOUT"):
            data["probe_timeout"] = float(timeout)
        if hosts := os.getenv("MAX_CONCURRENT_HOSTS"):
            data["max_concurrent_hosts"] = int(hosts)
        if max_addresses := os.getenv("MAX_ADDRESSES"):
            data["max_addresses"] = int(max_addresses)

        if resolutions := os.getenv("MAX_CONCURRENT_RESOLUTIONS"):
            data["max_concurrent_resolutions"] = int(resolutions)
        if dns_timeout := os.getenv("DNS_TIMEOUT"):
            data["dns_timeout"] = float(dns_timeout)
        if os_timeout := os.getenv("OS_LOOKUP_TIMEOUT"):
            data["os_lookup_timeout"] = float(os_timeout)
        # Any non-empty value disables the OS fallback
        data["enable_os_lookup"] = not os.getenv("NO_OS_LOOKUP")

        data["default_range"] = os.getenv("SCAN_RANGE") or None

        data["api_host"] = os.getenv("API_HOST", "127.0.0.1")
        data["api_port"] = int(os.getenv("API_PORT", "8083"))

        data["log_level"] = os.getenv("LOG_LEVEL", "INFO")
        if log_file := os.getenv("LOG_FILE"):
            data["log_file"] = Path(log_file)

        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path) -> "SweepConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            raw = yaml.safe_load(f) or {}

        data: dict[str, Any] = {}

        if "probe" in raw:
            p = raw["probe"] or {}
            if "ports" in p:
                data["probe_ports"] = p["ports"]
            if "timeout" in p:
                data["probe_timeout"] = p["timeout"]
            if "concurrency" in p:
                data["max_concurrent_hosts"] = p["concurrency"]

        if "resolution" in raw:
            r = raw["resolution"] or {}
            if "concurrency" in r:
                data["max_concurrent_resolutions"] = r["concurrency"]
            if "dns_timeout" in r:
                data["dns_timeout"] = r["dns_timeout"]
            if "os_lookup_timeout" in r:
                data["os_lookup_timeout"] = r["os_lookup_timeout"]
            if "os_lookup" in r:
                data["enable_os_lookup"] = r["os_lookup"]

        if "api" in raw:
            a = raw["api"] or {}
            data["api_host"] = a.get("host", "127.0.0.1")
            data["api_port"] = a.get("port", 8083)

        for key in ("max_addresses", "default_range", "known_devices", "log_level", "log_file"):
            if key in raw:
                data[key] = raw[key]

        return cls(**data)

    def validate_settings(self) -> list[str]:
        """Cross-field checks, returning list of errors."""
        errors = []

        if self.default_range:
            try:
                parse_range(self.default_range, limit=self.max_addresses)
            except InvalidRangeError as e:
                errors.append(f"Invalid default_range: {e.reason}")

        if self.dns_timeout > self.os_lookup_timeout:
            logger.warning(
                f"dns_timeout ({self.dns_timeout}s) is longer than "
                f"os_lookup_timeout ({self.os_lookup_timeout}s)"
            )

        return errors


# Example lan-sweep.yaml:
"""
probe:
  ports: [80, 443, 135]
  timeout: 1.0
  concurrency: 50

resolution:
  concurrency: 2
  dns_timeout: 2.0
  os_lookup_timeout: 10.0
  os_lookup: true

max_addresses: 65536
default_range: "192.168.1.0/24"

known_devices:
  "192.168.1.1": "router"
  "192.168.1.20": "nas"

api:
  host: "127.0.0.1"
  port: 8083

log_level: "INFO"
log_file: "/var/log/lan-sweep.log"
"""
