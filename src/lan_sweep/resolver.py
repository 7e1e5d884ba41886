"""
Hostname resolution for live hosts.

Names are looked up through a cascade, first success wins:

1. Reverse DNS (PTR query) with a short timeout
2. OS name service lookup (getnameinfo), which also reaches resolvers
   such as NetBIOS, LLMNR, mDNS and the hosts file; can be disabled
3. No name

Resolution is comparatively expensive and can trigger broadcast name
queries, so the number of lookups in flight is capped independently of
port probing.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Optional

import aiodns

from ._types import (
    DEFAULT_DNS_TIMEOUT,
    DEFAULT_MAX_CONCURRENT_RESOLUTIONS,
    DEFAULT_OS_LOOKUP_TIMEOUT,
)

logger = logging.getLogger(__name__)


class HostnameResolver:
    """Resolve display names for addresses under a global concurrency cap."""

    def __init__(
        self,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_RESOLUTIONS,
        dns_timeout: float = DEFAULT_DNS_TIMEOUT,
        os_lookup_timeout: float = DEFAULT_OS_LOOKUP_TIMEOUT,
        enable_os_lookup: bool = True,
    ):
        """
        Initialize the resolver.

        Args:
            max_concurrent: Maximum resolutions running at once; further
                callers wait in arrival order
            dns_timeout: Timeout for the reverse DNS stage in seconds
            os_lookup_timeout: Timeout for the OS lookup stage in seconds
            enable_os_lookup: Whether to fall back to the OS name service
        """
        self.max_concurrent = max_concurrent
        self.dns_timeout = dns_timeout
        self.os_lookup_timeout = os_lookup_timeout
        self.enable_os_lookup = enable_os_lookup

        # asyncio.Semaphore wakes waiters FIFO
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._dns: Optional[aiodns.DNSResolver] = None

        self.in_flight = 0
        self.peak_in_flight = 0

    async def resolve(self, address: str) -> Optional[str]:
        """Resolve a hostname for ``address``. Never raises."""
        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                hostname = await self._reverse_dns(address)
                if hostname:
                    return hostname

                if self.enable_os_lookup:
                    return await self._os_lookup(address)

                return None
            except Exception as e:
                logger.debug(f"Hostname resolution failed for {address}: {e}")
                return None
            finally:
                self.in_flight -= 1

    def _get_dns(self) -> aiodns.DNSResolver:
        if self._dns is None:
            self._dns = aiodns.DNSResolver(timeout=self.dns_timeout, tries=1)
        return self._dns

    async def _reverse_dns(self, address: str) -> Optional[str]:
        """PTR lookup, first name returned."""
        try:
            result = await asyncio.wait_for(
                self._get_dns().gethostbyaddr(address),
                timeout=self.dns_timeout,
            )
        except asyncio.TimeoutError:
            logger.debug(f"Reverse DNS timed out for {address}")
            return None
        except Exception as e:
            logger.debug(f"Reverse DNS failed for {address}: {e}")
            return None

        name = getattr(result, "name", None)
        if name:
            return name
        aliases = getattr(result, "aliases", None) or []
        return aliases[0] if aliases else None

    async def _os_lookup(self, address: str) -> Optional[str]:
        """OS name service lookup (the ``ping -a`` equivalent)."""
        loop = asyncio.get_running_loop()
        try:
            # Port is required by getnameinfo but irrelevant here
            host, _ = await asyncio.wait_for(
                loop.getnameinfo((address, 80), socket.NI_NAMEREQD),
                timeout=self.os_lookup_timeout,
            )
        except asyncio.TimeoutError:
            logger.debug(f"OS name lookup timed out for {address}")
            return None
        except Exception as e:
            logger.debug(f"OS name lookup failed for {address}: {e}")
            return None

        if not host or host == address:
            return None
        return host
