"""
Scan engine - orchestrates range parsing, probing and resolution.

One scan (a ScanTask) is current at a time. A fixed-size pool of worker
coroutines pulls addresses from the task's queue, probes them, resolves
names for live hosts and emits events as results arrive.

Cancellation is cooperative: it flips the task's active flag, which
workers check before taking the next address and before committing a
result. In-flight probes finish naturally and their results are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

from ._types import (
    HostStatus,
    ProbeOutcome,
    ScanEvent,
    ScanEventType,
    ScanState,
)
from .config import SweepConfig
from .probe import PortProbe
from .ranges import InvalidRangeError, parse_range
from .registry import DeviceRegistry
from .resolver import HostnameResolver

logger = logging.getLogger(__name__)

EventListener = Callable[[ScanEvent], None]


@dataclass
class ScanTask:
    """State of one scan execution."""
    addresses: tuple[str, ...]
    scan_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    pending: deque[str] = field(default_factory=deque)
    results: list[ProbeOutcome] = field(default_factory=list)
    active: bool = True

    def __post_init__(self) -> None:
        if not self.pending:
            self.pending.extend(self.addresses)


class ScanEngine:
    """
    Host discovery engine.

    Emits ``start``, ``initiate``, ``result``, ``complete`` and ``error``
    events to registered listeners.
    """

    def __init__(
        self,
        config: Optional[SweepConfig] = None,
        probe: Optional[PortProbe] = None,
        resolver: Optional[HostnameResolver] = None,
        registry: Optional[DeviceRegistry] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (defaults if None)
            probe: Port probe (built from config if None)
            resolver: Hostname resolver (built from config if None)
            registry: Known-device registry queried while scanning
        """
        self.config = config or SweepConfig()
        self.probe = probe or PortProbe(
            ports=self.config.probe_ports,
            timeout=self.config.probe_timeout,
        )
        self.resolver = resolver or HostnameResolver(
            max_concurrent=self.config.max_concurrent_resolutions,
            dns_timeout=self.config.dns_timeout,
            os_lookup_timeout=self.config.os_lookup_timeout,
            enable_os_lookup=self.config.enable_os_lookup,
        )
        self.registry = registry

        self._task: Optional[ScanTask] = None
        self._state = ScanState.IDLE
        self._listeners: list[EventListener] = []

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def is_scanning(self) -> bool:
        return self._state == ScanState.RUNNING

    @property
    def current_task(self) -> Optional[ScanTask]:
        return self._task

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def cancel(self) -> None:
        """Stop dispatching new addresses and drop pending results."""
        task = self._task
        if task is None or not task.active:
            return

        logger.info(f"Cancelling scan {task.scan_id} ({len(task.pending)} addresses not dispatched)")
        task.active = False
        self._state = ScanState.CANCELLING

    async def start_scan(
        self,
        expression: Optional[str],
        end: Optional[str] = None,
    ) -> list[ProbeOutcome]:
        """
        Scan a range, superseding any scan already running.

        Args:
            expression: Range expression, or start address when ``end``
                is given
            end: End address for the two-argument form

        Returns:
            Outcomes committed before the scan completed or was cancelled
        """
        if self._task is not None and self._task.active:
            logger.info(f"New scan requested, superseding scan {self._task.scan_id}")
            self.cancel()

        try:
            addresses = parse_range(expression, end, limit=self.config.max_addresses)
        except InvalidRangeError as e:
            logger.warning(f"Range error: {e.reason}")
            self._emit_error(str(e))
            return []
        except Exception as e:
            logger.exception(f"Unexpected error parsing range {expression!r}")
            self._emit_error(str(e) or type(e).__name__)
            return []

        task = ScanTask(addresses=tuple(addresses))
        self._task = task
        self._state = ScanState.RUNNING

        return await self._run(task)

    async def _run(self, task: ScanTask) -> list[ProbeOutcome]:
        total = len(task.addresses)
        workers = min(self.config.max_concurrent_hosts, total)
        logger.info(f"Starting scan {task.scan_id}: {total} addresses, {workers} workers")

        self._emit(ScanEvent(
            type=ScanEventType.START,
            scan_id=task.scan_id,
            total=total,
            addresses=task.addresses,
        ))

        try:
            outcomes = await asyncio.gather(
                *(self._worker(task) for _ in range(workers)),
                return_exceptions=True,
            )
        finally:
            task.active = False
            if self._task is task:
                self._state = ScanState.IDLE

        failures = [o for o in outcomes if isinstance(o, BaseException)]
        if failures:
            error = failures[0]
            logger.error(f"Scan {task.scan_id} failed: {error!r}", exc_info=error)
            self._emit(ScanEvent(
                type=ScanEventType.ERROR,
                scan_id=task.scan_id,
                message=str(error) or type(error).__name__,
            ))
            return list(task.results)

        active = sum(1 for r in task.results if r.is_active)
        logger.info(
            f"Scan {task.scan_id} complete: {len(task.results)}/{total} scanned, "
            f"{active} active"
        )
        self._emit(ScanEvent(
            type=ScanEventType.COMPLETE,
            scan_id=task.scan_id,
            results=tuple(task.results),
        ))
        return list(task.results)

    async def _worker(self, task: ScanTask) -> None:
        try:
            while task.active and task.pending:
                address = task.pending.popleft()

                self._emit(ScanEvent(
                    type=ScanEventType.INITIATE,
                    scan_id=task.scan_id,
                    address=address,
                    is_known=self._is_known(address),
                ))

                outcome = await self._scan_address(address)

                if not task.active:
                    logger.debug(f"Discarding result for {address}: scan {task.scan_id} cancelled")
                    break

                task.results.append(outcome)
                is_known = self._is_known(address)
                if is_known:
                    self._sync_hostname(outcome)

                self._emit(ScanEvent(
                    type=ScanEventType.RESULT,
                    scan_id=task.scan_id,
                    outcome=outcome,
                    is_known=is_known,
                ))
        except Exception:
            # Stop the other workers; _run reports the failure
            task.active = False
            raise

    async def _scan_address(self, address: str) -> ProbeOutcome:
        status = await self.probe.check_host(address)
        if status != HostStatus.ACTIVE:
            return ProbeOutcome(address=address, status=HostStatus.INACTIVE)

        hostname = await self.resolver.resolve(address)
        return ProbeOutcome(address=address, status=HostStatus.ACTIVE, hostname=hostname)

    def _is_known(self, address: str) -> bool:
        if self.registry is None:
            return False
        try:
            return bool(self.registry.is_known(address))
        except Exception as e:
            logger.error(f"Registry lookup failed for {address}: {e}")
            return False

    def _sync_hostname(self, outcome: ProbeOutcome) -> None:
        """Tell the registry about a changed hostname for a known address."""
        if not outcome.hostname or self.registry is None:
            return
        try:
            if self.registry.get_hostname(outcome.address) != outcome.hostname:
                self.registry.update_hostname(outcome.address, outcome.hostname)
        except Exception as e:
            logger.error(f"Registry hostname update failed for {outcome.address}: {e}")

    def _emit_error(self, message: str) -> None:
        """Report a scan that never started; it gets its own scan id."""
        self._emit(ScanEvent(
            type=ScanEventType.ERROR,
            scan_id=str(uuid.uuid4()),
            message=message,
        ))

    def _emit(self, event: ScanEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener failed on {event.type.value}: {e}")
