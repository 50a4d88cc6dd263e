"""Refresh coordination for the device registry.

The coordinator is the only writer of the device store. It runs on one asyncio
event loop and keeps a map of in-flight refresh tasks keyed by identity. That
map is only touched from synchronous code on the loop, so checking for an
active task and registering a new one cannot interleave with another trigger.
A second request for an identity that is already being refreshed shares the
running task instead of issuing another network call.

Network failures of single devices become ``offline`` state. Store and scan
failures are raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from wledpro.errors import DeviceError, NotFound, PersistenceError, ScanError
from wledpro.models import Device, DeviceStatus, DiscoveredDevice
from wledpro.storage import DeviceStore

from .client import DeviceClient
from .scanner import DiscoveryScanner

logger = logging.getLogger(__name__)

DEFAULT_MAX_IN_FLIGHT = 8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventKind(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class RegistryEvent:
    kind: EventKind
    identity: str


RegistryListener = Callable[[RegistryEvent], None]


@dataclass
class RefreshOutcome:
    """Result of one refresh request for one identity."""

    identity: str
    status: DeviceStatus
    coalesced: bool = False
    error: str | None = None
    persistence_error: PersistenceError | None = None
    dropped: bool = False

    @property
    def ok(self) -> bool:
        return (
            self.status is DeviceStatus.ONLINE
            and self.persistence_error is None
            and not self.dropped
        )


@dataclass
class ScanReport:
    discovered: list[DiscoveredDevice] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    outcomes: dict[str, RefreshOutcome] = field(default_factory=dict)


class RefreshCoordinator:
    def __init__(
        self,
        store: DeviceStore,
        client: DeviceClient,
        scanner: DiscoveryScanner | None = None,
        *,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self._store = store
        self._client = client
        self._scanner = scanner
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._in_flight: dict[str, asyncio.Task[RefreshOutcome]] = {}
        self._listeners: list[RegistryListener] = []

    @property
    def store(self) -> DeviceStore:
        return self._store

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    # Change notification

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        """Register ``listener`` for registry changes; returns an unsubscribe."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, kind: EventKind, identity: str) -> None:
        event = RegistryEvent(kind, identity)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Registry listener failed on %s", event)

    def status(self, identity: str) -> DeviceStatus:
        """Stored reachability, or ``refreshing`` while a task is active."""
        device = self._store.get(identity)
        if device is None:
            raise NotFound(identity)
        if identity in self._in_flight:
            return DeviceStatus.REFRESHING
        return device.status

    # Refresh triggers

    async def refresh_devices(
        self, identities: Iterable[str]
    ) -> dict[str, RefreshOutcome]:
        """Refresh exactly ``identities`` and wait for every one of them.

        Used for pull-to-refresh. Identities the store does not know get an
        ``unknown`` outcome with an error message.
        """
        outcomes: dict[str, RefreshOutcome] = {}
        started: dict[str, tuple[asyncio.Task[RefreshOutcome], bool]] = {}

        for identity in dict.fromkeys(identities):
            if self._store.get(identity) is None:
                outcomes[identity] = RefreshOutcome(
                    identity, DeviceStatus.UNKNOWN, error=str(NotFound(identity))
                )
                continue
            started[identity] = self._start(identity)

        # shielded: a cancelled caller must not cancel the shared tasks
        results = await asyncio.gather(
            *(asyncio.shield(task) for task, _ in started.values())
        )
        for (identity, (_, coalesced)), outcome in zip(started.items(), results):
            if coalesced:
                outcome = replace(outcome, coalesced=True)
            outcomes[identity] = outcome
        return outcomes

    async def refresh_all(self) -> dict[str, RefreshOutcome]:
        identities = [device.identity for device in self._store.list()]
        return await self.refresh_devices(identities)

    def trigger_periodic_refresh(self) -> list[asyncio.Task[RefreshOutcome]]:
        """Start refreshes for every known device and return immediately.

        Only newly started tasks are returned; devices that are already being
        refreshed are skipped.
        """
        tasks = []
        for device in self._store.list():
            task, coalesced = self._start(device.identity)
            if not coalesced:
                tasks.append(task)
        logger.debug("Periodic refresh started %d task(s)", len(tasks))
        return tasks

    async def scan_and_refresh(self) -> ScanReport:
        """Discover devices, merge them, then refresh known and discovered ones.

        All discovery results are merged before the first refresh starts. A
        ``ScanError`` leaves the store untouched.
        """
        report = await self.scan_only()
        identities = [device.identity for device in self._store.list()]
        identities.extend(found.identity for found in report.discovered)
        report.outcomes = await self.refresh_devices(identities)
        return report

    async def scan_only(self) -> ScanReport:
        """Discover devices and merge them without refreshing anything."""
        if self._scanner is None:
            raise ScanError("No discovery scanner configured")

        report = ScanReport()
        try:
            async for found in self._scanner.scan():
                report.discovered.append(found)
        except OSError as exc:
            raise ScanError("Discovery failed", {"error": str(exc)}) from exc

        for found in report.discovered:
            if await self._merge_discovered(found):
                report.added.append(found.identity)
        logger.info(
            "Discovery found %d device(s), %d new",
            len(report.discovered),
            len(report.added),
        )
        return report

    async def wait_idle(self) -> None:
        """Wait until no refresh task is in flight."""
        while self._in_flight:
            pending = list(self._in_flight.values())
            await asyncio.gather(*pending, return_exceptions=True)

    # User actions

    async def add_device(self, address: str) -> Device:
        """Contact ``address`` and register whatever device answers there.

        Client errors are raised: the user asked for this specific address.
        """
        report = await self._client.fetch(address)
        existing = self._store.get(report.identity)
        fields: dict[str, Any] = {
            "address": address,
            "status": DeviceStatus.ONLINE,
            "last_refresh": self._clock(),
            "attributes": report.attributes,
        }
        if existing is None or not existing.custom_name:
            fields["name"] = report.name or address
        device = await asyncio.to_thread(self._store.upsert, report.identity, **fields)
        kind = EventKind.ADDED if existing is None else EventKind.UPDATED
        self._notify(kind, device.identity)
        logger.info(
            "Added %s (%s) at %s", device.display_name, device.identity, address
        )
        return device

    async def delete_device(self, identity: str) -> None:
        await asyncio.to_thread(self._store.delete, identity)
        self._notify(EventKind.REMOVED, identity)
        logger.info("Deleted device %s", identity)

    async def set_hidden(self, identity: str, hidden: bool) -> Device:
        device = await asyncio.to_thread(self._store.update, identity, hidden=hidden)
        self._notify(EventKind.UPDATED, identity)
        return device

    async def rename_device(self, identity: str, name: str | None) -> Device:
        """Set a user-chosen name; ``None`` goes back to the device-reported one."""
        if name is None:
            fields: dict[str, Any] = {"custom_name": False}
        else:
            fields = {"name": name, "custom_name": True}
        device = await asyncio.to_thread(self._store.update, identity, **fields)
        self._notify(EventKind.UPDATED, identity)
        return device

    # Internals

    def _start(self, identity: str) -> tuple[asyncio.Task[RefreshOutcome], bool]:
        task = self._in_flight.get(identity)
        if task is not None:
            logger.debug("Refresh of %s already in flight", identity)
            return task, True

        task = asyncio.create_task(
            self._run_refresh(identity), name=f"refresh-{identity}"
        )
        self._in_flight[identity] = task
        task.add_done_callback(lambda done: self._finished(identity, done))
        return task, False

    def _finished(self, identity: str, task: asyncio.Task[RefreshOutcome]) -> None:
        if self._in_flight.get(identity) is task:
            del self._in_flight[identity]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Refresh of %s crashed", identity, exc_info=task.exception())

    async def _run_refresh(self, identity: str) -> RefreshOutcome:
        async with self._semaphore:
            device = self._store.get(identity)
            if device is None:
                return RefreshOutcome(
                    identity,
                    DeviceStatus.UNKNOWN,
                    error=str(NotFound(identity)),
                    dropped=True,
                )
            try:
                report = await self._client.refresh(device)
            except DeviceError as exc:
                logger.info(
                    "Refresh of %s at %s failed: %s", identity, device.address, exc
                )
                return await self._apply(
                    identity,
                    DeviceStatus.OFFLINE,
                    {"status": DeviceStatus.OFFLINE},
                    str(exc),
                )

        fields: dict[str, Any] = {
            "status": DeviceStatus.ONLINE,
            "last_refresh": self._clock(),
            "attributes": report.attributes,
        }
        current = self._store.get(identity)
        if report.name and current is not None and not current.custom_name:
            fields["name"] = report.name
        return await self._apply(identity, DeviceStatus.ONLINE, fields)

    async def _apply(
        self,
        identity: str,
        status: DeviceStatus,
        fields: dict[str, Any],
        error: str | None = None,
    ) -> RefreshOutcome:
        try:
            await asyncio.to_thread(self._store.update, identity, **fields)
        except NotFound:
            logger.debug("Dropping refresh result for deleted device %s", identity)
            return RefreshOutcome(identity, status, error=error, dropped=True)
        except PersistenceError as exc:
            logger.error("Could not save refresh result for %s: %s", identity, exc)
            return RefreshOutcome(identity, status, error=error, persistence_error=exc)

        self._notify(EventKind.UPDATED, identity)
        return RefreshOutcome(identity, status, error=error)

    async def _merge_discovered(self, found: DiscoveredDevice) -> bool:
        """Upsert a discovery result; returns True for a new identity."""
        existing = self._store.get(found.identity)
        fields: dict[str, Any] = {"address": found.address}
        if existing is None or (not existing.custom_name and not existing.name):
            fields["name"] = found.name
        device = await asyncio.to_thread(self._store.upsert, found.identity, **fields)
        if existing is None:
            self._notify(EventKind.ADDED, found.identity)
            return True
        if device != existing:
            self._notify(EventKind.UPDATED, found.identity)
        return False
