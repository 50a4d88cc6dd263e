"""Exception hierarchy for wledpro.

Device-level network failures (``DeviceError`` subclasses) are turned into
``offline`` state by the refresh coordinator and never reach the CLI. Store and
scan failures are raised to the caller.
"""

from __future__ import annotations

from typing import Any


class WledproError(Exception):
    """Base exception for all wledpro errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class NotFound(WledproError):
    """Lookup or delete of an identity the store does not know."""

    def __init__(self, identity: str) -> None:
        super().__init__(f"Device '{identity}' not found", {"identity": identity})
        self.identity = identity


class PersistenceError(WledproError):
    """A durable write failed; in-memory state was left unchanged."""


class StoreCorruptedError(PersistenceError):
    """The device document on disk cannot be read. Raised at startup only."""


class ScanError(WledproError):
    """Network discovery could not run (e.g. no usable interface)."""


class DeviceError(WledproError):
    """A single device could not be refreshed."""


class Unreachable(DeviceError):
    """Connection to the device failed."""


class DeviceTimeout(DeviceError):
    """The device did not answer within the request timeout."""


class ProtocolError(DeviceError):
    """The device answered with something that is not a usable WLED response."""
