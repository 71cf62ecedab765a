from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for every error raised by r2sync."""


class ConfigError(SyncError):
    """Invalid options or target URL, reported before any network activity."""


class RemoteListError(SyncError):
    """Listing the remote prefix failed; the inventory cannot be trusted."""


class LocalWalkError(SyncError):
    """Traversing the local tree failed; the diff cannot be trusted."""


class FingerprintError(SyncError):
    """A single local file could not be hashed."""


class TransportError(SyncError):
    """A put or delete call failed for one object."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(message)
        self.key = key
