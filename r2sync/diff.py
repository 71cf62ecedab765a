from __future__ import annotations

import logging
import posixpath
from typing import Callable

from r2sync.errors import FingerprintError
from r2sync.filters import ExclusionMatcher, normalize_path
from r2sync.models import Delete, LocalFileRecord, RemoteObjectRecord, Skip, SyncDecision, Upload
from r2sync.scanner import fingerprint_file, walk_local

log = logging.getLogger(__name__)

Fingerprinter = Callable[[str], str]


def join_key(prefix: str, relative_path: str) -> str:
    """Join a remote prefix and a relative path into a clean object key."""
    joined = posixpath.join(normalize_path(prefix), normalize_path(relative_path))
    return posixpath.normpath(joined).lstrip("/")


def classify(
    local: LocalFileRecord,
    inventory: dict[str, RemoteObjectRecord],
    *,
    remote_prefix: str,
    size_only: bool = False,
    fingerprint: Fingerprinter = fingerprint_file,
) -> SyncDecision:
    """Decide whether *local* needs uploading and claim its key in *inventory*.

    The key is removed from *inventory* whatever the outcome, so whatever
    is left after the walk is exactly the set of stale remote objects.
    Not thread-safe: *inventory* is mutated.
    """
    remote_key = join_key(remote_prefix, local.relative_path)
    remote = inventory.pop(remote_key, None)

    if remote is None:
        return Upload(local_path=local.absolute_path, remote_key=remote_key, size=local.size)

    if local.size != remote.size:
        return Upload(local_path=local.absolute_path, remote_key=remote_key, size=local.size)

    if size_only:
        return Skip(remote_key=remote_key, reason="same size")

    try:
        local_fingerprint = fingerprint(local.absolute_path)
    except FingerprintError as exc:
        log.error("Skipping %s this run: %s", local.absolute_path, exc)
        return Skip(remote_key=remote_key, reason="fingerprint failed")

    if local_fingerprint != remote.fingerprint:
        return Upload(local_path=local.absolute_path, remote_key=remote_key, size=local.size)
    return Skip(remote_key=remote_key, reason="identical")


def stale_decisions(
    inventory: dict[str, RemoteObjectRecord], *, delete_enabled: bool
) -> list[Delete]:
    if not delete_enabled:
        return []
    return [Delete(remote_key=inventory[key].key) for key in sorted(inventory)]


def plan_sync(
    root: str,
    inventory: dict[str, RemoteObjectRecord],
    *,
    remote_prefix: str,
    recursive: bool = True,
    size_only: bool = False,
    delete_enabled: bool = False,
    matcher: ExclusionMatcher | None = None,
    fingerprint: Fingerprinter = fingerprint_file,
) -> list[SyncDecision]:
    """Walk *root* completely and return every decision, deletes last.

    *inventory* is drained by the walk; pass a copy to keep the original.
    """
    decisions: list[SyncDecision] = [
        classify(
            local,
            inventory,
            remote_prefix=remote_prefix,
            size_only=size_only,
            fingerprint=fingerprint,
        )
        for local in walk_local(root, recursive=recursive, matcher=matcher)
    ]
    decisions.extend(stale_decisions(inventory, delete_enabled=delete_enabled))
    return decisions
