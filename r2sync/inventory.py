from __future__ import annotations

import logging

from r2sync.errors import RemoteListError
from r2sync.filters import normalize_path
from r2sync.models import RemoteObjectRecord
from r2sync.storage import StorageClient

log = logging.getLogger(__name__)


def list_remote(client: StorageClient, bucket: str, prefix: str) -> dict[str, RemoteObjectRecord]:
    """Collect every object under *prefix*, following pagination to the end.

    Any failure on any page raises RemoteListError; a partial inventory would
    turn unseen keys into spurious deletes.
    """
    inventory: dict[str, RemoteObjectRecord] = {}
    token: str | None = None
    pages = 0

    while True:
        try:
            page = client.list_objects(bucket, prefix, token)
        except Exception as exc:
            raise RemoteListError(
                f"failed to get remote file list for {bucket}/{prefix}: {exc}"
            ) from exc
        pages += 1

        # Indexed by normalized key; the record keeps the key as stored so
        # deletes address the real object.
        for record in page.objects:
            inventory[normalize_path(record.key)] = record

        if not page.is_truncated:
            break
        if not page.next_token:
            raise RemoteListError(
                f"listing of {bucket}/{prefix} was truncated without a continuation token"
            )
        token = page.next_token

    log.debug("Listed %d remote object(s) in %d page(s)", len(inventory), pages)
    return inventory
