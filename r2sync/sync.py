from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from functools import partial

from rich.filesize import decimal

from r2sync.config import DEFAULT_CONCURRENCY, SyncTarget
from r2sync.diff import classify, stale_decisions
from r2sync.errors import ConfigError
from r2sync.executor import BoundedExecutor, run_all
from r2sync.filters import ExclusionMatcher, build_exclusion_matcher, normalize_path
from r2sync.inventory import list_remote
from r2sync.models import Upload
from r2sync.scanner import walk_local
from r2sync.storage import StorageClient, guess_content_type
from r2sync.transfer_ui import ProgressFileReader, TransferProgressUI

log = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncOptions:
    source: str
    target: SyncTarget
    delete: bool = False
    dry_run: bool = False
    recursive: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    size_only: bool = False
    exclude_patterns: tuple[str, ...] = ()

    @property
    def matcher(self) -> ExclusionMatcher:
        return build_exclusion_matcher(self.exclude_patterns)

    def validate(self) -> None:
        if self.concurrency < 1:
            raise ConfigError(f"--concurrency must be >= 1, got {self.concurrency}")
        if not self.source:
            raise ConfigError("source path is required")
        if not self.target.bucket:
            raise ConfigError("target bucket is required")


@dataclass(slots=True)
class SyncResult:
    remote_file_count: int = 0
    uploaded_keys: list[str] = field(default_factory=list)
    deleted_keys: list[str] = field(default_factory=list)
    skipped_keys: list[str] = field(default_factory=list)
    failed_uploads: list[str] = field(default_factory=list)
    failed_deletes: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def failure_count(self) -> int:
        return len(self.failed_uploads) + len(self.failed_deletes)

    @property
    def has_failures(self) -> bool:
        return self.failure_count > 0


def _upload_one(
    client: StorageClient,
    options: SyncOptions,
    decision: Upload,
    progress: TransferProgressUI | None = None,
) -> None:
    uri = options.target.uri_for(decision.remote_key)
    if options.dry_run:
        log.info("(dryrun) upload: %s -> %s", decision.local_path, uri)
        return

    log.info("uploading %s -> %s ...", decision.local_path, uri)
    handle = None
    if progress is not None:
        handle = progress.add_transfer(key=decision.remote_key, total_bytes=decision.size)
        progress.start(handle)

    started = time.monotonic()
    try:
        with open(decision.local_path, "rb") as fh:
            size = os.fstat(fh.fileno()).st_size
            body = fh if handle is None else ProgressFileReader(fh, ui=progress, handle=handle)
            client.put_object(
                options.target.bucket,
                decision.remote_key,
                body,
                size,
                guess_content_type(decision.local_path),
            )
    except Exception:
        if handle is not None:
            progress.fail(handle)
        raise

    if handle is not None:
        progress.complete(handle)
    elapsed = max(time.monotonic() - started, 1e-6)
    log.info(
        "upload: %s -> %s, size: %s, average speed: %s/s",
        decision.local_path,
        uri,
        decimal(size),
        decimal(int(size / elapsed)),
    )


def _delete_one(client: StorageClient, options: SyncOptions, key: str) -> None:
    uri = options.target.uri_for(key)
    if options.dry_run:
        log.info("(dryrun) delete: %s", uri)
        return

    log.info("deleting %s ...", uri)
    client.delete_object(options.target.bucket, key)
    log.info("delete: %s", uri)


def run_sync(
    client: StorageClient,
    options: SyncOptions,
    *,
    progress: TransferProgressUI | None = None,
) -> SyncResult:
    """List remote, walk and diff, upload, then delete stale objects.

    RemoteListError and LocalWalkError abort the run. Individual upload or
    delete failures are logged and reported in the result, never raised.
    """
    options.validate()
    target = options.target
    source = normalize_path(options.source)
    result = SyncResult(dry_run=options.dry_run)

    log.info("Getting remote file list: %s ...", target.uri_for(target.prefix))
    inventory = list_remote(client, target.bucket, target.list_prefix)
    result.remote_file_count = len(inventory)

    # The walk feeds the upload pool while it runs; the inventory map is only
    # touched from this thread.
    with BoundedExecutor(options.concurrency, name="upload") as uploads:
        for local in walk_local(source, recursive=options.recursive, matcher=options.matcher):
            decision = classify(
                local,
                inventory,
                remote_prefix=target.prefix,
                size_only=options.size_only,
            )
            if isinstance(decision, Upload):
                uploads.submit(
                    decision.remote_key,
                    partial(_upload_one, client, options, decision, progress),
                )
            else:
                log.debug("skip %s (%s)", decision.remote_key, decision.reason)
                result.skipped_keys.append(decision.remote_key)

    upload_report = uploads.wait()
    result.uploaded_keys = upload_report.succeeded
    result.failed_uploads = upload_report.failed
    log.info("%d files uploaded.", len(upload_report.succeeded))
    if upload_report.failed:
        log.warning("%d uploads failed.", len(upload_report.failed))

    deletes = stale_decisions(inventory, delete_enabled=options.delete)
    if deletes:
        log.info("Starting file deletion...")
        delete_report = run_all(
            (
                (decision.remote_key, partial(_delete_one, client, options, decision.remote_key))
                for decision in deletes
            ),
            concurrency=options.concurrency,
            name="delete",
        )
        result.deleted_keys = delete_report.succeeded
        result.failed_deletes = delete_report.failed
        log.info("%d files deleted.", len(delete_report.succeeded))
        if delete_report.failed:
            log.warning("%d deletes failed.", len(delete_report.failed))

    result.skipped_keys.sort()
    log.info("Sync completed.")
    return result
