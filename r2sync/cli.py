from __future__ import annotations

import logging
import sys

import typer
from rich.console import Console

from r2sync.config import StorageSettings, parse_target
from r2sync.errors import ConfigError, LocalWalkError, RemoteListError
from r2sync.filters import normalize_path
from r2sync.logging_setup import setup_logging
from r2sync.storage import S3StorageClient
from r2sync.sync import SyncOptions, SyncResult, run_sync
from r2sync.transfer_ui import TransferProgressUI


EXAMPLES = """\
Examples:

    r2sync /local/dir r2://bucket/path/

    r2sync --delete --dryrun /local/dir r2://bucket/path/

    r2sync --recursive --delete --dryrun --concurrency 10 /local/dir r2://bucket/path/

    r2sync --exclude '*.tmp' --exclude 'logs' --recursive /local/dir s3://bucket/path/
"""

app = typer.Typer(
    help="One-way sync of a local directory to an S3-compatible bucket prefix.",
    add_completion=False,
)
console = Console()

# Exit status typer uses for bad arguments or options.
USAGE_ERROR_EXIT_CODE = 2


def _render_summary(result: SyncResult) -> None:
    prefix = "(dryrun) " if result.dry_run else ""
    console.print(
        f"{prefix}Uploaded: {len(result.uploaded_keys)} | Deleted: {len(result.deleted_keys)} "
        f"| Skipped unchanged: {len(result.skipped_keys)} | Remote files: {result.remote_file_count}"
    )
    if result.has_failures:
        console.print(
            f"[yellow]{result.failure_count} operation(s) failed; see the log above.[/yellow]"
        )


def _sync(
    source: str,
    target_url: str,
    *,
    dry_run: bool,
    delete: bool,
    recursive: bool,
    concurrency: int,
    size_only: bool,
    exclude: tuple[str, ...],
) -> int:
    try:
        target = parse_target(target_url)
        options = SyncOptions(
            source=normalize_path(source),
            target=target,
            delete=delete,
            dry_run=dry_run,
            recursive=recursive,
            concurrency=concurrency,
            size_only=size_only,
            exclude_patterns=exclude,
        )
        options.validate()
        client = S3StorageClient(StorageSettings.from_env(target.scheme))
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1

    show_progress = console.is_terminal and not dry_run
    try:
        if show_progress:
            with TransferProgressUI(console=console) as progress:
                result = run_sync(client, options, progress=progress)
        else:
            result = run_sync(client, options)
    except KeyboardInterrupt:
        console.print("[yellow]Sync interrupted.[/yellow] Remote prefix may be partially synced.")
        return 130
    except (RemoteListError, LocalWalkError, ConfigError) as exc:
        console.print(f"[red]Sync failed:[/red] {exc}")
        return 1

    _render_summary(result)
    return 0


@app.command(epilog=EXAMPLES)
def sync(
    source: str = typer.Argument(..., help="Local directory to upload from."),
    target: str = typer.Argument(..., help="Destination as scheme://bucket/prefix (s3 or r2)."),
    dry_run: bool = typer.Option(
        False,
        "--dryrun",
        help="Only display the operations to be performed, without executing them.",
    ),
    delete: bool = typer.Option(
        False,
        "--delete",
        help="Delete files that exist in the target but not in the source.",
    ),
    recursive: bool = typer.Option(
        False,
        "--recursive",
        help="Recursively synchronize subdirectories.",
    ),
    concurrency: int = typer.Option(
        5,
        "--concurrency",
        help="Number of concurrent upload/delete operations.",
    ),
    size_only: bool = typer.Option(
        False,
        "--size-only",
        help="Only use file size to decide whether files are the same.",
    ),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        help="Exclude file or directory glob pattern (repeatable).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Make TARGET match SOURCE: upload new or changed files, optionally delete stale ones."""
    setup_logging(
        logging.DEBUG if verbose else logging.INFO,
        console=console,
        quiet_third_party=not verbose,
    )
    raise typer.Exit(
        code=_sync(
            source,
            target,
            dry_run=dry_run,
            delete=delete,
            recursive=recursive,
            concurrency=concurrency,
            size_only=size_only,
            exclude=tuple(exclude or ()),
        )
    )


def main() -> None:
    try:
        app()
    except SystemExit as exc:
        # Usage errors exit with 1, like every other fatal error.
        if exc.code == USAGE_ERROR_EXIT_CODE:
            sys.exit(1)
        raise


if __name__ == "__main__":
    main()
