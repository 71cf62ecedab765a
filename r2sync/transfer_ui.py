from __future__ import annotations

import io
import threading
from dataclasses import dataclass
from typing import BinaryIO

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)


@dataclass(slots=True)
class TransferHandle:
    task_id: TaskID
    total: int
    key: str


class TransferProgressUI:
    """One Rich progress row per object transfer, safe to drive from worker threads."""

    def __init__(self, console: Console | None = None) -> None:
        self._lock = threading.Lock()
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.fields[action]}"),
            TextColumn("{task.fields[key]}"),
            BarColumn(),
            DownloadColumn(binary_units=True),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            TextColumn("{task.fields[state]}"),
            console=console,
            transient=False,
            expand=True,
        )

    def __enter__(self) -> "TransferProgressUI":
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.__exit__(exc_type, exc, tb)

    def add_transfer(self, *, key: str, total_bytes: int, action: str = "PUT") -> TransferHandle:
        with self._lock:
            task_id = self._progress.add_task(
                description=key,
                total=total_bytes,
                completed=0,
                start=False,
                action=action,
                key=key,
                state="queued",
            )
        return TransferHandle(task_id=task_id, total=total_bytes, key=key)

    def start(self, handle: TransferHandle) -> None:
        with self._lock:
            self._progress.start_task(handle.task_id)
            self._progress.update(handle.task_id, state="uploading")

    def advance(self, handle: TransferHandle, delta: int) -> None:
        with self._lock:
            self._progress.update(handle.task_id, advance=max(0, delta))

    def complete(self, handle: TransferHandle) -> None:
        with self._lock:
            self._progress.update(handle.task_id, completed=handle.total, state="done")

    def fail(self, handle: TransferHandle) -> None:
        with self._lock:
            self._progress.update(handle.task_id, state="[red]failed[/red]")


class ProgressFileReader(io.BufferedIOBase):
    """Binary reader that reports bytes read to a TransferProgressUI.

    Re-reads after a seek (SDK checksum passes, retries) are not counted twice.
    """

    def __init__(self, file_obj: BinaryIO, *, ui: TransferProgressUI, handle: TransferHandle) -> None:
        self._file = file_obj
        self._ui = ui
        self._handle = handle
        self._reported = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return self._file.seekable()

    def read(self, size: int | None = -1) -> bytes:
        data = self._file.read(-1 if size is None else size)
        if data:
            position = min(self._file.tell(), self._handle.total)
            if position > self._reported:
                self._ui.advance(self._handle, position - self._reported)
                self._reported = position
        return data

    def readinto(self, buffer) -> int:
        data = self.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)

    def tell(self) -> int:
        return self._file.tell()

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._file.seek(offset, whence)

    def fileno(self) -> int:
        return self._file.fileno()

    def close(self) -> None:
        self._file.close()
        super().close()
