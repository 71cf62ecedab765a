from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field
from typing import Callable, Iterable

from r2sync.errors import ConfigError

log = logging.getLogger(__name__)


@dataclass(slots=True)
class PhaseReport:
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


class BoundedExecutor:
    """Runs labelled jobs with at most ``concurrency`` of them in flight.

    ``submit`` blocks the caller until an admission slot is free. A job that
    raises is logged with its label and recorded as failed; it never cancels
    the other jobs. ``wait`` returns once every submitted job has finished.
    """

    def __init__(self, concurrency: int, *, name: str = "task") -> None:
        if concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {concurrency}")
        self._concurrency = concurrency
        self._name = name
        self._gate = threading.BoundedSemaphore(concurrency)
        self._pool = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix=f"r2sync-{name}")
        self._futures: list[Future[None]] = []
        self._lock = threading.Lock()
        self._report = PhaseReport()

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def __enter__(self) -> "BoundedExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wait()

    def submit(self, label: str, job: Callable[[], object]) -> None:
        self._gate.acquire()
        try:
            future = self._pool.submit(self._run, label, job)
        except BaseException:
            self._gate.release()
            raise
        self._futures.append(future)

    def _run(self, label: str, job: Callable[[], object]) -> None:
        try:
            job()
        except Exception as exc:
            log.error("%s failed %s: %s", self._name, label, exc)
            log.debug("Traceback for %s", label, exc_info=True)
            with self._lock:
                self._report.failed.append(label)
        else:
            with self._lock:
                self._report.succeeded.append(label)
        finally:
            self._gate.release()

    def wait(self) -> PhaseReport:
        wait_futures(self._futures)
        self._pool.shutdown(wait=True)
        with self._lock:
            return PhaseReport(
                succeeded=sorted(self._report.succeeded),
                failed=sorted(self._report.failed),
            )


def run_all(
    jobs: Iterable[tuple[str, Callable[[], object]]],
    *,
    concurrency: int,
    name: str = "task",
) -> PhaseReport:
    executor = BoundedExecutor(concurrency, name=name)
    for label, job in jobs:
        executor.submit(label, job)
    return executor.wait()
