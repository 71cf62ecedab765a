from __future__ import annotations

import hashlib
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from r2sync.errors import TransportError
from r2sync.models import ListPage, RemoteObjectRecord
from r2sync.storage import StorageClient


def etag_for(content: bytes) -> str:
    return f'"{hashlib.md5(content).hexdigest()}"'


class FakeStorageClient(StorageClient):
    """In-memory bucket with paged listing and recorded mutations."""

    def __init__(self, page_size: int = 1000) -> None:
        self.page_size = page_size
        self.objects: dict[tuple[str, str], RemoteObjectRecord] = {}
        self.list_calls: list[tuple[str, str, str | None]] = []
        self.put_calls: list[dict] = []
        self.delete_calls: list[tuple[str, str]] = []
        self.fail_puts: set[str] = set()
        self.fail_deletes: set[str] = set()
        self.list_error: Exception | None = None
        self._lock = threading.Lock()

    def add(self, bucket: str, key: str, content: bytes) -> RemoteObjectRecord:
        record = RemoteObjectRecord(
            key=key,
            size=len(content),
            last_modified=datetime(2024, 1, 1, tzinfo=timezone.utc),
            fingerprint=etag_for(content),
        )
        self.objects[(bucket, key)] = record
        return record

    def list_objects(self, bucket, prefix, continuation_token=None) -> ListPage:
        self.list_calls.append((bucket, prefix, continuation_token))
        if self.list_error is not None:
            raise self.list_error
        keys = sorted(
            key for (b, key) in self.objects if b == bucket and key.startswith(prefix)
        )
        start = int(continuation_token) if continuation_token else 0
        chunk = keys[start : start + self.page_size]
        truncated = start + self.page_size < len(keys)
        return ListPage(
            objects=[self.objects[(bucket, key)] for key in chunk],
            is_truncated=truncated,
            next_token=str(start + self.page_size) if truncated else None,
        )

    def put_object(self, bucket, key, body, content_length, content_type) -> None:
        if key in self.fail_puts:
            raise TransportError(key, "simulated put failure")
        data = body.read()
        with self._lock:
            self.put_calls.append(
                {
                    "bucket": bucket,
                    "key": key,
                    "data": data,
                    "content_length": content_length,
                    "content_type": content_type,
                }
            )
            self.add(bucket, key, data)

    def delete_object(self, bucket, key) -> None:
        if key in self.fail_deletes:
            raise TransportError(key, "simulated delete failure")
        with self._lock:
            self.delete_calls.append((bucket, key))
            self.objects.pop((bucket, key), None)

    @property
    def put_keys(self) -> list[str]:
        return sorted(call["key"] for call in self.put_calls)


@pytest.fixture
def fake_client() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def make_tree(tmp_path: Path):
    """Create files under a fresh ``src`` directory from a {relative: content} mapping."""

    def _make(files: dict[str, bytes | str]) -> Path:
        root = tmp_path / "src"
        root.mkdir(exist_ok=True)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                content = content.encode("utf-8")
            path.write_bytes(content)
        return root

    return _make
