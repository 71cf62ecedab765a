from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union


@dataclass(frozen=True, slots=True)
class RemoteObjectRecord:
    # Key exactly as stored, which may differ from its normalized form.
    key: str
    size: int
    last_modified: datetime | None
    # ETag as returned by the service, quotes included.
    fingerprint: str


@dataclass(slots=True)
class LocalFileRecord:
    absolute_path: str
    relative_path: str
    size: int
    mod_time: float


@dataclass(slots=True)
class ListPage:
    objects: list[RemoteObjectRecord] = field(default_factory=list)
    is_truncated: bool = False
    next_token: str | None = None


@dataclass(frozen=True, slots=True)
class Upload:
    local_path: str
    remote_key: str
    size: int = 0


@dataclass(frozen=True, slots=True)
class Skip:
    remote_key: str
    reason: str


@dataclass(frozen=True, slots=True)
class Delete:
    remote_key: str


SyncDecision = Union[Upload, Skip, Delete]
