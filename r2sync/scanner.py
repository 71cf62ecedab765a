from __future__ import annotations

import hashlib
import logging
import os
import posixpath
import stat
from collections.abc import Iterator

from r2sync.errors import FingerprintError, LocalWalkError
from r2sync.filters import ExclusionMatcher, normalize_path
from r2sync.models import LocalFileRecord

log = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024


def fingerprint_file(path: str, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """MD5 of the file content rendered like an S3 single-part ETag (``"<hex>"``)."""
    digest = hashlib.md5()
    try:
        with open(path, "rb") as fh:
            while True:
                chunk = fh.read(chunk_size)
                if not chunk:
                    break
                digest.update(chunk)
    except OSError as exc:
        raise FingerprintError(f"cannot hash {path}: {exc}") from exc
    return f'"{digest.hexdigest()}"'


def normalize_root(root: str) -> str:
    normalized = normalize_path(root)
    if not normalized:
        return "."
    cleaned = posixpath.normpath(normalized)
    # normpath keeps a leading `//`; collapse it like a plain root.
    return "/" if cleaned == "//" else cleaned


def walk_local(
    root: str,
    *,
    recursive: bool = True,
    matcher: ExclusionMatcher | None = None,
) -> Iterator[LocalFileRecord]:
    """Yield the regular files under *root* in name order.

    Excluded directories are pruned, excluded files dropped. When *recursive*
    is false only files directly inside *root* are produced. Any I/O error
    while traversing raises LocalWalkError.
    """
    matcher = matcher or ExclusionMatcher()
    root = normalize_root(root)

    try:
        root_stat = os.stat(root)
    except OSError as exc:
        raise LocalWalkError(f"cannot access source directory {root}: {exc}") from exc
    if not stat.S_ISDIR(root_stat.st_mode):
        raise LocalWalkError(f"source path is not a directory: {root}")

    if matcher.excludes(root):
        log.info("Source directory %s matches an exclude pattern; nothing to sync", root)
        return

    yield from _walk_dir(root, "", recursive=recursive, matcher=matcher)


def _walk_dir(
    dir_path: str,
    rel_dir: str,
    *,
    recursive: bool,
    matcher: ExclusionMatcher,
) -> Iterator[LocalFileRecord]:
    try:
        with os.scandir(dir_path) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        raise LocalWalkError(f"cannot read directory {dir_path}: {exc}") from exc

    for entry in entries:
        full_path = normalize_path(posixpath.join(dir_path, entry.name))
        rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name

        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as exc:
            raise LocalWalkError(f"cannot inspect {full_path}: {exc}") from exc

        if matcher.excludes(full_path):
            if is_dir:
                log.debug("Pruning excluded directory %s", full_path)
            else:
                log.debug("Skipping excluded file %s", full_path)
            continue

        if is_dir:
            if recursive:
                yield from _walk_dir(
                    full_path, rel_path, recursive=recursive, matcher=matcher
                )
            continue

        try:
            st = entry.stat(follow_symlinks=True)
        except FileNotFoundError as exc:
            if entry.is_symlink():
                log.warning("Skipping dangling symlink %s", full_path)
                continue
            raise LocalWalkError(f"file disappeared during walk: {full_path}") from exc
        except OSError as exc:
            raise LocalWalkError(f"cannot stat {full_path}: {exc}") from exc

        if not stat.S_ISREG(st.st_mode):
            log.debug("Skipping non-regular file %s", full_path)
            continue

        yield LocalFileRecord(
            absolute_path=normalize_path(os.path.abspath(full_path)),
            relative_path=rel_path,
            size=st.st_size,
            mod_time=st.st_mtime,
        )
