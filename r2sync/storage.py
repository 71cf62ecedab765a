"""Object-storage capability surface consumed by the sync core."""

from __future__ import annotations

import logging
import mimetypes
from abc import ABC, abstractmethod
from typing import Any, BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from r2sync.config import StorageSettings
from r2sync.errors import ConfigError, TransportError
from r2sync.models import ListPage, RemoteObjectRecord

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    return content_type or DEFAULT_CONTENT_TYPE


class StorageClient(ABC):
    """Minimal list/put/delete interface over an object-storage bucket."""

    @abstractmethod
    def list_objects(
        self, bucket: str, prefix: str, continuation_token: str | None = None
    ) -> ListPage:
        """Return one page of objects under *prefix*."""

    @abstractmethod
    def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_length: int,
        content_type: str,
    ) -> None:
        """Upload *body* to *key*. Raises TransportError on failure."""

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        """Delete *key*. Raises TransportError on failure."""


class S3StorageClient(StorageClient):
    """S3-compatible client (AWS S3, Cloudflare R2, MinIO) backed by boto3."""

    def __init__(self, settings: StorageSettings, *, client: Any = None) -> None:
        if client is None:
            try:
                client = self._build_client(settings)
            except BotoCoreError as exc:
                raise ConfigError(f"cannot create storage client: {exc}") from exc
        self._client = client

    @staticmethod
    def _build_client(settings: StorageSettings) -> Any:
        kwargs: dict[str, Any] = {
            "config": Config(
                signature_version="s3v4",
                retries={"max_attempts": settings.max_attempts, "mode": "standard"},
            ),
        }
        if settings.region:
            kwargs["region_name"] = settings.region
        if settings.endpoint_url:
            kwargs["endpoint_url"] = settings.endpoint_url
        if settings.access_key_id and settings.secret_access_key:
            kwargs["aws_access_key_id"] = settings.access_key_id
            kwargs["aws_secret_access_key"] = settings.secret_access_key
            if settings.session_token:
                kwargs["aws_session_token"] = settings.session_token
        elif settings.profile:
            session = boto3.Session(profile_name=settings.profile)
            return session.client("s3", **kwargs)

        return boto3.client("s3", **kwargs)

    def list_objects(
        self, bucket: str, prefix: str, continuation_token: str | None = None
    ) -> ListPage:
        request: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        if continuation_token:
            request["ContinuationToken"] = continuation_token

        log.debug("list_objects_v2 bucket=%s prefix=%r token=%s", bucket, prefix, continuation_token)
        response = self._client.list_objects_v2(**request)
        objects = [
            RemoteObjectRecord(
                key=obj["Key"],
                size=int(obj.get("Size", 0)),
                last_modified=obj.get("LastModified"),
                fingerprint=obj.get("ETag", ""),
            )
            for obj in response.get("Contents", [])
        ]
        return ListPage(
            objects=objects,
            is_truncated=bool(response.get("IsTruncated", False)),
            next_token=response.get("NextContinuationToken"),
        )

    def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_length: int,
        content_type: str,
    ) -> None:
        try:
            self._client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentLength=content_length,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise TransportError(key, str(exc)) from exc

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise TransportError(key, str(exc)) from exc
