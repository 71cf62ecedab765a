from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import urlparse

from r2sync.errors import ConfigError
from r2sync.filters import normalize_path


SUPPORTED_SCHEMES = {"s3", "r2"}
DEFAULT_CONCURRENCY = 5
DEFAULT_MAX_ATTEMPTS = 3
R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"


@dataclass(frozen=True, slots=True)
class SyncTarget:
    scheme: str
    bucket: str
    prefix: str

    @property
    def list_prefix(self) -> str:
        # `data` must not pull `database/...` into the inventory.
        if self.prefix and not self.prefix.endswith("/"):
            return f"{self.prefix}/"
        return self.prefix

    def uri_for(self, key: str) -> str:
        return f"{self.scheme}://{self.bucket}/{key}"


def parse_target(url: str) -> SyncTarget:
    """Parse ``scheme://bucket/prefix`` into its parts."""
    value = normalize_path((url or "").strip())
    if "://" not in value:
        raise ConfigError(f"Invalid target path: {url!r} (expected scheme://bucket/prefix)")

    try:
        parsed = urlparse(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid target path: {url!r}: {exc}") from exc

    scheme = parsed.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        supported = ", ".join(sorted(SUPPORTED_SCHEMES))
        raise ConfigError(f"Unsupported target scheme {parsed.scheme!r}. Supported: {supported}")
    if not parsed.netloc:
        raise ConfigError(f"Invalid target path: {url!r} (missing bucket name)")

    return SyncTarget(scheme=scheme, bucket=parsed.netloc, prefix=parsed.path.lstrip("/"))


@dataclass(slots=True)
class StorageSettings:
    """Explicit client configuration handed to the storage client constructor."""

    region: str | None = None
    endpoint_url: str | None = None
    profile: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    session_token: str | None = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    @classmethod
    def from_env(cls, scheme: str = "s3") -> "StorageSettings":
        endpoint_url = (
            _env("R2SYNC_ENDPOINT_URL")
            or _env("AWS_ENDPOINT_URL_S3")
            or _env("AWS_ENDPOINT_URL")
        )
        region = _env("AWS_REGION") or _env("AWS_DEFAULT_REGION")

        if scheme == "r2":
            account_id = _env("R2_ACCOUNT_ID") or _env("CLOUDFLARE_ACCOUNT_ID")
            if not endpoint_url and account_id:
                endpoint_url = R2_ENDPOINT_TEMPLATE.format(account_id=account_id)
            region = region or "auto"

        raw_attempts = _env("R2SYNC_MAX_ATTEMPTS")
        try:
            max_attempts = int(raw_attempts) if raw_attempts else DEFAULT_MAX_ATTEMPTS
        except ValueError as exc:
            raise ConfigError(f"R2SYNC_MAX_ATTEMPTS must be an integer, got {raw_attempts!r}") from exc
        if max_attempts < 1:
            raise ConfigError("R2SYNC_MAX_ATTEMPTS must be >= 1")

        return cls(
            region=region,
            endpoint_url=endpoint_url,
            profile=_env("AWS_PROFILE"),
            access_key_id=_env("AWS_ACCESS_KEY_ID"),
            secret_access_key=_env("AWS_SECRET_ACCESS_KEY"),
            session_token=_env("AWS_SESSION_TOKEN"),
            max_attempts=max_attempts,
        )


def _env(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None
