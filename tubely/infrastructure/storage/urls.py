"""
Turning stored objects into URLs callers can use.

Two policies, picked once at startup:

- direct: the bucket is public (or fronted by a CDN). The permanent URL is
  stored on the record and handed out as-is.
- signed: the bucket is private. The record stores "bucket,key" and every
  read signs a fresh URL that expires after a fixed window. Signed URLs
  are never written back to the record.

Call sites only ever see UrlPolicy, so the choice lives in configuration.
"""

import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import quote, urlparse

from ...core.media.errors import ConfigInvalid, SigningUnavailable
from ...core.media.models import StoredObjectRef, VideoRecord
from .client import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_SIGNED_URL_EXPIRY = timedelta(minutes=15)


class UrlPolicy:
    """What to persist for an uploaded object, and how to read it back."""

    name = "base"

    def reference_for(self, ref: StoredObjectRef) -> str:
        """Value stored on the record after a successful upload."""
        raise NotImplementedError

    async def resolve(self, stored: str) -> str:
        """Turn a stored value into a URL for one response."""
        raise NotImplementedError

    async def resolve_record(self, record: VideoRecord) -> VideoRecord:
        """
        Copy of `record` with its URL fields resolved for a response.

        The original record is left untouched so a signed URL can't leak
        back into the record store.
        """
        changes = {}
        if record.video_url:
            changes["video_url"] = await self.resolve(record.video_url)
        if record.thumbnail_url:
            changes["thumbnail_url"] = await self.resolve(record.thumbnail_url)
        if not changes:
            return record
        return record.copy(**changes)


class DirectUrlPolicy(UrlPolicy):
    """
    Permanent URLs built from a base address.

    The base may contain a "{bucket}" placeholder
    (https://{bucket}.s3.us-east-1.amazonaws.com); otherwise the bucket is
    appended as the first path segment (https://cdn.example.com/bucket/key).
    """

    name = "direct"

    def __init__(self, base_url: str) -> None:
        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigInvalid(f"Direct URL base must be an absolute http(s) URL: {base_url!r}")
        self._base_url = base_url.rstrip("/")

    def url_for(self, ref: StoredObjectRef) -> str:
        if not ref.bucket:
            raise ConfigInvalid("Bucket name is empty")

        key = quote(ref.key, safe="/")
        if "{bucket}" in self._base_url:
            return f"{self._base_url.replace('{bucket}', ref.bucket)}/{key}"
        return f"{self._base_url}/{ref.bucket}/{key}"

    def reference_for(self, ref: StoredObjectRef) -> str:
        return self.url_for(ref)

    async def resolve(self, stored: str) -> str:
        return stored


class SignedUrlPolicy(UrlPolicy):
    """Stores bucket/key pairs and signs a fresh URL on every read."""

    name = "signed"

    def __init__(
        self,
        object_store: Optional[ObjectStore],
        expiry: timedelta = DEFAULT_SIGNED_URL_EXPIRY,
    ) -> None:
        self._store = object_store
        self._expiry = expiry

    @property
    def expiry(self) -> timedelta:
        return self._expiry

    def reference_for(self, ref: StoredObjectRef) -> str:
        return ref.serialize()

    async def resolve(self, stored: str) -> str:
        if self._store is None:
            raise SigningUnavailable("Object store client is not initialized")

        ref = StoredObjectRef.parse(stored)
        return await self._store.presign_get(
            ref.bucket, ref.key, int(self._expiry.total_seconds())
        )


def create_url_policy(
    policy: str,
    object_store: Optional[ObjectStore] = None,
    direct_base_url: Optional[str] = None,
    signed_expiry_seconds: int = int(DEFAULT_SIGNED_URL_EXPIRY.total_seconds()),
) -> UrlPolicy:
    """
    Build the configured URL policy.

    Args:
        policy: "signed" or "direct"
        object_store: Store used for signing (signed policy only)
        direct_base_url: Base address for permanent URLs (direct policy only)
        signed_expiry_seconds: Lifetime of each signed URL
    """
    if policy == "signed":
        return SignedUrlPolicy(object_store, timedelta(seconds=signed_expiry_seconds))

    if policy == "direct":
        if not direct_base_url:
            raise ConfigInvalid("direct URL policy requires a base URL")
        return DirectUrlPolicy(direct_base_url)

    raise ConfigInvalid(f"Unknown URL policy: {policy!r}")
