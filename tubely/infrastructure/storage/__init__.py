"""
Storage integrations for uploads.

- staging: local scratch files for in-flight uploads
- client: S3-compatible object storage (with in-memory mock mode)
- urls: direct vs signed URL policies for stored objects
"""

from .client import (
    MockObjectStore,
    ObjectStore,
    S3ObjectStore,
    StorageConfig,
    create_object_store,
)
from .staging import StagingStore
from .urls import DirectUrlPolicy, SignedUrlPolicy, UrlPolicy, create_url_policy

__all__ = [
    "DirectUrlPolicy",
    "MockObjectStore",
    "ObjectStore",
    "S3ObjectStore",
    "SignedUrlPolicy",
    "StagingStore",
    "StorageConfig",
    "UrlPolicy",
    "create_object_store",
    "create_url_policy",
]
