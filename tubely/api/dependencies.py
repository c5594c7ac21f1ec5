"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden for testing
- Configuration is centralized

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, get_settings
from ..core.media.pipeline import RecordStore, UploadPipeline
from ..infrastructure.records.store import create_record_store
from ..infrastructure.storage.client import ObjectStore, create_object_store
from ..infrastructure.storage.staging import StagingStore
from ..infrastructure.storage.urls import UrlPolicy, create_url_policy
from ..infrastructure.video.prober import MediaProber
from ..infrastructure.video.remuxer import StreamRemuxer
from ..infrastructure.video.runner import CommandRunner, create_command_runner

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Shared instances (in-memory state must persist across requests)
_record_store = None
_mock_object_store = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def get_current_user(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """
    Resolve the bearer token to a user id.

    Tokens come from the API_TOKENS setting. Raises 401 if the token is
    missing or unknown.
    """
    if credentials is None or not credentials.credentials:
        logger.warning("Request missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't find bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = settings.api_tokens_map.get(credentials.credentials)
    if user_id is None:
        logger.warning(
            "Invalid bearer token attempt",
            extra={"token_prefix": credentials.credentials[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Couldn't validate bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_id


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_record_store() -> RecordStore:
    """Provide the process-wide record store."""
    global _record_store

    if _record_store is None:
        _record_store = create_record_store()
    return _record_store


def get_object_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStore:
    """
    Provide object store for uploads and URL signing.

    In mock mode, we reuse the same store across requests so that
    uploaded objects persist during the testing session.
    """
    global _mock_object_store

    if settings.s3_mock_mode:
        if _mock_object_store is None:
            _mock_object_store = create_object_store(
                config=settings.storage_config(), mock_mode=True
            )
            logger.info("Created shared mock object store for session")
        return _mock_object_store

    return create_object_store(config=settings.storage_config())


def get_url_policy(
    settings: Annotated[Settings, Depends(get_settings)],
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
) -> UrlPolicy:
    return create_url_policy(
        settings.url_policy,
        object_store=object_store,
        direct_base_url=settings.direct_url_base,
        signed_expiry_seconds=settings.signed_url_expiry_seconds,
    )


def get_command_runner(
    settings: Annotated[Settings, Depends(get_settings)],
) -> CommandRunner:
    return create_command_runner(mock_mode=settings.media_tools_mock_mode)


def get_upload_pipeline(
    settings: Annotated[Settings, Depends(get_settings)],
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
    url_policy: Annotated[UrlPolicy, Depends(get_url_policy)],
    records: Annotated[RecordStore, Depends(get_record_store)],
    runner: Annotated[CommandRunner, Depends(get_command_runner)],
) -> UploadPipeline:
    """
    Provide an UploadPipeline wired from settings.

    The pipeline holds no per-request state, but it is cheap to build and
    building it per request keeps overrides simple in tests.
    """
    return UploadPipeline(
        config=settings.pipeline_config(),
        stager=StagingStore(settings.staging_dir),
        prober=MediaProber(
            runner,
            ffprobe_path=settings.ffprobe_path,
            timeout_seconds=settings.probe_timeout_seconds,
        ),
        remuxer=StreamRemuxer(
            runner,
            ffmpeg_path=settings.ffmpeg_path,
            timeout_seconds=settings.remux_timeout_seconds,
        ),
        object_store=object_store,
        url_policy=url_policy,
        records=records,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
CurrentUser = Annotated[str, Depends(get_current_user)]
RecordStoreDep = Annotated[RecordStore, Depends(get_record_store)]
UrlPolicyDep = Annotated[UrlPolicy, Depends(get_url_policy)]
UploadPipelineDep = Annotated[UploadPipeline, Depends(get_upload_pipeline)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
