"""
Settings for the upload service.

Values come from the environment (or .env). S3 and the FFmpeg tools can
each be swapped for in-process fakes with S3_MOCK_MODE and
MEDIA_TOOLS_MOCK_MODE.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
