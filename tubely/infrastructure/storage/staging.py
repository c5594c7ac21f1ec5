"""
Local staging for in-flight uploads.

ffprobe and ffmpeg want file paths, so an upload is copied to a scratch
file before anything else looks at it. Each staged file belongs to exactly
one pipeline run; the run's cleanup deletes it.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ...core.media.errors import IOFault, SizeExceeded
from ...core.media.models import AsyncReadable, StagedFile

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 * 1024 * 1024  # 1 MiB
FILE_PREFIX = "tubely-upload-"


class StagingStore:
    """Copies upload streams into scratch files under one directory."""

    def __init__(self, staging_dir: Optional[Path] = None) -> None:
        # None means the system temp dir
        self._dir = staging_dir
        if staging_dir is not None:
            staging_dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir if self._dir is not None else Path(tempfile.gettempdir())

    async def stage(
        self,
        source: AsyncReadable,
        max_bytes: int,
        suffix: str = ".mp4",
    ) -> StagedFile:
        """
        Copy `source` byte-for-byte into a new scratch file.

        Raises SizeExceeded once more than `max_bytes` have arrived and
        IOFault if the file can't be written or the source stops mid-read.
        Nothing is left on disk when either is raised.
        """
        try:
            fd, raw_path = tempfile.mkstemp(
                prefix=FILE_PREFIX, suffix=suffix, dir=self._dir
            )
        except OSError as e:
            raise IOFault("Couldn't create temp file", diagnostics=str(e))

        staged = StagedFile(path=Path(raw_path))
        written = 0

        try:
            with os.fdopen(fd, "wb") as sink:
                while True:
                    try:
                        chunk = await source.read(CHUNK_SIZE)
                    except Exception as e:
                        # client disconnects surface here
                        raise IOFault("Failed to read upload stream", diagnostics=str(e)) from e

                    if not chunk:
                        break

                    written += len(chunk)
                    if written > max_bytes:
                        raise SizeExceeded(
                            f"Upload exceeds the {max_bytes} byte limit"
                        )

                    sink.write(chunk)
        except OSError as e:
            staged.discard()
            raise IOFault("Failed to copy file", diagnostics=str(e))
        except BaseException:
            # SizeExceeded, IOFault from the read, or task cancellation
            staged.discard()
            raise

        staged.size_bytes = written

        logger.debug(
            "Staged upload",
            extra={"path": str(staged.path), "size_bytes": written}
        )

        return staged
