"""
Fast-start remuxing with FFmpeg.

Phone and camera MP4s usually put the moov atom (the index) at the end of
the file, so a browser has to download everything before playback starts.
Remuxing with `-movflags faststart` moves the index to the front. Streams
are copied (`-c copy`), never re-encoded, so this is quick and lossless.
"""

import logging
from pathlib import Path
from typing import Optional

from ...core.media.errors import RemuxFailed, RemuxUnavailable
from ...core.media.models import StagedFile
from .runner import CommandRunner, ToolLaunchError, ToolTimeout

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = ".processing"


class StreamRemuxer:
    """Rewrites a staged MP4 into a new fast-start staged file."""

    def __init__(
        self,
        runner: CommandRunner,
        ffmpeg_path: str = "ffmpeg",
        timeout_seconds: Optional[float] = 600.0,
    ) -> None:
        self._runner = runner
        self._ffmpeg = ffmpeg_path
        self._timeout = timeout_seconds

    @staticmethod
    def output_path_for(source: StagedFile) -> Path:
        return source.path.with_name(source.path.name + OUTPUT_SUFFIX)

    def build_command(self, source: StagedFile, output_path: Path) -> list[str]:
        return [
            self._ffmpeg,
            "-y",
            "-v", "error",
            "-i", str(source.path),
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            str(output_path),
        ]

    async def remux(self, source: StagedFile) -> StagedFile:
        """
        Remux `source` into a sibling file and return it as a new StagedFile.

        The input is left untouched; the caller still owns and cleans it up.
        On failure any partial output is removed before raising.
        """
        output = StagedFile(path=self.output_path_for(source))

        logger.debug(
            "Remuxing for fast start",
            extra={"input": str(source.path), "output": str(output.path)}
        )

        try:
            result = await self._runner.run(
                self.build_command(source, output.path), timeout=self._timeout
            )
        except ToolLaunchError as e:
            output.discard()
            raise RemuxUnavailable("Couldn't launch ffmpeg", diagnostics=str(e))
        except ToolTimeout as e:
            output.discard()
            raise RemuxFailed(
                "ffmpeg did not finish in time",
                diagnostics=e.stderr or str(e),
            )
        except BaseException:
            output.discard()
            raise

        if not result.succeeded:
            output.discard()
            raise RemuxFailed(
                f"ffmpeg exited with status {result.returncode}",
                diagnostics=result.stderr,
            )

        if not output.exists:
            raise RemuxFailed(
                "ffmpeg reported success but wrote no output",
                diagnostics=result.stderr,
            )

        output.size_bytes = output.path.stat().st_size
        return output
