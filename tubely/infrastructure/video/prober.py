"""
Video dimension probing with FFprobe.

FFprobe prints a JSON description of the file's streams; we only need the
pixel dimensions, which decide the orientation category. The exit code
alone is not trusted: ffprobe happily exits 0 with empty output for some
inputs, and that still means we learned nothing about the video.
"""

import json
import logging
from typing import Any, Optional

from ...core.media.errors import (
    NoStreamData,
    ProbeFailed,
    ProbeOutputMalformed,
    ProbeUnavailable,
)
from ...core.media.models import ProbeResult, StagedFile
from .runner import CommandRunner, ToolLaunchError, ToolTimeout

logger = logging.getLogger(__name__)


class MediaProber:
    """Runs ffprobe against a staged file and extracts its dimensions."""

    def __init__(
        self,
        runner: CommandRunner,
        ffprobe_path: str = "ffprobe",
        timeout_seconds: Optional[float] = 30.0,
    ) -> None:
        self._runner = runner
        self._ffprobe = ffprobe_path
        self._timeout = timeout_seconds

    def build_command(self, staged: StagedFile) -> list[str]:
        return [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            str(staged.path),
        ]

    async def probe(self, staged: StagedFile) -> ProbeResult:
        try:
            result = await self._runner.run(
                self.build_command(staged), timeout=self._timeout
            )
        except ToolLaunchError as e:
            raise ProbeUnavailable("Couldn't launch ffprobe", diagnostics=str(e))
        except ToolTimeout as e:
            raise ProbeUnavailable(
                "ffprobe did not finish in time",
                diagnostics=e.stderr or str(e),
            )

        if not result.succeeded:
            raise ProbeFailed(
                f"ffprobe exited with status {result.returncode}",
                diagnostics=result.stderr,
            )

        probe = parse_probe_output(result.stdout)

        logger.debug(
            "Probed staged file",
            extra={"path": str(staged.path), "resolution": probe.resolution_display}
        )

        return probe


def parse_probe_output(output: str) -> ProbeResult:
    """
    Parse `ffprobe -print_format json -show_streams` output.

    Uses the first stream that reports both width and height; audio and
    data streams carry neither.
    """
    if not output.strip():
        raise NoStreamData("ffprobe produced no output")

    try:
        info = json.loads(output)
    except json.JSONDecodeError as e:
        raise ProbeOutputMalformed("ffprobe output is not valid JSON", diagnostics=str(e))

    if not isinstance(info, dict):
        raise ProbeOutputMalformed("ffprobe output is not a JSON object")

    streams = info.get("streams") or []
    if not isinstance(streams, list):
        raise ProbeOutputMalformed("ffprobe 'streams' is not a list")

    if not streams:
        raise NoStreamData("No streams found in the video file")

    for stream in streams:
        if not isinstance(stream, dict):
            continue
        if stream.get("width") is None or stream.get("height") is None:
            continue
        return ProbeResult(
            width=_as_int(stream["width"], "width"),
            height=_as_int(stream["height"], "height"),
        )

    raise NoStreamData("No stream with width and height found in the video file")


def _as_int(value: Any, name: str) -> int:
    # bool is an int subclass, but "width": true is not a dimension
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProbeOutputMalformed(f"Stream {name} is not an integer: {value!r}")
    return value
