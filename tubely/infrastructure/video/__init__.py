"""
External media tool integrations.

Both tools run as subprocesses behind a CommandRunner:
- ffprobe: read stream dimensions (MediaProber)
- ffmpeg: remux for fast-start playback (StreamRemuxer)
"""

from .prober import MediaProber, parse_probe_output
from .remuxer import StreamRemuxer
from .runner import (
    CommandResult,
    CommandRunner,
    MockCommandRunner,
    SubprocessRunner,
    create_command_runner,
)

__all__ = [
    "CommandResult",
    "CommandRunner",
    "MediaProber",
    "MockCommandRunner",
    "StreamRemuxer",
    "SubprocessRunner",
    "create_command_runner",
    "parse_probe_output",
]
