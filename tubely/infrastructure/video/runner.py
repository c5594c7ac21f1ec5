"""
Command execution for the external media tools.

ffprobe and ffmpeg are plain command-line programs. Everything that talks
to them goes through a CommandRunner so the pipeline can be exercised
without the real binaries installed:

- SubprocessRunner launches the process and captures its output
- MockCommandRunner returns canned output and fakes ffmpeg's output file

Runners only report what happened (exit code, stdout, stderr). Deciding
whether that counts as success is up to the prober/remuxer.
"""

import asyncio
import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class ToolLaunchError(Exception):
    """The program could not be started (missing binary, permissions)."""
    pass


class ToolTimeout(Exception):
    """The program did not finish before its deadline and was killed."""

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


@dataclass
class CommandResult:
    """Captured outcome of one finished process."""
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Runs a command to completion and captures its output."""

    async def run(self, args: list[str], timeout: Optional[float] = None) -> CommandResult:
        ...


class SubprocessRunner:
    """
    Runs commands with subprocess.Popen, waiting on a worker thread.

    communicate() blocks, so it is pushed to a thread to keep the event
    loop free for other uploads while a long remux runs. Output is small
    (ffprobe JSON, ffmpeg diagnostics), so it is captured in full.

    The child is killed and reaped on timeout and on cancellation. A
    cancelled asyncio task does not stop its worker thread, so without the
    kill ffmpeg could keep writing after the caller cleaned up.
    """

    async def run(self, args: list[str], timeout: Optional[float] = None) -> CommandResult:
        logger.debug("Running command", extra={"args": args, "timeout": timeout})

        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            # FileNotFoundError / PermissionError when the binary is missing
            raise ToolLaunchError(f"Could not launch {args[0]}: {e}")

        try:
            stdout, stderr = await asyncio.to_thread(process.communicate, timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            _, stderr = await asyncio.to_thread(process.communicate)
            raise ToolTimeout(
                f"{args[0]} exceeded its {timeout}s deadline", stderr=stderr or ""
            )
        except asyncio.CancelledError:
            process.kill()
            process.wait()
            logger.info("Command cancelled", extra={"program": args[0], "pid": process.pid})
            raise

        return CommandResult(
            returncode=process.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
        )


# ---------------------------------------------------------------------------
# Mock runner for local development and tests
# ---------------------------------------------------------------------------

def canned_probe_output(width: int = 1920, height: int = 1080) -> str:
    """ffprobe -show_streams JSON for a single h264 stream plus audio."""
    return json.dumps({
        "streams": [
            {
                "index": 0,
                "codec_name": "h264",
                "codec_type": "video",
                "width": width,
                "height": height,
            },
            {
                "index": 1,
                "codec_name": "aac",
                "codec_type": "audio",
            },
        ]
    })


@dataclass
class MockCommandRunner:
    """
    Fake runner keyed by program name ("ffprobe", "ffmpeg").

    - responses: canned CommandResult per program
    - errors: exception to raise instead of "running" a program
    - copy_outputs: for ffmpeg, copy the -i input to the last argument so
      downstream stages find a real output file

    Every invocation is recorded in `calls`.
    """
    responses: dict[str, CommandResult] = field(default_factory=dict)
    errors: dict[str, Exception] = field(default_factory=dict)
    copy_outputs: bool = True
    calls: list[list[str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.responses.setdefault("ffprobe", CommandResult(0, canned_probe_output()))
        self.responses.setdefault("ffmpeg", CommandResult(0))

    async def run(self, args: list[str], timeout: Optional[float] = None) -> CommandResult:
        self.calls.append(list(args))
        program = Path(args[0]).name

        if program in self.errors:
            raise self.errors[program]

        result = self.responses.get(program, CommandResult(0))

        if program == "ffmpeg" and self.copy_outputs and result.succeeded and "-i" in args:
            source = args[args.index("-i") + 1]
            shutil.copyfile(source, args[-1])

        return result

    def calls_to(self, program: str) -> list[list[str]]:
        return [call for call in self.calls if Path(call[0]).name == program]


def create_command_runner(mock_mode: bool = False) -> CommandRunner:
    """
    Factory for the command runner.

    Args:
        mock_mode: If True, return a runner that never launches processes
    """
    if mock_mode:
        logger.info("Initialized mock command runner")
        return MockCommandRunner()

    return SubprocessRunner()
