"""
Transport-level upload ceiling.

FastAPI parses multipart bodies before a route handler runs, so a size
check inside the handler is too late to stop a 5 GB upload from being
spooled. This middleware sits in front of the app and enforces a byte
limit per path prefix:

- a declared Content-Length over the limit is rejected before any of the
  body is read
- a body without a declared length (chunked) is counted as it streams in,
  and reading stops with a 413 as soon as the count passes the limit

It is a plain ASGI middleware rather than BaseHTTPMiddleware because the
body has to be counted at the receive() level.
"""

import logging
from typing import Optional

from starlette.datastructures import Headers
from starlette.exceptions import HTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .errors import error_response

logger = logging.getLogger(__name__)


def limit_message(max_bytes: int) -> str:
    return f"Upload exceeds the {max_bytes} byte limit"


class UploadSizeLimitMiddleware:
    """Reject POST bodies larger than the limit for their path prefix."""

    def __init__(self, app: ASGIApp, limits: dict[str, int]) -> None:
        self.app = app
        # longest prefix first so a more specific path wins
        self._limits = sorted(limits.items(), key=lambda item: len(item[0]), reverse=True)

    def limit_for(self, path: str) -> Optional[int]:
        for prefix, max_bytes in self._limits:
            if path.startswith(prefix):
                return max_bytes
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "POST":
            await self.app(scope, receive, send)
            return

        path = scope["path"]
        max_bytes = self.limit_for(path)
        if max_bytes is None:
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared is not None:
            if not declared.isdigit():
                await error_response(400, "Invalid Content-Length header")(scope, receive, send)
                return
            if int(declared) > max_bytes:
                logger.info(
                    "Upload rejected by size limit",
                    extra={"path": path, "content_length": int(declared), "max_bytes": max_bytes}
                )
                await error_response(413, limit_message(max_bytes))(scope, receive, send)
                return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > max_bytes:
                    logger.info(
                        "Streaming upload stopped at size limit",
                        extra={"path": path, "received": received, "max_bytes": max_bytes}
                    )
                    raise HTTPException(status_code=413, detail=limit_message(max_bytes))
            return message

        await self.app(scope, limited_receive, send)
