"""Request body size limit middleware.

Rejects oversized bodies with HTTP 413 before they reach a route. The limit
is enforced on the declared Content-Length and again while the body streams,
so chunked uploads cannot bypass it. Individual paths (the resume upload)
may be given a larger limit than the JSON default.
"""

import json
from typing import Mapping, Optional

from starlette.types import Message, Receive, Scope, Send


class SizeLimitedStream:
    """Wraps an ASGI receive callable and counts body bytes as they arrive."""

    class SizeExceededError(Exception):
        """Raised when request body exceeds size limit."""

    def __init__(self, receive: Receive, max_size: int):
        self._receive = receive
        self._max_size = max_size
        self._bytes_read = 0

    async def receive(self) -> Message:
        message = await self._receive()

        if message["type"] == "http.request":
            self._bytes_read += len(message.get("body", b""))
            if self._bytes_read > self._max_size:
                raise self.SizeExceededError(
                    f"Request body too large. Maximum allowed: {self._max_size} bytes"
                )

        return message


class RequestSizeLimitMiddleware:
    """ASGI middleware to limit request body size.

    Usage:
        app.add_middleware(
            RequestSizeLimitMiddleware,
            max_body_size=1024 * 1024,
            path_limits={"/api/parse-resume": 11 * 1024 * 1024},
        )
    """

    def __init__(
        self,
        app,
        max_body_size: int = 1024 * 1024,
        path_limits: Optional[Mapping[str, int]] = None,
    ):
        self.app = app
        self.max_body_size = max_body_size
        self.path_limits = dict(path_limits or {})

    def _limit_for(self, path: str) -> int:
        return self.path_limits.get(path, self.max_body_size)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        max_size = self._limit_for(scope.get("path", ""))

        for name, value in scope.get("headers", []):
            if name.lower() == b"content-length":
                try:
                    if int(value.decode()) > max_size:
                        await self._send_413_response(send, max_size)
                        return
                except ValueError:
                    # Fall through to the streaming check
                    pass
                break

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        limited = SizeLimitedStream(receive, max_size)
        try:
            await self.app(scope, limited.receive, tracking_send)
        except SizeLimitedStream.SizeExceededError:
            if response_started:
                raise
            await self._send_413_response(send, max_size)

    async def _send_413_response(self, send: Send, max_size: int) -> None:
        body = json.dumps({
            "error": "payload_too_large",
            "message": f"Request body too large. Maximum allowed: {max_size} bytes",
        }).encode()

        await send(
            {
                "type": "http.response.start",
                "status": 413,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
