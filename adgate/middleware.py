"""HTTP middleware stack.

Order as installed by ``create_app`` (outermost first):

    RecoverMiddleware -> AccessLogMiddleware -> RequestIDMiddleware -> routes

Recover and access logging are plain ASGI middleware: they need to see
exceptions raised by inner layers and every body chunk sent.
"""
from __future__ import annotations

import logging
import secrets
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .log_config import request_id_var

log = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
INTERNAL_ERROR_BODY = {"error": "internal server error"}

# Overridable in tests.
token_bytes = secrets.token_bytes


def new_request_id() -> str:
    """16 random bytes as 32 lowercase hex chars, or a clock-based fallback."""
    try:
        return token_bytes(16).hex()
    except (OSError, NotImplementedError):
        return f"fallback-id-{time.monotonic_ns()}"


def _scope_request_id(scope: Scope) -> str:
    return str((scope.get("state") or {}).get("request_id") or "")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagate or assign X-Request-ID on both the request and the response."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER, "")
        if not rid:
            rid = new_request_id()
            headers = [(k, v) for k, v in request.scope["headers"] if k != b"x-request-id"]
            headers.append((b"x-request-id", rid.encode("latin-1")))
            request.scope["headers"] = headers
        request.state.request_id = rid

        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response


class AccessLogMiddleware:
    def __init__(self, app: ASGIApp, logger: logging.Logger | None = None) -> None:
        self.app = app
        self.log = logger or log

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        path = scope.get("path", "")
        client = scope.get("client")
        remote = f"{client[0]}:{client[1]}" if client else "-"
        start = time.perf_counter()
        self.log.info("request.start method=%s path=%s remote=%s", method, path, remote)

        status_code = 500
        size = 0

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, size
            if message["type"] == "http.response.start":
                status_code = int(message["status"])
            elif message["type"] == "http.response.body":
                size += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            self.log.info(
                "request.done method=%s path=%s status=%d bytes=%d duration_ms=%.1f request_id=%s",
                method,
                path,
                status_code,
                size,
                (time.perf_counter() - start) * 1000.0,
                _scope_request_id(scope) or "-",
            )


class RecoverMiddleware:
    """Turn any exception escaping the inner layers into an opaque 500."""

    def __init__(self, app: ASGIApp, logger: logging.Logger | None = None) -> None:
        self.app = app
        self.log = logger or log

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            rid = _scope_request_id(scope) or new_request_id()
            self.log.exception(
                "panic recovered method=%s path=%s request_id=%s", scope.get("method"), scope.get("path"), rid
            )
            if started:
                # Headers are already on the wire; nothing left to replace.
                return
            response = JSONResponse(INTERNAL_ERROR_BODY, status_code=500, headers={REQUEST_ID_HEADER: rid})
            await response(scope, receive, send)
