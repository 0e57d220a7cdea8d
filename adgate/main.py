from __future__ import annotations

import logging
import sys

import pydantic
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .ad import ADClient, DirectoryError
from .deps import MemberDirectory
from .env_settings import get_env
from .log_config import setup_logging
from .middleware import (
    INTERNAL_ERROR_BODY,
    AccessLogMiddleware,
    RecoverMiddleware,
    RequestIDMiddleware,
)
from .routers import health, members

log = logging.getLogger("adgate")


def create_app(directory: MemberDirectory, logger: logging.Logger | None = None) -> FastAPI:
    """Wire routes, the error adapter and the middleware stack around ``directory``."""
    logger = logger or log

    app = FastAPI(title="adgate", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.directory = directory

    app.include_router(health.router)
    app.include_router(members.router)

    @app.exception_handler(DirectoryError)
    async def _directory_error(request: Request, exc: DirectoryError):
        # Full detail goes to the log only; the body is always the same.
        logger.error(
            "handler.error method=%s path=%s op=%s timeout=%s: %s",
            request.method,
            request.url.path,
            exc.op,
            exc.timeout,
            exc,
        )
        return JSONResponse(INTERNAL_ERROR_BODY, status_code=500)

    # add_middleware wraps: the last one added is the outermost.
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(AccessLogMiddleware, logger=logger)
    app.add_middleware(RecoverMiddleware, logger=logger)
    return app


def build_app() -> FastAPI:
    """App factory for ``uvicorn --factory adgate.main:build_app``."""
    env = get_env()
    setup_logging(env.log_level, env.log_dir or None)
    client = ADClient(env.to_ad_config())
    return create_app(client)


def run() -> None:
    try:
        env = get_env()
    except pydantic.ValidationError as e:
        setup_logging()
        log.error("config load failed: %s", e)
        sys.exit(1)

    setup_logging(env.log_level, env.log_dir or None)
    try:
        client = ADClient(env.to_ad_config())
    except ValueError as e:
        log.error("ldaps client init failed: %s", e)
        sys.exit(1)

    app = create_app(client)
    host, port = env.listen_host_port()
    log.info("http.listen addr=%s:%d ldap=%s", host, port, env.ldap_addr)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_config=None,
        timeout_graceful_shutdown=20,
    )
    log.info("shutdown.complete")
