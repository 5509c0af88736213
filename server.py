#!/usr/bin/env python3
"""
server.py - HTTP surface of the record agent (uvicorn + Starlette).

    GET  /health     readiness probe
    POST /userdata   {subjectId, birthDate, issueDate, requesterId}
                     -> {isSuccess, message, statusCode, data?}

The workflow status lives in the body's ``statusCode``; HTTP errors are only
used for malformed requests.

Usage:
    python server.py        # listens on SERVER_PORT (default 3002)
"""
from __future__ import annotations

import contextlib
import json
import uuid
from typing import Optional

import uvicorn
from loguru import logger
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from agents.orchestrator import Orchestrator
from config.settings import Settings, settings
from models.record import RequestContext, UserQuery

USER_ID_HEADER = "x-user-id"
CLIENT_ID_HEADER = "x-client-id"
REQUEST_ID_HEADER = "x-request-id"


# ---------------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------------

class CorrelationMiddleware(BaseHTTPMiddleware):
    """Attach a RequestContext to every request and echo its request id."""

    async def dispatch(self, request: Request, call_next):
        ctx = RequestContext(
            user_id=request.headers.get(USER_ID_HEADER) or "empty",
            client_id=request.headers.get(CLIENT_ID_HEADER) or "empty",
            request_id=uuid.uuid4().hex,
        )
        request.state.ctx = ctx
        logger.bind(**ctx.log_extra()).debug(f"{request.method} {request.url.path}")
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = ctx.request_id
        return response


# ---------------------------------------------------------------------------
# Starlette app
# ---------------------------------------------------------------------------

async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ready"})


async def userdata(request: Request) -> JSONResponse:
    ctx: RequestContext = request.state.ctx
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "request body must be JSON"}, status_code=400)

    try:
        query = UserQuery.model_validate(body)
    except ValidationError as exc:
        logger.bind(**ctx.log_extra()).warning(f"Rejected request: {exc.error_count()} errors")
        return JSONResponse(
            {"error": "invalid request", "details": json.loads(exc.json(include_url=False))},
            status_code=422,
        )

    orchestrator: Orchestrator = request.app.state.orchestrator
    reply = await orchestrator.handle(query, ctx)
    return JSONResponse(reply.to_payload())


@contextlib.asynccontextmanager
async def lifespan(app: Starlette):
    yield
    logger.info("Shutting down, releasing session store...")
    await app.state.orchestrator.aclose()


def create_app(
    orchestrator: Optional[Orchestrator] = None,
    config: Optional[Settings] = None,
) -> Starlette:
    config = config or settings
    app = Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route("/userdata", userdata, methods=["POST"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=config.cors_origins,
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
                expose_headers=[REQUEST_ID_HEADER],
            ),
            Middleware(CorrelationMiddleware),
        ],
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator or Orchestrator(config)
    return app


def serve(config: Optional[Settings] = None) -> None:
    config = config or settings
    logger.info(f"Server running at http://{config.server_host}:{config.server_port}")
    uvicorn.run(create_app(config=config), host=config.server_host, port=config.server_port)


if __name__ == "__main__":
    from config.logging import configure_logging

    configure_logging()
    serve()
