"""HTTP application that receives GitHub webhooks and queues the resulting events."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from http import HTTPStatus

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route
from starlette.types import ASGIApp, Receive, Scope, Send

from mergebot.events import InstallationsChanged
from mergebot.webhook import (
    REQUEST_BODY_LIMIT,
    WebhookRejected,
    WebhookSecret,
    extract_webhook_event,
)

logger = logging.getLogger(__name__)

CONCURRENCY_LIMIT = 100


@dataclass
class ServerState:
    """State shared by all request handlers."""

    repository_event_queue: asyncio.Queue
    global_event_queue: asyncio.Queue
    webhook_secret: WebhookSecret


class _ConcurrencyLimit:
    """Lets at most ``limit`` HTTP requests be handled at the same time."""

    def __init__(self, app: ASGIApp, limit: int) -> None:
        self.app = app
        self._semaphore = asyncio.Semaphore(limit)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        async with self._semaphore:
            await self.app(scope, receive, send)


def create_app(state: ServerState) -> Starlette:
    """Create the web application serving ``/github`` and ``/health``."""
    app = Starlette(
        routes=[
            Route("/github", github_webhook_handler, methods=["POST"]),
            Route("/health", health_handler, methods=["GET"]),
        ],
        middleware=[Middleware(_ConcurrencyLimit, limit=CONCURRENCY_LIMIT)],
    )
    app.state.server = state
    return app


async def health_handler(request: Request) -> Response:
    return Response(status_code=HTTPStatus.OK)


async def _read_body(request: Request) -> bytes:
    body = bytearray()
    async for chunk in request.stream():
        body += chunk
        if len(body) > REQUEST_BODY_LIMIT:
            logger.error("Parsing webhook body failed: body exceeds %d bytes", REQUEST_BODY_LIMIT)
            raise WebhookRejected(HTTPStatus.BAD_REQUEST, "Request body is too large")
    return bytes(body)


async def github_webhook_handler(request: Request) -> Response:
    """Receive a webhook and put its event on the matching queue."""
    state: ServerState = request.app.state.server
    try:
        body = await _read_body(request)
        event = extract_webhook_event(request.headers, body, state.webhook_secret)
    except WebhookRejected as rejection:
        return Response(status_code=rejection.status_code)

    if isinstance(event, InstallationsChanged):
        queue, kind = state.global_event_queue, "global"
    else:
        queue, kind = state.repository_event_queue, "repository"
    try:
        await queue.put(event)
    except RuntimeError as error:
        logger.error("Could not send webhook %s event: %r", kind, error)
        return Response(status_code=HTTPStatus.INTERNAL_SERVER_ERROR)
    return Response(status_code=HTTPStatus.OK)