"""The local relay: a FastAPI app forwarding chat requests upstream.

The relay accepts ``POST /api/proxy`` with a ``{"messages": [...]}``
body, adds the configured model, asks the upstream OpenAI-compatible
provider for a streamed completion and passes the event stream back
unmodified.  Credentials stay on the relay side; the CLI only ever
talks to the loopback address.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from . import __version__
from .errors import error_message_from_body

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"message": message}})


async def close_upstream_client(app: FastAPI) -> None:
    """Close the app's upstream client, if one was opened.

    A later request opens a fresh client.
    """
    client, app.state.http = app.state.http, None
    if client is not None:
        await client.aclose()


def create_app(
    config: Dict[str, Any],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the relay application.

    :param config: Loaded configuration; only the ``upstream`` section
      is used.
    :param transport: Optional transport for the upstream client, used
      to substitute the provider in tests.
    """
    upstream = dict(config.get("upstream", {}))
    base_url = str(upstream.get("base_url") or "").rstrip("/")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await close_upstream_client(app)

    app = FastAPI(title="cmdgen relay", version=__version__, lifespan=lifespan)
    app.state.http = None

    def upstream_client() -> httpx.AsyncClient:
        if app.state.http is None:
            app.state.http = httpx.AsyncClient(
                timeout=httpx.Timeout(float(upstream.get("timeout") or 120.0)),
                transport=transport,
            )
        return app.state.http

    @app.get("/health")
    async def health_check() -> dict:
        return {"status": "healthy", "service": "cmdgen-relay"}

    @app.post("/api/proxy")
    async def proxy(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return _error(400, "Request body must be JSON")
        messages = body.get("messages") if isinstance(body, dict) else None
        if not isinstance(messages, list) or not messages:
            return _error(400, "'messages' must be a non-empty list")
        api_key = upstream.get("api_key")
        if not api_key:
            return _error(
                500,
                "Upstream API key is not configured. "
                "Set CMDGEN_API_KEY or run 'cmdgen configure'.",
            )
        if not base_url:
            return _error(500, "Upstream base URL is not configured.")

        client = upstream_client()
        outbound = client.build_request(
            "POST",
            f"{base_url}/chat/completions",
            json={"model": upstream.get("model"), "messages": messages, "stream": True},
            headers={"Authorization": f"Bearer {api_key}", "Accept": "text/event-stream"},
        )
        try:
            response = await client.send(outbound, stream=True)
        except httpx.HTTPError as exc:
            logger.warning("Upstream request failed: %s", exc)
            return _error(502, f"Upstream request failed: {exc}")

        if response.status_code != 200:
            raw = await response.aread()
            await response.aclose()
            message = error_message_from_body(response.status_code, raw)
            logger.warning("Upstream returned %s: %s", response.status_code, message)
            return _error(response.status_code, message)

        return StreamingResponse(
            response.aiter_bytes(),
            media_type="text/event-stream",
            background=BackgroundTask(response.aclose),
        )

    return app
