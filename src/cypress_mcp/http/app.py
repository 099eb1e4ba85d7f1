"""HTTP application for the network transport.

A single ``POST /mcp`` endpoint speaks JSON-RPC 2.0. The transport guard
sits in front of the router, so by the time ``mcp_endpoint`` runs the
request has passed Host, Origin, size and bearer-token checks.
"""

from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import AsyncIterator, Iterable

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from cypress_mcp.constants import MAX_REQUEST_BODY_BYTES
from cypress_mcp.http.errors import PARSE_ERROR
from cypress_mcp.http.guard import MCP_PATH, TransportGuard
from cypress_mcp.http.jsonrpc import JsonRpcDispatcher, make_error
from cypress_mcp.tools.registry import ToolRegistry

__all__ = ["create_app"]

logger = logging.getLogger(__name__)


def create_app(
    registry: ToolRegistry,
    *,
    token: str,
    allowed_hosts: Iterable[str] | None = None,
    max_body_bytes: int = MAX_REQUEST_BODY_BYTES,
    version: str = "0.1.0",
) -> Starlette:
    """Create the guarded Starlette application.

    Args:
        registry: Tools to expose
        token: Bearer token clients must present
        allowed_hosts: Accepted ``Host`` header values; derived from the bound
            address when None
        max_body_bytes: Request body ceiling
        version: Server version reported by ``initialize``

    Returns:
        Configured Starlette application. Its lifespan terminates any
        in-flight spec run on shutdown.
    """
    dispatcher = JsonRpcDispatcher(registry, version=version)

    async def mcp_endpoint(request: Request) -> Response:
        try:
            payload = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            return JSONResponse(make_error(None, PARSE_ERROR, f"Parse error: {exc}"), 400)
        response = await dispatcher.dispatch(payload)
        if response is None:
            return Response(status_code=202)
        return JSONResponse(response)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        try:
            yield
        finally:
            logger.info("HTTP app shutting down")
            await registry.runner.shutdown()

    return Starlette(
        routes=[Route(MCP_PATH, mcp_endpoint, methods=["POST"])],
        middleware=[
            Middleware(
                TransportGuard,
                token=token,
                allowed_hosts=allowed_hosts,
                max_body_bytes=max_body_bytes,
            )
        ],
        lifespan=lifespan,
    )
