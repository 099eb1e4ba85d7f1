"""Minimal MCP over JSON-RPC 2.0 for the HTTP transport.

Implements ``initialize``, ``ping``, ``tools/list`` and ``tools/call``.
Notifications (requests without an ``id``) are processed but never answered,
and batches are answered with the list of non-notification responses.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from mcp.types import LATEST_PROTOCOL_VERSION

from cypress_mcp.http.errors import (
    InvalidParamsError,
    InvalidRequestError,
    JsonRpcError,
    MethodNotFoundError,
)

if TYPE_CHECKING:
    from cypress_mcp.tools.registry import ToolRegistry

__all__ = ["JsonRpcDispatcher", "make_error", "make_response"]

logger = logging.getLogger(__name__)

SERVER_NAME = "cypress-mcp"


def make_response(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def make_error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }


class JsonRpcDispatcher:
    """Routes decoded JSON-RPC payloads to the tool registry.

    Args:
        registry: Tools exposed to the client
        version: Server version reported by ``initialize``
    """

    def __init__(self, registry: ToolRegistry, *, version: str = "0.1.0") -> None:
        self.registry = registry
        self.version = version

    async def dispatch(self, payload: Any) -> dict[str, Any] | list[dict[str, Any]] | None:
        """Handle a single request or a batch.

        Returns:
            The response object(s), or None when nothing should be sent back
        """
        if isinstance(payload, list):
            if not payload:
                return make_error(None, InvalidRequestError.json_rpc_code, "Empty batch")
            responses = [await self.handle(item) for item in payload]
            return [r for r in responses if r is not None] or None
        return await self.handle(payload)

    async def handle(self, request: Any) -> dict[str, Any] | None:
        if (
            not isinstance(request, dict)
            or request.get("jsonrpc") != "2.0"
            or not isinstance(request.get("method"), str)
        ):
            req_id = request.get("id") if isinstance(request, dict) else None
            return make_error(req_id, InvalidRequestError.json_rpc_code, "Invalid Request")

        is_notification = "id" not in request
        req_id = request.get("id")
        method = request["method"]
        params = request.get("params") or {}

        try:
            if not isinstance(params, dict):
                raise InvalidParamsError("params must be an object")
            result = await self._call(method, params)
        except JsonRpcError as exc:
            if is_notification:
                logger.debug("Ignoring failed notification %s: %s", method, exc)
                return None
            return make_error(req_id, exc.json_rpc_code, str(exc))

        if is_notification:
            return None
        return make_response(req_id, result)

    async def _call(self, method: str, params: dict[str, Any]) -> Any:
        if method == "initialize":
            requested = params.get("protocolVersion")
            return {
                "protocolVersion": (
                    requested
                    if requested in SUPPORTED_PROTOCOL_VERSIONS
                    else LATEST_PROTOCOL_VERSION
                ),
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": SERVER_NAME, "version": self.version},
            }

        if method == "ping":
            return {}

        if method == "tools/list":
            return {"tools": self.registry.list_tools()}

        if method == "tools/call":
            name = params.get("name")
            arguments = params.get("arguments") or {}
            if not isinstance(name, str) or not isinstance(arguments, dict):
                raise InvalidParamsError("tools/call requires a name and an arguments object")
            result = await self.registry.call(name, arguments)
            return {
                "content": [{"type": "text", "text": result.text}],
                "isError": result.is_error,
            }

        if method.startswith("notifications/"):
            return None

        raise MethodNotFoundError(f"Method not found: {method}")
