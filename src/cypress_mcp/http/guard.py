"""Transport guard for the network-facing endpoint.

Pure ASGI middleware that decides whether a request may reach the tool
dispatcher at all. Checks run cheapest-first, and each rejection is answered
without reading the body:

1. ``Host`` must be in the allow-list (DNS-rebinding protection)
2. any ``Origin`` header is refused (no browser contexts)
3. only ``POST /mcp`` is served
4. ``Content-Length`` must be declared and within the ceiling
5. bearer token, compared in constant time on equal-length buffers
6. the streamed body is counted and cut off the moment it passes the ceiling

Every response, rejections included, carries the defensive headers in
``SECURITY_HEADERS``.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from collections.abc import Iterable

from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import ClientDisconnect
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from cypress_mcp.audit import audit_event
from cypress_mcp.constants import MAX_REQUEST_BODY_BYTES

__all__ = [
    "MCP_PATH",
    "MIN_TOKEN_LENGTH",
    "SECURITY_HEADERS",
    "TransportGuard",
    "allowed_hosts_for",
    "generate_token",
    "validate_token",
]

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"
MIN_TOKEN_LENGTH = 32

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Cache-Control": "no-store",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'",
}

_BEARER_PREFIX = "Bearer "


def generate_token() -> str:
    """Fresh per-process bearer token (64 hex characters)."""
    return secrets.token_hex(32)


def validate_token(token: str) -> str:
    """Return ``token`` if it is long enough to use as a bearer credential.

    Raises:
        ValueError: The token is shorter than ``MIN_TOKEN_LENGTH``
    """
    if len(token) < MIN_TOKEN_LENGTH:
        msg = f"token must be at least {MIN_TOKEN_LENGTH} characters"
        raise ValueError(msg)
    return token


def allowed_hosts_for(host: str, port: int) -> frozenset[str]:
    """Host header values accepted for a server bound to ``host:port``.

    >>> sorted(allowed_hosts_for("127.0.0.1", 3333))
    ['127.0.0.1:3333', '[::1]:3333', 'localhost:3333']
    """
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    names = {host.lower(), "localhost", "127.0.0.1", "[::1]"}
    return frozenset(f"{name}:{port}" for name in names)


class _BodyTooLarge(Exception):
    pass


class TransportGuard:
    """ASGI middleware enforcing the network trust boundary.

    Args:
        app: The application requests are forwarded to once admitted
        token: Bearer token clients must present
        allowed_hosts: Accepted ``Host`` values; derived from the bound
            server address when None
        max_body_bytes: Ceiling for both declared and streamed body size
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        token: str,
        allowed_hosts: Iterable[str] | None = None,
        max_body_bytes: int = MAX_REQUEST_BODY_BYTES,
    ) -> None:
        self.app = app
        self._token = validate_token(token).encode()
        self.allowed_hosts = (
            frozenset(h.lower() for h in allowed_hosts) if allowed_hosts is not None else None
        )
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        send = _secure(send)
        headers = Headers(scope=scope)
        client = scope.get("client")
        ip = client[0] if client else "unknown"

        if headers.get("host", "").lower() not in self._hosts(scope):
            await self._reject(scope, receive, send, ip, "host", 400, "Invalid Host header")
            return
        if "origin" in headers:
            await self._reject(
                scope, receive, send, ip, "origin", 403, "Cross-origin requests not allowed"
            )
            return
        if scope["path"] != MCP_PATH or scope["method"] != "POST":
            response = PlainTextResponse("Not found. Use POST /mcp for tool calls.\n", 404)
            await response(scope, receive, send)
            return

        declared = headers.get("content-length")
        if declared is None or "transfer-encoding" in headers:
            await self._reject(scope, receive, send, ip, "length", 411, "Content-Length required")
            return
        if not (declared.isascii() and declared.isdigit()):
            await self._reject(scope, receive, send, ip, "length", 400, "Invalid Content-Length")
            return
        if int(declared) > self.max_body_bytes:
            await self._reject(
                scope, receive, send, ip, "size", 413, "Request body too large", close=True
            )
            return

        if not self._authorized(headers.get("authorization")):
            audit_event("http_auth_rejected", ip=ip, has_header="authorization" in headers)
            await JSONResponse({"error": "Unauthorized"}, 401)(scope, receive, send)
            return

        try:
            body = await self._read_body(receive)
        except _BodyTooLarge:
            await self._reject(
                scope, receive, send, ip, "size", 413, "Request body too large", close=True
            )
            return
        except ClientDisconnect:
            logger.debug("Client %s disconnected before the body was read", ip)
            return

        await self.app(scope, _replay(body, receive), send)

    def _hosts(self, scope: Scope) -> frozenset[str]:
        if self.allowed_hosts is not None:
            return self.allowed_hosts
        server = scope.get("server")
        if not server or server[1] is None:
            return frozenset()
        return allowed_hosts_for(server[0], server[1])

    def _authorized(self, header: str | None) -> bool:
        if header is None or not header.startswith(_BEARER_PREFIX):
            return False
        provided = header[len(_BEARER_PREFIX) :].encode("latin-1")
        # compare_digest leaks length, so mismatched lengths fail before it runs
        if len(provided) != len(self._token):
            return False
        return hmac.compare_digest(provided, self._token)

    async def _read_body(self, receive: Receive) -> bytes:
        body = bytearray()
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                raise ClientDisconnect()
            body += message.get("body", b"")
            if len(body) > self.max_body_bytes:
                raise _BodyTooLarge()
            more_body = message.get("more_body", False)
        return bytes(body)

    async def _reject(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
        ip: str,
        reason: str,
        status_code: int,
        error: str,
        *,
        close: bool = False,
    ) -> None:
        audit_event("http_request_rejected", ip=ip, reason=reason, status=status_code)
        # Unread body bytes stay on the socket; closing stops the sender there
        headers = {"Connection": "close"} if close else None
        response: Response = JSONResponse({"error": error}, status_code, headers=headers)
        await response(scope, receive, send)


def _secure(send: Send) -> Send:
    async def send_with_headers(message: Message) -> None:
        if message["type"] == "http.response.start":
            headers = MutableHeaders(scope=message)
            for name, value in SECURITY_HEADERS.items():
                headers[name] = value
        await send(message)

    return send_with_headers


def _replay(body: bytes, receive: Receive) -> Receive:
    """Receive callable that yields the buffered body once, then defers."""
    delivered = False

    async def replay() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay
