"""Server configuration.

Resolution order for every setting is CLI flag > environment variable >
default, the same as the other flag resolvers in the CLI.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, cast

from cypress_mcp.http.guard import generate_token, validate_token
from cypress_mcp.http.types import Host, Port
from cypress_mcp.runner.config import DEFAULT_RUNNER_CONFIG, RunnerConfig

__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "ENV_PORT",
    "ENV_TOKEN",
    "ENV_TRANSPORT",
    "TRANSPORTS",
    "ServerConfig",
    "Transport",
    "resolve_port",
    "resolve_token",
    "resolve_transport",
]

Transport = Literal["stdio", "http"]
TRANSPORTS: tuple[Transport, ...] = ("stdio", "http")

ENV_TRANSPORT = "CYPRESS_MCP_TRANSPORT"
ENV_PORT = "CYPRESS_MCP_PORT"
ENV_TOKEN = "CYPRESS_MCP_TOKEN"

DEFAULT_HOST = Host("127.0.0.1")
DEFAULT_PORT = Port(3333)


@dataclass(frozen=True)
class ServerConfig:
    """Everything needed to start one server process."""

    project_root: Path
    transport: Transport = "stdio"
    host: Host = DEFAULT_HOST
    port: Port = DEFAULT_PORT
    runner: RunnerConfig = field(default=DEFAULT_RUNNER_CONFIG)


def resolve_transport(transport_flag: str | None) -> Transport:
    """Resolve the transport from CLI flag, env var, or default.

    Priority: CLI flag > CYPRESS_MCP_TRANSPORT env var > "stdio" default.

    Raises:
        ValueError: The resolved value is not a known transport
    """
    value = transport_flag or os.getenv(ENV_TRANSPORT) or "stdio"
    if value not in TRANSPORTS:
        msg = f'Invalid transport "{value}". Must be one of: {", ".join(TRANSPORTS)}'
        raise ValueError(msg)
    return cast(Transport, value)


def resolve_port(port_flag: int | None) -> Port:
    """Resolve the HTTP port from CLI flag, env var, or default.

    Priority: CLI flag > CYPRESS_MCP_PORT env var > 3333 default.

    Raises:
        ValueError: The port is not an integer in 1-65535
    """
    if port_flag is not None:
        port = port_flag
    else:
        raw = os.getenv(ENV_PORT)
        if not raw:
            return DEFAULT_PORT
        try:
            port = int(raw)
        except ValueError:
            msg = f"{ENV_PORT} must be an integer, got {raw!r}"
            raise ValueError(msg) from None
    if not 1 <= port <= 65_535:
        msg = f"port must be between 1 and 65535, got {port}"
        raise ValueError(msg)
    return Port(port)


def resolve_token() -> str:
    """Bearer token for the HTTP transport.

    Uses CYPRESS_MCP_TOKEN when set (it must be at least 32 characters),
    otherwise generates a fresh random token for this process.
    """
    token = os.getenv(ENV_TOKEN)
    if token:
        return validate_token(token)
    return generate_token()
