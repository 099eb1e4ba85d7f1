"""Network transport: guarded JSON-RPC over a single HTTP endpoint."""

from cypress_mcp.http.app import create_app
from cypress_mcp.http.guard import TransportGuard, allowed_hosts_for, generate_token, validate_token
from cypress_mcp.http.jsonrpc import JsonRpcDispatcher
from cypress_mcp.http.runner import ExitHookServer, run_http
from cypress_mcp.http.types import Host, Port

__all__ = [
    "ExitHookServer",
    "Host",
    "JsonRpcDispatcher",
    "Port",
    "TransportGuard",
    "allowed_hosts_for",
    "create_app",
    "generate_token",
    "run_http",
    "validate_token",
]
