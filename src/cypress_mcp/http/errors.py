"""JSON-RPC error types for the HTTP transport.

Provides typed exceptions that map to JSON-RPC 2.0 error codes.
"""

from __future__ import annotations

__all__ = [
    "InvalidParamsError",
    "InvalidRequestError",
    "JsonRpcError",
    "MethodNotFoundError",
    "PARSE_ERROR",
]

#: Code for a body that is not valid JSON; raised before dispatch.
PARSE_ERROR = -32700


class JsonRpcError(RuntimeError):
    """Base class for errors answered with a JSON-RPC error object."""

    json_rpc_code: int = -32603


class InvalidRequestError(JsonRpcError):
    """The payload is not a valid JSON-RPC request object.

    Maps to JSON-RPC error code -32600 (Invalid Request).
    """

    json_rpc_code: int = -32600


class MethodNotFoundError(JsonRpcError):
    """Raised when a JSON-RPC method is not recognized.

    Maps to JSON-RPC error code -32601 (Method not found).
    """

    json_rpc_code: int = -32601


class InvalidParamsError(JsonRpcError):
    """The method exists but its params are unusable.

    Maps to JSON-RPC error code -32602 (Invalid params).
    """

    json_rpc_code: int = -32602
