"""cypress-mcp: guarded access to a Cypress project for an MCP agent.

This package provides:
- Path containment, secret redaction and the untrusted-data envelope
- A sandboxed, single-slot runner for Cypress specs
- The MCP tool surface over stdio and a guarded HTTP endpoint
"""

from cypress_mcp.http import create_app, run_http
from cypress_mcp.runner import RunOptions, SpecRunner
from cypress_mcp.security import redact_secrets, resolve_contained, wrap_untrusted
from cypress_mcp.tools import ToolRegistry

__all__ = [
    # Security primitives
    "redact_secrets",
    "resolve_contained",
    "wrap_untrusted",
    # Execution
    "RunOptions",
    "SpecRunner",
    # Tools and transports
    "ToolRegistry",
    "create_app",
    "run_http",
]
__version__ = "0.1.0"
