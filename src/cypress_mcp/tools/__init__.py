"""The Cypress tool surface exposed to MCP clients."""

from cypress_mcp.tools.dom import query_dom
from cypress_mcp.tools.last_run import RunData, get_last_run, read_last_run
from cypress_mcp.tools.registry import ToolRegistry, ToolResult, ToolSpec
from cypress_mcp.tools.screenshot import ScreenshotInfo, get_screenshot
from cypress_mcp.tools.specs import list_specs, read_spec

__all__ = [
    "RunData",
    "ScreenshotInfo",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
    "get_last_run",
    "get_screenshot",
    "list_specs",
    "query_dom",
    "read_last_run",
    "read_spec",
]
