"""MCP server over stdio.

Stdout carries the protocol, so nothing in this process may print to it;
logging goes to files (see ``cli.setup_logging``).
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any

from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from cypress_mcp.tools.registry import ToolRegistry

__all__ = ["SERVER_NAME", "ToolCallError", "create_mcp_server", "run_stdio"]

logger = logging.getLogger(__name__)

SERVER_NAME = "cypress-mcp"


class ToolCallError(Exception):
    """Carries an error result out of the call handler.

    The SDK turns an exception raised by the handler into a result with
    ``isError`` set and the exception text as content.
    """


def create_mcp_server(registry: ToolRegistry, *, version: str = "0.1.0") -> Server[Any, Any]:
    """Build an MCP server exposing ``registry``'s tools.

    Argument validation is left to the registry so both transports reject
    bad input the same way and every call is audited.
    """
    server: Server[Any, Any] = Server(SERVER_NAME, version=version)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return [Tool(**descriptor) for descriptor in registry.list_tools()]

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        result = await registry.call(name, arguments)
        if result.is_error:
            raise ToolCallError(result.text)
        return [TextContent(type="text", text=result.text)]

    return server


async def run_stdio(registry: ToolRegistry, *, version: str = "0.1.0") -> None:
    """Serve over stdin/stdout until the client disconnects or a signal arrives.

    On SIGINT or SIGTERM the in-flight spec run (if any) is signalled first,
    and on every exit path the runner is shut down before returning, so no
    browser process outlives the server.
    """
    server = create_mcp_server(registry, version=version)
    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    stopping = False

    def on_signal(signame: str) -> None:
        nonlocal stopping
        logger.info("Received %s, shutting down", signame)
        stopping = True
        registry.runner.terminate_active()
        if main_task is not None:
            main_task.cancel()

    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal, sig.name)
            installed.append(sig)
        except NotImplementedError:
            # No signal handlers on this event loop (Windows)
            break

    logger.info("Starting MCP stdio server for %s", registry.project_root)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    except asyncio.CancelledError:
        if not stopping:
            raise
    finally:
        await registry.runner.shutdown()
        for sig in installed:
            loop.remove_signal_handler(sig)
        logger.info("MCP stdio server stopped")
