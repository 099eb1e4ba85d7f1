"""Typer-based CLI for cypress-mcp.

Critical constraint: in stdio mode stdout is reserved for MCP JSON-RPC. All
logging goes to files (~/.cypress-mcp/logs/cypress-mcp.log). Version info,
errors and the HTTP bearer token print to stderr.
"""

import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import typer

from cypress_mcp import __version__
from cypress_mcp.config import (
    DEFAULT_HOST,
    ServerConfig,
    resolve_port,
    resolve_token,
    resolve_transport,
)
from cypress_mcp.http.app import create_app
from cypress_mcp.http.runner import run_http
from cypress_mcp.http.types import Host
from cypress_mcp.runner.process import SpecRunner
from cypress_mcp.server import run_stdio
from cypress_mcp.tools.registry import ToolRegistry

app = typer.Typer(
    name="cypress-mcp",
    help="MCP server for Cypress: gives an agent guarded access to specs and test results",
    add_completion=False,
)

LOG_FILE_NAME = "cypress-mcp.log"


def setup_logging(log_dir: Path, log_level: str) -> None:
    """Configure file-only logging with RotatingFileHandler.

    Args:
        log_dir: Directory for log files (created if missing)
        log_level: Logging level (info, debug, warning, error, critical)
    """
    log_dir = log_dir.expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level.upper())

    # Clear existing handlers to prevent duplicates
    root_logger.handlers.clear()

    # File handler with rotation (10MB max, 3 backups)
    file_handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=10 * 1024 * 1024,
        backupCount=3,
    )
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        ),
    )
    root_logger.addHandler(file_handler)

    # Stderr handler for critical errors only (not stdout, MCP owns it)
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.CRITICAL)
    stderr_handler.setFormatter(
        logging.Formatter("%(levelname)s: %(message)s"),
    )
    root_logger.addHandler(stderr_handler)


def build_registry(config: ServerConfig) -> ToolRegistry:
    """Wire the runner and tools for one project."""
    runner = SpecRunner(config.project_root, config.runner)
    return ToolRegistry(config.project_root, runner)


async def serve_http(config: ServerConfig, token: str, log_level: str) -> None:
    """Run the guarded HTTP transport for ``config``."""
    registry = build_registry(config)
    http_app = create_app(registry, token=token, version=__version__)
    await run_http(
        http_app,
        host=config.host,
        port=config.port,
        log_level=log_level,
        on_exit=registry.runner.terminate_active,
    )


@app.command()
def main(
    project: Path = typer.Option(
        Path("."),
        "--project",
        help="Cypress project root",
    ),
    transport: str | None = typer.Option(
        None,
        "--transport",
        help="Transport type: stdio (default) or http (overrides CYPRESS_MCP_TRANSPORT)",
    ),
    host: str = typer.Option(
        DEFAULT_HOST,
        "--host",
        help="HTTP bind address (only for --transport http)",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        help="HTTP port (overrides CYPRESS_MCP_PORT, default 3333)",
    ),
    log_dir: Path = typer.Option(
        Path("~/.cypress-mcp/logs"),
        "--log-dir",
        help="Directory for log files",
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        help="Logging level (debug, info, warning, error, critical)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Print version and exit",
    ),
) -> None:
    """Run the cypress-mcp server.

    In stdio mode the server talks MCP over stdin/stdout. In http mode it
    serves POST /mcp on the loopback interface behind a bearer token, which
    is printed to stderr at startup.
    """
    # Handle --version flag (prints to stderr, not stdout)
    if version:
        typer.echo(f"cypress-mcp {__version__}", err=True)
        raise typer.Exit(0)

    try:
        resolved_transport = resolve_transport(transport)
        resolved_port = resolve_port(port)
        token = resolve_token() if resolved_transport == "http" else ""
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from None

    project_root = project.expanduser().resolve()
    if not project_root.is_dir():
        typer.echo(f"Error: project directory not found: {project}", err=True)
        raise typer.Exit(1)

    config = ServerConfig(
        project_root=project_root,
        transport=resolved_transport,
        host=Host(host),
        port=resolved_port,
    )

    # Setup logging (file-only, never stdout)
    setup_logging(log_dir, log_level)
    logger = logging.getLogger(__name__)
    logger.info("cypress-mcp %s starting (%s) for %s", __version__, config.transport, project_root)

    if config.transport == "stdio":
        asyncio.run(run_stdio(build_registry(config), version=__version__))
        return

    typer.echo(f"cypress-mcp HTTP server listening on {config.host}:{config.port}", err=True)
    typer.echo(f"  Authorization: Bearer {token}", err=True)
    typer.echo(f"  POST http://{config.host}:{config.port}/mcp  -> tool calls", err=True)
    typer.echo(f"  Project root: {project_root}", err=True)
    typer.echo(f"  Logs: {log_dir.expanduser() / LOG_FILE_NAME}", err=True)
    asyncio.run(serve_http(config, token, log_level))
