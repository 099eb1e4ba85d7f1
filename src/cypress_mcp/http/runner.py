"""Runner for the HTTP transport."""

import logging
from collections.abc import Callable
from types import FrameType

import uvicorn

from cypress_mcp.http.types import Host, Port

__all__ = ["ExitHookServer", "run_http"]

logger = logging.getLogger(__name__)


class ExitHookServer(uvicorn.Server):
    """uvicorn server that runs a hook as soon as an exit signal arrives.

    uvicorn waits for in-flight requests before the lifespan shutdown runs,
    and a ``run_spec`` request lasts as long as its run. The hook signals
    the run first so the request, and then the server, can finish.
    """

    def __init__(self, config: uvicorn.Config, on_exit: Callable[[], object] | None = None) -> None:
        super().__init__(config)
        self.on_exit = on_exit

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        if self.on_exit is not None:
            logger.info("Exit signal %s received, stopping in-flight work", sig)
            self.on_exit()
        super().handle_exit(sig, frame)


async def run_http(
    app: object,
    *,
    host: Host = Host("127.0.0.1"),
    port: Port = Port(3333),
    log_level: str = "info",
    on_exit: Callable[[], object] | None = None,
) -> None:
    """Serve ``app`` over HTTP until cancelled or signalled.

    On SIGINT or SIGTERM ``on_exit`` runs first (the CLI passes the spec
    runner's ``terminate_active``), then uvicorn stops accepting requests,
    lets in-flight ones finish and runs the app's lifespan shutdown.

    Args:
        app: The ASGI application to serve.
        host: Bind address (default: loopback only).
        port: HTTP server port (default: 3333).
        log_level: uvicorn log level (default: "info").
        on_exit: Called synchronously when an exit signal arrives.

    Example:
        from cypress_mcp.http import create_app, run_http
        from cypress_mcp.tools import ToolRegistry

        registry = ToolRegistry(".")
        app = create_app(registry, token=token)
        await run_http(app, port=Port(3333), on_exit=registry.runner.terminate_active)
    """
    config = uvicorn.Config(
        app,  # type: ignore[arg-type]
        host=host,
        port=port,
        log_level=log_level,
        access_log=False,
        # Logging is configured by the CLI; keep uvicorn from replacing it
        log_config=None,
    )
    server = ExitHookServer(config, on_exit=on_exit)

    logger.info("Starting HTTP server on %s:%s (POST /mcp)", host, port)

    try:
        await server.serve()
    except Exception:
        logger.exception("HTTP server error")
        raise
    finally:
        logger.info("HTTP server shutdown complete")
