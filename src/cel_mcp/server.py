"""MCP transports for the evaluate tool.

Both transports share one ``CelTool`` backed by one ``ActorPool``; they only
differ in how MCP messages reach it.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import FastAPI
from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError as McpToolError
from pydantic import Field
from uvicorn import Config, Server

from cel_mcp import __version__
from cel_mcp.config.settings import ServerSettings
from cel_mcp.errors import ToolError
from cel_mcp.service.pool import ActorPool
from cel_mcp.tool import TOOL_DESCRIPTION, TOOL_NAME, CelTool, EvaluateParams, EvaluateResult

SERVER_NAME = "cel-mcp"
INSTRUCTIONS = "This server provides a single tool to evaluate Common Expression Language (CEL) expressions."


def create_server(tool: CelTool, settings: ServerSettings) -> FastMCP:
    """Build a FastMCP server exposing ``tool`` as ``evaluate``."""
    server = FastMCP(
        SERVER_NAME,
        instructions=INSTRUCTIONS,
        host=settings.host,
        port=settings.port,
        streamable_http_path=settings.path,
        stateless_http=True,
        json_response=True,
    )

    @server.tool(name=TOOL_NAME, description=TOOL_DESCRIPTION, structured_output=True)
    async def evaluate(
        expression: Annotated[str, Field(description="CEL expression to evaluate.")],
        context: Annotated[dict[str, Any], Field(description="Variables visible to the expression.")],
    ) -> EvaluateResult:
        try:
            return await tool.evaluate(EvaluateParams(expression=expression, context=context))
        except ToolError as exc:
            raise McpToolError(exc.message) from exc

    return server


def build_pool(settings: ServerSettings) -> ActorPool:
    return ActorPool(settings.workers, queue_size=settings.queue_size, cache_size=settings.cache_size)


def create_http_app(settings: ServerSettings, pool: ActorPool | None = None) -> FastAPI:
    """Build the HTTP application: MCP at ``settings.path`` plus ``/health``.

    The pool is started and drained by the application lifespan.
    """
    pool = pool or build_pool(settings)
    mcp_server = create_server(CelTool(pool), settings)
    mcp_app = mcp_server.streamable_http_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("http.start path={} workers={}", settings.path, settings.workers)
        async with pool.running(), mcp_server.session_manager.run():
            yield
        logger.info("http.stop")

    app = FastAPI(
        title="CEL MCP Server",
        description=INSTRUCTIONS,
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health():
        return {"status": "ok" if pool.accepting else "unavailable"}

    app.mount("/", mcp_app)
    return app


async def serve_stdio(settings: ServerSettings) -> None:
    pool = build_pool(settings)
    server = create_server(CelTool(pool), settings)
    logger.info("stdio.start workers={} queue_size={}", settings.workers, settings.queue_size)
    async with pool.running():
        await server.run_stdio_async()
    logger.info("stdio.stop")


async def serve_http(settings: ServerSettings) -> None:
    app = create_http_app(settings)
    config = Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level="info",
    )
    logger.info("http.serve url=http://{}{}", settings.listen_address, settings.path)
    await Server(config).serve()


__all__ = [
    "INSTRUCTIONS",
    "SERVER_NAME",
    "build_pool",
    "create_http_app",
    "create_server",
    "serve_http",
    "serve_stdio",
]
