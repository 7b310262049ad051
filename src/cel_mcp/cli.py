"""Typer CLI entrypoints."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Annotated, Any

import rich
import typer
from loguru import logger

from cel_mcp.config.settings import ServerSettings, load_settings, parse_listen_address
from cel_mcp.errors import ToolError
from cel_mcp.logging_utils import configure_logging
from cel_mcp.server import serve_http, serve_stdio
from cel_mcp.service.pool import ActorPool
from cel_mcp.tool import CelTool, EvaluateParams

app = typer.Typer(name="cel-mcp", help="CEL expression evaluation over MCP", add_completion=False)
TRANSPORT_CONFLICT_ERROR = "--stdio and --http are mutually exclusive"
CONTEXT_CONFLICT_ERROR = "--context and --context-file are mutually exclusive"


@app.command()
def serve(
    stdio: Annotated[bool, typer.Option("--stdio", help="Serve over stdio (default unless --http is given).")] = False,
    http: Annotated[
        str | None,
        typer.Option("--http", help="Serve streamable HTTP on HOST:PORT, e.g. 127.0.0.1:1234."),
    ] = None,
    path: Annotated[str | None, typer.Option("--path", help="HTTP mount path for the MCP endpoint.")] = None,
    queue_size: Annotated[int | None, typer.Option("--queue-size", min=1)] = None,
    workers: Annotated[int | None, typer.Option("--workers", min=1, help="Number of evaluation actors.")] = None,
    cache_size: Annotated[int | None, typer.Option("--cache-size", min=0)] = None,
) -> None:
    """Run the MCP server."""
    if stdio and http:
        raise typer.BadParameter(TRANSPORT_CONFLICT_ERROR)

    overrides: dict[str, Any] = {
        "path": path,
        "queue_size": queue_size,
        "workers": workers,
        "cache_size": cache_size,
    }
    if http:
        try:
            host, port = parse_listen_address(http)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--http") from exc
        overrides.update(transport="http", host=host, port=port)
    elif stdio:
        overrides["transport"] = "stdio"

    configure_logging()
    settings = load_settings(**overrides)
    logger.info(
        "serve.start transport={} workers={} queue_size={} cache_size={}",
        settings.transport,
        settings.workers,
        settings.queue_size,
        settings.cache_size,
    )
    try:
        asyncio.run(_serve(settings))
    except KeyboardInterrupt:
        logger.info("serve.interrupted")
    except Exception:
        logger.exception("serve.crash")
        raise
    finally:
        logger.info("serve.stop transport={}", settings.transport)


async def _serve(settings: ServerSettings) -> None:
    if settings.transport == "http":
        await serve_http(settings)
    else:
        await serve_stdio(settings)


@app.command("eval")
def eval_command(
    expression: Annotated[str, typer.Argument(help="CEL expression to evaluate.")],
    context: Annotated[str | None, typer.Option("--context", "-c", help="Context as a JSON object.")] = None,
    context_file: Annotated[
        Path | None,
        typer.Option(
            "--context-file",
            "-f",
            exists=True,
            dir_okay=False,
            help="Read the context JSON object from a file.",
        ),
    ] = None,
) -> None:
    """Evaluate one expression locally and print the JSON result."""
    if context is not None and context_file is not None:
        raise typer.BadParameter(CONTEXT_CONFLICT_ERROR)

    configure_logging(profile="console")
    variables = _load_context(context, context_file)
    try:
        result = asyncio.run(_evaluate_once(expression, variables))
    except ToolError as exc:
        rich.print(f"[red]Error:[/red] {exc.message}", file=sys.stderr)
        raise typer.Exit(code=1) from exc
    typer.echo(result)


def _load_context(raw: str | None, path: Path | None) -> dict[str, Any]:
    if path is not None:
        try:
            raw = path.expanduser().read_text(encoding="utf-8")
        except OSError as exc:
            raise typer.BadParameter(f"cannot read context file: {exc}", param_hint="--context-file") from exc
    if raw is None:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"context is not valid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise typer.BadParameter("context must be a JSON object")
    return value


async def _evaluate_once(expression: str, context: dict[str, Any]) -> str:
    async with ActorPool(1, cache_size=0).running() as pool:
        result = await CelTool(pool).evaluate(EvaluateParams(expression=expression, context=context))
    return result.result


if __name__ == "__main__":
    app()
