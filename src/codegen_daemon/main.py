"""Main CLI entry point for the OpenAPI code-generation daemon.

This module provides the command-line interface for running the daemon and
for searching, syncing and inspecting it from a terminal.
"""

import asyncio
import json
import sys
import traceback
from typing import Any, Dict, Optional

import aiohttp
import click

from . import __version__
from .config.exceptions import ConfigurationError
from .config.logging import configure_logging, get_logger
from .config.settings import Settings
from .server.exceptions import DaemonError
from .server.registry import DaemonInstance, DaemonRegistry

logger = get_logger(__name__)


class CLIError(Exception):
    """Base CLI error with user-friendly messages."""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)


def handle_cli_error(error: Exception, ctx: Optional[click.Context] = None):
    """Report an error in a user-friendly way and exit non-zero."""
    if isinstance(error, CLIError):
        click.echo(f"Error: {error.message}", err=True)
        if error.suggestion:
            click.echo(f"Suggestion: {error.suggestion}", err=True)
    elif isinstance(error, (ConfigurationError, DaemonError)):
        click.echo(f"Error: {error}", err=True)
    else:
        click.echo(f"Unexpected error: {error}", err=True)
        if ctx and ctx.obj and ctx.obj.get("verbose"):
            click.echo(traceback.format_exc(), err=True)
        else:
            click.echo("Run with --verbose for detailed error information", err=True)

    sys.exit(1)


def _discover(settings: Settings) -> DaemonInstance:
    instance = DaemonRegistry(settings.get_data_dir()).discover()
    if instance is None:
        raise CLIError(
            "No metadata found.",
            "Start the daemon with: codegen-daemon serve",
        )
    return instance


async def _call_daemon(
    instance: DaemonInstance,
    method: str,
    path: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: float = 30.0,
) -> Any:
    """Send one request to the daemon and decode its JSON body."""
    params = {k: str(v) for k, v in (params or {}).items() if v is not None}
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.request(
                method, f"{instance.url}{path}", params=params
            ) as response:
                body = await response.json(content_type=None)
                if response.status >= 400:
                    error = (body or {}).get("error", {})
                    raise CLIError(error.get("message") or f"HTTP {response.status}")
                return body
    except aiohttp.ClientConnectionError as e:
        raise CLIError(
            f"Cannot connect to daemon at {instance.url}: {e}",
            "Check that the daemon is running: codegen-daemon serve",
        ) from e
    except asyncio.TimeoutError as e:
        raise CLIError(f"Daemon at {instance.url} did not respond in time") from e


def _request(
    ctx: click.Context, method: str, path: str, params: Optional[Dict[str, Any]] = None
) -> Any:
    settings: Settings = ctx.obj["settings"]
    instance = _discover(settings)
    return asyncio.run(
        _call_daemon(
            instance, method, path, params, settings.server.request_timeout
        )
    )


@click.group()
@click.version_option(version=__version__, prog_name="codegen-daemon")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    help="Data directory holding specs and daemon.json",
)
@click.option(
    "--sources",
    "sources_file",
    type=click.Path(dir_okay=False),
    help="YAML file listing OpenAPI sources",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    data_dir: Optional[str],
    sources_file: Optional[str],
):
    """OpenAPI code-generation daemon.

    Keeps an in-memory search index over the operations and schemas of the
    configured OpenAPI sources and serves it over a local HTTP API.

    \b
    Examples:
      codegen-daemon serve
      codegen-daemon sync --source petstore
      codegen-daemon search "POST user"
      codegen-daemon stats
    """
    overrides: Dict[str, Any] = {}
    if data_dir:
        overrides["data_dir"] = data_dir
    if sources_file:
        overrides["sources_file"] = sources_file

    try:
        settings = Settings(**overrides)
    except ValueError as e:
        handle_cli_error(CLIError(f"Invalid configuration: {e}"), ctx)

    if verbose:
        settings.logging.level = "DEBUG"
    configure_logging(
        level=settings.logging.level,
        log_file=settings.logging.file_path,
        json_logs=settings.logging.json_format,
        enable_performance_logging=settings.logging.enable_performance,
    )

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--port", "-p", type=int, help="Port to listen on")
@click.option("--host", "-h", help="Host to bind to")
@click.pass_context
def serve(ctx: click.Context, port: Optional[int], host: Optional[str]):
    """Start the daemon in the foreground."""
    from .server.app import run_daemon

    settings: Settings = ctx.obj["settings"]
    if port is not None:
        settings.server.port = port
    if host is not None:
        settings.server.host = host

    try:
        run_daemon(settings)
    except KeyboardInterrupt:
        click.echo("\nDaemon stopped")
    except (ConfigurationError, DaemonError, OSError) as error:
        handle_cli_error(error, ctx)


@cli.command()
@click.argument("query", required=False, default="")
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--size", type=int, default=20, show_default=True)
@click.option("--type", "type_", type=click.Choice(["rest", "schema"]))
@click.option("--source", help="Only this source")
@click.option("--pkg", help="Only this tag path")
@click.option("--json", "as_json", is_flag=True, help="Print the raw page as JSON")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    page: int,
    size: int,
    type_: Optional[str],
    source: Optional[str],
    pkg: Optional[str],
    as_json: bool,
):
    """Search operations and schemas of the running daemon."""
    try:
        result = _request(
            ctx,
            "GET",
            "/api/data/search",
            {
                "query": query,
                "page": page,
                "size": size,
                "type": type_,
                "source": source,
                "pkg": pkg,
            },
        )
    except CLIError as error:
        handle_cli_error(error, ctx)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    if not result["data"]:
        click.echo("No results.")
        return

    for item in result["data"]:
        click.echo(_format_descriptor(item))
    click.echo(
        f"\nPage {result['page']}/{max(result['totalPages'], 1)} "
        f"({result['total']} results)"
    )


def _format_descriptor(item: Dict[str, Any]) -> str:
    data = item.get("data", {})
    if item.get("type") == "rest":
        method = str(data.get("method", "")).upper()
        return f"{method:<7} {data.get('requestUrl', ''):<40} {item['name']}  [{item['source']}]  {item['id']}"
    return f"{'SCHEMA':<7} {item['name']:<40} [{item['source']}]  {item['id']}"


@cli.command()
@click.option("--source", "source_id", help="Sync only this source")
@click.pass_context
def sync(ctx: click.Context, source_id: Optional[str]):
    """Fetch sources again and rebuild the index."""
    try:
        result = _request(ctx, "POST", "/api/operations/sync", {"id": source_id})
    except CLIError as error:
        handle_cli_error(error, ctx)

    click.echo(
        f"Sync {result['key']} {result['status']}: "
        f"{len(result.get('synced', []))} synced, "
        f"{result.get('descriptors', 0)} descriptors"
    )
    for failed_id, reason in result.get("failed", {}).items():
        click.echo(f"  failed {failed_id}: {reason}", err=True)


@cli.command()
@click.option("--source", help="Restrict counts to one source")
@click.pass_context
def stats(ctx: click.Context, source: Optional[str]):
    """Show catalog and usage counts."""
    try:
        result = _request(ctx, "GET", "/api/data/data-stats", {"source": source})
    except CLIError as error:
        handle_cli_error(error, ctx)

    rows = [
        ("Sources", result["sourceCount"], result["usedSourceCount"]),
        ("Endpoints", result["endpointCount"], result["usedEndpointCount"]),
        ("Data types", result["dataTypeCount"], result["usedDataTypeCount"]),
        ("Controllers", result["controllerCount"], result["usedControllerCount"]),
    ]
    click.echo(f"{'':<12} {'total':>7} {'used':>7}")
    for label, total, used in rows:
        click.echo(f"{label:<12} {total:>7} {used:>7}")


if __name__ == "__main__":
    cli()
