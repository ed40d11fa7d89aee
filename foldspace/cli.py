import click
import httpx
from rich.console import Console

from foldspace.config import Config
from foldspace.formatting import format_annotations
from foldspace.logging import uvicorn_log_config
from foldspace.models import Annotation

console = Console()

CLIENT_TIMEOUT = 2.0


def _base_url(config: Config) -> str:
    return f"http://{config.host}:{config.port}"


@click.group(invoke_without_command=True)
@click.pass_context
def main(ctx):
    """foldspace - annotation console for agent sessions"""
    try:
        ctx.ensure_object(dict)
        ctx.obj["config"] = Config()
    except ValueError as e:
        ctx.obj["config_error"] = str(e)

    if ctx.invoked_subcommand is None:
        console.print("[bold]foldspace[/bold] - annotation console for agent sessions\n")
        console.print("Run [cyan]foldspace serve[/cyan] to start the server.")
        console.print("\nUse [cyan]foldspace --help[/cyan] for all commands.")


def _config(ctx) -> Config:
    if "config_error" in ctx.obj:
        console.print(f"[red]Error:[/red] {ctx.obj['config_error']}")
        raise SystemExit(1)
    return ctx.obj["config"]


@main.command()
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_context
def serve(ctx, host: str | None, port: int | None, reload: bool):
    """Start the Foldspace Console server."""
    config = _config(ctx)
    host = host or config.host
    port = port or config.port

    import uvicorn

    console.print(f"[bold]foldspace server[/bold] starting on http://{host}:{port}")
    console.print(f"[dim]WebSocket on ws://{host}:{port}/ws[/dim]")
    console.print("[dim]Press Ctrl+C to stop[/dim]")
    console.print()

    uvicorn.run(
        "foldspace.server.app:app",
        host=host,
        port=port,
        reload=reload,
        log_config=uvicorn_log_config(config.log_level),
    )


@main.command()
@click.pass_context
def status(ctx):
    """Probe a running server."""
    config = _config(ctx)
    url = _base_url(config)
    try:
        data = httpx.get(f"{url}/api/health", timeout=CLIENT_TIMEOUT).json()
    except (httpx.HTTPError, ValueError):
        console.print(f"[red]Not running[/red] at {url}")
        raise SystemExit(1)

    console.print(f"[bold]foldspace[/bold] at [cyan]{url}[/cyan]")
    console.print(f"Sessions: {data.get('sessions', 0)}")
    console.print(f"Observers: {data.get('clients', 0)}")


@main.command()
@click.argument("session_id")
@click.pass_context
def inject(ctx, session_id: str):
    """Drain a session's annotations and print them as prompt context."""
    config = _config(ctx)
    try:
        response = httpx.post(
            f"{_base_url(config)}/api/annotations/drain",
            json={"sessionId": session_id},
            timeout=CLIENT_TIMEOUT,
        )
        response.raise_for_status()
        pending = [Annotation.model_validate(a) for a in response.json().get("annotations", [])]
    except (httpx.HTTPError, ValueError):
        # No server, no annotations: the next turn proceeds untouched
        return

    text = format_annotations(pending)
    if text:
        click.echo(text)


if __name__ == "__main__":
    main()
