"""CLI commands for clawx.

Entry point for running the gateway core without the desktop UI: inspect the
gateway endpoint, supervise it in the foreground, or issue one-off RPC calls.
"""

from __future__ import annotations

import asyncio
import json
import signal
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from clawx import __logo__, __version__
from clawx.cli.shared.logging_utils import configure_console_logging, ensure_rotating_log_file
from clawx.cli.shared.value_utils import parse_value
from clawx.config.access import get_config
from clawx.config.loader import get_config_path
from clawx.config.schema import Config
from clawx.gateway.manager import GatewayManager
from clawx.gateway.probe import BackendProbe
from clawx.shell import DesktopShell
from clawx.utils.exceptions import describe_error

app = typer.Typer(
    name="clawx",
    help=f"{__logo__} clawx - OpenClaw gateway desktop core",
    no_args_is_help=True,
)
gateway_app = typer.Typer(help="Supervise and talk to the OpenClaw gateway")
app.add_typer(gateway_app, name="gateway")

console = Console()


def _load(port: int | None, verbose: bool) -> Config:
    config = get_config().model_copy(deep=True)
    if port is not None:
        config.gateway.port = port
    level = "DEBUG" if verbose else config.logging.level
    configure_console_logging(level)
    if config.logging.file_enabled:
        ensure_rotating_log_file("gateway", level=level)
    return config


@app.command("version")
def version() -> None:
    """Show clawx version."""
    console.print(f"{__logo__} clawx v{__version__}")


@gateway_app.command("status")
def gateway_status(
    port: int = typer.Option(None, "--port", "-p", help="Gateway port (default from config)"),
    timeout: float = typer.Option(2.0, "--timeout", help="Health probe timeout in seconds"),
) -> None:
    """Probe the gateway health endpoint."""
    config = _load(port, verbose=False)
    gw = config.gateway
    probe = BackendProbe(health_path=gw.health_path, timeout=timeout)
    healthy = asyncio.run(probe.probe(gw.base_url))

    table = Table(title="Gateway")
    table.add_column("Check", style="cyan")
    table.add_column("Value")
    table.add_row("config", str(get_config_path()))
    table.add_row("health", probe.health_url(gw.base_url))
    table.add_row("socket", gw.ws_url)
    table.add_row("reachable", "[green]yes[/green]" if healthy else "[red]no[/red]")
    console.print(table)
    if not healthy:
        raise typer.Exit(1)


@gateway_app.command("run")
def gateway_run(
    port: int = typer.Option(None, "--port", "-p", help="Gateway port (default from config)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Start (or adopt) the gateway and keep it supervised until Ctrl-C."""
    config = _load(port, verbose)
    console.print(f"{__logo__} Supervising gateway on port {config.gateway.port}")
    asyncio.run(_supervise(config))


def _print_event(channel: str, payload: Any) -> None:
    if channel == "gateway:status-changed":
        state = payload.get("state", "?")
        detail = f" ({payload['error']})" if payload.get("error") else ""
        console.print(f"[cyan]status[/cyan] {state}{detail}")
    elif channel == "gateway:error":
        console.print(f"[red]error[/red] {payload}")
    elif channel == "gateway:exit":
        console.print(f"[yellow]exit[/yellow] code={payload}")
    else:
        console.print(f"[dim]{channel}[/dim] {json.dumps(payload, ensure_ascii=False)}")


async def _supervise(config: Config) -> None:
    shell = DesktopShell(config, _print_event)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            pass
    await shell.initialize()
    try:
        await stop.wait()
    finally:
        console.print("Shutting down...")
        await shell.dispose()


@gateway_app.command("call")
def gateway_call(
    method: str = typer.Argument(..., help="RPC method, e.g. skills.list"),
    params: str = typer.Option("", "--params", help="JSON params"),
    timeout: float = typer.Option(30.0, "--timeout", help="RPC timeout in seconds"),
    port: int = typer.Option(None, "--port", "-p", help="Gateway port (default from config)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Call one gateway RPC method and print the result."""
    config = _load(port, verbose)
    try:
        result = asyncio.run(_call_once(config, method, parse_value(params), timeout))
    except Exception as e:
        console.print(f"[red]Error:[/red] {describe_error(e)}")
        raise typer.Exit(1)
    console.print(json.dumps(result, indent=2, ensure_ascii=False))


async def _call_once(config: Config, method: str, params: Any, timeout: float) -> Any:
    manager = GatewayManager(config.gateway)
    try:
        await manager.start()
        return await manager.rpc(method, params, timeout=timeout)
    finally:
        await manager.stop()


if __name__ == "__main__":
    app()
