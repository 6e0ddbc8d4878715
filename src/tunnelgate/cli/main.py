"""
tunnelgate CLI entry point.

Usage:
    tunnelgate [OPTIONS] COMMAND [ARGS]...

Commands:
    serve    Run the CONNECT tunnel proxy
    version  Show version information
"""

import asyncio
from typing import Annotated

import typer

from tunnelgate.cli.output import console, print_error
from tunnelgate.config import config
from tunnelgate.models.enums import LogLevel

app = typer.Typer(
    name="tunnelgate",
    help="HTTP CONNECT tunnel proxy",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.command("serve")
def serve(
    bind: Annotated[
        str,
        typer.Option("--bind", "-b", help="Address to listen on", envvar="TUNNELGATE_BIND"),
    ] = config.BIND_IP,
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Port to listen on", envvar="TUNNELGATE_PORT"),
    ] = config.PORT,
    proxy_host: Annotated[
        str | None,
        typer.Option(
            "--proxy-host",
            help="Upstream proxy host (tunnels are chained through it)",
            envvar="TUNNELGATE_PROXY_HOST",
        ),
    ] = None,
    proxy_port: Annotated[
        str | None,
        typer.Option(
            "--proxy-port",
            help="Upstream proxy port, decimal or 0x-hex (default 80)",
            envvar="TUNNELGATE_PROXY_PORT",
        ),
    ] = None,
    auth: Annotated[
        str | None,
        typer.Option(
            "--auth",
            help="Proxy-Authorization value sent to the upstream proxy",
            envvar="TUNNELGATE_PROXY_AUTH",
        ),
    ] = None,
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", "-l", help="Log verbosity", envvar="TUNNELGATE_LOG_LEVEL"),
    ] = config.LOG_LEVEL,
    log_file: Annotated[
        str | None,
        typer.Option("--log-file", help="Also write logs to this file", envvar="TUNNELGATE_LOG_FILE"),
    ] = None,
):
    """Run the CONNECT tunnel proxy."""
    from tunnelgate.server.app import start_server
    from tunnelgate.utils.logger import configure_logging

    config.BIND_IP = bind
    config.PORT = port
    config.PROXY_HOST = proxy_host or ""
    config.PROXY_PORT = proxy_port or ""
    config.PROXY_AUTH = auth or ""
    config.LOG_LEVEL = log_level
    config.LOG_FILE = log_file or ""

    configure_logging(config.LOG_LEVEL, config.LOG_FILE)

    tunnel_config = config.get_tunnel_config()
    if tunnel_config.is_chained:
        console.print(
            f"[dim]Chaining tunnels through "
            f"{tunnel_config.proxy_host}:{tunnel_config.proxy_port}[/dim]"
        )

    try:
        asyncio.run(start_server(config))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
    except OSError as e:
        print_error(f"Cannot listen on {config.BIND_IP}:{config.PORT}: {e}")
        raise typer.Exit(1)


@app.command("version")
def version():
    """Show version information."""
    from tunnelgate import __version__

    console.print(f"tunnelgate v{__version__}")


def run():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
