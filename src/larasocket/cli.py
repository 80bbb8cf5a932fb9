"""Command-line interface for the Larasocket client.

Example:
    >>> # From terminal:
    >>> # larasocket --version
    >>> # LARASOCKET_TOKEN=... larasocket listen --channel orders
    >>> # LARASOCKET_TOKEN=... larasocket broadcast --event order.created --channels orders
"""

import asyncio
import json
import sys
from typing import Annotated, Optional

import typer

from larasocket import __version__
from larasocket.client import LarasocketClient
from larasocket.errors import LarasocketError
from larasocket.models.constants import DEFAULT_CLIENT_NAME
from larasocket.models.events import DisconnectionInfo, ReconnectionInfo
from larasocket.models.messages import ResponseMessage
from larasocket.observability import configure_logging

app = typer.Typer(help="Larasocket relay client CLI.")

ENV_TOKEN = "LARASOCKET_TOKEN"

# Global verbose flag
_verbose: bool = False


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show Larasocket client version and exit.",
    callback=_version_callback,
    is_eager=True,
)

TOKEN_OPTION = typer.Option(
    ...,
    "--token",
    "-t",
    envvar=ENV_TOKEN,
    help=f"Relay API token (default: ${ENV_TOKEN}).",
)


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Larasocket CLI entrypoint."""
    global _verbose
    _verbose = verbose
    # Logs go to stderr so stdout carries only command output
    configure_logging(log_level="DEBUG" if verbose else None, force=True, stream=sys.stderr)


async def _listen(
    token: str,
    channel: str,
    duration: Optional[float],
    name: str,
) -> None:
    async with LarasocketClient(token, name=name) as client:

        def on_message(message: ResponseMessage) -> None:
            typer.echo(str(message))

        def on_reconnection(info: ReconnectionInfo) -> None:
            if _verbose:
                typer.echo(f"# connected ({info.type.value})", err=True)

        def on_disconnection(info: DisconnectionInfo) -> None:
            if _verbose:
                typer.echo(f"# disconnected ({info.type.value})", err=True)

        client.messages.subscribe(on_message)
        client.reconnections.subscribe(on_reconnection)
        client.disconnections.subscribe(on_disconnection)
        await client.subscribe_to_channel(channel)
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
            await client.stop()


@app.command("listen")
def listen(
    channel: Annotated[str, typer.Option(..., "--channel", "-c", help="Channel to subscribe to.")],
    token: str = TOKEN_OPTION,
    duration: Annotated[
        Optional[float],
        typer.Option("--duration", "-d", help="Stop after this many seconds (default: forever)."),
    ] = None,
    name: Annotated[
        str, typer.Option("--name", "-n", help="Client name used in log lines.")
    ] = DEFAULT_CLIENT_NAME,
) -> None:
    """Subscribe to a channel and print every inbound message."""
    if not channel.strip():
        raise typer.BadParameter("Channel must not be empty", param_hint="--channel")
    try:
        asyncio.run(_listen(token, channel.strip(), duration, name))
    except KeyboardInterrupt:
        raise typer.Exit(0) from None
    except LarasocketError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1) from e


async def _broadcast(token: str, event: str, channels: str, payload: str) -> dict[str, object]:
    client = LarasocketClient(token)
    try:
        result = await client.broadcast_message(event, channels, payload)
    finally:
        await client.dispose()
    return result.model_dump(exclude_none=True)


@app.command("broadcast")
def broadcast(
    event: Annotated[str, typer.Option(..., "--event", "-e", help="Event name.")],
    channels: Annotated[
        str, typer.Option(..., "--channels", "-c", help="Channel name(s), comma-separated.")
    ],
    payload: Annotated[str, typer.Option("--payload", "-p", help="Message payload.")] = "",
    token: str = TOKEN_OPTION,
) -> None:
    """Publish a message through the HTTP broadcast endpoint."""
    try:
        result = asyncio.run(_broadcast(token, event, channels, payload))
    except LarasocketError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1) from e
    typer.echo(json.dumps(result, indent=2))
    if not result.get("is_successful"):
        raise typer.Exit(1)


def main() -> None:
    """Run the Larasocket CLI."""
    app()


if __name__ == "__main__":
    main()
