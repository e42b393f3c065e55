"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from visubridge.core.command_mapper import load_mappings
from visubridge.core.config import DEFAULT_MAPPINGS_FILE, load_settings
from visubridge.core.errors import CredentialsRejectedError, VisuBridgeError
from visubridge.core.model import PAGE_MARKER, device_key
from visubridge.transports.http import SessionedTransport

app = typer.Typer(help="Command-and-state bridge for web-visualized home automation")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class FixedSessionLogin:
    """Authenticator for one-shot commands that run with a known session id."""

    async def login(self, username: str, password: str) -> str:
        raise CredentialsRejectedError("Session id was rejected; obtain a fresh one and pass --session-id")


@app.command("mappings")
def list_mappings(
    path: Path = typer.Argument(Path(DEFAULT_MAPPINGS_FILE), help="Mapping YAML file"),
) -> None:
    """List command mapping keys with their category."""
    try:
        mapper = load_mappings(path)
        if len(mapper) == 0:
            typer.echo("No command mappings loaded")
            raise typer.Exit(code=1)

        for key in mapper.keys():
            category = mapper.categories.get(key, "?")
            value = mapper.raw(key)
            typer.echo(f"{key} [{category}]: {value}")
    except VisuBridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("key")
def derive_key(device_id: str, page: str) -> None:
    """Print the composite device key for an element id and page."""
    typer.echo(device_key(device_id, page))


@app.command("command")
def show_command(
    key: str,
    page: str | None = typer.Option(None, "--page", help="Page number when KEY is a bare element id"),
    mappings: Path = typer.Option(Path(DEFAULT_MAPPINGS_FILE), "--mappings", help="Mapping YAML file"),
) -> None:
    """Show the control string(s) mapped to a device key."""
    if page is None and PAGE_MARKER not in key:
        typer.echo(f"Error: '{key}' is not a device key; pass --page or use ID{PAGE_MARKER}NN", err=True)
        raise typer.Exit(code=1)
    full_key = device_key(key, page or "")
    try:
        mapper = load_mappings(mappings)
        cover = mapper.get_cover_commands(full_key, "")
        if cover is not None:
            typer.echo(f"{full_key}: up={cover.up} stop={cover.stop} down={cover.down}")
            return
        if mapper.is_read_only(full_key, ""):
            typer.echo(f"{full_key}: read-only")
            return
        command = mapper.get_command(full_key, "")
        if command is None:
            typer.echo(f"Error: No command mapping found for device: {full_key}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"{full_key}: {command}")
    except VisuBridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("send")
def send_control(
    control: str,
    session_id: str = typer.Option(..., "--session-id", help="Current vendor session id"),
) -> None:
    """Send one raw control string with a known session id."""
    try:
        settings = load_settings()

        async def _send() -> None:
            async with SessionedTransport.from_settings(settings, FixedSessionLogin()) as transport:
                transport.set_token(session_id)
                await transport.send_command(control)

        asyncio.run(_send())
        typer.echo(f"Sent {control}")
    except VisuBridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
