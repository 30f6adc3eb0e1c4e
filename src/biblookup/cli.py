"""Command-line interface for biblookup."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import httpx
import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from biblookup.errors import ConfigurationError, InvalidRequestError, LookupServiceError
from biblookup.logs import configure_logging
from biblookup.records.lookup import LookupItem
from biblookup.services import (
    AwsS3Service,
    ChannelStatus,
    IaDownloadService,
    LookupEnvelope,
    LookupRequest,
    LookupResult,
    LookupService,
)
from biblookup.services.ia_download import safe_filename
from biblookup.settings import Settings, get_settings

console = Console()
app = typer.Typer(help="biblookup - bibliographic metadata lookup")

STATUS_STYLES = {
    ChannelStatus.STARTING: "cyan",
    ChannelStatus.PARTIAL: "blue",
    ChannelStatus.COMPLETE: "green",
    ChannelStatus.ERROR: "red",
    ChannelStatus.STEP: "dim",
}


def build_lookup_service(client: httpx.AsyncClient, settings: Settings) -> LookupService:
    return LookupService.from_settings(client, settings)


class ConsoleChannel:
    """Prints envelopes as they arrive, as JSON lines or a short summary."""

    def __init__(self, json_output: bool = False) -> None:
        self.json_output = json_output

    async def send(self, envelope: LookupEnvelope) -> None:
        if self.json_output:
            typer.echo(json.dumps(envelope.to_payload()))
            return
        style = STATUS_STYLES[envelope.status]
        service = envelope.service if isinstance(envelope.service, str) else ", ".join(envelope.service or [])
        line = f"[{style}]{envelope.status.value}[/{style}] {service}"
        if envelope.status is ChannelStatus.PARTIAL:
            state = (envelope.data or {}).get("status")
            line += f" {state} ({envelope.count or 0} items, {envelope.duration or 0:.2f}s)"
        elif envelope.discard:
            line += " [yellow](late providers discarded)[/yellow]"
        console.print(line)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override BIBLOOKUP_LOG_LEVEL"),
) -> None:
    """Look up bibliographic metadata across several providers."""
    configure_logging(log_level or Settings.load().log_level)


@app.command()
def lookup(
    terms: list[str] = typer.Argument(..., help="Identifiers or prefixed search terms, e.g. isbn:9780... title:Dune"),
    service: Optional[list[str]] = typer.Option(None, "--service", "-s", help="Only query these services"),
    timeout: Optional[float] = typer.Option(None, help="Overall lookup deadline in seconds"),
    json_output: bool = typer.Option(False, "--json", help="Print envelopes as JSON lines"),
) -> None:
    """Query the enabled providers and print the merged results."""

    async def runner() -> LookupResult:
        settings = get_settings()
        request = LookupRequest.from_terms(terms, timeout=timeout, services=service)
        async with httpx.AsyncClient() as client:
            lookup_service = build_lookup_service(client, settings)
            return await lookup_service.lookup(request, channel=ConsoleChannel(json_output))

    try:
        result = asyncio.run(runner())
    except (InvalidRequestError, ConfigurationError) as exc:
        if not json_output:
            console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    if not json_output:
        _print_items(result)


def _print_items(result: LookupResult) -> None:
    items: list[tuple[str, LookupItem]] = [
        (key, item) for key, entries in result.data.items.items() for item in entries
    ]
    if not items:
        console.print("[yellow]No matches.")
        return
    table = Table(title="Lookup Results")
    table.add_column("Identifier")
    table.add_column("Title", overflow="fold")
    table.add_column("Creators", overflow="fold")
    table.add_column("Date")
    for key, item in items:
        table.add_row(
            key,
            item.dc_title or "—",
            "; ".join(item.dc_creator) or "—",
            item.emma_publication_date or item.dcterms_date_copyright or "—",
        )
    console.print(table)


@app.command()
def config(
    json_output: bool = typer.Option(False, "--json", help="Output settings as JSON"),
) -> None:
    """Display the resolved settings."""
    settings = get_settings()
    if json_output:
        typer.echo(settings.model_dump_json(indent=2))
        return
    table = Table(title="biblookup Settings")
    table.add_column("Key")
    table.add_column("Value", overflow="fold")
    for key, value in settings.model_dump(exclude={"services"}).items():
        table.add_row(key, str(value))
    console.print(table)
    services = Table(title="Services")
    for column in ("Name", "Enabled", "Priority", "Timeout", "Types", "Base URL"):
        services.add_column(column)
    for name, entry in settings.services.items():
        services.add_row(
            name,
            "yes" if entry.enabled else "no",
            str(entry.priority),
            f"{entry.timeout:g}",
            ", ".join(entry.types) or "—",
            entry.base_url,
        )
    console.print(services)


@app.command()
def probe(url: str = typer.Argument(..., help="Archive download URL or path")) -> None:
    """Ask the Internet Archive whether a generated file is ready."""

    async def runner():
        settings = get_settings()
        async with httpx.AsyncClient() as client:
            return await IaDownloadService(client, settings).probe(url)

    result = asyncio.run(runner())
    if result.ready:
        console.print(f"[green]Ready[/green] (HTTP {result.status})")
    elif result.waiting:
        console.print(f"[yellow]Waiting[/yellow]: {result.message or 'file is being generated'}")
    else:
        console.print(f"[red]Error[/red] (HTTP {result.status}): {result.message or 'unavailable'}")
        raise typer.Exit(code=1)


@app.command()
def download(
    url: str = typer.Argument(..., help="Archive download URL or path"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Target directory"),
    attempts: int = typer.Option(10, help="Probe attempts before giving up"),
    interval: float = typer.Option(3.0, help="Seconds between probes"),
) -> None:
    """Probe until an Internet Archive file is ready, then save it."""

    async def runner() -> Path:
        settings = get_settings()
        async with httpx.AsyncClient() as client:
            service = IaDownloadService(client, settings)
            downloaded = await service.retrieve(url, attempts=attempts, interval=interval)
        return downloaded.save(output or settings.data_dir)

    try:
        target = asyncio.run(runner())
    except LookupServiceError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Saved[/green]: {target}")


@app.command()
def s3(
    item: str = typer.Argument(..., help="s3://bucket/key, an S3 URL, or a key in the default bucket"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Target directory"),
) -> None:
    """Fetch an object from S3 and save it."""

    async def runner():
        settings = get_settings()
        return settings, await AwsS3Service(settings).fetch(item)

    try:
        settings, message = asyncio.run(runner())
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    if not message.ok:
        console.print(f"[red]{message.exception}[/red]")
        raise typer.Exit(code=1)
    directory = output or settings.data_dir
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / safe_filename(message.filename, safe_filename(message.key, "download"))
    target.write_bytes(message.body)
    console.print(f"[green]Saved[/green]: {target} ({len(message.body)} bytes)")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Launch the WebSocket lookup server."""
    uvicorn.run(
        "biblookup.web.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


if __name__ == "__main__":  # pragma: no cover
    app()
