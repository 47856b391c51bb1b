"""CLI entry point for the sisyphus upload client.

Provides commands:
  - upload: Upload one file to a tus endpoint in resumable chunks
  - fingerprint: Show the fingerprint and Upload-Metadata header for a file
  - config: Manage the upload auth token in the system keyring
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Optional

import keyring
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sisyphus.config import KEY_NAME, SERVICE_NAME

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Sisyphus - resumable chunked uploads over the tus protocol",
    rich_markup_mode="rich",
)
console = Console()

# Config command group
config_app = typer.Typer(help="Manage configuration (auth token)")
app.add_typer(config_app, name="config")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_intervals(raw: str) -> list[int]:
    """Parse ``"500,1000,2000"`` into milliseconds."""
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise typer.BadParameter(
            f"Expected comma-separated milliseconds, got {raw!r}"
        )


@app.command()
def upload(
    file: Annotated[
        Path,
        typer.Argument(help="File to upload", exists=True, dir_okay=False, readable=True),
    ],
    endpoint: Annotated[
        Optional[str],
        typer.Option("--endpoint", "-e", help="tus creation endpoint URL"),
    ] = None,
    chunk_size: Annotated[
        Optional[int],
        typer.Option("--chunk-size", "-c", help="Bytes per PATCH request"),
    ] = None,
    intervals: Annotated[
        Optional[str],
        typer.Option(
            "--intervals",
            "-i",
            help="Comma-separated retry delays in milliseconds, e.g. 500,1000,2000",
        ),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to upload_config.json"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Upload FILE to the tus endpoint, chunk by chunk, with retries.

    An auth token, if needed, is read from the system keyring
    (service: sisyphus-upload) or the SISYPHUS_TOKEN environment variable.
    """
    _configure_logging(verbose)

    # Upload modules are only needed by this command
    import asyncio

    from sisyphus.config import load_upload_config
    from sisyphus.upload.client import create_http_client
    from sisyphus.upload.exceptions import UploadError
    from sisyphus.upload.progress import UploadProgressTracker
    from sisyphus.upload.session import UploadSession

    try:
        config = load_upload_config(
            config_path,
            endpoint=endpoint,
            chunk_size=chunk_size,
            retry_intervals_ms=_parse_intervals(intervals) if intervals else None,
        )
    except UploadError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(
        Panel(
            f"Uploading [bold]{file.name}[/bold] to [bold]{config.endpoint}[/bold]\n"
            f"Chunk size: {config.chunk_size} bytes | "
            f"Retry intervals: {', '.join(str(ms) for ms in config.retry_intervals_ms) or 'none'} ms",
            title="Upload",
        )
    )

    progress = UploadProgressTracker(file.name, console=console)

    async def _run_upload() -> int:
        async with create_http_client(config) as client:
            session = UploadSession(
                client,
                config.endpoint,
                file,
                chunk_size=config.chunk_size,
                retry_intervals=config.retry_intervals,
                progress=progress,
            )
            with progress:
                return await session.run()

    try:
        final_offset = asyncio.run(_run_upload())
    except UploadError as e:
        console.print(f"[red]Upload failed:[/red] {e}")
        raise typer.Exit(code=1)

    # Print final summary
    stats = progress.stats
    summary_table = Table(title="Upload Summary")
    summary_table.add_column("Metric", style="bold")
    summary_table.add_column("Value", justify="right")

    summary_table.add_row("File", file.name)
    summary_table.add_row("Bytes accepted", f"[green]{final_offset}[/green]")
    summary_table.add_row("Chunks", str(stats["chunks"]))
    summary_table.add_row("Retries", f"[yellow]{stats['retries']}[/yellow]")

    console.print(Panel(summary_table, title="Upload Complete"))


@app.command()
def fingerprint(
    file: Annotated[
        Path,
        typer.Argument(help="File to fingerprint", exists=True, dir_okay=False),
    ],
) -> None:
    """Show the fingerprint and Upload-Metadata header sent for FILE."""
    from sisyphus.upload.exceptions import FileAccessError
    from sisyphus.upload.fingerprint import FingerprintGenerator

    generator = FingerprintGenerator()
    try:
        value = generator.fingerprint(file)
        header = generator.metadata_header(file)
    except FileAccessError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(show_header=False)
    table.add_column("Field", style="bold cyan", no_wrap=True)
    table.add_column("Value")
    table.add_row("Fingerprint", value)
    table.add_row("Upload-Metadata", header)
    console.print(table)


@config_app.command("set-token")
def set_token(
    token: Annotated[
        str,
        typer.Argument(help="Bearer token to store in system keyring"),
    ],
) -> None:
    """Store the upload auth token in the system keyring (service: sisyphus-upload)."""
    if not token or token.strip() == "":
        console.print("[red]Error:[/red] Token cannot be empty")
        raise typer.Exit(code=1)

    try:
        keyring.set_password(SERVICE_NAME, KEY_NAME, token)
        console.print(
            "[green]✓[/green] Token stored successfully in system keyring "
            f"(service: {SERVICE_NAME})"
        )
    except Exception as e:
        console.print(f"[red]Error:[/red] Failed to store token: {e}")
        raise typer.Exit(code=1)


@config_app.command("get-token")
def show_token() -> None:
    """Retrieve and display the stored auth token (masked)."""
    token = keyring.get_password(SERVICE_NAME, KEY_NAME)
    if not token:
        console.print(
            "[yellow]No token found in keyring.[/yellow]\n"
            "Set it with: [bold]sisyphus config set-token YOUR_TOKEN[/bold]"
        )
        raise typer.Exit(code=1)

    # Mask all but first 4 characters
    if len(token) > 4:
        masked = token[:4] + "*" * (len(token) - 4)
    else:
        masked = "*" * len(token)

    console.print(f"[green]Token:[/green] {masked}")
    console.print(f"[dim](stored in service: {SERVICE_NAME})[/dim]")


@config_app.command("remove-token")
def remove_token() -> None:
    """Delete the stored auth token from the system keyring."""
    try:
        existing = keyring.get_password(SERVICE_NAME, KEY_NAME)
        if not existing:
            console.print(
                "[yellow]Warning:[/yellow] No token found in keyring.\n"
                "Nothing to remove."
            )
            return

        keyring.delete_password(SERVICE_NAME, KEY_NAME)
        console.print(
            "[green]✓[/green] Token removed from system keyring "
            f"(service: {SERVICE_NAME})"
        )
    except Exception as e:
        console.print(f"[red]Error:[/red] Failed to remove token: {e}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
