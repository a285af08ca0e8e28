"""CLI for to-storage."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .api import upload_stream
from .config import load_settings
from .constants import DEFAULT_PATH_FORMAT
from .errors import ConcurrencyConflictError, ConfigError, InvalidArgumentError, ToStorageError
from .storage import make_blob_store
from .storage.base import BlobStore


app = typer.Typer(
    add_completion=False,
    help="""\
Upload standard input to blob storage as a timestamped snapshot and keep a
'latest' copy next to it. With --only-unique, nothing is uploaded when the
content matches the current latest.""",
)

console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    """Send package logs to stderr through rich."""
    logger = logging.getLogger("to_storage")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=console, show_time=False, show_path=False))


async def _upload(store: BlobStore, **kwargs):
    try:
        return await upload_stream(store, **kwargs)
    finally:
        await store.close()


@app.command()
def upload(
    connection_string: Optional[str] = typer.Option(
        None, "--connection-string", "-s",
        help="Azure Storage connection string (default: $AZURE_STORAGE_CONNECTION_STRING)",
    ),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Storage account name"),
    key: Optional[str] = typer.Option(None, "--key", "-k", help="Storage account key"),
    container: str = typer.Option(..., "--container", "-c", help="Target container"),
    path_format: str = typer.Option(
        DEFAULT_PATH_FORMAT, "--path-format", "-f",
        help="Blob path with one {0} slot for the timestamp or 'latest'",
    ),
    update_direct: bool = typer.Option(
        True, "--update-direct/--no-update-direct", "-d/-D",
        help="Write the timestamped blob",
    ),
    update_latest: bool = typer.Option(
        True, "--update-latest/--no-update-latest", "-l/-L",
        help="Update the latest blob",
    ),
    only_unique: bool = typer.Option(
        False, "--only-unique", "-u",
        help="Skip the upload when content matches the latest blob",
    ),
    content_type: Optional[str] = typer.Option(None, "--content-type", "-t", help="Content type to set"),
    provider: Optional[str] = typer.Option(None, "--provider", help="Storage provider: azure or fs"),
    fs_root: Optional[str] = typer.Option(None, "--fs-root", help="Base directory for the fs provider"),
    private: bool = typer.Option(False, "--private", help="Create missing containers without public access"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings file (YAML)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
):
    """Upload standard input to blob storage.

    Examples:
        cat report.json | to-storage -c reports -f "daily/{0}.json" -t application/json
        to-storage -c reports -f "daily/{0}.json" --only-unique < report.json
        to-storage -c site -f "{0}.html" --no-update-direct < index.html
    """
    _configure_logging(verbose)

    try:
        settings = load_settings(
            config,
            provider=provider,
            connection_string=connection_string,
            account_name=account,
            account_key=key,
            fs_root=fs_root,
        )
        if private:
            settings.public_access = None
        store = make_blob_store(settings)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]✗[/red] Cannot open storage: {escape(str(e))}")
        raise typer.Exit(1)

    stdin = typer.get_binary_stream("stdin")

    try:
        asyncio.run(_upload(
            store,
            stream=stdin,
            container=container,
            path_format=path_format,
            update_direct=update_direct,
            update_latest=update_latest,
            only_unique=only_unique,
            content_type=content_type,
            trace=sys.stdout,
            public_access=settings.public_access,
        ))
    except InvalidArgumentError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except ConcurrencyConflictError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        console.print("[dim]Hint: another upload wrote first; run the command again[/dim]")
        raise typer.Exit(1)
    except ToStorageError as e:
        console.print(f"[red]✗[/red] Upload failed: {escape(str(e))}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]✗[/red] Upload failed: {escape(str(e))}")
        raise typer.Exit(1)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
