from __future__ import annotations

import asyncio
import mimetypes
import shutil
from datetime import UTC, datetime, timedelta
from pathlib import Path

import questionary
from rich.console import Console
from rich.table import Table

from filestore.settings import settings
from filestore.storage.base import FileStore
from filestore.storage.errors import StorageError
from filestore.storage.factory import get_storage

console = Console()

MAX_URL_EXPIRY_HOURS = 24


def main_menu() -> None:
    store = get_storage()

    console.print()
    console.print(f"[bold]File Storage[/bold] ({store.backend_name})", style="cyan")
    console.print()

    try:
        while True:
            choice = questionary.select(
                "Main Menu",
                choices=[
                    "Upload File",
                    "Download File",
                    "Check File",
                    "Get Access URL",
                    "Delete File",
                    "Exit",
                ],
            ).ask()

            if choice is None or choice == "Exit":
                console.print("[bold]Bye![/bold]")
                break
            elif choice == "Upload File":
                _upload_file(store)
            elif choice == "Download File":
                _download_file(store)
            elif choice == "Check File":
                _check_file(store)
            elif choice == "Get Access URL":
                _access_url(store)
            elif choice == "Delete File":
                _delete_file(store)
    finally:
        asyncio.run(store.close())


def _ask_key() -> str | None:
    key = questionary.text("File key:").ask()
    if not key:
        console.print("[yellow]Operation cancelled.[/yellow]")
        return None
    return key.strip()


def _upload_file(store: FileStore) -> None:
    console.print()
    console.print("[bold]Upload File[/bold]", style="cyan")

    source = questionary.path("File to upload:").ask()
    if not source:
        console.print("[yellow]Operation cancelled.[/yellow]")
        return

    path = Path(source).expanduser()
    if not path.is_file():
        console.print(f"[red]Not a file: {path}[/red]")
        return

    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    try:
        with path.open("rb") as f:
            key = asyncio.run(store.save(f, path.name, content_type))
    except StorageError as e:
        console.print(f"[red]{e.public_message}.[/red]")
        return

    table = Table(title="Stored File")
    table.add_column("Key", style="bold")
    table.add_column("Original Name")
    table.add_column("Size", justify="right")
    table.add_column("Content Type")
    table.add_row(key, path.name, str(path.stat().st_size), content_type)
    console.print(table)


def _download_file(store: FileStore) -> None:
    key = _ask_key()
    if key is None:
        return

    destination = questionary.path("Save to:", default=key).ask()
    if not destination:
        console.print("[yellow]Operation cancelled.[/yellow]")
        return

    try:
        stream = asyncio.run(store.retrieve(key))
    except StorageError as e:
        console.print(f"[red]{e.public_message}.[/red]")
        return

    with stream, open(destination, "wb") as out:
        shutil.copyfileobj(stream, out)
    console.print(f"[green bold]Saved to {destination}[/green bold]")


def _check_file(store: FileStore) -> None:
    key = _ask_key()
    if key is None:
        return

    try:
        found = asyncio.run(store.exists(key))
    except StorageError as e:
        console.print(f"[red]{e.public_message}.[/red]")
        return

    if found:
        console.print(f"[green]'{key}' exists.[/green]")
    else:
        console.print(f"[yellow]'{key}' not found.[/yellow]")


def _access_url(store: FileStore) -> None:
    key = _ask_key()
    if key is None:
        return

    default_hours = max(1, settings.default_url_expiry // 3600)
    answer = questionary.text("Valid for (hours):", default=str(default_hours)).ask()
    if answer is None:
        console.print("[yellow]Operation cancelled.[/yellow]")
        return
    try:
        hours = int(answer)
    except ValueError:
        console.print("[red]Expiry must be a whole number of hours.[/red]")
        return
    if not 1 <= hours <= MAX_URL_EXPIRY_HOURS:
        console.print(f"[red]Expiry hours must be between 1 and {MAX_URL_EXPIRY_HOURS}.[/red]")
        return

    expiry = timedelta(hours=hours)
    try:
        url = asyncio.run(store.get_access_url(key, expiry))
    except StorageError as e:
        console.print(f"[red]{e.public_message}.[/red]")
        return

    expires_at = datetime.now(UTC) + expiry
    console.print(url, soft_wrap=True)
    console.print(f"[dim]Expires at {expires_at:%Y-%m-%d %H:%M} UTC[/dim]")


def _delete_file(store: FileStore) -> None:
    key = _ask_key()
    if key is None:
        return

    if not questionary.confirm(f"Delete '{key}'?", default=False).ask():
        console.print("[yellow]Operation cancelled.[/yellow]")
        return

    try:
        deleted = asyncio.run(store.delete(key))
    except StorageError as e:
        console.print(f"[red]{e.public_message}.[/red]")
        return

    if deleted:
        console.print(f"[green bold]'{key}' deleted.[/green bold]")
    else:
        console.print(f"[yellow]'{key}' not found.[/yellow]")
