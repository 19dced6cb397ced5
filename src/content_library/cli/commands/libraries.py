"""CLI commands for authoring libraries and pushing them to organizations."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from content_library.cli.commands import library as library_command
from content_library.cli.commands.library import _fail, _print_section_header
from content_library.core.exceptions import ContentLibraryError
from content_library.library.authoring import (
    build_bundle,
    delete_library,
    install_to_org,
    list_libraries,
    load_corpus,
    save_library,
)
from content_library.library.models import BundleSelection
from content_library.library.store import BackingStore
from content_library.ui.console import console

app = typer.Typer(help="Author libraries from your own content and push them to organizations.")


def _store() -> BackingStore:
    return library_command._build_store()


@app.callback(invoke_without_command=True)
def libraries_main(ctx: typer.Context) -> None:
    """Manage libraries you have authored."""
    if ctx.invoked_subcommand is None:
        libraries_list()


@app.command("list")
def libraries_list() -> None:
    """List libraries owned by the current consultant."""
    try:
        libraries = asyncio.run(list_libraries(_store()))
    except ContentLibraryError as exc:
        raise _fail("Failed to load libraries", exc) from exc

    _print_section_header("My Libraries", color="blue")
    if not libraries:
        console.print("[yellow]No libraries saved yet.[/yellow]")
        return

    table = Table(show_header=True, box=None)
    table.add_column("ID", style="dim", header_style="bold bright_white")
    table.add_column("Name", style="cyan", header_style="bold bright_white")
    table.add_column("Version", style="white", header_style="bold bright_white")
    table.add_column("Items", justify="right", header_style="bold bright_white")
    table.add_column("Updated", style="dim", header_style="bold bright_white")
    for library in libraries:
        table.add_row(
            escape(library.id),
            escape(library.name),
            f"v{library.version}" if library.version else "",
            str(library.content.total),
            library.updated_at or "",
        )
    console.print(table)


@app.command("save")
def libraries_save(
    name: Annotated[str, typer.Option("--name", "-n", help="Library name.")],
    description: Annotated[
        str,
        typer.Option("--description", "-d", help="Short description shown to installers."),
    ] = "",
    wiki: Annotated[
        list[str] | None,
        typer.Option("--wiki", help="Wiki entry id to include (repeatable)."),
    ] = None,
    play: Annotated[
        list[str] | None,
        typer.Option("--play", help="Play id to include (repeatable)."),
    ] = None,
    banner: Annotated[
        list[str] | None,
        typer.Option("--banner", help="Banner id to include (repeatable)."),
    ] = None,
    library_id: Annotated[
        str | None,
        typer.Option("--library-id", help="Update this library instead of creating a new one."),
    ] = None,
) -> None:
    """Bundle selected content into a new or existing library."""
    selection = BundleSelection(
        wiki_entries=frozenset(wiki or ()),
        plays=frozenset(play or ()),
        banners=frozenset(banner or ()),
    )
    if not (selection.wiki_entries or selection.plays or selection.banners):
        typer.echo("Please select at least one item to include", err=True)
        raise typer.Exit(1)

    try:
        store = _store()
        saved_id, total = asyncio.run(
            _save(store, name, description, selection, library_id)
        )
    except (ValueError, ContentLibraryError) as exc:
        raise _fail("Failed to save library", exc) from exc

    verb = "Updated" if library_id else "Saved"
    console.print(f"[green]{verb} library {escape(name.strip())}[/green] [dim]({saved_id})[/dim]")
    console.print(f"[dim]▎• items:[/dim] {total}")


async def _save(
    store: BackingStore,
    name: str,
    description: str,
    selection: BundleSelection,
    library_id: str | None,
) -> tuple[str, int]:
    corpus = await load_corpus(store)
    bundle = build_bundle(selection, corpus)
    if bundle.total == 0:
        raise ValueError("None of the selected items exist in this organization")
    saved_id = await save_library(store, name, description, bundle, library_id)
    return saved_id, bundle.total


@app.command("push")
def libraries_push(
    library_id: Annotated[str, typer.Argument(help="Library to install.")],
    organization_id: Annotated[str, typer.Argument(help="Target organization id.")],
) -> None:
    """Install a saved library into another organization."""
    try:
        counts = asyncio.run(install_to_org(_store(), library_id, organization_id))
    except ContentLibraryError as exc:
        raise _fail("Failed to install library", exc) from exc

    console.print(f"[green]Installed {counts.total} items into {escape(organization_id)}[/green]")
    console.print(
        f"[dim]▎• wiki entries:[/dim] {counts.wiki_entries}  "
        f"[dim]plays:[/dim] {counts.plays}  [dim]banners:[/dim] {counts.banners}"
    )


@app.command("delete")
def libraries_delete(
    library_id: Annotated[str, typer.Argument(help="Library to delete.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Delete without asking for confirmation."),
    ] = False,
) -> None:
    """Delete a saved library."""
    if not yes:
        typer.confirm(f"Delete library {library_id}?", abort=True)
    try:
        asyncio.run(delete_library(_store(), library_id))
    except ContentLibraryError as exc:
        raise _fail("Failed to delete library", exc) from exc
    console.print(f"[green]Deleted library {escape(library_id)}[/green]")
