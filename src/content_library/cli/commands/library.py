"""CLI commands for browsing, installing and removing content libraries."""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import typer
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from content_library.config import get_settings
from content_library.core.logging.logger import configure_logging
from content_library.core.exceptions import CatalogUnavailable, ContentLibraryError
from content_library.library import catalog as catalog_module
from content_library.library.analyzer import analyze_entries
from content_library.library.catalog import CatalogClient
from content_library.library.installer import (
    format_installed_at_display,
    install_pack,
    list_pack_states,
    uninstall_pack,
)
from content_library.library.ledger import OwnershipLedger
from content_library.library.models import (
    AnalysisResult,
    OwnershipLedgerRecord,
    PackDescriptor,
    PackEntry,
    PackState,
)
from content_library.library.selection import SelectionState
from content_library.library.store import BackingStore, RestBackingStore
from content_library.paths import ledger_path, resolve_environment_paths
from content_library.ui.console import console

app = typer.Typer(help="Browse, install, update and uninstall content libraries.")

_LIBRARY_ICONS = {
    "hubspot": "hub",
    "sales": "dollar-sign",
    "marketing": "megaphone",
    "service": "headphones",
    "contacts": "users",
    "general": "book",
}


def _print_section_header(title: str, color: str = "blue") -> None:
    width = console.size.width
    left = f"[{color}]▎[/{color}][dim {color}]▶[/dim {color}] [{color}]{title}[/{color}]"
    left_text = Text.from_markup(left)
    separator_count = max(1, width - left_text.cell_len - 1)

    combined = Text()
    combined.append_text(left_text)
    combined.append(" ")
    combined.append("─" * separator_count, style="dim")

    console.print()
    console.print(combined)
    console.print()


def _print_hint(message: str) -> None:
    console.print(f"[dim]▎• {message}[/dim]")


def _ctx_object(ctx: typer.Context) -> dict[str, Any]:
    if isinstance(ctx.obj, dict):
        return ctx.obj
    if ctx.obj is None:
        ctx.obj = {}
        return ctx.obj
    return {}


def _catalog_client(ctx: typer.Context) -> CatalogClient:
    override = _ctx_object(ctx).get("catalog")
    return CatalogClient.from_settings(get_settings(), base_url=override or None)


def _build_store() -> BackingStore:
    return RestBackingStore.from_settings(get_settings())


def _open_ledger() -> OwnershipLedger:
    settings = get_settings()
    env_paths = resolve_environment_paths(settings)
    return OwnershipLedger(ledger_path(env_paths, settings.store.tenant_id))


def _fail(prefix: str, exc: Exception) -> typer.Exit:
    message = exc.message if isinstance(exc, ContentLibraryError) else str(exc)
    typer.echo(f"{prefix}: {message}", err=True)
    return typer.Exit(1)


def _fetch_index(ctx: typer.Context) -> tuple[CatalogClient, list[PackDescriptor]]:
    client = _catalog_client(ctx)
    try:
        return client, asyncio.run(client.fetch_index())
    except CatalogUnavailable as exc:
        raise _fail("Failed to load libraries", exc) from exc


def _select_descriptor(descriptors: list[PackDescriptor], selector: str) -> PackDescriptor:
    descriptor = catalog_module.select_pack_by_name_or_index(descriptors, selector)
    if descriptor is None:
        typer.echo(f"Library not found: {selector}", err=True)
        raise typer.Exit(1)
    return descriptor


def _load_pack_states(descriptors: list[PackDescriptor]) -> list[PackState]:
    try:
        return list_pack_states(descriptors, _open_ledger())
    except ContentLibraryError as exc:
        raise _fail("Failed to read installed libraries", exc) from exc


def _icon_label(descriptor: PackDescriptor) -> str:
    return _LIBRARY_ICONS.get(descriptor.icon or descriptor.category or "", "book")


def _print_overview(ctx: typer.Context) -> None:
    client, descriptors = _fetch_index(ctx)
    states = _load_pack_states(descriptors)
    installed = [state for state in states if state.installed]
    available = [state for state in states if not state.installed]

    if installed:
        _print_section_header("Installed Libraries", color="green")
        _print_installed_table(states, installed)

    _print_section_header("Available Libraries", color="blue")
    console.print(
        "[dim]▎• Catalog:[/dim] "
        f"[cyan]{catalog_module.format_catalog_display_url(client.base_url)}[/cyan]"
    )
    if not available:
        console.print("[green]All libraries have been installed![/green]")
        return
    _print_available_table(states, available)
    _print_hint("Install with: content-library install <number|id|name>")


def _print_installed_table(all_states: list[PackState], installed: list[PackState]) -> None:
    table = Table(show_header=True, box=None)
    table.add_column("#", justify="right", style="dim", header_style="bold bright_white")
    table.add_column("Name", style="cyan", header_style="bold bright_white")
    table.add_column("Entries", justify="right", header_style="bold bright_white")
    table.add_column("Installed", style="green", header_style="bold bright_white")
    table.add_column("Status", header_style="bold bright_white")

    for state in installed:
        record = state.record
        assert record is not None
        status = (
            f"[yellow]update available (v{state.descriptor.version})[/yellow]"
            if state.update_available
            else f"v{record.version}"
        )
        table.add_row(
            str(all_states.index(state) + 1),
            escape(state.descriptor.name),
            str(len(record.owned_entry_ids)),
            format_installed_at_display(record.installed_at),
            status,
        )
    console.print(table)


def _print_available_table(all_states: list[PackState], available: list[PackState]) -> None:
    table = Table(show_header=True, box=None)
    table.add_column("#", justify="right", style="dim", header_style="bold bright_white")
    table.add_column("Name", style="cyan", header_style="bold bright_white")
    table.add_column("Category", style="white", header_style="bold bright_white")
    table.add_column("Entries", justify="right", header_style="bold bright_white")
    table.add_column("Version", style="dim", header_style="bold bright_white")
    table.add_column("Description", style="dim", header_style="bold bright_white")

    for state in available:
        descriptor = state.descriptor
        table.add_row(
            str(all_states.index(state) + 1),
            escape(descriptor.name),
            f"{descriptor.category or 'general'} ({_icon_label(descriptor)})",
            str(descriptor.entry_count),
            f"v{descriptor.version}",
            escape(descriptor.description),
        )
    console.print(table)


def _print_entries(entries: list[PackEntry]) -> None:
    if not entries:
        console.print("[yellow]No matching entries.[/yellow]")
        return
    table = Table(show_header=True, box=None)
    table.add_column("Title", style="cyan", header_style="bold bright_white")
    table.add_column("Trigger", style="white", header_style="bold bright_white")
    table.add_column("Category", style="dim", header_style="bold bright_white")
    for entry in entries:
        table.add_row(
            escape(entry.title),
            escape(entry.trigger or ""),
            escape(entry.category or "general"),
        )
    console.print(table)


def _print_analysis(analysis: AnalysisResult, selection: SelectionState) -> None:
    summary = f"[green]{analysis.new_count} new entries[/green]"
    if analysis.duplicate_count:
        summary += f"  [yellow]{analysis.duplicate_count} duplicates found[/yellow]"
    console.print(summary)
    if analysis.duplicate_count:
        _print_hint(
            "Duplicates are skipped by default. Use --include-duplicates or --select "
            "to replace existing entries."
        )

    table = Table(show_header=True, box=None)
    table.add_column("#", justify="right", style="dim", header_style="bold bright_white")
    table.add_column("", header_style="bold bright_white")
    table.add_column("Title", style="cyan", header_style="bold bright_white")
    table.add_column("Trigger", style="white", header_style="bold bright_white")
    table.add_column("Status", header_style="bold bright_white")

    for index, candidate in enumerate(selection.candidates, 1):
        status = (
            f"[yellow]duplicate of {escape(candidate.matched_title or '')}[/yellow]"
            if candidate.is_duplicate
            else "[green]new[/green]"
        )
        table.add_row(
            str(index),
            "✔" if candidate.selected else "·",
            escape(candidate.entry.title),
            escape(candidate.entry.trigger or ""),
            status,
        )
    console.print(table)


@app.callback(invoke_without_command=True)
def library_main(
    ctx: typer.Context,
    catalog: Annotated[
        str | None,
        typer.Option(
            "--catalog",
            "-c",
            help="Override the catalog URL/path for this invocation (defaults to catalog.base_url).",
        ),
    ] = None,
    config_path: Annotated[
        str | None,
        typer.Option("--config-path", help="Path to content-library.config.yaml."),
    ] = None,
) -> None:
    """Manage content libraries."""
    settings = get_settings(config_path)
    configure_logging(settings.logger)
    _ctx_object(ctx)["catalog"] = catalog
    if ctx.invoked_subcommand is None:
        _print_overview(ctx)


@app.command("list")
def library_list(ctx: typer.Context) -> None:
    """List installed and available libraries."""
    _print_overview(ctx)


@app.command("preview")
def library_preview(
    ctx: typer.Context,
    selector: Annotated[str, typer.Argument(help="Library id, name or catalog index.")],
    query: Annotated[
        str | None,
        typer.Option("--filter", "-f", help="Only show entries matching this text."),
    ] = None,
) -> None:
    """Show the entries a library would install."""
    client, descriptors = _fetch_index(ctx)
    descriptor = _select_descriptor(descriptors, selector)
    try:
        entries = asyncio.run(client.fetch_entries(descriptor))
    except CatalogUnavailable as exc:
        raise _fail("Failed to load entries", exc) from exc

    _print_section_header(escape(descriptor.name), color="blue")
    console.print(f"[dim]▎• {escape(descriptor.description)}[/dim]")
    console.print(f"[dim]▎• version:[/dim] {descriptor.version}  [dim]entries:[/dim] {len(entries)}")
    if query:
        entries = catalog_module.filter_entries(entries, query)
    _print_entries(entries)


@app.command("install")
def library_install(
    ctx: typer.Context,
    selector: Annotated[str, typer.Argument(help="Library id, name or catalog index.")],
    include_duplicates: Annotated[
        bool,
        typer.Option("--include-duplicates", help="Replace every existing duplicate entry."),
    ] = False,
    select: Annotated[
        list[str] | None,
        typer.Option("--select", "-s", help="Include entries matching this text (repeatable)."),
    ] = None,
    deselect: Annotated[
        list[str] | None,
        typer.Option("--deselect", "-x", help="Exclude entries matching this text (repeatable)."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Install without asking for confirmation."),
    ] = False,
) -> None:
    """Install (or update) a library, skipping duplicates unless asked."""
    client, descriptors = _fetch_index(ctx)
    descriptor = _select_descriptor(descriptors, selector)

    try:
        store = _build_store()
        entries, corpus = asyncio.run(_load_install_inputs(client, descriptor, store))
    except ContentLibraryError as exc:
        raise _fail("Failed to analyze entries", exc) from exc

    analysis = analyze_entries(corpus, entries)
    selection = SelectionState.from_analysis(analysis)
    if include_duplicates:
        selection.set_all(True)
    for query in select or []:
        selection.set_all(True, query=query)
    for query in deselect or []:
        selection.set_all(False, query=query)

    _print_section_header(f"Install {escape(descriptor.name)}", color="blue")
    _print_analysis(analysis, selection)

    count = selection.selected_count
    if count == 0:
        typer.echo("Please select at least one entry to install", err=True)
        raise typer.Exit(1)

    if not yes:
        typer.confirm(f"Install {count} entries?", abort=True)

    ledger = _open_ledger()
    try:
        result = asyncio.run(
            install_pack(descriptor, selection.candidates, store=store, ledger=ledger)
        )
    except ContentLibraryError as exc:
        raise _fail("Installation failed", exc) from exc

    message = result.summary(descriptor.name)
    if result.error_count and result.success_count:
        console.print(f"[yellow]{message} Check the log for details.[/yellow]")
    elif result.error_count:
        console.print(f"[red]{message} Check the log for details.[/red]")
        raise typer.Exit(1)
    else:
        console.print(f"[green]{message}[/green]")
    if result.failed_deletes:
        console.print(
            f"[yellow]▎• {len(result.failed_deletes)} duplicate entries could not be removed[/yellow]"
        )


async def _load_install_inputs(
    client: CatalogClient,
    descriptor: PackDescriptor,
    store: BackingStore,
):
    entries = await client.fetch_entries(descriptor)
    corpus = await store.list_entries()
    return entries, corpus


@app.command("uninstall")
def library_uninstall(
    ctx: typer.Context,
    selector: Annotated[str, typer.Argument(help="Installed library id, name or catalog index.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Uninstall without asking for confirmation."),
    ] = False,
) -> None:
    """Remove every entry an installed library contributed."""
    ledger = _open_ledger()
    try:
        records = ledger.all()
    except ContentLibraryError as exc:
        raise _fail("Failed to read installed libraries", exc) from exc

    record = _select_installed(ctx, records, selector)
    if record is None:
        typer.echo(f"Library not installed: {selector}", err=True)
        raise typer.Exit(1)

    label = record.pack_name or record.pack_id
    if not yes:
        typer.confirm(
            f"Uninstall \"{label}\"? This will remove {len(record.owned_entry_ids)} wiki entries.",
            abort=True,
        )

    try:
        store = _build_store()
        result = asyncio.run(uninstall_pack(record.pack_id, store=store, ledger=ledger))
    except ContentLibraryError as exc:
        raise _fail("Uninstall failed", exc) from exc

    console.print(f"[green]Uninstalled {escape(label)}[/green]")
    console.print(f"[dim]▎• removed entries:[/dim] {result.success_count}")
    if result.error_count:
        console.print(f"[yellow]▎• entries that could not be removed:[/yellow] {result.error_count}")


def _select_installed(
    ctx: typer.Context,
    records: dict[str, OwnershipLedgerRecord],
    selector: str,
) -> OwnershipLedgerRecord | None:
    selector_clean = selector.strip()
    if not selector_clean:
        return None
    if selector_clean.isdigit():
        # Numbers follow catalog order, as shown by `list`.
        _, descriptors = _fetch_index(ctx)
        index = int(selector_clean)
        if 1 <= index <= len(descriptors):
            return records.get(descriptors[index - 1].id)
        return None
    selector_lower = selector_clean.lower()
    for record in sorted(records.values(), key=lambda record: record.pack_id):
        if record.pack_id.lower() == selector_lower:
            return record
        if record.pack_name and record.pack_name.lower() == selector_lower:
            return record
    return None


@app.command("updates")
def library_updates(ctx: typer.Context) -> None:
    """Check installed libraries against the catalog versions."""
    _, descriptors = _fetch_index(ctx)
    states = [state for state in _load_pack_states(descriptors) if state.installed]
    _print_section_header("Library update check", color="blue")
    if not states:
        console.print("[yellow]No libraries installed.[/yellow]")
        return

    table = Table(show_header=True, box=None)
    table.add_column("Name", style="cyan", header_style="bold bright_white")
    table.add_column("Version", style="white", header_style="bold bright_white")
    table.add_column("Status", header_style="bold bright_white")
    for state in states:
        record = state.record
        assert record is not None
        if state.update_available:
            table.add_row(
                escape(state.descriptor.name),
                f"{record.version} -> {state.descriptor.version}",
                "[yellow]update available[/yellow]",
            )
        else:
            table.add_row(escape(state.descriptor.name), record.version, "[green]up to date[/green]")
    console.print(table)
    if any(state.update_available for state in states):
        _print_hint("Update with: content-library install <id|name>")
