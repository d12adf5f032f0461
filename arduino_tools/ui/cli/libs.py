"""
CLI commands for the library manager.

``libs`` alone opens the picker: installed libraries are marked ✅,
installed ones with an update 🔄 ✅. Picking one installs or updates it,
then the picker opens again with the new status until cancelled.
"""

from __future__ import annotations

import json
import sys

import click

from arduino_tools.ui.cli.terminal import open_workbench


@click.group(invoke_without_command=True)
@click.option("--search", "-s", "query", default=None, help="Only show names containing this text.")
@click.option("--refresh", is_flag=True, help="Fetch the catalog again before opening.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="List as JSON, no picker.")
@click.pass_context
def libs(ctx: click.Context, query: str | None, refresh: bool, as_json: bool) -> None:
    """Libraries — browse, install and update."""
    if ctx.invoked_subcommand is not None:
        return

    wb = open_workbench(ctx)
    if refresh:
        # a failed fetch keeps the previous record on disk
        wb.refresh_catalog()

    if as_json:
        items = wb.libraries.catalog_items(query) or []
        click.echo(json.dumps([i.model_dump(mode="json") for i in items], indent=2))
        return

    if wb.cache.load() is None:
        click.secho("❌ No library catalog available", fg="red")
        sys.exit(1)
    result = wb.library_picker(query)
    if result is not None and not result.ok:
        sys.exit(1)


@libs.command("install")
@click.argument("name")
@click.pass_context
def libs_install(ctx: click.Context, name: str) -> None:
    """Install (or update) a library by name."""
    wb = open_workbench(ctx)
    result = wb.install_library(name)
    if not result.ok:
        if result.error:
            click.echo(f"   {result.error}")
        sys.exit(1)


@libs.command("refresh")
@click.pass_context
def libs_refresh(ctx: click.Context) -> None:
    """Fetch the library catalog now, ignoring the cache age."""
    wb = open_workbench(ctx)
    count = wb.refresh_catalog()
    if count is None:
        sys.exit(1)
    click.secho(f"✅ Cached {count} libraries", fg="green")
    click.echo(f"   {wb.cache.path}")


@libs.command("outdated")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def libs_outdated(ctx: click.Context, as_json: bool) -> None:
    """List installed libraries with a newer release."""
    wb = open_workbench(ctx)
    items = wb.outdated_libraries()

    if as_json:
        click.echo(json.dumps([i.model_dump(mode="json") for i in items], indent=2))
        return

    if not items:
        click.secho("✅ All installed libraries are up to date", fg="green")
        return

    click.secho(f"🔄 Updates available ({len(items)}):", fg="yellow", bold=True)
    for item in items:
        click.echo(f"   {item.name:<30} {item.installed_version or '?'} → {item.latest_version}")
