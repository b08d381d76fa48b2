"""
CLI interface for Avatar Catalog.

Provides command-line access to spend reports and compatibility checks.
"""

import logging
import sys
from typing import List, Optional
import sqlite3

import typer
from rich.console import Console
from rich.table import Table

from avatar_catalog.config.loader import CatalogConfig, resolve_config
from avatar_catalog.core.compatibility import (
    CompatibilityMode,
    CompatibilityResult,
    CompatibilityStatus,
    NotFound,
    check_compatibility,
    compatible_assets,
    transfer_table,
)
from avatar_catalog.core.pricing import format_amount, normalize_currency
from avatar_catalog.core.selection import CreateNew, Existing, Selection
from avatar_catalog.core.spend import SpendReport, aggregate
from avatar_catalog.demo.seed_demo_data import seed_demo_data
from avatar_catalog.storage.models import Asset, Avatar
from avatar_catalog.storage.repository import CatalogRepository, get_repository

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1
EXIT_CODE_NOT_FOUND = 2

_STATUS_STYLES = {
    CompatibilityStatus.YES: "green",
    CompatibilityStatus.MOSTLY: "yellow",
    CompatibilityStatus.PARTIAL: "yellow",
    CompatibilityStatus.NO: "red",
    CompatibilityStatus.UNKNOWN: "cyan",
    CompatibilityStatus.INFO: "cyan",
}


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Path to the catalog database (overrides config)"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
):
    """Avatar Catalog CLI."""
    setup_logging(verbose)
    try:
        catalog_config = resolve_config(config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Configuration error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    ctx.obj = {
        "config": catalog_config,
        "db_path": db or catalog_config.db_path,
    }
    if ctx.invoked_subcommand is None:
        console.print("Avatar Catalog - Use --help to see available commands")


def _config(ctx: typer.Context) -> CatalogConfig:
    return ctx.obj["config"]


def _repository(ctx: typer.Context):
    return get_repository(ctx.obj["db_path"])


@app.command()
def init(ctx: typer.Context):
    """Initialize the catalog database."""
    try:
        _repository(ctx).initialize_schema()
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(ctx: typer.Context):
    """Show how many assets, avatars and collections are catalogued."""
    repository = _repository(ctx)
    try:
        assets = repository.list_assets()
        avatars = repository.list_avatars()
        collections = repository.list_collections()
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _print_not_initialized()
            sys.exit(EXIT_CODE_PASS)
        raise

    console.print(f"[green]✓[/] {len(assets)} assets, {len(avatars)} avatars, "
                  f"{len(collections)} collections")
    current = next((avatar for avatar in avatars if avatar.is_current), None)
    if current is not None:
        console.print(f"Current avatar: {current.name} ({current.base})")


@app.command("seed-demo")
def seed_demo(ctx: typer.Context):
    """Insert a small demo catalog."""
    try:
        count = seed_demo_data(_repository(ctx))
        if count == 0:
            console.print("[yellow]Catalog already has data, demo not inserted[/]")
        else:
            console.print(f"[green]✓[/] Demo catalog inserted ({count} records)")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error seeding demo data:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("add-asset")
def add_asset(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Asset name"),
    creator: str = typer.Option(..., "--creator", help="Who made the asset"),
    asset_type: str = typer.Option(..., "--type", help="Asset type, e.g. clothing or prop"),
    price: Optional[str] = typer.Option(None, "--price", help="Price as written, e.g. '$12.50'"),
    currency: str = typer.Option("USD", "--currency", help="Currency code of the price"),
    tags: Optional[List[str]] = typer.Option(
        None,
        "--tag",
        help="Tag name; reuses a stored tag or creates it (repeatable)"
    ),
    bases: Optional[List[str]] = typer.Option(
        None,
        "--base",
        help="Compatible avatar base; reuses a known base or registers it (repeatable)"
    ),
    favorite: bool = typer.Option(False, "--favorite", help="Mark as favorite"),
    nsfw: bool = typer.Option(False, "--nsfw", help="Mark as NSFW"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-form notes"),
):
    """Add an asset to the catalog."""
    repository = _repository(ctx)
    try:
        stored = repository.add_asset(
            Asset(
                name=name,
                creator=creator,
                type=asset_type,
                price=price,
                currency=normalize_currency(currency),
                favorited=favorite,
                nsfw=nsfw,
                notes=notes,
            ),
            tags=_tag_picks(repository, tags or []),
            compatible=_base_picks(repository, bases or []),
        )
    except NotFound as e:
        console.print(f"[red]Not found:[/] {str(e)}")
        sys.exit(EXIT_CODE_NOT_FOUND)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _print_not_initialized()
            sys.exit(EXIT_CODE_FAIL)
        raise

    console.print(f"[green]✓[/] Added asset {stored.id}: {stored.name}")
    if stored.tags:
        console.print(f"Tags: {', '.join(stored.tags)}")
    if stored.compatible_with:
        console.print(f"Compatible with: {', '.join(stored.compatible_with)}")
    sys.exit(EXIT_CODE_PASS)


@app.command("add-avatar")
def add_avatar(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Avatar name"),
    base: str = typer.Argument(..., help="Avatar base, e.g. Feline3.0"),
    current: bool = typer.Option(False, "--current", help="Make this the current avatar"),
    favorite: bool = typer.Option(False, "--favorite", help="Mark as favorite"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-form notes"),
):
    """Add an avatar to the catalog."""
    try:
        stored = _repository(ctx).add_avatar(
            Avatar(name=name, base=base, is_current=current, favorited=favorite, notes=notes)
        )
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _print_not_initialized()
            sys.exit(EXIT_CODE_FAIL)
        raise

    console.print(f"[green]✓[/] Added avatar {stored.id}: {stored.name} ({stored.base})")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def stats(
    ctx: typer.Context,
    currency: Optional[str] = typer.Option(
        None,
        "--currency",
        help="Only show category and monthly breakdowns for this currency"
    ),
):
    """
    Show spending statistics across currencies.

    Totals are kept per currency; amounts in different currencies are
    never added together.
    """
    report_config = _config(ctx).report
    try:
        assets = _repository(ctx).list_assets()
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _print_not_initialized()
            sys.exit(EXIT_CODE_PASS)
        raise

    report = aggregate(
        assets,
        top_categories=report_config.top_categories,
        trailing_months=report_config.trailing_months,
    )

    if not report.has_spend:
        console.print("\n[bold yellow]No price information found[/]")
        console.print("Add prices to your assets to see spending statistics.")
        console.print(f"Free assets: {report.free_count}\n")
        sys.exit(EXIT_CODE_PASS)

    _display_spend_report(
        report,
        only_currency=normalize_currency(currency) if currency else None,
        preferred_currency=report_config.default_currency,
    )
    sys.exit(EXIT_CODE_PASS)


@app.command("check-asset")
def check_asset(
    ctx: typer.Context,
    asset_id: int = typer.Argument(..., help="Asset to check"),
    avatar_id: int = typer.Argument(..., help="Avatar to check it against"),
):
    """Check whether an asset fits an avatar."""
    _run_check(ctx, CompatibilityMode.ASSET_TO_AVATAR, asset_id, avatar_id)


@app.command("check-avatars")
def check_avatars(
    ctx: typer.Context,
    source_id: int = typer.Argument(..., help="Avatar the assets come from"),
    target_id: int = typer.Argument(..., help="Avatar the assets move to"),
):
    """Check how well assets transfer from one avatar to another."""
    _run_check(ctx, CompatibilityMode.AVATAR_TO_AVATAR, source_id, target_id)


@app.command()
def compatible(
    ctx: typer.Context,
    avatar_id: int = typer.Argument(..., help="Avatar to list compatible assets for"),
):
    """List assets made for an avatar's base."""
    repository = _repository(ctx)
    try:
        avatar = repository.get_avatar(avatar_id)
        assets = repository.list_assets()
    except NotFound as e:
        console.print(f"[red]Not found:[/] {str(e)}")
        sys.exit(EXIT_CODE_NOT_FOUND)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _print_not_initialized()
            sys.exit(EXIT_CODE_PASS)
        raise

    matches = compatible_assets(assets, avatar.base)
    if not matches:
        console.print(f"No compatible assets found for the {avatar.base} avatar base.")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Compatible assets for {avatar.name} ({avatar.base})")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Owned")
    for asset in matches:
        owned = avatar.base in asset.owned_variants
        table.add_row(str(asset.id), asset.name, asset.type, "yes" if owned else "")
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


def _run_check(ctx: typer.Context, mode: CompatibilityMode, source_id: int, target_id: int):
    compatibility_config = _config(ctx).compatibility
    repository = _repository(ctx)
    try:
        result = check_compatibility(
            mode,
            compatibility_config.matrix,
            repository.list_assets(),
            repository.list_avatars(),
            source_id,
            target_id,
            self_pair_compatible=compatibility_config.self_pair_compatible,
        )
    except NotFound as e:
        console.print(f"[red]Not found:[/] {str(e)}")
        sys.exit(EXIT_CODE_NOT_FOUND)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _print_not_initialized()
            sys.exit(EXIT_CODE_PASS)
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _display_compatibility_result(result)
    sys.exit(EXIT_CODE_PASS)


def _tag_picks(repository: CatalogRepository, names: List[str]) -> List[Selection]:
    picks: List[Selection] = []
    for name in names:
        tag_id = repository.find_tag(name.strip())
        picks.append(Existing(tag_id) if tag_id is not None else CreateNew(name))
    return picks


def _base_picks(repository: CatalogRepository, names: List[str]) -> List[Selection]:
    known = set(repository.list_avatar_bases())
    return [Existing(name.strip()) if name.strip() in known else CreateNew(name) for name in names]


def _print_not_initialized():
    console.print("\n[bold yellow]Catalog database not initialized[/]")
    console.print("Run `avatar-catalog init` to create it.\n")


def _display_spend_report(
    report: SpendReport,
    only_currency: Optional[str] = None,
    preferred_currency: Optional[str] = None,
):
    """Display the spend report as summary tables.

    Breakdowns for the preferred currency are shown first.
    """
    console.print("\n[bold]Spending Statistics[/bold]")
    console.print("-" * 40)

    totals = Table(title="Total by currency")
    totals.add_column("Currency")
    totals.add_column("Total", justify="right")
    totals.add_column("Paid assets", justify="right")
    totals.add_column("Max", justify="right")
    totals.add_column("Average", justify="right")
    for bucket in report.currency_totals:
        totals.add_row(
            bucket.currency,
            bucket.display,
            str(bucket.count),
            format_amount(report.max_prices[bucket.currency], bucket.currency),
            format_amount(report.average_prices[bucket.currency], bucket.currency),
        )
    console.print(totals)
    console.print(f"Free assets: {report.free_count}")

    breakdowns = sorted(report.currency_totals, key=lambda b: b.currency != preferred_currency)
    for bucket in breakdowns:
        if only_currency and bucket.currency != only_currency:
            continue

        categories = Table(title=f"Spending by category ({bucket.currency})")
        categories.add_column("Category")
        categories.add_column("Total", justify="right")
        categories.add_column("Assets", justify="right")
        for row in report.category_spend.get(bucket.currency, []):
            categories.add_row(row.category, format_amount(row.total, row.currency), str(row.count))
        console.print(categories)

        months = report.monthly_spend.get(bucket.currency, [])
        if not months:
            console.print(f"[dim]Not enough data to display monthly trends for {bucket.currency}[/]")
            continue
        monthly = Table(title=f"Monthly spending ({bucket.currency})")
        monthly.add_column("Month")
        monthly.add_column("Total", justify="right")
        monthly.add_column("Assets", justify="right")
        for month in months:
            monthly.add_row(month.key, format_amount(month.total, month.currency), str(month.count))
        console.print(monthly)


def _display_compatibility_result(result: CompatibilityResult):
    """Display the per-aspect breakdown and, for avatars, the transfer table."""
    style = _STATUS_STYLES[result.overall]
    console.print("\n[bold]Compatibility Results[/bold]")
    console.print(f"Overall: [{style}]{result.overall.value}[/] - {result.summary}")

    for detail in result.details:
        detail_style = _STATUS_STYLES[detail.status]
        console.print(f"  [{detail_style}]{detail.status.value:>7}[/] {detail.aspect}: {detail.message}")

    rows = transfer_table(result)
    if rows:
        table = Table(title="Asset Transfer Reference Table")
        table.add_column("Asset Type")
        table.add_column("Compatibility")
        table.add_column("Notes")
        for row in rows:
            table.add_row(row.asset_type, row.level, row.note)
        console.print(table)


if __name__ == "__main__":
    app()
