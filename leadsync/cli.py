"""Lead sync CLI - run syncs by hand or from an external scheduler."""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .schemas.sync import SyncSummary
from .sync.options import ConfigurationError, SyncOptions

app = typer.Typer(
    name="leadsync",
    help="Pull campaigns and lead-form submissions from the ad platform into the CRM",
    no_args_is_help=True,
)
console = Console()

COUNTERS = (
    ("Ad accounts", "ad_accounts"),
    ("Campaigns fetched", "campaigns_fetched"),
    ("Campaigns upserted", "campaigns_upserted"),
    ("Forms detected", "forms_detected"),
    ("Forms synced", "forms_synced"),
    ("Leads fetched", "leads_fetched"),
    ("Leads inserted", "leads_inserted"),
    ("Leads skipped", "leads_skipped"),
)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _split(values: list[str] | None) -> list[str] | None:
    if not values:
        return None
    out = [item.strip() for value in values for item in value.split(",") if item.strip()]
    return out or None


def _print_summary(title: str, summary: SyncSummary) -> None:
    table = Table(title=title)
    table.add_column("Counter", style="cyan")
    table.add_column("Value", style="green", justify="right")
    for label, attr in COUNTERS:
        value = getattr(summary, attr)
        if value:
            table.add_row(label, str(value))
    console.print(table)

    if summary.errors:
        errors = Table(title="Errors", show_lines=False)
        errors.add_column("Scope", style="yellow")
        errors.add_column("Identifier")
        errors.add_column("Message", style="red")
        for err in summary.errors:
            errors.add_row(err.scope, err.identifier, err.message)
        console.print(errors)


async def _run(kind: str, options: SyncOptions) -> list[tuple[str, SyncSummary]]:
    from .database import async_session_factory, create_all, engine
    from .sync.sync_engine import sync_campaigns, sync_leads

    results: list[tuple[str, SyncSummary]] = []
    try:
        await create_all()
        async with async_session_factory() as db:
            if kind in ("campaigns", "all"):
                results.append(("Campaign sync", await sync_campaigns(db, options)))
            if kind in ("leads", "all"):
                results.append(("Lead sync", await sync_leads(db, options)))
    finally:
        await engine.dispose()
    return results


def _execute(kind: str, options: SyncOptions) -> None:
    try:
        results = asyncio.run(_run(kind, options))
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=2)
    failed = False
    for title, summary in results:
        _print_summary(title, summary)
        failed = failed or bool(summary.errors)
    if failed:
        raise typer.Exit(code=1)


AccountOption = typer.Option(None, "--account", "-a", help="Ad account id (repeatable or comma-separated)")


@app.command("campaigns")
def campaigns_cmd(accounts: list[str] = AccountOption):
    """Upsert campaigns and their metrics."""
    _execute("campaigns", SyncOptions(ad_account_ids=_split(accounts)))


@app.command("leads")
def leads_cmd(
    accounts: list[str] = AccountOption,
    forms: list[str] = typer.Option(None, "--form", "-f", help="Only sync these form ids"),
    page_limit: int = typer.Option(None, "--page-limit", min=1, max=500, help="Leads per page"),
    since: int = typer.Option(None, "--since", help="Only leads created at or after this unix time"),
):
    """Discover lead forms and insert new leads."""
    _execute("leads", SyncOptions(
        ad_account_ids=_split(accounts),
        form_ids=_split(forms),
        page_limit=page_limit,
        since=since,
    ))


@app.command("all")
def all_cmd(accounts: list[str] = AccountOption):
    """Campaign sync followed by lead sync."""
    _execute("all", SyncOptions(ad_account_ids=_split(accounts)))


@app.command("init-db")
def init_db():
    """Create tables in the configured database."""
    from .database import create_all, engine

    async def _init():
        try:
            await create_all()
        finally:
            await engine.dispose()

    asyncio.run(_init())
    console.print("[green]Tables created.[/green]")


if __name__ == "__main__":
    app()
