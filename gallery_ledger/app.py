"""Typer CLI entrypoint for gallery-ledger."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, GlobalConfig
from .engine import (
    CatalogExtractor,
    Deduplicator,
    EngagementCounts,
    EngagementLedger,
    ReachabilityProber,
    ThreadPoolManager,
    UserDirectory,
)
from .engine.models import entry_from_raw, entry_to_raw, user_from_raw, user_to_raw
from .errors import LedgerError, Unauthenticated, UserExists
from .infra import JsonFileStore
from .logging_conf import component_logger, configure_logging, log_paths, tail_log
from .orchestrator import CatalogReconciler, ReconcileResult

app = typer.Typer(
    help="Gallery engagement ledger and catalog maintenance.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
user_app = typer.Typer(
    name="user",
    help="Manage registered users.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: GlobalConfig
    ledger: EngagementLedger
    users: UserDirectory
    reconciler: CatalogReconciler
    prober: ReachabilityProber
    thread_pool: ThreadPoolManager

    def close(self) -> None:
        self.thread_pool.shutdown()
        self.prober.close()


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    config = repository.load_global_config()

    user_store = JsonFileStore(
        repository.users_path(), user_from_raw, user_to_raw, logger=component_logger("users")
    )
    ledger_store = JsonFileStore(
        repository.ledger_path(), entry_from_raw, entry_to_raw, logger=component_logger("storage")
    )
    users = UserDirectory(user_store, logger=component_logger("users"))
    ledger = EngagementLedger(ledger_store, users, logger=component_logger("ledger"))

    prober = ReachabilityProber(config.probe, logger=component_logger("prober"))
    thread_pool = ThreadPoolManager(config.probe.max_workers)
    reconciler = CatalogReconciler(
        ledger,
        CatalogExtractor(config.catalog, logger=component_logger("extractor")),
        Deduplicator(
            prober,
            thread_pool=thread_pool,
            timeout=config.probe.timeout,
            logger=component_logger("dedup"),
        ),
        logger=component_logger("reconciler"),
    )
    return AppState(
        repository=repository,
        config=config,
        ledger=ledger,
        users=users,
        reconciler=reconciler,
        prober=prober,
        thread_pool=thread_pool,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _render_counts(item_id: str, counts: EngagementCounts) -> Table:
    table = Table(title=f"Item {item_id}", box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value", style="cyan")
    table.add_row("views", str(counts.views))
    table.add_row("hearts", str(counts.hearts))
    table.add_row("viewed", "yes" if counts.has_viewed else "no")
    table.add_row("hearted", "yes" if counts.has_hearted else "no")
    return table


def _render_reconcile(result: ReconcileResult, dry_run: bool) -> Table:
    title = "Reconcile (dry run)" if dry_run else "Reconcile"
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("Item", style="cyan", no_wrap=True)
    table.add_column("Decision", style="magenta")
    table.add_column("Source", style="dim", overflow="fold")
    for decision in result.report.decisions:
        style = "green" if decision.kept else "red"
        table.add_row(
            decision.block.id,
            f"[{style}]{decision.reason.value}[/{style}]",
            decision.block.image_source or "-",
        )
    return table


def _render_summary(summary: dict[str, int]) -> Table:
    table = Table(title="Summary", box=box.MINIMAL_DOUBLE_HEAD)
    table.add_column("Scanned", style="cyan")
    table.add_column("Added", style="green")
    table.add_column("Removed", style="red")
    table.add_row(str(summary["scanned"]), str(summary["added"]), str(summary["removed"]))
    return table


def _markup_path(state: AppState, markup: Optional[Path]) -> Path:
    path = markup or state.repository.catalog_path()
    if not path.exists():
        console.print(f"Catalog markup not found: {path}", style="red")
        raise typer.Exit(code=1)
    return path


app.add_typer(user_app, name="user", help="Register users (credentials are stored as given).")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True),
) -> None:
    state = build_state(verbose)
    ctx.obj = state
    ctx.call_on_close(state.close)


@app.command("view", help="Record a view; counted once per known user, always for anonymous.")
def view(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Catalog item id."),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Username of the viewer."),
) -> None:
    state = _get_state(ctx)
    counts = state.ledger.record_view(item_id, user)
    console.print(_render_counts(item_id, counts))


@app.command("heart", help="Toggle the heart of a registered user on an item.")
def heart(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Catalog item id."),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Username toggling the heart."),
) -> None:
    state = _get_state(ctx)
    try:
        counts = state.ledger.toggle_heart(item_id, user)
    except Unauthenticated as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1) from exc
    console.print(_render_counts(item_id, counts))


@app.command("query", help="Show counters for an item without changing them.")
def query(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Catalog item id."),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Report membership for this user."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    counts = state.ledger.query(item_id, user)
    if as_json:
        console.print_json(json.dumps(counts.to_dict()))
        return
    console.print(_render_counts(item_id, counts))


@app.command("snapshot", help="Print every ledger entry as JSON.")
def snapshot(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print_json(json.dumps(state.ledger.snapshot()))


@app.command("reset", help="Replace the ledger with zeroed entries (destructive).")
def reset(
    ctx: typer.Context,
    item_ids: Optional[List[str]] = typer.Argument(None, help="Ids to keep; defaults to configured ids."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    ids = list(item_ids or state.config.default_ids)
    if not yes and not typer.confirm(f"Reset the ledger to {len(ids)} zeroed entries?"):
        console.print("Reset cancelled.", style="yellow")
        raise typer.Exit(code=0)
    try:
        state.ledger.reset_all(ids)
    except LedgerError as exc:
        console.print(f"Reset failed: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(f"Ledger reset for {len(ids)} items.", style="green")


@app.command("reconcile", help="Drop duplicate/broken gallery blocks and align the ledger.")
def reconcile(
    ctx: typer.Context,
    markup: Optional[Path] = typer.Option(None, "--markup", help="Catalog markup file."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without writing.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    path = _markup_path(state, markup)
    result = state.reconciler.reconcile_file(path, dry_run=dry_run)
    if not result.gallery_found:
        console.print("Gallery section not found; nothing changed.", style="red")
        raise typer.Exit(code=1)
    if result.skipped:
        console.print("No complete item block in the gallery; nothing changed.", style="red")
        raise typer.Exit(code=1)
    console.print(_render_reconcile(result, dry_run))
    console.print(_render_summary(result.summary.as_dict()))


@app.command("sync", help="Align the ledger with every item id in the markup, without pruning.")
def sync(
    ctx: typer.Context,
    markup: Optional[Path] = typer.Option(None, "--markup", help="Catalog markup file."),
) -> None:
    state = _get_state(ctx)
    path = _markup_path(state, markup)
    summary = state.reconciler.sync_ids(path.read_text(encoding="utf-8"))
    console.print(_render_summary(summary.as_dict()))


@app.command("logs", help="Print the tail of the application or error log.")
def logs(
    ctx: typer.Context,
    errors: bool = typer.Option(False, "--errors", help="Read error.log instead of app.log.", is_flag=True),
    lines: int = typer.Option(20, "--lines", "-n", min=1, help="Number of lines to show."),
) -> None:
    state = _get_state(ctx)
    path = log_paths(state.repository.locator.logs_dir)["error" if errors else "app"]
    entries = tail_log(path, lines)
    if not entries:
        console.print(f"No entries in {path}", style="yellow")
        return
    for line in entries:
        console.print(line, markup=False, highlight=False, soft_wrap=True)


@user_app.command("add", help="Register a new user.")
def user_add(
    ctx: typer.Context,
    username: str = typer.Argument(..., help="Unique username."),
    email: str = typer.Option(..., "--email", help="Email address."),
    credential: str = typer.Option(..., "--credential", help="Password stored as given."),
) -> None:
    state = _get_state(ctx)
    try:
        state.users.register(username, email, credential)
    except (UserExists, ValueError) as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1) from exc
    console.print(f"User {username} registered.", style="green")


def run() -> None:  # pragma: no cover
    app()


__all__ = ["AppState", "app", "build_state", "run"]
