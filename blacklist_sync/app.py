"""Typer CLI entrypoint for blacklist-sync."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .api import create_app
from .config import AppConfig, ConfigLoader, DatabaseType
from .errors import ConfigError, PoolUnavailable, StoreError
from .feed import AbuseIpDbClient
from .logging_conf import configure_logging, verbosity_to_level
from .scheduler import SyncScheduler
from .store import EntryStore, build_store
from .synchronizer import SyncReport, Synchronizer

EXIT_CONFIG = 1
EXIT_DATABASE = 4

app = typer.Typer(
    help="Locally persisted, continuously refreshed IP blacklist.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    config: AppConfig
    store: EntryStore
    feed: AbuseIpDbClient | None
    synchronizer: Synchronizer
    scheduler: SyncScheduler

    def close(self) -> None:
        self.scheduler.shutdown()
        if self.feed is not None:
            self.feed.close()
        self.store.close()


def build_state(config: AppConfig) -> AppState:
    store = build_store(config.database)
    feed = AbuseIpDbClient(config.feed) if config.feed.enabled else None
    synchronizer = Synchronizer(store, feed, config.sync)
    scheduler = SyncScheduler(synchronizer, config.schedule)
    return AppState(
        config=config,
        store=store,
        feed=feed,
        synchronizer=synchronizer,
        scheduler=scheduler,
    )


def _load_config(ctx: typer.Context) -> AppConfig:
    options: dict[str, Any] = ctx.obj or {}
    try:
        return ConfigLoader().load(options.get("config"), options.get("overrides"))
    except ConfigError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=EXIT_CONFIG)


def _prepare(ctx: typer.Context) -> AppState:
    """Load config, configure logging, open the store; exit on fatal errors."""

    config = _load_config(ctx)
    logger = configure_logging(config.logging.level, config.logging.log_dir)
    if config.sync.misconfigured:
        logger.warning(
            "stale_days_not_above_expiration_days",
            expiration_days=config.sync.expiration_days,
            stale_days=config.sync.stale_days,
        )
    if not config.feed.enabled:
        logger.warning("feed_disabled", feed="abuseipdb", reason="no API key configured")
    state = build_state(config)
    try:
        state.store.ensure_schema()
    except (PoolUnavailable, StoreError) as exc:
        logger.error("database_unavailable", error=str(exc))
        console.print(f"Unable to connect to database: {exc}", style="red")
        state.close()
        raise typer.Exit(code=EXIT_DATABASE)
    return state


def _render_report(report: SyncReport) -> Table:
    table = Table(title="Reconciliation pass", box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_row("Started", report.started_at.isoformat(sep=" ", timespec="seconds"))
    table.add_row("Fetched", str(report.fetched))
    table.add_row("Inserted / updated", str(report.inserted))
    table.add_row("Ingest errors", str(report.ingest_errors))
    table.add_row("Re-verified", str(report.updated))
    table.add_row("Delisted", str(report.deleted))
    table.add_row(
        "Verify errors", str(report.update_errors + report.delete_errors + report.check_errors)
    )
    table.add_row("Halted early", "yes" if report.halted else "no")
    table.add_row("Expired", str(report.expired))
    table.add_row("Duration (s)", f"{report.duration:.3f}")
    if report.aborted:
        table.add_row("Aborted", report.aborted, style="red")
    return table


def _render_stats(total: int, buckets) -> Table:
    table = Table(title=f"Blacklist entries · {total} total", box=box.SIMPLE_HEAD)
    table.add_column("Count", style="cyan", justify="right")
    table.add_column("Window start", style="green")
    table.add_column("Window end", style="magenta")
    for bucket in buckets:
        table.add_row(str(bucket.count), str(bucket.window_start), str(bucket.window_end))
    return table


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML or JSON configuration file."),
    db_type: Optional[DatabaseType] = typer.Option(None, "--db-type", help="Database Type", case_sensitive=False),
    db_host: Optional[str] = typer.Option(None, "--db-host", help="Database Hostname or Ip"),
    db_port: Optional[int] = typer.Option(None, "--db-port", help="Database Port"),
    db_name: Optional[str] = typer.Option(None, "--db-name", help="Database Name"),
    db_user: Optional[str] = typer.Option(None, "--db-user", help="Database Username"),
    db_pass: Optional[str] = typer.Option(None, "--db-pass", help="Database Password"),
    db_path: Optional[Path] = typer.Option(None, "--db-path", help="Database Path (sqlite)"),
    api_abuseipdb: Optional[str] = typer.Option(
        None, "--api-abuseipdb", envvar="ABUSEIPDB_API_KEY", help="API Key for abuseipdb"
    ),
    expiration_days: Optional[int] = typer.Option(None, "--expiration-days", help="Days until ip recheck"),
    stale_days: Optional[int] = typer.Option(None, "--stale-days", help="Days until ip removal"),
    listen: Optional[str] = typer.Option(None, "--listen", "-l", help="Set the listening ip/hostname"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Set the port to bind to"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Once for debug, twice for trace"),
    silent: int = typer.Option(
        0, "--silent", "-s", count=True, help="Once for warning, twice for error, thrice for none"
    ),
) -> None:
    try:
        level = verbosity_to_level(verbose, silent) if (verbose or silent) else None
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    ctx.obj = {
        "config": config,
        "overrides": {
            "database": {
                "type": db_type.value if db_type else None,
                "host": db_host,
                "port": db_port,
                "name": db_name,
                "user": db_user,
                "password": db_pass,
                "path": str(db_path) if db_path else None,
            },
            "feed": {"api_key": api_abuseipdb},
            "sync": {"expiration_days": expiration_days, "stale_days": stale_days},
            "server": {"listen": listen, "port": port},
            "logging": {"level": level},
        },
    }


@app.command("serve", help="Keep the blacklist in sync and serve it over HTTP.")
def serve(ctx: typer.Context) -> None:
    state = _prepare(ctx)
    server = state.config.server
    try:
        state.scheduler.start()
        flask_app = create_app(state.store)
        console.print(f"Starting server on {server.listen}:{server.port}", style="green")
        flask_app.run(host=server.listen, port=server.port, threaded=True, use_reloader=False)
    finally:
        state.close()


@app.command("sync", help="Run one reconciliation pass now.")
def sync(ctx: typer.Context) -> None:
    state = _prepare(ctx)
    try:
        report = state.synchronizer.run_pass()
    finally:
        state.close()
    if report is None:
        console.print("A reconciliation pass is already running.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_report(report))
    if report.aborted:
        raise typer.Exit(code=EXIT_DATABASE)


@app.command("stats", help="Show the entry count and per-day breakdown.")
def stats(ctx: typer.Context) -> None:
    state = _prepare(ctx)
    try:
        total = state.store.count()
        buckets = state.store.grouped_by_day()
    except (PoolUnavailable, StoreError) as exc:
        console.print(f"Unable to read statistics: {exc}", style="red")
        raise typer.Exit(code=EXIT_DATABASE)
    finally:
        state.close()
    console.print(_render_stats(total, buckets))


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
