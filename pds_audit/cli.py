"""
PDS Audit: CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Open the SQLite data store.
  4. Call the ``AuditService`` operation.
  5. Print an ASCII report (and optionally write ``--output``).

Install and run::

    pip install -e .
    pds-audit --help
    pds-audit init-db
    pds-audit validate-config
    pds-audit import-data --file data/raw/snapshot.json
    pds-audit run-audit --store S1
    pds-audit forecast --store S1 --item rice --horizon 3
    pds-audit store-report --store S1 --output reports/s1.json
    pds-audit latest-audit --store S1
    pds-audit dashboard
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="pds-audit",
    help="PDS audit & demand-forecasting engine.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from pds_audit.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    from pds_audit.utils.logging import configure_logging
    configure_logging(config.logging)


def _open_store(config, db_path: Optional[str] = None):
    """SQLite store for ``config`` with the schema applied."""
    from pds_audit.db.store import SqliteDataStore
    from pds_audit.exceptions import StoreError

    store = SqliteDataStore(
        db_path=db_path or config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
        history_cap=config.audit.history_cap,
    )
    try:
        store.initialize()
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    return store


def _service(config_path: Optional[str], db_path: Optional[str] = None):
    from pds_audit.service import AuditService

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    return AuditService(_open_store(config, db_path), config)


def _write_output(report, output: Optional[str]) -> None:
    """Export ``report`` when ``--output`` was given (.csv or JSON)."""
    if not output:
        return
    from pds_audit.models.audit import AuditReport
    from pds_audit.models.demand import StoreDemandReport
    from pds_audit.reporting.export import (
        export_audit_report,
        export_demand_report,
        export_to_json,
    )

    path = Path(output)
    if isinstance(report, AuditReport):
        written = export_audit_report(report, path)
    elif isinstance(report, StoreDemandReport):
        written = export_demand_report(report, path)
    else:
        written = export_to_json(report.model_dump(mode="json"), path)
    typer.echo(f"  Written: {written}")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times: all DDL uses IF NOT EXISTS.
    """
    from pds_audit.db.schema import ALL_TABLE_NAMES

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")
    _open_store(config, target_path)
    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
    show_full: bool = typer.Option(False, "--full", help="Print the full config as JSON."),
) -> None:
    """Validate the configuration file and print the key values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Policy version:    {config.policy.version}")
    typer.echo(f"  Compliance basis:  {config.audit.compliance_basis}")
    typer.echo(f"  Audit lookback:    {config.audit.automated_lookback_days} days")
    typer.echo(f"  Ensemble weights:  {config.forecast.ensemble_weights}")
    typer.echo(f"  Tracked items:     {', '.join(config.forecast.tracked_items)}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(mode="json"), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("import-data")
def import_data(
    data_file: str = typer.Option(..., "--file", "-f", help="Snapshot JSON file."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Validate the snapshot but do not write it."
    ),
) -> None:
    """Import stores, beneficiaries, orders, demand history and stock.

    Orders may carry legacy item strings such as "Premium Rice (10kg)";
    they are converted to structured line items on import.
    """
    from pds_audit.exceptions import StoreError
    from pds_audit.ingestion.snapshot import import_snapshot, load_snapshot

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(data_file)
    if not path.exists():
        typer.echo(f"[ERROR] Snapshot file not found: {path}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Loading snapshot from: {path}")
    try:
        snapshot = load_snapshot(path)
    except (ValueError, KeyError) as exc:
        typer.echo(f"[ERROR] Snapshot validation failed:\n{exc}", err=True)
        raise typer.Exit(code=1)

    counts = snapshot.counts()
    for name, n in counts.items():
        typer.echo(f"  {name:<15} {n}")

    if dry_run:
        typer.echo("[DRY RUN] Nothing written to database.")
        return

    store = _open_store(config, db_path)
    try:
        import_snapshot(store, snapshot)
    except StoreError as exc:
        typer.echo(f"[ERROR] Import failed: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo("[OK] Snapshot imported.")


@app.command("run-audit")
def run_audit(
    store_id: str = typer.Option(..., "--store", "-s", help="Store to audit."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write the result to this file (.json or .csv)."
    ),
) -> None:
    """Audit the store's orders from the configured lookback window."""
    from pds_audit.reporting.formatters import format_audit_report

    service = _service(config_path, db_path)
    report = service.run_automated_audit(store_id)
    if report is None:
        typer.echo(f"[ERROR] Automated audit failed for store {store_id}; see log.", err=True)
        raise typer.Exit(code=1)

    typer.echo(format_audit_report(report))
    _write_output(report, output)


@app.command("forecast")
def forecast(
    store_id: str = typer.Option(..., "--store", "-s", help="Store id."),
    item_id: str = typer.Option(..., "--item", "-i", help="Commodity code, e.g. rice."),
    horizon: int = typer.Option(3, "--horizon", min=1, help="Months to forecast."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write the result to this file (.json or .csv)."
    ),
) -> None:
    """Forecast monthly demand for one commodity at one store."""
    from pds_audit.exceptions import StoreError
    from pds_audit.reporting.formatters import format_demand_forecast

    service = _service(config_path, db_path)
    try:
        result = service.generate_demand_forecast(store_id, item_id, horizon)
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(format_demand_forecast(result))
    _write_output(result, output)


@app.command("store-report")
def store_report(
    store_id: str = typer.Option(..., "--store", "-s", help="Store id."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write the result to this file (.json or .csv)."
    ),
) -> None:
    """Forecast every tracked commodity and print the store demand report."""
    from pds_audit.exceptions import StoreError
    from pds_audit.reporting.formatters import format_store_demand_report

    service = _service(config_path, db_path)
    try:
        report = service.generate_store_demand_report(store_id)
    except StoreError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(format_store_demand_report(report))
    _write_output(report, output)


@app.command("latest-audit")
def latest_audit(
    store_id: str = typer.Option(..., "--store", "-s", help="Store id."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write the result to this file (.json or .csv)."
    ),
) -> None:
    """Show the most recent retained audit report for a store."""
    from pds_audit.reporting.formatters import format_audit_report

    service = _service(config_path, db_path)
    report = service.get_latest_audit_for_store(store_id)
    if report is None:
        typer.echo(f"  (no audits for store {store_id} -- run 'run-audit' first)")
        return

    typer.echo(format_audit_report(report))
    _write_output(report, output)


@app.command("dashboard")
def dashboard(
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Write the result to this file (.json or .csv)."
    ),
) -> None:
    """Summarize the retained audit history."""
    from pds_audit.reporting.formatters import format_dashboard

    service = _service(config_path, db_path)
    data = service.get_audit_dashboard_data()
    typer.echo(format_dashboard(data))
    _write_output(data, output)


if __name__ == "__main__":
    app()
