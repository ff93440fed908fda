"""
pds_audit.reporting: CLI formatting and file export for reports.

Modules:
  formatters: ASCII terminal formatters for Typer CLI commands.
  export:     JSON / flat CSV export helpers.
"""
