"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``PDS_AUDIT_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Library callers that do not use a config file can construct ``AppConfig()``
directly; every section has complete defaults matching the current policy.

The ``policy`` section is versioned: every ``AuditReport`` records the
``policy.version`` it was computed against, so an audit can be reproduced
later against the same entitlement ceilings and thresholds.
"""

from __future__ import annotations

import math
import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/pds_audit.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/pds_audit.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class EntitlementRule(BaseModel):
    """Monthly ceiling for one commodity under one card tier.

    ``per_head=True`` multiplies ``amount`` by the household size.
    """

    model_config = ConfigDict(frozen=True)

    amount: float
    per_head: bool = False

    def ceiling_for(self, household_members: int) -> float:
        return self.amount * household_members if self.per_head else self.amount


def _default_quota_ceilings() -> dict[str, dict[str, EntitlementRule]]:
    return {
        "pink": {
            "rice": EntitlementRule(amount=35),
            "wheat": EntitlementRule(amount=35),
            "sugar": EntitlementRule(amount=5),
        },
        "yellow": {
            "rice": EntitlementRule(amount=5, per_head=True),
            "wheat": EntitlementRule(amount=5, per_head=True),
            "sugar": EntitlementRule(amount=2, per_head=True),
        },
        "blue": {
            "rice": EntitlementRule(amount=3),
            "wheat": EntitlementRule(amount=3),
            "sugar": EntitlementRule(amount=1),
        },
        "white": {
            "rice": EntitlementRule(amount=0),
            "wheat": EntitlementRule(amount=0),
            "sugar": EntitlementRule(amount=0),
        },
    }


def _default_rice_eligibility() -> dict[str, EntitlementRule]:
    return {
        "pink": EntitlementRule(amount=35),
        "yellow": EntitlementRule(amount=5, per_head=True),
        "blue": EntitlementRule(amount=5, per_head=True),
        "white": EntitlementRule(amount=5, per_head=True),
    }


class PolicyConfig(BaseModel):
    """Versioned audit policy table: entitlements, rule thresholds, risk bands.

    Attributes:
        version: Policy identifier recorded on every audit report.
        zero_subsidy_tiers: Card tiers not entitled to any subsidized purchase.
        rice_eligibility_ceilings: Per-tier rice ceiling used by the
            eligibility rule (household entitlement sanity check).
        quota_ceilings: Per-tier, per-commodity monthly ceilings used by the
            quota-excess rule.
        pattern_lookback_days: Trailing window for frequency checks.
        max_orders_in_window: More orders than this in the window is unusual.
        high_value_threshold: An order above this total counts as "large".
        max_high_value_orders: More large orders than this is unusual.
        round_amount_unit: Totals divisible by this are "round".
        round_amount_floor: Round totals are only flagged above this floor.
        per_head_amount_ceiling: Max plausible order total per household member.
        duplicate_window_hours: Orders closer than this may be duplicates.
        duplicate_overlap_ratio: Item overlap needed to call two orders duplicates.
        risk_level_thresholds: Average-risk lower bounds for critical/high/medium.
        compliance_review_threshold: Compliance below this triggers a review
            recommendation.
    """

    model_config = ConfigDict(frozen=True)

    version: str = "2024.1"
    zero_subsidy_tiers: list[str] = ["white"]
    rice_eligibility_ceilings: dict[str, EntitlementRule] = _default_rice_eligibility()
    quota_ceilings: dict[str, dict[str, EntitlementRule]] = _default_quota_ceilings()

    pattern_lookback_days: int = 30
    max_orders_in_window: int = 10
    high_value_threshold: float = 2000.0
    max_high_value_orders: int = 2

    round_amount_unit: float = 100.0
    round_amount_floor: float = 500.0
    per_head_amount_ceiling: float = 800.0

    duplicate_window_hours: float = 24.0
    duplicate_overlap_ratio: float = 0.8

    risk_level_thresholds: dict[str, float] = {
        "critical": 80.0,
        "high": 60.0,
        "medium": 40.0,
    }
    compliance_review_threshold: float = 80.0

    @field_validator("duplicate_overlap_ratio")
    @classmethod
    def validate_overlap(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"duplicate_overlap_ratio must be in (0.0, 1.0], got {v}.")
        return v

    @field_validator("risk_level_thresholds")
    @classmethod
    def validate_risk_thresholds(cls, v: dict[str, float]) -> dict[str, float]:
        missing = {"critical", "high", "medium"} - set(v)
        if missing:
            raise ValueError(f"risk_level_thresholds missing keys: {sorted(missing)}.")
        if not v["critical"] >= v["high"] >= v["medium"] >= 0:
            raise ValueError("risk_level_thresholds must satisfy critical >= high >= medium >= 0.")
        return v


class AuditConfig(BaseModel):
    """Audit run settings."""

    model_config = ConfigDict(frozen=True)

    automated_lookback_days: int = 30
    history_cap: int = 50
    compliance_basis: Literal["issues", "orders"] = "issues"
    dashboard_recent: int = 5

    @field_validator("history_cap")
    @classmethod
    def validate_cap(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"history_cap must be >= 1, got {v}.")
        return v


class ForecastConfig(BaseModel):
    """Demand forecast settings.

    ``ensemble_weights`` are applied in estimator order: moving average,
    exponential smoothing, linear regression, seasonal adjustment.
    """

    model_config = ConfigDict(frozen=True)

    ensemble_weights: list[float] = [0.3, 0.3, 0.2, 0.2]
    smoothing_alpha: float = 0.3
    moving_average_window: int = 3
    seasonal_periods: list[int] = [2, 3, 4, 6]
    basis_confidence_threshold: float = 0.8
    history_months: int = 12
    history_display_months: int = 6
    default_horizon_months: int = 3
    safety_stock_factor: float = 1.2
    understock_ratio: float = 0.8
    overstock_ratio: float = 1.5
    tracked_items: list[str] = ["rice", "wheat", "sugar", "dal", "oil", "salt", "tea"]
    low_confidence_threshold: float = 50.0
    max_workers: int = 1

    @field_validator("ensemble_weights")
    @classmethod
    def validate_weights(cls, v: list[float]) -> list[float]:
        if len(v) != 4:
            raise ValueError(f"ensemble_weights needs exactly 4 entries, got {len(v)}.")
        if any(w < 0 for w in v):
            raise ValueError("ensemble_weights must be non-negative.")
        if not math.isclose(sum(v), 1.0, abs_tol=1e-9):
            raise ValueError(f"ensemble_weights must sum to 1.0, got {sum(v)}.")
        return v

    @field_validator("smoothing_alpha")
    @classmethod
    def validate_alpha(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"smoothing_alpha must be in (0.0, 1.0], got {v}.")
        return v

    @model_validator(mode="after")
    def validate_stock_ratios(self) -> "ForecastConfig":
        if not 0.0 < self.understock_ratio <= self.overstock_ratio:
            raise ValueError(
                f"Expected 0 < understock_ratio ({self.understock_ratio}) "
                f"<= overstock_ratio ({self.overstock_ratio})."
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}.")
        return self


class AppConfig(BaseModel):
    """Complete application configuration, the single source of truth.

    The service facade, the CLI, and every engine receive an ``AppConfig``
    (or one of its sections). It is constructed by ``load_config()`` which
    merges TOML + .env.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    audit: AuditConfig = AuditConfig()
    policy: PolicyConfig = PolicyConfig()
    forecast: ForecastConfig = ForecastConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config explicitly."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    # Also merge local.toml if present (gitignored local overrides)
    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply PDS_AUDIT_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply PDS_AUDIT_* env vars to the raw config dict.

    Supported overrides:
      PDS_AUDIT_DB_PATH         → raw["database"]["db_path"]
      PDS_AUDIT_LOG_LEVEL       → raw["logging"]["level"]
      PDS_AUDIT_POLICY_VERSION  → raw["policy"]["version"]
      PDS_AUDIT_DEBUG           → raw["debug"]
    """
    if db_path := os.environ.get("PDS_AUDIT_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("PDS_AUDIT_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if policy_version := os.environ.get("PDS_AUDIT_POLICY_VERSION"):
        raw.setdefault("policy", {})["version"] = policy_version

    if debug := os.environ.get("PDS_AUDIT_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        audit=AuditConfig(**raw.get("audit", {})),
        policy=PolicyConfig(**raw.get("policy", {})),
        forecast=ForecastConfig(**raw.get("forecast", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
