"""
Guard policy loader: JSON file -> frozen dataclass tree, validated against JSON Schema.

Default values:      docs/config/policy.default.json
Schema:              docs/config/policy.schema.json

Per-ticker overrides: place a partial JSON file named ``policy.{TICKER}.json``
next to the default policy (e.g. ``docs/config/policy.IMNM.json``). Only the
keys you want to override need to be present; they are deep-merged on top
of the base policy before schema validation.

Usage:
    from config.policy import load_policy
    policy = load_policy()                      # loads default
    policy = load_policy(ticker="IMNM")         # merges policy.IMNM.json if present
    policy.risk.trade_fraction                  # -> 0.02
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import jsonschema

logger = logging.getLogger("trade_guard.config")


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml; fall back to CWD."""
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_POLICY_PATH = _PROJECT_ROOT / "docs" / "config" / "policy.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "policy.schema.json"


@dataclass(frozen=True)
class RiskConfig:
    trade_fraction: float


@dataclass(frozen=True)
class MarketHoursConfig:
    open_hour: int = 8
    close_hour: int = 15
    utc_offset_hours: int = -5


@dataclass(frozen=True)
class GuardToggles:
    day_trade: bool = True
    duplicate_exposure: bool = True


@dataclass(frozen=True)
class BypassConfig:
    bypass_market_hours: bool = True
    bypass_open_orders: bool = True


@dataclass(frozen=True)
class OrderConfig:
    type: str = "market"
    time_in_force: str = "gtc"


@dataclass(frozen=True)
class GuardPolicy:
    """Per-ticker guard policy."""
    version: str
    risk: RiskConfig
    market_hours: MarketHoursConfig = MarketHoursConfig()
    guards: GuardToggles = GuardToggles()
    test_mode: BypassConfig = BypassConfig()
    order: OrderConfig = OrderConfig()
    serialize_per_ticker: bool = False


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overrides* into a copy of *base* (override keys win)."""
    merged = dict(base)
    for key, val in overrides.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(val, dict):
            merged[key] = _deep_merge(merged[key], val)
        else:
            merged[key] = val
    return merged


class PolicyConfigError(Exception):
    """Raised when policy loading or validation fails."""


def _validate_schema(data: dict[str, Any], schema_path: Path) -> None:
    if not schema_path.exists():
        raise PolicyConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise PolicyConfigError(f"Policy validation failed: {exc.message}") from exc


def _build_policy(data: dict[str, Any]) -> GuardPolicy:
    """Convert a validated dict into the frozen dataclass tree."""
    mh_raw = data.get("market_hours", {})
    g_raw = data.get("guards", {})
    t_raw = data.get("test_mode", {})
    o_raw = data.get("order", {})

    mh = MarketHoursConfig(
        open_hour=mh_raw.get("open_hour", 8),
        close_hour=mh_raw.get("close_hour", 15),
        utc_offset_hours=mh_raw.get("utc_offset_hours", -5),
    )
    if mh.open_hour >= mh.close_hour:
        raise PolicyConfigError(
            f"market_hours.open_hour ({mh.open_hour}) must be before close_hour ({mh.close_hour})"
        )

    return GuardPolicy(
        version=data["version"],
        risk=RiskConfig(trade_fraction=data["risk"]["trade_fraction"]),
        market_hours=mh,
        guards=GuardToggles(
            day_trade=g_raw.get("day_trade", True),
            duplicate_exposure=g_raw.get("duplicate_exposure", True),
        ),
        test_mode=BypassConfig(
            bypass_market_hours=t_raw.get("bypass_market_hours", True),
            bypass_open_orders=t_raw.get("bypass_open_orders", True),
        ),
        order=OrderConfig(
            type=o_raw.get("type", "market"),
            time_in_force=o_raw.get("time_in_force", "gtc"),
        ),
        serialize_per_ticker=data.get("serialize_per_ticker", False),
    )


def load_policy(
    policy_path: str | Path | None = None,
    schema_path: str | Path | None = None,
    ticker: str | None = None,
) -> GuardPolicy:
    """Load and validate a guard policy.

    Parameters
    ----------
    policy_path:
        Path to a policy JSON file.  Defaults to ``docs/config/policy.default.json``.
    schema_path:
        Path to the JSON Schema file.  Defaults to ``docs/config/policy.schema.json``.
    ticker:
        Optional ticker.  When provided, ``policy.{TICKER}.json`` in the same
        directory as the base policy is deep-merged on top if it exists.

    Raises
    ------
    PolicyConfigError
        If the file is missing, unparseable, or fails schema validation.
    """
    pol_path = Path(policy_path) if policy_path else DEFAULT_POLICY_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    if not pol_path.exists():
        raise PolicyConfigError(f"Policy file not found: {pol_path}")

    try:
        with open(pol_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise PolicyConfigError(f"Policy is not valid JSON: {exc}") from exc

    if ticker:
        override_path = pol_path.parent / f"policy.{ticker.upper()}.json"
        if override_path.exists():
            try:
                with open(override_path) as f:
                    overrides = json.load(f)
            except json.JSONDecodeError as exc:
                raise PolicyConfigError(
                    f"Per-ticker policy {override_path.name} is not valid JSON: {exc}"
                ) from exc
            data = _deep_merge(data, overrides)
            logger.info("Loaded per-ticker policy: %s", override_path.name)
        else:
            logger.debug("No per-ticker policy at %s, using defaults", override_path)

    _validate_schema(data, sch_path)

    return _build_policy(data)


def load_policies(
    tickers: Iterable[str],
    policy_path: str | Path | None = None,
    schema_path: str | Path | None = None,
) -> dict[str, GuardPolicy]:
    """Load one policy per allow-listed ticker. Called once at start-up."""
    return {
        ticker: load_policy(policy_path, schema_path, ticker=ticker)
        for ticker in tickers
    }
