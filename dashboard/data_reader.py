"""
Read-only data access for the trade-guard dashboard.
Reads order attempts from the audit journal (data/audit.jsonl by default).
"""

import json
import os
from pathlib import Path
from typing import Any


def _audit_path() -> Path:
    """Audit journal: repo root / data / audit.jsonl, or TRADE_GUARD_AUDIT_PATH if set."""
    if env := os.environ.get("TRADE_GUARD_AUDIT_PATH"):
        return Path(env)
    return Path(__file__).resolve().parent.parent / "data" / "audit.jsonl"


def _read_records(path: Path) -> list[dict[str, Any]]:
    """All parseable records, oldest first. Unreadable lines are skipped."""
    if not path.exists():
        return []
    out: list[dict[str, Any]] = []
    try:
        with open(path) as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    out.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
    except OSError:
        return []
    return out


def discover_tickers(path: Path | None = None) -> list[str]:
    """Tickers that have at least one order attempt, sorted."""
    records = _read_records(path or _audit_path())
    return sorted({r["ticker"] for r in records if r.get("ticker")})


def get_recent_audit_records(
    ticker: str | None = None,
    limit: int = 50,
    path: Path | None = None,
) -> list[dict[str, Any]]:
    """
    Last `limit` order attempts, newest first.
    If ticker is set, filter to that ticker before applying the limit.
    """
    records = _read_records(path or _audit_path())
    if ticker is not None:
        records = [r for r in records if r.get("ticker") == ticker]
    records.reverse()
    return records[:limit] if limit else records


def summarize(records: list[dict[str, Any]]) -> dict[str, Any]:
    """Counts of placed vs failed attempts, shares per side, and the latest timestamp."""
    placed = [r for r in records if str(r.get("notes", "")).startswith("placed")]
    shares = {"BUY": 0, "SELL": 0}
    for r in placed:
        action = r.get("action")
        if action in shares:
            shares[action] += int(r.get("quantity") or 0)
    timestamps = [r.get("timestamp") for r in records if r.get("timestamp")]
    return {
        "attempts": len(records),
        "placed": len(placed),
        "failed": len(records) - len(placed),
        "shares_bought": shares["BUY"],
        "shares_sold": shares["SELL"],
        "last_attempt": max(timestamps) if timestamps else None,
    }
