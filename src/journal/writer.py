"""
Audit journal: append-only JSON lines, one record per order attempt.

A failed append raises AuditFault; callers treat it as a side-channel fault
and never let it change the decision already made.
"""

import json
from dataclasses import asdict
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from guard_core.contracts import AuditRecord
from guard_core.errors import AuditFault


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class AuditJournal:
    """Append-only audit sink. Each line is a JSON object with event "order_attempt"."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout

    @property
    def path(self) -> Path:
        return self._path

    def record(self, entry: AuditRecord) -> None:
        payload = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "event": "order_attempt",
            **asdict(entry),
        }
        line = json.dumps(_serialize(payload)) + "\n"
        try:
            with open(self._path, "a") as f:
                f.write(line)
        except OSError as exc:
            raise AuditFault(f"audit append to {self._path} failed: {exc}") from exc
        if self._echo:
            print(line.rstrip())

    def read_recent(self, limit: int = 20, ticker: str | None = None) -> list[dict[str, Any]]:
        """Last *limit* records (newest first), optionally for one ticker."""
        if not self._path.exists():
            return []
        records: list[dict[str, Any]] = []
        with open(self._path) as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if ticker is None or obj.get("ticker") == ticker:
                    records.append(obj)
        records.reverse()
        return records[:limit] if limit else records
