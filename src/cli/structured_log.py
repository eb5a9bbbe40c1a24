"""
Structured JSON event logger for container observability.

Emits one JSON object per line to stderr. Events are designed to be
parsed by log aggregators (Grafana Loki, CloudWatch, ELK).

Optional webhook: when configured, trade-level events (signal_rejected,
order_submitted, order_failed, audit_failed, error) are POSTed to the URL.
Credentials never appear in events.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("trade_guard.events")


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: Any = None,
    ) -> None:
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr
        self._ALERT_EVENTS = {
            "signal_rejected",
            "order_submitted",
            "order_failed",
            "audit_failed",
            "error",
        }

    def _emit(self, event_type: str, ticker: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "ticker": ticker,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record, default=str) + "\n")
            self._stream.flush()

        if self._webhook_url and event_type in self._ALERT_EVENTS:
            self._post_webhook(record)

        return record

    def _post_webhook(self, record: dict) -> None:
        try:
            data = json.dumps(record, default=str).encode("utf-8")
            req = urllib.request.Request(
                self._webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urllib.request.urlopen(req, timeout=5)
        except Exception as exc:
            logger.warning("Webhook POST failed: %s", exc)

    def signal_received(self, ticker: str, action: str, test_mode: bool) -> dict:
        return self._emit("signal_received", ticker, action=action, test_mode=test_mode)

    def signal_rejected(self, ticker: str, reason: str, status_code: int, state: str) -> dict:
        return self._emit(
            "signal_rejected",
            ticker,
            reason=reason,
            status_code=status_code,
            state=state,
        )

    def market_hours_bypassed(self, ticker: str) -> dict:
        return self._emit("market_hours_bypassed", ticker)

    def order_submitted(
        self,
        ticker: str,
        side: str,
        qty: int,
        price: Any,
        client_order_id: str,
    ) -> dict:
        return self._emit(
            "order_submitted",
            ticker,
            side=side,
            qty=qty,
            price=price,
            client_order_id=client_order_id,
        )

    def order_failed(self, ticker: str, side: str, qty: int, detail: str) -> dict:
        return self._emit("order_failed", ticker, side=side, qty=qty, detail=detail)

    def audit_failed(self, ticker: str, detail: str) -> dict:
        return self._emit("audit_failed", ticker, detail=detail)

    def error(self, ticker: str, message: str, detail: str = "") -> dict:
        return self._emit("error", ticker, message=message, detail=detail)
