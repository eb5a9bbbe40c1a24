"""
Signal Validator: raw webhook payload -> TradeSignal, then allow-list and action checks.

Pure, no I/O. The allow-list is checked before the action so that a
disallowed ticker is rejected before anything else is looked at.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from guard_core.contracts import Action, TradeSignal
from guard_core.errors import ValidationFault

TICKER_NOT_ALLOWED = "Ticker not allowed"
INVALID_ACTION = "Invalid action"
MALFORMED_BODY = "Malformed request body"


def parse_signal(payload: Any) -> TradeSignal:
    """Build a TradeSignal from the inbound JSON body.

    An action outside BUY/SELL is kept as raw text; ``validate_signal``
    rejects it after the allow-list check. Only a JSON ``true`` enables
    test mode.
    """
    if not isinstance(payload, Mapping):
        raise ValidationFault(MALFORMED_BODY, 400)

    ticker = payload.get("ticker")
    if not isinstance(ticker, str):
        ticker = ""

    raw_action = payload.get("action")
    try:
        action: Action | str = Action(raw_action)
    except ValueError:
        action = "" if raw_action is None else str(raw_action)

    return TradeSignal(
        ticker=ticker,
        action=action,
        test_mode=payload.get("test") is True,
    )


def validate_signal(signal: TradeSignal, allowed_tickers: Iterable[str]) -> None:
    """Raise ValidationFault unless the ticker is allow-listed and the action is BUY/SELL."""
    if not signal.ticker or signal.ticker not in set(allowed_tickers):
        raise ValidationFault(TICKER_NOT_ALLOWED, 403)
    if not isinstance(signal.action, Action):
        raise ValidationFault(INVALID_ACTION, 400)
