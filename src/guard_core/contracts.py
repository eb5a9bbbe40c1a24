"""
Data contracts for guard-core: signals, brokerage snapshots, orders, decisions.

guard-core consumes TradeSignal plus brokerage snapshots and produces an
OrderRequest and a Decision. No I/O; these are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class Action(str, Enum):
    """Trade direction carried by an inbound signal."""

    BUY = "BUY"
    SELL = "SELL"

    @property
    def side(self) -> str:
        """Brokerage order side ("buy" | "sell")."""
        return self.value.lower()

    @property
    def opposite(self) -> Action:
        return Action.SELL if self is Action.BUY else Action.BUY


class DispatchState(str, Enum):
    """States of the execution dispatcher, in traversal order."""

    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    MARKET_CHECK = "MARKET_CHECK"
    DAY_TRADE_CHECK = "DAY_TRADE_CHECK"
    EXPOSURE_CHECK = "EXPOSURE_CHECK"
    PRICED = "PRICED"
    SIZED = "SIZED"
    DISPATCHED = "DISPATCHED"
    LOGGED = "LOGGED"
    RESPONDED = "RESPONDED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class TradeSignal:
    """Inbound trade proposal. ``action`` holds the raw text when it is not BUY/SELL."""

    ticker: str
    action: Action | str
    test_mode: bool = False


@dataclass(frozen=True)
class AccountSnapshot:
    buying_power: Decimal


def _usable(value: Decimal | None) -> bool:
    if value is None:
        return False
    return value.is_finite() and value > 0


@dataclass(frozen=True)
class Quote:
    """Latest quote. Any field may be absent."""

    ask: Decimal | None = None
    bid: Decimal | None = None
    last: Decimal | None = None

    def usable_price(self) -> Decimal | None:
        """First positive finite price, preferring ask, then bid, then last."""
        for value in (self.ask, self.bid, self.last):
            if _usable(value):
                return value
        return None


@dataclass(frozen=True)
class PositionState:
    ticker: str
    quantity_held: Decimal = Decimal(0)


@dataclass(frozen=True)
class OpenOrder:
    ticker: str
    side: str  # "buy" | "sell"
    status: str = "open"


@dataclass(frozen=True)
class ClosedOrder:
    ticker: str
    side: str  # "buy" | "sell"
    filled_at: datetime | None = None


@dataclass(frozen=True)
class OrderRequest:
    ticker: str
    side: str  # "buy" | "sell"
    quantity: int
    client_order_id: str
    order_type: str = "market"
    time_in_force: str = "gtc"

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError(f"OrderRequest quantity must be >= 1, got {self.quantity}")


@dataclass(frozen=True)
class OrderReceipt:
    """What the brokerage acknowledged after placement."""

    order_id: str
    client_order_id: str
    status: str = "accepted"


@dataclass
class Decision:
    """Terminal output of the engine. Exactly one per TradeSignal."""

    approved: bool
    reason: str
    status_code: int
    signal: TradeSignal
    quantity: int | None = None
    price: Decimal | None = None
    fault: str | None = None
    notes: list[str] = field(default_factory=list)
    trail: list[DispatchState] = field(default_factory=list)
    order: OrderReceipt | None = None

    @property
    def state(self) -> DispatchState | None:
        return self.trail[-1] if self.trail else None

    @property
    def message(self) -> str:
        """Human-readable response line."""
        if self.approved:
            action = self.signal.action.value if isinstance(self.signal.action, Action) else self.signal.action
            return f"Order placed: {action} {self.quantity} {self.signal.ticker}"
        return self.reason


@dataclass(frozen=True)
class AuditRecord:
    timestamp: datetime
    ticker: str
    action: str
    quantity: int | None
    price: Decimal | None
    notes: str = ""
