"""
Account & market oracle: read-only brokerage queries plus the single order write.

Configurable adapter; sync, one attempt per call.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from guard_core.contracts import (
    AccountSnapshot,
    ClosedOrder,
    OpenOrder,
    OrderReceipt,
    OrderRequest,
    PositionState,
    Quote,
)
from guard_core.errors import DependencyFault


class AccountOracle(Protocol):
    """Protocol for brokerage adapters. Reads are idempotent and side-effect free.

    Any transport or API failure surfaces as DependencyFault. A missing
    position is the one "not found" normalized to a value (quantity 0).
    """

    def get_account(self) -> AccountSnapshot:
        ...

    def get_position(self, ticker: str) -> PositionState:
        ...

    def get_open_orders(self, ticker: str) -> list[OpenOrder]:
        ...

    def get_closed_orders(self, ticker: str) -> list[ClosedOrder]:
        ...

    def get_latest_quote(self, ticker: str) -> Quote:
        ...

    def place_order(self, order: OrderRequest) -> OrderReceipt:
        ...


@dataclass
class InMemoryOracle:
    """Canned brokerage state; for tests and dry runs. Records every call."""

    buying_power: Decimal = Decimal("100000")
    quotes: dict[str, Quote] = field(default_factory=dict)
    positions: dict[str, Decimal] = field(default_factory=dict)
    open_orders: list[OpenOrder] = field(default_factory=list)
    closed_orders: list[ClosedOrder] = field(default_factory=list)
    placed: list[OrderRequest] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    fail_on: set[str] = field(default_factory=set)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise DependencyFault(operation, "simulated failure")

    def get_account(self) -> AccountSnapshot:
        self._enter("get_account")
        return AccountSnapshot(buying_power=self.buying_power)

    def get_position(self, ticker: str) -> PositionState:
        self._enter("get_position")
        return PositionState(ticker=ticker, quantity_held=self.positions.get(ticker, Decimal(0)))

    def get_open_orders(self, ticker: str) -> list[OpenOrder]:
        self._enter("get_open_orders")
        return [o for o in self.open_orders if o.ticker == ticker]

    def get_closed_orders(self, ticker: str) -> list[ClosedOrder]:
        self._enter("get_closed_orders")
        return [o for o in self.closed_orders if o.ticker == ticker]

    def get_latest_quote(self, ticker: str) -> Quote:
        self._enter("get_latest_quote")
        return self.quotes.get(ticker, Quote())

    def place_order(self, order: OrderRequest) -> OrderReceipt:
        self._enter("place_order")
        self.placed.append(order)
        return OrderReceipt(order_id=str(uuid.uuid4()), client_order_id=order.client_order_id)
