"""
Guards: policy checks that can only reject, never approve.

Implemented guards, in evaluation order:
    market_hours        : weekday + regional hour window (test mode may bypass).
    day_trade           : no opposite-side fill for the ticker today.
    duplicate_exposure  : BUY only: no held position and no open buy order.

Each check returns a PolicyRejection (not raised) or None, so the dispatcher
can record which guard stopped a signal. Brokerage reads go through the
oracle on the GuardContext; their DependencyFaults propagate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Iterable

from guard_core.contracts import Action, ClosedOrder, DispatchState, TradeSignal
from guard_core.errors import PolicyRejection
from guard_core.market_calendar import is_market_open

if TYPE_CHECKING:
    from broker.oracle import AccountOracle
    from config.policy import GuardPolicy

logger = logging.getLogger("trade_guard.guards")

OUTSIDE_MARKET_HOURS = "Outside market hours"
DAY_TRADE_BLOCKED = "Day trade blocked"
DUPLICATE_POSITION = "Position already held"
DUPLICATE_OPEN_ORDER = "Buy order already pending"
MARKET_HOURS_BYPASSED = "market hours bypassed (test mode)"
OPEN_ORDERS_BYPASSED = "open-order check bypassed (test mode)"


@dataclass
class GuardContext:
    """Everything a guard may look at for one signal."""

    signal: TradeSignal
    oracle: AccountOracle
    policy: GuardPolicy
    now: datetime
    notes: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure predicates
# ---------------------------------------------------------------------------


def blocks_round_trip(
    ticker: str,
    action: Action,
    closed_orders: Iterable[ClosedOrder],
    today: date,
) -> bool:
    """True if an opposite-side order for *ticker* filled on *today*.

    The day is the literal date prefix of the fill timestamp; no timezone
    normalization.
    """
    opposite = action.opposite.side
    today_str = today.isoformat()
    for order in closed_orders:
        if order.ticker != ticker or order.side != opposite or order.filled_at is None:
            continue
        if order.filled_at.isoformat()[:10] == today_str:
            return True
    return False


def blocks_duplicate_buy(position_qty: Decimal | float, has_open_buy: bool) -> bool:
    """True if a position is held or a buy is already in flight."""
    return position_qty > 0 or has_open_buy


# ---------------------------------------------------------------------------
# Guard checks
# ---------------------------------------------------------------------------


def check_market_hours(ctx: GuardContext) -> PolicyRejection | None:
    if ctx.signal.test_mode and ctx.policy.test_mode.bypass_market_hours:
        ctx.notes.append(MARKET_HOURS_BYPASSED)
        logger.info("Market-hours check bypassed for %s (test mode)", ctx.signal.ticker)
        return None
    if not is_market_open(ctx.now, ctx.policy.market_hours):
        return PolicyRejection(OUTSIDE_MARKET_HOURS, 403)
    return None


def check_day_trade(ctx: GuardContext) -> PolicyRejection | None:
    closed = ctx.oracle.get_closed_orders(ctx.signal.ticker)
    if blocks_round_trip(ctx.signal.ticker, ctx.signal.action, closed, ctx.now.date()):
        return PolicyRejection(DAY_TRADE_BLOCKED, 403)
    return None


def check_duplicate_exposure(ctx: GuardContext) -> PolicyRejection | None:
    ticker = ctx.signal.ticker
    position = ctx.oracle.get_position(ticker)
    if blocks_duplicate_buy(position.quantity_held, False):
        return PolicyRejection(DUPLICATE_POSITION, 409)

    if ctx.signal.test_mode and ctx.policy.test_mode.bypass_open_orders:
        ctx.notes.append(OPEN_ORDERS_BYPASSED)
        return None

    open_orders = ctx.oracle.get_open_orders(ticker)
    has_open_buy = any(o.ticker == ticker and o.side == Action.BUY.side for o in open_orders)
    if blocks_duplicate_buy(position.quantity_held, has_open_buy):
        return PolicyRejection(DUPLICATE_OPEN_ORDER, 409)
    return None


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Guard:
    name: str
    state: DispatchState
    check: Callable[[GuardContext], PolicyRejection | None]
    buy_only: bool = False

    def applies(self, signal: TradeSignal) -> bool:
        return not self.buy_only or signal.action is Action.BUY


def build_guard_chain(policy: GuardPolicy) -> list[Guard]:
    """Ordered guard list for a ticker's policy. Disabled guards are left out."""
    chain = [Guard("market_hours", DispatchState.MARKET_CHECK, check_market_hours)]
    if policy.guards.day_trade:
        chain.append(Guard("day_trade", DispatchState.DAY_TRADE_CHECK, check_day_trade))
    if policy.guards.duplicate_exposure:
        chain.append(
            Guard(
                "duplicate_exposure",
                DispatchState.EXPOSURE_CHECK,
                check_duplicate_exposure,
                buy_only=True,
            )
        )
    return chain
