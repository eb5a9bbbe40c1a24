"""
Execution dispatcher: TradeSignal -> guards -> sizing -> one order -> audit -> Decision.

State machine (every state entered is appended to Decision.trail):

    RECEIVED -> VALIDATED -> MARKET_CHECK -> DAY_TRADE_CHECK
             -> EXPOSURE_CHECK (BUY only) -> PRICED -> SIZED
             -> DISPATCHED -> LOGGED -> RESPONDED

Any guard, pricing or dependency failure before DISPATCHED goes straight to
REJECTED and no order is sent. LOGGED always follows DISPATCHED, whether the
order call succeeded or not. Any other unexpected error also ends in REJECTED
with a 500 and an error event. Audit failures are reported server-side and
never change the decision. One invocation, one signal, one terminal state;
no retries.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Mapping

from guard_core.contracts import (
    Action,
    AuditRecord,
    Decision,
    DispatchState,
    OrderReceipt,
    OrderRequest,
    TradeSignal,
)
from guard_core.errors import DependencyFault, GuardFault
from guard_core.guards import MARKET_HOURS_BYPASSED, Guard, GuardContext, build_guard_chain
from guard_core.serialization import TickerLocks
from guard_core.signal_validator import validate_signal
from guard_core.sizer import resolve_price, size_order

if TYPE_CHECKING:
    from broker.oracle import AccountOracle
    from cli.structured_log import StructuredEventLogger
    from config.policy import GuardPolicy
    from journal.writer import AuditJournal

logger = logging.getLogger("trade_guard.dispatcher")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_client_order_id(ticker: str) -> str:
    """Idempotency key sent with the order."""
    return f"tg-{ticker.lower()}-{uuid.uuid4().hex}"


class ExecutionDispatcher:
    """
    Sequence the guards for one signal and place at most one order.

    ``policies`` maps every allow-listed ticker to its guard policy; its keys
    are the allow-list. The oracle is queried fresh on every dispatch; nothing
    brokerage-owned is cached here.
    """

    def __init__(
        self,
        oracle: AccountOracle,
        policies: Mapping[str, GuardPolicy],
        *,
        audit: AuditJournal | None = None,
        events: StructuredEventLogger | None = None,
        clock: Callable[[], datetime] = _utc_now,
        locks: TickerLocks | None = None,
    ) -> None:
        self._oracle = oracle
        self._policies = dict(policies)
        self._chains: dict[str, list[Guard]] = {
            ticker: build_guard_chain(policy) for ticker, policy in self._policies.items()
        }
        self._audit = audit
        self._events = events
        self._clock = clock
        self._locks = locks if locks is not None else TickerLocks()

    @property
    def allowed_tickers(self) -> tuple[str, ...]:
        return tuple(self._policies)

    def dispatch(self, signal: TradeSignal) -> Decision:
        trail = [DispatchState.RECEIVED]
        notes: list[str] = []
        if self._events:
            action = signal.action.value if isinstance(signal.action, Action) else signal.action
            self._events.signal_received(signal.ticker, action, signal.test_mode)

        try:
            return self._run(signal, trail, notes)
        except Exception as exc:
            logger.exception("Unhandled error dispatching %s", signal.ticker)
            return self._reject(signal, DependencyFault("dispatch", repr(exc)), trail, notes)

    def _run(self, signal: TradeSignal, trail: list[DispatchState], notes: list[str]) -> Decision:
        try:
            validate_signal(signal, self._policies)
        except GuardFault as fault:
            return self._reject(signal, fault, trail, notes)
        trail.append(DispatchState.VALIDATED)

        policy = self._policies[signal.ticker]
        if policy.serialize_per_ticker:
            with self._locks.hold(signal.ticker):
                return self._evaluate(signal, policy, trail, notes)
        return self._evaluate(signal, policy, trail, notes)

    def _evaluate(
        self,
        signal: TradeSignal,
        policy: GuardPolicy,
        trail: list[DispatchState],
        notes: list[str],
    ) -> Decision:
        now = self._clock().astimezone(timezone.utc)
        ctx = GuardContext(signal=signal, oracle=self._oracle, policy=policy, now=now, notes=notes)

        try:
            for guard in self._chains[signal.ticker]:
                if not guard.applies(signal):
                    continue
                trail.append(guard.state)
                rejection = guard.check(ctx)
                if rejection is not None:
                    return self._reject(signal, rejection, trail, notes)
                if guard.name == "market_hours" and MARKET_HOURS_BYPASSED in notes and self._events:
                    self._events.market_hours_bypassed(signal.ticker)

            account = self._oracle.get_account()
            quote = self._oracle.get_latest_quote(signal.ticker)
            price = resolve_price(quote)
            trail.append(DispatchState.PRICED)

            quantity = size_order(account.buying_power, policy.risk.trade_fraction, price)
            trail.append(DispatchState.SIZED)
        except GuardFault as fault:
            return self._reject(signal, fault, trail, notes)

        order = OrderRequest(
            ticker=signal.ticker,
            side=signal.action.side,
            quantity=quantity,
            client_order_id=new_client_order_id(signal.ticker),
            order_type=policy.order.type,
            time_in_force=policy.order.time_in_force,
        )
        return self._place(signal, order, price, trail, notes)

    def _place(
        self,
        signal: TradeSignal,
        order: OrderRequest,
        price: Decimal,
        trail: list[DispatchState],
        notes: list[str],
    ) -> Decision:
        trail.append(DispatchState.DISPATCHED)
        receipt: OrderReceipt | None = None
        failure: DependencyFault | None = None
        try:
            receipt = self._oracle.place_order(order)
        except DependencyFault as fault:
            failure = fault
            logger.error("Order placement failed for %s: %s", signal.ticker, fault)
            if self._events:
                self._events.order_failed(signal.ticker, order.side, order.quantity, fault.operation)
        else:
            logger.info("Order placed: %s %d %s @ ~%s", order.side, order.quantity, order.ticker, price)
            if self._events:
                self._events.order_submitted(
                    signal.ticker, order.side, order.quantity, price, order.client_order_id
                )

        self._record_audit(signal, order, price, receipt, failure, notes)
        trail.append(DispatchState.LOGGED)
        trail.append(DispatchState.RESPONDED)

        if failure is not None:
            return Decision(
                approved=False,
                reason=failure.reason,
                status_code=failure.status_code,
                signal=signal,
                quantity=order.quantity,
                price=price,
                fault=failure.kind,
                notes=notes,
                trail=trail,
            )
        return Decision(
            approved=True,
            reason="Order placed",
            status_code=200,
            signal=signal,
            quantity=order.quantity,
            price=price,
            notes=notes,
            trail=trail,
            order=receipt,
        )

    def _record_audit(
        self,
        signal: TradeSignal,
        order: OrderRequest,
        price: Decimal,
        receipt: OrderReceipt | None,
        failure: DependencyFault | None,
        notes: list[str],
    ) -> None:
        if self._audit is None:
            return
        if receipt is not None:
            outcome = f"placed order_id={receipt.order_id} status={receipt.status}"
        else:
            outcome = f"failed at {failure.operation}" if failure else "failed"
        parts = [outcome, f"client_order_id={order.client_order_id}", *notes]
        entry = AuditRecord(
            timestamp=self._clock().astimezone(timezone.utc),
            ticker=signal.ticker,
            action=signal.action.value,
            quantity=order.quantity,
            price=price,
            notes="; ".join(parts),
        )
        try:
            self._audit.record(entry)
        except Exception as exc:
            logger.warning("Audit append failed for %s: %s", signal.ticker, exc)
            if self._events:
                self._events.audit_failed(signal.ticker, str(exc))

    def _reject(
        self,
        signal: TradeSignal,
        fault: GuardFault,
        trail: list[DispatchState],
        notes: list[str],
    ) -> Decision:
        at_state = trail[-1]
        trail.append(DispatchState.REJECTED)
        if isinstance(fault, DependencyFault):
            logger.error("Dependency fault for %s at %s: %s", signal.ticker, at_state.value, fault)
            if self._events:
                self._events.error(signal.ticker, "dependency fault", f"{fault.operation} at {at_state.value}")
        else:
            logger.info("Rejected %s at %s: %s", signal.ticker, at_state.value, fault.reason)
        if self._events:
            self._events.signal_rejected(signal.ticker, fault.reason, fault.status_code, at_state.value)
        return Decision(
            approved=False,
            reason=fault.reason,
            status_code=fault.status_code,
            signal=signal,
            fault=fault.kind,
            notes=notes,
            trail=trail,
        )
