"""
Alpaca oracle: implements AccountOracle with the alpaca-py SDK.

Trading endpoints (account, positions, orders) go through TradingClient
(paper by default). Quotes come from StockHistoricalDataClient; the latest
trade is fetched only when neither ask nor bid is usable.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

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

logger = logging.getLogger("trade_guard.broker")

POSITION_NOT_FOUND_CODE = 40410000


def _decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _text(value: Any) -> str:
    """Alpaca str-enum or plain string -> lowercase text ("buy", "accepted", ...)."""
    return str(getattr(value, "value", value)).lower()


def _is_not_found(exc: Exception) -> bool:
    """True for a missing-position APIError.

    APIError parses ``status_code`` and ``code`` lazily from the response; a
    non-JSON body or one without a ``code`` is not a not-found.
    """
    try:
        if exc.status_code == 404:
            return True
    except AttributeError:
        pass
    try:
        return exc.code == POSITION_NOT_FOUND_CODE
    except (AttributeError, ValueError, KeyError, TypeError):
        return False


class AlpacaOracle:
    """
    Brokerage reads and order placement against Alpaca.

    API keys via constructor (typically from AppConfig, sourced from env vars).
    Keys are never logged.
    """

    def __init__(self, api_key: str, api_secret: str, *, paper: bool = True) -> None:
        if not api_key or not api_secret:
            raise ValueError(
                "Alpaca API key and secret are required. "
                "Set APCA_API_KEY_ID and APCA_API_SECRET_KEY environment variables."
            )
        try:
            from alpaca.data.historical import StockHistoricalDataClient
            from alpaca.trading.client import TradingClient
        except ImportError:
            raise ImportError(
                "alpaca-py is required for AlpacaOracle. "
                "Install with: pip install alpaca-py"
            )
        self._trading = TradingClient(api_key, api_secret, paper=paper)
        self._data = StockHistoricalDataClient(api_key, api_secret)
        self._paper = paper

    def _call(self, operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            logger.warning("[CALL] %s failed: %r", operation, exc)
            raise DependencyFault(operation, repr(exc)) from exc

    def get_account(self) -> AccountSnapshot:
        account = self._call("get_account", self._trading.get_account)
        buying_power = _decimal(getattr(account, "buying_power", None))
        if buying_power is None or not buying_power.is_finite():
            raise DependencyFault("get_account", "account has no usable buying_power")
        return AccountSnapshot(buying_power=buying_power)

    def get_position(self, ticker: str) -> PositionState:
        from alpaca.common.exceptions import APIError

        try:
            position = self._trading.get_open_position(ticker)
        except APIError as exc:
            if _is_not_found(exc):
                logger.debug("No open position for %s", ticker)
                return PositionState(ticker=ticker, quantity_held=Decimal(0))
            logger.warning("[CALL] get_position failed: %r", exc)
            raise DependencyFault("get_position", repr(exc)) from exc
        except Exception as exc:
            logger.warning("[CALL] get_position failed: %r", exc)
            raise DependencyFault("get_position", repr(exc)) from exc

        qty = _decimal(getattr(position, "qty", None))
        if qty is None:
            raise DependencyFault("get_position", f"unparseable qty for {ticker}")
        return PositionState(ticker=ticker, quantity_held=qty)

    def _list_orders(self, operation: str, ticker: str, status: str) -> list[Any]:
        from alpaca.trading.enums import QueryOrderStatus
        from alpaca.trading.requests import GetOrdersRequest

        request = GetOrdersRequest(
            status=getattr(QueryOrderStatus, status),
            symbols=[ticker],
        )
        return self._call(operation, self._trading.get_orders, filter=request) or []

    def get_open_orders(self, ticker: str) -> list[OpenOrder]:
        orders = self._list_orders("get_open_orders", ticker, "OPEN")
        return [
            OpenOrder(ticker=o.symbol, side=_text(o.side))
            for o in orders
            if o.symbol == ticker
        ]

    def get_closed_orders(self, ticker: str) -> list[ClosedOrder]:
        orders = self._list_orders("get_closed_orders", ticker, "CLOSED")
        return [
            ClosedOrder(ticker=o.symbol, side=_text(o.side), filled_at=getattr(o, "filled_at", None))
            for o in orders
            if o.symbol == ticker
        ]

    def get_latest_quote(self, ticker: str) -> Quote:
        from alpaca.data.requests import StockLatestQuoteRequest, StockLatestTradeRequest

        quotes = self._call(
            "get_latest_quote",
            self._data.get_stock_latest_quote,
            StockLatestQuoteRequest(symbol_or_symbols=ticker),
        )
        raw = quotes.get(ticker) if quotes else None
        quote = Quote(
            ask=_decimal(getattr(raw, "ask_price", None)),
            bid=_decimal(getattr(raw, "bid_price", None)),
        )
        if quote.usable_price() is not None:
            return quote

        trades = self._call(
            "get_latest_trade",
            self._data.get_stock_latest_trade,
            StockLatestTradeRequest(symbol_or_symbols=ticker),
        )
        trade = trades.get(ticker) if trades else None
        return Quote(ask=quote.ask, bid=quote.bid, last=_decimal(getattr(trade, "price", None)))

    def place_order(self, order: OrderRequest) -> OrderReceipt:
        from alpaca.trading.enums import OrderSide, TimeInForce
        from alpaca.trading.requests import MarketOrderRequest

        request = MarketOrderRequest(
            symbol=order.ticker,
            qty=order.quantity,
            side=OrderSide(order.side),
            time_in_force=TimeInForce(order.time_in_force),
            client_order_id=order.client_order_id,
        )
        placed = self._call("place_order", self._trading.submit_order, order_data=request)
        logger.info(
            "Submitted %s %d %s (client_order_id=%s, paper=%s)",
            order.side, order.quantity, order.ticker, order.client_order_id, self._paper,
        )
        return OrderReceipt(
            order_id=str(getattr(placed, "id", "")),
            client_order_id=str(getattr(placed, "client_order_id", order.client_order_id)),
            status=_text(getattr(placed, "status", "accepted")),
        )
