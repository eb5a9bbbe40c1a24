"""Tests for the Alpaca oracle (mocked SDK). No network calls."""

import json
import sys
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from types import ModuleType, SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from guard_core.contracts import OrderRequest
from guard_core.errors import DependencyFault


class FakeAPIError(Exception):
    """Same shape as alpaca.common.exceptions.APIError: fields parsed lazily from the body."""

    def __init__(self, error: str, http_error=None) -> None:
        super().__init__(error)
        self._error = error
        self._http_error = http_error

    @property
    def code(self) -> int:
        return json.loads(self._error)["code"]

    @property
    def status_code(self) -> int | None:
        http_error = self._http_error
        if http_error is not None and hasattr(http_error, "response"):
            return http_error.response.status_code
        return None


def _http_error(status: int) -> SimpleNamespace:
    return SimpleNamespace(response=SimpleNamespace(status_code=status))


class FakeOrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class FakeTimeInForce(str, Enum):
    DAY = "day"
    GTC = "gtc"


class FakeQueryOrderStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


def _request_cls(name: str):
    """Stand-in for an alpaca request model: keeps its kwargs as attributes."""

    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)

    return type(name, (), {"__init__": __init__})


@pytest.fixture
def clients():
    """Mock the alpaca SDK modules so tests run without alpaca-py installed."""
    trading = MagicMock(name="TradingClient()")
    data = MagicMock(name="StockHistoricalDataClient()")
    trading_cls = MagicMock(return_value=trading)
    data_cls = MagicMock(return_value=data)

    alpaca = ModuleType("alpaca")
    alpaca_common = ModuleType("alpaca.common")
    alpaca_common_exceptions = ModuleType("alpaca.common.exceptions")
    alpaca_common_exceptions.APIError = FakeAPIError
    alpaca_trading = ModuleType("alpaca.trading")
    alpaca_trading_client = ModuleType("alpaca.trading.client")
    alpaca_trading_client.TradingClient = trading_cls
    alpaca_trading_enums = ModuleType("alpaca.trading.enums")
    alpaca_trading_enums.OrderSide = FakeOrderSide
    alpaca_trading_enums.TimeInForce = FakeTimeInForce
    alpaca_trading_enums.QueryOrderStatus = FakeQueryOrderStatus
    alpaca_trading_requests = ModuleType("alpaca.trading.requests")
    alpaca_trading_requests.GetOrdersRequest = _request_cls("GetOrdersRequest")
    alpaca_trading_requests.MarketOrderRequest = _request_cls("MarketOrderRequest")
    alpaca_data = ModuleType("alpaca.data")
    alpaca_data_historical = ModuleType("alpaca.data.historical")
    alpaca_data_historical.StockHistoricalDataClient = data_cls
    alpaca_data_requests = ModuleType("alpaca.data.requests")
    alpaca_data_requests.StockLatestQuoteRequest = _request_cls("StockLatestQuoteRequest")
    alpaca_data_requests.StockLatestTradeRequest = _request_cls("StockLatestTradeRequest")

    mods = {
        "alpaca": alpaca,
        "alpaca.common": alpaca_common,
        "alpaca.common.exceptions": alpaca_common_exceptions,
        "alpaca.trading": alpaca_trading,
        "alpaca.trading.client": alpaca_trading_client,
        "alpaca.trading.enums": alpaca_trading_enums,
        "alpaca.trading.requests": alpaca_trading_requests,
        "alpaca.data": alpaca_data,
        "alpaca.data.historical": alpaca_data_historical,
        "alpaca.data.requests": alpaca_data_requests,
    }
    with patch.dict(sys.modules, mods):
        sys.modules.pop("broker.alpaca_oracle", None)
        yield SimpleNamespace(trading=trading, data=data, trading_cls=trading_cls, data_cls=data_cls)


@pytest.fixture
def oracle(clients):
    from broker.alpaca_oracle import AlpacaOracle

    return AlpacaOracle("key", "secret", paper=True)


def _order(symbol: str, side: str, filled_at=None) -> SimpleNamespace:
    return SimpleNamespace(symbol=symbol, side=FakeOrderSide(side), filled_at=filled_at)


class TestConstruction:
    def test_requires_keys(self, clients) -> None:
        from broker.alpaca_oracle import AlpacaOracle

        with pytest.raises(ValueError, match="APCA_API_KEY_ID"):
            AlpacaOracle("", "secret")

    def test_paper_flag_forwarded(self, clients) -> None:
        from broker.alpaca_oracle import AlpacaOracle

        AlpacaOracle("key", "secret", paper=False)
        clients.trading_cls.assert_called_once_with("key", "secret", paper=False)

    def test_factory(self, clients) -> None:
        from broker import get_alpaca_oracle

        assert get_alpaca_oracle("key", "secret").__class__.__name__ == "AlpacaOracle"


class TestAccount:
    def test_buying_power(self, oracle, clients) -> None:
        clients.trading.get_account.return_value = SimpleNamespace(buying_power="10000.50")
        assert oracle.get_account().buying_power == Decimal("10000.50")

    def test_missing_buying_power(self, oracle, clients) -> None:
        clients.trading.get_account.return_value = SimpleNamespace(buying_power=None)
        with pytest.raises(DependencyFault):
            oracle.get_account()

    def test_transport_error(self, oracle, clients) -> None:
        clients.trading.get_account.side_effect = ConnectionError("boom")
        with pytest.raises(DependencyFault) as exc:
            oracle.get_account()
        assert exc.value.status_code == 500
        assert exc.value.reason == "Server error"
        assert isinstance(exc.value.__cause__, ConnectionError)


class TestPosition:
    def test_held(self, oracle, clients) -> None:
        clients.trading.get_open_position.return_value = SimpleNamespace(qty="3")
        assert oracle.get_position("IMNM").quantity_held == Decimal(3)

    def test_not_found_by_status(self, oracle, clients) -> None:
        clients.trading.get_open_position.side_effect = FakeAPIError("Not Found", _http_error(404))
        assert oracle.get_position("IMNM").quantity_held == 0

    def test_not_found_by_code(self, oracle, clients) -> None:
        clients.trading.get_open_position.side_effect = FakeAPIError('{"code": 40410000, "message": "position does not exist"}')
        assert oracle.get_position("IMNM").quantity_held == 0

    def test_other_api_error(self, oracle, clients) -> None:
        clients.trading.get_open_position.side_effect = FakeAPIError('{"code": 40310000, "message": "forbidden"}', _http_error(403))
        with pytest.raises(DependencyFault):
            oracle.get_position("IMNM")

    def test_non_json_body(self, oracle, clients) -> None:
        clients.trading.get_open_position.side_effect = FakeAPIError(
            "<html>502 Bad Gateway</html>", _http_error(502)
        )
        with pytest.raises(DependencyFault) as exc:
            oracle.get_position("IMNM")
        assert exc.value.operation == "get_position"

    def test_body_without_code(self, oracle, clients) -> None:
        clients.trading.get_open_position.side_effect = FakeAPIError('{"message": "forbidden"}', _http_error(403))
        with pytest.raises(DependencyFault):
            oracle.get_position("IMNM")

    def test_unparseable_error_becomes_server_error_decision(self, oracle, clients) -> None:
        from config.policy import load_policy
        from execution.dispatcher import ExecutionDispatcher
        from guard_core.contracts import Action, DispatchState, TradeSignal

        clients.trading.get_orders.return_value = []
        clients.trading.get_open_position.side_effect = FakeAPIError(
            "<html>502 Bad Gateway</html>", _http_error(502)
        )
        dispatcher = ExecutionDispatcher(
            oracle,
            {"IMNM": load_policy()},
            clock=lambda: datetime(2024, 1, 17, 15, 0, tzinfo=timezone.utc),
        )
        decision = dispatcher.dispatch(TradeSignal("IMNM", Action.BUY))
        assert decision.status_code == 500
        assert decision.message == "Server error"
        assert decision.trail[-2:] == [DispatchState.EXPOSURE_CHECK, DispatchState.REJECTED]
        clients.trading.submit_order.assert_not_called()

    def test_transport_error(self, oracle, clients) -> None:
        clients.trading.get_open_position.side_effect = TimeoutError()
        with pytest.raises(DependencyFault):
            oracle.get_position("IMNM")


class TestOrders:
    def test_open_orders(self, oracle, clients) -> None:
        clients.trading.get_orders.return_value = [_order("IMNM", "buy"), _order("XBI", "buy")]
        orders = oracle.get_open_orders("IMNM")
        assert [(o.ticker, o.side) for o in orders] == [("IMNM", "buy")]
        request = clients.trading.get_orders.call_args.kwargs["filter"]
        assert request.status is FakeQueryOrderStatus.OPEN
        assert request.symbols == ["IMNM"]

    def test_closed_orders(self, oracle, clients) -> None:
        filled = datetime(2024, 1, 17, 14, 45, tzinfo=timezone.utc)
        clients.trading.get_orders.return_value = [_order("IMNM", "sell", filled)]
        (order,) = oracle.get_closed_orders("IMNM")
        assert order.side == "sell"
        assert order.filled_at == filled
        assert clients.trading.get_orders.call_args.kwargs["filter"].status is FakeQueryOrderStatus.CLOSED

    def test_orders_error(self, oracle, clients) -> None:
        clients.trading.get_orders.side_effect = FakeAPIError('{"message": "unauthorized"}', _http_error(401))
        with pytest.raises(DependencyFault):
            oracle.get_open_orders("IMNM")


class TestQuote:
    def test_ask_and_bid(self, oracle, clients) -> None:
        clients.data.get_stock_latest_quote.return_value = {
            "IMNM": SimpleNamespace(ask_price=40.25, bid_price=40.1)
        }
        quote = oracle.get_latest_quote("IMNM")
        assert quote.ask == Decimal("40.25")
        assert quote.bid == Decimal("40.1")
        clients.data.get_stock_latest_trade.assert_not_called()

    def test_falls_back_to_latest_trade(self, oracle, clients) -> None:
        clients.data.get_stock_latest_quote.return_value = {
            "IMNM": SimpleNamespace(ask_price=0.0, bid_price=0.0)
        }
        clients.data.get_stock_latest_trade.return_value = {"IMNM": SimpleNamespace(price=39.9)}
        assert oracle.get_latest_quote("IMNM").usable_price() == Decimal("39.9")

    def test_quote_error(self, oracle, clients) -> None:
        clients.data.get_stock_latest_quote.side_effect = ConnectionError("down")
        with pytest.raises(DependencyFault):
            oracle.get_latest_quote("IMNM")


class TestPlaceOrder:
    def test_market_order(self, oracle, clients) -> None:
        clients.trading.submit_order.return_value = SimpleNamespace(
            id="abc-123", client_order_id="tg-imnm-x", status=SimpleNamespace(value="ACCEPTED")
        )
        receipt = oracle.place_order(OrderRequest("IMNM", "buy", 5, "tg-imnm-x"))
        assert receipt.order_id == "abc-123"
        assert receipt.client_order_id == "tg-imnm-x"
        assert receipt.status == "accepted"
        request = clients.trading.submit_order.call_args.kwargs["order_data"]
        assert request.symbol == "IMNM"
        assert request.qty == 5
        assert request.side is FakeOrderSide.BUY
        assert request.time_in_force is FakeTimeInForce.GTC
        assert request.client_order_id == "tg-imnm-x"

    def test_rejected_by_broker(self, oracle, clients) -> None:
        clients.trading.submit_order.side_effect = FakeAPIError('{"code": 40310000, "message": "insufficient buying power"}', _http_error(403))
        with pytest.raises(DependencyFault) as exc:
            oracle.place_order(OrderRequest("IMNM", "sell", 1, "tg-imnm-y"))
        assert exc.value.operation == "place_order"
