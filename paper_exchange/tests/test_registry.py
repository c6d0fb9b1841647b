"""
Tests for the simulator registry.
"""

import threading
from decimal import Decimal

import pytest

from paper_exchange.core.order import OrderSide, OrderType
from paper_exchange.services.registry import SimulatorRegistry
from paper_exchange.utils.exceptions import (
    InsufficientFundsException,
    NoCandleAvailableException,
    UnknownInstanceException,
)


class StubKlineClient:
    """Stands in for KlineClient; records requests and serves fixed klines."""

    def __init__(self, klines):
        self.klines = klines
        self.requests = []
        self.closed = False

    def fetch(self, symbol, interval, limit):
        self.requests.append((symbol, interval, limit))
        return list(self.klines)

    def close(self):
        self.closed = True


@pytest.fixture
def kline_client(make_kline):
    return StubKlineClient([make_kline(high="3", low="0.08", close_ts=t) for t in (1, 2)])


@pytest.fixture
def registry(settings, kline_client):
    return SimulatorRegistry(settings=settings, kline_client=kline_client)


class TestRegistryLifecycle:
    """Creating, listing and removing simulators."""

    def test_create_and_list(self, registry):
        first = registry.create_simulator()
        second = registry.create_simulator()

        assert first != second
        assert registry.list_simulators() == [first, second]
        assert registry.get_statistics() == {"simulators": 2}

    def test_remove(self, registry):
        simulator_id = registry.create_simulator()

        registry.remove_simulator(simulator_id)

        assert registry.list_simulators() == []
        with pytest.raises(UnknownInstanceException):
            registry.balances(simulator_id)

    def test_remove_unknown(self, registry):
        with pytest.raises(UnknownInstanceException):
            registry.remove_simulator("missing")

    @pytest.mark.parametrize("operation, args", [
        ("balances", ()),
        ("pending_orders", ()),
        ("transaction_history", ()),
        ("step", ()),
        ("describe", ()),
        ("add_capital", ("USDT", Decimal("1"))),
        ("load_candles", ("BTCUSDT", [])),
    ])
    def test_unknown_id_rejected(self, registry, operation, args):
        with pytest.raises(UnknownInstanceException) as exc_info:
            getattr(registry, operation)("missing", *args)

        assert exc_info.value.details["simulator_id"] == "missing"

    def test_close_releases_client(self, registry, kline_client):
        registry.close()

        assert kline_client.closed


class TestRegistryTrading:
    """Delegation to the per-simulator exchange."""

    def test_buy_scenario(self, registry, make_kline):
        simulator_id = registry.create_simulator()
        registry.add_capital(simulator_id, "BTC", Decimal("1"))
        registry.add_capital(simulator_id, "USDT", Decimal("1"))
        registry.load_candles(simulator_id, "BTCUSDT", [make_kline(low="0.08")])

        order = registry.place_order(
            simulator_id, "BTCUSDT", OrderSide.BUY, OrderType.LIMIT, Decimal("1"), Decimal("1")
        )
        result = registry.step(simulator_id)

        assert [o.order_id for o in result.filled_orders] == [order.order_id]
        assert registry.balances(simulator_id) == {"BTC": Decimal("2"), "USDT": Decimal("0")}
        assert len(registry.transaction_history(simulator_id)) == 4

    def test_add_capital_returns_balances(self, registry):
        simulator_id = registry.create_simulator()

        balances = registry.add_capital(simulator_id, "ETH", Decimal("2.5"))

        assert balances == {"ETH": Decimal("2.5")}

    def test_simulators_are_isolated(self, registry):
        funded = registry.create_simulator()
        empty = registry.create_simulator()
        registry.add_capital(funded, "USDT", Decimal("10"))

        registry.place_order(funded, "BTCUSDT", OrderSide.BUY, OrderType.LIMIT, Decimal("1"), Decimal("1"))

        assert registry.pending_orders(empty) == {}
        assert registry.balances(empty) == {}
        with pytest.raises(InsufficientFundsException):
            registry.place_order(empty, "BTCUSDT", OrderSide.BUY, OrderType.LIMIT, Decimal("1"), Decimal("1"))

    def test_step_errors_propagate(self, registry):
        simulator_id = registry.create_simulator()
        registry.add_capital(simulator_id, "USDT", Decimal("10"))
        registry.place_order(simulator_id, "BTCUSDT", OrderSide.BUY, OrderType.LIMIT, Decimal("1"), Decimal("1"))

        with pytest.raises(NoCandleAvailableException):
            registry.step(simulator_id)

    def test_describe(self, registry, make_kline):
        simulator_id = registry.create_simulator()
        registry.load_candles(simulator_id, "ETHBTC", [make_kline(), make_kline()])

        summary = registry.describe(simulator_id)

        assert summary["simulator_id"] == simulator_id
        assert summary["price_feeds"] == {"ETHBTC": 2}
        assert summary["statistics"]["orders_placed"] == 0


class TestRegistryPriceFeeds:
    """Attaching downloaded kline histories."""

    def test_add_price_feed_uses_defaults(self, registry, kline_client, settings):
        simulator_id = registry.create_simulator()

        count = registry.add_price_feed(simulator_id, "BTCUSDT")

        assert count == 2
        assert kline_client.requests == [("BTCUSDT", settings.default_interval, settings.default_limit)]
        assert registry.describe(simulator_id)["price_feeds"] == {"BTCUSDT": 2}

    def test_add_price_feed_explicit_interval(self, registry, kline_client):
        simulator_id = registry.create_simulator()

        registry.add_price_feed(simulator_id, "ETHBTC", "1d", 30)

        assert kline_client.requests == [("ETHBTC", "1d", 30)]

    def test_unknown_id_does_not_download(self, registry, kline_client):
        with pytest.raises(UnknownInstanceException):
            registry.add_price_feed("missing", "BTCUSDT")

        assert kline_client.requests == []


class TestRegistryConcurrency:
    """Per-simulator serialization."""

    def test_concurrent_placements_get_unique_ids(self, registry):
        simulator_id = registry.create_simulator()
        registry.add_capital(simulator_id, "USDT", Decimal("1000"))
        order_ids = []
        errors = []

        def place_orders():
            try:
                for _ in range(25):
                    order = registry.place_order(
                        simulator_id, "BTCUSDT", OrderSide.BUY, OrderType.LIMIT,
                        Decimal("1"), Decimal("1")
                    )
                    order_ids.append(order.order_id)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=place_orders) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(order_ids) == list(range(1, 201))
        assert len(registry.pending_orders(simulator_id)["BTCUSDT"]) == 200
