"""
API integration tests for the FastAPI endpoints.

Runs the application with its lifespan so the registry is built the same
way as in production; kline downloads are stubbed.
"""

import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from paper_exchange.api.routes import simulators
from paper_exchange.main import app
from paper_exchange.services.registry import SimulatorRegistry
from paper_exchange.core.price_feed import Kline
from paper_exchange.utils.exceptions import PriceFeedException
import paper_exchange.main as main_module

BASE = "/api/v1/simulators"


def kline(high="1", low="1", close_ts=1_000):
    return [0, "1", high, low, "1", "0", close_ts, "0", 0, "0", "0", "0"]


@pytest.fixture
def test_client():
    """Create a test client with the registry initialized."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def simulator_id(test_client):
    """Simulator funded with 1 BTC and 1 USDT."""
    response = test_client.post(BASE)
    assert response.status_code == 201
    sim_id = response.json()["simulator_id"]

    for asset in ("BTC", "USDT"):
        response = test_client.post(f"{BASE}/{sim_id}/capital", json={"asset": asset, "amount": "1"})
        assert response.status_code == 200

    return sim_id


class TestHealthEndpoint:
    """Test health check and root endpoints."""

    def test_health_check(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert "simulators" in data["registry"]

    def test_root(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"

    def test_request_id_header(self, test_client):
        response = test_client.get("/health")

        assert "X-Request-ID" in response.headers


class TestSimulatorLifecycle:
    """Creating, listing and removing simulators."""

    def test_create_and_list(self, test_client):
        sim_id = test_client.post(BASE).json()["simulator_id"]

        response = test_client.get(BASE)

        assert response.status_code == 200
        assert sim_id in response.json()["simulators"]

    def test_describe(self, test_client, simulator_id):
        response = test_client.get(f"{BASE}/{simulator_id}")

        assert response.status_code == 200
        assert response.json()["statistics"]["orders_placed"] == 0

    def test_delete(self, test_client, simulator_id):
        assert test_client.delete(f"{BASE}/{simulator_id}").status_code == 204
        assert test_client.get(f"{BASE}/{simulator_id}").status_code == 404

    def test_unknown_simulator(self, test_client):
        response = test_client.get(f"{BASE}/does-not-exist/balances")

        assert response.status_code == 404
        assert response.json()["error"] == "UnknownInstanceException"


class TestTradingFlow:
    """Capital, candles, orders and steps over HTTP."""

    def test_capital_reflected_in_balances(self, test_client, simulator_id):
        response = test_client.get(f"{BASE}/{simulator_id}/balances")

        assert response.status_code == 200
        assert response.json()["balances"] == {"BTC": "1", "USDT": "1"}

    def test_limit_buy_scenario(self, test_client, simulator_id):
        response = test_client.post(
            f"{BASE}/{simulator_id}/candles",
            json={"pair": "BTCUSDT", "klines": [kline(low="0.08000000", close_ts=42)]}
        )
        assert response.status_code == 201
        assert response.json()["candles"] == 1

        response = test_client.post(
            f"{BASE}/{simulator_id}/orders",
            json={"pair": "BTCUSDT", "order_type": "limit", "side": "buy", "quantity": "1", "price": "1"}
        )
        assert response.status_code == 201
        order = response.json()
        assert order["status"] == "pending"
        assert order["order_id"] == 1

        pending = test_client.get(f"{BASE}/{simulator_id}/orders").json()["orders"]
        assert [o["order_id"] for o in pending["BTCUSDT"]] == [1]

        response = test_client.post(f"{BASE}/{simulator_id}/step")
        assert response.status_code == 200
        step = response.json()
        assert step["candles"] == {"BTCUSDT": 42}
        assert step["filled_orders"][0]["status"] == "filled"
        assert [tx["asset"] for tx in step["transactions"]] == ["BTC", "USDT"]

        balances = test_client.get(f"{BASE}/{simulator_id}/balances").json()["balances"]
        assert balances == {"BTC": "2", "USDT": "0"}

        ledger = test_client.get(f"{BASE}/{simulator_id}/transactions").json()
        assert len(ledger) == 4
        assert ledger[-1]["timestamp"] == 42

    def test_limit_sell_scenario(self, test_client, simulator_id):
        test_client.post(
            f"{BASE}/{simulator_id}/candles",
            json={"pair": "BTCUSDT", "klines": [kline(high="3.0000000")]}
        )
        test_client.post(
            f"{BASE}/{simulator_id}/orders",
            json={"pair": "BTCUSDT", "order_type": "limit", "side": "sell", "quantity": "1", "price": "2"}
        )

        test_client.post(f"{BASE}/{simulator_id}/step")

        balances = test_client.get(f"{BASE}/{simulator_id}/balances").json()["balances"]
        assert balances == {"BTC": "0", "USDT": "3"}


class TestErrorMapping:
    """Domain errors translated to HTTP status codes."""

    def _order(self, test_client, simulator_id, **overrides):
        body = {"pair": "BTCUSDT", "order_type": "limit", "side": "buy", "quantity": "1", "price": "1"}
        body.update(overrides)
        return test_client.post(f"{BASE}/{simulator_id}/orders", json=body)

    def test_insufficient_funds(self, test_client, simulator_id):
        response = self._order(test_client, simulator_id, price="5")

        assert response.status_code == 400
        assert response.json()["error"] == "InsufficientFundsException"

    def test_unresolved_pair(self, test_client, simulator_id):
        response = self._order(test_client, simulator_id, pair="XYZQQQ")

        assert response.status_code == 400
        assert response.json()["error"] == "UnresolvedAssetPairException"

    def test_limit_without_price(self, test_client, simulator_id):
        response = self._order(test_client, simulator_id, price=None)

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidOrderException"

    def test_market_with_price(self, test_client, simulator_id):
        response = self._order(test_client, simulator_id, order_type="market")

        assert response.status_code == 400

    def test_invalid_side(self, test_client, simulator_id):
        response = self._order(test_client, simulator_id, side="hold")

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_zero_quantity(self, test_client, simulator_id):
        assert self._order(test_client, simulator_id, quantity="0").status_code == 422

    def test_step_without_feed_conflicts(self, test_client, simulator_id):
        self._order(test_client, simulator_id)

        response = test_client.post(f"{BASE}/{simulator_id}/step")

        assert response.status_code == 409
        assert response.json()["error"] == "NoCandleAvailableException"
        balances = test_client.get(f"{BASE}/{simulator_id}/balances").json()["balances"]
        assert balances == {"BTC": "1", "USDT": "1"}

    def test_market_order_step_conflicts(self, test_client, simulator_id):
        test_client.post(
            f"{BASE}/{simulator_id}/candles",
            json={"pair": "BTCUSDT", "klines": [kline(low="0.5")]}
        )
        self._order(test_client, simulator_id, order_type="market", price=None)

        response = test_client.post(f"{BASE}/{simulator_id}/step")

        assert response.status_code == 409
        assert response.json()["error"] == "MissingOrderPriceException"

    def test_malformed_klines(self, test_client, simulator_id):
        response = test_client.post(
            f"{BASE}/{simulator_id}/candles",
            json={"pair": "BTCUSDT", "klines": [[1, 2, 3]]}
        )

        assert response.status_code == 400


class TestPriceFeedEndpoint:
    """Downloaded feeds with the kline client stubbed."""

    def test_attach_feed(self, test_client, simulator_id, monkeypatch):
        requested = []

        def fake_fetch(symbol, interval, limit):
            requested.append((symbol, interval, limit))
            return [Kline.from_row(kline(close_ts=t)) for t in range(limit)]

        monkeypatch.setattr(main_module.registry.kline_client, "fetch", fake_fetch)

        response = test_client.post(
            f"{BASE}/{simulator_id}/feeds",
            json={"pair": "ETHBTC", "interval": "1d", "limit": 3}
        )

        assert response.status_code == 201
        assert response.json() == {"pair": "ETHBTC", "candles": 3}
        assert requested == [("ETHBTC", "1d", 3)]

    def test_download_failure_is_bad_gateway(self, test_client, simulator_id, monkeypatch):
        def failing_fetch(symbol, interval, limit):
            raise PriceFeedException("Kline download failed")

        monkeypatch.setattr(main_module.registry.kline_client, "fetch", failing_fetch)

        response = test_client.post(f"{BASE}/{simulator_id}/feeds", json={"pair": "BTCUSDT"})

        assert response.status_code == 502
        assert response.json()["error"] == "PriceFeedException"


class TestBlockingCalls:
    """Slow registry work does not hold up the event loop."""

    def test_slow_download_does_not_delay_health(self, settings, make_kline, monkeypatch):
        class SlowKlineClient:
            def fetch(self, symbol, interval, limit):
                time.sleep(1)
                return [make_kline()]

            def close(self):
                pass

        registry = SimulatorRegistry(settings=settings, kline_client=SlowKlineClient())
        monkeypatch.setattr(main_module, "registry", registry)
        monkeypatch.setattr(simulators, "_registry", registry)

        async def feed_then_health():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                sim_id = (await client.post(BASE)).json()["simulator_id"]
                feed = asyncio.create_task(
                    client.post(f"{BASE}/{sim_id}/feeds", json={"pair": "BTCUSDT"})
                )
                await asyncio.sleep(0.05)

                started = time.perf_counter()
                health = await client.get("/health")
                latency = time.perf_counter() - started

                return await feed, health, latency

        feed_response, health_response, latency = asyncio.run(feed_then_health())

        assert health_response.status_code == 200
        assert latency < 0.5
        assert feed_response.status_code == 201
        assert feed_response.json() == {"pair": "BTCUSDT", "candles": 1}
