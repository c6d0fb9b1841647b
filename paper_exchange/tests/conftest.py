"""
Shared fixtures for the paper exchange tests.
"""

from decimal import Decimal

import pytest

from paper_exchange.config import Settings
from paper_exchange.core.exchange import Exchange
from paper_exchange.core.price_feed import Kline


def kline_row(high="1", low="1", close_ts=1_000, open_="1", close="1"):
    """Binance-layout kline array with only the fields the engine reads set."""
    return [0, open_, high, low, close, "0", close_ts, "0", 0, "0", "0", "0"]


@pytest.fixture
def make_kline():
    """Factory for klines with given high/low and close timestamp."""
    def _make(high="1", low="1", close_ts=1_000):
        return Kline.from_row(kline_row(high=high, low=low, close_ts=close_ts))
    return _make


@pytest.fixture
def settings():
    """Settings with caching and file logging disabled."""
    return Settings(kline_cache_dir=None, log_dir=None)


@pytest.fixture
def exchange(settings):
    """Exchange funded with 1 BTC and 1 USDT."""
    return Exchange(settings=settings).with_capital([
        ("BTC", Decimal("1")),
        ("USDT", Decimal("1")),
    ])
