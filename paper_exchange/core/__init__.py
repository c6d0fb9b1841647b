"""
Core domain models and the candle-driven exchange
"""

from .asset_pair import resolve_asset_pair, KNOWN_QUOTE_ASSETS
from .order import Order, OrderType, OrderSide, OrderStatus
from .transaction import Transaction
from .wallet import Wallet
from .price_feed import Kline, PriceFeed
from .exchange import Exchange, StepResult

__all__ = [
    "resolve_asset_pair",
    "KNOWN_QUOTE_ASSETS",
    "Order",
    "OrderType",
    "OrderSide",
    "OrderStatus",
    "Transaction",
    "Wallet",
    "Kline",
    "PriceFeed",
    "Exchange",
    "StepResult",
]
