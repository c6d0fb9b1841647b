"""
Paper exchange: candle-driven matching engine over a multi-asset wallet.

Orders rest until step() replays the next candle of their pair. A resting buy
fills when the candle's low trades below its price, a resting sell when the
candle's high trades above it. Fills are settled in the wallet as a pair of
transactions (base leg and quote leg) at the order's own price.
"""

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .asset_pair import resolve_asset_pair
from .order import Order, OrderSide, OrderType
from .price_feed import Kline, PriceFeed
from .transaction import Transaction
from .wallet import Wallet
from ..config import Settings, get_settings
from ..utils.exceptions import (
    InsufficientFundsException,
    InvalidOrderException,
    MissingOrderPriceException,
    NoCandleAvailableException,
)
from ..utils.logger import get_logger
from ..utils.validators import (
    parse_candle_price,
    sanitize_decimal,
    validate_price,
    validate_quantity,
)

DecimalLike = Union[Decimal, str, int]


@dataclass
class StepResult:
    """
    Outcome of one simulation step.

    Attributes:
        candles: Close timestamp of the candle consumed per pair
        filled_orders: Copies of the orders filled during the step
        transactions: Ledger entries applied, in application order
        timestamp: Wall-clock time the step completed
    """
    candles: Dict[str, int]
    filled_orders: List[Order]
    transactions: List[Transaction]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Exchange:
    """
    Single simulator instance.

    Owns the pending orders per pair, the wallet, one price feed per pair and
    the order-id sequence. Nothing here is synchronized: callers sharing an
    instance across threads must serialize access themselves.

    Placement checks funds against the wallet but reserves nothing, and fills
    within one step are not re-checked against each other, so balances can
    go negative when several orders settle on the same candle.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        order_ids: Optional[Iterator[int]] = None,
        log_level: str = "INFO",
    ):
        """
        Initialize the exchange.

        Args:
            settings: Order bounds and logging configuration (global settings if None)
            order_ids: Order-id sequence; defaults to 1, 2, 3, ... per instance
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        self.settings = settings or get_settings()
        self._pending: Dict[str, List[Order]] = {}
        self._wallet = Wallet()
        self._price_feeds: Dict[str, PriceFeed] = {}
        self._order_ids = order_ids if order_ids is not None else itertools.count(1)
        self.statistics: Dict[str, int] = {
            "orders_placed": 0,
            "orders_filled": 0,
            "steps": 0,
            "transactions_applied": 0,
        }
        self.logger = get_logger(
            log_level=log_level,
            log_dir=self.settings.log_dir,
            use_json=self.settings.log_json,
        )

    # Setup

    def with_capital(self, funding: Iterable[Tuple[str, DecimalLike]]) -> "Exchange":
        """
        Deposit starting balances.

        Each (asset, amount) is booked as a transaction at timestamp 0 with a
        zero reference price.
        """
        for asset, amount in funding:
            self._wallet.add(Transaction(
                timestamp=0,
                asset=asset,
                price=Decimal("0"),
                quantity=sanitize_decimal(amount),
            ))
            self.logger.info(f"Deposited {amount} {asset}", asset=asset)
        return self

    def add_price_feed(self, pair: str, price_feed: PriceFeed) -> "Exchange":
        """Attach (or replace) the candle source of a pair."""
        resolve_asset_pair(pair)
        self._price_feeds[pair] = price_feed
        self.logger.info(f"Attached price feed for {pair} ({len(price_feed)} candles)", pair=pair)
        return self

    def load_candles(self, pair: str, klines: Iterable[Kline]) -> "Exchange":
        """Attach a feed built from an in-memory candle sequence."""
        return self.add_price_feed(pair, PriceFeed(klines))

    # Order placement

    def place_order(
        self,
        pair: str,
        price: Optional[DecimalLike],
        quantity: DecimalLike,
        side: OrderSide,
        order_type: OrderType,
    ) -> Order:
        """
        Validate an order against the wallet and queue it.

        Args:
            pair: Trading pair symbol (e.g., "BTCUSDT")
            price: Limit price, None for market orders
            quantity: Base-asset quantity
            side: BUY or SELL
            order_type: LIMIT or MARKET

        Returns:
            Copy of the queued order

        Raises:
            UnresolvedAssetPairException: If the pair cannot be split
            InvalidOrderException: If quantity or price are malformed
            InsufficientFundsException: If the wallet cannot cover the order
        """
        base, quote = resolve_asset_pair(pair)

        quantity = sanitize_decimal(quantity)
        if price is not None:
            price = sanitize_decimal(price)
        validate_quantity(
            quantity, pair,
            min_quantity=self.settings.min_order_quantity,
            max_quantity=self.settings.max_order_quantity,
        )
        validate_price(
            price, pair,
            required=order_type == OrderType.LIMIT,
            min_price=self.settings.min_price,
            max_price=self.settings.max_price,
        )

        # Market orders carry no price, so there is nothing to check them against
        if price is not None:
            if side == OrderSide.BUY:
                asset, required = quote, price * quantity
            elif side == OrderSide.SELL:
                asset, required = base, quantity
            else:
                raise InvalidOrderException(f"Unsupported order side: {side}")

            if self._wallet.has_sufficient_funds(asset, required) is None:
                raise InsufficientFundsException(
                    f"Insufficient {asset} for {side} {quantity} {pair} @ {price}: "
                    f"requires {required}",
                    details={"pair": pair, "asset": asset, "required": str(required)}
                )

        order = Order.new_order(next(self._order_ids), pair, price, quantity, side, order_type)
        self._pending.setdefault(pair, []).append(order)
        self.statistics["orders_placed"] += 1

        self.logger.log_order_placement(
            order.order_id,
            order.pair,
            order.order_type.value,
            order.side.value,
            order.quantity,
            order.price,
        )
        return order.copy()

    def place_limit_buy(self, pair: str, price: DecimalLike, quantity: DecimalLike) -> Order:
        return self.place_order(pair, price, quantity, OrderSide.BUY, OrderType.LIMIT)

    def place_limit_sell(self, pair: str, price: DecimalLike, quantity: DecimalLike) -> Order:
        return self.place_order(pair, price, quantity, OrderSide.SELL, OrderType.LIMIT)

    def place_market_buy(self, pair: str, quantity: DecimalLike) -> Order:
        return self.place_order(pair, None, quantity, OrderSide.BUY, OrderType.MARKET)

    def place_market_sell(self, pair: str, quantity: DecimalLike) -> Order:
        return self.place_order(pair, None, quantity, OrderSide.SELL, OrderType.MARKET)

    # Simulation

    def step(self) -> StepResult:
        """
        Replay one candle for every pair with pending orders.

        All pairs are evaluated before anything is applied. If evaluation
        raises, the wallet, the pending orders and every feed cursor are left
        exactly as they were before the call.

        Returns:
            StepResult with the consumed candles, filled orders and transactions

        Raises:
            NoCandleAvailableException: If a pair with pending orders has no candle left
            MissingOrderPriceException: If a market order reaches the fill rule
            InvalidPriceException: If a candle price does not parse
        """
        candles: Dict[str, int] = {}
        filled: List[Order] = []
        transactions: List[Transaction] = []
        positions: List[Tuple[PriceFeed, int]] = []

        try:
            for pair, orders in self._pending.items():
                if not orders:
                    continue

                price_feed = self._price_feeds.get(pair)
                if price_feed is None:
                    raise NoCandleAvailableException(
                        f"{pair}: no price feed attached",
                        details={"pair": pair}
                    )
                positions.append((price_feed, price_feed.position))

                kline = price_feed.next_candle()
                if kline is None:
                    raise NoCandleAvailableException(
                        f"{pair}: no kline data available",
                        details={"pair": pair}
                    )
                candles[pair] = kline.close_ts

                base, quote = resolve_asset_pair(pair)
                for order in orders:
                    legs = self._evaluate_order(order, kline, base, quote)
                    if legs:
                        filled.append(order)
                        transactions.extend(legs)
        except Exception as e:
            for price_feed, position in reversed(positions):
                price_feed.restore(position)
            self.logger.log_error(f"Step aborted, state unchanged: {e}")
            raise

        self._apply(filled, transactions, candles)
        self.statistics["steps"] += 1
        self.logger.log_step(len(candles), len(filled), len(transactions))

        return StepResult(
            candles=candles,
            filled_orders=[order.copy() for order in filled],
            transactions=transactions,
        )

    def _evaluate_order(
        self,
        order: Order,
        kline: Kline,
        base: str,
        quote: str,
    ) -> List[Transaction]:
        """
        Apply the fill rule of one order to one candle.

        Returns:
            The base and quote legs if the candle crosses the order, else []
        """
        if order.price is None:
            raise MissingOrderPriceException(
                f"{order.pair}: no order price available for order {order.order_id}",
                details={"pair": order.pair, "order_id": order.order_id}
            )

        close_ts, _, high, low, _ = kline.ohlc()
        notional = order.notional

        if order.side == OrderSide.BUY:
            if parse_candle_price(low, "low", order.pair) < order.price:
                return [
                    Transaction(close_ts, base, order.price, order.quantity),
                    Transaction(close_ts, quote, order.price, -notional),
                ]
            return []

        if order.side == OrderSide.SELL:
            if parse_candle_price(high, "high", order.pair) > order.price:
                return [
                    Transaction(close_ts, base, order.price, -order.quantity),
                    Transaction(close_ts, quote, order.price, notional),
                ]
            return []

        raise InvalidOrderException(f"Unsupported order side: {order.side}")

    def _apply(
        self,
        filled: List[Order],
        transactions: List[Transaction],
        candles: Dict[str, int],
    ) -> None:
        """Commit a fully evaluated step."""
        for tx in transactions:
            self._wallet.add(tx)

        filled_ids = set()
        for order in filled:
            order.mark_filled()
            filled_ids.add(order.order_id)
            self.logger.log_fill(
                order.order_id,
                order.pair,
                order.side.value,
                order.quantity,
                order.price,
                candles[order.pair],
            )

        if filled_ids:
            for pair in list(self._pending):
                remaining = [o for o in self._pending[pair] if o.order_id not in filled_ids]
                if remaining:
                    self._pending[pair] = remaining
                else:
                    del self._pending[pair]

        self.statistics["orders_filled"] += len(filled)
        self.statistics["transactions_applied"] += len(transactions)

    # Read side

    def balances(self) -> Dict[str, Decimal]:
        return self._wallet.balances()

    def pending_orders(self) -> Dict[str, Tuple[Order, ...]]:
        """Copies of the pending orders per pair, in placement order."""
        return {
            pair: tuple(order.copy() for order in orders)
            for pair, orders in self._pending.items()
        }

    def transaction_history(self) -> Tuple[Transaction, ...]:
        return self._wallet.transactions()

    def recompute_balances(self) -> Dict[str, Decimal]:
        """Balances derived from scratch out of the transaction log."""
        return self._wallet.recompute_balances()

    def price_feeds(self) -> Dict[str, int]:
        """Remaining candles per attached feed."""
        return {pair: feed.remaining for pair, feed in self._price_feeds.items()}

    def get_statistics(self) -> Dict[str, Any]:
        stats = dict(self.statistics)
        stats["pending_orders"] = sum(len(orders) for orders in self._pending.values())
        return stats
