"""
Simulator Registry - Multiplexes independent exchange instances.

Each simulator is an isolated Exchange (own wallet, orders, feeds and order
ids) addressed by an opaque id. Operations on one simulator are serialized
with a per-instance lock; different simulators never block each other.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple, Any

from paper_exchange.config import Settings, get_settings
from paper_exchange.core.exchange import Exchange, StepResult
from paper_exchange.core.order import Order, OrderSide, OrderType
from paper_exchange.core.price_feed import Kline, PriceFeed
from paper_exchange.core.transaction import Transaction
from paper_exchange.services.kline_client import KlineClient
from paper_exchange.utils.exceptions import UnknownInstanceException


@dataclass
class _Slot:
    exchange: Exchange
    lock: threading.Lock = field(default_factory=threading.Lock)


class SimulatorRegistry:
    """
    Service class owning every simulator instance.

    The funds check done at placement is not a reservation: two orders
    placed one after the other on the same simulator can both pass against
    the same balance. Serializing calls does not close that gap.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        kline_client: Optional[KlineClient] = None,
    ):
        """
        Initialize the registry.

        Args:
            settings: Configuration passed to every new Exchange
            kline_client: Candle source for add_price_feed (built from settings if None)
        """
        self.settings = settings or get_settings()
        self.kline_client = kline_client or KlineClient(
            base_url=self.settings.kline_api_url,
            cache_dir=self.settings.kline_cache_dir,
            timeout=self.settings.request_timeout,
            retries=self.settings.request_retries,
        )
        self._slots: Dict[str, _Slot] = {}
        self._registry_lock = threading.Lock()
        self.logger = logging.getLogger(f"{__name__}.SimulatorRegistry")
        self.logger.info("SimulatorRegistry initialized")

    def create_simulator(self) -> str:
        """Create an empty simulator and return its id."""
        simulator_id = str(uuid.uuid4())
        exchange = Exchange(settings=self.settings, log_level=self.settings.log_level)
        with self._registry_lock:
            self._slots[simulator_id] = _Slot(exchange)
        self.logger.info(f"Created simulator {simulator_id}")
        return simulator_id

    def remove_simulator(self, simulator_id: str) -> None:
        with self._registry_lock:
            if self._slots.pop(simulator_id, None) is None:
                raise self._unknown(simulator_id)
        self.logger.info(f"Removed simulator {simulator_id}")

    def list_simulators(self) -> List[str]:
        with self._registry_lock:
            return list(self._slots)

    def _get_slot(self, simulator_id: str) -> _Slot:
        with self._registry_lock:
            slot = self._slots.get(simulator_id)
        if slot is None:
            raise self._unknown(simulator_id)
        return slot

    @contextmanager
    def _locked(self, simulator_id: str) -> Iterator[Exchange]:
        """Yield a simulator's exchange while holding its lock."""
        slot = self._get_slot(simulator_id)
        with slot.lock:
            yield slot.exchange

    @staticmethod
    def _unknown(simulator_id: str) -> UnknownInstanceException:
        return UnknownInstanceException(
            f"No simulator with id {simulator_id}",
            details={"simulator_id": simulator_id}
        )

    # Setup

    def add_capital(self, simulator_id: str, asset: str, amount: Decimal) -> Dict[str, Decimal]:
        with self._locked(simulator_id) as exchange:
            exchange.with_capital([(asset, amount)])
            return exchange.balances()

    def add_price_feed(
        self,
        simulator_id: str,
        pair: str,
        interval: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> int:
        """
        Download a kline history for `pair` and attach it.

        Returns:
            Number of candles loaded
        """
        interval = interval or self.settings.default_interval
        limit = limit or self.settings.default_limit
        # Fail on an unknown id before spending a download on it
        self._get_slot(simulator_id)
        price_feed = PriceFeed.from_client(self.kline_client, pair, interval, limit)
        with self._locked(simulator_id) as exchange:
            exchange.add_price_feed(pair, price_feed)
        return len(price_feed)

    def load_candles(self, simulator_id: str, pair: str, klines: List[Kline]) -> int:
        with self._locked(simulator_id) as exchange:
            exchange.load_candles(pair, klines)
        return len(klines)

    # Trading

    def place_order(
        self,
        simulator_id: str,
        pair: str,
        side: OrderSide,
        order_type: OrderType,
        quantity: Decimal,
        price: Optional[Decimal] = None,
    ) -> Order:
        with self._locked(simulator_id) as exchange:
            order = exchange.place_order(pair, price, quantity, side, order_type)
        self.logger.debug(f"Simulator {simulator_id} accepted order {order.order_id}")
        return order

    def step(self, simulator_id: str) -> StepResult:
        with self._locked(simulator_id) as exchange:
            return exchange.step()

    # Queries

    def balances(self, simulator_id: str) -> Dict[str, Decimal]:
        with self._locked(simulator_id) as exchange:
            return exchange.balances()

    def pending_orders(self, simulator_id: str) -> Dict[str, Tuple[Order, ...]]:
        with self._locked(simulator_id) as exchange:
            return exchange.pending_orders()

    def transaction_history(self, simulator_id: str) -> Tuple[Transaction, ...]:
        with self._locked(simulator_id) as exchange:
            return exchange.transaction_history()

    def describe(self, simulator_id: str) -> Dict[str, Any]:
        """Summary of one simulator: statistics and remaining candles per feed."""
        with self._locked(simulator_id) as exchange:
            return {
                "simulator_id": simulator_id,
                "statistics": exchange.get_statistics(),
                "price_feeds": exchange.price_feeds(),
            }

    def get_statistics(self) -> Dict[str, Any]:
        with self._registry_lock:
            return {"simulators": len(self._slots)}

    def close(self) -> None:
        self.kline_client.close()
