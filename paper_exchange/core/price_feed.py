"""
Candle (kline) model and the cursor-based price feed the exchange consumes.

Klines follow the Binance REST layout: a 12-element array whose prices and
volumes are decimal strings and whose timestamps are epoch milliseconds.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Sequence, Tuple

from ..utils.exceptions import PriceFeedException

if TYPE_CHECKING:
    from ..services.kline_client import KlineClient


KLINE_FIELD_COUNT = 12


@dataclass(frozen=True, slots=True)
class Kline:
    """
    One OHLC candle, kept as received.

    Prices stay strings until the fill rule needs them, so malformed data
    surfaces as an InvalidPriceException at step time instead of at load.
    """

    open_ts: int
    open: str
    high: str
    low: str
    close: str
    volume: str
    close_ts: int
    quote_volume: str
    trade_count: int
    taker_buy_volume: str
    taker_sell_volume: str
    ignored: str

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Kline":
        """
        Build a kline from a Binance kline array.

        Raises:
            PriceFeedException: If the row does not have the expected shape
        """
        if isinstance(row, (str, bytes)) or len(row) != KLINE_FIELD_COUNT:
            raise PriceFeedException(
                f"Expected a {KLINE_FIELD_COUNT}-element kline array, got {row!r}",
                details={"row": repr(row)}
            )
        try:
            return cls(
                open_ts=int(row[0]),
                open=str(row[1]),
                high=str(row[2]),
                low=str(row[3]),
                close=str(row[4]),
                volume=str(row[5]),
                close_ts=int(row[6]),
                quote_volume=str(row[7]),
                trade_count=int(row[8]),
                taker_buy_volume=str(row[9]),
                taker_sell_volume=str(row[10]),
                ignored=str(row[11]),
            )
        except (TypeError, ValueError) as e:
            raise PriceFeedException(
                f"Malformed kline array: {row!r}",
                details={"row": repr(row), "error": str(e)}
            )

    def to_row(self) -> List[Any]:
        """Serialize back to the Binance array layout."""
        return [
            self.open_ts,
            self.open,
            self.high,
            self.low,
            self.close,
            self.volume,
            self.close_ts,
            self.quote_volume,
            self.trade_count,
            self.taker_buy_volume,
            self.taker_sell_volume,
            self.ignored,
        ]

    def ohlc(self) -> Tuple[int, str, str, str, str]:
        """Return (close_ts, open, high, low, close)."""
        return self.close_ts, self.open, self.high, self.low, self.close


class PriceFeed:
    """
    Finite, ordered candle sequence with a forward-only cursor.

    next_candle() hands out candles one at a time and returns None once the
    sequence is exhausted. There is no automatic rewind: load() re-supplies
    the data and resets the cursor.
    """

    def __init__(self, klines: Optional[Iterable[Kline]] = None):
        self._klines: List[Kline] = list(klines) if klines is not None else []
        self._cursor = 0

    @classmethod
    def from_client(
        cls,
        client: "KlineClient",
        symbol: str,
        interval: str,
        limit: int,
    ) -> "PriceFeed":
        """Download (or read from cache) a kline history into a new feed."""
        return cls(client.fetch(symbol, interval, limit))

    def load(self, klines: Iterable[Kline]) -> None:
        self._klines = list(klines)
        self._cursor = 0

    def next_candle(self) -> Optional[Kline]:
        if self._cursor >= len(self._klines):
            return None
        kline = self._klines[self._cursor]
        self._cursor += 1
        return kline

    @property
    def position(self) -> int:
        return self._cursor

    def restore(self, position: int) -> None:
        """Move the cursor back to a position obtained from `position`."""
        if not 0 <= position <= len(self._klines):
            raise ValueError(f"Position {position} outside feed of {len(self._klines)} candles")
        self._cursor = position

    @property
    def remaining(self) -> int:
        return len(self._klines) - self._cursor

    def __len__(self) -> int:
        return len(self._klines)
