"""
Kline Client - Historical candle download with an on-disk cache.

Fetches klines from a Binance-compatible REST API and keeps the raw
response next to the process so repeated simulations replay identical data.
"""

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from paper_exchange.core.price_feed import Kline
from paper_exchange.utils.exceptions import PriceFeedException


class KlineClient:
    """Client for the `/klines` endpoint of a Binance-compatible API."""

    def __init__(
        self,
        base_url: str = "https://api.binance.com/api/v3",
        cache_dir: Optional[str] = "data",
        timeout: int = 10,
        retries: int = 3,
    ):
        """
        Initialize kline client.

        Args:
            base_url: API root, without the trailing `/klines`
            cache_dir: Directory holding cached responses (None disables caching)
            timeout: Request timeout in seconds
            retries: Retry count for transient HTTP failures
        """
        self.base_url = base_url.rstrip('/')
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.timeout = timeout
        self.logger = logging.getLogger(f"{__name__}.KlineClient")
        self.session = self._create_session(retries)

    def _create_session(self, retries: int) -> requests.Session:
        """Create requests session with retry logic."""
        session = requests.Session()

        retry_strategy = Retry(
            total=retries,
            backoff_factor=0.5,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"]
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def cache_path(self, symbol: str, interval: str, limit: int) -> Optional[Path]:
        if self.cache_dir is None:
            return None
        return self.cache_dir / f"{symbol}{interval}{limit}"

    def fetch(self, symbol: str, interval: str, limit: int) -> List[Kline]:
        """
        Get `limit` klines of `symbol` at `interval`, from cache if present.

        Args:
            symbol: Pair symbol (e.g., "BTCUSDT")
            interval: Kline interval (e.g., "1h")
            limit: Number of klines

        Returns:
            Klines in chronological order

        Raises:
            PriceFeedException: If the download fails or returns malformed klines
        """
        path = self.cache_path(symbol, interval, limit)

        if path is not None and path.exists():
            cached = self._read_cache(path, symbol)
            if cached is not None:
                return cached

        rows = self._download(symbol, interval, limit)
        klines = self._parse(rows, symbol)

        if path is not None:
            self._write_cache(path, klines)

        return klines

    def _read_cache(self, path: Path, symbol: str) -> Optional[List[Kline]]:
        """Klines from a cache file, or None if it is unreadable."""
        self.logger.info(f"Loading {symbol} from cache {path}")
        try:
            return self._parse(json.loads(path.read_text(encoding="utf-8")), symbol)
        except (OSError, ValueError, PriceFeedException) as e:
            self.logger.warning(f"Ignoring unreadable kline cache {path}: {e}")
            return None

    def _download(self, symbol: str, interval: str, limit: int) -> list:
        params = {"symbol": symbol, "interval": interval, "limit": limit}
        self.logger.info(f"Downloading klines: {params}")
        try:
            response = self.session.get(f"{self.base_url}/klines", params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise PriceFeedException(
                f"Kline download failed for {symbol}: {e}",
                details={"symbol": symbol, "interval": interval, "limit": limit}
            )
        except ValueError as e:
            raise PriceFeedException(
                f"Invalid kline response for {symbol}: {e}",
                details={"symbol": symbol}
            )

    def _write_cache(self, path: Path, klines: List[Kline]) -> bool:
        """
        Persist klines at `path` through a temp file and an atomic rename.

        A failed write is logged and leaves no file behind; the caller still
        gets the downloaded klines.

        Returns:
            True if the cache file was written
        """
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump([k.to_row() for k in klines], tmp)
            os.replace(tmp_name, path)
        except OSError as e:
            self.logger.warning(f"Unable to write kline cache {path}: {e}")
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            return False

        self.logger.info(f"Cached {len(klines)} klines at {path}")
        return True

    @staticmethod
    def _parse(rows, symbol: str) -> List[Kline]:
        if not isinstance(rows, list):
            raise PriceFeedException(
                f"Expected a list of klines for {symbol}, got {type(rows).__name__}",
                details={"symbol": symbol}
            )
        return [Kline.from_row(row) for row in rows]

    def close(self):
        """Close the session."""
        if self.session:
            self.session.close()
