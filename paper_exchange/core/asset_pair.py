"""
Asset-pair resolution for concatenated exchange symbols.

Binance-style symbols carry no separator ("ETHBTC"), so the quote asset is
found by suffix matching against a fixed list of known quote codes.
"""

from typing import Sequence, Tuple

from ..utils.exceptions import UnresolvedAssetPairException


# Iteration order decides ambiguous suffixes; do not sort or dedupe.
KNOWN_QUOTE_ASSETS: Tuple[str, ...] = (
    "AUD", "BIDR", "BKRW", "BNB", "BRL", "BTC", "BUSD", "BVND", "DAI", "DOGE", "DOT",
    "ETH", "EUR", "GBP", "IDRT", "NGN", "PAX", "PLN", "RON", "RUB", "TRX", "TRY", "TUSD",
    "UAH", "USDC", "USDP", "USDS", "USDT", "UST", "VAI", "XRP", "ZAR",
)


def resolve_asset_pair(
    pair: str,
    quote_assets: Sequence[str] = KNOWN_QUOTE_ASSETS,
) -> Tuple[str, str]:
    """
    Split a pair symbol into its base and quote asset codes.

    Args:
        pair: Symbol without separator (e.g., "BTCUSDT")
        quote_assets: Candidate quote codes, tried in order

    Returns:
        Tuple of (base, quote)

    Raises:
        UnresolvedAssetPairException: If no known quote code is a suffix
            of the pair, or nothing is left for the base
    """
    for quote in quote_assets:
        if pair.endswith(quote):
            base = pair[:-len(quote)]
            if not base:
                break
            return base, quote

    raise UnresolvedAssetPairException(
        f"Unable to extract quote asset from pair {pair!r}",
        details={"pair": pair}
    )
