"""
Ledger transaction domain model

A transaction is one leg of a balance change: a signed quantity of a single
asset, stamped with the candle time and the price it was executed at.
"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Immutable ledger entry.

    Attributes:
        timestamp: Candle close time in epoch milliseconds (0 for deposits)
        asset: Asset code the quantity applies to
        price: Reference price of the fill (0 for deposits)
        quantity: Signed quantity delta
    """

    timestamp: int
    asset: str
    price: Decimal
    quantity: Decimal

    @property
    def value(self) -> Decimal:
        """Signed value of the leg at its reference price."""
        return self.quantity * self.price

    def to_dict(self) -> dict:
        """Convert transaction to dictionary for API serialization."""
        return {
            "timestamp": self.timestamp,
            "asset": self.asset,
            "price": str(self.price),
            "quantity": str(self.quantity),
        }

    def __repr__(self) -> str:
        return (
            f"Transaction(ts={self.timestamp}, {self.asset} "
            f"{self.quantity:+} @ {self.price})"
        )
