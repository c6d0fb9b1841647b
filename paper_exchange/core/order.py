"""
Order domain model with enums and validation

This module defines the Order class and related enums representing
resting orders in the paper exchange.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any

from ..utils.exceptions import InvalidOrderException


class OrderType(Enum):
    """Order type enumeration."""
    MARKET = "MARKET"
    LIMIT = "LIMIT"

    def __str__(self) -> str:
        return self.value


class OrderSide(Enum):
    """Order side enumeration."""
    BUY = "BUY"
    SELL = "SELL"

    def __str__(self) -> str:
        return self.value


class OrderStatus(Enum):
    """Order status enumeration."""
    PENDING = "PENDING"                    # Resting, waiting for a candle to cross it
    PARTIALLY_FILLED = "PARTIALLY_FILLED"  # Reserved; the fill rule is all-or-nothing
    FILLED = "FILLED"                      # Terminal

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Order:
    """
    Represents a resting order in the paper exchange.

    Everything but the status is fixed at creation. The status only moves
    forward through mark_filled(), which the exchange calls when a candle
    crosses the order's price.

    Attributes:
        order_id: Identifier allocated by the owning exchange
        pair: Trading pair symbol (e.g., "BTCUSDT")
        order_type: LIMIT or MARKET
        side: BUY or SELL
        quantity: Base-asset quantity
        price: Limit price (None for market orders)
        timestamp: Creation time
        status: Current lifecycle status
        filled_percent: Share of quantity filled, 0 to 100
    """

    order_id: int
    pair: str
    order_type: OrderType
    side: OrderSide
    quantity: Decimal
    price: Optional[Decimal] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: OrderStatus = OrderStatus.PENDING
    filled_percent: int = 0

    def __post_init__(self):
        """
        Post-initialization validation.

        Raises:
            InvalidOrderException: If order parameters are invalid
        """
        self.validate()

    @classmethod
    def new_order(
        cls,
        order_id: int,
        pair: str,
        price: Optional[Decimal],
        quantity: Decimal,
        side: OrderSide,
        order_type: OrderType,
    ) -> "Order":
        """Create a pending order stamped with the current time."""
        return cls(
            order_id=order_id,
            pair=pair,
            order_type=order_type,
            side=side,
            quantity=quantity,
            price=price,
        )

    def validate(self) -> None:
        """
        Validate order parameters.

        Raises:
            InvalidOrderException: If validation fails
        """
        if not self.pair or not self.pair.strip():
            raise InvalidOrderException("Pair cannot be empty")

        if self.quantity <= 0:
            raise InvalidOrderException(
                f"Quantity must be positive, got {self.quantity}",
                details={"pair": self.pair, "quantity": str(self.quantity)}
            )

        if self.order_type == OrderType.LIMIT:
            if self.price is None:
                raise InvalidOrderException(
                    f"{self.order_type} orders require a price",
                    details={"pair": self.pair}
                )
            if self.price <= 0:
                raise InvalidOrderException(
                    f"Price must be positive, got {self.price}",
                    details={"pair": self.pair, "price": str(self.price)}
                )
        elif self.order_type == OrderType.MARKET:
            if self.price is not None:
                raise InvalidOrderException(
                    f"{self.order_type} orders must not carry a price",
                    details={"pair": self.pair, "price": str(self.price)}
                )
        else:
            raise InvalidOrderException(f"Unsupported order type: {self.order_type}")

        if not 0 <= self.filled_percent <= 100:
            raise InvalidOrderException(
                f"Filled percent must be within 0-100, got {self.filled_percent}"
            )

    def mark_filled(self) -> None:
        """
        Transition PENDING -> FILLED.

        Raises:
            InvalidOrderException: If the order already left PENDING
        """
        if self.status != OrderStatus.PENDING:
            raise InvalidOrderException(
                f"Order {self.order_id} cannot be filled from status {self.status}",
                details={"order_id": self.order_id, "status": self.status.value}
            )
        object.__setattr__(self, 'status', OrderStatus.FILLED)
        object.__setattr__(self, 'filled_percent', 100)

    def copy(self) -> "Order":
        """Detached copy, so callers cannot observe later status changes."""
        return replace(self)

    @property
    def notional(self) -> Optional[Decimal]:
        """Quote-asset value of the order (None for market orders)."""
        if self.price is None:
            return None
        return self.price * self.quantity

    def __repr__(self) -> str:
        """String representation of the order."""
        price_str = str(self.price) if self.price is not None else "MARKET"
        return (
            f"Order(id={self.order_id}, "
            f"{self.side.value} {self.quantity} {self.pair} @ {price_str}, "
            f"type={self.order_type.value}, status={self.status.value})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert order to dictionary for API serialization."""
        return {
            "order_id": self.order_id,
            "pair": self.pair,
            "order_type": self.order_type.value,
            "side": self.side.value,
            "quantity": str(self.quantity),
            "price": str(self.price) if self.price is not None else None,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "filled_percent": self.filled_percent,
        }
