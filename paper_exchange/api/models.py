"""
Pydantic models for API request/response validation.

This module defines all data models used by the simulator REST API.
Decimal amounts travel as strings in both directions so no precision is lost.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator, ConfigDict

from paper_exchange.core.order import Order, OrderType, OrderSide
from paper_exchange.core.transaction import Transaction

DECIMAL_PATTERN = r'^-?\d+(\.\d+)?$'
UNSIGNED_DECIMAL_PATTERN = r'^\d+(\.\d+)?$'
PAIR_PATTERN = r'^[A-Z0-9]+$'


# ============================================================================
# Request Models
# ============================================================================

class CapitalRequest(BaseModel):
    """Request model for depositing starting capital."""

    model_config = ConfigDict(json_schema_extra={
        "example": {"asset": "USDT", "amount": "10000"}
    })

    asset: str = Field(
        ...,
        description="Asset symbol (e.g., USDT)",
        min_length=1,
        max_length=20,
        pattern=PAIR_PATTERN
    )
    amount: str = Field(
        ...,
        description="Amount as decimal string (may be negative)",
        pattern=DECIMAL_PATTERN
    )


class PriceFeedRequest(BaseModel):
    """Request model for downloading a kline history."""

    model_config = ConfigDict(json_schema_extra={
        "example": {"pair": "BTCUSDT", "interval": "1h", "limit": 500}
    })

    pair: str = Field(..., description="Trading pair symbol", min_length=2, max_length=20, pattern=PAIR_PATTERN)
    interval: Optional[str] = Field(None, description="Kline interval (e.g., 1m, 1h, 1d)", pattern=r'^\d+[smhdwM]$')
    limit: Optional[int] = Field(None, description="Number of klines", gt=0, le=1000)


class CandlesRequest(BaseModel):
    """Request model for attaching an in-memory kline sequence."""

    pair: str = Field(..., description="Trading pair symbol", min_length=2, max_length=20, pattern=PAIR_PATTERN)
    klines: List[List[Any]] = Field(..., description="Binance kline arrays, oldest first")


class OrderRequest(BaseModel):
    """Request model for placing a new order."""

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "pair": "BTCUSDT",
            "order_type": "limit",
            "side": "buy",
            "quantity": "0.5",
            "price": "50000.00"
        }
    })

    pair: str = Field(
        ...,
        description="Trading pair symbol (e.g., BTCUSDT)",
        min_length=2,
        max_length=20,
        pattern=PAIR_PATTERN
    )
    order_type: str = Field(
        ...,
        description="Order type: limit or market",
        pattern=r'^(limit|market)$'
    )
    side: str = Field(
        ...,
        description="Order side: buy or sell",
        pattern=r'^(buy|sell)$'
    )
    quantity: str = Field(
        ...,
        description="Order quantity as decimal string",
        pattern=UNSIGNED_DECIMAL_PATTERN
    )
    price: Optional[str] = Field(
        None,
        description="Limit price (required for limit orders, absent for market orders)",
        pattern=UNSIGNED_DECIMAL_PATTERN
    )

    @field_validator('quantity')
    @classmethod
    def validate_quantity(cls, v: str) -> str:
        """Validate quantity is positive."""
        if Decimal(v) <= 0:
            raise ValueError("Quantity must be positive")
        return v

    def to_order_params(self) -> Dict[str, Any]:
        """Convert to parameters for SimulatorRegistry.place_order."""
        return {
            "pair": self.pair,
            "order_type": OrderType[self.order_type.upper()],
            "side": OrderSide[self.side.upper()],
            "quantity": Decimal(self.quantity),
            "price": Decimal(self.price) if self.price is not None else None
        }


# ============================================================================
# Response Models
# ============================================================================

class OrderResponse(BaseModel):
    """Response model for an order."""

    order_id: int = Field(..., description="Order identifier, unique per simulator")
    pair: str
    order_type: str
    side: str
    quantity: str
    price: Optional[str] = None
    status: str
    filled_percent: int
    timestamp: datetime

    @classmethod
    def from_order(cls, order: Order) -> 'OrderResponse':
        """Create from Order object."""
        return cls(
            order_id=order.order_id,
            pair=order.pair,
            order_type=order.order_type.value.lower(),
            side=order.side.value.lower(),
            quantity=str(order.quantity),
            price=str(order.price) if order.price is not None else None,
            status=order.status.value.lower(),
            filled_percent=order.filled_percent,
            timestamp=order.timestamp
        )


class TransactionResponse(BaseModel):
    """Response model for a wallet ledger entry."""

    timestamp: int = Field(..., description="Candle close time in epoch milliseconds (0 for deposits)")
    asset: str
    price: str
    quantity: str

    @classmethod
    def from_transaction(cls, tx: Transaction) -> 'TransactionResponse':
        """Create from Transaction object."""
        return cls(**tx.to_dict())


class StepResponse(BaseModel):
    """Response model for one simulation step."""

    candles: Dict[str, int] = Field(..., description="Close timestamp of the candle consumed per pair")
    filled_orders: List[OrderResponse] = Field(default_factory=list)
    transactions: List[TransactionResponse] = Field(default_factory=list)
    timestamp: datetime


class BalancesResponse(BaseModel):
    """Response model for wallet balances."""

    simulator_id: str
    balances: Dict[str, str] = Field(..., description="Net balance per asset")


class PendingOrdersResponse(BaseModel):
    """Response model for the pending order map."""

    simulator_id: str
    orders: Dict[str, List[OrderResponse]] = Field(..., description="Pending orders per pair in placement order")


class PriceFeedResponse(BaseModel):
    """Response model for an attached price feed."""

    pair: str
    candles: int = Field(..., description="Number of candles loaded")


class SimulatorResponse(BaseModel):
    """Response model for a simulator summary."""

    simulator_id: str
    statistics: Dict[str, Any] = Field(default_factory=dict)
    price_feeds: Dict[str, int] = Field(default_factory=dict, description="Remaining candles per pair")


class SimulatorListResponse(BaseModel):
    """Response model for the simulator list."""

    simulators: List[str]


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="API version")
    registry: Dict[str, Any] = Field(..., description="Simulator registry statistics")


class ErrorResponse(BaseModel):
    """Response model for errors."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    timestamp: datetime = Field(..., description="Error timestamp")
