"""
REST API endpoints for simulator operations.

Provides endpoints to create simulators, fund them, attach candle history,
place orders, advance the simulation and inspect the wallet.
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Depends, status

from paper_exchange.api.models import (
    BalancesResponse,
    CandlesRequest,
    CapitalRequest,
    ErrorResponse,
    OrderRequest,
    OrderResponse,
    PendingOrdersResponse,
    PriceFeedRequest,
    PriceFeedResponse,
    SimulatorListResponse,
    SimulatorResponse,
    StepResponse,
    TransactionResponse,
)
from paper_exchange.core.price_feed import Kline
from paper_exchange.services.registry import SimulatorRegistry
from paper_exchange.utils.exceptions import PriceFeedException
from paper_exchange.utils.validators import sanitize_decimal

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/v1/simulators", tags=["simulators"])


# Dependency injection for SimulatorRegistry
# This will be overridden in main.py with actual instance
# Routes are plain `def`: registry calls block on per-simulator locks and
# kline downloads, so FastAPI runs them in its threadpool.
_registry: SimulatorRegistry = None


def get_registry() -> SimulatorRegistry:
    """Dependency to get SimulatorRegistry instance."""
    if _registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Simulator registry not initialized"
        )
    return _registry


def set_registry(registry: SimulatorRegistry) -> None:
    """Set the global SimulatorRegistry instance."""
    global _registry
    _registry = registry


NOT_FOUND = {404: {"description": "Unknown simulator", "model": ErrorResponse}}


@router.post(
    "",
    response_model=SimulatorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a simulator",
    description="Create an empty simulator with its own wallet, orders and price feeds"
)
def create_simulator(
    registry: SimulatorRegistry = Depends(get_registry)
) -> SimulatorResponse:
    simulator_id = registry.create_simulator()
    return SimulatorResponse(**registry.describe(simulator_id))


@router.get(
    "",
    response_model=SimulatorListResponse,
    summary="List simulators"
)
def list_simulators(
    registry: SimulatorRegistry = Depends(get_registry)
) -> SimulatorListResponse:
    return SimulatorListResponse(simulators=registry.list_simulators())


@router.get(
    "/{simulator_id}",
    response_model=SimulatorResponse,
    summary="Describe a simulator",
    responses=NOT_FOUND
)
def get_simulator(
    simulator_id: str,
    registry: SimulatorRegistry = Depends(get_registry)
) -> SimulatorResponse:
    return SimulatorResponse(**registry.describe(simulator_id))


@router.delete(
    "/{simulator_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a simulator",
    responses=NOT_FOUND
)
def remove_simulator(
    simulator_id: str,
    registry: SimulatorRegistry = Depends(get_registry)
) -> None:
    registry.remove_simulator(simulator_id)


@router.post(
    "/{simulator_id}/capital",
    response_model=BalancesResponse,
    summary="Deposit capital",
    description="Book a deposit of `amount` units of `asset` in the simulator wallet",
    responses=NOT_FOUND
)
def add_capital(
    simulator_id: str,
    request: CapitalRequest,
    registry: SimulatorRegistry = Depends(get_registry)
) -> BalancesResponse:
    balances = registry.add_capital(simulator_id, request.asset, sanitize_decimal(request.amount))
    return BalancesResponse(
        simulator_id=simulator_id,
        balances={asset: str(amount) for asset, amount in balances.items()}
    )


@router.post(
    "/{simulator_id}/feeds",
    response_model=PriceFeedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach a downloaded price feed",
    description="Download (or read from cache) a kline history and attach it to the pair",
    responses={
        **NOT_FOUND,
        400: {"description": "Unresolvable pair", "model": ErrorResponse},
        502: {"description": "Kline source unavailable", "model": ErrorResponse}
    }
)
def add_price_feed(
    simulator_id: str,
    request: PriceFeedRequest,
    registry: SimulatorRegistry = Depends(get_registry)
) -> PriceFeedResponse:
    logger.info(f"Attaching price feed {request.pair} to simulator {simulator_id}")
    count = registry.add_price_feed(simulator_id, request.pair, request.interval, request.limit)
    return PriceFeedResponse(pair=request.pair, candles=count)


@router.post(
    "/{simulator_id}/candles",
    response_model=PriceFeedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach an in-memory price feed",
    description="Attach the supplied kline arrays as the pair's price feed",
    responses={
        **NOT_FOUND,
        400: {"description": "Malformed klines or unresolvable pair", "model": ErrorResponse}
    }
)
def load_candles(
    simulator_id: str,
    request: CandlesRequest,
    registry: SimulatorRegistry = Depends(get_registry)
) -> PriceFeedResponse:
    try:
        klines = [Kline.from_row(row) for row in request.klines]
    except PriceFeedException as e:
        logger.warning(f"Rejected klines for {request.pair}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    count = registry.load_candles(simulator_id, request.pair, klines)
    return PriceFeedResponse(pair=request.pair, candles=count)


@router.post(
    "/{simulator_id}/orders",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
    description="Queue a limit or market order. Funds are checked but not reserved.",
    responses={
        **NOT_FOUND,
        400: {"description": "Invalid order, unresolvable pair or insufficient funds", "model": ErrorResponse}
    }
)
def place_order(
    simulator_id: str,
    order_request: OrderRequest,
    registry: SimulatorRegistry = Depends(get_registry)
) -> OrderResponse:
    """
    Place a new order.

    **Request Body:**
    - `pair`: Trading pair (e.g., BTCUSDT)
    - `order_type`: limit or market
    - `side`: buy or sell
    - `quantity`: Order quantity (positive decimal)
    - `price`: Limit price (required for limit orders)
    """
    logger.info(
        f"Received order request: {order_request.order_type} {order_request.side} "
        f"{order_request.quantity} {order_request.pair}"
    )
    order = registry.place_order(simulator_id, **order_request.to_order_params())
    return OrderResponse.from_order(order)


@router.get(
    "/{simulator_id}/orders",
    response_model=PendingOrdersResponse,
    summary="List pending orders",
    responses=NOT_FOUND
)
def pending_orders(
    simulator_id: str,
    registry: SimulatorRegistry = Depends(get_registry)
) -> PendingOrdersResponse:
    pending = registry.pending_orders(simulator_id)
    return PendingOrdersResponse(
        simulator_id=simulator_id,
        orders={
            pair: [OrderResponse.from_order(order) for order in orders]
            for pair, orders in pending.items()
        }
    )


@router.post(
    "/{simulator_id}/step",
    response_model=StepResponse,
    summary="Advance the simulation",
    description="Consume the next candle of every pair with pending orders and settle fills",
    responses={
        **NOT_FOUND,
        409: {"description": "Step aborted, simulator state unchanged", "model": ErrorResponse}
    }
)
def step(
    simulator_id: str,
    registry: SimulatorRegistry = Depends(get_registry)
) -> StepResponse:
    result = registry.step(simulator_id)
    return StepResponse(
        candles=result.candles,
        filled_orders=[OrderResponse.from_order(order) for order in result.filled_orders],
        transactions=[TransactionResponse.from_transaction(tx) for tx in result.transactions],
        timestamp=result.timestamp
    )


@router.get(
    "/{simulator_id}/balances",
    response_model=BalancesResponse,
    summary="Get wallet balances",
    responses=NOT_FOUND
)
def balances(
    simulator_id: str,
    registry: SimulatorRegistry = Depends(get_registry)
) -> BalancesResponse:
    return BalancesResponse(
        simulator_id=simulator_id,
        balances={asset: str(amount) for asset, amount in registry.balances(simulator_id).items()}
    )


@router.get(
    "/{simulator_id}/transactions",
    response_model=List[TransactionResponse],
    summary="Get the wallet ledger",
    responses=NOT_FOUND
)
def transactions(
    simulator_id: str,
    registry: SimulatorRegistry = Depends(get_registry)
) -> List[TransactionResponse]:
    return [
        TransactionResponse.from_transaction(tx)
        for tx in registry.transaction_history(simulator_id)
    ]
