"""
FastAPI Application - Main Entry Point

REST API for the candle-driven paper exchange simulator.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from paper_exchange.config import get_settings
from paper_exchange.services.registry import SimulatorRegistry
from paper_exchange.utils.exceptions import (
    BaseSimulatorException,
    InsufficientFundsException,
    InvalidOrderException,
    PriceFeedException,
    STEP_EXCEPTIONS,
    UnknownInstanceException,
    UnresolvedAssetPairException,
)

# Import routers
from paper_exchange.api.routes import simulators
from paper_exchange.api.models import HealthResponse, ErrorResponse

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global instances
registry: SimulatorRegistry = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Builds the simulator registry on startup and releases its HTTP session
    on shutdown.
    """
    logger.info("Starting Paper Exchange API")

    global registry
    registry = SimulatorRegistry(settings)
    simulators.set_registry(registry)

    logger.info(f"Swagger UI available at: http://{settings.api_host}:{settings.api_port}/docs")

    yield

    logger.info("Shutting down API...")
    registry.close()
    simulators.set_registry(None)
    logger.info("API shutdown complete!")


# Create FastAPI application
app = FastAPI(
    title="Paper Exchange API",
    description="""
    Candle-driven paper trading simulator.

    ## Model
    * **Orders** rest until a step replays the next kline of their pair
    * **Buys** fill when the kline low is below the order price, **sells** when the high is above it
    * **Wallet** balances are the sum of an append-only transaction ledger

    ## Endpoints
    * **POST /api/v1/simulators**: Create simulator
    * **POST /api/v1/simulators/{id}/capital**: Deposit capital
    * **POST /api/v1/simulators/{id}/feeds**: Download a kline history
    * **POST /api/v1/simulators/{id}/candles**: Attach supplied klines
    * **POST /api/v1/simulators/{id}/orders**: Place order
    * **POST /api/v1/simulators/{id}/step**: Advance one candle
    * **GET /api/v1/simulators/{id}/balances**: Wallet balances
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID to each request for tracking."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    return response


# Logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests and responses."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.info(
        f"Request [{request_id}]: {request.method} {request.url.path} "
        f"from {request.client.host if request.client else 'unknown'}"
    )

    response = await call_next(request)

    logger.info(f"Response [{request_id}]: {response.status_code}")

    return response


def _error_response(status_code: int, exc: BaseSimulatorException) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            message=exc.message,
            detail=str(exc.details) if exc.details else None,
            timestamp=datetime.now(timezone.utc)
        ).model_dump(mode='json')
    )


# Exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(f"Validation error [{request_id}]: {exc.errors()}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            message="Request validation failed",
            detail=str(exc.errors()),
            timestamp=datetime.now(timezone.utc)
        ).model_dump(mode='json')
    )


@app.exception_handler(UnknownInstanceException)
async def unknown_instance_exception_handler(request: Request, exc: UnknownInstanceException):
    """Handle unknown simulator ids."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(f"Unknown simulator [{request_id}]: {str(exc)}")
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


async def placement_exception_handler(request: Request, exc: BaseSimulatorException):
    """Handle orders, pairs and deposits rejected before anything changed."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(f"Rejected request [{request_id}]: {str(exc)}")
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


async def step_exception_handler(request: Request, exc: BaseSimulatorException):
    """Handle aborted steps; the simulator is left unchanged."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(f"Step aborted [{request_id}]: {str(exc)}")
    return _error_response(status.HTTP_409_CONFLICT, exc)


for _exc_class in (InvalidOrderException, UnresolvedAssetPairException, InsufficientFundsException):
    app.add_exception_handler(_exc_class, placement_exception_handler)

for _exc_class in STEP_EXCEPTIONS:
    app.add_exception_handler(_exc_class, step_exception_handler)


@app.exception_handler(PriceFeedException)
async def price_feed_exception_handler(request: Request, exc: PriceFeedException):
    """Handle kline download and cache failures."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(f"Price feed error [{request_id}]: {str(exc)}")
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(f"Unhandled exception [{request_id}]: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="InternalServerError",
            message="An internal error occurred",
            detail="Contact support with request ID: " + request_id,
            timestamp=datetime.now(timezone.utc)
        ).model_dump(mode='json')
    )


# Health check endpoint
@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Check API and simulator registry status"
)
async def health_check() -> HealthResponse:
    stats = registry.get_statistics() if registry else {}

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        registry=stats
    )


# Include routers
app.include_router(simulators.router)


# Root endpoint
@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Paper Exchange API",
        "version": "1.0.0",
        "status": "operational",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "paper_exchange.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower()
    )
