"""
Custom exceptions for the paper exchange

This module defines a hierarchy of exceptions used throughout the simulator
to report order placement, candle evaluation and registry failures in a
structured and meaningful way.
"""


class BaseSimulatorException(Exception):
    """Base exception class for all paper exchange exceptions."""

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidOrderException(BaseSimulatorException):
    """Raised when an order contains invalid parameters or an illegal status change."""
    pass


class UnresolvedAssetPairException(BaseSimulatorException):
    """Raised when a pair symbol ends with none of the known quote assets."""
    pass


class InsufficientFundsException(BaseSimulatorException):
    """Raised when the wallet cannot cover an order at placement time."""
    pass


class InvalidPriceException(BaseSimulatorException):
    """Raised when a candle price field is not a finite decimal."""
    pass


class MissingOrderPriceException(BaseSimulatorException):
    """Raised when an order without a price reaches the fill rule."""
    pass


class NoCandleAvailableException(BaseSimulatorException):
    """Raised when a pair with pending orders has no feed or an exhausted one."""
    pass


class UnknownInstanceException(BaseSimulatorException):
    """Raised when a simulator id is not known to the registry."""
    pass


class PriceFeedException(BaseSimulatorException):
    """Raised when historical candles cannot be downloaded or read from cache."""
    pass


# Errors raised by Exchange.step(); the API maps them to 409 Conflict
STEP_EXCEPTIONS = (
    InvalidPriceException,
    MissingOrderPriceException,
    NoCandleAvailableException,
)
