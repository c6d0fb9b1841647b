"""
Input validation utilities

This module provides validation functions for order parameters and candle
prices to ensure data integrity throughout the simulator.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from .exceptions import (
    InvalidOrderException,
    InvalidPriceException,
)


def sanitize_decimal(value: Union[str, int, Decimal]) -> Decimal:
    """
    Convert a value to Decimal with proper error handling.

    Floats are rejected because their binary representation would leak
    rounding noise into the ledger.

    Args:
        value: Value to convert to Decimal

    Returns:
        Decimal representation of the value

    Raises:
        InvalidOrderException: If value cannot be converted to a finite Decimal
    """
    if isinstance(value, (float, bool)):
        raise InvalidOrderException(
            f"Invalid decimal value: {value!r}",
            details={"value": repr(value)}
        )
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidOrderException(
            f"Invalid decimal value: {value}",
            details={"value": str(value), "error": str(e)}
        )
    if not result.is_finite():
        raise InvalidOrderException(
            f"Decimal value must be finite, got {value}",
            details={"value": str(value)}
        )
    return result


def validate_price(
    price: Optional[Decimal],
    pair: str,
    required: bool = False,
    min_price: Decimal = Decimal("0.00000001"),
    max_price: Decimal = Decimal("100000000"),
) -> bool:
    """
    Validate a limit price.

    Args:
        price: Price to validate
        pair: Trading pair for context
        required: Whether price is required (False for market orders)
        min_price: Minimum acceptable price
        max_price: Maximum acceptable price

    Returns:
        True if price is valid

    Raises:
        InvalidOrderException: If price is missing, unexpected or out of bounds
    """
    if price is None:
        if required:
            raise InvalidOrderException(
                "Price is required for limit orders",
                details={"pair": pair}
            )
        return True

    if not required:
        raise InvalidOrderException(
            "Market orders must not carry a price",
            details={"pair": pair, "price": str(price)}
        )

    if price <= 0:
        raise InvalidOrderException(
            f"Price must be positive, got {price}",
            details={"pair": pair, "price": str(price)}
        )

    if price < min_price:
        raise InvalidOrderException(
            f"Price {price} is below minimum {min_price}",
            details={"pair": pair, "price": str(price), "min": str(min_price)}
        )

    if price > max_price:
        raise InvalidOrderException(
            f"Price {price} exceeds maximum {max_price}",
            details={"pair": pair, "price": str(price), "max": str(max_price)}
        )

    return True


def validate_quantity(
    quantity: Decimal,
    pair: str,
    min_quantity: Decimal = Decimal("0.00000001"),
    max_quantity: Decimal = Decimal("1000000000"),
) -> bool:
    """
    Validate an order quantity.

    Args:
        quantity: Quantity to validate
        pair: Trading pair for context
        min_quantity: Minimum acceptable quantity
        max_quantity: Maximum acceptable quantity

    Returns:
        True if quantity is valid

    Raises:
        InvalidOrderException: If quantity is invalid
    """
    if quantity <= 0:
        raise InvalidOrderException(
            f"Quantity must be positive, got {quantity}",
            details={"pair": pair, "quantity": str(quantity)}
        )

    if quantity < min_quantity:
        raise InvalidOrderException(
            f"Quantity {quantity} is below minimum {min_quantity}",
            details={"pair": pair, "quantity": str(quantity), "min": str(min_quantity)}
        )

    if quantity > max_quantity:
        raise InvalidOrderException(
            f"Quantity {quantity} exceeds maximum {max_quantity}",
            details={"pair": pair, "quantity": str(quantity), "max": str(max_quantity)}
        )

    return True


def parse_candle_price(value: str, field_name: str, pair: str) -> Decimal:
    """
    Parse one price field of a candle.

    Args:
        value: Decimal string taken from the candle
        field_name: Name of the field (low, high, ...) for the error message
        pair: Trading pair for context

    Returns:
        Parsed Decimal

    Raises:
        InvalidPriceException: If the string is not a finite decimal
    """
    try:
        price = Decimal(value.strip())
    except (InvalidOperation, AttributeError) as e:
        raise InvalidPriceException(
            f"{pair}: invalid decimal value for {field_name}: {value!r}",
            details={"pair": pair, "field": field_name, "value": str(value), "error": str(e)}
        )
    if not price.is_finite():
        raise InvalidPriceException(
            f"{pair}: invalid decimal value for {field_name}: {value!r}",
            details={"pair": pair, "field": field_name, "value": str(value)}
        )
    return price
