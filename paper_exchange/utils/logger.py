"""
Logging configuration and utilities for the paper exchange.

Provides structured logging with JSON format for production environments
and human-readable format for development.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from decimal import Decimal


# Extra record attributes copied into JSON log lines when present
_EXTRA_FIELDS = ("order_id", "pair", "asset", "simulator_id", "candle_ts")


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Converts log records to JSON format with additional context fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                value = getattr(record, name)
                log_data[name] = value if isinstance(value, (int, str)) else str(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class SimulatorLogger:
    """
    Centralized logger for the paper exchange.

    Order placements, fills and step summaries go to dedicated child loggers
    so they can be routed to separate files. Supports both JSON (production)
    and console (development) formats.
    """

    def __init__(
        self,
        name: str = "PaperExchange",
        log_level: str = "INFO",
        log_dir: Optional[Path] = None,
        use_json: bool = False,
    ):
        """
        Initialize the simulator logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (None for console only)
            use_json: Use JSON formatting (for production)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))
        self.logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(self._create_formatter(use_json))
        self.logger.addHandler(console_handler)

        if log_dir:
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)

            self.logger.addHandler(
                self._create_file_handler(log_dir / "simulator.log", use_json)
            )

            self.order_logger = logging.getLogger(f"{name}.orders")
            self.order_logger.setLevel(logging.INFO)
            self.order_logger.addHandler(
                self._create_file_handler(log_dir / "orders.log", use_json)
            )

            self.fill_logger = logging.getLogger(f"{name}.fills")
            self.fill_logger.setLevel(logging.INFO)
            self.fill_logger.addHandler(
                self._create_file_handler(log_dir / "fills.log", use_json)
            )

            error_handler = self._create_file_handler(log_dir / "errors.log", use_json)
            error_handler.setLevel(logging.ERROR)
            self.logger.addHandler(error_handler)
        else:
            self.order_logger = self.logger
            self.fill_logger = self.logger

    @staticmethod
    def _create_formatter(use_json: bool) -> logging.Formatter:
        if use_json:
            return JSONFormatter()
        return logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def _create_file_handler(
        self,
        filepath: Path,
        use_json: bool
    ) -> logging.FileHandler:
        """Create a file handler with appropriate formatter."""
        handler = logging.FileHandler(filepath)
        handler.setFormatter(self._create_formatter(use_json))
        return handler

    def log_order_placement(
        self,
        order_id: int,
        pair: str,
        order_type: str,
        side: str,
        quantity: Decimal,
        price: Optional[Decimal] = None,
    ):
        """Log an accepted order."""
        extra = {"order_id": order_id, "pair": pair}

        if price is not None:
            msg = f"Order placed: #{order_id} {side} {quantity} {pair} @ {price} ({order_type})"
        else:
            msg = f"Order placed: #{order_id} {side} {quantity} {pair} MARKET ({order_type})"

        self.order_logger.info(msg, extra=extra)

    def log_fill(
        self,
        order_id: int,
        pair: str,
        side: str,
        quantity: Decimal,
        price: Decimal,
        candle_ts: int,
    ):
        """Log an order filled against a candle."""
        extra = {"order_id": order_id, "pair": pair, "candle_ts": candle_ts}
        msg = f"Order filled: #{order_id} {side} {quantity} {pair} @ {price} (candle {candle_ts})"
        self.fill_logger.info(msg, extra=extra)

    def log_step(
        self,
        pairs_evaluated: int,
        orders_filled: int,
        transactions_applied: int,
    ):
        """Log a completed simulation step."""
        msg = (
            f"Step: {pairs_evaluated} pairs evaluated, {orders_filled} orders filled, "
            f"{transactions_applied} transactions applied"
        )
        self.logger.debug(msg)

    def log_error(
        self,
        message: str,
        exception: Optional[Exception] = None,
        **kwargs
    ):
        """Log error with optional exception."""
        if exception:
            self.logger.error(message, exc_info=exception, extra=kwargs)
        else:
            self.logger.error(message, extra=kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, **kwargs):
        """Log error message."""
        self.logger.error(message, extra=kwargs)


# Global logger instance
_logger: Optional[SimulatorLogger] = None


def get_logger(
    name: str = "PaperExchange",
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    use_json: bool = False,
) -> SimulatorLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        log_level: Logging level
        log_dir: Directory for log files
        use_json: Use JSON formatting

    Returns:
        SimulatorLogger instance
    """
    global _logger

    if _logger is None:
        _logger = SimulatorLogger(name, log_level, log_dir, use_json)

    return _logger
