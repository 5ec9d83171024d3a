"""
logging_config.py - Centralized JSON Logging Configuration

PURPOSE:
    Provides structured JSON logging for the storefront service with timezone-aware
    timestamps, checkout correlation tracking, and service-specific context injection.

JSON LOG FIELDS:
    - timestamp: ISO 8601 format in the store timezone (e.g., "2026-10-19T14:02:11.104512+02:00")
    - level: Log level (INFO, ERROR, WARNING, DEBUG, CRITICAL)
    - logger: Module name where log originated (e.g., "storefront.cart_repository")
    - message: The actual log message
    - service_name: Name of the service (injected automatically)
    - correlation_id: Optional checkout session id (the order idempotency key)
    - event_type: Optional checkout lifecycle event being recorded
    - exception: Full stack trace (only when exc_info is attached)

USAGE:
    Initialize logging once at service startup:
        from shared.logging_config import setup_logging
        setup_logging("storefront", level="INFO")

    Log with checkout context:
        logger.info(
            "Order accepted",
            extra={"event_type": "checkout.order_created", "correlation_id": flow.idempotency_key},
        )

EXAMPLE JSON OUTPUT:
    {
        "timestamp": "2026-10-19T14:02:11.104512+02:00",
        "level": "INFO",
        "logger": "storefront.checkout_flow",
        "message": "Order 42 accepted, awaiting payment",
        "service_name": "storefront",
        "correlation_id": "9a63a606-fbef-4a4b-a5a4-ef1f127bc304",
        "event_type": "checkout.order_created"
    }
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Africa/Johannesburg"


class JsonFormatter(logging.Formatter):
    """Custom formatter that outputs JSON logs with correlation context."""

    def __init__(self, timezone: str = DEFAULT_TIMEZONE):
        super().__init__()
        self.tz = ZoneInfo(timezone)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, self.tz).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "service_name"):
            log_data["service_name"] = record.service_name
        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id
        if hasattr(record, "event_type"):
            log_data["event_type"] = record.event_type

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ServiceFilter(logging.Filter):
    """Stamps every record with the owning service name."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        return True


def setup_logging(service_name: str, level: str = "INFO", timezone: str = DEFAULT_TIMEZONE) -> None:
    """Setup JSON logging for a service. Calling it again replaces the previous handler."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(timezone))
    handler.addFilter(ServiceFilter(service_name))
    handler._storefront_json = True  # marks handlers installed here

    logger = logging.getLogger()
    logger.setLevel(level)
    for existing in list(logger.handlers):
        if getattr(existing, "_storefront_json", False):
            logger.removeHandler(existing)
    logger.addHandler(handler)
