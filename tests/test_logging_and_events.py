import json
import logging
import sys
from datetime import timedelta

from shared.events import (
    EVENT_TYPE_MAP,
    CheckoutFailedEvent,
    OrderCreatedEvent,
    set_event_timezone,
)
from shared.logging_config import DEFAULT_TIMEZONE, JsonFormatter, ServiceFilter, setup_logging


def make_record(message="Order 42 accepted", **extra):
    record = logging.LogRecord("storefront.checkout_flow", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_basic_fields(self):
        record = make_record()
        ServiceFilter("storefront").filter(record)

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "storefront.checkout_flow"
        assert data["message"] == "Order 42 accepted"
        assert data["service_name"] == "storefront"
        assert "correlation_id" not in data
        assert data["timestamp"].endswith("+02:00")

    def test_checkout_context(self):
        record = make_record(correlation_id="key-1", event_type="checkout.order_created")

        data = json.loads(JsonFormatter().format(record))

        assert data["correlation_id"] == "key-1"
        assert data["event_type"] == "checkout.order_created"

    def test_configurable_timezone(self):
        data = json.loads(JsonFormatter("UTC").format(make_record()))

        assert data["timestamp"].endswith("+00:00")

    def test_exception_included(self):
        try:
            raise RuntimeError("widget exploded")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: widget exploded" in data["exception"]


def test_setup_logging_is_idempotent():
    setup_logging("storefront", level="DEBUG")
    setup_logging("storefront", level="INFO")

    root = logging.getLogger()
    ours = [h for h in root.handlers if getattr(h, "_storefront_json", False)]
    assert len(ours) == 1
    assert root.level == logging.INFO


class TestEvents:
    def test_defaults(self):
        event = OrderCreatedEvent(correlation_id="key-1", order_id="42", payment_type="Full")

        assert event.event_type == "checkout.order_created"
        assert event.event_id
        assert event.timestamp.utcoffset() == timedelta(hours=2)

    def test_type_map_round_trip(self):
        event = CheckoutFailedEvent(correlation_id="key-1", reason="Out of stock", status_code=400)

        restored = EVENT_TYPE_MAP[event.event_type].model_validate_json(event.model_dump_json())

        assert restored == event

    def test_type_map_covers_checkout_lifecycle(self):
        assert set(EVENT_TYPE_MAP) == {
            "checkout.submitted",
            "checkout.order_created",
            "checkout.failed",
            "payment.confirmed",
            "payment.confirmation_failed",
            "payment.closed",
            "cart.cleared",
        }


def test_event_timezone_follows_setting():
    set_event_timezone("UTC")
    try:
        event = OrderCreatedEvent(correlation_id="key-1", order_id="42", payment_type="Full")
    finally:
        set_event_timezone(DEFAULT_TIMEZONE)

    assert event.timestamp.utcoffset() == timedelta(0)
