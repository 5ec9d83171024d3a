"""
events.py - Checkout Lifecycle Event Definitions

PURPOSE:
    Defines the events recorded while a customer moves through checkout.
    Uses Pydantic for data validation and serialization.

EVENT CATEGORIES:
    1. Checkout Events: Order submission
       - checkout.submitted
       - checkout.order_created
       - checkout.failed

    2. Payment Events: Third-party payment widget outcome
       - payment.confirmed
       - payment.confirmation_failed
       - payment.closed

    3. Cart Events: Cart lifecycle tied to checkout
       - cart.cleared

COMMON FIELDS (BaseEvent):
    - event_id: Unique identifier (UUID)
    - event_type: Event category and action
    - timestamp: Store-timezone timestamp of event creation (set_event_timezone at startup)
    - correlation_id: Checkout session id, also sent as the order Idempotency-Key

USAGE:
    event = OrderCreatedEvent(correlation_id=flow.idempotency_key, order_id="42", payment_type="Full")
    json_data = event.model_dump_json()
    event = EVENT_TYPE_MAP["checkout.order_created"].model_validate_json(json_data)
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from shared.logging_config import DEFAULT_TIMEZONE

_event_timezone = ZoneInfo(DEFAULT_TIMEZONE)


def set_event_timezone(timezone: str) -> None:
    """Timezone for event timestamps; the service sets it from STORE_TIMEZONE."""
    global _event_timezone
    _event_timezone = ZoneInfo(timezone)


def _now() -> datetime:
    return datetime.now(_event_timezone)


class BaseEvent(BaseModel):
    """
    Base event model for all checkout events.

    All events inherit from this class and include:
    - Unique event ID
    - Event type identifier
    - Store timezone-aware timestamp
    - Correlation ID for the checkout session
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    timestamp: datetime = Field(default_factory=_now)
    correlation_id: str


# ============================================================================
# CHECKOUT EVENTS - Order submission
# ============================================================================

class CheckoutSubmittedEvent(BaseEvent):
    """
    Recorded when a validated order request is sent to the store API.
    """

    event_type: str = "checkout.submitted"
    item_count: int
    total_amount: float
    payment_type: str


class OrderCreatedEvent(BaseEvent):
    """
    Recorded when the store API accepts the order.
    Full payment orders continue to the payment widget, credit orders are confirmed.
    """

    event_type: str = "checkout.order_created"
    order_id: str
    payment_type: str


class CheckoutFailedEvent(BaseEvent):
    """
    Recorded when order submission is rejected or the network call fails.
    The cart is left untouched.
    """

    event_type: str = "checkout.failed"
    reason: str
    status_code: Optional[int] = None
    code: Optional[str] = None


# ============================================================================
# PAYMENT EVENTS - Payment widget outcome
# ============================================================================

class PaymentConfirmedEvent(BaseEvent):
    """Recorded when the store API confirms the widget transaction."""

    event_type: str = "payment.confirmed"
    order_id: str
    transaction_id: str


class PaymentConfirmationFailedEvent(BaseEvent):
    """
    Recorded when confirming a widget transaction fails.
    The order already exists server-side, so the cart is kept.
    """

    event_type: str = "payment.confirmation_failed"
    order_id: str
    transaction_id: str
    reason: str


class PaymentClosedEvent(BaseEvent):
    """Recorded when the customer closes the payment widget without paying."""

    event_type: str = "payment.closed"
    order_id: str


# ============================================================================
# CART EVENTS
# ============================================================================

class CartClearedEvent(BaseEvent):
    """Recorded when a confirmed checkout empties the cart."""

    event_type: str = "cart.cleared"
    order_id: str
    item_count: int


EVENT_TYPE_MAP = {
    "checkout.submitted": CheckoutSubmittedEvent,
    "checkout.order_created": OrderCreatedEvent,
    "checkout.failed": CheckoutFailedEvent,
    "payment.confirmed": PaymentConfirmedEvent,
    "payment.confirmation_failed": PaymentConfirmationFailedEvent,
    "payment.closed": PaymentClosedEvent,
    "cart.cleared": CartClearedEvent,
}
