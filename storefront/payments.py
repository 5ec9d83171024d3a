"""Payment widget configuration for pay-in-full orders.

The widget itself runs in the customer's browser. The storefront only hands it
the configuration below and is told about the outcome through
CheckoutFlow.payment_succeeded / CheckoutFlow.payment_closed.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "ZAR"


class PaymentWidgetConfig(BaseModel):
    """Configuration surfaced to the payment widget once the order exists."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    reference: str
    email: str
    amount: int  # minor currency units
    public_key: str
    currency: str = DEFAULT_CURRENCY


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def build_widget_config(
    order_id: str,
    email: Optional[str],
    total: float,
    public_key: str,
    default_email: str = "user@example.com",
) -> PaymentWidgetConfig:
    if not email:
        logger.warning(f"No buyer email for order {order_id}, using {default_email}")
    return PaymentWidgetConfig(
        reference=str(order_id),
        email=email or default_email,
        amount=to_minor_units(total),
        public_key=public_key,
    )
