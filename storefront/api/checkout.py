"""Order and payment endpoints of the store API."""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel

from shared.api_client import ApiError, BaseApiClient
from storefront.checkout import OrderRequest

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


class OrderReceipt(BaseModel):
    """What the storefront keeps from a created order."""

    order_id: str


def extract_order_id(body: Any) -> str:
    """Find the created order id in a checkout response.

    The API wraps the order as {"success": true, "data": {"orderId": ...}}; a bare
    order object is accepted as well.
    """
    candidates = []
    if isinstance(body, dict):
        if isinstance(body.get("data"), dict):
            candidates.append(body["data"])
        candidates.append(body)

    for candidate in candidates:
        for key in ("orderId", "OrderId", "id", "Id"):
            if candidate.get(key) is not None:
                return str(candidate[key])

    raise ApiError("Order was created but no order id was returned.", payload=body)


class CheckoutApi:
    """Customer-facing order endpoints."""

    def __init__(self, client: BaseApiClient):
        self.client = client

    def submit_order(self, order: OrderRequest, idempotency_key: Optional[str] = None) -> OrderReceipt:
        headers = {IDEMPOTENCY_HEADER: idempotency_key} if idempotency_key else None
        body = self.client.post(
            "orders/checkout", json=order.to_wire(), headers=headers, fallback="An error occurred during checkout."
        )
        receipt = OrderReceipt(order_id=extract_order_id(body))
        logger.info(f"Store API created order {receipt.order_id}")
        return receipt

    def confirm_payment(self, order_id: str, transaction_id: str) -> None:
        self.client.post(f"payments/confirm/{order_id}", json={"transactionId": transaction_id})
        logger.info(f"Confirmed payment {transaction_id} for order {order_id}")

    def get_orders(self, page: int = 1, limit: int = 10) -> Any:
        return self.client.get("orders", params={"page": page, "limit": limit})

    def get_order_details(self, order_id: str) -> Any:
        return self.client.get(f"orders/{order_id}")

    def cancel_order(self, order_id: str) -> Any:
        return self.client.post(f"orders/{order_id}/cancel")

    def update_order(self, order_id: str, details: Dict[str, Any]) -> Any:
        return self.client.patch(f"orders/{order_id}", json=details)
