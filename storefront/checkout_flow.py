"""
checkout_flow.py - Checkout Orchestration

PURPOSE:
    Drives one checkout session: collects field edits, prices the order, validates
    and submits it to the store API, and hands pay-in-full orders to the payment
    widget until the store API confirms the transaction.

SUBMISSION FLOW:
    1. Validate locally (terms, cart, credit term, billing address); no network call on failure
    2. Send the order with an Idempotency-Key header
    3. Pay in full: build the widget configuration and wait for the widget outcome
       Credit terms: clear the cart and go to the order confirmation page
    4. Failure: cart untouched, message derived from the structured API error

ERROR CODES:
    The store API signals a rejected credit term with {"code": "INVALID_TERM_MONTHS"}
    (or "errorCode"), which maps to INVALID_TERM_MESSAGE. Responses without a code
    show the server message as is, e.g. "Invalid term (must be 1-36 months).", and
    fall back to GENERIC_CHECKOUT_MESSAGE when the body has no message.

PAYMENT CONFIRMATION:
    - Widget success: POST payments/confirm/{order_id} with the transaction reference
    - Confirmation success clears the cart and goes to the order confirmation page
    - Confirmation failure keeps the cart; the order already exists server-side, and
      re-submitting the same cart reuses the idempotency key so the store API can
      recognise the duplicate

PRICING:
    Live from the cart while editing. Once the store API accepts the order the
    figures it was submitted with are kept on the state, so clearing or editing
    the cart afterwards does not change what the confirmation shows.

IDEMPOTENCY:
    The key is stable for as long as the order request is unchanged. Any change to
    the request (items, delivery, payment, address) starts a new key, and so does a
    confirmed order.
"""

import hashlib
import json
import logging
from typing import Callable, List, Optional
from uuid import uuid4

from shared.api_client import ApiError
from shared.events import (
    BaseEvent,
    CartClearedEvent,
    CheckoutFailedEvent,
    CheckoutSubmittedEvent,
    OrderCreatedEvent,
    PaymentClosedEvent,
    PaymentConfirmationFailedEvent,
    PaymentConfirmedEvent,
)
from storefront.api.auth import AuthSession
from storefront.api.checkout import CheckoutApi
from storefront.cart_repository import CartStore
from storefront.checkout import (
    CheckoutAction,
    CheckoutPhase,
    CheckoutState,
    InvalidTransition,
    OrderAccepted,
    OrderPricing,
    OrderRequest,
    PaymentClosed,
    PaymentConfirmationFailed,
    PaymentConfirmed,
    PaymentType,
    SubmitFailed,
    SubmitStarted,
    build_order_request,
    price_order,
    reduce,
    validate_submission,
)
from storefront.payments import build_widget_config

logger = logging.getLogger(__name__)

INVALID_TERM_CODE = "INVALID_TERM_MONTHS"
INVALID_TERM_MESSAGE = "Invalid term months. Must be between 1 and 36."
GENERIC_CHECKOUT_MESSAGE = "An error occurred during checkout."
PAYMENT_CONFIRMATION_FAILED_MESSAGE = "Payment confirmation failed. Please contact support."


def checkout_error_message(error: ApiError) -> str:
    """User-facing message for a failed order submission."""
    if error.code == INVALID_TERM_CODE:
        return INVALID_TERM_MESSAGE
    return error.message or GENERIC_CHECKOUT_MESSAGE


def confirmation_path(order_id: str) -> str:
    return f"/order-confirmation/{order_id}"


def request_fingerprint(order: OrderRequest) -> str:
    payload = json.dumps(order.to_wire(), sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class CheckoutFlow:
    """
    One checkout session over a cart.

    Args:
        cart: The customer's cart store (read for items/total, cleared on success)
        checkout_api: Store API order endpoints
        public_key: Payment widget public key
        session: Logged-in customer, used for the buyer email
        default_email: Buyer email when the session has none
        on_navigate: Called with the confirmation path once an order is confirmed
    """

    def __init__(
        self,
        cart: CartStore,
        checkout_api: CheckoutApi,
        public_key: str,
        session: Optional[AuthSession] = None,
        default_email: str = "user@example.com",
        on_navigate: Optional[Callable[[str], None]] = None,
    ):
        self.cart = cart
        self.checkout_api = checkout_api
        self.public_key = public_key
        self.session = session
        self.default_email = default_email
        self.on_navigate = on_navigate

        self.state = CheckoutState()
        self.idempotency_key = str(uuid4())
        self.history: List[BaseEvent] = []
        self.redirect_to: Optional[str] = None
        self._fingerprint: Optional[str] = None

    @property
    def pricing(self) -> OrderPricing:
        accepted = (CheckoutPhase.AWAITING_PAYMENT, CheckoutPhase.CONFIRMED)
        if self.state.phase in accepted and self.state.order_pricing is not None:
            return self.state.order_pricing
        return price_order(
            self.cart.total,
            self.state.delivery_option,
            self.state.payment_type,
            self.state.term_months,
        )

    def dispatch(self, action: CheckoutAction) -> CheckoutState:
        self.state = reduce(self.state, action)
        return self.state

    def reset(self) -> CheckoutState:
        """Start a fresh session, as when the checkout screen mounts."""
        if self.state.phase in (CheckoutPhase.SUBMITTING, CheckoutPhase.AWAITING_PAYMENT):
            logger.warning(
                f"Checkout reset while {self.state.phase.value}",
                extra={"correlation_id": self.idempotency_key},
            )
        if self.state.phase is CheckoutPhase.CONFIRMED:
            self._rotate_key()
        self.state = CheckoutState()
        self.redirect_to = None
        return self.state

    def submit(self) -> CheckoutState:
        """
        Validate and submit the order.

        Raises CheckoutValidationError without touching state when a local rule fails.
        Store API failures move the session to Failed and are returned, not raised.
        """
        if self.state.phase not in (CheckoutPhase.EDITING, CheckoutPhase.FAILED):
            raise InvalidTransition(self.state.phase, "submit_started")
        lines = self.cart.items
        validate_submission(self.state, lines)

        pricing = self.pricing
        order = build_order_request(self.state, lines)
        fingerprint = request_fingerprint(order)
        if self._fingerprint is not None and fingerprint != self._fingerprint:
            self._rotate_key()
        self._fingerprint = fingerprint

        self.dispatch(SubmitStarted())
        self._record(
            CheckoutSubmittedEvent(
                correlation_id=self.idempotency_key,
                item_count=len(lines),
                total_amount=pricing.total,
                payment_type=self.state.payment_type.label,
            ),
            f"Submitting order with {len(lines)} line(s), total {pricing.total:.2f}",
        )

        try:
            receipt = self.checkout_api.submit_order(order, self.idempotency_key)
        except ApiError as e:
            message = checkout_error_message(e)
            self.dispatch(SubmitFailed(message=message))
            self._record(
                CheckoutFailedEvent(
                    correlation_id=self.idempotency_key,
                    reason=message,
                    status_code=e.status_code,
                    code=e.code,
                ),
                f"Order submission failed: {e.message}",
                level=logging.WARNING,
            )
            return self.state

        self._record(
            OrderCreatedEvent(
                correlation_id=self.idempotency_key,
                order_id=receipt.order_id,
                payment_type=self.state.payment_type.label,
            ),
            f"Order {receipt.order_id} accepted",
        )

        if self.state.payment_type == PaymentType.FULL:
            email = self.session.email if self.session else None
            widget = build_widget_config(
                receipt.order_id, email, pricing.total, self.public_key, self.default_email
            )
            self.dispatch(OrderAccepted(order_id=receipt.order_id, widget_config=widget, pricing=pricing))
            logger.info(
                f"Awaiting payment of {widget.amount} minor units for order {receipt.order_id}",
                extra={"correlation_id": self.idempotency_key},
            )
        else:
            self.dispatch(OrderAccepted(order_id=receipt.order_id, pricing=pricing))
            self._complete(receipt.order_id)

        return self.state

    def payment_succeeded(self, transaction_reference: str) -> CheckoutState:
        """Widget success callback: confirm the transaction with the store API."""
        if self.state.phase is not CheckoutPhase.AWAITING_PAYMENT:
            raise InvalidTransition(self.state.phase, "payment_confirmed")

        order_id = self.state.order_id
        try:
            self.checkout_api.confirm_payment(order_id, transaction_reference)
        except ApiError as e:
            self.dispatch(PaymentConfirmationFailed(message=PAYMENT_CONFIRMATION_FAILED_MESSAGE))
            self._record(
                PaymentConfirmationFailedEvent(
                    correlation_id=self.idempotency_key,
                    order_id=order_id,
                    transaction_id=transaction_reference,
                    reason=e.message,
                ),
                f"Payment confirmation failed for order {order_id}: {e.message}",
                level=logging.ERROR,
            )
            return self.state

        self.dispatch(PaymentConfirmed())
        self._record(
            PaymentConfirmedEvent(
                correlation_id=self.idempotency_key,
                order_id=order_id,
                transaction_id=transaction_reference,
            ),
            f"Payment {transaction_reference} confirmed for order {order_id}",
        )
        self._complete(order_id)
        return self.state

    def payment_closed(self) -> CheckoutState:
        """Widget close callback: the customer dismissed the payment."""
        order_id = self.state.order_id
        self.dispatch(PaymentClosed())
        self._record(
            PaymentClosedEvent(correlation_id=self.idempotency_key, order_id=order_id),
            f"Payment widget closed for order {order_id}",
        )
        return self.state

    def _complete(self, order_id: str) -> None:
        item_count = self.cart.item_count
        self.cart.clear_cart()
        self._record(
            CartClearedEvent(correlation_id=self.idempotency_key, order_id=order_id, item_count=item_count),
            f"Cart cleared after order {order_id}",
        )
        self.redirect_to = confirmation_path(order_id)
        if self.on_navigate:
            self.on_navigate(self.redirect_to)

    def _rotate_key(self) -> None:
        self.idempotency_key = str(uuid4())
        self._fingerprint = None

    def _record(self, event: BaseEvent, message: str, level: int = logging.INFO) -> None:
        self.history.append(event)
        logger.log(
            level,
            message,
            extra={"event_type": event.event_type, "correlation_id": event.correlation_id},
        )
