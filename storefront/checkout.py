"""
Checkout State Module

Immutable checkout state, the closed set of actions that change it, and the pure
pricing, validation and request-building functions the checkout flow runs on.

State Machine:
    Editing --SubmitStarted--> Submitting
    Submitting --OrderAccepted(widget)--> AwaitingPayment     (pay in full)
    Submitting --OrderAccepted(no widget)--> Confirmed        (credit terms)
    Submitting --SubmitFailed--> Failed
    Failed --field edit / ResetError / SubmitStarted--> Editing / Submitting
    AwaitingPayment --PaymentConfirmed--> Confirmed
    AwaitingPayment --PaymentConfirmationFailed--> AwaitingPayment (error recorded)
    AwaitingPayment --PaymentClosed--> Editing

Pricing:
    delivery_fee = DELIVERY_FEES[delivery_option]    # Standard=10, Express=20, Pickup=0
    tax          = subtotal * TAX_RATE                # 0.15
    total        = subtotal + delivery_fee + tax
    monthly      = total * r(1+r)^n / ((1+r)^n - 1)   # credit only, r = 0.02
"""

import logging
from enum import Enum, IntEnum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_pascal

from storefront.cart_repository import CartLine, ProductId
from storefront.payments import PaymentWidgetConfig

logger = logging.getLogger(__name__)

TAX_RATE = 0.15
MONTHLY_INTEREST_RATE = 0.02
MIN_TERM_MONTHS = 1
MAX_TERM_MONTHS = 36
DEFAULT_TERM_MONTHS = 6


class DeliveryOption(str, Enum):
    STANDARD = "Standard"
    EXPRESS = "Express"
    PICKUP = "Pickup"


DELIVERY_FEES: Dict[DeliveryOption, float] = {
    DeliveryOption.STANDARD: 10.0,
    DeliveryOption.EXPRESS: 20.0,
    DeliveryOption.PICKUP: 0.0,
}


class PaymentType(IntEnum):
    """Wire discriminant: Full=0, Credit=1."""

    FULL = 0
    CREDIT = 1

    @property
    def label(self) -> str:
        return "Full" if self is PaymentType.FULL else "Credit"


class CheckoutPhase(str, Enum):
    EDITING = "Editing"
    SUBMITTING = "Submitting"
    AWAITING_PAYMENT = "AwaitingPayment"
    CONFIRMED = "Confirmed"
    FAILED = "Failed"


class CheckoutValidationError(Exception):
    """Submission rejected locally before any network call."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTransition(Exception):
    """Action not allowed in the current checkout phase."""

    def __init__(self, phase: CheckoutPhase, action: str):
        super().__init__(f"{action} is not allowed while checkout is {phase.value}")
        self.phase = phase
        self.action = action


class BillingAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str = ""
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    postal_code: str = ""


BillingField = Literal["full_name", "address_line1", "address_line2", "city", "postal_code"]
REQUIRED_BILLING_FIELDS = ("full_name", "address_line1", "city", "postal_code")


class OrderPricing(BaseModel):
    """Figures for one order. Kept on the state once the store API accepts the order."""

    model_config = ConfigDict(frozen=True)

    subtotal: float
    delivery_fee: float
    tax: float
    total: float
    monthly_payment: Optional[float] = None

    def rounded(self) -> Dict[str, Optional[float]]:
        """Two-decimal figures for display. Calculations use the unrounded values."""
        return {
            name: (round(value, 2) if value is not None else None)
            for name, value in self.model_dump().items()
        }


class CheckoutState(BaseModel):
    """One checkout session. Every action produces a new instance."""

    model_config = ConfigDict(frozen=True)

    delivery_option: DeliveryOption = DeliveryOption.STANDARD
    payment_type: PaymentType = PaymentType.FULL
    # Checked on submit, not on edit
    term_months: Any = DEFAULT_TERM_MONTHS
    agreed_to_terms: bool = False
    billing_address: BillingAddress = Field(default_factory=BillingAddress)
    payment_widget_config: Optional[PaymentWidgetConfig] = None
    phase: CheckoutPhase = CheckoutPhase.EDITING
    order_id: Optional[str] = None
    # Figures of the accepted order; the cart may be cleared or edited afterwards
    order_pricing: Optional[OrderPricing] = None
    error: Optional[str] = None


# ============================================================================
# ACTIONS
# ============================================================================

class SetDeliveryOption(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["set_delivery_option"] = "set_delivery_option"
    value: DeliveryOption


class SetPaymentType(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["set_payment_type"] = "set_payment_type"
    value: PaymentType

    @field_validator("value", mode="before")
    @classmethod
    def accept_label(cls, v: Any) -> Any:
        if isinstance(v, str) and v.capitalize() in ("Full", "Credit"):
            return PaymentType.FULL if v.capitalize() == "Full" else PaymentType.CREDIT
        return v


class SetTermMonths(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["set_term_months"] = "set_term_months"
    value: Any


class SetAgreedToTerms(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["set_agreed_to_terms"] = "set_agreed_to_terms"
    value: bool


class SetBillingField(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["set_billing_field"] = "set_billing_field"
    field: BillingField
    value: str = ""


class SubmitStarted(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["submit_started"] = "submit_started"


class OrderAccepted(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["order_accepted"] = "order_accepted"
    order_id: str
    widget_config: Optional[PaymentWidgetConfig] = None
    pricing: Optional[OrderPricing] = None


class SubmitFailed(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["submit_failed"] = "submit_failed"
    message: str


class PaymentConfirmed(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["payment_confirmed"] = "payment_confirmed"


class PaymentConfirmationFailed(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["payment_confirmation_failed"] = "payment_confirmation_failed"
    message: str


class PaymentClosed(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["payment_closed"] = "payment_closed"


class ResetError(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["reset_error"] = "reset_error"


FieldAction = Union[SetDeliveryOption, SetPaymentType, SetTermMonths, SetAgreedToTerms, SetBillingField]

CheckoutAction = Union[
    SetDeliveryOption,
    SetPaymentType,
    SetTermMonths,
    SetAgreedToTerms,
    SetBillingField,
    SubmitStarted,
    OrderAccepted,
    SubmitFailed,
    PaymentConfirmed,
    PaymentConfirmationFailed,
    PaymentClosed,
    ResetError,
]

EDITABLE_PHASES = (CheckoutPhase.EDITING, CheckoutPhase.FAILED)


def _require(state: CheckoutState, action: BaseModel, *phases: CheckoutPhase) -> None:
    if state.phase not in phases:
        raise InvalidTransition(state.phase, action.type)


def _apply_field(state: CheckoutState, action: FieldAction) -> CheckoutState:
    if isinstance(action, SetDeliveryOption):
        changes: Dict[str, Any] = {"delivery_option": action.value}
    elif isinstance(action, SetPaymentType):
        changes = {"payment_type": action.value}
    elif isinstance(action, SetTermMonths):
        changes = {"term_months": action.value}
    elif isinstance(action, SetAgreedToTerms):
        changes = {"agreed_to_terms": action.value}
    else:
        address = state.billing_address.model_copy(update={action.field: action.value})
        changes = {"billing_address": address}

    changes.update(phase=CheckoutPhase.EDITING, error=None)
    return state.model_copy(update=changes)


def reduce(state: CheckoutState, action: CheckoutAction) -> CheckoutState:
    """Pure transition function: returns the state after applying action."""
    if isinstance(action, (SetDeliveryOption, SetPaymentType, SetTermMonths, SetAgreedToTerms, SetBillingField)):
        _require(state, action, *EDITABLE_PHASES)
        return _apply_field(state, action)

    if isinstance(action, SubmitStarted):
        _require(state, action, *EDITABLE_PHASES)
        return state.model_copy(update={"phase": CheckoutPhase.SUBMITTING, "error": None})

    if isinstance(action, OrderAccepted):
        _require(state, action, CheckoutPhase.SUBMITTING)
        phase = CheckoutPhase.AWAITING_PAYMENT if action.widget_config else CheckoutPhase.CONFIRMED
        return state.model_copy(
            update={
                "phase": phase,
                "order_id": action.order_id,
                "order_pricing": action.pricing,
                "payment_widget_config": action.widget_config,
                "error": None,
            }
        )

    if isinstance(action, SubmitFailed):
        _require(state, action, CheckoutPhase.SUBMITTING)
        return state.model_copy(update={"phase": CheckoutPhase.FAILED, "error": action.message})

    if isinstance(action, PaymentConfirmed):
        _require(state, action, CheckoutPhase.AWAITING_PAYMENT)
        return state.model_copy(
            update={"phase": CheckoutPhase.CONFIRMED, "payment_widget_config": None, "error": None}
        )

    if isinstance(action, PaymentConfirmationFailed):
        _require(state, action, CheckoutPhase.AWAITING_PAYMENT)
        return state.model_copy(update={"error": action.message})

    if isinstance(action, PaymentClosed):
        _require(state, action, CheckoutPhase.AWAITING_PAYMENT)
        return state.model_copy(
            update={
                "phase": CheckoutPhase.EDITING,
                "payment_widget_config": None,
                "order_pricing": None,
                "error": None,
            }
        )

    if isinstance(action, ResetError):
        if state.phase is CheckoutPhase.FAILED:
            return state.model_copy(update={"phase": CheckoutPhase.EDITING, "error": None})
        return state.model_copy(update={"error": None})

    raise TypeError(f"Unknown checkout action: {action!r}")


# ============================================================================
# PRICING
# ============================================================================

def monthly_payment(total: float, term_months: int, rate: float = MONTHLY_INTEREST_RATE) -> float:
    """Fixed-rate installment for a credit order. A zero rate splits the total evenly."""
    if term_months < 1:
        raise ValueError(f"term_months must be at least 1, got {term_months}")
    if rate == 0:
        return total / term_months
    growth = (1 + rate) ** term_months
    return total * (rate * growth) / (growth - 1)


def is_valid_term(term_months: Any) -> bool:
    return (
        isinstance(term_months, int)
        and not isinstance(term_months, bool)
        and MIN_TERM_MONTHS <= term_months <= MAX_TERM_MONTHS
    )


def price_order(
    subtotal: float,
    delivery_option: DeliveryOption,
    payment_type: PaymentType = PaymentType.FULL,
    term_months: Any = None,
    tax_rate: float = TAX_RATE,
    interest_rate: float = MONTHLY_INTEREST_RATE,
) -> OrderPricing:
    delivery_fee = DELIVERY_FEES[DeliveryOption(delivery_option)]
    tax = subtotal * tax_rate
    total = subtotal + delivery_fee + tax

    monthly = None
    if payment_type == PaymentType.CREDIT and is_valid_term(term_months):
        monthly = monthly_payment(total, term_months, interest_rate)

    return OrderPricing(subtotal=subtotal, delivery_fee=delivery_fee, tax=tax, total=total, monthly_payment=monthly)


# ============================================================================
# SUBMISSION
# ============================================================================

def validate_submission(state: CheckoutState, lines: List[CartLine]) -> None:
    """Raise CheckoutValidationError for the first rule the state breaks."""
    if not state.agreed_to_terms:
        raise CheckoutValidationError("Please agree to the terms.")
    if not lines:
        raise CheckoutValidationError("Your cart is empty.")
    if state.payment_type == PaymentType.CREDIT and not is_valid_term(state.term_months):
        raise CheckoutValidationError("Term months must be an integer between 1 and 36.")

    address = state.billing_address
    if any(not getattr(address, name).strip() for name in REQUIRED_BILLING_FIELDS):
        raise CheckoutValidationError("Please complete all required address fields.")




class OrderItemRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, frozen=True)

    product_id: ProductId
    quantity: int
    unit_price: float


class BillingAddressRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, frozen=True)

    full_name: str
    address_line1: str
    address_line2: str = ""
    city: str
    postal_code: str


class OrderRequest(BaseModel):
    """Checkout body. Serialized with the store API's PascalCase field names."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, frozen=True)

    items: List[OrderItemRequest]
    delivery_option: DeliveryOption
    payment_type: PaymentType
    term_months: Optional[int] = None
    billing_address: BillingAddressRequest

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def build_order_request(state: CheckoutState, lines: List[CartLine]) -> OrderRequest:
    is_credit = state.payment_type == PaymentType.CREDIT
    return OrderRequest(
        items=[
            OrderItemRequest(product_id=line.product_id, quantity=line.quantity, unit_price=line.unit_price)
            for line in lines
        ],
        delivery_option=state.delivery_option,
        payment_type=state.payment_type,
        term_months=state.term_months if is_credit else None,
        billing_address=BillingAddressRequest(**state.billing_address.model_dump()),
    )
