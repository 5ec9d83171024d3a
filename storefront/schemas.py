from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from storefront.cart_repository import ProductId
from storefront.checkout import (
    CheckoutPhase,
    CheckoutState,
    DeliveryOption,
    OrderPricing,
    SetAgreedToTerms,
    SetBillingField,
    SetDeliveryOption,
    SetPaymentType,
    SetTermMonths,
)
from storefront.payments import PaymentWidgetConfig


class CartItemRequest(BaseModel):
    """Request model for adding an item to the cart."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: ProductId
    name: str = ""
    unit_price: float = Field(ge=0)
    image: Optional[str] = None
    quantity: int = Field(default=1, gt=0)


class UpdateQuantityRequest(BaseModel):
    """Request model for updating item quantity. Zero or less removes the item."""

    quantity: int


class CartItemResponse(BaseModel):
    """Response model for a cart line."""

    product_id: ProductId
    name: str
    unit_price: float
    image: Optional[str] = None
    quantity: int
    line_total: float


class CartResponse(BaseModel):
    """Response model for the cart."""

    items: List[CartItemResponse]
    total_amount: float
    item_count: int


CheckoutActionRequest = Annotated[
    Union[SetDeliveryOption, SetPaymentType, SetTermMonths, SetAgreedToTerms, SetBillingField],
    Field(discriminator="type"),
]

CHECKOUT_ACTION_ADAPTER = TypeAdapter(CheckoutActionRequest)


class PricingResponse(BaseModel):
    subtotal: float
    delivery_fee: float
    tax: float
    total: float
    monthly_payment: Optional[float] = None

    @classmethod
    def from_pricing(cls, pricing: OrderPricing) -> "PricingResponse":
        return cls(**pricing.rounded())


class CheckoutResponse(BaseModel):
    """Checkout screen model: current state, live pricing, and where to go next."""

    phase: CheckoutPhase
    delivery_option: DeliveryOption
    payment_type: str
    term_months: Any
    agreed_to_terms: bool
    billing_address: Dict[str, str]
    order_id: Optional[str] = None
    error: Optional[str] = None
    payment_widget_config: Optional[PaymentWidgetConfig] = None
    pricing: PricingResponse
    delivery_fees: Dict[str, float]
    redirect_to: Optional[str] = None

    @classmethod
    def build(
        cls,
        state: CheckoutState,
        pricing: OrderPricing,
        delivery_fees: Dict[DeliveryOption, float],
        redirect_to: Optional[str] = None,
    ) -> "CheckoutResponse":
        return cls(
            phase=state.phase,
            delivery_option=state.delivery_option,
            payment_type=state.payment_type.label,
            term_months=state.term_months,
            agreed_to_terms=state.agreed_to_terms,
            billing_address=state.billing_address.model_dump(),
            order_id=state.order_id,
            error=state.error,
            payment_widget_config=state.payment_widget_config,
            pricing=PricingResponse.from_pricing(pricing),
            delivery_fees={option.value: fee for option, fee in delivery_fees.items()},
            redirect_to=redirect_to,
        )


class PaymentSuccessRequest(BaseModel):
    """Payload the payment widget hands to its success callback."""

    reference: str


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    is_authenticated: bool
    user_id: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    service: str
    version: str
