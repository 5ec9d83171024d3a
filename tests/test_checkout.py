import pytest

from storefront.cart_repository import CartLine
from storefront.checkout import (
    DELIVERY_FEES,
    CheckoutPhase,
    CheckoutState,
    CheckoutValidationError,
    DeliveryOption,
    InvalidTransition,
    OrderAccepted,
    PaymentClosed,
    PaymentConfirmationFailed,
    PaymentConfirmed,
    PaymentType,
    ResetError,
    SetAgreedToTerms,
    SetBillingField,
    SetDeliveryOption,
    SetPaymentType,
    SetTermMonths,
    SubmitFailed,
    SubmitStarted,
    build_order_request,
    monthly_payment,
    price_order,
    reduce,
    validate_submission,
)
from storefront.payments import build_widget_config

from conftest import BILLING

LINES = [CartLine(product_id=12, name="Oslo 3 Seater", unit_price=50.0, quantity=2)]


def ready_state(**changes) -> CheckoutState:
    state = CheckoutState()
    for field, value in BILLING.items():
        state = reduce(state, SetBillingField(field=field, value=value))
    state = reduce(state, SetAgreedToTerms(value=True))
    return state.model_copy(update=changes)


def widget():
    return build_widget_config("42", "a@b.co.za", 125.0, "pk_test_123")


class TestDefaults:
    def test_new_session_defaults(self):
        state = CheckoutState()

        assert state.delivery_option is DeliveryOption.STANDARD
        assert state.payment_type is PaymentType.FULL
        assert state.term_months == 6
        assert state.agreed_to_terms is False
        assert state.phase is CheckoutPhase.EDITING
        assert state.payment_widget_config is None

    def test_delivery_fees(self):
        assert DELIVERY_FEES == {
            DeliveryOption.STANDARD: 10,
            DeliveryOption.EXPRESS: 20,
            DeliveryOption.PICKUP: 0,
        }

    def test_payment_type_labels(self):
        assert PaymentType.FULL.label == "Full"
        assert PaymentType.CREDIT.label == "Credit"


class TestPricing:
    def test_express_order(self):
        pricing = price_order(100, DeliveryOption.EXPRESS)

        assert pricing.delivery_fee == 20
        assert pricing.tax == pytest.approx(15.0)
        assert pricing.total == pytest.approx(135.0)
        assert pricing.monthly_payment is None

    def test_credit_installment_follows_amortization_formula(self):
        pricing = price_order(100, DeliveryOption.EXPRESS, PaymentType.CREDIT, 6)

        growth = 1.02 ** 6
        expected = 135 * (0.02 * growth) / (growth - 1)
        assert pricing.monthly_payment == pytest.approx(expected)
        assert round(pricing.monthly_payment, 2) == 24.10

    def test_zero_rate_splits_total_evenly(self):
        assert monthly_payment(120, 12, rate=0) == 10

    def test_invalid_term_has_no_installment(self):
        pricing = price_order(100, DeliveryOption.PICKUP, PaymentType.CREDIT, 0)

        assert pricing.total == pytest.approx(115.0)
        assert pricing.monthly_payment is None

    def test_monthly_payment_rejects_zero_term(self):
        with pytest.raises(ValueError):
            monthly_payment(100, 0)

    def test_rounded_is_display_only(self):
        pricing = price_order(33.33, DeliveryOption.PICKUP)

        assert pricing.tax == pytest.approx(4.9995)
        assert pricing.rounded()["tax"] == 5.0


class TestReducer:
    def test_field_edit_returns_new_state(self):
        state = CheckoutState()
        edited = reduce(state, SetDeliveryOption(value=DeliveryOption.PICKUP))

        assert edited.delivery_option is DeliveryOption.PICKUP
        assert state.delivery_option is DeliveryOption.STANDARD

    def test_payment_type_accepts_labels(self):
        state = reduce(CheckoutState(), SetPaymentType(value="Credit"))

        assert state.payment_type is PaymentType.CREDIT

    def test_term_months_stored_unvalidated(self):
        state = reduce(CheckoutState(), SetTermMonths(value="abc"))

        assert state.term_months == "abc"

    def test_billing_field_edit(self):
        state = reduce(CheckoutState(), SetBillingField(field="city", value="Durban"))

        assert state.billing_address.city == "Durban"
        assert state.billing_address.full_name == ""

    def test_full_payment_path(self):
        state = reduce(ready_state(), SubmitStarted())
        assert state.phase is CheckoutPhase.SUBMITTING

        state = reduce(state, OrderAccepted(order_id="42", widget_config=widget()))
        assert state.phase is CheckoutPhase.AWAITING_PAYMENT
        assert state.order_id == "42"

        state = reduce(state, PaymentConfirmed())
        assert state.phase is CheckoutPhase.CONFIRMED
        assert state.payment_widget_config is None

    def test_credit_acceptance_confirms_directly(self):
        state = reduce(reduce(ready_state(), SubmitStarted()), OrderAccepted(order_id="7"))

        assert state.phase is CheckoutPhase.CONFIRMED

    def test_failure_then_edit_returns_to_editing(self):
        state = reduce(reduce(ready_state(), SubmitStarted()), SubmitFailed(message="Out of stock"))
        assert state.phase is CheckoutPhase.FAILED
        assert state.error == "Out of stock"

        state = reduce(state, SetDeliveryOption(value=DeliveryOption.EXPRESS))
        assert state.phase is CheckoutPhase.EDITING
        assert state.error is None

    def test_reset_error_from_failed(self):
        state = reduce(reduce(ready_state(), SubmitStarted()), SubmitFailed(message="x"))

        state = reduce(state, ResetError())

        assert state.phase is CheckoutPhase.EDITING
        assert state.error is None

    def test_resubmit_from_failed(self):
        state = reduce(reduce(ready_state(), SubmitStarted()), SubmitFailed(message="x"))

        assert reduce(state, SubmitStarted()).phase is CheckoutPhase.SUBMITTING

    def test_confirmation_failure_keeps_awaiting_payment(self):
        state = reduce(reduce(ready_state(), SubmitStarted()), OrderAccepted(order_id="42", widget_config=widget()))

        state = reduce(state, PaymentConfirmationFailed(message="Payment confirmation failed."))

        assert state.phase is CheckoutPhase.AWAITING_PAYMENT
        assert state.error == "Payment confirmation failed."

    def test_payment_closed_returns_to_editing(self):
        state = reduce(reduce(ready_state(), SubmitStarted()), OrderAccepted(order_id="42", widget_config=widget()))

        state = reduce(state, PaymentClosed())

        assert state.phase is CheckoutPhase.EDITING
        assert state.payment_widget_config is None

    def test_payment_closed_clears_confirmation_error(self):
        state = reduce(reduce(ready_state(), SubmitStarted()), OrderAccepted(order_id="42", widget_config=widget()))
        state = reduce(state, PaymentConfirmationFailed(message="Payment confirmation failed."))

        state = reduce(state, PaymentClosed())

        assert state.phase is CheckoutPhase.EDITING
        assert state.error is None

    def test_order_accepted_keeps_pricing(self):
        pricing = price_order(100, DeliveryOption.STANDARD)

        state = reduce(reduce(ready_state(), SubmitStarted()), OrderAccepted(order_id="7", pricing=pricing))

        assert state.order_pricing == pricing
        assert reduce(CheckoutState(), SetTermMonths(value=3)).order_pricing is None

    @pytest.mark.parametrize(
        "phase,action",
        [
            (CheckoutPhase.SUBMITTING, SetDeliveryOption(value=DeliveryOption.PICKUP)),
            (CheckoutPhase.SUBMITTING, SubmitStarted()),
            (CheckoutPhase.AWAITING_PAYMENT, SetTermMonths(value=12)),
            (CheckoutPhase.CONFIRMED, SetAgreedToTerms(value=False)),
            (CheckoutPhase.EDITING, PaymentConfirmed()),
            (CheckoutPhase.EDITING, OrderAccepted(order_id="1")),
            (CheckoutPhase.FAILED, PaymentClosed()),
        ],
    )
    def test_illegal_transitions_raise(self, phase, action):
        with pytest.raises(InvalidTransition):
            reduce(CheckoutState(phase=phase), action)


class TestValidation:
    def test_ready_state_passes(self):
        validate_submission(ready_state(), LINES)

    def test_terms_must_be_agreed(self):
        with pytest.raises(CheckoutValidationError, match="Please agree to the terms."):
            validate_submission(ready_state(agreed_to_terms=False), LINES)

    def test_cart_must_not_be_empty(self):
        with pytest.raises(CheckoutValidationError, match="Your cart is empty."):
            validate_submission(ready_state(), [])

    @pytest.mark.parametrize("term", [0, 37, 6.5, "6", True, None])
    def test_credit_term_must_be_integer_in_range(self, term):
        state = ready_state(payment_type=PaymentType.CREDIT, term_months=term)

        with pytest.raises(CheckoutValidationError, match="Term months must be an integer between 1 and 36."):
            validate_submission(state, LINES)

    @pytest.mark.parametrize("term", [1, 36])
    def test_credit_term_bounds_are_inclusive(self, term):
        validate_submission(ready_state(payment_type=PaymentType.CREDIT, term_months=term), LINES)

    def test_term_ignored_for_full_payment(self):
        validate_submission(ready_state(term_months=0), LINES)

    @pytest.mark.parametrize("field", ["full_name", "address_line1", "city", "postal_code"])
    def test_required_billing_fields(self, field):
        state = reduce(ready_state(), SetBillingField(field=field, value="   "))

        with pytest.raises(CheckoutValidationError, match="Please complete all required address fields."):
            validate_submission(state, LINES)

    def test_address_line2_is_optional(self):
        validate_submission(reduce(ready_state(), SetBillingField(field="address_line2", value="")), LINES)

    def test_rules_are_checked_in_order(self):
        state = CheckoutState(payment_type=PaymentType.CREDIT, term_months=0)

        with pytest.raises(CheckoutValidationError, match="Please agree to the terms."):
            validate_submission(state, [])


class TestOrderRequest:
    def test_full_payment_body(self):
        body = build_order_request(ready_state(delivery_option=DeliveryOption.EXPRESS), LINES).to_wire()

        assert body == {
            "Items": [{"ProductId": 12, "Quantity": 2, "UnitPrice": 50.0}],
            "DeliveryOption": "Express",
            "PaymentType": 0,
            "TermMonths": None,
            "BillingAddress": {
                "FullName": "Thandi Mokoena",
                "AddressLine1": "12 Long Street",
                "AddressLine2": "",
                "City": "Cape Town",
                "PostalCode": "8001",
            },
        }

    def test_credit_body_carries_term(self):
        body = build_order_request(ready_state(payment_type=PaymentType.CREDIT, term_months=12), LINES).to_wire()

        assert body["PaymentType"] == 1
        assert body["TermMonths"] == 12
