"""
Tests for the checkout wizard
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from storefront.checkout.wizard import (
    CheckoutGate,
    CheckoutStep,
    CheckoutWizard,
    PaymentMethod,
    SubmissionStatus,
    check_preconditions,
)
from storefront.models import CartSnapshot, Order
from storefront.services.session import ANONYMOUS
from storefront.utils.error_handler import ApiError, ErrorKind, ValidationError
from tests.conftest import order_payload

SHIPPING = {
    "full_name": "Jane Doe",
    "address_line1": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "country": "United States",
    "phone": "+1 555 0100",
}


@pytest.fixture
def wizard(cart):
    return CheckoutWizard(cart)


def at_review(wizard, method=PaymentMethod.COD):
    wizard.update_shipping(**SHIPPING)
    wizard.advance()
    wizard.select_payment(method)
    wizard.advance()
    return wizard


class TestPreconditions:
    """Test check_preconditions"""

    def test_guest_must_log_in(self, cart):
        assert check_preconditions(ANONYMOUS, cart) is CheckoutGate.LOGIN_REQUIRED
        assert check_preconditions(None, cart) is CheckoutGate.LOGIN_REQUIRED

    def test_empty_cart_blocks(self, session):
        assert check_preconditions(session, CartSnapshot()) is CheckoutGate.EMPTY_CART
        assert check_preconditions(session, None) is CheckoutGate.EMPTY_CART

    def test_ready(self, session, cart):
        assert check_preconditions(session, cart) is CheckoutGate.READY


class TestNavigation:
    """Test step gating"""

    def test_starts_on_shipping_with_default_country(self, cart):
        wizard = CheckoutWizard(cart, default_country="Canada")
        assert wizard.step is CheckoutStep.SHIPPING
        assert wizard.shipping.country == "Canada"

    @pytest.mark.parametrize("missing", sorted(SHIPPING))
    def test_advance_blocked_by_any_missing_field(self, wizard, missing):
        wizard.update_shipping(**{**SHIPPING, missing: "   "})

        with pytest.raises(ValidationError) as exc_info:
            wizard.advance()

        assert wizard.step is CheckoutStep.SHIPPING
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert exc_info.value.context["missing_fields"] == [missing]

    def test_address_line2_is_optional(self, wizard):
        wizard.update_shipping(**SHIPPING)
        assert wizard.advance() is CheckoutStep.PAYMENT

    def test_unknown_field_rejected(self, wizard):
        with pytest.raises(ValueError):
            wizard.update_shipping(favourite_colour="blue")

    def test_payment_requires_a_method(self, wizard):
        wizard.update_shipping(**SHIPPING)
        wizard.advance()

        with pytest.raises(ValidationError) as exc_info:
            wizard.advance()
        assert exc_info.value.context["missing_fields"] == ["method"]
        assert wizard.step is CheckoutStep.PAYMENT

    def test_cash_on_delivery_skips_card_fields(self, wizard):
        at_review(wizard, PaymentMethod.COD)
        assert wizard.step is CheckoutStep.REVIEW
        assert wizard.payment.card.card_number == ""

    def test_card_requires_card_fields(self, wizard):
        wizard.update_shipping(**SHIPPING)
        wizard.advance()
        wizard.select_payment("card")
        wizard.update_card(card_number="4111 1111 1111 1111", card_holder="Jane Doe")

        with pytest.raises(ValidationError) as exc_info:
            wizard.advance()
        assert exc_info.value.context["missing_fields"] == ["expiry_date", "cvv"]

        wizard.update_card(expiry_date="12/30", cvv="123")
        assert wizard.advance() is CheckoutStep.REVIEW
        assert wizard.payment.card.masked_number == "•••• 1111"

    def test_back_twice_restores_shipping_values(self, wizard):
        at_review(wizard)

        assert wizard.back() is CheckoutStep.PAYMENT
        assert wizard.back() is CheckoutStep.SHIPPING
        for name, value in SHIPPING.items():
            assert getattr(wizard.shipping, name) == value
        assert wizard.payment.method is PaymentMethod.COD

    def test_back_on_first_step_stays(self, wizard):
        assert wizard.back() is CheckoutStep.SHIPPING

    def test_cannot_advance_past_review(self, wizard):
        at_review(wizard)
        with pytest.raises(ValidationError):
            wizard.advance()
        assert wizard.step is CheckoutStep.REVIEW


class TestOrderRequest:
    """Test build_order_request"""

    def test_payload_shape(self, wizard):
        at_review(wizard, PaymentMethod.PAYPAL)
        payload = wizard.build_order_request()

        assert payload["paymentMethod"] == "paypal"
        assert payload["shippingAddress"]["postalCode"] == "62701"
        assert "addressLine2" not in payload["shippingAddress"]
        assert payload["items"] == [
            {"productId": "p-1", "quantity": 2, "price": "25.00"},
            {"productId": "p-2", "quantity": 1, "price": "5.50"},
        ]

    def test_card_details_never_sent(self, wizard):
        wizard.update_shipping(**SHIPPING)
        wizard.advance()
        wizard.select_payment(PaymentMethod.CARD)
        wizard.update_card(card_number="4111111111111111", card_holder="J", expiry_date="1/30", cvv="999")
        wizard.advance()

        payload = wizard.build_order_request()
        assert payload["paymentMethod"] == "card"
        assert "4111111111111111" not in repr(payload)
        assert "999" not in repr(payload)


class TestSubmit:
    """Test order submission"""

    async def test_success_moves_to_submitted(self, wizard, session):
        order_service = MagicMock()
        order_service.create_order = AsyncMock(return_value=Order.from_dict(order_payload()))
        at_review(wizard)

        submission = await wizard.submit(order_service, session)

        assert submission.status is SubmissionStatus.SUCCEEDED
        assert submission.order_id == "o-1"
        assert wizard.step is CheckoutStep.SUBMITTED
        assert not wizard.can_place_order
        order_service.create_order.assert_awaited_once_with(session, wizard.build_order_request())

    async def test_network_failure_keeps_draft_on_review(self, wizard, session):
        order_service = MagicMock()
        order_service.create_order = AsyncMock(
            side_effect=ApiError(message="connection reset", error_code="NETWORK_ERROR", kind=ErrorKind.NETWORK)
        )
        at_review(wizard)

        submission = await wizard.submit(order_service, session)

        assert submission.status is SubmissionStatus.FAILED
        assert submission.error.kind is ErrorKind.NETWORK
        assert submission.reason == "connection reset"
        assert wizard.step is CheckoutStep.REVIEW
        assert wizard.shipping.full_name == "Jane Doe"
        assert wizard.payment.method is PaymentMethod.COD
        assert wizard.can_place_order

    async def test_retry_after_failure(self, wizard, session):
        order_service = MagicMock()
        order_service.create_order = AsyncMock(
            side_effect=[
                ApiError(message="boom", kind=ErrorKind.SERVER),
                Order.from_dict(order_payload()),
            ]
        )
        at_review(wizard)

        first = await wizard.submit(order_service, session)
        second = await wizard.submit(order_service, session)

        assert first.status is SubmissionStatus.FAILED
        assert second.status is SubmissionStatus.SUCCEEDED
        assert order_service.create_order.await_count == 2

    async def test_duplicate_submit_while_in_flight_is_ignored(self, wizard, session):
        release = asyncio.Event()

        async def slow_create(*args):
            await release.wait()
            return Order.from_dict(order_payload())

        order_service = MagicMock()
        order_service.create_order = AsyncMock(side_effect=slow_create)
        at_review(wizard)

        first = asyncio.create_task(wizard.submit(order_service, session))
        await asyncio.sleep(0)
        assert wizard.is_submitting
        assert not wizard.can_place_order

        duplicate = await wizard.submit(order_service, session)
        assert duplicate.status is SubmissionStatus.IN_FLIGHT

        release.set()
        result = await first
        assert result.status is SubmissionStatus.SUCCEEDED
        order_service.create_order.assert_awaited_once()

    async def test_submit_outside_review_is_a_local_error(self, wizard, session):
        order_service = MagicMock()
        order_service.create_order = AsyncMock()

        with pytest.raises(ValidationError):
            await wizard.submit(order_service, session)
        order_service.create_order.assert_not_awaited()

    async def test_unexpected_error_resets_submission(self, wizard, session):
        order_service = MagicMock()
        order_service.create_order = AsyncMock(side_effect=RuntimeError("bug"))
        at_review(wizard)

        with pytest.raises(RuntimeError):
            await wizard.submit(order_service, session)
        assert wizard.submission.status is SubmissionStatus.IDLE
        assert wizard.can_place_order
