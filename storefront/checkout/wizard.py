"""
Checkout wizard

Holds the checkout draft for one user: shipping address, payment choice and
the cart snapshot captured when checkout started. Moves forward through
SHIPPING -> PAYMENT -> REVIEW only when the current step is complete, and
tracks the order submission started from the review step.
"""

import logging
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from storefront.checkout.pricing import PricingSummary, compute_summary
from storefront.models import CartSnapshot, Order, money_to_wire
from storefront.utils.error_handler import ApiError, ValidationError

logger = logging.getLogger(__name__)


class CheckoutStep(IntEnum):
    SHIPPING = 0
    PAYMENT = 1
    REVIEW = 2
    SUBMITTED = 3


class SubmissionStatus(Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass
class Submission:
    """Outcome of the latest "Place Order" attempt"""

    status: SubmissionStatus = SubmissionStatus.IDLE
    error: Optional[ApiError] = None
    order: Optional[Order] = None

    @property
    def reason(self) -> Optional[str]:
        return self.error.message if self.error else None

    @property
    def order_id(self) -> Optional[str]:
        return self.order.id if self.order else None


@dataclass
class ShippingAddress:
    full_name: str = ""
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    phone: str = ""

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_SHIPPING_FIELDS if not getattr(self, name).strip()]

    def to_payload(self) -> Dict[str, str]:
        payload = {
            "fullName": self.full_name.strip(),
            "addressLine1": self.address_line1.strip(),
            "city": self.city.strip(),
            "state": self.state.strip(),
            "postalCode": self.postal_code.strip(),
            "country": self.country.strip(),
            "phone": self.phone.strip(),
        }
        if self.address_line2.strip():
            payload["addressLine2"] = self.address_line2.strip()
        return payload


REQUIRED_SHIPPING_FIELDS = (
    "full_name",
    "address_line1",
    "city",
    "state",
    "postal_code",
    "country",
    "phone",
)

# prompt order used by the chat flow
SHIPPING_FIELD_LABELS: Dict[str, str] = {
    "full_name": "Full name",
    "address_line1": "Address line 1",
    "address_line2": "Address line 2 (optional)",
    "city": "City",
    "state": "State / Province",
    "postal_code": "Postal code",
    "country": "Country",
    "phone": "Phone number",
}


class PaymentMethod(str, Enum):
    CARD = "card"
    PAYPAL = "paypal"
    COD = "cod"

    @property
    def label(self) -> str:
        return {
            PaymentMethod.CARD: "Credit / Debit Card",
            PaymentMethod.PAYPAL: "PayPal",
            PaymentMethod.COD: "Cash on Delivery",
        }[self]


@dataclass
class CardDetails:
    card_number: str = ""
    card_holder: str = ""
    expiry_date: str = ""
    cvv: str = ""

    def missing_fields(self) -> List[str]:
        return [f.name for f in fields(self) if not getattr(self, f.name).strip()]

    @property
    def masked_number(self) -> str:
        digits = "".join(ch for ch in self.card_number if ch.isdigit())
        return f"•••• {digits[-4:]}" if digits else ""


CARD_FIELD_LABELS: Dict[str, str] = {
    "card_number": "Card number",
    "card_holder": "Cardholder name",
    "expiry_date": "Expiry date (MM/YY)",
    "cvv": "CVV",
}


@dataclass
class PaymentSelection:
    method: Optional[PaymentMethod] = None
    card: CardDetails = field(default_factory=CardDetails)

    def missing_fields(self) -> List[str]:
        if self.method is None:
            return ["method"]
        if self.method is PaymentMethod.CARD:
            return self.card.missing_fields()
        return []


class CheckoutGate(Enum):
    READY = "ready"
    LOGIN_REQUIRED = "login_required"
    EMPTY_CART = "empty_cart"


def check_preconditions(session, cart: Optional[CartSnapshot]) -> CheckoutGate:
    """Decide whether the wizard may be shown at all"""
    if session is None or not session.is_authenticated:
        return CheckoutGate.LOGIN_REQUIRED
    if cart is None or cart.is_empty:
        return CheckoutGate.EMPTY_CART
    return CheckoutGate.READY


class CheckoutWizard:
    """Forward-gated checkout draft for a single user"""

    def __init__(self, cart: CartSnapshot, default_country: str = ""):
        self.cart = cart
        self.step = CheckoutStep.SHIPPING
        self.shipping = ShippingAddress(country=default_country)
        self.payment = PaymentSelection()
        self.submission = Submission()

    # ----------------------------- draft edits -----------------------------

    def update_shipping(self, **values: str) -> None:
        for name, value in values.items():
            if name not in SHIPPING_FIELD_LABELS:
                raise ValueError(f"Unknown shipping field: {name}")
            setattr(self.shipping, name, value or "")

    def select_payment(self, method: PaymentMethod | str) -> None:
        self.payment.method = PaymentMethod(method)

    def update_card(self, **values: str) -> None:
        for name, value in values.items():
            if name not in CARD_FIELD_LABELS:
                raise ValueError(f"Unknown card field: {name}")
            setattr(self.payment.card, name, value or "")

    # ----------------------------- navigation ------------------------------

    def missing_fields(self) -> List[str]:
        if self.step is CheckoutStep.SHIPPING:
            return self.shipping.missing_fields()
        if self.step is CheckoutStep.PAYMENT:
            return self.payment.missing_fields()
        return []

    def advance(self) -> CheckoutStep:
        """Move to the next step, or raise ValidationError and stay put"""
        if self.step >= CheckoutStep.REVIEW:
            raise ValidationError(
                message="Use Place Order to finish checkout",
                context={"step": self.step.name},
            )
        missing = self.missing_fields()
        if missing:
            raise ValidationError(
                message="Please fill in: " + ", ".join(_field_label(name) for name in missing),
                context={"step": self.step.name, "missing_fields": missing},
            )
        self.step = CheckoutStep(self.step + 1)
        return self.step

    def back(self) -> CheckoutStep:
        if self.step in (CheckoutStep.PAYMENT, CheckoutStep.REVIEW):
            self.step = CheckoutStep(self.step - 1)
        return self.step

    # ------------------------------- review --------------------------------

    @property
    def summary(self) -> PricingSummary:
        return compute_summary(self.cart.lines)

    @property
    def is_submitting(self) -> bool:
        return self.submission.status is SubmissionStatus.IN_FLIGHT

    @property
    def can_place_order(self) -> bool:
        return (
            self.step is CheckoutStep.REVIEW
            and not self.is_submitting
            and not self.cart.is_empty
        )

    def build_order_request(self) -> Dict[str, Any]:
        """Order payload; only the payment method discriminant leaves the wizard"""
        return {
            "shippingAddress": self.shipping.to_payload(),
            "paymentMethod": self.payment.method.value,
            "items": [
                {
                    "productId": line.product_id,
                    "quantity": line.quantity,
                    "price": money_to_wire(line.unit_price),
                }
                for line in self.cart.lines
            ],
        }

    async def submit(self, order_service, session) -> Submission:
        """
        Place the order from the review step.

        A call made while a previous submit is still awaiting the API is
        ignored and returns the in-flight submission. API failures leave the
        wizard on REVIEW with the draft untouched so the user can retry.
        """
        if self.is_submitting:
            logger.info("Ignoring duplicate order submit while one is in flight")
            return self.submission
        if self.step is not CheckoutStep.REVIEW:
            raise ValidationError(message="Order can only be placed from the review step")
        if self.cart.is_empty:
            raise ValidationError(message="Your cart is empty")

        payload = self.build_order_request()
        self.submission = Submission(status=SubmissionStatus.IN_FLIGHT)
        try:
            order = await order_service.create_order(session, payload)
        except ApiError as exc:
            logger.warning("Order submission failed: %s (%s)", exc.message, exc.kind.value)
            self.submission = Submission(status=SubmissionStatus.FAILED, error=exc)
            return self.submission
        except BaseException:
            self.submission = Submission()
            raise

        self.submission = Submission(status=SubmissionStatus.SUCCEEDED, order=order)
        self.step = CheckoutStep.SUBMITTED
        logger.info("Order %s placed", order.order_number)
        return self.submission


def _field_label(name: str) -> str:
    if name == "method":
        return "Payment method"
    return SHIPPING_FIELD_LABELS.get(name) or CARD_FIELD_LABELS.get(name, name)
