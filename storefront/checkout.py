"""
Linear checkout flow: cart -> shipping -> payment -> confirmation.

Shipping tiers (flat, per order):
  standard    $5.99
  express     $12.99
  overnight   $24.99

Tax is a flat rate on the subtotal only (shipping is not taxed), rounded to
cents. Both come from StorefrontConfig.

The order number is generated client-side from the current time plus a
random suffix; it is collision-resistant, not globally unique.
"""
from __future__ import annotations

import random
import re
import string
import time
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from storefront.core.config import StorefrontConfig, get_config
from storefront.errors import CheckoutValidationError, GatewayError, InvalidTransitionError
from storefront.models import AuthUser, CustomerInfo, NewOrder, Order, OrderItem, OrderStatus
from storefront.notifications import Notifier
from storefront.store.cart_store import CartStore
from storefront.utils.logger import get_logger

logger = get_logger("checkout")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REQUIRED_FIELDS = (
    "first_name", "last_name", "email", "phone",
    "address", "city", "state", "zip_code", "country",
)

PAYMENT_METHODS = ("credit-card", "paypal", "bank-transfer")

_ORDER_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


class CheckoutStep(str, Enum):
    CART = "cart"
    SHIPPING = "shipping"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


STEPS = (CheckoutStep.CART, CheckoutStep.SHIPPING, CheckoutStep.PAYMENT, CheckoutStep.CONFIRMATION)


@dataclass
class CheckoutForm:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""
    shipping_method: str = "standard"
    payment_method: str = "credit-card"
    card_name: Optional[str] = None
    card_number: Optional[str] = None
    card_expiry: Optional[str] = None
    card_cvc: Optional[str] = None
    order_notes: str = ""


@dataclass
class CheckoutTotals:
    subtotal: float
    shipping: float
    tax: float
    total: float


# ─── Pure helpers ────────────────────────────────────────────────────────────

def _label(field_name: str) -> str:
    return field_name.replace("_", " ")


def validate_shipping(form: CheckoutForm) -> Optional[CheckoutValidationError]:
    """First missing required field, else a malformed email, else None."""
    for name in REQUIRED_FIELDS:
        if not str(getattr(form, name) or "").strip():
            return CheckoutValidationError(name, f"Please fill in {_label(name)}")
    if not EMAIL_RE.match(form.email.strip()):
        return CheckoutValidationError("email", "Please enter a valid email")
    return None


def field_errors(form: CheckoutForm) -> Dict[str, str]:
    """Inline error per invalid field."""
    errors = {}
    for name in REQUIRED_FIELDS:
        if not str(getattr(form, name) or "").strip():
            errors[name] = f"Please fill in {_label(name)}"
    if "email" not in errors and not EMAIL_RE.match(form.email.strip()):
        errors["email"] = "Please enter a valid email"
    return errors


def calculate_totals(
    subtotal: float,
    shipping_method: str,
    shipping_costs: Dict[str, float],
    tax_rate: float,
) -> CheckoutTotals:
    method = shipping_method.lower()
    if method not in shipping_costs:
        raise ValueError(f"Unknown shipping method: {shipping_method!r}")
    shipping = shipping_costs[method]
    tax = round(subtotal * tax_rate, 2)
    return CheckoutTotals(
        subtotal=round(subtotal, 2),
        shipping=shipping,
        tax=tax,
        total=round(subtotal + shipping + tax, 2),
    )


def generate_order_number(now_ms: Optional[int] = None, rng: Optional[random.Random] = None) -> str:
    """ORD-<epoch ms>-<9 uppercase base36 chars>."""
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    rng = rng or random
    suffix = "".join(rng.choices(_ORDER_SUFFIX_ALPHABET, k=9))
    return f"ORD-{now_ms}-{suffix}"


# ─── State machine ───────────────────────────────────────────────────────────

class CheckoutFlow:
    """
    Drives which checkout form is shown.

    In strict mode the shipping step is validated before payment and again
    before the order is placed; errors are reported one at a time as toasts
    (and kept on self.error). The flow never leaves CONFIRMATION.
    """

    def __init__(
        self,
        cart: CartStore,
        gateway,
        notifier: Notifier,
        config: Optional[StorefrontConfig] = None,
    ) -> None:
        self.cart = cart
        self._gateway = gateway
        self._notifier = notifier
        self.config = config or get_config()
        self.strict = self.config.strict_checkout
        self.step = CheckoutStep.CART
        self.form = CheckoutForm()
        self.error: Optional[Exception] = None
        self.order: Optional[Order] = None
        self.is_processing = False

    # ------------------------------------------------------------------
    # Form
    # ------------------------------------------------------------------

    def prefill(self, user: AuthUser) -> None:
        """Seed contact fields from the signed-in user's profile."""
        name_parts = user.full_name.split(" ")
        self.form.email = user.email or self.form.email
        self.form.first_name = name_parts[0] or self.form.first_name
        self.form.last_name = " ".join(name_parts[1:]) or self.form.last_name
        self.form.phone = user.phone or self.form.phone

    def update_form(self, **values) -> None:
        known = {f.name for f in fields(CheckoutForm)}
        for name, value in values.items():
            if name not in known:
                raise KeyError(f"Unknown checkout field: {name!r}")
            if name == "shipping_method" and value not in self.config.shipping_costs:
                raise ValueError(f"Unknown shipping method: {value!r}")
            if name == "payment_method" and value not in PAYMENT_METHODS:
                raise ValueError(f"Unknown payment method: {value!r}")
            setattr(self.form, name, value)

    def field_errors(self) -> Dict[str, str]:
        return field_errors(self.form)

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    @property
    def totals(self) -> CheckoutTotals:
        return calculate_totals(
            self.cart.get_total(),
            self.form.shipping_method,
            self.config.shipping_costs,
            self.config.tax_rate,
        )

    @property
    def subtotal(self) -> float:
        return self.totals.subtotal

    @property
    def shipping_cost(self) -> float:
        return self.totals.shipping

    @property
    def tax(self) -> float:
        return self.totals.tax

    @property
    def total(self) -> float:
        return self.totals.total

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _require_step(self, expected: CheckoutStep, action: str) -> None:
        if self.step != expected:
            raise InvalidTransitionError(f"Cannot {action} from step {self.step.value!r}")

    def _fail(self, error: CheckoutValidationError) -> bool:
        self.error = error
        self._notifier.error(error.message)
        return False

    def proceed_to_shipping(self) -> bool:
        self._require_step(CheckoutStep.CART, "proceed to shipping")
        if not self.cart.items:
            self._notifier.error("Your cart is empty")
            return False
        self.error = None
        self.step = CheckoutStep.SHIPPING
        return True

    start = proceed_to_shipping

    def proceed_to_payment(self) -> bool:
        self._require_step(CheckoutStep.SHIPPING, "proceed to payment")
        if self.strict:
            error = validate_shipping(self.form)
            if error is not None:
                return self._fail(error)
        self.error = None
        self.step = CheckoutStep.PAYMENT
        return True

    def back(self) -> bool:
        if self.step in (CheckoutStep.CART, CheckoutStep.CONFIRMATION):
            return False
        self.step = STEPS[STEPS.index(self.step) - 1]
        return True

    def _customer_info(self) -> Optional[CustomerInfo]:
        if validate_shipping(self.form) is not None:
            return None
        return CustomerInfo(
            first_name=self.form.first_name,
            last_name=self.form.last_name,
            email=self.form.email,
            phone=self.form.phone,
            address=self.form.address,
            city=self.form.city,
            state=self.form.state,
            zip_code=self.form.zip_code,
            country=self.form.country,
        )

    def build_order(self) -> NewOrder:
        """Snapshot the cart into an order payload; item data is copied, not referenced."""
        items = [
            OrderItem(
                product_id=item.product_id,
                product_name=item.product.name,
                quantity=item.quantity,
                price=item.product.price,
                image=item.product.primary_image,
            )
            for item in self.cart.items
        ]
        return NewOrder(
            order_number=generate_order_number(),
            items=items,
            total=self.total,
            status=OrderStatus.PENDING,
            created_at=datetime.now(timezone.utc).isoformat(),
            customer_info=self._customer_info(),
            shipping_method=self.form.shipping_method,
            payment_method=self.form.payment_method,
        )

    async def place_order(self) -> Optional[Order]:
        """
        Create the order, clear the cart, advance to confirmation.

        On failure the flow stays on PAYMENT with the error recorded and
        None is returned. A call made while an earlier one is still in flight
        returns None without contacting the backend, so an order is created
        at most once.
        """
        if self.is_processing:
            logger.info("checkout: place_order ignored, order already in flight")
            return None
        self._require_step(CheckoutStep.PAYMENT, "place an order")
        if not self.cart.items:
            self._notifier.error("Your cart is empty")
            return None
        if self.strict:
            error = validate_shipping(self.form)
            if error is not None:
                self._fail(error)
                return None

        payload = self.build_order()
        logger.info("checkout: place_order order_number=%s total=%s items=%s", payload.order_number, payload.total, len(payload.items))
        self.is_processing = True
        try:
            try:
                order = await self._gateway.create_order(payload)
            except GatewayError as e:
                logger.error("checkout: place_order order_number=%s result=error error=%s", payload.order_number, e)
                self.error = e
                return None

            if not await self.cart.clear_cart():
                # The order exists; the cart store has already rolled back and notified
                logger.warning("checkout: order %s placed but cart could not be cleared", order.order_number)

            self.order = order
            self.error = None
            self.step = CheckoutStep.CONFIRMATION
        finally:
            self.is_processing = False
        self._notifier.success("Order placed successfully!")
        logger.info("checkout: place_order order_number=%s result=success order_id=%s", order.order_number, order.id)
        return order
