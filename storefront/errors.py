"""
Exception hierarchy for the storefront core.

GatewayError and its subclasses are raised by the gateway after the failure
has already been logged and notified; stores catch them to roll back.
"""
from typing import Optional


class StorefrontError(Exception):
    """Base class for all storefront errors."""


class GatewayError(StorefrontError):
    """A backend call failed (HTTP error, transport error or timeout)."""

    def __init__(self, message: str, resource: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.resource = resource
        self.status_code = status_code


class LoginRequiredError(GatewayError):
    """A user-scoped write was attempted without a signed-in user."""

    def __init__(self, resource: Optional[str] = None, message: str = "Please login to continue"):
        super().__init__(message, resource=resource, status_code=401)


class OutOfStockError(GatewayError):
    """The product has no inventory left to add."""

    def __init__(self, product_id: str):
        super().__init__("This product is out of stock", resource="cart", status_code=409)
        self.product_id = product_id


class AuthError(StorefrontError):
    """Sign-in or sign-up was rejected by the auth service."""


class CheckoutValidationError(StorefrontError):
    """A checkout form field is missing or malformed."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class InvalidTransitionError(StorefrontError):
    """A checkout action was called from a step that does not allow it."""
