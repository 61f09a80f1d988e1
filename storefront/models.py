"""
Pydantic v2 domain models.

Python attributes are snake_case; every model also carries a camelCase alias
so model_dump(by_alias=True) gives the record shape the UI consumes.
Persisted (snake_case) rows are translated in storefront.mappers and never
leave the gateway.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PLACEHOLDER_IMAGE = "/placeholder.png"

Condition = Literal["New", "Like New", "Open Box"]
CONDITIONS = ("New", "Like New", "Open Box")


class DomainModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


#
# Catalog
#

class Product(DomainModel):
    """
    Catalog entry. Read-only from this application's point of view.

    compare_at_price is expected to exceed price when set; when it does not,
    the product simply shows no discount.
    """
    id: str
    slug: str
    name: str
    description: str = ""
    images: List[str] = Field(default_factory=list)
    price: float
    compare_at_price: Optional[float] = None
    category: str = ""
    brand: Optional[str] = None
    color: Optional[str] = None
    condition: Optional[Condition] = None
    memory: Optional[str] = None
    screen_size: Optional[str] = None
    inventory: int = Field(0, ge=0)
    rating: float = 0
    is_active: bool = True
    created_at: Optional[str] = None

    @property
    def has_discount(self) -> bool:
        return self.compare_at_price is not None and self.compare_at_price > self.price

    @property
    def discount_amount(self) -> float:
        if not self.has_discount:
            return 0.0
        return round(self.compare_at_price - self.price, 2)

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else PLACEHOLDER_IMAGE

    @property
    def in_stock(self) -> bool:
        return self.inventory > 0


#
# Cart / wishlist rows
#

class CartItem(DomainModel):
    """One row per (user, product). product is the snapshot taken at add time."""
    id: str
    product_id: str
    quantity: int = Field(..., ge=1)
    product: Product

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


class WishlistItem(DomainModel):
    id: str
    product_id: str
    product: Product


#
# Orders
#

class OrderStatus(str, Enum):
    """Order status. Changes happen out-of-band; there is no transition function here."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderItem(DomainModel):
    """Copied from the cart at checkout so later catalog edits don't rewrite history."""
    product_id: str
    product_name: str
    quantity: int = Field(..., ge=1)
    price: float
    image: str = PLACEHOLDER_IMAGE


class CustomerInfo(DomainModel):
    first_name: str
    last_name: str
    email: str
    phone: str
    address: str
    city: str
    state: str = ""
    zip_code: str
    country: str


class NewOrder(DomainModel):
    """Create-order payload: an Order without its id."""
    order_number: str
    items: List[OrderItem]
    total: float
    status: OrderStatus = OrderStatus.PENDING
    created_at: str
    customer_info: Optional[CustomerInfo] = None
    shipping_method: Optional[str] = None
    payment_method: Optional[str] = None


class Order(NewOrder):
    id: str


#
# Auth
#

class AuthUser(DomainModel):
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return self.user_metadata.get("full_name") or ""

    @property
    def phone(self) -> str:
        return self.user_metadata.get("phone") or ""


class AuthSession(DomainModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    user: AuthUser
