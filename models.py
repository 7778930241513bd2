"""Pydantic models used throughout the FreshMart application.

Models define validation and structure for accounts, products, orders,
reviews and the trust summaries rendered by the API. Documents are stored in
MongoDB with ``_id`` as the identifier; ``from_doc`` exposes it as ``id``.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, field_validator

ModelT = TypeVar("ModelT", bound=BaseModel)


def from_doc(model: Type[ModelT], doc: Mapping[str, Any]) -> ModelT:
    """Validate a MongoDB document into ``model``, renaming ``_id`` to ``id``."""
    data = dict(doc)
    if "_id" in data:
        data["id"] = data.pop("_id")
    return model.model_validate(data)


class Role(str, Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    LOCKED = "locked"
    SUSPENDED = "suspended"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class TrustTier(str, Enum):
    HIGHLY_TRUSTED = "HighlyTrusted"
    TRUSTED = "Trusted"
    MODERATE_TRUST = "ModerateTrust"
    LOW_TRUST = "LowTrust"


class TrustHistoryEntry(BaseModel):
    """One append-only record of a trust score change."""

    score: float
    reason: str
    timestamp: datetime


class Actor(BaseModel):
    """The authenticated caller, passed explicitly into every operation."""

    id: str
    role: Role
    name: str = ""
    email: str = ""


class AccountCreate(BaseModel):
    """Registration payload; ``id`` is issued by the identity provider."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=2)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+$")
    role: Role


class Account(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    trust_score: float
    review_count: int = 0
    trust_history: List[TrustHistoryEntry] = []
    account_status: AccountStatus = AccountStatus.ACTIVE
    permissions: List[str] = []
    created_at: Optional[datetime] = None


class TrustSummary(BaseModel):
    """Trust score with the signals derived from it for display."""

    account_id: str
    name: str = ""
    trust_score: float
    review_count: int
    tier: TrustTier
    label: str
    badge: str
    description: str
    low_trust_warning: bool


class TrustAdjustment(BaseModel):
    """Admin dashboard nudge: one step up or down."""

    delta: int


class AccountStatusUpdate(BaseModel):
    status: AccountStatus


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    price: float = Field(gt=0)
    original_price: Optional[float] = Field(default=None, gt=0)
    category: str = Field(min_length=1)
    image_url: Optional[str] = None
    in_stock: bool = True


class Product(BaseModel):
    """Represents a marketplace product listed by a vendor."""

    id: str
    name: str
    description: str = ""
    price: float
    original_price: Optional[float] = None
    category: str
    image_url: Optional[str] = None
    vendor_id: str
    vendor_name: str
    in_stock: bool = True
    on_sale: bool = False
    created_at: Optional[datetime] = None
    trust_score: Optional[float] = None
    trust_tier: Optional[TrustTier] = None
    trust_badge: Optional[str] = None


class ProductQuery(BaseModel):
    """Parameters for listing products in the catalog."""

    q: Optional[str] = None
    category: str = "all"
    in_stock: bool = False
    on_sale: bool = False
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_trust: float = Field(default=0, ge=0, le=5)
    sort: str = "newest"
    limit: Optional[int] = Field(default=None, ge=1, le=100)


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class CheckoutRequest(BaseModel):
    items: List[CartItem] = Field(min_length=1)
    shipping_address: str = Field(min_length=1)
    payment_method: str = "card"


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int
    image_url: Optional[str] = None


class Order(BaseModel):
    id: str
    customer_id: str
    customer_name: str
    customer_email: str
    vendor_id: str
    vendor_name: str
    items: List[OrderItem]
    total_amount: float
    status: OrderStatus
    created_at: Optional[datetime] = None
    shipping_address: Optional[str] = None
    payment_method: Optional[str] = None
    reviewed: bool = False
    vendor_trust_score: float


class VendorCheckout(BaseModel):
    """Per-vendor trust signals shown before an order is placed."""

    vendor_id: str
    vendor_name: str
    trust_score: float
    tier: TrustTier
    label: str
    badge: str
    low_trust_warning: bool
    total_amount: float


class CheckoutResult(BaseModel):
    orders: List[Order]
    low_trust_vendors: List[str] = []


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class ReviewCreate(BaseModel):
    rating: int
    text: str

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("review text must not be empty")
        return value


class Review(BaseModel):
    id: str
    order_id: str
    vendor_id: str
    customer_id: str
    rating: int
    text: str
    created_at: Optional[datetime] = None


class SecurityEvent(BaseModel):
    user_id: str
    event: str
    details: Dict[str, Any] = {}
    timestamp: datetime
