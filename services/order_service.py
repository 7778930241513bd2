"""Checkout, order history and vendor-driven order status changes.

An order records the vendor's trust score at the moment it was placed in
``vendor_trust_score``. That field is written once at checkout and never
updated: it is the historical record the customer bought under, independent of
whatever the vendor's live score becomes later.
"""
import logging
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from exceptions import (
    InvalidStatusTransitionError,
    OrderNotFoundError,
    PermissionDeniedError,
    ProductNotFoundError,
    ProductUnavailableError,
)
from models import (
    Actor,
    CartItem,
    CheckoutRequest,
    CheckoutResult,
    Order,
    OrderStatus,
    Role,
    VendorCheckout,
    from_doc,
)
from services import account_service, policy, trust_engine

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


async def _group_by_vendor(db: AsyncIOMotorDatabase, items: List[CartItem]) -> "OrderedDict[str, Dict[str, Any]]":
    """Resolve cart items to products and bucket them per vendor, in cart order."""
    groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for item in items:
        product = await db.products.find_one({"_id": item.product_id})
        if product is None:
            raise ProductNotFoundError(f"Product not found: {item.product_id}")
        if not product.get("in_stock", True):
            raise ProductUnavailableError(f"Product is out of stock: {product['name']}")
        group = groups.setdefault(
            product["vendor_id"],
            {"vendor_id": product["vendor_id"], "vendor_name": product["vendor_name"], "items": [], "total": 0.0},
        )
        group["items"].append(
            {
                "product_id": product["_id"],
                "name": product["name"],
                "price": product["price"],
                "quantity": item.quantity,
                "image_url": product.get("image_url"),
            }
        )
        group["total"] += product["price"] * item.quantity
    return groups


async def _vendor_score(db: AsyncIOMotorDatabase, vendor_id: str) -> float:
    vendor = await db.accounts.find_one({"_id": vendor_id}, {"trust_score": 1})
    if vendor is None or vendor.get("trust_score") is None:
        return trust_engine.VENDOR_INITIAL_SCORE
    return float(vendor["trust_score"])


async def checkout_preview(db: AsyncIOMotorDatabase, actor: Actor, items: List[CartItem]) -> List[VendorCheckout]:
    """Return the per-vendor trust signals shown on the checkout page."""
    policy.authorize(actor.role, policy.PLACE_ORDERS)
    preview = []
    for vendor_id, group in (await _group_by_vendor(db, items)).items():
        score = await _vendor_score(db, vendor_id)
        tier = trust_engine.classify(score)
        preview.append(
            VendorCheckout(
                vendor_id=vendor_id,
                vendor_name=group["vendor_name"],
                trust_score=score,
                tier=tier,
                label=trust_engine.tier_label(tier),
                badge=trust_engine.badge_variant(score),
                low_trust_warning=trust_engine.needs_low_trust_warning(score),
                total_amount=round(group["total"], 2),
            )
        )
    return preview


async def place_orders(db: AsyncIOMotorDatabase, actor: Actor, payload: CheckoutRequest) -> CheckoutResult:
    """Create one pending order per vendor in the cart.

    Each order snapshots the vendor's current trust score. Vendors below the
    warning threshold are reported back so the caller can surface it.
    """
    policy.authorize(actor.role, policy.PLACE_ORDERS)
    customer = await account_service.get_account(db, actor.id)
    groups = await _group_by_vendor(db, payload.items)

    orders: List[Order] = []
    low_trust: List[str] = []
    for vendor_id, group in groups.items():
        score = await _vendor_score(db, vendor_id)
        if trust_engine.needs_low_trust_warning(score):
            low_trust.append(vendor_id)
        doc = {
            "_id": uuid.uuid4().hex,
            "customer_id": customer.id,
            "customer_name": customer.name,
            "customer_email": customer.email,
            "vendor_id": vendor_id,
            "vendor_name": group["vendor_name"],
            "items": group["items"],
            "total_amount": round(group["total"], 2),
            "shipping_address": payload.shipping_address,
            "payment_method": payload.payment_method,
            "status": OrderStatus.PENDING.value,
            "created_at": datetime.now(timezone.utc),
            "reviewed": False,
            "vendor_trust_score": score,
        }
        await db.orders.insert_one(doc)
        orders.append(from_doc(Order, doc))
        logger.info("Order %s placed by %s with vendor %s (trust %.1f)", doc["_id"], customer.id, vendor_id, score)

    return CheckoutResult(orders=orders, low_trust_vendors=low_trust)


async def list_customer_orders(db: AsyncIOMotorDatabase, actor: Actor) -> List[Order]:
    policy.authorize(actor.role, policy.VIEW_OWN_ORDERS)
    cursor = db.orders.find({"customer_id": actor.id}).sort("created_at", -1)
    return [from_doc(Order, doc) for doc in await cursor.to_list(length=None)]


async def list_vendor_orders(db: AsyncIOMotorDatabase, actor: Actor) -> List[Order]:
    policy.authorize(actor.role, policy.VIEW_OWN_ORDERS)
    cursor = db.orders.find({"vendor_id": actor.id}).sort("created_at", -1)
    return [from_doc(Order, doc) for doc in await cursor.to_list(length=None)]


def _can_view(actor: Actor, order: Mapping[str, Any]) -> bool:
    return actor.role is Role.ADMIN or actor.id in (order["customer_id"], order["vendor_id"])


async def get_order(db: AsyncIOMotorDatabase, actor: Actor, order_id: str) -> Order:
    """Return an order visible to its customer, its vendor or an admin."""
    doc = await db.orders.find_one({"_id": order_id})
    # Hide other people's orders behind the same error as missing ones
    if doc is None or not _can_view(actor, doc):
        raise OrderNotFoundError(f"Order not found: {order_id}")
    return from_doc(Order, doc)


async def update_order_status(
    db: AsyncIOMotorDatabase, actor: Actor, order_id: str, status: OrderStatus
) -> Order:
    """Move an order along its lifecycle.

    Only the order's vendor or an admin may do this, and only along
    ``ALLOWED_TRANSITIONS``. The write is conditional on the status that was
    read so two concurrent updates cannot both apply.
    """
    doc = await db.orders.find_one({"_id": order_id})
    if doc is None:
        raise OrderNotFoundError(f"Order not found: {order_id}")
    if not (policy.is_allowed(actor.role, policy.MANAGE_ORDERS) or doc["vendor_id"] == actor.id):
        raise PermissionDeniedError("Only the vendor of this order can update it")

    current = OrderStatus(doc["status"])
    if status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(f"Cannot move order from {current.value} to {status.value}")

    updated = await db.orders.find_one_and_update(
        {"_id": order_id, "status": current.value},
        {"$set": {"status": status.value, "updated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise InvalidStatusTransitionError(f"Order {order_id} changed status concurrently")
    logger.info("Order %s: %s -> %s by %s", order_id, current.value, status.value, actor.id)
    return from_doc(Order, updated)
