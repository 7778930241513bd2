"""Product catalog: vendor product management and filtered listing.

Products carry a copy of their vendor's live trust score so listings can be
filtered and sorted on it in the store. The copy is refreshed whenever the
vendor's score changes (see ``account_service.publish_trust_change``).
"""
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

import config
from models import Actor, Product, ProductCreate, ProductQuery, from_doc
from services import account_service, policy, trust_engine

logger = logging.getLogger(__name__)

SORT_FIELDS: Dict[str, Tuple[str, int]] = {
    "newest": ("created_at", -1),
    "oldest": ("created_at", 1),
    "price-low": ("price", 1),
    "price-high": ("price", -1),
    "name-asc": ("name", 1),
    "name-desc": ("name", -1),
    "trust-high": ("trust_score", -1),
}


def _with_trust_signals(doc: Dict[str, Any]) -> Product:
    product = from_doc(Product, doc)
    if product.trust_score is not None:
        product.trust_tier = trust_engine.classify(product.trust_score)
        product.trust_badge = trust_engine.badge_variant(product.trust_score)
    return product


async def create_product(db: AsyncIOMotorDatabase, actor: Actor, payload: ProductCreate) -> Product:
    """List a new product under the acting vendor."""
    policy.authorize(actor.role, policy.MANAGE_OWN_PRODUCTS)
    vendor = await account_service.get_account(db, actor.id)
    doc = {
        "_id": uuid.uuid4().hex,
        **payload.model_dump(),
        "vendor_id": vendor.id,
        "vendor_name": vendor.name,
        "created_at": datetime.now(timezone.utc),
        "on_sale": payload.original_price is not None and payload.original_price > payload.price,
        "trust_score": vendor.trust_score,
    }
    await db.products.insert_one(doc)
    logger.info("Vendor %s listed product %s", vendor.id, doc["_id"])
    return _with_trust_signals(doc)


def build_query(params: ProductQuery) -> Dict[str, Any]:
    """Translate listing parameters into a MongoDB filter."""
    query: Dict[str, Any] = {}
    if params.q:
        pattern = re.escape(params.q)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if params.category and params.category != "all":
        query["category"] = params.category
    if params.in_stock:
        query["in_stock"] = True
    if params.on_sale:
        query["on_sale"] = True
    if params.min_price is not None:
        query["price"] = {"$gte": params.min_price}
    if params.max_price is not None:
        query["price"] = {**query.get("price", {}), "$lte": params.max_price}
    # 0 means "no trust filter"
    if params.min_trust > 0:
        query["trust_score"] = {"$gte": params.min_trust}
    return query


async def list_products(db: AsyncIOMotorDatabase, params: ProductQuery) -> List[Product]:
    """Search the catalog with filters and one of the supported sort keys."""
    field, direction = SORT_FIELDS.get(params.sort, SORT_FIELDS["newest"])
    limit = params.limit or config.PRODUCTS_PER_PAGE
    cursor = db.products.find(build_query(params)).sort(field, direction).limit(limit)
    return [_with_trust_signals(doc) for doc in await cursor.to_list(length=limit)]


async def list_vendor_products(db: AsyncIOMotorDatabase, actor: Actor) -> List[Product]:
    policy.authorize(actor.role, policy.MANAGE_OWN_PRODUCTS)
    cursor = db.products.find({"vendor_id": actor.id}).sort("created_at", -1)
    return [_with_trust_signals(doc) for doc in await cursor.to_list(length=None)]
