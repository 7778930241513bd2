"""Customer reviews of delivered orders.

Submitting a review is three writes that must land together: the order is
claimed (``reviewed`` flips to true), the review is recorded, and the vendor's
trust score absorbs the rating. With ``MONGODB_TRANSACTIONS`` enabled they run
in one transaction; otherwise any writes already applied are undone when a
later one fails. Copying the new score onto products and the audit log entries
happen only after all three have landed.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

import config
from database import start_session
from exceptions import OrderNotFoundError, PermissionDeniedError, ReviewNotAllowedError
from models import Actor, OrderStatus, Review, ReviewCreate, from_doc
from services import account_service, policy, security_log, trust_engine

logger = logging.getLogger(__name__)

REVIEW_REASON = "Customer review"


def _check_reviewable(actor: Actor, order: Mapping[str, Any]) -> None:
    if order["customer_id"] != actor.id:
        raise PermissionDeniedError("Only the customer who placed the order can review it")
    if order["status"] != OrderStatus.DELIVERED.value:
        raise ReviewNotAllowedError("Only delivered orders can be reviewed")
    if order.get("reviewed"):
        raise ReviewNotAllowedError("This order has already been reviewed")


async def _apply(
    db: AsyncIOMotorDatabase,
    actor: Actor,
    order: Mapping[str, Any],
    payload: ReviewCreate,
    session: Any = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Claim the order, insert the review and write the vendor score.

    Returns the review document and the updated vendor account.
    """
    order_id = order["_id"]
    claimed = inserted = False
    try:
        result = await db.orders.update_one(
            {"_id": order_id, "status": OrderStatus.DELIVERED.value, "reviewed": False},
            {"$set": {"reviewed": True}},
            session=session,
        )
        if result.modified_count != 1:
            raise ReviewNotAllowedError("This order has already been reviewed")
        claimed = True

        doc = {
            "_id": order_id,
            "order_id": order_id,
            "vendor_id": order["vendor_id"],
            "customer_id": actor.id,
            "rating": payload.rating,
            "text": payload.text,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            await db.reviews.insert_one(doc, session=session)
        except DuplicateKeyError:
            raise ReviewNotAllowedError("This order has already been reviewed")
        inserted = True

        def compute(vendor: Mapping[str, Any]) -> Dict[str, Any]:
            update = trust_engine.record_review(
                vendor.get("trust_score", trust_engine.VENDOR_INITIAL_SCORE),
                vendor.get("review_count", 0),
                payload.rating,
            )
            return {"trust_score": update.new_score, "review_count": update.new_review_count}

        # Last write of the unit: nothing after it can fail and need undoing
        vendor = await account_service.write_trust_score(
            db, order["vendor_id"], compute, REVIEW_REASON, session=session
        )
        return doc, vendor
    except Exception:
        # Inside a transaction the abort discards everything
        if session is None:
            if inserted:
                await db.reviews.delete_one({"_id": order_id})
            if claimed:
                await db.orders.update_one({"_id": order_id}, {"$set": {"reviewed": False}})
            if claimed or inserted:
                logger.warning("Rolled back partial review of order %s", order_id)
        raise


async def _publish(
    db: AsyncIOMotorDatabase, actor: Actor, order: Mapping[str, Any], vendor: Mapping[str, Any]
) -> None:
    # The review is committed; a failure here must not undo it
    try:
        await account_service.publish_trust_change(db, vendor, REVIEW_REASON)
    except Exception:  # noqa: BLE001 - review already committed
        logger.exception("Could not publish trust score of %s after review of order %s", vendor["_id"], order["_id"])
    try:
        await security_log.record_event(
            db, actor.id, security_log.REVIEW_SUBMITTED, {"order_id": order["_id"], "vendor_id": order["vendor_id"]}
        )
    except Exception:  # noqa: BLE001 - review already committed
        logger.exception("Could not log review of order %s", order["_id"])


async def submit_review(
    db: AsyncIOMotorDatabase, actor: Actor, order_id: str, payload: ReviewCreate
) -> Review:
    """Record a review for a delivered order and fold it into the vendor score.

    Raises:
        InvalidRatingError: rating outside 1..5.
        OrderNotFoundError: no such order.
        PermissionDeniedError: the actor is not the order's customer.
        ReviewNotAllowedError: the order is not delivered or already reviewed.
        PersistenceConflictError: the vendor score kept changing underneath.
    """
    policy.authorize(actor.role, policy.REVIEW_ORDERS)
    trust_engine.validate_rating(payload.rating)

    order = await db.orders.find_one({"_id": order_id})
    if order is None:
        raise OrderNotFoundError(f"Order not found: {order_id}")
    _check_reviewable(actor, order)

    if config.MONGODB_TRANSACTIONS:
        async with await start_session(db) as session:
            async with session.start_transaction():
                doc, vendor = await _apply(db, actor, order, payload, session=session)
    else:
        doc, vendor = await _apply(db, actor, order, payload)

    await _publish(db, actor, order, vendor)
    logger.info("Order %s reviewed by %s (rating %d)", order_id, actor.id, payload.rating)
    return from_doc(Review, doc)


async def list_vendor_reviews(db: AsyncIOMotorDatabase, vendor_id: str, limit: int = 50) -> List[Review]:
    cursor = db.reviews.find({"vendor_id": vendor_id}).sort("created_at", -1).limit(limit)
    return [from_doc(Review, doc) for doc in await cursor.to_list(length=limit)]
