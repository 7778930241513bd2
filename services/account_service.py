"""Account registration, lookup and trust-score persistence.

Trust scores are written with optimistic concurrency: every account carries a
``version`` counter, a writer reads the account, computes the new values with
the trust engine and writes them back only if ``version`` is unchanged. A
concurrent writer makes the conditional write miss, and the whole
read-compute-write cycle is retried.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import config
from exceptions import (
    AccountInactiveError,
    DuplicateAccountError,
    PermissionDeniedError,
    PersistenceConflictError,
    UnknownAccountError,
)
from models import Account, AccountCreate, AccountStatus, Actor, Role, TrustSummary, from_doc
from services import policy, security_log, trust_engine

logger = logging.getLogger(__name__)

# Computes the fields to $set from the freshly read account document
TrustCompute = Callable[[Mapping[str, Any]], Dict[str, Any]]


async def register_account(
    db: AsyncIOMotorDatabase, payload: AccountCreate, actor: Optional[Actor] = None
) -> Account:
    """Create the account record for an identity issued by the identity provider.

    Admin accounts may only be created by another admin, except for the very
    first one.

    Raises:
        PermissionDeniedError: admin registration without an admin actor.
        DuplicateAccountError: an account with this id already exists.
    """
    if payload.role is Role.ADMIN and (actor is None or actor.role is not Role.ADMIN):
        if await db.accounts.find_one({"role": Role.ADMIN.value}) is not None:
            raise PermissionDeniedError("Only an admin can create admin accounts")

    score = trust_engine.initial_score(payload.role)
    now = datetime.now(timezone.utc)
    doc = {
        "_id": payload.id,
        "name": payload.name,
        "email": payload.email,
        "role": payload.role.value,
        "trust_score": score,
        "review_count": 0,
        "trust_history": [{"score": score, "reason": "Account creation", "timestamp": now}],
        "account_status": AccountStatus.ACTIVE.value,
        "permissions": policy.permissions_for(payload.role),
        "created_at": now,
        "version": 0,
    }
    try:
        await db.accounts.insert_one(doc)
    except DuplicateKeyError:
        raise DuplicateAccountError(f"Account already exists: {payload.id}")

    await security_log.record_event(
        db, payload.id, security_log.ACCOUNT_CREATED, {"email": payload.email, "role": payload.role.value}
    )
    logger.info("Registered %s account %s", payload.role.value, payload.id)
    return from_doc(Account, doc)


async def get_account_doc(db: AsyncIOMotorDatabase, account_id: str, session: Any = None) -> Dict[str, Any]:
    doc = await db.accounts.find_one({"_id": account_id}, session=session)
    if doc is None:
        raise UnknownAccountError(account_id)
    return doc


async def get_account(db: AsyncIOMotorDatabase, account_id: str) -> Account:
    """Return the account or raise UnknownAccountError."""
    return from_doc(Account, await get_account_doc(db, account_id))


async def resolve_actor(db: AsyncIOMotorDatabase, actor_id: str) -> Actor:
    """Turn the id forwarded by the identity provider into an Actor.

    Raises:
        UnknownAccountError: no account for ``actor_id``.
        AccountInactiveError: the account is locked or suspended.
    """
    account = await get_account(db, actor_id)
    if account.account_status is not AccountStatus.ACTIVE:
        raise AccountInactiveError(f"Your account is {account.account_status.value}. Please contact support.")
    return Actor(id=account.id, role=account.role, name=account.name, email=account.email)


async def _write_trust(
    db: AsyncIOMotorDatabase,
    account: Mapping[str, Any],
    changes: Dict[str, Any],
    reason: str,
    session: Any = None,
) -> Optional[Dict[str, Any]]:
    """Apply ``changes`` if the account is still at the version that was read.

    Returns the updated document, or None when another writer got there first.
    """
    entry = {"score": changes["trust_score"], "reason": reason, "timestamp": datetime.now(timezone.utc)}
    return await db.accounts.find_one_and_update(
        {"_id": account["_id"], "version": account.get("version", 0)},
        {"$set": changes, "$inc": {"version": 1}, "$push": {"trust_history": entry}},
        return_document=ReturnDocument.AFTER,
        session=session,
    )


async def write_trust_score(
    db: AsyncIOMotorDatabase,
    account_id: str,
    compute: TrustCompute,
    reason: str,
    session: Any = None,
) -> Dict[str, Any]:
    """Read, recompute and conditionally write an account's trust score.

    Only the account document is written; see ``publish_trust_change`` for
    the follow-up writes.

    Args:
        account_id: Account whose score changes.
        compute: Returns the fields to set (at least ``trust_score``) from the
            current account document. Called again on every retry.
        reason: Stored with the trust history entry.
        session: Optional Motor session when running inside a transaction.

    Raises:
        UnknownAccountError: the account does not exist.
        PersistenceConflictError: every attempt lost to a concurrent writer.
    """
    attempts = config.TRUST_UPDATE_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        account = await get_account_doc(db, account_id, session=session)
        changes = compute(account)
        updated = await _write_trust(db, account, changes, reason, session=session)
        if updated is not None:
            return updated
        logger.warning("Trust score of %s changed concurrently (attempt %d/%d)", account_id, attempt, attempts)
    raise PersistenceConflictError(account_id, attempts)


async def publish_trust_change(db: AsyncIOMotorDatabase, account: Mapping[str, Any], reason: str) -> None:
    """Copy a committed score onto the vendor's products and log the change."""
    account_id = account["_id"]
    score = account["trust_score"]
    if account.get("role") == Role.VENDOR.value:
        await db.products.update_many({"vendor_id": account_id}, {"$set": {"trust_score": score}})
    await security_log.record_event(
        db,
        account_id,
        security_log.TRUST_SCORE_UPDATED,
        {"new_score": score, "reason": reason},
    )
    logger.info("Trust score of %s is now %.1f (%s)", account_id, score, reason)


async def update_trust_score(
    db: AsyncIOMotorDatabase, account_id: str, compute: TrustCompute, reason: str
) -> Dict[str, Any]:
    """``write_trust_score`` followed by ``publish_trust_change``."""
    updated = await write_trust_score(db, account_id, compute, reason)
    await publish_trust_change(db, updated, reason)
    return updated


async def adjust_trust(db: AsyncIOMotorDatabase, actor: Actor, vendor_id: str, delta: int) -> Account:
    """Admin override: move a vendor's score one step, clamped to the domain."""
    policy.authorize(actor.role, policy.MANAGE_TRUST)
    vendor = await get_account_doc(db, vendor_id)
    if vendor["role"] != Role.VENDOR.value:
        raise UnknownAccountError(vendor_id)

    def compute(account: Mapping[str, Any]) -> Dict[str, Any]:
        return {"trust_score": trust_engine.apply_admin_adjustment(account["trust_score"], delta)}

    reason = f"Admin adjustment ({delta:+d}) by {actor.id}"
    return from_doc(Account, await update_trust_score(db, vendor_id, compute, reason))


async def set_account_status(
    db: AsyncIOMotorDatabase, actor: Actor, account_id: str, status: AccountStatus
) -> Account:
    policy.authorize(actor.role, policy.MANAGE_USERS)
    if account_id == actor.id and status is not AccountStatus.ACTIVE:
        raise PermissionDeniedError("Admins cannot lock their own account")
    doc = await db.accounts.find_one_and_update(
        {"_id": account_id},
        {"$set": {"account_status": status.value}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise UnknownAccountError(account_id)
    await security_log.record_event(
        db, account_id, security_log.ACCOUNT_STATUS_CHANGED, {"status": status.value, "by": actor.id}
    )
    return from_doc(Account, doc)


async def list_vendors(db: AsyncIOMotorDatabase, min_trust: float = 0) -> List[Account]:
    """Return vendor accounts, most trusted first, optionally thresholded."""
    cursor = db.accounts.find({"role": Role.VENDOR.value}).sort("trust_score", -1)
    docs = await cursor.to_list(length=None)
    return [from_doc(Account, doc) for doc in trust_engine.filter_by_trust(docs, min_trust)]


def trust_summary(account: Account) -> TrustSummary:
    """Derive the display signals for an account's trust score."""
    tier = trust_engine.classify(account.trust_score)
    return TrustSummary(
        account_id=account.id,
        name=account.name,
        trust_score=account.trust_score,
        review_count=account.review_count,
        tier=tier,
        label=trust_engine.tier_label(tier),
        badge=trust_engine.badge_variant(account.trust_score),
        description=trust_engine.trust_level_description(account.trust_score),
        low_trust_warning=trust_engine.needs_low_trust_warning(account.trust_score),
    )
