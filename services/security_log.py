"""Append-only audit log of account events."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from models import SecurityEvent

logger = logging.getLogger(__name__)

ACCOUNT_CREATED = "account_created"
TRUST_SCORE_UPDATED = "trust_score_updated"
ACCOUNT_STATUS_CHANGED = "account_status_changed"
REVIEW_SUBMITTED = "review_submitted"


async def record_event(
    db: AsyncIOMotorDatabase,
    user_id: str,
    event: str,
    details: Optional[Dict[str, Any]] = None,
) -> SecurityEvent:
    """Persist one security event for ``user_id``."""
    entry = SecurityEvent(
        user_id=user_id,
        event=event,
        details=details or {},
        timestamp=datetime.now(timezone.utc),
    )
    await db.security_logs.insert_one(entry.model_dump())
    logger.info("Security event %s for %s", event, user_id)
    return entry


async def list_events(db: AsyncIOMotorDatabase, user_id: str, limit: int = 50) -> List[SecurityEvent]:
    """Return the latest events for ``user_id``, newest first."""
    cursor = db.security_logs.find({"user_id": user_id}).sort("timestamp", -1).limit(limit)
    return [SecurityEvent.model_validate(doc) for doc in await cursor.to_list(length=limit)]
