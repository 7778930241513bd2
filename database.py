"""Database client initialization for FreshMart.

Exposes a Motor AsyncIOMotorClient and database handle for reuse, a FastAPI
dependency returning that handle, and the startup helpers that check
connectivity and create the indexes the marketplace queries rely on.
"""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from config import DATABASE_NAME, MONGODB_URI

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGODB_URI)
db = client[DATABASE_NAME]


def get_db() -> AsyncIOMotorDatabase:
    """Return the shared database handle (overridden in tests)."""
    return db


async def start_session(database: AsyncIOMotorDatabase):
    """Open a client session for a multi-document transaction on ``database``."""
    return await database.client.start_session()


async def ping_db() -> None:
    """Ping the MongoDB server to verify connectivity.

    Failures are logged rather than raised so the application can still start
    and report errors per request.
    """
    try:
        await client.admin.command("ping")
        logger.info("Connected to MongoDB at %s", MONGODB_URI)
    except Exception:  # noqa: BLE001 - startup check is advisory
        logger.exception("MongoDB ping failed")


async def ensure_indexes(database: AsyncIOMotorDatabase) -> None:
    """Create the indexes used by listing, history and review queries."""
    await database.products.create_index([("trust_score", DESCENDING)])
    await database.products.create_index([("vendor_id", ASCENDING), ("created_at", DESCENDING)])
    await database.products.create_index([("category", ASCENDING), ("price", ASCENDING)])
    await database.orders.create_index([("customer_id", ASCENDING), ("created_at", DESCENDING)])
    await database.orders.create_index([("vendor_id", ASCENDING), ("created_at", DESCENDING)])
    await database.reviews.create_index([("vendor_id", ASCENDING), ("created_at", DESCENDING)])
    await database.accounts.create_index([("role", ASCENDING), ("trust_score", DESCENDING)])
    await database.security_logs.create_index([("user_id", ASCENDING), ("timestamp", DESCENDING)])
