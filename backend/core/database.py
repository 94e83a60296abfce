"""
Database connection management
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
import logging

from .config import settings

logger = logging.getLogger(__name__)

# MongoDB connection - singleton
client = AsyncIOMotorClient(settings.MONGO_URL)
db = client[settings.DB_NAME]


def get_db() -> AsyncIOMotorDatabase:
    """FastAPI dependency - tests override this with an in-memory database"""
    return db


async def close_db_connection():
    """Close database connection"""
    client.close()


async def check_db_connection(database: AsyncIOMotorDatabase = None) -> bool:
    """Check if database is accessible"""
    try:
        await (database if database is not None else db).command('ping')
        return True
    except Exception:
        return False


async def ensure_indexes(database: AsyncIOMotorDatabase):
    """One record per calendar day for blocked dates and day counters"""
    await database.blocked_dates.create_index([("date", ASCENDING)], unique=True)
    await database.day_capacity.create_index([("date", ASCENDING)], unique=True)
    await database.bookings.create_index([("order_date", ASCENDING), ("status", ASCENDING)])
    await database.bookings.create_index([("order_number", ASCENDING)], unique=True)
    await database.bookings.create_index([("id", ASCENDING)], unique=True)
    logger.info("Database indexes ensured")
