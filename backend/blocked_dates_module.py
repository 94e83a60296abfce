"""
BakeryCore Blocked Dates Module
================================================================================
Admin-declared exceptions to the default daily capacity

STATES PER DAY:
- OPEN:    no record, default capacity applies
- BLOCKED: record without capacity (full closure, capacity 0)
- LIMITED: record with capacity N (overrides the default for that day)

RULES:
- At most one record per calendar day (unique index on "date")
- Adding a record for an already blocked day overwrites it (idempotent upsert)
- capacity=0 is stored as a closure, so BLOCKED has a single representation
- Removing a day that has no record is a 404, no state change
"""

from fastapi import APIRouter, Depends, Query, Response
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from typing import List, Optional, Tuple
from datetime import date, datetime, timezone
import uuid

# Core imports
from core.config import settings
from core.database import get_db
from core.auth import require_admin
from core.audit import create_audit_log
from core.dates import DayInput, day_key, normalize_day, parse_day_range
from core.exceptions import NotFoundException, ValidationException
from core.models import AuditAction
from core.responses import no_store

import logging
logger = logging.getLogger(__name__)


# ============== ROUTER ==============
blocked_dates_router = APIRouter(tags=["Blocked Dates"])


# ============== CONSTANTS ==============
DEFAULT_BLOCK_REASON = "Closed"


# ============== PYDANTIC MODELS ==============

class BlockedDateCreate(BaseModel):
    """Block a day or override its capacity"""
    date: str  # YYYY-MM-DD or ISO-8601
    reason: Optional[str] = Field(None, max_length=200)
    capacity: Optional[int] = Field(None, ge=0, le=100)


# ============== HELPER FUNCTIONS ==============

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def day_state(record: Optional[dict]) -> str:
    """open / blocked / limited"""
    if record is None:
        return "open"
    if record.get("capacity") is None:
        return "blocked"
    return "limited"


def serialize_blocked_date(record: dict) -> dict:
    return {
        "date": record["date"],
        "reason": record.get("reason") or DEFAULT_BLOCK_REASON,
        "capacity": record.get("capacity"),
        "state": day_state(record),
    }


# ============== STORE ==============

async def get_blocked_date(db: AsyncIOMotorDatabase, day: DayInput) -> Optional[dict]:
    """Record for a single day or None"""
    return await db.blocked_dates.find_one({"date": day_key(day)}, {"_id": 0})


async def get_blocked_dates(
    db: AsyncIOMotorDatabase,
    start: Optional[date] = None,
    end: Optional[date] = None
) -> List[dict]:
    """All records whose day falls in [start, end] inclusive, sorted by day"""
    query = {}
    if start is not None:
        query["date"] = {"$gte": day_key(start)}
    if end is not None:
        query.setdefault("date", {})["$lte"] = day_key(end)

    return await db.blocked_dates.find(query, {"_id": 0}).sort("date", 1).to_list(None)


async def add_blocked_date(
    db: AsyncIOMotorDatabase,
    day: DayInput,
    reason: Optional[str] = None,
    capacity: Optional[int] = None
) -> Tuple[dict, Optional[dict]]:
    """
    Upsert the record for a day.

    Returns (record_after, record_before). record_before is None when the
    day was open.
    """
    key = day_key(day)

    if capacity is not None and capacity < 0:
        raise ValidationException("Capacity must not be negative")
    if capacity == 0:
        capacity = None

    before = await get_blocked_date(db, key)
    timestamp = now_iso()

    after = await db.blocked_dates.find_one_and_update(
        {"date": key},
        {
            "$set": {
                "reason": (reason or "").strip() or DEFAULT_BLOCK_REASON,
                "capacity": capacity,
                "updated_at": timestamp,
            },
            "$setOnInsert": {
                "id": str(uuid.uuid4()),
                "created_at": timestamp,
            },
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
        projection={"_id": 0},
    )

    logger.info(
        f"Blocked date {key}: {day_state(before)} -> {day_state(after)} "
        f"(reason={after.get('reason')!r}, capacity={after.get('capacity')})"
    )
    return after, before


async def remove_blocked_date(db: AsyncIOMotorDatabase, day: DayInput) -> dict:
    """Delete the record for a day; NotFoundException if there is none"""
    key = day_key(day)

    existing = await get_blocked_date(db, key)
    if not existing:
        raise NotFoundException(f"Blocked date {key}")

    result = await db.blocked_dates.delete_one({"date": key})
    if result.deleted_count == 0:
        # Removed concurrently between lookup and delete
        raise NotFoundException(f"Blocked date {key}")

    logger.info(f"Blocked date {key} removed, day is open again")
    return existing


# ============== API ENDPOINTS ==============

@blocked_dates_router.get(
    "/admin/blocked-dates",
    summary="List blocked dates",
    description="All blocked/limited days, optionally restricted to a range."
)
async def list_blocked_dates(
    response: Response,
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """GET /api/admin/blocked-dates"""
    start = end = None
    if start_date and end_date:
        start, end = parse_day_range(start_date, end_date, settings.MAX_RANGE_DAYS)
    elif start_date:
        start = normalize_day(start_date)
    elif end_date:
        end = normalize_day(end_date)

    records = await get_blocked_dates(db, start, end)

    no_store(response)
    return {"blockedDates": [serialize_blocked_date(r) for r in records]}


@blocked_dates_router.post(
    "/admin/blocked-dates",
    summary="Block a date or set its capacity",
    description="Idempotent: an existing record for the day is overwritten."
)
async def create_blocked_date(
    data: BlockedDateCreate,
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """POST /api/admin/blocked-dates"""
    day = normalize_day(data.date)

    record, before = await add_blocked_date(db, day, data.reason, data.capacity)

    await create_audit_log(
        db,
        actor=current_user,
        entity="blocked_date",
        entity_id=record["id"],
        action=AuditAction.CREATE.value if before is None else AuditAction.UPDATE.value,
        before=before,
        after=record
    )

    logger.info(f"Blocked date {record['date']} saved by {current_user.get('email')}")

    return {
        "success": True,
        "created": before is None,
        "blockedDate": serialize_blocked_date(record)
    }


@blocked_dates_router.delete(
    "/admin/blocked-dates",
    summary="Unblock a date",
    description="Returns the day to default capacity. 404 if the day was not blocked."
)
async def delete_blocked_date(
    date: str = Query(..., description="YYYY-MM-DD"),
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """DELETE /api/admin/blocked-dates?date=YYYY-MM-DD"""
    day = normalize_day(date)

    removed = await remove_blocked_date(db, day)

    await create_audit_log(
        db,
        actor=current_user,
        entity="blocked_date",
        entity_id=removed.get("id", removed["date"]),
        action=AuditAction.DELETE.value,
        before=removed
    )

    logger.info(f"Blocked date {removed['date']} removed by {current_user.get('email')}")
    return {"success": True}
