"""
BakeryCore Booking Capacity Module
================================================================================
Availability + capacity accounting per calendar day

FEATURES:
1. Booking ledger counts (only active bookings: pending/confirmed)
2. Effective capacity per day (blocked-date override or default)
3. Single-day availability check
4. Range availability in two queries, grouped by day key
5. Atomic slot reservation against a per-day counter
6. Admin capacity preview before entering one more order

BUSINESS RULES:
- Effective capacity = override capacity | 0 for a closed day | default
- remaining = max(0, capacity - active bookings), available = remaining > 0
- A slot is only admitted through reserve_slot(): conditional $inc with
  the guard reserved < capacity, so concurrent bookings cannot overshoot
"""

from fastapi import APIRouter, Depends, Query, Response
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from typing import Dict, List, Optional
from datetime import date, datetime, timezone

# Core imports
from core.config import settings
from core.database import get_db
from core.auth import require_admin
from core.dates import DayInput, day_key, iter_days, normalize_day, parse_day_range
from core.exceptions import CapacityExceededException, ValidationException
from core.models import BookingStatus
from core.responses import no_store

from blocked_dates_module import (
    DEFAULT_BLOCK_REASON,
    get_blocked_date,
    get_blocked_dates,
    serialize_blocked_date,
)

import logging
logger = logging.getLogger(__name__)


# ============== ROUTER ==============
availability_router = APIRouter(tags=["Availability"])


# ============== CONSTANTS ==============
FULLY_BOOKED_REASON = "Fully booked"


# ============== HELPER FUNCTIONS ==============

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def effective_capacity(blocked: Optional[dict], default_capacity: int) -> int:
    """Override capacity, 0 for a full closure, otherwise the default"""
    if blocked is None:
        return default_capacity
    capacity = blocked.get("capacity")
    if capacity is None:
        return 0
    return capacity


def build_availability(day: date, blocked: Optional[dict], booked: int, default_capacity: int) -> dict:
    """
    Combine override, ledger count and default into the availability result.
    Shared by the single-day and range paths.
    """
    capacity = effective_capacity(blocked, default_capacity)
    remaining = max(0, capacity - booked)

    result = {
        "date": day_key(day),
        "available": remaining > 0,
        "remaining": remaining,
        "capacity": capacity,
        "booked": booked,
    }

    if blocked is not None and blocked.get("capacity") is None:
        result["reason"] = blocked.get("reason") or DEFAULT_BLOCK_REASON
    elif remaining <= 0:
        result["reason"] = FULLY_BOOKED_REASON

    return result


# ============== BOOKING LEDGER (READ SIDE) ==============

def active_status_filter() -> dict:
    return {"$in": BookingStatus.active_values()}


async def count_active_bookings(db: AsyncIOMotorDatabase, day: DayInput) -> int:
    """Number of pending/confirmed bookings on a day"""
    return await db.bookings.count_documents({
        "order_date": day_key(day),
        "status": active_status_filter()
    })


async def get_active_bookings_in_range(
    db: AsyncIOMotorDatabase,
    start: date,
    end: date
) -> List[dict]:
    """All pending/confirmed bookings with order_date in [start, end]"""
    return await db.bookings.find(
        {
            "order_date": {"$gte": day_key(start), "$lte": day_key(end)},
            "status": active_status_filter()
        },
        {"_id": 0}
    ).sort("order_date", 1).to_list(None)


# ============== AVAILABILITY RESOLVER ==============

async def check_date_availability(
    db: AsyncIOMotorDatabase,
    day: DayInput,
    default_capacity: int
) -> dict:
    """
    Availability for one day.

    Returns: {
        "date": "2025-12-24",
        "available": true,
        "remaining": 2,
        "capacity": 5,
        "booked": 3,
        "reason": "Christmas"     # only for closed or full days
    }
    """
    target = normalize_day(day)

    blocked = await get_blocked_date(db, target)
    booked = await count_active_bookings(db, target)

    return build_availability(target, blocked, booked, default_capacity)


async def get_available_dates_in_range(
    db: AsyncIOMotorDatabase,
    start: DayInput,
    end: DayInput,
    default_capacity: int
) -> Dict[date, dict]:
    """
    Availability for every day in [start, end] with exactly two queries:
    blocked dates and active bookings in range, grouped locally by day key.
    """
    start_day = normalize_day(start)
    end_day = normalize_day(end)
    if end_day < start_day:
        raise ValidationException("end date must not be before start date")

    blocked_records = await get_blocked_dates(db, start_day, end_day)
    bookings = await get_active_bookings_in_range(db, start_day, end_day)

    blocked_by_day = {day_key(r["date"]): r for r in blocked_records}

    booked_by_day: Dict[str, int] = {}
    for booking in bookings:
        key = day_key(booking["order_date"])
        booked_by_day[key] = booked_by_day.get(key, 0) + 1

    result = {}
    for current in iter_days(start_day, end_day):
        key = day_key(current)
        result[current] = build_availability(
            current,
            blocked_by_day.get(key),
            booked_by_day.get(key, 0),
            default_capacity
        )

    return result


async def preview_date_capacity(
    db: AsyncIOMotorDatabase,
    day: DayInput,
    default_capacity: int,
    exclude_booking_id: Optional[str] = None
) -> dict:
    """
    What one more order would do to a day, for the dashboard.

    exclude_booking_id: booking already on that day that is being entered
    again (e.g. re-sent), so it is not counted twice.
    """
    target = normalize_day(day)
    key = day_key(target)

    query = {"order_date": key, "status": active_status_filter()}
    if exclude_booking_id:
        query["id"] = {"$ne": exclude_booking_id}

    blocked = await get_blocked_date(db, target)
    booked = await db.bookings.count_documents(query)
    availability = build_availability(target, blocked, booked, default_capacity)

    total_potential = booked + 1
    capacity = availability["capacity"]
    would_exceed = total_potential > capacity

    message = None
    if would_exceed:
        plural = "s" if booked != 1 else ""
        message = (
            f"You have {booked} active order{plural} on {key}. "
            f"One more makes {total_potential}, which exceeds the {capacity}/day limit."
        )

    return {
        **availability,
        "totalPotential": total_potential,
        "wouldExceedLimit": would_exceed,
        "slotsLeft": availability["remaining"],
        "message": message,
    }


# ============== SLOT RESERVATION ==============

async def _ensure_day_counter(db: AsyncIOMotorDatabase, key: str):
    """Create the per-day counter, seeded from the ledger, if it is missing"""
    if await db.day_capacity.find_one({"date": key}, {"_id": 0}) is not None:
        return

    booked = await count_active_bookings(db, key)
    try:
        await db.day_capacity.update_one(
            {"date": key},
            {"$setOnInsert": {"reserved": booked, "created_at": now_iso()}},
            upsert=True
        )
    except DuplicateKeyError:
        # Another request seeded it first
        pass


async def reserve_slot(
    db: AsyncIOMotorDatabase,
    day: DayInput,
    default_capacity: int,
    enforce: bool = True
) -> int:
    """
    Atomically take one slot on a day.

    With enforce=False (admin override) the slot is counted without the
    capacity guard. Returns the number of reserved slots after the update.
    Raises CapacityExceededException when the day is closed or full.
    """
    key = day_key(day)
    blocked = await get_blocked_date(db, key)
    capacity = effective_capacity(blocked, default_capacity)

    if enforce and capacity <= 0:
        logger.warning(f"Slot reservation rejected for {key}: day closed")
        raise CapacityExceededException(key, 0)

    await _ensure_day_counter(db, key)

    guard = {"date": key}
    if enforce:
        guard["reserved"] = {"$lt": capacity}

    counter = await db.day_capacity.find_one_and_update(
        guard,
        {"$inc": {"reserved": 1}, "$set": {"updated_at": now_iso()}},
        return_document=ReturnDocument.AFTER
    )

    if counter is None:
        logger.warning(f"Slot reservation rejected for {key}: capacity {capacity} reached")
        raise CapacityExceededException(key, capacity)

    logger.info(f"Slot reserved on {key} ({counter['reserved']}/{capacity})")
    return counter["reserved"]


async def release_slot(db: AsyncIOMotorDatabase, day: DayInput) -> Optional[int]:
    """Give one slot back; the counter never drops below zero"""
    key = day_key(day)

    counter = await db.day_capacity.find_one_and_update(
        {"date": key, "reserved": {"$gt": 0}},
        {"$inc": {"reserved": -1}, "$set": {"updated_at": now_iso()}},
        return_document=ReturnDocument.AFTER
    )

    if counter is None:
        return None

    logger.info(f"Slot released on {key} ({counter['reserved']} reserved)")
    return counter["reserved"]


async def rebuild_day_counters(db: AsyncIOMotorDatabase) -> Dict[str, int]:
    """
    Reset every per-day counter to the ledger count.
    Repair tool for counters that drifted (e.g. bookings edited by hand).
    Returns {day_key: reserved} for all days that have counters afterwards.
    """
    booked_by_day: Dict[str, int] = {}
    async for booking in db.bookings.find({"status": active_status_filter()}, {"_id": 0, "order_date": 1}):
        key = day_key(booking["order_date"])
        booked_by_day[key] = booked_by_day.get(key, 0) + 1

    existing = await db.day_capacity.find({}, {"_id": 0, "date": 1}).to_list(None)
    all_days = set(booked_by_day) | {c["date"] for c in existing}

    for key in sorted(all_days):
        await db.day_capacity.update_one(
            {"date": key},
            {
                "$set": {"reserved": booked_by_day.get(key, 0), "updated_at": now_iso()},
                "$setOnInsert": {"created_at": now_iso()}
            },
            upsert=True
        )

    logger.info(f"Day counters rebuilt for {len(all_days)} day(s)")
    return {key: booked_by_day.get(key, 0) for key in sorted(all_days)}


# ============== API ENDPOINTS ==============

@availability_router.get(
    "/availability/check",
    summary="Check a single date",
    description="Whether a date accepts new orders and how many slots remain."
)
async def check_availability(
    response: Response,
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """GET /api/availability/check?date=YYYY-MM-DD"""
    if not date:
        raise ValidationException("Date parameter is required")

    result = await check_date_availability(db, date, settings.DEFAULT_DAILY_CAPACITY)

    no_store(response)
    return result


@availability_router.get(
    "/availability/range",
    summary="Availability for a date range",
    description="Per-day availability for the storefront calendar."
)
async def availability_range(
    response: Response,
    start_date: str = Query(..., description="YYYY-MM-DD"),
    end_date: str = Query(..., description="YYYY-MM-DD"),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """GET /api/availability/range?start_date=...&end_date=..."""
    start, end = parse_day_range(start_date, end_date, settings.MAX_RANGE_DAYS)

    days = await get_available_dates_in_range(db, start, end, settings.DEFAULT_DAILY_CAPACITY)

    no_store(response)
    return {"days": list(days.values())}


@availability_router.get(
    "/available-dates",
    summary="Calendar exceptions and bookings for a range",
    description="Blocked dates with reason/capacity plus active bookings per day."
)
async def available_dates(
    response: Response,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """GET /api/available-dates?startDate=...&endDate=..."""
    if not start_date or not end_date:
        raise ValidationException("startDate and endDate required")

    start, end = parse_day_range(start_date, end_date, settings.MAX_RANGE_DAYS)

    blocked_records = await get_blocked_dates(db, start, end)
    bookings = await get_active_bookings_in_range(db, start, end)

    no_store(response)
    return {
        "blockedDates": [
            {k: v for k, v in serialize_blocked_date(r).items() if k != "state"}
            for r in blocked_records
        ],
        "bookings": [
            {"orderDate": b["order_date"], "status": b["status"]}
            for b in bookings
        ],
        "defaultCapacity": settings.DEFAULT_DAILY_CAPACITY
    }


@availability_router.get(
    "/admin/check-date-capacity",
    summary="Capacity preview for one more order",
    description="Admin check before entering an order manually: slots left and whether one more exceeds the limit."
)
async def check_date_capacity(
    response: Response,
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    exclude_booking_id: Optional[str] = Query(None, alias="excludeBookingId"),
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """GET /api/admin/check-date-capacity?date=YYYY-MM-DD&excludeBookingId=..."""
    if not date:
        raise ValidationException("Date parameter is required")

    result = await preview_date_capacity(db, date, settings.DEFAULT_DAILY_CAPACITY, exclude_booking_id)

    no_store(response)
    return result
