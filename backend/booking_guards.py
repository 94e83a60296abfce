"""
BakeryCore Booking Guards Module
================================================================================
Booking window rules for customer-facing order creation and changes

GUARDS:
G1) No orders for past days
G2) Closed weekdays (e.g. Sun-Tue)
G3) Minimum lead time in days
G4) Weekly cap across all days of a bakery week
G5) Customer may push an order date forward by at most N days

An admin-opened day (blocked-date record with an explicit capacity) skips
G2-G4. Capacity itself is always enforced by the slot reservation.
"""

from datetime import date, timedelta
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from core.config import Settings
from core.dates import day_key, today_utc, week_bounds
from core.exceptions import DateUnavailableException, ValidationException
from core.models import BookingStatus

import logging
logger = logging.getLogger(__name__)


WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def is_admin_opened(blocked: Optional[dict]) -> bool:
    return blocked is not None and blocked.get("capacity") is not None


async def count_active_bookings_in_week(db: AsyncIOMotorDatabase, day: date, week_start_weekday: int) -> int:
    start, end = week_bounds(day, week_start_weekday)
    return await db.bookings.count_documents({
        "order_date": {"$gte": day_key(start), "$lte": day_key(end)},
        "status": {"$in": BookingStatus.active_values()}
    })


async def check_booking_window(
    db: AsyncIOMotorDatabase,
    day: date,
    blocked: Optional[dict],
    cfg: Settings,
    today: Optional[date] = None
) -> None:
    """
    Raise DateUnavailableException when a customer may not book this day.
    """
    today = today or today_utc()

    # G1
    if day < today:
        raise DateUnavailableException("That date is in the past. Please choose another date.")

    if is_admin_opened(blocked):
        return

    # G2
    if day.weekday() in cfg.closed_weekdays:
        open_days = [WEEKDAY_NAMES[i] for i in range(7) if i not in cfg.closed_weekdays]
        raise DateUnavailableException(
            f"Sorry, we're closed on {WEEKDAY_NAMES[day.weekday()]}s. "
            f"Please choose one of: {', '.join(open_days)}."
        )

    # G3
    if cfg.MIN_LEAD_DAYS and (day - today).days < cfg.MIN_LEAD_DAYS:
        earliest = today + timedelta(days=cfg.MIN_LEAD_DAYS)
        raise DateUnavailableException(
            f"We need at least {cfg.MIN_LEAD_DAYS} days advance notice. "
            f"The earliest available date is {day_key(earliest)}."
        )

    # G4
    if cfg.WEEKLY_CAPACITY:
        week_count = await count_active_bookings_in_week(db, day, cfg.WEEK_START_WEEKDAY)
        if week_count >= cfg.WEEKLY_CAPACITY:
            logger.info(f"Weekly cap reached for week of {day_key(day)} ({week_count}/{cfg.WEEKLY_CAPACITY})")
            raise DateUnavailableException(
                f"That week is fully booked ({cfg.WEEKLY_CAPACITY} cakes maximum per week). "
                "Please choose a date in another week."
            )


def validate_push_date(current_day: date, new_day: date, max_push_days: int) -> int:
    """G5: returns the number of days the order moves"""
    days_diff = (new_day - current_day).days

    if days_diff <= 0:
        raise ValidationException("New date must be after the current scheduled date")

    if days_diff > max_push_days:
        raise ValidationException(
            f"You can only push the date by a maximum of {max_push_days} days. "
            "Please contact us for larger changes."
        )

    return days_diff
