"""
BakeryCore Bookings Module
================================================================================
Booking ledger (write side): creation, status workflow, reschedule and
customer self-service changes

CAPACITY ACCOUNTING:
- Every path that makes a booking active on a day takes a slot first
  (reserve_slot), and gives it back if the write fails
- Every path that makes a booking inactive or moves it away from a day
  releases the slot after the ledger write
- Admin override skips the capacity guard but still counts the slot

STATUS WORKFLOW:
    pending   → confirmed, cancelled, forfeited
    confirmed → pending, cancelled, forfeited
    cancelled → pending, confirmed
    forfeited → (terminal)
"""

from fastapi import APIRouter, Depends, Query, Response
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from typing import Any, Dict, List, Optional
from datetime import date, datetime, timezone
import secrets
import time
import uuid

# Core imports
from core.config import Settings, settings
from core.database import get_db
from core.auth import require_admin
from core.audit import create_audit_log, CUSTOMER_ACTOR
from core.dates import DayInput, day_key, normalize_day, parse_day_range
from core.exceptions import (
    ConflictException, NotFoundException, ValidationException
)
from core.models import AuditAction, BookingStatus, FulfillmentType, ModifyAction
from core.responses import no_store
from core.validators import validate_customer_info, validate_status_transition, validate_time_slot

from blocked_dates_module import get_blocked_date
from booking_capacity import release_slot, reserve_slot
from booking_guards import check_booking_window, validate_push_date

import logging
logger = logging.getLogger(__name__)


# ============== ROUTER ==============
bookings_router = APIRouter(tags=["Bookings"])


# ============== CONSTANTS ==============
ORDER_NUMBER_ATTEMPTS = 3


# ============== PYDANTIC MODELS ==============

class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)


class BookingCreate(BaseModel):
    """Custom cake order submitted at checkout"""
    model_config = ConfigDict(populate_by_name=True)

    order_date: str = Field(..., alias="orderDate")
    customer_info: CustomerInfo = Field(..., alias="customerInfo")
    cake_details: Dict[str, Any] = Field(default_factory=dict, alias="cakeDetails")


class AdminBookingCreate(BookingCreate):
    """Order entered from the dashboard, e.g. an approved custom request"""
    status: BookingStatus = BookingStatus.PENDING
    override_capacity: bool = Field(False, alias="overrideCapacity")


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class RescheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(..., alias="bookingId")
    new_date: str = Field(..., alias="newDate")
    new_time: Optional[str] = Field(None, alias="newTime", max_length=50)
    override_capacity: bool = Field(False, alias="overrideCapacity")


class OrderModifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_number: str = Field(..., alias="orderNumber", min_length=1)
    action: ModifyAction
    new_value: Optional[str] = Field(None, alias="newValue")


# ============== HELPER FUNCTIONS ==============

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_order_number() -> str:
    """Display identifier like '1350987631-359'"""
    timestamp = str(int(time.time() * 1000))[-10:]
    return f"{timestamp}-{secrets.randbelow(1000):03d}"


def time_field_for(booking: dict) -> str:
    """Pickup or delivery time field, depending on fulfillment type"""
    if (booking.get("cake_details") or {}).get("fulfillment_type") == FulfillmentType.DELIVERY.value:
        return "cake_details.delivery_time"
    return "cake_details.pickup_time"


def public_order_view(booking: dict) -> dict:
    details = booking.get("cake_details") or {}
    return {
        "orderNumber": booking["order_number"],
        "orderDate": booking["order_date"],
        "status": booking["status"],
        "productName": details.get("product_name"),
        "size": details.get("size"),
        "price": details.get("price"),
        "image": details.get("image"),
        "fulfillmentType": details.get("fulfillment_type"),
        "pickupTime": details.get("pickup_time"),
        "deliveryTime": details.get("delivery_time"),
    }


# ============== LEDGER QUERIES ==============

async def get_booking(db: AsyncIOMotorDatabase, booking_id: str) -> dict:
    booking = await db.bookings.find_one({"id": booking_id}, {"_id": 0})
    if not booking:
        raise NotFoundException("Booking")
    return booking


async def find_order_by_number(db: AsyncIOMotorDatabase, order_number: str) -> Optional[dict]:
    cleaned = str(order_number).strip().lstrip("#")
    if not cleaned:
        return None
    return await db.bookings.find_one({"order_number": cleaned}, {"_id": 0})


async def list_bookings(
    db: AsyncIOMotorDatabase,
    start: Optional[date] = None,
    end: Optional[date] = None,
    status: Optional[str] = None
) -> List[dict]:
    query: Dict[str, Any] = {}
    if start is not None:
        query["order_date"] = {"$gte": day_key(start)}
    if end is not None:
        query.setdefault("order_date", {})["$lte"] = day_key(end)
    if status:
        query["status"] = status

    return await db.bookings.find(query, {"_id": 0}).sort("order_date", 1).to_list(None)


# ============== LIFECYCLE ==============

async def _insert_booking(db: AsyncIOMotorDatabase, booking: dict) -> dict:
    """Insert with a fresh order number, retrying on the rare collision"""
    for attempt in range(ORDER_NUMBER_ATTEMPTS):
        booking["order_number"] = generate_order_number()
        try:
            await db.bookings.insert_one(booking)
            booking.pop("_id", None)
            return booking
        except DuplicateKeyError:
            booking.pop("_id", None)
            if attempt == ORDER_NUMBER_ATTEMPTS - 1:
                raise
            logger.warning(f"Order number collision, retrying ({attempt + 1}/{ORDER_NUMBER_ATTEMPTS})")
    return booking


async def create_booking(
    db: AsyncIOMotorDatabase,
    data: dict,
    cfg: Settings = settings,
    override_capacity: bool = False,
    enforce_window: bool = True,
    actor: Optional[dict] = None
) -> dict:
    """
    Create a booking after re-validating the day.

    enforce_window: apply closed weekdays / lead time / weekly cap
    override_capacity: admin knows they can handle it, skip all checks
    """
    day = normalize_day(data.get("order_date"))
    key = day_key(day)
    customer_info = validate_customer_info(data.get("customer_info") or {})

    status = data.get("status") or BookingStatus.PENDING.value
    if isinstance(status, BookingStatus):
        status = status.value
    if not BookingStatus.is_active(status):
        raise ValidationException("New bookings must be pending or confirmed")

    if override_capacity:
        logger.warning(f"Admin override for {key} - skipping availability checks")
    elif enforce_window:
        blocked = await get_blocked_date(db, day)
        await check_booking_window(db, day, blocked, cfg)

    await reserve_slot(db, day, cfg.DEFAULT_DAILY_CAPACITY, enforce=not override_capacity)

    cake_details = dict(data.get("cake_details") or {})
    if "pickup_date" in cake_details:
        cake_details["pickup_date"] = key

    timestamp = now_iso()
    booking = {
        "id": str(uuid.uuid4()),
        "order_date": key,
        "status": status,
        "customer_info": customer_info,
        "cake_details": cake_details,
        "created_at": timestamp,
        "updated_at": timestamp,
    }

    try:
        booking = await _insert_booking(db, booking)
    except Exception:
        await release_slot(db, day)
        raise

    await create_audit_log(
        db,
        actor=actor or CUSTOMER_ACTOR,
        entity="booking",
        entity_id=booking["id"],
        action=AuditAction.CREATE.value,
        after=booking,
        metadata={"override_capacity": override_capacity} if override_capacity else None
    )

    logger.info(
        f"Booking {booking['order_number']} created for {key} "
        f"({cake_details.get('product_name', 'custom cake')}, {customer_info['name']})"
    )
    return booking


async def update_booking_status(
    db: AsyncIOMotorDatabase,
    booking_id: str,
    new_status: str,
    cfg: Settings = settings,
    actor: Optional[dict] = None,
    audit: bool = True
) -> dict:
    """
    Move a booking through the status workflow, keeping day counters in sync.

    The write is guarded on the status and day that were read, so a booking
    changed in between (e.g. rescheduled) is a 409 and no slot is released
    on the wrong day. audit=False when the caller writes its own entry.
    """
    booking = await get_booking(db, booking_id)
    current = booking["status"]

    if current == new_status:
        return booking

    validate_status_transition(current, new_status, cfg.STATUS_TRANSITIONS)

    was_active = BookingStatus.is_active(current)
    becomes_active = BookingStatus.is_active(new_status)
    order_day = booking["order_date"]

    reserved = False
    if becomes_active and not was_active:
        await reserve_slot(db, order_day, cfg.DEFAULT_DAILY_CAPACITY)
        reserved = True

    update = {"status": new_status, "updated_at": now_iso()}
    if new_status == BookingStatus.FORFEITED.value:
        update["forfeited_at"] = update["updated_at"]

    try:
        updated = await db.bookings.find_one_and_update(
            {"id": booking_id, "status": current, "order_date": order_day},
            {"$set": update},
            return_document=ReturnDocument.AFTER
        )
    except Exception:
        if reserved:
            await release_slot(db, order_day)
        raise

    if updated is None:
        if reserved:
            await release_slot(db, order_day)
        raise ConflictException("Booking was changed by another request, please reload")

    updated.pop("_id", None)

    if was_active and not becomes_active:
        await release_slot(db, order_day)

    if audit:
        await create_audit_log(
            db,
            actor=actor or CUSTOMER_ACTOR,
            entity="booking",
            entity_id=booking_id,
            action=AuditAction.STATUS_CHANGE.value,
            before={"status": current},
            after={"status": new_status}
        )

    logger.info(f"Booking {booking.get('order_number')} status {current} → {new_status}")
    return updated


async def _move_booking(
    db: AsyncIOMotorDatabase,
    booking: dict,
    new_day: date,
    extra_update: dict,
    cfg: Settings,
    override_capacity: bool = False
) -> dict:
    """
    Change order_date, moving the slot from the old day to the new one.
    Guarded on the status and day that were read; 409 if either changed.
    """
    old_key = booking["order_date"]
    new_key = day_key(new_day)
    moves_slot = BookingStatus.is_active(booking["status"]) and new_key != old_key

    if moves_slot:
        await reserve_slot(db, new_day, cfg.DEFAULT_DAILY_CAPACITY, enforce=not override_capacity)

    update = {
        "order_date": new_key,
        "cake_details.pickup_date": new_key,
        "updated_at": now_iso(),
        **extra_update
    }

    try:
        updated = await db.bookings.find_one_and_update(
            {"id": booking["id"], "status": booking["status"], "order_date": old_key},
            {"$set": update},
            return_document=ReturnDocument.AFTER
        )
    except Exception:
        if moves_slot:
            await release_slot(db, new_day)
        raise

    if updated is None:
        if moves_slot:
            await release_slot(db, new_day)
        raise ConflictException("Booking was changed by another request, please reload")

    updated.pop("_id", None)

    if moves_slot:
        await release_slot(db, old_key)

    return updated


async def reschedule_booking(
    db: AsyncIOMotorDatabase,
    booking_id: str,
    new_date: DayInput,
    new_time: Optional[str] = None,
    cfg: Settings = settings,
    override_capacity: bool = False,
    actor: Optional[dict] = None
) -> dict:
    """Admin reschedule: no booking window restrictions, capacity still applies"""
    booking = await get_booking(db, booking_id)
    new_day = normalize_day(new_date)

    extra = {}
    if new_time:
        extra[time_field_for(booking)] = new_time.strip()

    updated = await _move_booking(db, booking, new_day, extra, cfg, override_capacity)

    await create_audit_log(
        db,
        actor=actor or CUSTOMER_ACTOR,
        entity="booking",
        entity_id=booking_id,
        action=AuditAction.RESCHEDULE.value,
        before={"order_date": booking["order_date"]},
        after={"order_date": updated["order_date"], **extra},
        metadata={"override_capacity": override_capacity} if override_capacity else None
    )

    logger.info(f"Booking {booking.get('order_number')} rescheduled {booking['order_date']} → {updated['order_date']}")
    return updated


async def modify_order(
    db: AsyncIOMotorDatabase,
    order_number: str,
    action: str,
    new_value: Optional[str] = None,
    cfg: Settings = settings
) -> dict:
    """
    Customer self-service change identified by order number.

    Actions:
        change_time: new pickup/delivery time ("3:00 PM")
        push_date:   move the order 1..MAX_PUSH_DAYS days later
        forfeit:     give up the order (no refund), frees the slot
    """
    order = await find_order_by_number(db, order_number)
    if not order:
        raise NotFoundException("Order")

    if not BookingStatus.is_active(order["status"]):
        raise ValidationException(
            "This order has already been cancelled or forfeited and cannot be modified."
        )

    try:
        action = ModifyAction(action)
    except ValueError:
        raise ValidationException("Invalid action")

    if action == ModifyAction.CHANGE_TIME:
        if not new_value:
            raise ValidationException("New time is required")
        field = time_field_for(order)
        slot = validate_time_slot(new_value)
        updated = await db.bookings.find_one_and_update(
            {"id": order["id"]},
            {"$set": {field: slot, "updated_at": now_iso()}},
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise NotFoundException("Order")
        updated.pop("_id", None)
        previous = (order.get("cake_details") or {}).get(field.split(".")[-1])
        before, after = {field: previous}, {field: slot}
        message = "Order updated successfully"

    elif action == ModifyAction.PUSH_DATE:
        if not new_value:
            raise ValidationException("New date is required")
        current_day = normalize_day((order.get("cake_details") or {}).get("pickup_date") or order["order_date"])
        new_day = normalize_day(new_value)
        validate_push_date(current_day, new_day, cfg.MAX_PUSH_DAYS)

        blocked = await get_blocked_date(db, new_day)
        await check_booking_window(db, new_day, blocked, cfg)

        updated = await _move_booking(db, order, new_day, {}, cfg)
        before, after = {"order_date": order["order_date"]}, {"order_date": updated["order_date"]}
        message = "Order updated successfully"

    else:
        updated = await update_booking_status(
            db, order["id"], BookingStatus.FORFEITED.value, cfg,
            actor=CUSTOMER_ACTOR, audit=False
        )
        before, after = {"status": order["status"]}, {"status": updated["status"]}
        message = "Order has been forfeited"

    await create_audit_log(
        db,
        actor=CUSTOMER_ACTOR,
        entity="booking",
        entity_id=order["id"],
        action=AuditAction.MODIFY_BY_CUSTOMER.value,
        before=before,
        after=after,
        metadata={"action": action.value}
    )

    logger.info(f"Order {order['order_number']} modified by customer: {action.value}")
    return {"success": True, "message": message, "order": public_order_view(updated)}


# ============== API ENDPOINTS: PUBLIC ==============

@bookings_router.post(
    "/bookings",
    summary="Submit a custom cake order",
    description="Re-checks the day and reserves a slot atomically. 409 if the day is closed or full."
)
async def submit_booking(
    data: BookingCreate,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """POST /api/bookings"""
    booking = await create_booking(db, data.model_dump(), settings)
    return {
        "success": True,
        "bookingId": booking["id"],
        "orderNumber": booking["order_number"]
    }


@bookings_router.get(
    "/orders/lookup",
    summary="Look up an order by order number"
)
async def lookup_order(
    order_number: Optional[str] = Query(None, alias="orderNumber"),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """GET /api/orders/lookup?orderNumber=..."""
    if not order_number or not order_number.strip():
        raise ValidationException("Order number is required")

    order = await find_order_by_number(db, order_number)
    if not order:
        raise NotFoundException("Order")

    return {"order": public_order_view(order)}


@bookings_router.post(
    "/orders/modify",
    summary="Customer self-service order change",
    description="change_time, push_date (max. a few days later) or forfeit."
)
async def modify_order_endpoint(
    data: OrderModifyRequest,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """POST /api/orders/modify"""
    return await modify_order(db, data.order_number, data.action.value, data.new_value, settings)


# ============== API ENDPOINTS: ADMIN ==============

@bookings_router.get(
    "/bookings",
    summary="List bookings",
    description="Admin view of the ledger, optionally filtered by day range and status."
)
async def get_bookings(
    response: Response,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    status: Optional[BookingStatus] = None,
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """GET /api/bookings"""
    start = end = None
    if start_date and end_date:
        start, end = parse_day_range(start_date, end_date, settings.MAX_RANGE_DAYS)
    elif start_date:
        start = normalize_day(start_date)
    elif end_date:
        end = normalize_day(end_date)

    bookings = await list_bookings(db, start, end, status.value if status else None)

    no_store(response)
    return {"bookings": bookings}


@bookings_router.post(
    "/admin/bookings",
    summary="Create a booking from the dashboard",
    description="Skips booking window rules; overrideCapacity also skips the capacity guard."
)
async def admin_create_booking(
    data: AdminBookingCreate,
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """POST /api/admin/bookings"""
    booking = await create_booking(
        db,
        data.model_dump(),
        settings,
        override_capacity=data.override_capacity,
        enforce_window=False,
        actor=current_user
    )
    return {
        "success": True,
        "bookingId": booking["id"],
        "orderNumber": booking["order_number"]
    }


@bookings_router.patch(
    "/bookings/{booking_id}",
    summary="Change booking status"
)
async def patch_booking_status(
    booking_id: str,
    data: BookingStatusUpdate,
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """PATCH /api/bookings/{id}"""
    booking = await update_booking_status(
        db, booking_id, data.status.value, settings, actor=current_user
    )
    logger.info(f"Booking {booking_id} set to {data.status.value} by {current_user.get('email')}")
    return {"success": True, "booking": booking}


@bookings_router.post(
    "/admin/reschedule",
    summary="Reschedule a booking",
    description="Moves the order to another day; capacity applies unless overrideCapacity is set."
)
async def admin_reschedule(
    data: RescheduleRequest,
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """POST /api/admin/reschedule"""
    booking = await reschedule_booking(
        db,
        data.booking_id,
        data.new_date,
        data.new_time,
        settings,
        override_capacity=data.override_capacity,
        actor=current_user
    )
    return {
        "success": True,
        "message": "Order rescheduled successfully",
        "newDate": booking["order_date"]
    }
