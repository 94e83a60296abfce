"""Booking ledger lifecycle tests: creation, status workflow, reschedule, self-service."""
from datetime import timedelta

import pytest

import bookings_module
from blocked_dates_module import add_blocked_date
from booking_capacity import check_date_availability
from booking_guards import check_booking_window, validate_push_date
from bookings_module import (
    create_booking,
    find_order_by_number,
    generate_order_number,
    modify_order,
    reschedule_booking,
    update_booking_status,
)
from core.dates import day_key, today_utc
from core.exceptions import (
    CapacityExceededException,
    ConflictException,
    DateUnavailableException,
    InvalidStatusTransitionException,
    NotFoundException,
    ValidationException,
)


def booking_data(day, **extra):
    data = {
        "order_date": day_key(day),
        "customer_info": {"name": "Jane Baker", "email": "Jane@Example.com", "phone": "555 123 4567"},
        "cake_details": {"product_name": "Lemon Drizzle", "fulfillment_type": "pickup", "pickup_time": "11:00 AM"},
    }
    data.update(extra)
    return data


def next_weekday(start, weekday):
    return start + timedelta(days=(weekday - start.weekday()) % 7)


# ============== CREATION ==============

async def test_create_booking_stores_day_key_and_takes_slot(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)

    assert booking["order_date"] == day_key(future_day)
    assert booking["status"] == "pending"
    assert booking["customer_info"]["email"] == "jane@example.com"
    assert "_id" not in booking

    availability = await check_date_availability(mock_db, future_day, cfg.DEFAULT_DAILY_CAPACITY)
    assert availability["booked"] == 1
    assert availability["remaining"] == 4

    counter = await mock_db.day_capacity.find_one({"date": day_key(future_day)})
    assert counter["reserved"] == 1

    audit = await mock_db.audit_logs.find_one({"entity_id": booking["id"]})
    assert audit["action"] == "create"
    assert audit["after"]["customer_info"]["email"] == "j***@example.com"
    assert audit["after"]["customer_info"]["phone"] == "***4567"


async def test_create_booking_rejects_full_day(mock_db, cfg, future_day):
    await add_blocked_date(mock_db, future_day, capacity=2)
    await create_booking(mock_db, booking_data(future_day), cfg)
    await create_booking(mock_db, booking_data(future_day), cfg)

    with pytest.raises(CapacityExceededException):
        await create_booking(mock_db, booking_data(future_day), cfg)

    assert await mock_db.bookings.count_documents({"order_date": day_key(future_day)}) == 2


async def test_create_booking_rejects_blocked_day(mock_db, cfg, future_day):
    await add_blocked_date(mock_db, future_day, reason="Vacation")

    with pytest.raises(CapacityExceededException):
        await create_booking(mock_db, booking_data(future_day), cfg)

    assert await mock_db.bookings.count_documents({}) == 0


async def test_admin_override_books_past_capacity(mock_db, cfg, future_day):
    await add_blocked_date(mock_db, future_day, reason="Vacation")

    booking = await create_booking(
        mock_db, booking_data(future_day, status="confirmed"), cfg,
        override_capacity=True, enforce_window=False
    )

    assert booking["status"] == "confirmed"
    assert await mock_db.bookings.count_documents({"order_date": day_key(future_day)}) == 1


async def test_create_booking_rejects_inactive_status(mock_db, cfg, future_day):
    with pytest.raises(ValidationException):
        await create_booking(mock_db, booking_data(future_day, status="cancelled"), cfg)


async def test_create_booking_rejects_invalid_customer(mock_db, cfg, future_day):
    data = booking_data(future_day, customer_info={"name": "J", "email": ""})

    with pytest.raises(ValidationException):
        await create_booking(mock_db, data, cfg)

    assert await mock_db.day_capacity.count_documents({}) == 0


def test_generate_order_number_format():
    number = generate_order_number()
    head, tail = number.split("-")
    assert len(head) == 10 and head.isdigit()
    assert len(tail) == 3 and tail.isdigit()


# ============== BOOKING WINDOW ==============

async def test_past_day_is_rejected(mock_db, cfg):
    yesterday = today_utc() - timedelta(days=1)

    with pytest.raises(DateUnavailableException):
        await create_booking(mock_db, booking_data(yesterday), cfg)


async def test_closed_weekday_is_rejected_unless_admin_opened(mock_db, cfg, future_day):
    sunday = next_weekday(future_day, 6)
    rules = cfg.model_copy(update={"CLOSED_WEEKDAYS": "6,0,1"})

    with pytest.raises(DateUnavailableException) as exc_info:
        await check_booking_window(mock_db, sunday, None, rules)
    assert "Sundays" in exc_info.value.detail

    opened, _ = await add_blocked_date(mock_db, sunday, reason="Special opening", capacity=3)
    await check_booking_window(mock_db, sunday, opened, rules)


async def test_lead_time_is_enforced(mock_db, cfg):
    today = today_utc()
    rules = cfg.model_copy(update={"MIN_LEAD_DAYS": 3})

    with pytest.raises(DateUnavailableException):
        await check_booking_window(mock_db, today + timedelta(days=2), None, rules, today=today)

    await check_booking_window(mock_db, today + timedelta(days=3), None, rules, today=today)


async def test_weekly_cap_spans_the_bakery_week(mock_db, cfg, future_day, make_booking):
    wednesday = next_weekday(future_day, 2)
    rules = cfg.model_copy(update={"WEEKLY_CAPACITY": 2, "WEEK_START_WEEKDAY": 2})

    await make_booking(wednesday)
    await make_booking(wednesday + timedelta(days=3))

    with pytest.raises(DateUnavailableException):
        await check_booking_window(mock_db, wednesday + timedelta(days=6), None, rules)

    # the next week starts fresh
    await check_booking_window(mock_db, wednesday + timedelta(days=7), None, rules)


def test_validate_push_date_bounds():
    current = today_utc()

    assert validate_push_date(current, current + timedelta(days=3), 3) == 3
    with pytest.raises(ValidationException):
        validate_push_date(current, current, 3)
    with pytest.raises(ValidationException):
        validate_push_date(current, current + timedelta(days=4), 3)


# ============== STATUS WORKFLOW ==============

async def test_cancel_frees_slot_and_reactivation_takes_it_back(mock_db, cfg, future_day):
    rules = cfg.model_copy(update={"DEFAULT_DAILY_CAPACITY": 1})
    booking = await create_booking(mock_db, booking_data(future_day), rules)

    cancelled = await update_booking_status(mock_db, booking["id"], "cancelled", rules)
    assert cancelled["status"] == "cancelled"
    assert (await check_date_availability(mock_db, future_day, 1))["available"] is True

    other = await create_booking(mock_db, booking_data(future_day), rules)

    with pytest.raises(CapacityExceededException):
        await update_booking_status(mock_db, booking["id"], "pending", rules)
    assert (await mock_db.bookings.find_one({"id": booking["id"]}))["status"] == "cancelled"

    await update_booking_status(mock_db, other["id"], "cancelled", rules)
    reactivated = await update_booking_status(mock_db, booking["id"], "confirmed", rules)
    assert reactivated["status"] == "confirmed"


async def test_forfeited_is_terminal(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)
    forfeited = await update_booking_status(mock_db, booking["id"], "forfeited", cfg)
    assert forfeited["forfeited_at"]

    with pytest.raises(InvalidStatusTransitionException):
        await update_booking_status(mock_db, booking["id"], "pending", cfg)


async def test_same_status_is_a_no_op(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)

    unchanged = await update_booking_status(mock_db, booking["id"], "pending", cfg)

    assert unchanged["status"] == "pending"
    assert await mock_db.audit_logs.count_documents({"action": "status_change"}) == 0


async def test_unknown_booking_is_not_found(mock_db, cfg):
    with pytest.raises(NotFoundException):
        await update_booking_status(mock_db, "missing", "confirmed", cfg)


# ============== RESCHEDULE ==============

async def test_reschedule_moves_slot_between_days(mock_db, cfg, future_day):
    rules = cfg.model_copy(update={"DEFAULT_DAILY_CAPACITY": 1})
    target = future_day + timedelta(days=5)
    booking = await create_booking(mock_db, booking_data(future_day), rules)

    moved = await reschedule_booking(mock_db, booking["id"], day_key(target), "2:30 PM", rules)

    assert moved["order_date"] == day_key(target)
    assert moved["cake_details"]["pickup_date"] == day_key(target)
    assert moved["cake_details"]["pickup_time"] == "2:30 PM"
    assert (await check_date_availability(mock_db, future_day, 1))["available"] is True
    assert (await check_date_availability(mock_db, target, 1))["available"] is False


async def test_reschedule_into_full_day_is_rejected_without_override(mock_db, cfg, future_day):
    rules = cfg.model_copy(update={"DEFAULT_DAILY_CAPACITY": 1})
    target = future_day + timedelta(days=1)
    await create_booking(mock_db, booking_data(target), rules)
    booking = await create_booking(mock_db, booking_data(future_day), rules)

    with pytest.raises(CapacityExceededException):
        await reschedule_booking(mock_db, booking["id"], target, cfg=rules)

    stored = await mock_db.bookings.find_one({"id": booking["id"]})
    assert stored["order_date"] == day_key(future_day)

    moved = await reschedule_booking(mock_db, booking["id"], target, cfg=rules, override_capacity=True)
    assert moved["order_date"] == day_key(target)


# ============== CUSTOMER SELF-SERVICE ==============

async def test_change_time_updates_pickup_time(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)

    result = await modify_order(mock_db, "#" + booking["order_number"], "change_time", "3:00 PM", cfg)

    assert result["success"] is True
    assert result["order"]["pickupTime"] == "3:00 PM"


async def test_change_time_rejects_bad_format(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)

    with pytest.raises(ValidationException):
        await modify_order(mock_db, booking["order_number"], "change_time", "15 Uhr", cfg)


async def test_push_date_moves_order_forward(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)
    new_day = future_day + timedelta(days=2)

    result = await modify_order(mock_db, booking["order_number"], "push_date", day_key(new_day), cfg)

    assert result["order"]["orderDate"] == day_key(new_day)
    assert (await check_date_availability(mock_db, future_day, 5))["booked"] == 0
    assert (await check_date_availability(mock_db, new_day, 5))["booked"] == 1


async def test_push_date_too_far_is_rejected(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)

    with pytest.raises(ValidationException):
        await modify_order(
            mock_db, booking["order_number"], "push_date", day_key(future_day + timedelta(days=10)), cfg
        )


async def test_forfeit_frees_slot_and_blocks_further_changes(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)

    result = await modify_order(mock_db, booking["order_number"], "forfeit", None, cfg)

    assert result["order"]["status"] == "forfeited"
    assert (await check_date_availability(mock_db, future_day, 5))["booked"] == 0

    with pytest.raises(ValidationException):
        await modify_order(mock_db, booking["order_number"], "change_time", "1:00 PM", cfg)


async def test_unknown_order_and_action(mock_db, cfg, future_day):
    with pytest.raises(NotFoundException):
        await modify_order(mock_db, "0000000000-000", "forfeit", None, cfg)

    booking = await create_booking(mock_db, booking_data(future_day), cfg)
    with pytest.raises(ValidationException):
        await modify_order(mock_db, booking["order_number"], "upgrade", None, cfg)

    assert await find_order_by_number(mock_db, "  ") is None


# ============== CONCURRENT CHANGES ==============

def serve_snapshot(monkeypatch, snapshot):
    """Make lifecycle calls see an outdated copy of a booking"""
    async def outdated_booking(db, booking_id):
        return dict(snapshot)

    monkeypatch.setattr(bookings_module, "get_booking", outdated_booking)


async def test_cancel_on_outdated_day_is_rejected_and_counters_stay_right(mock_db, cfg, future_day, monkeypatch):
    rules = cfg.model_copy(update={"DEFAULT_DAILY_CAPACITY": 1})
    day_a, day_b = future_day, future_day + timedelta(days=1)

    booking = await create_booking(mock_db, booking_data(day_a), rules)
    snapshot = dict(booking)
    await reschedule_booking(mock_db, booking["id"], day_b, cfg=rules)
    await create_booking(mock_db, booking_data(day_a), rules)

    serve_snapshot(monkeypatch, snapshot)
    with pytest.raises(ConflictException):
        await update_booking_status(mock_db, booking["id"], "cancelled", rules)

    assert (await mock_db.day_capacity.find_one({"date": day_key(day_a)}))["reserved"] == 1
    assert (await mock_db.day_capacity.find_one({"date": day_key(day_b)}))["reserved"] == 1
    assert (await mock_db.bookings.find_one({"id": booking["id"]}))["status"] == "pending"

    with pytest.raises(CapacityExceededException):
        await create_booking(mock_db, booking_data(day_a), rules)
    assert (await check_date_availability(mock_db, day_a, 1))["booked"] == 1


async def test_reschedule_from_outdated_day_gives_reserved_slot_back(mock_db, cfg, future_day, monkeypatch):
    day_a = future_day
    day_b = future_day + timedelta(days=1)
    day_c = future_day + timedelta(days=2)

    booking = await create_booking(mock_db, booking_data(day_a), cfg)
    snapshot = dict(booking)
    await reschedule_booking(mock_db, booking["id"], day_b, cfg=cfg)

    serve_snapshot(monkeypatch, snapshot)
    with pytest.raises(ConflictException):
        await reschedule_booking(mock_db, booking["id"], day_c, cfg=cfg)

    assert (await mock_db.day_capacity.find_one({"date": day_key(day_a)}))["reserved"] == 0
    assert (await mock_db.day_capacity.find_one({"date": day_key(day_b)}))["reserved"] == 1
    assert (await mock_db.day_capacity.find_one({"date": day_key(day_c)}))["reserved"] == 0
    assert (await mock_db.bookings.find_one({"id": booking["id"]}))["order_date"] == day_key(day_b)


async def test_lifecycle_results_carry_no_mongo_id(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)

    confirmed = await update_booking_status(mock_db, booking["id"], "confirmed", cfg)
    moved = await reschedule_booking(mock_db, booking["id"], future_day + timedelta(days=1), cfg=cfg)

    assert "_id" not in confirmed
    assert "_id" not in moved


async def test_forfeit_writes_a_single_audit_entry(mock_db, cfg, future_day):
    booking = await create_booking(mock_db, booking_data(future_day), cfg)

    await modify_order(mock_db, booking["order_number"], "forfeit", None, cfg)

    entries = await mock_db.audit_logs.find({"entity_id": booking["id"]}).to_list(None)
    assert [e["action"] for e in entries] == ["create", "modify_by_customer"]
    assert entries[1]["after"] == {"status": "forfeited"}
