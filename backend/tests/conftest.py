"""Test fixtures for the BakeryCore backend."""
import os
import uuid
from datetime import timedelta

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-bakerycore")
os.environ.setdefault("DB_NAME", "bakerycore_test")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from core.auth import create_token
from core.config import settings
from core.database import get_db
from core.dates import day_key, today_utc
from core.models import UserRole
from server import app


@pytest.fixture(autouse=True)
def default_booking_rules(monkeypatch):
    """Every test starts from the same capacity and booking window settings."""
    monkeypatch.setattr(settings, "DEFAULT_DAILY_CAPACITY", 2)
    monkeypatch.setattr(settings, "CLOSED_WEEKDAYS", "")
    monkeypatch.setattr(settings, "MIN_LEAD_DAYS", 0)
    monkeypatch.setattr(settings, "WEEKLY_CAPACITY", 0)
    monkeypatch.setattr(settings, "MAX_PUSH_DAYS", 3)


@pytest.fixture()
def mock_db():
    """Fresh in-memory database per test."""
    return AsyncMongoMockClient()[f"bakerycore_test_{uuid.uuid4().hex[:8]}"]


@pytest.fixture()
def cfg():
    """Settings with a default capacity of 5 per day."""
    return settings.model_copy(update={"DEFAULT_DAILY_CAPACITY": 5})


@pytest.fixture()
def future_day():
    """A day far enough ahead to pass the booking window."""
    return today_utc() + timedelta(days=30)


@pytest.fixture()
def make_booking(mock_db):
    """Insert a raw ledger entry, bypassing the capacity path."""
    async def _make(day, status="pending", **extra):
        doc = {
            "id": str(uuid.uuid4()),
            "order_number": f"{uuid.uuid4().int % 10**10:010d}-{uuid.uuid4().int % 1000:03d}",
            "order_date": day_key(day),
            "status": status,
            "customer_info": {"name": "Test Customer", "email": "customer@example.com"},
            "cake_details": {"product_name": "Vanilla Dream", "fulfillment_type": "pickup"},
        }
        doc.update(extra)
        await mock_db.bookings.insert_one(doc)
        doc.pop("_id", None)
        return doc

    return _make


@pytest.fixture()
def booking_payload(future_day):
    return {
        "orderDate": day_key(future_day),
        "customerInfo": {"name": "Jane Baker", "email": "jane@example.com", "phone": "555-123-4567"},
        "cakeDetails": {
            "product_name": "Strawberry Shortcake",
            "size": "8 inch",
            "flavor": "strawberry",
            "price": 65,
            "fulfillment_type": "pickup",
            "pickup_time": "12:00 PM",
        },
    }


@pytest_asyncio.fixture()
async def admin_user(mock_db):
    user = {
        "id": str(uuid.uuid4()),
        "email": "owner@example.com",
        "name": "Owner",
        "role": UserRole.ADMIN.value,
        "is_active": True,
        "archived": False,
    }
    await mock_db.users.insert_one(user)
    user.pop("_id", None)
    return user


@pytest.fixture()
def admin_headers(admin_user):
    token = create_token(admin_user["id"], admin_user["email"], admin_user["role"])
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def staff_headers(mock_db):
    user = {
        "id": str(uuid.uuid4()),
        "email": "helper@example.com",
        "name": "Helper",
        "role": UserRole.STAFF.value,
        "is_active": True,
        "archived": False,
    }
    await mock_db.users.insert_one(user)
    token = create_token(user["id"], user["email"], user["role"])
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def client(mock_db):
    """Async client against the app, wired to the in-memory database."""
    app.dependency_overrides[get_db] = lambda: mock_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()
