"""
Audit Logging - every blocked-date and booking mutation leaves a trail

Entries record who changed what (actor), on which record (entity/entity_id)
and the state before/after. Customer contact details are masked, so the
trail can be shown in the dashboard without exposing emails or phone numbers.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional
import uuid

from motor.motor_asyncio import AsyncIOMotorDatabase

# Customer self-service changes (order lookup by number, no login)
CUSTOMER_ACTOR = {
    "id": "customer",
    "email": "customer@bakerycore.local",
    "role": "customer"
}

HIDDEN_FIELDS = {"_id", "password", "password_hash", "token"}
MASKED_FIELDS = {"email", "phone"}


def mask_contact(value: Any) -> Any:
    """'jane@example.com' -> 'j***@example.com', '555-123-4567' -> '***4567'"""
    if not isinstance(value, str) or not value:
        return value
    if "@" in value:
        local, _, domain = value.partition("@")
        return f"{local[:1]}***@{domain}"
    return f"***{value[-4:]}"


def audit_snapshot(obj: Optional[dict]) -> Optional[dict]:
    """Copy of a record fit for the audit trail: no internals, masked contact data, ISO dates"""
    if obj is None:
        return None

    snapshot = {}
    for key, value in obj.items():
        if key in HIDDEN_FIELDS:
            continue
        if isinstance(value, dict):
            snapshot[key] = audit_snapshot(value)
        elif isinstance(value, (date, datetime)):
            snapshot[key] = value.isoformat()
        elif key in MASKED_FIELDS:
            snapshot[key] = mask_contact(value)
        else:
            snapshot[key] = value

    return snapshot


async def create_audit_log(
    db: AsyncIOMotorDatabase,
    actor: dict,
    entity: str,
    entity_id: str,
    action: str,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> dict:
    """
    Write one audit entry.

    Args:
        db: Target database
        actor: Admin user dict (id, email, role) or CUSTOMER_ACTOR
        entity: 'blocked_date' or 'booking'
        entity_id: Record id
        action: AuditAction value
        before/after: Record state around the change (optional)
        metadata: e.g. {"override_capacity": True} (optional)
    """
    entry = {
        "id": str(uuid.uuid4()),
        "actor_id": actor.get("id", "unknown"),
        "actor_email": actor.get("email", "unknown"),
        "actor_role": actor.get("role"),
        "entity": entity,
        "entity_id": entity_id,
        "action": action,
        "before": audit_snapshot(before),
        "after": audit_snapshot(after),
        "metadata": metadata,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    await db.audit_logs.insert_one(entry)
    entry.pop("_id", None)
    return entry
