"""
Validators - Centralized validation logic
"""
import re

from .config import settings
from .exceptions import ValidationException, InvalidStatusTransitionException

TIME_SLOT_PATTERN = re.compile(r"^\d{1,2}:\d{2}\s*(AM|PM)$", re.IGNORECASE)


def validate_status_transition(current_status: str, new_status: str, transitions: dict = None) -> bool:
    """
    Validate that a status transition is allowed.
    Raises InvalidStatusTransitionException if not allowed.

    Status workflow:
        pending   → confirmed, cancelled, forfeited
        confirmed → pending, cancelled, forfeited
        cancelled → pending, confirmed
        forfeited → (terminal)
    """
    transitions = transitions if transitions is not None else settings.STATUS_TRANSITIONS
    allowed_transitions = transitions.get(current_status, [])

    if new_status not in allowed_transitions:
        raise InvalidStatusTransitionException(current_status, new_status)

    return True


def validate_customer_info(data: dict) -> dict:
    """
    Validate customer contact data.
    Returns cleaned data or raises ValidationException.
    """
    errors = []

    name = (data.get("name") or "").strip()
    if len(name) < 2:
        errors.append("Customer name must be at least 2 characters")

    email = (data.get("email") or "").strip()
    if not email:
        errors.append("Customer email is required")

    phone = data.get("phone")
    if phone:
        cleaned_phone = phone.replace(" ", "").replace("-", "").replace("(", "").replace(")", "")
        if len(cleaned_phone) < 7:
            errors.append("Phone number is too short")

    if errors:
        raise ValidationException("; ".join(errors))

    return {**data, "name": name, "email": email.lower()}


def validate_time_slot(value: str) -> str:
    """Pickup/delivery time like '3:00 PM'"""
    if not value or not TIME_SLOT_PATTERN.match(value.strip()):
        raise ValidationException('Invalid time format. Please use format like "3:00 PM"')
    return value.strip()
