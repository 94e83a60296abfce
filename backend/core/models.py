"""
Shared Enums for bookings, roles and audit
"""
from enum import Enum


class UserRole(str, Enum):
    """User roles"""
    ADMIN = "admin"
    STAFF = "staff"

    @classmethod
    def can_access_admin(cls, role: str) -> bool:
        """Who may use the admin dashboard (blocked dates, bookings)"""
        return role == cls.ADMIN.value


class BookingStatus(str, Enum):
    """Booking status - only active bookings count against capacity"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FORFEITED = "forfeited"

    @classmethod
    def active_values(cls) -> list:
        return [cls.PENDING.value, cls.CONFIRMED.value]

    @classmethod
    def is_active(cls, status: str) -> bool:
        return status in cls.active_values()

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status == cls.FORFEITED.value


class FulfillmentType(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class ModifyAction(str, Enum):
    """Customer self-service order modifications"""
    CHANGE_TIME = "change_time"
    PUSH_DATE = "push_date"
    FORFEIT = "forfeit"


class AuditAction(str, Enum):
    """Audit log action types"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STATUS_CHANGE = "status_change"
    RESCHEDULE = "reschedule"
    MODIFY_BY_CUSTOMER = "modify_by_customer"
