# Core Module - Shared configurations and utilities
from .config import settings, get_settings
from .database import db, client, get_db
from .auth import (
    get_current_user,
    require_roles,
    require_admin,
    create_token,
    decode_token
)
from .audit import create_audit_log, audit_snapshot
from .dates import normalize_day, day_key
from .models import UserRole, BookingStatus
from .validators import validate_status_transition, validate_customer_info
from .exceptions import (
    BakeryCoreException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    InvalidDateException,
    ConflictException,
    CapacityExceededException,
    StoreUnavailableException
)

__all__ = [
    'settings', 'get_settings', 'db', 'client', 'get_db',
    'get_current_user', 'require_roles', 'require_admin',
    'create_token', 'decode_token',
    'create_audit_log', 'audit_snapshot',
    'normalize_day', 'day_key',
    'UserRole', 'BookingStatus',
    'validate_status_transition', 'validate_customer_info',
    'BakeryCoreException', 'UnauthorizedException', 'ForbiddenException',
    'NotFoundException', 'ValidationException', 'InvalidDateException',
    'ConflictException', 'CapacityExceededException', 'StoreUnavailableException'
]
