"""
Custom exceptions for consistent error handling
"""
from fastapi import HTTPException, status


class BakeryCoreException(HTTPException):
    """Base exception for BakeryCore"""
    def __init__(self, status_code: int, detail: str, error_code: str = None):
        super().__init__(status_code=status_code, detail=detail)
        self.error_code = error_code


class UnauthorizedException(BakeryCoreException):
    """401 - Authentication required or failed"""
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED"
        )


class ForbiddenException(BakeryCoreException):
    """403 - Authenticated but not allowed"""
    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN"
        )


class NotFoundException(BakeryCoreException):
    """404 - Resource not found"""
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
            error_code="NOT_FOUND"
        )


class ValidationException(BakeryCoreException):
    """400 - Validation error"""
    def __init__(self, detail: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )


class InvalidDateException(ValidationException):
    """400 - Date input cannot be normalized to a calendar day"""
    def __init__(self, value=None):
        detail = "Invalid date (expected YYYY-MM-DD)"
        if value not in (None, ""):
            detail = f"Invalid date: {value!r} (expected YYYY-MM-DD)"
        super().__init__(detail=detail, error_code="INVALID_DATE")


class ConflictException(BakeryCoreException):
    """409 - Resource conflict"""
    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code
        )


class CapacityExceededException(ConflictException):
    """No slot left on the requested day"""
    def __init__(self, date_str: str, capacity: int):
        if capacity <= 0:
            detail = f"{date_str} is not available for orders"
        else:
            plural = "s" if capacity != 1 else ""
            detail = f"{date_str} is fully booked ({capacity} cake{plural} maximum per day)"
        super().__init__(detail=detail, error_code="CAPACITY_EXCEEDED")


class DateUnavailableException(ConflictException):
    """Day rejected by a booking window rule (closed weekday, lead time, weekly cap)"""
    def __init__(self, detail: str):
        super().__init__(detail=detail, error_code="DATE_UNAVAILABLE")


class InvalidStatusTransitionException(ValidationException):
    """Invalid status transition"""
    def __init__(self, current: str, target: str):
        super().__init__(
            detail=f"Invalid status transition: {current} → {target}",
            error_code="INVALID_STATUS_TRANSITION"
        )


class StoreUnavailableException(BakeryCoreException):
    """503 - Document store unreachable or failing"""
    def __init__(self, detail: str = "Database temporarily unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="STORE_UNAVAILABLE"
        )
