"""
Configuration Management - All configurable values in one place
Loads from environment (.env)
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Dict, List
from functools import lru_cache
import sys
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    # Database - no localhost fallback, MONGO_URL must be set
    MONGO_URL: str = Field(...)
    DB_NAME: str = Field(default="bakerycore")

    # Security - tokens are issued by the identity provider with this secret
    JWT_SECRET: str = Field(...)
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24

    # CORS
    CORS_ORIGINS: str = "*"

    # App
    APP_URL: str = "http://localhost:3000"
    APP_NAME: str = "BakeryCore"

    # Capacity
    DEFAULT_DAILY_CAPACITY: int = Field(default=2, ge=0)
    MAX_RANGE_DAYS: int = Field(default=366, ge=1)

    # Booking window (customer-facing creation only)
    CLOSED_WEEKDAYS: str = ""  # Python weekday numbers, e.g. "6,0,1" = Sun-Tue
    MIN_LEAD_DAYS: int = Field(default=0, ge=0)
    WEEKLY_CAPACITY: int = Field(default=0, ge=0)  # 0 = no weekly cap
    WEEK_START_WEEKDAY: int = Field(default=2, ge=0, le=6)  # Wednesday
    MAX_PUSH_DAYS: int = Field(default=3, ge=1)

    # Status Workflow - allowed transitions
    STATUS_TRANSITIONS: Dict[str, list] = {
        "pending": ["confirmed", "cancelled", "forfeited"],
        "confirmed": ["pending", "cancelled", "forfeited"],
        "cancelled": ["pending", "confirmed"],
        "forfeited": []  # Terminal state
    }

    @field_validator('JWT_SECRET')
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Refuse to start with a guessable JWT_SECRET"""
        unsafe_values = ['change-me', 'change-me-in-production', 'secret', 'jwt-secret', '']
        if v.lower() in unsafe_values or len(v) < 16:
            print("=" * 60, file=sys.stderr)
            print("FATAL: JWT_SECRET is not configured securely!", file=sys.stderr)
            print("Set a proper value in backend/.env (min. 16 characters)", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            sys.exit(1)
        return v

    @field_validator('CLOSED_WEEKDAYS')
    @classmethod
    def validate_closed_weekdays(cls, v: str) -> str:
        for part in v.split(","):
            part = part.strip()
            if part and (not part.isdigit() or int(part) > 6):
                raise ValueError(f"Invalid weekday in CLOSED_WEEKDAYS: {part}")
        return v

    @property
    def closed_weekdays(self) -> List[int]:
        return [int(p) for p in self.CLOSED_WEEKDAYS.split(",") if p.strip()]

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
