"""
BakeryCore API v1.0.0 - Custom Cake Booking
Features: Date Availability, Per-Day Capacity, Blocked Dates, Booking Lifecycle
"""
from fastapi import FastAPI, APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Core imports
from core.config import settings
from core.database import db, get_db, close_db_connection, check_db_connection, ensure_indexes
from core.exceptions import BakeryCoreException, StoreUnavailableException

# Blocked Dates Module (Admin: closures & capacity overrides)
from blocked_dates_module import blocked_dates_router

# Booking Capacity Module (Public: availability)
from booking_capacity import availability_router

# Bookings Module (Checkout, Status, Reschedule, Self-Service)
from bookings_module import bookings_router


# ============== APP SETUP ==============
app = FastAPI(
    title="BakeryCore API",
    version="1.0.0",
    description="Custom cake booking with per-day capacity"
)

api_router = APIRouter(prefix="/api")

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


# ============== EXCEPTION HANDLERS ==============
@app.exception_handler(BakeryCoreException)
async def bakerycore_exception_handler(request: Request, exc: BakeryCoreException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code, "success": False}
    )

@app.exception_handler(PyMongoError)
async def store_exception_handler(request: Request, exc: PyMongoError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    unavailable = StoreUnavailableException()
    return JSONResponse(
        status_code=unavailable.status_code,
        content={"detail": unavailable.detail, "error_code": unavailable.error_code, "success": False}
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred", "error_code": "INTERNAL_ERROR", "success": False}
    )


# ============== HEALTH ==============
@api_router.get("/health", tags=["System"])
async def health(database: AsyncIOMotorDatabase = Depends(get_db)):
    database_ok = await check_db_connection(database)
    return {
        "status": "ok" if database_ok else "degraded",
        "database": "connected" if database_ok else "unavailable",
        "app": settings.APP_NAME
    }


app.include_router(api_router)
app.include_router(blocked_dates_router, prefix="/api")
app.include_router(availability_router, prefix="/api")
app.include_router(bookings_router, prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=settings.CORS_ORIGINS.split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    """Ensure indexes so blocked dates and day counters stay one-per-day"""
    try:
        await ensure_indexes(db)
    except PyMongoError as e:
        logger.error(f"❌ Index setup failed, one-record-per-day is not enforced: {e}")

    logger.info(
        f"{settings.APP_NAME} started - default capacity {settings.DEFAULT_DAILY_CAPACITY}/day"
    )


@app.on_event("shutdown")
async def shutdown():
    await close_db_connection()
