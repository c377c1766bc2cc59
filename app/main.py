# app/main.py - Application factory, middleware and router registration
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import traceback
import time

from app.core.config import settings
from app.core.db import get_engine, health_check as db_health_check
from app.core.exceptions import PortalError
from app.models.base import Base
from app.api.routers import auth, fees, payments, registration, students
from app.api.routers import assignments, library, activities, notifications, marks


LOG_FORMATS = {
    "simple": "%(levelname)s - %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format=LOG_FORMATS.get(settings.LOG_FORMAT, LOG_FORMATS["detailed"])
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"Starting {settings.API_TITLE}...")
    logger.info(f"Environment: {settings.ENV}")
    logger.info(f"Database URL: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'local'}")

    engine = get_engine()

    # Migrations own the schema outside development
    if settings.is_development:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)

    yield

    logger.info(f"Shutting down {settings.API_TITLE}...")


app = FastAPI(
    title=settings.API_TITLE,
    description="School portal: fees, registration, assignments, library, activities and notifications",
    version=settings.API_VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=3600,
)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    """Business errors raised by services"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.error_code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc.error_code} {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_code": exc.error_code}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    logger.error(traceback.format_exc())

    if settings.is_development:
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc), "error_code": "INTERNAL_ERROR"}
        )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_code": "INTERNAL_ERROR"}
    )


@app.get("/health")
def health():
    database = db_health_check()
    return {
        "status": "healthy" if database.get("status") == "healthy" else "degraded",
        "environment": settings.ENV,
        "version": settings.API_VERSION,
        "database": database,
    }


logger.info("Registering API routers...")
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(fees.router, prefix="/api/fees", tags=["Fees"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])
app.include_router(registration.router, prefix="/api/registration", tags=["Registration"])
app.include_router(students.router, prefix="/api/students", tags=["Students"])
app.include_router(assignments.router, prefix="/api/assignments", tags=["Assignments"])
app.include_router(library.router, prefix="/api/library", tags=["Library"])
app.include_router(activities.router, prefix="/api/activities", tags=["Activities"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(marks.router, prefix="/api/marks", tags=["Marks"])


@app.get("/")
def root():
    return {
        "message": settings.API_TITLE,
        "school": settings.SCHOOL_NAME,
        "version": settings.API_VERSION,
        "docs_url": "/docs" if settings.is_development else "Documentation disabled in production",
    }


def run():
    """Console entry point: serve the app with uvicorn"""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG and settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
