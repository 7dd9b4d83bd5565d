from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from http import HTTPStatus
import logging
import os
import sys

from taskflow import models
from taskflow.database import Base, SessionLocal, engine
from taskflow.time_utils import utc_now
from taskflow.auth.routes import router as auth_router
from taskflow.routers import (
    activity,
    attachments,
    comments,
    labels,
    live,
    notifications,
    projects,
    search,
    subtasks,
    tasks,
    users,
)

# Configure logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(
    title="TaskFlow API",
    description="Collaborative project and task management with live notifications",
    version="1.0.0",
)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
    if origin.strip()
]

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users.router)
app.include_router(projects.router)
app.include_router(tasks.router)
app.include_router(subtasks.router)
app.include_router(comments.router)
app.include_router(labels.router)
app.include_router(attachments.router)
app.include_router(notifications.router)
app.include_router(activity.router)
app.include_router(search.router)
app.include_router(live.router)


# ============== Error envelope ==============

def error_response(request: Request, status_code: int, message, headers=None) -> JSONResponse:
    """Render an error in the shape every endpoint shares."""
    try:
        label = HTTPStatus(status_code).phrase
    except ValueError:
        label = "Error"
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "message": message,
            "error": label,
            "timestamp": utc_now().isoformat(),
            "path": request.url.path,
        },
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(request, exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    logger.debug(f"Validation failed on {request.url.path}: {messages}")
    return error_response(request, status.HTTP_400_BAD_REQUEST, messages)


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    logger.info(f"Integrity error on {request.url.path}: {exc.orig}")
    return error_response(request, status.HTTP_409_CONFLICT, "Resource conflicts with existing data")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# ============== Startup ==============

@app.on_event("startup")
async def ensure_admin_user():
    """
    Create tables and make sure an admin account exists.

    Seeding is controlled by SEED_ADMIN (default true). ADMIN_EMAIL and
    ADMIN_PASSWORD choose the credentials; production-like environments
    refuse the default or a short password and exit.
    """
    from taskflow.auth.security import hash_password, is_production_like

    Base.metadata.create_all(bind=engine)

    if os.environ.get("SEED_ADMIN", "true").lower() not in ("1", "true", "yes"):
        logger.info("Admin seeding disabled (SEED_ADMIN)")
        return

    admin_email = os.environ.get("ADMIN_EMAIL", "admin@example.com").lower()
    admin_password = os.environ.get("ADMIN_PASSWORD", "admin123")
    is_default_password = admin_password.strip() == "admin123"

    if is_production_like():
        if not admin_password.strip() or is_default_password or len(admin_password.strip()) < 8:
            logger.error(
                "=" * 80 + "\n"
                "❌ STARTUP FAILED: Secure ADMIN_PASSWORD is required in production/staging!\n"
                "❌ It must not be the default and must be at least 8 characters long.\n"
                "❌ Example: ADMIN_PASSWORD=$(openssl rand -base64 32)\n" +
                "=" * 80
            )
            sys.exit(1)

    db = SessionLocal()
    try:
        admin = db.query(models.User).filter(models.User.email == admin_email).first()
        if admin:
            logger.info(f"Admin user already exists (email: {admin_email})")
            return

        admin = models.User(
            name="Admin",
            email=admin_email,
            role=models.UserRole.ADMIN,
            password_hash=hash_password(admin_password),
            is_active=True,
        )
        db.add(admin)
        db.commit()

        if is_default_password:
            logger.warning(
                "=" * 80 + "\n"
                f"⚠️  SECURITY WARNING: Admin user {admin_email} created with DEFAULT password 'admin123'\n"
                "⚠️  Set ADMIN_PASSWORD environment variable to use a custom password.\n" +
                "=" * 80
            )
        else:
            logger.info(f"✅ Admin user created with password from ADMIN_PASSWORD (email: {admin_email})")
    except Exception as e:
        logger.error(f"Failed to ensure admin user exists: {e}")
        db.rollback()
    finally:
        db.close()


@app.get("/health")
def health_check():
    return {"status": "healthy"}
