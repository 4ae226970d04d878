import logging
import os
import subprocess
import sys
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

import click
import uvicorn
from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from elearning.core.cache import ping_redis
from elearning.core.config import settings
from elearning.core.database import Base, SessionLocal, engine
from elearning.core.decorator import DBException
from elearning.core.init import init_default_admin, initialize_application
from elearning.core.limiter import custom_rate_limit_exceeded_handler, limiter
from elearning.core.scheduler import shutdown_scheduler, start_scheduler
from elearning.models import *
from elearning.routers import routes

# ============================================================================
# Directory Setup
# ============================================================================
BASE_DIR = Path(__file__).parent
LOGS_DIR = BASE_DIR / "logs"
STORAGE_DIR = Path(settings.upload_dir)
if not STORAGE_DIR.is_absolute():
    STORAGE_DIR = BASE_DIR / STORAGE_DIR

# Create directories with proper permissions
for directory in [LOGS_DIR, STORAGE_DIR, STORAGE_DIR / "courses", STORAGE_DIR / "users"]:
    directory.mkdir(parents=True, exist_ok=True)
    os.chmod(directory, 0o755)


# ============================================================================
# Logging Configuration
# ============================================================================
def setup_logging():
    """Configure logging for the application."""
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] %(message)s"

    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(
            LOGS_DIR / "app.log",
            mode="a",
            encoding="utf-8",
        ),
    ]

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    # Suppress verbose third-party logs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    return logging.getLogger(__name__)


logger = setup_logging()


# ============================================================================
# Application Lifespan
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema, seed the admin and run the expiry scheduler."""
    logger.info("=" * 80)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info("=" * 80)

    try:
        Base.metadata.create_all(bind=engine)
        logger.info(f"✓ Schema ready ({len(Base.metadata.tables)} tables)")

        db = SessionLocal()
        try:
            initialize_application(db)
        finally:
            db.close()
    except SQLAlchemyError as e:
        logger.error(f"✗ Database setup failed: {e}", exc_info=True)
        raise

    scheduler = start_scheduler() if settings.scheduler_enabled else None
    if scheduler is None:
        logger.info("Enrollment expiry scheduler disabled")
    logger.info(f"✓ Serving uploads from {STORAGE_DIR.absolute()}")

    yield

    logger.info("=" * 80)
    logger.info("Shutting down...")
    logger.info("=" * 80)
    shutdown_scheduler(scheduler)


# ============================================================================
# FastAPI Application
# ============================================================================
app = FastAPI(
    title=settings.app_name,
    description=settings.app_description,
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    debug=settings.debug,
    lifespan=lifespan,
)

# ============================================================================
# Middleware Configuration
# ============================================================================
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{time.perf_counter() - started:.4f}"
    return response


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    # Clients may pass their own id to correlate logs
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Exception Handlers
# ============================================================================
@app.exception_handler(DBException)
async def db_exception_handler(request: Request, exc: DBException):
    logger.error(f"Database exception: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "type": "database_error"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    details = []
    for error in exc.errors():
        details.append(
            {
                "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
                "message": error.get("msg"),
                "type": error.get("type"),
            }
        )
    return JSONResponse(
        status_code=422,
        content={"detail": "Validation error", "errors": details},
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"SQLAlchemy error: {type(exc).__name__}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Database error occurred",
            "type": str(type(exc).__name__),
        },
    )


app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)


# ============================================================================
# Health Check Endpoints
# ============================================================================
@app.get("/")
async def root():
    """Root endpoint with basic application info."""
    return {
        "app_name": settings.app_name,
        "version": settings.app_version,
        "status": "healthy",
        "environment": "production" if settings.production else "development",
        "api_prefix": settings.api_prefix,
    }


@app.get("/health")
@limiter.limit("10/minute")
async def health_check(request: Request):
    """Detailed health check endpoint."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        db_status = "unhealthy"
    finally:
        db.close()

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "timestamp": time.time(),
        "environment": "production" if settings.production else "development",
        "database": db_status,
        "storage": "healthy" if STORAGE_DIR.exists() else "unhealthy",
        "redis": ("healthy" if ping_redis() else "unavailable")
        if settings.redis_enabled
        else "disabled",
    }


# ============================================================================
# Static Files & Routes
# ============================================================================
# Mount static files BEFORE including routers
app.mount(
    "/storage",
    StaticFiles(directory=str(STORAGE_DIR.absolute())),
    name="storage",
)
logger.info(f"✓ Static files mounted: /storage -> {STORAGE_DIR.absolute()}")

# Include application routers
for router in routes:
    app.include_router(router, prefix=settings.api_prefix)

logger.info(f"✓ Registered {len(routes)} routers under {settings.api_prefix}")


# ============================================================================
# CLI Commands
# ============================================================================
@click.group()
def cli():
    """E-learning API management CLI."""
    pass


def run_migrations():
    try:
        alembic_cfg = Config(str(BASE_DIR / "alembic.ini"))
        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations completed successfully")
    except Exception as e:
        logger.error(f"Migration failed: {e}")
        raise click.ClickException(f"Migration failed: {e}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to run the server on")
@click.option("--reload", is_flag=True, help="Enable auto-reload (development only)")
def dev(host: str, port: int, reload: bool):
    """Run development server with Uvicorn."""
    logger.info(f"Starting Uvicorn on {host}:{port} (reload={reload})")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to run the server on")
@click.option("--workers", default=4, help="Number of worker processes")
def prod(host: str, port: int, workers: int):
    """Apply migrations, then serve with Gunicorn and Uvicorn workers."""
    run_migrations()

    logger.info(f"Starting Gunicorn on {host}:{port} with {workers} workers")

    cmd = [
        "gunicorn",
        "main:app",
        "--worker-class",
        "uvicorn.workers.UvicornWorker",
        "--workers",
        str(workers),
        "--bind",
        f"{host}:{port}",
        "--access-logfile",
        "-",
        "--error-logfile",
        "-",
        "--log-level",
        "info",
        "--timeout",
        "120",
        "--graceful-timeout",
        "30",
        "--keep-alive",
        "5",
    ]

    try:
        # Blocks until Gunicorn exits
        subprocess.run(cmd, check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"Gunicorn failed to start: {e}")
        raise click.ClickException(str(e))
    except FileNotFoundError:
        logger.error("Gunicorn not found. Install it with: pip install gunicorn")
        raise click.ClickException("Gunicorn not installed")


@cli.command()
def migrate():
    """Apply database migrations."""
    run_migrations()


@cli.command("create-admin")
@click.option("--email", default=None, help="Admin email (defaults to ADMIN_DEFAULT_EMAIL)")
@click.option("--password", default=None, help="Admin password (defaults to ADMIN_DEFAULT_PASSWORD)")
def create_admin(email, password):
    """Create the admin account if no admin exists yet."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = init_default_admin(db, email=email, password=password)
        click.echo(f"Admin account: {admin.email} (ID: {admin.id})")
    finally:
        db.close()


@cli.command()
def info():
    """Display application information."""
    click.echo(f"Application: {settings.app_name} v{settings.app_version}")
    click.echo(f"Environment: {'production' if settings.production else 'development'}")
    click.echo(f"API Prefix: {settings.api_prefix}")
    click.echo(f"Database: {engine.url.render_as_string(hide_password=True)}")
    click.echo(f"Redis: {settings.redis_url if settings.redis_enabled else 'disabled'}")
    click.echo(f"Rate Limiting: {settings.rate_limit_enabled} (auth: {settings.auth_rate_limit})")
    click.echo(
        f"Expiry Scheduler: {settings.scheduler_enabled} "
        f"(every {settings.enrollment_expiry_check_minutes} min)"
    )
    click.echo(f"Certificates: {settings.certificate_base_url}")
    click.echo(f"Storage Directory: {STORAGE_DIR.absolute()}")


if __name__ == "__main__":
    cli()
