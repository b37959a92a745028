"""FastAPI application entry point."""
import os

# Force UTC before any module caches timezone information
os.environ['TZ'] = 'UTC'

import asyncio
import time

if hasattr(time, "tzset"):
    time.tzset()

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager
from typing import Optional

from backend.config import get_settings
from backend.dependencies import get_optional_user
from backend.models.user import User
from backend.version import APP_VERSION
from backend.routers import health, router as api_router
from backend.utils.exceptions import DecisionJarError

# Create logs directory if it doesn't exist
logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

log_file = logs_dir / "decision_jar.log"
sql_log_file = logs_dir / "decision_jar_sql.log"
api_log_file = logs_dir / "decision_jar_api.log"

# General logs: 1MB per file, keep 5 backups
rotating_handler = RotatingFileHandler(
    log_file,
    maxBytes=1024 * 1024,
    backupCount=5,
    encoding='utf-8',
)
rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

# SQL logs: 1MB per file, keep 5 backups
sql_rotating_handler = RotatingFileHandler(
    sql_log_file,
    maxBytes=1024 * 1024,
    backupCount=5,
    encoding='utf-8',
)
sql_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

# API request logs: 2MB per file, keep 15 backups
api_rotating_handler = RotatingFileHandler(api_log_file, maxBytes=2 * 1024 * 1024, backupCount=15, encoding='utf-8')
api_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))

# force=True overrides any configuration uvicorn installed first
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        rotating_handler,
    ],
    force=True,
)

logger = logging.getLogger(__name__)

api_logger = logging.getLogger("decision_jar.api")
api_logger.handlers.clear()
api_logger.addHandler(api_rotating_handler)
api_logger.setLevel(logging.INFO)
api_logger.propagate = False

uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.setLevel(logging.INFO)
if rotating_handler not in uvicorn_access_logger.handlers:
    uvicorn_access_logger.addHandler(rotating_handler)

sqlalchemy_logger = logging.getLogger("sqlalchemy.engine.Engine")
sqlalchemy_logger.handlers.clear()
sqlalchemy_logger.addHandler(sql_rotating_handler)
sqlalchemy_logger.setLevel(logging.INFO)
sqlalchemy_logger.propagate = False


class SQLTransactionFilter(logging.Filter):
    def filter(self, record):
        if record.levelno == logging.INFO and hasattr(record, 'getMessage'):
            message = record.getMessage()

            if any(keyword in message for keyword in ['ROLLBACK', 'BEGIN', 'COMMIT', 'generated in']):
                return False

            # Collapse multi-line statements onto one line
            if any([kw in message for kw in ['SELECT', 'DELETE', 'INSERT', 'UPDATE']]):
                record.msg = ' '.join(message.split())
                record.args = ()

        return True


sqlalchemy_logger.addFilter(SQLTransactionFilter())

settings = get_settings()


async def vote_expiry_cycle():
    """
    Background task resolving vote sessions whose deadline has passed.

    Reads resolve expired sessions on their own; this sweep only makes sure
    nobody has to poll for a result to be recorded.
    """
    from backend.database import AsyncSessionLocal
    from backend.services.vote_service import VoteService

    interval = settings.vote_expiry_sweep_interval_seconds
    logger.info(f"Vote expiry sweep starting (every {interval}s)")

    while True:
        try:
            async with AsyncSessionLocal() as db:
                await VoteService(db).resolve_expired_sessions()
        except Exception as e:
            logger.error(f"Vote expiry sweep error: {e}")

        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Manage application startup and shutdown tasks."""
    logger.info("=" * 60)
    logger.info(f"{settings.app_name} API Starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'}")
    logger.info("=" * 60)

    expiry_task = None
    if settings.vote_expiry_sweep_enabled:
        expiry_task = asyncio.create_task(vote_expiry_cycle())
    else:
        logger.info("Vote expiry sweep disabled; expired votes resolve when polled")

    try:
        yield
    finally:
        if expiry_task:
            logger.info("Shutting down background tasks...")
            expiry_task.cancel()
            try:
                await asyncio.wait_for(expiry_task, timeout=2.0)
            except asyncio.CancelledError:
                logger.info("Vote expiry sweep task cancelled")
            except asyncio.TimeoutError:
                logger.warning("Vote expiry sweep task did not cancel within timeout, forcing shutdown")

        logger.info(f"{settings.app_name} API Shutting Down... Goodbye!")


app = FastAPI(
    title=f"{settings.app_name} API",
    description="Shared idea jars with random spins and group voting",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(DecisionJarError)
async def decision_jar_exception_handler(request: Request, exc: DecisionJarError):
    """Render domain errors as ``{"error": message}`` with their status code."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field"
        errors.append({
            "field": field_path,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={
            "error": "Request validation failed",
            "errors": errors,
        }
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Server Error"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every API request and response to the dedicated API log file,
    with timing, status code and client address.
    """
    start_time = time.time()

    client_ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent", "unknown")
    method = request.method
    path = request.url.path
    query_params = str(request.query_params) if request.query_params else ""

    request_id = f"{method}:{path}:{int(start_time * 1000) % 100000}"

    api_logger.info(f">> {request_id} | START | {method} {path} | IP: {client_ip} | UA: {user_agent[:50]}...")
    if query_params:
        api_logger.info(f">> {request_id} | QUERY | {query_params}")

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        api_logger.error(
            f"<< {request_id} | EXCEPTION | {method} {path} | "
            f"Error: {str(e)[:100]} | "
            f"Time: {process_time:.3f}s | "
            f"IP: {client_ip}"
        )
        raise

    process_time = time.time() - start_time
    api_logger.info(
        f"<< {request_id} | COMPLETE | {method} {path} | "
        f"Status: {response.status_code} | "
        f"Time: {process_time:.3f}s | "
        f"IP: {client_ip}"
    )
    if response.status_code >= 400:
        api_logger.warning(
            f"<< {request_id} | ERROR_RESPONSE | "
            f"Content-Type: {response.headers.get('content-type', 'unknown')}"
        )
    return response


allowed_origins = os.getenv("ALLOWED_ORIGINS", "").split(",")
if not allowed_origins or allowed_origins == [""]:
    allowed_origins = [
        settings.frontend_url,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(api_router)
app.include_router(health.router, tags=["health"])


@app.get("/")
async def root(user: Optional[User] = Depends(get_optional_user)):
    """Root endpoint."""
    return {
        "message": f"{settings.app_name} API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "authenticated": user is not None,
        "docs": "/docs",
    }
