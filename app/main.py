import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .cors import CORSHeadersMiddleware
from .errors import EmailServiceError
from .routes import (
    HEALTH_PATH,
    health_router,
    jobs_router,
    proposals_router,
    verification_router,
)

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Pydantic error types that mean "the field was not provided"
REQUIRED_ERROR_TYPES = {"missing", "string_too_short", "too_short", "greater_than"}
UNION_MEMBER_TAGS = {"str", "int", "float", "bool"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(
        f"{settings.service_name} starting up (SMTP relay {settings.email_host}:{settings.email_port})"
    )
    if not settings.email_api_key:
        logger.error("EMAIL_API_KEY not configured - every send endpoint will answer 401")
    if not settings.email_user:
        logger.warning("EMAIL_USER not configured - sends will fail until it is set")
    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Velocity Email Service", version="1.0.0", lifespan=lifespan)


def _is_union_tag(part: str) -> bool:
    # Union members show up in loc as their type name ("Salary", "str")
    return part in UNION_MEMBER_TAGS or part[:1].isupper()


def _field_path(loc) -> str:
    path = ""
    for part in loc[1:]:
        if isinstance(part, int):
            path += f"[{part}]"
        elif _is_union_tag(part):
            continue
        else:
            path += f".{part}" if path else str(part)
    return path


def describe_validation_error(error: dict) -> str:
    """Turn one pydantic error into a message naming the offending field"""
    field = _field_path(error.get("loc", ()))
    error_type = error.get("type")
    if not field:
        if error_type == "missing":
            return "Request body is required"
        return "Request body must be a JSON object"
    if error_type in REQUIRED_ERROR_TYPES or error.get("input") is None:
        return f"{field} is required"
    return f"{field} is invalid: {error.get('msg')}"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report payload problems as 400 with the first offending field named"""
    errors = exc.errors()
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    message = describe_validation_error(errors[0]) if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(EmailServiceError)
async def email_service_exception_handler(request: Request, exc: EmailServiceError):
    """Service errors raised outside a route handler, e.g. bad settings in a dependency"""
    logger.error(f"❌ {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = "Method not allowed" if exc.status_code == 405 else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise
    duration_ms = (time.time() - start_time) * 1000
    logger.info(f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.0f}ms)")
    return response


# Outermost: preflight is answered before routing and authentication
app.add_middleware(CORSHeadersMiddleware, read_only_paths=[HEALTH_PATH])

# Routes
app.include_router(health_router)
app.include_router(jobs_router)
app.include_router(proposals_router)
app.include_router(verification_router)
