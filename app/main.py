import logging
from contextlib import asynccontextmanager
from typing import Annotated, List

from fastapi import FastAPI, Response, Request, Depends, HTTPException, Path, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings
from app.errors import InvalidCredentials, StorageFailure, ValidationError
from app.storage import init_db, check_db_health
from app.services import AccountService, MessageService, get_account_service, get_message_service
from app.logging_utils import setup_logging, RequestLoggingMiddleware, log_operation_data
from app.metrics import get_metrics, get_metrics_content_type
from app.schemas import (
    AccountRecord,
    AccountRequest,
    ErrorResponse,
    HealthResponse,
    INT64_MAX,
    INT64_MIN,
    MessageRecord,
    MessageRequest,
    MessageUpdateRequest,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables
    """
    init_db()
    yield


app = FastAPI(
    title="Social Media API",
    description="Account registration/login and message CRUD backed by a relational store",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed JSON or mistyped fields are client errors: 400, not 422."""
    logger.warning(f"Malformed payload on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "malformed request payload"},
    )


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    """Store errors surface as 503 without leaking driver details."""
    logger.error(f"Storage failure on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "storage unavailable"},
    )


def _account_body(account: AccountRecord) -> dict:
    if settings.EXPOSE_PASSWORD_IN_RESPONSE:
        return account.model_dump()
    return account.model_dump(exclude={"password"})


def _empty_ok() -> Response:
    return Response(status_code=status.HTTP_200_OK)


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness probe - always returns 200 once the app is running."""
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the DB is reachable and both
    tables exist. Otherwise returns 503 (Service Unavailable).
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Account Routes
# =============================================================================

@app.post(
    "/register",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or duplicate account"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    }
)
def register(
    payload: AccountRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
) -> dict:
    """
    Register a new account.

    - username must be non-blank and not already taken
    - password must be at least 4 characters
    """
    logger.info(f"POST /register: username={payload.username}")
    try:
        account = service.register_account(payload.username, payload.password)
    except ValidationError as e:
        log_operation_data(request, "register", "validation_error")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except StorageFailure:
        log_operation_data(request, "register", "storage_failure")
        raise

    log_operation_data(request, "register", "ok")
    return _account_body(account)


@app.post(
    "/login",
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    }
)
def login(
    payload: AccountRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
) -> dict:
    """Verify a username/password pair and return the matching account."""
    logger.info(f"POST /login: username={payload.username}")
    try:
        account = service.login(payload.username, payload.password)
    except InvalidCredentials as e:
        log_operation_data(request, "login", "invalid_credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    except StorageFailure:
        log_operation_data(request, "login", "storage_failure")
        raise

    log_operation_data(request, "login", "ok")
    return _account_body(account)


# =============================================================================
# Message Routes
# =============================================================================

@app.post(
    "/messages",
    response_model=MessageRecord,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid message or unknown author"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    }
)
def post_message(
    payload: MessageRequest,
    request: Request,
    service: MessageService = Depends(get_message_service),
) -> MessageRecord:
    """Create a message authored by an existing account."""
    logger.info(f"POST /messages: posted_by={payload.posted_by}")
    try:
        message = service.post_message(payload.posted_by, payload.message_text, payload.time_posted_epoch)
    except ValidationError as e:
        log_operation_data(request, "post_message", "validation_error")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except StorageFailure:
        log_operation_data(request, "post_message", "storage_failure")
        raise

    log_operation_data(request, "post_message", "ok")
    return message


@app.get("/messages", response_model=List[MessageRecord])
def list_messages(
    service: MessageService = Depends(get_message_service),
) -> List[MessageRecord]:
    """List every stored message. Order is not guaranteed."""
    messages = service.get_all_messages()
    logger.info(f"GET /messages: returned {len(messages)} messages")
    return messages


@app.get("/messages/{message_id}", response_model=MessageRecord)
def get_message(
    message_id: Annotated[int, Path(ge=INT64_MIN, le=INT64_MAX, description="Message identifier")],
    request: Request,
    service: MessageService = Depends(get_message_service),
):
    """Return one message, or an empty 200 body when it does not exist."""
    message = service.get_message_by_id(message_id)
    if message is None:
        log_operation_data(request, "get_message", "not_found")
        return _empty_ok()

    log_operation_data(request, "get_message", "ok")
    return message


@app.patch(
    "/messages/{message_id}",
    response_model=MessageRecord,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid text or unknown message"},
        503: {"model": ErrorResponse, "description": "Storage unavailable"},
    }
)
def update_message(
    message_id: Annotated[int, Path(ge=INT64_MIN, le=INT64_MAX, description="Message identifier")],
    payload: MessageUpdateRequest,
    request: Request,
    service: MessageService = Depends(get_message_service),
) -> MessageRecord:
    """Replace message_text. message_id and posted_by never change."""
    logger.info(f"PATCH /messages/{message_id}")
    try:
        message = service.update_message(message_id, payload.message_text)
    except ValidationError as e:
        log_operation_data(request, "update_message", "validation_error")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except StorageFailure:
        log_operation_data(request, "update_message", "storage_failure")
        raise

    log_operation_data(request, "update_message", "ok")
    return message


@app.delete("/messages/{message_id}", response_model=MessageRecord)
def delete_message(
    message_id: Annotated[int, Path(ge=INT64_MIN, le=INT64_MAX, description="Message identifier")],
    request: Request,
    service: MessageService = Depends(get_message_service),
):
    """Delete a message and return it, or an empty 200 body when it did not exist."""
    logger.info(f"DELETE /messages/{message_id}")
    message = service.delete_message(message_id)
    if message is None:
        log_operation_data(request, "delete_message", "not_found")
        return _empty_ok()

    log_operation_data(request, "delete_message", "ok")
    return message


@app.get("/accounts/{account_id}/messages", response_model=List[MessageRecord])
def list_account_messages(
    account_id: Annotated[int, Path(ge=INT64_MIN, le=INT64_MAX, description="Account identifier")],
    service: MessageService = Depends(get_message_service),
) -> List[MessageRecord]:
    """List messages posted by an account; empty list when there are none."""
    messages = service.get_messages_by_account_id(account_id)
    logger.info(f"GET /accounts/{account_id}/messages: returned {len(messages)} messages")
    return messages


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.

    - http_requests_total: Total HTTP requests by method, path, status
    - domain_operations_total: Domain outcomes by operation and result
    - request_latency_seconds: Request latency histogram
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
