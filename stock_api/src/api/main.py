from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi import WebSocket, WebSocketDisconnect

from src.core.errors import DomainError
from src.core.settings import get_app_settings
from src.core.security import get_token_subject
from src.core.logging import configure_logging, correlation_id_var, user_id_var
from src.db.run_migrations import run_alembic
from src.db.seed import seed_all
from src.db.session import get_session_maker
from src.repositories.security import SecurityRepository
from src.schemas.common import ErrorInfo, ErrorResponse, MessageResponse
from src.schemas.realtime import WsEnvelope
from src.services.dashboard import DashboardService
from src.services.realtime import DASHBOARD_STATS_EVENT, STOCK_TOPIC, broadcast_manager

# Routers
from src.api.routes.auth import router as auth_router
from src.api.routes.users import router as users_router
from src.api.routes.roles import router as roles_router
# Domain routers
from src.api.routes.categories import router as categories_router
from src.api.routes.locations import router as locations_router
from src.api.routes.products import router as products_router
from src.api.routes.product_attributes import router as product_attributes_router
from src.api.routes.inventory import router as inventory_router
from src.api.routes.todos import router as todos_router
from src.api.routes.dashboard import router as dashboard_router
from src.api.routes.chat import router as chat_router
from src.api.routes.reports import router as reports_router

settings = get_app_settings()

# Configure structured logging once at import
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "System", "description": "System and operational endpoints."},
    {"name": "Health", "description": "Liveness and readiness probes."},
    {"name": "Auth", "description": "Login, token refresh and password endpoints."},
    {"name": "Users", "description": "User administration endpoints."},
    {"name": "Roles", "description": "Role and permission administration endpoints."},
    {"name": "Categories", "description": "Product categories."},
    {"name": "Locations", "description": "Storage locations."},
    {"name": "Products", "description": "Products, critical stock and price history."},
    {"name": "Product Attributes", "description": "Free-form key/value attributes of products."},
    {"name": "Stock Movements", "description": "Inbound and outbound stock ledger."},
    {"name": "Todos", "description": "Team task list."},
    {"name": "Dashboard", "description": "Aggregated inventory statistics."},
    {"name": "Chat", "description": "Inventory assistant backed by Gemini."},
    {"name": "Reports", "description": "Critical stock exports (PDF/CSV) and natural-language reports."},
    {
        "name": "WebSocket",
        "description": "WebSocket usage, endpoints, and connection details.",
    },
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with a correlation_id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    request.state.correlation_id = corr

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    ts = datetime.now(tz=timezone.utc)
    corr = getattr(request.state, "correlation_id", None) or correlation_id_var.get()
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=corr,
        user_id=user_id_var.get(),
        path=request.url.path,
        method=request.method,
        timestamp=ts,
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    """
    Map service-level business errors (not found, rule violations, bad credentials)
    to their HTTP status and the standard error envelope.
    """
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type=exc.error_type,
        message=exc.message,
        details=exc.details,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    response = _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding on service startup.

    This ensures the database schema is up to date. Seeding is opt-in via settings.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            # env.py drives its own event loop, so it must not run on ours
            await run_in_threadpool(run_alembic, ["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")

# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


# PUBLIC_INTERFACE
@api_v1.get(
    "/websocket-info",
    response_model=Dict[str, Any],
    summary="WebSocket Usage Information",
    description="Connection details for the stock WebSocket endpoint and the events it carries.",
    tags=["WebSocket"],
)
def websocket_info() -> Dict[str, Any]:
    """
    Describe how to connect to WebSocket endpoints in this service.

    Returns:
        JSON object with usage notes and endpoints list describing query params and message format.
    """
    return {
        "usage": (
            "Connect with a valid access token as a 'token' query parameter. "
            "Message format is JSON with fields: { type: string, payload: object, at: ISO-8601, user_id?: string, channel?: string }. "
            "Send the text 'ping' to receive 'pong'."
        ),
        "security": {
            "token": "Access JWT issued by /api/v1/auth/login; invalid tokens are closed with code 4401.",
        },
        "endpoints": [
            {
                "path": "/ws/stock",
                "summary": "Inventory change notifications and dashboard statistics (server push).",
                "query": ["token"],
                "messages": {
                    "client_to_server": ["ping"],
                    "server_to_client": [
                        DASHBOARD_STATS_EVENT,
                        "category.created|updated|deleted",
                        "location.created|updated|deleted",
                        "product.created|updated|deleted",
                        "product_attribute.created|updated|deleted",
                        "stock_movement.created",
                        "todo.created|updated|deleted",
                        "user.created|updated|deleted",
                        "role.created|updated|deleted",
                    ],
                },
            }
        ],
        "notes": "WebSocket endpoints are not represented in OpenAPI schema; refer to this endpoint for usage.",
    }


# Include all routers under /api/v1
api_v1.include_router(auth_router)
api_v1.include_router(users_router)
api_v1.include_router(roles_router)
api_v1.include_router(categories_router)
api_v1.include_router(locations_router)
api_v1.include_router(products_router)
api_v1.include_router(product_attributes_router)
api_v1.include_router(inventory_router)
api_v1.include_router(todos_router)
api_v1.include_router(dashboard_router)
api_v1.include_router(chat_router)
api_v1.include_router(reports_router)

# Attach api_v1 to app
app.include_router(api_v1)


async def _validate_ws_and_get_user(websocket: WebSocket) -> str:
    """
    Validate a WebSocket connection by checking the 'token' query param.

    The token must be a valid access JWT whose subject is an existing, active user.

    Returns:
        user_id taken from the access token subject.
    Raises:
        WebSocketDisconnect if invalid; the socket is closed with code 4401.
    """
    token = websocket.query_params.get("token")
    subject = get_token_subject(token) if token else None
    user = None
    if subject and str(subject).isdigit():
        maker = get_session_maker()
        async with maker() as session:
            user = await SecurityRepository(session).get_user_by_id(int(subject))
    if user is None or not user.is_active:
        logger.info("Rejected stock subscriber: token subject=%s", subject)
        await websocket.close(code=4401)
        raise WebSocketDisconnect(code=4401)
    return str(user.id)


async def _send_initial_stats(websocket: WebSocket) -> None:
    maker = get_session_maker()
    async with maker() as session:
        stats = await DashboardService(session).get_stats()
    env = WsEnvelope(type=DASHBOARD_STATS_EVENT, payload=stats.model_dump(mode="json"), channel=STOCK_TOPIC)
    await websocket.send_json(env.model_dump(mode="json"))


# PUBLIC_INTERFACE
@app.websocket("/ws/stock")
async def ws_stock(websocket: WebSocket):
    """
    WebSocket endpoint for real-time inventory updates.

    Security:
      - Query param 'token' must be a valid access JWT.
    Messages:
      - Server -> Client: WsEnvelope for every inventory, todo, user and role change,
        plus 'dashboard.stats' snapshots (one is sent right after connecting).
      - Client -> Server: optional 'ping' to keepalive; other messages ignored.
    """
    await websocket.accept()
    try:
        user_id = await _validate_ws_and_get_user(websocket)
    except WebSocketDisconnect:
        return

    await broadcast_manager.connect(STOCK_TOPIC, websocket)
    logger.info("Stock subscriber connected: user=%s", user_id)

    try:
        await _send_initial_stats(websocket)
    except Exception:
        logger.exception("Failed to send initial dashboard stats")

    try:
        while True:
            msg = await websocket.receive_text()
            if msg and msg.lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        await broadcast_manager.disconnect(STOCK_TOPIC, websocket)
    except Exception:
        logger.exception("Error on ws_stock connection")
        await broadcast_manager.disconnect(STOCK_TOPIC, websocket)
        await websocket.close()
