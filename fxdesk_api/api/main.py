from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fxdesk_api.core.deps import get_tenant_id
from fxdesk_api.core.errors import DomainError
from fxdesk_api.core.logging import configure_logging, correlation_id_var, tenant_id_var
from fxdesk_api.core.security import get_token_subject
from fxdesk_api.core.settings import get_app_settings
from fxdesk_api.db.run_migrations import main as run_alembic
from fxdesk_api.db.seed import seed_all
from fxdesk_api.schemas.common import ErrorInfo, ErrorResponse, MessageResponse, TenantEcho
from fxdesk_api.schemas.realtime import WsEnvelope
from fxdesk_api.services.realtime import broadcast_manager

# Routers
from fxdesk_api.api.routes.auth import router as auth_router
from fxdesk_api.api.routes.users import router as users_router
from fxdesk_api.api.routes.memberships import router as memberships_router
from fxdesk_api.api.routes.organizations import router as organizations_router
# Domain routers
from fxdesk_api.api.routes.repositories import router as repositories_router
from fxdesk_api.api.routes.currencies import router as currencies_router
from fxdesk_api.api.routes.customers import router as customers_router
from fxdesk_api.api.routes.sessions import router as sessions_router
from fxdesk_api.api.routes.orders import router as orders_router
from fxdesk_api.api.routes.transfers import router as transfers_router
from fxdesk_api.api.routes.notes import router as notes_router
from fxdesk_api.api.routes.reports import router as reports_router

settings = get_app_settings()

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "System", "description": "System and operational endpoints."},
    {"name": "Health", "description": "Liveness and readiness probes."},
    {"name": "Auth", "description": "Authentication and token endpoints."},
    {"name": "Users", "description": "User profile, preferences and administration."},
    {"name": "Memberships", "description": "Organization members and invitations."},
    {"name": "Organizations", "description": "Organizations, settings and identity provider sync."},
    {"name": "Repositories", "description": "Tills, vaults and wallets and who may operate them."},
    {"name": "Currencies", "description": "Rate catalogue, organization currencies and denominations."},
    {"name": "Customers", "description": "Customers, identifications and addresses."},
    {"name": "Sessions", "description": "Cx sessions, float counts and the session workflow."},
    {"name": "Orders", "description": "Quotes, orders and denomination breakdowns."},
    {"name": "Transfers", "description": "Float transfers and currency swaps."},
    {"name": "Notes", "description": "Notes attached to orders, customers, sessions and movements."},
    {"name": "Webhooks", "description": "Signed callbacks from the identity provider."},
    {
        "name": "WebSocket",
        "description": "WebSocket usage, endpoints, and connection details.",
    },
    {"name": "Reports", "description": "Exportable business reports (CSV/Excel/PDF)."},
]

WS_SESSIONS_INFO: Dict[str, Any] = {
    "path": "/ws/sessions",
    "summary": "Cx session status changes of the organization (server push).",
    "query": ["token"],
    "headers": ["X-Tenant-ID"],
    "messages": {
        "client_to_server": ["ping"],
        "server_to_client": ["session.status", "pong"],
    },
}

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
    Bind correlation_id and tenant_id to the request for logging and error envelopes.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    tenant = request.headers.get("X-Tenant-ID")
    token_corr = correlation_id_var.set(corr)
    token_tenant = tenant_id_var.set(tenant)
    request.state.correlation_id = corr
    request.state.tenant_id = tenant

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        tenant_id_var.reset(token_tenant)

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
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        tenant_id=getattr(request.state, "tenant_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    """Map service-level domain errors onto the error envelope with their own status code."""
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error_type, exc.message)
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type=exc.error_type,
        message=exc.message,
        details=exc.details,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all handler to avoid leaking stack traces."""
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

    Failures are logged and the service keeps starting; readiness is left to the health probes.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            run_alembic(["upgrade", "head"])
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


api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """Basic liveness health check endpoint."""
    return MessageResponse(message="Healthy")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health/tenant",
    response_model=TenantEcho,
    summary="Tenant Health Echo",
    description="Echoes the organization id from X-Tenant-ID to verify header handling.",
    tags=["Health"],
)
async def tenant_health_echo(tenant_id: UUID = Depends(get_tenant_id)) -> TenantEcho:
    return TenantEcho(tenant_id=tenant_id)


# PUBLIC_INTERFACE
@api_v1.get(
    "/websocket-info",
    response_model=Dict[str, Any],
    summary="WebSocket Usage Information",
    description="Connection details for the realtime session channel.",
    tags=["WebSocket"],
)
def websocket_info() -> Dict[str, Any]:
    """
    Describe how to connect to the WebSocket endpoints of this service.

    WebSocket endpoints are not part of the OpenAPI schema, so clients read them here.
    """
    return {
        "usage": (
            "Connect with a valid access token as a 'token' query parameter and include the 'X-Tenant-ID' header. "
            "Message format is JSON with fields: { type: string, payload: object, at: ISO-8601, "
            "user_id?: string, channel?: string }. Send the text 'ping' to receive 'pong'."
        ),
        "security": {
            "token": "Access token whose 'tenant_id' claim matches the X-Tenant-ID header.",
            "header": "X-Tenant-ID: UUID",
        },
        "endpoints": [WS_SESSIONS_INFO],
    }


api_v1.include_router(auth_router)
api_v1.include_router(users_router)
api_v1.include_router(memberships_router)
api_v1.include_router(organizations_router)
api_v1.include_router(repositories_router)
api_v1.include_router(currencies_router)
api_v1.include_router(customers_router)
api_v1.include_router(sessions_router)
api_v1.include_router(orders_router)
api_v1.include_router(transfers_router)
api_v1.include_router(notes_router)
api_v1.include_router(reports_router)

app.include_router(api_v1)


async def _authenticate_ws(websocket: WebSocket) -> Optional[str]:
    """
    Check the 'token' query param against the 'X-Tenant-ID' header of an accepted socket.

    Returns the tenant id, or None after closing the socket (4401 unauthenticated, 4403 wrong tenant).
    """
    token = websocket.query_params.get("token")
    tenant_id = websocket.headers.get("x-tenant-id")
    if not token or not tenant_id:
        await websocket.close(code=4401)
        return None
    if get_token_subject(token) is None:
        await websocket.close(code=4401)
        return None
    if get_token_subject(token, tenant_id=tenant_id) is None:
        await websocket.close(code=4403)
        return None
    return tenant_id


# PUBLIC_INTERFACE
@app.websocket("/ws/sessions")
async def ws_sessions(websocket: WebSocket):
    """
    WebSocket endpoint for cx session status changes of one organization.

    Security:
      - Query param 'token' must be a valid access token.
      - Header 'X-Tenant-ID' must match the token's tenant_id.
    Messages:
      - Server -> Client: type='session.status' with SessionStatusEvent payload.
      - Client -> Server: 'ping' (text or {"type": "ping"}) is answered with 'pong'; anything else is ignored.
    """
    await websocket.accept()
    tenant_id = await _authenticate_ws(websocket)
    if tenant_id is None:
        return

    topic = broadcast_manager.session_topic(tenant_id)
    await broadcast_manager.connect(topic, websocket)
    await websocket.send_json(WsEnvelope(type="connected", payload={"topic": topic}).model_dump(mode="json"))

    try:
        while True:
            msg = (await websocket.receive_text()).strip()
            if msg.lower() == "ping" or msg.replace(" ", "") == '{"type":"ping"}':
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        await broadcast_manager.disconnect(topic, websocket)
    except Exception:
        logger.exception("Error on ws_sessions connection")
        await broadcast_manager.disconnect(topic, websocket)
        await websocket.close()
