from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import init_db
from app.core.errors import AppError
from app.features.audit.log import AuditLog
from app.features.audit.routes import router as audit_router
from app.features.groups.routes import router as group_router
from app.features.modules.routes import router as module_router
from app.features.permissions.routes import router as permission_router
from app.features.permissions.routes import user_permission_router
from app.features.relationships.routes import (
    group_role_router,
    group_user_router,
    reverse_router,
    role_permission_router,
)
from app.features.roles.routes import router as role_router
from app.features.users.dependencies import get_authorization_header
from app.features.users.routes import router as user_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="RBAC Service",
    description="Role-based access control through users, groups, roles and permissions",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
limiter = Limiter(key_func=get_authorization_header, default_limits=[config.RATE_LIMIT])
app.state.limiter = limiter
app.state.audit_log = AuditLog(capacity=config.AUDIT_LOG_CAPACITY)


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))
app.add_middleware(SlowAPIMiddleware)

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(AppError)
async def app_error_handler(_request: Request, exc: AppError):
    log.info("%s: %s", type(exc).__name__, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder({"success": False, "message": exc.message, "errors": exc.errors}),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal Server Error", "errors": {}},
    )


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "RBAC Service API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "protected_endpoints": [
                "/users/*", "/groups/*", "/roles/*", "/modules/*",
                "/permissions/*", "/user-permissions/*", "/audit/*"
            ],
            "public_endpoints": ["/", "/health"]
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Entity routes
app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(group_router, prefix="/groups", tags=["groups"])
app.include_router(role_router, prefix="/roles", tags=["roles"])
app.include_router(module_router, prefix="/modules", tags=["modules"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])

# Assignments
app.include_router(group_user_router, prefix="/groups", tags=["groups"])
app.include_router(group_role_router, prefix="/groups", tags=["groups"])
app.include_router(role_permission_router, prefix="/roles", tags=["roles"])
app.include_router(reverse_router, tags=["relationships"])

# Effective permissions and auditing
app.include_router(user_permission_router, prefix="/user-permissions", tags=["user-permissions"])
app.include_router(audit_router, prefix="/audit", tags=["audit"])
