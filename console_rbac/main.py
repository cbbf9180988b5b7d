import logging
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.concurrency import run_in_threadpool

from console_rbac.config import settings
from console_rbac.database import get_access_store
from console_rbac.database.store import AccessStore, AccessStoreError
from console_rbac.modules.access_log import routes as access_log_routes
from console_rbac.modules.access_log.service import AccessLogService
from console_rbac.modules.auth import routes as auth_routes
from console_rbac.modules.users import routes as users_routes
from console_rbac.modules.roles import routes as roles_routes
from console_rbac.modules.projects import routes as projects_routes
from console_rbac.modules.providers import routes as providers_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AccessStoreError)
async def access_store_exception_handler(request: Request, exc: AccessStoreError):
    logger.error(f"Access store error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Access store unavailable"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


class SecurityHeadersMiddleware:
    """Adds hardening headers; access-control responses must never be cached"""

    HEADERS = [
        (b"X-Content-Type-Options", b"nosniff"),
        (b"X-Frame-Options", b"DENY"),
        (b"Referrer-Policy", b"no-referrer"),
        (b"Cache-Control", b"no-store"),
    ]

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend(self.HEADERS)
            await send(message)

        await self.app(scope, receive, send_with_headers)


@app.middleware("http")
async def record_access(request: Request, call_next):
    """Write an access log entry for every call made by a resolved principal"""
    response = await call_next(request)
    principal = getattr(request.state, "principal", None)
    if principal is not None and settings.access_log_enabled:
        try:
            await run_in_threadpool(
                AccessLogService(request.state.access_store).record, principal, request, response.status_code
            )
        except AccessStoreError as e:
            logger.warning(f"Access log entry for {request.method} {request.url.path} not written: {e}")
    return response


app.add_middleware(SlowAPIMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(auth_routes.router, prefix="/api/v1")
app.include_router(users_routes.router, prefix="/api/v1")
app.include_router(roles_routes.router, prefix="/api/v1")
app.include_router(projects_routes.router, prefix="/api/v1")
app.include_router(providers_routes.router, prefix="/api/v1")
app.include_router(access_log_routes.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    logger.info(f"Application startup ({settings.environment}, store: {settings.storage_backend})")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready(store: AccessStore = Depends(get_access_store)):
    """Readiness check: the access store must answer and hold a role catalog"""
    try:
        roles = store.list_roles()
    except AccessStoreError as e:
        logger.warning(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    if not roles:
        return JSONResponse(status_code=503, content={"status": "unseeded"})
    return {"status": "ready"}
