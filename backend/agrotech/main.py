from fastapi import FastAPI, Response, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from fastapi.responses import JSONResponse
import logging
import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .config import Settings
from .errors import register_exception_handlers
from .fallback import MemorySubmissionStore
from .supabase_client import BackendProvider
from .routes import (
    system,
    auth,
    access_links,
    invites,
    users,
    soil_analysis,
    logins,
    audit,
)

settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

if settings.sentry_dsn:
    sentry_sdk.init(dsn=settings.sentry_dsn, integrations=[FastApiIntegration()])

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)

app = FastAPI(title="AgroTech API")
app.state.settings = settings
app.state.backend = BackendProvider(settings)
app.state.memory_store = MemorySubmissionStore()

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = auth.limiter
app.add_exception_handler(
    RateLimitExceeded, lambda r, e: JSONResponse({"error": "Too Many Requests"}, status_code=429)
)
if not settings.testing:
    app.add_middleware(SlowAPIMiddleware)

register_exception_handlers(app)


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(request.method, endpoint).inc()
    REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
    return response


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


ROUTERS = [
    system.router,
    auth.router,
    access_links.router,
    invites.router,
    users.router,
    soil_analysis.router,
    logins.router,
    audit.router,
]

for router in ROUTERS:
    app.include_router(router)

PUBLIC_PATHS = {
    "/api/health",
    "/api/config",
    "/api/session",
    "/api/auth/sign-in",
    "/api/access-links/{code}",
    "/api/access-links/{code}/use",
    "/api/validate-invite",
    "/api/save-user-profile",
    "/api/verify-login",
    "/api/verify-login-exists",
    "/metrics",
}


def _api_routes(routes):
    from fastapi.routing import APIRoute

    for route in routes:
        if isinstance(route, APIRoute):
            yield route
        else:
            # newer FastAPI keeps included routers wrapped instead of flattening them
            nested = getattr(route, "original_router", route)
            yield from _api_routes(getattr(nested, "routes", ()))


def audit_routes(routers=None):
    from .auth import get_current_user, require_admin

    for router in routers or [app.router, *ROUTERS]:
        for route in _api_routes(router.routes):
            if route.path.startswith("/api") and route.path not in PUBLIC_PATHS:
                calls = [dep.call for dep in route.dependant.dependencies]
                if get_current_user not in calls and require_admin not in calls:
                    raise RuntimeError(f"Route {route.path} missing authentication")


audit_routes()
