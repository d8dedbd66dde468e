"""FastAPI application entrypoint.

This module assembles the store back-office API: logging, CORS, the
request-context middleware, exception handlers that normalise error
bodies to `{"error": ...}`, and the resource routers mounted under
`/api`.

Routers:
- /api/auth (login, me)
- /api/users, /api/roles
- /api/categories, /api/brands, /api/products, /api/inventory
- /api/customers, /api/orders, /api/revenue
- /api/marketing/coupons, /api/marketing/campaigns
- /api/analytics, /api/reports
- /api/settings, /api/audit-logs
"""

import json
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import (
    analytics,
    audit_logs,
    brands,
    campaigns,
    categories,
    coupons,
    customers,
    inventory,
    orders,
    products,
    reports,
    roles,
    session,
    settings as settings_api,
    users,
)
from .auth import forbidden
from .config import settings
from .database import create_db_and_tables
from .services import NotFoundError, PermissionDenied

app = FastAPI(title="Store Back-Office API")
logger = logging.getLogger("shopadmin.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _request_line(request: Request, req_id: str, started: float, status_code=None) -> str:
    payload = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    if status_code is not None:
        payload["status_code"] = status_code
    return json.dumps(payload, ensure_ascii=True)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    request.state.started = started = time.perf_counter()
    # unhandled errors skip the rest; unhandled_exception_handler logs them
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = req_id
    if request.url.path.startswith("/api"):
        logger.info("request_done %s", _request_line(request, req_id, started, response.status_code))
    return response


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "invalid request", "details": details})


async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return await http_exception_handler(request, forbidden(exc.resource, exc.action, exc.message))


async def unhandled_exception_handler(request: Request, exc: Exception):
    req_id = getattr(request.state, "request_id", None) or uuid.uuid4().hex
    started = getattr(request.state, "started", None) or time.perf_counter()
    logger.error("request_failed %s", _request_line(request, req_id, started, 500), exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"}, headers={"X-Request-ID": req_id})


app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(NotFoundError, not_found_handler)
app.add_exception_handler(PermissionDenied, permission_denied_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

for module in (
    session,
    users,
    roles,
    categories,
    brands,
    products,
    inventory,
    customers,
    orders,
    coupons,
    campaigns,
    analytics,
    reports,
    settings_api,
    audit_logs,
):
    app.include_router(module.router, prefix="/api")
app.include_router(orders.revenue_router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok"}
