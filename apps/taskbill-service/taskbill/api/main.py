"""
FastAPI app assembly: logging, middleware and router wiring.
"""
import logging
import os

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from taskbill.utils.runtime import dev_mode_active, env_list

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)

from taskbill.api.analytics import router as analytics_router
from taskbill.api.api_keys import router as api_keys_router
from taskbill.api.audits import router as audits_router
from taskbill.api.cleanup import router as cleanup_router
from taskbill.api.external import router as external_router
from taskbill.api.functions import router as functions_router
from taskbill.api.invoices import router as invoices_router
from taskbill.api.projects import router as projects_router
from taskbill.api.receivables import exchange_router, router as receivables_router
from taskbill.api.tasks import router as tasks_router
from taskbill.api.tax import router as tax_router
from taskbill.api.users import router as users_router

# Database schema is managed by Alembic migrations.

SERVICE_NAME = "taskbill-service"

DEFAULT_CORS_ORIGINS = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8000",
]

WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")

# Paths that validate their own credentials or input.
WRITE_GUARD_EXEMPT_PREFIXES = ("/functions/", "/api/v1/")

app = FastAPI(
    title="Taskbill Service",
    description="Projects, tasks, invoicing, receivables and tax tracking, plus an API-key data API.",
    version="1.0.0",
)

# Avoid implicit trailing-slash redirects for predictable URLs
app.router.redirect_slashes = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=env_list("CORS_ORIGINS") or DEFAULT_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Middleware: writes need a signed-in user or an API key
@app.middleware("http")
async def enforce_signed_in_writes(request: Request, call_next):
    if request.method in WRITE_METHODS and not dev_mode_active():
        path = request.url.path or ""
        if not path.startswith(WRITE_GUARD_EXEMPT_PREFIXES):
            h = request.headers
            user_present = (
                h.get("x-auth-request-user")
                or h.get("x-auth-request-email")
                or h.get("x-forwarded-user")
                or h.get("x-forwarded-email")
            )
            key_present = h.get("authorization") or h.get("x-api-key")
            if not user_present and not key_present:
                return JSONResponse(
                    {"detail": "Sign in to perform changes."},
                    status_code=status.HTTP_401_UNAUTHORIZED,
                )
    return await call_next(request)


app.include_router(users_router)
app.include_router(projects_router)
app.include_router(tasks_router)
app.include_router(invoices_router)
app.include_router(receivables_router)
app.include_router(exchange_router)
app.include_router(tax_router)
app.include_router(analytics_router)
app.include_router(api_keys_router)
app.include_router(audits_router)
app.include_router(cleanup_router)
app.include_router(external_router)
app.include_router(functions_router)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": SERVICE_NAME}


@app.get("/build-info")
def get_build_info():
    """Return build and deployment information for the running service."""
    return {
        "build_sha": os.getenv("BUILD_SHA") or None,
        "build_timestamp": os.getenv("BUILD_TIMESTAMP") or None,
        "image_tag": os.getenv("IMAGE_TAG") or None,
        "service_name": SERVICE_NAME,
        "version": os.getenv("VERSION", "unknown"),
    }
