"""FastAPI application for the Homemates rental marketplace.

Provides:
- JWT authentication for tenants and owners
- Property listings, tenant requirements and lead matching
- ElevenLabs and Ringg voice calls with webhook-driven call tracking
- Dataset uploads and Perplexity listing ingestion
- Google Gmail/Calendar tool connections

Flow:
1. POST /api/tenants - Tenant saves requirements, leads are matched
2. GET /api/leads - Owner reviews leads and claims them
3. POST /api/calls/initiate - Owner's agent calls the tenant
4. POST /api/webhooks/elevenlabs - Provider reports the outcome
5. GET /api/calls/{conversation_id} - Transcript and status
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from homemates import config
from homemates.agents import agents_router, public_agents_router
from homemates.auth import auth_router
from homemates.brand_guide import brand_guide_router, public_brand_guide_router
from homemates.calls import calls_router, public_calls_router, store, webhooks_router
from homemates.datasets import datasets_router
from homemates.db.database import init_db
from homemates.leads import leads_router
from homemates.properties import properties_router
from homemates.tenants import tenants_router
from homemates.tools import tools_router
from homemates_shared.errors import ProviderError, ProviderNotConfiguredError

logging.basicConfig(level=config.LOG_LEVEL)

logger = logging.getLogger("homemates-api")


# =============================================================================
# App Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and run call maintenance while the app is up."""
    await init_db()
    await store.start_maintenance_task(interval_seconds=config.MAINTENANCE_INTERVAL_SECONDS)
    yield
    await store.stop_maintenance_task()


app = FastAPI(
    title="Homemates API",
    description="Rental marketplace with voice-AI calling for owners and tenants",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in (
    auth_router,
    properties_router,
    tenants_router,
    leads_router,
    agents_router,
    public_agents_router,
    calls_router,
    public_calls_router,
    webhooks_router,
    datasets_router,
    tools_router,
    brand_guide_router,
    public_brand_guide_router,
):
    app.include_router(router, prefix="/api")


# =============================================================================
# Error Handlers
# =============================================================================


def error_response(status_code: int, detail: str, headers: dict | None = None) -> JSONResponse:
    # The dashboard reads response.data.message
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "message": detail},
        headers=headers,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


def jsonable_errors(errors: list[dict]) -> list[dict]:
    return [
        {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
        for e in errors
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    detail = f"{location}: {message}" if location else message
    return JSONResponse(
        status_code=422,
        content={"detail": detail, "message": detail, "errors": jsonable_errors(errors)},
    )


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    logger.error(f"{exc.provider} call failed on {request.url.path}: {exc.message}")
    return error_response(502, f"{exc.provider} error: {exc.message}")


@app.exception_handler(ProviderNotConfiguredError)
async def provider_not_configured_handler(request: Request, exc: ProviderNotConfiguredError):
    logger.warning(f"{request.url.path} needs {exc.provider}: {exc!s}")
    return error_response(503, str(exc))


# =============================================================================
# Endpoints
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    calls_expired: int


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        calls_expired=store.total_expired,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
