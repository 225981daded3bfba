from pathlib import Path

from sqlalchemy import text

from dealfinder.core.observability import (
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from dealfinder.core.config import settings
from dealfinder.db.session import engine
from dealfinder.routers import admin, auth, business, promotions

app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description=(
        "Backend API for the DealFinder promotions marketplace.\n\n"
        "Swagger quick test flow:\n"
        "1. Call `POST /api/auth/register` (role `business`) or `POST /api/auth/login`.\n"
        "2. Click **Authorize** and use your email + password "
        "(OAuth token URL: `/api/auth/token`).\n"
        "3. Create a business (`POST /api/business`), then a promotion (`POST /api/promotions`)."
    ),
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "auth", "description": "Registration, login, token lifecycle and password reset."},
        {"name": "business", "description": "Business profiles, owned promotions and per-business analytics."},
        {"name": "promotions", "description": "Public listing/search, impressions, clicks and promotion management."},
        {"name": "admin", "description": "Moderation, platform counters and analytics (admin only)."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:5173"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    # Local frontends run on dynamic localhost ports.
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(business.router)
api_router.include_router(promotions.router)
api_router.include_router(admin.router)
app.include_router(api_router)

Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}
