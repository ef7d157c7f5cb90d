"""Video course portal — FastAPI application entry point."""

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from portal.config import settings
from portal.database import engine, Base
from portal.exceptions import PortalError
from portal.middleware.rate_limit import limiter
from portal.routers import auth, courses, subscriptions, passwords, videos, profiles, storage, maintenance
import portal.models  # noqa: F401  (register tables on Base.metadata)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("portal")

# Comma-separated list in ALLOWED_ORIGINS
_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app = FastAPI(
    title="Video Course Portal",
    description="Courses, subscriptions and gated video streaming.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    """Service-layer refusals become a status code plus one static message."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router)
app.include_router(courses.router)
app.include_router(courses.admin_router)
app.include_router(subscriptions.router)
app.include_router(subscriptions.admin_router)
app.include_router(passwords.router)
app.include_router(videos.router)
app.include_router(videos.admin_router)
app.include_router(profiles.router)
app.include_router(storage.router)
app.include_router(maintenance.router)


@app.on_event("startup")
def on_startup():
    """Create tables and the local storage root."""
    Base.metadata.create_all(bind=engine)
    if settings.STORAGE_BACKEND.lower() == "local":
        Path(settings.STORAGE_DIR).mkdir(parents=True, exist_ok=True)
    logger.info("Storage backend: %s", settings.STORAGE_BACKEND)


@app.get("/")
def root():
    return {
        "name": "Video Course Portal API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "ok", "storage": settings.STORAGE_BACKEND}
