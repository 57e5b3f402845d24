"""HornForge Backend: FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from horn_api.routes import profiles, acoustics, directivity
from horn_api.middleware.rate_limit import RateLimitMiddleware
from horn_engine import __version__ as engine_version
from horn_engine.profiles import PROFILES

load_dotenv()

logging.basicConfig(
    level=os.getenv("HORN_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("HornForge engine %s ready with %d profile kinds", engine_version, len(PROFILES))
    yield


app = FastAPI(
    title="HornForge API",
    description="Horn loudspeaker profile, acoustics and directivity calculations",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow frontend origins
_frontend_url = os.getenv("FRONTEND_URL")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[_frontend_url] if _frontend_url else [],
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting: general limit from the environment, a sixth of it for directivity
_rate_limit = int(os.getenv("HORN_RATE_LIMIT_PER_MINUTE", "60"))
app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=_rate_limit,
    heavy_requests_per_minute=max(1, _rate_limit // 6),
)

# Register route modules
app.include_router(profiles.router, prefix="/api", tags=["Profiles"])
app.include_router(acoustics.router, prefix="/api", tags=["Acoustics"])
app.include_router(directivity.router, prefix="/api", tags=["Directivity"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "hornforge-backend", "engine_version": engine_version}
