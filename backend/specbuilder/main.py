"""
Spec Builder ESG API
FastAPI backend with async PostgreSQL, JWT auth, Redis/Celery background jobs,
Gemini 2.5 Flash primary LLM + Groq LLaMA 3.3 70B fallback.
"""
import os
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

# Load .env before any module reads its configuration
load_dotenv()

from specbuilder.services.logging_config import setup_logging  # noqa: E402
from specbuilder.services.middleware import RequestTimingMiddleware  # noqa: E402

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("specbuilder-api")

# Startup validation
for var in ["DATABASE_URL", "JWT_SECRET_KEY"]:
    if not os.getenv(var):
        logger.warning(f"MISSING env var: {var}, running in dev mode")
for var in ["GEMINI_API_KEY", "GROQ_API_KEY", "CELERY_BROKER_URL"]:
    if not os.getenv(var):
        logger.info(f"Optional env var not set: {var}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from specbuilder.db import engine, init_db
    await init_db()
    yield
    await engine.dispose()


app = FastAPI(
    title="Spec Builder ESG API",
    version="1.0.0",
    description="Embodied-carbon analysis and recommendations for construction specifications",
    lifespan=lifespan,
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


_cors_default = "http://localhost:5173,http://localhost:3000"
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

from specbuilder.api.esg_routes import router as esg_router  # noqa: E402

app.include_router(esg_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": "1.0.0",
        "db_configured": bool(os.getenv("DATABASE_URL")),
        "llm_primary": os.getenv("LLM_PRIMARY_MODEL", "gemini/gemini-2.5-flash"),
        "web_search_enabled": os.getenv("LLM_WEB_SEARCH_ENABLED", "true").lower() in ("1", "true", "yes"),
        "inline_jobs": os.getenv("ESG_INLINE_JOBS", "").lower() in ("1", "true", "yes"),
    }
