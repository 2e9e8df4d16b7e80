"""FastAPI application for the Catalyft coaching functions."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .api.exception_handlers import CORS_HEADERS, register_exception_handlers
from .api.middleware.rate_limit import limiter
from .api.routes import insights, programs, readiness, wearables
from .services.scheduler import get_scheduler, shutdown_scheduler
from .utils.log_sanitizer import configure_logging

logger = logging.getLogger(__name__)

FUNCTIONS_PREFIX = "/functions/v1"


def check_configuration(settings) -> None:
    """Log which integrations are configured; nothing here is fatal."""
    if not settings.supabase_url or not settings.supabase_service_role_key:
        logger.warning("Supabase service role is not configured. Every database function will fail.")
    else:
        logger.info("Supabase: configured")

    if not settings.whoop_client_id or not settings.whoop_client_secret:
        logger.warning("WHOOP OAuth not configured. WHOOP linking and sync will be unavailable.")
    else:
        logger.info("WHOOP OAuth: configured")

    if not settings.google_fit_client_id or not settings.google_fit_client_secret:
        logger.warning("Google Fit OAuth not configured. Google Fit linking and sync will be unavailable.")
    else:
        logger.info("Google Fit OAuth: configured")

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not configured. ARIA weekly summaries will not work.")
    else:
        logger.info("OPENAI_API_KEY: configured")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting Catalyft coach v0.1.0")
    check_configuration(settings)

    if settings.scheduler_enabled:
        try:
            get_scheduler().start()
        except Exception as e:
            logger.warning(f"Failed to start coaching scheduler: {e}")
    else:
        logger.info("Scheduled coaching jobs are disabled")

    yield

    logger.info("Shutting down Catalyft coach")
    shutdown_scheduler()


app = FastAPI(
    title="Catalyft Coach API",
    description="Wearable sync, readiness, ARIA program adjustment and injury risk",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

# Rate limiting
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Handle rate limit exceeded exceptions."""
    return JSONResponse(
        status_code=429,
        content={
            "error": f"Rate limit exceeded: {exc.detail}",
            "code": "RATE_LIMITED",
        },
        headers=CORS_HEADERS,
    )


settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=[h.strip() for h in CORS_HEADERS["Access-Control-Allow-Headers"].split(",")],
)

register_exception_handlers(app)

app.include_router(readiness.router, prefix=FUNCTIONS_PREFIX, tags=["readiness"])
app.include_router(programs.router, prefix=FUNCTIONS_PREFIX, tags=["programs"])
app.include_router(wearables.router, prefix=FUNCTIONS_PREFIX, tags=["wearables"])
app.include_router(insights.router, prefix=FUNCTIONS_PREFIX, tags=["insights"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Catalyft Coach API",
        "version": "0.1.0",
        "status": "healthy",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
