"""FastAPI application entry point"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from prometheus_fastapi_instrumentator import Instrumentator

from cmsportal import __version__
from cmsportal.api import accounts, auth, authors, customers, documents, health, posts
from cmsportal.config import settings
from cmsportal.database import init_db
from cmsportal.errors import PortalError
from cmsportal.middleware.rate_limit import limiter
from cmsportal.services.accounts import check_bootstrap_config
from cmsportal.utils.logger import logger, setup_logging

# Setup logging
setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    check_bootstrap_config(settings)
    if settings.AUTO_CREATE_TABLES:
        init_db()

    logger.info(
        f"cmsportal starting up (version={__version__}, environment={settings.ENVIRONMENT}, "
        f"auth_mode={settings.AUTH_MODE}, rate_limiting={settings.RATE_LIMIT_ENABLED}, "
        f"monitoring={settings.METRICS_ENABLED})"
    )
    yield
    # Shutdown
    logger.info("cmsportal shutting down")


# Create FastAPI app
app = FastAPI(
    title="cmsportal",
    description="Blog CMS and customer document portal with role-based access control",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ===== Middleware Setup =====

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Monitoring middleware
if settings.METRICS_ENABLED:
    from cmsportal.middleware.monitoring import MonitoringMiddleware
    app.add_middleware(MonitoringMiddleware)

    # Prometheus metrics
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/health", "/health/ready", "/health/live"],
        inprogress_name="cmsportal_requests_inprogress",
        inprogress_labels=True
    )
    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint=settings.METRICS_PATH, include_in_schema=False)

# Rate limiting
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Handle rate limit exceeded errors"""
    logger.warning(
        f"Rate limit exceeded: {request.method} {request.url.path}",
        extra={"request_id": getattr(request.state, "request_id", None)}
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please try again later.",
            "detail": str(exc.detail)
        }
    )

# ===== Route Setup =====

# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(accounts.router)
app.include_router(posts.router)
app.include_router(authors.router)
app.include_router(customers.router)
app.include_router(documents.router)


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "service": "cmsportal",
        "version": __version__,
        "status": "operational",
        "auth_mode": settings.AUTH_MODE,
        "docs": "/docs",
        "health": "/health",
        "metrics": settings.METRICS_PATH if settings.METRICS_ENABLED else None
    }


# ===== Error Handlers =====

@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    """Render domain errors as {"error", "message", ...details}"""
    headers = None
    retry_after = exc.details.get("retry_after_seconds")
    if retry_after is not None:
        headers = {"Retry-After": str(retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for uncaught errors"""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}",
        extra={"request_id": getattr(request.state, "request_id", None)},
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please contact support."
        }
    )
