"""Rate limiting middleware for API protection"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from cmsportal.config import settings


def get_identifier(request: Request) -> str:
    """
    Get identifier for rate limiting

    Priority:
    1. Session cookie or bearer token (authenticated callers)
    2. IP address (for unauthenticated)
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME) or request.headers.get("authorization")
    if token:
        return f"session:{token[-16:]}"

    return get_remote_address(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_identifier,
    default_limits=settings.RATE_LIMIT_DEFAULT,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


# Rate limit configurations for different endpoints
RATE_LIMITS = {
    # Login has its own attempt counter; this bounds raw request volume
    "login": "30/minute",
    "upload": "60/minute",
    "download": "300/minute",

    # Public endpoints
    "health": "100/minute",
    "public_read": "300/minute",
}


def get_rate_limit(endpoint: str) -> str:
    """Get rate limit for specific endpoint"""
    return RATE_LIMITS.get(endpoint, settings.RATE_LIMIT_DEFAULT[0])
