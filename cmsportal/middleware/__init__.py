"""Middleware modules for production-ready features"""
from cmsportal.middleware.monitoring import (
    MonitoringMiddleware,
    record_auth_failure,
    record_document_action,
    record_login
)
from cmsportal.middleware.rate_limit import limiter, get_rate_limit

__all__ = [
    "MonitoringMiddleware",
    "record_auth_failure",
    "record_document_action",
    "record_login",
    "limiter",
    "get_rate_limit"
]
