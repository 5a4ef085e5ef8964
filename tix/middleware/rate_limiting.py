"""
Request rate limiting for credential and booking routes.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from tix.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.scalability.RATE_LIMIT_STORAGE_URI,
    enabled=settings.scalability.RATE_LIMIT_ENABLED,
)

AUTH_LIMIT = settings.scalability.AUTH_RATE_LIMIT
BOOKING_LIMIT = settings.scalability.BOOKING_RATE_LIMIT
UPLOAD_LIMIT = settings.scalability.UPLOAD_RATE_LIMIT


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Rate limit exceeded for %s on %s", get_remote_address(request), request.url.path
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}",
            "code": "rate_limited",
        },
    )
