# File: elearning/core/limiter.py
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from elearning.core.config import settings

logger = logging.getLogger(__name__)

# Requests are tracked per client IP address.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.limiter_storage_uri,
    default_limits=[settings.default_rate_limit],
    enabled=settings.rate_limit_enabled,
)

# Shared limit for credential endpoints (register / login / refresh)
auth_rate_limit = limiter.limit(settings.auth_rate_limit)


async def custom_rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(
        f"Rate limit exceeded for {get_remote_address(request)} on "
        f"{request.method} {request.url.path} ({exc.detail})"
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Too Many Requests: rate limit exceeded ({exc.detail})",
            "message": "You have made too many requests in a short period. Please try again later.",
        },
    )
