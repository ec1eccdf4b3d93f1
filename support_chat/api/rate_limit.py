"""
Rate limiting for the chat endpoint.

Uses slowapi with a per-client-IP limit applied only to POST /chat.
Each app gets its own Limiter, so separate apps (e.g. in tests) do not share counters.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from support_chat.infrastructure.logging.logger import logger


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Rate limit exceeded",
        extra={"extra": {"client": get_remote_address(request), "limit": str(exc.detail)}},
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMITED",
            "message": "Too many requests, please try again later.",
        },
        headers={"Retry-After": "60"},
    )


def configure_rate_limiting(app: FastAPI) -> Limiter:
    """Create a limiter, attach it to the app and register the 429 handler."""
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    return limiter
