"""Rate limiting for web mode using slowapi.

Limits /conditions/analyze (the endpoint that calls the LLM) to
30 requests/min per client. Only active when REQUIRE_AUTH is set.
"""

import os

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

REQUIRE_AUTH = os.getenv("REQUIRE_AUTH", "").lower() == "true"

# Gateways allowed to name the caller through the x-user-id header
_TRUSTED_PROXIES: frozenset[str] = frozenset(
    p.strip() for p in os.getenv("TRUSTED_PROXIES", "").split(",") if p.strip()
)


def _get_client_key(request: Request) -> str:
    """Rate limit key: the client IP.

    x-user-id is honoured only on requests arriving from a trusted proxy;
    from anyone else it is caller-controlled and ignored.
    """
    address = get_remote_address(request)
    if address in _TRUSTED_PROXIES:
        user_id = request.headers.get("x-user-id")
        if user_id:
            return user_id
    return address


# Disabled outside web mode (effectively unlimited)
limiter = Limiter(key_func=_get_client_key, enabled=REQUIRE_AUTH)

# Rate limit string for LLM-backed endpoints
ANALYZE_RATE_LIMIT = os.getenv("ANALYZE_RATE_LIMIT", "30/minute")


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Custom handler for rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Please wait before making more requests.",
            "retry_after": exc.detail,
        },
    )
