import logging
import os
import re

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from api.middleware import add_cors_middleware
from api.rate_limit import limiter, rate_limit_exceeded_handler
from api.routes import router
from server import find_free_port, start_server

_logger = logging.getLogger(__name__)

# PHI patterns to scrub from error reports
_PHI_PATTERNS = [
    re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),                    # SSN
    re.compile(r"\b\d{4}-\d{2}-\d{2}(?:[T ][\d:.]+Z?)?\b"),   # ISO dates (report dates, DOB)
    re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b"),        # dates
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),  # email
    re.compile(r"(?i)(?:patient|member|name)\s*[:=]\s*[^\n,;]{2,40}"),  # labeled names
    re.compile(r"(?i)(?:date of birth|dob)\s*[:=]?\s*[^\n]{1,30}"),  # labeled DOB
]


def _scrub_phi(text: str) -> str:
    for pattern in _PHI_PATTERNS:
        text = pattern.sub("[REDACTED]", text)
    return text


def _before_send(event, hint):
    """Sentry hook: scrub exception values and breadcrumbs, drop request bodies."""
    for exc_info in event.get("exception", {}).get("values", []):
        if exc_info.get("value"):
            exc_info["value"] = _scrub_phi(exc_info["value"])
    for bc in event.get("breadcrumbs", {}).get("values", []):
        if bc.get("message"):
            bc["message"] = _scrub_phi(bc["message"])
    if "request" in event:
        event["request"].pop("data", None)
    return event


def _init_sentry() -> None:
    dsn = os.getenv("SENTRY_DSN", "")
    if not dsn:
        return
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=os.getenv("SENTRY_ENVIRONMENT", "development"),
        integrations=[FastApiIntegration(), StarletteIntegration()],
        before_send=_before_send,
        send_default_pii=False,
    )


def create_app() -> FastAPI:
    _init_sentry()
    app = FastAPI(title="Condition Engine Sidecar", version="1.0.0")
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    add_cors_middleware(app)

    # Catch-all so unhandled errors still return JSON
    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        _logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error."},
        )

    app.include_router(router)
    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", "0")) or find_free_port()
    app = create_app()
    start_server(app, port)
