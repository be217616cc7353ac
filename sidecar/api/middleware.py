import os

from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class NoStoreMiddleware(BaseHTTPMiddleware):
    """Responses carry lab values and conditions; keep them out of caches."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store"
        response.headers["Pragma"] = "no-cache"
        return response


def allowed_origins() -> list[str]:
    """Origins from ALLOWED_ORIGINS (comma-separated); all origins when unset."""
    raw = os.getenv("ALLOWED_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


def add_cors_middleware(app) -> None:
    origins = allowed_origins()
    app.add_middleware(NoStoreMiddleware)
    # Added last so it is outermost and also covers error responses
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
