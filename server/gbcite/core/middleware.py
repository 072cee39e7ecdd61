from __future__ import annotations

from collections.abc import Iterable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

_CSP = "; ".join(
    [
        "default-src 'self'",
        "img-src 'self' data:",
        "frame-ancestors 'none'",
        "base-uri 'self'",
        "form-action 'self'",
    ]
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("Content-Security-Policy", _CSP)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "same-origin")
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self, app, *, max_body_bytes: int, include_paths: Iterable[str] | None = None
    ) -> None:
        super().__init__(app)
        self._max_body_bytes = max_body_bytes
        self._include_paths = tuple(include_paths or [])

    async def dispatch(self, request: Request, call_next):
        if request.method in {"POST", "PUT", "PATCH"}:
            if not self._include_paths or any(
                request.url.path.startswith(p) for p in self._include_paths
            ):
                content_length = request.headers.get("content-length")
                if content_length:
                    try:
                        size = int(content_length)
                    except ValueError:
                        return JSONResponse(
                            {"error": "Invalid Content-Length header."}, status_code=400
                        )
                    if size > self._max_body_bytes:
                        return JSONResponse(
                            {"error": "Request body too large."}, status_code=413
                        )
        return await call_next(request)
