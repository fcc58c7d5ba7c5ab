"""
CORS Middleware

Answers every OPTIONS request with an empty 200 before routing and
authentication, and stamps the CORS headers on every response:
- Access-Control-Allow-Origin: any origin
- Access-Control-Allow-Methods: POST, OPTIONS (GET, OPTIONS for read-only paths)
- Access-Control-Allow-Headers: Content-Type, X-API-KEY
"""

import logging
from typing import Callable, Iterable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .auth import API_KEY_HEADER

logger = logging.getLogger(__name__)

SEND_METHODS = "POST, OPTIONS"
READ_METHODS = "GET, OPTIONS"
ALLOWED_HEADERS = f"Content-Type, {API_KEY_HEADER}"


def cors_headers(methods: str = SEND_METHODS) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
    }


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Short-circuits preflight requests and adds CORS headers to all responses"""

    def __init__(self, app, read_only_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.read_only_paths = set(read_only_paths or [])

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)

        methods = READ_METHODS if request.url.path in self.read_only_paths else SEND_METHODS
        for header, value in cors_headers(methods).items():
            response.headers[header] = value
        return response
