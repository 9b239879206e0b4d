"""Admin page guard and security headers."""

import logging

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from portfolio_api.auth import DEV_COOKIE_NAME, PROD_COOKIE_NAME

# Configure logging
logger = logging.getLogger(__name__)

ADMIN_PAGE_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

API_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def add_security_headers(response: Response) -> Response:
    """Attach the defensive headers used on admin API responses."""
    for name, value in API_SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


class AdminSessionGuardMiddleware(BaseHTTPMiddleware):
    """
    Redirect page loads under the admin prefix to the login page when no
    session cookie is present.

    Only the cookie's presence is checked. Signature and expiry are verified
    by the API on every mutating call.
    """

    def __init__(self, app, admin_prefix: str = "/admin", login_path: str = "/admin"):
        super().__init__(app)
        self.admin_prefix = admin_prefix
        self.login_path = login_path

    def _is_guarded(self, request: Request) -> bool:
        path = request.url.path
        if request.method not in ("GET", "HEAD"):
            return False
        prefix = self.admin_prefix.rstrip("/")
        if path != prefix and not path.startswith(prefix + "/"):
            return False
        return path.rstrip("/") != self.login_path.rstrip("/")

    async def dispatch(self, request: Request, call_next):
        if not self._is_guarded(request):
            return await call_next(request)

        has_session = request.cookies.get(DEV_COOKIE_NAME) or request.cookies.get(PROD_COOKIE_NAME)
        if not has_session:
            logger.info(f"No admin session cookie, redirecting {request.url.path} to {self.login_path}")
            return RedirectResponse(url=self.login_path, status_code=307)

        response = await call_next(request)
        for name, value in ADMIN_PAGE_HEADERS.items():
            response.headers[name] = value
        return response
