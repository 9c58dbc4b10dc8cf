# recess_poc/core/security.py
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from recess_poc.config import settings

COOKIE_NAME = "poc-authenticated"
COOKIE_MARKER = f"{COOKIE_NAME}=true"
PROTECTED_PATH = "/demo"

# Demo-only gate: a shared password and a plaintext cookie. Not an auth system.


def check_password(candidate: str) -> bool:
    return candidate == settings.demo_password


def session_cookie() -> str:
    return f"{COOKIE_MARKER}; Path=/; Max-Age={settings.session_max_age}"


def is_protected(path: str) -> bool:
    return path == PROTECTED_PATH or path.startswith(PROTECTED_PATH + "/")


def is_authenticated(cookie_header: Optional[str]) -> bool:
    # substring match on the raw header, so "xpoc-authenticated=true" also passes
    return bool(cookie_header) and COOKIE_MARKER in cookie_header


class DemoGateMiddleware(BaseHTTPMiddleware):
    """Redirect unauthenticated requests for /demo pages back to the landing page."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if is_protected(request.url.path) and not is_authenticated(request.headers.get("cookie")):
            return RedirectResponse("/", status_code=307)
        return await call_next(request)
