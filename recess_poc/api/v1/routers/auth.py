# recess_poc/api/v1/routers/auth.py
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from recess_poc.api.v1.schemas import LoginReq
from recess_poc.core.errors import ApiError
from recess_poc.core.logging import get_logger
from recess_poc.core.security import COOKIE_NAME, check_password, session_cookie

log = get_logger("auth")

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
def login(req: LoginReq):
    """
    Demo login.
    Body: { "password": "..." }
    Sets the `poc-authenticated` cookie on success.
    """
    if not check_password(req.password):
        log.info("demo_login_rejected")
        raise ApiError(401, "Incorrect password. Please try again.")
    resp = JSONResponse({"success": True})
    # raw header keeps the attribute order the demo frontend expects
    resp.headers.append("set-cookie", session_cookie())
    return resp


@router.post("/logout")
def logout():
    """Demo reset: drop the gate cookie."""
    resp = JSONResponse({"success": True})
    resp.delete_cookie(COOKIE_NAME, path="/")
    return resp
