"""Admin authentication router: one-time code request, verification and logout."""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from portfolio_api.database import get_db
from portfolio_api.auth import (
    DEV_COOKIE_NAME,
    PROD_COOKIE_NAME,
    is_production,
    request_admin_code,
    session_cookie_name,
    verify_admin_code,
)
from portfolio_api.errors import APIError, UpstreamError
from portfolio_api.mailer import Mailer, get_mailer
from portfolio_api.middleware import add_security_headers
from portfolio_api.rate_limit import (
    RateLimiter,
    enforce_rate_limit,
    get_client_ip,
    get_request_code_limiter,
    get_verify_code_limiter,
)
from portfolio_api.schemas import VerifyCodeRequest

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin Authentication"])


@router.post("/request-code")
async def request_code(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    limiter: RateLimiter = Depends(get_request_code_limiter),
):
    """
    Generate a one-time code and email it to the admin.

    Rate limited to 3 requests per 5 minutes per IP.

    Returns:
        dict: Success flag, message and code lifetime in seconds

    Raises:
        RateLimitError: If the caller exceeded the limit
        ConfigurationError: If the admin address is not configured
        UpstreamError: If the code could not be stored or emailed
    """
    client_ip = get_client_ip(request)
    enforce_rate_limit(limiter, f"request-code:ip:{client_ip}")
    logger.info(f"Admin code requested from {client_ip}")

    try:
        expires_in = await request_admin_code(db, mailer)
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Failed to send authentication code: {e}")
        raise UpstreamError("Failed to send authentication code", {"details": str(e)}) from e

    add_security_headers(response)
    return {
        "success": True,
        "message": "Authentication code sent to your email",
        "expiresIn": expires_in,
    }


@router.post("/verify-code")
def verify_code(
    request: Request,
    response: Response,
    body: Optional[VerifyCodeRequest] = None,
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_verify_code_limiter),
):
    """
    Verify a one-time code and start an admin session.

    Rate limited to 5 attempts per 5 minutes per IP. On success the session
    token is returned in the body and also set as an HttpOnly cookie.

    Returns:
        dict: Success flag, session token and its lifetime in seconds

    Raises:
        RateLimitError: If the caller exceeded the limit
        ValidationError: If the code is missing or malformed
        AuthError: If the code is unknown, used or expired
    """
    client_ip = get_client_ip(request)
    enforce_rate_limit(limiter, f"verify-code:ip:{client_ip}")

    session_token, expires_in = verify_admin_code(db, body.code if body else None)

    response.set_cookie(
        key=session_cookie_name(),
        value=session_token,
        max_age=expires_in,
        path="/",
        httponly=True,
        secure=is_production(),
        samesite="strict",
    )
    add_security_headers(response)

    logger.info(f"Admin session started from {client_ip}")
    return {
        "success": True,
        "message": "Authentication successful",
        "sessionToken": session_token,
        "expiresIn": expires_in,
    }


@router.post("/logout")
def logout(response: Response):
    """
    Clear the admin session cookie.

    The token itself stays valid until it expires; only the browser copy is removed.
    """
    response.delete_cookie(DEV_COOKIE_NAME, path="/")
    response.delete_cookie(PROD_COOKIE_NAME, path="/", secure=True, httponly=True, samesite="strict")
    add_security_headers(response)

    logger.info("Admin logged out")
    return {"success": True, "message": "Logged out successfully"}
