"""
Admin authentication: one-time email codes and signed session tokens.

A login attempt moves through NoCode -> CodeIssued -> Verified | Expired |
Invalid. Codes are single use: every terminal transition removes the stored
code. Sessions are self-contained tokens of the form
``{issuedAtMillis}-{hexNonce}.{hexHmacSha256}`` and are valid for 24 hours.
There is no server-side revocation; logging out only clears the cookie.
"""

import os
import hmac
import hashlib
import logging
import re
import secrets
import string
from typing import Optional, Tuple

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from dotenv import load_dotenv

from portfolio_api import store
from portfolio_api.errors import AuthError, ConfigurationError, ValidationError
from portfolio_api.mailer import Mailer, render_admin_code_email

# Load environment variables
load_dotenv()

# Configure logging
logger = logging.getLogger(__name__)

# Session signing configuration
SESSION_SECRET = os.getenv("SESSION_SECRET")
if not SESSION_SECRET:
    raise ValueError("SESSION_SECRET must be set in .env file")

CODE_LENGTH = 20
CODE_GROUP_SIZE = 4
CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_EXPIRY_MINUTES = 5
SESSION_EXPIRY_HOURS = 24
SESSION_NONCE_BYTES = 32

CODE_EXPIRY_MS = CODE_EXPIRY_MINUTES * 60 * 1000
SESSION_EXPIRY_MS = SESSION_EXPIRY_HOURS * 60 * 60 * 1000

DEV_COOKIE_NAME = "admin_session"
PROD_COOKIE_NAME = "__Host-admin_session"

# HTTP Bearer for session authentication; missing credentials are handled below
security = HTTPBearer(auto_error=False)


def is_production() -> bool:
    return os.getenv("ENVIRONMENT", "production").lower() == "production"


def session_cookie_name() -> str:
    return PROD_COOKIE_NAME if is_production() else DEV_COOKIE_NAME


def generate_auth_code() -> str:
    """
    Generate a random one-time code for display.

    Returns:
        str: 20 characters from [A-Z0-9], hyphenated every 4 characters
    """
    raw = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
    groups = [raw[i:i + CODE_GROUP_SIZE] for i in range(0, CODE_LENGTH, CODE_GROUP_SIZE)]
    return "-".join(groups)


def normalize_code(submitted: object) -> str:
    """Uppercase and drop every non-alphanumeric character (any separator the user pasted)."""
    return re.sub(r"[^A-Z0-9]", "", str(submitted or "").upper())


def _sign(payload: str) -> str:
    return hmac.new(SESSION_SECRET.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def create_session_token(now: Optional[int] = None) -> str:
    """
    Mint a signed session token.

    Args:
        now: Issue time in epoch milliseconds (defaults to the current time)

    Returns:
        str: ``{issuedAtMillis}-{nonce}.{signature}``
    """
    issued_at = store.now_ms() if now is None else now
    nonce = secrets.token_hex(SESSION_NONCE_BYTES)
    payload = f"{issued_at}-{nonce}"
    return f"{payload}.{_sign(payload)}"


def verify_session_token(token: Optional[str], now: Optional[int] = None) -> bool:
    """
    Check a session token's signature and age. Has no side effects.

    Args:
        token: Token as presented by the client
        now: Current time in epoch milliseconds (defaults to the current time)

    Returns:
        bool: True if the signature matches and the token is under 24 hours old
    """
    if not token:
        return False

    payload, _, signature = token.rpartition(".")
    if not payload or not signature:
        return False

    if not hmac.compare_digest(signature.encode("utf-8"), _sign(payload).encode("utf-8")):
        return False

    try:
        issued_at = int(payload.split("-", 1)[0])
    except ValueError:
        return False

    now = store.now_ms() if now is None else now
    return now - issued_at < SESSION_EXPIRY_MS


async def request_admin_code(db: Session, mailer: Mailer) -> int:
    """
    Issue a one-time code and email it to the operator address.

    Args:
        db: Database session
        mailer: Notification sender

    Returns:
        int: Seconds until the code expires

    Raises:
        ConfigurationError: If no operator address is configured
    """
    admin_email = os.getenv("ADMIN_EMAIL") or os.getenv("MAIL_FROM")
    if not admin_email:
        logger.error("Admin code requested but ADMIN_EMAIL/MAIL_FROM is not configured")
        raise ConfigurationError("Admin email not configured")

    code = generate_auth_code()
    now = store.now_ms()
    store.save_auth_code(db, code.replace("-", ""), expires_at=now + CODE_EXPIRY_MS, created_at=now)
    logger.info("Stored new admin authentication code")

    subject, html_body, text_body = render_admin_code_email(code, CODE_EXPIRY_MINUTES)
    await mailer.send(admin_email, subject, html_body, text_body)

    return CODE_EXPIRY_MINUTES * 60


def verify_admin_code(db: Session, submitted_code: Optional[str], now: Optional[int] = None) -> Tuple[str, int]:
    """
    Verify a one-time code and mint a session for it.

    Args:
        db: Database session
        submitted_code: Code as typed or pasted by the admin
        now: Current time in epoch milliseconds (defaults to the current time)

    Returns:
        Tuple[str, int]: Session token and its lifetime in seconds

    Raises:
        ValidationError: If the code is missing or not 20 characters once normalized
        AuthError: If the code is unknown, already used or expired
    """
    if not submitted_code:
        raise ValidationError("Code is required")

    code = normalize_code(submitted_code)
    if len(code) != CODE_LENGTH:
        logger.warning(f"Rejected code with invalid format (length {len(code)})")
        raise ValidationError("Invalid code format")

    now = store.now_ms() if now is None else now
    record = store.get_auth_code(db, code)

    if record is None:
        logger.warning("Verification failed: unknown code")
        raise AuthError("Invalid authentication code")

    if record.used:
        store.consume_auth_code(db, code)
        logger.warning("Verification failed: code already used")
        raise AuthError("Code has already been used")

    if now > record.expires_at:
        store.consume_auth_code(db, code)
        logger.warning("Verification failed: code expired")
        raise AuthError("Code has expired")

    # Only the request that actually removes the row gets a session
    if not store.consume_auth_code(db, code):
        logger.warning("Verification failed: code consumed by a concurrent request")
        raise AuthError("Invalid authentication code")

    logger.info("Admin authenticated, session issued")
    return create_session_token(now), SESSION_EXPIRY_HOURS * 60 * 60


def get_admin_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Dependency requiring a valid bearer session token.

    Returns:
        str: The verified token

    Raises:
        AuthError: If the token is missing, forged or expired
    """
    if credentials is None or not verify_session_token(credentials.credentials):
        logger.warning("Rejected request with missing or invalid session token")
        raise AuthError("Unauthorized")
    return credentials.credentials


def has_admin_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> bool:
    """Dependency reporting whether a valid bearer session token was presented."""
    return credentials is not None and verify_session_token(credentials.credentials)
