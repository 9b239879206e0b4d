"""Contact form router."""

import os
import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from portfolio_api import store
from portfolio_api.database import get_db
from portfolio_api.errors import ConfigurationError, UpstreamError
from portfolio_api.mailer import Mailer, get_mailer, render_contact_email
from portfolio_api.rate_limit import (
    RateLimiter,
    enforce_rate_limit,
    get_client_ip,
    get_contact_email_limiter,
    get_contact_ip_limiter,
)
from portfolio_api.schemas import ContactCreate

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(tags=["Contact"])


@router.post("/contact")
async def submit_contact(
    contact: ContactCreate,
    request: Request,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    ip_limiter: RateLimiter = Depends(get_contact_ip_limiter),
    email_limiter: RateLimiter = Depends(get_contact_email_limiter),
):
    """
    Store a contact form message and notify the site owner.

    Limited to 5 submissions per hour per IP and 3 per hour per email
    address; exceeding either blocks that identifier for 2 hours.

    Returns:
        dict: Success flag, stored message id and a confirmation message

    Raises:
        RateLimitError: If the IP or email is over its limit or blocked
        ConfigurationError: If no notification recipient is configured
        UpstreamError: If the notification could not be sent
    """
    client_ip = get_client_ip(request)
    email = str(contact.email)
    logger.info(f"Contact form submission from {client_ip}")

    enforce_rate_limit(ip_limiter, client_ip)
    enforce_rate_limit(email_limiter, email.lower())

    recipient = os.getenv("CONTACT_TO_EMAIL") or os.getenv("ADMIN_EMAIL") or os.getenv("MAIL_FROM")
    if not recipient:
        logger.error("Contact form submitted but no recipient is configured")
        raise ConfigurationError("Contact recipient not configured")

    item = store.save_contact_message(db, contact.name, email, contact.subject, contact.message)

    subject, html_body, text_body = render_contact_email(
        item.id, item.name, item.email, item.subject, item.message, item.timestamp
    )
    try:
        await mailer.send(recipient, subject, html_body, text_body)
    except Exception as e:
        logger.error(f"Failed to send contact notification for {item.id}: {e}")
        raise UpstreamError("Failed to process your request", {"details": str(e)}) from e

    logger.info(f"Contact message stored and forwarded: {item.id}")
    return {
        "success": True,
        "messageId": item.id,
        "message": "Your message has been sent successfully!",
    }
