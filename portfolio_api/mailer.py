"""Outbound email via fastapi-mail, plus the message bodies the API sends."""

import os
import html
import logging
from typing import Optional

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from fastapi_mail.schemas import MultipartSubtypeEnum
from dotenv import load_dotenv

from portfolio_api.errors import ConfigurationError

# Load environment variables
load_dotenv()

# Configure logging
logger = logging.getLogger(__name__)


class Mailer:
    """Sends one email to one recipient with HTML and plain-text parts."""

    def __init__(self, config: ConnectionConfig):
        self.fastmail = FastMail(config)

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        message = MessageSchema(
            subject=subject,
            recipients=[to],
            body=html_body,
            alternative_body=text_body,
            subtype=MessageType.html,
            multipart_subtype=MultipartSubtypeEnum.alternative,
        )
        await self.fastmail.send_message(message)
        logger.info(f"Email sent to {to}: {subject}")


def build_mail_config() -> ConnectionConfig:
    """
    Build the SMTP configuration from environment variables.

    Raises:
        ConfigurationError: If MAIL_FROM is not set
    """
    mail_from = os.getenv("MAIL_FROM", "")
    if not mail_from:
        raise ConfigurationError("Sender email not configured")

    return ConnectionConfig(
        MAIL_USERNAME=os.getenv("MAIL_USERNAME", mail_from),
        MAIL_PASSWORD=os.getenv("MAIL_PASSWORD", ""),
        MAIL_FROM=mail_from,
        MAIL_PORT=int(os.getenv("MAIL_PORT", "587")),
        MAIL_SERVER=os.getenv("MAIL_SERVER", "smtp.gmail.com"),
        MAIL_STARTTLS=os.getenv("MAIL_TLS", "True").lower() == "true",
        MAIL_SSL_TLS=os.getenv("MAIL_SSL", "False").lower() == "true",
        USE_CREDENTIALS=True,
        VALIDATE_CERTS=True,
    )


_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    """Dependency returning the process-wide mailer, created on first use."""
    global _mailer
    if _mailer is None:
        _mailer = Mailer(build_mail_config())
    return _mailer


def render_admin_code_email(code: str, expiry_minutes: int) -> tuple:
    """
    Render the one-time admin code email.

    Returns:
        tuple: (subject, html_body, text_body)
    """
    subject = "Admin Authentication Code - Blog Management"
    html_body = f"""\
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1>Admin Authentication Code</h1>
    <p>Hello Admin,</p>
    <p>You've requested access to the blog management system. Use the code below to authenticate:</p>
    <div style="border: 2px solid #667eea; padding: 20px; text-align: center; border-radius: 8px;">
      <span style="font-size: 24px; font-weight: bold; letter-spacing: 2px; font-family: monospace;">{code}</span>
    </div>
    <ul>
      <li>This code expires in {expiry_minutes} minutes</li>
      <li>It can only be used once</li>
      <li>If you didn't request this code, please ignore this email</li>
    </ul>
    <p style="color: #e74c3c; font-weight: bold;">Never share this code with anyone!</p>
    <p style="color: #666; font-size: 12px;">This is an automated message from your portfolio admin system.</p>
  </div>
</body>
</html>
"""
    text_body = (
        "Admin Authentication Code\n\n"
        f"Your authentication code is: {code}\n\n"
        f"This code expires in {expiry_minutes} minutes and can only be used once.\n\n"
        "If you didn't request this code, please ignore this email."
    )
    return subject, html_body, text_body


def render_contact_email(message_id: str, name: str, email: str, subject: str, message: str, timestamp: str) -> tuple:
    """
    Render the notification sent for a contact form submission.

    User-supplied values are HTML-escaped in the HTML part.

    Returns:
        tuple: (subject, html_body, text_body)
    """
    safe = {k: html.escape(v) for k, v in {"name": name, "email": email, "subject": subject}.items()}
    safe_message = html.escape(message).replace("\n", "<br>")

    mail_subject = f"Portfolio Contact: {subject}"
    html_body = f"""\
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <h2 style="color: #2563eb;">New Contact Form Submission</h2>
  <div style="background: #f3f4f6; padding: 20px; border-radius: 8px;">
    <p><strong>From:</strong> {safe["name"]}</p>
    <p><strong>Email:</strong> {safe["email"]}</p>
    <p><strong>Subject:</strong> {safe["subject"]}</p>
    <p><strong>Time:</strong> {timestamp}</p>
  </div>
  <div style="padding: 20px; border-left: 4px solid #2563eb;">
    <h3>Message:</h3>
    <p>{safe_message}</p>
  </div>
  <p style="color: #6b7280; font-size: 12px;">Message ID: {message_id}</p>
</body>
</html>
"""
    text_body = (
        "New Contact Form Submission\n\n"
        f"From: {name}\n"
        f"Email: {email}\n"
        f"Subject: {subject}\n"
        f"Time: {timestamp}\n\n"
        f"Message:\n{message}\n\n"
        f"---\nMessage ID: {message_id}\n"
    )
    return mail_subject, html_body, text_body
