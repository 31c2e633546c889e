"""
Contact form delivery over SMTP.

One message per submission, sent to the site owner with the visitor's
address as Reply-To. Nothing is retried or stored.
"""
import html
import logging
import smtplib
import socket
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import config
from schemas import EMAIL_RE

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to send email. Please try again later."
AUTH_FAILURE = "Email authentication failed. Please contact directly via email."
NETWORK_FAILURE = "Network error. Please check your connection and try again."
TIMEOUT_FAILURE = "Request timeout. Please try again."
CONFIG_FAILURE = "Email service configuration error. Please try again later."


class ContactValidationError(ValueError):
    pass


class DeliveryError(Exception):
    """Mail transport failure. `message` is safe to show to the visitor."""

    def __init__(self, message: str, reason: str = "other"):
        super().__init__(message)
        self.message = message
        self.reason = reason


def validate_contact(name: str, email: str, message: str):
    if not (name or "").strip() or not (email or "").strip() or not (message or "").strip():
        raise ContactValidationError("All fields (name, email, message) are required")
    if not EMAIL_RE.match(email.strip()):
        raise ContactValidationError("Please enter a valid email address")


def classify_error(exc: Exception) -> DeliveryError:
    if isinstance(exc, smtplib.SMTPAuthenticationError):
        return DeliveryError(AUTH_FAILURE, "authentication")
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return DeliveryError(TIMEOUT_FAILURE, "timeout")
    if isinstance(exc, (socket.gaierror, smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected, ConnectionError)):
        return DeliveryError(NETWORK_FAILURE, "network")
    return DeliveryError(GENERIC_FAILURE)


def build_message(name: str, email: str, message: str, sender: str, recipient: str) -> MIMEMultipart:
    sent_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    msg = MIMEMultipart("alternative")
    msg["Subject"] = f"New Portfolio Message from {name}"
    msg["From"] = formataddr(("Portfolio Contact Form", sender))
    msg["To"] = recipient
    msg["Reply-To"] = email

    text = f"Name: {name}\nEmail: {email}\n\nMessage:\n{message}\n\nSent {sent_at} from your portfolio contact form"
    body = html.escape(message).replace("\n", "<br>")
    markup = f"""
    <div style="max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif;">
      <h2 style="color: #374151;">New Portfolio Contact</h2>
      <p><strong>Name:</strong> {html.escape(name)}</p>
      <p><strong>Email:</strong> <a href="mailto:{html.escape(email)}">{html.escape(email)}</a></p>
      <h3 style="color: #374151;">Message:</h3>
      <div style="background: #f9fafb; padding: 20px; border-left: 4px solid #3b82f6;">
        <p style="margin: 0; line-height: 1.6;">{body}</p>
      </div>
      <p style="color: #6b7280; font-size: 14px;">Sent {sent_at} from your portfolio contact form</p>
    </div>
    """
    msg.attach(MIMEText(text, "plain"))
    msg.attach(MIMEText(markup, "html"))
    return msg


def send_contact_email(name: str, email: str, message: str):
    """Validate and relay a contact message. Raises ContactValidationError or DeliveryError."""
    validate_contact(name, email, message)
    name, email = name.strip(), email.strip()

    if not (config.SMTP_HOST and config.SMTP_USER and config.SMTP_PASSWORD and config.CONTACT_RECIPIENT):
        logger.error("SMTP is not configured; contact message from %s dropped", email)
        raise DeliveryError(CONFIG_FAILURE, "configuration")

    msg = build_message(name, email, message, config.SMTP_USER, config.CONTACT_RECIPIENT)
    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT) as server:
            server.starttls()
            server.login(config.SMTP_USER, config.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        error = classify_error(e)
        logger.error("Contact email from %s failed (%s): %s", email, error.reason, e)
        raise error from e

    logger.info("Contact email from %s delivered to %s", email, config.CONTACT_RECIPIENT)
