from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from peertutor.config import settings

logger = logging.getLogger(__name__)


def is_email_enabled() -> bool:
    """True when SMTP delivery is switched on and has a server and sender."""
    return bool(
        settings.EMAIL_NOTIFICATIONS_ENABLED
        and settings.SMTP_SERVER
        and settings.EMAIL_FROM
    )


def build_message(to_email: str, subject: str, body_text: str, body_html: Optional[str] = None) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = settings.EMAIL_FROM or ""
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(body_text, "plain", "utf-8"))
    if body_html:
        msg.attach(MIMEText(body_html, "html", "utf-8"))
    return msg


def _open_smtp() -> smtplib.SMTP:
    smtp_class = smtplib.SMTP_SSL if settings.SMTP_USE_SSL else smtplib.SMTP
    return smtp_class(
        settings.SMTP_SERVER,
        settings.SMTP_PORT,
        timeout=settings.SMTP_TIMEOUT_SECONDS,
    )


def send_email(
    *,
    to_email: str,
    subject: str,
    body_text: str,
    body_html: Optional[str] = None,
) -> bool:
    """
    Deliver one message over SMTP.

    Returns True on success. Failures are logged and False is returned;
    nothing is raised to the caller.
    """
    if not is_email_enabled():
        return False

    msg = build_message(to_email, subject, body_text, body_html)
    username = settings.SMTP_USERNAME or settings.EMAIL_FROM
    password = settings.EMAIL_PASSWORD or ""

    try:
        with _open_smtp() as server:
            if settings.SMTP_USE_TLS and not settings.SMTP_USE_SSL:
                server.starttls()
            if password:
                server.login(username, password)
            server.sendmail(settings.EMAIL_FROM, [to_email], msg.as_string())
        return True
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("Email send failed for '%s': %s", to_email, exc)
        return False


def send_password_reset_email(*, to_email: str, full_name: str, token: str) -> bool:
    link = f"{settings.PUBLIC_BASE_URL.rsplit('/uploads', 1)[0]}/reset-password?token={token}"
    body = (
        f"Hi {full_name or 'there'},\n\n"
        "We received a request to reset your PeerTutor password. "
        f"Use the link below within {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes:\n\n"
        f"{link}\n\n"
        "If you did not ask for this, you can ignore this email."
    )
    return send_email(to_email=to_email, subject="Reset your password", body_text=body)
