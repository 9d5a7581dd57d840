import logging
import smtplib
from email.message import EmailMessage

from ..config import Settings

logger = logging.getLogger(__name__)


def send_restore_email(settings: Settings, *, to_email: str, body: str) -> None:
    """
    Send the credential restore email over SMTP.

    Settings: SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM, SMTP_TLS
    """
    if not settings.smtp_host or not settings.smtp_user or not settings.smtp_pass or not settings.smtp_from:
        raise RuntimeError("SMTP is not configured (missing SMTP_HOST/SMTP_USER/SMTP_PASS/SMTP_FROM).")

    msg = EmailMessage()
    msg["Subject"] = "Restore your HireFlow credentials"
    msg["From"] = settings.smtp_from
    msg["To"] = to_email
    msg.set_content(body)

    logger.info("Connecting to %s:%s (TLS=%s)", settings.smtp_host, settings.smtp_port, settings.smtp_tls)
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as smtp:
        smtp.ehlo()
        if settings.smtp_tls:
            smtp.starttls()
            smtp.ehlo()
        smtp.login(settings.smtp_user, settings.smtp_pass)
        smtp.send_message(msg)
    logger.info("Restore email sent to %s", to_email)


def send_restore_email_safe(settings: Settings, *, to_email: str, body: str) -> None:
    """Background-task wrapper: a mail failure never fails the request that queued it."""
    try:
        send_restore_email(settings, to_email=to_email, body=body)
    except (OSError, RuntimeError, smtplib.SMTPException) as e:
        logger.warning("Restore email to %s not sent (non-blocking): %s: %s", to_email, type(e).__name__, e)
