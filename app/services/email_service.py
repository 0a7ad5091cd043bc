import logging
import smtplib
import ssl
from email.message import EmailMessage

from app.core.config import get_settings

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    settings = get_settings()
    return bool(settings.smtp_host and settings.mail_from)


def send_otp_via_smtp(to_email: str, code: str, minutes: int) -> None:
    settings = get_settings()
    msg = EmailMessage()
    msg["Subject"] = "Your SprintDesk sign-in code"
    msg["From"] = settings.mail_from
    msg["To"] = to_email
    msg.set_content(
        f"Hi,\n\nYour SprintDesk sign-in code is {code}. It expires in {minutes} minutes.\n"
    )
    msg.add_alternative(
        f"""<p>Hi,</p>
            <p>Your <b>SprintDesk</b> sign-in code is <b>{code}</b>.</p>
            <p>It expires in {minutes} minutes.</p>
            <p>If you did not request this code, you can safely ignore this email.</p>""",
        subtype="html",
    )
    ctx = ssl.create_default_context()
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=20) as smtp:
        smtp.ehlo()
        smtp.starttls(context=ctx)
        smtp.ehlo()
        if settings.smtp_username:
            smtp.login(settings.smtp_username, settings.smtp_password or "")
        smtp.send_message(msg)


def deliver_otp(to_email: str, code: str) -> None:
    """Background task: mail the code, or log it for local development."""
    settings = get_settings()
    if smtp_configured():
        try:
            send_otp_via_smtp(to_email, code, settings.otp_minutes)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send OTP email to %s", to_email)
        return
    if not settings.is_production:
        logger.info("OTP for %s: %s", to_email, code)
    else:
        logger.warning("SMTP is not configured; OTP for %s was not delivered", to_email)
