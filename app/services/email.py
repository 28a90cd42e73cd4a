import logging
import smtplib
from email.message import EmailMessage

from app.core.config import settings

logger = logging.getLogger(__name__)


def _smtp_configured() -> bool:
    return all([settings.SMTP_HOST, settings.SMTP_USER, settings.SMTP_PASSWORD])


def send_email(*, to_email: str, subject: str, body: str) -> bool:
    if not _smtp_configured() or not to_email:
        logger.warning("email: smtp not configured or missing recipient, subject=%s", subject)
        return False

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = settings.SMTP_FROM
    message["To"] = to_email
    message.set_content(body)

    try:
        if int(settings.SMTP_PORT) == 465:
            client = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=20)
        else:
            client = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=20)
        with client:
            if int(settings.SMTP_PORT) != 465:
                client.starttls()
            client.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            client.send_message(message, from_addr=settings.SMTP_FROM, to_addrs=[to_email])
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("email: send failed to=%s subject=%s error=%s", to_email, subject, exc)
        return False

    return True


def send_invoice_reminder_email(*, to_email: str, subject: str, body: str) -> bool:
    sent = send_email(to_email=to_email, subject=subject, body=body)
    if sent:
        logger.info("email: invoice reminder sent to=%s", to_email)
    return sent
