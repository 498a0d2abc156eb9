import logging
from email.message import EmailMessage
import smtplib
from config import Config

logger = logging.getLogger(__name__)


def send_mail(subject: str, body: str, to_addrs, sender: str = None):
    """Send a plain text e-mail through the configured SMTP server.

    Returns ``(ok, detail)``; delivery errors are logged and reported in the
    tuple instead of being raised so that a mail outage never breaks a request.
    """

    if isinstance(to_addrs, str):
        to_list = [to_addrs]
    else:
        to_list = list(to_addrs)
    if not to_list:
        return False, "no recipient"

    msg = EmailMessage()
    msg["From"] = sender or Config.MAIL_DEFAULT_SENDER
    msg["To"] = ", ".join(to_list)
    msg["Subject"] = subject
    msg.set_content(body)

    if not Config.MAIL_SERVER:
        logger.info("MAIL_SERVER not configured, e-mail '%s' not sent", subject)
        return False, "mail server not configured"
    port = Config.MAIL_PORT or (465 if not Config.MAIL_USE_TLS else 587)

    try:
        if Config.MAIL_USE_TLS:
            with smtplib.SMTP(Config.MAIL_SERVER, port) as smtp:
                smtp.starttls()
                if Config.MAIL_USERNAME:
                    smtp.login(Config.MAIL_USERNAME, Config.MAIL_PASSWORD)
                smtp.send_message(msg)
        else:
            with smtplib.SMTP_SSL(Config.MAIL_SERVER, port) as smtp:
                if Config.MAIL_USERNAME:
                    smtp.login(Config.MAIL_USERNAME, Config.MAIL_PASSWORD)
                smtp.send_message(msg)
        return True, "sent"
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("SMTP delivery of '%s' failed: %s", subject, e)
        return False, f"smtp error: {e}"
