import smtplib
from email.message import EmailMessage

from loguru import logger

from cashflow.config import settings


def send_email(to: str, subject: str, text: str, html: str = None):
    """Send a single message through the configured SMTP server."""
    if not settings.EMAIL_SERVER_HOST:
        raise RuntimeError("EMAIL_SERVER_HOST not configured")

    msg = EmailMessage()
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text)
    if html:
        msg.add_alternative(html, subtype="html")

    port = int(settings.EMAIL_SERVER_PORT)
    if port == 465:
        server = smtplib.SMTP_SSL(settings.EMAIL_SERVER_HOST, port, timeout=12)
    else:
        server = smtplib.SMTP(settings.EMAIL_SERVER_HOST, port, timeout=12)

    with server:
        if port != 465:
            server.starttls()
        if settings.EMAIL_SERVER_USER:
            server.login(settings.EMAIL_SERVER_USER, settings.EMAIL_SERVER_PASSWORD or "")
        server.send_message(msg)

    logger.info(f"Mail '{subject}' sent to {to}")


def send_password_reset_email(to: str, token: str):
    reset_url = f"{settings.APP_URL.rstrip('/')}/reset-password?token={token}"
    text = (
        f"You requested a password reset. Click the link to reset your password: {reset_url}\n\n"
        "If you did not request a password reset, please ignore this email."
    )
    html = (
        "<p>You requested a password reset.</p>"
        f'<p>Click the link to reset your password: <a href="{reset_url}">{reset_url}</a></p>'
        "<p>If you did not request a password reset, please ignore this email.</p>"
    )
    send_email(to, "Password Reset Request", text, html)
