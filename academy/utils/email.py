import logging
import smtplib
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from academy.core.config import settings

logger = logging.getLogger(__name__)


def format_rupiah(amount: int) -> str:
    return "Rp " + f"{amount:,}".replace(",", ".")


def send_email(email_to: str, subject: str, html_content: str) -> bool:
    if not settings.SMTP_HOST:
        logger.info("SMTP_HOST not configured, skipping email to %s: %s", email_to, subject)
        return False

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = f"{settings.EMAILS_FROM_NAME or settings.PROJECT_NAME} <{settings.EMAILS_FROM_EMAIL}>"
    message["To"] = email_to
    message.attach(MIMEText(html_content, "html"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT or 587) as server:
            if settings.SMTP_TLS:
                server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAILS_FROM_EMAIL, email_to, message.as_string())
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email to %s: %s", email_to, e)
        return False


def send_payment_confirmation_email(
    email_to: str,
    user_name: str,
    class_name: str,
    amount: int,
    transaction_id: str,
    paid_at: datetime,
) -> bool:
    subject = f"Payment Confirmed - {class_name}"

    html_content = f"""
    <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #eee;">
                <h2 style="color: #1e3a8a; text-align: center;">{settings.PROJECT_NAME}</h2>
                <p>Hello {user_name},</p>
                <p>We have received your payment for <strong>{class_name}</strong>.</p>
                <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
                    <tr><td>Transaction</td><td style="text-align: right;">{transaction_id}</td></tr>
                    <tr><td>Amount</td><td style="text-align: right;">{format_rupiah(amount)}</td></tr>
                    <tr><td>Paid at</td><td style="text-align: right;">{paid_at:%d %b %Y %H:%M} UTC</td></tr>
                </table>
                <p>Your class will be activated shortly. Happy learning!</p>
                <hr style="border: 0; border-top: 1px solid #eee; margin: 20px 0;" />
                <p style="font-size: 12px; color: #777; text-align: center;">
                    This is an automated message from {settings.PROJECT_NAME}.
                </p>
            </div>
        </body>
    </html>
    """
    return send_email(email_to, subject, html_content)
