"""
Отправка писем получателям сертификатов через SMTP.
"""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from typing import Optional

from .exceptions import NotificationError

logger = logging.getLogger(__name__)


HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ background-color: #4285f4; color: white; padding: 20px; text-align: center; }}
    .content {{ padding: 20px; background-color: #f9f9f9; }}
    .button {{ display: inline-block; padding: 12px 24px; background-color: #4285f4; color: white; text-decoration: none; border-radius: 4px; margin: 10px 0; }}
    .footer {{ text-align: center; padding: 20px; font-size: 12px; color: #666; }}
    .cert-id {{ background-color: #e8f0fe; padding: 10px; border-left: 4px solid #4285f4; margin: 15px 0; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>Congratulations, {recipient_name}!</h1>
    </div>
    <div class="content">
      <p>We are pleased to inform you that your certificate for <strong>{event_name}</strong> has been generated.</p>
      <div class="cert-id"><strong>Certificate ID:</strong> {unique_id}</div>
      <p>You can validate your certificate at any time using the link below:</p>
      <p style="text-align: center;"><a href="{validation_url}" class="button">Validate Certificate</a></p>
      {pdf_block}
      <p>Keep your Certificate ID safe for future reference.</p>
    </div>
    <div class="footer">
      <p>This email was sent by {sender_name}</p>
      <p>Please do not reply to this email</p>
    </div>
  </div>
</body>
</html>
"""

PDF_BLOCK = """<p>You can also download your certificate PDF:</p>
      <p style="text-align: center;"><a href="{pdf_url}" class="button">Download Certificate</a></p>"""

TEXT_TEMPLATE = """Congratulations, {recipient_name}!

Your certificate for {event_name} has been generated.

Certificate ID: {unique_id}

Validate your certificate at: {validation_url}
{pdf_line}
Keep your Certificate ID safe for future reference.

This email was sent by {sender_name}
"""


class EmailNotifier:
    """Отправитель писем о выпуске сертификатов."""

    def __init__(self, host: Optional[str], port: int = 587,
                 user: Optional[str] = None, password: Optional[str] = None,
                 from_email: str = "noreply@example.com",
                 from_name: str = "Certificate System", timeout: int = 10):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "EmailNotifier":
        """Создает отправителя из настроек приложения."""
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            from_email=settings.smtp_from_email,
            from_name=settings.smtp_from_name,
            timeout=settings.smtp_timeout,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def build_message(self, recipient_email: str, recipient_name: str, event_name: str,
                      unique_id: str, validation_url: str,
                      pdf_url: Optional[str] = None) -> EmailMessage:
        """Собирает письмо с текстовой и HTML версиями."""
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = recipient_email
        message["Subject"] = f"Your Certificate for {event_name}"

        message.set_content(TEXT_TEMPLATE.format(
            recipient_name=recipient_name,
            event_name=event_name,
            unique_id=unique_id,
            validation_url=validation_url,
            pdf_line=f"\nDownload your certificate: {pdf_url}\n" if pdf_url else "",
            sender_name=self.from_name,
        ))

        pdf_block = PDF_BLOCK.format(pdf_url=escape(pdf_url, quote=True)) if pdf_url else ""
        message.add_alternative(HTML_TEMPLATE.format(
            recipient_name=escape(recipient_name),
            event_name=escape(event_name),
            unique_id=escape(unique_id),
            validation_url=escape(validation_url, quote=True),
            pdf_block=pdf_block,
            sender_name=escape(self.from_name),
        ), subtype="html")

        return message

    def send(self, recipient_email: str, recipient_name: str, event_name: str,
             unique_id: str, validation_url: str, pdf_url: Optional[str] = None) -> bool:
        """
        Отправляет письмо получателю.

        Returns:
            bool: True если письмо отправлено, False если SMTP не настроен

        Raises:
            NotificationError: При ошибке SMTP
        """
        if not self.enabled:
            logger.info(f"SMTP не настроен, письмо для {unique_id} не отправлено")
            return False

        message = self.build_message(
            recipient_email, recipient_name, event_name, unique_id, validation_url, pdf_url
        )

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                if self.user:
                    smtp.login(self.user, self.password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Ошибка отправки письма на {recipient_email}: {e}") from e

        logger.info(f"Письмо с сертификатом {unique_id} отправлено на {recipient_email}")
        return True
