"""
Email Service

Sends SMTP email for invoices. Uses aiosmtplib for async delivery and jinja2
templates for the HTML and plain-text bodies.
"""

import os
import logging
import re
from pathlib import Path
from typing import Optional, Dict, Any, List, Tuple
import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr, make_msgid
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from taskbill.utils.formatting import format_inr, format_long_date

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


class EmailSendError(Exception):
    """Raised when SMTP delivery fails."""


class EmailServiceConfig:
    """Configuration for email service from environment variables."""

    def __init__(self):
        self.smtp_hostname = os.getenv('SMTP_HOSTNAME', '')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_username = os.getenv('SMTP_USERNAME', '')
        self.smtp_password = os.getenv('SMTP_PASSWORD', '')
        self.smtp_use_tls = os.getenv('SMTP_USE_TLS', 'false').lower() == 'true'
        self.smtp_use_ssl = os.getenv('SMTP_USE_SSL', 'false').lower() == 'true'
        self.from_email = os.getenv('SMTP_FROM', '') or self.smtp_username
        self.from_name = os.getenv('SMTP_FROM_NAME', 'Taskbill')

        self.template_dir = os.getenv('EMAIL_TEMPLATE_DIR', str(DEFAULT_TEMPLATE_DIR))

    def is_configured(self) -> bool:
        """SMTP is usable only with a host and login credentials."""
        return bool(self.smtp_hostname and self.smtp_username and self.smtp_password)

    def missing(self) -> List[str]:
        names = {
            'SMTP_HOSTNAME': self.smtp_hostname,
            'SMTP_USERNAME': self.smtp_username,
            'SMTP_PASSWORD': self.smtp_password,
        }
        return [name for name, value in names.items() if not value]

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = [f"{name} is required" for name in self.missing()]
        if not self.smtp_port or self.smtp_port <= 0:
            errors.append("SMTP_PORT must be a positive integer")
        if not self.from_email:
            errors.append("SMTP_FROM is required")
        if self.smtp_use_ssl and self.smtp_use_tls:
            errors.append("Cannot use both SSL and TLS simultaneously")
        return errors


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self, config: Optional[EmailServiceConfig] = None):
        self.config = config or EmailServiceConfig()
        self.template_env = None
        self._setup_templates()

    def _setup_templates(self):
        template_path = Path(self.config.template_dir)
        if not template_path.exists():
            logger.warning("Email template directory not found: %s; using bundled templates", template_path)
            template_path = DEFAULT_TEMPLATE_DIR
        self.template_env = Environment(
            loader=FileSystemLoader(str(template_path)),
            autoescape=select_autoescape(enabled_extensions=('html',), default_for_string=False),
        )
        self.template_env.filters['inr'] = format_inr
        self.template_env.filters['long_date'] = format_long_date

    def _smtp_kwargs(self) -> Dict[str, Any]:
        kwargs = {
            'hostname': self.config.smtp_hostname,
            'port': self.config.smtp_port,
            'use_tls': self.config.smtp_use_ssl,
            'start_tls': self.config.smtp_use_tls and not self.config.smtp_use_ssl,
            'username': self.config.smtp_username or None,
            'password': self.config.smtp_password or None,
        }
        return kwargs

    def build_message(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> MIMEMultipart:
        message = MIMEMultipart('alternative')
        message['From'] = formataddr((self.config.from_name, self.config.from_email))
        message['To'] = to_email
        message['Subject'] = subject
        message['Message-ID'] = make_msgid()
        if text_content:
            message.attach(MIMEText(text_content, 'plain', 'utf-8'))
        message.attach(MIMEText(html_content, 'html', 'utf-8'))
        return message

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send an email via SMTP.

        Returns:
            Dict with 'success' and 'message_id'

        Raises:
            EmailSendError: when the SMTP exchange fails
        """
        if not self.config.is_configured():
            raise EmailSendError(
                f"Email service not configured (missing: {', '.join(self.config.missing())})"
            )

        message = self.build_message(to_email, subject, html_content, text_content)
        try:
            await aiosmtplib.send(message, **self._smtp_kwargs())
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e, exc_info=True)
            raise EmailSendError(str(e)) from e

        logger.info("Email sent to %s: %s", to_email, subject)
        return {'success': True, 'message_id': message['Message-ID']}

    def render_template(self, template_name: str, context: Dict[str, Any]) -> Tuple[str, str]:
        """
        Render email template with context.

        Returns:
            Tuple of (html_content, text_content)
        """
        html_content = self.template_env.get_template(f"{template_name}.html").render(**context)
        try:
            text_content = self.template_env.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound:
            text_content = self._html_to_text(html_content)
        return html_content, text_content

    def _html_to_text(self, html_content: str) -> str:
        text = re.sub(r'<[^>]+>', '', html_content)
        text = text.replace('&amp;', '&').replace('&lt;', '<').replace('&gt;', '>')
        text = text.replace('&quot;', '"').replace('&#39;', "'")
        return re.sub(r'\s+', ' ', text).strip()

    async def test_connection(self) -> Dict[str, Any]:
        """Connect and log in without sending anything."""
        errors = self.config.validate()
        if errors:
            return {'success': False, 'error': f"Configuration errors: {', '.join(errors)}"}

        kwargs = self._smtp_kwargs()
        username = kwargs.pop('username')
        password = kwargs.pop('password')
        try:
            async with aiosmtplib.SMTP(**kwargs) as smtp:
                await smtp.login(username, password)
        except (aiosmtplib.SMTPException, OSError) as e:
            return {'success': False, 'error': f"Connection test failed: {e}"}
        return {
            'success': True,
            'message': f"Successfully connected to {self.config.smtp_hostname}:{self.config.smtp_port}",
        }


# Global email service instance
_email_service = None


def get_email_service() -> EmailService:
    """Get singleton email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


def reset_email_service() -> None:
    """Drop the cached instance so the next call re-reads the environment."""
    global _email_service
    _email_service = None
