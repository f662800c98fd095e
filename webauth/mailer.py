"""
Transactional email: welcome and password-reset messages.

Messages are rendered from Jinja2 templates in templates/email/, each with
an HTML and a plain-text part, and handed to a transport:

  - ConsoleTransport: logs recipient and subject instead of sending (development)
  - SMTPTransport: relays the message through an SMTP server

smtplib is blocking, so SMTP delivery runs in a worker thread. Transport
errors propagate to the caller, which decides how to recover (see
auth_service.forgot_password).

Usage in a route:
    @router.post("/forgot-password")
    async def forgot_password(..., mailer: Mailer = Depends(get_mailer)):
        await mailer.send_password_reset(user, reset_url)
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from webauth.config import settings
from webauth.models.user import User

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates" / "email"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


class ConsoleTransport:
    """
    Records outgoing mail in the log instead of delivering it.

    Only the envelope is logged: message bodies carry reset links.
    """

    async def send(self, message: EmailMessage) -> None:
        logger.info("Email to %s: %s (not delivered)", message["To"], message["Subject"])


class SMTPTransport:
    def __init__(
        self,
        host: str,
        port: int,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)

    async def send(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send_sync, message)


class Mailer:
    """Renders the transactional templates and sends them through a transport."""

    def __init__(self, transport, from_address: str):
        self.transport = transport
        self.from_address = from_address

    def render(self, template: str, subject: str, user: User, url: str) -> EmailMessage:
        context = {
            "first_name": user.name.split(" ")[0],
            "url": url,
            "subject": subject,
            "reset_minutes": settings.PASSWORD_RESET_EXPIRE_MINUTES,
        }

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.from_address
        message["To"] = user.email
        message.set_content(_env.get_template(f"{template}.txt").render(context))
        message.add_alternative(
            _env.get_template(f"{template}.html").render(context),
            subtype="html",
        )
        return message

    async def send(self, template: str, subject: str, user: User, url: str) -> None:
        message = self.render(template, subject, user, url)
        await self.transport.send(message)
        logger.info("Sent %s email to user %s", template, user.id)

    async def send_welcome(self, user: User, url: str) -> None:
        await self.send("welcome", "Welcome to the family!", user, url)

    async def send_password_reset(self, user: User, url: str) -> None:
        await self.send(
            "password_reset",
            f"Your password reset token (valid for only "
            f"{settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes)",
            user,
            url,
        )


def build_transport():
    backend = settings.EMAIL_BACKEND
    if backend is None:
        backend = "smtp" if settings.is_production else "console"

    if backend == "smtp":
        return SMTPTransport(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
        )
    return ConsoleTransport()


_mailer = Mailer(build_transport(), settings.EMAIL_FROM)


def get_mailer() -> Mailer:
    """FastAPI dependency returning the application mailer."""
    return _mailer
