import smtplib
from email.message import EmailMessage
from functools import lru_cache
from typing import Optional, Protocol

import structlog

from settings import get_settings

logger = structlog.get_logger(__name__)


class Mailer(Protocol):
    def send_message(self, to: str, subject: str, body: str) -> None:
        ...


class SmtpMailer:
    """Blocking SMTP sender; callers run it in an executor."""

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        if self.sender:
            msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(body)
        return msg

    def send_message(self, to: str, subject: str, body: str) -> None:
        msg = self.build_message(to, subject, body)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
        logger.info("Email sent", to=to, subject=subject)


@lru_cache
def get_mailer() -> Mailer:
    settings = get_settings()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.email_user,
        password=settings.email_pass,
        sender=settings.email_from,
        use_tls=settings.smtp_use_tls,
        timeout=settings.smtp_timeout_seconds,
    )
