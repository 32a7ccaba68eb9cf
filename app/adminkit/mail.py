from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage

logger = logging.getLogger(__name__)


class MailError(RuntimeError):
    pass


class Mailer:
    def send(self, to: str, subject: str, body: str) -> None:
        raise NotImplementedError


def build_message(sender: str, to: str, subject: str, body: str) -> EmailMessage:
    if not to:
        raise MailError("Recipient address is empty.")
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to
    msg["Subject"] = subject or "(no subject)"
    msg.set_content(body)
    return msg


@dataclass(frozen=True)
class SmtpMailer(Mailer):
    host: str
    port: int
    username: str
    password: str
    sender: str
    use_ssl: bool = False
    timeout_seconds: int = 20

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_seconds, context=context)
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)
        server.starttls(context=context)
        return server

    def send(self, to: str, subject: str, body: str) -> None:
        msg = build_message(self.sender or self.username, to, subject, body)
        try:
            with self._connect() as server:
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError as e:
            raise MailError(f"SMTP authentication failed: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(f"SMTP delivery to {to} failed: {e}") from e


@dataclass(frozen=True)
class ConsoleMailer(Mailer):
    """Development backend: writes the message to the log instead of sending it."""

    sender: str = ""

    def send(self, to: str, subject: str, body: str) -> None:
        msg = build_message(self.sender, to, subject, body)
        logger.info("MAIL (console) to=%s subject=%s\n%s", msg["To"], msg["Subject"], body)


@dataclass
class MemoryMailer(Mailer):
    """Keeps sent messages in ``outbox``; used by tests."""

    sender: str = ""
    outbox: list[EmailMessage] = field(default_factory=list)

    def send(self, to: str, subject: str, body: str) -> None:
        self.outbox.append(build_message(self.sender, to, subject, body))


def mailer_from_config(config: dict) -> Mailer:
    backend = (config.get("MAIL_BACKEND") or "console").strip().lower()
    sender = (config.get("MAIL_FROM") or "").strip()
    if backend == "smtp":
        return SmtpMailer(
            host=(config.get("SMTP_HOST") or "").strip(),
            port=int(config.get("SMTP_PORT") or 587),
            username=(config.get("SMTP_USERNAME") or "").strip(),
            password=config.get("SMTP_PASSWORD") or "",
            sender=sender,
            use_ssl=bool(config.get("SMTP_USE_SSL")),
            timeout_seconds=int(config.get("SMTP_TIMEOUT_SECONDS") or 20),
        )
    if backend == "memory":
        return MemoryMailer(sender=sender)
    return ConsoleMailer(sender=sender)
