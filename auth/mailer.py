"""
auth/mailer.py -- Notifier implementations.

  LoggingMailer  development default: logs recipient and subject, keeps the
                 last messages in memory for inspection. Never logs the body
                 -- it contains codes and reset links.
  SmtpMailer     smtplib with STARTTLS and login, HTML body via EmailMessage.

Deadline: SmtpMailer never waits past ctx.deadline. The socket timeout is the
time left (capped at its own timeout), and a deadline that has already
passed raises TimeoutError without connecting.

Recipients: the login and registration flows address mail to an email
address; password restore addresses it to a user id. SmtpMailer resolves a
recipient without "@" through the resolve_recipient callable (typically
UserStore.get_by_id).
"""

from __future__ import annotations

import logging
import smtplib
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from email.message import EmailMessage

from core.models import ClientContext

logger = logging.getLogger("gatehouse.mailer")


@dataclass(frozen=True)
class SentEmail:
    recipient: str
    subject: str
    body: str


class LoggingMailer:
    def __init__(self, keep_last: int = 50) -> None:
        self.outbox: deque[SentEmail] = deque(maxlen=keep_last)

    def send(self, recipient: str, subject: str, body: str, ctx: ClientContext) -> None:
        self.outbox.append(SentEmail(recipient=recipient, subject=subject, body=body))
        logger.info("Email %r to %s (not delivered, SMTP not configured)", subject, recipient)


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        resolve_recipient: Callable[[str], str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.resolve_recipient = resolve_recipient
        self.timeout = timeout

    def _address(self, recipient: str) -> str:
        if "@" in recipient or self.resolve_recipient is None:
            return recipient
        address = self.resolve_recipient(recipient)
        if not address:
            raise LookupError(f"no email address for recipient {recipient}")
        return address

    def send(self, recipient: str, subject: str, body: str, ctx: ClientContext) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = self._address(recipient)
        msg.set_content("This message requires an HTML capable email client.")
        msg.add_alternative(body, subtype="html")

        if ctx.expired:
            raise TimeoutError(f"deadline passed before sending {subject!r}")
        remaining = ctx.remaining()
        timeout = self.timeout if remaining is None else min(remaining, self.timeout)
        with smtplib.SMTP(self.host, self.port, timeout=timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)
        logger.info("Email %r sent to %s", subject, msg["To"])
