"""Delivery of overflow alerts to the recipients assigned to a bin."""

from __future__ import annotations

import logging
import smtplib
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from email.message import EmailMessage
from functools import lru_cache
from typing import Deque, Iterable, List, Optional

from retry.api import retry_call

from app.schemas import Bin, Recipient
from settings import get_settings

logger = logging.getLogger(__name__)

LOCATION_PLACEHOLDER = "Location not available"
LOG_HISTORY_SIZE = 100


class DispatchError(Exception):
    """Raised by a transport when a single message could not be delivered."""


@dataclass(frozen=True)
class AlertMessage:
    recipient: str
    subject: str
    body: str


@dataclass
class DispatchReport:
    """Per-recipient summary of one notification round."""

    sent: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def render_alert(bin: Bin, fill_percentage: float, recipient: Recipient) -> AlertMessage:
    location = bin.location_text or LOCATION_PLACEHOLDER
    subject = f"Alert: {bin.name} - {fill_percentage:.1f}% Full"
    body = (
        f"Hi {recipient.name},\n\n"
        f'Trash bin "{bin.name}" is {fill_percentage:.1f}% full and requires attention.\n\n'
        f"Location: {location}\n\n"
        "Thanks,\n"
        "Smart Waste Management System"
    )
    return AlertMessage(recipient=recipient.email or "", subject=subject, body=body)


class Notifier(ABC):
    """Sends one message per reachable recipient.

    Delivery failures are retried ``retry_attempts`` times with ``retry_delay``
    seconds between attempts, then dropped and logged. A failed recipient never
    stops delivery to the rest.
    """

    def __init__(self, retry_attempts: int = 1, retry_delay: float = 0.0) -> None:
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay

    def notify(
        self,
        bin: Bin,
        fill_percentage: float,
        recipients: Iterable[Recipient],
    ) -> DispatchReport:
        report = DispatchReport()
        for recipient in recipients:
            if not recipient.email:
                report.skipped.append(recipient.recipient_id)
                continue

            message = render_alert(bin, fill_percentage, recipient)
            try:
                retry_call(
                    self.deliver,
                    fargs=[message],
                    exceptions=DispatchError,
                    tries=self.retry_attempts,
                    delay=self.retry_delay,
                    logger=logger,
                )
            except DispatchError as exc:
                report.failed.append(recipient.email)
                logger.error(
                    "Dropping alert after failed delivery",
                    extra={
                        "bin_id": bin.bin_id,
                        "recipient": recipient.email,
                        "attempt": self.retry_attempts,
                        "reason": str(exc),
                    },
                )
                continue
            except Exception as exc:  # noqa: BLE001 - per-recipient isolation
                report.failed.append(recipient.email)
                logger.error(
                    "Dropping alert for undeliverable recipient",
                    extra={
                        "bin_id": bin.bin_id,
                        "recipient": recipient.email,
                        "reason": repr(exc),
                    },
                )
                continue

            report.sent.append(recipient.email)
            logger.info(
                "Alert delivered",
                extra={"bin_id": bin.bin_id, "recipient": recipient.email},
            )
        return report

    @abstractmethod
    def deliver(self, message: AlertMessage) -> None:
        """Send one message; raise DispatchError for failures worth retrying."""


class LogNotifier(Notifier):
    """Writes alerts to the log instead of a mail server."""

    def __init__(
        self,
        retry_attempts: int = 1,
        retry_delay: float = 0.0,
        history_size: int = LOG_HISTORY_SIZE,
    ) -> None:
        super().__init__(retry_attempts=retry_attempts, retry_delay=retry_delay)
        self.messages: Deque[AlertMessage] = deque(maxlen=history_size)

    def deliver(self, message: AlertMessage) -> None:
        self.messages.append(message)
        logger.info(
            "%s\n%s",
            message.subject,
            message.body,
            extra={"recipient": message.recipient},
        )


class EmailNotifier(Notifier):
    """Sends alerts through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 25,
        sender: str = "alerts@smartwaste.local",
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = False,
        timeout: float = 10.0,
        retry_attempts: int = 1,
        retry_delay: float = 0.0,
    ) -> None:
        super().__init__(retry_attempts=retry_attempts, retry_delay=retry_delay)
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_email(self, message: AlertMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = message.recipient
        email["Subject"] = message.subject
        email.set_content(message.body)
        return email

    def deliver(self, message: AlertMessage) -> None:
        try:
            email = self.build_email(message)
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as client:
                if self.use_tls:
                    client.starttls()
                if self.username:
                    client.login(self.username, self.password or "")
                client.send_message(email)
        except (smtplib.SMTPException, OSError) as exc:
            raise DispatchError(f"Failed to send email to {message.recipient}: {exc}") from exc


@lru_cache
def build_default_notifier() -> Notifier:
    """Use SMTP when a host is configured, otherwise log alerts."""
    settings = get_settings()
    if settings.smtp_host:
        return EmailNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.smtp_sender,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            retry_attempts=settings.notify_retry_attempts,
            retry_delay=settings.notify_retry_delay,
        )
    return LogNotifier(
        retry_attempts=settings.notify_retry_attempts,
        retry_delay=settings.notify_retry_delay,
    )
