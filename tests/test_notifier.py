"""Unit tests for alert rendering and per-recipient dispatch."""

from __future__ import annotations

import logging
import smtplib
from typing import Dict, List

import pytest

from app.schemas import Bin, Location, Recipient
from services.notifier import (
    LOCATION_PLACEHOLDER,
    AlertMessage,
    DispatchError,
    EmailNotifier,
    LogNotifier,
    Notifier,
    render_alert,
)


def _bin(location: Location | None = None) -> Bin:
    return Bin(
        bin_id="bin-7",
        name="Gym Lobby",
        height=120.0,
        threshold=75.0,
        location=location,
        recipients=[
            Recipient(recipient_id="c-1", name="Ana", email="ana@example.com"),
            Recipient(recipient_id="c-2", name="Ben"),
            Recipient(recipient_id="c-3", name="Cleo", email="cleo@example.com"),
        ],
    )


class FlakyNotifier(Notifier):
    def __init__(self, failing: set[str], **kwargs) -> None:
        super().__init__(**kwargs)
        self.failing = failing
        self.attempts: Dict[str, int] = {}
        self.delivered: List[AlertMessage] = []

    def deliver(self, message: AlertMessage) -> None:
        self.attempts[message.recipient] = self.attempts.get(message.recipient, 0) + 1
        if message.recipient in self.failing:
            raise DispatchError(f"mailbox unavailable: {message.recipient}")
        self.delivered.append(message)


def test_render_alert_includes_name_fill_and_location() -> None:
    bin = _bin(Location(address="1430 Trafalgar Rd"))
    recipient = bin.recipients[0]

    message = render_alert(bin, 87.456, recipient)

    assert message.recipient == "ana@example.com"
    assert message.subject == "Alert: Gym Lobby - 87.5% Full"
    assert "Hi Ana" in message.body
    assert '"Gym Lobby" is 87.5% full' in message.body
    assert "Location: 1430 Trafalgar Rd" in message.body


def test_render_alert_uses_placeholder_without_location() -> None:
    bin = _bin()

    message = render_alert(bin, 90.0, bin.recipients[0])

    assert f"Location: {LOCATION_PLACEHOLDER}" in message.body

    bin.location = Location(latitude=43.46, longitude=-79.70)
    message = render_alert(bin, 90.0, bin.recipients[0])
    assert f"Location: {LOCATION_PLACEHOLDER}" in message.body


def test_recipients_without_email_are_skipped() -> None:
    notifier = LogNotifier()
    bin = _bin()

    report = notifier.notify(bin, 80.0, bin.recipients)

    assert report.sent == ["ana@example.com", "cleo@example.com"]
    assert report.skipped == ["c-2"]
    assert report.failed == []
    assert [message.recipient for message in notifier.messages] == [
        "ana@example.com",
        "cleo@example.com",
    ]


def test_failed_recipient_is_retried_then_dropped(caplog) -> None:
    notifier = FlakyNotifier(failing={"ana@example.com"}, retry_attempts=3, retry_delay=0)
    bin = _bin()

    with caplog.at_level(logging.WARNING, logger="services.notifier"):
        report = notifier.notify(bin, 95.0, bin.recipients)

    assert notifier.attempts["ana@example.com"] == 3
    assert notifier.attempts["cleo@example.com"] == 1
    assert report.failed == ["ana@example.com"]
    assert report.sent == ["cleo@example.com"]

    errors = [record for record in caplog.records if record.levelno == logging.ERROR]
    assert len(errors) == 1
    assert getattr(errors[0], "recipient", None) == "ana@example.com"
    assert getattr(errors[0], "bin_id", None) == "bin-7"


class FakeSMTP:
    instances: List["FakeSMTP"] = []
    refuse: set[str] = set()

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.login_args: tuple[str, str] | None = None
        self.sent: list = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def starttls(self) -> None:
        self.started_tls = True

    def login(self, username: str, password: str) -> None:
        self.login_args = (username, password)

    def send_message(self, message) -> None:
        if message["To"] in FakeSMTP.refuse:
            raise smtplib.SMTPRecipientsRefused({message["To"]: (550, b"no such user")})
        self.sent.append(message)


def test_email_notifier_sends_through_smtp(monkeypatch) -> None:
    FakeSMTP.instances = []
    FakeSMTP.refuse = {"cleo@example.com"}
    monkeypatch.setattr("services.notifier.smtplib.SMTP", FakeSMTP)
    notifier = EmailNotifier(
        host="smtp.example.com",
        port=2525,
        sender="bins@example.com",
        username="relay",
        password="secret",
        use_tls=True,
        retry_attempts=2,
        retry_delay=0,
    )
    bin = _bin(Location(address="Main Quad"))

    report = notifier.notify(bin, 81.0, bin.recipients)

    assert report.sent == ["ana@example.com"]
    assert report.failed == ["cleo@example.com"]
    assert report.skipped == ["c-2"]

    delivered = [message for smtp in FakeSMTP.instances for message in smtp.sent]
    assert len(delivered) == 1
    email = delivered[0]
    assert email["From"] == "bins@example.com"
    assert email["Subject"] == "Alert: Gym Lobby - 81.0% Full"
    assert "Location: Main Quad" in email.get_content()

    # one connection for Ana, two attempts for Cleo
    assert len(FakeSMTP.instances) == 3
    assert all(smtp.started_tls for smtp in FakeSMTP.instances)
    assert all(smtp.login_args == ("relay", "secret") for smtp in FakeSMTP.instances)
    assert FakeSMTP.instances[0].host == "smtp.example.com"
    assert FakeSMTP.instances[0].port == 2525


def test_malformed_address_does_not_block_later_recipients(monkeypatch, caplog) -> None:
    FakeSMTP.instances = []
    FakeSMTP.refuse = set()
    monkeypatch.setattr("services.notifier.smtplib.SMTP", FakeSMTP)
    notifier = EmailNotifier(host="smtp.example.com", retry_attempts=3, retry_delay=0)
    bin = _bin()
    recipients = [
        Recipient(recipient_id="c-9", name="Mallory", email="bad@example.com\nBcc: x@y"),
        Recipient(recipient_id="c-1", name="Ana", email="ana@example.com"),
    ]

    with caplog.at_level(logging.ERROR, logger="services.notifier"):
        report = notifier.notify(bin, 90.0, recipients)

    assert report.failed == ["bad@example.com\nBcc: x@y"]
    assert report.sent == ["ana@example.com"]
    delivered = [message["To"] for smtp in FakeSMTP.instances for message in smtp.sent]
    assert delivered == ["ana@example.com"]
    assert any(
        getattr(record, "recipient", None) == "bad@example.com\nBcc: x@y" for record in caplog.records
    )


def test_unexpected_transport_error_is_not_retried_and_does_not_stop_dispatch() -> None:
    class ExplodingNotifier(FlakyNotifier):
        def deliver(self, message: AlertMessage) -> None:
            if message.recipient == "ana@example.com":
                self.attempts[message.recipient] = self.attempts.get(message.recipient, 0) + 1
                raise RuntimeError("template engine crashed")
            super().deliver(message)

    notifier = ExplodingNotifier(failing=set(), retry_attempts=3, retry_delay=0)
    bin = _bin()

    report = notifier.notify(bin, 90.0, bin.recipients)

    assert notifier.attempts["ana@example.com"] == 1
    assert report.failed == ["ana@example.com"]
    assert report.sent == ["cleo@example.com"]


def test_notifier_requires_a_delivery_transport() -> None:
    with pytest.raises(TypeError):
        Notifier()  # type: ignore[abstract]


def test_log_notifier_keeps_bounded_history() -> None:
    notifier = LogNotifier(history_size=2)
    bin = _bin()

    for fill in (81.0, 82.0):
        notifier.notify(bin, fill, bin.recipients)

    assert len(notifier.messages) == 2
    assert [message.subject for message in notifier.messages] == [
        "Alert: Gym Lobby - 82.0% Full",
        "Alert: Gym Lobby - 82.0% Full",
    ]
