"""Unit tests for the alert throttling state machine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.schemas import Bin, BinState
from services.alerts import AlertCoordinator

START = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture()
def bin() -> Bin:
    return Bin(bin_id="bin-1", name="Library Entrance", height=100.0, threshold=80.0)


@pytest.fixture()
def coordinator() -> AlertCoordinator:
    return AlertCoordinator()


def test_first_crossing_notifies_and_records_alert_time(bin, coordinator) -> None:
    decision = coordinator.evaluate(bin, 85.0, START)

    assert decision.notify is True
    assert decision.state is BinState.alerting
    assert decision.bin is bin
    assert bin.last_alert_time == START
    assert bin.current_fill_percentage == 85.0


def test_reading_within_cooldown_is_suppressed(bin, coordinator) -> None:
    coordinator.evaluate(bin, 85.0, START)

    decision = coordinator.evaluate(bin, 90.0, START + timedelta(minutes=10))

    assert decision.notify is False
    assert decision.state is BinState.alerting
    assert bin.last_alert_time == START
    assert bin.current_fill_percentage == 90.0


def test_reading_after_cooldown_notifies_again(bin, coordinator) -> None:
    coordinator.evaluate(bin, 85.0, START)
    later = START + timedelta(hours=2)

    decision = coordinator.evaluate(bin, 82.0, later)

    assert decision.notify is True
    assert bin.last_alert_time == later


def test_reading_exactly_at_interval_is_still_suppressed(bin, coordinator) -> None:
    coordinator.evaluate(bin, 85.0, START)

    decision = coordinator.evaluate(bin, 85.0, START + timedelta(hours=1))

    assert decision.notify is False
    assert bin.last_alert_time == START


def test_drop_below_threshold_resets_cooldown(bin, coordinator) -> None:
    coordinator.evaluate(bin, 85.0, START)

    drop = coordinator.evaluate(bin, 50.0, START + timedelta(minutes=5))
    assert drop.notify is False
    assert drop.state is BinState.normal
    assert bin.last_alert_time is None
    assert bin.current_fill_percentage == 50.0

    rise = coordinator.evaluate(bin, 85.0, START + timedelta(minutes=6))
    assert rise.notify is True
    assert bin.last_alert_time == START + timedelta(minutes=6)


def test_fill_equal_to_threshold_is_alerting(bin, coordinator) -> None:
    decision = coordinator.evaluate(bin, 80.0, START)

    assert decision.state is BinState.alerting
    assert decision.notify is True


def test_custom_interval_is_honoured(bin) -> None:
    coordinator = AlertCoordinator(interval=timedelta(minutes=5))
    coordinator.evaluate(bin, 95.0, START)

    decision = coordinator.evaluate(bin, 95.0, START + timedelta(minutes=6))

    assert decision.notify is True


def test_naive_last_alert_time_is_treated_as_utc(coordinator) -> None:
    bin = Bin(
        bin_id="bin-2",
        name="Cafeteria",
        height=90.0,
        last_alert_time=datetime(2024, 1, 1, 7, 30),
    )

    decision = coordinator.evaluate(bin, 90.0, START)

    assert decision.notify is False
