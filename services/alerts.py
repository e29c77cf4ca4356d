"""Alert throttling for bins crossing their fill threshold."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.schemas import Bin, BinState

DEFAULT_ALERT_INTERVAL = timedelta(hours=1)


@dataclass
class AlertDecision:
    """Bin after evaluation and whether its recipients should be notified."""

    bin: Bin
    notify: bool
    state: BinState


class AlertCoordinator:
    """Decides when a bin's recipients are notified.

    A bin at or above its threshold notifies at most once per ``interval``.
    Dropping below the threshold clears ``last_alert_time`` so the next
    crossing notifies immediately. The coordinator mutates the bin it is given
    and keeps no state between calls.
    """

    def __init__(self, interval: timedelta = DEFAULT_ALERT_INTERVAL) -> None:
        self.interval = interval

    def evaluate(self, bin: Bin, fill: float, now: datetime) -> AlertDecision:
        bin.current_fill_percentage = fill

        if fill < bin.threshold:
            bin.last_alert_time = None
            return AlertDecision(bin=bin, notify=False, state=BinState.normal)

        notify = self._cooldown_elapsed(bin.last_alert_time, now)
        if notify:
            bin.last_alert_time = now
        return AlertDecision(bin=bin, notify=notify, state=BinState.alerting)

    def _cooldown_elapsed(self, last_alert_time: datetime | None, now: datetime) -> bool:
        if last_alert_time is None:
            return True
        # Seeded bins may carry naive timestamps; those are stored as UTC.
        if last_alert_time.tzinfo is None and now.tzinfo is not None:
            last_alert_time = last_alert_time.replace(tzinfo=timezone.utc)
        return last_alert_time < now - self.interval
