"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class SensorReading:
    """A single distance sample reported by a bin sensor.

    Readings are ephemeral: they drive one evaluation and are never stored.
    """

    sensor_id: str
    distance: float
    timestamp: datetime
