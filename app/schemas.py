"""Pydantic schemas for bins, alert state and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field


class BinState(str, Enum):
    """Alerting state of a bin derived from its fill level and threshold."""

    normal = "NORMAL"
    alerting = "ALERTING"


class ReadingStatus(str, Enum):
    """Outcome of handling a single sensor reading."""

    evaluated = "evaluated"
    unresolved = "unresolved"


class Location(BaseModel):
    """Where a bin is installed."""

    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Recipient(BaseModel):
    """A cleaner registered to receive overflow alerts for a bin."""

    recipient_id: str
    name: str
    email: Optional[str] = Field(
        default=None, description="Contact address; recipients without one are skipped."
    )


class Bin(BaseModel):
    """A monitored bin and its mutable fill and alert state."""

    bin_id: str
    name: str
    height: float = Field(..., description="Sensor-to-bottom distance when the bin is empty.")
    threshold: float = Field(default=80.0, ge=0, description="Fill percentage at which alerting starts.")
    current_fill_percentage: float = Field(default=0.0, ge=0)
    last_alert_time: Optional[datetime] = None
    sensor_id: Optional[str] = None
    location: Optional[Location] = None
    recipients: List[Recipient] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_full(self) -> bool:
        return self.current_fill_percentage >= self.threshold

    @computed_field  # type: ignore[prop-decorator]
    @property
    def state(self) -> BinState:
        return BinState.alerting if self.is_full else BinState.normal

    @property
    def location_text(self) -> Optional[str]:
        if self.location is None:
            return None
        return self.location.address


class ReadingRequest(BaseModel):
    """Payload delivered by the sensor gateway for one distance sample."""

    sensor_id: str = Field(..., min_length=1)
    distance: float = Field(..., description="Measured distance from the sensor to the fill surface.")


class ReadingOutcome(BaseModel):
    """Result of evaluating one reading against its bin."""

    sensor_id: str
    status: ReadingStatus
    evaluated_at: datetime
    bin_id: Optional[str] = None
    fill_percentage: Optional[float] = None
    state: Optional[BinState] = None
    notified: bool = False
    processing_ms: Optional[int] = Field(
        default=None, description="Duration in milliseconds from lookup to save."
    )
