"""Conversion of raw distance readings into a bounded fill percentage."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_PERCENTAGE_SCALE = 100.0


class FillCalculator:
    """Pure fill computation that can be unit tested in isolation.

    Invalid inputs never raise. A non-positive height yields ``0.0`` and a
    distance beyond the empty depth reads as an empty bin. Negative distances
    are left to the final clamp and therefore report a full bin.
    """

    def __init__(self, scale: float = DEFAULT_PERCENTAGE_SCALE) -> None:
        self.scale = scale

    def compute_fill_percentage(self, height: float, distance_reading: float) -> float:
        if height <= 0:
            logger.warning(
                "Invalid bin height, reporting empty bin",
                extra={"reason": f"height={height}"},
            )
            return 0.0

        distance = distance_reading
        if distance > height:
            logger.warning(
                "Distance reading exceeds bin height, clamping to height",
                extra={"reason": f"distance={distance_reading} height={height}"},
            )
            distance = height

        fill = (height - distance) / height * self.scale
        return max(0.0, min(self.scale, fill))


_default_calculator = FillCalculator()


def compute_fill_percentage(height: float, distance_reading: float) -> float:
    """Compute the fill percentage on the default 0-100 scale."""
    return _default_calculator.compute_fill_percentage(height, distance_reading)
