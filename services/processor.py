"""Evaluation pipeline from a sensor reading to persisted bin state."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from threading import Lock
from typing import Callable, Dict, Iterator, Optional

from app.schemas import Bin, ReadingOutcome, ReadingStatus
from datastore.bin_store import BinStore, build_default_store
from models.records import SensorReading
from services.alerts import AlertCoordinator
from services.fill import FillCalculator
from services.notifier import DispatchReport, Notifier, build_default_notifier
from settings import get_settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BinLocks:
    """Hands out one lock per bin so readings for a bin never interleave."""

    def __init__(self) -> None:
        self._locks: Dict[str, Lock] = {}
        self._guard = Lock()

    @contextmanager
    def hold(self, bin_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(bin_id, Lock())
        with lock:
            yield


class ReadingProcessor:
    """Coordinates fill computation, alert decisions, persistence and dispatch."""

    def __init__(
        self,
        store: BinStore,
        notifier: Notifier,
        calculator: FillCalculator,
        coordinator: AlertCoordinator,
        workers: int = 4,
        notify_workers: int = 2,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.calculator = calculator
        self.coordinator = coordinator
        self.clock = clock
        self.executor = ThreadPoolExecutor(max_workers=workers)
        self.dispatch_executor = ThreadPoolExecutor(max_workers=notify_workers)
        self._locks = BinLocks()

    def submit_reading(self, sensor_id: str, distance: float) -> Future[ReadingOutcome]:
        """Evaluate a reading on the worker pool."""
        return self.executor.submit(self.process_reading, sensor_id, distance)

    def process_reading(self, sensor_id: str, distance: float) -> ReadingOutcome:
        """Evaluate a reading synchronously and return what happened."""
        start_time = time.perf_counter()
        candidate = self.store.find_bin_for_sensor(sensor_id)
        if candidate is None:
            logger.warning(
                "No bin registered for sensor, ignoring reading",
                extra={"sensor_id": sensor_id, "status": ReadingStatus.unresolved.value},
            )
            return ReadingOutcome(
                sensor_id=sensor_id,
                status=ReadingStatus.unresolved,
                evaluated_at=self.clock(),
            )

        with self._locks.hold(candidate.bin_id):
            # Re-read under the lock; the lookup above may be stale.
            bin = self.store.get_bin(candidate.bin_id) or candidate
            reading = SensorReading(sensor_id=sensor_id, distance=distance, timestamp=self.clock())
            fill = self.calculator.compute_fill_percentage(bin.height, reading.distance)
            decision = self.coordinator.evaluate(bin, fill, reading.timestamp)
            self.store.save(decision.bin)
            snapshot = decision.bin.model_copy(deep=True)

        processing_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Reading evaluated",
            extra={
                "sensor_id": sensor_id,
                "status": ReadingStatus.evaluated.value,
                "bin_id": bin.bin_id,
                "fill_percentage": fill,
                "threshold": bin.threshold,
                "state": decision.state.value,
                "notified": decision.notify,
                "processing_ms": processing_ms,
            },
        )

        if decision.notify:
            self._dispatch(snapshot, fill)

        return ReadingOutcome(
            sensor_id=sensor_id,
            status=ReadingStatus.evaluated,
            evaluated_at=reading.timestamp,
            bin_id=bin.bin_id,
            fill_percentage=fill,
            state=decision.state,
            notified=decision.notify,
            processing_ms=processing_ms,
        )

    def fetch_bin(self, bin_id: str) -> Bin:
        bin = self.store.get_bin(bin_id)
        if bin is None:
            raise KeyError(f"Bin {bin_id!r} not found.")
        return bin

    def list_bins(self, full_only: bool = False) -> list[Bin]:
        """Return bins ordered by fill percentage, fullest first."""
        bins = self.store.scan()
        if full_only:
            bins = [bin for bin in bins if bin.is_full]
        return sorted(bins, key=lambda bin: bin.current_fill_percentage, reverse=True)

    def shutdown(self) -> None:
        """Clean up executor resources during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)
        self.dispatch_executor.shutdown(wait=False, cancel_futures=True)

    def _dispatch(self, bin: Bin, fill: float) -> None:
        logger.info(
            "Dispatching overflow alert",
            extra={"bin_id": bin.bin_id, "fill_percentage": fill},
        )
        future = self.dispatch_executor.submit(
            self.notifier.notify, bin, fill, list(bin.recipients)
        )
        future.add_done_callback(lambda f, bid=bin.bin_id: self._dispatch_done(bid, f))

    def _dispatch_done(self, bin_id: str, future: Future[DispatchReport]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "Alert dispatch failed",
                extra={"bin_id": bin_id, "reason": repr(exc)},
            )


@lru_cache
def build_default_processor(
    workers: Optional[int] = None,
) -> ReadingProcessor:
    """Factory that wires the processor from settings."""
    settings = get_settings()
    return ReadingProcessor(
        store=build_default_store(),
        notifier=build_default_notifier(),
        calculator=FillCalculator(scale=settings.percentage_scale),
        coordinator=AlertCoordinator(interval=settings.alert_interval),
        workers=workers or settings.reading_workers,
        notify_workers=settings.notify_workers,
    )
