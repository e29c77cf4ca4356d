from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from app.schemas import Bin
from services.fill import DEFAULT_PERCENTAGE_SCALE
from settings import get_settings

logger = logging.getLogger(__name__)


class BinStore:
    """Thread-safe bin table keyed by ``bin_id`` with an optional JSON file.

    Thresholds and fill levels must lie within ``[0, scale]``; bins outside it
    are rejected on write and skipped on load.
    """

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        scale: float = DEFAULT_PERCENTAGE_SCALE,
    ) -> None:
        self.name = name
        self.scale = scale
        self._items: Dict[str, Bin] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_bin(self, item: Bin) -> None:
        """Register or replace a bin, e.g. when seeding the store."""
        self._check_bounds(item)
        with self._lock:
            self._items[item.bin_id] = item.model_copy(deep=True)
            self._persist()

    def save(self, item: Bin) -> None:
        """Commit the given bin snapshot."""
        self.put_bin(item)

    def get_bin(self, bin_id: str) -> Optional[Bin]:
        with self._lock:
            item = self._items.get(bin_id)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def find_bin_for_sensor(self, sensor_id: str) -> Optional[Bin]:
        with self._lock:
            for item in self._items.values():
                if item.sensor_id == sensor_id:
                    return item.model_copy(deep=True)
        return None

    def scan(self) -> list[Bin]:
        """Return deep copies of all stored bins."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            bin_id: item.model_dump(mode="json") for bin_id, item in self._items.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable bin store file",
                extra={"reason": str(self.persistence_path)},
            )
            data = {}

        for bin_id, payload in data.items():
            try:
                item = Bin.model_validate(payload)
                self._check_bounds(item)
            except ValueError as exc:
                logger.error(
                    "Skipping invalid bin in store file",
                    extra={"bin_id": bin_id, "reason": str(exc)},
                )
                continue
            self._items[bin_id] = item

    def _check_bounds(self, item: Bin) -> None:
        if item.threshold > self.scale:
            raise ValueError(
                f"Threshold {item.threshold} of bin {item.bin_id!r} exceeds the fill scale {self.scale}."
            )
        if item.current_fill_percentage > self.scale:
            raise ValueError(
                f"Fill {item.current_fill_percentage} of bin {item.bin_id!r} exceeds the fill scale {self.scale}."
            )


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> BinStore:
    settings = get_settings()
    store_name = settings.store_name if name is None else name
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return BinStore(
        name=store_name,
        persistence_path=persistence,
        scale=settings.percentage_scale,
    )
