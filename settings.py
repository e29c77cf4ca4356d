from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional


_STORE_NAME_ENV = "BIN_STORE_NAME"
_STORE_PATH_ENV = "BIN_STORE_PATH"
_ALERT_INTERVAL_ENV = "ALERT_INTERVAL_SECONDS"
_PERCENTAGE_SCALE_ENV = "FILL_PERCENTAGE_SCALE"
_READING_WORKERS_ENV = "READING_WORKER_COUNT"
_NOTIFY_WORKERS_ENV = "NOTIFY_WORKER_COUNT"
_RETRY_ATTEMPTS_ENV = "NOTIFY_RETRY_ATTEMPTS"
_RETRY_DELAY_ENV = "NOTIFY_RETRY_DELAY_SECONDS"
_SMTP_HOST_ENV = "SMTP_HOST"
_SMTP_PORT_ENV = "SMTP_PORT"
_SMTP_SENDER_ENV = "SMTP_SENDER"
_SMTP_USERNAME_ENV = "SMTP_USERNAME"
_SMTP_PASSWORD_ENV = "SMTP_PASSWORD"
_SMTP_TLS_ENV = "SMTP_USE_TLS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    store_name: str
    store_path: Optional[str]
    alert_interval_seconds: float
    percentage_scale: float
    reading_workers: int
    notify_workers: int
    notify_retry_attempts: int
    notify_retry_delay: float
    smtp_host: Optional[str]
    smtp_port: int
    smtp_sender: str
    smtp_username: Optional[str]
    smtp_password: Optional[str]
    smtp_use_tls: bool
    log_level: str

    @property
    def alert_interval(self) -> timedelta:
        return timedelta(seconds=self.alert_interval_seconds)


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_non_negative_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUTHY:
        return True
    if candidate in _FALSY:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_name=_read_str_env(_STORE_NAME_ENV, "bins"),
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/bins.json"),
        alert_interval_seconds=_read_non_negative_float(_ALERT_INTERVAL_ENV, 3600.0),
        percentage_scale=_read_positive_float(_PERCENTAGE_SCALE_ENV, 100.0),
        reading_workers=_read_positive_int(_READING_WORKERS_ENV, 4),
        notify_workers=_read_positive_int(_NOTIFY_WORKERS_ENV, 2),
        notify_retry_attempts=_read_positive_int(_RETRY_ATTEMPTS_ENV, 3),
        notify_retry_delay=_read_non_negative_float(_RETRY_DELAY_ENV, 1.0),
        smtp_host=_read_optional_env(_SMTP_HOST_ENV, None),
        smtp_port=_read_positive_int(_SMTP_PORT_ENV, 25),
        smtp_sender=_read_str_env(_SMTP_SENDER_ENV, "alerts@smartwaste.local"),
        smtp_username=_read_optional_env(_SMTP_USERNAME_ENV, None),
        smtp_password=_read_optional_env(_SMTP_PASSWORD_ENV, None),
        smtp_use_tls=_read_bool(_SMTP_TLS_ENV, False),
        log_level=_read_log_level("INFO"),
    )
