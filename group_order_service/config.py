"""Group-order service configuration, all values from environment."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _optional_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


@dataclass(frozen=True)
class ServiceConfig:
    """Immutable configuration loaded once at startup."""

    api_key: str = field(default_factory=lambda: os.getenv("SERVICE_API_KEY", "demo-api-key-change-me"))

    # Group-order provider
    uber_sid: str = field(default_factory=lambda: os.getenv("UBER_SID", ""))
    sid_file: str = field(default_factory=lambda: os.getenv("UBER_SID_FILE", "uber_sid.json"))
    uber_base_url: str = field(default_factory=lambda: os.getenv("UBER_BASE_URL", "https://www.ubereats.com"))
    request_timeout: float = field(default_factory=lambda: float(os.getenv("UBER_REQUEST_TIMEOUT", "9")))
    login_timeout: float = field(default_factory=lambda: float(os.getenv("UBER_LOGIN_TIMEOUT", "10")))

    # Reverse geocoding
    geocode_url: str = field(
        default_factory=lambda: os.getenv("GEOCODE_URL", "https://nominatim.openstreetmap.org/reverse")
    )
    geocode_timeout: float = field(default_factory=lambda: float(os.getenv("GEOCODE_TIMEOUT", "6")))
    geocode_user_agent: str = field(
        default_factory=lambda: os.getenv("GEOCODE_USER_AGENT", "group-order-service/0.1")
    )

    # Caller-side order rules (empty = disabled)
    min_order_subtotal: float | None = field(default_factory=lambda: _optional_float("MIN_ORDER_SUBTOTAL"))
    max_order_subtotal: float | None = field(default_factory=lambda: _optional_float("MAX_ORDER_SUBTOTAL"))
    service_start_utc: str = field(default_factory=lambda: os.getenv("SERVICE_START_UTC", ""))
    service_end_utc: str = field(default_factory=lambda: os.getenv("SERVICE_END_UTC", ""))

    # Observability
    otel_endpoint: str = field(default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", ""))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def sid_path(self) -> Path:
        """Credential checkpoint file, relative paths resolved against the cwd."""
        path = Path(self.sid_file)
        return path if path.is_absolute() else Path.cwd() / path

    @cached_property
    def service_window(self) -> tuple[str, str] | None:
        """(start, end) as HH:MM UTC, or None when unrestricted or malformed."""
        if not (self.service_start_utc and self.service_end_utc):
            return None
        start, end = self.service_start_utc.strip(), self.service_end_utc.strip()
        if not (_HHMM.match(start) and _HHMM.match(end)):
            logger.warning("Ignoring malformed service window %r-%r, expected HH:MM", start, end)
            return None
        return start, end


config = ServiceConfig()
