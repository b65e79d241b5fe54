"""Session credential (``sid`` cookie) store.

One instance per process, shared by every lookup. The token is checkpointed
to a small JSON file so restarts keep the last known session:

    {"sid": "...", "expiryTime": "2026-01-01T20:00:00+00:00", "lastUpdated": "..."}

Nothing here raises: load, persistence and refresh failures are logged and
the current token is kept.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import httpx
from opentelemetry import trace

from group_order_service import audit
from group_order_service.config import ServiceConfig
from group_order_service.uber_client import BROWSER_USER_AGENT, session_headers

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("group-order-service")

TOKEN_LIFETIME = timedelta(hours=20)
REFRESH_MARGIN = timedelta(minutes=5)
PREVIEW_LENGTH = 10
# Without a working probe, a token this long is assumed to be a real session.
MIN_PLAUSIBLE_TOKEN_LENGTH = 20

AUTH_PROBE_URLS = (
    "https://www.ubereats.com/api/getUserProfileV1",
    "https://eats.uber.com/api/getUserProfileV1",
    "https://www.ubereats.com/feed",
    "https://eats.uber.com/feed",
)
AUTH_OK_STATUSES = frozenset({200, 400, 401, 403})

_SID_COOKIE = re.compile(r"(?:^|;\s*)sid=([^;]+)")

_LOGIN_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Upgrade-Insecure-Requests": "1",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class SessionCredentialStore:
    """Holds the provider session token and keeps it fresh."""

    def __init__(
        self,
        path: Path,
        env_token: str = "",
        *,
        login_url: str = "https://www.ubereats.com/login",
        login_timeout: float = 10.0,
        probe_timeout: float = 10.0,
        clock: Callable[[], datetime] = _utcnow,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.path = path
        self.env_token = env_token
        self.login_url = login_url
        self.login_timeout = login_timeout
        self.probe_timeout = probe_timeout
        self.clock = clock
        self.transport = transport

        self.token = env_token
        self.expires_at: datetime | None = None
        self.last_updated: datetime | None = None
        self._refresh_lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: ServiceConfig, **kwargs) -> "SessionCredentialStore":
        """Build a store from config and load the checkpoint file."""
        store = cls(
            cfg.sid_path,
            cfg.uber_sid,
            login_url=f"{cfg.uber_base_url.rstrip('/')}/login",
            login_timeout=cfg.login_timeout,
            **kwargs,
        )
        store.load()
        return store

    @property
    def preview(self) -> str:
        return f"{self.token[:PREVIEW_LENGTH]}..." if self.token else "No SID found"

    # -- persistence ---------------------------------------------------------

    def load(self) -> None:
        """Read the checkpoint file; keep the env token when it is unusable."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.info("No SID file at %s, using environment token", self.path)
            return
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable SID file %s: %s", self.path, exc)
            return
        if not isinstance(data, dict):
            logger.warning("Malformed SID file %s", self.path)
            return

        self.token = data.get("sid") if isinstance(data.get("sid"), str) else ""
        self.expires_at = _parse_timestamp(data.get("expiryTime"))
        self.last_updated = _parse_timestamp(data.get("lastUpdated"))
        logger.info("Loaded SID from file: %s", self.preview)

    def _save(self) -> None:
        data = {
            "sid": self.token,
            "expiryTime": self.expires_at.isoformat() if self.expires_at else None,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }
        try:
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
        except OSError as exc:
            logger.error("Failed to save SID file %s: %s", self.path, exc)
            return
        logger.info("SID saved to file: %s", self.preview)

    # -- state ---------------------------------------------------------------

    def update(self, new_token: str, source: str = "manual") -> None:
        """Replace the token, push expiry out by 20 hours and persist."""
        now = self.clock()
        self.token = new_token
        self.expires_at = now + TOKEN_LIFETIME
        self.last_updated = now
        self._save()
        audit.log_sid_updated(self.preview, self.expires_at.isoformat(), source)

    def is_expired(self) -> bool:
        """True when less than five minutes of validity remain."""
        if self.expires_at is None:
            return False
        return self.expires_at - self.clock() < REFRESH_MARGIN

    async def ensure_valid(self) -> str:
        """Return the token, refreshing it first when close to expiry."""
        if not self.token:
            logger.warning("No SID configured, skipping refresh")
            return self.token
        if self.is_expired():
            await self._refresh()
        return self.token

    async def _refresh(self) -> None:
        if not self._refresh_lock.acquire(blocking=False):
            logger.info("SID refresh already in progress")
            return
        try:
            with tracer.start_as_current_span("credentials.refresh") as span:
                refreshed = await self._fetch_login_cookie()
                span.set_attribute("credentials.refreshed", refreshed)
        finally:
            self._refresh_lock.release()

    async def _fetch_login_cookie(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.login_timeout, transport=self.transport) as client:
                resp = await client.get(self.login_url, headers=_LOGIN_HEADERS)
        except httpx.HTTPError as exc:
            logger.error("SID auto-refresh failed: %s", exc)
            return False

        for cookie in resp.headers.get_list("set-cookie"):
            match = _SID_COOKIE.search(cookie)
            if match:
                self.update(match.group(1), source="auto_refresh")
                logger.info("SID auto-refreshed")
                return True
        logger.warning("Login page set no sid cookie")
        return False

    async def test_auth(self) -> bool:
        """Lenient liveness probe of the current token."""
        headers = session_headers(self.token, BROWSER_USER_AGENT)
        async with httpx.AsyncClient(timeout=self.probe_timeout, transport=self.transport) as client:
            for url in AUTH_PROBE_URLS:
                try:
                    resp = await client.post(url, json={}, headers=headers)
                except httpx.HTTPError as exc:
                    logger.info("SID probe %s failed: %s", url, exc)
                    continue
                logger.info("SID probe %s -> %d", url, resp.status_code)
                if resp.status_code in AUTH_OK_STATUSES:
                    return True
        return len(self.token) > MIN_PLAUSIBLE_TOKEN_LENGTH
