"""HTTP client for the Uber Eats group-order web API.

Every call is a JSON POST authenticated by the ``sid`` session cookie. The
client returns raw :class:`httpx.Response` objects; status handling belongs
to the caller because what counts as fatal differs per stage.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from group_order_service.config import config

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

JOIN_DRAFT_ORDER_PATH = "/_p/api/addMemberToDraftOrderV1"
CHECKOUT_PRESENTATION_PATH = "/_p/api/getCheckoutPresentationV1"
STORE_PATH = "/_p/api/getStoreV1"

CHECKOUT_PAYLOAD_TYPES = ["fareBreakdown", "total", "cartItems", "orderItems", "deliveryDetails"]


def session_headers(token: str, user_agent: str = "Mozilla/5.0") -> dict[str, str]:
    """Headers the web app sends on its own API calls."""
    return {
        "x-csrf-token": "x",
        "User-Agent": user_agent,
        "Cookie": f"sid={token}",
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
        "Origin": config.uber_base_url,
        "Referer": f"{config.uber_base_url}/",
        "Content-Type": "application/json",
    }


class GroupOrderClient:
    """Authenticated session for one order lookup.

    Use as an async context manager::

        async with GroupOrderClient(token) as client:
            resp = await client.join_draft_order(uuid)
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or config.uber_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            headers=session_headers(token),
            timeout=timeout if timeout is not None else config.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GroupOrderClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def http(self) -> httpx.AsyncClient:
        """The underlying client, for plain page fetches."""
        return self._client

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        resp = await self._client.post(f"{self.base_url}{path}", json=body)
        logger.info("POST %s -> %d", path, resp.status_code)
        return resp

    async def join_draft_order(self, draft_order_uuid: str) -> httpx.Response:
        return await self._post(JOIN_DRAFT_ORDER_PATH, {"draftOrderUuid": draft_order_uuid})

    async def get_checkout_presentation(self, draft_order_uuid: str) -> httpx.Response:
        return await self._post(
            CHECKOUT_PRESENTATION_PATH,
            {
                "payloadTypes": CHECKOUT_PAYLOAD_TYPES,
                "draftOrderUUID": draft_order_uuid,
                "isGroupOrder": True,
            },
        )

    async def get_store(self, store_uuid: str) -> httpx.Response:
        return await self._post(
            STORE_PATH,
            {
                "storeUuid": store_uuid,
                "diningMode": "DELIVERY",
                "time": {"asap": True},
                "isGroupOrderParticipant": True,
                "cbType": "EATER_ENDORSED",
            },
        )
