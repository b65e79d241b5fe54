"""Group-order lookup pipeline.

Runs the stages of one lookup in order:

    validate link -> ensure credential -> join -> checkout -> reconcile
    -> store info -> resolve delivery -> done | failed

Failed join or checkout calls are fatal, as is an order with neither items
nor a positive subtotal. Every enrichment stage after them degrades to
empty fields. :func:`get_order_details` never raises; the
caller always gets an :class:`ExtractedOrder`, with ``error`` set on failure.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any

import httpx
from opentelemetry import trace

from group_order_service.credentials import SessionCredentialStore
from group_order_service.customer import (
    CustomerDetails,
    extract_additional_order_data,
    extract_customer_details,
    extract_customer_from_checkout_data,
    extract_customer_from_join_data,
    extract_real_customer_data,
)
from group_order_service.fares import reconcile_fare_breakdown
from group_order_service.geocode import enhance_address, reverse_geocode
from group_order_service.html_fallback import scrape_html_for_delivery
from group_order_service.items import extract_order_items
from group_order_service.models import Coordinates, ExtractedOrder
from group_order_service.normalizer import normalize
from group_order_service.tree_search import (
    extract_delivery_instructions,
    find_delivery_address,
    find_delivery_coords,
    find_loyalty_logo,
    find_restaurant_logo,
    find_store_uuid,
    join_address_lines,
)
from group_order_service.uber_client import GroupOrderClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("group-order-service")

INVALID_LINK_ERROR = "invalid group order link"
EMPTY_ORDER_ERROR = "No items found in the order"

_PATH_UUID = re.compile(r"/group-orders/([\w-]+)", re.IGNORECASE)
_QUERY_UUID = re.compile(r"groupOrderUuid=([a-f0-9-]+)", re.IGNORECASE)


class LookupFailed(Exception):
    """A structurally required provider call failed."""


def extract_group_uuid(link: str | None) -> str | None:
    """Draft-order UUID from a share link (path segment or query parameter)."""
    if not link:
        return None
    for pattern in (_PATH_UUID, _QUERY_UUID):
        match = pattern.search(link)
        if match:
            return match.group(1)
    return None


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _coordinates(raw: Any) -> Coordinates | None:
    if not isinstance(raw, dict):
        return None
    try:
        latitude = float(raw["latitude"])
        longitude = float(raw["longitude"])
    except (KeyError, TypeError, ValueError):
        return None
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    return Coordinates(latitude=latitude, longitude=longitude)


def restaurant_name(title: Any) -> str | None:
    """Store title without a leading ``#<rank>`` word."""
    if not title:
        return None
    if not isinstance(title, str):
        return str(title)
    if title.startswith("#"):
        return " ".join(title.split(" ")[1:]) or title
    return title


# ---------------------------------------------------------------------------
# Provider calls
# ---------------------------------------------------------------------------


async def _join(client: GroupOrderClient, group_uuid: str) -> dict[str, Any]:
    with tracer.start_as_current_span("order.join") as span:
        try:
            resp = await client.join_draft_order(group_uuid)
        except httpx.HTTPError as exc:
            raise LookupFailed(f"join failed: {type(exc).__name__}") from exc
        span.set_attribute("http.status_code", resp.status_code)
        if resp.status_code != 200:
            raise LookupFailed(f"join failed: {resp.status_code}")
        return _json_body(resp)


async def _checkout(client: GroupOrderClient, group_uuid: str) -> dict[str, Any]:
    with tracer.start_as_current_span("order.checkout") as span:
        try:
            resp = await client.get_checkout_presentation(group_uuid)
        except httpx.HTTPError as exc:
            raise LookupFailed(f"checkout failed: {type(exc).__name__}") from exc
        span.set_attribute("http.status_code", resp.status_code)
        if resp.status_code != 200:
            raise LookupFailed(f"checkout failed: {resp.status_code}")
        body = _json_body(resp)
        if body.get("status") == "failure":
            data = body.get("data")
            message = data.get("message") if isinstance(data, dict) else None
            raise LookupFailed(f"Uber Eats API error: {message or 'Unknown error'}")
        return body


async def _store_info(client: GroupOrderClient, store_uuid: str) -> dict[str, Any]:
    with tracer.start_as_current_span("order.store_info", attributes={"store.uuid": store_uuid}):
        try:
            resp = await client.get_store(store_uuid)
        except httpx.HTTPError as exc:
            logger.warning("Store lookup failed for %s: %s", store_uuid, exc)
            return {}
        if resp.status_code != 200:
            logger.warning("Store lookup for %s returned %d", store_uuid, resp.status_code)
            return {}
        info = _json_body(resp).get("data")
        return info if isinstance(info, dict) else {}


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def collect_customer_details(join: dict[str, Any], checkout: dict[str, Any]) -> CustomerDetails:
    """Merge every customer sweep; earlier sweeps win for scalar fields."""
    details = CustomerDetails()
    details.merge(extract_customer_details(checkout))
    details.merge(extract_customer_from_join_data(join.get("data")))
    details.merge(extract_customer_from_checkout_data(checkout.get("data")))
    details.merge(extract_real_customer_data(checkout))
    details.merge(extract_real_customer_data(join))
    details.merge(extract_additional_order_data(join))
    return details


async def _run(
    client: GroupOrderClient,
    link: str,
    group_uuid: str,
    transport: httpx.AsyncBaseTransport | None,
) -> ExtractedOrder:
    join = await _join(client, group_uuid)
    checkout = await _checkout(client, group_uuid)

    with tracer.start_as_current_span("order.reconcile") as span:
        data = checkout.get("data")
        payloads = data.get("checkoutPayloads") if isinstance(data, dict) else None
        if not isinstance(payloads, dict):
            payloads = {}

        fares = reconcile_fare_breakdown(payloads)
        items = extract_order_items(checkout)
        details = collect_customer_details(join, checkout)
        instructions = extract_delivery_instructions(join) or extract_delivery_instructions(checkout)
        details.offer("delivery_instructions", instructions)
        span.set_attribute("order.item_count", len(items))

    if not math.isfinite(fares.subtotal) or (not items and fares.subtotal <= 0):
        raise LookupFailed(EMPTY_ORDER_ERROR)

    order = ExtractedOrder(success=True, **fares.model_dump(), items=items)
    if not order.total:
        order.total = order.subtotal + order.fees + order.taxes

    store_uuid = find_store_uuid(join) or find_store_uuid(checkout)
    if store_uuid:
        info = await _store_info(client, store_uuid)
        location = info.get("location")
        metadata = info.get("storeInfoMetadata")
        order.restaurant_name = restaurant_name(info.get("title"))
        order.restaurant_address = location.get("address") if isinstance(location, dict) else None
        order.restaurant_hours = metadata.get("workingHoursTagline") if isinstance(metadata, dict) else None
        order.restaurant_image_url = find_restaurant_logo(info)
        order.is_uber_one_eligible = find_loyalty_logo(info)

    coords = None
    address = None
    join_data = join.get("data")
    join_delivery = join_data.get("deliveryAddress") if isinstance(join_data, dict) else None
    if isinstance(join_delivery, dict):
        if join_delivery.get("latitude") and join_delivery.get("longitude"):
            coords = _coordinates(join_delivery)
        address = join_address_lines(join_delivery.get("address"))
    coords = coords or _coordinates(find_delivery_coords(payloads))
    address = address or find_delivery_address(payloads)

    if not coords or not address or "customer_phone" not in details:
        with tracer.start_as_current_span("order.html_fallback"):
            page = await scrape_html_for_delivery(client.http, link)
        coords = coords or page.coords
        address = address or page.address
        instructions = instructions or page.instructions
        details.offer("customer_phone", page.phone)

    if coords:
        with tracer.start_as_current_span("order.geocode"):
            locality = await reverse_geocode(coords.latitude, coords.longitude, transport=transport)
        if locality:
            address = enhance_address(address, locality) or address

    order.delivery_address = address
    order.delivery_coordinates = coords
    order.delivery_instructions = instructions
    order.customer_details = details.to_dict()
    return order


async def get_order_details(
    link: str,
    credentials: SessionCredentialStore,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ExtractedOrder:
    """Look up a group order by its share link.

    *transport* is handed to every outbound HTTP client, which lets tests
    substitute an ``httpx.MockTransport``.
    """
    group_uuid = extract_group_uuid(link)
    if not group_uuid:
        return ExtractedOrder.failure(INVALID_LINK_ERROR)

    with tracer.start_as_current_span("order.get_details", attributes={"order.group_uuid": group_uuid}) as span:
        try:
            token = await credentials.ensure_valid()
            async with GroupOrderClient(token, transport=transport) as client:
                order = await _run(client, link, group_uuid, transport)
        except LookupFailed as exc:
            logger.warning("Lookup of %s failed: %s", group_uuid, exc)
            span.set_attribute("order.error", str(exc))
            return ExtractedOrder.failure(str(exc))
        except Exception as exc:
            logger.exception("Lookup of %s crashed", group_uuid)
            return ExtractedOrder.failure(str(exc) or type(exc).__name__)

        logger.info(
            "Lookup of %s done: %d item(s), %d customer field(s)",
            group_uuid,
            len(order.items),
            len(order.customer_details),
        )
        return normalize(order)
