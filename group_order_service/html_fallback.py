"""Recover delivery fields from the rendered group-order page.

Used only when the JSON API leaves coordinates, address or the customer
phone empty: the web UI embeds the same data in JSON-in-script blobs, so a
battery of key-name regexes over the raw HTML often finds it. Within each
category the first pattern that matches wins.
"""

from __future__ import annotations

import logging
import math
import re

import httpx

from group_order_service.models import Coordinates, HtmlDeliveryData

logger = logging.getLogger(__name__)


def _string_field(name: str) -> re.Pattern[str]:
    return re.compile(rf'"{name}"\s*:\s*"([^"]+)"', re.IGNORECASE)


def _number_field(name: str) -> re.Pattern[str]:
    return re.compile(rf'"{name}"\s*:\s*([0-9.-]+)', re.IGNORECASE)


LATITUDE_PATTERNS = [_number_field("latitude"), _number_field("lat")]
LONGITUDE_PATTERNS = [_number_field("longitude"), _number_field("lng")]

ADDRESS_PATTERNS = [
    re.compile(r'"displayString":"([^"]*Meet at my door[^"]*)"', re.IGNORECASE),
    re.compile(r'"formattedAddress":"([^"]+)"', re.IGNORECASE),
    re.compile(r'"address1":"([^"]+)"[^}]*"address2":"([^"]+)"', re.IGNORECASE),
    _string_field("deliveryAddress"),
    _string_field("streetAddress"),
    _string_field("address"),
    _string_field("fullAddress"),
]

INSTRUCTION_PATTERNS = [
    _string_field(name)
    for name in (
        "instructions", "deliveryInstructions", "specialInstructions", "deliveryNote",
        "note", "comment", "meetAt", "meet_at", "meetAtDoor", "buildingInstructions",
        "apartmentInstructions", "gateInstructions", "doorInstructions",
    )
]

PHONE_PATTERNS = [
    _string_field(name)
    for name in (
        "phone", "mobile", "number", "tel", "contact", "customer_phone", "user_phone",
        "eater_phone", "member_phone", "delivery_phone", "order_phone", "phoneNumber",
        "mobileNumber", "cellNumber", "contactNumber", "contactPhone", "telephone",
        "handset", "dial", "call",
    )
]


def _first_match(patterns: list[re.Pattern[str]], html: str) -> re.Match[str] | None:
    for pattern in patterns:
        match = pattern.search(html)
        if match:
            return match
    return None


def _first_number(patterns: list[re.Pattern[str]], html: str) -> float | None:
    """First captured value, in pattern order, that parses as a finite float."""
    for pattern in patterns:
        for match in pattern.finditer(html):
            try:
                value = float(match.group(1))
            except ValueError:
                continue
            if math.isfinite(value):
                return value
    return None


def parse_delivery_html(html: str) -> HtmlDeliveryData:
    """Run the regex batteries over a page body."""
    latitude = _first_number(LATITUDE_PATTERNS, html)
    longitude = _first_number(LONGITUDE_PATTERNS, html)
    coords = None
    if latitude is not None and longitude is not None:
        coords = Coordinates(latitude=latitude, longitude=longitude)

    address = None
    match = _first_match(ADDRESS_PATTERNS, html)
    if match:
        address = ", ".join(group for group in match.groups() if group)

    match = _first_match(INSTRUCTION_PATTERNS, html)
    instructions = match.group(1) if match else None

    match = _first_match(PHONE_PATTERNS, html)
    phone = match.group(1) if match else None
    if phone:
        logger.info("Customer phone recovered from order page")

    return HtmlDeliveryData(address=address, coords=coords, instructions=instructions, phone=phone)


async def scrape_html_for_delivery(client: httpx.AsyncClient, link: str) -> HtmlDeliveryData:
    """GET *link* with the authenticated *client* and parse the page.

    Any transport error or non-200 status yields an all-None result.
    """
    try:
        resp = await client.get(link)
    except httpx.HTTPError as exc:
        logger.warning("Order page fetch failed: %s", exc)
        return HtmlDeliveryData()
    if resp.status_code != 200:
        logger.warning("Order page returned %d", resp.status_code)
        return HtmlDeliveryData()
    return parse_delivery_html(resp.text)
