"""Reverse geocoding of delivery coordinates (OpenStreetMap Nominatim)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from group_order_service.config import config
from group_order_service.models import Location

logger = logging.getLogger(__name__)

STATE_ABBREVIATIONS = {
    "Alabama": "AL", "Alaska": "AK", "Arizona": "AZ", "Arkansas": "AR", "California": "CA",
    "Colorado": "CO", "Connecticut": "CT", "Delaware": "DE", "Florida": "FL", "Georgia": "GA",
    "Hawaii": "HI", "Idaho": "ID", "Illinois": "IL", "Indiana": "IN", "Iowa": "IA",
    "Kansas": "KS", "Kentucky": "KY", "Louisiana": "LA", "Maine": "ME", "Maryland": "MD",
    "Massachusetts": "MA", "Michigan": "MI", "Minnesota": "MN", "Mississippi": "MS", "Missouri": "MO",
    "Montana": "MT", "Nebraska": "NE", "Nevada": "NV", "New Hampshire": "NH", "New Jersey": "NJ",
    "New Mexico": "NM", "New York": "NY", "North Carolina": "NC", "North Dakota": "ND", "Ohio": "OH",
    "Oklahoma": "OK", "Oregon": "OR", "Pennsylvania": "PA", "Rhode Island": "RI", "South Carolina": "SC",
    "South Dakota": "SD", "Tennessee": "TN", "Texas": "TX", "Utah": "UT", "Vermont": "VT",
    "Virginia": "VA", "Washington": "WA", "West Virginia": "WV", "Wisconsin": "WI", "Wyoming": "WY",
}

# Nominatim reports all five boroughs as the city itself.
NYC_NAMES = ("City of New York", "New York", "New York City")
_CITY_KEYS = ("city", "town", "village", "hamlet")
_NYC_DISTRICT_KEYS = ("borough", "city_district", "suburb", "neighbourhood")


def _first(address: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        if address.get(key):
            return str(address[key])
    return None


def location_from_address(address: dict[str, Any]) -> Location:
    """Map a Nominatim ``address`` block to city / state abbreviation / zip."""
    city = _first(address, _CITY_KEYS)
    if city in NYC_NAMES:
        city = _first(address, _NYC_DISTRICT_KEYS) or city
    state = address.get("state")
    if state:
        state = STATE_ABBREVIATIONS.get(state, state)
    return Location(city=city, state=state or None, zip=address.get("postcode") or None)


async def reverse_geocode(
    latitude: float,
    longitude: float,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Location | None:
    """Look up the locality for a point; None on any failure."""
    params = {"format": "json", "lat": latitude, "lon": longitude, "addressdetails": 1}
    headers = {"User-Agent": config.geocode_user_agent}
    try:
        async with httpx.AsyncClient(timeout=config.geocode_timeout, transport=transport) as client:
            resp = await client.get(config.geocode_url, params=params, headers=headers)
            resp.raise_for_status()
            body = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Reverse geocode failed for (%s, %s): %s", latitude, longitude, exc)
        return None
    address = body.get("address") if isinstance(body, dict) else None
    return location_from_address(address if isinstance(address, dict) else {})


def enhance_address(address: str | None, location: Location) -> str | None:
    """Append city and ``ST zip`` to a street address.

    A known address with a house number keeps its first comma segment;
    otherwise only the locality is returned. None when there is nothing to add.
    """
    locality = []
    if location.city:
        locality.append(location.city)
    if location.state and location.zip:
        locality.append(f"{location.state} {location.zip}")
    elif location.state or location.zip:
        locality.append(location.state or location.zip)

    if address and any(ch.isdigit() for ch in address):
        return ", ".join([address.split(",")[0].strip(), *locality])
    return ", ".join(locality) if locality else None
