import asyncio

import httpx

from group_order_service.geocode import (
    enhance_address,
    location_from_address,
    reverse_geocode,
)
from group_order_service.models import Location


def test_state_is_abbreviated() -> None:
    location = location_from_address({"city": "Austin", "state": "Texas", "postcode": "78701"})
    assert location == Location(city="Austin", state="TX", zip="78701")


def test_unknown_state_kept_verbatim() -> None:
    assert location_from_address({"town": "Guelph", "state": "Ontario"}).state == "Ontario"


def test_city_falls_back_through_locality_keys() -> None:
    assert location_from_address({"village": "Hyde Park"}).city == "Hyde Park"
    assert location_from_address({"hamlet": "Montauk"}).city == "Montauk"


def test_new_york_city_uses_borough() -> None:
    address = {"city": "City of New York", "borough": "Brooklyn", "state": "New York", "postcode": "11201"}
    assert location_from_address(address) == Location(city="Brooklyn", state="NY", zip="11201")
    assert location_from_address({"city": "New York", "suburb": "Astoria"}).city == "Astoria"
    assert location_from_address({"city": "New York City"}).city == "New York City"


def test_enhance_keeps_street_prefix() -> None:
    location = Location(city="Austin", state="TX", zip="78701")
    assert enhance_address("500 Congress Ave, Apt 2", location) == "500 Congress Ave, Austin, TX 78701"


def test_enhance_without_house_number_uses_locality() -> None:
    assert enhance_address("Home", Location(city="Austin", state="TX")) == "Austin, TX"
    assert enhance_address(None, Location(zip="78701")) == "78701"
    assert enhance_address("Home", Location()) is None


def test_reverse_geocode_request_and_parse() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        seen["agent"] = request.headers["user-agent"]
        return httpx.Response(200, json={"address": {"city": "Austin", "state": "Texas", "postcode": "78701"}})

    location = asyncio.run(reverse_geocode(30.27, -97.74, transport=httpx.MockTransport(handler)))

    assert location == Location(city="Austin", state="TX", zip="78701")
    assert seen["params"]["format"] == "json"
    assert seen["params"]["lat"] == "30.27"
    assert seen["params"]["lon"] == "-97.74"
    assert seen["params"]["addressdetails"] == "1"
    assert seen["agent"]


def test_reverse_geocode_failure_is_none() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    assert asyncio.run(reverse_geocode(0.0, 0.0, transport=transport)) is None

    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="not json"))
    assert asyncio.run(reverse_geocode(0.0, 0.0, transport=transport)) is None
