import asyncio

import httpx

from group_order_service.html_fallback import parse_delivery_html, scrape_html_for_delivery

PAGE = """
<html><script id="__REDUX_STATE__">
{"eater": {"phoneNumber": "+1 555 0100", "phone": "+1 555 0199"},
 "deliveryLocation": {"lat": 40.1, "latitude": 40.7128, "lng": -74.5, "longitude": -74.006,
   "formattedAddress":"12 Main St, New York, NY 10001",
   "address1":"12 Main St","address2":"Floor 3"},
 "note": "Ring twice", "instructions": "Leave at door"}
</script></html>
"""


def test_parse_prefers_first_pattern_in_each_category() -> None:
    data = parse_delivery_html(PAGE)

    assert data.coords is not None
    assert data.coords.latitude == 40.7128
    assert data.coords.longitude == -74.006
    assert data.address == "12 Main St, New York, NY 10001"
    assert data.instructions == "Leave at door"
    assert data.phone == "+1 555 0199"


def test_meet_at_door_display_string_is_the_address() -> None:
    html = '{"displayString":"12 Main St (Meet at my door)","formattedAddress":"Other"}'
    assert parse_delivery_html(html).address == "12 Main St (Meet at my door)"


def test_address_lines_are_joined() -> None:
    html = '{"address1":"12 Main St","zip":"1","address2":"Unit 5"}'
    assert parse_delivery_html(html).address == "12 Main St, Unit 5"


def test_short_coordinate_keys_used_when_long_ones_absent() -> None:
    data = parse_delivery_html('{"lat": 51.5, "lng": -0.12}')
    assert data.coords is not None
    assert (data.coords.latitude, data.coords.longitude) == (51.5, -0.12)


def test_coords_require_both_values() -> None:
    assert parse_delivery_html('{"latitude": 51.5}').coords is None
    assert parse_delivery_html('{"latitude": -, "longitude": 1}').coords is None


def test_empty_page_yields_nothing() -> None:
    data = parse_delivery_html("<html></html>")
    assert data.model_dump() == {"address": None, "coords": None, "instructions": None, "phone": None}


def test_scrape_non_200_is_all_none() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(403, text=PAGE))

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            return await scrape_html_for_delivery(client, "https://www.ubereats.com/group-orders/abc")

    data = asyncio.run(run())
    assert data.address is None
    assert data.coords is None
    assert data.phone is None


def test_scrape_transport_error_is_all_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await scrape_html_for_delivery(client, "https://www.ubereats.com/group-orders/abc")

    assert asyncio.run(run()).model_dump()["address"] is None


def test_scrape_parses_page_body() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=PAGE))

    async def run():
        async with httpx.AsyncClient(transport=transport) as client:
            return await scrape_html_for_delivery(client, "https://www.ubereats.com/group-orders/abc")

    assert asyncio.run(run()).phone == "+1 555 0199"


def test_unparseable_coordinate_falls_through_to_next_match() -> None:
    data = parse_delivery_html('{"latitude": -, "lat": 40.7, "longitude": -74.0}')
    assert data.coords is not None
    assert (data.coords.latitude, data.coords.longitude) == (40.7, -74.0)

    data = parse_delivery_html('{"latitude": ., "latitude": 12.5, "longitude": 1}')
    assert data.coords is not None
    assert data.coords.latitude == 12.5
