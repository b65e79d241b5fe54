import copy

from group_order_service.tree_search import (
    MAX_DEPTH,
    RESTAURANT_LOGO_PREFIX,
    UBER_ONE_LOGO_URL,
    extract_delivery_instructions,
    find_delivery_address,
    find_delivery_coords,
    find_loyalty_logo,
    find_restaurant_logo,
    find_store_uuid,
    join_address_lines,
    walk,
)


def _nested(target_depth: int, levels: int = 20) -> dict:
    """Mapping chain *levels* deep with a storeUuid key at *target_depth*."""
    root: dict = {}
    node = root
    for depth in range(levels):
        if depth == target_depth:
            node["storeUuid"] = f"store-at-{depth}"
        child: dict = {}
        node[f"level{depth + 1}"] = child
        node = child
    return root


def test_depth_cap_boundary() -> None:
    assert MAX_DEPTH == 10
    assert find_store_uuid(_nested(10)) == "store-at-10"
    assert find_store_uuid(_nested(11)) is None


def test_deep_target_found_with_raised_cap() -> None:
    assert find_store_uuid(_nested(15), max_depth=20) == "store-at-15"


def test_walk_reports_depth_and_preorder() -> None:
    data = {"a": {"b": [{"c": 1}]}, "d": 2}
    seen = [(key, depth) for key, _, depth in walk(data)]
    assert seen == [("a", 0), ("b", 1), ("c", 3), ("d", 0)]


def test_walk_can_skip_lists() -> None:
    data = {"a": [{"hidden": 1}], "b": {"shown": 2}}
    keys = [key for key, _, _ in walk(data, descend_lists=False)]
    assert keys == ["a", "b", "shown"]


def test_store_uuid_key_variants() -> None:
    assert find_store_uuid({"x": [{"merchantUUID": "m-1"}]}) == "m-1"
    assert find_store_uuid({"store_id": 42}) is None


def test_restaurant_logo_cdn_and_branding() -> None:
    url = f"{RESTAURANT_LOGO_PREFIX}/abc/logo.png"
    assert find_restaurant_logo({"images": [{"url": url}]}) == url
    assert find_restaurant_logo({"images": [f"{RESTAURANT_LOGO_PREFIX}/abc/logo.jpeg"]}) is None
    branded = {"meta": {"headerBrandingInfo": {"logoImageURL": "https://cdn.example/logo"}}}
    assert find_restaurant_logo(branded) == "https://cdn.example/logo"


def test_loyalty_logo_exact_match() -> None:
    assert find_loyalty_logo({"badges": [{"icon": UBER_ONE_LOGO_URL}]}) is True
    assert find_loyalty_logo({"badges": [{"icon": UBER_ONE_LOGO_URL + "?v=2"}]}) is False


def test_delivery_coords_need_both_values() -> None:
    assert find_delivery_coords({"a": {"latitude": 40.7, "longitude": 0}}) is None
    found = find_delivery_coords({"a": {"b": {"latitude": 40.7, "longitude": -74.0, "x": 1}}})
    assert found == {"latitude": 40.7, "longitude": -74.0}


def test_delivery_address_display_string_drops_label() -> None:
    payload = {"deliveryDetails": {"displayString": "Home, 12 Main St, Springfield"}}
    assert find_delivery_address(payload) == "12 Main St, Springfield"
    assert find_delivery_address({"d": {"displayString": "12 Main St"}}) == "12 Main St"


def test_delivery_address_joins_lines() -> None:
    payload = {"deliveryDetails": {"location": {"address1": "12 Main St", "address2": "Floor 2"}}}
    assert find_delivery_address(payload) == "12 Main St, Floor 2"


def test_join_address_lines_adds_apartment() -> None:
    address = {"address1": "12 Main St", "address2": "", "aptOrSuite": "4B"}
    assert join_address_lines(address) == "12 Main St, Apt 4B"
    assert join_address_lines({}) is None
    assert join_address_lines("12 Main St") is None


def test_instructions_skip_blank_values() -> None:
    data = {"note": "   ", "nested": {"comment": "  Ring the bell  "}}
    assert extract_delivery_instructions(data) == "Ring the bell"


def test_instructions_from_delivery_object() -> None:
    data = {"data": {"deliveryDetails": {"instructions": "  Leave at door "}}}
    assert extract_delivery_instructions(data) == "Leave at door"


def test_instructions_from_shopping_cart_items() -> None:
    data = {"data": {"shoppingCart": {"items": [{"title": "Taco"}, {"specialInstructions": "No onions"}]}}}
    assert extract_delivery_instructions(data) == "No onions"


def test_instructions_absent() -> None:
    assert extract_delivery_instructions({"data": {"title": "Taco"}}) is None
    assert extract_delivery_instructions("not json") is None


def test_searches_do_not_mutate_input() -> None:
    data = {
        "data": {
            "deliveryAddress": {"latitude": 1.5, "longitude": 2.5, "address": {"address1": "1 A St"}},
            "shoppingCart": {"items": [{"specialInstructions": "x"}]},
            "storeUuid": "s-1",
        }
    }
    before = copy.deepcopy(data)
    find_store_uuid(data)
    find_delivery_coords(data)
    find_delivery_address(data)
    extract_delivery_instructions(data)
    assert data == before
