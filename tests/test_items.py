from group_order_service.items import UNKNOWN_ITEM, extract_order_items


def _checkout(payloads: dict) -> dict:
    return {"status": "success", "data": {"checkoutPayloads": payloads}}


def test_nested_cart_items_with_rich_fields() -> None:
    payloads = {
        "cartItems": {
            "cartItems": [
                {
                    "title": {"richTextElements": [{"text": {"text": {"text": "Burrito Bowl"}}}]},
                    "quantity": {"value": {"coefficient": 200, "exponent": -2}},
                    "originalPrice": {"richTextElements": [{"text": {"text": {"text": "$11.50"}}}]},
                    "customizations": [
                        {"title": "Protein", "selectedOptions": [{"title": "Chicken"}, "Extra rice"]},
                    ],
                }
            ]
        }
    }
    items = extract_order_items(_checkout(payloads))

    assert len(items) == 1
    item = items[0]
    assert item.name == "Burrito Bowl"
    assert item.quantity == 2
    assert isinstance(item.quantity, int)
    assert item.price == 11.5
    assert item.customizations == ["Protein", "Chicken", "Extra rice"]


def test_order_items_list_with_fallback_names_and_prices() -> None:
    payloads = {
        "orderItems": [
            {"itemName": "Soda", "price": {"amountE5": 250000}},
            {"title": "Fries", "originalPrice": {"text": "$0.00"}, "totalPrice": {"text": "$3.25"}},
            {"quantity": {"quantity": 3}},
        ]
    }
    items = extract_order_items(_checkout(payloads))

    assert [item.name for item in items] == ["Soda", "Fries", UNKNOWN_ITEM]
    assert [item.price for item in items] == [2.5, 3.25, 0.0]
    assert [item.quantity for item in items] == [1, 1, 3]


def test_order_items_wrapped_shape() -> None:
    payloads = {"orderItems": {"items": [{"name": "Salad", "unitPrice": 7}]}}
    items = extract_order_items(_checkout(payloads))
    assert [(item.name, item.price) for item in items] == [("Salad", 7.0)]


def test_first_cart_shape_wins() -> None:
    payloads = {
        "cartItems": {"cartItems": [{"name": "From cart"}]},
        "orderItems": [{"name": "From order"}],
    }
    assert [item.name for item in extract_order_items(_checkout(payloads))] == ["From cart"]


def test_missing_cart_yields_empty_list() -> None:
    assert extract_order_items(_checkout({})) == []
    assert extract_order_items({"data": None}) == []
    assert extract_order_items(None) == []
