"""Cart item extraction from a checkout presentation response."""

from __future__ import annotations

import logging
from typing import Any, Callable

from group_order_service.models import OrderItem
from group_order_service.normalizers import price_from_rich_field, quantity_from_field

logger = logging.getLogger(__name__)

UNKNOWN_ITEM = "Unknown Item"

CUSTOMIZATION_KEYS = (
    "customizations", "modifiers", "selectedOptions", "options", "toppings",
    "ingredients", "addons", "addOns", "selections", "groups",
)
_NESTED_OPTION_KEYS = ("options", "selectedOptions", "selected", "choices", "items")
_NAME_KEYS = ("name", "itemName", "displayName", "productName")
_PRICE_KEYS = ("price", "totalPrice", "unitPrice", "amount")


# ---------------------------------------------------------------------------
# Cart shape probes: (predicate, extractor), evaluated in order
# ---------------------------------------------------------------------------


def _nested_cart_items(payloads: dict[str, Any]) -> Any:
    cart = payloads.get("cartItems")
    return cart.get("cartItems") if isinstance(cart, dict) else None


def _order_items_list(payloads: dict[str, Any]) -> Any:
    return payloads.get("orderItems")


def _order_items_wrapped(payloads: dict[str, Any]) -> Any:
    wrapper = payloads.get("orderItems")
    return wrapper.get("items") if isinstance(wrapper, dict) else None


_CART_PROBES: tuple[tuple[str, Callable[[dict[str, Any]], Any]], ...] = (
    ("cartItems.cartItems", _nested_cart_items),
    ("orderItems", _order_items_list),
    ("orderItems.items", _order_items_wrapped),
)


def _locate_cart_items(payloads: dict[str, Any]) -> list[Any]:
    for shape, probe in _CART_PROBES:
        found = probe(payloads)
        if isinstance(found, list):
            logger.debug("Cart items located under %s (%d)", shape, len(found))
            return found
    logger.debug("No cart items in known locations")
    return []


# ---------------------------------------------------------------------------
# Per-item fields
# ---------------------------------------------------------------------------


def _rich_text(elements: Any) -> str | None:
    if not isinstance(elements, list):
        return None
    for element in elements:
        try:
            text = element["text"]["text"]["text"]
        except (KeyError, TypeError):
            continue
        if text:
            return str(text)
    return None


def item_name(item: dict[str, Any]) -> str:
    title = item.get("title")
    if isinstance(title, dict):
        name = _rich_text(title.get("richTextElements"))
        if name:
            return name
        if title.get("text"):
            return str(title["text"])
    elif isinstance(title, str) and title:
        return title
    for key in _NAME_KEYS:
        if isinstance(item.get(key), str):
            return item[key]
    return UNKNOWN_ITEM


def item_price(item: dict[str, Any]) -> float:
    price = price_from_rich_field(item["originalPrice"]) if item.get("originalPrice") else 0.0
    if price:
        return price
    for key in _PRICE_KEYS:
        if item.get(key):
            price = price_from_rich_field(item[key])
            if price:
                return price
    return 0.0


def _segment_text(element: Any) -> Any:
    text = element.get("text") if isinstance(element, dict) else None
    while isinstance(text, dict):
        text = text.get("text")
    return text


def _label(value: Any) -> str | None:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        for key in ("text", "label", "name"):
            if isinstance(value.get(key), str) and value[key]:
                return value[key]
    return None


def _scan_options(options: list[Any], found: list[str]) -> None:
    for option in options:
        if not option:
            continue
        if isinstance(option, str):
            found.append(option)
            continue
        if not isinstance(option, dict):
            continue
        elements = option.get("richTextElements")
        if isinstance(elements, list):
            parts = [str(text) for text in map(_segment_text, elements) if text]
            if parts:
                found.append("".join(parts))
        for candidate in (option, option.get("title"), option.get("option")):
            label = _label(candidate)
            if label:
                found.append(label)
        for key in _NESTED_OPTION_KEYS:
            if isinstance(option.get(key), list):
                _scan_options(option[key], found)


def item_customizations(item: dict[str, Any]) -> list[str]:
    """Flatten every selected option/modifier into display strings."""
    found: list[str] = []
    for key in CUSTOMIZATION_KEYS:
        if isinstance(item.get(key), list):
            _scan_options(item[key], found)
    return found


def extract_order_items(checkout_response: Any) -> list[OrderItem]:
    """Build :class:`OrderItem` rows from whichever cart shape is present."""
    try:
        payloads = checkout_response["data"]["checkoutPayloads"]
    except (KeyError, TypeError):
        return []
    if not isinstance(payloads, dict):
        return []

    items: list[OrderItem] = []
    for raw in _locate_cart_items(payloads):
        if not isinstance(raw, dict):
            continue
        quantity = quantity_from_field(raw["quantity"]) if raw.get("quantity") is not None else 1
        items.append(
            OrderItem(
                name=item_name(raw),
                quantity=quantity,
                price=item_price(raw),
                customizations=item_customizations(raw),
            )
        )
    logger.info("Extracted %d cart item(s)", len(items))
    return items
