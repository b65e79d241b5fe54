"""Depth-capped searches over provider JSON of unknown shape.

All traversal goes through :func:`walk` / :func:`iter_nodes` so the depth cap
lives in one place. Depth is the number of containers enclosing a node: the
keys of the root mapping are at depth 0, the keys of a mapping nested one
level below it at depth 1, and so on. A mapping at depth ``d`` is visited
only when ``d <= max_depth``.

None of these functions raise or mutate their input; "not found" is None.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Iterator

logger = logging.getLogger(__name__)

MAX_DEPTH = 10

RESTAURANT_LOGO_PREFIX = "https://tb-static.uber.com/prod/image-proc/processed_images"
UBER_ONE_LOGO_URL = "https://dkl8of78aprwd.cloudfront.net/uber_one@3x.png"

_STORE_UUID_KEY = re.compile(r"storeuuid|store_uuid|storeid|merchantuuid|merchantid", re.IGNORECASE)

INSTRUCTION_KEYWORDS = (
    "instruction", "note", "comment", "special", "delivery_note",
    "delivery_instruction", "special_instruction", "delivery_comment",
    "meet_at", "meet", "door", "gate", "building", "apartment", "suite", "unit",
)
_DELIVERY_NOTE_FIELDS = ("instructions", "specialInstructions", "deliveryNote", "note")


def key_matches(key: str, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring match of *key* against any keyword."""
    lowered = key.lower()
    return any(word in lowered for word in keywords)


def walk(
    node: Any,
    max_depth: int = MAX_DEPTH,
    *,
    descend_lists: bool = True,
    _depth: int = 0,
) -> Iterator[tuple[str, Any, int]]:
    """Yield ``(key, value, depth)`` for every mapping entry, depth-first.

    Each entry is yielded before its value is descended into, so a consumer
    that stops at the first match sees entries in document order.
    """
    if _depth > max_depth:
        return
    if isinstance(node, dict):
        for key, value in node.items():
            yield str(key), value, _depth
            if isinstance(value, dict) or (descend_lists and isinstance(value, list)):
                yield from walk(value, max_depth, descend_lists=descend_lists, _depth=_depth + 1)
    elif isinstance(node, list) and descend_lists:
        for element in node:
            if isinstance(element, (dict, list)):
                yield from walk(element, max_depth, descend_lists=descend_lists, _depth=_depth + 1)


def iter_nodes(node: Any, max_depth: int = MAX_DEPTH, _depth: int = 0) -> Iterator[Any]:
    """Yield *node* and every value below it, pre-order."""
    if _depth > max_depth + 1:
        return
    yield node
    if isinstance(node, dict):
        children = node.values()
    elif isinstance(node, list):
        children = node
    else:
        return
    for child in children:
        yield from iter_nodes(child, max_depth, _depth + 1)


def find_store_uuid(data: Any, max_depth: int = MAX_DEPTH) -> str | None:
    for key, value, _ in walk(data, max_depth):
        if isinstance(value, str) and _STORE_UUID_KEY.search(key):
            return value
    return None


def find_restaurant_logo(data: Any) -> str | None:
    for node in iter_nodes(data):
        if isinstance(node, str):
            if node.startswith(RESTAURANT_LOGO_PREFIX) and node.endswith(".png"):
                return node
        elif isinstance(node, dict):
            branding = node.get("headerBrandingInfo")
            if isinstance(branding, dict) and branding.get("logoImageURL"):
                return branding["logoImageURL"]
    return None


def find_loyalty_logo(data: Any) -> bool:
    """True when the Uber One badge appears anywhere in the store payload."""
    return any(node == UBER_ONE_LOGO_URL for node in iter_nodes(data))


def find_delivery_coords(data: Any) -> dict[str, Any] | None:
    for node in iter_nodes(data):
        if isinstance(node, dict) and node.get("latitude") and node.get("longitude"):
            return {"latitude": node["latitude"], "longitude": node["longitude"]}
    return None


def find_delivery_address(data: Any) -> str | None:
    """Display address from a checkout payload.

    A ``displayString`` such as ``"Home, 12 Main St"`` yields the part after
    the label; otherwise address lines are joined.
    """
    for node in iter_nodes(data):
        if not isinstance(node, dict):
            continue
        display = node.get("displayString")
        if isinstance(display, str):
            if ", " in display:
                return display.split(", ", 1)[1]
            return display
        parts = [
            str(node[name])
            for name in ("address1", "address2", "aptOrSuite", "formattedAddress")
            if node.get(name)
        ]
        if parts:
            return ", ".join(parts)
    return None


def join_address_lines(address: Any) -> str | None:
    """``{"address1", "address2", "aptOrSuite"}`` -> ``"1 Main St, Fl 2, Apt 4"``."""
    if not isinstance(address, dict):
        return None
    parts = [address.get("address1"), address.get("address2")]
    if address.get("aptOrSuite"):
        parts.append(f"Apt {address['aptOrSuite']}")
    parts = [str(part) for part in parts if part]
    return ", ".join(parts) if parts else None


def find_delivery_info(data: Any) -> str | None:
    for node in iter_nodes(data):
        if not isinstance(node, dict):
            continue
        for name in ("deliveryAddress", "delivery_address", "address"):
            if isinstance(node.get(name), str) and node[name]:
                return node[name]
        location = node.get("deliveryLocation")
        if isinstance(location, dict) and location.get("address"):
            return location["address"]
    return None


def _non_blank(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_delivery_instructions(data: Any) -> str | None:
    """First delivery instruction found anywhere in *data*, trimmed."""
    if not isinstance(data, (dict, list)):
        return None
    for key, value, _ in walk(data):
        if key_matches(key, INSTRUCTION_KEYWORDS):
            found = _non_blank(value)
            if found:
                logger.debug("Delivery instruction found under %r", key)
                return found

        lowered = key.lower()
        if "delivery" in lowered and isinstance(value, dict):
            for name in _DELIVERY_NOTE_FIELDS:
                found = _non_blank(value.get(name))
                if found:
                    return found

        if "shopping" in lowered and "cart" in lowered and isinstance(value, dict):
            items = value.get("items")
            for item in items if isinstance(items, list) else []:
                if isinstance(item, dict):
                    found = _non_blank(item.get("specialInstructions"))
                    if found:
                        return found
    return None
