"""Monetary and quantity decoders for provider payloads.

The provider encodes numbers three ways:
- fixed-point integers scaled by 1e5 (``amountE5``), sometimes wrapped in a
  ``{"low": ..., "high": ...}`` 64-bit pair
- rich-text currency strings such as ``"$1,234.50"``
- coefficient/exponent pairs for quantities

Every function here is total: an unrecognised shape yields the documented
default instead of raising.
"""

from __future__ import annotations

import math
from typing import Any

FIXED_POINT_SCALE = 100000


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _low_word(value: Any) -> Any:
    if isinstance(value, dict) and value.get("low") is not None:
        return value["low"]
    return value


def parse_money_text(text: str) -> float | None:
    """``"$1,234.50"`` -> 1234.5; None when the text is not a number."""
    cleaned = text.replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def amount_from_fixed_point(value: Any) -> float:
    """Convert an E5 fixed-point amount (int or ``{low}`` pair) to dollars."""
    if not value:
        return 0.0
    raw = _low_word(value)
    if isinstance(raw, str):
        try:
            raw = float(raw)
        except ValueError:
            return 0.0
    if not _is_number(raw) or not math.isfinite(raw):
        return 0.0
    return raw / FIXED_POINT_SCALE


def _rich_text_segments(field: dict[str, Any]) -> float | None:
    elements = field.get("richTextElements")
    if not isinstance(elements, list):
        return None
    for element in elements:
        try:
            text = element["text"]["text"]["text"]
        except (KeyError, TypeError):
            continue
        if isinstance(text, str):
            number = parse_money_text(text)
            if number is not None:
                return number
    return None


def _plain_text(field: dict[str, Any]) -> float | None:
    text = field.get("text")
    return parse_money_text(text) if isinstance(text, str) else None


def _fixed_point_object(field: dict[str, Any]) -> float | None:
    if field.get("amountE5"):
        return amount_from_fixed_point(field["amountE5"])
    if field.get("low") is not None:
        return amount_from_fixed_point(field)
    return None


def _plain_amount(field: dict[str, Any]) -> float | None:
    amount = field.get("amount")
    if _is_number(amount) and math.isfinite(amount):
        return float(amount)
    return None


# Tried in order; the first probe that recognises the shape wins.
_PRICE_PROBES = (_rich_text_segments, _plain_text, _fixed_point_object, _plain_amount)


def price_from_rich_field(field: Any) -> float:
    """Decode a price field in any of the provider's encodings."""
    if isinstance(field, dict):
        for probe in _PRICE_PROBES:
            price = probe(field)
            if price is not None:
                return price
        return 0.0
    if _is_number(field) and math.isfinite(field):
        return float(field)
    return 0.0


def quantity_from_field(field: Any) -> int | float:
    """Decode a coefficient/exponent quantity; defaults to 1."""
    if isinstance(field, dict):
        value = field.get("value")
        if isinstance(value, dict) and value.get("coefficient") is not None:
            coefficient = _low_word(value["coefficient"])
            exponent = value.get("exponent") or 0
            if not _is_number(coefficient) or not coefficient:
                coefficient = 1
            if not isinstance(exponent, int) or isinstance(exponent, bool):
                exponent = 0
            try:
                if exponent < 0:
                    quantity = coefficient / 10 ** -exponent
                else:
                    quantity = coefficient * 10 ** exponent
                if not math.isfinite(quantity):
                    return 1
                return int(quantity) if float(quantity).is_integer() else quantity
            except OverflowError:
                return 1
        if _is_number(field.get("quantity")):
            return field["quantity"]
        return 1
    if _is_number(field):
        return field
    return 1
