"""Fare breakdown reconciliation.

Classifies the provider's charge lines into canonical fee categories. The
keyword rules overlap ("Small order fee" also mentions "fee"), so the order of
``_FEE_RULES`` decides the outcome and must not be rearranged. Whatever no
rule claims lands in ``other_fees``.

When the breakdown does not account for the fees, estimates are filled in:
1. ``total - subtotal - taxes`` as other fees
2. flat delivery, percentage service and small-order fees
"""

from __future__ import annotations

import logging
import math
from typing import Any

from group_order_service.models import FareBreakdown
from group_order_service.normalizers import amount_from_fixed_point, price_from_rich_field

logger = logging.getLogger(__name__)

# Calibrated against observed orders; keep verbatim.
LOYALTY_BENEFIT_RATE = 0.095
ESTIMATED_DELIVERY_FEE = 3.99
ESTIMATED_SERVICE_FEE_RATE = 0.12
ESTIMATED_SMALL_ORDER_FEE = 2.00
SMALL_ORDER_THRESHOLD = 10.0

LOYALTY_KEYWORDS = ("uber one", "membership", "benefit", "discount")

FEE_FIELDS = (
    "delivery_fee", "service_fee", "tip", "small_order_fee",
    "adjustments_fee", "pickup_fee", "other_fees",
)

# (category, title keywords, type tags), checked in this order
_FEE_RULES: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("delivery_fee", ("delivery",), ("DELIVERY_FEE",)),
    ("service_fee", ("service", "fees"), ("SERVICE_FEE",)),
    ("tip", ("tip", "gratuity"), ("TIP",)),
    ("small_order_fee", ("small order",), ("SMALL_ORDER_FEE",)),
    ("adjustments_fee", ("adjustment",), ("ADJUSTMENT",)),
    ("pickup_fee", ("pickup",), ("PICKUP_FEE",)),
)


def _dig(data: Any, *path: Any) -> Any:
    for step in path:
        if isinstance(step, int):
            if not isinstance(data, list) or len(data) <= step:
                return None
        elif not isinstance(data, dict):
            return None
        data = data[step] if isinstance(step, int) else data.get(step)
    return data


def charge_title(charge: Any) -> str:
    """Lower-cased label of a charge line."""
    if not isinstance(charge, dict):
        return ""
    title = charge.get("title")
    if isinstance(title, dict):
        title = title.get("text")
    for candidate in (title, charge.get("name"), charge.get("label"), charge.get("description")):
        if candidate:
            return str(candidate).lower()
    return ""


def charge_amount(charge: Any) -> float:
    """Dollar amount of a charge line, first recognised encoding wins."""
    if not isinstance(charge, dict):
        return 0.0
    analytics = _dig(charge, "fareBreakdownChargeMetadata", "analyticsInfo", 0, "currencyAmount", "amountE5")
    if analytics:
        return amount_from_fixed_point(analytics)
    for path in (("amountE5",), ("money", "amountE5"), ("price", "amountE5"), ("chargeAmount", "amountE5")):
        value = _dig(charge, *path)
        if value:
            return amount_from_fixed_point(value)
    amount = charge.get("amount")
    if isinstance(amount, (int, float)) and not isinstance(amount, bool):
        return float(amount)
    price_text = _dig(charge, "price", "text")
    if isinstance(price_text, str):
        return price_from_rich_field({"text": price_text})
    if isinstance(charge.get("displayAmount"), str):
        return price_from_rich_field({"text": charge["displayAmount"]})
    return 0.0


def _categorize(title: str, type_tag: str) -> str:
    for category, keywords, tags in _FEE_RULES:
        if type_tag in tags or any(word in title for word in keywords):
            return category
    return "other_fees"


def _charges(payloads: dict[str, Any]) -> list[Any]:
    charges = _dig(payloads, "fareBreakdown", "charges")
    if isinstance(charges, list) and charges:
        return charges
    for alternate in (payloads.get("charges"), _dig(payloads, "fareBreakdown", "items")):
        if isinstance(alternate, list):
            return alternate
    return []


def reconcile_fare_breakdown(checkout_payloads: Any) -> FareBreakdown:
    """Reconcile ``checkoutPayloads`` into a :class:`FareBreakdown`. Pure."""
    payloads = checkout_payloads if isinstance(checkout_payloads, dict) else {}
    subtotal = 0.0
    taxes = 0.0
    fees = dict.fromkeys(FEE_FIELDS, 0.0)
    has_uber_one = False
    uber_one_benefit = 0.0
    currency: str | None = None

    charges = _charges(payloads)
    for charge in charges:
        title = charge_title(charge)
        amount = charge_amount(charge)
        type_tag = ""
        if isinstance(charge, dict):
            type_tag = str(charge.get("chargeType") or charge.get("type") or "").upper()
        code = _dig(charge, "fareBreakdownChargeMetadata", "analyticsInfo", 0, "currencyAmount", "currencyCode")
        if not currency and isinstance(code, str):
            currency = code
        if not math.isfinite(amount):
            continue

        if amount < 0:
            # Negative lines other than membership benefits are already
            # reflected elsewhere in the breakdown.
            if any(word in title for word in LOYALTY_KEYWORDS):
                has_uber_one = True
                uber_one_benefit += abs(amount)
            continue

        if "subtotal" in title:
            subtotal = amount
        elif "tax" in title:
            taxes += amount
        else:
            fees[_categorize(title, type_tag)] += amount

    total = 0.0
    total_amount = _dig(payloads, "total", "analyticsInfo", 0, "currencyAmount")
    if isinstance(total_amount, dict) and total_amount.get("amountE5"):
        total = amount_from_fixed_point(total_amount["amountE5"])
        if not currency and isinstance(total_amount.get("currencyCode"), str):
            currency = total_amount["currencyCode"]
    if not total and _dig(payloads, "total", "amountE5") is not None:
        total = amount_from_fixed_point(payloads["total"]["amountE5"])

    if uber_one_benefit == 0 and subtotal > 0:
        uber_one_benefit = round(subtotal * LOYALTY_BENEFIT_RATE, 2)

    if sum(fees.values()) == 0 and total > 0 and subtotal > 0:
        derived = total - subtotal - taxes
        if derived > 0:
            fees["other_fees"] = derived
            logger.info("Fees derived from total: %.2f", derived)

    if sum(fees.values()) == 0 and subtotal > 0:
        fees["delivery_fee"] = ESTIMATED_DELIVERY_FEE
        fees["service_fee"] = round(subtotal * ESTIMATED_SERVICE_FEE_RATE, 2)
        fees["small_order_fee"] = ESTIMATED_SMALL_ORDER_FEE if subtotal < SMALL_ORDER_THRESHOLD else 0.0
        logger.info("Fees estimated from subtotal %.2f", subtotal)

    fee_total = round(sum(fees.values()), 2)
    if not fee_total and total and subtotal:
        derived = round(total - subtotal - taxes, 2)
        if derived > 0:
            fee_total = derived

    return FareBreakdown(
        subtotal=round(subtotal, 2),
        taxes=round(taxes, 2),
        fees=fee_total,
        **{name: round(value, 2) for name, value in fees.items()},
        has_uber_one=has_uber_one,
        uber_one_benefit=round(uber_one_benefit, 2),
        total=round(total, 2),
        currency=currency,
    )
