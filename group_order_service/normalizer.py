"""Order data normalizer.

Ensures all fields conform to the output contract:
- Currency defaults to USD
- Amounts rounded to 2 decimal places
"""

from __future__ import annotations

from opentelemetry import trace

from group_order_service.models import ExtractedOrder

tracer = trace.get_tracer("group-order-service")

MONEY_FIELDS = (
    "subtotal", "fees", "taxes", "delivery_fee", "service_fee", "tip", "small_order_fee",
    "adjustments_fee", "pickup_fee", "other_fees", "uber_one_benefit", "total",
)


def normalize(order: ExtractedOrder) -> ExtractedOrder:
    """Normalize order data in-place and return it."""
    with tracer.start_as_current_span("order.normalize"):
        if order.success and not order.currency:
            order.currency = "USD"

        for name in MONEY_FIELDS:
            setattr(order, name, round(getattr(order, name), 2))

        for item in order.items:
            item.price = round(item.price, 2)

        return order
