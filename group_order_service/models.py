"""Pydantic models for the group-order service: the output contract."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class OrderItem(BaseModel):
    name: str = "Unknown Item"
    quantity: int | float = 1
    price: float = 0.0
    customizations: list[str] = Field(default_factory=list)


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class Location(BaseModel):
    """Reverse-geocoded locality for a delivery point."""

    city: str | None = None
    state: str | None = None
    zip: str | None = None


class FareBreakdown(BaseModel):
    """Reconciled fare breakdown, decimal major units."""

    subtotal: float = 0.0
    taxes: float = 0.0
    fees: float = 0.0
    delivery_fee: float = 0.0
    service_fee: float = 0.0
    tip: float = 0.0
    small_order_fee: float = 0.0
    adjustments_fee: float = 0.0
    pickup_fee: float = 0.0
    other_fees: float = 0.0
    has_uber_one: bool = False
    uber_one_benefit: float = 0.0
    total: float = 0.0
    currency: str | None = None


class HtmlDeliveryData(BaseModel):
    """Delivery fields recovered from the rendered order page."""

    address: str | None = None
    coords: Coordinates | None = None
    instructions: str | None = None
    phone: str | None = None


class ExtractedOrder(BaseModel):
    success: bool
    subtotal: float = 0.0
    fees: float = 0.0
    taxes: float = 0.0
    delivery_fee: float = 0.0
    service_fee: float = 0.0
    tip: float = 0.0
    small_order_fee: float = 0.0
    adjustments_fee: float = 0.0
    pickup_fee: float = 0.0
    other_fees: float = 0.0
    has_uber_one: bool = False
    uber_one_benefit: float = 0.0
    total: float = 0.0
    currency: str | None = None
    items: list[OrderItem] = Field(default_factory=list)
    restaurant_name: str | None = None
    restaurant_address: str | None = None
    restaurant_hours: str | None = None
    restaurant_image_url: str | None = None
    is_uber_one_eligible: bool = False
    delivery_address: str | None = None
    delivery_coordinates: Coordinates | None = None
    delivery_instructions: str | None = None
    customer_details: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> "ExtractedOrder":
        """Zeroed result carrying *error*."""
        return cls(success=False, error=error)


class LookupRequest(BaseModel):
    url: str = ""
    sid: str | None = None


class SidUpdateRequest(BaseModel):
    sid: str
