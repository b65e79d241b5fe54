"""Best-effort customer data extraction from join and checkout responses.

Four independent sweeps each produce a sparse mapping; the pipeline folds
them into one :class:`CustomerDetails` where the first pass to set a scalar
wins and the four list fields are unioned, then deduplicated.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from group_order_service.tree_search import (
    find_delivery_info,
    join_address_lines,
    key_matches,
    walk,
)

logger = logging.getLogger(__name__)

FAVORITE_RESTAURANTS = "customer_favorite_restaurants"
DIETARY_PREFERENCES = "customer_dietary_preferences"
PAYMENT_METHODS = "customer_payment_methods"
DELIVERY_ADDRESSES = "customer_delivery_addresses"
LIST_FIELDS = (FAVORITE_RESTAURANTS, DIETARY_PREFERENCES, PAYMENT_METHODS, DELIVERY_ADDRESSES)

PHONE_KEYWORDS = ("phone", "mobile", "number", "tel", "contact", "call", "dial", "cell", "handset")
IDENTITY_KEYWORDS = (
    "customer", "user", "eater", "member", "profile", "person", "client", "account",
    "contact", "recipient", "delivery", "orderer", "participant", "guest", "visitor", "buyer",
)

# A list rule matches a key when every word of any one group occurs in it.
_Rule = tuple[tuple[str, ...], ...]


def _words(*words: str) -> _Rule:
    return tuple((word,) for word in words)


NARROW_LIST_RULES: dict[str, _Rule] = {
    FAVORITE_RESTAURANTS: (("favorite", "restaurant"),) + _words("saved_restaurants", "bookmarked_restaurants"),
    DIETARY_PREFERENCES: (("dietary", "preference"),)
    + _words("diet", "allergy", "food_preference", "dietary_restriction"),
    PAYMENT_METHODS: (("payment", "method"),) + _words("cards", "credit_card", "debit_card", "wallet"),
    DELIVERY_ADDRESSES: (("delivery", "address"),) + _words("saved_address", "addresses", "location", "address_book"),
}

IDENTITY_LIST_RULES: dict[str, _Rule] = {
    FAVORITE_RESTAURANTS: NARROW_LIST_RULES[FAVORITE_RESTAURANTS]
    + _words("liked_restaurants", "preferred_restaurants", "restaurant_favorites", "favorite_eateries"),
    DIETARY_PREFERENCES: NARROW_LIST_RULES[DIETARY_PREFERENCES]
    + _words("nutritional", "health_preference", "food_allergy", "dietary_need"),
    PAYMENT_METHODS: NARROW_LIST_RULES[PAYMENT_METHODS]
    + _words("payment_card", "billing_method", "card", "payment_option"),
    DELIVERY_ADDRESSES: NARROW_LIST_RULES[DELIVERY_ADDRESSES]
    + _words("shipping_address", "delivery_location", "address"),
}

BROAD_LIST_RULES: dict[str, _Rule] = {
    FAVORITE_RESTAURANTS: (("favorite", "restaurant"),)
    + _words(
        "saved", "bookmarked", "liked", "preferred", "recent", "visited", "history", "frequent",
        "top", "restaurant", "eatery", "food", "dining", "cuisine", "kitchen",
    ),
    DIETARY_PREFERENCES: (("dietary", "preference"),)
    + _words(
        "diet", "allergy", "food_preference", "nutritional", "health_preference", "restrictions",
        "preferences", "health_info", "vegetarian", "vegan", "gluten", "kosher", "halal",
        "organic", "healthy", "nutrition", "wellness",
    ),
    PAYMENT_METHODS: (("payment", "method"),)
    + _words(
        "card", "wallet", "billing_method", "payment_option", "payment_methods", "payment_info",
        "billing_info", "payment_details", "visa", "mastercard", "amex", "paypal", "apple_pay",
        "google_pay", "stripe", "square", "venmo", "cashapp", "zelle", "bank",
    ),
    DELIVERY_ADDRESSES: (("delivery", "address"),)
    + _words(
        "saved_address", "addresses", "address_book", "delivery_location", "shipping_address",
        "address_list", "delivery_info", "location_info", "locations", "home", "work", "office",
        "apartment", "house", "building", "street", "avenue", "road", "drive", "lane", "court",
        "place", "way", "circle",
    ),
}

_PROFILE_FIELDS = {
    "firstName": "customer_first_name",
    "lastName": "customer_last_name",
    "email": "customer_email",
    "phoneNumber": "customer_phone",
    "uuid": "customer_uuid",
    "profileImageUrl": "customer_profile_image",
    "membershipStatus": "customer_membership_status",
}
_CONTACT_FIELDS = {
    "name": "customer_name",
    "email": "customer_email",
    "phone": "customer_phone",
    "id": "customer_id",
}
_ROLE_FIELDS = {"name": "customer_name", "email": "customer_email", "phone": "customer_phone"}
_ROOT_ROLES = ("user", "customer", "eater", "member", "orderer", "participant", "guest", "buyer")

ADDITIONAL_ORDER_KEYS = (
    "addParticipantsIntended", "storeUuid", "state", "hasSpendingLimit", "spendingLimitType",
    "spendingLimitAmount", "shoppingCart", "businessDetails", "targetDeliveryTimeRange",
    "deliveryType", "orderCreationContext", "eaterUuid", "isUserCreator", "originApplicationId",
    "expiresAt", "createdAt", "externalId", "orderUuid", "uuid", "paymentProfileUUID",
    "promotionOptions", "upfrontTipOption", "useCredits", "diningMode", "extraPaymentProfiles",
    "interactionType", "billSplitOption", "displayName", "cartLockOptions",
    "repeatOrderTemplateUUID", "handledHighCapacityOrderMetadata", "repeatSchedule", "orderMetadata",
)


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list)):
        return not value
    return False


class CustomerDetails:
    """Insertion-ordered, sparse bag of extracted customer fields."""

    def __init__(self) -> None:
        self._fields: dict[str, Any] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._fields

    def get(self, key: str, default: Any = None) -> Any:
        return self._fields.get(key, default)

    def offer(self, key: str, value: Any) -> bool:
        """Set *key* unless an earlier pass already did. True if stored."""
        if key in LIST_FIELDS:
            return self.extend(key, value if isinstance(value, list) else [value])
        if _is_absent(value) or key in self._fields:
            return False
        self._fields[key] = value
        return True

    def extend(self, key: str, values: list[Any]) -> bool:
        values = [value for value in values if value is not None]
        if not values:
            return False
        self._fields.setdefault(key, []).extend(values)
        return True

    def merge(self, other: Mapping[str, Any]) -> None:
        for key, value in other.items():
            self.offer(key, value)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in self._fields.items():
            if key in LIST_FIELDS:
                value = _dedupe(value)
            if not _is_absent(value):
                result[key] = value
        return result


def _dedupe(values: list[Any]) -> list[Any]:
    unique: list[Any] = []
    for value in values:
        if value not in unique:
            unique.append(value)
    return unique


@contextmanager
def _best_effort(sweep: str) -> Iterator[None]:
    try:
        yield
    except Exception:
        logger.warning("%s aborted on malformed payload; keeping partial result", sweep, exc_info=True)


def _has_all(lowered: str, *words: str) -> bool:
    return all(word in lowered for word in words)


def _match_lists(key: str, value: Any, rules: Mapping[str, _Rule], details: CustomerDetails) -> None:
    if not isinstance(value, list) or not value:
        return
    lowered = key.lower()
    for target, groups in rules.items():
        if any(_has_all(lowered, *group) for group in groups):
            details.extend(target, value)


def _copy_fields(source: Any, fields: Mapping[str, str], details: CustomerDetails) -> None:
    if not isinstance(source, dict):
        return
    for source_key, target in fields.items():
        if source.get(source_key):
            details.offer(target, source[source_key])


def _first_truthy(source: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        if source.get(name):
            return source[name]
    return None


def _section(data: Any, *path: str) -> Any:
    for name in path:
        if not isinstance(data, dict):
            return None
        data = data.get(name)
    return data


# ---------------------------------------------------------------------------
# Sweep 1: identity-keyed fields anywhere in the checkout response
# ---------------------------------------------------------------------------


def _identity_scalar(lowered: str, value: Any) -> tuple[str, Any] | None:
    """Map an identity-flavored key to its customer field, first rule wins."""
    if isinstance(value, str):
        if _has_all(lowered, "display", "name"):
            return "customer_display_name", value
        if _has_all(lowered, "first", "name"):
            return "customer_first_name", value
        if _has_all(lowered, "last", "name"):
            return "customer_last_name", value
        if "username" in lowered:
            return "customer_username", value
        if "name" in lowered:
            return "customer_name", value
        if "email" in lowered:
            return "customer_email", value
        if key_matches(lowered, ("phone", "mobile", "number")):
            return "customer_phone", value
        if "uuid" in lowered:
            return "customer_uuid", value
        if "id" in lowered:
            return "customer_id", value
        if _has_all(lowered, "profile", "image"):
            return "customer_profile_image", value
        if "address" in lowered:
            return "customer_address", value
        if "membership" in lowered:
            return "customer_membership_status", value
        if _has_all(lowered, "joined", "date"):
            return "customer_joined_date", value
        if _has_all(lowered, "last", "active"):
            return "customer_last_active", value
        return None
    if isinstance(value, dict):
        if key_matches(lowered, ("coordinates", "location")):
            return "customer_coordinates", value
        if _has_all(lowered, "order", "preference"):
            return "customer_order_preferences", value
        if "preferences" in lowered:
            return "customer_preferences", value
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if _has_all(lowered, "order", "history"):
            return "customer_order_history_count", value
        if "rating" in lowered:
            return "customer_rating", value
        if _has_all(lowered, "total", "orders"):
            return "customer_total_orders", value
        if _has_all(lowered, "total", "spent"):
            return "customer_total_spent", value
    return None


def extract_customer_details(data: Any) -> dict[str, Any]:
    """Sweep the whole checkout response for identity-keyed customer fields."""
    details = CustomerDetails()
    with _best_effort("extract_customer_details"):
        for key, value, _ in walk(data):
            if not key_matches(key, IDENTITY_KEYWORDS):
                continue
            lowered = key.lower()
            mapped = _identity_scalar(lowered, value)
            if mapped:
                details.offer(*mapped)
            _match_lists(key, value, IDENTITY_LIST_RULES, details)

        _copy_fields(_section(data, "data", "userProfile"), _PROFILE_FIELDS, details)
        _copy_fields(_section(data, "data", "checkoutPayloads", "customerInfo"), _CONTACT_FIELDS, details)
        _copy_fields(_section(data, "data", "checkoutPayloads", "userProfile"), _PROFILE_FIELDS, details)
        _copy_fields(_section(data, "data", "groupOrder", "customerInfo"), _CONTACT_FIELDS, details)

        details.offer("customer_delivery_address", find_delivery_info(data))

        if isinstance(data, dict):
            for role in _ROOT_ROLES:
                _copy_fields(data.get(role), _CONTACT_FIELDS, details)
            _copy_fields(data.get("profile"), _PROFILE_FIELDS, details)
    return details.to_dict()


# ---------------------------------------------------------------------------
# Sweep 2: broad keyword sweep, objects only, used on both responses
# ---------------------------------------------------------------------------


def _phone_from_list(values: list[Any]) -> Any:
    for item in values:
        if isinstance(item, str) and item.strip():
            return item
        if isinstance(item, dict):
            for key, value in item.items():
                if key_matches(key, PHONE_KEYWORDS[:6]) and isinstance(value, str) and value.strip():
                    return value
    return None


def extract_real_customer_data(data: Any) -> dict[str, Any]:
    """Broad sweep over nested objects; list fields accumulate every match."""
    details = CustomerDetails()
    with _best_effort("extract_real_customer_data"):
        for key, value, _ in walk(data, descend_lists=False):
            lowered = key.lower()
            phone_key = key_matches(lowered, PHONE_KEYWORDS)

            if isinstance(value, str) and value.strip():
                if "name" in lowered and "display" not in lowered and "restaurant" not in lowered:
                    details.offer("customer_name", value)
                if "email" in lowered:
                    details.offer("customer_email", value)
                if phone_key:
                    details.offer("customer_phone", value)
                if "id" in lowered and "uuid" not in lowered:
                    details.offer("customer_id", value)
                if "uuid" in lowered:
                    details.offer("customer_uuid", value)
                if "address" in lowered and "delivery" not in lowered:
                    details.offer("customer_delivery_address", value)
                if _has_all(lowered, "display", "name"):
                    details.offer("customer_display_name", value)
                if "username" in lowered:
                    details.offer("customer_username", value)

            elif isinstance(value, dict):
                if key_matches(lowered, ("coordinate", "location", "position")):
                    details.offer("customer_coordinates", value)
                if phone_key:
                    details.offer("customer_phone", value)

            elif isinstance(value, list) and value:
                if phone_key:
                    details.offer("customer_phone", _phone_from_list(value))
                _match_lists(key, value, BROAD_LIST_RULES, details)
    return details.to_dict()


# ---------------------------------------------------------------------------
# Sweeps 3 and 4: known participant sub-structures, then a generic search
# ---------------------------------------------------------------------------


def _apply_participant_probes(container: Mapping[str, Any], details: CustomerDetails) -> None:
    _copy_fields(container.get("userProfile"), _PROFILE_FIELDS, details)
    _copy_fields(container.get("customerInfo"), _CONTACT_FIELDS, details)
    for role in ("eaterInfo", "memberInfo"):
        _copy_fields(container.get(role), _ROLE_FIELDS, details)
    _apply_delivery(container.get("deliveryAddress"), details)


def _apply_delivery(delivery: Any, details: CustomerDetails) -> None:
    if not isinstance(delivery, dict):
        return
    details.offer("customer_delivery_address", join_address_lines(delivery.get("address")))
    if delivery.get("latitude") and delivery.get("longitude"):
        details.offer(
            "customer_coordinates",
            {"latitude": delivery["latitude"], "longitude": delivery["longitude"]},
        )


def _search_customer_fields(data: Any, details: CustomerDetails) -> None:
    for key, value, _ in walk(data):
        lowered = key.lower()
        text = value.strip() if isinstance(value, str) else ""

        if text:
            if "name" in lowered:
                details.offer("customer_name", text)
            if "email" in lowered and "@" in text:
                details.offer("customer_email", text)
            if key_matches(lowered, ("phone", "mobile", "number")):
                details.offer("customer_phone", text)
            if _has_all(lowered, "first", "name"):
                details.offer("customer_first_name", text)
            if _has_all(lowered, "last", "name"):
                details.offer("customer_last_name", text)
            if _has_all(lowered, "display", "name"):
                details.offer("customer_display_name", text)
            if "username" in lowered:
                details.offer("customer_username", text)
            if "uuid" in lowered:
                details.offer("customer_uuid", text)
            elif "id" in lowered:
                details.offer("customer_id", text)
            if _has_all(lowered, "profile", "image"):
                details.offer("customer_profile_image", text)
            if "address" in lowered:
                details.offer("customer_address", text)

        if isinstance(value, dict) and (value.get("latitude") or value.get("longitude")):
            details.offer(
                "customer_coordinates",
                {"latitude": value.get("latitude"), "longitude": value.get("longitude")},
            )

        _match_lists(key, value, NARROW_LIST_RULES, details)


_PAYLOAD_LISTS = {
    FAVORITE_RESTAURANTS: ("favoriteRestaurants", "favorites", "restaurants"),
    DIETARY_PREFERENCES: ("dietaryPreferences", "dietary", "preferences"),
    PAYMENT_METHODS: ("paymentMethods", "payments", "cards"),
    DELIVERY_ADDRESSES: ("deliveryAddresses", "addresses", "savedAddresses"),
}


def extract_customer_from_checkout_data(checkout_data: Any) -> dict[str, Any]:
    """Sweep the ``data`` section of a checkout response."""
    details = CustomerDetails()
    if not isinstance(checkout_data, dict):
        return {}
    with _best_effort("extract_customer_from_checkout_data"):
        _apply_participant_probes(checkout_data, details)

        payloads = checkout_data.get("checkoutPayloads")
        if isinstance(payloads, dict):
            _copy_fields(payloads.get("userProfile"), _PROFILE_FIELDS, details)
            _copy_fields(payloads.get("customerInfo"), _CONTACT_FIELDS, details)
            _apply_delivery(payloads.get("deliveryDetails"), details)
            for target, names in _PAYLOAD_LISTS.items():
                found = _first_truthy(payloads, names)
                if isinstance(found, list):
                    details.extend(target, found)

        _search_customer_fields(checkout_data, details)
    return details.to_dict()


def extract_customer_from_join_data(join_data: Any) -> dict[str, Any]:
    """Sweep the ``data`` section of a join response."""
    details = CustomerDetails()
    if not isinstance(join_data, dict):
        return {}
    with _best_effort("extract_customer_from_join_data"):
        _apply_participant_probes(join_data, details)
        _search_customer_fields(join_data, details)
    return details.to_dict()


def extract_additional_order_data(join_response: Any) -> dict[str, Any]:
    """Draft-order metadata (store, state, timing, spending limits) when present."""
    section = _section(join_response, "data")
    if not isinstance(section, dict):
        return {}
    return {key: section[key] for key in ADDITIONAL_ORDER_KEYS if section.get(key) is not None}
