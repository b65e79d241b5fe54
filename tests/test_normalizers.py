import math

from group_order_service.normalizers import (
    amount_from_fixed_point,
    parse_money_text,
    price_from_rich_field,
    quantity_from_field,
)


def test_fixed_point_plain_integer() -> None:
    assert amount_from_fixed_point(1234500) == 12.345


def test_fixed_point_low_word_pair() -> None:
    assert amount_from_fixed_point({"low": 250000, "high": 0}) == 2.5


def test_fixed_point_missing_or_invalid_is_zero() -> None:
    assert amount_from_fixed_point(None) == 0
    assert amount_from_fixed_point({}) == 0
    assert amount_from_fixed_point("abc") == 0
    assert amount_from_fixed_point(float("inf")) == 0


def test_parse_money_text_strips_symbols() -> None:
    assert parse_money_text("$1,234.50") == 1234.5
    assert parse_money_text("  $ ") is None
    assert parse_money_text("Free") is None


def test_price_rich_text_segments_win_first() -> None:
    field = {
        "richTextElements": [
            {"text": {"text": {"text": "$12.99"}}},
        ],
        "text": "$1.00",
        "amountE5": 100000,
    }
    assert price_from_rich_field(field) == 12.99


def test_price_falls_through_branches_in_order() -> None:
    assert price_from_rich_field({"text": "$4.50"}) == 4.5
    assert price_from_rich_field({"amountE5": 799000}) == 7.99
    assert price_from_rich_field({"low": 150000}) == 1.5
    assert price_from_rich_field({"amount": 3.25}) == 3.25
    assert price_from_rich_field(6) == 6.0


def test_price_unrecognised_shapes_are_zero() -> None:
    assert price_from_rich_field(None) == 0
    assert price_from_rich_field("12.00") == 0
    assert price_from_rich_field({"richTextElements": [{"text": "oops"}]}) == 0
    assert price_from_rich_field([1, 2]) == 0


def test_quantity_coefficient_with_negative_exponent() -> None:
    field = {"value": {"coefficient": 150, "exponent": -2}}
    assert quantity_from_field(field) == 1.5


def test_quantity_whole_result_is_int_without_scaling() -> None:
    result = quantity_from_field({"value": {"coefficient": 300, "exponent": 0}})
    assert result == 300
    assert isinstance(result, int)


def test_quantity_fixed_point_coefficient() -> None:
    assert quantity_from_field({"value": {"coefficient": {"low": 2}, "exponent": 0}}) == 2


def test_quantity_plain_values_pass_through() -> None:
    assert quantity_from_field({"quantity": 4}) == 4
    assert quantity_from_field(3) == 3


def test_quantity_defaults_to_one() -> None:
    assert quantity_from_field(None) == 1
    assert quantity_from_field({"value": "two"}) == 1
    assert quantity_from_field({"quantity": "many"}) == 1
    assert quantity_from_field({"value": {"coefficient": 5, "exponent": 10_000}}) == 1


def test_normalizers_never_return_nan() -> None:
    for value in (float("nan"), {"amount": float("nan")}, {"text": "nan"}):
        assert not math.isnan(price_from_rich_field(value))
