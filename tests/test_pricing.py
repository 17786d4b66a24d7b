from __future__ import annotations

import pytest

from deal_post_agent.models import (
    CARD_DISCOUNT,
    COIN_DISCOUNT,
    DISCOUNT_CODE,
    STORE_COUPON,
    DiscountLine,
    PriceAmount,
)
from deal_post_agent.pricing import (
    KRW,
    MAX_AMOUNT,
    USD,
    classify_currency,
    compute_final_price,
    format_price,
    parse_amount,
    price_from_raw,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("30,000원", 30000),
        ("$25.50", 25.5),
        ("", 0),
        ("abc", 0),
        (None, 0),
        ("1.2.3", 0),
        ("-", 0),
        (1500, 1500),
        (float("nan"), 0),
        (float("inf"), 0),
        ("1" + "0" * 30 + "원", 0),
        (10**40, 0),
        (MAX_AMOUNT * 10, 0),
    ],
)
def test_parse_amount(raw, expected) -> None:
    assert parse_amount(raw) == expected


@pytest.mark.parametrize(
    ("raw", "amount", "expected"),
    [
        ("30000원", 30000, KRW),
        ("₩12,000", 12000, KRW),
        ("$25", 25, USD),
        ("$5,000", 5000, USD),
        ("500", 500, USD),
        ("5000", 5000, KRW),
        ("0", 0, KRW),
        ("", 0, KRW),
    ],
)
def test_classify_currency(raw, amount, expected) -> None:
    assert classify_currency(raw, amount) == expected


def test_price_from_raw_prefers_explicit_currency() -> None:
    assert price_from_raw("500", "KRW") == PriceAmount(500.0, KRW)
    assert price_from_raw("500") == PriceAmount(500.0, USD)
    assert price_from_raw("30,000원", "bogus") == PriceAmount(30000.0, KRW)


def test_format_price() -> None:
    assert format_price(30000, KRW) == "30,000원"
    assert format_price(1234567.4, KRW) == "1,234,567원"
    assert format_price(25, USD) == "$25.00"
    assert format_price(1234.5, USD) == "$1,234.50"
    assert format_price(-2.5, USD) == "-$2.50"
    assert format_price(-5000, KRW) == "-5,000원"
    assert format_price(-0.001, USD) == "$0.00"


def test_format_price_survives_huge_amounts() -> None:
    assert format_price(1e30, KRW) == "1" + ",000" * 10 + "원"
    assert format_price(1e30, USD) == "$1" + ",000" * 10 + ".00"
    assert format_price(1e300, KRW).endswith("원")
    assert format_price(float("inf"), KRW) == "0원"
    assert format_price(float("nan"), USD) == "$0.00"


@pytest.mark.parametrize("mode", ["amount", "rate"])
def test_oversized_price_degrades_to_zero(mode: str) -> None:
    base = price_from_raw("1" + "0" * 30 + "원")

    result = compute_final_price(
        base,
        [DiscountLine(kind=COIN_DISCOUNT, value="10")],
        coin_discount_mode=mode,
    )

    assert base == PriceAmount(0.0, KRW)
    assert result.final_price == PriceAmount(0.0, KRW)
    assert format_price(result.final_price.amount, KRW) == "0원"


@pytest.mark.parametrize(
    ("base", "policy", "discount", "final"),
    [
        (PriceAmount(12345, KRW), "none", 1234.5, 11110.5),
        (PriceAmount(12345, KRW), "unit", 1235, 11110),
        (PriceAmount(12345, KRW), "ten", 1230, 11115),
        (PriceAmount(23.45, USD), "unit", 2.35, 21.1),
    ],
)
def test_rate_discount_rounding_policies(base, policy, discount, final) -> None:
    result = compute_final_price(
        base,
        [DiscountLine(kind=COIN_DISCOUNT, value="10")],
        coin_discount_mode="rate",
        rounding=policy,
    )

    assert result.applied[0].amount == discount
    assert result.final_price.amount == final


def test_discount_with_empty_code_is_skipped() -> None:
    result = compute_final_price(
        PriceAmount(30000, KRW),
        [
            DiscountLine(kind=DISCOUNT_CODE, code="KR10", value="5000"),
            DiscountLine(kind=STORE_COUPON, code="", value="2000"),
        ],
    )

    assert result.final_price == PriceAmount(25000, KRW)
    assert len(result.applied) == 1
    assert result.applied[0].line.code == "KR10"
    assert result.applied[0].formatted == "-5,000원"
    assert STORE_COUPON in result.skipped


def test_coin_rate_discount_on_dollar_price() -> None:
    result = compute_final_price(
        PriceAmount(25, USD),
        [DiscountLine(kind=COIN_DISCOUNT, value="10")],
        coin_discount_mode="rate",
    )

    assert result.applied[0].amount == 2.5
    assert result.applied[0].formatted == "-$2.50"
    assert result.final_price.amount == 22.5
    assert format_price(result.final_price.amount, USD) == "$22.50"


def test_coin_rate_rounding_to_ten_won() -> None:
    base = PriceAmount(12345, KRW)
    coin = [DiscountLine(kind=COIN_DISCOUNT, value="3")]

    unrounded = compute_final_price(base, coin, coin_discount_mode="rate", rounding="none")
    to_ten = compute_final_price(base, coin, coin_discount_mode="rate", rounding="ten")

    assert unrounded.applied[0].amount == pytest.approx(370.35)
    assert to_ten.applied[0].amount == 370
    assert to_ten.final_price.amount == 11975


def test_coin_amount_mode_subtracts_literal_value() -> None:
    result = compute_final_price(
        PriceAmount(30000, KRW),
        [DiscountLine(kind=COIN_DISCOUNT, value="1,500원")],
        coin_discount_mode="amount",
    )
    assert result.final_price.amount == 28500


def test_lines_follow_fixed_order() -> None:
    result = compute_final_price(
        PriceAmount(50000, KRW),
        [
            DiscountLine(kind=CARD_DISCOUNT, code="KB", value="1000"),
            DiscountLine(kind=COIN_DISCOUNT, value="500"),
            DiscountLine(kind=STORE_COUPON, code="STORE1000", value="1000"),
            DiscountLine(kind=DISCOUNT_CODE, code="KR10", value="3000"),
        ],
    )

    assert [item.line.kind for item in result.applied] == [
        DISCOUNT_CODE,
        STORE_COUPON,
        COIN_DISCOUNT,
        CARD_DISCOUNT,
    ]
    assert result.final_price.amount == 44500
    assert result.total_discount == 5500


def test_card_discount_without_card_name_is_skipped() -> None:
    result = compute_final_price(
        PriceAmount(10000, KRW),
        [DiscountLine(kind=CARD_DISCOUNT, code=" ", value="1000")],
    )
    assert result.applied == ()
    assert result.final_price.amount == 10000


def test_zero_value_discounts_leave_base_price() -> None:
    for base in (0, 1, 999.99, 30000):
        result = compute_final_price(
            PriceAmount(base, KRW),
            [
                DiscountLine(kind=DISCOUNT_CODE, code="A", value="0"),
                DiscountLine(kind=STORE_COUPON, code="B", value=""),
                DiscountLine(kind=COIN_DISCOUNT, value=None),
                DiscountLine(kind=CARD_DISCOUNT, code="C", value="abc"),
            ],
            coin_discount_mode="rate",
        )
        assert result.final_price.amount == base
        assert result.applied == ()


def test_final_price_is_clamped_at_zero() -> None:
    result = compute_final_price(
        PriceAmount(1000, KRW),
        [
            DiscountLine(kind=DISCOUNT_CODE, code="BIG", value="999999"),
            DiscountLine(kind=COIN_DISCOUNT, value="250"),
        ],
        coin_discount_mode="rate",
    )
    assert result.final_price.amount == 0
    assert len(result.applied) == 2


def test_zero_base_price_with_rate_discount() -> None:
    result = compute_final_price(
        PriceAmount(0, USD),
        [
            DiscountLine(kind=COIN_DISCOUNT, value="10"),
            DiscountLine(kind=DISCOUNT_CODE, code="X", value="5"),
        ],
        coin_discount_mode="rate",
    )
    assert result.final_price.amount == 0
    assert [item.line.kind for item in result.applied] == [DISCOUNT_CODE]


def test_negative_discount_values_count_as_zero() -> None:
    result = compute_final_price(
        PriceAmount(1000, KRW),
        [DiscountLine(kind=DISCOUNT_CODE, code="NEG", value="-500")],
    )
    assert result.final_price.amount == 1000
    assert result.applied == ()


def test_compute_final_price_is_repeatable() -> None:
    base = PriceAmount(30000, KRW)
    discounts = [
        DiscountLine(kind=DISCOUNT_CODE, code="KR10", value="5000"),
        DiscountLine(kind=COIN_DISCOUNT, value="5"),
    ]

    first = compute_final_price(base, discounts, coin_discount_mode="rate")
    second = compute_final_price(base, discounts, coin_discount_mode="rate")

    assert first == second
    assert first.final_price.amount == 23500


def test_unknown_and_duplicate_lines() -> None:
    result = compute_final_price(
        PriceAmount(10000, KRW),
        [
            DiscountLine(kind="loyalty", code="L", value="100"),
            DiscountLine(kind=DISCOUNT_CODE, code="FIRST", value="1000"),
            DiscountLine(kind=DISCOUNT_CODE, code="SECOND", value="2000"),
        ],
    )
    assert result.final_price.amount == 9000
    assert result.applied[0].line.code == "FIRST"
    assert "loyalty" in result.skipped


def test_pricing_result_as_dict() -> None:
    result = compute_final_price(
        PriceAmount(30000, KRW),
        [DiscountLine(kind=DISCOUNT_CODE, code="KR10", value="5000")],
    )
    payload = result.as_dict()
    assert payload["currency"] == "KRW"
    assert payload["final_price"] == 25000
    assert payload["applied"][0]["label"] == "할인코드"
    assert payload["applied"][0]["formatted"] == "-5,000원"
