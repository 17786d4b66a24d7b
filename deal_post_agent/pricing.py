from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Iterable

from deal_post_agent.models import (
    COIN_DISCOUNT,
    DISCOUNT_ORDER,
    AppliedDiscount,
    DiscountLine,
    PriceAmount,
    PricingResult,
)


KRW = "KRW"
USD = "USD"

WON_MARKERS = ("원", "₩", "￦")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")

_MINOR_UNIT = {KRW: Decimal("1"), USD: Decimal("0.01")}

# Anything larger is treated as a typo rather than a price.
MAX_AMOUNT = 1e15

_DECIMAL_PRECISION = 60


def parse_amount(raw: str | int | float | None) -> float:
    """Turn loosely formatted user input ("30,000원", "$25.50") into a number.

    Anything that does not survive as a finite number of sane magnitude
    (at most MAX_AMOUNT) becomes 0.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        try:
            return _bounded(float(raw))
        except OverflowError:
            return 0.0

    cleaned = _NON_NUMERIC_RE.sub("", str(raw))
    if not cleaned:
        return 0.0
    try:
        value = float(cleaned)
    except ValueError:
        return 0.0
    return _bounded(value)


def _bounded(value: float) -> float:
    if not math.isfinite(value) or abs(value) > MAX_AMOUNT:
        return 0.0
    return value


def classify_currency(raw: str | int | float | None, parsed_amount: float) -> str:
    text = "" if raw is None else str(raw)
    if any(marker in text for marker in WON_MARKERS):
        return KRW
    if "$" in text:
        return USD
    # Magnitude fallback: small bare numbers are assumed to be dollar prices.
    if 0 < parsed_amount < 1000:
        return USD
    return KRW


def normalize_currency(raw: str | None) -> str:
    value = str(raw or "").strip().upper()
    if value in {KRW, "WON", *WON_MARKERS}:
        return KRW
    if value in {USD, "DOLLAR", "$"}:
        return USD
    return ""


def price_from_raw(raw: str | int | float | None, currency: str | None = None) -> PriceAmount:
    amount = parse_amount(raw)
    resolved = normalize_currency(currency) or classify_currency(raw, amount)
    return PriceAmount(amount=amount, currency=resolved)


def _to_decimal(value: float) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def _quantize(value: Decimal, quantum: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        try:
            return (value / quantum).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * quantum
        except InvalidOperation:
            return value


def _round_decimal(value: Decimal, currency: str, policy: str) -> Decimal:
    """Apply the rounding policy: none, unit (whole won or cent) or ten."""
    if policy == "none":
        return value
    if policy == "ten":
        quantum = Decimal("10")
    else:
        quantum = _MINOR_UNIT.get(currency, Decimal("1"))
    return _quantize(value, quantum)


def format_price(amount: float, currency: str) -> str:
    quantum = _MINOR_UNIT.get(currency, Decimal("1"))
    rounded = _quantize(_to_decimal(amount), quantum)
    sign = "-" if rounded < 0 else ""
    value = abs(rounded)
    if currency == USD:
        return f"{sign}${value:,.2f}"
    return f"{sign}{value:,.0f}원"


def _resolve_line_amount(
    line: DiscountLine,
    base: PriceAmount,
    coin_discount_mode: str,
    rounding: str,
) -> Decimal:
    value = max(0.0, parse_amount(line.value))
    if line.kind == COIN_DISCOUNT and coin_discount_mode == "rate":
        rate_amount = _to_decimal(base.amount) * _to_decimal(value) / Decimal("100")
        return _round_decimal(rate_amount, base.currency, rounding)
    return _to_decimal(value)


def compute_final_price(
    base_price: PriceAmount,
    discounts: Iterable[DiscountLine],
    coin_discount_mode: str = "amount",
    rounding: str = "unit",
) -> PricingResult:
    """Subtract the optional discount lines from the base price.

    Lines are applied in DISCOUNT_ORDER whatever order they arrive in. A line
    without a code is skipped, except the coin discount which never has one.
    The final price never drops below zero. Malformed values count as zero.
    """
    by_kind: dict[str, DiscountLine] = {}
    skipped: list[str] = []
    for line in discounts:
        if line.kind not in DISCOUNT_ORDER:
            skipped.append(line.kind)
            continue
        by_kind.setdefault(line.kind, line)

    currency = base_price.currency
    final = _to_decimal(base_price.amount)
    applied: list[AppliedDiscount] = []

    for kind in DISCOUNT_ORDER:
        line = by_kind.get(kind)
        if line is None:
            continue
        if kind != COIN_DISCOUNT and not str(line.code or "").strip():
            skipped.append(kind)
            continue

        amount = _resolve_line_amount(line, base_price, coin_discount_mode, rounding)
        if amount <= 0:
            skipped.append(kind)
            continue

        final -= amount
        applied.append(
            AppliedDiscount(
                line=line,
                amount=float(amount),
                formatted=format_price(-float(amount), currency),
            )
        )

    final = max(Decimal("0"), final)
    return PricingResult(
        base_price=base_price,
        applied=tuple(applied),
        final_price=PriceAmount(amount=float(final), currency=currency),
        skipped=tuple(skipped),
    )
