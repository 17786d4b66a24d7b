from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


DISCOUNT_CODE = "discount_code"
STORE_COUPON = "store_coupon"
COIN_DISCOUNT = "coin_discount"
CARD_DISCOUNT = "card_discount"

# Application order of discount lines.
DISCOUNT_ORDER = (DISCOUNT_CODE, STORE_COUPON, COIN_DISCOUNT, CARD_DISCOUNT)

DISCOUNT_LABELS = {
    DISCOUNT_CODE: "할인코드",
    STORE_COUPON: "스토어쿠폰",
    COIN_DISCOUNT: "코인할인",
    CARD_DISCOUNT: "카드할인",
}


@dataclass(frozen=True)
class PriceAmount:
    amount: float
    currency: str = "KRW"


@dataclass(frozen=True)
class DiscountLine:
    kind: str
    value: str | float | None = None
    code: str = ""
    label: str = ""

    @property
    def display_label(self) -> str:
        return self.label or DISCOUNT_LABELS.get(self.kind, self.kind)


@dataclass(frozen=True)
class AppliedDiscount:
    line: DiscountLine
    amount: float
    formatted: str


@dataclass(frozen=True)
class PricingResult:
    base_price: PriceAmount
    applied: tuple[AppliedDiscount, ...]
    final_price: PriceAmount
    skipped: tuple[str, ...] = ()

    @property
    def total_discount(self) -> float:
        return sum(item.amount for item in self.applied)

    def as_dict(self) -> dict[str, Any]:
        return {
            "currency": self.base_price.currency,
            "base_price": self.base_price.amount,
            "final_price": self.final_price.amount,
            "applied": [
                {
                    "kind": item.line.kind,
                    "label": item.line.display_label,
                    "code": item.line.code,
                    "amount": item.amount,
                    "formatted": item.formatted,
                }
                for item in self.applied
            ],
            "skipped": list(self.skipped),
        }


@dataclass
class ProductInfo:
    original_url: str
    final_url: str
    product_title: str | None = None
    product_main_image_url: str | None = None
    sale_volume: str | int | float | None = None
    korean_summary: str | None = None
    korean_local_count: int | None = None
    total_num: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "original_url": self.original_url,
            "final_url": self.final_url,
            "product_title": self.product_title,
            "product_main_image_url": self.product_main_image_url,
            "sale_volume": self.sale_volume,
            "korean_summary": self.korean_summary,
            "korean_local_count": self.korean_local_count,
            "total_num": self.total_num,
        }


@dataclass
class ProductForm:
    """Raw operator input for one product, as typed into the form."""

    product_url: str
    price: str = ""
    landing_url: str = ""
    currency: str = ""
    title: str = ""
    discount_code: str = ""
    discount_code_value: str = ""
    store_coupon_code: str = ""
    store_coupon_value: str = ""
    coin_value: str = ""
    card_name: str = ""
    card_value: str = ""
    review_indexes: tuple[int, ...] = ()
    include_reviews: bool = False
    tags: tuple[str, ...] = ()
    row_number: int | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ProductForm":
        def text(key: str) -> str:
            value = payload.get(key)
            return "" if value is None else str(value).strip()

        raw_indexes = payload.get("review_indexes") or []
        indexes: list[int] = []
        for raw in raw_indexes if isinstance(raw_indexes, list) else []:
            try:
                indexes.append(int(raw))
            except (TypeError, ValueError):
                continue

        raw_tags = payload.get("tags") or []
        if isinstance(raw_tags, str):
            raw_tags = raw_tags.split(",")
        tags = tuple(str(tag).strip() for tag in raw_tags if str(tag).strip())

        row_number = payload.get("row_number", payload.get("rowNumber"))
        try:
            row_number = int(row_number) if row_number not in (None, "") else None
        except (TypeError, ValueError):
            row_number = None

        return cls(
            product_url=text("product_url"),
            price=text("price"),
            landing_url=text("landing_url"),
            currency=text("currency"),
            title=text("title"),
            discount_code=text("discount_code"),
            discount_code_value=text("discount_code_value"),
            store_coupon_code=text("store_coupon_code"),
            store_coupon_value=text("store_coupon_value"),
            coin_value=text("coin_value"),
            card_name=text("card_name"),
            card_value=text("card_value"),
            review_indexes=tuple(indexes),
            include_reviews=bool(payload.get("include_reviews")) or bool(indexes),
            tags=tags,
            row_number=row_number,
        )

    def discount_lines(self) -> list[DiscountLine]:
        return [
            DiscountLine(
                kind=DISCOUNT_CODE,
                code=self.discount_code,
                value=self.discount_code_value,
            ),
            DiscountLine(
                kind=STORE_COUPON,
                code=self.store_coupon_code,
                value=self.store_coupon_value,
            ),
            DiscountLine(kind=COIN_DISCOUNT, value=self.coin_value),
            DiscountLine(
                kind=CARD_DISCOUNT,
                code=self.card_name,
                value=self.card_value,
            ),
        ]


@dataclass
class PostTemplate:
    title: str
    image_url: str
    link_url: str
    pricing: PricingResult
    reviews: list[str] = field(default_factory=list)
    sale_volume: str | int | float | None = None
    tags: tuple[str, ...] = ()
    footer: str = ""


@dataclass
class QueueState:
    """Interactive work-queue state carried between operator actions."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    selected_row: dict[str, Any] | None = None
    preview: PostTemplate | None = None

    def select(self, row_number: int) -> dict[str, Any] | None:
        self.preview = None
        self.selected_row = next(
            (row for row in self.rows if row.get("rowNumber") == row_number),
            None,
        )
        return self.selected_row

    def drop_row(self, row_number: int) -> None:
        self.rows = [row for row in self.rows if row.get("rowNumber") != row_number]
        if self.selected_row and self.selected_row.get("rowNumber") == row_number:
            self.selected_row = None
            self.preview = None
