from __future__ import annotations

from typing import Any

from deal_post_agent.clients.posting_client import PostingClient
from deal_post_agent.clients.product_info_client import ProductInfoClient
from deal_post_agent.clients.sheets_client import SheetsClient
from deal_post_agent.config import AgentConfig
from deal_post_agent.content import (
    build_batch_subject,
    build_landing_url,
    parse_reviews,
    render_posts_html,
    render_posts_text,
    select_reviews,
)
from deal_post_agent.models import PostTemplate, PricingResult, ProductForm
from deal_post_agent.pricing import compute_final_price, price_from_raw


DESTINATIONS = ("band", "kakao", "cafe")
POSTED_FLAG_VALUE = "1"


def forms_from_payload(payload: dict[str, Any]) -> list[ProductForm]:
    """Read one product, or a `products` list of them, from a request body."""
    products = payload.get("products")
    if products is None:
        return [ProductForm.from_payload(payload)]
    if not isinstance(products, list) or not products:
        raise ValueError("products must be a non-empty list")
    forms: list[ProductForm] = []
    for index, item in enumerate(products):
        if not isinstance(item, dict):
            raise ValueError(f"products[{index}] must be an object")
        forms.append(ProductForm.from_payload(item))
    return forms


def resolve_pricing(form: ProductForm, config: AgentConfig) -> PricingResult:
    base = price_from_raw(form.price, form.currency or config.default_currency)
    return compute_final_price(
        base,
        form.discount_lines(),
        coin_discount_mode=config.coin_discount_mode,
        rounding=config.price_rounding,
    )


def extract_review_summary(payload: Any) -> str:
    # The review service answers either with the summary itself or wraps it
    # per product; only the first product matters for a single post.
    if isinstance(payload, str):
        return payload
    if isinstance(payload, list):
        return extract_review_summary(payload[0]) if payload else ""
    if not isinstance(payload, dict):
        return ""
    for key in ("korean_summary", "reviews", "summary"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
        if isinstance(value, list):
            return "|".join(str(item) for item in value if str(item).strip())
    for key in ("results", "details", "data"):
        if key in payload:
            return extract_review_summary(payload[key])
    return ""


def build_post(
    form: ProductForm,
    product_client: ProductInfoClient,
    config: AgentConfig,
) -> PostTemplate:
    if not form.product_url:
        raise ValueError("product_url is required")

    info = product_client.fetch_image_url(form.product_url)
    image_url = str(
        info.get("imageUrl") or info.get("product_main_image_url") or ""
    ).strip()
    if not image_url:
        raise RuntimeError(f"Could not fetch the product image URL: {form.product_url}")

    reviews: list[str] = []
    if form.include_reviews:
        summary = extract_review_summary(product_client.fetch_reviews([form.product_url]))
        reviews = select_reviews(parse_reviews(summary), form.review_indexes)

    return PostTemplate(
        title=form.title or str(info.get("product_title") or "").strip(),
        image_url=image_url,
        link_url=build_landing_url(form.product_url, form.landing_url),
        pricing=resolve_pricing(form, config),
        reviews=reviews,
        sale_volume=info.get("sale_volume"),
        tags=form.tags or config.post_tags,
        footer=config.post_footer,
    )


def build_posts(
    forms: list[ProductForm],
    product_client: ProductInfoClient,
    config: AgentConfig,
) -> list[PostTemplate]:
    # Products are fetched in order; the first failure aborts the whole batch.
    if not forms:
        raise ValueError("At least one product is required")
    return [build_post(form, product_client, config) for form in forms]


def publish_post(
    post: PostTemplate,
    destination: str,
    posting_client: PostingClient,
    config: AgentConfig,
) -> Any:
    return publish_posts([post], destination, posting_client, config)


def publish_posts(
    posts: list[PostTemplate],
    destination: str,
    posting_client: PostingClient,
    config: AgentConfig,
) -> Any:
    """Publish one or more rendered products as a single post."""
    if not posts:
        raise ValueError("At least one post is required")
    first = posts[0]
    if destination == "band":
        return posting_client.post_to_band(render_posts_text(posts), first.image_url)
    if destination == "kakao":
        return posting_client.post_to_kakao(render_posts_text(posts), first.link_url)
    if destination == "cafe":
        if not config.naver_cafe_enabled:
            raise RuntimeError(
                "Naver cafe posting is not configured. "
                "Required: NAVER_CAFE_CLUB_ID, NAVER_CAFE_MENU_ID."
            )
        return posting_client.post_to_naver_cafe(
            subject=build_batch_subject(posts),
            content=render_posts_html(posts),
            image_urls=[post.image_url for post in posts if post.image_url],
            club_id=config.naver_cafe_club_id,
            menu_id=config.naver_cafe_menu_id,
        )
    raise ValueError(
        f"Unknown destination: {destination!r}. Expected one of: {', '.join(DESTINATIONS)}"
    )


def mark_row_posted(sheets_client: SheetsClient, row_number: int, destination: str) -> dict[str, Any]:
    return sheets_client.update_row(
        row_number,
        {"checkup": POSTED_FLAG_VALUE, "posted_to": destination},
    )


def mark_rows_posted(
    sheets_client: SheetsClient,
    row_numbers: list[int],
    destination: str,
) -> tuple[list[int], dict[int, str]]:
    """Mark every row as posted; a failing row does not stop the others.

    Returns the updated row numbers and an error message per failed row.
    """
    updated: list[int] = []
    errors: dict[int, str] = {}
    for row_number in dict.fromkeys(row_numbers):
        try:
            mark_row_posted(sheets_client, row_number, destination)
        except Exception as exc:  # noqa: BLE001
            errors[row_number] = str(exc)
            continue
        updated.append(row_number)
    return updated, errors
