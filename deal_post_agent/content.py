from __future__ import annotations

import html
from urllib.parse import urlencode

from deal_post_agent.models import PostTemplate
from deal_post_agent.pricing import format_price


# App deep-link parameters appended when no affiliate landing URL is given.
LANDING_PARAMS: dict[str, str] = {
    "disableNav": "YES",
    "sourceType": "620",
    "_immersiveMode": "true",
    "wx_navbar_transparent": "true",
    "channel": "coin",
    "wx_statusbar_hidden": "true",
    "isdl": "y",
    "aff_platform": "true",
}

DEFAULT_HEADLINE = "놓칠 수 없는 특별가!"
DEFAULT_SUBHEADLINE = "지금 바로 확인해보세요."
BUY_BUTTON_TEXT = "최저가로 구매하기"
MAX_SUBJECT_TITLE_CHARS = 60

_LINE_STYLE = "margin: 5px 0; font-size: 16px;"


def build_landing_url(product_url: str, landing_url: str = "") -> str:
    if landing_url.strip():
        return landing_url.strip()
    url = product_url.strip()
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(LANDING_PARAMS)}"


def parse_reviews(summary: str | None) -> list[str]:
    if not summary:
        return []
    return [part.strip() for part in str(summary).split("|") if part.strip()]


def select_reviews(reviews: list[str], indexes: tuple[int, ...] | list[int]) -> list[str]:
    if not indexes:
        return list(reviews)
    return [reviews[index] for index in indexes if 0 <= index < len(reviews)]


def _esc(value: object) -> str:
    return html.escape(str(value), quote=True)


def _format_sale_volume(sale_volume: str | int | float | None) -> str:
    if sale_volume in (None, ""):
        return ""
    if isinstance(sale_volume, (int, float)):
        return f"{int(sale_volume):,}"
    return str(sale_volume).strip()


def _discount_label(label: str, code: str) -> str:
    return f"{label} ({code})" if code else label


def _price_block_html(post: PostTemplate) -> str:
    pricing = post.pricing
    currency = pricing.base_price.currency
    lines = [
        f'<p style="{_LINE_STYLE} color: #777;"><strong>정상가:</strong> '
        f'<span style="text-decoration: line-through;">'
        f"{_esc(format_price(pricing.base_price.amount, currency))}</span></p>"
    ]
    for item in pricing.applied:
        label = _discount_label(item.line.display_label, item.line.code.strip())
        lines.append(
            f'<p style="{_LINE_STYLE}"><strong>{_esc(label)}:</strong> '
            f"{_esc(item.formatted)}</p>"
        )
    lines.append('<hr style="border: 0; border-top: 1px solid #FFEAE0; margin: 15px 0;">')
    lines.append(
        '<p style="margin: 10px 0; font-size: 22px; font-weight: 800; color: #FF4F00;">'
        "<strong>🔥 최종혜택가:</strong> "
        f"{_esc(format_price(pricing.final_price.amount, currency))}</p>"
    )
    return (
        '<div style="text-align: left; margin: 25px 0; padding: 20px; '
        'background-color: #FFF9F6; border-radius: 8px; border: 1px dashed #FFD9C7;">'
        + "".join(lines)
        + "</div>"
    )


def _review_block_html(reviews: list[str]) -> str:
    if not reviews:
        return ""
    items = "".join(f'<li style="{_LINE_STYLE}">{_esc(review)}</li>' for review in reviews)
    return (
        '<div style="text-align: left; margin: 20px 0;">'
        '<p style="font-size: 18px; font-weight: 700;">구매자 리뷰</p>'
        f'<ul style="padding-left: 20px;">{items}</ul></div>'
    )


def render_html(post: PostTemplate) -> str:
    link = _esc(post.link_url)
    parts = [
        '<div style="font-family: \'Inter\', sans-serif; border: 1px solid #e0e0e0; '
        "border-radius: 12px; padding: 24px; max-width: 700px; margin: 20px auto; "
        'text-align: center; background: #ffffff; box-shadow: 0 4px 12px rgba(0,0,0,0.05);">',
        f'<a href="{link}" target="_blank" rel="noopener noreferrer" style="text-decoration: none;">'
        f'<img src="{_esc(post.image_url)}" alt="Product Image" '
        'style="max-width: 100%; height: auto; border-radius: 8px; margin-bottom: 20px;"></a>',
        '<h2 style="margin-top: 0; font-size: 28px; font-weight: 700; color: #111;">'
        f"{_esc(post.title or DEFAULT_HEADLINE)}</h2>",
        f'<p style="font-size: 18px; color: #555;">{_esc(DEFAULT_SUBHEADLINE)}</p>',
    ]
    sale_volume = _format_sale_volume(post.sale_volume)
    if sale_volume:
        parts.append(f'<p style="font-size: 15px; color: #777;">누적 판매 {_esc(sale_volume)}개</p>')
    parts.append(_price_block_html(post))
    parts.append(_review_block_html(post.reviews))
    parts.append(
        f'<a href="{link}" target="_blank" rel="noopener noreferrer" '
        'style="display: inline-block; background-color: #FF4F00; color: white; '
        "padding: 16px 32px; text-decoration: none; border-radius: 8px; "
        f'font-weight: bold; font-size: 20px;">{_esc(BUY_BUTTON_TEXT)}</a>'
    )
    if post.tags:
        tags = " ".join(f"#{_esc(tag.lstrip('#'))}" for tag in post.tags)
        parts.append(f'<p style="margin-top: 20px; color: #3b82f6;">{tags}</p>')
    if post.footer:
        parts.append(f'<p style="margin-top: 12px; font-size: 13px; color: #999;">{_esc(post.footer)}</p>')
    parts.append("</div>")
    return "".join(part for part in parts if part)


def render_text(post: PostTemplate) -> str:
    pricing = post.pricing
    currency = pricing.base_price.currency
    lines = [post.title or DEFAULT_HEADLINE, ""]

    sale_volume = _format_sale_volume(post.sale_volume)
    if sale_volume:
        lines.append(f"누적 판매 {sale_volume}개")
    lines.append(f"정상가: {format_price(pricing.base_price.amount, currency)}")
    for item in pricing.applied:
        label = _discount_label(item.line.display_label, item.line.code.strip())
        lines.append(f"{label}: {item.formatted}")
    lines.append(f"🔥 최종혜택가: {format_price(pricing.final_price.amount, currency)}")

    if post.reviews:
        lines.append("")
        lines.append("구매자 리뷰")
        lines.extend(f"- {review}" for review in post.reviews)

    lines.append("")
    lines.append(f"{BUY_BUTTON_TEXT}: {post.link_url}")
    if post.tags:
        lines.append(" ".join(f"#{tag.lstrip('#')}" for tag in post.tags))
    if post.footer:
        lines.append(post.footer)
    return "\n".join(lines).strip()


def build_subject(post: PostTemplate) -> str:
    title = (post.title or DEFAULT_HEADLINE).strip()
    if len(title) > MAX_SUBJECT_TITLE_CHARS:
        title = title[: MAX_SUBJECT_TITLE_CHARS - 1].rstrip() + "…"
    final_price = format_price(post.pricing.final_price.amount, post.pricing.base_price.currency)
    return f"[{final_price}] {title}"


def render_posts_html(posts: list[PostTemplate]) -> str:
    return "\n".join(render_html(post) for post in posts)


def render_posts_text(posts: list[PostTemplate]) -> str:
    return "\n\n".join(render_text(post) for post in posts)


def build_batch_subject(posts: list[PostTemplate]) -> str:
    """Subject of the first post, with a count of the other products."""
    subject = build_subject(posts[0])
    others = len(posts) - 1
    return f"{subject} 외 {others}건" if others else subject
