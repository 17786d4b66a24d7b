from __future__ import annotations

import argparse
import json
import logging
from dataclasses import fields, replace
from pathlib import Path

from deal_post_agent.clients.posting_client import PostingClient
from deal_post_agent.clients.product_info_client import ProductInfoClient
from deal_post_agent.clients.sheets_client import SheetsClient
from deal_post_agent.config import COIN_DISCOUNT_MODES, ROUNDING_POLICIES, AgentConfig
from deal_post_agent.content import (
    build_batch_subject,
    build_subject,
    render_posts_html,
    render_posts_text,
    render_text,
)
from deal_post_agent.models import ProductForm, QueueState
from deal_post_agent.pricing import format_price
from deal_post_agent.workflow import (
    DESTINATIONS,
    build_post,
    build_posts,
    forms_from_payload,
    mark_rows_posted,
    publish_posts,
    resolve_pricing,
)


def _parse_indexes(raw: str) -> tuple[int, ...]:
    indexes: list[int] = []
    for part in (raw or "").split(","):
        chunk = part.strip()
        if chunk.isdigit():
            indexes.append(int(chunk))
    return tuple(indexes)


def _product_arguments() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--url", dest="product_url", default="", help="Product URL.")
    parent.add_argument("--landing-url", default="", help="Affiliate landing URL (optional).")
    parent.add_argument("--title", default="", help="Post headline (default: product title).")
    parent.add_argument("--price", default="", help='Base price, e.g. "30,000원" or "$25.50".')
    parent.add_argument(
        "--currency",
        default="",
        help="Explicit currency (KRW or USD). Inferred from the price when omitted.",
    )
    parent.add_argument("--discount-code", default="")
    parent.add_argument("--discount-code-value", default="")
    parent.add_argument("--store-coupon-code", default="")
    parent.add_argument("--store-coupon-value", default="")
    parent.add_argument("--coin-value", default="", help="Coin discount (amount or percent).")
    parent.add_argument("--card-name", default="")
    parent.add_argument("--card-value", default="")
    parent.add_argument(
        "--coin-mode",
        choices=COIN_DISCOUNT_MODES,
        default=None,
        help="Interpret --coin-value as a percentage (rate) or a flat amount.",
    )
    parent.add_argument("--rounding", choices=ROUNDING_POLICIES, default=None)
    parent.add_argument(
        "--reviews",
        default=None,
        help='Include reviews; comma-separated indexes to keep (e.g. "0,2") or "all".',
    )
    parent.add_argument("--tag", action="append", default=[], dest="tags")
    parent.add_argument(
        "--row",
        type=int,
        default=None,
        help="Work-queue sheet row number. Without --url the product is read from that pending row.",
    )
    parent.add_argument(
        "--products-file",
        default="",
        help="JSON file with a list of products; replaces the single-product arguments.",
    )
    return parent


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Product deal post generator")
    subparsers = parser.add_subparsers(dest="command", required=True)
    product_args = _product_arguments()

    queue = subparsers.add_parser("queue", help="List pending work-queue rows.")
    queue.add_argument("--limit", type=int, default=20)
    queue.add_argument(
        "--select",
        type=int,
        default=None,
        help="Row number to load into the product form and preview.",
    )

    subparsers.add_parser(
        "pricing",
        parents=[product_args],
        help="Resolve the final price without contacting any service.",
    )

    preview = subparsers.add_parser(
        "preview",
        parents=[product_args],
        help="Fetch product data and render the post.",
    )
    preview.add_argument("--format", choices=("html", "text"), default="html")
    preview.add_argument("--output", default="", help="Write the rendered post to this file.")

    publish = subparsers.add_parser(
        "publish",
        parents=[product_args],
        help="Render the post and publish it.",
    )
    publish.add_argument("--destination", choices=DESTINATIONS, required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP proxy app.")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--debug", action="store_true")

    return parser.parse_args(argv)


def _apply_runtime_overrides(config: AgentConfig, args: argparse.Namespace) -> AgentConfig:
    overrides: dict[str, str] = {}
    if getattr(args, "coin_mode", None):
        overrides["coin_discount_mode"] = args.coin_mode
    if getattr(args, "rounding", None):
        overrides["price_rounding"] = args.rounding
    return replace(config, **overrides) if overrides else config


def _form_from_args(args: argparse.Namespace) -> ProductForm:
    reviews = args.reviews
    return ProductForm(
        product_url=args.product_url.strip(),
        price=args.price,
        landing_url=args.landing_url,
        currency=args.currency,
        title=args.title,
        discount_code=args.discount_code,
        discount_code_value=args.discount_code_value,
        store_coupon_code=args.store_coupon_code,
        store_coupon_value=args.store_coupon_value,
        coin_value=args.coin_value,
        card_name=args.card_name,
        card_value=args.card_value,
        review_indexes=_parse_indexes(reviews) if reviews and reviews != "all" else (),
        include_reviews=reviews is not None,
        tags=tuple(args.tags),
        row_number=args.row,
    )


def _form_from_row(row: dict, args: argparse.Namespace | None = None) -> ProductForm:
    # Sheet columns named like the form fields fill the form; typed
    # arguments win over the sheet.
    form = ProductForm.from_payload(row)
    if args is None:
        return form
    typed = _form_from_args(args)
    overrides = {
        item.name: getattr(typed, item.name)
        for item in fields(ProductForm)
        if getattr(typed, item.name) not in ("", (), None, False)
    }
    return replace(form, **overrides)


def _read_products_file(path: str) -> list[ProductForm]:
    file_path = Path(path)
    if not file_path.exists():
        raise SystemExit(f"Products file not found: {file_path}")
    try:
        payload = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Products file is not valid JSON: {exc}") from exc
    if isinstance(payload, list):
        payload = {"products": payload}
    if not isinstance(payload, dict):
        raise SystemExit("Products file must hold a list of products.")
    try:
        return forms_from_payload(payload)
    except ValueError as exc:
        raise SystemExit(f"Products file is invalid: {exc}") from exc


def _load_queue(config: AgentConfig) -> QueueState:
    if not config.sheets_enabled:
        raise SystemExit(
            "Sheets work queue is not configured. Provide SHEET_ID and "
            "GOOGLE_CREDENTIALS (or GOOGLE_CREDENTIALS_PATH)."
        )
    return QueueState(rows=SheetsClient.from_config(config).fetch_pending_rows())


def _select_row(state: QueueState, row_number: int) -> dict:
    row = state.select(row_number)
    if row is None:
        raise SystemExit(f"Row {row_number} is not a pending work-queue row.")
    return row


def _collect_forms(
    args: argparse.Namespace,
    config: AgentConfig,
) -> tuple[list[ProductForm], QueueState | None]:
    if args.products_file:
        return _read_products_file(args.products_file), None
    if args.product_url:
        return [_form_from_args(args)], None
    if args.row:
        state = _load_queue(config)
        return [_form_from_row(_select_row(state, args.row), args)], state
    raise SystemExit("--url, --row or --products-file is required for preview/publish.")


def _print_pricing(form: ProductForm, config: AgentConfig) -> None:
    result = resolve_pricing(form, config)
    currency = result.base_price.currency
    print(f"Base price: {format_price(result.base_price.amount, currency)} ({currency})")
    for item in result.applied:
        code = f" ({item.line.code})" if item.line.code else ""
        print(f"- {item.line.display_label}{code}: {item.formatted}")
    if result.skipped:
        print(f"Skipped: {', '.join(result.skipped)}")
    print(f"Final price: {format_price(result.final_price.amount, currency)}")


def _run_pricing(args: argparse.Namespace, config: AgentConfig) -> None:
    if not args.products_file:
        _print_pricing(_form_from_args(args), config)
        return
    forms = _read_products_file(args.products_file)
    for index, form in enumerate(forms, start=1):
        print(f"[{index}/{len(forms)}] {form.title or form.product_url or '-'}")
        _print_pricing(form, config)


def _run_queue(config: AgentConfig, limit: int, select: int | None = None) -> None:
    state = _load_queue(config)
    print(f"Pending rows: {len(state.rows)}")
    if select is None:
        for row in state.rows[: max(1, limit)]:
            values = [
                f"{key}={value}"
                for key, value in row.items()
                if key not in {"rowNumber", "checkup"} and str(value).strip()
            ]
            print(f"- row {row['rowNumber']}: {' | '.join(values[:4])}")
        return

    form = _form_from_row(_select_row(state, select))
    if not form.product_url:
        raise SystemExit(f"Row {select} has no product_url value.")
    try:
        state.preview = build_post(form, ProductInfoClient.from_config(config), config)
    except Exception as exc:
        raise SystemExit(f"Post generation failed: {exc}") from exc

    print(f"Selected row {select}")
    print(render_text(state.preview))
    print(f"Subject: {build_subject(state.preview)}")


def _update_queue_rows(
    config: AgentConfig,
    forms: list[ProductForm],
    destination: str,
    state: QueueState | None,
) -> None:
    row_numbers = [form.row_number for form in forms if form.row_number]
    if not row_numbers:
        return
    if not config.sheets_enabled:
        print("Sheets work queue is not configured; row status not updated.")
        return

    updated, errors = mark_rows_posted(SheetsClient.from_config(config), row_numbers, destination)
    for row_number in updated:
        print(f"Work-queue row {row_number} marked as posted.")
        if state is not None:
            state.drop_row(row_number)
    for row_number, message in errors.items():
        print(f"Work-queue update failed for row {row_number}: {message}")
    if state is not None:
        print(f"Pending rows left: {len(state.rows)}")


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    config = _apply_runtime_overrides(AgentConfig.from_env(), args)

    if args.command == "queue":
        _run_queue(config, args.limit, args.select)
        return

    if args.command == "serve":
        logging.basicConfig(
            level=logging.DEBUG if args.debug else logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        from deal_post_agent.server import create_app

        app = create_app(config)
        app.run(
            host=args.host or config.server_host,
            port=args.port or config.server_port,
            debug=args.debug,
        )
        return

    if args.command == "pricing":
        _run_pricing(args, config)
        return

    forms, state = _collect_forms(args, config)
    try:
        posts = build_posts(forms, ProductInfoClient.from_config(config), config)
    except Exception as exc:
        raise SystemExit(f"Post generation failed: {exc}") from exc
    if args.command == "preview":
        rendered = render_posts_html(posts) if args.format == "html" else render_posts_text(posts)
        if args.output:
            output_path = Path(args.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(rendered, encoding="utf-8")
            print(f"Post written: {output_path} ({len(posts)} product(s))")
        else:
            print(rendered)
        print(f"Subject: {build_batch_subject(posts)}")
        return

    try:
        result = publish_posts(posts, args.destination, PostingClient.from_config(config), config)
    except Exception as exc:
        raise SystemExit(f"Publishing to {args.destination} failed: {exc}") from exc
    print(f"Published to {args.destination}: {result}")
    _update_queue_rows(config, forms, args.destination, state)


if __name__ == "__main__":
    main()
