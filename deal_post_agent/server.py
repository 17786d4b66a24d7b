from __future__ import annotations

import json
import logging
from typing import Any

from flask import Flask, jsonify, request
from flask_cors import CORS

from deal_post_agent.clients.cloud_run_client import UpstreamError
from deal_post_agent.clients.posting_client import PostingClient
from deal_post_agent.clients.product_info_client import ProductInfoClient
from deal_post_agent.clients.sheets_client import SheetsClient
from deal_post_agent.config import AgentConfig
from deal_post_agent.content import (
    build_batch_subject,
    build_subject,
    render_posts_html,
    render_posts_text,
)
from deal_post_agent.models import PostTemplate
from deal_post_agent.workflow import (
    DESTINATIONS,
    build_posts,
    forms_from_payload,
    mark_rows_posted,
    publish_posts,
    resolve_pricing,
)


logger = logging.getLogger(__name__)

GENERIC_PROXY_ERROR = "An internal server error occurred in the proxy."
PREVIEW_ERROR = "HTML 생성에 실패했습니다. 입력값을 확인하거나 다시 시도해주세요."


def _dump(payload: Any) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, indent=2, default=str)
    except (TypeError, ValueError):
        return repr(payload)


def _body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _bad_request(exc: ValueError):
    return jsonify({"error": str(exc)}), 400


def _upstream_failure(tag: str, exc: UpstreamError, request_body: Any, passthrough: bool = True):
    logger.error("[%s] Upstream error. Request Body: %s", tag, _dump(request_body))
    logger.error("[%s] Upstream error response status: %s", tag, exc.status_code)
    logger.error("[%s] Upstream error response data: %s", tag, _dump(exc.payload))
    if passthrough and exc.payload is not None:
        return jsonify(exc.payload), exc.status_code
    return jsonify({"error": str(exc), "details": exc.payload}), exc.status_code


def _internal_failure(tag: str, exc: Exception, request_body: Any, message: str = GENERIC_PROXY_ERROR):
    logger.exception("[%s] An unexpected error occurred. Request Body: %s", tag, _dump(request_body))
    return jsonify({"error": message, "details": {"message": str(exc)}}), 500


def _preview_payload(posts: list[PostTemplate]) -> dict[str, Any]:
    first = posts[0]
    return {
        "html": render_posts_html(posts),
        "text": render_posts_text(posts),
        "subject": build_batch_subject(posts),
        "image_url": first.image_url,
        "link_url": first.link_url,
        "pricing": first.pricing.as_dict(),
        "posts": [
            {
                "title": post.title,
                "subject": build_subject(post),
                "image_url": post.image_url,
                "link_url": post.link_url,
                "pricing": post.pricing.as_dict(),
            }
            for post in posts
        ],
    }


def create_app(
    config: AgentConfig | None = None,
    product_client: ProductInfoClient | None = None,
    posting_client: PostingClient | None = None,
    sheets_client: SheetsClient | None = None,
) -> Flask:
    config = config or AgentConfig.from_env()
    product_client = product_client or ProductInfoClient.from_config(config)
    posting_client = posting_client or PostingClient.from_config(config)
    sheets_client = sheets_client or SheetsClient.from_config(config)

    app = Flask(__name__)
    CORS(app, resources={r"/api/*": {"origins": list(config.cors_origins) or ["*"]}})

    @app.post("/api/generate-image-url")
    def generate_image_url():
        body = _body()
        try:
            return jsonify(product_client.fetch_image_url(body.get("target_url", "")))
        except ValueError as exc:
            return _bad_request(exc)
        except UpstreamError as exc:
            logger.error("External API error: %s %s", exc.status_code, _dump(exc.payload))
            return (
                jsonify({"error": f"Failed to fetch image URL. Status: {exc.status_code}"}),
                exc.status_code,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Proxy API error: %s", exc)
            return jsonify({"error": "An internal server error occurred."}), 500

    @app.post("/api/generate-all")
    def generate_all():
        body = _body()
        try:
            infos = product_client.fetch_all_infos(
                body.get("target_urls"),
                body.get("aff_short_key"),
            )
            return jsonify({"allInfos": [info.as_dict() for info in infos]})
        except ValueError as exc:
            return _bad_request(exc)
        except UpstreamError as exc:
            return _upstream_failure("PROXY-ALL", exc, body, passthrough=False)
        except Exception as exc:  # noqa: BLE001
            return _internal_failure("PROXY-ALL", exc, body)

    @app.post("/api/generate-reviews")
    def generate_reviews():
        body = _body()
        try:
            return jsonify(product_client.fetch_reviews(body.get("target_urls")))
        except ValueError as exc:
            return _bad_request(exc)
        except UpstreamError as exc:
            return _upstream_failure("PROXY-REVIEWS", exc, body)
        except Exception as exc:  # noqa: BLE001
            return _internal_failure("PROXY-REVIEWS", exc, body)

    @app.post("/api/post-to-band")
    def post_to_band():
        body = _body()
        try:
            return jsonify(
                posting_client.post_to_band(body.get("content", ""), body.get("image_url"))
            )
        except ValueError as exc:
            return _bad_request(exc)
        except UpstreamError as exc:
            return _upstream_failure("PROXY-BAND", exc, body)
        except Exception as exc:  # noqa: BLE001
            return _internal_failure("PROXY-BAND", exc, body)

    @app.post("/api/post-to-kakao")
    def post_to_kakao():
        body = _body()
        try:
            return jsonify(
                posting_client.post_to_kakao(
                    body.get("kakao_content", ""),
                    body.get("kakao_url", ""),
                )
            )
        except ValueError as exc:
            return _bad_request(exc)
        except UpstreamError as exc:
            return _upstream_failure("PROXY-KAKAO", exc, body)
        except Exception as exc:  # noqa: BLE001
            return _internal_failure("PROXY-KAKAO", exc, body)

    @app.post("/api/post-to-naver-cafe")
    def post_to_naver_cafe():
        body = _body()
        try:
            return jsonify(
                posting_client.post_to_naver_cafe(
                    subject=body.get("subject", ""),
                    content=body.get("content", ""),
                    image_urls=body.get("image_urls"),
                    club_id=body.get("club_id", ""),
                    menu_id=body.get("menu_id", ""),
                )
            )
        except ValueError as exc:
            return _bad_request(exc)
        except UpstreamError as exc:
            return _upstream_failure("PROXY-NAVER-CAFE", exc, body)
        except Exception as exc:  # noqa: BLE001
            return _internal_failure("PROXY-NAVER-CAFE", exc, body)

    @app.get("/api/sheets")
    def get_sheet_rows():
        try:
            return jsonify({"data": sheets_client.fetch_pending_rows()})
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error fetching sheet data")
            return jsonify({"error": "Failed to fetch sheet data", "details": str(exc)}), 500

    @app.post("/api/sheets")
    def update_sheet_row():
        body = _body()
        try:
            response = sheets_client.update_row(body.get("rowNumber"), body.get("newValues"))
            return jsonify({"success": True, "response": response})
        except ValueError as exc:
            return _bad_request(exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error updating sheet data")
            return jsonify({"error": "Failed to update sheet data", "details": str(exc)}), 500

    @app.post("/api/pricing")
    def pricing():
        body = _body()
        try:
            forms = forms_from_payload(body)
        except ValueError as exc:
            return _bad_request(exc)
        results = [resolve_pricing(form, config).as_dict() for form in forms]
        if "products" in body:
            return jsonify({"products": results})
        return jsonify(results[0])

    @app.post("/api/preview")
    def preview():
        body = _body()
        try:
            posts = build_posts(forms_from_payload(body), product_client, config)
        except ValueError as exc:
            return _bad_request(exc)
        except UpstreamError as exc:
            return _upstream_failure("PREVIEW", exc, body, passthrough=False)
        except Exception as exc:  # noqa: BLE001
            return _internal_failure("PREVIEW", exc, body, message=PREVIEW_ERROR)
        return jsonify(_preview_payload(posts))

    @app.post("/api/publish")
    def publish():
        body = _body()
        destination = str(body.get("destination", "")).strip().lower()
        if destination not in DESTINATIONS:
            return jsonify({"error": f"destination must be one of: {', '.join(DESTINATIONS)}"}), 400
        try:
            forms = forms_from_payload(body)
            posts = build_posts(forms, product_client, config)
            result = publish_posts(posts, destination, posting_client, config)
        except ValueError as exc:
            return _bad_request(exc)
        except UpstreamError as exc:
            return _upstream_failure("PUBLISH", exc, body, passthrough=False)
        except Exception as exc:  # noqa: BLE001
            return _internal_failure("PUBLISH", exc, body)
        response: dict[str, Any] = {"success": True, "destination": destination, "response": result}

        # The post is live at this point; queue bookkeeping failures are
        # reported alongside it instead of failing the request.
        row_numbers = [form.row_number for form in forms if form.row_number]
        if not row_numbers:
            return jsonify(response)
        if not config.sheets_enabled:
            response["rows_updated"] = []
            response["row_update_error"] = "Sheets work queue is not configured; row status not updated."
            return jsonify(response)
        updated, errors = mark_rows_posted(sheets_client, row_numbers, destination)
        response["rows_updated"] = updated
        if errors:
            for row_number, message in errors.items():
                logger.error("[PUBLISH] Row %s update failed after publishing: %s", row_number, message)
            response["row_update_error"] = "; ".join(
                f"row {row_number}: {message}" for row_number, message in errors.items()
            )
        return jsonify(response)

    return app
