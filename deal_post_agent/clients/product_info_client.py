from __future__ import annotations

from typing import Any

from deal_post_agent.clients.cloud_run_client import CloudRunClient, UpstreamError
from deal_post_agent.config import AgentConfig
from deal_post_agent.models import ProductInfo


class ProductInfoClient:
    """Product metadata and review lookups backed by the scraping services."""

    def __init__(
        self,
        image_url_client: CloudRunClient,
        all_info_client: CloudRunClient,
        reviews_client: CloudRunClient,
    ) -> None:
        self.image_url_client = image_url_client
        self.all_info_client = all_info_client
        self.reviews_client = reviews_client

    @classmethod
    def from_config(cls, config: AgentConfig) -> "ProductInfoClient":
        timeout = config.upstream_timeout_sec
        return cls(
            image_url_client=CloudRunClient(config.image_url_service_url, timeout),
            all_info_client=CloudRunClient(config.all_info_service_url, timeout),
            reviews_client=CloudRunClient(config.reviews_service_url, timeout),
        )

    def fetch_image_url(self, target_url: str) -> dict[str, Any]:
        target = str(target_url or "").strip()
        if not target:
            raise ValueError("target_url is required")
        payload = self.image_url_client.post_json({"target_url": target})
        return payload if isinstance(payload, dict) else {"data": payload}

    def fetch_all_infos(
        self,
        target_urls: list[str],
        aff_short_keys: list[str],
    ) -> list[ProductInfo]:
        if not isinstance(target_urls, list) or not target_urls:
            raise ValueError("target_urls is required and must be an array")
        if not isinstance(aff_short_keys, list) or not aff_short_keys:
            raise ValueError("aff_short_key is required and must be an array")
        if len(target_urls) != len(aff_short_keys):
            raise ValueError("target_urls and aff_short_key must have the same length")

        payload = self.all_info_client.post_json(
            {"target_urls": target_urls, "aff_short_key": aff_short_keys}
        )
        return self._combine_infos(payload)

    @staticmethod
    def _combine_infos(payload: Any) -> list[ProductInfo]:
        product_urls = payload.get("product_urls") if isinstance(payload, dict) else None
        final_urls = payload.get("final_urls") if isinstance(payload, dict) else None
        details = payload.get("details") if isinstance(payload, dict) else None
        if not (
            isinstance(product_urls, list)
            and isinstance(final_urls, list)
            and isinstance(details, list)
        ):
            raise UpstreamError(
                "Invalid response structure from the main Cloud Run service",
                status_code=500,
                payload=payload,
            )
        if not (len(product_urls) == len(final_urls) == len(details)):
            raise UpstreamError(
                "Mismatched data arrays from the main Cloud Run service",
                status_code=500,
                payload=payload,
            )

        infos: list[ProductInfo] = []
        for original_url, final_url, detail in zip(product_urls, final_urls, details):
            detail = detail if isinstance(detail, dict) else {}
            infos.append(
                ProductInfo(
                    original_url=str(original_url),
                    final_url=str(final_url),
                    product_title=detail.get("product_title"),
                    product_main_image_url=detail.get("product_main_image_url"),
                    sale_volume=detail.get("sale_volume"),
                    korean_summary=detail.get("korean_summary"),
                    korean_local_count=detail.get("korean_local_count"),
                    total_num=detail.get("total_num"),
                )
            )
        return infos

    def fetch_reviews(self, target_urls: list[str]) -> Any:
        if not isinstance(target_urls, list) or not target_urls:
            raise ValueError("target_urls is required and must be a non-empty array")
        return self.reviews_client.post_json({"target_urls": target_urls})
