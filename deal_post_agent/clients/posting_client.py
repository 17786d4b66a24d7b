from __future__ import annotations

from typing import Any

from deal_post_agent.clients.cloud_run_client import CloudRunClient
from deal_post_agent.config import AgentConfig


class PostingClient:
    """Publishes finished posts through the band / kakao / naver-cafe writers."""

    def __init__(
        self,
        band_client: CloudRunClient,
        kakao_client: CloudRunClient,
        naver_cafe_client: CloudRunClient,
    ) -> None:
        self.band_client = band_client
        self.kakao_client = kakao_client
        self.naver_cafe_client = naver_cafe_client

    @classmethod
    def from_config(cls, config: AgentConfig) -> "PostingClient":
        timeout = config.upstream_timeout_sec
        return cls(
            band_client=CloudRunClient(config.band_service_url, timeout),
            kakao_client=CloudRunClient(config.kakao_service_url, timeout),
            naver_cafe_client=CloudRunClient(config.naver_cafe_service_url, timeout),
        )

    def post_to_band(self, content: str, image_url: str | None = None) -> Any:
        if not content:
            raise ValueError("content is required")
        payload: dict[str, Any] = {"content": content}
        if image_url:
            payload["image_url"] = image_url
        return self.band_client.post_json(payload)

    def post_to_kakao(self, kakao_content: str, kakao_url: str) -> Any:
        if not kakao_content or not kakao_url:
            raise ValueError("kakao_content and kakao_url are required")
        return self.kakao_client.post_json(
            {"kakao_content": kakao_content, "kakao_url": kakao_url}
        )

    def post_to_naver_cafe(
        self,
        subject: str,
        content: str,
        image_urls: list[str] | None,
        club_id: str,
        menu_id: str,
    ) -> Any:
        if not subject or not content or not club_id or not menu_id:
            raise ValueError("subject, content, club_id, menu_id are required")
        return self.naver_cafe_client.post_json(
            {
                "subject": subject,
                "content": content,
                "image_urls": list(image_urls or []),
                "club_id": club_id,
                "menu_id": menu_id,
            }
        )
