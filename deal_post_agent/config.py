from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from deal_post_agent.pricing import normalize_currency


try:
    load_dotenv(find_dotenv(usecwd=True), override=False)
except Exception:
    pass


COIN_DISCOUNT_MODES = ("rate", "amount")
ROUNDING_POLICIES = ("none", "unit", "ten")


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip()
    placeholder = f"{name}="
    unquoted = value.strip("'\"").strip()
    if unquoted.lower() == placeholder.lower():
        return default.strip()
    return value if value else default.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw else default


def _env_csv(name: str, default: str = "") -> tuple[str, ...]:
    raw = _env(name, default)
    values = [part.strip() for part in raw.split(",") if part.strip()]
    return tuple(values)


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    value = _env(name, default).lower()
    return value if value in choices else default


@dataclass(frozen=True)
class AgentConfig:
    image_url_service_url: str
    all_info_service_url: str
    reviews_service_url: str
    band_service_url: str
    kakao_service_url: str
    naver_cafe_service_url: str
    upstream_timeout_sec: int

    google_credentials_json: str
    google_credentials_path: str
    sheet_id: str
    sheet_name: str

    naver_cafe_club_id: str
    naver_cafe_menu_id: str

    coin_discount_mode: str
    price_rounding: str
    default_currency: str
    post_footer: str
    post_tags: tuple[str, ...]

    server_host: str
    server_port: int
    cors_origins: tuple[str, ...]

    @classmethod
    def from_env(cls) -> "AgentConfig":
        return cls(
            image_url_service_url=_env(
                "IMAGE_URL_SERVICE_URL",
                "https://alihelper-imageurl-53912196882.asia-northeast3.run.app",
            ),
            all_info_service_url=_env(
                "ALL_INFO_SERVICE_URL",
                "https://alihelper-allimage-53912196882.asia-northeast3.run.app",
            ),
            reviews_service_url=_env(
                "REVIEWS_SERVICE_URL",
                "https://alihelper-reviews-53912196882.asia-northeast3.run.app",
            ),
            band_service_url=_env(
                "BAND_SERVICE_URL",
                "https://alihelper-band-53912196882.asia-northeast3.run.app",
            ),
            kakao_service_url=_env(
                "KAKAO_SERVICE_URL",
                "https://alihelper-kakaotalk-53912196882.asia-northeast3.run.app",
            ),
            naver_cafe_service_url=_env(
                "NAVER_CAFE_SERVICE_URL",
                "https://navercafe-write-53912196882.asia-northeast3.run.app",
            ),
            upstream_timeout_sec=max(5, _env_int("UPSTREAM_TIMEOUT_SEC", 300)),
            google_credentials_json=_env("GOOGLE_CREDENTIALS"),
            google_credentials_path=_env("GOOGLE_CREDENTIALS_PATH"),
            sheet_id=_env("SHEET_ID"),
            sheet_name=_env("SHEET_NAME", "data"),
            naver_cafe_club_id=_env("NAVER_CAFE_CLUB_ID"),
            naver_cafe_menu_id=_env("NAVER_CAFE_MENU_ID"),
            coin_discount_mode=_env_choice(
                "COIN_DISCOUNT_MODE", COIN_DISCOUNT_MODES, "amount"
            ),
            price_rounding=_env_choice("PRICE_ROUNDING", ROUNDING_POLICIES, "unit"),
            default_currency=normalize_currency(_env("DEFAULT_CURRENCY")),
            post_footer=_env("POST_FOOTER"),
            post_tags=_env_csv("POST_TAGS"),
            server_host=_env("SERVER_HOST", "0.0.0.0"),
            server_port=_env_int("SERVER_PORT", _env_int("PORT", 5000)),
            cors_origins=_env_csv("CORS_ORIGINS", "*"),
        )

    @property
    def sheets_enabled(self) -> bool:
        has_credentials = bool(
            self.google_credentials_json or self.google_credentials_path
        )
        return bool(has_credentials and self.sheet_id)

    @property
    def naver_cafe_enabled(self) -> bool:
        return bool(
            self.naver_cafe_service_url
            and self.naver_cafe_club_id
            and self.naver_cafe_menu_id
        )
