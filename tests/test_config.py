from deal_post_agent.config import AgentConfig


def test_defaults(monkeypatch):
    for name in (
        "SHEET_NAME",
        "COIN_DISCOUNT_MODE",
        "PRICE_ROUNDING",
        "DEFAULT_CURRENCY",
        "UPSTREAM_TIMEOUT_SEC",
        "CORS_ORIGINS",
        "SERVER_PORT",
        "PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    config = AgentConfig.from_env()
    assert config.sheet_name == "data"
    assert config.coin_discount_mode == "amount"
    assert config.price_rounding == "unit"
    assert config.default_currency == ""
    assert config.upstream_timeout_sec == 300
    assert config.cors_origins == ("*",)
    assert config.server_port == 5000
    assert config.band_service_url.startswith("https://")


def test_placeholder_value_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("SHEET_NAME", "SHEET_NAME=")
    config = AgentConfig.from_env()
    assert config.sheet_name == "data"


def test_invalid_choices_fall_back(monkeypatch):
    monkeypatch.setenv("COIN_DISCOUNT_MODE", "percent")
    monkeypatch.setenv("PRICE_ROUNDING", "TEN")
    config = AgentConfig.from_env()
    assert config.coin_discount_mode == "amount"
    assert config.price_rounding == "ten"


def test_default_currency_normalization(monkeypatch):
    monkeypatch.setenv("DEFAULT_CURRENCY", "won")
    assert AgentConfig.from_env().default_currency == "KRW"
    monkeypatch.setenv("DEFAULT_CURRENCY", "usd")
    assert AgentConfig.from_env().default_currency == "USD"
    monkeypatch.setenv("DEFAULT_CURRENCY", "eur")
    assert AgentConfig.from_env().default_currency == ""


def test_port_fallback_and_tags(monkeypatch):
    monkeypatch.delenv("SERVER_PORT", raising=False)
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("POST_TAGS", "알리특가, 핫딜,,")
    config = AgentConfig.from_env()
    assert config.server_port == 8080
    assert config.post_tags == ("알리특가", "핫딜")


def test_enabled_properties(monkeypatch):
    monkeypatch.setenv("SHEET_ID", "sheet-123")
    monkeypatch.setenv("GOOGLE_CREDENTIALS", '{"type": "service_account"}')
    monkeypatch.setenv("NAVER_CAFE_CLUB_ID", "31000000")
    monkeypatch.delenv("NAVER_CAFE_MENU_ID", raising=False)
    config = AgentConfig.from_env()
    assert config.sheets_enabled is True
    assert config.naver_cafe_enabled is False

    monkeypatch.setenv("NAVER_CAFE_MENU_ID", "7")
    assert AgentConfig.from_env().naver_cafe_enabled is True


def test_sheets_disabled_without_sheet_id(monkeypatch):
    monkeypatch.delenv("SHEET_ID", raising=False)
    monkeypatch.setenv("GOOGLE_CREDENTIALS_PATH", "secret.json")
    assert AgentConfig.from_env().sheets_enabled is False
