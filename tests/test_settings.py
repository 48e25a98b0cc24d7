"""
Settings and logging setup tests.
"""
import logging

from customer_pricing.config.logging_setup import setup_logging
from customer_pricing.config.settings import Settings, read_api_token


def test_defaults_without_environment(monkeypatch, tmp_path):
    for name in ("PRICING_AUTHORITY_URL", "PRICING_API_TOKEN", "PRICING_TIMEOUT_SECONDS",
                 "PRICING_DATA_DIR", "PRICING_LOG_LEVEL", "PRICING_API_HOST", "PRICING_API_PORT"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.load(project_root=tmp_path)
    assert settings.authority_url == "http://localhost:8000"
    assert settings.authority_timeout == 10.0
    assert settings.api_token is None
    assert (settings.api_host, settings.api_port) == ("127.0.0.1", 8000)
    assert settings.products_csv == tmp_path / "data" / "products.csv"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("PRICING_AUTHORITY_URL", "https://pricing.example.com/")
    monkeypatch.setenv("PRICING_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("PRICING_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PRICING_LOG_LEVEL", "debug")
    monkeypatch.setenv("PRICING_API_HOST", "0.0.0.0")
    monkeypatch.setenv("PRICING_API_PORT", "9100")

    settings = Settings.load()
    assert settings.authority_url == "https://pricing.example.com"
    assert settings.authority_timeout == 2.5
    assert settings.custom_prices_csv == tmp_path / "custom_prices.csv"
    assert settings.log_level == "DEBUG"
    assert (settings.api_host, settings.api_port) == ("0.0.0.0", 9100)


def test_token_is_read_on_every_call(monkeypatch):
    monkeypatch.setenv("PRICING_API_TOKEN", "one")
    assert read_api_token() == "one"
    monkeypatch.setenv("PRICING_API_TOKEN", "two")
    assert read_api_token() == "two"
    monkeypatch.setenv("PRICING_API_TOKEN", "")
    assert read_api_token() is None


def test_setup_logging_quiets_httpx():
    root = logging.getLogger()
    saved_level, saved_handlers = root.level, list(root.handlers)
    try:
        setup_logging("debug")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
