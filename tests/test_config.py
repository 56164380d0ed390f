"""Tests for YAML + .env configuration loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import AppConfig, MarketDataConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so monkeypatch restores (removes) anything load_dotenv writes
    for name in ("API_KEY", "OVERNIGHT_BIAS_HOME", "YAHOO_BASE"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults_without_files(tmp_path):
    config = load_config(config_path=tmp_path / "missing.yaml", env_path=tmp_path / "missing.env")

    assert config.server.port == 8080
    assert config.schedule.timezone == "Europe/London"
    assert config.schedule.refresh_cron == "1 23 * * *"
    assert config.market_data.cache_ttl_ms == 60_000
    assert list(config.market_data.symbols) == ["NASDAQ", "SP500", "DOW", "CRUDE", "GOLD"]
    assert not (tmp_path / "missing.yaml").exists()


def test_default_symbol_table():
    table = MarketDataConfig().symbol_table()

    tickers = {s.key: s.ticker for s in table}
    assert tickers == {"NASDAQ": "^NDX", "SP500": "^GSPC", "DOW": "^DJI", "CRUDE": "CL=F", "GOLD": "GC=F"}
    gold = table[-1]
    assert gold.fallback.ticker == "XAUUSD=X"
    assert gold.fallback.source_tag == "yahoo-spot"
    assert all(s.fallback is None for s in table[:-1])


def test_yaml_with_env_references(tmp_path, monkeypatch):
    monkeypatch.setenv("YAHOO_BASE", "https://yahoo.internal")
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "market_data:\n"
        "  cache_ttl: 5m\n"
        "  yahoo_finance:\n"
        "    base_url: ${YAHOO_BASE}\n"
        "  symbols:\n"
        "    CRUDE: {ticker: WTI, name: Crude Oil, provider: alpha_vantage}\n"
        "server:\n"
        "  port: 9000\n"
    )

    config = load_config(config_path=config_file, env_path=tmp_path / "none.env")

    assert config.server.port == 9000
    assert config.market_data.cache_ttl_ms == 300_000
    assert config.market_data.yahoo_finance.base_url == "https://yahoo.internal"
    [crude] = config.market_data.symbol_table()
    assert crude.provider == "alpha_vantage"
    assert crude.ticker == "WTI"


def test_api_key_from_dotenv(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("API_KEY=from-dotenv\n")
    config_file = tmp_path / "config.yaml"
    config_file.write_text("proxy:\n  api_key: ${API_KEY}\n")

    config = load_config(config_path=config_file, env_path=env_file)

    assert config.proxy.resolved_api_key == "from-dotenv"
    assert config.market_data.alpha_vantage.resolved_api_key == "from-dotenv"


def test_unresolved_reference_falls_back_to_api_key(monkeypatch):
    config = AppConfig(proxy={"api_key": "${NOT_SET_ANYWHERE}"})
    assert config.proxy.resolved_api_key == ""

    monkeypatch.setenv("API_KEY", "shared")
    assert config.proxy.resolved_api_key == "shared"


def test_explicit_key_wins(monkeypatch):
    monkeypatch.setenv("API_KEY", "shared")
    config = AppConfig(market_data={"alpha_vantage": {"api_key": "own"}})

    assert config.market_data.alpha_vantage.resolved_api_key == "own"


def test_home_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("OVERNIGHT_BIAS_HOME", str(tmp_path))
    (tmp_path / "config.yaml").write_text("logging:\n  level: DEBUG\n")

    config = load_config()

    assert config.home_path == tmp_path
    assert config.logging.level == "DEBUG"


@pytest.mark.parametrize("ttl", ["soon", "60", "-1s"])
def test_invalid_cache_ttl(ttl):
    with pytest.raises(ValidationError):
        MarketDataConfig(cache_ttl=ttl)


def test_unknown_provider_rejected():
    with pytest.raises(ValidationError):
        MarketDataConfig(symbols={"X": {"ticker": "X", "provider": "bloomberg"}})


@pytest.mark.parametrize("cron", ["1 23-x * * *", "1,x 23 * * *", "1 23 * *"])
def test_invalid_refresh_cron(cron):
    with pytest.raises(ValidationError):
        AppConfig(schedule={"refresh_cron": cron})


def test_invalid_refresh_cron_in_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text('schedule:\n  refresh_cron: "1 23-x * * *"\n')

    with pytest.raises(ValidationError):
        load_config(config_path=config_file, env_path=tmp_path / "none.env")
