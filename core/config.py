"""Configuration loader -- reads config.yaml + .env, validates with Pydantic.

Resolves ${ENV_VAR} references in YAML values from environment variables.
Missing files are not fatal: every section has working defaults.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from core.duration import to_milliseconds
from core.models.market import FallbackSource, ProviderName, SourceTag, Symbol
from scheduler.cron import validate_cron

logger = logging.getLogger(__name__)

# Default home directory for config.yaml and .env
DEFAULT_HOME = Path.home() / ".overnight-bias"
HOME_ENV_VAR = "OVERNIGHT_BIAS_HOME"
API_KEY_ENV_VAR = "API_KEY"

_ENV_REF = re.compile(r"\$\{(\w+)\}")


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} references in config values."""
    if isinstance(value, str):
        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                logger.warning("Environment variable %s not set", var_name)
                return match.group(0)  # leave unresolved
            return env_value
        return _ENV_REF.sub(replacer, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _secret_or_env(value: str) -> str:
    """Use ``value`` unless it is empty or an unresolved reference."""
    value = (value or "").strip()
    if value and not _ENV_REF.search(value):
        return value
    return os.environ.get(API_KEY_ENV_VAR, "").strip()


# ---------------------------------------------------------------------------
# Config models (Pydantic)
# ---------------------------------------------------------------------------

class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080


class FallbackConfig(BaseModel):
    ticker: str
    provider: ProviderName = "yahoo_finance"
    source_tag: SourceTag = "yahoo-spot"


class SymbolConfig(BaseModel):
    ticker: str
    name: str = ""
    provider: ProviderName = "yahoo_finance"
    fallback: FallbackConfig | None = None


def _default_symbols() -> dict[str, SymbolConfig]:
    return {
        "NASDAQ": SymbolConfig(ticker="^NDX", name="NASDAQ 100"),
        "SP500": SymbolConfig(ticker="^GSPC", name="S&P 500"),
        "DOW": SymbolConfig(ticker="^DJI", name="Dow Jones"),
        "CRUDE": SymbolConfig(ticker="CL=F", name="Crude Oil"),
        "GOLD": SymbolConfig(
            ticker="GC=F",
            name="Gold",
            fallback=FallbackConfig(ticker="XAUUSD=X", source_tag="yahoo-spot"),
        ),
    }


class YahooFinanceConfig(BaseModel):
    base_url: str = "https://query1.finance.yahoo.com"
    timeout: float = 30.0
    user_agent: str = "overnight-bias/0.1"


class AlphaVantageConfig(BaseModel):
    base_url: str = "https://www.alphavantage.co"
    api_key: str = ""
    timeout: float = 30.0

    @property
    def resolved_api_key(self) -> str:
        return _secret_or_env(self.api_key)


class MarketDataConfig(BaseModel):
    cache_ttl: str = "60s"
    history_range: str = "10d"
    symbols: dict[str, SymbolConfig] = Field(default_factory=_default_symbols)
    yahoo_finance: YahooFinanceConfig = Field(default_factory=YahooFinanceConfig)
    alpha_vantage: AlphaVantageConfig = Field(default_factory=AlphaVantageConfig)

    @field_validator("cache_ttl")
    @classmethod
    def _check_ttl(cls, value: str) -> str:
        to_milliseconds(value)
        return value

    @property
    def cache_ttl_ms(self) -> float:
        return to_milliseconds(self.cache_ttl)

    def symbol_table(self) -> list[Symbol]:
        """Configured symbols as immutable models, in config order."""
        table: list[Symbol] = []
        for key, cfg in self.symbols.items():
            fallback = None
            if cfg.fallback is not None:
                fallback = FallbackSource(
                    ticker=cfg.fallback.ticker,
                    provider=cfg.fallback.provider,
                    source_tag=cfg.fallback.source_tag,
                )
            table.append(Symbol(
                key=key,
                ticker=cfg.ticker,
                name=cfg.name or key,
                provider=cfg.provider,
                fallback=fallback,
            ))
        return table


class ScheduleConfig(BaseModel):
    timezone: str = "Europe/London"
    refresh_cron: str = "1 23 * * *"
    refresh_on_start: bool = True

    @field_validator("refresh_cron")
    @classmethod
    def _check_cron(cls, value: str) -> str:
        return validate_cron(value)


class ProxyConfig(BaseModel):
    enabled: bool = True
    yahoo_upstream: str = "https://query1.finance.yahoo.com"
    alpha_vantage_upstream: str = "https://www.alphavantage.co"
    api_key: str = ""
    timeout: float = 30.0

    @property
    def resolved_api_key(self) -> str:
        return _secret_or_env(self.api_key)


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    """Top-level application configuration."""

    home_dir: str = str(DEFAULT_HOME)
    server: ServerConfig = Field(default_factory=ServerConfig)
    market_data: MarketDataConfig = Field(default_factory=MarketDataConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def home_path(self) -> Path:
        """Resolved home directory as a Path."""
        return Path(self.home_dir).expanduser()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    env_path: str | Path | None = None,
) -> AppConfig:
    """Load configuration from YAML + .env files.

    1. Load .env into environment variables
    2. Load config.yaml and resolve ${ENV_VAR} references
    3. Validate against Pydantic models
    """
    home = Path(os.environ.get(HOME_ENV_VAR, str(DEFAULT_HOME))).expanduser()

    if env_path is None:
        env_path = home / ".env"
    if config_path is None:
        config_path = home / "config.yaml"

    env_path = Path(env_path)
    config_path = Path(config_path)

    if env_path.exists():
        load_dotenv(env_path)
        logger.info("Loaded environment from %s", env_path)
    else:
        logger.debug("No .env file at %s", env_path)

    raw_config: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            raw_config = yaml.safe_load(f) or {}
        logger.info("Loaded config from %s", config_path)
    else:
        logger.warning("No config file at %s, using defaults", config_path)

    resolved = _resolve_env_vars(raw_config)

    if HOME_ENV_VAR in os.environ:
        resolved["home_dir"] = os.environ[HOME_ENV_VAR]

    return AppConfig(**resolved)
