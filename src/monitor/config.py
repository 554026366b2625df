"""Configuration system using pydantic-settings with environment variable loading."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExchangeSettings(BaseSettings):
    """Exchange connection settings (any ccxt.pro exchange id)."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_")

    exchange_id: str = "bitfinex"
    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")
    sandbox: bool = False
    reconnect_delay: float = 5.0  # seconds between stream retries


class MonitorSettings(BaseSettings):
    """Market monitor and prime engine parameters."""

    model_config = SettingsConfigDict(env_prefix="MONITOR_")

    symbol: str = "BTC/USD"
    candle_timeframe: str = "1m"
    mode: Literal["paper", "live"] = "paper"

    # Trade grouping alerts
    trade_size_alert_threshold: Decimal = Decimal("0.75")
    group_size_alert_threshold: Decimal = Decimal("3")

    # Charts
    left_chart_window: int = 180  # minutes
    right_chart_window: int = 30  # minutes
    ema_period: int = 30

    # Timers
    calc_interval: float = 5.0  # seconds between recalculation requests
    display_refresh_interval: float = 1.0
    blink_interval: float = 0.5

    # Prime engine
    prime_clear_policy: Literal["clear_all", "clear_fired"] = "clear_all"

    # Event dispatch
    event_queue_size: int = 1000
    queue_overflow: Literal["drop_oldest", "backpressure"] = "drop_oldest"

    # Paper mode
    paper_taker_fee: Decimal = Decimal("0.002")  # 0.2%


class DashboardSettings(BaseSettings):
    """Dashboard server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "127.0.0.1"
    port: int = 8080
    enabled: bool = True


@dataclass
class RuntimeConfig:
    """Runtime overrides sent by the command layer. None fields are left unchanged."""

    trade_size_alert_threshold: Decimal | None = None
    group_size_alert_threshold: Decimal | None = None
    left_chart_window: int | None = None
    right_chart_window: int | None = None
    ema_period: int | None = None
    quick_order_size: Decimal | None = None


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    exchange: ExchangeSettings = ExchangeSettings()
    monitor: MonitorSettings = MonitorSettings()
    dashboard: DashboardSettings = DashboardSettings()
