# liqwatch/config.py
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, field_validator, model_validator

from liqwatch.alert.detector import DetectionThresholds
from liqwatch.alert.suppressor import SuppressionSettings


class ExchangeConfig(BaseModel):
    name: Literal["mexc", "binance"] = "mexc"
    ws_url: str | None = None
    rest_url: str = "https://contract.mexc.com/api/v1/contract"


class WindowConfig(BaseModel):
    window_seconds: float = 120
    min_events: int = 2

    @field_validator("window_seconds")
    @classmethod
    def _positive_window(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("window_seconds must be positive")
        return v


class DetectionConfig(BaseModel):
    min_volume_usd: float = 800_000
    min_dominance_pct: float = 65
    min_price_change_pct: float = 0.5
    max_price_change_pct: float | None = None
    min_event_count: int = 3
    min_duration_sec: float = 0

    @field_validator("min_dominance_pct")
    @classmethod
    def _dominance_range(cls, v: float) -> float:
        if not 50 <= v <= 100:
            raise ValueError("min_dominance_pct must be within [50, 100]")
        return v

    @model_validator(mode="after")
    def _price_change_range(self) -> "DetectionConfig":
        if self.max_price_change_pct is not None and (
            self.max_price_change_pct < self.min_price_change_pct
        ):
            raise ValueError("max_price_change_pct must not be below min_price_change_pct")
        return self

    def to_thresholds(self) -> DetectionThresholds:
        return DetectionThresholds(
            min_volume_usd=self.min_volume_usd,
            min_dominance_pct=self.min_dominance_pct,
            min_price_change_pct=self.min_price_change_pct,
            max_price_change_pct=self.max_price_change_pct,
            min_event_count=self.min_event_count,
            min_duration_sec=self.min_duration_sec,
        )


class SuppressionConfig(BaseModel):
    cooldown_minutes: float = 20
    dedup_window_seconds: float = 600
    escalation_factor: float = 1.5
    dominance_escalation_pct: float | None = None
    signature_bucket_usd: float = 500_000

    @field_validator("escalation_factor")
    @classmethod
    def _factor_at_least_one(cls, v: float) -> float:
        if v < 1:
            raise ValueError("escalation_factor must be >= 1")
        return v

    @field_validator("signature_bucket_usd")
    @classmethod
    def _positive_bucket(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("signature_bucket_usd must be positive")
        return v

    def to_settings(self) -> SuppressionSettings:
        return SuppressionSettings(
            cooldown_seconds=self.cooldown_minutes * 60,
            dedup_window_seconds=self.dedup_window_seconds,
            escalation_factor=self.escalation_factor,
            dominance_escalation_pct=self.dominance_escalation_pct,
            signature_bucket_usd=self.signature_bucket_usd,
        )


class PipelineConfig(BaseModel):
    mode: Literal["per_event", "sweep"] = "per_event"
    sweep_interval_seconds: float = 15
    gc_interval_seconds: float = 60


class TrendConfig(BaseModel):
    context_windows: dict[str, int] = {"2h": 7200, "5m": 300}
    imbalance_threshold: float = 0.15


class EligibilityConfig(BaseModel):
    enabled: bool = True
    symbols: list[str] = []  # 非空时作为静态白名单，跳过市值筛选
    min_market_cap: float = 20_000_000
    max_market_cap: float = 150_000_000
    min_oi_mc_ratio: float = 0.25
    max_oi_mc_ratio: float = 10
    min_volume_24h: float = 1_000_000
    refresh_hours: float = 2
    coingecko_api: str = "https://api.coingecko.com/api/v3"
    coingecko_rate_limit_seconds: float = 1.5


class MarketDataConfig(BaseModel):
    enabled: bool = True
    cache_seconds: float = 60


class TelegramConfig(BaseModel):
    bot_token: str
    chat_id: str


class LoggingConfig(BaseModel):
    level: str = "INFO"


class Config(BaseModel):
    exchange: ExchangeConfig = ExchangeConfig()
    window: WindowConfig = WindowConfig()
    detection: DetectionConfig = DetectionConfig()
    suppression: SuppressionConfig = SuppressionConfig()
    pipeline: PipelineConfig = PipelineConfig()
    trend: TrendConfig = TrendConfig()
    eligibility: EligibilityConfig = EligibilityConfig()
    market_data: MarketDataConfig = MarketDataConfig()
    telegram: TelegramConfig
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Path) -> Config:
    with open(path) as f:
        data = yaml.safe_load(f)
    return Config(**data)
