# liqwatch/alert/suppressor.py
import logging
from dataclasses import dataclass, field

from liqwatch.aggregator.window_stats import WindowStats
from liqwatch.alert.detector import signature
from liqwatch.storage.models import Side

logger = logging.getLogger(__name__)


@dataclass
class CooldownRecord:
    last_alert_at: float
    last_alert_volume: float
    last_alert_dominance: float
    last_alert_side: Side


@dataclass
class SuppressionStore:
    cooldowns: dict[str, CooldownRecord] = field(default_factory=dict)
    signatures: dict[str, float] = field(default_factory=dict)  # signature -> last seen


@dataclass(frozen=True)
class SuppressionSettings:
    cooldown_seconds: float = 1200
    dedup_window_seconds: float = 600
    escalation_factor: float = 1.5
    dominance_escalation_pct: float | None = None
    signature_bucket_usd: float = 500_000


@dataclass(frozen=True)
class SuppressionDecision:
    allowed: bool
    reason: str


class EpisodeSuppressor:
    """冷却 + 签名去重，两道闸门都通过才允许推送"""

    def __init__(self, settings: SuppressionSettings, store: SuppressionStore | None = None):
        self.settings = settings
        self.store = store if store is not None else SuppressionStore()

    def signature_of(self, stats: WindowStats) -> str:
        return signature(stats, self.settings.signature_bucket_usd)

    def check_cooldown(self, stats: WindowStats, now: float) -> SuppressionDecision:
        record = self.store.cooldowns.get(stats.instrument)
        if record is None:
            return SuppressionDecision(True, "first alert")

        if now - record.last_alert_at >= self.settings.cooldown_seconds:
            return SuppressionDecision(True, "cooldown expired")

        if stats.dominant_side != record.last_alert_side:
            return SuppressionDecision(True, "side flipped")

        if stats.total_volume >= record.last_alert_volume * self.settings.escalation_factor:
            return SuppressionDecision(True, "volume escalated")

        dominance_step = self.settings.dominance_escalation_pct
        if (
            dominance_step is not None
            and stats.dominance_pct - record.last_alert_dominance >= dominance_step
        ):
            return SuppressionDecision(True, "dominance escalated")

        return SuppressionDecision(False, "in cooldown")

    def check_signature(self, stats: WindowStats, now: float) -> SuppressionDecision:
        seen_at = self.store.signatures.get(self.signature_of(stats))
        if seen_at is not None and now - seen_at < self.settings.dedup_window_seconds:
            return SuppressionDecision(False, "duplicate signature")
        return SuppressionDecision(True, "new signature")

    def gate(self, stats: WindowStats, now: float) -> SuppressionDecision:
        cooldown = self.check_cooldown(stats, now)
        if not cooldown.allowed:
            return cooldown
        dedup = self.check_signature(stats, now)
        if not dedup.allowed:
            return dedup
        return cooldown

    def record(self, stats: WindowStats, now: float) -> None:
        self.store.cooldowns[stats.instrument] = CooldownRecord(
            last_alert_at=now,
            last_alert_volume=stats.total_volume,
            last_alert_dominance=stats.dominance_pct,
            last_alert_side=stats.dominant_side,
        )
        self.store.signatures[self.signature_of(stats)] = now

    def prune(self, now: float) -> int:
        """清理超过 2 倍抑制时长的记录，返回删除数量"""
        cooldown_ttl = self.settings.cooldown_seconds * 2
        dedup_ttl = self.settings.dedup_window_seconds * 2

        stale_cooldowns = [
            k for k, r in self.store.cooldowns.items() if now - r.last_alert_at >= cooldown_ttl
        ]
        for key in stale_cooldowns:
            del self.store.cooldowns[key]

        stale_signatures = [k for k, t in self.store.signatures.items() if now - t >= dedup_ttl]
        for key in stale_signatures:
            del self.store.signatures[key]

        removed = len(stale_cooldowns) + len(stale_signatures)
        if removed:
            logger.debug(f"Pruned {removed} suppression records")
        return removed
