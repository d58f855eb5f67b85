# liqwatch/storage/models.py
import math
from dataclasses import dataclass
from enum import Enum


class Side(Enum):
    BUY = "buy"
    SELL = "sell"

    @classmethod
    def parse(cls, value: str) -> "Side":
        return cls(value.strip().lower())


@dataclass(frozen=True)
class TradeEvent:
    instrument: str
    side: Side
    price: float
    quantity: float
    observed_at: float  # time.monotonic() 到达时间 (s)
    contract_multiplier: float = 1.0
    exchange_ts: int | None = None  # 交易所时间 (ms)，不参与窗口计算，以到达时间为准

    @property
    def notional_value(self) -> float:
        return self.price * self.quantity * self.contract_multiplier


def is_valid_event(event: TradeEvent) -> bool:
    """价格、数量、名义价值必须为有限正数"""
    if not isinstance(event.side, Side):
        return False
    for value in (event.price, event.quantity, event.contract_multiplier, event.observed_at):
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            return False
    if event.price <= 0 or event.quantity <= 0 or event.contract_multiplier <= 0:
        return False
    notional = event.notional_value
    return math.isfinite(notional) and notional > 0
