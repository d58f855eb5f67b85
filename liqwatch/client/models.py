"""REST API 数据模型"""

from dataclasses import dataclass


@dataclass
class ContractTicker:
    """合约行情"""

    symbol: str
    last_price: float
    volume_24h: float  # 张数
    amount_24h: float  # USDT 成交额
    hold_vol: float  # 持仓张数
    funding_rate: float


@dataclass
class ContractDetail:
    """合约信息"""

    symbol: str
    contract_size: float
    base_coin: str


@dataclass
class CoinSearchResult:
    """CoinGecko 搜索结果"""

    id: str
    symbol: str
    name: str


@dataclass
class CoinMarket:
    """CoinGecko 市值数据"""

    id: str
    symbol: str
    market_cap: float
    current_price: float
