from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

ZERO = Decimal("0")


def ms_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def datetime_to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


@dataclass(frozen=True)
class Trade:
    """
    核心成交模型 (Domain Model)。
    代表一筆現貨成交紀錄，由 Gateway 提供，順序不保證。
    """
    symbol: str            # 交易對 (e.g., "BTCUSDT")
    time: int              # 成交時間 (epoch ms, UTC)
    qty: Decimal           # 基礎資產數量
    price: Decimal         # 以報價資產計價的成交價
    quote_qty: Decimal     # 報價資產金額
    is_buyer: bool         # True = 買入

    trade_id: Optional[int] = None
    commission: Decimal = ZERO
    commission_asset: Optional[str] = None

    @property
    def timestamp(self) -> datetime:
        return ms_to_datetime(self.time)


@dataclass(frozen=True)
class Holding:
    """單一資產目前的餘額快照"""
    asset: str
    free: Decimal
    locked: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.free + self.locked


@dataclass(frozen=True)
class PairTrades:
    """
    一個資產在實際解析到的交易對上的成交紀錄。
    quote_usd 是一單位報價資產的 USD 價值 (USDT = 1, BTC = BTC/USD)。
    """
    asset: str
    symbol: str
    quote_asset: str
    quote_usd: Decimal
    trades: List[Trade] = field(default_factory=list)


class SkipReason(str, Enum):
    STABLECOIN = "stablecoin"
    NO_PAIR = "no_pair"
    NO_TRADES = "no_trades"
    LOW_COVERAGE = "low_coverage"
    NO_PRICE = "no_price"
    FETCH_FAILED = "fetch_failed"


@dataclass(frozen=True)
class SkippedAsset:
    asset: str
    reason: SkipReason


@dataclass(frozen=True)
class CostBasisResult:
    asset: str
    symbol: str
    quantity: Decimal
    avg_buy_price: Decimal
    current_price: Decimal
    invested: Decimal
    current_value: Decimal
    pnl: Decimal
    pnl_percent: Decimal
    trades_used: int
    first_trade_time: Optional[datetime]
    last_trade_time: Optional[datetime]


@dataclass(frozen=True)
class PnlReport:
    """只彙總通過所有檢查的資產；被排除的資產列在 skipped"""
    assets: List[CostBasisResult]
    skipped: List[SkippedAsset]
    total_invested: Decimal
    total_current_value: Decimal
    total_pnl: Decimal
    total_pnl_percent: Decimal

    @property
    def assets_tracked(self) -> int:
        return len(self.assets)


class DcaFrequency(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


@dataclass(frozen=True)
class DcaBotRecord:
    """
    由成交時間規律推測出來的定投紀錄。
    不是交易所的真實 Bot 資料，detected 永遠為 True。
    """
    asset: str
    pair: str
    frequency: DcaFrequency
    total_invested: Decimal
    total_bought: Decimal
    avg_buy_price: Decimal
    current_price: Decimal
    unrealized_profit: Decimal
    profit_percent: Decimal
    buy_count: int
    last_buy_time: datetime
    avg_interval_ms: float
    max_deviation_ms: float
    detected: bool = True

    @property
    def bot_id(self) -> str:
        return f"dca_{self.asset}"


@dataclass(frozen=True)
class CapitalPoint:
    date: str              # UTC day, YYYY-MM-DD
    capital: Decimal


@dataclass(frozen=True)
class HistorySummary:
    start_date: str
    end_date: str
    start_capital: Decimal
    end_capital: Decimal
    change: Decimal
    change_percent: Decimal


@dataclass(frozen=True)
class PortfolioHistory:
    points: List[CapitalPoint]
    summary: HistorySummary


@dataclass(frozen=True)
class SpotBalance:
    asset: str
    free: Decimal
    locked: Decimal
    value_usd: Decimal
    change_24h: Decimal

    @property
    def total(self) -> Decimal:
        return self.free + self.locked


@dataclass(frozen=True)
class SpotBalanceReport:
    balances: List[SpotBalance]
    total_value: Decimal


@dataclass(frozen=True)
class FuturesPosition:
    symbol: str
    side: str              # LONG / SHORT
    size: Decimal
    entry_price: Decimal
    mark_price: Decimal
    unrealized_pnl: Decimal
    leverage: int
    margin: Decimal
    notional: Decimal
    liquidation_price: Decimal


@dataclass(frozen=True)
class FuturesReport:
    positions: List[FuturesPosition]
    total_margin: Decimal
    available_margin: Decimal
    total_unrealized_pnl: Decimal
    total_wallet_balance: Decimal
    futures_enabled: bool = True
    message: Optional[str] = None
