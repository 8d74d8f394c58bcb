from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional
from dashboard.core.models import (
    DcaBotRecord,
    DcaFrequency,
    PairTrades,
    Trade,
    ZERO,
    datetime_to_ms,
    ms_to_datetime,
)

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

MIN_TRADES = 5
MIN_BUYS = 3
MAX_INTERVALS = 9
MAX_DEVIATION_RATIO = 0.5


def buy_intervals(buys: List[Trade]) -> List[int]:
    """Gaps between consecutive buys, oldest first, capped at MAX_INTERVALS."""
    return [buys[i].time - buys[i - 1].time for i in range(1, min(len(buys), MAX_INTERVALS + 1))]


def interval_stats(intervals: List[int]):
    avg_interval = sum(intervals) / len(intervals)
    max_deviation = max(abs(i - avg_interval) for i in intervals)
    return avg_interval, max_deviation


def is_regular(avg_interval: float, max_deviation: float) -> bool:
    return max_deviation < avg_interval * MAX_DEVIATION_RATIO and avg_interval > HOUR_MS


def frequency_for(avg_interval: float) -> DcaFrequency:
    days = avg_interval / DAY_MS
    if days > 25:
        return DcaFrequency.MONTHLY
    if days > 6:
        return DcaFrequency.WEEKLY
    return DcaFrequency.DAILY


class DcaDetector:
    """
    Flags trade histories that look like a recurring-buy schedule.

    This is a heuristic read of trade timing: evenly spaced buys more than an
    hour apart count as DCA. Manual buyers with a steady habit will be
    reported too, and a schedule interrupted by manual buys will be missed.
    """

    def __init__(self, since: datetime, stablecoins: Iterable[str]):
        self.since_ms = datetime_to_ms(since)
        self.stablecoins = {s.upper() for s in stablecoins}

    def detect(self, pair_trades: PairTrades, current_price: Decimal) -> Optional[DcaBotRecord]:
        if pair_trades.asset.upper() in self.stablecoins:
            return None

        trades = sorted(
            (t for t in pair_trades.trades if t.time >= self.since_ms),
            key=lambda t: t.time,
        )
        if len(trades) < MIN_TRADES:
            return None

        buys = [t for t in trades if t.is_buyer]
        if len(buys) < MIN_BUYS:
            return None

        avg_interval, max_deviation = interval_stats(buy_intervals(buys))
        if not is_regular(avg_interval, max_deviation):
            return None

        # Accumulation view: sells are not netted out
        total_invested = sum((t.quote_qty for t in buys), ZERO) * pair_trades.quote_usd
        total_bought = sum((t.qty for t in buys), ZERO)
        avg_buy_price = total_invested / total_bought if total_bought else ZERO
        current_value = total_bought * current_price
        profit = current_value - total_invested
        profit_percent = profit / total_invested * 100 if total_invested else ZERO

        return DcaBotRecord(
            asset=pair_trades.asset,
            pair=pair_trades.symbol,
            frequency=frequency_for(avg_interval),
            total_invested=total_invested,
            total_bought=total_bought,
            avg_buy_price=avg_buy_price,
            current_price=current_price,
            unrealized_profit=profit,
            profit_percent=profit_percent,
            buy_count=len(buys),
            last_buy_time=ms_to_datetime(buys[-1].time),
            avg_interval_ms=avg_interval,
            max_deviation_ms=max_deviation,
        )
