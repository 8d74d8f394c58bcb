from collections import defaultdict
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Iterable, List
from dashboard.core.models import (
    CapitalPoint,
    HistorySummary,
    PairTrades,
    PortfolioHistory,
    ZERO,
    datetime_to_ms,
)

CENT = Decimal("0.01")


class HistoryMode(str, Enum):
    # Every trade adds its post-trade holding value to its day's bucket.
    TRADE_SUM = "trade_sum"
    # Only the last trade of the day per asset counts.
    END_OF_DAY = "end_of_day"


def _round(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class PortfolioHistoryBuilder:
    """
    Replays trades into a per-day capital curve.

    The running holding is a signed total that starts at zero on `start`;
    it is never floored, so selling coins bought before the range drives it
    negative.
    """

    def __init__(self, stablecoins: Iterable[str], mode: HistoryMode = HistoryMode.TRADE_SUM):
        self.stablecoins = {s.upper() for s in stablecoins}
        self.mode = HistoryMode(mode)

    def daily_values(self, pair_trades: PairTrades, start_ms: int, end_ms: int) -> Dict[str, List[Decimal]]:
        """Post-trade holding value of every trade, grouped by UTC day."""
        values = defaultdict(list)
        holding = ZERO

        trades = sorted(
            (t for t in pair_trades.trades if start_ms <= t.time <= end_ms),
            key=lambda t: t.time,
        )
        for trade in trades:
            holding += trade.qty if trade.is_buyer else -trade.qty
            price_usd = trade.price * pair_trades.quote_usd
            day = trade.timestamp.strftime("%Y-%m-%d")
            values[day].append(holding * price_usd)

        return values

    def build(self, assets: List[PairTrades], start: datetime, end: datetime) -> PortfolioHistory:
        start_ms = datetime_to_ms(start)
        end_ms = datetime_to_ms(end)
        daily_capital = defaultdict(lambda: ZERO)

        for pair_trades in assets:
            if pair_trades.asset.upper() in self.stablecoins:
                continue
            for day, values in self.daily_values(pair_trades, start_ms, end_ms).items():
                if self.mode == HistoryMode.END_OF_DAY:
                    daily_capital[day] += values[-1]
                else:
                    daily_capital[day] += sum(values, ZERO)

        points = [CapitalPoint(date=day, capital=_round(daily_capital[day])) for day in sorted(daily_capital)]
        return PortfolioHistory(points=points, summary=self.summarize(points, start, end))

    @staticmethod
    def summarize(points: List[CapitalPoint], start: datetime, end: datetime) -> HistorySummary:
        if not points:
            return HistorySummary(
                start_date=start.strftime("%Y-%m-%d"),
                end_date=end.strftime("%Y-%m-%d"),
                start_capital=ZERO,
                end_capital=ZERO,
                change=ZERO,
                change_percent=ZERO,
            )

        start_capital = points[0].capital
        end_capital = points[-1].capital
        change = end_capital - start_capital
        change_percent = change / start_capital * 100 if start_capital > 0 else ZERO

        return HistorySummary(
            start_date=points[0].date,
            end_date=points[-1].date,
            start_capital=start_capital,
            end_capital=end_capital,
            change=change,
            change_percent=change_percent,
        )
