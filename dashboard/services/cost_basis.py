from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional
from dashboard.config.logging import logger
from dashboard.core.models import (
    CostBasisResult,
    Holding,
    PairTrades,
    PnlReport,
    SkipReason,
    SkippedAsset,
    Trade,
    ZERO,
    datetime_to_ms,
    ms_to_datetime,
)

HUNDRED = Decimal("100")


class CostBasisCalculator:
    """
    Estimates the average acquisition price of the balance held today.

    The balance is attributed to the most recent buys first (reverse replay).
    Sells seen along the way mean older buys had to cover that sale as well.
    If more than `coverage_tolerance` of the balance cannot be attributed to
    trades after `since` (transfers, older history), no result is produced.
    """

    def __init__(self, since: datetime, stablecoins: Iterable[str], coverage_tolerance: Decimal = Decimal("0.10")):
        self.since_ms = datetime_to_ms(since)
        self.stablecoins = {s.upper() for s in stablecoins}
        self.coverage_tolerance = Decimal(str(coverage_tolerance))

    def trades_in_scope(self, trades: List[Trade]) -> List[Trade]:
        return [t for t in trades if t.time >= self.since_ms]

    def skip_reason(self, holding: Holding, trades: List[Trade], current_price: Decimal) -> Optional[SkipReason]:
        """Gates checked before any replay happens."""
        if holding.asset.upper() in self.stablecoins:
            return SkipReason.STABLECOIN
        if not self.trades_in_scope(trades):
            return SkipReason.NO_TRADES
        if current_price <= 0:
            return SkipReason.NO_PRICE
        if holding.total <= 0:
            return SkipReason.NO_TRADES
        return None

    def reverse_replay(self, quantity: Decimal, trades: List[Trade]):
        """
        Returns (total_cost, remaining) in quote currency.
        """
        remaining = quantity
        total_cost = ZERO

        for trade in sorted(trades, key=lambda t: t.time, reverse=True):
            if remaining <= 0:
                break
            if trade.is_buyer:
                if trade.qty <= remaining:
                    total_cost += trade.quote_qty
                    remaining -= trade.qty
                else:
                    total_cost += trade.quote_qty * (remaining / trade.qty)
                    remaining = ZERO
            else:
                remaining += trade.qty

        return total_cost, remaining

    def calculate(self, holding: Holding, pair_trades: PairTrades, current_price: Decimal) -> Optional[CostBasisResult]:
        trades = self.trades_in_scope(pair_trades.trades)
        reason = self.skip_reason(holding, trades, current_price)
        if reason is not None:
            logger.debug(f"{holding.asset}: skipped ({reason.value})")
            return None

        quantity = holding.total
        total_cost, remaining = self.reverse_replay(quantity, trades)

        if remaining > quantity * self.coverage_tolerance:
            logger.warning(
                f"{holding.asset}: could not trace {remaining:.4f} units "
                f"({remaining / quantity * HUNDRED:.1f}% of balance), skipping"
            )
            return None

        invested = total_cost * pair_trades.quote_usd
        avg_buy_price = invested / quantity
        if avg_buy_price <= 0:
            return None

        current_value = current_price * quantity
        pnl = current_value - invested
        pnl_percent = pnl / invested * HUNDRED if invested else ZERO
        times = [t.time for t in trades]

        logger.info(
            f"{holding.asset}: invested ${invested:.2f}, value ${current_value:.2f}, "
            f"PnL ${pnl:.2f} ({len(trades)} trades)"
        )

        return CostBasisResult(
            asset=holding.asset,
            symbol=pair_trades.symbol,
            quantity=quantity,
            avg_buy_price=avg_buy_price,
            current_price=current_price,
            invested=invested,
            current_value=current_value,
            pnl=pnl,
            pnl_percent=pnl_percent,
            trades_used=len(trades),
            first_trade_time=ms_to_datetime(min(times)),
            last_trade_time=ms_to_datetime(max(times)),
        )

    @staticmethod
    def summarize(results: List[CostBasisResult], skipped: List[SkippedAsset]) -> PnlReport:
        """Portfolio totals over the assets that passed every gate."""
        total_invested = sum((r.invested for r in results), ZERO)
        total_current_value = sum((r.current_value for r in results), ZERO)
        total_pnl = total_current_value - total_invested
        total_pnl_percent = total_pnl / total_invested * HUNDRED if total_invested > 0 else ZERO

        return PnlReport(
            assets=list(results),
            skipped=list(skipped),
            total_invested=total_invested,
            total_current_value=total_current_value,
            total_pnl=total_pnl,
            total_pnl_percent=total_pnl_percent,
        )
