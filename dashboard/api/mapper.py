from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from dashboard.core.models import (
    CostBasisResult,
    DcaBotRecord,
    FuturesPosition,
    FuturesReport,
    PnlReport,
    PortfolioHistory,
    SpotBalanceReport,
)


def _num(value: Decimal) -> float:
    return float(value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


class DashboardMapper:
    """
    將 Domain Models 轉換為前端 (SPA) 使用的 camelCase JSON。
    """

    @staticmethod
    def spot_balance(report: SpotBalanceReport) -> Dict[str, Any]:
        return {
            "balances": [
                {
                    "asset": b.asset,
                    "free": _num(b.free),
                    "locked": _num(b.locked),
                    "total": _num(b.total),
                    "valueUSD": _num(b.value_usd),
                    "change24h": _num(b.change_24h),
                }
                for b in report.balances
            ],
            "totalValue": _num(report.total_value),
        }

    @staticmethod
    def cost_basis(result: CostBasisResult) -> Dict[str, Any]:
        return {
            "asset": result.asset,
            "symbol": result.symbol,
            "quantity": _num(result.quantity),
            "avgBuyPrice": _num(result.avg_buy_price),
            "currentPrice": _num(result.current_price),
            "invested": _num(result.invested),
            "currentValue": _num(result.current_value),
            "pnl": _num(result.pnl),
            "pnlPercent": _num(result.pnl_percent),
            "tradesCount": result.trades_used,
            "firstTradeDate": _iso(result.first_trade_time),
            "lastTradeDate": _iso(result.last_trade_time),
        }

    @staticmethod
    def pnl_report(report: PnlReport) -> Dict[str, Any]:
        return {
            "assets": [DashboardMapper.cost_basis(r) for r in report.assets],
            "skipped": [{"asset": s.asset, "reason": s.reason.value} for s in report.skipped],
            "summary": {
                "totalInvested": _num(report.total_invested),
                "totalCurrentValue": _num(report.total_current_value),
                "totalPnL": _num(report.total_pnl),
                "totalPnLPercent": _num(report.total_pnl_percent),
                "assetsTracked": report.assets_tracked,
            },
        }

    @staticmethod
    def futures_position(position: FuturesPosition) -> Dict[str, Any]:
        return {
            "symbol": position.symbol,
            "side": position.side,
            "size": _num(position.size),
            "entryPrice": _num(position.entry_price),
            "markPrice": _num(position.mark_price),
            "unrealizedPnL": _num(position.unrealized_pnl),
            "leverage": position.leverage,
            "margin": _num(position.margin),
            "notional": _num(position.notional),
            "liquidationPrice": _num(position.liquidation_price),
        }

    @staticmethod
    def futures_report(report: FuturesReport) -> Dict[str, Any]:
        data = {
            "positions": [DashboardMapper.futures_position(p) for p in report.positions],
            "totalMargin": _num(report.total_margin),
            "availableMargin": _num(report.available_margin),
            "totalUnrealizedPnL": _num(report.total_unrealized_pnl),
            "totalWalletBalance": _num(report.total_wallet_balance),
            "futuresEnabled": report.futures_enabled,
        }
        if report.message:
            data["message"] = report.message
        return data

    @staticmethod
    def dca_bot(record: DcaBotRecord) -> Dict[str, Any]:
        return {
            "id": record.bot_id,
            "name": f"DCA {record.asset}",
            "pair": record.pair,
            "status": "active",
            "type": "dca",
            "detected": record.detected,
            "frequency": record.frequency.value,
            "investment": _num(record.total_invested),
            "totalBought": _num(record.total_bought),
            "profit": _num(record.unrealized_profit),
            "profitPercent": _num(record.profit_percent),
            "trades": record.buy_count,
            "avgBuyPrice": _num(record.avg_buy_price),
            "currentPrice": _num(record.current_price),
            "lastBuy": _iso(record.last_buy_time),
        }

    @staticmethod
    def dca_bots(records: List[DcaBotRecord]) -> List[Dict[str, Any]]:
        return [DashboardMapper.dca_bot(r) for r in records]

    @staticmethod
    def portfolio_history(history: PortfolioHistory) -> Dict[str, Any]:
        summary = history.summary
        return {
            "history": [{"date": p.date, "capital": _num(p.capital)} for p in history.points],
            "summary": {
                "startDate": summary.start_date,
                "endDate": summary.end_date,
                "startCapital": _num(summary.start_capital),
                "endCapital": _num(summary.end_capital),
                "change": _num(summary.change),
                "changePercent": _num(summary.change_percent),
            },
        }
