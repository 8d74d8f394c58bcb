from decimal import Decimal
from typing import Any, Dict, List
from dashboard.core.models import FuturesPosition, FuturesReport, Holding, Trade, ZERO


def _dec(value: Any) -> Decimal:
    if value is None or value == "":
        return ZERO
    return Decimal(str(value))


class BinanceMapper:
    """
    負責將 Binance API 的原始 JSON 資料轉換為核心 Domain Models。
    """

    @staticmethod
    def to_trade(raw: Dict[str, Any]) -> Trade:
        """將 /api/v3/myTrades 的單筆紀錄轉為 Trade 物件"""
        qty = _dec(raw.get("qty"))
        price = _dec(raw.get("price"))
        quote_qty = raw.get("quoteQty")
        return Trade(
            symbol=raw.get("symbol", ""),
            time=int(raw.get("time", 0)),
            qty=qty,
            price=price,
            quote_qty=_dec(quote_qty) if quote_qty is not None else qty * price,
            is_buyer=bool(raw.get("isBuyer", False)),
            trade_id=raw.get("id"),
            commission=_dec(raw.get("commission")),
            commission_asset=raw.get("commissionAsset"),
        )

    @staticmethod
    def to_holdings(raw: Dict[str, Any]) -> List[Holding]:
        holdings = []
        for b in raw.get("balances", []):
            holding = Holding(asset=b.get("asset", ""), free=_dec(b.get("free")), locked=_dec(b.get("locked")))
            if holding.free > 0 or holding.locked > 0:
                holdings.append(holding)
        return holdings

    @staticmethod
    def to_price_map(raw: Any) -> Dict[str, str]:
        # /api/v3/ticker/price 回傳 [{"symbol": ..., "price": ...}]
        if isinstance(raw, dict):
            return {raw["symbol"]: raw["price"]}
        return {p["symbol"]: p["price"] for p in raw}

    @staticmethod
    def to_futures_position(raw: Dict[str, Any]) -> FuturesPosition:
        amount = _dec(raw.get("positionAmt"))
        notional = _dec(raw.get("notional"))
        mark_price = _dec(raw.get("markPrice"))
        # /fapi/v2/account 的 positions 不含 markPrice，用名目價值回推
        if mark_price == 0 and amount != 0:
            mark_price = abs(notional / amount)
        return FuturesPosition(
            symbol=raw.get("symbol", ""),
            side="LONG" if amount > 0 else "SHORT",
            size=abs(amount),
            entry_price=_dec(raw.get("entryPrice")),
            mark_price=mark_price,
            unrealized_pnl=_dec(raw.get("unrealizedProfit")),
            leverage=int(raw.get("leverage") or 0),
            margin=_dec(raw.get("initialMargin")),
            notional=notional,
            liquidation_price=_dec(raw.get("liquidationPrice")),
        )

    @staticmethod
    def to_futures_report(raw: Dict[str, Any]) -> FuturesReport:
        """只保留有持倉的部位"""
        positions = [
            BinanceMapper.to_futures_position(p)
            for p in raw.get("positions", [])
            if _dec(p.get("positionAmt")) != 0
        ]
        return FuturesReport(
            positions=positions,
            total_margin=_dec(raw.get("totalInitialMargin")),
            available_margin=_dec(raw.get("availableBalance")),
            total_unrealized_pnl=_dec(raw.get("totalUnrealizedProfit")),
            total_wallet_balance=_dec(raw.get("totalWalletBalance")),
        )
