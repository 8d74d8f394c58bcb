from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from dashboard.config.logging import logger
from dashboard.core.exceptions import ConfigurationError, DataSourceError, FuturesUnavailableError
from dashboard.core.models import (
    CostBasisResult,
    DcaBotRecord,
    FuturesReport,
    Holding,
    PairTrades,
    PnlReport,
    PortfolioHistory,
    SkipReason,
    SkippedAsset,
    SpotBalance,
    SpotBalanceReport,
    ZERO,
)
from dashboard.infrastructure.binance.mapper import BinanceMapper
from .cost_basis import CostBasisCalculator
from .dca import DcaDetector
from .history import HistoryMode, PortfolioHistoryBuilder
from .market import BTC_QUOTE, USD_QUOTE, PriceBook

FUTURES_DISABLED_MESSAGE = "Futures trading is not enabled on this Binance account"


def as_utc_datetime(day: Union[date, datetime]) -> datetime:
    if isinstance(day, datetime):
        return day if day.tzinfo else day.replace(tzinfo=timezone.utc)
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class PortfolioService:
    """
    負責協調 Binance Gateway 與各項計算 (PnL / DCA / History)。
    所有 I/O 都透過 gateway；每個資產獨立處理，單一資產失敗只會被略過。
    """

    def __init__(
        self,
        gateway,
        since: Union[date, datetime],
        stablecoins: Iterable[str] = ("USDT", "BUSD", "USDC", "USD", "FDUSD"),
        trades_limit: int = 1000,
        max_workers: int = 5,
        dca_max_assets: int = 10,
        coverage_tolerance: Decimal = Decimal("0.10"),
        history_mode: HistoryMode = HistoryMode.TRADE_SUM,
    ):
        self.gateway = gateway
        self.since = as_utc_datetime(since)
        self.stablecoins = [s.upper() for s in stablecoins]
        self.trades_limit = trades_limit
        self.max_workers = max(1, max_workers)
        self.dca_max_assets = dca_max_assets
        self.cost_basis = CostBasisCalculator(self.since, self.stablecoins, coverage_tolerance)
        self.dca = DcaDetector(self.since, self.stablecoins)
        self.history = PortfolioHistoryBuilder(self.stablecoins, history_mode)

    def _fan_out(self, func: Callable[[Any], Any], items: List[Any]) -> List[Any]:
        if not items:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as pool:
            return list(pool.map(func, items))

    def _price_book(self) -> PriceBook:
        return PriceBook(self.gateway.prices(), self.stablecoins)

    def _non_stable(self, holdings: List[Holding]) -> List[Holding]:
        return [h for h in holdings if h.asset.upper() not in self.stablecoins]

    def fetch_pair_trades(self, asset: str, book: PriceBook) -> Optional[PairTrades]:
        """<asset>USDT first, then <asset>BTC. None when neither pair works."""
        for quote in (USD_QUOTE, BTC_QUOTE):
            symbol = f"{asset}{quote}"
            try:
                trades = self.gateway.my_trades(symbol, limit=self.trades_limit)
            except DataSourceError as e:
                logger.debug(f"{symbol}: no trades available ({e})")
                continue
            return PairTrades(
                asset=asset,
                symbol=symbol,
                quote_asset=quote,
                quote_usd=book.quote_usd(quote),
                trades=list(trades),
            )
        logger.info(f"No tradable pair found for {asset}")
        return None

    # ---------- passthrough ----------

    def account(self) -> Dict[str, Any]:
        return self.gateway.account_info()

    def prices(self) -> Dict[str, str]:
        return self.gateway.prices()

    def ticker(self, symbol: str) -> Dict[str, Any]:
        return self.gateway.daily_stats(symbol.upper())

    # ---------- spot ----------

    def _change_24h(self, asset: str) -> Decimal:
        if asset.upper() in self.stablecoins:
            return ZERO
        for quote in (USD_QUOTE, BTC_QUOTE):
            try:
                stats = self.gateway.daily_stats(f"{asset}{quote}")
                return Decimal(str(stats.get("priceChangePercent") or 0))
            except DataSourceError:
                continue
        return ZERO

    def spot_balance(self) -> SpotBalanceReport:
        holdings = self.gateway.holdings()
        book = self._price_book()

        def value(holding: Holding) -> SpotBalance:
            return SpotBalance(
                asset=holding.asset,
                free=holding.free,
                locked=holding.locked,
                value_usd=holding.total * book.usd_price(holding.asset),
                change_24h=self._change_24h(holding.asset),
            )

        balances = sorted(self._fan_out(value, holdings), key=lambda b: b.value_usd, reverse=True)
        return SpotBalanceReport(balances=balances, total_value=sum((b.value_usd for b in balances), ZERO))

    def _asset_pnl(self, holding: Holding, book: PriceBook) -> Union[CostBasisResult, SkippedAsset]:
        try:
            if book.is_stable(holding.asset):
                return SkippedAsset(holding.asset, SkipReason.STABLECOIN)

            pair_trades = self.fetch_pair_trades(holding.asset, book)
            if pair_trades is None:
                return SkippedAsset(holding.asset, SkipReason.NO_PAIR)

            current_price = book.usd_price(holding.asset)
            in_scope = self.cost_basis.trades_in_scope(pair_trades.trades)
            reason = self.cost_basis.skip_reason(holding, in_scope, current_price)
            if reason is not None:
                return SkippedAsset(holding.asset, reason)

            result = self.cost_basis.calculate(holding, pair_trades, current_price)
            if result is None:
                return SkippedAsset(holding.asset, SkipReason.LOW_COVERAGE)
            return result
        except Exception as e:
            logger.error(f"Error calculating PnL for {holding.asset}: {e}")
            return SkippedAsset(holding.asset, SkipReason.FETCH_FAILED)

    def spot_pnl(self) -> PnlReport:
        logger.info("Calculating spot PnL from trade history...")
        holdings = self.gateway.holdings()
        book = self._price_book()

        outcomes = self._fan_out(lambda h: self._asset_pnl(h, book), holdings)
        results = [o for o in outcomes if isinstance(o, CostBasisResult)]
        skipped = [o for o in outcomes if isinstance(o, SkippedAsset)]

        report = CostBasisCalculator.summarize(results, skipped)
        logger.info(f"Spot PnL: {report.assets_tracked} assets tracked, {len(skipped)} skipped")
        return report

    # ---------- futures ----------

    def futures_positions(self) -> FuturesReport:
        try:
            return BinanceMapper.to_futures_report(self.gateway.futures_account_info())
        except FuturesUnavailableError as e:
            logger.warning(f"Futures unavailable: {e}")
            return FuturesReport(
                positions=[],
                total_margin=ZERO,
                available_margin=ZERO,
                total_unrealized_pnl=ZERO,
                total_wallet_balance=ZERO,
                futures_enabled=False,
                message=FUTURES_DISABLED_MESSAGE,
            )

    # ---------- DCA ----------

    def _asset_dca(self, holding: Holding, book: PriceBook) -> Optional[DcaBotRecord]:
        try:
            pair_trades = self.fetch_pair_trades(holding.asset, book)
            if pair_trades is None:
                return None
            return self.dca.detect(pair_trades, book.usd_price(holding.asset))
        except Exception as e:
            logger.error(f"Error detecting DCA pattern for {holding.asset}: {e}")
            return None

    def dca_bots(self) -> List[DcaBotRecord]:
        logger.info("Detecting DCA patterns from trade history...")
        holdings = self._non_stable(self.gateway.holdings())[:self.dca_max_assets]
        book = self._price_book()
        records = self._fan_out(lambda h: self._asset_dca(h, book), holdings)
        return [r for r in records if r is not None]

    # ---------- history ----------

    def _asset_trades(self, holding: Holding, book: PriceBook) -> Optional[PairTrades]:
        try:
            return self.fetch_pair_trades(holding.asset, book)
        except Exception as e:
            logger.error(f"Error fetching trades for {holding.asset}: {e}")
            return None

    def portfolio_history(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> PortfolioHistory:
        start = as_utc_datetime(start) if start else self.since
        end = as_utc_datetime(end) if end else datetime.now(timezone.utc)
        logger.info(f"Building portfolio history from {start.date()} to {end.date()}...")

        holdings = self._non_stable(self.gateway.holdings())
        book = self._price_book()
        pairs = self._fan_out(lambda h: self._asset_trades(h, book), holdings)
        return self.history.build([p for p in pairs if p is not None], start, end)


def build_service(settings, gateway=None) -> PortfolioService:
    if settings is None:
        raise ConfigurationError("Settings could not be loaded")
    if gateway is None:
        from dashboard.infrastructure.binance.client import BinanceClient
        gateway = BinanceClient.from_settings(settings)
    return PortfolioService(
        gateway=gateway,
        since=settings.CUTOFF_DATE,
        stablecoins=settings.STABLECOINS,
        trades_limit=settings.TRADES_LIMIT,
        max_workers=settings.MAX_WORKERS,
        dca_max_assets=settings.DCA_MAX_ASSETS,
        coverage_tolerance=Decimal(str(settings.COVERAGE_TOLERANCE)),
        history_mode=HistoryMode(settings.HISTORY_MODE),
    )
