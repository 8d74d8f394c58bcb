from decimal import Decimal

import pytest

from dashboard.core.exceptions import DataSourceError, FuturesUnavailableError
from dashboard.core.models import SkipReason
from dashboard.services.history import HistoryMode
from dashboard.services.portfolio import PortfolioService
from fakes import CUTOFF, FakeGateway, at, make_trade

PRICES = {
    "BTCUSDT": "50000",
    "ETHUSDT": "2500",
    "XYZBTC": "0.0002",
    "SOLUSDT": "0",
}


def daily_buys(symbol, count=5, qty=1, price=100):
    return [make_trade(symbol, at(days=i), qty, price) for i in range(count)]


def service_for(gateway, **kwargs):
    return PortfolioService(gateway, since=CUTOFF, stablecoins=["USDT", "BUSD", "USDC"], max_workers=3, **kwargs)


def test_spot_pnl_mixed_portfolio():
    gateway = FakeGateway(
        balances={
            "USDT": ("1000", "0"),
            "ETH": ("2", "0"),
            "XYZ": ("10", "0"),
            "FOO": ("5", "0"),
            "BAR": ("1", "0"),
            "OLD": ("3", "0"),
        },
        prices=dict(PRICES, OLDUSDT="1", BARUSDT="1"),
        trades={
            "ETHUSDT": [make_trade("ETHUSDT", at(0), 2, 2000)],
            # XYZ only trades against BTC: cost 10 * 0.0001 BTC = 0.001 BTC = $50
            "XYZBTC": [make_trade("XYZBTC", at(0), 10, "0.0001")],
            "OLDUSDT": [make_trade("OLDUSDT", at(1), 1, 1)],
        },
        failing={"BARUSDT": RuntimeError("boom")},
    )
    report = service_for(gateway).spot_pnl()

    assert [r.asset for r in report.assets] == ["ETH", "XYZ"]
    eth, xyz = report.assets
    assert eth.invested == Decimal("4000")
    assert eth.current_value == Decimal("5000")
    assert xyz.symbol == "XYZBTC"
    assert xyz.invested == Decimal("50")
    assert xyz.current_price == Decimal("10")

    reasons = {s.asset: s.reason for s in report.skipped}
    assert reasons == {
        "USDT": SkipReason.STABLECOIN,
        "FOO": SkipReason.NO_PAIR,
        "BAR": SkipReason.FETCH_FAILED,
        "OLD": SkipReason.LOW_COVERAGE,
    }
    assert report.assets_tracked == 2
    assert report.total_invested == Decimal("4050")
    assert report.total_current_value == Decimal("5100")


def test_spot_pnl_skips_unpriced_and_untraded_assets():
    gateway = FakeGateway(
        balances={"SOL": ("4", "0"), "ETH": ("1", "0")},
        prices=PRICES,
        trades={
            "SOLUSDT": [make_trade("SOLUSDT", at(0), 4, 20)],
            "ETHUSDT": [make_trade("ETHUSDT", at(-90), 1, 1500)],
        },
    )
    report = service_for(gateway).spot_pnl()
    assert report.assets == []
    assert {s.asset: s.reason for s in report.skipped} == {
        "SOL": SkipReason.NO_PRICE,
        "ETH": SkipReason.NO_TRADES,
    }
    assert report.total_pnl_percent == 0


def test_spot_balance_values_and_change_fallback():
    gateway = FakeGateway(
        balances={"USDT": ("100", "0"), "ETH": ("1", "1"), "XYZ": ("1000", "0")},
        prices=PRICES,
        stats={"ETHUSDT": {"priceChangePercent": "3.5"}, "XYZBTC": {"priceChangePercent": "-1.25"}},
    )
    report = service_for(gateway).spot_balance()

    assert [b.asset for b in report.balances] == ["XYZ", "ETH", "USDT"]
    xyz, eth, usdt = report.balances
    assert eth.value_usd == Decimal("5000")
    assert eth.change_24h == Decimal("3.5")
    assert xyz.value_usd == Decimal("10000")
    assert xyz.change_24h == Decimal("-1.25")
    assert usdt.value_usd == Decimal("100")
    assert usdt.change_24h == 0
    assert report.total_value == Decimal("15100")


def test_dca_bots_detects_regular_buyers_only():
    gateway = FakeGateway(
        balances={"ETH": ("5", "0"), "XYZ": ("3", "0"), "USDT": ("10", "0")},
        prices=PRICES,
        trades={
            "ETHUSDT": daily_buys("ETHUSDT"),
            "XYZUSDT": [make_trade("XYZUSDT", at(days=d), 1, 1) for d in (0, 1, 15, 16, 40)],
            "USDTUSDT": daily_buys("USDTUSDT", count=10),
        },
    )
    bots = service_for(gateway).dca_bots()
    assert [b.asset for b in bots] == ["ETH"]
    assert bots[0].current_price == Decimal("2500")
    assert "my_trades:USDTUSDT" not in gateway.calls


def test_dca_bots_respects_asset_limit():
    balances = {f"A{i}": ("1", "0") for i in range(4)}
    trades = {f"A{i}USDT": daily_buys(f"A{i}USDT") for i in range(4)}
    gateway = FakeGateway(balances=balances, prices={}, trades=trades)

    bots = service_for(gateway, dca_max_assets=2).dca_bots()
    assert [b.asset for b in bots] == ["A0", "A1"]


def test_portfolio_history_replays_held_assets():
    gateway = FakeGateway(
        balances={"ETH": ("3", "0"), "USDT": ("50", "0"), "FOO": ("1", "0")},
        prices=PRICES,
        trades={"ETHUSDT": [make_trade("ETHUSDT", at(0), 2, 100)]},
    )
    history = service_for(gateway).portfolio_history()
    assert [(p.date, p.capital) for p in history.points] == [("2025-09-01", Decimal("200.00"))]


def test_portfolio_history_mode_is_configurable():
    trades = [make_trade("ETHUSDT", at(hours=0), 1, 100), make_trade("ETHUSDT", at(hours=1), 1, 100)]
    gateway = FakeGateway(balances={"ETH": ("2", "0")}, prices=PRICES, trades={"ETHUSDT": trades})

    summed = service_for(gateway).portfolio_history()
    last = service_for(gateway, history_mode=HistoryMode.END_OF_DAY).portfolio_history()
    assert summed.points[0].capital == Decimal("300.00")
    assert last.points[0].capital == Decimal("200.00")


def test_futures_positions_when_disabled():
    gateway = FakeGateway(futures=FuturesUnavailableError("not enabled", code=-4001))
    report = service_for(gateway).futures_positions()
    assert report.futures_enabled is False
    assert report.positions == []
    assert report.message


def test_futures_other_errors_propagate():
    gateway = FakeGateway(futures=DataSourceError("timeout"))
    with pytest.raises(DataSourceError, match="timeout"):
        service_for(gateway).futures_positions()


def test_ticker_is_uppercased():
    gateway = FakeGateway(stats={"BTCUSDT": {"priceChangePercent": "1"}})
    assert service_for(gateway).ticker("btcusdt") == {"priceChangePercent": "1"}
