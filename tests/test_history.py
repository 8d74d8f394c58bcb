from datetime import datetime, timezone
from decimal import Decimal

from dashboard.core.models import CapitalPoint, PairTrades
from dashboard.services.history import HistoryMode, PortfolioHistoryBuilder
from fakes import BASE, at, make_trade

START = datetime(2025, 8, 1, tzinfo=timezone.utc)
END = datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc)
STABLES = ["USDT", "BUSD", "USDC"]


def pair(asset, trades, quote="USDT", quote_usd=1):
    return PairTrades(asset=asset, symbol=f"{asset}{quote}", quote_asset=quote, quote_usd=Decimal(str(quote_usd)), trades=trades)


def builder(mode=HistoryMode.TRADE_SUM):
    return PortfolioHistoryBuilder(STABLES, mode)


def test_single_buy_round_trip():
    history = builder().build([pair("X", [make_trade("XUSDT", at(0), 2, 100)])], START, END)

    assert history.points == [CapitalPoint(date="2025-09-01", capital=Decimal("200.00"))]
    assert history.summary.start_capital == Decimal("200.00")
    assert history.summary.end_capital == Decimal("200.00")
    assert history.summary.change == 0
    assert history.summary.change_percent == 0


def test_same_day_trades_are_summed():
    trades = [
        make_trade("XUSDT", at(hours=0), 1, 100),
        make_trade("XUSDT", at(hours=2), 1, 100),
    ]
    # holding 1 -> 100, holding 2 -> 200, both added to the day
    history = builder().build([pair("X", trades)], START, END)
    assert history.points[0].capital == Decimal("300.00")


def test_end_of_day_mode_keeps_last_trade():
    trades = [
        make_trade("XUSDT", at(hours=0), 1, 100),
        make_trade("XUSDT", at(hours=2), 1, 100),
    ]
    history = builder(HistoryMode.END_OF_DAY).build([pair("X", trades)], START, END)
    assert history.points[0].capital == Decimal("200.00")


def test_assets_are_summed_per_day():
    history = builder().build(
        [
            pair("X", [make_trade("XUSDT", at(0), 1, 100)]),
            pair("Y", [make_trade("YUSDT", at(0, hours=1), 3, 10)]),
        ],
        START,
        END,
    )
    assert history.points == [CapitalPoint(date="2025-09-01", capital=Decimal("130.00"))]


def test_holding_is_not_clamped_at_zero():
    # selling coins bought before the range drives the replayed holding negative
    history = builder().build([pair("X", [make_trade("XUSDT", at(0), 3, 10, is_buyer=False)])], START, END)
    assert history.points[0].capital == Decimal("-30.00")


def test_btc_pair_is_valued_through_btc_price():
    trades = [make_trade("XBTC", at(0), 10, "0.0001")]
    history = builder().build([pair("X", trades, quote="BTC", quote_usd=60000)], START, END)
    assert history.points[0].capital == Decimal("60.00")


def test_points_are_sorted_and_summarized():
    trades = [
        make_trade("XUSDT", at(2), 1, 120),
        make_trade("XUSDT", at(0), 1, 100),
        make_trade("XUSDT", at(1), 1, 110),
    ]
    history = builder().build([pair("X", trades)], START, END)

    assert [p.date for p in history.points] == ["2025-09-01", "2025-09-02", "2025-09-03"]
    assert [p.capital for p in history.points] == [Decimal("100.00"), Decimal("220.00"), Decimal("360.00")]
    assert history.summary.start_date == "2025-09-01"
    assert history.summary.end_date == "2025-09-03"
    assert history.summary.change == Decimal("260.00")
    assert history.summary.change_percent == Decimal("260")


def test_stablecoins_are_excluded():
    trades = [make_trade("USDTUSDT", at(i), 1000, 1) for i in range(5)]
    history = builder().build([pair("USDT", trades)], START, END)
    assert history.points == []


def test_range_filter_and_empty_summary():
    trades = [make_trade("XUSDT", at(0), 1, 100)]
    start = datetime(2025, 10, 1, tzinfo=timezone.utc)
    history = builder().build([pair("X", trades)], start, END)

    assert history.points == []
    assert history.summary.start_date == "2025-10-01"
    assert history.summary.end_date == "2025-12-31"
    assert history.summary.start_capital == 0
    assert history.summary.change_percent == 0


def test_zero_start_capital_has_no_percent_change():
    trades = [
        make_trade("XUSDT", at(0), 1, 100),
        make_trade("XUSDT", at(0, hours=1), 1, 100, is_buyer=False),
        make_trade("XUSDT", at(1), 1, 100),
    ]
    history = builder(HistoryMode.END_OF_DAY).build([pair("X", trades)], START, END)
    assert history.summary.start_capital == 0
    assert history.summary.end_capital == Decimal("100.00")
    assert history.summary.change_percent == 0


def test_build_is_deterministic():
    assets = [
        pair("X", [make_trade("XUSDT", at(i), "0.3", 100 + i) for i in range(10)]),
        pair("Y", [make_trade("YUSDT", at(i, hours=3), "1.7", 7 - i / 10, is_buyer=(i % 3 != 0)) for i in range(10)]),
    ]
    first = builder().build(assets, START, END)
    second = builder().build(list(reversed(assets)), START, END)
    assert first == second


def test_day_buckets_use_utc():
    late = int(datetime(2025, 9, 1, 23, 30, tzinfo=timezone.utc).timestamp() * 1000)
    history = builder().build([pair("X", [make_trade("XUSDT", late, 1, 5)])], START, END)
    assert history.points[0].date == BASE.strftime("%Y-%m-%d")
