from decimal import Decimal

import pandas as pd
import pytest

from dashboard.core.models import CapitalPoint, HistorySummary, PortfolioHistory
from dashboard.services.cost_basis import CostBasisCalculator
from dashboard.services.reporter import ReporterService
from fakes import sample_pnl_report


def sample_history():
    points = [
        CapitalPoint("2025-09-01", Decimal("100.00")),
        CapitalPoint("2025-09-02", Decimal("150.00")),
        CapitalPoint("2025-09-05", Decimal("120.00")),
    ]
    summary = HistorySummary("2025-09-01", "2025-09-05", Decimal("100.00"), Decimal("120.00"), Decimal("20.00"), Decimal("20"))
    return PortfolioHistory(points=points, summary=summary)


def test_pnl_frame():
    df = ReporterService.pnl_frame(sample_pnl_report())
    assert list(df["Asset"]) == ["ETH"]
    assert df.loc[0, "Invested"] == 4000.0
    assert df.loc[0, "PnL"] == 1000.0


def test_empty_pnl_frame_keeps_columns():
    df = ReporterService.pnl_frame(CostBasisCalculator.summarize([], []))
    assert df.empty
    assert "PnLPercent" in df.columns


def test_history_frame_has_daily_change():
    df = ReporterService.history_frame(sample_history())
    assert list(df["Change"]) == [0.0, 50.0, -30.0]
    assert df.index[0] == pd.Timestamp("2025-09-01")


def test_export_history_csv(tmp_path):
    path = ReporterService().export_history(sample_history(), "csv", str(tmp_path / "history.csv"))

    df = pd.read_csv(path)
    assert list(df.columns) == ["Date", "Capital", "Change"]
    assert list(df["Capital"]) == [100.0, 150.0, 120.0]


def test_export_pnl_csv_default_name(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = ReporterService().export_pnl(sample_pnl_report())
    assert path == "spot_pnl.csv"
    assert (tmp_path / "spot_pnl.csv").exists()


def test_export_rejects_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        ReporterService().export_history(sample_history(), "pdf", str(tmp_path / "x.pdf"))
