import pandas as pd
from typing import Optional

from dashboard.config.logging import logger
from dashboard.core.models import PnlReport, PortfolioHistory


class ReporterService:
    """
    Exports PnL and capital-curve data to CSV or Excel files.
    """

    FORMATS = ("csv", "excel")

    @staticmethod
    def pnl_frame(report: PnlReport) -> pd.DataFrame:
        records = [
            {
                "Asset": r.asset,
                "Symbol": r.symbol,
                "Quantity": float(r.quantity),
                "AvgBuyPrice": float(r.avg_buy_price),
                "CurrentPrice": float(r.current_price),
                "Invested": float(r.invested),
                "CurrentValue": float(r.current_value),
                "PnL": float(r.pnl),
                "PnLPercent": float(r.pnl_percent),
                "Trades": r.trades_used,
            }
            for r in report.assets
        ]
        df = pd.DataFrame(records, columns=[
            "Asset", "Symbol", "Quantity", "AvgBuyPrice", "CurrentPrice",
            "Invested", "CurrentValue", "PnL", "PnLPercent", "Trades",
        ])
        return df.sort_values("CurrentValue", ascending=False).reset_index(drop=True)

    @staticmethod
    def history_frame(history: PortfolioHistory) -> pd.DataFrame:
        df = pd.DataFrame(
            [{"Date": p.date, "Capital": float(p.capital)} for p in history.points],
            columns=["Date", "Capital"],
        )
        df["Date"] = pd.to_datetime(df["Date"])
        # Day-over-day change of the capital curve
        df["Change"] = df["Capital"].diff().fillna(0.0)
        return df.set_index("Date")

    def export(self, frame: pd.DataFrame, name: str, output_format: str = "csv", output_path: Optional[str] = None) -> str:
        """Writes the frame and returns the file path."""
        if output_format not in self.FORMATS:
            raise ValueError(f"Unsupported report format: {output_format}")

        if output_format == "csv":
            file_path = output_path or f"{name}.csv"
            frame.to_csv(file_path)
        else:
            file_path = output_path or f"{name}.xlsx"
            frame.to_excel(file_path, sheet_name=name[:31])

        logger.info(f"Successfully saved report to {file_path}")
        return file_path

    def export_pnl(self, report: PnlReport, output_format: str = "csv", output_path: Optional[str] = None) -> str:
        if not report.assets:
            logger.warning("No tracked assets in PnL report. Exporting an empty table.")
        return self.export(self.pnl_frame(report), "spot_pnl", output_format, output_path)

    def export_history(self, history: PortfolioHistory, output_format: str = "csv", output_path: Optional[str] = None) -> str:
        return self.export(self.history_frame(history), "portfolio_history", output_format, output_path)
