from dashboard.core.models import PnlReport, PortfolioHistory


def _signed(value, suffix: str = "") -> str:
    sign = '+' if value > 0 else ''
    return f"{sign}{value:,.2f}{suffix}"


class ReportFormatter:
    @staticmethod
    def format_pnl_report(report: PnlReport) -> str:
        """
        Formats the spot PnL report for the terminal.
        """
        lines = ["📊 Spot PnL"]
        lines.append(f"Assets tracked: {report.assets_tracked}")
        lines.append("")

        if report.assets:
            for r in sorted(report.assets, key=lambda r: r.current_value, reverse=True):
                lines.append(
                    f"{r.asset:<8} qty {r.quantity:,.6f} @ avg {r.avg_buy_price:,.4f} "
                    f"→ {r.current_price:,.4f} | PnL {_signed(r.pnl)} ({_signed(r.pnl_percent, '%')})"
                )
            lines.append("")

        lines.append(f"Invested: {report.total_invested:,.2f}")
        lines.append(f"Current value: {report.total_current_value:,.2f}")
        lines.append(f"Total PnL: {_signed(report.total_pnl)} ({_signed(report.total_pnl_percent, '%')})")

        if report.skipped:
            lines.append("")
            lines.append("⚠️ Excluded")
            for s in report.skipped:
                lines.append(f"{s.asset}: {s.reason.value}")

        return "\n".join(lines)

    @staticmethod
    def format_history(history: PortfolioHistory) -> str:
        summary = history.summary
        lines = [f"📈 Portfolio history ({summary.start_date} → {summary.end_date})"]

        if not history.points:
            lines.append("No trades in range 💤")
            return "\n".join(lines)

        for p in history.points:
            lines.append(f"{p.date}  {p.capital:>14,.2f}")
        lines.append("")
        lines.append(f"Start: {summary.start_capital:,.2f}  End: {summary.end_capital:,.2f}")
        lines.append(f"Change: {_signed(summary.change)} ({_signed(summary.change_percent, '%')})")
        return "\n".join(lines)
