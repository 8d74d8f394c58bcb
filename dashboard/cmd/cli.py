import argparse
import sys
from datetime import date, datetime, time, timezone
from dashboard.config.settings import settings
from dashboard.config.logging import logger
from dashboard.core.exceptions import AppError
from dashboard.services.portfolio import build_service
from dashboard.services.report_formatter import ReportFormatter
from dashboard.services.reporter import ReporterService


def _day(value: str, end_of_day: bool = False) -> datetime:
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return datetime.combine(parsed, time.max if end_of_day else time.min, tzinfo=timezone.utc)


def _end_day(value: str) -> datetime:
    return _day(value, end_of_day=True)


def run_server(host: str, port: int):
    import uvicorn

    logger.info(f"Serving on http://{host}:{port} (health check: /api/health)")
    uvicorn.run("dashboard.api.main:app", host=host, port=port, log_level=(settings.LOG_LEVEL if settings else "INFO").lower())


def main(argv=None):
    parser = argparse.ArgumentParser(description="Binance Dashboard CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Command: serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP backend")
    serve_parser.add_argument("--host", default=settings.HOST if settings else "0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=settings.PORT if settings else 3001)

    # Command: pnl
    subparsers.add_parser("pnl", help="Print spot PnL reconstructed from trade history")

    # Command: history
    history_parser = subparsers.add_parser("history", help="Print the daily capital curve")
    history_parser.add_argument("--start", type=_day, help="YYYY-MM-DD (default: cutoff date)")
    history_parser.add_argument("--end", type=_end_day, help="YYYY-MM-DD (default: now)")

    # Command: report
    report_parser = subparsers.add_parser("report", help="Export PnL or history to a file")
    report_parser.add_argument("kind", choices=["pnl", "history"])
    report_parser.add_argument("--format", dest="output_format", choices=ReporterService.FORMATS, default="csv")
    report_parser.add_argument("--output", help="Output file path")
    report_parser.add_argument("--start", type=_day)
    report_parser.add_argument("--end", type=_end_day)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "serve":
        run_server(args.host, args.port)
        return

    try:
        service = build_service(settings)

        if args.command == "pnl":
            print(ReportFormatter.format_pnl_report(service.spot_pnl()))

        elif args.command == "history":
            print(ReportFormatter.format_history(service.portfolio_history(args.start, args.end)))

        elif args.command == "report":
            reporter = ReporterService()
            if args.kind == "pnl":
                reporter.export_pnl(service.spot_pnl(), args.output_format, args.output)
            else:
                history = service.portfolio_history(args.start, args.end)
                reporter.export_history(history, args.output_format, args.output)

    except AppError as e:
        logger.error(f"An error occurred: {e}")
        sys.exit(1)
    except Exception as e:
        logger.critical(f"An unexpected error occurred: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
