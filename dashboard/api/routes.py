from datetime import date, datetime, time, timezone
from typing import Any, Callable, Optional, Tuple
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from dashboard.config.logging import logger
from dashboard.core.exceptions import BusinessLogicError
from dashboard.services.cache import CacheKey, Endpoint, ResponseCache
from dashboard.services.portfolio import PortfolioService
from .mapper import DashboardMapper

router = APIRouter(prefix="/api")

DCA_NOTE = (
    "DCA bots are inferred from the timing of your trades, "
    "not read from Binance Auto-Invest. Treat them as an estimate."
)


def _service(request: Request) -> PortfolioService:
    return request.app.state.service


def _cache(request: Request) -> ResponseCache:
    return request.app.state.cache


def _cached(request: Request, key: CacheKey, compute: Callable[[], Any], error_message: str, **extra):
    """Wraps a computation in the `{data, cached}` / `{error, details}` envelope."""
    try:
        data, cached = _cache(request).get_or_compute(key, compute)
    except Exception as e:
        logger.error(f"{error_message}: {e}")
        return JSONResponse(status_code=500, content={"error": error_message, "details": str(e)})
    return {"data": data, "cached": cached, **extra}


def parse_date_range(start_date: Optional[str], end_date: Optional[str], default_start: datetime) -> Tuple[datetime, datetime]:
    """YYYY-MM-DD bounds; the end day is included in full."""
    try:
        start = (
            datetime.combine(date.fromisoformat(start_date), time.min, tzinfo=timezone.utc)
            if start_date else default_start
        )
        end = (
            datetime.combine(date.fromisoformat(end_date), time.max, tzinfo=timezone.utc)
            if end_date else datetime.now(timezone.utc)
        )
    except ValueError as e:
        raise BusinessLogicError(f"Invalid date (expected YYYY-MM-DD): {e}")
    if start > end:
        raise BusinessLogicError(f"startDate {start.date()} is after endDate {end.date()}")
    return start, end


@router.get("/health")
def health():
    return {
        "status": "OK",
        "message": "Binance Dashboard Backend running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/account")
def account(request: Request):
    return _cached(
        request,
        CacheKey(Endpoint.ACCOUNT),
        _service(request).account,
        "Error fetching account information",
    )


@router.get("/spot/balance")
def spot_balance(request: Request):
    service = _service(request)
    return _cached(
        request,
        CacheKey(Endpoint.SPOT_BALANCE),
        lambda: DashboardMapper.spot_balance(service.spot_balance()),
        "Error fetching spot balance",
    )


@router.get("/spot/pnl")
def spot_pnl(request: Request):
    service = _service(request)
    return _cached(
        request,
        CacheKey(Endpoint.SPOT_PNL),
        lambda: DashboardMapper.pnl_report(service.spot_pnl()),
        "Error calculating spot PnL",
    )


@router.get("/futures/positions")
def futures_positions(request: Request):
    service = _service(request)
    return _cached(
        request,
        CacheKey(Endpoint.FUTURES_POSITIONS),
        lambda: DashboardMapper.futures_report(service.futures_positions()),
        "Error fetching futures positions",
    )


@router.get("/bots")
def bots(request: Request):
    service = _service(request)
    return _cached(
        request,
        CacheKey(Endpoint.BOTS),
        lambda: DashboardMapper.dca_bots(service.dca_bots()),
        "Error fetching bot information",
        detected=True,
        note=DCA_NOTE,
    )


@router.get("/prices")
def prices(request: Request):
    return _cached(
        request,
        CacheKey(Endpoint.PRICES),
        _service(request).prices,
        "Error fetching prices",
    )


@router.get("/ticker/{symbol}")
def ticker(symbol: str, request: Request):
    service = _service(request)
    symbol = symbol.upper()
    return _cached(
        request,
        CacheKey(Endpoint.TICKER, (symbol,)),
        lambda: service.ticker(symbol),
        "Error fetching ticker",
    )


@router.get("/portfolio/history")
def portfolio_history(
    request: Request,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    service = _service(request)
    start, end = parse_date_range(start_date, end_date, service.since)
    return _cached(
        request,
        CacheKey(Endpoint.PORTFOLIO_HISTORY, (start_date or "", end_date or "")),
        lambda: DashboardMapper.portfolio_history(service.portfolio_history(start, end)),
        "Error building portfolio history",
    )
