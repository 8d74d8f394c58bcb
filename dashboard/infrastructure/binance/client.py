import time
import hmac
import hashlib
import threading
import requests
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode
from dashboard.config.logging import logger
from dashboard.core.exceptions import (
    ConfigurationError,
    DataSourceError,
    FuturesUnavailableError,
    SymbolNotFoundError,
)
from dashboard.core.models import Holding, Trade
from .mapper import BinanceMapper

INVALID_SYMBOL_CODE = -1121
FUTURES_DISABLED_CODES = (-2015, -4001)


class BinanceClient:
    """
    Binance REST API 客戶端 (Exchange Gateway)。
    負責處理簽章、節流與錯誤碼轉換，並將資料交給 Mapper 轉換。
    """

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        base_url: str = "https://api.binance.com",
        futures_base_url: str = "https://fapi.binance.com",
        recv_window: int = 5000,
        timeout: int = 10,
        min_interval: float = 0.05,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.futures_base_url = futures_base_url.rstrip("/")
        self.recv_window = recv_window
        self.timeout = timeout
        self.min_interval = min_interval
        self.session = requests.Session()
        self._throttle_lock = threading.Lock()
        self._last_request_time = 0.0

    @classmethod
    def from_settings(cls, settings) -> "BinanceClient":
        return cls(
            api_key=settings.BINANCE_API_KEY,
            api_secret=settings.BINANCE_API_SECRET,
            base_url=settings.BINANCE_BASE_URL,
            futures_base_url=settings.BINANCE_FUTURES_BASE_URL,
            recv_window=settings.BINANCE_RECV_WINDOW,
            timeout=settings.REQUEST_TIMEOUT,
            min_interval=settings.REQUEST_MIN_INTERVAL,
        )

    def _generate_signature(self, query_string: str) -> str:
        return hmac.new(
            bytes(self.api_secret, "utf-8"),
            query_string.encode("utf-8"),
            hashlib.sha256
        ).hexdigest()

    def _throttle(self):
        # 多執行緒同時抓取時，保持請求之間的最小間隔
        with self._throttle_lock:
            wait = self.min_interval - (time.time() - self._last_request_time)
            if wait > 0:
                time.sleep(wait)
            self._last_request_time = time.time()

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = False,
        futures: bool = False,
    ) -> Any:
        params = dict(params or {})
        headers = {}

        if signed:
            if not self.api_key or not self.api_secret:
                raise ConfigurationError("BINANCE_API_KEY / BINANCE_API_SECRET are not set")
            params["recvWindow"] = self.recv_window
            params["timestamp"] = int(time.time() * 1000)

        query_string = urlencode(params)
        if signed:
            query_string += f"&signature={self._generate_signature(query_string)}"
        if self.api_key:
            headers["X-MBX-APIKEY"] = self.api_key

        base_url = self.futures_base_url if futures else self.base_url
        url = f"{base_url}{endpoint}"
        if query_string:
            url += f"?{query_string}"

        self._throttle()
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Binance Connection Error: {e}")
            raise DataSourceError(f"Failed to connect to Binance: {e}")

        try:
            data = response.json()
        except ValueError:
            raise DataSourceError(
                f"Invalid response from Binance ({response.status_code}): {response.text[:200]}"
            )

        # Binance 錯誤格式: {"code": -1121, "msg": "Invalid symbol."}
        if response.status_code >= 400 or (isinstance(data, dict) and data.get("code", 0) < 0):
            code = data.get("code") if isinstance(data, dict) else None
            msg = data.get("msg") if isinstance(data, dict) else response.text
            if code == INVALID_SYMBOL_CODE:
                raise SymbolNotFoundError(f"Binance API Error: {msg} (Code: {code})", code=code)
            raise DataSourceError(f"Binance API Error: {msg} (Code: {code})", code=code)

        return data

    def account_info(self) -> Dict[str, Any]:
        """現貨帳戶資訊 (原始格式)"""
        return self._request("GET", "/api/v3/account", signed=True)

    def holdings(self) -> List[Holding]:
        """只回傳 free + locked > 0 的資產"""
        return BinanceMapper.to_holdings(self.account_info())

    def prices(self) -> Dict[str, str]:
        raw = self._request("GET", "/api/v3/ticker/price")
        return BinanceMapper.to_price_map(raw)

    def daily_stats(self, symbol: str) -> Dict[str, Any]:
        return self._request("GET", "/api/v3/ticker/24hr", {"symbol": symbol.upper()})

    def my_trades(self, symbol: str, limit: int = 1000) -> List[Trade]:
        raw = self._request("GET", "/api/v3/myTrades", {"symbol": symbol, "limit": limit}, signed=True)
        return [BinanceMapper.to_trade(t) for t in raw]

    def futures_account_info(self) -> Dict[str, Any]:
        try:
            return self._request("GET", "/fapi/v2/account", signed=True, futures=True)
        except DataSourceError as e:
            if e.code in FUTURES_DISABLED_CODES or "futures" in str(e).lower():
                raise FuturesUnavailableError(str(e), code=e.code)
            raise
