import sys
from datetime import date
from typing import List, Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """
    應用程式全域設定。
    自動從環境變數 (.env) 讀取並驗證型別。
    """
    # Binance 設定 (公開端點不需要金鑰)
    BINANCE_API_KEY: str = ""
    BINANCE_API_SECRET: str = ""
    BINANCE_BASE_URL: str = "https://api.binance.com"
    BINANCE_FUTURES_BASE_URL: str = "https://fapi.binance.com"
    BINANCE_RECV_WINDOW: int = 5000
    REQUEST_TIMEOUT: int = 10
    REQUEST_MIN_INTERVAL: float = 0.05

    # HTTP Server
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://localhost:8080",
    ]
    CORS_ORIGIN_REGEX: Optional[str] = r"https://.*\.vercel\.app"

    # Response cache (秒)
    CACHE_TTL: int = 10
    PNL_CACHE_TTL: int = 60
    HISTORY_CACHE_TTL: int = 300

    # PnL / DCA / History 計算
    CUTOFF_DATE: date = date(2025, 8, 1)
    STABLECOINS: List[str] = ["USDT", "BUSD", "USDC", "USD", "FDUSD"]
    TRADES_LIMIT: int = 1000
    MAX_WORKERS: int = 5
    DCA_MAX_ASSETS: int = 10
    COVERAGE_TOLERANCE: float = 0.10
    HISTORY_MODE: str = "trade_sum"  # trade_sum | end_of_day

    # 應用程式行為
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

# Singleton Instance
try:
    settings = Settings()
except Exception as e:
    # logging 依賴 settings，這裡只能直接印到 stderr
    print(f"CRITICAL: Failed to load configuration. Invalid env vars? {e}", file=sys.stderr)
    settings = None
