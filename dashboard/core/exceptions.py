from typing import Optional

class AppError(Exception):
    """所有應用程式自定義錯誤的基類"""
    pass

class ConfigurationError(AppError):
    """設定錯誤 (如缺少 API 金鑰)"""
    pass

class DataSourceError(AppError):
    """資料來源錯誤 (如 Binance API 連線失敗或回傳錯誤碼)"""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code

class SymbolNotFoundError(DataSourceError):
    """交易對不存在 (Binance code -1121)"""
    pass

class FuturesUnavailableError(DataSourceError):
    """帳戶未開通合約交易"""
    pass

class BusinessLogicError(AppError):
    """業務邏輯錯誤 (如查詢日期格式不正確)"""
    pass
