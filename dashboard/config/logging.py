import logging
import sys
from logging.handlers import RotatingFileHandler

# settings 載入失敗時使用預設值
try:
    from dashboard.config.settings import settings
    LOG_LEVEL = settings.LOG_LEVEL.upper() if settings else "INFO"
    LOG_FILE = settings.LOG_FILE if settings else None
except Exception:
    LOG_LEVEL = "INFO"
    LOG_FILE = None

def setup_logging(name: str = "binance_dashboard") -> logging.Logger:
    """
    統一的日誌配置。
    預設輸出到 Console (Stdout)；設定 LOG_FILE 時另外寫入輪替檔案。
    """
    logger = logging.getLogger(name)

    # 防止重複添加 Handler
    if logger.handlers:
        return logger

    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Console Handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File Handler: 5MB per file, 2 backups
    if LOG_FILE:
        file_handler = RotatingFileHandler(LOG_FILE, maxBytes=1024*1024*5, backupCount=2)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

# 預設 Logger
logger = setup_logging()
