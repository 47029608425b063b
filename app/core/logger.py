# app/core/logger.py
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from app.core.config import settings


def setup_logging(level: str | None = None, log_file: str | None = None) -> logging.Logger:
    """
    Настройка корневого логгера "app".
    Консоль всегда, файл с ежедневной ротацией если задан LOG_FILE.
    Повторный вызов ничего не дублирует.
    """
    logger = logging.getLogger("app")
    logger.setLevel((level or settings.LOG_LEVEL or "INFO").upper())

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_file or settings.LOG_FILE
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=path,
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info("Logging initialized")
    return logger
