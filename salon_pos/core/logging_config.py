"""Настройка логирования приложения."""
import logging

from salon_pos.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging() -> None:
    """Один раз настроить корневой логгер (уровень из LOG_LEVEL)."""
    global _configured
    if _configured:
        return
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(format=LOG_FORMAT, level=level)
    # SQL-эхо не нужно даже на DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
