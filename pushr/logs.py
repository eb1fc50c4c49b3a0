"""Настройка журналирования."""
import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler

from pushr.config import AppConfig


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(config: AppConfig, level: int = logging.INFO) -> logging.Logger:
    """Логи деплоев пишутся в файл с еженедельной ротацией и в консоль.

    Повторный вызов с другим log_file заменяет файловый обработчик.
    """
    logger = logging.getLogger("pushr")
    logger.setLevel(level)
    log_file = os.path.abspath(config.log_file)
    formatter = logging.Formatter(LOG_FORMAT)

    for handler in list(logger.handlers):
        if isinstance(handler, TimedRotatingFileHandler) and handler.baseFilename != log_file:
            logger.removeHandler(handler)
            handler.close()

    if not any(isinstance(h, TimedRotatingFileHandler) for h in logger.handlers):
        file_handler = TimedRotatingFileHandler(log_file, when="W0", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # StreamHandler - базовый класс файлового обработчика, поэтому проверяем тип точно
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
    return logger
