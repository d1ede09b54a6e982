import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from src.core.config import Config, config

LOGGER_NAME = "deepseek_proxy"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Third-party loggers that would otherwise log every request
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "httpx", "httpcore")

_FILE_HANDLER_NAME = "deepseek_proxy_file"


def resolve_level(raw: Optional[str]) -> int:
    """Turn a LOG_LEVEL value into a logging level, tolerating trailing comments."""
    words = (raw or "").split()
    name = words[0].upper() if words else "INFO"
    if name not in VALID_LEVELS:
        name = "INFO"
    return getattr(logging, name)


def build_file_handler(path: str, level: int) -> RotatingFileHandler:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8")
    handler.set_name(_FILE_HANDLER_NAME)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(settings: Config) -> logging.Logger:
    level = resolve_level(settings.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    root = logging.getLogger()
    if settings.log_file_path:
        # Re-importing must not stack a second handler on the same file.
        for existing in list(root.handlers):
            if existing.get_name() == _FILE_HANDLER_NAME:
                root.removeHandler(existing)
                existing.close()
        root.addHandler(build_file_handler(settings.log_file_path, level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(LOGGER_NAME)


logger = setup_logging(config)
