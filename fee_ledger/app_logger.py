import logging
from typing import Optional

from fee_ledger.core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_ROOT_LOGGER_NAME = "fee_ledger"


def setup_logging() -> logging.Logger:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Avoid duplicate console handlers on re-import (uvicorn --reload, tests)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        ch.setLevel(level)
        logger.addHandler(ch)

    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = logging.getLogger(_ROOT_LOGGER_NAME)
    if not name:
        return base
    if name.startswith(_ROOT_LOGGER_NAME + "."):
        name = name[len(_ROOT_LOGGER_NAME) + 1:]
    return base.getChild(name)


logger = setup_logging()
