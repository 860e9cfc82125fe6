from __future__ import annotations

import logging

from merenda.app.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "merenda-stream"


def configure_logging(level: str | int = LOG_LEVEL) -> logging.Logger:
    """
    Installe un handler stream unique sur le logger "merenda".
    Rappeler la fonction ne duplique pas le handler, seul le niveau change.
    """
    logger = logging.getLogger("merenda")
    logger.setLevel(level)

    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(handler)

    return logger
