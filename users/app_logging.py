"""JSON logging for the user service."""

import logging
from typing import Union

from pythonjsonlogger import jsonlogger


def setup_logger(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Install a JSON formatter on the root logger."""
    logHandler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    )
    logHandler.setFormatter(formatter)
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if isinstance(handler.formatter, jsonlogger.JsonFormatter):
            logger.removeHandler(handler)
    logger.addHandler(logHandler)
    logger.setLevel(level)
    return logger
