"""Structured (JSON) logging for the accounts service."""

import logging
from pythonjsonlogger import jsonlogger

_HANDLER_NAME = 'nomadiqe-json'


def setup_logger(level: int = logging.DEBUG) -> None:
    """Attach a JSON handler to the root logger, once."""
    logger = logging.getLogger()
    logger.setLevel(level)
    if any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        return
    log_handler = logging.StreamHandler()
    log_handler.set_name(_HANDLER_NAME)
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                         rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
    log_handler.setFormatter(formatter)
    logger.addHandler(log_handler)
