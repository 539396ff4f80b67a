#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Logging mixin for EasyRest components.

Author: Silan Hu (silan.hu@u.nus.edu)
"""

import logging
import threading
from typing import Any, Optional, Union

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_LOCK = threading.Lock()
_ROOT_LOGGER_NAME = "easyrest"
TRACE_LOGGER_NAME = "easyrest.trace"


def _install_handler(logger: logging.Logger) -> None:
    with _HANDLER_LOCK:
        if logger.handlers:
            return
        logger.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        )
        logger.propagate = False


def trace_logger() -> logging.Logger:
    """
    Logger for per-request tracing.

    Only components with tracing switched on write to it, so its level is
    pinned at DEBUG and never lowered by other components.
    """
    _install_handler(logging.getLogger(_ROOT_LOGGER_NAME))
    logger = logging.getLogger(TRACE_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    return logger


class ModernLogger:
    """
    Mixin giving a class ``debug``/``info``/``warning``/``error`` helpers.

    All component loggers live below the ``easyrest`` logger, which gets a
    single rich console handler the first time any component logs.
    """

    def __init__(self, name: Optional[str] = None, level: Union[int, str, None] = None) -> None:
        logger_name = name or type(self).__name__
        if not logger_name.startswith(_ROOT_LOGGER_NAME):
            logger_name = "{0}.{1}".format(_ROOT_LOGGER_NAME, logger_name)
        _install_handler(logging.getLogger(_ROOT_LOGGER_NAME))
        self._logger = logging.getLogger(logger_name)
        if level is not None:
            self._logger.setLevel(level.upper() if isinstance(level, str) else level)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **kwargs)
