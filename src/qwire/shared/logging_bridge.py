"""Forwarding of stdlib log records from qwire modules into loguru

Only the ``qwire`` logger hierarchy is bridged. Loggers of other libraries,
httpx included, stay under the application's control; HTTP traffic is logged
through the client's event hooks instead.
"""

import inspect
import logging

from loguru import logger

BRIDGED_LOGGER = "qwire"


class InterceptHandler(logging.Handler):
    """Re-emit stdlib records through loguru at the original call site"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame is not None and (
            depth == 0 or frame.f_code.co_filename == logging.__file__
        ):
            frame = frame.f_back
            depth += 1

        logger.bind(stdlib_logger=record.name).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def install_logging_bridge() -> bool:
    """Attach the loguru handler to the ``qwire`` stdlib logger once

    The ``qwire`` logger stops propagating to the root logger so records are
    not emitted twice when the application also configures stdlib logging.

    Returns:
        True if this call installed the handler
    """
    std_logger = logging.getLogger(BRIDGED_LOGGER)
    if any(isinstance(h, InterceptHandler) for h in std_logger.handlers):
        return False

    if std_logger.level == logging.NOTSET:
        std_logger.setLevel(logging.DEBUG)
    std_logger.addHandler(InterceptHandler())
    std_logger.propagate = False
    return True
