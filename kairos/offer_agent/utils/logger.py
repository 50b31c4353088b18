import logging
import os

from rich.logging import RichHandler

SUCCESS_LEVEL = 25
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

_DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
_handler: RichHandler | None = None


def _get_handler() -> RichHandler:
    global _handler
    if _handler is None:
        _handler = RichHandler(rich_tracebacks=True, show_path=False, markup=False)
        _handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))
    return _handler


class OfferAgentLogger:
    """
    Thin wrapper around a stdlib logger.

    Adds a `success` level and keeps every logger of the package on the same rich console handler.
    The underlying `logging.Logger` is exposed as `.logger` for libraries that expect one.
    """

    def __init__(self, name: str, level: str | int | None = None):
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            self.logger.addHandler(_get_handler())
            self.logger.propagate = False
        self.logger.setLevel(level or _DEFAULT_LEVEL)

    def debug(self, message: str, *args, **kwargs):
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self.logger.info(message, *args, **kwargs)

    def success(self, message: str, *args, **kwargs):
        self.logger.log(SUCCESS_LEVEL, message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self.logger.error(message, *args, **kwargs)

    def exception(self, message: str, *args, **kwargs):
        self.logger.exception(message, *args, **kwargs)

    def set_level(self, level: str | int):
        self.logger.setLevel(level)


_loggers: dict[str, OfferAgentLogger] = {}


def get_logger(name: str) -> OfferAgentLogger:
    if name not in _loggers:
        _loggers[name] = OfferAgentLogger(name)
    return _loggers[name]


def set_global_level(level: str | int):
    """Apply a level to every logger created so far and to the ones created later."""
    global _DEFAULT_LEVEL
    _DEFAULT_LEVEL = level.upper() if isinstance(level, str) else level
    for logger in _loggers.values():
        logger.set_level(_DEFAULT_LEVEL)
