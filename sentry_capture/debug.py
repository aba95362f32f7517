import logging
import sys

from contextlib import contextmanager
from contextvars import ContextVar

from sentry_capture.utils import logger

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from logging import LogRecord
    from typing import Iterator


_client_debug = ContextVar("sentry_capture_client_debug", default=False)


class _ClientDebugFilter(logging.Filter):
    def filter(self, record):
        # type: (LogRecord) -> bool
        if record.levelno >= logging.WARNING:
            return True

        return _client_debug.get()


@contextmanager
def client_debug(enabled):
    # type: (bool) -> Iterator[None]
    """Lets debug and info records of the logger through while the block runs."""
    token = _client_debug.set(bool(enabled))
    try:
        yield
    finally:
        _client_debug.reset(token)


def init_debug_support():
    # type: () -> None
    if not logger.handlers:
        configure_logger()


def configure_logger():
    # type: () -> None
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(" [sentry] %(levelname)s: %(message)s"))
    logger.addHandler(_handler)
    logger.setLevel(logging.DEBUG)
    logger.addFilter(_ClientDebugFilter())
