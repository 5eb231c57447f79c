"""
Logging for the Exhibition Leads API.

Everything goes through the ``leads`` logger: logs/leads.log (rotated) and
stderr. Service functions decorated with ``log_call`` leave CALL / OK / FAIL
lines, e.g. ``FAIL create_person | NotFound: 404: Lead not found | 3ms``.
"""

import functools
import inspect
import logging
import logging.handlers
import os
import time
from contextlib import contextmanager
from pathlib import Path

LOGGER_NAME = "leads"

_LOG_DIR = Path(__file__).parent / "logs"
_LOG_FILE = _LOG_DIR / "leads.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_ROTATE_AT = 5 * 1024 * 1024
_KEEP = 3


def _env_level() -> int:
    level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> logging.Logger:
    """Attach file and console handlers to the leads logger once; later calls are no-ops."""
    logger = logging.getLogger(LOGGER_NAME)
    _LOG_DIR.mkdir(exist_ok=True)
    if logger.handlers:
        return logger

    logger.setLevel(_env_level())
    handlers = [
        logging.handlers.RotatingFileHandler(_LOG_FILE, maxBytes=_ROTATE_AT, backupCount=_KEEP, encoding="utf-8"),
        logging.StreamHandler(),
    ]
    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def _describe_args(args, kwargs) -> str:
    shown = [repr(a) for a in args] + [f"{k}={v!r}" for k, v in kwargs.items()]
    return ", ".join(shown) if shown else "-"


@contextmanager
def _traced(name, args, kwargs):
    logger = logging.getLogger(LOGGER_NAME)
    logger.debug(f"CALL {name} | args=({_describe_args(args, kwargs)})")
    started = time.perf_counter()

    def elapsed():
        return int((time.perf_counter() - started) * 1000)

    try:
        yield
    except Exception as exc:
        logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {elapsed()}ms")
        raise
    logger.info(f"OK   {name} | {elapsed()}ms")


def log_call(func):
    """Trace a service function, plain or coroutine, through the leads logger. Errors are re-raised."""
    name = func.__name__

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def traced_coroutine(*args, **kwargs):
            with _traced(name, args, kwargs):
                return await func(*args, **kwargs)
        return traced_coroutine

    @functools.wraps(func)
    def traced(*args, **kwargs):
        with _traced(name, args, kwargs):
            return func(*args, **kwargs)
    return traced
