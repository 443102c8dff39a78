"""Logging setup and the optional pipeline observability sink."""

import logging
import os

from contextlib import contextmanager
from typing import Any, Callable, Dict, Optional

logging.basicConfig(level=logging.INFO)

# sink(event_name, payload); must not raise.
EventSink = Callable[[str, Dict[str, Any]], None]


def get_logger(name):
    """Return a module logger."""
    logger = logging.getLogger(name)
    return logger


class LoggingSink:
    """Event sink that forwards pipeline events to a logger at DEBUG level.

    Pass an instance as `sink=` to the pipeline when per-call diagnostics are
    wanted; the pipeline itself never prints.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.DEBUG):
        self.logger = logger or get_logger("faceoff.events")
        self.level = int(level)

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        if not self.logger.isEnabledFor(self.level):
            return
        details = ", ".join(f"{k}={v}" for k, v in payload.items())
        self.logger.log(self.level, f"[{event}] {details}")


def emit(sink: Optional[EventSink], event: str, **payload: Any) -> None:
    """Send an event to `sink` if one is attached.

    A failing sink is logged and ignored.
    """
    if sink is None:
        return
    try:
        sink(event, payload)
    except Exception as e:
        get_logger(__name__).warning(f"event sink failed on {event}: {e}")


@contextmanager
def suppress_fds():
    """Context manager that redirects FD 1 and 2 to /dev/null.

    onnxruntime prints provider warnings from C++ straight to the process file
    descriptors, bypassing Python's sys.stdout/sys.stderr objects.
    """
    devnull = os.open(os.devnull, os.O_RDWR)
    old_stdout = os.dup(1)
    old_stderr = os.dup(2)
    try:
        os.dup2(devnull, 1)
        os.dup2(devnull, 2)
        yield
    finally:
        os.dup2(old_stdout, 1)
        os.dup2(old_stderr, 2)
        os.close(devnull)
        os.close(old_stdout)
        os.close(old_stderr)
