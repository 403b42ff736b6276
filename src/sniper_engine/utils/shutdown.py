"""Process-wide stop flag set by SIGINT/SIGTERM; the worker checks it between messages."""

from __future__ import annotations

import signal
import threading

from loguru import logger

_STOP = threading.Event()


def request_stop() -> None:
    _STOP.set()


def stop_requested() -> bool:
    return _STOP.is_set()


def clear_stop() -> None:
    _STOP.clear()


def install_signal_handlers() -> None:
    def _handler(signum, frame):  # pragma: no cover
        logger.warning(f"SHUTDOWN | signal={signal.Signals(signum).name} | finishing current invocation")
        request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _handler)
        except ValueError as e:
            # only the main thread may install handlers
            logger.debug(f"SHUTDOWN | handler not installed | {sig.name} | {e}")
