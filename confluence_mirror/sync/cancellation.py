"""Cooperative cancellation for long-running sync operations."""

import logging
import signal
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """Flag checked by orchestrators between per-page units of work."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def install_sigint_handler(token: CancellationToken) -> Callable[[], None]:
    """Route the first Ctrl-C to the token; a second one interrupts normally.

    Args:
        token: Token to cancel on SIGINT

    Returns:
        Callable that restores the previous handler
    """
    previous = signal.getsignal(signal.SIGINT)

    def _handle(signum, frame):
        if token.cancelled:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            raise KeyboardInterrupt
        logger.warning("Cancellation requested, stopping after the current page")
        token.cancel()

    signal.signal(signal.SIGINT, _handle)

    def _restore() -> None:
        signal.signal(signal.SIGINT, previous)

    return _restore
