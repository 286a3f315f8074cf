from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType

logger = logging.getLogger("sheets-uploader.cancellation")

TERMINATION_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGINT", None), getattr(signal, "SIGTERM", None)) if sig is not None
)


class Cancellation:
    """Run-wide cancellation flag shared by the dispatch loop and every worker.

    Fired either by an operator interrupt (see :meth:`on_termination`) or by
    the scheduler when a task fails. Cancellation is cooperative: it keeps new
    work from starting and wakes up waits, it never interrupts a write that is
    already in progress.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """Fire the flag. Returns False when it had already been fired."""
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
        logger.debug("cancellation requested: %s", reason)
        return True

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    @contextmanager
    def on_termination(self, signals: tuple[int, ...] = TERMINATION_SIGNALS) -> Iterator[Cancellation]:
        """Fire the flag on SIGINT/SIGTERM while the block runs.

        Handlers can only be installed from the main thread; elsewhere the block
        runs without them. Previous handlers are restored on exit.
        """
        if threading.current_thread() is not threading.main_thread():
            yield self
            return

        def handle(signum: int, frame: FrameType | None) -> None:
            self.cancel(f"received {signal.Signals(signum).name}")

        previous = {sig: signal.signal(sig, handle) for sig in signals}
        try:
            yield self
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
