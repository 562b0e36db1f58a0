from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable
from types import FrameType
from typing import ClassVar

_LOGGER = logging.getLogger(__name__)

_SignalHandler = Callable[[int, FrameType | None], object] | int | None


class TerminationWatcher:
    """Run ``on_terminate`` once, on SIGINT/SIGTERM or an explicit trigger.

    The signal handler only records the request; ``cancelled`` is set and
    the callback run on a daemon thread so the main thread is never held
    by admin API calls. Previous handlers are restored as soon as termination
    is requested on the main thread, so a second Ctrl+C behaves as it did
    before ``start``.
    """

    SIGNALS: ClassVar[tuple[signal.Signals, ...]] = (
        signal.SIGINT,
        signal.SIGTERM,
    )

    def __init__(
        self,
        on_terminate: Callable[[], None],
        *,
        cancelled: threading.Event | None = None,
        name: str = "gateway-registration-watcher",
    ) -> None:
        self._on_terminate = on_terminate
        self._cancelled = cancelled or threading.Event()
        self._name = name
        self._triggered = threading.Event()
        self._done = threading.Event()
        self._thread: threading.Thread | None = None
        self._previous: dict[signal.Signals, _SignalHandler] = {}
        self._received: int | None = None

    @property
    def cancelled(self) -> threading.Event:
        return self._cancelled

    @property
    def started(self) -> bool:
        return self._thread is not None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def received_signal(self) -> int | None:
        return self._received

    def start(self) -> None:
        if self._thread is not None:
            return
        self._install_handlers()
        self._thread = threading.Thread(
            target=self._run, name=self._name, daemon=True
        )
        self._thread.start()

    def trigger(self, signum: int | None = None) -> None:
        """Request termination as if a signal had been received."""
        if signum is not None and self._received is None:
            self._received = signum
        self._triggered.set()
        self._restore_handlers()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the termination callback has finished."""
        return self._done.wait(timeout)

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        _LOGGER.info("Received signal %s", signal.Signals(signum).name)
        self.trigger(signum)

    def _install_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            _LOGGER.warning(
                "Signal handlers can only be installed from the main thread; "
                "call stop() to trigger deregistration"
            )
            return
        for sig in self.SIGNALS:
            self._previous[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handle_signal)

    def _restore_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for sig, previous in self._previous.items():
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()

    def _run(self) -> None:
        self._triggered.wait()
        self._cancelled.set()
        try:
            self._on_terminate()
        except Exception:
            _LOGGER.exception("Termination callback failed")
        finally:
            self._done.set()
