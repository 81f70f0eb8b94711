"""
Cooperative cancellation.

The worker polls a CancelToken between files and groups. A ShutdownListener
thread turns SIGINT/SIGTERM into a cancellation of that token, and exits
quietly when the run completes normally.
"""
import logging
import signal
import threading
from typing import Optional


class CancelToken:
    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class ShutdownListener:
    """
    Context manager that installs signal handlers for the duration of a run.

    Handlers only flag the request; a listener thread waits for either a
    shutdown request or normal completion and cancels the token on the former.
    """
    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, token: CancelToken):
        self.token = token
        self._requested = threading.Event()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._previous = {}

    def request_shutdown(self, signum=None, frame=None):
        self._requested.set()

    def _listen(self):
        while not self._done.is_set():
            if self._requested.wait(timeout=0.1):
                logging.warning("Shutdown requested, finishing current file...")
                self.token.cancel()
                return

    def __enter__(self):
        # signal.signal only works from the main thread
        if threading.current_thread() is threading.main_thread():
            for sig in self.SIGNALS:
                self._previous[sig] = signal.signal(sig, self.request_shutdown)
        self._thread = threading.Thread(target=self._listen, name="shutdown-listener", daemon=True)
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._done.set()
        if self._thread:
            self._thread.join()
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()
