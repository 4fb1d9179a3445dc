"""
combo_export/worker.py — Runs a batch off the UI thread.

One dedicated thread runs the whole combination loop. Every callback
(progress, completion, error) is handed to `dispatch`, which decides on
which thread it runs; tk_dispatcher(root) marshals onto the Tk main loop.
"""
from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from .batch import BatchRunner
from .cancellation import CancellationManager, CancellationToken
from .models import BatchRequest, BatchSummary


Dispatcher = Callable[[Callable[[], None]], Any]


def direct_dispatch(fn: Callable[[], None]) -> None:
    fn()


def tk_dispatcher(root) -> Dispatcher:
    """Queue callbacks onto a Tk root's event loop."""
    return lambda fn: root.after(0, fn)


class BatchWorker:
    def __init__(
        self,
        runner: BatchRunner,
        cancellation: Optional[CancellationManager] = None,
        dispatch: Dispatcher = direct_dispatch,
    ) -> None:
        self.runner = runner
        self.cancellation = cancellation or CancellationManager()
        self.dispatch = dispatch
        self._thread: Optional[threading.Thread] = None
        self.summary: Optional[BatchSummary] = None
        self.error: Optional[BaseException] = None

    def start(
        self,
        request: BatchRequest,
        on_progress: Optional[Callable[[str, Any], None]] = None,
        on_complete: Optional[Callable[[BatchSummary], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> CancellationToken:
        token = self.cancellation.start_operation(self.runner.operation)
        self.summary = None
        self.error = None

        def _progress(event: str, payload: Any) -> None:
            if on_progress is not None:
                self.dispatch(lambda: on_progress(event, payload))

        def _run() -> None:
            try:
                summary = self.runner.run(request, token=token, on_progress=_progress)
            except Exception as e:
                # ExportError from validation, or anything unexpected: the
                # thread boundary reports it instead of dying silently
                self.error = e
                if on_error is not None:
                    self.dispatch(lambda err=e: on_error(err))
                return
            finally:
                self.cancellation.complete_operation()
            self.summary = summary
            if on_complete is not None:
                self.dispatch(lambda: on_complete(summary))

        self._thread = threading.Thread(target=_run, name="batch-worker", daemon=True)
        self._thread.start()
        return token

    def cancel(self) -> bool:
        return self.cancellation.cancel_operation()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """True once the worker thread has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
