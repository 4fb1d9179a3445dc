"""
combo_export/cancellation.py — Cooperative cancellation.

Responsible for:
  - A per-batch token any thread may set; only the worker observes it
  - A manager that owns the token of the single active operation

Cancellation never aborts in-flight I/O. The batch loop checks the token
before each combination and the writer checks it between chunks.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from .errors import BatchCancelled, ValidationError, OPERATION_ACTIVE


logger = logging.getLogger(__name__)


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise BatchCancelled()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class CancellationManager:
    """
    Tracks at most one active operation and hands out its token.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._token: Optional[CancellationToken] = None
        self._operation: Optional[str] = None

    def start_operation(self, name: str = "Export") -> CancellationToken:
        with self._lock:
            if self._token is not None:
                raise ValidationError(
                    OPERATION_ACTIVE,
                    f"Operation {self._operation!r} is still running",
                    {"operation": self._operation},
                )
            self._token = CancellationToken()
            self._operation = name
            logger.info("Operation started: %s", name)
            return self._token

    def cancel_operation(self) -> bool:
        """Request cancellation. Returns False when there is nothing to cancel."""
        with self._lock:
            if self._token is None:
                logger.warning("Cancel requested but no operation is active")
                return False
            if self._token.is_cancelled:
                logger.warning("Operation %s already cancelled", self._operation)
                return False
            self._token.cancel()
            logger.info("Cancellation requested: %s", self._operation)
            return True

    def complete_operation(self) -> None:
        with self._lock:
            if self._token is None:
                return
            state = "cancelled" if self._token.is_cancelled else "completed"
            logger.info("Operation %s: %s", state, self._operation)
            self._token = None
            self._operation = None

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._token is not None

    @property
    def current_token(self) -> Optional[CancellationToken]:
        with self._lock:
            return self._token
