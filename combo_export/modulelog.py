from __future__ import annotations

import itertools
import threading
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional, Union

from . import stringpool as sp
from .asynclog import AsyncLogWriter, LogLevel


class StepTimer:
    def __init__(self) -> None:
        self.started = time.perf_counter()
        self.elapsed = 0.0

    def stop(self) -> float:
        self.elapsed = time.perf_counter() - self.started
        return self.elapsed


class ModuleLogger:
    """
    Process-oriented vocabulary on top of an AsyncLogWriter: every
    combination gets a correlation id (P0001, P0002, ...) and its start,
    steps, outcome and errors are written under that id.
    """

    def __init__(self, writer: AsyncLogWriter, module: str) -> None:
        self.writer = writer
        self.module = module
        self._ids = itertools.count(1)
        self._ids_lock = threading.Lock()

    def next_process_id(self) -> str:
        with self._ids_lock:
            n = next(self._ids)
        return f"P{n:04d}"

    # ---------- Plain levels ----------

    def log(self, level: Union[str, LogLevel], message: str, process_id: str = "") -> None:
        self.writer.log(level, message, correlation_id=process_id, module=self.module)

    def debug(self, message: str, process_id: str = "") -> None:
        self.log(LogLevel.DEBUG, message, process_id)

    def info(self, message: str, process_id: str = "") -> None:
        self.log(LogLevel.INFO, message, process_id)

    def warning(self, message: str, process_id: str = "") -> None:
        self.log(LogLevel.WARNING, message, process_id)

    # ---------- Process vocabulary ----------

    def _fmt(self, template: str, *args: Any) -> str:
        return self.writer.string_pool.format(template, *args)

    def process_start(self, name: str, parameters: Union[str, Mapping[str, Any], None] = None) -> str:
        pid = self.next_process_id()
        if isinstance(parameters, Mapping):
            parameters = ", ".join(f"{k}={v}" for k, v in parameters.items())
        self.info(sp.SEPARATOR_HEAVY, pid)
        self.info(self._fmt(sp.TPL_PROCESS_START, name), pid)
        if parameters:
            self.info(self._fmt(sp.TPL_PARAMETERS, parameters), pid)
        self.info(sp.SEPARATOR_LIGHT, pid)
        return pid

    def process_complete(self, process_id: str, name: str, elapsed: float, result: str = sp.STATUS_COMPLETED) -> None:
        self.info(sp.SEPARATOR_LIGHT, process_id)
        self.info(self._fmt(sp.TPL_PROCESS_COMPLETE, name), process_id)
        self.info(self._fmt(sp.TPL_TOTAL_TIME, elapsed), process_id)
        self.info(self._fmt(sp.TPL_RESULT, result), process_id)
        self.info(sp.SEPARATOR_HEAVY, process_id)

    def step(self, process_id: str, step: str, details: str = "") -> None:
        if details:
            text = self._fmt(sp.TPL_STEP_DETAILS, step, details)
        else:
            text = self._fmt(sp.TPL_STEP, step)
        self.info(text, process_id)

    def skipped(self, process_id: str, file_name: str, row_count: int, reason: str) -> None:
        self.warning(self._fmt(sp.TPL_SKIPPED, file_name, row_count, reason), process_id)

    def excel_result(self, process_id: str, file_name: str, rows: int, elapsed: float) -> None:
        self.info(self._fmt(sp.TPL_EXCEL_RESULT, file_name, rows, elapsed), process_id)

    def file_save(self, process_id: str, path: str, elapsed: float) -> None:
        self.info(self._fmt(sp.TPL_FILE_SAVE, path, elapsed), process_id)

    def error(self, message: str, process_id: str = "", exc: Optional[BaseException] = None) -> None:
        self.log(LogLevel.ERROR, self._fmt(sp.TPL_ERROR, message), process_id)
        if exc is not None:
            tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()
            self.log(LogLevel.ERROR, tb, process_id)

    @contextmanager
    def timer(self, process_id: str, step: str) -> Iterator[StepTimer]:
        """Log '<step>: completed in N.NNs' when the block exits normally."""
        t = StepTimer()
        yield t
        t.stop()
        self.step(process_id, step, self._fmt(sp.TPL_STEP_TIMED, t.elapsed))
