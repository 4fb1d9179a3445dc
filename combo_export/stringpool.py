from __future__ import annotations

import threading
from typing import Dict, Optional


SEPARATOR_HEAVY = "=" * 80
SEPARATOR_LIGHT = "-" * 80
PIPE = " | "
DASH = " - "
COLON = ": "

STATUS_NO_DATA = "No data - skipped"
STATUS_ROW_LIMIT = "Excel row limit exceeded"
STATUS_CANCELLED = "Cancelled by user"
STATUS_COMPLETED = "Completed successfully"
STATUS_FAILED = "Failed"

# Message templates for the process log; filled through StringPool.format
TPL_PROCESS_START = "PROCESS START: {}"
TPL_PARAMETERS = "Parameters: {}"
TPL_PROCESS_COMPLETE = "PROCESS COMPLETE: {}"
TPL_TOTAL_TIME = "Total Time: {:.2f}s"
TPL_RESULT = "Result: {}"
TPL_STEP = "  ➤ {}"
TPL_STEP_DETAILS = "  ➤ {}: {}"
TPL_STEP_TIMED = "completed in {:.2f}s"
TPL_SKIPPED = "SKIPPED: {} | Rows: {:,} | Reason: {}"
TPL_EXCEL_RESULT = "Excel file created: {} | Rows: {:,} | Time: {:.2f}s"
TPL_FILE_SAVE = "File saved: {} ({:.2f}s)"
TPL_ERROR = "ERROR: {}"

_SEEDS = (
    SEPARATOR_HEAVY, SEPARATOR_LIGHT, PIPE, DASH, COLON,
    STATUS_NO_DATA, STATUS_ROW_LIMIT, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_FAILED,
    "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
)


class StringPool:
    """
    Interning cache for the separators, statuses and message templates that
    repeat on every log line. Disabled pools pass strings through untouched.
    """

    def __init__(self, enabled: bool = True, max_size: int = 10000) -> None:
        self.enabled = enabled
        self.max_size = max_size
        self._lock = threading.Lock()
        self._strings: Dict[str, str] = {}
        self._templates: Dict[str, str] = {}
        self.template_hits = 0
        self._seed()

    def _seed(self) -> None:
        for s in _SEEDS:
            self._strings[s] = s

    def get(self, value: str) -> str:
        if not self.enabled or value is None:
            return value
        cached = self._strings.get(value)
        if cached is not None:
            return cached
        with self._lock:
            if len(self._strings) >= self.max_size:
                return value
            return self._strings.setdefault(value, value)

    def format(self, template: str, *args, **kwargs) -> str:
        """str.format through a pooled template; the result itself is not pooled."""
        if self.enabled:
            with self._lock:
                pooled = self._templates.get(template)
                if pooled is None:
                    pooled = self._templates.setdefault(template, template)
                else:
                    self.template_hits += 1
            template = pooled
        return template.format(*args, **kwargs)

    def trim(self, max_size: Optional[int] = None) -> int:
        """Drop everything but the seeds once the pool grows past max_size."""
        limit = self.max_size if max_size is None else max_size
        with self._lock:
            size = len(self._strings) + len(self._templates)
            if size <= limit:
                return 0
            self._strings.clear()
            self._templates.clear()
            self._seed()
            return size - len(self._strings)

    @property
    def template_count(self) -> int:
        return len(self._templates)

    def clear(self) -> None:
        with self._lock:
            self._strings.clear()
            self._templates.clear()
            self._seed()

    def __len__(self) -> int:
        return len(self._strings) + len(self._templates)
