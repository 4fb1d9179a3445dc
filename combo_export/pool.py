"""
combo_export/pool.py — Bounded reuse of spreadsheet engine objects.

Responsible for:
  - Handing out openpyxl Workbooks with zero worksheets and fresh style tables
  - Taking them back while below capacity, closing them otherwise
  - Caching Color and border Side objects used by the formatter

One lock guards pool and cache bookkeeping. Workbook contents are never
touched under the lock except for the reset of a dequeued instance.
"""
from __future__ import annotations

import logging
import re
import threading
from collections import deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterator, Optional

from openpyxl import Workbook
from openpyxl.styles import Side
from openpyxl.styles.colors import Color


logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5
DEFAULT_HEADER_COLOR = "#4F81BD"

_SEED_COLORS = ("#4F81BD", "#FFFFFF", "#F0F0F0", "#E0E0E0")
_SEED_BORDERS = ("thin", "none", "medium", "thick")
_HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{6})$")


def workbook_is_clean(wb: Workbook) -> bool:
    """No worksheets and only the bootstrap style entries."""
    return not wb.worksheets and len(wb._cell_styles) == 1 and len(wb._fonts) == 1


def _reset(wb: Workbook) -> Workbook:
    for ws in list(wb.worksheets):
        wb.remove(ws)
    wb._setup_styles()
    return wb


def _new_workbook() -> Workbook:
    wb = Workbook()
    for ws in list(wb.worksheets):
        wb.remove(ws)
    return wb


class WorkbookPool:
    def __init__(self, capacity: int = DEFAULT_CAPACITY, enabled: bool = True) -> None:
        self.capacity = max(0, int(capacity))
        self.enabled = enabled
        self._lock = threading.Lock()
        self._idle: Deque[Workbook] = deque()
        self._colors: Dict[str, Color] = {}
        self._sides: Dict[str, Side] = {}
        self._created = 0
        self._reused = 0
        self._disposed = 0
        self._seed_caches()

    # ── Workbooks ──────────────────────────────────────────────────────────────

    def acquire(self) -> Workbook:
        if self.enabled:
            with self._lock:
                if self._idle:
                    self._reused += 1
                    return _reset(self._idle.popleft())
        wb = _new_workbook()
        with self._lock:
            self._created += 1
        return wb

    def release(self, wb: Optional[Workbook]) -> None:
        if wb is None:
            return
        if self.enabled:
            # idle workbooks must not pin the last artifact's cells
            for ws in list(wb.worksheets):
                wb.remove(ws)
            with self._lock:
                if len(self._idle) < self.capacity:
                    self._idle.append(wb)
                    return
        self._dispose(wb)

    @contextmanager
    def lease(self) -> Iterator[Workbook]:
        wb = self.acquire()
        try:
            yield wb
        finally:
            self.release(wb)

    def _dispose(self, wb: Workbook) -> None:
        try:
            wb.close()
        except Exception as e:
            logger.debug("Workbook close failed: %s", e)
        with self._lock:
            self._disposed += 1

    # ── Style caches ───────────────────────────────────────────────────────────

    def color(self, hex_color: str) -> Color:
        """
        '#RRGGBB' -> openpyxl Color. Unparseable values fall back to the
        default header color.
        """
        key = (hex_color or "").strip().upper()
        with self._lock:
            cached = self._colors.get(key)
            if cached is not None:
                return cached
            m = _HEX_RE.match(key)
            if not m:
                logger.debug("Invalid color %r, using %s", hex_color, DEFAULT_HEADER_COLOR)
                return self._colors[DEFAULT_HEADER_COLOR]
            c = Color(rgb="FF" + m.group(1).upper())
            self._colors[key] = c
            return c

    def border_side(self, style: str) -> Optional[Side]:
        """'thin' | 'medium' | 'thick' -> Side; 'none' -> None; unknown -> thin."""
        key = (style or "").strip().lower()
        with self._lock:
            if key not in self._sides and key != "none":
                key = "thin"
            return self._sides.get(key)

    def _seed_caches(self) -> None:
        for hex_color in _SEED_COLORS:
            self._colors[hex_color] = Color(rgb="FF" + hex_color[1:])
        for style in _SEED_BORDERS:
            if style != "none":
                self._sides[style] = Side(style=style)

    # ── Maintenance ────────────────────────────────────────────────────────────

    def clear(self) -> None:
        with self._lock:
            idle = list(self._idle)
            self._idle.clear()
            self._colors.clear()
            self._sides.clear()
            self._seed_caches()
        for wb in idle:
            self._dispose(wb)

    def statistics(self) -> Dict[str, int]:
        with self._lock:
            return {
                "idle": len(self._idle),
                "capacity": self.capacity,
                "created": self._created,
                "reused": self._reused,
                "disposed": self._disposed,
                "cached_colors": len(self._colors),
                "cached_borders": len(self._sides),
            }
