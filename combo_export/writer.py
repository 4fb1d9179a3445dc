"""
combo_export/writer.py — Streams one query result into one .xlsx artifact.

Order is fixed:
  1. header row from the result's column names
  2. every data row appended in a single forward pass from row 2
  3. one formatting pass over the used range
  4. save to <name>.tmp, then os.replace onto the final name

Styling is never interleaved with row loading. A failed or cancelled write
leaves no file behind.
"""
from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Dict, Optional, Set

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill
from openpyxl.worksheet.worksheet import Worksheet

from .cancellation import CancellationToken
from .errors import (
    BatchCancelled,
    ExportError,
    WriteError,
    FILE_LOCKED,
    SAVE_FAILED,
    WRITE_FAILED,
)
from .gateway import QueryResult
from .modulelog import ModuleLogger
from .parsing import col_index_to_letters, parse_columns
from .pool import WorkbookPool
from .settings import FormatSettings


TEXT_FORMAT = "@"
MAX_AUTO_WIDTH = 60


@dataclass
class WriteOutcome:
    path: str
    rows_written: int
    elapsed: float


class StreamingWorkbookWriter:
    def __init__(
        self,
        pool: WorkbookPool,
        output_directory: str,
        formatting: Optional[FormatSettings] = None,
        worksheet_name: str = "Export Data",
        chunk_size: int = 25000,
        log: Optional[ModuleLogger] = None,
    ) -> None:
        self.pool = pool
        self.output_directory = output_directory
        self.formatting = formatting or FormatSettings()
        self.worksheet_name = worksheet_name
        self.chunk_size = max(1, chunk_size)
        self.log = log
        self._date_cols: Set[int] = set(parse_columns(self.formatting.date_columns))
        self._text_cols: Set[int] = set(parse_columns(self.formatting.text_columns))

    def write(
        self,
        result: QueryResult,
        file_name: str,
        token: Optional[CancellationToken] = None,
        process_id: str = "",
    ) -> WriteOutcome:
        started = time.perf_counter()
        path = os.path.join(self.output_directory, file_name)
        tmp = path + ".tmp"

        with self.pool.lease() as wb:
            try:
                ws = wb.create_sheet(self.worksheet_name)
                rows = self._load(ws, result, token)
                if self.log:
                    self.log.step(process_id, "Rows loaded", f"{rows:,}")
                self._format(ws, len(result.columns), rows + 1)
                self._save(wb, tmp, path)
            except (BatchCancelled, ExportError):
                _discard(tmp)
                raise
            except Exception as e:
                _discard(tmp)
                raise WriteError(WRITE_FAILED, f"Could not build workbook: {e}", {"path": path}) from e

        elapsed = time.perf_counter() - started
        if self.log:
            self.log.file_save(process_id, path, elapsed)
        return WriteOutcome(path=path, rows_written=rows, elapsed=elapsed)

    # ---------- Steps ----------

    def _load(self, ws: Worksheet, result: QueryResult, token: Optional[CancellationToken]) -> int:
        ws.append(list(result.columns))
        rows = 0
        for row in result.rows:
            ws.append(list(row))
            rows += 1
            if token is not None and rows % self.chunk_size == 0:
                token.raise_if_cancelled()
        return rows

    def _format(self, ws: Worksheet, n_cols: int, last_row: int) -> None:
        if n_cols <= 0:
            return
        fmt = self.formatting
        body_font = Font(name=fmt.font_name, size=fmt.font_size)
        header_font = Font(name=fmt.font_name, size=fmt.font_size, bold=True)
        color = self.pool.color(fmt.header_background_color)
        header_fill = PatternFill(fill_type="solid", start_color=color, end_color=color)
        side = self.pool.border_side(fmt.border_style)
        border = Border(left=side, right=side, top=side, bottom=side) if side is not None else None
        wrap = Alignment(wrap_text=True) if fmt.wrap_text else None

        for row in ws.iter_rows(min_row=1, max_row=last_row, max_col=n_cols):
            for cell in row:
                if border is not None:
                    cell.border = border
                if wrap is not None:
                    cell.alignment = wrap
                if cell.row == 1:
                    cell.font = header_font
                    cell.fill = header_fill
                    continue
                cell.font = body_font
                col = cell.column
                if col in self._text_cols:
                    if cell.value is not None and not isinstance(cell.value, str):
                        cell.value = str(cell.value)
                    cell.number_format = TEXT_FORMAT
                elif col in self._date_cols:
                    cell.number_format = fmt.date_format

        if fmt.auto_fit_columns:
            self._auto_fit(ws, n_cols, min(last_row, fmt.auto_fit_sample_rows + 1))

    def _auto_fit(self, ws: Worksheet, n_cols: int, sample_last_row: int) -> None:
        widths: Dict[int, int] = {}
        for row in ws.iter_rows(min_row=1, max_row=sample_last_row, max_col=n_cols):
            for cell in row:
                if cell.value is None:
                    continue
                length = len(str(cell.value))
                if length > widths.get(cell.column, 0):
                    widths[cell.column] = length
        for col, length in widths.items():
            ws.column_dimensions[col_index_to_letters(col)].width = min(length + 2, MAX_AUTO_WIDTH)

    def _save(self, wb: Workbook, tmp: str, path: str) -> None:
        try:
            os.makedirs(self.output_directory, exist_ok=True)
            wb.save(tmp)
            os.replace(tmp, path)
        except PermissionError as e:
            raise WriteError(FILE_LOCKED, f"Permission denied: {e}", {"path": path}) from e
        except OSError as e:
            raise WriteError(SAVE_FAILED, f"Save failed: {e}", {"path": path}) from e


def _discard(path: str) -> None:
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError:
        pass  # best effort; the final name was never written
