"""
combo_export/skiplog.py — Daily record of combinations that produced no file.

Each skipped combination becomes one multi-line block (kept together as a
single queued entry), and a processing summary block closes the batch.
"""
from __future__ import annotations

from typing import Optional

from . import stringpool as sp
from .asynclog import AsyncLogWriter, LogLevel
from .models import Combination, MonthRange
from .validator import ROW_LIMIT


REASON_NO_DATA = "NoData"
REASON_ROW_LIMIT = "RowLimit"


class SkipLog:
    def __init__(self, writer: AsyncLogWriter, operation: str = "Export") -> None:
        self.writer = writer
        self.operation = operation

    def _stamp(self) -> str:
        return f"{self.writer.timestamps.now():%Y-%m-%d %H:%M:%S}"

    def record(
        self,
        combination: Combination,
        row_count: int,
        reason: str,
        period: MonthRange,
        process_id: str = "",
    ) -> None:
        if reason == REASON_ROW_LIMIT:
            rows = f"{row_count:,} (Exceeds Excel limit of {ROW_LIMIT:,})"
        elif row_count == 0:
            rows = "0 (No data returned)"
        else:
            rows = f"{row_count:,}"
        lines = [
            f"[{self._stamp()}] SKIPPED DATASET - {self.operation.upper()}",
            f"Combination Number: {combination.sequence}",
            f"Row Count: {rows}",
            f"Reason: {reason}",
            f"Period: {period.from_month} to {period.to_month}",
            "Filters:",
        ]
        lines.extend(f"  {name}: {value}" for name, value in combination.values)
        lines.append(sp.SEPARATOR_LIGHT)
        self.writer.log(LogLevel.WARNING, "\n".join(lines), correlation_id=process_id, module=self.operation)

    def summary(
        self,
        total: int,
        generated: int,
        skipped: int,
        success_rate: str,
        errored: Optional[int] = None,
    ) -> None:
        lines = [
            sp.SEPARATOR_HEAVY,
            f"[{self._stamp()}] PROCESSING SUMMARY - {self.operation.upper()}",
            f"Total Combinations: {total}",
            f"Files Generated: {generated}",
            f"Combinations Skipped: {skipped}",
        ]
        if errored:
            lines.append(f"Combinations Failed: {errored}")
        lines.append(f"Success Rate: {success_rate}")
        lines.append(sp.SEPARATOR_HEAVY)
        self.writer.log(LogLevel.INFO, "\n".join(lines), module=self.operation)
