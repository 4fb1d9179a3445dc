"""
combo_export/results.py — Outcome tallies and the texts shown when a batch ends.

Single writer: only the batch worker calls begin()/record(). The UI sees
snapshots handed over through its dispatcher.
"""
from __future__ import annotations

from typing import Callable, List, Optional

from .models import BatchSummary, ExecutionResult, Outcome, ProcessingCounters


def format_rate(rate: float) -> str:
    """50.0 -> '50%', 33.333 -> '33.3%'."""
    text = f"{rate:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text}%"


def success_rate(counters: ProcessingCounters) -> float:
    if counters.processed == 0:
        return 0.0
    return counters.generated / counters.processed * 100.0


def status_line(counters: ProcessingCounters, cancelled: bool, operation: str = "Export") -> str:
    c = counters
    if cancelled:
        return f"{operation} cancelled - {c.generated} files generated before cancellation"

    skipped = c.skipped
    errors = f", {c.errored} failed" if c.errored else ""
    if c.generated == 0:
        if c.processed == 0:
            return "Complete: No combinations to process"
        if c.errored == 0 and c.skipped_row_limit == 0:
            return "Complete: No files generated - all combinations had no data"
        if c.errored == 0 and c.skipped_no_data == 0:
            return "Complete: No files generated - all combinations exceeded row limits"
        if c.errored == c.processed:
            return f"Complete: No files generated - all {c.errored} combinations failed"
        return (
            f"Complete: No files generated - {c.skipped_no_data} no data, "
            f"{c.skipped_row_limit} over limits{errors}"
        )
    if skipped == 0 and c.errored == 0:
        return f"Complete: {c.generated} files generated successfully"
    if skipped == 0:
        return f"Complete: {c.generated} files{errors}"
    return (
        f"Complete: {c.generated} files, {skipped} skipped "
        f"({c.skipped_no_data} no data, {c.skipped_row_limit} over limits){errors}"
    )


def completion_text(counters: ProcessingCounters, cancelled: bool, operation: str = "Export") -> str:
    c = counters
    rate = format_rate(success_rate(c))
    if cancelled:
        lines = [f"{operation} cancelled - {c.generated} files generated before cancellation", ""]
    else:
        lines = [f"{operation} completed successfully!", ""]
    lines += [
        f"Files generated: {c.generated}",
        f"Total combinations processed: {c.processed}",
    ]
    if c.skipped:
        lines.append(f"Combinations skipped: {c.skipped}")
        if c.skipped_no_data:
            lines.append(f"  - No data: {c.skipped_no_data}")
        if c.skipped_row_limit:
            lines.append(f"  - Exceeded row limit: {c.skipped_row_limit}")
    if c.errored:
        lines.append(f"Combinations failed: {c.errored}")
    if c.cancelled:
        lines.append(f"Combinations cancelled: {c.cancelled}")
    lines.append("")
    lines.append(f"Operation {'stopped' if cancelled else 'completed'} with {rate} success rate.")
    return "\n".join(lines)


class ResultAggregator:
    def __init__(
        self,
        operation: str = "Export",
        on_status: Optional[Callable[[str], None]] = None,
        keep_results: bool = True,
    ) -> None:
        self.operation = operation
        self.on_status = on_status
        self.keep_results = keep_results
        self.counters = ProcessingCounters()
        self.results: List[ExecutionResult] = []

    def begin(self, sequence: int) -> str:
        text = f"Processing {self.operation} combination {sequence}..."
        if self.on_status is not None:
            try:
                self.on_status(text)
            except Exception:
                pass  # Status callbacks must never break execution.
        return text

    def record(self, result: ExecutionResult) -> None:
        self.counters.add(Outcome(result.outcome))
        if self.keep_results:
            self.results.append(result)

    def summary(self, cancelled: bool, total_combinations: int = 0) -> BatchSummary:
        counters = self.counters.snapshot()
        return BatchSummary(
            counters=counters,
            cancelled=cancelled,
            success_rate=success_rate(counters),
            status_line=status_line(counters, cancelled, self.operation),
            text=completion_text(counters, cancelled, self.operation),
            total_combinations=total_combinations,
            results=list(self.results),
        )
