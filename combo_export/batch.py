"""
combo_export/batch.py — Batch execution coordinator.

Responsible for:
  - Rejecting malformed batch input before any combination runs
  - Walking every combination in enumeration order, strictly sequentially
  - Checking cancellation before each combination
  - Tallying one outcome per processed combination
  - Emitting optional progress callbacks
  - Writing the skip-log summary for batches that ran to the end
  - Trimming the shared string pool once the batch is over

This module has NO knowledge of querying or writing — it delegates each
combination to runner.CombinationExecutor.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from .cancellation import CancellationToken
from .combinations import count_combinations, enumerate_combinations
from .errors import BatchCancelled, ValidationError, MISSING_QUERY_OBJECT
from .gateway import DataGateway
from .models import BatchRequest, BatchSummary, ExecutionResult, Outcome
from .modulelog import ModuleLogger
from .results import ResultAggregator, format_rate
from .runner import CombinationExecutor
from .skiplog import SkipLog
from .stringpool import StringPool


ProgressCallback = Callable[[str, Any], None]
"""on_progress(event, payload); events: start, status, result, cancelled, done"""


class BatchRunner:
    def __init__(
        self,
        executor: CombinationExecutor,
        gateway: Optional[DataGateway] = None,
        log: Optional[ModuleLogger] = None,
        skip_log: Optional[SkipLog] = None,
        operation: str = "Export",
        string_pool: Optional[StringPool] = None,
    ) -> None:
        self.executor = executor
        self.string_pool = string_pool
        self.gateway = gateway
        self.log = log
        self.skip_log = skip_log
        self.operation = operation

    def validate(self, request: BatchRequest) -> None:
        """Raise ValidationError for input that must never start a batch."""
        request.period.validate()
        if self.gateway is not None:
            missing = self.gateway.missing_objects(request.query)
            if missing:
                raise ValidationError(
                    MISSING_QUERY_OBJECT,
                    f"Missing database objects: {', '.join(missing)}",
                    {"missing": missing},
                )

    def run(
        self,
        request: BatchRequest,
        token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchSummary:
        """
        Execute every combination of request.dimensions and return the
        summary. A cancelled batch stops before the next combination; the
        combination that observed cancellation is tallied as Cancelled.
        """

        def _emit(event: str, payload: Any) -> None:
            if on_progress is not None:
                try:
                    on_progress(event, payload)
                except Exception:
                    pass  # Progress callbacks must never break execution.

        self.validate(request)
        token = token or CancellationToken()
        total = count_combinations(request.dimensions)
        agg = ResultAggregator(self.operation, on_status=lambda text: _emit("status", text))

        if self.log:
            self.log.info(
                f"{self.operation} batch started: {total} combinations, "
                f"period {request.period}, view {request.query.view_name}"
            )
        _emit("start", {"total": total, "period": str(request.period)})

        cancelled = False
        for combination in enumerate_combinations(request.dimensions):
            if token.is_cancelled:
                cancelled = True
                break
            agg.begin(combination.sequence)
            try:
                result = self.executor.execute(request, combination, token)
            except BatchCancelled as e:
                result = ExecutionResult(
                    sequence=combination.sequence,
                    outcome=Outcome.CANCELLED,
                    message=e.message,
                )
                cancelled = True
            agg.record(result)
            _emit("result", result)
            if cancelled:
                break

        summary = agg.summary(cancelled=cancelled, total_combinations=total)
        self._log_summary(summary)
        self._trim_strings()
        if cancelled:
            _emit("cancelled", summary)
        _emit("done", summary)
        return summary

    def _trim_strings(self) -> None:
        if self.string_pool is None:
            return
        removed = self.string_pool.trim()
        if removed and self.log:
            self.log.debug(f"String pool trimmed: {removed} entries released")

    def _log_summary(self, summary: BatchSummary) -> None:
        c = summary.counters
        if self.log:
            self.log.info(summary.status_line)
        if summary.cancelled or self.skip_log is None:
            return
        self.skip_log.summary(
            total=summary.total_combinations,
            generated=c.generated,
            skipped=c.skipped,
            success_rate=format_rate(summary.success_rate),
            errored=c.errored,
        )
