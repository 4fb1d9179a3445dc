"""
combo_export/runner.py — Executes one combination end-to-end.

  query -> row-count decision -> (skip record | streaming write) -> result

Failures of a single combination are isolated here and returned as an
Errored result; only BatchCancelled escapes, to unwind the batch loop.
"""
from __future__ import annotations

import time
from datetime import datetime
from typing import Callable, Optional

from . import stringpool as sp
from .cancellation import CancellationToken
from .errors import BatchCancelled, ExportError
from .filenames import artifact_name, ensure_unique
from .gateway import DataGateway
from .models import BatchRequest, Combination, ExecutionResult, Outcome
from .modulelog import ModuleLogger
from .profiles import EXPORT, OperationProfile
from .skiplog import SkipLog
from .validator import ROW_LIMIT, RowDecision, classify_row_count
from .writer import StreamingWorkbookWriter


class CombinationExecutor:
    def __init__(
        self,
        gateway: DataGateway,
        writer: StreamingWorkbookWriter,
        log: ModuleLogger,
        skip_log: SkipLog,
        profile: OperationProfile = EXPORT,
        row_limit: int = ROW_LIMIT,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.gateway = gateway
        self.writer = writer
        self.log = log
        self.skip_log = skip_log
        self.profile = profile
        self.row_limit = row_limit
        self.clock = clock

    def execute(
        self,
        request: BatchRequest,
        combination: Combination,
        token: Optional[CancellationToken] = None,
    ) -> ExecutionResult:
        started = time.perf_counter()
        name = f"{self.profile.label} #{combination.sequence}"
        pid = self.log.process_start(name, {
            "period": str(request.period),
            **combination.as_dict(),
        })
        file_name = artifact_name(
            combination,
            request.period,
            self.profile.file_suffix,
            order=self.profile.filename_order,
            clock=self.clock,
        )

        try:
            with self.log.timer(pid, "Query"):
                result = self.gateway.execute(combination, request.query, request.period)
            with result:
                row_count = result.row_count
                self.log.step(pid, "Row count", f"{row_count:,}")
                decision = classify_row_count(row_count, self.row_limit)

                if decision is not RowDecision.PROCEED:
                    return self._skip(pid, name, request, combination, file_name, row_count, decision, started)

                file_name = ensure_unique(self.writer.output_directory, file_name)
                outcome = self.writer.write(result, file_name, token=token, process_id=pid)

            self.log.excel_result(pid, file_name, outcome.rows_written, outcome.elapsed)
            elapsed = time.perf_counter() - started
            self.log.process_complete(pid, name, elapsed, f"{sp.STATUS_COMPLETED} - {file_name}")
            return ExecutionResult(
                sequence=combination.sequence,
                outcome=Outcome.SUCCESS,
                row_count=outcome.rows_written,
                elapsed=elapsed,
                artifact_path=outcome.path,
                message=file_name,
            )

        except BatchCancelled:
            self.log.warning(sp.STATUS_CANCELLED, pid)
            self.log.process_complete(pid, name, time.perf_counter() - started, sp.STATUS_CANCELLED)
            raise

        except ExportError as e:
            self.log.error(f"{e} | Filters: {combination.describe()}", pid)
            return self._errored(pid, name, combination, started, e.message, e.code)

        except Exception as e:
            self.log.error(f"Unexpected failure | Filters: {combination.describe()}", pid, exc=e)
            return self._errored(pid, name, combination, started, str(e), None)

    # ---------- Outcomes ----------

    def _skip(
        self,
        pid: str,
        name: str,
        request: BatchRequest,
        combination: Combination,
        file_name: str,
        row_count: int,
        decision: RowDecision,
        started: float,
    ) -> ExecutionResult:
        reason = decision.value
        self.skip_log.record(combination, row_count, reason, request.period, process_id=pid)
        self.log.skipped(pid, file_name, row_count, reason)
        status = sp.STATUS_NO_DATA if decision is RowDecision.NO_DATA else sp.STATUS_ROW_LIMIT
        elapsed = time.perf_counter() - started
        self.log.process_complete(pid, name, elapsed, status)
        outcome = Outcome.NO_DATA if decision is RowDecision.NO_DATA else Outcome.ROW_LIMIT_EXCEEDED
        return ExecutionResult(
            sequence=combination.sequence,
            outcome=outcome,
            row_count=row_count,
            elapsed=elapsed,
            message=status,
        )

    def _errored(
        self,
        pid: str,
        name: str,
        combination: Combination,
        started: float,
        message: str,
        code: Optional[str],
    ) -> ExecutionResult:
        elapsed = time.perf_counter() - started
        self.log.process_complete(pid, name, elapsed, f"{sp.STATUS_FAILED} - {message}")
        return ExecutionResult(
            sequence=combination.sequence,
            outcome=Outcome.ERRORED,
            elapsed=elapsed,
            message=message,
            error_code=code,
        )
