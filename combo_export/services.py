"""
combo_export/services.py — Builds the export object graph from AppSettings.

Everything is constructed once here and passed down explicitly; no module
keeps global state. close() shuts the log writers down (draining them),
empties the workbook pool and disposes the engine it created.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Mapping, Optional

from sqlalchemy.engine import Engine

from .asynclog import AsyncLogHandler, AsyncLogWriter, LogLevel, TimestampCache, raw_message
from .batch import BatchRunner
from .cancellation import CancellationManager
from .errors import ValidationError, INVALID_FILTER
from .gateway import DataGateway, SqlGateway, build_engine
from .models import BatchRequest, FilterDimension, FilterDimensionSet, MonthRange, QueryObjects
from .modulelog import ModuleLogger
from .parsing import parse_filter_list
from .pool import WorkbookPool
from .profiles import EXPORT, OperationProfile
from .runner import CombinationExecutor
from .settings import AppSettings
from .skiplog import SkipLog
from .stringpool import StringPool
from .writer import StreamingWorkbookWriter


PACKAGE_LOGGER = "combo_export"


class ExportServices:
    def __init__(
        self,
        settings: AppSettings,
        profile: OperationProfile = EXPORT,
        engine: Optional[Engine] = None,
        gateway: Optional[DataGateway] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings
        self.profile = profile
        perf = settings.performance
        log_dir = settings.files.log_directory

        self.string_pool = StringPool(enabled=perf.enable_string_pooling)
        self.timestamps = TimestampCache(refresh_ms=perf.timestamp_refresh_ms)
        idle_wait = min(100.0, perf.log_flush_interval_ms / 10.0) / 1000.0

        self.log_writer = AsyncLogWriter(
            log_dir,
            profile.log_prefix,
            batch_size=perf.log_batch_size,
            idle_wait=idle_wait,
            max_queue_size=perf.max_log_queue,
            min_level=perf.log_level_threshold,
            string_pool=self.string_pool,
            timestamps=self.timestamps,
        )
        self.skip_writer = AsyncLogWriter(
            log_dir,
            profile.skip_log_prefix,
            batch_size=perf.log_batch_size,
            idle_wait=idle_wait,
            max_queue_size=perf.max_log_queue,
            min_level=LogLevel.DEBUG,
            formatter=raw_message,
            string_pool=self.string_pool,
            timestamps=self.timestamps,
        )
        self.log = ModuleLogger(self.log_writer, profile.name)
        self.skip_log = SkipLog(self.skip_writer, profile.name)

        self.pool = WorkbookPool(capacity=perf.pool_capacity, enabled=perf.enable_object_pooling)

        self._owns_engine = False
        if gateway is None:
            if engine is None:
                engine = build_engine(settings.database.url, settings.database.command_timeout_seconds)
                self._owns_engine = True
            gateway = SqlGateway(
                engine,
                filter_columns=settings.database.filter_columns,
                period_column=settings.database.period_column,
                procedure_params=profile.procedure_params,
                stream_batch_size=settings.database.stream_batch_size,
            )
        self.engine = engine
        self.gateway = gateway

        self.writer = StreamingWorkbookWriter(
            self.pool,
            settings.files.output_directory,
            formatting=settings.formatting,
            worksheet_name=settings.operation.worksheet_name,
            chunk_size=perf.chunk_size,
            log=self.log,
        )
        self.executor = CombinationExecutor(
            self.gateway, self.writer, self.log, self.skip_log, profile=profile, clock=clock
        )
        self.runner = BatchRunner(
            self.executor,
            gateway=self.gateway,
            log=self.log,
            skip_log=self.skip_log,
            operation=profile.name,
            string_pool=self.string_pool,
        )
        self.cancellation = CancellationManager()
        self._handler: Optional[AsyncLogHandler] = None

    # ---------- Requests ----------

    def build_request(self, from_month: str, to_month: str, filters: Mapping[str, str]) -> BatchRequest:
        """
        Raw text per dimension -> BatchRequest, in the profile's dimension
        order. Dimensions missing from filters take the wildcard.
        """
        unknown = sorted(set(filters) - set(self.profile.dimensions))
        if unknown:
            raise ValidationError(
                INVALID_FILTER,
                f"Unknown {self.profile.name} filters: {', '.join(unknown)}",
                {"filters": unknown},
            )
        dims = FilterDimensionSet(tuple(
            FilterDimension(name, tuple(parse_filter_list(filters.get(name, ""))))
            for name in self.profile.dimensions
        ))
        op = self.settings.operation
        request = BatchRequest(
            period=MonthRange(from_month.strip(), to_month.strip()),
            dimensions=dims,
            query=QueryObjects(op.view_name, op.procedure_name, op.order_by_column),
        )
        request.period.validate()
        return request

    # ---------- stdlib logging ----------

    def attach_logging(self, level: int = logging.INFO, name: str = PACKAGE_LOGGER) -> AsyncLogHandler:
        """Route the package's module loggers into the daily process log."""
        if self._handler is None:
            self._handler = AsyncLogHandler(self.log_writer, level=level)
            pkg = logging.getLogger(name)
            if pkg.level == logging.NOTSET:
                pkg.setLevel(level)
            pkg.addHandler(self._handler)
        return self._handler

    def detach_logging(self, name: str = PACKAGE_LOGGER) -> None:
        if self._handler is not None:
            logging.getLogger(name).removeHandler(self._handler)
            self._handler = None

    # ---------- Lifecycle ----------

    def close(self) -> None:
        self.detach_logging()
        self.log_writer.close()
        self.skip_writer.close()
        self.pool.clear()
        if self._owns_engine and self.engine is not None:
            self.engine.dispose()

    def __enter__(self) -> "ExportServices":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
