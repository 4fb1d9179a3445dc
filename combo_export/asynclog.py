"""
combo_export/asynclog.py — Non-blocking, batched, daily-rolling log files.

Responsible for:
  - Accepting LogEntries from any thread without blocking or raising
  - One background consumer that drains in batches and appends each batch
    to <prefix>_<YYYYMMDD><ext> in a single write
  - Rolling to a new file when an entry's date differs from the open file's
  - Counting every entry it could not write (full queue, closed writer,
    I/O failure) instead of propagating
  - Draining everything still queued on close()

AsyncLogHandler routes stdlib logging records into a writer so that
module loggers and the process log share one daily file.
"""
from __future__ import annotations

import enum
import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, TextIO, Union

from .stringpool import StringPool


logger = logging.getLogger(__name__)


class LogLevel(enum.IntEnum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: Union[str, int, "LogLevel"]) -> "LogLevel":
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            for level in reversed(list(cls)):
                if value >= level:
                    return level
            return cls.DEBUG
        name = (value or "").strip().upper()
        if name == "WARN":
            name = "WARNING"
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown log level: {value!r}") from None


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: LogLevel
    message: str
    correlation_id: str = ""
    module: str = ""


def format_entry(entry: LogEntry) -> str:
    """[2024-01-05 09:30:00.123] INFO  [P0001] [Export] message"""
    ts = entry.timestamp
    stamp = f"{ts:%Y-%m-%d %H:%M:%S}.{ts.microsecond // 1000:03d}"
    return f"[{stamp}] {entry.level.name:<5} [{entry.correlation_id}] [{entry.module}] {entry.message}"


def raw_message(entry: LogEntry) -> str:
    return entry.message


# ── Timestamp cache ──────────────────────────────────────────────────────────

class TimestampCache:
    """
    Reads the wall clock at most once per refresh window; in between,
    returns the cached wall time advanced by the monotonic offset.
    """

    def __init__(
        self,
        refresh_ms: float = 50,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.refresh_ms = refresh_ms
        self._clock = clock
        self._monotonic = monotonic
        self.refreshes = 0
        # (wall time, monotonic reading) swapped as one reference
        self._base = self._read()

    def _read(self):
        self.refreshes += 1
        return self._clock(), self._monotonic()

    def now(self) -> datetime:
        wall, mono = self._base
        m = self._monotonic()
        elapsed = m - mono
        if elapsed * 1000.0 > self.refresh_ms or elapsed < 0:
            self._base = self._read()
            return self._base[0]
        return wall + timedelta(seconds=elapsed)


# ── Writer ───────────────────────────────────────────────────────────────────

class AsyncLogWriter:
    def __init__(
        self,
        directory: str,
        prefix: str,
        extension: str = ".txt",
        batch_size: int = 200,
        idle_wait: float = 0.1,
        max_queue_size: int = 100000,
        min_level: Union[str, int, LogLevel] = LogLevel.INFO,
        formatter: Callable[[LogEntry], str] = format_entry,
        string_pool: Optional[StringPool] = None,
        timestamps: Optional[TimestampCache] = None,
        autostart: bool = True,
    ) -> None:
        self.directory = directory
        self.prefix = prefix
        self.extension = extension
        self.batch_size = max(1, batch_size)
        self.idle_wait = idle_wait
        self.max_queue_size = max_queue_size
        self.min_level = LogLevel.parse(min_level)
        self.formatter = formatter
        self.string_pool = string_pool if string_pool is not None else StringPool()
        self.timestamps = timestamps if timestamps is not None else TimestampCache()

        self._queue: "queue.SimpleQueue[LogEntry]" = queue.SimpleQueue()
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._closed = False
        # guards the closed check and the put so nothing lands after the final drain
        self._accept_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

        self._fh: Optional[TextIO] = None
        self._file_date: Optional[date] = None

        self.enqueued = 0
        self.written = 0
        self.dropped = 0
        self._stats_lock = threading.Lock()

        if autostart:
            self.start()

    # ---------- Lifecycle ----------

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name=f"log-writer-{self.prefix}", daemon=True
        )
        self._thread.start()

    def close(self, timeout: float = 5.0) -> None:
        with self._accept_lock:
            if self._closed:
                return
            self._closed = True
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
        if self._thread is None or not self._thread.is_alive():
            # Consumer never started: write what is queued here
            leftover = self._drain(limit=None)
            if leftover:
                self._write_batch(leftover)
            self._close_file()

    def __enter__(self) -> "AsyncLogWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    # ---------- Producers ----------

    def log(
        self,
        level: Union[str, int, LogLevel],
        message: str,
        correlation_id: str = "",
        module: str = "",
    ) -> bool:
        try:
            lvl = LogLevel.parse(level)
            if lvl < self.min_level:
                return False
            entry = LogEntry(
                timestamp=self.timestamps.now(),
                level=lvl,
                message=message,
                correlation_id=correlation_id,
                module=self.string_pool.get(module),
            )
        except Exception:
            self._count_dropped(1)
            return False
        return self.enqueue(entry)

    def enqueue(self, entry: LogEntry) -> bool:
        """Never blocks, never raises. False means filtered or dropped."""
        try:
            if entry.level < self.min_level:
                return False
            with self._accept_lock:
                if self._closed or self._queue.qsize() >= self.max_queue_size:
                    self._count_dropped(1)
                    return False
                self._queue.put_nowait(entry)
            with self._stats_lock:
                self.enqueued += 1
            if self._queue.qsize() >= self.batch_size:
                self._wake.set()
            return True
        except Exception:
            self._count_dropped(1)
            return False

    def _count_dropped(self, n: int) -> None:
        with self._stats_lock:
            self.dropped += n

    # ---------- Consumer ----------

    def _run(self) -> None:
        while not self._stop.is_set():
            batch = self._drain(self.batch_size)
            if batch:
                self._write_batch(batch)
                continue
            self._wake.wait(self.idle_wait)
            self._wake.clear()
        while True:
            batch = self._drain(self.batch_size)
            if not batch:
                break
            self._write_batch(batch)
        self._close_file()

    def _drain(self, limit: Optional[int]) -> List[LogEntry]:
        batch: List[LogEntry] = []
        while limit is None or len(batch) < limit:
            try:
                batch.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return batch

    def _write_batch(self, batch: List[LogEntry]) -> None:
        buf: List[str] = []
        for entry in batch:
            day = entry.timestamp.date()
            if day != self._file_date:
                self._flush(buf)
                buf = []
                self._roll(day)
            try:
                buf.append(self.formatter(entry) + "\n")
            except Exception:
                self._count_dropped(1)
        self._flush(buf)

    def _flush(self, buf: List[str]) -> None:
        if not buf:
            return
        if self._fh is None:
            self._count_dropped(len(buf))
            return
        try:
            self._fh.write("".join(buf))
            self._fh.flush()
            self.written += len(buf)
        except Exception as e:
            self._count_dropped(len(buf))
            logger.debug("Log write failed for %s: %s", self.prefix, e)

    def _roll(self, day: date) -> None:
        self._close_file()
        try:
            os.makedirs(self.directory, exist_ok=True)
            self._fh = open(self.path_for(day), "a", encoding="utf-8")
            self._file_date = day
        except Exception as e:
            self._fh = None
            self._file_date = None
            logger.debug("Log file open failed for %s: %s", self.prefix, e)

    def _close_file(self) -> None:
        fh, self._fh = self._fh, None
        self._file_date = None
        if fh is None:
            return
        try:
            fh.flush()
            fh.close()
        except Exception as e:
            logger.debug("Log file close failed for %s: %s", self.prefix, e)

    # ---------- Introspection ----------

    def path_for(self, day: date) -> str:
        return os.path.join(self.directory, f"{self.prefix}_{day:%Y%m%d}{self.extension}")

    def statistics(self) -> Dict[str, int]:
        return {
            "total": self.enqueued,
            "written": self.written,
            "dropped": self.dropped,
            "queued": self._queue.qsize(),
            "pooled_strings": len(self.string_pool),
            "template_hits": self.string_pool.template_hits,
        }


# ── stdlib logging bridge ────────────────────────────────────────────────────

class AsyncLogHandler(logging.Handler):
    """
    logging.Handler that enqueues records into an AsyncLogWriter. Records
    from this module are ignored so writer diagnostics cannot loop back.
    """

    def __init__(self, writer: AsyncLogWriter, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.writer = writer

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == __name__:
            return
        try:
            message = self.format(record) if self.formatter else record.getMessage()
            self.writer.log(
                LogLevel.parse(record.levelno),
                message,
                correlation_id=getattr(record, "correlation_id", ""),
                module=record.name,
            )
        except Exception:
            self.handleError(record)
