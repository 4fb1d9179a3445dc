"""
combo_export/settings.py — Typed application configuration.

Populated once at startup (from JSON or a dict) and passed into the
service graph. Nothing below reads configuration lazily.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union, get_args, get_origin, get_type_hints

from .errors import ValidationError, INVALID_SETTINGS


ENV_OUTPUT_DIR = "COMBO_EXPORT_OUTPUT_DIR"
ENV_LOG_DIR = "COMBO_EXPORT_LOG_DIR"


@dataclass
class DatabaseSettings:
    url: str = "sqlite://"
    command_timeout_seconds: int = 300
    stream_batch_size: int = 5000
    # dimension name -> view column; dimensions without an entry are passed
    # to the procedure only
    filter_columns: Dict[str, str] = field(default_factory=dict)
    period_column: Optional[str] = None


@dataclass
class OperationSettings:
    view_name: str = "EXPDATA"
    procedure_name: Optional[str] = None
    order_by_column: Optional[str] = None
    worksheet_name: str = "Export Data"


@dataclass
class FileSettings:
    output_directory: str = "exports"
    log_directory: str = "logs"


@dataclass
class FormatSettings:
    font_name: str = "Times New Roman"
    font_size: int = 10
    header_background_color: str = "#4F81BD"
    border_style: str = "thin"            # thin | medium | thick | none
    date_format: str = "dd-mm-yyyy"
    date_columns: List[Union[int, str]] = field(default_factory=list)
    text_columns: List[Union[int, str]] = field(default_factory=list)
    wrap_text: bool = False
    auto_fit_columns: bool = True
    auto_fit_sample_rows: int = 100


@dataclass
class PerformanceSettings:
    chunk_size: int = 25000
    enable_object_pooling: bool = True
    pool_capacity: int = 5
    log_batch_size: int = 200
    log_flush_interval_ms: int = 3000
    log_level_threshold: str = "INFO"
    enable_string_pooling: bool = True
    timestamp_refresh_ms: int = 50
    max_log_queue: int = 100000


@dataclass
class AppSettings:
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    operation: OperationSettings = field(default_factory=OperationSettings)
    files: FileSettings = field(default_factory=FileSettings)
    formatting: FormatSettings = field(default_factory=FormatSettings)
    performance: PerformanceSettings = field(default_factory=PerformanceSettings)

    # ---------- Serialization ----------

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        settings = cls(
            database=_section(DatabaseSettings, data.get("database")),
            operation=_section(OperationSettings, data.get("operation")),
            files=_section(FileSettings, data.get("files")),
            formatting=_section(FormatSettings, data.get("formatting")),
            performance=_section(PerformanceSettings, data.get("performance")),
        )
        settings.apply_env()
        settings.validate()
        return settings

    # ---------- File IO ----------

    def save_json(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_json(cls, path: str) -> "AppSettings":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    # ---------- Overrides / checks ----------

    def apply_env(self, project_root: Optional[str] = None) -> None:
        """
        Environment overrides for directories. Relative values resolve
        against project_root (or the working directory).
        """
        out = os.getenv(ENV_OUTPUT_DIR)
        if out:
            self.files.output_directory = _resolve(out, project_root)
        logs = os.getenv(ENV_LOG_DIR)
        if logs:
            self.files.log_directory = _resolve(logs, project_root)

    def validate(self) -> None:
        perf = self.performance
        if perf.chunk_size <= 0:
            raise ValidationError(INVALID_SETTINGS, f"chunk_size must be >= 1, got {perf.chunk_size}")
        if perf.pool_capacity < 0:
            raise ValidationError(INVALID_SETTINGS, f"pool_capacity must be >= 0, got {perf.pool_capacity}")
        if perf.log_batch_size <= 0:
            raise ValidationError(INVALID_SETTINGS, f"log_batch_size must be >= 1, got {perf.log_batch_size}")
        if self.database.command_timeout_seconds <= 0:
            raise ValidationError(
                INVALID_SETTINGS,
                f"command_timeout_seconds must be >= 1, got {self.database.command_timeout_seconds}",
            )
        if not (self.operation.view_name or "").strip():
            raise ValidationError(INVALID_SETTINGS, "operation.view_name is required")


def _section(cls, data: Optional[Dict[str, Any]]):
    if not data:
        return cls()
    if not isinstance(data, dict):
        raise ValidationError(INVALID_SETTINGS, f"{cls.__name__} must be an object, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValidationError(
            INVALID_SETTINGS,
            f"Unknown {cls.__name__} keys: {', '.join(unknown)}",
            {"keys": unknown},
        )
    hints = get_type_hints(cls)
    wrong = sorted(k for k, v in data.items() if not _matches(v, hints[k]))
    if wrong:
        raise ValidationError(
            INVALID_SETTINGS,
            f"Wrong value type for {cls.__name__}: "
            + ", ".join(f"{k}={data[k]!r}" for k in wrong),
            {"keys": wrong},
        )
    return cls(**data)


def _matches(value: Any, hint: Any) -> bool:
    origin = get_origin(hint)
    if origin is Union:
        return any(_matches(value, arg) for arg in get_args(hint))
    if origin is not None:
        return isinstance(value, origin)
    if hint is type(None):
        return value is None
    # bool is an int subclass; keep the two apart
    if hint is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, hint)


def _resolve(value: str, project_root: Optional[str]) -> str:
    p = Path(value)
    if not p.is_absolute():
        base = Path(project_root) if project_root else Path.cwd()
        p = base / p
    return str(p)
