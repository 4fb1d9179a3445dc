"""
test_services.py — ExportServices wiring against a SQLite database.

Covers:
  - build_request: profile order, wildcards for missing dimensions, validation
  - a full run producing files, the daily process log and the skip log
  - stdlib logging bridge into the process log
  - import profile naming
"""
from __future__ import annotations

import glob
import logging
import os
from datetime import datetime
from tempfile import TemporaryDirectory

import pytest
import sqlalchemy as sa

from combo_export.errors import ValidationError, INVALID_FILTER, INVALID_PERIOD
from combo_export.profiles import EXPORT, IMPORT
from combo_export.services import ExportServices
from combo_export.settings import AppSettings, DatabaseSettings, FileSettings, OperationSettings


# ══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ══════════════════════════════════════════════════════════════════════════════

def _make_db(path):
    engine = sa.create_engine("sqlite:///" + path)
    with engine.begin() as conn:
        conn.execute(sa.text("CREATE TABLE EXPDATA (Id INTEGER, Port TEXT, HsCode TEXT, Month TEXT)"))
        conn.execute(
            sa.text("INSERT INTO EXPDATA VALUES (:i, :p, :h, :m)"),
            [
                {"i": 1, "p": "INNSA1", "h": "8471", "m": "202401"},
                {"i": 2, "p": "INNSA1", "h": "8473", "m": "202402"},
                {"i": 3, "p": "INMAA1", "h": "8471", "m": "202401"},
            ],
        )
        conn.execute(sa.text("CREATE VIEW EXPVIEW AS SELECT * FROM EXPDATA"))
    engine.dispose()


def _settings(td):
    db = os.path.join(td, "trade.db")
    _make_db(db)
    return AppSettings(
        database=DatabaseSettings(
            url="sqlite:///" + db,
            command_timeout_seconds=5,
            filter_columns={"port": "Port", "hs_code": "HsCode"},
            period_column="Month",
        ),
        operation=OperationSettings(view_name="EXPVIEW", order_by_column="Id"),
        files=FileSettings(output_directory=os.path.join(td, "out"), log_directory=os.path.join(td, "logs")),
    )


def _clock():
    return datetime(2024, 4, 1, 8, 0, 0)


def _read(directory, prefix):
    text = ""
    for path in sorted(glob.glob(os.path.join(directory, f"{prefix}_*.txt"))):
        with open(path, encoding="utf-8") as f:
            text += f.read()
    return text


# ══════════════════════════════════════════════════════════════════════════════
# REQUESTS
# ══════════════════════════════════════════════════════════════════════════════

def test_build_request_uses_profile_order_and_wildcards():
    with TemporaryDirectory() as td:
        with ExportServices(_settings(td)) as services:
            req = services.build_request("202401", "202403", {"hs_code": "8471, 8473", "port": "INNSA1"})
        assert req.dimensions.names == list(EXPORT.dimensions)
        assert req.dimensions.dimensions[0].values == ("INNSA1",)
        assert req.dimensions.dimensions[1].values == ("8471", "8473")
        assert req.dimensions.dimensions[2].values == ("%",)
        assert req.query.view_name == "EXPVIEW"
        assert req.query.order_by == "Id"


def test_build_request_rejects_unknown_filter_and_bad_period():
    with TemporaryDirectory() as td:
        with ExportServices(_settings(td)) as services:
            with pytest.raises(ValidationError) as ei:
                services.build_request("202401", "202401", {"importer": "X"})
            assert ei.value.code == INVALID_FILTER
            with pytest.raises(ValidationError) as ei:
                services.build_request("202402", "202401", {})
            assert ei.value.code == INVALID_PERIOD


# ══════════════════════════════════════════════════════════════════════════════
# FULL RUN
# ══════════════════════════════════════════════════════════════════════════════

def test_full_export_run():
    with TemporaryDirectory() as td:
        settings = _settings(td)
        with ExportServices(settings, clock=_clock) as services:
            req = services.build_request("202401", "202403", {"port": "INNSA1,INMAA1,NOWHERE"})
            summary = services.runner.run(req)

        c = summary.counters
        assert (c.processed, c.generated, c.skipped_no_data) == (3, 2, 1)
        assert sorted(os.listdir(settings.files.output_directory)) == [
            "INMAA1_JAN24-MAR24EXP_20240401_080000.xlsx",
            "INNSA1_JAN24-MAR24EXP_20240401_080000.xlsx",
        ]
        log_dir = settings.files.log_directory
        process_log = _read(log_dir, "Export_Log")
        assert "PROCESS START: Excel Export Generation #1" in process_log
        assert "[P0003]" in process_log
        skip_log = _read(log_dir, "Export_SkippedDatasets")
        assert "port: NOWHERE" in skip_log
        assert "Success Rate: 66.7%" in skip_log


def test_missing_view_fails_validation():
    with TemporaryDirectory() as td:
        settings = _settings(td)
        settings.operation.view_name = "NOPE"
        with ExportServices(settings) as services:
            req = services.build_request("202401", "202401", {})
            with pytest.raises(ValidationError):
                services.runner.run(req)


def test_import_profile_names():
    with TemporaryDirectory() as td:
        settings = _settings(td)
        with ExportServices(settings, profile=IMPORT, clock=_clock) as services:
            req = services.build_request("202401", "202401", {"port": "INNSA1"})
            summary = services.runner.run(req)
        assert summary.counters.generated == 1
        assert os.listdir(settings.files.output_directory) == ["INNSA1_JAN24IMP_20240401_080000.xlsx"]
        assert _read(settings.files.log_directory, "Import_Log") != ""


def test_stdlib_logging_bridge():
    with TemporaryDirectory() as td:
        settings = _settings(td)
        with ExportServices(settings) as services:
            services.attach_logging()
            services.cancellation.start_operation("Export")
            services.cancellation.complete_operation()
        assert "Operation started: Export" in _read(settings.files.log_directory, "Export_Log")
        assert not any(
            type(h).__name__ == "AsyncLogHandler" for h in logging.getLogger("combo_export").handlers
        )
