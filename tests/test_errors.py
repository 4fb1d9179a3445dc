"""
test_errors.py — ExportError shape, taxonomy and friendly messages.
"""
from __future__ import annotations

from combo_export.errors import (
    BatchCancelled,
    DataAccessError,
    ExportError,
    ValidationError,
    WriteError,
    FILE_LOCKED,
    INVALID_PERIOD,
    MISSING_QUERY_OBJECT,
    QUERY_TIMEOUT,
    SAVE_FAILED,
    friendly_message,
)


def test_export_error_str_includes_code_message():
    e = ExportError("X", "Nope")
    assert str(e).startswith("X: Nope")


def test_export_error_str_includes_details_when_present():
    e = ExportError("X", "Nope", {"a": 1})
    s = str(e)
    assert "X: Nope" in s
    assert "a" in s


def test_subclasses_share_shape():
    for cls in (ValidationError, DataAccessError, WriteError):
        e = cls("CODE", "msg", {"k": "v"})
        assert isinstance(e, ExportError)
        assert e.code == "CODE"
        assert e.details == {"k": "v"}


def test_batch_cancelled_is_not_an_export_error():
    e = BatchCancelled()
    assert not isinstance(e, ExportError)
    assert e.message == "Cancelled by user"


def test_friendly_file_locked_names_file():
    e = WriteError(FILE_LOCKED, "denied", {"path": "/tmp/out/ALL_JAN24EXP.xlsx"})
    msg = friendly_message(e)
    assert "ALL_JAN24EXP.xlsx" in msg
    assert "open in another program" in msg


def test_friendly_save_failed():
    e = WriteError(SAVE_FAILED, "disk full", {"path": "x.xlsx"})
    assert "Could not save" in friendly_message(e)


def test_friendly_missing_objects_lists_names():
    e = ValidationError(MISSING_QUERY_OBJECT, "missing", {"missing": ["EXPDATA", "ExportData_New1"]})
    msg = friendly_message(e)
    assert "EXPDATA" in msg and "ExportData_New1" in msg


def test_friendly_period_and_timeout():
    assert "YYYYMM" in friendly_message(ValidationError(INVALID_PERIOD, "bad"))
    assert "timed out" in friendly_message(DataAccessError(QUERY_TIMEOUT, "slow"))


def test_friendly_unknown_code_uses_first_line():
    e = ExportError("WHATEVER", "first line\nsecond line")
    assert friendly_message(e) == "first line"
