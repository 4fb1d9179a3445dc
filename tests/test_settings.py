"""
test_settings.py — AppSettings loading, overrides and checks.
"""
from __future__ import annotations

import json
import os
from tempfile import TemporaryDirectory

import pytest

from combo_export.errors import ValidationError, INVALID_SETTINGS
from combo_export.settings import ENV_LOG_DIR, ENV_OUTPUT_DIR, AppSettings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(ENV_OUTPUT_DIR, raising=False)
    monkeypatch.delenv(ENV_LOG_DIR, raising=False)


def test_defaults():
    s = AppSettings.from_dict({})
    assert s.performance.chunk_size == 25000
    assert s.performance.pool_capacity == 5
    assert s.performance.log_batch_size == 200
    assert s.performance.timestamp_refresh_ms == 50
    assert s.operation.worksheet_name == "Export Data"
    assert s.formatting.header_background_color == "#4F81BD"


def test_sections_override_defaults():
    s = AppSettings.from_dict({
        "database": {"url": "sqlite:///x.db", "filter_columns": {"port": "Port"}},
        "formatting": {"date_columns": ["C"], "text_columns": [1, 2]},
        "performance": {"enable_object_pooling": False},
    })
    assert s.database.url == "sqlite:///x.db"
    assert s.database.filter_columns == {"port": "Port"}
    assert s.formatting.date_columns == ["C"]
    assert s.performance.enable_object_pooling is False
    assert s.performance.chunk_size == 25000


def test_unknown_keys_rejected():
    with pytest.raises(ValidationError) as ei:
        AppSettings.from_dict({"performance": {"chunk": 1}})
    assert ei.value.code == INVALID_SETTINGS
    assert ei.value.details == {"keys": ["chunk"]}


@pytest.mark.parametrize("data", [
    {"performance": {"chunk_size": 0}},
    {"performance": {"log_batch_size": 0}},
    {"performance": {"pool_capacity": -1}},
    {"database": {"command_timeout_seconds": 0}},
    {"operation": {"view_name": " "}},
])
def test_invalid_values_rejected(data):
    with pytest.raises(ValidationError):
        AppSettings.from_dict(data)


@pytest.mark.parametrize("data,key", [
    ({"performance": {"chunk_size": "100"}}, "chunk_size"),
    ({"performance": {"pool_capacity": True}}, "pool_capacity"),
    ({"formatting": {"wrap_text": "yes"}}, "wrap_text"),
    ({"database": {"filter_columns": ["port"]}}, "filter_columns"),
    ({"operation": {"procedure_name": 7}}, "procedure_name"),
])
def test_wrong_value_types_rejected(data, key):
    with pytest.raises(ValidationError) as ei:
        AppSettings.from_dict(data)
    assert ei.value.code == INVALID_SETTINGS
    assert ei.value.details == {"keys": [key]}


def test_optional_values_accept_null():
    s = AppSettings.from_dict({"operation": {"procedure_name": None, "order_by_column": "Id"}})
    assert s.operation.procedure_name is None
    assert s.operation.order_by_column == "Id"


def test_section_must_be_an_object():
    with pytest.raises(ValidationError) as ei:
        AppSettings.from_dict({"performance": [1, 2]})
    assert ei.value.code == INVALID_SETTINGS


def test_env_overrides_directories(monkeypatch):
    with TemporaryDirectory() as td:
        monkeypatch.setenv(ENV_OUTPUT_DIR, os.path.join(td, "out"))
        monkeypatch.setenv(ENV_LOG_DIR, "relative-logs")
        s = AppSettings.from_dict({})
        assert s.files.output_directory == os.path.join(td, "out")
        assert os.path.isabs(s.files.log_directory)
        assert s.files.log_directory.endswith("relative-logs")


def test_relative_env_resolves_against_project_root(monkeypatch):
    monkeypatch.setenv(ENV_LOG_DIR, "logs2")
    s = AppSettings()
    s.apply_env(project_root="/srv/app")
    assert s.files.log_directory == os.path.join("/srv/app", "logs2")


def test_json_round_trip():
    with TemporaryDirectory() as td:
        path = os.path.join(td, "settings.json")
        s = AppSettings.from_dict({"operation": {"view_name": "IMPDATA", "order_by_column": "Id"}})
        s.save_json(path)
        with open(path, encoding="utf-8") as f:
            assert json.load(f)["operation"]["view_name"] == "IMPDATA"
        loaded = AppSettings.load_json(path)
        assert loaded == s
