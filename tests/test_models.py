"""
test_models.py — Filter dimensions, combinations and counters.
"""
from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from combo_export.errors import ValidationError, INVALID_FILTER
from combo_export.models import (
    Combination,
    FilterDimension,
    FilterDimensionSet,
    MonthRange,
    Outcome,
    ProcessingCounters,
)


def test_dimension_set_from_text_keeps_order_and_wildcards():
    dims = FilterDimensionSet.from_text({"port": "INNSA1, INMAA1", "hs_code": "", "product": "steel"})
    assert dims.names == ["port", "hs_code", "product"]
    assert dims.dimensions[0].values == ("INNSA1", "INMAA1")
    assert dims.dimensions[1].values == ("%",)
    assert len(dims) == 3


def test_dimension_set_is_immutable():
    dims = FilterDimensionSet.from_text({"port": "A"})
    with pytest.raises(FrozenInstanceError):
        dims.dimensions = ()


def test_dimension_without_values_rejected():
    with pytest.raises(ValidationError) as ei:
        FilterDimension("port", ())
    assert ei.value.code == INVALID_FILTER


def test_empty_dimension_set_rejected():
    with pytest.raises(ValidationError):
        FilterDimensionSet(())


def test_blank_dimension_name_rejected():
    with pytest.raises(ValidationError):
        FilterDimension.from_text("  ", "x")


def test_duplicate_dimension_rejected():
    with pytest.raises(ValidationError):
        FilterDimensionSet((FilterDimension("a", ("1",)), FilterDimension("a", ("2",))))


def test_combination_accessors():
    c = Combination(3, (("port", "INNSA1"), ("hs_code", "%")))
    assert c.as_dict() == {"port": "INNSA1", "hs_code": "%"}
    assert c.value("port") == "INNSA1"
    assert c.value("missing") == "%"
    assert c.describe() == "port:INNSA1, hs_code:%"


def test_month_range_validate_and_str():
    period = MonthRange("202401", "202403")
    period.validate()
    assert str(period) == "202401 to 202403"
    with pytest.raises(ValidationError):
        MonthRange("202404", "202403").validate()


def test_counters_bump_processed_with_exactly_one_bucket():
    c = ProcessingCounters()
    for outcome in (Outcome.SUCCESS, Outcome.NO_DATA, Outcome.ROW_LIMIT_EXCEEDED,
                    Outcome.CANCELLED, Outcome.ERRORED, Outcome.SUCCESS):
        c.add(outcome)
        assert c.is_consistent()
    assert c.processed == 6
    assert c.generated == 2
    assert c.skipped == 2
    assert (c.cancelled, c.errored) == (1, 1)


def test_counters_snapshot_is_independent():
    c = ProcessingCounters()
    c.add(Outcome.SUCCESS)
    snap = c.snapshot()
    c.add(Outcome.NO_DATA)
    assert snap.processed == 1
    assert c.processed == 2
