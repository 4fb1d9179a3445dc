"""
test_combinations.py — Lazy cartesian enumeration.

Covers:
  - count equals product of dimension sizes
  - last dimension varies fastest
  - sequence numbers start at 1 and increase by one
  - laziness (generator, single pass)
  - wildcard dimensions contribute one value
"""
from __future__ import annotations

import types

from combo_export.combinations import count_combinations, enumerate_combinations
from combo_export.models import FilterDimensionSet


def _dims(**raw):
    return FilterDimensionSet.from_text(raw)


def test_count_is_product_of_sizes():
    dims = _dims(a="1,2,3", b="x,y", c="")
    assert count_combinations(dims) == 6
    assert len(list(enumerate_combinations(dims))) == 6


def test_last_dimension_varies_fastest():
    dims = _dims(a="1,2", b="x,y,z")
    got = [tuple(v for _, v in c.values) for c in enumerate_combinations(dims)]
    assert got == [
        ("1", "x"), ("1", "y"), ("1", "z"),
        ("2", "x"), ("2", "y"), ("2", "z"),
    ]


def test_sequence_numbers():
    dims = _dims(a="1,2", b="x,y")
    assert [c.sequence for c in enumerate_combinations(dims)] == [1, 2, 3, 4]


def test_pairs_carry_dimension_names():
    first = next(enumerate_combinations(_dims(port="P1", hs_code="")))
    assert first.values == (("port", "P1"), ("hs_code", "%"))


def test_enumeration_is_lazy_and_single_pass():
    gen = enumerate_combinations(_dims(a="1,2"))
    assert isinstance(gen, types.GeneratorType)
    assert len(list(gen)) == 2
    assert list(gen) == []


def test_enumeration_is_deterministic():
    dims = _dims(a="3,1,2", b="y,x")
    assert list(enumerate_combinations(dims)) == list(enumerate_combinations(dims))


def test_all_wildcards_is_single_combination():
    dims = _dims(a="", b="", c="")
    combos = list(enumerate_combinations(dims))
    assert len(combos) == 1
    assert combos[0].as_dict() == {"a": "%", "b": "%", "c": "%"}


def test_large_product_is_not_materialized():
    values = ",".join(str(i) for i in range(100))
    dims = _dims(a=values, b=values, c=values, d=values)
    assert count_combinations(dims) == 100_000_000
    gen = enumerate_combinations(dims)
    assert next(gen).sequence == 1
    assert next(gen).as_dict()["d"] == "1"
