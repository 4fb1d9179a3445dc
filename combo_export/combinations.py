"""
combo_export/combinations.py — Lazy cartesian enumeration of filter tuples.

The last-declared dimension varies fastest. Nothing is materialized: the
sequence is produced on demand and cannot be restarted.
"""
from __future__ import annotations

import itertools
from typing import Iterator

from .models import Combination, FilterDimensionSet


def count_combinations(dimensions: FilterDimensionSet) -> int:
    total = 1
    for d in dimensions:
        total *= len(d.values)
    return total


def enumerate_combinations(dimensions: FilterDimensionSet) -> Iterator[Combination]:
    names = dimensions.names
    product = itertools.product(*(d.values for d in dimensions))
    for sequence, values in enumerate(product, start=1):
        yield Combination(sequence=sequence, values=tuple(zip(names, values)))
