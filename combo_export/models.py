from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from .errors import ValidationError, INVALID_FILTER
from .parsing import parse_filter_list, validate_dimension_name, validate_months


# ---- Filter input ----

@dataclass(frozen=True)
class FilterDimension:
    """
    One independently multi-valued filter. Values are never empty:
    blank user input becomes the single wildcard value.
    """
    name: str
    values: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.values:
            raise ValidationError(
                INVALID_FILTER,
                f"Filter dimension {self.name!r} has no values",
                {"dimension": self.name},
            )

    @classmethod
    def from_text(cls, name: str, raw: str) -> "FilterDimension":
        return cls(name=validate_dimension_name(name), values=tuple(parse_filter_list(raw)))


@dataclass(frozen=True)
class FilterDimensionSet:
    """
    Ordered, immutable collection of filter dimensions. Declared order is
    enumeration order: the last dimension varies fastest.
    """
    dimensions: Tuple[FilterDimension, ...]

    def __post_init__(self) -> None:
        if not self.dimensions:
            raise ValidationError(INVALID_FILTER, "At least one filter dimension is required")
        seen = set()
        for d in self.dimensions:
            if d.name in seen:
                raise ValidationError(
                    INVALID_FILTER,
                    f"Duplicate filter dimension {d.name!r}",
                    {"dimension": d.name},
                )
            seen.add(d.name)

    @classmethod
    def from_text(cls, raw: Mapping[str, str]) -> "FilterDimensionSet":
        """Build from {dimension name: raw comma-delimited text}, keeping mapping order."""
        return cls(tuple(FilterDimension.from_text(k, v) for k, v in raw.items()))

    @property
    def names(self) -> List[str]:
        return [d.name for d in self.dimensions]

    def __iter__(self) -> Iterator[FilterDimension]:
        return iter(self.dimensions)

    def __len__(self) -> int:
        return len(self.dimensions)


@dataclass(frozen=True)
class Combination:
    """One concrete filter tuple. Ephemeral: produced, executed, discarded."""
    sequence: int
    values: Tuple[Tuple[str, str], ...]

    def as_dict(self) -> Dict[str, str]:
        return dict(self.values)

    def value(self, name: str, default: str = "%") -> str:
        for k, v in self.values:
            if k == name:
                return v
        return default

    def describe(self) -> str:
        return ", ".join(f"{k}:{v}" for k, v in self.values)


@dataclass(frozen=True)
class MonthRange:
    from_month: str
    to_month: str

    def validate(self) -> None:
        validate_months(self.from_month, self.to_month)

    def __str__(self) -> str:
        return f"{self.from_month} to {self.to_month}"


@dataclass(frozen=True)
class QueryObjects:
    """Names of the database objects one batch reads through."""
    view_name: str
    procedure_name: Optional[str] = None
    order_by: Optional[str] = None


@dataclass(frozen=True)
class BatchRequest:
    period: MonthRange
    dimensions: FilterDimensionSet
    query: QueryObjects


# ---- Run reporting ----

class Outcome(str, enum.Enum):
    SUCCESS = "Success"
    NO_DATA = "NoData"
    ROW_LIMIT_EXCEEDED = "RowLimitExceeded"
    CANCELLED = "Cancelled"
    ERRORED = "Errored"


@dataclass
class ExecutionResult:
    sequence: int
    outcome: Outcome
    row_count: int = 0
    elapsed: float = 0.0
    artifact_path: Optional[str] = None
    message: str = ""
    error_code: Optional[str] = None


@dataclass
class ProcessingCounters:
    """
    Batch tallies. processed always equals the sum of the five buckets.
    """
    processed: int = 0
    generated: int = 0
    skipped_no_data: int = 0
    skipped_row_limit: int = 0
    cancelled: int = 0
    errored: int = 0

    _BUCKETS = {
        Outcome.SUCCESS: "generated",
        Outcome.NO_DATA: "skipped_no_data",
        Outcome.ROW_LIMIT_EXCEEDED: "skipped_row_limit",
        Outcome.CANCELLED: "cancelled",
        Outcome.ERRORED: "errored",
    }

    def add(self, outcome: Outcome) -> None:
        attr = self._BUCKETS[Outcome(outcome)]
        setattr(self, attr, getattr(self, attr) + 1)
        self.processed += 1

    @property
    def skipped(self) -> int:
        return self.skipped_no_data + self.skipped_row_limit

    def is_consistent(self) -> bool:
        return self.processed == (
            self.generated + self.skipped_no_data + self.skipped_row_limit
            + self.cancelled + self.errored
        )

    def snapshot(self) -> "ProcessingCounters":
        return ProcessingCounters(
            processed=self.processed,
            generated=self.generated,
            skipped_no_data=self.skipped_no_data,
            skipped_row_limit=self.skipped_row_limit,
            cancelled=self.cancelled,
            errored=self.errored,
        )


@dataclass
class BatchSummary:
    counters: ProcessingCounters
    cancelled: bool
    success_rate: float
    status_line: str
    text: str
    total_combinations: int = 0
    results: List[ExecutionResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.cancelled and self.counters.errored == 0
