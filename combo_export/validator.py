from __future__ import annotations

import enum


# Last usable worksheet row once the header occupies row 1.
ROW_LIMIT = 1_048_575


class RowDecision(str, enum.Enum):
    PROCEED = "Proceed"
    NO_DATA = "NoData"
    ROW_LIMIT = "RowLimit"


def classify_row_count(row_count: int, limit: int = ROW_LIMIT) -> RowDecision:
    """
    Pure decision on a query's row count:
      0            -> NO_DATA
      > limit      -> ROW_LIMIT
      otherwise    -> PROCEED
    """
    if row_count == 0:
        return RowDecision.NO_DATA
    if row_count > limit:
        return RowDecision.ROW_LIMIT
    return RowDecision.PROCEED
