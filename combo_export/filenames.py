"""
combo_export/filenames.py — Deterministic artifact names.

  <core>_<MONYY[-MONYY]><SUFFIX>_<YYYYMMDD_HHMMSS>.xlsx

core joins the non-wildcard filter values in the profile's filename order,
or "ALL" when every value is the wildcard.
"""
from __future__ import annotations

import os
import re
from datetime import datetime
from typing import Callable, Iterable, Optional

from .models import Combination, MonthRange
from .parsing import is_wildcard


_MONTHS = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN",
           "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")

_INVALID_CHARS_RE = re.compile(r'[\\/:*?"<>|]')
_MULTI_UNDERSCORE_RE = re.compile(r"_{2,}")

EXTENSION = ".xlsx"


def month_abbreviation(yyyymm: str) -> str:
    """'202401' -> 'JAN24'. Malformed input keeps the year and uses 'MMM'."""
    s = (yyyymm or "").strip()
    yy = s[2:4] if len(s) >= 4 else "00"
    try:
        month = int(s[4:6])
    except ValueError:
        return f"MMM{yy}"
    if 1 <= month <= 12:
        return f"{_MONTHS[month - 1]}{yy}"
    return f"MMM{yy}"


def month_label(period: MonthRange) -> str:
    start = month_abbreviation(period.from_month)
    end = month_abbreviation(period.to_month)
    return start if start == end else f"{start}-{end}"


def sanitize(value: str) -> str:
    v = (value or "").strip().replace(" ", "_")
    return _INVALID_CHARS_RE.sub("", v)


def core_name(combination: Combination, order: Optional[Iterable[str]] = None) -> str:
    names = list(order) if order is not None else [k for k, _ in combination.values]
    parts = []
    for name in names:
        value = combination.value(name)
        if is_wildcard(value):
            continue
        cleaned = sanitize(value)
        if cleaned:
            parts.append(cleaned)
    if not parts:
        return "ALL"
    return _MULTI_UNDERSCORE_RE.sub("_", "_".join(parts))


def artifact_name(
    combination: Combination,
    period: MonthRange,
    suffix: str,
    order: Optional[Iterable[str]] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> str:
    stamp = clock().strftime("%Y%m%d_%H%M%S")
    return f"{core_name(combination, order)}_{month_label(period)}{suffix}_{stamp}{EXTENSION}"


def ensure_unique(directory: str, file_name: str) -> str:
    """
    Return file_name, or file_name with _2, _3, ... before the extension
    if a file of that name already exists in directory.
    """
    if not os.path.exists(os.path.join(directory, file_name)):
        return file_name
    stem, ext = os.path.splitext(file_name)
    n = 2
    while os.path.exists(os.path.join(directory, f"{stem}_{n}{ext}")):
        n += 1
    return f"{stem}_{n}{ext}"
