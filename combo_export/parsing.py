from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Union

from .errors import ValidationError, BAD_SPEC, INVALID_FILTER, INVALID_PERIOD


WILDCARD = "%"

MIN_MONTH = 190001
MAX_MONTH = 299912

_MONTH_RE = re.compile(r"^\d{6}$")
_COL_RE = re.compile(r"^[A-Z]+$")
_COL_TOKEN_RE = re.compile(r"^\s*([A-Z]+)\s*(?:-\s*([A-Z]+)\s*)?$")


# ---- Filter values ----

def parse_filter_list(raw: str) -> List[str]:
    """
    Split raw comma-delimited user input into filter values.
    Blank input, or input with nothing but separators, means the wildcard.
    """
    if raw is None or str(raw).strip() == "":
        return [WILDCARD]
    values = [v.strip() for v in str(raw).split(",")]
    values = [v for v in values if v != ""]
    return values or [WILDCARD]


def is_wildcard(value: str) -> bool:
    return (value or "").strip() in ("", WILDCARD)


# ---- Months ----

def is_valid_month(value: str) -> bool:
    s = (value or "").strip()
    if not _MONTH_RE.match(s):
        return False
    n = int(s)
    if n < MIN_MONTH or n > MAX_MONTH:
        return False
    return 1 <= n % 100 <= 12


def validate_months(from_month: str, to_month: str) -> None:
    """
    Raise ValidationError unless both months are YYYYMM and from <= to.
    """
    for label, value in (("from", from_month), ("to", to_month)):
        if not is_valid_month(value):
            raise ValidationError(
                INVALID_PERIOD,
                f"Bad {label} month: {value!r}",
                {"field": label, "value": value},
            )
    if int(from_month) > int(to_month):
        raise ValidationError(
            INVALID_PERIOD,
            f"From month {from_month} is after to month {to_month}",
            {"from": from_month, "to": to_month},
        )


def validate_dimension_name(name: str) -> str:
    n = (name or "").strip()
    if not n:
        raise ValidationError(INVALID_FILTER, "Filter dimension name is blank")
    return n


# ---- Column specs (date / text columns in the formatter) ----

def col_letters_to_index(col: str) -> int:
    """
    Convert Excel column letters to 1-based index (A->1, Z->26, AA->27).
    """
    s = (col or "").strip().upper()
    if not s or not _COL_RE.match(s):
        raise ValidationError(BAD_SPEC, f"Bad column: {col!r}")
    n = 0
    for ch in s:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n


def col_index_to_letters(n: int) -> str:
    """
    Convert 1-based index to Excel column letters (1->A).
    """
    if n <= 0:
        raise ValidationError(BAD_SPEC, f"Bad column index: {n}")
    out = []
    x = n
    while x:
        x, rem = divmod(x - 1, 26)
        out.append(chr(ord("A") + rem))
    return "".join(reversed(out))


def parse_columns(spec: Union[str, Sequence[Union[int, str]], None]) -> List[int]:
    """
    Parse a column spec into sorted unique 1-based column numbers.

    Accepts 'A,C,AC-AF', a list of 1-based ints, or a list mixing ints and
    letter tokens. Blank => [].
    """
    if spec is None:
        return []
    if isinstance(spec, str):
        parts: Iterable[Union[int, str]] = [p for p in spec.split(",") if p.strip() != ""]
    else:
        parts = spec

    items: List[int] = []
    for part in parts:
        if isinstance(part, int):
            if part <= 0:
                raise ValidationError(BAD_SPEC, f"Bad column index: {part}")
            items.append(part)
            continue
        token = str(part).strip().upper()
        if token.isdigit():
            if int(token) <= 0:
                raise ValidationError(BAD_SPEC, f"Bad column index: {token}")
            items.append(int(token))
            continue
        m = _COL_TOKEN_RE.match(token)
        if not m:
            raise ValidationError(BAD_SPEC, f"Bad column token: {part!r}")
        a, b = m.group(1), m.group(2)
        ia = col_letters_to_index(a)
        if b is None:
            items.append(ia)
        else:
            ib = col_letters_to_index(b)
            lo, hi = (ia, ib) if ia <= ib else (ib, ia)
            items.extend(range(lo, hi + 1))

    return sorted(set(items))
