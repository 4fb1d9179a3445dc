from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ExportError(Exception):
    """
    User-facing error with a short code and structured details.
    Raise ExportError (or a subclass) from core modules; the UI shows
    .message and .details, never a traceback.
    """
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} ({self.details})"
        return f"{self.code}: {self.message}"


class ValidationError(ExportError):
    """Bad batch input, rejected before any combination runs."""


class DataAccessError(ExportError):
    """Query for one combination failed or timed out."""


class WriteError(ExportError):
    """Building or saving one artifact failed."""


class BatchCancelled(Exception):
    """
    Cooperative cancellation signal. Not an ExportError: it unwinds the
    batch loop instead of being classified as a failure.
    """

    def __init__(self, message: str = "Cancelled by user") -> None:
        super().__init__(message)
        self.message = message


# ── Error codes (keep stable for tests and UI) ───────────────────────────────

INVALID_PERIOD       = "INVALID_PERIOD"
INVALID_FILTER       = "INVALID_FILTER"
INVALID_SETTINGS     = "INVALID_SETTINGS"
BAD_SPEC             = "BAD_SPEC"
MISSING_QUERY_OBJECT = "MISSING_QUERY_OBJECT"
OPERATION_ACTIVE     = "OPERATION_ACTIVE"
QUERY_FAILED         = "QUERY_FAILED"
QUERY_TIMEOUT        = "QUERY_TIMEOUT"
WRITE_FAILED         = "WRITE_FAILED"
FILE_LOCKED          = "FILE_LOCKED"
SAVE_FAILED          = "SAVE_FAILED"


# ── Friendly message lookup ───────────────────────────────────────────────────

def friendly_message(e: ExportError) -> str:
    """
    Return a plain-English one-liner suitable for a dialog or status bar.
    """
    code = e.code
    msg  = e.message or ""

    if code == FILE_LOCKED:
        fname = ""
        if e.details and "path" in e.details:
            fname = f" ({os.path.basename(e.details['path'])})"
        return f"File is open in another program{fname}. Close it and try again."

    if code == SAVE_FAILED:
        fname = ""
        if e.details and "path" in e.details:
            fname = f" ({os.path.basename(e.details['path'])})"
        return f"Could not save the export file{fname}. Check that the output folder exists and is writable."

    if code == WRITE_FAILED:
        return f"Could not build the spreadsheet.\n({msg})"

    if code == INVALID_PERIOD:
        return f"Invalid month range. Use YYYYMM for both months, with From not after To.\n({msg})"

    if code == INVALID_FILTER:
        return f"Invalid filter values. Separate multiple values with commas.\n({msg})"

    if code == BAD_SPEC:
        return f"Invalid column specification. Use letters like A, B, A-C, or A,C,E.\n({msg})"

    if code == MISSING_QUERY_OBJECT:
        names = ""
        if e.details and e.details.get("missing"):
            names = " " + ", ".join(e.details["missing"])
        return f"Database object not found:{names}. Check the view and procedure names in settings."

    if code == OPERATION_ACTIVE:
        return "An export is already running. Wait for it to finish or cancel it first."

    if code == QUERY_TIMEOUT:
        return "The database query timed out. Narrow the filters or raise the command timeout."

    if code == QUERY_FAILED:
        return f"The database query failed.\n({msg})"

    if code == INVALID_SETTINGS:
        return f"Configuration is invalid.\n({msg})"

    clean = msg.splitlines()[0] if msg else "An unexpected error occurred."
    return clean
