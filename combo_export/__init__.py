from combo_export.batch import BatchRunner
from combo_export.cancellation import CancellationManager, CancellationToken
from combo_export.errors import BatchCancelled, DataAccessError, ExportError, ValidationError, WriteError
from combo_export.models import BatchRequest, BatchSummary, FilterDimensionSet, MonthRange, Outcome, QueryObjects
from combo_export.services import ExportServices
from combo_export.settings import AppSettings
from combo_export.validator import ROW_LIMIT
from combo_export.worker import BatchWorker, tk_dispatcher

__all__ = [
    "BatchRunner",
    "CancellationManager",
    "CancellationToken",
    "BatchCancelled",
    "DataAccessError",
    "ExportError",
    "ValidationError",
    "WriteError",
    "BatchRequest",
    "BatchSummary",
    "FilterDimensionSet",
    "MonthRange",
    "Outcome",
    "QueryObjects",
    "ExportServices",
    "AppSettings",
    "ROW_LIMIT",
    "BatchWorker",
    "tk_dispatcher",
]
