from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class OperationProfile:
    """
    Per-operation naming: which dimensions exist, in which order they
    enumerate, which of them make up artifact names, and the labels used
    in logs and status text.
    """
    name: str                              # "Export" / "Import"
    label: str                             # long label for process logs
    file_suffix: str                       # "EXP" / "IMP"
    dimensions: Tuple[str, ...]            # enumeration order, last fastest
    filename_order: Tuple[str, ...]        # order of values in artifact names
    procedure_params: Dict[str, str]       # dimension -> procedure parameter

    @property
    def log_prefix(self) -> str:
        return f"{self.name}_Log"

    @property
    def skip_log_prefix(self) -> str:
        return f"{self.name}_SkippedDatasets"


EXPORT = OperationProfile(
    name="Export",
    label="Excel Export Generation",
    file_suffix="EXP",
    dimensions=("port", "hs_code", "product", "exporter", "iec", "foreign_country", "foreign_name"),
    filename_order=("hs_code", "product", "iec", "exporter", "foreign_country", "foreign_name", "port"),
    procedure_params={
        "hs_code": "hs",
        "product": "prod",
        "iec": "Iec",
        "exporter": "ExpCmp",
        "foreign_country": "forcount",
        "foreign_name": "forname",
        "port": "port",
    },
)

IMPORT = OperationProfile(
    name="Import",
    label="Excel Import Generation",
    file_suffix="IMP",
    dimensions=("port", "hs_code", "product", "importer", "iec", "foreign_country", "foreign_name"),
    filename_order=("hs_code", "product", "iec", "importer", "foreign_country", "foreign_name", "port"),
    procedure_params={
        "hs_code": "hs",
        "product": "prod",
        "iec": "Iec",
        "importer": "ImpCmp",
        "foreign_country": "forcount",
        "foreign_name": "forname",
        "port": "port",
    },
)

PROFILES = {p.name.lower(): p for p in (EXPORT, IMPORT)}


def get_profile(name: str) -> OperationProfile:
    try:
        return PROFILES[(name or "").strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown operation profile: {name!r}") from None
