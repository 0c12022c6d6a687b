"""Data models for the Switch library audit application."""

from .catalog import (
    ContentType,
    RemoteCatalog,
    TitleRecord,
    VersionEntry,
    base_title_id,
    content_type_of,
)
from .config import (
    AppSettings,
    OrganizeOptions,
    RecurseOverride,
    RunConfiguration,
    RunOverrides,
)
from .inventory import LocalFile, LocalInventory, LocalMatch
from .report import (
    CompletionMetric,
    IncompleteDLC,
    IncompleteUpdate,
    MaintenanceResult,
    MissingDLC,
    RunReport,
    StageResult,
    StageStatus,
)

__all__ = [
    "AppSettings",
    "CompletionMetric",
    "ContentType",
    "IncompleteDLC",
    "IncompleteUpdate",
    "LocalFile",
    "LocalInventory",
    "LocalMatch",
    "MaintenanceResult",
    "MissingDLC",
    "OrganizeOptions",
    "RecurseOverride",
    "RemoteCatalog",
    "RunConfiguration",
    "RunOverrides",
    "RunReport",
    "StageResult",
    "StageStatus",
    "TitleRecord",
    "VersionEntry",
    "base_title_id",
    "content_type_of",
]
