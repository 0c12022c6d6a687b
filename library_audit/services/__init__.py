"""Service layer for business logic and external integrations."""

from .catalog_builder import CatalogBuilder
from .config import ConfigurationService, ValidationResult
from .errors import (
    AppError,
    CatalogBuildFailed,
    ConfigurationError,
    DeepScanUnavailable,
    DirectoryUnreadable,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    ExitCode,
    FileSystemError,
    InventoryBuildFailed,
    MaintenanceStageFailed,
    NetworkError,
    NoTargetDirectory,
    PipelineAbort,
    ResourceUnavailable,
    UserFriendlyError,
    ValidationError,
)
from .http_client import HttpClientService
from .inventory_builder import InventoryBuilder
from .keys import KeyStore, load_keys
from .maintenance import delete_old_updates, organize_library
from .pipeline import AuditPipeline
from .reconciler import compute_completion, diff_dlc, diff_updates
from .resource_fetcher import CachedResourceFetcher, FetchResult

__all__ = [
    "AppError",
    "AuditPipeline",
    "CachedResourceFetcher",
    "CatalogBuildFailed",
    "CatalogBuilder",
    "ConfigurationError",
    "ConfigurationService",
    "DeepScanUnavailable",
    "DirectoryUnreadable",
    "ErrorCategory",
    "ErrorHandlingService",
    "ErrorSeverity",
    "ExitCode",
    "FetchResult",
    "FileSystemError",
    "HttpClientService",
    "InventoryBuildFailed",
    "InventoryBuilder",
    "KeyStore",
    "MaintenanceStageFailed",
    "NetworkError",
    "NoTargetDirectory",
    "PipelineAbort",
    "ResourceUnavailable",
    "UserFriendlyError",
    "ValidationError",
    "ValidationResult",
    "compute_completion",
    "delete_old_updates",
    "diff_dlc",
    "diff_updates",
    "load_keys",
    "organize_library",
]
