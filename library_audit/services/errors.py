"""Error handling module for the Switch library audit application.

This module provides:
- Custom exception classes for different error types (network, file system, validation)
- Pipeline abort errors, each mapped to a process exit code
- Non-fatal warnings surfaced to the user during a run
- User-friendly error message generation with suggested actions
- Centralized error handling service
"""

import json
import time
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any

import structlog

log = structlog.stdlib.get_logger()


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""
    NETWORK = "network"
    FILE_SYSTEM = "file_system"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    CATALOG = "catalog"
    INVENTORY = "inventory"
    MAINTENANCE = "maintenance"
    UNEXPECTED = "unexpected"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ExitCode(IntEnum):
    """Process exit codes, one per way a run can end."""
    OK = 0
    UNEXPECTED = 1
    RESOURCE_UNAVAILABLE = 2
    NO_TARGET_DIRECTORY = 3
    DIRECTORY_UNREADABLE = 4
    INVENTORY_BUILD_FAILED = 5
    CATALOG_BUILD_FAILED = 6
    INTERRUPTED = 130


@dataclass(frozen=True)
class ErrorContext:
    """Context information for an error."""
    operation: str
    component: str
    details: dict[str, Any]


@dataclass(frozen=True)
class UserFriendlyError:
    """User-friendly error representation with suggested actions."""
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    suggested_actions: list[str]
    technical_details: str | None = None
    recoverable: bool = True


class AppError(Exception):
    """Base exception class for application errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNEXPECTED,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        suggested_actions: list[str] | None = None,
        technical_details: str | None = None,
        recoverable: bool = True,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.suggested_actions = suggested_actions or []
        self.technical_details = technical_details
        self.recoverable = recoverable
        self.context = context

    def to_user_friendly(self) -> UserFriendlyError:
        """Convert to user-friendly error representation."""
        return UserFriendlyError(
            message=self.message,
            category=self.category,
            severity=self.severity,
            suggested_actions=self.suggested_actions,
            technical_details=self.technical_details,
            recoverable=self.recoverable,
        )


def _describe(original_error: Exception | None) -> str | None:
    if original_error is None:
        return None
    return f"{type(original_error).__name__}: {str(original_error)}"


class NetworkError(AppError):
    """Exception for network-related errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        suggested_actions = [
            "Check your internet connection",
            "Verify the URL is correct",
            "Try again in a few moments",
        ]

        if status_code:
            if status_code == 429:
                suggested_actions = [
                    "Wait a few minutes before retrying",
                ]
            elif status_code == 404:
                suggested_actions = [
                    "The requested resource may no longer exist",
                    "Check if the URL is correct",
                ]
            elif status_code >= 500:
                suggested_actions = [
                    "The server is experiencing issues",
                    "Try again later",
                ]

        technical_details = _describe(original_error)
        if url:
            technical_details = f"URL: {url}" + (f"\n{technical_details}" if technical_details else "")
        if status_code:
            technical_details = f"Status: {status_code}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.original_error = original_error
        self.url = url
        self.status_code = status_code


class FileSystemError(AppError):
    """Exception for file system-related errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        path: str | None = None,
        operation: str | None = None,
    ) -> None:
        suggested_actions = self._get_suggested_actions(original_error)

        technical_details = _describe(original_error)
        if path:
            technical_details = f"Path: {path}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.FILE_SYSTEM,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.original_error = original_error
        self.path = path
        self.operation = operation

    @staticmethod
    def _get_suggested_actions(original_error: Exception | None) -> list[str]:
        """Get suggested actions based on error type."""
        if isinstance(original_error, PermissionError):
            return [
                "Check file/directory permissions",
                "Try running with appropriate permissions",
            ]
        elif isinstance(original_error, FileNotFoundError):
            return [
                "Verify the path is correct",
                "Check if the folder was moved or deleted",
            ]
        elif isinstance(original_error, OSError):
            error_str = str(original_error).lower()
            if "no space" in error_str or "disk full" in error_str:
                return [
                    "Free up disk space",
                ]
            elif "read-only" in error_str:
                return [
                    "The file system is read-only",
                    "Disable file renaming and cleanup options",
                ]

        return [
            "Check the path and permissions",
            "Ensure sufficient disk space",
        ]


class ValidationError(AppError):
    """Exception for validation-related errors."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        constraints: list[str] | None = None,
    ) -> None:
        suggested_actions = ["Review the input requirements"]
        if constraints:
            suggested_actions.extend([f"Ensure: {c}" for c in constraints])

        technical_details = None
        if field:
            technical_details = f"Field: {field}"
        if value is not None:
            value_str = str(value)[:100]  # Truncate long values
            technical_details = (technical_details or "") + f"\nValue: {value_str}"

        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.field = field
        self.value = value
        self.constraints = constraints or []


class ConfigurationError(AppError):
    """Exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        current_value: Any = None,
        expected: str | None = None,
    ) -> None:
        suggested_actions = [
            "Check the settings.json file",
            "Delete it to reset to default values",
        ]
        if expected:
            suggested_actions.append(f"Expected: {expected}")

        technical_details = None
        if setting:
            technical_details = f"Setting: {setting}"
        if current_value is not None:
            technical_details = (technical_details or "") + f"\nCurrent: {current_value}"

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.setting = setting
        self.current_value = current_value
        self.expected = expected


class PipelineAbort(AppError):
    """A fatal error that stops the audit pipeline.

    Subclasses set ``stage`` (the pipeline stage that failed) and
    ``exit_code`` (the process exit status reported for the failure).
    """

    stage: str = "unknown"
    exit_code: ExitCode = ExitCode.UNEXPECTED
    category: ErrorCategory = ErrorCategory.UNEXPECTED
    default_actions: tuple[str, ...] = ()

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        technical_details: str | None = None,
    ) -> None:
        details = technical_details
        described = _describe(original_error)
        if described:
            details = (details + "\n" + described) if details else described

        super().__init__(
            message=message,
            category=type(self).category,
            severity=ErrorSeverity.CRITICAL,
            suggested_actions=list(self.default_actions),
            technical_details=details,
            recoverable=False,
        )
        self.original_error = original_error


class ResourceUnavailable(PipelineAbort):
    """A remote catalog resource could not be retrieved."""
    stage = "resource_retrieval"
    exit_code = ExitCode.RESOURCE_UNAVAILABLE
    category = ErrorCategory.NETWORK
    default_actions = (
        "Check your internet connection",
        "Try again in a few moments",
    )

    def __init__(self, message: str, url: str | None = None, original_error: Exception | None = None) -> None:
        super().__init__(
            message,
            original_error=original_error,
            technical_details=f"URL: {url}" if url else None,
        )
        self.url = url


class CatalogBuildFailed(PipelineAbort):
    """The retrieved catalog resources could not be parsed."""
    stage = "catalog_construction"
    exit_code = ExitCode.CATALOG_BUILD_FAILED
    category = ErrorCategory.CATALOG
    default_actions = (
        "Delete the cached titles.json and versions.json files",
        "Run again to download fresh copies",
    )


class NoTargetDirectory(PipelineAbort):
    """Neither the command line nor the settings name a folder to scan."""
    stage = "target_resolution"
    exit_code = ExitCode.NO_TARGET_DIRECTORY
    category = ErrorCategory.CONFIGURATION
    default_actions = (
        "Pass the folder with -f <path>",
        "Set \"folder\" in settings.json",
    )


class DirectoryUnreadable(PipelineAbort):
    """The folder to scan could not be listed."""
    stage = "target_resolution"
    exit_code = ExitCode.DIRECTORY_UNREADABLE
    category = ErrorCategory.FILE_SYSTEM
    default_actions = (
        "Verify the folder exists",
        "Check folder permissions",
    )

    def __init__(self, message: str, path: str | None = None, original_error: Exception | None = None) -> None:
        super().__init__(
            message,
            original_error=original_error,
            technical_details=f"Path: {path}" if path else None,
        )
        self.path = path


class InventoryBuildFailed(PipelineAbort):
    """The local library inventory could not be built."""
    stage = "inventory_construction"
    exit_code = ExitCode.INVENTORY_BUILD_FAILED
    category = ErrorCategory.INVENTORY
    default_actions = (
        "Check that the library folder is readable",
        "Try again without recursive scanning (-r false)",
    )


class MaintenanceStageFailed(AppError):
    """A cleanup or reorganization stage failed; later stages still run."""

    def __init__(self, stage: str, message: str, errors: list[str] | None = None) -> None:
        self.stage = stage
        self.errors = errors or []
        super().__init__(
            message=message,
            category=ErrorCategory.MAINTENANCE,
            severity=ErrorSeverity.WARNING,
            suggested_actions=[
                "Check file permissions in the library folder",
                "Review the log for the affected files",
            ],
            technical_details="\n".join(self.errors[:10]) or None,
            recoverable=True,
        )


class DeepScanUnavailable(AppError):
    """No decryption keys were found, so only file names are used for matching."""

    def __init__(self, keys_path: str | None = None) -> None:
        super().__init__(
            message="Keys file was not found, deep scan is disabled, library will be based on file tags.",
            category=ErrorCategory.INVENTORY,
            severity=ErrorSeverity.WARNING,
            suggested_actions=[
                "Place a prod.keys file next to settings.json",
                "Or set \"prod_keys\" in settings.json",
            ],
            technical_details=f"Searched: {keys_path}" if keys_path else None,
            recoverable=True,
        )
        self.keys_path = keys_path


class ErrorHandlingService:
    """Centralized error handling service.

    This service provides:
    - Error classification and user-friendly message generation
    - Error logging with technical details
    - Recent error history
    """

    def __init__(self) -> None:
        """Initialize the error handling service."""
        self._error_history: list[tuple[float, AppError]] = []
        self._max_history_size = 100
        log.debug("Error handling service initialized")

    def handle_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None = None,
    ) -> UserFriendlyError:
        """Handle an error and return a user-friendly representation.

        Args:
            error: The exception that occurred
            operation: The operation being performed
            component: The component where the error occurred
            context: Additional context information

        Returns:
            User-friendly error representation
        """
        app_error = self.convert_to_app_error(error, operation, component, context)

        self._log_error(app_error, operation, component, context)

        self._error_history.append((time.time(), app_error))
        if len(self._error_history) > self._max_history_size:
            self._error_history.pop(0)

        return app_error.to_user_friendly()

    def convert_to_app_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None = None,
    ) -> AppError:
        """Convert a standard exception to an AppError.

        Download failures arrive already wrapped as NetworkError by the
        resource fetcher; the rest are file system or data errors.
        """
        if isinstance(error, AppError):
            return error

        # File system errors
        if isinstance(error, PermissionError):
            return FileSystemError(
                message="Permission denied. You don't have access to this file or directory.",
                original_error=error,
                path=context.get("path") if context else None,
                operation=operation,
            )
        elif isinstance(error, FileNotFoundError):
            return FileSystemError(
                message="The file or directory was not found.",
                original_error=error,
                path=context.get("path") if context else None,
                operation=operation,
            )
        elif isinstance(error, OSError):
            return FileSystemError(
                message=f"A file system error occurred: {str(error)}",
                original_error=error,
                path=context.get("path") if context else None,
                operation=operation,
            )

        # JSON errors (JSONDecodeError is a ValueError, check it first)
        elif isinstance(error, json.JSONDecodeError):
            return ValidationError(
                message="Invalid JSON format. The data could not be parsed.",
                field=context.get("field", "json_content") if context else "json_content",
            )

        # Validation errors
        elif isinstance(error, ValueError):
            return ValidationError(
                message=str(error),
                field=context.get("field") if context else None,
                value=context.get("value") if context else None,
            )
        elif isinstance(error, TypeError):
            return ValidationError(
                message=f"Invalid data type: {str(error)}",
                field=context.get("field") if context else None,
            )

        return AppError(
            message="An unexpected error occurred. Please try again.",
            category=ErrorCategory.UNEXPECTED,
            severity=ErrorSeverity.ERROR,
            technical_details=_describe(error),
            recoverable=True,
            context=ErrorContext(
                operation=operation,
                component=component,
                details=context or {},
            ),
        )

    def _log_error(
        self,
        error: AppError,
        operation: str,
        component: str,
        context: dict[str, Any] | None,
    ) -> None:
        """Log error with full technical details."""
        log_method = log.warning if error.severity == ErrorSeverity.WARNING else log.error

        log_method(
            "Error occurred",
            error_message=error.message,
            category=error.category.value,
            severity=error.severity.value,
            operation=operation,
            component=component,
            technical_details=error.technical_details,
            recoverable=error.recoverable,
            context=context,
        )

    def get_recent_errors(self, count: int = 10) -> list[AppError]:
        """Get recent errors from history.

        Args:
            count: Number of recent errors to return

        Returns:
            List of recent AppError instances
        """
        recent = self._error_history[-count:] if self._error_history else []
        return [error for _, error in recent]

    def get_error_count_by_category(self) -> dict[ErrorCategory, int]:
        """Get count of errors by category."""
        counts: dict[ErrorCategory, int] = {}
        for _, error in self._error_history:
            counts[error.category] = counts.get(error.category, 0) + 1
        return counts

    def create_user_message(
        self,
        error: UserFriendlyError,
        include_suggestions: bool = True,
    ) -> str:
        """Create a formatted user message from an error.

        Args:
            error: The user-friendly error
            include_suggestions: Whether to include suggested actions

        Returns:
            Formatted message string
        """
        parts = [error.message]

        if include_suggestions and error.suggested_actions:
            parts.append("\nSuggested actions:")
            for action in error.suggested_actions[:3]:  # Limit to 3 suggestions
                parts.append(f"  • {action}")

        return "\n".join(parts)
