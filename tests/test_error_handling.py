"""Property-based tests for error classification and user messages."""

import json
from unittest.mock import Mock

import httpx
import pytest
from hypothesis import given, strategies as st

from library_audit.services.errors import (
    AppError,
    CatalogBuildFailed,
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
    ValidationError,
)
from library_audit.services.http_client import HttpClientService


def http_status_error(status_code: int, message: str = "failed") -> httpx.HTTPStatusError:
    response = Mock()
    response.status_code = status_code
    return httpx.HTTPStatusError(message, request=Mock(), response=response)


class TestErrorConversionProperties:
    """Every failure maps to a readable, categorized error."""

    @given(
        status_code=st.one_of(st.none(), st.sampled_from([404, 429, 500, 503])),
        error_message=st.text(min_size=1, max_size=80),
    )
    def test_download_failures_are_user_friendly(self, status_code: int | None, error_message: str) -> None:
        error = NetworkError(
            "Unable to download titles.json",
            original_error=OSError(error_message),
            url="https://x",
            status_code=status_code,
        )

        service = ErrorHandlingService()
        friendly = service.handle_error(error, operation="fetch", component="test")

        assert friendly.category == ErrorCategory.NETWORK
        assert friendly.message == "Unable to download titles.json"
        assert friendly.suggested_actions
        assert friendly.technical_details is not None
        assert "https://x" in friendly.technical_details
        assert service.get_recent_errors(1) == [error]

    @given(
        error_class=st.sampled_from([PermissionError, FileNotFoundError, IsADirectoryError, OSError]),
        path=st.text(alphabet="abcdef/", min_size=1, max_size=30),
    )
    def test_file_system_errors_are_user_friendly(self, error_class: type[OSError], path: str) -> None:
        service = ErrorHandlingService()

        friendly = service.handle_error(error_class("boom"), operation="scan", component="test", context={"path": path})

        assert friendly.category == ErrorCategory.FILE_SYSTEM
        assert friendly.suggested_actions
        assert f"Path: {path}" in (friendly.technical_details or "")

    @given(st.sampled_from([
        ResourceUnavailable("titles.json could not be downloaded.", url="https://x"),
        CatalogBuildFailed("bad json"),
        NoTargetDirectory("No folder to scan was defined."),
        DirectoryUnreadable("cannot list", path="/games"),
        InventoryBuildFailed("cannot scan"),
    ]))
    def test_pipeline_aborts_are_critical(self, error: PipelineAbort) -> None:
        assert error.severity == ErrorSeverity.CRITICAL
        assert not error.recoverable
        assert error.exit_code != ExitCode.OK
        assert error.suggested_actions

        friendly = ErrorHandlingService().handle_error(error, operation=error.stage, component="test")
        assert friendly.message == error.message


class TestErrorConversionExamples:
    """Specific conversions."""

    def test_app_errors_pass_through(self) -> None:
        error = NetworkError("down", status_code=500)
        assert ErrorHandlingService().convert_to_app_error(error, "op", "test") is error

    def test_json_errors_become_validation_errors(self) -> None:
        try:
            json.loads("{oops")
        except json.JSONDecodeError as e:
            converted = ErrorHandlingService().convert_to_app_error(e, "parse", "test")

        assert isinstance(converted, ValidationError)
        assert converted.severity == ErrorSeverity.WARNING

    def test_rate_limit_suggestion(self) -> None:
        converted = ErrorHandlingService().convert_to_app_error(
            NetworkError("Unable to download versions.json", status_code=429), "fetch", "test",
        )

        assert isinstance(converted, NetworkError)
        assert converted.suggested_actions == ["Wait a few minutes before retrying"]
        assert converted.technical_details == "Status: 429"

    def test_unwrapped_http_errors_are_unexpected(self) -> None:
        converted = ErrorHandlingService().convert_to_app_error(http_status_error(429), "fetch", "test")

        assert type(converted) is AppError
        assert converted.category == ErrorCategory.UNEXPECTED
        assert "HTTPStatusError" in (converted.technical_details or "")

    def test_permission_error_suggestions(self) -> None:
        converted = ErrorHandlingService().convert_to_app_error(PermissionError("denied"), "move", "test")

        assert isinstance(converted, FileSystemError)
        assert "Check file/directory permissions" in converted.suggested_actions

    def test_unknown_errors_are_unexpected(self) -> None:
        converted = ErrorHandlingService().convert_to_app_error(RuntimeError("??"), "op", "test", {"k": "v"})

        assert type(converted) is AppError
        assert converted.category == ErrorCategory.UNEXPECTED
        assert converted.context is not None and converted.context.details == {"k": "v"}


class TestExitCodes:
    """Each abort kind has its own exit status."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (ResourceUnavailable("x"), ExitCode.RESOURCE_UNAVAILABLE),
            (NoTargetDirectory("x"), ExitCode.NO_TARGET_DIRECTORY),
            (DirectoryUnreadable("x"), ExitCode.DIRECTORY_UNREADABLE),
            (InventoryBuildFailed("x"), ExitCode.INVENTORY_BUILD_FAILED),
            (CatalogBuildFailed("x"), ExitCode.CATALOG_BUILD_FAILED),
        ],
    )
    def test_exit_code(self, error: PipelineAbort, expected: ExitCode) -> None:
        assert error.exit_code == expected

    def test_exit_codes_are_distinct(self) -> None:
        codes = [code.value for code in ExitCode]
        assert len(codes) == len(set(codes))

    def test_original_error_is_kept(self) -> None:
        cause = FileNotFoundError("missing")
        error = DirectoryUnreadable("cannot list", path="/games", original_error=cause)

        assert error.original_error is cause
        assert error.technical_details is not None
        assert "Path: /games" in error.technical_details
        assert "FileNotFoundError" in error.technical_details


class TestWarnings:
    """Non-fatal conditions."""

    def test_maintenance_failure_is_a_warning(self) -> None:
        error = MaintenanceStageFailed("delete_old_updates", "Deleting old updates failed", ["a.nsp: denied"])

        assert error.severity == ErrorSeverity.WARNING
        assert error.recoverable
        assert error.technical_details == "a.nsp: denied"

    def test_deep_scan_warning_text(self) -> None:
        error = DeepScanUnavailable("/keys/prod.keys")

        assert error.message == "Keys file was not found, deep scan is disabled, library will be based on file tags."
        assert error.technical_details == "Searched: /keys/prod.keys"


class TestErrorHandlingService:
    """History and message formatting."""

    def test_history_and_counts(self) -> None:
        service = ErrorHandlingService()
        service.handle_error(NetworkError("down", url="https://x"), "fetch", "test")
        service.handle_error(PermissionError("denied"), "move", "test")
        service.handle_error(json.JSONDecodeError("bad", "{", 0), "parse", "test")

        assert len(service.get_recent_errors()) == 3
        assert len(service.get_recent_errors(count=1)) == 1
        assert service.get_error_count_by_category() == {
            ErrorCategory.NETWORK: 1,
            ErrorCategory.FILE_SYSTEM: 1,
            ErrorCategory.VALIDATION: 1,
        }

    def test_user_message_limits_suggestions(self) -> None:
        service = ErrorHandlingService()
        friendly = service.handle_error(NoTargetDirectory("No folder to scan was defined."), "resolve", "test")

        message = service.create_user_message(friendly)

        assert message.startswith("No folder to scan was defined.")
        assert "Suggested actions:" in message
        assert "-f <path>" in message
        assert service.create_user_message(friendly, include_suggestions=False) == "No folder to scan was defined."


class TestHttpClientErrorHandling:
    """HTTP client behavior on failures."""

    @pytest.mark.asyncio
    async def test_connect_error_is_raised_after_retries(self, tmp_path) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        async with HttpClientService(max_retries=2, base_delay=0.0, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(httpx.ConnectError):
                await client.download_file("https://example.com/titles.json", tmp_path / "titles.json")

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_not_modified_writes_nothing(self, tmp_path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(304)

        async with HttpClientService(transport=httpx.MockTransport(handler)) as client:
            response = await client.download_file(
                "https://example.com/titles.json",
                tmp_path / "titles.json",
                headers={"If-None-Match": '"v1"'},
            )

        assert response.status_code == 304
        assert not (tmp_path / "titles.json").exists()

    @pytest.mark.asyncio
    async def test_rate_limit_waits_for_retry_after(self, tmp_path) -> None:
        responses = [httpx.Response(429, headers={"Retry-After": "0"}), httpx.Response(200, content=b"ok")]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        async with HttpClientService(max_retries=1, base_delay=0.0, transport=httpx.MockTransport(handler)) as client:
            response = await client.download_file("https://example.com/titles.json", tmp_path / "titles.json")

        assert response.status_code == 200
        assert (tmp_path / "titles.json").read_bytes() == b"ok"
