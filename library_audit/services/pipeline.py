"""Audit pipeline controller.

A run retrieves the title database, builds the remote catalog and the local
inventory, reports library completion, then runs the optional stages enabled
in the settings, always in this order:

1. delete old update files
2. reorganize the library
3. check for missing updates
4. check for missing DLC

All optional stages work from the inventory built at the start of the run;
the library is not re-scanned after cleanup or reorganization.
"""

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import structlog

from ..models import (
    AppSettings,
    LocalInventory,
    MaintenanceResult,
    OrganizeOptions,
    RecurseOverride,
    RemoteCatalog,
    RunConfiguration,
    RunOverrides,
    RunReport,
    StageResult,
    StageStatus,
)
from ..models.config import (
    TITLES_JSON_FILENAME,
    TITLES_JSON_URL,
    VERSIONS_JSON_FILENAME,
    VERSIONS_JSON_URL,
)
from ..ui.console import ConsoleReporter
from .catalog_builder import CatalogBuilder
from .config import SETTINGS_FILENAME, ConfigurationService
from .errors import (
    CatalogBuildFailed,
    ConfigurationError,
    DeepScanUnavailable,
    DirectoryUnreadable,
    ErrorHandlingService,
    InventoryBuildFailed,
    MaintenanceStageFailed,
    NetworkError,
    NoTargetDirectory,
    ResourceUnavailable,
)
from .inventory_builder import InventoryBuilder
from .keys import HEADER_KEY, KeyStore, candidate_key_paths, load_keys
from .maintenance import delete_old_updates, organize_library
from .reconciler import compute_completion, diff_dlc, diff_updates
from .resource_fetcher import CachedResourceFetcher, FetchResult

log = structlog.stdlib.get_logger()

STAGE_DELETE_OLD_UPDATES = "delete_old_updates"
STAGE_REORGANIZE = "reorganize_library"
STAGE_MISSING_UPDATES = "missing_updates"
STAGE_MISSING_DLC = "missing_dlc"

UpdateCleaner = Callable[[LocalInventory], MaintenanceResult]
LibraryOrganizer = Callable[[Path, LocalInventory, RemoteCatalog, OrganizeOptions], MaintenanceResult]
KeysLoader = Callable[[Path, str], KeyStore | None]


def resolve_recursive(persisted: bool, override: RecurseOverride) -> bool:
    """Resolve the recursive scan flag for a run.

    Only a restrictive override (``FALSE``) takes effect; asking for a
    recursive scan never overrides a persisted non-recursive setting.
    """
    if override == RecurseOverride.FALSE:
        return False
    return persisted


def resolve_scan_directory(settings: AppSettings, overrides: RunOverrides) -> Path:
    """Pick the folder to scan, preferring the per-run override.

    Raises:
        NoTargetDirectory: If neither the override nor the settings name a folder
    """
    if overrides.folder is not None and str(overrides.folder):
        return overrides.folder
    if settings.folder:
        return Path(settings.folder).expanduser()
    raise NoTargetDirectory("No folder to scan was defined.")


class AuditPipeline:
    """Sequences one audit run from catalog download to reports."""

    def __init__(
        self,
        config_service: ConfigurationService,
        fetcher: CachedResourceFetcher,
        reporter: ConsoleReporter,
        catalog_builder: CatalogBuilder | None = None,
        inventory_builder: InventoryBuilder | None = None,
        error_service: ErrorHandlingService | None = None,
        keys_loader: KeysLoader = load_keys,
        update_cleaner: UpdateCleaner = delete_old_updates,
        organizer: LibraryOrganizer = organize_library,
    ) -> None:
        self.config_service = config_service
        self.fetcher = fetcher
        self.reporter = reporter
        self.catalog_builder = catalog_builder or CatalogBuilder()
        self.inventory_builder = inventory_builder or InventoryBuilder()
        self.error_service = error_service or ErrorHandlingService()
        self.keys_loader = keys_loader
        self.update_cleaner = update_cleaner
        self.organizer = organizer

    @property
    def cache_dir(self) -> Path:
        return self.config_service.base_dir

    async def run(self, overrides: RunOverrides | None = None) -> RunReport:
        """Run the audit.

        Args:
            overrides: Per-run command-line overrides

        Returns:
            The run report

        Raises:
            PipelineAbort: On any fatal error; nothing after the failing stage runs
        """
        overrides = overrides or RunOverrides()
        settings = self.config_service.load_config()
        warnings: list[str] = []

        log.info("Audit run started", folder_override=str(overrides.folder) if overrides.folder else None)

        # Resource retrieval
        with self.reporter.stage("Downloading latest switch titles json file"):
            titles = await self._fetch(TITLES_JSON_URL, TITLES_JSON_FILENAME, settings.titles_etag, warnings)
            versions = await self._fetch(VERSIONS_JSON_URL, VERSIONS_JSON_FILENAME, settings.versions_etag, warnings)

        settings = replace(settings, titles_etag=titles.etag, versions_etag=versions.etag)
        self._persist_tokens(settings, warnings)

        # Catalog construction
        try:
            catalog = self.catalog_builder.build(titles.path, versions.path)
        except (OSError, ValueError) as e:
            raise CatalogBuildFailed("Failed to read the title database.", original_error=e) from e

        # Target resolution
        scan_directory = resolve_scan_directory(settings, overrides)
        with self.reporter.stage(f"Scanning folder [{scan_directory}]"):
            try:
                entries = self.inventory_builder.list_directory(scan_directory)
            except OSError as e:
                raise DirectoryUnreadable(
                    "Failed accessing the library folder.",
                    path=str(scan_directory),
                    original_error=e,
                ) from e

            keys = self.keys_loader(self.cache_dir, settings.prod_keys)
            deep_scan = keys is not None and keys.has(HEADER_KEY)
            if not deep_scan:
                searched = ", ".join(str(p) for p in candidate_key_paths(self.cache_dir, settings.prod_keys))
                self._warn(DeepScanUnavailable(searched), warnings)

            config = RunConfiguration.from_settings(
                settings,
                scan_directory=scan_directory,
                recursive=resolve_recursive(settings.scan_recursively, overrides.recursive),
                deep_scan=deep_scan,
            )

            # Local inventory construction
            try:
                inventory = self.inventory_builder.build(
                    entries,
                    recursive=config.recursive,
                    deep_scan=config.deep_scan,
                    keys=keys if deep_scan else None,
                )
            except (OSError, ValueError) as e:
                raise InventoryBuildFailed("Failed to process the library folder.", original_error=e) from e

        self.reporter.info("Finished scan")

        # Completion metric
        completion = compute_completion(inventory, catalog)
        self.reporter.completion(completion)
        report = RunReport(completion=completion, warnings=warnings)
        log.info(
            "Library completion computed",
            percent=round(completion.percent, 2),
            owned=completion.owned,
            total=completion.total,
        )

        self._run_maintenance(
            report,
            STAGE_DELETE_OLD_UPDATES,
            config.delete_old_updates,
            "Deleting old updates",
            lambda: self.update_cleaner(inventory),
        )
        self._run_maintenance(
            report,
            STAGE_REORGANIZE,
            config.reorganize_library,
            "Starting library organization",
            lambda: self.organizer(config.scan_directory, inventory, catalog, config.organize_options),
        )

        if config.check_missing_updates:
            with self.reporter.stage("Checking for missing updates"):
                missing_updates = [
                    r for r in diff_updates(inventory, catalog)
                    if r.title_id not in config.ignore_update_title_ids
                ]
            report.missing_updates = missing_updates
            self.reporter.missing_updates(missing_updates)
            report.stages.append(StageResult(STAGE_MISSING_UPDATES, StageStatus.COMPLETED))
        else:
            report.stages.append(StageResult(STAGE_MISSING_UPDATES, StageStatus.SKIPPED))

        if config.check_missing_dlc:
            with self.reporter.stage("Checking for missing DLC"):
                missing_dlc = [
                    r for r in diff_dlc(inventory, catalog)
                    if r.title_id not in config.ignore_dlc_title_ids
                ]
            report.missing_dlc = missing_dlc
            self.reporter.missing_dlc(missing_dlc)
            report.stages.append(StageResult(STAGE_MISSING_DLC, StageStatus.COMPLETED))
        else:
            report.stages.append(StageResult(STAGE_MISSING_DLC, StageStatus.SKIPPED))

        self.reporter.info("Completed")
        log.info("Audit run completed", warnings=len(report.warnings))
        return report

    async def _fetch(self, url: str, filename: str, etag: str, warnings: list[str]) -> FetchResult:
        try:
            result = await self.fetcher.fetch(url, self.cache_dir / filename, etag)
        except NetworkError as e:
            raise ResourceUnavailable(f"{filename} could not be downloaded.", url=url, original_error=e) from e
        if result.stale:
            message = f"Could not refresh {filename}, using the cached copy."
            self.reporter.warning(message)
            warnings.append(message)
        return result

    def _persist_tokens(self, settings: AppSettings, warnings: list[str]) -> None:
        """Store the validation tokens; the run continues if this fails."""
        if self.config_service.load_failed:
            message = f"{SETTINGS_FILENAME} could not be read, not saving the validation tokens over it."
            self.reporter.warning(message)
            warnings.append(message)
            log.warning("Skipped saving settings", path=str(self.config_service.config_path))
            return
        try:
            self.config_service.save_config(settings)
        except (OSError, ValueError) as e:
            cause: Exception = e
            if isinstance(e, ValueError):
                cause = ConfigurationError(str(e), setting=SETTINGS_FILENAME)
            error = self.error_service.handle_error(
                cause,
                operation="save_settings",
                component="pipeline",
                context={"path": str(self.config_service.config_path)},
            )
            message = f"Failed to save settings: {error.message}"
            self.reporter.warning(message)
            warnings.append(message)

    def _warn(self, error: DeepScanUnavailable, warnings: list[str]) -> None:
        self.error_service.handle_error(error, operation="load_keys", component="pipeline")
        self.reporter.warning(error.message)
        warnings.append(error.message)

    def _run_maintenance(
        self,
        report: RunReport,
        name: str,
        enabled: bool,
        message: str,
        operation: Callable[[], MaintenanceResult],
    ) -> None:
        """Run a gated maintenance stage; failures are reported, never raised."""
        if not enabled:
            report.stages.append(StageResult(name, StageStatus.SKIPPED))
            return

        failure: MaintenanceStageFailed | None = None
        with self.reporter.stage(message):
            try:
                result = operation()
            except OSError as e:
                failure = MaintenanceStageFailed(name, f"{message} failed: {e}", [str(e)])
            else:
                report.maintenance[name] = result
                if not result.success:
                    failure = MaintenanceStageFailed(
                        name,
                        f"{message} finished with {len(result.errors)} error(s).",
                        result.errors,
                    )

        if failure is None:
            report.stages.append(StageResult(name, StageStatus.COMPLETED, f"{result.processed} file(s) processed"))
            return

        self.error_service.handle_error(failure, operation=name, component="pipeline")
        self.reporter.warning(failure.message)
        report.warnings.append(failure.message)
        report.stages.append(StageResult(name, StageStatus.FAILED, failure.message))
