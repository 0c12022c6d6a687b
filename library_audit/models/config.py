"""Configuration data models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


TITLES_JSON_URL = "https://tinfoil.media/repo/db/titles.json"
VERSIONS_JSON_URL = "https://tinfoil.media/repo/db/versions.json"
TITLES_JSON_FILENAME = "titles.json"
VERSIONS_JSON_FILENAME = "versions.json"

DEFAULT_FOLDER_NAME_TEMPLATE = "{TITLE_NAME}"
DEFAULT_FILE_NAME_TEMPLATE = "{TITLE_NAME} ({DLC_NAME})[{TITLE_ID}][v{VERSION}]"


@dataclass(frozen=True)
class OrganizeOptions:
    """Options controlling library cleanup and reorganization."""
    create_folder_per_game: bool = False
    rename_files: bool = False
    delete_empty_folders: bool = False
    delete_old_update_files: bool = False
    folder_name_template: str = DEFAULT_FOLDER_NAME_TEMPLATE
    file_name_template: str = DEFAULT_FILE_NAME_TEMPLATE


@dataclass(frozen=True)
class AppSettings:
    """Persisted application settings.

    Every recognized option is listed here with its default, so a missing
    field in the settings file always has a well-defined value.
    """
    folder: str = ""
    scan_recursively: bool = True
    titles_etag: str = ""
    versions_etag: str = ""
    prod_keys: str = ""  # Explicit keys file path, empty = search default locations
    check_for_missing_updates: bool = False
    check_for_missing_dlc: bool = False
    ignore_update_title_ids: tuple[str, ...] = ()
    ignore_dlc_title_ids: tuple[str, ...] = ()
    organize_options: OrganizeOptions = field(default_factory=OrganizeOptions)


class RecurseOverride(Enum):
    """Per-run override of the recursive scan setting."""
    UNSET = "unset"
    TRUE = "true"
    FALSE = "false"


@dataclass(frozen=True)
class RunOverrides:
    """Command-line overrides that apply to a single run only."""
    folder: Path | None = None
    recursive: RecurseOverride = RecurseOverride.UNSET


@dataclass(frozen=True)
class RunConfiguration:
    """Immutable configuration snapshot for one pipeline run."""
    scan_directory: Path
    recursive: bool
    deep_scan: bool
    delete_old_updates: bool
    reorganize_library: bool
    check_missing_updates: bool
    check_missing_dlc: bool
    titles_etag: str
    versions_etag: str
    organize_options: OrganizeOptions = field(default_factory=OrganizeOptions)
    ignore_update_title_ids: frozenset[str] = frozenset()
    ignore_dlc_title_ids: frozenset[str] = frozenset()

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        scan_directory: Path,
        recursive: bool,
        deep_scan: bool,
    ) -> "RunConfiguration":
        """Build a run snapshot from persisted settings and resolved values."""
        options = settings.organize_options
        return cls(
            scan_directory=scan_directory,
            recursive=recursive,
            deep_scan=deep_scan,
            delete_old_updates=options.delete_old_update_files,
            reorganize_library=options.rename_files or options.create_folder_per_game,
            check_missing_updates=settings.check_for_missing_updates,
            check_missing_dlc=settings.check_for_missing_dlc,
            titles_etag=settings.titles_etag,
            versions_etag=settings.versions_etag,
            organize_options=options,
            ignore_update_title_ids=frozenset(i.upper() for i in settings.ignore_update_title_ids),
            ignore_dlc_title_ids=frozenset(i.upper() for i in settings.ignore_dlc_title_ids),
        )
