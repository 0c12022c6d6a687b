"""Configuration service for managing application settings."""

import json
import re
from dataclasses import fields
from pathlib import Path
from typing import Any

import structlog

from ..models import AppSettings, OrganizeOptions

log = structlog.stdlib.get_logger()

SETTINGS_FILENAME = "settings.json"
DEFAULT_BASE_DIR = Path.home() / ".config" / "switch-library-audit"

_TITLE_ID_PATTERN = re.compile(r"^[0-9A-Fa-f]{16}$")


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None) -> None:
        self.is_valid: bool = is_valid
        self.errors: list[str] = errors or []


class ConfigurationService:
    """Service for loading and saving ``settings.json`` in the base directory."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir: Path = base_dir or DEFAULT_BASE_DIR
        self.config_path: Path = self.base_dir / SETTINGS_FILENAME
        self.load_failed: bool = False
        log.debug("Configuration service initialized", config_path=str(self.config_path))

    def load_config(self) -> AppSettings:
        """Load settings from file or return default settings.

        A settings file that exists but cannot be used sets ``load_failed`` so
        callers know not to write the defaults back over it.
        """
        self.load_failed = False
        if not self.config_path.exists():
            log.info("Settings file not found, using defaults", config_path=str(self.config_path))
            return AppSettings()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError(f"Expected JSON object, got {type(data).__name__}")

            settings = self._dict_to_config(data)
            validation_result = self.validate_config(settings)

            if not validation_result.is_valid:
                log.warning("Invalid settings loaded, using defaults", errors=validation_result.errors)
                self.load_failed = True
                return AppSettings()

            log.info("Settings loaded successfully")
            return settings

        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            log.error("Failed to load settings, using defaults", error=str(e))
            self.load_failed = True
            return AppSettings()

    def save_config(self, settings: AppSettings) -> None:
        """Save settings to file.

        Raises:
            ValueError: If the settings are invalid
            OSError: If the file cannot be written
        """
        validation_result = self.validate_config(settings)
        if not validation_result.is_valid:
            raise ValueError(f"Invalid configuration: {', '.join(validation_result.errors)}")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = self.config_path.with_suffix(self.config_path.suffix + ".tmp")
        try:
            data = self._config_to_dict(settings)
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_path.replace(self.config_path)

            log.info("Settings saved successfully", config_path=str(self.config_path))

        except OSError as e:
            log.error("Failed to save settings", error=str(e))
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)
            raise

    def validate_config(self, settings: AppSettings) -> ValidationResult:
        """Validate settings."""
        errors = []

        if not isinstance(settings.folder, str):
            errors.append("folder must be a string")

        for name in ("titles_etag", "versions_etag", "prod_keys"):
            if not isinstance(getattr(settings, name), str):
                errors.append(f"{name} must be a string")

        for name in ("ignore_update_title_ids", "ignore_dlc_title_ids"):
            values = getattr(settings, name)
            if not all(isinstance(v, str) and _TITLE_ID_PATTERN.match(v) for v in values):
                errors.append(f"{name} must contain 16 digit hexadecimal title ids")

        options = settings.organize_options
        if options.create_folder_per_game and not options.folder_name_template.strip():
            errors.append("folder_name_template cannot be empty when create_folder_per_game is set")
        if options.rename_files and not options.file_name_template.strip():
            errors.append("file_name_template cannot be empty when rename_files is set")

        return ValidationResult(len(errors) == 0, errors)

    def _config_to_dict(self, settings: AppSettings) -> dict[str, Any]:
        """Convert AppSettings to dictionary for JSON serialization."""
        options = settings.organize_options
        return {
            "folder": settings.folder,
            "scan_recursively": settings.scan_recursively,
            "titles_etag": settings.titles_etag,
            "versions_etag": settings.versions_etag,
            "prod_keys": settings.prod_keys,
            "check_for_missing_updates": settings.check_for_missing_updates,
            "check_for_missing_dlc": settings.check_for_missing_dlc,
            "ignore_update_title_ids": list(settings.ignore_update_title_ids),
            "ignore_dlc_title_ids": list(settings.ignore_dlc_title_ids),
            "organize_options": {f.name: getattr(options, f.name) for f in fields(OrganizeOptions)},
        }

    def _dict_to_config(self, data: dict[str, Any]) -> AppSettings:
        """Convert dictionary to AppSettings, falling back to defaults per field."""
        defaults = AppSettings()

        def read_bool(source: dict[str, Any], key: str, default: bool) -> bool:
            value = source.get(key, default)
            return value if isinstance(value, bool) else default

        def read_str(source: dict[str, Any], key: str, default: str) -> str:
            value = source.get(key, default)
            return value if isinstance(value, str) else default

        def read_ids(key: str) -> tuple[str, ...]:
            value = data.get(key, [])
            if not isinstance(value, list):
                log.warning("Ignoring malformed title id list", setting=key)
                return ()
            ids = []
            for item in value:
                if isinstance(item, str) and _TITLE_ID_PATTERN.match(item):
                    ids.append(item.upper())
                else:
                    log.warning("Ignoring invalid title id", setting=key, value=item)
            return tuple(ids)

        def read_template(key: str, default: str) -> str:
            value = read_str(raw_options, key, default)
            return value if value.strip() else default

        raw_options = data.get("organize_options", {})
        if not isinstance(raw_options, dict):
            raw_options = {}
        default_options = defaults.organize_options

        organize_options = OrganizeOptions(
            create_folder_per_game=read_bool(raw_options, "create_folder_per_game", default_options.create_folder_per_game),
            rename_files=read_bool(raw_options, "rename_files", default_options.rename_files),
            delete_empty_folders=read_bool(raw_options, "delete_empty_folders", default_options.delete_empty_folders),
            delete_old_update_files=read_bool(raw_options, "delete_old_update_files", default_options.delete_old_update_files),
            folder_name_template=read_template("folder_name_template", default_options.folder_name_template),
            file_name_template=read_template("file_name_template", default_options.file_name_template),
        )

        return AppSettings(
            folder=read_str(data, "folder", defaults.folder),
            scan_recursively=read_bool(data, "scan_recursively", defaults.scan_recursively),
            titles_etag=read_str(data, "titles_etag", defaults.titles_etag),
            versions_etag=read_str(data, "versions_etag", defaults.versions_etag),
            prod_keys=read_str(data, "prod_keys", defaults.prod_keys),
            check_for_missing_updates=read_bool(data, "check_for_missing_updates", defaults.check_for_missing_updates),
            check_for_missing_dlc=read_bool(data, "check_for_missing_dlc", defaults.check_for_missing_dlc),
            ignore_update_title_ids=read_ids("ignore_update_title_ids"),
            ignore_dlc_title_ids=read_ids("ignore_dlc_title_ids"),
            organize_options=organize_options,
        )
