"""Property-based tests for the configuration service."""

import json
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, strategies as st

from library_audit.models import AppSettings, OrganizeOptions
from library_audit.services import ConfigurationService


title_ids = st.text(alphabet="0123456789ABCDEF", min_size=16, max_size=16)
safe_text = st.text(alphabet=st.characters(categories=("Lu", "Ll", "Nd", "Zs")), max_size=40)

valid_options_strategy = st.builds(
    OrganizeOptions,
    create_folder_per_game=st.booleans(),
    rename_files=st.booleans(),
    delete_empty_folders=st.booleans(),
    delete_old_update_files=st.booleans(),
    folder_name_template=st.just("{TITLE_NAME}"),
    file_name_template=st.sampled_from(["{TITLE_NAME} [{TITLE_ID}][v{VERSION}]", "{TITLE_ID}"]),
)

valid_settings_strategy = st.builds(
    AppSettings,
    folder=safe_text,
    scan_recursively=st.booleans(),
    titles_etag=safe_text,
    versions_etag=safe_text,
    prod_keys=safe_text,
    check_for_missing_updates=st.booleans(),
    check_for_missing_dlc=st.booleans(),
    ignore_update_title_ids=st.lists(title_ids, max_size=3).map(tuple),
    ignore_dlc_title_ids=st.lists(title_ids, max_size=3).map(tuple),
    organize_options=valid_options_strategy,
)


@given(valid_settings_strategy)
def test_settings_round_trip(settings: AppSettings) -> None:
    """Saving and reloading valid settings preserves every value."""
    with tempfile.TemporaryDirectory() as temp_dir:
        service = ConfigurationService(Path(temp_dir))

        service.save_config(settings)
        loaded = service.load_config()

        assert loaded == settings


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    settings = ConfigurationService(tmp_path).load_config()

    assert settings == AppSettings()
    assert settings.folder == ""
    assert settings.scan_recursively is True
    assert settings.titles_etag == "" and settings.versions_etag == ""
    assert settings.check_for_missing_updates is False
    assert settings.check_for_missing_dlc is False
    assert settings.organize_options.delete_old_update_files is False
    assert settings.organize_options.rename_files is False
    assert settings.organize_options.create_folder_per_game is False


def test_partial_file_fills_defaults(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(json.dumps({
        "folder": "/games",
        "check_for_missing_dlc": True,
        "organize_options": {"rename_files": True},
    }))

    settings = ConfigurationService(tmp_path).load_config()

    assert settings.folder == "/games"
    assert settings.check_for_missing_dlc is True
    assert settings.check_for_missing_updates is False
    assert settings.scan_recursively is True
    assert settings.organize_options.rename_files is True
    assert settings.organize_options.file_name_template == OrganizeOptions().file_name_template


def test_wrong_types_fall_back_per_field(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(json.dumps({
        "folder": 42,
        "scan_recursively": "no",
        "organize_options": "broken",
    }))

    settings = ConfigurationService(tmp_path).load_config()

    assert settings.folder == ""
    assert settings.scan_recursively is True
    assert settings.organize_options == OrganizeOptions()


def test_invalid_json_gives_defaults(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text("{oops")

    assert ConfigurationService(tmp_path).load_config() == AppSettings()


def test_ignore_ids_are_upper_cased(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(json.dumps({"ignore_dlc_title_ids": ["0100000000011001".lower()]}))

    settings = ConfigurationService(tmp_path).load_config()

    assert settings.ignore_dlc_title_ids == ("0100000000011001",)


def test_bad_ignore_ids_are_dropped_individually(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(json.dumps({
        "folder": "/games",
        "check_for_missing_dlc": True,
        "ignore_update_title_ids": ["nothex", "0100000000010000", 7],
        "ignore_dlc_title_ids": "0100000000011001",
    }))
    service = ConfigurationService(tmp_path)

    settings = service.load_config()

    assert not service.load_failed
    assert settings.folder == "/games"
    assert settings.check_for_missing_dlc is True
    assert settings.ignore_update_title_ids == ("0100000000010000",)
    assert settings.ignore_dlc_title_ids == ()


def test_blank_template_falls_back_to_default(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(json.dumps({
        "folder": "/games",
        "organize_options": {"rename_files": True, "file_name_template": "  "},
    }))
    service = ConfigurationService(tmp_path)

    settings = service.load_config()

    assert not service.load_failed
    assert settings.folder == "/games"
    assert settings.organize_options.rename_files is True
    assert settings.organize_options.file_name_template == OrganizeOptions().file_name_template


def test_unreadable_file_sets_load_failed(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text("[1, 2]")
    service = ConfigurationService(tmp_path)

    assert service.load_config() == AppSettings()
    assert service.load_failed

    (tmp_path / "settings.json").write_text(json.dumps({"folder": "/games"}))

    assert service.load_config().folder == "/games"
    assert not service.load_failed


def test_validation_rejects_bad_title_ids() -> None:
    result = ConfigurationService().validate_config(AppSettings(ignore_update_title_ids=("nothex",)))

    assert not result.is_valid
    assert any("ignore_update_title_ids" in error for error in result.errors)


def test_validation_rejects_empty_templates() -> None:
    settings = AppSettings(organize_options=OrganizeOptions(rename_files=True, file_name_template=" "))

    result = ConfigurationService().validate_config(settings)

    assert not result.is_valid
    assert "file_name_template cannot be empty when rename_files is set" in result.errors


def test_save_rejects_invalid_settings(tmp_path: Path) -> None:
    service = ConfigurationService(tmp_path)

    with pytest.raises(ValueError):
        service.save_config(AppSettings(ignore_dlc_title_ids=("xyz",)))

    assert not service.config_path.exists()


def test_save_writes_readable_json(tmp_path: Path) -> None:
    service = ConfigurationService(tmp_path / "nested")
    service.save_config(AppSettings(folder="/games", titles_etag='W/"abc"'))

    data = json.loads(service.config_path.read_text(encoding="utf-8"))

    assert data["folder"] == "/games"
    assert data["titles_etag"] == 'W/"abc"'
    assert data["organize_options"]["folder_name_template"] == "{TITLE_NAME}"
    assert not (tmp_path / "nested" / "settings.json.tmp").exists()
