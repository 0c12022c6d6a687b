"""Library maintenance: removal of superseded updates and reorganization."""

import os
import re
import shutil
from pathlib import Path

import structlog

from ..models import (
    ContentType,
    LocalFile,
    LocalInventory,
    MaintenanceResult,
    OrganizeOptions,
    RemoteCatalog,
    TitleRecord,
)

log = structlog.stdlib.get_logger()

_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_EMPTY_GROUPS = re.compile(r"\(\s*\)|\[\s*\]")
_SPACES = re.compile(r"\s{2,}")

_TYPE_LABELS = {
    ContentType.BASE: "BASE",
    ContentType.UPDATE: "UPD",
    ContentType.DLC: "DLC",
}


def delete_old_updates(inventory: LocalInventory) -> MaintenanceResult:
    """Delete every update file older than the newest update owned for its title."""
    result = MaintenanceResult()

    for title_id, match in inventory.titles.items():
        if len(match.updates) <= 1:
            result.skipped += 1
            continue

        latest = max(match.updates)
        for version, files in sorted(match.updates.items()):
            if version == latest:
                continue
            for local_file in files:
                try:
                    local_file.path.unlink()
                    result.processed += 1
                    result.details.append(f"Deleted: {local_file.path}")
                    log.info(
                        "Deleted superseded update",
                        title_id=title_id,
                        version=version,
                        latest=latest,
                        path=str(local_file.path),
                    )
                except OSError as e:
                    log.error("Failed to delete update", path=str(local_file.path), error=str(e))
                    result.errors.append(f"{local_file.path}: {e}")

    return result


def sanitize_name(value: str, fallback: str = "Unknown") -> str:
    """Make ``value`` safe to use as a single path component."""
    cleaned = _ILLEGAL_CHARS.sub("", value)
    cleaned = _SPACES.sub(" ", cleaned).strip().rstrip(".")
    return cleaned or fallback


def render_template(template: str, values: dict[str, str]) -> str:
    """Substitute ``{TOKEN}`` placeholders; unknown tokens render empty.

    Groups such as ``()`` or ``[]`` left empty by a blank token are removed.
    """
    rendered = re.sub(r"\{([A-Z_]+)\}", lambda m: values.get(m.group(1), ""), template)
    rendered = _EMPTY_GROUPS.sub("", rendered)
    return _SPACES.sub(" ", rendered).strip()


def _template_values(local_file: LocalFile, title: TitleRecord) -> dict[str, str]:
    dlc_name = ""
    if local_file.content_type == ContentType.DLC:
        dlc_name = title.dlc.get(local_file.title_id) or ""
    return {
        "TITLE_NAME": title.name,
        "TITLE_ID": local_file.title_id,
        "VERSION": str(local_file.version or 0),
        "TYPE": _TYPE_LABELS[local_file.content_type],
        "DLC_NAME": dlc_name,
    }


def plan_destination(
    folder: Path,
    local_file: LocalFile,
    title: TitleRecord,
    options: OrganizeOptions,
) -> Path:
    """Compute where ``local_file`` belongs under the organize options."""
    values = _template_values(local_file, title)

    if options.create_folder_per_game:
        dest_folder = folder / sanitize_name(render_template(options.folder_name_template, values), title.id)
    else:
        dest_folder = local_file.path.parent

    if options.rename_files:
        stem = sanitize_name(render_template(options.file_name_template, values), local_file.title_id)
        dest_name = stem + local_file.path.suffix.lower()
    else:
        dest_name = local_file.path.name

    return dest_folder / dest_name


def organize_library(
    folder: Path,
    inventory: LocalInventory,
    catalog: RemoteCatalog,
    options: OrganizeOptions,
) -> MaintenanceResult:
    """Move and rename library files according to the organize options.

    Titles unknown to the catalog are left in place. Existing files are never
    overwritten. Files already removed from the library since the scan, such as
    superseded updates, are skipped.
    """
    result = MaintenanceResult()

    for title_id, match in inventory.titles.items():
        title = catalog.get(title_id)
        if title is None:
            result.skipped += len(match.files)
            continue

        for local_file in match.files:
            if not local_file.path.exists():
                result.skipped += 1
                result.details.append(f"Skipped, no longer present: {local_file.path}")
                log.debug("File no longer present", path=str(local_file.path))
                continue
            destination = plan_destination(folder, local_file, title, options)
            if destination == local_file.path:
                result.skipped += 1
                continue
            if destination.exists():
                result.skipped += 1
                result.details.append(f"Skipped, destination exists: {destination}")
                log.warning("Destination already exists", source=str(local_file.path), destination=str(destination))
                continue
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(local_file.path), str(destination))
                result.processed += 1
                result.details.append(f"Moved: {local_file.path} -> {destination}")
                log.info("Moved file", source=str(local_file.path), destination=str(destination))
            except OSError as e:
                log.error("Failed to move file", source=str(local_file.path), error=str(e))
                result.errors.append(f"{local_file.path}: {e}")

    if options.delete_empty_folders:
        _delete_empty_folders(folder, result)

    return result


def _delete_empty_folders(root: Path, result: MaintenanceResult) -> None:
    """Remove empty directories below ``root``, deepest first."""
    for dirpath, _, _ in os.walk(root, topdown=False):
        path = Path(dirpath)
        if path == root:
            continue
        try:
            if not any(path.iterdir()):
                path.rmdir()
                result.details.append(f"Removed empty folder: {path}")
                log.info("Removed empty folder", path=str(path))
        except OSError as e:
            log.error("Failed to remove folder", path=str(path), error=str(e))
            result.errors.append(f"{path}: {e}")
