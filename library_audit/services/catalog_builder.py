"""Build the remote title catalog from the title database JSON files."""

import json
import re
from pathlib import Path
from typing import Any

import structlog

from ..models import ContentType, RemoteCatalog, TitleRecord, VersionEntry, base_title_id, content_type_of

log = structlog.stdlib.get_logger()

_TITLE_ID_PATTERN = re.compile(r"^[0-9A-F]{16}$")


def _format_release_date(value: Any) -> str | None:
    """Render a ``yyyymmdd`` integer as ``yyyy-mm-dd``."""
    if value is None or value == "":
        return None
    text = str(value)
    if len(text) == 8 and text.isdigit():
        return f"{text[0:4]}-{text[4:6]}-{text[6:8]}"
    return text


class CatalogBuilder:
    """Parse ``titles.json`` and ``versions.json`` into a RemoteCatalog."""

    def build(self, titles_path: Path, versions_path: Path) -> RemoteCatalog:
        """Build the catalog from the two cached resources.

        Args:
            titles_path: Path to the titles JSON (nsuId -> title entry)
            versions_path: Path to the versions JSON (title id -> {version: date})

        Returns:
            RemoteCatalog keyed by upper-case base title id

        Raises:
            ValueError: If either file is not a JSON object
            OSError: If either file cannot be read
        """
        titles_data = self._load_object(titles_path)
        versions_data = self._load_object(versions_path)
        return self.build_from_data(titles_data, versions_data)

    def build_from_data(self, titles_data: dict[str, Any], versions_data: dict[str, Any]) -> RemoteCatalog:
        """Build the catalog from already decoded JSON objects."""
        bases: dict[str, dict[str, Any]] = {}
        dlc_by_base: dict[str, dict[str, str | None]] = {}
        ignored = 0

        for entry in titles_data.values():
            if not isinstance(entry, dict):
                ignored += 1
                continue
            title_id = str(entry.get("id") or "").upper()
            if not _TITLE_ID_PATTERN.match(title_id):
                ignored += 1
                continue

            kind = content_type_of(title_id)
            if kind == ContentType.BASE:
                existing = bases.get(title_id)
                # Regional duplicates share an id; keep the first entry that has a name
                if existing is None or (not existing.get("name") and entry.get("name")):
                    bases[title_id] = entry
            elif kind == ContentType.DLC:
                dlc_by_base.setdefault(base_title_id(title_id), {})[title_id] = entry.get("name") or None

        versions_by_title: dict[str, tuple[VersionEntry, ...]] = {}
        for raw_id, history in versions_data.items():
            if not isinstance(history, dict):
                continue
            entries = []
            for version, release_date in history.items():
                try:
                    entries.append(VersionEntry(version=int(version), release_date=str(release_date)))
                except (TypeError, ValueError):
                    log.debug("Ignoring malformed version entry", title_id=raw_id, version=version)
            versions_by_title[str(raw_id).upper()] = tuple(sorted(entries, key=lambda e: e.version))

        titles = {
            title_id: TitleRecord(
                id=title_id,
                name=str(entry.get("name") or title_id),
                versions=versions_by_title.get(title_id, ()),
                dlc=dlc_by_base.get(title_id, {}),
                release_date=_format_release_date(entry.get("releaseDate")),
                region=entry.get("region"),
                icon_url=entry.get("iconUrl"),
            )
            for title_id, entry in bases.items()
        }

        log.info(
            "Remote catalog built",
            titles=len(titles),
            dlc=sum(len(t.dlc) for t in titles.values()),
            ignored_entries=ignored,
        )
        return RemoteCatalog(titles=titles)

    @staticmethod
    def _load_object(path: Path) -> dict[str, Any]:
        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Expected JSON object in {path.name}, got {type(data).__name__}")
        return data
