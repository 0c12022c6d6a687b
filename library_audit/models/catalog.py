"""Remote title catalog data models."""

from dataclasses import dataclass, field
from enum import Enum


class ContentType(Enum):
    """Kind of content a title id refers to."""
    BASE = "base"
    UPDATE = "update"
    DLC = "dlc"


def content_type_of(title_id: str) -> ContentType:
    """Classify a 16 hex digit title id by its suffix."""
    title_id = title_id.upper()
    if title_id.endswith("000"):
        return ContentType.BASE
    if title_id.endswith("800"):
        return ContentType.UPDATE
    return ContentType.DLC


def base_title_id(title_id: str) -> str:
    """Return the base application id that owns ``title_id``.

    Updates live at ``base + 0x800`` and DLC at ``base + 0x1000 + n``.

    Raises:
        ValueError: If ``title_id`` is not a hexadecimal string
    """
    value = int(title_id, 16)
    kind = content_type_of(title_id)
    if kind == ContentType.BASE:
        base = value
    elif kind == ContentType.UPDATE:
        base = value & ~0xFFF
    else:
        base = (value - 0x1000) & ~0xFFF
    return f"{base:016X}"


@dataclass(frozen=True)
class VersionEntry:
    """A released version of a title."""
    version: int
    release_date: str


@dataclass(frozen=True)
class TitleRecord:
    """A base title as described by the remote catalog."""
    id: str
    name: str
    versions: tuple[VersionEntry, ...] = ()  # Ascending by version
    dlc: dict[str, str | None] = field(default_factory=dict)  # DLC id -> name
    release_date: str | None = None
    region: str | None = None
    icon_url: str | None = None

    @property
    def latest(self) -> VersionEntry | None:
        """The newest released version, or None if the title was never updated."""
        if not self.versions:
            return None
        return max(self.versions, key=lambda entry: entry.version)

    @property
    def latest_version(self) -> int | None:
        latest = self.latest
        return latest.version if latest else None


@dataclass(frozen=True)
class RemoteCatalog:
    """All base titles known to the remote title database, keyed by title id."""
    titles: dict[str, TitleRecord]

    def get(self, title_id: str) -> TitleRecord | None:
        return self.titles.get(title_id.upper())

    def __contains__(self, title_id: object) -> bool:
        return isinstance(title_id, str) and title_id.upper() in self.titles

    def __len__(self) -> int:
        return len(self.titles)
