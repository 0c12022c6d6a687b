"""Local library inventory data models."""

from dataclasses import dataclass, field
from pathlib import Path

from .catalog import ContentType


@dataclass(frozen=True)
class LocalFile:
    """A package file found in the local library."""
    path: Path
    title_id: str
    content_type: ContentType
    version: int | None = None
    size: int = 0


@dataclass
class LocalMatch:
    """Everything the local library holds for one base title."""
    title_id: str
    base_files: list[LocalFile] = field(default_factory=list)
    updates: dict[int, list[LocalFile]] = field(default_factory=dict)
    dlc: dict[str, list[LocalFile]] = field(default_factory=dict)

    def add(self, local_file: LocalFile) -> None:
        """Attach a file to this title according to its content type."""
        if local_file.content_type == ContentType.BASE:
            self.base_files.append(local_file)
        elif local_file.content_type == ContentType.UPDATE:
            version = local_file.version or 0
            self.updates.setdefault(version, []).append(local_file)
        else:
            self.dlc.setdefault(local_file.title_id, []).append(local_file)

    @property
    def local_version(self) -> int | None:
        """Highest installed version, or None when it cannot be determined.

        A base file on its own counts as version 0; a title represented only
        by DLC files has no determinable version.
        """
        if self.updates:
            return max(self.updates)
        if self.base_files:
            return max((f.version or 0) for f in self.base_files)
        return None

    @property
    def dlc_ids(self) -> frozenset[str]:
        return frozenset(self.dlc)

    @property
    def files(self) -> list[LocalFile]:
        """All files for the title: base, then updates by version, then DLC."""
        result = list(self.base_files)
        for version in sorted(self.updates):
            result.extend(self.updates[version])
        for dlc_id in sorted(self.dlc):
            result.extend(self.dlc[dlc_id])
        return result


@dataclass
class LocalInventory:
    """Local library contents keyed by base title id."""
    titles: dict[str, LocalMatch] = field(default_factory=dict)
    skipped: dict[Path, str] = field(default_factory=dict)  # Path -> reason

    def add(self, base_id: str, local_file: LocalFile) -> None:
        match = self.titles.get(base_id)
        if match is None:
            match = LocalMatch(title_id=base_id)
            self.titles[base_id] = match
        match.add(local_file)

    def get(self, title_id: str) -> LocalMatch | None:
        return self.titles.get(title_id.upper())

    def __contains__(self, title_id: object) -> bool:
        return isinstance(title_id, str) and title_id.upper() in self.titles

    def __len__(self) -> int:
        return len(self.titles)
