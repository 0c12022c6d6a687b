"""Local library scanning.

Files are identified from the ``[titleId][vVersion]`` tags in their names.
When deep scan is enabled, ``.nsp``/``.nsz`` files are first identified from
the content meta record stored in their PFS0 container, and fall back to the
file name when the container holds no readable record.
"""

import re
import struct
import xml.etree.ElementTree as ET
from collections import deque
from dataclasses import dataclass
from pathlib import Path

import structlog

from ..models import ContentType, LocalFile, LocalInventory, base_title_id, content_type_of
from .keys import KeyStore

log = structlog.stdlib.get_logger()

SUPPORTED_EXTENSIONS = frozenset({".nsp", ".nsz", ".xci", ".xcz"})
PFS0_EXTENSIONS = frozenset({".nsp", ".nsz"})

_BRACKET_ID = re.compile(r"\[([0-9A-Fa-f]{16})\]")
_BARE_ID = re.compile(r"(?<![0-9A-Fa-f])(01[0-9A-Fa-f]{14})(?![0-9A-Fa-f])")
_VERSION_TAG = re.compile(r"\[v(\d+)\]", re.IGNORECASE)

_PFS0_MAGIC = b"PFS0"
_PFS0_HEADER = struct.Struct("<4sIII")
_PFS0_ENTRY = struct.Struct("<QQII")
_MAX_CNMT_XML_SIZE = 1024 * 1024

_META_TYPES = {
    "application": ContentType.BASE,
    "patch": ContentType.UPDATE,
    "addoncontent": ContentType.DLC,
}


@dataclass(frozen=True)
class ContentMeta:
    """Identity of a package as read from its file name or container."""
    title_id: str
    version: int | None
    content_type: ContentType


@dataclass(frozen=True)
class Pfs0Entry:
    name: str
    offset: int  # Absolute offset in the file
    size: int


def parse_file_name(name: str) -> ContentMeta | None:
    """Identify a package from the tags in its file name.

    Returns:
        ContentMeta, or None if the name holds no title id
    """
    match = _BRACKET_ID.search(name) or _BARE_ID.search(name)
    if not match:
        return None
    title_id = match.group(1).upper()

    version = None
    version_match = _VERSION_TAG.search(name)
    if version_match:
        version = int(version_match.group(1))

    return ContentMeta(title_id=title_id, version=version, content_type=content_type_of(title_id))


def read_pfs0_entries(path: Path) -> list[Pfs0Entry]:
    """List the files stored in a PFS0 container.

    Raises:
        ValueError: If the file is not a PFS0 container
        OSError: If the file cannot be read
    """
    with open(path, "rb") as f:
        header = f.read(_PFS0_HEADER.size)
        if len(header) < _PFS0_HEADER.size:
            raise ValueError("File too small for a PFS0 header")
        magic, count, string_table_size, _ = _PFS0_HEADER.unpack(header)
        if magic != _PFS0_MAGIC:
            raise ValueError(f"Not a PFS0 container (magic {magic!r})")

        raw_entries = f.read(_PFS0_ENTRY.size * count)
        string_table = f.read(string_table_size)
        if len(raw_entries) < _PFS0_ENTRY.size * count or len(string_table) < string_table_size:
            raise ValueError("Truncated PFS0 header")

    data_start = _PFS0_HEADER.size + _PFS0_ENTRY.size * count + string_table_size
    entries = []
    for index in range(count):
        offset, size, name_offset, _ = _PFS0_ENTRY.unpack_from(raw_entries, index * _PFS0_ENTRY.size)
        name_end = string_table.find(b"\0", name_offset)
        if name_end < 0:
            name_end = len(string_table)
        name = string_table[name_offset:name_end].decode("utf-8", errors="replace")
        entries.append(Pfs0Entry(name=name, offset=data_start + offset, size=size))
    return entries


def parse_cnmt_xml(data: bytes) -> ContentMeta | None:
    """Read title id, version and type from a ``.cnmt.xml`` document."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError:
        return None

    raw_id = (root.findtext("Id") or "").strip().lower().removeprefix("0x")
    meta_type = (root.findtext("Type") or "").strip().lower()
    raw_version = (root.findtext("Version") or "").strip()
    if not re.fullmatch(r"[0-9a-f]{1,16}", raw_id):
        return None

    title_id = raw_id.upper().zfill(16)
    version = int(raw_version) if raw_version.isdigit() else None
    content_type = _META_TYPES.get(meta_type, content_type_of(title_id))
    return ContentMeta(title_id=title_id, version=version, content_type=content_type)


def read_container_meta(path: Path) -> ContentMeta | None:
    """Identify a package from the content meta record inside its container.

    Only dumps that carry a plain cnmt.xml entry are read; encrypted meta NCAs
    are not decrypted.

    Returns:
        ContentMeta, or None if the container has no readable record
    """
    entries = read_pfs0_entries(path)
    with open(path, "rb") as f:
        for entry in entries:
            if not entry.name.lower().endswith(".cnmt.xml") or entry.size > _MAX_CNMT_XML_SIZE:
                continue
            f.seek(entry.offset)
            meta = parse_cnmt_xml(f.read(entry.size))
            if meta:
                return meta
    return None


class InventoryBuilder:
    """Build a LocalInventory from a directory listing."""

    def list_directory(self, folder: Path) -> list[Path]:
        """List the immediate contents of ``folder``.

        Raises:
            OSError: If the folder cannot be listed
        """
        return sorted(folder.iterdir())

    def build(
        self,
        entries: list[Path],
        recursive: bool,
        deep_scan: bool = False,
        keys: KeyStore | None = None,
    ) -> LocalInventory:
        """Build the inventory from listed directory entries.

        Args:
            entries: Immediate contents of the library folder
            recursive: Descend into sub folders
            deep_scan: Read container metadata before falling back to file names
            keys: Loaded console keys, required for deep scan

        Returns:
            The local inventory
        """
        inventory = LocalInventory()
        deep_scan = deep_scan and keys is not None
        files_seen = 0

        pending = deque(entries)
        while pending:
            path = pending.popleft()
            if path.name.startswith("."):
                continue

            if path.is_dir():
                if not recursive:
                    continue
                try:
                    pending.extend(sorted(path.iterdir()))
                except OSError as e:
                    log.warning("Failed to list sub folder", path=str(path), error=str(e))
                    inventory.skipped[path] = f"unreadable folder: {e}"
                continue

            if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
                continue

            files_seen += 1
            meta = self._identify(path, deep_scan)
            if meta is None:
                inventory.skipped[path] = "no title id found"
                log.debug("Skipping unidentified file", path=str(path))
                continue

            try:
                base_id = base_title_id(meta.title_id)
                size = path.stat().st_size
            except (ValueError, OSError) as e:
                inventory.skipped[path] = str(e)
                log.warning("Skipping file", path=str(path), error=str(e))
                continue

            inventory.add(
                base_id,
                LocalFile(
                    path=path,
                    title_id=meta.title_id,
                    content_type=meta.content_type,
                    version=meta.version,
                    size=size,
                ),
            )

        log.info(
            "Local inventory built",
            files=files_seen,
            titles=len(inventory),
            skipped=len(inventory.skipped),
            deep_scan=deep_scan,
        )
        return inventory

    def _identify(self, path: Path, deep_scan: bool) -> ContentMeta | None:
        if deep_scan and path.suffix.lower() in PFS0_EXTENSIONS:
            try:
                meta = read_container_meta(path)
                if meta:
                    return meta
            except (OSError, ValueError) as e:
                log.debug("Deep scan failed, using file name", path=str(path), error=str(e))
        return parse_file_name(path.name)
