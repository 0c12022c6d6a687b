"""Loading of console key files used to enable deep scanning."""

import re
from pathlib import Path

import structlog

log = structlog.stdlib.get_logger()

KEYS_FILENAME = "prod.keys"
HEADER_KEY = "header_key"

_KEY_LINE = re.compile(r"^\s*([A-Za-z0-9_]+)\s*=\s*([0-9A-Fa-f]+)\s*$")


class KeyStore:
    """Named hexadecimal keys read from a ``prod.keys`` style file."""

    def __init__(self, keys: dict[str, str], path: Path | None = None) -> None:
        self._keys = keys
        self.path = path

    def get(self, name: str) -> str:
        """Return the key value, or an empty string if it is not present."""
        return self._keys.get(name.lower(), "")

    def has(self, name: str) -> bool:
        return bool(self.get(name))

    def __len__(self) -> int:
        return len(self._keys)

    @classmethod
    def parse(cls, text: str, path: Path | None = None) -> "KeyStore":
        """Parse ``name = hexvalue`` lines, ignoring comments and malformed lines."""
        keys: dict[str, str] = {}
        for line in text.splitlines():
            if not line.strip() or line.lstrip().startswith(("#", ";")):
                continue
            match = _KEY_LINE.match(line)
            if match:
                keys[match.group(1).lower()] = match.group(2).upper()
        return cls(keys, path)


def candidate_key_paths(base_dir: Path, explicit: str = "") -> list[Path]:
    """Locations searched for a keys file, in priority order."""
    paths = []
    if explicit:
        paths.append(Path(explicit).expanduser())
    paths.append(base_dir / KEYS_FILENAME)
    paths.append(Path.home() / ".switch" / KEYS_FILENAME)
    return paths


def load_keys(base_dir: Path, explicit: str = "") -> KeyStore | None:
    """Load the first readable keys file.

    Args:
        base_dir: Application base directory
        explicit: Path configured in settings (``prod_keys``), may be empty

    Returns:
        The loaded KeyStore, or None when no keys file could be read
    """
    for path in candidate_key_paths(base_dir, explicit):
        if not path.is_file():
            continue
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            log.warning("Failed to read keys file", path=str(path), error=str(e))
            continue
        store = KeyStore.parse(text, path)
        log.info("Keys file loaded", path=str(path), keys=len(store))
        return store

    log.info("No keys file found", searched=[str(p) for p in candidate_key_paths(base_dir, explicit)])
    return None
