"""Known-bad registry: the set of compromised ``name@version`` identifiers."""

import logging
from pathlib import Path
from typing import FrozenSet, Iterable, Optional, Union

from shai_hulud_scan.errors import RegistryLoadError
from shai_hulud_scan.models import PackageIdentifier

DEFAULT_KNOWN_BAD_PATH = Path(__file__).parent / "data" / "shai-hulud-attacked-list.txt"


class KnownBadSet:
    """Immutable set of canonical identifiers reported as compromised"""

    def __init__(self, identifiers: Iterable[str] = (), source: Optional[Path] = None,
                 load_error: Optional[RegistryLoadError] = None):
        self._identifiers: FrozenSet[str] = frozenset(identifiers)
        self.source = source
        self.load_error = load_error

    def contains(self, identifier: Union[PackageIdentifier, str]) -> bool:
        if isinstance(identifier, PackageIdentifier):
            identifier = identifier.canonical
        return identifier in self._identifiers

    __contains__ = contains

    def __len__(self) -> int:
        return len(self._identifiers)

    def __iter__(self):
        return iter(sorted(self._identifiers))

    def __repr__(self) -> str:
        return f"KnownBadSet({len(self)} identifiers from {self.source})"


def parse_known_bad(content: str) -> FrozenSet[str]:
    """One identifier per non-blank line, whitespace trimmed"""
    return frozenset(
        line.strip()
        for line in content.replace("\r\n", "\n").split("\n")
        if line.strip()
    )


def load(path: Optional[Union[str, Path]] = None) -> KnownBadSet:
    """
    Load the known-bad list from ``path`` (the bundled list by default).

    A read failure never raises: the returned set is empty and carries the
    RegistryLoadError on ``load_error`` so scanning can proceed.
    """
    source = Path(path) if path else DEFAULT_KNOWN_BAD_PATH
    try:
        content = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        error = RegistryLoadError(source, str(e))
        logging.error(str(error))
        return KnownBadSet(source=source, load_error=error)

    identifiers = parse_known_bad(content)
    logging.info(f"Loaded {len(identifiers)} known-bad identifiers from {source}")
    return KnownBadSet(identifiers, source=source)
