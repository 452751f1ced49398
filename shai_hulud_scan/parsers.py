"""
Lockfile parsers
================
One parser per dialect (npm, Yarn, pnpm). Each turns lockfile text into the
set of resolved PackageIdentifiers it records, whatever the nesting depth.
Malformed entries are skipped; a document that cannot be parsed contributes
nothing instead of raising.

package-lock v2+ keys name the innermost install: `node_modules/a/node_modules/b`
records package `b`, since the entry's version belongs to `b`, not `a`.
"""

import codecs
import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Tuple, Union

import semantic_version

from shai_hulud_scan.config import DEFAULT_LARGE_FILE_THRESHOLD, DEFAULT_MAX_TREE_DEPTH, ScanConfig
from shai_hulud_scan.errors import LockfileParseError
from shai_hulud_scan.models import (
    DIALECT_NPM,
    DIALECT_PNPM,
    DIALECT_YARN,
    LOCKFILE_DIALECTS,
    LockfileRecord,
    PackageIdentifier,
)

Revision = Union[int, float]

# Tried in order; latin-1 accepts any byte sequence
LOCKFILE_ENCODINGS = ("utf-8", "utf-16-le", "latin-1")


# ------------------ Read Policy ------------------
def decode_lockfile(data: bytes) -> str:
    """Decode with the first encoding that accepts the bytes"""
    for encoding in LOCKFILE_ENCODINGS:
        try:
            text = data.decode(encoding)
        except UnicodeDecodeError:
            continue
        return text.lstrip("\ufeff")
    return data.decode("utf-8", errors="replace")


def decode_lockfile_lenient(data: bytes) -> str:
    """Honour a UTF-16 byte-order mark, otherwise UTF-8 with replacement"""
    if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return data.decode("utf-16", errors="replace")
    return data.decode("utf-8-sig", errors="replace")


def read_lockfile(path) -> str:
    with open(path, "rb") as f:
        return decode_lockfile(f.read())


def read_lockfile_lenient(path) -> str:
    with open(path, "rb") as f:
        return decode_lockfile_lenient(f.read())


def _optional_str(value: Any) -> Optional[str]:
    """Absent, null, empty and non-string values all read as missing"""
    if isinstance(value, str) and value:
        return value
    return None


def _optional_mapping(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, dict):
        return value
    return None


# ------------------ Base Parser ------------------
class LockfileParser:
    """Common read, fallback and error handling for every dialect"""

    dialect = ""
    filename = ""
    default_revision: Revision = 1

    def __init__(self, config: Optional[ScanConfig] = None):
        self.config = config or ScanConfig()

    def detect_revision(self, text: str) -> Revision:
        raise NotImplementedError

    def _extract(self, text: str) -> Tuple[Revision, Set[PackageIdentifier]]:
        """Primary strategy; raises LockfileParseError when the text is unusable"""
        raise NotImplementedError

    def _extract_fallback(self, text: str) -> Tuple[Revision, Set[PackageIdentifier]]:
        return self._extract(text)

    def parse(self, text: str) -> Set[PackageIdentifier]:
        """Identifiers found in ``text``; empty on a document-level failure"""
        try:
            return self._extract(text)[1]
        except LockfileParseError as e:
            logging.error(f"Error parsing {self.filename}: {e}")
            return set()

    def inspect(self, path) -> LockfileRecord:
        """Detect the format revision without extracting packages"""
        try:
            revision = self.detect_revision(read_lockfile(path))
        except OSError as e:
            logging.error(f"Unable to read {path}: {e}")
            revision = self.default_revision
        return LockfileRecord(str(path), self.dialect, revision)

    def load(self, path) -> Tuple[LockfileRecord, Set[PackageIdentifier]]:
        """
        Read and parse one lockfile.

        The primary read decodes with LOCKFILE_ENCODINGS. If reading or
        parsing fails, the file is re-read once with a lenient decode and
        parsed again; if that fails too the lockfile contributes nothing.
        """
        try:
            revision, found = self._extract(read_lockfile(path))
            return LockfileRecord(str(path), self.dialect, revision), found
        except OSError as e:
            logging.error(f"Unable to read {path}: {e}")
        except LockfileParseError as e:
            e.path = str(path)
            logging.error(f"Error parsing {e}")

        try:
            revision, found = self._extract_fallback(read_lockfile_lenient(path))
            logging.info(f"Recovered {path} with lenient decoding")
            return LockfileRecord(str(path), self.dialect, revision), found
        except OSError as e:
            logging.error(f"Fallback read of {path} failed: {e}")
        except LockfileParseError as e:
            e.path = str(path)
            logging.error(f"Fallback parse failed: {e}")
        return LockfileRecord(str(path), self.dialect, self.default_revision), set()

    def parse_file(self, path) -> Set[PackageIdentifier]:
        return self.load(path)[1]


# ------------------ npm (package-lock.json) ------------------
@dataclass
class NpmLockEntry:
    """One ``dependencies`` (tree) or ``packages`` (flat) entry"""
    version: Optional[str]
    dependencies: Optional[Dict[str, Any]]

    @classmethod
    def decode(cls, raw: Any) -> Optional["NpmLockEntry"]:
        if not isinstance(raw, dict):
            return None
        return cls(
            version=_optional_str(raw.get("version")),
            dependencies=_optional_mapping(raw.get("dependencies")),
        )


@dataclass
class NpmLockDocument:
    lockfile_version: Revision
    packages: Optional[Dict[str, Any]]
    dependencies: Optional[Dict[str, Any]]

    @classmethod
    def decode(cls, text: str) -> "NpmLockDocument":
        try:
            data = json.loads(text)
        # ValueError also covers integer literals over the int conversion limit
        except (ValueError, RecursionError) as e:
            raise LockfileParseError(f"Invalid JSON: {e}", dialect=DIALECT_NPM) from e
        if not isinstance(data, dict):
            raise LockfileParseError("Lockfile root is not a JSON object", dialect=DIALECT_NPM)

        version = data.get("lockfileVersion")
        # bool is an int subclass; true/false is not a revision
        if not isinstance(version, (int, float)) or isinstance(version, bool):
            version = NpmLockParser.default_revision
        return cls(
            lockfile_version=version,
            packages=_optional_mapping(data.get("packages")),
            dependencies=_optional_mapping(data.get("dependencies")),
        )


def package_name_from_path(path: str) -> Optional[str]:
    """
    Package name for a ``packages`` key of package-lock v2+.

    ``node_modules/pkg`` -> ``pkg``, ``node_modules/@scope/pkg`` ->
    ``@scope/pkg``; nested installs resolve to the innermost package. The
    root entry (empty key) yields None.
    """
    if not path:
        return None
    clean = path.lstrip("/")
    marker = "node_modules/"
    if marker in clean:
        clean = clean[clean.rindex(marker) + len(marker):]

    parts = clean.split("/")
    if clean.startswith("@"):
        if len(parts) >= 2 and parts[0] != "@" and parts[1]:
            return f"{parts[0]}/{parts[1]}"
        return None
    return parts[0] or None


class NpmLockParser(LockfileParser):
    """package-lock.json, lockfileVersion 1 (tree) and 2+ (flat packages)"""

    dialect = DIALECT_NPM
    filename = "package-lock.json"
    default_revision = 1

    def detect_revision(self, text: str) -> Revision:
        try:
            return NpmLockDocument.decode(text).lockfile_version
        except LockfileParseError:
            return self.default_revision

    def _extract(self, text: str) -> Tuple[Revision, Set[PackageIdentifier]]:
        document = NpmLockDocument.decode(text)
        if document.lockfile_version >= 2:
            return document.lockfile_version, self._walk_packages(document.packages)
        return document.lockfile_version, self._walk_dependency_tree(document.dependencies)

    def _extract_fallback(self, text: str) -> Tuple[Revision, Set[PackageIdentifier]]:
        document = NpmLockDocument.decode(text)
        # Pick the strategy by which top-level key is present
        if document.packages is not None:
            return document.lockfile_version, self._walk_packages(document.packages)
        return document.lockfile_version, self._walk_dependency_tree(document.dependencies)

    def _walk_packages(self, packages: Optional[Dict[str, Any]]) -> Set[PackageIdentifier]:
        found: Set[PackageIdentifier] = set()
        for path, raw in (packages or {}).items():
            entry = NpmLockEntry.decode(raw)
            if entry is None or not entry.version:
                continue
            name = package_name_from_path(path)
            if name:
                found.add(PackageIdentifier(name, entry.version))
        return found

    def _walk_dependency_tree(self, dependencies: Optional[Dict[str, Any]]) -> Set[PackageIdentifier]:
        """Walk lockfileVersion 1 ``dependencies`` with an explicit work list"""
        found: Set[PackageIdentifier] = set()
        max_depth = self.config.max_tree_depth or DEFAULT_MAX_TREE_DEPTH
        pending = [(dependencies or {}, 1)]

        while pending:
            deps, depth = pending.pop()
            for name, raw in deps.items():
                entry = NpmLockEntry.decode(raw)
                if entry is None:
                    continue
                if name and entry.version:
                    found.add(PackageIdentifier(name, entry.version))
                # Children are walked even when the parent has no version
                if entry.dependencies:
                    if depth >= max_depth:
                        logging.debug(f"Dependency tree deeper than {max_depth} under {name}, skipping")
                        continue
                    pending.append((entry.dependencies, depth + 1))
        return found


# ------------------ Yarn (yarn.lock) ------------------
YARN_REVISION_RE = re.compile(r"lockfile\s+v(\d+)", re.IGNORECASE)
# Classic `version "1.2.3"` and Berry `version: 1.2.3`
YARN_VERSION_RE = re.compile(r"""^version(?::\s*|\s+)["']?([^"'\s]+)["']?\s*$""")


def yarn_descriptor(heading: str) -> Tuple[Optional[str], Optional[str]]:
    """
    (name, specifier) of the first descriptor in a block heading.

    ``"pkg@^1.0.0", "pkg@^1.2.0":`` -> ("pkg", "^1.0.0"); the remaining
    descriptors are aliases of the same resolved entry.
    """
    body = heading[:-1] if heading.endswith(":") else heading
    first = body.split(",")[0].strip().strip("\"'")
    if "@" not in first:
        return None, None
    if first.startswith("@"):
        sep = first.find("@", 1)
        if sep < 0:
            return first, None
    else:
        sep = first.index("@")
    name, specifier = first[:sep], first[sep + 1:]
    return (name or None), (specifier or None)


def _exact_version(specifier: Optional[str]) -> Optional[str]:
    """The specifier itself when it pins one concrete version"""
    if not specifier:
        return None
    if specifier.startswith("npm:"):
        specifier = specifier[len("npm:"):]
    if semantic_version.validate(specifier):
        return specifier
    return None


class YarnLockParser(LockfileParser):
    """yarn.lock, line oriented"""

    dialect = DIALECT_YARN
    filename = "yarn.lock"
    default_revision = 1

    def __init__(self, config: Optional[ScanConfig] = None):
        super().__init__(config)
        # Every revision seen so far shares the classic line algorithm
        self._strategies = {1: self._parse_lines}

    def detect_revision(self, text: str) -> Revision:
        for line in text.splitlines():
            stripped = line.strip()
            if not stripped:
                continue
            if not stripped.startswith("#"):
                break
            match = YARN_REVISION_RE.search(stripped)
            if match:
                return int(match.group(1))
        return self.default_revision

    def load(self, path) -> Tuple[LockfileRecord, Set[PackageIdentifier]]:
        threshold = self.config.large_file_threshold or DEFAULT_LARGE_FILE_THRESHOLD
        try:
            size = os.path.getsize(path)
        except OSError:
            size = 0
        if size > threshold:
            logging.warning(
                f"{path} is {size / (1024 * 1024):.1f} MiB; parsing large yarn.lock files may be slow"
            )
        return super().load(path)

    def _extract(self, text: str) -> Tuple[Revision, Set[PackageIdentifier]]:
        revision = self.detect_revision(text)
        strategy = self._strategies.get(revision, self._parse_lines)
        return revision, strategy(text)

    def _parse_lines(self, text: str) -> Set[PackageIdentifier]:
        found: Set[PackageIdentifier] = set()
        current_package = None
        tentative_version = None
        field_indent = None
        resolved = False

        def close_block():
            if current_package and tentative_version and not resolved:
                found.add(PackageIdentifier(current_package, tentative_version))

        for line in text.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue

            indent = len(line) - len(line.lstrip())
            if indent == 0:
                if stripped.endswith(":"):
                    close_block()
                    current_package, specifier = yarn_descriptor(stripped)
                    tentative_version = _exact_version(specifier)
                    field_indent = None
                    resolved = False
                continue

            if current_package is None:
                continue
            if field_indent is None:
                field_indent = indent
            if indent != field_indent:
                continue

            match = YARN_VERSION_RE.match(stripped)
            if match:
                found.add(PackageIdentifier(current_package, match.group(1)))
                resolved = True

        close_block()
        return found


# ------------------ pnpm (pnpm-lock.yaml) ------------------
PNPM_REVISION_RE = re.compile(r"""^lockfileVersion:\s*['"]?([^'"\s]+)['"]?\s*$""")
PNPM_VERSION_RE = re.compile(r"""^version:\s*['"]?([^'"\s]+)['"]?\s*$""")
# pnpm 5.x lockfiles; used when no lockfileVersion line is present
DEFAULT_PNPM_REVISION = 5.4


def _legacy_pnpm_path(path: str) -> Optional[Tuple[str, str]]:
    """pnpm < 6 keys: ``name/version`` with an optional ``_peer`` suffix"""
    name, sep, version = path.rpartition("/")
    if not sep or not name:
        return None
    version = version.split("_", 1)[0]
    if semantic_version.validate(version):
        return name, version
    return None


def pnpm_package_path(key: str, revision: Revision = 6.0) -> Tuple[Optional[str], Optional[str]]:
    """
    (name, version) encoded in a ``packages`` heading.

    Handles ``/name@version``, ``name@version`` (pnpm 9), scoped names,
    a trailing ``@integrityHash`` and a ``(peer@x)`` suffix.
    """
    path = key.strip().strip("\"'")
    if path.startswith("/"):
        path = path[1:]
    if not path:
        return None, None

    if revision < 6:
        legacy = _legacy_pnpm_path(path)
        if legacy:
            return legacy

    start = 1 if path.startswith("@") else 0
    sep = path.find("@", start)
    if sep < 0:
        return path, None
    name, remainder = path[:sep], path[sep + 1:]
    if not name:
        return None, None

    if "(" in remainder:
        remainder = remainder[:remainder.index("(")]
    if "@" in remainder:
        remainder = remainder[:remainder.rindex("@")]
    return name, (remainder or None)


class PnpmLockParser(LockfileParser):
    """pnpm-lock.yaml, read as structured text rather than generic YAML"""

    dialect = DIALECT_PNPM
    filename = "pnpm-lock.yaml"
    default_revision = DEFAULT_PNPM_REVISION

    def detect_revision(self, text: str) -> Revision:
        for line in text.splitlines():
            match = PNPM_REVISION_RE.match(line)
            if match:
                try:
                    return float(match.group(1))
                except ValueError:
                    logging.debug(f"Unrecognised pnpm lockfileVersion {match.group(1)!r}")
                    break
        return self.default_revision

    def _extract(self, text: str) -> Tuple[Revision, Set[PackageIdentifier]]:
        revision = self.detect_revision(text)
        return revision, self._parse_packages_block(text, revision)

    def _parse_packages_block(self, text: str, revision: Revision) -> Set[PackageIdentifier]:
        found: Set[PackageIdentifier] = set()
        in_packages = False
        entry_indent = None
        field_indent = None
        current_package = None

        for line in text.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue

            indent = len(line) - len(line.lstrip())
            if indent == 0:
                in_packages = stripped == "packages:"
                entry_indent = None
                current_package = None
                continue
            if not in_packages:
                continue

            if entry_indent is None:
                entry_indent = indent
            if indent <= entry_indent:
                current_package = None
                field_indent = None
                if stripped.endswith(":"):
                    name, version = pnpm_package_path(stripped[:-1], revision)
                    current_package = name
                    if name and version:
                        found.add(PackageIdentifier(name, version))
                continue

            if current_package is None:
                continue
            if field_indent is None:
                field_indent = indent
            if indent != field_indent:
                continue

            match = PNPM_VERSION_RE.match(stripped)
            if match:
                found.add(PackageIdentifier(current_package, match.group(1)))

        return found


# ------------------ Dispatch ------------------
PARSERS = {
    DIALECT_NPM: NpmLockParser,
    DIALECT_YARN: YarnLockParser,
    DIALECT_PNPM: PnpmLockParser,
}


def dialect_for_path(path) -> Optional[str]:
    return LOCKFILE_DIALECTS.get(os.path.basename(os.fspath(path)))


def parser_for_path(path, config: Optional[ScanConfig] = None) -> LockfileParser:
    dialect = dialect_for_path(path)
    if dialect is None:
        raise ValueError(f"Not a recognised lockfile: {path}")
    return PARSERS[dialect](config)
