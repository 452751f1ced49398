"""Scan orchestration: discovery, per-lockfile parsing and matching."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Set, Tuple

from shai_hulud_scan import walker
from shai_hulud_scan.config import ScanConfig
from shai_hulud_scan.models import LockfileRecord, PackageIdentifier, ScanResult
from shai_hulud_scan.parsers import parser_for_path
from shai_hulud_scan.registry import KnownBadSet

ParsedLockfile = Tuple[LockfileRecord, Set[PackageIdentifier]]


# ------------------ Matcher / Aggregator ------------------
def match_lockfiles(parsed: Iterable[ParsedLockfile], registry: KnownBadSet) -> ScanResult:
    """
    Cross-reference each lockfile's identifiers against the registry.

    Lockfiles keep their discovery order; an identifier is recorded at most
    once per lockfile and ``total`` counts (identifier, lockfile) pairs.
    """
    result = ScanResult()
    for record, identifiers in parsed:
        result.lockfiles.append(record)
        for identifier in sorted(identifiers):
            canonical = identifier.canonical
            if not registry.contains(canonical):
                continue
            records = result.findings.setdefault(canonical, [])
            if record in records:
                continue
            records.append(record)
            result.total += 1
            logging.debug(f"Matched {canonical} in {record.path}")
    return result


# ------------------ Scanner ------------------
class ShaiHuludScanner:
    """Find lockfiles under a directory and check them against the known-bad list"""

    def __init__(self, config: Optional[ScanConfig] = None, registry: Optional[KnownBadSet] = None):
        self.config = config or ScanConfig()
        self.registry = registry if registry is not None else KnownBadSet()

    def find_lockfiles(self, root) -> List[str]:
        return walker.find_lockfiles(root)

    def inspect(self, path) -> LockfileRecord:
        return parser_for_path(path, self.config).inspect(path)

    def collect(self, path) -> ParsedLockfile:
        """Parse one lockfile into its record and identifier set"""
        parser = parser_for_path(path, self.config)
        record, identifiers = parser.load(path)
        logging.debug(f"{path}: {len(identifiers)} packages ({record.label})")
        return record, identifiers

    def list_lockfiles(self, root) -> List[LockfileRecord]:
        return [self.inspect(path) for path in self.find_lockfiles(root)]

    def scan(self, root) -> ScanResult:
        """Scan every lockfile under ``root``; a missing root yields an empty result"""
        paths = self.find_lockfiles(root)
        if not paths:
            logging.info(f"No lockfiles found under {root}")
            return ScanResult()

        logging.info(f"Scanning {len(paths)} lockfiles against {len(self.registry)} known-bad identifiers")
        if self.config.max_workers > 1 and len(paths) > 1:
            # map() yields in submission order, so discovery order is preserved
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                parsed = list(executor.map(self.collect, paths))
        else:
            parsed = [self.collect(path) for path in paths]

        result = match_lockfiles(parsed, self.registry)
        logging.info(f"Scan completed: {result.total} findings in {len(result.lockfiles)} lockfiles")
        return result
