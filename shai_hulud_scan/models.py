"""Data model shared by the walker, parsers, matcher and reporter."""

from dataclasses import dataclass, field
from typing import Dict, List, Union

DIALECT_NPM = "npm"
DIALECT_YARN = "yarn"
DIALECT_PNPM = "pnpm"

# Exact, case-sensitive lockfile names and the dialect each one carries
LOCKFILE_DIALECTS = {
    "package-lock.json": DIALECT_NPM,
    "yarn.lock": DIALECT_YARN,
    "pnpm-lock.yaml": DIALECT_PNPM,
}


@dataclass(frozen=True, order=True)
class PackageIdentifier:
    """A resolved (name, version) pair"""
    name: str
    version: str

    @property
    def canonical(self) -> str:
        return f"{self.name}@{self.version}"

    def __str__(self) -> str:
        return self.canonical

    @classmethod
    def parse_canonical(cls, text: str) -> "PackageIdentifier":
        """
        Split a canonical ``name@version`` string.

        Scoped names (``@scope/name``) keep their leading ``@``; the separator
        is the second ``@`` for those and the first one otherwise.
        """
        start = 1 if text.startswith("@") else 0
        sep = text.find("@", start)
        if sep <= 0 or sep == len(text) - 1:
            raise ValueError(f"Not a canonical package identifier: {text!r}")
        return cls(text[:sep], text[sep + 1:])


@dataclass(frozen=True)
class LockfileRecord:
    """One discovered lockfile with its dialect and detected format revision"""
    path: str
    dialect: str
    revision: Union[int, float]

    @property
    def label(self) -> str:
        return f"{self.dialect} lockfile v{self.revision}"


@dataclass
class ScanResult:
    """Aggregated findings for one scan, in lockfile discovery order"""
    lockfiles: List[LockfileRecord] = field(default_factory=list)
    findings: Dict[str, List[LockfileRecord]] = field(default_factory=dict)
    total: int = 0

    @property
    def is_clean(self) -> bool:
        return self.total == 0

    def findings_for(self, record: LockfileRecord) -> List[str]:
        """Canonical identifiers matched in one lockfile, in match order"""
        return [pkg for pkg, records in self.findings.items() if record in records]

    def affected_lockfiles(self) -> List[LockfileRecord]:
        return [record for record in self.lockfiles if self.findings_for(record)]
