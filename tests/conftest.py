"""Shared test fixtures for shai-hulud-scan tests."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from shai_hulud_scan.config import ScanConfig
from shai_hulud_scan.registry import KnownBadSet

KNOWN_BAD = [
    "@ahmedhfarag/ngx-perfect-scrollbar@20.0.20",
    "@art-ws/common@2.0.28",
    "lodash@4.17.21",
]


def write_file(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def npm_lock_v2(packages: dict) -> str:
    """package-lock.json v2 text from a {name: version} mapping."""
    entries = {"": {"name": "project", "version": "1.0.0"}}
    for name, version in packages.items():
        entries[f"node_modules/{name}"] = {"version": version}
    return json.dumps({"name": "project", "lockfileVersion": 2, "packages": entries})


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo handlers installed by setup_logging during CLI tests."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def known_bad() -> KnownBadSet:
    return KnownBadSet(KNOWN_BAD)


@pytest.fixture
def config() -> ScanConfig:
    """Sequential, quiet configuration."""
    return ScanConfig(max_workers=1, enable_logging=False)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project tree with one lockfile of each dialect."""
    write_file(tmp_path / "package-lock.json", npm_lock_v2({"lodash": "4.17.21", "safe-pkg": "1.0.0"}))
    write_file(
        tmp_path / "web" / "yarn.lock",
        '# yarn lockfile v1\n\n'
        '"@art-ws/common@^2.0.0":\n'
        '  version "2.0.28"\n'
        '  resolved "https://registry.yarnpkg.com/@art-ws/common/-/common-2.0.28.tgz"\n',
    )
    write_file(
        tmp_path / "api" / "pnpm-lock.yaml",
        "lockfileVersion: '6.0'\n\n"
        "packages:\n\n"
        "  /lodash@4.17.21:\n"
        "    resolution: {integrity: sha512-test}\n"
        "    dev: false\n",
    )
    return tmp_path
