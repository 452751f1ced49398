"""Tests for loading the known-bad list."""

from __future__ import annotations

from shai_hulud_scan import registry
from shai_hulud_scan.errors import RegistryLoadError
from shai_hulud_scan.models import PackageIdentifier


def test_load_trims_and_skips_blank_lines(tmp_path):
    source = tmp_path / "list.txt"
    source.write_bytes(b"lodash@4.17.21\r\n\r\n  @scope/pkg@1.0.0  \n\n")

    known_bad = registry.load(source)

    assert len(known_bad) == 2
    assert known_bad.load_error is None
    assert known_bad.contains("lodash@4.17.21")
    assert known_bad.contains(PackageIdentifier("@scope/pkg", "1.0.0"))
    assert "@scope/pkg@1.0.0" in known_bad


def test_lookup_is_exact(tmp_path):
    source = tmp_path / "list.txt"
    source.write_text("lodash@4.17.21\n", encoding="utf-8")

    known_bad = registry.load(source)

    assert not known_bad.contains("lodash@4.17.2")
    assert not known_bad.contains("Lodash@4.17.21")
    assert not known_bad.contains(PackageIdentifier("lodash", "^4.17.21"))


def test_missing_list_yields_empty_set(tmp_path):
    known_bad = registry.load(tmp_path / "missing.txt")

    assert len(known_bad) == 0
    assert isinstance(known_bad.load_error, RegistryLoadError)
    assert not known_bad.contains("lodash@4.17.21")


def test_bundled_list_loads():
    known_bad = registry.load()

    assert known_bad.load_error is None
    assert len(known_bad) > 1000
    assert known_bad.contains("@asyncapi/cli@4.1.2")
    assert known_bad.contains("@asyncapi/cli@4.1.3")
    assert known_bad.contains("02-echo@0.0.7")
