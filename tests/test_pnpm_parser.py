"""Tests for pnpm-lock.yaml parsing."""

from __future__ import annotations

import pytest

from shai_hulud_scan.models import PackageIdentifier
from shai_hulud_scan.parsers import DEFAULT_PNPM_REVISION, PnpmLockParser, pnpm_package_path


def ids(*canonical):
    return {PackageIdentifier.parse_canonical(c) for c in canonical}


@pytest.fixture
def parser():
    return PnpmLockParser()


@pytest.mark.parametrize("key,expected", [
    ("/lodash@4.17.21", ("lodash", "4.17.21")),
    ("lodash@4.17.21", ("lodash", "4.17.21")),
    ("/@scope/pkg@1.2.3", ("@scope/pkg", "1.2.3")),
    ("/@scope/pkg@1.2.3@abcdef123", ("@scope/pkg", "1.2.3")),
    ("/pkg@1.0.0@sha512-xyz", ("pkg", "1.0.0")),
    ("'/@babel/core@7.22.0'", ("@babel/core", "7.22.0")),
    ("/@babel/core@7.22.0(supports-color@8.1.1)", ("@babel/core", "7.22.0")),
    ("/malformed-entry", ("malformed-entry", None)),
    ("/", (None, None)),
])
def test_pnpm_package_path(key, expected):
    assert pnpm_package_path(key) == expected


@pytest.mark.parametrize("key,expected", [
    ("/lodash/4.17.21", ("lodash", "4.17.21")),
    ("/@babel/core/7.22.0", ("@babel/core", "7.22.0")),
    ("/react-dom/18.2.0_react@18.2.0", ("react-dom", "18.2.0")),
    ("/@scope/pkg@1.2.3@abcdef123", ("@scope/pkg", "1.2.3")),
])
def test_legacy_pnpm_path(key, expected):
    assert pnpm_package_path(key, 5.4) == expected


def test_revision_detection(parser):
    assert parser.detect_revision("lockfileVersion: '6.0'\n") == 6.0
    assert parser.detect_revision('lockfileVersion: "9.0"\n') == 9.0
    assert parser.detect_revision("lockfileVersion: 5.4\n") == 5.4
    assert parser.detect_revision("packages:\n") == DEFAULT_PNPM_REVISION
    assert parser.detect_revision("lockfileVersion: six\n") == DEFAULT_PNPM_REVISION


def test_v6_lockfile(parser):
    text = (
        "lockfileVersion: '6.0'\n\n"
        "dependencies:\n"
        "  lodash:\n"
        "    specifier: ^4.17.0\n"
        "    version: 4.17.21\n\n"
        "packages:\n\n"
        "  /lodash@4.17.21:\n"
        "    resolution: {integrity: sha512-test}\n"
        "    dev: false\n\n"
        "  /@art-ws/common@2.0.28(react@18.2.0):\n"
        "    resolution: {integrity: sha512-test}\n"
        "    dependencies:\n"
        "      react: 18.2.0\n"
    )

    assert parser.parse(text) == ids("lodash@4.17.21", "@art-ws/common@2.0.28")


def test_hash_suffix_is_stripped(parser):
    text = "packages:\n  /@scope/pkg@1.2.3@abcdef123:\n    dev: false\n"

    assert parser.parse(text) == ids("@scope/pkg@1.2.3")


def test_v9_lockfile_without_leading_slash(parser):
    text = (
        "lockfileVersion: '9.0'\n\n"
        "packages:\n\n"
        "  '@art-ws/common@2.0.28':\n"
        "    resolution: {integrity: sha512-test}\n\n"
        "  lodash@4.17.21:\n"
        "    resolution: {integrity: sha512-test}\n\n"
        "snapshots:\n\n"
        "  other@1.0.0: {}\n"
    )

    assert parser.parse(text) == ids("@art-ws/common@2.0.28", "lodash@4.17.21")


def test_v5_lockfile(parser):
    text = (
        "lockfileVersion: 5.4\n\n"
        "packages:\n\n"
        "  /lodash/4.17.21:\n"
        "    resolution: {integrity: sha512-test}\n\n"
        "  /@art-ws/common/2.0.28_react@18.2.0:\n"
        "    resolution: {integrity: sha512-test}\n"
    )

    assert parser.parse(text) == ids("lodash@4.17.21", "@art-ws/common@2.0.28")


def test_version_line_sets_version(parser):
    text = (
        "lockfileVersion: '6.0'\n"
        "packages:\n"
        "  /tarball-dep:\n"
        "    resolution: {tarball: https://example.com/tarball-dep.tgz}\n"
        "    name: tarball-dep\n"
        "    version: '2.1.0'\n"
    )

    assert parser.parse(text) == ids("tarball-dep@2.1.0")


def test_version_line_adds_to_heading_version(parser):
    text = "packages:\n  /pkg@1.0.0:\n    version: \"1.0.1\"\n"

    assert parser.parse(text) == ids("pkg@1.0.0", "pkg@1.0.1")


def test_nested_maps_are_not_headings(parser):
    text = (
        "packages:\n"
        "  /parent@1.0.0:\n"
        "    dependencies:\n"
        "      child@2.0.0: 2.0.0\n"
        "    optionalDependencies:\n"
        "      version: 3.0.0\n"
    )

    assert parser.parse(text) == ids("parent@1.0.0")


def test_only_packages_block_is_read(parser):
    text = (
        "lockfileVersion: '6.0'\n"
        "importers:\n"
        "  /not-a-package@1.0.0:\n"
        "    version: 1.0.0\n"
        "packages:\n"
        "  /inside@1.0.0:\n"
        "    dev: true\n"
        "# trailing comment\n"
        "settings:\n"
        "  /outside@1.0.0:\n"
        "    version: 1.0.0\n"
    )

    assert parser.parse(text) == ids("inside@1.0.0")


def test_malformed_entries(parser):
    text = (
        "lockfileVersion: '6.0'\n\n"
        "packages:\n"
        "  /package-without-version:\n"
        "    resolution: 'package@1.0.0'\n"
        "    integrity: sha512-test\n"
        "  not-a-heading\n"
        "  /@scope/package@1.0.0:\n"
        "    version: 1.0.0\n"
    )

    assert parser.parse(text) == ids("@scope/package@1.0.0")
