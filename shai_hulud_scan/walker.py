"""Recursive discovery of lockfiles under a project tree."""

import logging
import os
from typing import List, Set, Tuple

from shai_hulud_scan.errors import DirectoryAccessError
from shai_hulud_scan.models import LOCKFILE_DIALECTS

DEPENDENCY_INSTALL_DIRS = {"node_modules"}


def is_pruned(name: str) -> bool:
    """Install directories and hidden directories are never descended into"""
    return name in DEPENDENCY_INSTALL_DIRS or name.startswith(".")


def _list_directory(path: str) -> List[os.DirEntry]:
    try:
        with os.scandir(path) as it:
            return sorted(it, key=lambda entry: entry.name)
    except OSError as e:
        raise DirectoryAccessError(path, e) from e


def find_lockfiles(root) -> List[str]:
    """
    Walk ``root`` depth-first, pre-order, and return lockfile paths.

    A directory's own lockfiles come before those of its subdirectories and
    siblings are visited in name order. Directory symlinks are not followed
    and a lockfile reachable through several links is reported once.
    A missing root yields an empty list.
    """
    root = os.fspath(root)
    if not os.path.isdir(root):
        logging.debug(f"Scan root is not a directory: {root}")
        return []

    found: List[str] = []
    seen: Set[Tuple[int, int]] = set()
    pending = [root]

    while pending:
        current = pending.pop()
        try:
            entries = _list_directory(current)
        except DirectoryAccessError as e:
            if not e.permission_denied:
                logging.warning(str(e))
            continue

        subdirs = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    if not is_pruned(entry.name):
                        subdirs.append(entry.path)
                elif entry.name in LOCKFILE_DIALECTS and entry.is_file():
                    stat = entry.stat()
                    key = (stat.st_dev, stat.st_ino)
                    if key in seen:
                        continue
                    seen.add(key)
                    found.append(entry.path)
                    logging.debug(f"Found lockfile: {entry.path}")
            except OSError as e:
                logging.warning(f"Unable to inspect {entry.path}: {e}")

        # Reversed so the first subdirectory is popped first
        pending.extend(reversed(subdirs))

    logging.info(f"Found {len(found)} lockfiles under {root}")
    return found
