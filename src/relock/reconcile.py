"""Translate working tree status into file operations."""

from __future__ import annotations

import logging
from typing import List

from .schema import FileChange, FileDelete, FileWrite
from .tools.files import LocalFiles
from .tools.vcs import RepoStatus

LOGGER = logging.getLogger(__name__)


def lockfile_changed(status: RepoStatus, lockfile: str, files: LocalFiles, previous: bytes) -> bytes | None:
    """Return the new lockfile contents, or ``None`` when the toolchain left it alone.

    The lockfile must be reported modified by the status provider and its
    contents must actually differ from ``previous``.
    """

    if not status.is_modified(lockfile):
        LOGGER.debug("%s not reported as modified", lockfile)
        return None
    current = files.read_bytes(lockfile)
    if current is None or current == previous:
        LOGGER.debug("%s contents unchanged", lockfile)
        return None
    return current


def vendor_changes(status: RepoStatus, vendor_root: str, files: LocalFiles) -> List[FileChange]:
    """Collect writes under ``vendor_root`` and every reported deletion.

    Deletions are not filtered by directory since dropping a dependency can
    remove vendored entries anywhere in the tree.
    """

    changes: List[FileChange] = []
    for path in status.changed():
        if not path.startswith(vendor_root):
            continue
        contents = files.read_bytes(path)
        if contents is None:
            continue
        changes.append(FileWrite(path=path, contents=contents))
    for path in sorted(set(status.deleted)):
        changes.append(FileDelete(path=path))
    LOGGER.debug("Collected %d vendor changes under %s", len(changes), vendor_root)
    return changes


__all__ = ["lockfile_changed", "vendor_changes"]
