"""Filesystem usage scanner.

Sizes the immediate children of a root directory. Files count their
allocated size (disk blocks actually consumed), directories the sum of the
allocated sizes of every regular file below them. Symbolic links are never
followed or sized.

Every filesystem access is attempted on its own; a failure drops that entry
(or returns an empty list / ``None``) and never raises to the caller.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import threading
from pathlib import Path

from capacity.models.scan_result import ChildEntry, SkipCounts, VolumeUsage

log = logging.getLogger(__name__)

_BLOCK_SIZE = 512  # st_blocks unit, fixed by POSIX regardless of fs block size


def allocated_size(st: os.stat_result) -> int:
    """Return the bytes allocated on disk for a stat result."""
    blocks = getattr(st, "st_blocks", None)
    if blocks is None:
        return st.st_size
    return blocks * _BLOCK_SIZE


def _cancelled(cancel: threading.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


class UsageScanner:
    """Computes per-child sizes and volume capacity for a directory.

    Holds no state between calls, so one instance may serve concurrent scans
    as long as each passes its own cancel event and skip collector.
    """

    def __init__(self, one_filesystem: bool = False) -> None:
        self.one_filesystem = one_filesystem

    def list_children(
        self,
        root: Path | str,
        cancel: threading.Event | None = None,
        skipped: SkipCounts | None = None,
    ) -> list[ChildEntry]:
        """Size every immediate child of ``root``.

        Args:
            root: Directory to scan.
            cancel: Polled before each child and each recursive entry. Once
                set, the list returned is incomplete and should be discarded.
            skipped: Optional collector for entries left out of the result.

        Returns:
            Entries with a non-zero size, in no particular order.
        """
        if skipped is None:
            skipped = SkipCounts()
        root_path = Path(root).absolute()

        try:
            with os.scandir(root_path) as it:
                children = list(it)
        except OSError as e:
            log.debug("Failed to list children of %s: %s", root_path, e)
            return []

        root_dev = self._root_device(root_path)
        entries: list[ChildEntry] = []
        for child in children:
            if _cancelled(cancel):
                break
            try:
                st = child.stat(follow_symlinks=False)
            except OSError as e:
                log.debug("Could not read metadata for %s: %s", child.path, e)
                skipped.unreadable += 1
                continue

            if stat.S_ISLNK(st.st_mode):
                skipped.symlinks += 1
                continue

            is_dir = stat.S_ISDIR(st.st_mode)
            listed = True
            if stat.S_ISREG(st.st_mode):
                size = allocated_size(st)
            elif is_dir and not self._crosses_device(st, root_dev):
                size, listed = self._walk(child.path, cancel, skipped, root_dev)
            else:
                size = 0

            if size <= 0:
                # an unlistable directory was already counted as unreadable
                if listed:
                    log.debug("Zero-sized: %s", child.path)
                    skipped.empty += 1
                continue
            entries.append(ChildEntry(path=Path(child.path), size_bytes=size, is_directory=is_dir))

        return entries

    def tree_size(
        self,
        path: Path | str,
        cancel: threading.Event | None = None,
        skipped: SkipCounts | None = None,
        root_dev: int | None = None,
    ) -> int:
        """Sum allocated sizes of all regular files below ``path``.

        Returns 0 if ``cancel`` is set before the walk finishes.
        """
        return self._walk(path, cancel, skipped, root_dev)[0]

    def _walk(
        self,
        path: Path | str,
        cancel: threading.Event | None,
        skipped: SkipCounts | None,
        root_dev: int | None,
    ) -> tuple[int, bool]:
        """Return the tree size and whether ``path`` itself could be listed."""
        if skipped is None:
            skipped = SkipCounts()
        top = os.fspath(path)
        listed = True
        total = 0
        stack: list[str] = [top]
        while stack:
            current = stack.pop()
            try:
                with os.scandir(current) as it:
                    for entry in it:
                        if _cancelled(cancel):
                            return 0, listed
                        try:
                            st = entry.stat(follow_symlinks=False)
                        except OSError as e:
                            log.debug("Could not read metadata for %s: %s", entry.path, e)
                            skipped.unreadable += 1
                            continue
                        if stat.S_ISLNK(st.st_mode):
                            skipped.symlinks += 1
                        elif stat.S_ISREG(st.st_mode):
                            total += allocated_size(st)
                        elif stat.S_ISDIR(st.st_mode) and not self._crosses_device(st, root_dev):
                            stack.append(entry.path)
            except OSError as e:
                log.debug("Could not enumerate %s: %s", current, e)
                skipped.unreadable += 1
                if current == top:
                    listed = False
        return (0 if _cancelled(cancel) else total), listed

    def volume_usage(self, path: Path | str) -> VolumeUsage | None:
        """Return used/total capacity of the volume holding ``path``."""
        try:
            usage = shutil.disk_usage(path)
        except OSError as e:
            log.debug("Failed to read filesystem attributes for %s: %s", path, e)
            return None
        return VolumeUsage.from_free(usage.total, usage.free)

    def _root_device(self, root: Path) -> int | None:
        if not self.one_filesystem:
            return None
        try:
            return os.stat(root).st_dev
        except OSError:
            return None

    @staticmethod
    def _crosses_device(st: os.stat_result, root_dev: int | None) -> bool:
        return root_dev is not None and st.st_dev != root_dev
