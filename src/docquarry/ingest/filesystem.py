"""Filesystem adapters used by the indexer and the watch service.

The indexer only needs ``scan_directory`` + ``read_file``; restart recovery
additionally needs ``list_files`` (size + mtime). ``LocalFileSystem`` provides
both over the real disk. Paths returned are absolute (lexically, symlinks unresolved) strings.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from docquarry.db.models import FileEntry, FileSnapshot
from docquarry.errors import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class FileSystem(Protocol):
    def scan_directory(self, root: str, max_depth: int) -> list[FileEntry]: ...

    def read_file(self, path: str) -> str: ...


@runtime_checkable
class SnapshotFileSystem(Protocol):
    def list_files(self, root: str, max_depth: int) -> list[FileSnapshot]: ...


class LocalFileSystem:
    """Read-only access to files on the local disk.

    Directory walks are sorted, bounded by *max_depth* (0 = the root's own
    files only) and never follow symlinked directories. Unreadable
    subdirectories are skipped; an unreadable root raises StorageError.
    """

    def scan_directory(self, root: str, max_depth: int) -> list[FileEntry]:
        return [FileEntry(path=s.path, size=s.size) for s in self.list_files(root, max_depth)]

    def list_files(self, root: str, max_depth: int) -> list[FileSnapshot]:
        base = Path(os.path.abspath(root))
        if not base.is_dir():
            raise StorageError(f"Source root is not a readable directory: {root}")
        try:
            entries = sorted(base.iterdir())
        except OSError as exc:
            raise StorageError(f"Cannot scan source root {root}: {exc}") from exc
        return self._walk(entries, depth=0, max_depth=max_depth)

    def read_file(self, path: str) -> str:
        try:
            return Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise StorageError(f"Cannot read file {path}: {exc.strerror or exc}") from exc

    def _walk(self, entries: list[Path], depth: int, max_depth: int) -> list[FileSnapshot]:
        files: list[FileSnapshot] = []
        for entry in entries:
            try:
                if entry.is_symlink() and entry.is_dir():
                    continue
                if entry.is_file():
                    stat = entry.stat()
                    files.append(
                        FileSnapshot(path=str(entry), size=stat.st_size, mtime=stat.st_mtime)
                    )
                elif entry.is_dir() and depth < max_depth:
                    files.extend(self._walk(sorted(entry.iterdir()), depth + 1, max_depth))
            except OSError as exc:
                logger.debug("Skipping %s: %s", entry, exc)
        return files
