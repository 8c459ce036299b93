"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import threading

import pytest

from docquarry.db.connection import Database
from docquarry.db.models import FileEntry, FileSnapshot
from docquarry.db.schema import initialize
from docquarry.errors import EmbeddingProviderError, StorageError


class FakeEmbeddingProvider:
    """Deterministic embeddings derived from a hash of the text.

    ``default`` (when set) is returned for every text, ``fixed`` pins the
    vector for exact texts. ``fail_times`` fails the next N calls and
    ``fail_always`` every call; ``short_by`` drops vectors from each batch
    to simulate a malformed response.
    """

    id = "fake"
    model = "fake/embed-4"
    version = "1"

    def __init__(self, dimension: int = 4) -> None:
        self.dimension = dimension
        self.default: list[float] | None = None
        self.fixed: dict[str, list[float]] = {}
        self.fail_times = 0
        self.fail_always = False
        self.short_by = 0
        self.batches: list[list[str]] = []
        self._lock = threading.Lock()

    def vector(self, text: str) -> list[float]:
        if self.default is not None:
            return list(self.default)
        if text in self.fixed:
            return list(self.fixed[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [digest[i] / 255 + 0.01 for i in range(self.dimension)]

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        with self._lock:
            self.batches.append(list(texts))
            if self.fail_always or self.fail_times > 0:
                self.fail_times = max(0, self.fail_times - 1)
                raise EmbeddingProviderError("fake provider unavailable")
        vectors = [self.vector(t) for t in texts]
        return vectors[: len(vectors) - self.short_by] if self.short_by else vectors


class FakeFileSystem:
    """In-memory files keyed by absolute POSIX path."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files: dict[str, str] = dict(files or {})
        self.read_errors: set[str] = set()
        self.scan_error: Exception | None = None
        self.reads: list[str] = []

    def scan_directory(self, root: str, max_depth: int) -> list[FileEntry]:
        return [FileEntry(path=s.path, size=s.size) for s in self.list_files(root, max_depth)]

    def list_files(self, root: str, max_depth: int) -> list[FileSnapshot]:
        if self.scan_error is not None:
            raise self.scan_error
        prefix = root.rstrip("/") + "/"
        found = []
        for path in sorted(self.files):
            if not path.startswith(prefix):
                continue
            if path[len(prefix) :].count("/") > max_depth:
                continue
            found.append(
                FileSnapshot(path=path, size=len(self.files[path].encode("utf-8")), mtime=0.0)
            )
        return found

    def read_file(self, path: str) -> str:
        self.reads.append(path)
        if path in self.read_errors or path not in self.files:
            raise StorageError(f"Cannot read file {path}")
        return self.files[path]


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".docquarry.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_fs():
    return FakeFileSystem(
        {
            "/docs/guide.md": "# Guide\nInstall the tool.\n\n## Usage\nRun the indexer often.\n",
            "/docs/notes/todo.md": "# Todo\nWrite more tests.\n",
            "/docs/readme.txt": "Plain text is not indexed by default.\n",
        }
    )
