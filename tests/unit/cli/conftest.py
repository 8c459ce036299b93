"""Fixtures for CLI tests: isolated cwd, config, embeddings and consoles."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from docquarry.sources.registry import generate_source_id


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging():
    """The CLI callback reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def cli_env(tmp_path, monkeypatch, fake_provider):
    """Project dir with a ``docs/`` folder, no global config, fake embeddings."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DOCQUARRY_EMBEDDING_MODEL", raising=False)
    monkeypatch.delenv("DOCQUARRY_DB", raising=False)
    monkeypatch.setattr("docquarry.config._GLOBAL_CONFIG_PATH", tmp_path / "global.yaml")
    monkeypatch.setattr(
        "docquarry.cli.workspace.build_embedding_provider", lambda cfg: fake_provider
    )
    for module in ("sources", "index", "sync", "search", "status"):
        monkeypatch.setattr(f"docquarry.cli.{module}.console", Console(width=200))

    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "a.md").write_text("# Alpha\nThe quick brown fox jumps.\n", encoding="utf-8")
    (docs / "b.md").write_text("# Beta\nLazy dogs sleep all day.\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def docs_dir(cli_env) -> Path:
    return (cli_env / "docs").resolve()


@pytest.fixture
def docs_id(docs_dir) -> str:
    return generate_source_id(str(docs_dir))
