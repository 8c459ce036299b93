"""docquarry configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (DOCQUARRY_EMBEDDING_MODEL, DOCQUARRY_DB)
  3. Per-project docquarry.yaml  (in the project directory)
  4. Global ~/.docquarry/config.yaml  (defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from docquarry.ingest.chunker import CHUNKING_STRATEGIES, ChunkingConfig
from docquarry.ingest.jobs import IndexBatchConfig
from docquarry.ingest.watch import WatchConfig

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docquarry"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "docquarry.yaml"
DEFAULT_DB_NAME: str = ".docquarry.db"

# Fields that suggest an API key, forbidden in global config.
# Matches: api_key, apikey, api-key, api_secret, _token (suffix), standalone token,
# standalone secret, _secret (suffix), password, passwd, credential(s).
# Does NOT match legitimate config keys like max_chunk_size or top_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token, auth_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # my_secret, client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "chunking", "indexer", "watch", "search", "storage"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (docquarry.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536


@dataclass
class ChunkingCfg:
    """Chunker configuration (docquarry.yaml: chunking:).

    Attributes:
        strategy: 'heading', 'fixed' or 'paragraph'.
        max_chunk_size: Upper bound on a chunk's raw span, in characters.
        overlap_size: Characters carried over from the previous chunk.
    """

    strategy: str = "heading"
    max_chunk_size: int = 1000
    overlap_size: int = 100


@dataclass
class IndexerCfg:
    """Indexer throughput configuration (docquarry.yaml: indexer:)."""

    batch_size: int = 10
    max_concurrent: int = 5
    retry_attempts: int = 2
    retry_delay_ms: int = 1000


@dataclass
class WatchCfg:
    """Watch queue configuration (docquarry.yaml: watch:)."""

    debounce_ms: int = 500
    max_queue_size: int = 1000
    process_interval_ms: int = 2000
    file_scoped_delete: bool = False


@dataclass
class SearchCfg:
    """Search defaults (docquarry.yaml: search:)."""

    top_k: int = 10
    min_score: float | None = None


@dataclass
class StorageCfg:
    """Persistence configuration (docquarry.yaml: storage:).

    Attributes:
        db_path: SQLite file; relative paths resolve against the project dir.
    """

    db_path: str = DEFAULT_DB_NAME


@dataclass
class DocquarryConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    indexer: IndexerCfg = field(default_factory=IndexerCfg)
    watch: WatchCfg = field(default_factory=WatchCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)

    def chunking_config(self) -> ChunkingConfig:
        return ChunkingConfig(
            strategy=self.chunking.strategy,
            max_chunk_size=self.chunking.max_chunk_size,
            overlap_size=self.chunking.overlap_size,
        )

    def batch_config(self) -> IndexBatchConfig:
        return IndexBatchConfig(
            batch_size=self.indexer.batch_size,
            max_concurrent=self.indexer.max_concurrent,
            retry_attempts=self.indexer.retry_attempts,
            retry_delay_ms=self.indexer.retry_delay_ms,
        )

    def watch_config(self) -> WatchConfig:
        return WatchConfig(
            debounce_ms=self.watch.debounce_ms,
            max_queue_size=self.watch.max_queue_size,
            process_interval_ms=self.watch.process_interval_ms,
            file_scoped_delete=self.watch.file_scoped_delete,
        )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names.

    Global config must never store credentials; they belong in env vars.
    """

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}', ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DocquarryConfig:
    """Build a *DocquarryConfig* from a merged raw YAML dict."""
    cfg = DocquarryConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        strategy = str(c.get("strategy", cfg.chunking.strategy))
        if strategy not in CHUNKING_STRATEGIES:
            raise ConfigError(
                f"chunking.strategy must be one of {', '.join(CHUNKING_STRATEGIES)}, "
                f"got '{strategy}'"
            )
        cfg.chunking = ChunkingCfg(
            strategy=strategy,
            max_chunk_size=int(c.get("max_chunk_size", cfg.chunking.max_chunk_size)),
            overlap_size=int(c.get("overlap_size", cfg.chunking.overlap_size)),
        )
        if not 0 <= cfg.chunking.overlap_size < cfg.chunking.max_chunk_size:
            raise ConfigError(
                "chunking.overlap_size must be >= 0 and smaller than chunking.max_chunk_size"
            )

    if "indexer" in data:
        i = data["indexer"] or {}
        cfg.indexer = IndexerCfg(
            batch_size=int(i.get("batch_size", cfg.indexer.batch_size)),
            max_concurrent=int(i.get("max_concurrent", cfg.indexer.max_concurrent)),
            retry_attempts=int(i.get("retry_attempts", cfg.indexer.retry_attempts)),
            retry_delay_ms=int(i.get("retry_delay_ms", cfg.indexer.retry_delay_ms)),
        )

    if "watch" in data:
        w = data["watch"] or {}
        cfg.watch = WatchCfg(
            debounce_ms=int(w.get("debounce_ms", cfg.watch.debounce_ms)),
            max_queue_size=int(w.get("max_queue_size", cfg.watch.max_queue_size)),
            process_interval_ms=int(
                w.get("process_interval_ms", cfg.watch.process_interval_ms)
            ),
            file_scoped_delete=bool(
                w.get("file_scoped_delete", cfg.watch.file_scoped_delete)
            ),
        )

    if "search" in data:
        s = data["search"] or {}
        min_score = s.get("min_score", cfg.search.min_score)
        cfg.search = SearchCfg(
            top_k=int(s.get("top_k", cfg.search.top_k)),
            min_score=float(min_score) if min_score is not None else None,
        )

    if "storage" in data:
        st = data["storage"] or {}
        cfg.storage = StorageCfg(db_path=str(st.get("db_path", cfg.storage.db_path)))

    return cfg


def _apply_env_overrides(cfg: DocquarryConfig) -> DocquarryConfig:
    """Apply DOCQUARRY_* environment variable overrides (layer 2)."""
    if model := os.environ.get("DOCQUARRY_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if db_path := os.environ.get("DOCQUARRY_DB"):
        cfg.storage.db_path = db_path
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocquarryConfig:
    """Load and return a merged *DocquarryConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docquarry.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *DocquarryConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, a file is
            not a mapping, or a chunking value is invalid.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg)


def resolve_db_path(cfg: DocquarryConfig, project_dir: Path | None = None) -> Path:
    """Return the absolute SQLite path for *cfg* (relative to *project_dir*)."""
    path = Path(cfg.storage.db_path).expanduser()
    if path.is_absolute():
        return path
    return (project_dir if project_dir is not None else Path.cwd()) / path


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.docquarry/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# docquarry global configuration: defaults only.\n"
            "# NEVER store API keys here. Use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimensions: 1536\n"
            "\n"
            "chunking:\n"
            "  strategy: heading\n"
            "  max_chunk_size: 1000\n"
            "  overlap_size: 100\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
