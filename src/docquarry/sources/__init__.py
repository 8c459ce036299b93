"""Document sources: policy matching and the source registry."""

from docquarry.sources.policy import (
    DEFAULT_SOURCE_POLICY,
    glob_to_regex,
    matches_policy,
    merge_policy,
    normalize_relative,
    resolve_within_root,
)
from docquarry.sources.registry import SourceRegistry, generate_source_id

__all__ = [
    "DEFAULT_SOURCE_POLICY",
    "SourceRegistry",
    "generate_source_id",
    "glob_to_regex",
    "matches_policy",
    "merge_policy",
    "normalize_relative",
    "resolve_within_root",
]
