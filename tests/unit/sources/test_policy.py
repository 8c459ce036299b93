"""Tests for source policy globs and root containment."""

from __future__ import annotations

import pytest

from docquarry.db.models import SourcePolicy
from docquarry.sources.policy import (
    DEFAULT_SOURCE_POLICY,
    glob_to_regex,
    matches_policy,
    merge_policy,
    normalize_relative,
    resolve_within_root,
)


# ------------------------------------------------------------------
# glob_to_regex
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "pattern,path,expected",
    [
        ("**/*.md", "a.md", True),
        ("**/*.md", "x/y/a.md", True),
        ("**/*.md", "a.txt", False),
        ("docs/*", "docs/a.md", True),
        ("docs/*", "docs/a/b.md", False),
        ("docs/?.md", "docs/a.md", True),
        ("docs/?.md", "docs/ab.md", False),
        ("**/node_modules/**", "node_modules/x.md", True),
        ("**/node_modules/**", "a/node_modules/b/c.md", True),
        ("**/node_modules/**", "a/node_modules_x/c.md", False),
        ("notes.md", "notes.md", True),
        ("notes.md", "notesXmd", False),
    ],
)
def test_glob_to_regex(pattern, path, expected):
    assert bool(glob_to_regex(pattern).match(path)) is expected


def test_normalize_relative_converts_backslashes_and_strips_dot():
    assert normalize_relative(".\\a\\b.md") == "a/b.md"
    assert normalize_relative("././c.md") == "c.md"


# ------------------------------------------------------------------
# resolve_within_root
# ------------------------------------------------------------------


def test_resolve_relative_path_inside_root():
    assert resolve_within_root("sub/../a.md", "/docs") == "a.md"


def test_resolve_absolute_path_inside_root():
    assert resolve_within_root("/docs/x/y.md", "/docs") == "x/y.md"


def test_resolve_root_itself_is_empty():
    assert resolve_within_root("/docs", "/docs") == ""


def test_resolve_escape_returns_none():
    assert resolve_within_root("../etc/passwd", "/docs") is None
    assert resolve_within_root("/other/a.md", "/docs") is None


def test_resolve_sibling_with_shared_prefix_returns_none():
    assert resolve_within_root("/docs-private/a.md", "/docs") is None


# ------------------------------------------------------------------
# matches_policy
# ------------------------------------------------------------------


def test_default_policy_accepts_markdown():
    assert matches_policy("README.md", DEFAULT_SOURCE_POLICY)
    assert matches_policy("guide/intro.md", DEFAULT_SOURCE_POLICY)


def test_default_policy_rejects_other_extensions():
    assert not matches_policy("notes.txt", DEFAULT_SOURCE_POLICY)


def test_default_policy_excludes_vendored_dirs():
    assert not matches_policy("a/node_modules/b.md", DEFAULT_SOURCE_POLICY)
    assert not matches_policy(".git/HEAD.md", DEFAULT_SOURCE_POLICY)
    assert not matches_policy("pkg/dist/out.md", DEFAULT_SOURCE_POLICY)


def test_exclude_wins_over_include():
    policy = SourcePolicy(include_paths=("**/*.md",), exclude_paths=("drafts/**",))
    assert not matches_policy("drafts/post.md", policy)
    assert matches_policy("posts/post.md", policy)


def test_empty_include_accepts_everything_not_excluded():
    policy = SourcePolicy(include_paths=(), exclude_paths=("*.log",))
    assert matches_policy("anything.bin", policy)
    assert not matches_policy("server.log", policy)


def test_containment_checked_before_globs():
    assert not matches_policy("../secret.md", DEFAULT_SOURCE_POLICY, source_root="/docs")
    assert not matches_policy("/elsewhere/a.md", DEFAULT_SOURCE_POLICY, source_root="/docs")


def test_absolute_path_under_root_matches_relative_glob():
    policy = SourcePolicy(include_paths=("guide/*.md",), exclude_paths=())
    assert matches_policy("/docs/guide/a.md", policy, source_root="/docs")
    assert not matches_policy("/docs/other/a.md", policy, source_root="/docs")


# ------------------------------------------------------------------
# merge_policy
# ------------------------------------------------------------------


def test_merge_none_returns_default():
    assert merge_policy(None) == DEFAULT_SOURCE_POLICY


def test_merge_full_policy_returned_as_is():
    policy = SourcePolicy(max_depth=1)
    assert merge_policy(policy) is policy


def test_merge_partial_overrides():
    merged = merge_policy({"max_depth": 2, "include_paths": ["*.rst"], "max_file_size": None})
    assert merged.max_depth == 2
    assert merged.include_paths == ("*.rst",)
    assert merged.max_file_size == DEFAULT_SOURCE_POLICY.max_file_size
    assert merged.exclude_paths == DEFAULT_SOURCE_POLICY.exclude_paths


def test_merge_unknown_field_raises():
    with pytest.raises(ValueError, match="bogus"):
        merge_policy({"bogus": 1})
