"""Source policy: glob include/exclude matching plus root containment.

Globs are translated to anchored regular expressions by hand; only ``**``,
``*``, ``?`` and literal characters are supported:

  **/   zero or more leading directory segments
  /**   (at the end) the directory itself and everything below it
  **    anything, separators included
  *     any run of characters within one segment
  ?     exactly one non-separator character
"""

from __future__ import annotations

import os
import posixpath
import re
from dataclasses import replace
from functools import lru_cache
from typing import Any

from docquarry.db.models import SourcePolicy

DEFAULT_SOURCE_POLICY = SourcePolicy()

_POLICY_FIELDS: frozenset[str] = frozenset(
    ["include_paths", "exclude_paths", "max_file_size", "max_depth", "watch_for_changes"]
)


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a path glob into an anchored, compiled regular expression."""
    pattern = normalize_relative(pattern)
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                if i + 2 < n and pattern[i + 2] == "/":
                    out.append("(?:.*/)?")
                    i += 3
                    continue
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "/" and pattern[i + 1 : i + 3] == "**" and i + 3 == n:
            out.append("(?:/.*)?")
            i += 3
            continue
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("^" + "".join(out) + "$")


def normalize_relative(path: str) -> str:
    """Convert backslashes to ``/`` and strip any leading ``./`` segments."""
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def resolve_within_root(path: str, root: str) -> str | None:
    """Return *path* relative to *root* (POSIX form), or None if it escapes.

    Relative paths are resolved against *root*; absolute paths are taken as
    they are. Resolution is lexical (``..`` collapsed, symlinks not followed).
    """
    canonical_root = os.path.normpath(os.path.abspath(root))
    canonical_path = os.path.normpath(os.path.join(canonical_root, path))
    try:
        rel = os.path.relpath(canonical_path, canonical_root)
    except ValueError:
        # Different drives on Windows.
        return None
    if os.path.isabs(rel) or rel == os.pardir or rel.startswith(os.pardir + os.sep):
        return None
    return posixpath.join(*rel.split(os.sep)) if rel != os.curdir else ""


def matches_policy(path: str, policy: SourcePolicy, source_root: str | None = None) -> bool:
    """Return True if *path* is accepted by *policy*.

    When *source_root* is given the containment check runs first and is
    authoritative: a path that resolves outside the root is rejected before
    any glob is consulted.
    """
    if source_root is not None:
        relative = resolve_within_root(path, source_root)
        if relative is None:
            return False
        path = relative

    normalized = normalize_relative(path)

    if any(glob_to_regex(p).match(normalized) for p in policy.exclude_paths):
        return False

    if not policy.include_paths:
        return True

    return any(glob_to_regex(p).match(normalized) for p in policy.include_paths)


def merge_policy(overrides: SourcePolicy | dict[str, Any] | None = None) -> SourcePolicy:
    """Merge *overrides* with ``DEFAULT_SOURCE_POLICY``.

    Accepts a complete SourcePolicy (returned as-is) or a partial mapping of
    field names. Unknown keys raise ValueError.
    """
    if overrides is None:
        return DEFAULT_SOURCE_POLICY
    if isinstance(overrides, SourcePolicy):
        return overrides

    unknown = set(overrides) - _POLICY_FIELDS
    if unknown:
        raise ValueError(f"Unknown policy field(s): {', '.join(sorted(unknown))}")

    values: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key in ("include_paths", "exclude_paths"):
            value = tuple(value)
        values[key] = value
    return replace(DEFAULT_SOURCE_POLICY, **values)
